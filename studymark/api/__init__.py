def register_blueprints(app):
    from studymark.api.bookmarks import bp as bookmarks_bp
    from studymark.api.viewer import bp as viewer_bp

    app.register_blueprint(bookmarks_bp)
    app.register_blueprint(viewer_bp)
