import logging
import os
import sys

from flask import Flask, jsonify
from .extensions import db, migrate
from .config import DevConfig, ProdConfig


def _configure_logging(app):
    """Set up structured logging on stdout."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'
    ))
    level = logging.INFO if not app.debug else logging.DEBUG
    # app.logger is the 'studymark' logger, so service modules propagate to it
    app.logger.setLevel(level)
    if not any(isinstance(h, logging.StreamHandler) and h.stream is sys.stdout
               for h in app.logger.handlers):
        app.logger.addHandler(handler)
    logging.getLogger('gunicorn.error').setLevel(level)


def _ensure_schema(app):
    """Create tables that don't exist yet.

    Covers deployments where Flask-Migrate isn't run. ``create_all`` only
    creates missing tables and leaves existing ones alone.
    """
    with app.app_context():
        try:
            db.create_all()
            app.logger.info('Schema check completed')
        except Exception as e:
            db.session.rollback()
            app.logger.warning('Schema check failed: %s', e)


def create_app(config=None):
    app = Flask(__name__, static_folder=None)

    if config is None:
        config = ProdConfig if os.environ.get('FLASK_ENV') == 'production' else DevConfig
    app.config.from_object(config)

    _configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so they are registered with SQLAlchemy (needed for migrations)
    from . import models  # noqa: F401

    _ensure_schema(app)

    from flask_cors import CORS
    CORS(app)

    from .api import register_blueprints
    register_blueprints(app)

    # Health check endpoint
    @app.route('/healthz')
    def health_check():
        try:
            db.session.execute(db.text('SELECT 1'))
            return jsonify(status='healthy'), 200
        except Exception:
            app.logger.exception('Health check failed')
            return jsonify(status='unhealthy'), 503

    return app
