import uuid
from datetime import datetime, timezone
from studymark.extensions import db

BOOKMARK_COLORS = ('yellow', 'blue', 'green', 'red', 'purple', 'orange')


def _now():
    return datetime.now(timezone.utc)


class Bookmark(db.Model):
    __tablename__ = 'bookmarks'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(db.String(36), db.ForeignKey('user_profiles.id'), nullable=False)
    content_path = db.Column(db.String(500), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.String(500), nullable=True)

    # Location signals, each best-effort except scroll_percentage
    scroll_percentage = db.Column(db.Float, nullable=True)
    section_heading = db.Column(db.String(500), nullable=True)
    line_number = db.Column(db.Integer, nullable=True)
    text_snippet = db.Column(db.String(300), nullable=True)
    character_offset = db.Column(db.Integer, nullable=True)

    tags = db.Column(db.JSON, nullable=False, default=list)
    color = db.Column(db.String(20), nullable=False, default='yellow')
    last_accessed_at = db.Column(db.DateTime, nullable=False, default=_now)
    created_at = db.Column(db.DateTime, nullable=False, default=_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=_now, onupdate=_now)

    __table_args__ = (
        db.Index('ix_bookmarks_user_content', 'user_id', 'content_path'),
        db.Index('ix_bookmarks_user_created', 'user_id', created_at.desc()),
        db.Index('ix_bookmarks_user_accessed', 'user_id', last_accessed_at.desc()),
    )
