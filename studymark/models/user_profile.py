from datetime import datetime, timezone
from studymark.extensions import db


class UserProfile(db.Model):
    __tablename__ = 'user_profiles'

    id = db.Column(db.String(36), primary_key=True)  # token subject
    display_name = db.Column(db.String(100), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    bookmarks = db.relationship('Bookmark', backref='user', lazy='dynamic')
