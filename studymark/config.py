import os
from dotenv import load_dotenv

load_dotenv()

def _fix_db_url(url):
    """Fix common DATABASE_URL issues for SQLAlchemy compatibility."""
    if not url:
        return 'sqlite:///studymark.db'
    # Heroku-style URLs use postgres:// but SQLAlchemy requires postgresql://
    if url.startswith('postgres://'):
        url = url.replace('postgres://', 'postgresql://', 1)
    return url

class Config:
    SQLALCHEMY_DATABASE_URI = _fix_db_url(os.environ.get('DATABASE_URL', ''))
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JWT_SECRET = os.environ.get('JWT_SECRET', 'dev-only-secret-change-me-in-production')
    JWT_ALGORITHM = os.environ.get('JWT_ALGORITHM', 'HS256')

    # Bookmark settings
    BOOKMARK_DEDUP_TOLERANCE = float(os.environ.get('BOOKMARK_DEDUP_TOLERANCE', '0.5'))
    BOOKMARK_LIST_LIMIT = int(os.environ.get('BOOKMARK_LIST_LIMIT', '50'))
    BOOKMARK_RECENT_LIMIT = int(os.environ.get('BOOKMARK_RECENT_LIMIT', '10'))

    # Viewer settings
    HEADING_LOOKAHEAD_PX = int(os.environ.get('HEADING_LOOKAHEAD_PX', '100'))
    FLASH_DURATION_MS = int(os.environ.get('FLASH_DURATION_MS', '2000'))

    # Client settings (used by the bookmark manager when talking to this API)
    API_BASE_URL = os.environ.get('API_BASE_URL', 'http://localhost:5000/api')
    API_TIMEOUT = int(os.environ.get('API_TIMEOUT', '10'))

class DevConfig(Config):
    DEBUG = True

class ProdConfig(Config):
    DEBUG = False

class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    JWT_SECRET = 'test-secret-for-signing-bookmark-tokens'
