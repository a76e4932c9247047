import jwt
import pytest

from studymark import create_app
from studymark.config import TestConfig
from studymark.errors import BookmarkNotFoundError, DuplicateBookmarkError, PersistenceError
from studymark.extensions import db as _db
from studymark.services.manager import BookmarkManager

TEST_USER_ID = '6f1c2a9e-3b1d-4a57-9c1e-2d7f5b8a0c11'
OTHER_USER_ID = 'b2e4d6f8-1a3c-4e5b-8d7f-9a0b1c2d3e4f'


def make_token(user_id, **claims):
    """Sign a token the way the login service does."""
    payload = {'sub': user_id, 'email': 'test@example.com', **claims}
    return jwt.encode(payload, TestConfig.JWT_SECRET, algorithm=TestConfig.JWT_ALGORITHM)


@pytest.fixture
def app():
    """Create a test Flask application with SQLite in-memory database."""
    application = create_app(TestConfig)

    with application.app_context():
        _db.create_all()
        yield application
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Test client authenticated as TEST_USER_ID."""
    test_client = app.test_client()
    test_client.environ_base['HTTP_AUTHORIZATION'] = f'Bearer {make_token(TEST_USER_ID)}'
    yield test_client


@pytest.fixture
def other_client(app):
    """Test client authenticated as a second user."""
    test_client = app.test_client()
    test_client.environ_base['HTTP_AUTHORIZATION'] = f'Bearer {make_token(OTHER_USER_ID)}'
    yield test_client


class FakeStore:
    """In-memory stand-in for the persistence API client.

    Applies the same duplicate rule as the server: same content and scroll
    percentages within ``tolerance``.
    """

    def __init__(self, tolerance=0.5):
        self.tolerance = tolerance
        self.items = {}
        self.touched = []
        self.fail_with = None
        self.fail_touch = False
        self._next_id = 1

    def _check(self):
        if self.fail_with is not None:
            raise self.fail_with

    def list_for_content(self, content_id):
        self._check()
        return [item for item in self.items.values() if item['contentPath'] == content_id]

    def create(self, payload):
        self._check()
        scroll = payload['location']['scrollPercentage']
        for item in self.items.values():
            other = item['location']['scrollPercentage']
            if (item['contentPath'] == payload['contentPath']
                    and abs(other - scroll) <= self.tolerance):
                raise DuplicateBookmarkError(existing=item)

        bookmark_id = f'bm-{self._next_id}'
        self._next_id += 1
        item = {
            'id': bookmark_id,
            'createdAt': '2026-01-05T10:00:00+00:00',
            'lastAccessedAt': '2026-01-05T10:00:00+00:00',
            **payload,
        }
        self.items[bookmark_id] = item
        return item

    def delete(self, bookmark_id):
        self._check()
        if bookmark_id not in self.items:
            raise BookmarkNotFoundError(bookmark_id)
        del self.items[bookmark_id]

    def touch(self, bookmark_id):
        if self.fail_touch:
            raise PersistenceError('store unavailable', status=503)
        self.touched.append(bookmark_id)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def notices():
    return []


@pytest.fixture
def manager(store, notices):
    return BookmarkManager(store, notify=notices.append)
