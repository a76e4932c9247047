"""HTTP client for the bookmark persistence API.

Blocking, ``requests``-based. The bookmark manager runs these calls off
the event loop; nothing here knows about asyncio.
"""

import logging
from urllib.parse import quote

import requests

from studymark.errors import BookmarkNotFoundError, DuplicateBookmarkError, PersistenceError

logger = logging.getLogger(__name__)


class BookmarkApiClient:
    """Thin wrapper over the ``/bookmarks`` routes.

    Error responses are turned into ``PersistenceError`` subclasses using
    the ``code`` field of the JSON body.
    """

    def __init__(self, base_url, token=None, timeout=10, session=None):
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config, token=None):
        """Build a client from a Flask-style config mapping."""
        return cls(config['API_BASE_URL'], token=token, timeout=config['API_TIMEOUT'])

    def _headers(self):
        headers = {'Accept': 'application/json'}
        if self.token:
            headers['Authorization'] = f'Bearer {self.token}'
        return headers

    def _request(self, method, path, json=None):
        """Perform a request and return ``(status_code, body)``."""
        response = self.session.request(
            method,
            self.base_url + path,
            json=json,
            headers=self._headers(),
            timeout=self.timeout,
        )
        try:
            body = response.json()
        except ValueError:
            body = {}
        return response.status_code, body

    def _call(self, method, path, json=None, bookmark_id=None):
        try:
            status, body = self._request(method, path, json=json)
        except requests.RequestException as e:
            raise PersistenceError(f'Request to {path} failed: {e}') from e

        if status < 400:
            return body

        code = body.get('code')
        message = body.get('error') or f'HTTP {status}'
        if code == 'DUPLICATE_BOOKMARK':
            raise DuplicateBookmarkError(message, existing=body.get('existing'))
        if code == 'BOOKMARK_NOT_FOUND':
            raise BookmarkNotFoundError(bookmark_id or path)
        raise PersistenceError(message, code=code, status=status)

    def list_for_content(self, content_id):
        body = self._call('GET', f'/bookmarks/content/{quote(content_id, safe="/")}')
        return body.get('bookmarks', [])

    def create(self, payload):
        body = self._call('POST', '/bookmarks', json=payload)
        return body['bookmark']

    def delete(self, bookmark_id):
        self._call('DELETE', f'/bookmarks/{quote(bookmark_id)}', bookmark_id=bookmark_id)

    def touch(self, bookmark_id):
        self._call('POST', f'/bookmarks/{quote(bookmark_id)}/access', bookmark_id=bookmark_id)
