"""Errors raised by the bookmark client and manager.

Only failures that change what the user asked for (duplicate creation, a
failed create/delete/list) are raised. Resolution, highlighting and
access-time refreshes degrade silently instead.
"""


class BookmarkError(Exception):
    """Base class for bookmark failures."""


class PersistenceError(BookmarkError):
    """The persistence API rejected a request or could not be reached."""

    def __init__(self, message, code=None, status=None):
        self.message = message
        self.code = code
        self.status = status
        super().__init__(message)


class DuplicateBookmarkError(PersistenceError):
    """A bookmark already exists at effectively the same location."""

    def __init__(self, message='Bookmark already exists at this location', existing=None):
        self.existing = existing
        super().__init__(message, code='DUPLICATE_BOOKMARK', status=409)


class BookmarkNotFoundError(PersistenceError):

    def __init__(self, bookmark_id):
        self.bookmark_id = bookmark_id
        super().__init__(
            f'Bookmark {bookmark_id} not found',
            code='BOOKMARK_NOT_FOUND',
            status=404,
        )
