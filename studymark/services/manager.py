"""Bookmark manager for the open document view.

Owns the ``ViewerSession`` snapshot. Every persistence call runs in a
worker thread via ``asyncio.to_thread`` so the event loop never blocks.
List, create and delete are serialized by a lock; listeners get the new
snapshot after each completed mutation, never an intermediate state.

Switching or closing content bumps the session generation. Results of
calls that were in flight across a switch are dropped instead of being
applied to the new view.
"""

import asyncio
import logging
from typing import NamedTuple

from studymark.errors import BookmarkError, BookmarkNotFoundError, DuplicateBookmarkError, PersistenceError
from .encoder import encode
from .resolver import resolve
from .session import Bookmark, ViewerSession, derive_title

logger = logging.getLogger(__name__)


class Notice(NamedTuple):
    level: str  # success | info | warning | error
    message: str


class BookmarkManager:

    def __init__(self, client, notify=None):
        self.client = client
        self.session = ViewerSession()
        self._notify = notify or (lambda notice: None)
        self._listeners = []
        self._lock = asyncio.Lock()
        self._detached = set()

    # ------------------------------------------------------------------
    # Session plumbing
    # ------------------------------------------------------------------

    def subscribe(self, callback):
        """Call ``callback(session)`` after every change. Returns an unsubscribe function."""
        self._listeners.append(callback)
        return lambda: self._listeners.remove(callback)

    def _publish(self, session):
        self.session = session
        for callback in list(self._listeners):
            callback(session)

    def _is_current(self, generation):
        return generation == self.session.generation

    async def open(self, content_id):
        """Switch the view to ``content_id`` and load its bookmarks."""
        self._publish(self.session.switched_to(content_id))
        return await self.list(content_id)

    def close(self):
        """Discard the in-memory bookmarks of the current view."""
        self._publish(self.session.switched_to(None))

    # ------------------------------------------------------------------
    # Persistence-backed operations
    # ------------------------------------------------------------------

    async def list(self, content_id=None):
        content_id = content_id or self.session.content_id
        if not content_id:
            return []
        generation = self.session.generation

        # Serialized with create/delete so a refresh never races an in-flight write.
        async with self._lock:
            try:
                data = await asyncio.to_thread(self.client.list_for_content, content_id)
            except PersistenceError as e:
                logger.error('Error loading bookmarks for %s: %s', content_id, e)
                self._notify(Notice('error', 'Failed to load bookmarks'))
                raise

            bookmarks = [Bookmark.from_dict(item) for item in data]
            if self._is_current(generation) and self.session.content_id == content_id:
                self._publish(self.session.with_bookmarks(bookmarks))
            else:
                logger.debug('Discarding bookmark list for %s, view has changed', content_id)
        return bookmarks

    async def create(self, location, selected_text='', color='yellow', tags=None):
        content_id = self.session.content_id
        if not content_id:
            self._notify(Notice('error', 'No content selected for bookmark'))
            raise BookmarkError('No content is open')

        title, description = derive_title(selected_text, location)
        payload = {
            'contentPath': content_id,
            'title': title,
            'description': description,
            'location': location.to_dict(),
            'tags': list(tags or []),
            'color': color,
        }

        generation = self.session.generation
        async with self._lock:
            try:
                data = await asyncio.to_thread(self.client.create, payload)
            except DuplicateBookmarkError:
                logger.info('Duplicate bookmark at %s%% in %s', location.scroll_percentage, content_id)
                self._notify(Notice('warning', 'Bookmark already exists at this location'))
                raise
            except PersistenceError as e:
                logger.error('Error creating bookmark: %s', e)
                self._notify(Notice('error', 'Failed to create bookmark'))
                raise

            bookmark = Bookmark.from_dict(data)
            if not self._is_current(generation):
                logger.debug('Bookmark %s created after the view changed, not applied', bookmark.id)
                return bookmark
            self._publish(self.session.adding(bookmark))

        self._notify(Notice('success', 'Bookmark created successfully'))
        return bookmark

    async def delete(self, bookmark_id):
        """Delete a bookmark. Deleting an unknown id is a no-op success."""
        generation = self.session.generation
        async with self._lock:
            try:
                await asyncio.to_thread(self.client.delete, bookmark_id)
            except BookmarkNotFoundError:
                logger.info('Bookmark %s already gone from the store', bookmark_id)
            except PersistenceError as e:
                logger.error('Error deleting bookmark %s: %s', bookmark_id, e)
                self._notify(Notice('error', 'Failed to delete bookmark'))
                raise

            if not self._is_current(generation):
                logger.debug('Bookmark %s deleted after the view changed, not applied', bookmark_id)
                return
            self._publish(self.session.removing(bookmark_id))

        self._notify(Notice('success', 'Bookmark deleted'))

    def touch(self, bookmark_id):
        """Refresh the last-accessed time in a detached task.

        Returns the task, or ``None`` when there is no running loop. The
        caller is never expected to await it.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning('No running event loop, skipping access update for %s', bookmark_id)
            return None
        task = loop.create_task(self._touch(bookmark_id))
        self._detached.add(task)
        task.add_done_callback(self._detached.discard)
        return task

    async def _touch(self, bookmark_id):
        try:
            await asyncio.to_thread(self.client.touch, bookmark_id)
        except PersistenceError as e:
            logger.warning('Failed to update bookmark access time: %s', e)

    # ------------------------------------------------------------------
    # Viewer actions
    # ------------------------------------------------------------------

    def activate(self, bookmark, doc):
        """Jump to ``bookmark``: refresh its access time and resolve it on ``doc``."""
        self.touch(bookmark.id)
        return resolve(bookmark.location, doc)

    def toggle_bookmark_mode(self):
        self._publish(self.session.toggled_mode())
        if self.session.bookmark_mode:
            self._notify(Notice('info', 'Bookmark mode: Select text and click to create bookmark'))
        return self.session.bookmark_mode

    async def handle_selection(self, doc, viewport, selected_text):
        """Create a bookmark from a selection made while in bookmark mode."""
        selected_text = (selected_text or '').strip()
        if not self.session.bookmark_mode or not selected_text:
            return None
        location = encode(doc, viewport, selected_text)
        self.toggle_bookmark_mode()
        return await self.create(location, selected_text)

    async def toggle_bookmark(self, doc, viewport, selected_text=''):
        """Bookmark button: enter bookmark mode, or bookmark the current spot."""
        if not self.session.bookmark_mode:
            self.toggle_bookmark_mode()
            return None
        location = encode(doc, viewport, selected_text)
        self.toggle_bookmark_mode()
        return await self.create(location, selected_text)
