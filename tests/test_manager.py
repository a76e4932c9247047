"""Tests for the bookmark manager against an in-memory store."""

import asyncio
import threading

import pytest

from studymark.errors import BookmarkError, DuplicateBookmarkError, PersistenceError
from studymark.services.document import DocumentTextModel
from studymark.services.manager import Notice
from studymark.services.position import Location, ViewportState

CONTENT = 'springBoot/01-introduction.md'

HTML = (
    '<h1>Introduction</h1><p>Spring makes Java simple.</p>'
    '<h2>Inversion of Control</h2><p>The container creates objects for you.</p>'
)


def _run(coro):
    return asyncio.run(coro)


def _levels(notices):
    return [notice.level for notice in notices]


class TestOpenAndList:
    def test_open_loads_bookmarks_for_content(self, manager, store):
        store.create({'contentPath': CONTENT, 'title': 'A', 'location': {'scrollPercentage': 10.0}})
        store.create({'contentPath': 'other.md', 'title': 'B', 'location': {'scrollPercentage': 10.0}})

        bookmarks = _run(manager.open(CONTENT))

        assert [b.title for b in bookmarks] == ['A']
        assert manager.session.content_id == CONTENT
        assert len(manager.session.bookmarks) == 1

    def test_list_failure_keeps_state_and_notifies(self, manager, store, notices):
        store.create({'contentPath': CONTENT, 'title': 'A', 'location': {'scrollPercentage': 10.0}})
        _run(manager.open(CONTENT))
        store.fail_with = PersistenceError('down', status=500)

        with pytest.raises(PersistenceError):
            _run(manager.list())

        assert len(manager.session.bookmarks) == 1
        assert _levels(notices)[-1] == 'error'

    def test_close_discards_bookmarks(self, manager, store):
        store.create({'contentPath': CONTENT, 'title': 'A', 'location': {'scrollPercentage': 10.0}})
        _run(manager.open(CONTENT))
        generation = manager.session.generation

        manager.close()

        assert manager.session.bookmarks == ()
        assert manager.session.content_id is None
        assert manager.session.generation == generation + 1


class TestCreate:
    def test_create_appends_and_notifies(self, manager, store, notices):
        _run(manager.open(CONTENT))

        bookmark = _run(manager.create(Location(40.0, text_snippet='container'), 'container'))

        assert bookmark.title == 'container'
        assert manager.session.bookmarks == (bookmark,)
        assert store.items[bookmark.id]['location']['scrollPercentage'] == 40.0
        assert notices[-1] == Notice('success', 'Bookmark created successfully')

    def test_duplicate_within_tolerance_fails(self, manager, store, notices):
        _run(manager.open(CONTENT))
        _run(manager.create(Location(40.0)))

        with pytest.raises(DuplicateBookmarkError) as excinfo:
            _run(manager.create(Location(40.2)))

        assert excinfo.value.code == 'DUPLICATE_BOOKMARK'
        assert len(store.items) == 1
        assert len(manager.session.bookmarks) == 1
        assert notices[-1].level == 'warning'

    def test_distinct_locations_allowed(self, manager, store):
        _run(manager.open(CONTENT))
        _run(manager.create(Location(10.0)))
        _run(manager.create(Location(60.0)))
        assert len(manager.session.bookmarks) == 2

    def test_persistence_failure_leaves_state_unchanged(self, manager, store, notices):
        _run(manager.open(CONTENT))
        store.fail_with = PersistenceError('boom', status=500)

        with pytest.raises(PersistenceError):
            _run(manager.create(Location(40.0)))

        assert manager.session.bookmarks == ()
        assert notices[-1] == Notice('error', 'Failed to create bookmark')

    def test_create_without_open_content(self, manager, notices):
        with pytest.raises(BookmarkError):
            _run(manager.create(Location(40.0)))
        assert notices[-1].level == 'error'

    def test_result_discarded_after_switch(self, manager, store):
        async def scenario():
            await manager.open(CONTENT)
            task = asyncio.ensure_future(manager.create(Location(40.0)))
            await asyncio.sleep(0)
            manager.close()
            await manager.open('other.md')
            return await task

        bookmark = _run(scenario())

        assert bookmark.id in store.items
        assert manager.session.content_id == 'other.md'
        assert manager.session.bookmarks == ()

    def test_listeners_see_each_snapshot(self, manager):
        seen = []
        manager.subscribe(lambda session: seen.append(len(session.bookmarks)))

        _run(manager.open(CONTENT))
        _run(manager.create(Location(10.0)))
        _run(manager.create(Location(50.0)))

        assert seen == [0, 0, 1, 2]

    def test_refresh_during_create_keeps_one_copy(self, manager, store):
        committed = threading.Event()
        release = threading.Event()
        commit = store.create

        def slow_create(payload):
            item = commit(payload)
            committed.set()
            release.wait(5)
            return item

        store.create = slow_create

        async def scenario():
            await manager.open(CONTENT)
            creating = asyncio.ensure_future(manager.create(Location(40.0)))
            await asyncio.to_thread(committed.wait, 5)
            refreshing = asyncio.ensure_future(manager.list())
            await asyncio.sleep(0.05)
            release.set()
            await asyncio.gather(creating, refreshing)

        _run(scenario())

        assert [b.id for b in manager.session.bookmarks] == list(store.items)
        assert len(manager.session.bookmarks) == 1


class TestDelete:
    def test_delete_removes_bookmark(self, manager, store):
        _run(manager.open(CONTENT))
        bookmark = _run(manager.create(Location(40.0)))

        _run(manager.delete(bookmark.id))

        assert manager.session.bookmarks == ()
        assert store.items == {}

    def test_delete_unknown_id_is_success(self, manager, notices):
        _run(manager.open(CONTENT))
        _run(manager.create(Location(40.0)))
        before = len(manager.session.bookmarks)

        _run(manager.delete('does-not-exist'))

        assert len(manager.session.bookmarks) == before
        assert notices[-1].level == 'success'

    def test_delete_failure_keeps_bookmark(self, manager, store, notices):
        _run(manager.open(CONTENT))
        bookmark = _run(manager.create(Location(40.0)))
        store.fail_with = PersistenceError('boom', status=500)

        with pytest.raises(PersistenceError):
            _run(manager.delete(bookmark.id))

        assert manager.session.bookmarks == (bookmark,)
        assert notices[-1] == Notice('error', 'Failed to delete bookmark')

    def test_delete_after_switch_is_silent(self, manager, store, notices):
        async def scenario():
            await manager.open(CONTENT)
            bookmark = await manager.create(Location(40.0))
            task = asyncio.ensure_future(manager.delete(bookmark.id))
            await asyncio.sleep(0)
            manager.close()
            await manager.open('other.md')
            await task

        _run(scenario())

        assert store.items == {}
        assert Notice('success', 'Bookmark deleted') not in notices


class TestTouchAndActivate:
    def test_touch_runs_detached(self, manager, store):
        async def scenario():
            task = manager.touch('bm-1')
            await task

        _run(scenario())
        assert store.touched == ['bm-1']

    def test_touch_failure_is_swallowed(self, manager, store, notices, caplog):
        store.fail_touch = True

        async def scenario():
            await manager.touch('bm-1')

        _run(scenario())
        assert notices == []
        assert 'Failed to update bookmark access time' in caplog.text

    def test_touch_without_loop_returns_none(self, manager):
        assert manager.touch('bm-1') is None

    def test_activate_resolves_and_touches(self, manager, store):
        doc = DocumentTextModel.from_html(HTML, scroll_height=3000, client_height=1000)

        async def scenario():
            await manager.open(CONTENT)
            bookmark = await manager.create(Location(25.0, text_snippet='container'), 'container')
            target = manager.activate(bookmark, doc)
            await asyncio.gather(*manager._detached)
            return bookmark, target

        bookmark, target = _run(scenario())

        assert target.scroll_top == 500.0
        assert doc.full_text[target.span.start:target.span.end] == 'container'
        assert store.touched == [bookmark.id]


class TestBookmarkMode:
    def test_toggle_mode_notifies(self, manager, notices):
        assert manager.toggle_bookmark_mode() is True
        assert notices[-1].level == 'info'
        assert manager.toggle_bookmark_mode() is False

    def test_selection_in_mode_creates_bookmark_and_exits(self, manager, store):
        doc = DocumentTextModel.from_html(HTML, scroll_height=3000, client_height=1000)
        viewport = ViewportState(1000, 3000, 1000)

        async def scenario():
            await manager.open(CONTENT)
            manager.toggle_bookmark_mode()
            return await manager.handle_selection(doc, viewport, 'creates objects')

        bookmark = _run(scenario())

        assert bookmark.location.scroll_percentage == 50.0
        assert bookmark.location.text_snippet == 'creates objects'
        assert manager.session.bookmark_mode is False

    def test_selection_outside_mode_is_ignored(self, manager, store):
        doc = DocumentTextModel.from_html(HTML, scroll_height=3000, client_height=1000)

        async def scenario():
            await manager.open(CONTENT)
            return await manager.handle_selection(doc, ViewportState(0, 3000, 1000), 'Spring')

        assert _run(scenario()) is None
        assert store.items == {}

    def test_toggle_bookmark_enters_then_creates(self, manager, store):
        doc = DocumentTextModel.from_html(HTML, scroll_height=3000, client_height=1000)
        viewport = ViewportState(400, 3000, 1000)

        async def scenario():
            await manager.open(CONTENT)
            first = await manager.toggle_bookmark(doc, viewport)
            second = await manager.toggle_bookmark(doc, viewport)
            return first, second

        first, second = _run(scenario())

        assert first is None
        assert second.location.scroll_percentage == 20.0
        assert manager.session.bookmark_mode is False
