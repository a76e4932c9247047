"""Client-side bookmark records and the viewer session snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime

from .position import Location

TITLE_MAX_CHARS = 50
DESCRIPTION_MAX_CHARS = 200


def _parse_timestamp(value):
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value.replace('Z', '+00:00'))


@dataclass(frozen=True)
class Bookmark:
    id: str
    content_id: str
    title: str
    location: Location
    description: str = ''
    color: str = 'yellow'
    tags: tuple = ()
    created_at: datetime | None = None
    last_accessed_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict) -> Bookmark:
        """Build from the persistence API's JSON shape."""
        return cls(
            id=data['id'],
            content_id=data['contentPath'],
            title=data.get('title', ''),
            description=data.get('description') or '',
            location=Location.from_dict(data.get('location')),
            color=data.get('color') or 'yellow',
            tags=tuple(data.get('tags') or ()),
            created_at=_parse_timestamp(data.get('createdAt')),
            last_accessed_at=_parse_timestamp(data.get('lastAccessedAt')),
        )


def derive_title(selected_text, location) -> tuple:
    """Title and description for a new bookmark.

    The title is the selected text, else the location's heading, else the
    scroll position. Long titles are cut to 47 chars plus an ellipsis. The
    description is only filled when the selection is longer than the title.
    """
    selected_text = (selected_text or '').strip()
    title = selected_text
    if not title:
        title = location.section_heading.strip() if location.section_heading else ''
    if not title:
        title = f'Bookmark at {round(location.scroll_percentage or 0)}%'

    if len(title) > TITLE_MAX_CHARS:
        title = title[:TITLE_MAX_CHARS - 3] + '...'

    description = ''
    if len(selected_text) > len(title):
        description = selected_text[:DESCRIPTION_MAX_CHARS]
    return title, description


@dataclass(frozen=True)
class ViewerSession:
    """Immutable snapshot of the open document view.

    Only the bookmark manager produces new sessions. ``generation`` changes
    whenever the viewer opens, switches or closes content, which lets
    late-arriving results from a previous view be recognised and dropped.
    """

    content_id: str | None = None
    bookmarks: tuple = field(default_factory=tuple)
    bookmark_mode: bool = False
    generation: int = 0

    def find(self, bookmark_id):
        for bookmark in self.bookmarks:
            if bookmark.id == bookmark_id:
                return bookmark
        return None

    def with_bookmarks(self, bookmarks) -> ViewerSession:
        return replace(self, bookmarks=tuple(bookmarks))

    def adding(self, bookmark) -> ViewerSession:
        """Add ``bookmark``, replacing any entry that already has its id."""
        if any(b.id == bookmark.id for b in self.bookmarks):
            bookmarks = tuple(bookmark if b.id == bookmark.id else b for b in self.bookmarks)
        else:
            bookmarks = self.bookmarks + (bookmark,)
        return replace(self, bookmarks=bookmarks)

    def removing(self, bookmark_id) -> ViewerSession:
        return replace(
            self,
            bookmarks=tuple(b for b in self.bookmarks if b.id != bookmark_id),
        )

    def switched_to(self, content_id) -> ViewerSession:
        return ViewerSession(content_id=content_id, generation=self.generation + 1)

    def toggled_mode(self) -> ViewerSession:
        return replace(self, bookmark_mode=not self.bookmark_mode)
