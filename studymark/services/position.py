"""Value objects describing a reading position.

A ``Location`` stores several independent signals for one spot in a
document. Only ``scroll_percentage`` is relied on; the others are
best-effort hints that survive re-rendering to varying degrees.
"""

from __future__ import annotations

from dataclasses import dataclass

SNIPPET_MAX_CHARS = 100


@dataclass(frozen=True)
class ViewportState:
    """Scroll geometry of the viewer at one instant."""

    scroll_top: float
    scroll_height: float
    client_height: float

    @property
    def scrollable_height(self) -> float:
        return max(0.0, self.scroll_height - self.client_height)

    @classmethod
    def from_dict(cls, data: dict) -> ViewportState:
        return cls(
            scroll_top=float(data.get('scrollTop', 0) or 0),
            scroll_height=float(data.get('scrollHeight', 0) or 0),
            client_height=float(data.get('clientHeight', 0) or 0),
        )


@dataclass(frozen=True)
class Location:
    """Multi-signal encoding of a position within rendered content.

    ``scroll_percentage`` is ``None`` only for records created by older
    clients that did not store it.
    """

    scroll_percentage: float | None
    section_heading: str = ''
    line_number: int = 1
    text_snippet: str = ''
    character_offset: int = 0

    def to_dict(self) -> dict:
        return {
            'scrollPercentage': self.scroll_percentage,
            'sectionHeading': self.section_heading,
            'lineNumber': self.line_number,
            'textSnippet': self.text_snippet,
            'characterOffset': self.character_offset,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> Location:
        data = data or {}
        scroll = data.get('scrollPercentage')
        return cls(
            scroll_percentage=float(scroll) if scroll is not None else None,
            section_heading=data.get('sectionHeading') or '',
            line_number=int(data.get('lineNumber') or 1),
            text_snippet=data.get('textSnippet') or '',
            character_offset=int(data.get('characterOffset') or 0),
        )


@dataclass(frozen=True)
class TextSpan:
    """A ``[start, end)`` range over the document's full text.

    ``segment_id`` names the text segment holding the range and
    ``local_start``/``local_end`` are offsets inside that segment.
    """

    start: int
    end: int
    segment_id: int
    local_start: int
    local_end: int

    def __len__(self):
        return self.end - self.start

    def to_dict(self) -> dict:
        return {
            'start': self.start,
            'end': self.end,
            'segmentId': self.segment_id,
            'localStart': self.local_start,
            'localEnd': self.local_end,
        }


@dataclass(frozen=True)
class ResolvedTarget:
    """Where to scroll, and optionally which text to flash."""

    scroll_top: float
    span: TextSpan | None = None
    tier: str = 'scroll'

    def to_dict(self) -> dict:
        return {
            'scrollTop': self.scroll_top,
            'tier': self.tier,
            'span': self.span.to_dict() if self.span else None,
        }
