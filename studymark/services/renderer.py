"""Highlight and indicator rendering.

Everything here is a function of its inputs: a ``ViewerSession`` snapshot,
a list of bookmarks, or a ``DocumentView``. The only mutation is the
transient ``<mark>`` wrapped around a span during a flash, and
``unmark_span`` puts the original text node back exactly.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import NamedTuple

from bs4 import NavigableString
from jinja2 import Environment

from .document import DocumentTextModel, parse_html, text_nodes
from .position import ViewportState

logger = logging.getLogger(__name__)

FLASH_DURATION_MS = 2000
INDICATOR_WIDTH_PX = 6
INDICATOR_HEIGHT_PX = 12
SCROLL_FRAMES = 20

_env = Environment(autoescape=True, trim_blocks=True, lstrip_blocks=True)

INDICATORS_TEMPLATE = _env.from_string('''
{% for indicator in indicators %}
<div class="bookmark-indicator" data-bookmark-id="{{ indicator.bookmark_id }}" title="{{ indicator.title }}"
     style="position:absolute; right:2px; top:{{ '%.2f'|format(indicator.top) }}%; width:{{ indicator.width }}px; height:{{ indicator.height }}px; background-color:var(--{{ indicator.color }}-color, #ffeb3b); border-radius:3px; cursor:pointer;"></div>
{% endfor %}
''')

LIST_TEMPLATE = _env.from_string('''
{% if not bookmarks %}
<div class="empty-bookmarks">
  <p>No bookmarks yet</p>
  <small>Select text and click the bookmark button to create one</small>
</div>
{% else %}
{% for bookmark in bookmarks %}
<div class="bookmark-item" data-bookmark-id="{{ bookmark.id }}">
  <div class="bookmark-color" style="background-color: var(--{{ bookmark.color }}-color, #ffeb3b)"></div>
  <div class="bookmark-content">
    <div class="bookmark-title">{{ bookmark.title }}</div>
    <div class="bookmark-meta">
      {% if bookmark.location.scroll_percentage is not none %}
      <span class="bookmark-position">{{ bookmark.location.scroll_percentage|round|int }}%</span>
      {% endif %}
      {% if bookmark.created_at %}
      <span class="bookmark-date">{{ bookmark.created_at.strftime('%Y-%m-%d') }}</span>
      {% endif %}
    </div>
    {% if bookmark.description %}
    <div class="bookmark-description">{{ bookmark.description }}</div>
    {% endif %}
  </div>
  <div class="bookmark-actions">
    <button class="bookmark-action-btn" data-action="jump" title="Jump to bookmark">Jump</button>
    <button class="bookmark-action-btn" data-action="delete" title="Delete bookmark">Delete</button>
  </div>
</div>
{% endfor %}
{% endif %}
''')


# ---------------------------------------------------------------------------
# Indicators and list
# ---------------------------------------------------------------------------

class Indicator(NamedTuple):
    bookmark_id: str
    top: float
    title: str
    color: str
    width: int = INDICATOR_WIDTH_PX
    height: int = INDICATOR_HEIGHT_PX


def render_indicators(bookmarks) -> list:
    """One scrollbar marker per bookmark that has a scroll percentage."""
    return [
        Indicator(
            bookmark_id=b.id,
            top=b.location.scroll_percentage,
            title=b.title,
            color=b.color,
        )
        for b in bookmarks
        if b.location.scroll_percentage is not None
    ]


def indicators_html(indicators) -> str:
    return INDICATORS_TEMPLATE.render(indicators=indicators).strip()


def render_list(bookmarks) -> str:
    return LIST_TEMPLATE.render(bookmarks=list(bookmarks)).strip()


@dataclass(frozen=True)
class RenderedView:
    indicators: tuple
    indicators_html: str
    list_html: str


def render(session) -> RenderedView:
    """Render indicators and the bookmark list for a session snapshot."""
    indicators = render_indicators(session.bookmarks)
    return RenderedView(
        indicators=tuple(indicators),
        indicators_html=indicators_html(indicators),
        list_html=render_list(session.bookmarks),
    )


# ---------------------------------------------------------------------------
# Scrolling
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScrollPlan:
    """Scroll offsets to apply frame by frame; the last one is the target."""

    frames: tuple
    viewport: ViewportState


def _ease_in_out(t):
    return 4 * t ** 3 if t < 0.5 else 1 - (-2 * t + 2) ** 3 / 2


def scroll_to(viewport, target, smooth=True, frames=SCROLL_FRAMES) -> ScrollPlan:
    top = max(0.0, min(viewport.scrollable_height, target.scroll_top))
    if not smooth or frames <= 1 or top == viewport.scroll_top:
        steps = (top,)
    else:
        start = viewport.scroll_top
        steps = tuple(
            start + (top - start) * _ease_in_out(i / frames)
            for i in range(1, frames + 1)
        )
        # Land exactly on the target regardless of float error.
        steps = steps[:-1] + (top,)
    return ScrollPlan(
        frames=steps,
        viewport=ViewportState(
            scroll_top=top,
            scroll_height=viewport.scroll_height,
            client_height=viewport.client_height,
        ),
    )


# ---------------------------------------------------------------------------
# Span highlighting
# ---------------------------------------------------------------------------

class DocumentView:
    """Mutable handle on one rendered document.

    Segment ids match those of the ``DocumentTextModel`` built from the same
    HTML, since both enumerate text nodes through ``text_nodes``.
    """

    def __init__(self, html):
        self.soup = parse_html(html)
        self.nodes = text_nodes(self.soup)
        self._marked = set()

    def text_model(self, viewport=None, heading_offsets=None) -> DocumentTextModel:
        viewport = viewport or ViewportState(0, 0, 0)
        return DocumentTextModel.from_soup(
            self.soup,
            scroll_height=viewport.scroll_height,
            client_height=viewport.client_height,
            heading_offsets=heading_offsets,
        )

    def to_html(self) -> str:
        return str(self.soup)


@dataclass
class Mark:
    tag: object
    segment_id: int
    original: str
    pieces: list


def mark_span(view, span, color='yellow'):
    """Wrap ``span`` in a ``<mark>``. Returns a ``Mark``, or ``None`` if it can't.

    The tree is only touched once every check has passed, so a refusal
    leaves the document exactly as it was.
    """
    if span is None or span.segment_id in view._marked:
        return None
    if not 0 <= span.segment_id < len(view.nodes):
        logger.debug('Segment %s not in view', span.segment_id)
        return None

    node = view.nodes[span.segment_id]
    text = str(node)
    if not 0 <= span.local_start < span.local_end <= len(text):
        logger.debug('Span %s-%s outside segment of length %d',
                     span.local_start, span.local_end, len(text))
        return None
    if node.parent is None:
        return None

    tag = view.soup.new_tag('mark', attrs={'class': 'bookmark-highlight', 'data-color': color})
    tag.string = text[span.local_start:span.local_end]
    pieces = []
    before = text[:span.local_start]
    after = text[span.local_end:]
    if before:
        pieces.append(NavigableString(before))
    pieces.append(tag)
    if after:
        pieces.append(NavigableString(after))

    node.replace_with(*pieces)
    view._marked.add(span.segment_id)
    return Mark(tag=tag, segment_id=span.segment_id, original=text, pieces=pieces)


def unmark_span(view, mark) -> bool:
    """Undo ``mark_span``, restoring the original single text node."""
    if mark.tag.parent is None:
        return False
    restored = NavigableString(mark.original)
    for piece in mark.pieces:
        if piece is not mark.tag:
            piece.extract()
    mark.tag.replace_with(restored)
    view.nodes[mark.segment_id] = restored
    view._marked.discard(mark.segment_id)
    return True


def flash_span(view, span, duration_ms=FLASH_DURATION_MS, color='yellow'):
    """Highlight ``span`` for ``duration_ms``, then restore the text.

    Returns the ``Mark`` while it is shown, or ``None`` when highlighting
    was not possible; the caller then just scrolls. Never raises.
    """
    try:
        mark = mark_span(view, span, color=color)
    except Exception:
        logger.warning('Could not highlight bookmark location', exc_info=True)
        return None
    if mark is None:
        return None

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.debug('No running event loop, removing highlight immediately')
        unmark_span(view, mark)
        return None
    loop.call_later(duration_ms / 1000, unmark_span, view, mark)
    return mark
