"""Resolve a stored ``Location`` onto a fresh render of the same document.

Resolution is a fallback chain. Each tier runs only when the one before
it has nothing to offer.

  Tier 1: scroll fraction  - always available, coarse
  Tier 2: section heading  - exact text match, overrides tier 1
  Tier 3: line number      - only when no scroll fraction was stored

The snippet search is independent of the chain. It never moves the scroll
target; it only decides which text (if any) gets flashed.
"""

import logging

from .position import ResolvedTarget, TextSpan

logger = logging.getLogger(__name__)


def locate_span(segments, offset, length):
    """Map a ``[offset, offset + length)`` range onto one text segment.

    ``segments`` is the ordered list of ``(text, segment_id)`` pairs whose
    concatenation is the full text. The range is clipped to the end of the
    segment containing ``offset`` when it straddles a boundary.

    Returns a ``TextSpan`` or ``None`` when ``offset`` is past the end.
    """
    if offset < 0 or length <= 0:
        return None

    position = 0
    for text, segment_id in segments:
        size = len(text)
        if position <= offset < position + size:
            local_start = offset - position
            local_end = min(local_start + length, size)
            return TextSpan(
                start=offset,
                end=position + local_end,
                segment_id=segment_id,
                local_start=local_start,
                local_end=local_end,
            )
        position += size
    return None


def _clamp(value, upper):
    return max(0.0, min(float(upper), float(value)))


def _heading_offset(headings, wanted):
    wanted = wanted.strip()
    for heading in headings:
        if heading.text.strip() == wanted:
            return heading.vertical_offset
    return None


def _scroll_target(location, doc):
    """Tiers 1-3. Returns ``(scroll_top, tier)``."""
    scrollable = doc.scrollable_height

    if location.scroll_percentage is not None:
        scroll_top, tier = location.scroll_percentage / 100 * scrollable, 'scroll'
    else:
        scroll_top, tier = 0.0, 'scroll'

    if location.section_heading:
        offset = _heading_offset(doc.headings, location.section_heading)
        if offset is not None:
            return _clamp(offset, scrollable), 'heading'
        logger.debug('Heading %r not found in current render', location.section_heading)

    # Line counts drift across renders more than viewport fractions do, so
    # the line estimate never overrides a stored fraction.
    if location.scroll_percentage is None and location.line_number:
        total_lines = doc.total_lines
        if total_lines:
            fraction = min(1.0, location.line_number / total_lines)
            return _clamp(fraction * scrollable, scrollable), 'line'

    return _clamp(scroll_top, scrollable), tier


def find_snippet(location, doc):
    """Span of the first literal occurrence of the stored snippet, if any."""
    snippet = location.text_snippet
    if not snippet:
        return None
    index = doc.full_text.find(snippet)
    if index == -1:
        logger.debug('Snippet not found in current render: %r', snippet[:40])
        return None
    return locate_span(doc.segments, index, len(snippet))


def resolve(location, doc) -> ResolvedTarget:
    scroll_top, tier = _scroll_target(location, doc)
    return ResolvedTarget(
        scroll_top=scroll_top,
        span=find_snippet(location, doc),
        tier=tier,
    )
