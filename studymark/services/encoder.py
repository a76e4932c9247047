"""Encode the current reading position as a ``Location``.

Every field is computed independently from the same snapshot of the
document and viewport, so a stale or missing signal never contaminates the
others. Encoding has no I/O and never raises.
"""

from .position import Location, SNIPPET_MAX_CHARS

HEADING_LOOKAHEAD_PX = 100


def scroll_percentage(viewport) -> float:
    """Viewport offset as a percentage of the scrollable height, in [0, 100]."""
    scrollable = viewport.scroll_height - viewport.client_height
    if scrollable <= 0:
        return 0.0
    percentage = viewport.scroll_top / scrollable * 100
    return max(0.0, min(100.0, percentage))


def current_heading(headings, scroll_top, lookahead=HEADING_LOOKAHEAD_PX) -> str:
    """Text of the last heading at or above ``scroll_top + lookahead``."""
    current = ''
    for heading in headings:
        if heading.vertical_offset <= scroll_top + lookahead:
            current = heading.text
    return current


def encode(doc, viewport, selected_text='', lookahead=HEADING_LOOKAHEAD_PX) -> Location:
    percentage = scroll_percentage(viewport)
    fraction = percentage / 100

    total_lines = doc.total_lines
    line_number = max(1, round(fraction * total_lines))
    character_offset = max(0, round(fraction * len(doc.full_text)))

    return Location(
        scroll_percentage=percentage,
        section_heading=current_heading(doc.headings, viewport.scroll_top, lookahead),
        line_number=line_number,
        text_snippet=(selected_text or '').strip()[:SNIPPET_MAX_CHARS],
        character_offset=character_offset,
    )
