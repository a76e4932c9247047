"""Read-only text model over rendered document HTML.

The viewer renders markdown to HTML; this module turns that HTML into the
pieces the encoder and resolver need: the full text content (as a browser's
``textContent`` would report it), the headings in document order and the
ordered text segments that make up the full text.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import NamedTuple

from bs4 import BeautifulSoup, NavigableString
from bs4.element import Comment, Declaration, Doctype, ProcessingInstruction

from .position import ViewportState

logger = logging.getLogger(__name__)

HEADING_TAGS = ['h1', 'h2', 'h3', 'h4']

_SKIPPED_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)
_SKIPPED_PARENTS = ['script', 'style', 'template']


class Segment(NamedTuple):
    text: str
    segment_id: int


@dataclass(frozen=True)
class Heading:
    text: str
    vertical_offset: float
    char_index: int


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or '', 'html.parser')


def text_nodes(soup) -> list:
    """Return the rendered text nodes of ``soup`` in document order.

    Segment ids used throughout the viewer are indexes into this list, so
    every caller must enumerate nodes through here.
    """
    nodes = []
    for node in soup.descendants:
        if not isinstance(node, NavigableString) or isinstance(node, _SKIPPED_STRINGS):
            continue
        if node.find_parent(_SKIPPED_PARENTS) is not None:
            continue
        if not str(node):
            continue
        nodes.append(node)
    return nodes


@dataclass(frozen=True)
class DocumentTextModel:
    """Snapshot of one render pass of a document.

    Never mutated by the encoder or the resolver.
    """

    full_text: str
    headings: tuple
    segments: tuple
    scroll_height: float = 0.0
    client_height: float = 0.0

    @property
    def scrollable_height(self) -> float:
        return max(0.0, self.scroll_height - self.client_height)

    @property
    def total_lines(self) -> int:
        return len(self.full_text.split('\n'))

    @classmethod
    def from_soup(cls, soup, scroll_height=0.0, client_height=0.0, heading_offsets=None):
        nodes = text_nodes(soup)
        segments = [Segment(str(node), segment_id) for segment_id, node in enumerate(nodes)]
        full_text = ''.join(segment.text for segment in segments)
        found = _heading_elements(soup, nodes)
        headings = _place_headings(found, len(full_text), scroll_height, heading_offsets)
        return cls(
            full_text=full_text,
            headings=tuple(headings),
            segments=tuple(segments),
            scroll_height=float(scroll_height),
            client_height=float(client_height),
        )

    @classmethod
    def from_html(cls, html, scroll_height=0.0, client_height=0.0, heading_offsets=None):
        """Build a model from rendered HTML.

        ``heading_offsets`` are the rendered vertical offsets of the headings
        in document order, as measured by the renderer. When they are not
        supplied (or do not line up with the headings found) offsets are
        estimated from each heading's character position.
        """
        return cls.from_soup(
            parse_html(html),
            scroll_height=scroll_height,
            client_height=client_height,
            heading_offsets=heading_offsets,
        )

    @classmethod
    def for_viewport(cls, html, viewport: ViewportState, heading_offsets=None):
        return cls.from_html(
            html,
            scroll_height=viewport.scroll_height,
            client_height=viewport.client_height,
            heading_offsets=heading_offsets,
        )


def _heading_elements(soup, nodes):
    """Return ``(label, char_index)`` for every h1-h4 element in document order.

    Headings without text (image-only, empty anchors) are kept with an empty
    label so that measured offsets still line up element by element.
    """
    rendered = {id(node) for node in nodes}
    found = []
    position = 0
    for element in soup.descendants:
        if isinstance(element, NavigableString):
            if id(element) in rendered:
                position += len(element)
            continue
        if element.name in HEADING_TAGS and element.find_parent(_SKIPPED_PARENTS) is None:
            found.append((element.get_text().strip(), position))
    return found


def _place_headings(found, text_length, scroll_height, heading_offsets):
    if heading_offsets is not None and len(heading_offsets) != len(found):
        logger.debug(
            'Got %d heading offsets for %d heading elements, estimating instead',
            len(heading_offsets), len(found),
        )
        heading_offsets = None

    headings = []
    for i, (label, char_index) in enumerate(found):
        if not label:
            continue
        if heading_offsets is not None:
            offset = float(heading_offsets[i])
        elif text_length:
            offset = char_index / text_length * scroll_height
        else:
            offset = 0.0
        headings.append(Heading(text=label, vertical_offset=offset, char_index=char_index))
    return headings
