"""Reading-position encoding and bookmark resolution."""

from .document import DocumentTextModel, Heading, Segment
from .encoder import encode
from .manager import BookmarkManager, Notice
from .position import Location, ResolvedTarget, TextSpan, ViewportState
from .resolver import locate_span, resolve
from .session import Bookmark, ViewerSession

__all__ = [
    'Bookmark',
    'BookmarkManager',
    'DocumentTextModel',
    'Heading',
    'Location',
    'Notice',
    'ResolvedTarget',
    'Segment',
    'TextSpan',
    'ViewerSession',
    'ViewportState',
    'encode',
    'locate_span',
    'resolve',
]
