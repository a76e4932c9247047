import logging
from datetime import datetime, timezone

from flask import Blueprint, request, jsonify, g, current_app
from sqlalchemy.exc import SQLAlchemyError

from studymark.extensions import db
from studymark.models.bookmark import Bookmark, BOOKMARK_COLORS
from studymark.middleware.auth import require_auth

logger = logging.getLogger(__name__)

bp = Blueprint('bookmarks', __name__, url_prefix='/api/bookmarks')

TITLE_MAX = 200
DESCRIPTION_MAX = 500
SNIPPET_MAX = 300
TAG_MAX = 50


def _iso(value):
    return value.isoformat() if value else None


def _bookmark_to_dict(bookmark):
    return {
        'id': bookmark.id,
        'contentPath': bookmark.content_path,
        'title': bookmark.title,
        'description': bookmark.description or '',
        'location': {
            'scrollPercentage': bookmark.scroll_percentage,
            'sectionHeading': bookmark.section_heading or '',
            'lineNumber': bookmark.line_number,
            'textSnippet': bookmark.text_snippet or '',
            'characterOffset': bookmark.character_offset,
        },
        'tags': bookmark.tags or [],
        'color': bookmark.color,
        'createdAt': _iso(bookmark.created_at),
        'updatedAt': _iso(bookmark.updated_at),
        'lastAccessedAt': _iso(bookmark.last_accessed_at),
    }


def _error(message, code, status):
    return jsonify({'error': message, 'code': code}), status


def _parse_location(location):
    """Validate a location payload. Returns ``(fields, error_message)``."""
    scroll = location.get('scrollPercentage')
    line = location.get('lineNumber')
    offset = location.get('characterOffset')
    for name in ('sectionHeading', 'textSnippet'):
        if location.get(name) is not None and not isinstance(location[name], str):
            return None, f'{name} must be a string'
    heading = (location.get('sectionHeading') or '').strip()
    snippet = (location.get('textSnippet') or '').strip()

    try:
        scroll = float(scroll) if scroll is not None else None
        line = int(line) if line is not None else None
        offset = int(offset) if offset is not None else None
    except (TypeError, ValueError):
        return None, 'Location values must be numeric'

    if scroll is not None and not 0 <= scroll <= 100:
        return None, 'scrollPercentage must be between 0 and 100'
    if line is not None and line < 1:
        return None, 'lineNumber must be at least 1'
    if offset is not None and offset < 0:
        return None, 'characterOffset must not be negative'
    if len(snippet) > SNIPPET_MAX:
        return None, f'textSnippet must be at most {SNIPPET_MAX} characters'

    return {
        'scroll_percentage': scroll,
        'line_number': line,
        'character_offset': offset,
        'section_heading': heading or None,
        'text_snippet': snippet or None,
    }, None


def _clean_tags(tags):
    cleaned = [str(tag).strip().lower() for tag in tags or []]
    return [tag for tag in cleaned if tag]


def _check_types(data):
    for name in ('contentPath', 'title', 'description', 'color'):
        value = data.get(name)
        if value is not None and not isinstance(value, str):
            return f'{name} must be a string'
    if data.get('tags') is not None and not isinstance(data['tags'], list):
        return 'tags must be a list'
    return None


def _check_lengths(title, description, tags):
    if title is not None and len(title) > TITLE_MAX:
        return f'title must be at most {TITLE_MAX} characters'
    if description and len(description) > DESCRIPTION_MAX:
        return f'description must be at most {DESCRIPTION_MAX} characters'
    if any(len(tag) > TAG_MAX for tag in tags or []):
        return f'tags must be at most {TAG_MAX} characters'
    return None


def _find_duplicate(content_path, fields):
    """Existing bookmark at effectively the same spot, if any.

    Two bookmarks are duplicates when their scroll percentages are within
    BOOKMARK_DEDUP_TOLERANCE of each other. Records without a scroll
    percentage fall back to an exact line number match.
    """
    query = Bookmark.query.filter_by(user_id=g.user_id, content_path=content_path)
    scroll = fields['scroll_percentage']
    if scroll is not None:
        tolerance = current_app.config['BOOKMARK_DEDUP_TOLERANCE']
        return query.filter(
            Bookmark.scroll_percentage.isnot(None),
            db.func.abs(Bookmark.scroll_percentage - scroll) <= tolerance,
        ).first()
    if fields['line_number'] is not None:
        return query.filter(
            Bookmark.scroll_percentage.is_(None),
            Bookmark.line_number == fields['line_number'],
        ).first()
    return None


@bp.errorhandler(SQLAlchemyError)
def handle_store_error(e):
    db.session.rollback()
    logger.exception('Bookmark store error')
    return _error('Bookmark store error', 'BOOKMARK_STORE_ERROR', 500)


@bp.route('', methods=['GET'])
@require_auth
def list_bookmarks():
    """List the user's bookmarks, newest first.

    Query params:
        contentPath: only bookmarks for this content
        limit: max results (default BOOKMARK_LIST_LIMIT)
    """
    limit = request.args.get('limit', current_app.config['BOOKMARK_LIST_LIMIT'], type=int)
    query = Bookmark.query.filter_by(user_id=g.user_id)

    content_path = request.args.get('contentPath')
    if content_path:
        query = query.filter_by(content_path=content_path)

    bookmarks = query.order_by(Bookmark.created_at.desc()).limit(limit).all()
    return jsonify({
        'bookmarks': [_bookmark_to_dict(b) for b in bookmarks],
        'total': len(bookmarks),
    })


@bp.route('/content/<path:content_path>', methods=['GET'])
@require_auth
def list_content_bookmarks(content_path):
    """Bookmarks for one piece of content, in creation order."""
    bookmarks = Bookmark.query.filter_by(
        user_id=g.user_id, content_path=content_path
    ).order_by(Bookmark.created_at.asc()).all()

    return jsonify({
        'contentPath': content_path,
        'bookmarks': [_bookmark_to_dict(b) for b in bookmarks],
        'total': len(bookmarks),
    })


@bp.route('', methods=['POST'])
@require_auth
def create_bookmark():
    """Create a bookmark.

    Accepts: { contentPath, title, description, location, tags, color }
    Returns 409 DUPLICATE_BOOKMARK if one already exists at this location.
    """
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return _error('Request body is required', 'MISSING_REQUIRED_FIELDS', 400)
    problem = _check_types(data)
    if problem:
        return _error(problem, 'VALIDATION_ERROR', 400)

    content_path =(data.get('contentPath') or '').strip()
    title = (data.get('title') or '').strip()
    if not content_path or not title:
        return _error('Content path and title are required', 'MISSING_REQUIRED_FIELDS', 400)

    location = data.get('location') or {}
    if not isinstance(location, dict) or (
        location.get('lineNumber') is None
        and not location.get('sectionHeading')
        and location.get('scrollPercentage') is None
    ):
        return _error(
            'At least one location identifier is required '
            '(lineNumber, sectionHeading, or scrollPercentage)',
            'MISSING_LOCATION', 400,
        )

    fields, problem = _parse_location(location)
    if problem:
        return _error(problem, 'INVALID_LOCATION', 400)

    color = data.get('color') or 'yellow'
    if color not in BOOKMARK_COLORS:
        return _error(f'color must be one of {", ".join(BOOKMARK_COLORS)}', 'INVALID_COLOR', 400)

    description = (data.get('description') or '').strip()
    tags = _clean_tags(data.get('tags'))
    problem = _check_lengths(title, description, tags)
    if problem:
        return _error(problem, 'VALIDATION_ERROR', 400)

    existing = _find_duplicate(content_path, fields)
    if existing:
        return jsonify({
            'error': 'Bookmark already exists at this location',
            'code': 'DUPLICATE_BOOKMARK',
            'existing': _bookmark_to_dict(existing),
        }), 409

    bookmark = Bookmark(
        user_id=g.user_id,
        content_path=content_path,
        title=title,
        description=description or None,
        tags=tags,
        color=color,
        **fields,
    )
    db.session.add(bookmark)
    db.session.commit()
    logger.info('Created bookmark %s for %s', bookmark.id, content_path)

    return jsonify({'bookmark': _bookmark_to_dict(bookmark)}), 201


@bp.route('/<bookmark_id>', methods=['PUT'])
@require_auth
def update_bookmark(bookmark_id):
    """Update a bookmark's title, description, location, tags or color."""
    bookmark = Bookmark.query.filter_by(id=bookmark_id, user_id=g.user_id).first()
    if not bookmark:
        return _error('Bookmark not found', 'BOOKMARK_NOT_FOUND', 404)

    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return _error('Request body is required', 'MISSING_REQUIRED_FIELDS', 400)
    problem = _check_types(data)
    if problem:
        return _error(problem, 'VALIDATION_ERROR', 400)
    if data.get('location') is not None and not isinstance(data['location'], dict):
        return _error('location must be an object', 'INVALID_LOCATION', 400)

    title = data['title'].strip() if data.get('title') else None
    description = data.get('description')
    tags = _clean_tags(data['tags']) if 'tags' in data else None
    problem = _check_lengths(title, description, tags)
    if problem:
        return _error(problem, 'VALIDATION_ERROR', 400)

    if 'color' in data and data['color'] not in BOOKMARK_COLORS:
        return _error(f'color must be one of {", ".join(BOOKMARK_COLORS)}', 'INVALID_COLOR', 400)

    if data.get('location'):
        # Merge with the stored location, like a partial update
        merged = _bookmark_to_dict(bookmark)['location']
        merged.update(data['location'])
        fields, problem = _parse_location(merged)
        if problem:
            return _error(problem, 'INVALID_LOCATION', 400)
        for name, value in fields.items():
            setattr(bookmark, name, value)

    if title:
        bookmark.title = title
    if description is not None:
        bookmark.description = description.strip() or None
    if tags is not None:
        bookmark.tags = tags
    if data.get('color'):
        bookmark.color = data['color']

    db.session.commit()

    return jsonify({'bookmark': _bookmark_to_dict(bookmark)})


@bp.route('/<bookmark_id>', methods=['DELETE'])
@require_auth
def delete_bookmark(bookmark_id):
    """Remove a bookmark."""
    bookmark = Bookmark.query.filter_by(id=bookmark_id, user_id=g.user_id).first()
    if not bookmark:
        return _error('Bookmark not found', 'BOOKMARK_NOT_FOUND', 404)

    db.session.delete(bookmark)
    db.session.commit()

    return jsonify({'ok': True})


@bp.route('/recent', methods=['GET'])
@require_auth
def recent_bookmarks():
    """Most recently accessed bookmarks across all content."""
    limit = request.args.get('limit', current_app.config['BOOKMARK_RECENT_LIMIT'], type=int)
    bookmarks = (
        Bookmark.query
        .filter_by(user_id=g.user_id)
        .order_by(Bookmark.last_accessed_at.desc())
        .limit(limit)
        .all()
    )
    return jsonify({
        'bookmarks': [_bookmark_to_dict(b) for b in bookmarks],
        'total': len(bookmarks),
    })


@bp.route('/stats', methods=['GET'])
@require_auth
def bookmark_stats():
    total, content_count, colors = db.session.query(
        db.func.count(Bookmark.id),
        db.func.count(db.distinct(Bookmark.content_path)),
        db.func.count(db.distinct(Bookmark.color)),
    ).filter(Bookmark.user_id == g.user_id).one()

    return jsonify({
        'stats': {
            'totalBookmarks': total,
            'uniqueContentCount': content_count,
            'colorsUsed': colors,
        }
    })


@bp.route('/<bookmark_id>/access', methods=['POST'])
@require_auth
def touch_bookmark(bookmark_id):
    """Refresh a bookmark's last accessed time."""
    bookmark = Bookmark.query.filter_by(id=bookmark_id, user_id=g.user_id).first()
    if not bookmark:
        return _error('Bookmark not found', 'BOOKMARK_NOT_FOUND', 404)

    bookmark.last_accessed_at = datetime.now(timezone.utc)
    db.session.commit()

    return jsonify({'bookmark': _bookmark_to_dict(bookmark)})
