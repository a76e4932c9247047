from flask import Blueprint, request, jsonify, current_app

from studymark.middleware.auth import require_auth
from studymark.services.document import DocumentTextModel
from studymark.services.encoder import encode
from studymark.services.position import Location, ViewportState
from studymark.services.resolver import resolve

bp = Blueprint('viewer', __name__, url_prefix='/api/viewer')


def _document_from_request(data):
    raw = data.get('viewport') or {}
    if not isinstance(raw, dict):
        raise ValueError('viewport must be an object')
    viewport = ViewportState.from_dict(raw)
    doc = DocumentTextModel.for_viewport(
        data.get('html', ''),
        viewport,
        heading_offsets=data.get('headingOffsets'),
    )
    return doc, viewport


@bp.route('/encode', methods=['POST'])
@require_auth
def encode_position():
    """Encode the current reading position of a rendered document.

    Accepts: { html, viewport: {scrollTop, scrollHeight, clientHeight},
               headingOffsets?, selectedText? }
    Returns: { location }
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or 'html' not in data:
        return jsonify({'error': 'html is required', 'code': 'MISSING_REQUIRED_FIELDS'}), 400

    try:
        doc, viewport = _document_from_request(data)
    except (TypeError, ValueError):
        return jsonify({'error': 'Viewport values must be numeric', 'code': 'INVALID_VIEWPORT'}), 400
    location = encode(
        doc,
        viewport,
        data.get('selectedText', ''),
        lookahead=current_app.config['HEADING_LOOKAHEAD_PX'],
    )
    return jsonify({'location': location.to_dict()})


@bp.route('/resolve', methods=['POST'])
@require_auth
def resolve_position():
    """Map a stored location onto a fresh render.

    Accepts: { html, viewport, headingOffsets?, location }
    Returns: { target: {scrollTop, tier, span}, flashDurationMs }
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or 'html' not in data or not isinstance(data.get('location'), dict):
        return jsonify({'error': 'html and location are required', 'code': 'MISSING_REQUIRED_FIELDS'}), 400

    try:
        doc, _ = _document_from_request(data)
        location = Location.from_dict(data['location'])
    except (TypeError, ValueError):
        return jsonify({'error': 'Viewport and location values must be numeric', 'code': 'INVALID_LOCATION'}), 400

    return jsonify({
        'target': resolve(location, doc).to_dict(),
        'flashDurationMs': current_app.config['FLASH_DURATION_MS'],
    })
