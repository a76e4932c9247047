import jwt
from functools import wraps
from flask import request, jsonify, g, current_app
from studymark.extensions import db
from studymark.models.user_profile import UserProfile


def _decode_token(token):
    """Decode and verify a bearer JWT signed with the shared secret."""
    return jwt.decode(
        token,
        current_app.config['JWT_SECRET'],
        algorithms=[current_app.config['JWT_ALGORITHM']],
    )


def issue_token(user_id, **claims):
    """Sign a token for ``user_id``. Used by the login collaborator and tests."""
    payload = {'sub': user_id, **claims}
    return jwt.encode(
        payload,
        current_app.config['JWT_SECRET'],
        algorithm=current_app.config['JWT_ALGORITHM'],
    )


def require_auth(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        token = None
        auth_header = request.headers.get('Authorization', '')

        if auth_header.startswith('Bearer '):
            token = auth_header[7:]

        if not token:
            return jsonify({'error': 'Missing authorization token', 'code': 'NO_TOKEN'}), 401

        try:
            payload = _decode_token(token)
        except jwt.ExpiredSignatureError:
            return jsonify({'error': 'Token expired', 'code': 'TOKEN_EXPIRED'}), 401
        except jwt.InvalidTokenError:
            return jsonify({'error': 'Invalid token', 'code': 'INVALID_TOKEN'}), 401

        user_id = payload.get('sub') or payload.get('userId')
        if not user_id:
            return jsonify({'error': 'Invalid token payload', 'code': 'INVALID_TOKEN'}), 401

        # Auto-create profile on first request
        profile = db.session.get(UserProfile, user_id)
        if not profile:
            username = payload.get('username') or payload.get('email', '').split('@')[0]
            profile = UserProfile(id=user_id, display_name=username or 'User')
            db.session.add(profile)
            db.session.commit()

        g.user_id = user_id
        g.user_profile = profile
        g.jwt_payload = payload

        return f(*args, **kwargs)
    return decorated
