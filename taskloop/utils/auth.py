"""Session handling and authentication decorators.

Every request gets an explicit ``Session`` built from its bearer token. A
session is ``anonymous`` (no token), ``authenticated`` (valid token) or
``expired`` (token past its ``exp``). Routes receive the session as their
first argument and hand it on to the services.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import wraps
from flask import request, jsonify, current_app
import jwt
import logging

logger = logging.getLogger(__name__)

ANONYMOUS = 'anonymous'
AUTHENTICATED = 'authenticated'
EXPIRED = 'expired'


@dataclass
class Session:
    state: str = ANONYMOUS
    user_id: int | None = None
    username: str | None = None
    expires_at: datetime | None = None

    @property
    def is_authenticated(self):
        return self.state == AUTHENTICATED


def _get_secret_key():
    """Get JWT secret from Flask app config (single source of truth)."""
    return current_app.config['JWT_SECRET_KEY']


def issue_token(user):
    """Create a signed access token for a user."""
    expires_in = current_app.config['JWT_ACCESS_TOKEN_EXPIRES']
    payload = {
        'user_id': user.id,
        'username': user.username,
        'exp': datetime.utcnow() + timedelta(seconds=expires_in)
    }
    return jwt.encode(payload, _get_secret_key(), algorithm='HS256')


def session_from_token(token):
    """Decode a token into a Session. Never raises."""
    if not token:
        return Session()

    # Support both "Bearer <token>" and raw token formats
    if ' ' in token:
        token = token.split(' ', 1)[1]

    try:
        payload = jwt.decode(token, _get_secret_key(), algorithms=['HS256'])
    except jwt.ExpiredSignatureError:
        return Session(state=EXPIRED)
    except jwt.InvalidTokenError as e:
        logger.debug(f"Rejected token: {e}")
        return Session()

    user_id = payload.get('user_id')
    if user_id is None:
        return Session()

    return Session(
        state=AUTHENTICATED,
        user_id=user_id,
        username=payload.get('username'),
        expires_at=(
            datetime.fromtimestamp(payload['exp'], timezone.utc).replace(tzinfo=None)
            if 'exp' in payload else None
        )
    )


def current_session():
    return session_from_token(request.headers.get('Authorization'))


def token_required(f):
    """
    Decorator to require a valid JWT token.

    Passes the authenticated Session as the first argument to the
    decorated function.

    Usage:
        @bp.route('/protected')
        @token_required
        def protected_route(session):
            return jsonify({'user_id': session.user_id})
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        if not request.headers.get('Authorization'):
            return jsonify({'error': 'Token is missing'}), 401

        session = current_session()

        if session.state == EXPIRED:
            return jsonify({'error': 'Token has expired'}), 401
        if not session.is_authenticated:
            return jsonify({'error': 'Token is invalid'}), 401

        return f(session, *args, **kwargs)
    return decorated


def token_optional(f):
    """
    Decorator that optionally validates a JWT token.

    Passes a Session that may be anonymous. An invalid or expired token is
    treated as no token.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        session = current_session()
        if not session.is_authenticated:
            session = Session()
        return f(session, *args, **kwargs)
    return decorated
