"""
Signage Authentication Utilities.

The service has two credential boundaries:
- @login_required for operators (Flask-Login cookie or bearer session token)
- @device_token_required for players (X-Device-Token bound to the screen in the URL)
"""

from functools import wraps

from flask import current_app, request, jsonify, g
from flask_login import current_user as flask_login_user

from signage.models import db, UserSession
from signage.services.credentials import DeviceCredentialStore


def get_current_user():
    """Operator authenticated by @login_required, or None."""
    return getattr(g, 'current_user', None)


def get_current_session():
    """Bearer session of the request; None for cookie sessions."""
    return getattr(g, 'current_session', None)


def get_current_binding():
    """DeviceBinding authenticated by @device_token_required, or None."""
    return getattr(g, 'current_binding', None)


def _bearer_token():
    scheme, _, token = request.headers.get('Authorization', '').partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def _load_session(token):
    """Live UserSession for a bearer token; an expired one is deleted."""
    session = UserSession.query.filter_by(token=token).first()
    if session is None:
        return None

    if session.is_expired():
        db.session.delete(session)
        db.session.commit()
        return None

    return session


def login_required(f):
    """
    Require an operator, from either the Flask-Login cookie or an
    "Authorization: Bearer <token>" header. Answers 401 otherwise.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if flask_login_user and flask_login_user.is_authenticated:
            g.current_user = flask_login_user
            g.current_session = None
            return f(*args, **kwargs)

        token = _bearer_token()
        if not token:
            return jsonify({
                'error': 'Authentication required',
                'code': 'missing_token'
            }), 401

        session = _load_session(token)
        if session is None:
            return jsonify({
                'error': 'Invalid or expired session',
                'code': 'invalid_session'
            }), 401

        g.current_user = session.user
        g.current_session = session

        return f(*args, **kwargs)

    return decorated_function


def device_token_required(f):
    """
    Decorator to require a live device token for the screen in the URL.

    The player sends its token in the X-Device-Token header. The token must
    belong to a live binding for the exact screen addressed by the route's
    ``screen_id`` argument, so a token issued for screen A cannot be
    replayed against screen B.

    On failure, returns a 401 Unauthorized response.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        header = current_app.config.get('DEVICE_TOKEN_HEADER', 'X-Device-Token')
        token = request.headers.get(header)
        if not token:
            return jsonify({
                'error': 'Device token required',
                'code': 'missing_device_token'
            }), 401

        binding = DeviceCredentialStore().get_binding(token, kwargs.get('screen_id'))
        if not binding:
            current_app.logger.info(
                'Rejected device token for screen %s from %s',
                kwargs.get('screen_id'), get_client_ip()
            )
            return jsonify({
                'error': 'Invalid or revoked device token',
                'code': 'invalid_device_token'
            }), 401

        g.current_binding = binding
        return f(*args, **kwargs)

    return decorated_function


def get_client_ip():
    """
    Get the client's IP address from the request.

    Only the socket peer is trusted. Behind reverse proxies set
    PROXY_FIX_X_FOR so ProxyFix rewrites remote_addr from the hops it
    was told to trust; a raw X-Forwarded-For header is never read here.

    Returns:
        Client IP address string
    """
    return request.remote_addr


def get_user_agent():
    """
    Get the client's user agent string from the request.

    Returns:
        User agent string, truncated to 500 characters
    """
    user_agent = request.headers.get('User-Agent', '')
    return user_agent[:500] if user_agent else None

