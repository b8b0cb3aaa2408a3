"""
Signage Authentication Routes

Operator login for the dashboard, registered under /api/auth:
- POST /login: exchange email and password for a bearer session
- POST /logout: end the current session
- GET /me: the operator behind the current session

Failed logins count against the client address in the same limiter that
guards code redemption, under a separate 'login:' key.
"""

from flask import Blueprint, request, jsonify
from flask_login import logout_user

from signage.models import db, User, UserSession
from signage.services import get_rate_limiter
from signage.services.errors import PairingError, PairingErrorKind
from signage.utils.auth import login_required, get_current_user, get_current_session, get_client_ip
from signage.utils.audit import log_action
from signage.utils.responses import pairing_error_response


auth_bp = Blueprint('auth', __name__)


def _invalid_credentials():
    return jsonify({
        'error': 'Invalid email or password',
        'code': 'invalid_credentials'
    }), 401


@auth_bp.route('/login', methods=['POST'])
def login():
    """
    Log an operator in.

    Request Body:
        {"email": "owner@example.com", "password": "..."}

    Returns:
        200: {"user": { user data }, "session": { session data with token }}
        400: Missing or non-string field
        401: Unknown email or wrong password
        429: Too many failed logins from this address (Retry-After set)
    """
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return jsonify({'error': 'Request body is required'}), 400

    email = data.get('email')
    password = data.get('password')
    for field, value in (('email', email), ('password', password)):
        if not value:
            return jsonify({'error': f'{field} is required'}), 400
        if not isinstance(value, str):
            return jsonify({'error': f'{field} must be a string'}), 400

    limiter = get_rate_limiter()
    key = f'login:{get_client_ip()}'

    status = limiter.check(key)
    if not status.allowed:
        return pairing_error_response(PairingError(
            PairingErrorKind.RATE_LIMITED,
            f'Too many failed logins. Try again in {status.blocked_for_minutes} minutes',
            blocked_for_minutes=status.blocked_for_minutes,
        ))

    user = User.query.filter_by(email=email.lower().strip()).first()
    if user is None or not user.check_password(password):
        limiter.record_failure(key)
        return _invalid_credentials()

    limiter.clear(key)

    UserSession.purge_expired(user.id)
    session = UserSession.open_for(user.id)
    db.session.add(session)
    db.session.commit()

    log_action('auth.login', 'user', user.id, user=user)

    return jsonify({
        'user': user.to_dict(),
        'session': session.to_dict(include_token=True),
    }), 200


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    """Delete the bearer session, or end the Flask-Login cookie session."""
    user = get_current_user()
    session = get_current_session()

    if session is None:
        logout_user()
    else:
        db.session.delete(session)
        db.session.commit()

    log_action('auth.logout', 'user', user.id, user=user)

    return jsonify({'message': 'Logged out'}), 200


@auth_bp.route('/me', methods=['GET'])
@login_required
def get_me():
    session = get_current_session()
    return jsonify({
        'user': get_current_user().to_dict(),
        'session': session.to_dict() if session else None,
    }), 200
