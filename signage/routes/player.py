"""
Signage Player Routes

Public and device-token endpoints used by unattended players:
- POST /screens/activate: Redeem an activation code (rate-limited)
- POST /player/activate: Redeem a code for a known screen (rate-limited)
- POST /player/verify: Confirm a stored device token is still bound
- GET /player/<id>/activation-code: Current code for QR display
- GET /player/<id>/check-activation: Poll a displayed code for redemption
- GET /player/<id>/schedule-status: Playback gate for a bound player
- GET /device/<device_id>/check-binding: Collect a token minted by bind-device

Expected rejections (unknown, used or expired codes, blocked clients) are
logged as ordinary rejections, never as errors.

All endpoints are prefixed with /api when registered with the app.
"""

from flask import Blueprint, current_app, request, jsonify

from signage.models import db, Screen
from signage.services import (
    DeviceCredentialStore,
    PairingError,
    PairingErrorKind,
    PendingBindingService,
    get_activation_issuer,
    get_rate_limiter,
)
from signage.utils.auth import device_token_required, get_current_binding, get_client_ip, get_user_agent
from signage.utils.audit import log_device_action
from signage.utils.responses import pairing_error_response


# Create player blueprint
player_bp = Blueprint('player', __name__)


def _redeem(code, device_info, expected_screen_id=None):
    """
    Redeem a code on behalf of the calling client, applying the rate limiter.

    Returns:
        Tuple of (DeviceBinding, None) on success or (None, error response)
    """
    limiter = get_rate_limiter()
    client_ip = get_client_ip()

    status = limiter.check(client_ip)
    if not status.allowed:
        current_app.logger.info(
            f'Activation blocked for {client_ip} ({status.blocked_for_minutes} min remaining)'
        )
        return None, pairing_error_response(PairingError(
            PairingErrorKind.RATE_LIMITED,
            f'Too many failed attempts. Try again in {status.blocked_for_minutes} minutes',
            blocked_for_minutes=status.blocked_for_minutes,
        ))

    try:
        binding = get_activation_issuer().redeem(
            code,
            device_info=device_info,
            expected_screen_id=expected_screen_id,
        )
    except PairingError as e:
        db.session.rollback()
        if e.kind != PairingErrorKind.BINDING_CONFLICT:
            limiter.record_failure(client_ip)
        current_app.logger.info(f'Activation rejected for {client_ip}: {e.kind.value}')
        return None, pairing_error_response(e)
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'Failed to redeem activation code: {e}')
        return None, (jsonify({'error': 'Failed to activate device'}), 500)

    limiter.clear(client_ip)
    log_device_action('activate', binding, details={'client_ip': client_ip})

    return binding, None


@player_bp.route('/screens/activate', methods=['POST'])
def activate_screen():
    """
    Redeem an activation code and bind the calling device to its screen.

    Request Body:
        {
            "code": "AB12CD" (required, case-insensitive),
            "deviceInfo": "Chrome on Android TV" (optional, defaults to User-Agent)
        }

    Returns:
        200: {"deviceToken": "dev_...", "screenId": 42, "bindingId": 7}
        400: Missing code, or code used/expired
            {"error": "Activation code has expired", "code": "code_expired"}
        404: Unknown code
        429: Too many failed attempts (Retry-After header set)
            {"error": "...", "code": "rate_limited", "blockedForMinutes": 15}
    """
    data = request.get_json(silent=True)

    if not data or not isinstance(data, dict):
        return jsonify({'error': 'Request body is required'}), 400

    code = data.get('code')
    if not code or not isinstance(code, str):
        return jsonify({'error': 'code is required'}), 400

    device_info = data.get('deviceInfo')
    if device_info is not None and not isinstance(device_info, str):
        return jsonify({'error': 'deviceInfo must be a string'}), 400

    binding, error = _redeem(code, device_info or get_user_agent())
    if error is not None:
        return error

    return jsonify({
        'deviceToken': binding.device_token,
        'screenId': binding.screen_id,
        'bindingId': binding.id,
    }), 200


@player_bp.route('/player/activate', methods=['POST'])
def activate_player():
    """
    Redeem an activation code for a screen the player already knows.

    Request Body:
        {
            "code": "AB12CD" (required),
            "screenId": 42 (required),
            "deviceInfo": "..." (optional)
        }

    Returns:
        200: {"deviceToken": "dev_...", "bindingId": 7}
        400: Missing field, code used/expired, or code belongs to another screen
        404: Unknown code
        429: Too many failed attempts
    """
    data = request.get_json(silent=True)

    if not data or not isinstance(data, dict):
        return jsonify({'error': 'Request body is required'}), 400

    code = data.get('code')
    if not code or not isinstance(code, str):
        return jsonify({'error': 'code is required'}), 400

    screen_id = data.get('screenId')
    if screen_id is None or screen_id == '':
        return jsonify({'error': 'screenId is required'}), 400

    try:
        screen_id = int(screen_id)
    except (TypeError, ValueError):
        return jsonify({'error': 'screenId must be an integer'}), 400

    device_info = data.get('deviceInfo')
    if device_info is not None and not isinstance(device_info, str):
        return jsonify({'error': 'deviceInfo must be a string'}), 400

    binding, error = _redeem(code, device_info or get_user_agent(), expected_screen_id=screen_id)
    if error is not None:
        return error

    return jsonify({
        'deviceToken': binding.device_token,
        'bindingId': binding.id,
    }), 200


@player_bp.route('/player/verify', methods=['POST'])
def verify_binding():
    """
    Confirm that a stored device token is still bound to its screen.

    Never fails: anything other than a live binding for exactly this
    token and screen answers {"bound": false}.

    Request Body:
        {
            "deviceToken": "dev_..." (required),
            "screenId": 42 (required)
        }

    Returns:
        200: {"bound": true, "bindingId": 7, "playable": true} or {"bound": false}
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'bound': False}), 200

    store = DeviceCredentialStore()
    binding = store.get_binding(data.get('deviceToken'), data.get('screenId'))
    if binding is None:
        return jsonify({'bound': False}), 200

    if PendingBindingService().confirm_delivery(binding):
        db.session.commit()
    store.touch_last_seen(binding)

    return jsonify({
        'bound': True,
        'bindingId': binding.id,
        'playable': binding.screen.is_playable(),
    }), 200


@player_bp.route('/player/<int:screen_id>/activation-code', methods=['GET'])
def get_player_activation_code(screen_id):
    """
    Current activation code for a screen, for display as text or QR.

    Reuses the newest live code issued for display, otherwise issues one
    on behalf of the screen owner.

    Returns:
        200: {"code": "AB12CD", "expiresAt": "...", "qrPayload": "SCREEN:42:AB12CD",
              "pollingToken": "...", ...}
        404: Screen not found
    """
    screen = db.session.get(Screen, screen_id)
    if not screen:
        return jsonify({'error': 'Screen not found'}), 404

    try:
        activation = get_activation_issuer().current_for_screen(screen)
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'Failed to provide activation code for screen {screen_id}: {e}')
        return jsonify({'error': 'Failed to issue activation code'}), 500

    return jsonify(activation.to_dict(include_polling_token=True)), 200


@player_bp.route('/player/<int:screen_id>/check-activation', methods=['GET'])
def check_activation(screen_id):
    """
    Poll whether a displayed code has been redeemed.

    Query Parameters:
        code: The displayed code
        pollingToken: Token returned with the code

    Returns:
        200: {"activated": false, "expired": false}
             {"activated": true, "deviceToken": "dev_...", "bindingId": 7, "screenId": 42}
    """
    code = request.args.get('code')
    if not code:
        return jsonify({'activated': False}), 200

    result = get_activation_issuer().check_activation(
        screen_id,
        code,
        polling_token=request.args.get('pollingToken'),
    )
    return jsonify(result), 200


@player_bp.route('/player/<int:screen_id>/schedule-status', methods=['GET'])
@device_token_required
def get_schedule_status(screen_id):
    """
    Playback gate for a bound player.

    A screen whose subscription lapsed stays bound but is not playable.

    Request Headers:
        X-Device-Token: <device token> (required)

    Returns:
        200: {"playable": true, "bindingId": 7, "screen": { screen data }}
        401: Missing, unknown or revoked device token
    """
    binding = get_current_binding()
    screen = binding.screen

    return jsonify({
        'playable': screen.is_playable(),
        'bindingId': binding.id,
        'screen': screen.to_dict(current_app.config.get('SCREEN_OFFLINE_AFTER_SECONDS', 120)),
    }), 200


@player_bp.route('/device/<device_id>/check-binding', methods=['GET'])
def check_device_binding(device_id):
    """
    Collect the token minted for a device by an operator's bind-device call.

    The token is returned on every poll until the player presents it on
    verify or heartbeat; after that, and once the binding is revoked, the
    answer is {"bound": false}.

    Returns:
        200: {"bound": true, "screenId": 42, "deviceToken": "dev_...", "bindingId": 7}
             or {"bound": false}
    """
    try:
        result = PendingBindingService().collect(device_id)
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'Failed to check binding for device {device_id}: {e}')
        return jsonify({'error': 'Failed to check binding'}), 500

    return jsonify(result), 200
