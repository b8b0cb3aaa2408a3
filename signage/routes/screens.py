"""
Signage Screens Routes

Blueprint for screen management and operator pairing endpoints:
- GET /: List the current user's screens
- POST /: Create a screen
- GET /<id>: Get a screen
- DELETE /<id>: Delete a screen
- POST /<id>/activation-codes: Issue an activation code
- GET /<id>/devices: List live device bindings
- POST /<id>/bind-device: Bind a scanned device QR to the screen
- POST /<id>/heartbeat: Player liveness ping (X-Device-Token)

Screens owned by another user answer 404, exactly like missing ones.

All endpoints are prefixed with /api/screens when registered with the app.
"""

from flask import Blueprint, current_app, request, jsonify

from signage.models import db, Screen
from signage.services import (
    DeviceCredentialStore,
    PairingError,
    PairingErrorKind,
    PendingBindingService,
    get_activation_issuer,
    parse_qr_payload,
)
from signage.utils.auth import (
    login_required,
    device_token_required,
    get_current_user,
    get_current_binding,
)
from signage.utils.audit import log_action, log_device_action
from signage.utils.responses import pairing_error_response


# Create screens blueprint
screens_bp = Blueprint('screens', __name__)


VALID_ORIENTATIONS = ['landscape', 'portrait']


def get_owned_screen(screen_id):
    """
    Load a screen owned by the current user.

    Returns:
        Screen, or None when it does not exist or belongs to someone else
    """
    user = get_current_user()
    screen = db.session.get(Screen, screen_id)
    if screen is None or user is None or screen.user_id != user.id:
        return None
    return screen


def _offline_after():
    return current_app.config.get('SCREEN_OFFLINE_AFTER_SECONDS', 120)


@screens_bp.route('', methods=['GET'])
@login_required
def list_screens():
    """
    List screens owned by the current user.

    Returns:
        200: {"screens": [...], "count": 2}
    """
    user = get_current_user()
    screens = Screen.query.filter_by(user_id=user.id).order_by(Screen.created_at.desc()).all()

    return jsonify({
        'screens': [screen.to_dict(_offline_after()) for screen in screens],
        'count': len(screens)
    }), 200


@screens_bp.route('', methods=['POST'])
@login_required
def create_screen():
    """
    Create a new screen for the current user.

    Request Body:
        {
            "name": "Lobby" (required),
            "location": "Ground floor" (optional),
            "orientation": "landscape" | "portrait" (optional)
        }

    Returns:
        201: Screen created
        400: Missing or invalid field
    """
    data = request.get_json(silent=True)

    if not data or not isinstance(data, dict):
        return jsonify({'error': 'Request body is required'}), 400

    name = data.get('name')
    if not name or not isinstance(name, str) or not name.strip():
        return jsonify({'error': 'name is required'}), 400

    orientation = data.get('orientation', 'landscape')
    if orientation not in VALID_ORIENTATIONS:
        return jsonify({
            'error': f"Invalid orientation '{orientation}'. Must be one of: {', '.join(VALID_ORIENTATIONS)}"
        }), 400

    user = get_current_user()
    screen = Screen(
        user_id=user.id,
        name=name.strip(),
        location=data.get('location'),
        orientation=orientation,
    )

    try:
        db.session.add(screen)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'Failed to create screen: {e}')
        return jsonify({'error': 'Failed to create screen'}), 500

    log_action('screen.create', 'screen', screen.id, details={'name': screen.name})

    return jsonify(screen.to_dict(_offline_after())), 201


@screens_bp.route('/<int:screen_id>', methods=['GET'])
@login_required
def get_screen(screen_id):
    """
    Get a screen owned by the current user.

    Returns:
        200: Screen data
        404: Screen not found
    """
    screen = get_owned_screen(screen_id)
    if not screen:
        return jsonify({'error': 'Screen not found'}), 404

    return jsonify(screen.to_dict(_offline_after())), 200


@screens_bp.route('/<int:screen_id>', methods=['DELETE'])
@login_required
def delete_screen(screen_id):
    """
    Delete a screen together with its codes and bindings.

    Returns:
        204: Screen deleted
        404: Screen not found
    """
    screen = get_owned_screen(screen_id)
    if not screen:
        return jsonify({'error': 'Screen not found'}), 404

    screen_name = screen.name

    try:
        db.session.delete(screen)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'Failed to delete screen {screen_id}: {e}')
        return jsonify({'error': 'Failed to delete screen'}), 500

    log_action('screen.delete', 'screen', screen_id, details={'name': screen_name})

    return '', 204


@screens_bp.route('/<int:screen_id>/activation-codes', methods=['POST'])
@login_required
def issue_activation_code(screen_id):
    """
    Issue an activation code for a screen.

    The response includes a polling token so the issuing session can poll
    check-activation while the code is displayed elsewhere.

    Returns:
        201: Code issued
            {
                "id": 1,
                "screenId": 42,
                "code": "AB12CD",
                "expiresAt": "2024-01-15T10:00:00+00:00",
                "qrPayload": "SCREEN:42:AB12CD",
                "pollingToken": "..."
            }
        404: Screen not found
    """
    screen = get_owned_screen(screen_id)
    if not screen:
        return jsonify({'error': 'Screen not found'}), 404

    user = get_current_user()

    try:
        activation = get_activation_issuer().issue(screen, user.id, with_polling_token=True)
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'Failed to issue activation code for screen {screen_id}: {e}')
        return jsonify({'error': 'Failed to issue activation code'}), 500

    log_action(
        'activation_code.issue',
        'activation_code',
        activation.id,
        details={'screen_id': screen.id, 'expires_at': activation.expires_at.isoformat()},
    )

    return jsonify(activation.to_dict(include_polling_token=True)), 201


@screens_bp.route('/<int:screen_id>/devices', methods=['GET'])
@login_required
def list_screen_devices(screen_id):
    """
    List the live device bindings of a screen, newest first.

    Returns:
        200: [ { binding data }, ... ]
        404: Screen not found
    """
    screen = get_owned_screen(screen_id)
    if not screen:
        return jsonify({'error': 'Screen not found'}), 404

    bindings = DeviceCredentialStore().list_by_screen(screen.id)

    return jsonify([
        binding.to_dict(offline_after_seconds=_offline_after()) for binding in bindings
    ]), 200


@screens_bp.route('/<int:screen_id>/bind-device', methods=['POST'])
@login_required
def bind_device(screen_id):
    """
    Bind a device that advertised its own id through a DEVICE: QR code.

    The binding is live immediately and supersedes any previous binding of
    the screen; the player collects its token through check-binding.

    Request Body:
        {
            "deviceId": "A1B2C3D4" (required unless qrPayload is given),
            "qrPayload": "DEVICE:A1B2C3D4" (optional),
            "deviceInfo": "Lobby TV" (optional)
        }

    Returns:
        201: Device bound
            {
                "message": "Device bound successfully",
                "deviceId": "A1B2C3D4",
                "binding": { binding data }
            }
        400: Missing or invalid device id
        404: Screen not found
        409: Concurrent binding for the same screen
    """
    data = request.get_json(silent=True)

    if not data or not isinstance(data, dict):
        return jsonify({'error': 'Request body is required'}), 400

    device_id = data.get('deviceId')
    qr_payload = data.get('qrPayload')
    device_info = data.get('deviceInfo')

    if device_info is not None and not isinstance(device_info, str):
        return jsonify({'error': 'deviceInfo must be a string'}), 400

    if not device_id and qr_payload:
        parsed = parse_qr_payload(qr_payload)
        if parsed is None or parsed.kind != 'device':
            return pairing_error_response(PairingError(PairingErrorKind.INVALID_DEVICE_ID))
        device_id = parsed.device_id

    if not device_id:
        return jsonify({'error': 'deviceId is required'}), 400

    screen = get_owned_screen(screen_id)
    if not screen:
        return jsonify({'error': 'Screen not found'}), 404

    user = get_current_user()

    try:
        binding = PendingBindingService().bind_device(
            device_id,
            screen,
            user.id,
            device_info=device_info,
        )
    except PairingError as e:
        db.session.rollback()
        current_app.logger.info(f'Bind-device rejected for screen {screen_id}: {e}')
        return pairing_error_response(e)
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'Failed to bind device to screen {screen_id}: {e}')
        return jsonify({'error': 'Failed to bind device'}), 500

    log_device_action('bind', binding, details={'device_id': str(device_id).strip().upper()})

    return jsonify({
        'message': 'Device bound successfully',
        'deviceId': str(device_id).strip().upper(),
        'binding': binding.to_dict(offline_after_seconds=_offline_after()),
    }), 201


@screens_bp.route('/<int:screen_id>/heartbeat', methods=['POST'])
@device_token_required
def heartbeat(screen_id):
    """
    Record a liveness ping from the player bound to the screen.

    Request Headers:
        X-Device-Token: <device token> (required)

    Returns:
        200: {"status": "ok", "lastSeenAt": "...", "playable": true}
        401: Missing, unknown or revoked device token
    """
    binding = get_current_binding()

    try:
        PendingBindingService().confirm_delivery(binding)
        DeviceCredentialStore().touch_last_seen(binding)
        screen = binding.screen
        screen.record_heartbeat()
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'Failed to record heartbeat for screen {screen_id}: {e}')
        return jsonify({'error': 'Failed to record heartbeat'}), 500

    return jsonify({
        'status': 'ok',
        'lastSeenAt': binding.last_seen_at.isoformat() if binding.last_seen_at else None,
        'playable': screen.is_playable(),
    }), 200
