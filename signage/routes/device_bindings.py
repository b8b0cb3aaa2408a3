"""
Signage Device Bindings Routes

Blueprint for operator management of device bindings:
- DELETE /<id>: Revoke a binding

All endpoints are prefixed with /api/device-bindings when registered with the app.
"""

from flask import Blueprint, current_app, jsonify

from signage.models import db, DeviceBinding
from signage.services import DeviceCredentialStore
from signage.utils.auth import login_required, get_current_user
from signage.utils.audit import log_device_action


# Create device bindings blueprint
device_bindings_bp = Blueprint('device_bindings', __name__)


@device_bindings_bp.route('/<int:binding_id>', methods=['DELETE'])
@login_required
def revoke_binding(binding_id):
    """
    Revoke a device binding of one of the current user's screens.

    The player holding the token discovers the revocation on its next
    verify or heartbeat. Revoking twice is harmless.

    Returns:
        204: Binding revoked
        404: Binding not found (or screen not owned)
    """
    user = get_current_user()
    binding = db.session.get(DeviceBinding, binding_id)

    if not binding or binding.screen is None or binding.screen.user_id != user.id:
        return jsonify({'error': 'Device binding not found'}), 404

    was_live = binding.is_live()

    try:
        DeviceCredentialStore().revoke(binding.id)
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'Failed to revoke device binding {binding_id}: {e}')
        return jsonify({'error': 'Failed to revoke device binding'}), 500

    if was_live:
        log_device_action('revoke', binding)

    return '', 204
