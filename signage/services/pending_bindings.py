"""
Pending Device Binding service.

Device-centric pairing: the player advertises its own id as a DEVICE: QR
code, an operator scans it and picks a screen, and the player collects the
token minted for it by polling with its device id.

The operator's bind-device call creates the pending row and claims it in
the same commit, so the binding is live as soon as the operator confirms.
The player's poll picks up the already-minted token until the player
presents it on verify or heartbeat.
"""

import logging
from datetime import datetime, timezone

from signage.models import db, DeviceBinding, PendingDeviceBinding
from signage.services.activation import normalize_device_id, DEVICE_ID_PATTERN, normalize_code
from signage.services.credentials import DeviceCredentialStore
from signage.services.errors import PairingError, PairingErrorKind


logger = logging.getLogger(__name__)


class PendingBindingService:
    """Create, claim and deliver device-id keyed bindings."""

    def __init__(self, credentials: DeviceCredentialStore = None):
        self.credentials = credentials or DeviceCredentialStore()

    def create(self, device_id, screen, created_by, now=None) -> PendingDeviceBinding:
        """
        Record a binding request, replacing any unclaimed one for the device.

        Raises:
            PairingError: INVALID_DEVICE_ID
        """
        device_id = normalize_device_id(device_id)
        now = now or datetime.now(timezone.utc)

        PendingDeviceBinding.query.filter(
            PendingDeviceBinding.device_id == device_id,
            PendingDeviceBinding.claimed_at.is_(None),
        ).delete(synchronize_session='fetch')

        pending = PendingDeviceBinding(
            device_id=device_id,
            screen_id=screen.id,
            device_token=self.credentials.generate_device_token(),
            created_by=created_by,
            created_at=now,
        )
        db.session.add(pending)
        db.session.flush()
        return pending

    def claim(self, pending: PendingDeviceBinding, device_info=None, now=None) -> DeviceBinding:
        """
        Materialize the binding for a pending request. One-shot.

        Runs in the caller's transaction.

        Raises:
            PairingError: CODE_USED if already claimed, BINDING_CONFLICT on a race
        """
        now = now or datetime.now(timezone.utc)

        claimed = PendingDeviceBinding.query.filter(
            PendingDeviceBinding.id == pending.id,
            PendingDeviceBinding.claimed_at.is_(None),
        ).update({PendingDeviceBinding.claimed_at: now}, synchronize_session='fetch')
        if claimed != 1:
            raise PairingError(PairingErrorKind.CODE_USED, 'Device binding has already been claimed')

        return self.credentials.create_exclusive(
            pending.screen_id,
            device_token=pending.device_token,
            device_info=device_info or f'device:{pending.device_id}',
            now=now,
        )

    def bind_device(self, device_id, screen, created_by, device_info=None, now=None) -> DeviceBinding:
        """
        Operator flow: bind a scanned device to a screen immediately.

        Returns:
            The new live DeviceBinding
        """
        pending = self.create(device_id, screen, created_by, now=now)
        binding = self.claim(pending, device_info=device_info, now=now)
        db.session.commit()

        logger.info("Device %s bound to screen %s (binding %s)", pending.device_id, screen.id, binding.id)
        return binding

    def collect(self, device_id) -> dict:
        """
        Player pickup of a token minted by bind_device.

        The token is handed out on every poll while its binding is live and
        the player has not yet used it. confirm_delivery() ends the pickup
        window once the token shows up on verify or heartbeat.

        Returns:
            {'bound': True, 'screenId', 'deviceToken', 'bindingId'} or {'bound': False}
        """
        normalized = normalize_code(device_id)
        if not DEVICE_ID_PATTERN.match(normalized):
            return {'bound': False}

        pending = PendingDeviceBinding.query.filter(
            PendingDeviceBinding.device_id == normalized,
            PendingDeviceBinding.claimed_at.isnot(None),
            PendingDeviceBinding.delivered_at.is_(None),
        ).order_by(PendingDeviceBinding.claimed_at.desc(), PendingDeviceBinding.id.desc()).first()

        if pending is None:
            return {'bound': False}

        binding = DeviceBinding.query.filter_by(device_token=pending.device_token).first()
        if binding is None or not binding.is_live():
            return {'bound': False}

        logger.info("Device %s picked up its token for screen %s", normalized, binding.screen_id)
        return {
            'bound': True,
            'screenId': binding.screen_id,
            'deviceToken': binding.device_token,
            'bindingId': binding.id,
        }

    def confirm_delivery(self, binding: DeviceBinding, now=None) -> bool:
        """
        Close the pickup window for a token the player has now presented.

        Runs in the caller's transaction.

        Returns:
            True if a pending row was stamped by this call
        """
        stamped = PendingDeviceBinding.query.filter(
            PendingDeviceBinding.device_token == binding.device_token,
            PendingDeviceBinding.delivered_at.is_(None),
        ).update(
            {PendingDeviceBinding.delivered_at: now or datetime.now(timezone.utc)},
            synchronize_session=False,
        )
        if stamped:
            logger.info("Device token for binding %s confirmed by the player", binding.id)
        return bool(stamped)
