"""
Device Credential Store.

Durable opaque device tokens bound to screens. The store owns the
single-live-binding-per-screen rule: creating a binding revokes every
live binding of the screen and inserts the new one in the same
transaction, and the partial unique index on device_bindings rejects a
concurrent insert that slipped past the revoke.
"""

import logging
import secrets
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from signage.models import db, DeviceBinding
from signage.services.errors import PairingError, PairingErrorKind


logger = logging.getLogger(__name__)


class DeviceCredentialStore:
    """Lookup, creation and revocation of DeviceBinding rows."""

    TOKEN_PREFIX = 'dev_'

    @classmethod
    def generate_device_token(cls) -> str:
        """
        Generate an unguessable device token.

        Returns:
            'dev_' followed by 43 URL-safe characters (32 bytes of randomness)
        """
        return f"{cls.TOKEN_PREFIX}{secrets.token_urlsafe(32)}"

    def get_binding(self, device_token, screen_id) -> Optional[DeviceBinding]:
        """
        Return the live binding matching both the token and the screen.

        Matching on both keys stops a token issued for one screen from
        being replayed against another.

        Args:
            device_token: Token presented by the player
            screen_id: Screen the player claims to drive

        Returns:
            DeviceBinding if live and matching, None otherwise
        """
        if not isinstance(device_token, str) or not device_token or screen_id is None:
            return None

        try:
            screen_id = int(screen_id)
        except (TypeError, ValueError):
            return None

        return DeviceBinding.query.filter(
            DeviceBinding.device_token == device_token,
            DeviceBinding.screen_id == screen_id,
            DeviceBinding.revoked_at.is_(None),
        ).first()

    def list_by_screen(self, screen_id) -> List[DeviceBinding]:
        """Live bindings for a screen, newest first."""
        return DeviceBinding.query.filter(
            DeviceBinding.screen_id == screen_id,
            DeviceBinding.revoked_at.is_(None),
        ).order_by(DeviceBinding.activated_at.desc(), DeviceBinding.id.desc()).all()

    def revoke(self, binding_id, now=None) -> Optional[DeviceBinding]:
        """
        Revoke a binding. Revoking an already revoked binding is a no-op.

        Args:
            binding_id: ID of the binding to revoke
            now: Revocation time (defaults to current UTC time)

        Returns:
            The binding, or None if it does not exist
        """
        binding = db.session.get(DeviceBinding, binding_id)
        if binding is None:
            return None

        if binding.revoked_at is None:
            binding.revoked_at = now or datetime.now(timezone.utc)
            db.session.commit()
            logger.info("Revoked device binding %s for screen %s", binding.id, binding.screen_id)

        return binding

    def touch_last_seen(self, binding: DeviceBinding, now=None) -> DeviceBinding:
        """
        Advance last_seen_at to now. Never moves it backwards and never
        touches revoked_at.
        """
        now = now or datetime.now(timezone.utc)
        if binding.last_seen_at is None or now > binding.last_seen_at:
            binding.last_seen_at = now
            db.session.commit()
        return binding

    def revoke_live_for_screen(self, screen_id, now=None) -> int:
        """
        Revoke every live binding of a screen without committing.

        Returns:
            Number of bindings revoked
        """
        now = now or datetime.now(timezone.utc)
        return DeviceBinding.query.filter(
            DeviceBinding.screen_id == screen_id,
            DeviceBinding.revoked_at.is_(None),
        ).update({DeviceBinding.revoked_at: now}, synchronize_session='fetch')

    def create_exclusive(self, screen_id, device_token=None, device_info=None, now=None) -> DeviceBinding:
        """
        Revoke the screen's live bindings and insert a new one.

        Both statements run in the caller's transaction; the caller commits
        so that any related change (stamping the code used, claiming a
        pending binding) lands atomically with the new binding.

        Args:
            screen_id: Screen to bind
            device_token: Token to bind (generated when omitted)
            device_info: Free-text device descriptor
            now: Activation time

        Returns:
            The new, flushed DeviceBinding

        Raises:
            PairingError: BINDING_CONFLICT if a concurrent binding won the race
        """
        now = now or datetime.now(timezone.utc)

        revoked = self.revoke_live_for_screen(screen_id, now)

        binding = DeviceBinding(
            screen_id=screen_id,
            device_token=device_token or self.generate_device_token(),
            device_info=str(device_info)[:500] if device_info else None,
            activated_at=now,
            last_seen_at=now,
        )
        db.session.add(binding)

        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            logger.warning("Concurrent binding detected for screen %s", screen_id)
            raise PairingError(PairingErrorKind.BINDING_CONFLICT)

        if revoked:
            logger.info("Superseded %d live binding(s) for screen %s", revoked, screen_id)

        return binding
