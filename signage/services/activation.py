"""
Activation Code Issuer.

Issues short, single-use, time-boxed codes bound to one screen and redeems
them into device bindings. Also owns the two QR payload formats shown by
players:

    SCREEN:<screenId>:<code>   code issued for a screen
    DEVICE:<deviceId>          device advertising its own 8-character id

Expiry is checked lazily on read and redemption; nothing sweeps old codes,
they simply stay behind as an audit trail.
"""

import logging
import re
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from typing import Optional

from signage.models import db, ActivationCode, DeviceBinding
from signage.services.credentials import DeviceCredentialStore
from signage.services.errors import PairingError, PairingErrorKind


logger = logging.getLogger(__name__)


CODE_ALPHABET = string.digits + string.ascii_uppercase
MAX_GENERATION_ATTEMPTS = 10

SCREEN_QR_PREFIX = 'SCREEN'
DEVICE_QR_PREFIX = 'DEVICE'
DEVICE_ID_PATTERN = re.compile(r'^[A-Z0-9]{8}$')


# ============================================================================
# Code and QR helpers
# ============================================================================

def normalize_code(code) -> str:
    """Normalize user-entered codes for comparison (codes are stored uppercase)."""
    if not code:
        return ''
    return str(code).strip().upper()


def generate_code(length: int = 6) -> str:
    """Random code from the uppercase base-36 alphabet."""
    return ''.join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def normalize_device_id(device_id) -> str:
    """
    Normalize and validate a device id.

    Raises:
        PairingError: INVALID_DEVICE_ID unless the id is 8 alphanumerics
    """
    normalized = normalize_code(device_id)
    if not DEVICE_ID_PATTERN.match(normalized):
        raise PairingError(PairingErrorKind.INVALID_DEVICE_ID)
    return normalized


def format_screen_qr(screen_id, code) -> str:
    return f'{SCREEN_QR_PREFIX}:{screen_id}:{code}'


def format_device_qr(device_id) -> str:
    return f'{DEVICE_QR_PREFIX}:{device_id}'


@dataclass
class QRPayload:
    """Decoded QR payload; kind is 'screen' or 'device'."""
    kind: str
    screen_id: Optional[int] = None
    code: Optional[str] = None
    device_id: Optional[str] = None


def parse_qr_payload(payload) -> Optional[QRPayload]:
    """
    Decode a scanned QR string.

    Returns:
        QRPayload, or None when the text is not a pairing payload
    """
    if not payload or not isinstance(payload, str):
        return None

    parts = payload.strip().split(':')
    prefix = parts[0].upper()

    if prefix == SCREEN_QR_PREFIX and len(parts) == 3:
        try:
            screen_id = int(parts[1])
        except ValueError:
            return None
        code = normalize_code(parts[2])
        if not code:
            return None
        return QRPayload(kind='screen', screen_id=screen_id, code=code)

    if prefix == DEVICE_QR_PREFIX and len(parts) == 2:
        device_id = normalize_code(parts[1])
        if not DEVICE_ID_PATTERN.match(device_id):
            return None
        return QRPayload(kind='device', device_id=device_id)

    return None


# ============================================================================
# Issuer
# ============================================================================

class ActivationCodeIssuer:
    """
    Issue and redeem activation codes.

    Args:
        code_length: Characters per code
        ttl_minutes: Code lifetime
        credentials: DeviceCredentialStore used to mint bindings
    """

    def __init__(self, code_length: int = 6, ttl_minutes: int = 60, credentials: DeviceCredentialStore = None):
        self.code_length = code_length
        self.ttl = timedelta(minutes=ttl_minutes)
        self.credentials = credentials or DeviceCredentialStore()

    def _is_live_code(self, code, now) -> bool:
        return db.session.query(
            ActivationCode.query.filter(
                ActivationCode.code == code,
                ActivationCode.used_at.is_(None),
                ActivationCode.expires_at >= now,
            ).exists()
        ).scalar()

    def _unique_code(self, now) -> str:
        for _ in range(MAX_GENERATION_ATTEMPTS):
            candidate = generate_code(self.code_length)
            if not self._is_live_code(candidate, now):
                return candidate
        raise RuntimeError('Could not generate a unique activation code')

    def issue(self, screen, issued_by, with_polling_token: bool = False, now=None) -> ActivationCode:
        """
        Issue a new code for a screen. Existing codes stay valid.

        Args:
            screen: Screen the code binds to
            issued_by: ID of the issuing user
            with_polling_token: Attach a secret for check-activation polling
            now: Issue time (defaults to current UTC time)

        Returns:
            The committed ActivationCode
        """
        now = now or datetime.now(timezone.utc)

        activation = ActivationCode(
            screen_id=screen.id,
            code=self._unique_code(now),
            expires_at=now + self.ttl,
            polling_token=secrets.token_urlsafe(24) if with_polling_token else None,
            created_by=issued_by,
            created_at=now,
        )
        db.session.add(activation)
        db.session.commit()

        logger.info("Issued activation code %s for screen %s", activation.id, screen.id)
        return activation

    def current_for_screen(self, screen, now=None) -> ActivationCode:
        """
        Newest live code that carries a polling token, issuing one on demand.

        Codes issued here are attributed to the screen's owner.
        """
        now = now or datetime.now(timezone.utc)

        activation = ActivationCode.query.filter(
            ActivationCode.screen_id == screen.id,
            ActivationCode.polling_token.isnot(None),
            ActivationCode.used_at.is_(None),
            ActivationCode.expires_at >= now,
        ).order_by(ActivationCode.created_at.desc(), ActivationCode.id.desc()).first()

        if activation is not None:
            return activation

        return self.issue(screen, screen.user_id, with_polling_token=True, now=now)

    def find(self, code) -> Optional[ActivationCode]:
        """Case-insensitive lookup; the newest row wins when codes repeat."""
        normalized = normalize_code(code)
        if not normalized:
            return None

        return ActivationCode.query.filter_by(code=normalized).order_by(
            ActivationCode.created_at.desc(), ActivationCode.id.desc()
        ).first()

    def redeem(self, code, device_info=None, expected_screen_id=None, device_token=None, now=None) -> DeviceBinding:
        """
        Redeem a code into a new live binding for its screen.

        Marking the code used, revoking the screen's previous bindings and
        inserting the new binding are committed together.

        Args:
            code: Code as entered (any case, surrounding whitespace ignored)
            device_info: Free-text device descriptor
            expected_screen_id: Screen the caller claims the code is for
            device_token: Token to bind (generated when omitted)
            now: Redemption time (defaults to current UTC time)

        Returns:
            The new DeviceBinding

        Raises:
            PairingError: CODE_NOT_FOUND, SCREEN_MISMATCH, CODE_USED,
                CODE_EXPIRED or BINDING_CONFLICT
        """
        now = now or datetime.now(timezone.utc)

        activation = self.find(code)
        if activation is None:
            raise PairingError(PairingErrorKind.CODE_NOT_FOUND)

        if expected_screen_id is not None and activation.screen_id != expected_screen_id:
            raise PairingError(PairingErrorKind.SCREEN_MISMATCH)

        if activation.is_used():
            raise PairingError(PairingErrorKind.CODE_USED)

        if activation.is_expired(now):
            raise PairingError(PairingErrorKind.CODE_EXPIRED)

        # Compare-and-swap so two concurrent redemptions cannot both win
        claimed = ActivationCode.query.filter(
            ActivationCode.id == activation.id,
            ActivationCode.used_at.is_(None),
        ).update({ActivationCode.used_at: now}, synchronize_session='fetch')
        if claimed != 1:
            db.session.rollback()
            raise PairingError(PairingErrorKind.CODE_USED)

        binding = self.credentials.create_exclusive(
            activation.screen_id,
            device_token=device_token,
            device_info=device_info,
            now=now,
        )
        activation.binding_id = binding.id
        db.session.commit()

        logger.info(
            "Activation code %s redeemed for screen %s (binding %s)",
            activation.id, activation.screen_id, binding.id
        )
        return binding

    def check_activation(self, screen_id, code, polling_token=None, now=None) -> dict:
        """
        Answer a poll from the session displaying a code.

        The device token is only released to the holder of the code's
        polling token, and only while the minted binding is still live.

        Returns:
            {'activated': False, 'expired': bool} while unredeemed,
            {'activated': True, ...} once redeemed
        """
        now = now or datetime.now(timezone.utc)

        activation = self.find(code)
        if activation is None or activation.screen_id != screen_id:
            return {'activated': False}

        if not activation.is_used():
            return {'activated': False, 'expired': activation.is_expired(now)}

        result = {'activated': True}

        token_matches = (
            polling_token
            and activation.polling_token
            and secrets.compare_digest(str(polling_token), activation.polling_token)
        )
        binding = activation.binding
        if token_matches and binding is not None and binding.is_live():
            result.update({
                'deviceToken': binding.device_token,
                'bindingId': binding.id,
                'screenId': binding.screen_id,
            })

        return result
