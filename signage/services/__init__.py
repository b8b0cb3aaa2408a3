"""
Signage Services Package.

Pairing business logic shared by the route handlers:
- Activation Code Issuer (issue, redeem, check-activation, QR payloads)
- Device Credential Store (device tokens and the one-live-binding rule)
- Pending Device Binding (device-id keyed pairing)
- Rate Limiter (brute-force protection on code redemption)
"""

from flask import current_app

from signage.services.errors import PairingError, PairingErrorKind
from signage.services.credentials import DeviceCredentialStore
from signage.services.activation import ActivationCodeIssuer, parse_qr_payload
from signage.services.pending_bindings import PendingBindingService
from signage.services.rate_limiter import RateLimiter, RateLimitStatus, create_rate_limiter


def get_activation_issuer() -> ActivationCodeIssuer:
    """Issuer configured from the current app."""
    return ActivationCodeIssuer(
        code_length=current_app.config.get('ACTIVATION_CODE_LENGTH', 6),
        ttl_minutes=current_app.config.get('ACTIVATION_CODE_TTL_MINUTES', 60),
    )


def get_rate_limiter() -> RateLimiter:
    """The activation rate limiter registered by create_app."""
    return current_app.extensions['activation_rate_limiter']


__all__ = [
    'PairingError',
    'PairingErrorKind',
    'DeviceCredentialStore',
    'ActivationCodeIssuer',
    'parse_qr_payload',
    'PendingBindingService',
    'RateLimiter',
    'RateLimitStatus',
    'create_rate_limiter',
    'get_activation_issuer',
    'get_rate_limiter',
]
