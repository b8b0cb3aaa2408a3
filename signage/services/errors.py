"""
Pairing error types.

Every expected pairing failure is raised as a PairingError carrying one
kind from a closed enum, so route handlers can map each reason to its own
status code and response body.
"""

from enum import Enum
from typing import Optional


class PairingErrorKind(Enum):
    """Closed set of reasons a pairing operation can be rejected."""
    CODE_NOT_FOUND = "code_not_found"
    CODE_USED = "code_used"
    CODE_EXPIRED = "code_expired"
    SCREEN_MISMATCH = "screen_mismatch"
    RATE_LIMITED = "rate_limited"
    INVALID_DEVICE_ID = "invalid_device_id"
    BINDING_CONFLICT = "binding_conflict"


# HTTP status for each kind; expired and used share 400 but differ in body code
HTTP_STATUS = {
    PairingErrorKind.CODE_NOT_FOUND: 404,
    PairingErrorKind.CODE_USED: 400,
    PairingErrorKind.CODE_EXPIRED: 400,
    PairingErrorKind.SCREEN_MISMATCH: 400,
    PairingErrorKind.RATE_LIMITED: 429,
    PairingErrorKind.INVALID_DEVICE_ID: 400,
    PairingErrorKind.BINDING_CONFLICT: 409,
}

DEFAULT_MESSAGES = {
    PairingErrorKind.CODE_NOT_FOUND: "Activation code not found",
    PairingErrorKind.CODE_USED: "Activation code has already been used",
    PairingErrorKind.CODE_EXPIRED: "Activation code has expired",
    PairingErrorKind.SCREEN_MISMATCH: "Activation code does not belong to this screen",
    PairingErrorKind.RATE_LIMITED: "Too many failed attempts",
    PairingErrorKind.INVALID_DEVICE_ID: "Invalid device id",
    PairingErrorKind.BINDING_CONFLICT: "Screen was bound by another device at the same time",
}


class PairingError(Exception):
    """
    Raised when a pairing operation is rejected for an expected reason.

    Attributes:
        kind: PairingErrorKind describing the rejection
        message: Human-readable message for the response body
        blocked_for_minutes: Remaining block time (RATE_LIMITED only)
    """

    def __init__(
        self,
        kind: PairingErrorKind,
        message: Optional[str] = None,
        blocked_for_minutes: Optional[int] = None,
    ):
        self.kind = kind
        self.message = message or DEFAULT_MESSAGES[kind]
        self.blocked_for_minutes = blocked_for_minutes
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.kind]

    def to_dict(self) -> dict:
        result = {'error': self.message, 'code': self.kind.value}
        if self.blocked_for_minutes is not None:
            result['blockedForMinutes'] = self.blocked_for_minutes
        return result

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"
