"""
Signage Models Package.

SQLAlchemy models for the pairing service including:
- Users and User Sessions (dashboard authentication)
- Screens (logical displays owned by a user)
- Activation Codes (short-lived codes a player redeems to bind to a screen)
- Device Bindings (durable device tokens, at most one live per screen)
- Pending Device Bindings (device QR flow, keyed by the player's device id)
- Rate Limit Records (shared failure counters for the redeem endpoints)
- Audit Logs (activity tracking)
"""

from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import DateTime as _SADateTime
from sqlalchemy.types import TypeDecorator


class DateTimeUTC(TypeDecorator):
    """DateTime type that ensures values are always timezone-aware (UTC).

    SQLite stores datetimes as naive strings.  This TypeDecorator adds UTC
    timezone info when reading and strips it when writing, so Python code
    can safely compare with ``datetime.now(timezone.utc)`` without hitting
    "can't compare offset-naive and offset-aware datetimes".
    """

    impl = _SADateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and isinstance(value, datetime):
            if value.tzinfo is not None:
                value = value.astimezone(timezone.utc)
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and isinstance(value, datetime):
            if value.tzinfo is None:
                return value.replace(tzinfo=timezone.utc)
        return value


def isoformat(value):
    """Serialize an optional datetime for API responses."""
    return value.isoformat() if value else None


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    All models should inherit from db.Model which uses this Base class.
    """
    pass


# SQLAlchemy database instance
db = SQLAlchemy(model_class=Base)


# Import models after db is defined to avoid circular imports
from signage.models.user import User
from signage.models.user_session import UserSession
from signage.models.screen import Screen
from signage.models.activation_code import ActivationCode
from signage.models.device_binding import DeviceBinding
from signage.models.pending_binding import PendingDeviceBinding
from signage.models.rate_limit import RateLimitRecord
from signage.models.audit_log import AuditLog

__all__ = [
    'db',
    'Base',
    'DateTimeUTC',
    'isoformat',
    'User',
    'UserSession',
    'Screen',
    'ActivationCode',
    'DeviceBinding',
    'PendingDeviceBinding',
    'RateLimitRecord',
    'AuditLog',
]
