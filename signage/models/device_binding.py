"""
DeviceBinding Model for the signage pairing service.

A device binding is the live association between a player's device token
and a screen. At most one binding per screen may be live (revoked_at IS NULL);
creating a new binding revokes the previous one, which silently invalidates
the old player's credential.
"""

from datetime import datetime, timezone, timedelta

from signage.models import db, DateTimeUTC, isoformat


class DeviceBinding(db.Model):
    """
    SQLAlchemy model representing a device credential bound to a screen.

    Attributes:
        id: Integer primary key
        screen_id: Screen the device is bound to
        device_token: Opaque bearer credential presented in X-Device-Token
        device_info: Free-text user agent or device descriptor
        activated_at: When the binding was created
        last_seen_at: Last successful verify or heartbeat
        revoked_at: When the binding was superseded or revoked; NULL while live
    """

    __tablename__ = 'device_bindings'

    id = db.Column(db.Integer, primary_key=True)
    screen_id = db.Column(db.Integer, db.ForeignKey('screens.id', ondelete='CASCADE'), nullable=False, index=True)
    device_token = db.Column(db.String(128), unique=True, nullable=False, index=True)
    device_info = db.Column(db.String(500), nullable=True)
    activated_at = db.Column(DateTimeUTC(), default=lambda: datetime.now(timezone.utc))
    last_seen_at = db.Column(DateTimeUTC(), nullable=True)
    revoked_at = db.Column(DateTimeUTC(), nullable=True)

    # Relationships
    screen = db.relationship('Screen', backref=db.backref('device_bindings', lazy='dynamic', cascade='all, delete-orphan'))

    def is_live(self):
        """Check whether the binding has not been revoked."""
        return self.revoked_at is None

    def is_online(self, offline_after_seconds=120, now=None):
        """Check whether the device checked in within the offline window."""
        if self.last_seen_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now - self.last_seen_at <= timedelta(seconds=offline_after_seconds)

    def to_dict(self, include_token=False, offline_after_seconds=120):
        """
        Serialize the binding to a dictionary for API responses.

        Args:
            include_token: Include the device token (only when it is issued)
            offline_after_seconds: Window used for the is_online flag

        Returns:
            Dictionary containing binding fields
        """
        result = {
            'id': self.id,
            'screenId': self.screen_id,
            'deviceInfo': self.device_info,
            'activatedAt': isoformat(self.activated_at),
            'lastSeenAt': isoformat(self.last_seen_at),
            'revokedAt': isoformat(self.revoked_at),
            'isOnline': self.is_online(offline_after_seconds),
        }

        if include_token:
            result['deviceToken'] = self.device_token

        return result

    def __repr__(self):
        """String representation for debugging."""
        return f'<DeviceBinding {self.id} screen={self.screen_id} live={self.is_live()}>'


# One live binding per screen, enforced by the database as well as the store
db.Index(
    'uq_device_bindings_live_screen',
    DeviceBinding.screen_id,
    unique=True,
    sqlite_where=DeviceBinding.revoked_at.is_(None),
    postgresql_where=DeviceBinding.revoked_at.is_(None),
)
