"""
ActivationCode Model for the signage pairing service.

An activation code is a short, human-typeable secret that binds a player
to one screen. Codes are single-use, expire one hour after issue, and are
never deleted so they double as an audit trail.
"""

from datetime import datetime, timezone

from signage.models import db, DateTimeUTC, isoformat


class ActivationCode(db.Model):
    """
    SQLAlchemy model representing an activation code issued for a screen.

    Several codes may be live for the same screen at once; exclusivity is
    provided by the binding store, not by the codes.

    Attributes:
        id: Integer primary key
        screen_id: Screen the code binds to
        code: 6 uppercase base-36 characters (stored uppercase)
        expires_at: Issue time plus the code TTL
        used_at: Redemption time; NULL while the code is redeemable
        polling_token: Optional secret the issuing session presents when
                       polling check-activation for the minted device token
        created_by: User who issued the code
        binding_id: DeviceBinding minted by the redemption
        created_at: Issue time
    """

    __tablename__ = 'activation_codes'

    id = db.Column(db.Integer, primary_key=True)
    screen_id = db.Column(db.Integer, db.ForeignKey('screens.id', ondelete='CASCADE'), nullable=False, index=True)
    code = db.Column(db.String(16), nullable=False, index=True)
    expires_at = db.Column(DateTimeUTC(), nullable=False)
    used_at = db.Column(DateTimeUTC(), nullable=True)
    polling_token = db.Column(db.String(64), nullable=True)
    created_by = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False)
    binding_id = db.Column(db.Integer, db.ForeignKey('device_bindings.id', ondelete='SET NULL'), nullable=True)
    created_at = db.Column(DateTimeUTC(), default=lambda: datetime.now(timezone.utc))

    # Relationships
    screen = db.relationship('Screen', backref=db.backref('activation_codes', lazy='dynamic', cascade='all, delete-orphan'))
    binding = db.relationship('DeviceBinding')

    def is_used(self):
        """Check whether the code has already been redeemed."""
        return self.used_at is not None

    def is_expired(self, now=None):
        """Check whether the code is past its expiry (the boundary itself is still valid)."""
        now = now or datetime.now(timezone.utc)
        return now > self.expires_at

    def is_redeemable(self, now=None):
        """A code is redeemable iff it is unused and not expired."""
        return not self.is_used() and not self.is_expired(now)

    @property
    def qr_payload(self):
        """Payload encoded in the screen-issued QR code."""
        return f'SCREEN:{self.screen_id}:{self.code}'

    def to_dict(self, include_polling_token=False):
        """
        Serialize the activation code to a dictionary for API responses.

        Args:
            include_polling_token: Only set for the session that displays the code

        Returns:
            Dictionary containing activation code fields
        """
        result = {
            'id': self.id,
            'screenId': self.screen_id,
            'code': self.code,
            'expiresAt': isoformat(self.expires_at),
            'usedAt': isoformat(self.used_at),
            'qrPayload': self.qr_payload,
            'createdAt': isoformat(self.created_at),
        }

        if include_polling_token:
            result['pollingToken'] = self.polling_token

        return result

    def __repr__(self):
        """String representation for debugging."""
        return f'<ActivationCode {self.code} screen={self.screen_id} used={self.is_used()}>'
