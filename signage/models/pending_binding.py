"""
PendingDeviceBinding Model for the signage pairing service.

Backs the device-centric pairing path: the player shows its own device id
as a DEVICE: QR code, an operator scans it and picks a screen, and the
player later collects the token that was minted for it.
"""

from datetime import datetime, timezone

from signage.models import db, DateTimeUTC, isoformat


class PendingDeviceBinding(db.Model):
    """
    SQLAlchemy model representing a device-id keyed binding request.

    Attributes:
        id: Integer primary key
        device_id: 8-character id advertised by the player's QR code
        screen_id: Target screen chosen by the operator
        device_token: Token pre-generated for the player
        created_by: Operator who scanned the device
        created_at: When the request was created
        claimed_at: When the DeviceBinding was materialized
        delivered_at: When the player first presented its token
    """

    __tablename__ = 'pending_device_bindings'

    id = db.Column(db.Integer, primary_key=True)
    device_id = db.Column(db.String(16), nullable=False, index=True)
    screen_id = db.Column(db.Integer, db.ForeignKey('screens.id', ondelete='CASCADE'), nullable=False, index=True)
    device_token = db.Column(db.String(128), nullable=False, index=True)
    created_by = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False)
    created_at = db.Column(DateTimeUTC(), default=lambda: datetime.now(timezone.utc))
    claimed_at = db.Column(DateTimeUTC(), nullable=True)
    delivered_at = db.Column(DateTimeUTC(), nullable=True)

    # Relationships
    screen = db.relationship('Screen', backref=db.backref('pending_device_bindings', lazy='dynamic', cascade='all, delete-orphan'))

    def is_claimed(self):
        """Check whether the binding has been materialized."""
        return self.claimed_at is not None

    def to_dict(self):
        """Serialize the pending binding (never includes the token)."""
        return {
            'id': self.id,
            'deviceId': self.device_id,
            'screenId': self.screen_id,
            'createdBy': self.created_by,
            'createdAt': isoformat(self.created_at),
            'claimedAt': isoformat(self.claimed_at),
            'deliveredAt': isoformat(self.delivered_at),
        }

    def __repr__(self):
        return f'<PendingDeviceBinding {self.device_id} screen={self.screen_id} claimed={self.is_claimed()}>'
