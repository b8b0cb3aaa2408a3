"""
Screen Model for the signage pairing service.

A screen is the logical display record that content is scheduled against.
Physical players are attached to a screen through a DeviceBinding.
"""

from datetime import datetime, timezone, timedelta

from signage.models import db, DateTimeUTC, isoformat


class Screen(db.Model):
    """
    SQLAlchemy model representing a logical screen owned by a dashboard user.

    Attributes:
        id: Integer primary key (also embedded in SCREEN: QR payloads)
        user_id: Owning user
        name: Human-readable screen name
        location: Optional free-text location
        orientation: 'landscape' or 'portrait'
        status: Last reported status ('online' or 'offline')
        last_heartbeat: Timestamp of the last player heartbeat
        subscription_ends_at: End of the paid period; NULL means unrestricted
        created_at: Timestamp when the screen was created
    """

    __tablename__ = 'screens'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    location = db.Column(db.String(300), nullable=True)
    orientation = db.Column(db.String(20), nullable=False, default='landscape')
    status = db.Column(db.String(20), nullable=False, default='offline')
    last_heartbeat = db.Column(DateTimeUTC(), nullable=True)
    subscription_ends_at = db.Column(DateTimeUTC(), nullable=True)
    created_at = db.Column(DateTimeUTC(), default=lambda: datetime.now(timezone.utc))

    # Relationships
    owner = db.relationship('User', backref=db.backref('screens', lazy='dynamic', cascade='all, delete-orphan'))

    def is_online(self, offline_after_seconds=120, now=None):
        """
        Check whether a heartbeat arrived recently enough to call the screen online.

        Args:
            offline_after_seconds: Heartbeat age after which the screen is offline
            now: Reference time (defaults to current UTC time)
        """
        if self.last_heartbeat is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now - self.last_heartbeat <= timedelta(seconds=offline_after_seconds)

    def is_playable(self, now=None):
        """
        Check whether the player may render content for this screen.

        A lapsed subscription keeps the binding intact but blocks playback.
        """
        if self.subscription_ends_at is None:
            return True
        now = now or datetime.now(timezone.utc)
        return self.subscription_ends_at > now

    def record_heartbeat(self, now=None):
        """Mark the screen online as of now."""
        self.last_heartbeat = now or datetime.now(timezone.utc)
        self.status = 'online'

    def to_dict(self, offline_after_seconds=120):
        """
        Serialize the screen to a dictionary for API responses.

        Returns:
            Dictionary containing screen fields
        """
        return {
            'id': self.id,
            'user_id': self.user_id,
            'name': self.name,
            'location': self.location,
            'orientation': self.orientation,
            'status': 'online' if self.is_online(offline_after_seconds) else 'offline',
            'last_heartbeat': isoformat(self.last_heartbeat),
            'subscription_ends_at': isoformat(self.subscription_ends_at),
            'playable': self.is_playable(),
            'created_at': isoformat(self.created_at),
        }

    def __repr__(self):
        """String representation for debugging."""
        return f'<Screen {self.id} {self.name!r}>'
