"""
UserSession Model for the signage pairing service.

Bearer sessions for the operator dashboard. Deleting the row ends the
session; expired rows are dropped when they are presented or when their
owner logs in again.
"""

from datetime import datetime, timezone, timedelta
import secrets
import uuid

from signage.models import db, DateTimeUTC, isoformat


SESSION_HOURS = 8


class UserSession(db.Model):
    """
    A bearer token issued to an operator at login.

    Attributes:
        id: UUID string
        user_id: Operator the token belongs to
        token: 43-character URL-safe random token
        expires_at: End of the session
        created_at: When the operator logged in
    """

    __tablename__ = 'user_sessions'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    token = db.Column(db.String(64), unique=True, nullable=False, index=True)
    expires_at = db.Column(DateTimeUTC(), nullable=False)
    created_at = db.Column(DateTimeUTC(), default=lambda: datetime.now(timezone.utc))

    user = db.relationship('User', backref=db.backref('sessions', lazy='dynamic', cascade='all, delete-orphan'))

    @classmethod
    def open_for(cls, user_id, hours=SESSION_HOURS, now=None):
        """
        Build a new session for an operator. The caller adds and commits it.
        """
        now = now or datetime.now(timezone.utc)
        return cls(
            user_id=user_id,
            token=secrets.token_urlsafe(32),
            expires_at=now + timedelta(hours=hours),
            created_at=now,
        )

    @classmethod
    def purge_expired(cls, user_id, now=None):
        """Delete the operator's expired sessions without committing."""
        now = now or datetime.now(timezone.utc)
        return cls.query.filter(
            cls.user_id == user_id,
            cls.expires_at <= now,
        ).delete(synchronize_session=False)

    def is_expired(self, now=None):
        return (now or datetime.now(timezone.utc)) >= self.expires_at

    def to_dict(self, include_token=False):
        result = {
            'id': self.id,
            'expiresAt': isoformat(self.expires_at),
            'createdAt': isoformat(self.created_at),
        }
        if include_token:
            result['token'] = self.token
        return result

    def __repr__(self):
        return f'<UserSession {self.id} user={self.user_id}>'
