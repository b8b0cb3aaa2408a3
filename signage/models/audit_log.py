"""
AuditLog Model for the signage pairing service.

One row per privileged pairing action: an operator logging in, a code
issued, a device activated or bound by QR, a binding revoked.
"""

from datetime import datetime, timezone
import uuid

from signage.models import db, DateTimeUTC, isoformat


class AuditLog(db.Model):
    """
    SQLAlchemy model representing an audit entry.

    Attributes:
        id: UUID string
        user_id: Operator who acted, NULL when a player acted
        actor: Operator email, or 'device' for player-initiated actions
        action: Dotted action name, e.g. 'device_binding.revoke'
        resource_type: 'screen', 'activation_code' or 'device_binding'
        resource_id: Id of the affected row
        details: JSON text with action-specific context
        ip_address: Client address of the request
        created_at: When the action happened
    """

    __tablename__ = 'audit_logs'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True)
    actor = db.Column(db.String(255), nullable=False)
    action = db.Column(db.String(100), nullable=False, index=True)
    resource_type = db.Column(db.String(50), nullable=True)
    resource_id = db.Column(db.String(36), nullable=True, index=True)
    details = db.Column(db.Text, nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)
    created_at = db.Column(DateTimeUTC(), default=lambda: datetime.now(timezone.utc), index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'actor': self.actor,
            'action': self.action,
            'resourceType': self.resource_type,
            'resourceId': self.resource_id,
            'details': self.details,
            'ipAddress': self.ip_address,
            'createdAt': isoformat(self.created_at),
        }

    def __repr__(self):
        return f'<AuditLog {self.action} by {self.actor}>'
