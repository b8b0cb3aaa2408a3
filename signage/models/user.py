"""
User Model for the signage pairing service.

An operator account. Operators own screens, issue activation codes and
bind or revoke devices; players never log in.
"""

from datetime import datetime, timezone
import uuid

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from signage.models import db, DateTimeUTC, isoformat


class User(UserMixin, db.Model):
    """
    Operator account that owns screens.

    Attributes:
        id: UUID string
        email: Login name, stored lower-case
        password_hash: pbkdf2 hash of the password
        name: Display name shown in audit entries
        created_at: When the account was created
    """

    __tablename__ = 'users'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    created_at = db.Column(DateTimeUTC(), default=lambda: datetime.now(timezone.utc))

    def set_password(self, password):
        self.password_hash = generate_password_hash(password, method="pbkdf2:sha256")

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'createdAt': isoformat(self.created_at),
        }

    def __repr__(self):
        return f'<User {self.email}>'
