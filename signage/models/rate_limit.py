"""
RateLimitRecord Model for the signage pairing service.

Persists activation failure counters so that several app instances sharing
one database also share brute-force protection.
"""

from signage.models import db, DateTimeUTC


class RateLimitRecord(db.Model):
    """
    Failure counter for one client key (usually the client IP).

    Attributes:
        key: Client identity the counter applies to
        count: Consecutive failed attempts
        blocked_until: End of the block window, NULL while not blocked
        last_failure_at: Most recent counted failure
    """

    __tablename__ = 'rate_limit_records'

    key = db.Column(db.String(100), primary_key=True)
    count = db.Column(db.Integer, nullable=False, default=0)
    blocked_until = db.Column(DateTimeUTC(), nullable=True)
    last_failure_at = db.Column(DateTimeUTC(), nullable=True)

    def __repr__(self):
        return f'<RateLimitRecord {self.key} count={self.count}>'
