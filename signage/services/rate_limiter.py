"""
Activation Rate Limiter.

Bounded-attempt brute-force protection for the code redeem endpoints,
keyed by client IP. After MAX_ATTEMPTS consecutive failures the client is
blocked for the block window, which expires on its own. A single success
clears the counter. A counter with no failure for a whole block window is
forgotten.

The counters live behind a small store interface so a single instance can
keep them in memory while several replicas share them through the
database.
"""

import logging
import math
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone, timedelta
from typing import Callable, Dict, Optional

from sqlalchemy import and_, or_

from signage.models import db, RateLimitRecord


logger = logging.getLogger(__name__)


@dataclass
class RateLimitStatus:
    """Result of a rate limit check."""
    allowed: bool
    remaining_attempts: Optional[int] = None
    blocked_for_minutes: Optional[int] = None

    @property
    def retry_after_seconds(self) -> int:
        return (self.blocked_for_minutes or 0) * 60


@dataclass
class RateLimitEntry:
    """Failure counter for one key."""
    count: int = 0
    blocked_until: Optional[datetime] = None
    last_failure_at: Optional[datetime] = None

    def is_stale(self, now: datetime, idle_window: timedelta) -> bool:
        """A lapsed block, or a counter with no failure for a whole idle window."""
        if self.blocked_until is not None:
            return now >= self.blocked_until
        return self.last_failure_at is None or now - self.last_failure_at >= idle_window


class MemoryRateLimitStore:
    """Process-local store; counters are not shared between replicas."""

    def __init__(self):
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[RateLimitEntry]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            return replace(entry)

    def put(self, key: str, entry: RateLimitEntry):
        with self._lock:
            self._entries[key] = replace(entry)

    def delete(self, key: str):
        with self._lock:
            self._entries.pop(key, None)

    def prune(self, now: datetime, idle_window: timedelta) -> int:
        """Drop every stale entry. Returns how many were dropped."""
        with self._lock:
            stale = [key for key, entry in self._entries.items() if entry.is_stale(now, idle_window)]
            for key in stale:
                del self._entries[key]
        return len(stale)

    def __len__(self):
        return len(self._entries)


class DatabaseRateLimitStore:
    """Store backed by the rate_limit_records table, shared by every instance."""

    def get(self, key: str) -> Optional[RateLimitEntry]:
        record = db.session.get(RateLimitRecord, key)
        if record is None:
            return None
        return RateLimitEntry(record.count, record.blocked_until, record.last_failure_at)

    def put(self, key: str, entry: RateLimitEntry):
        record = db.session.get(RateLimitRecord, key)
        if record is None:
            record = RateLimitRecord(key=key)
            db.session.add(record)
        record.count = entry.count
        record.blocked_until = entry.blocked_until
        record.last_failure_at = entry.last_failure_at
        db.session.commit()

    def delete(self, key: str):
        RateLimitRecord.query.filter_by(key=key).delete(synchronize_session=False)
        db.session.commit()

    def prune(self, now: datetime, idle_window: timedelta) -> int:
        """Delete lapsed blocks and idle counters. Returns the row count."""
        deleted = RateLimitRecord.query.filter(
            or_(
                RateLimitRecord.blocked_until <= now,
                and_(
                    RateLimitRecord.blocked_until.is_(None),
                    or_(
                        RateLimitRecord.last_failure_at.is_(None),
                        RateLimitRecord.last_failure_at <= now - idle_window,
                    ),
                ),
            )
        ).delete(synchronize_session=False)
        db.session.commit()
        return deleted


class RateLimiter:
    """
    Consecutive-failure limiter.

    A key with no failure for a whole block window starts over, and stale
    entries for every key are pruned at most once per PRUNE_INTERVAL.

    Args:
        store: MemoryRateLimitStore or DatabaseRateLimitStore
        max_attempts: Failures that trigger a block
        block_minutes: Length of the block window
        clock: Callable returning the current aware UTC datetime
    """

    PRUNE_INTERVAL = timedelta(minutes=1)

    def __init__(
        self,
        store=None,
        max_attempts: int = 5,
        block_minutes: int = 15,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store if store is not None else MemoryRateLimitStore()
        self.max_attempts = max_attempts
        self.block_window = timedelta(minutes=block_minutes)
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()
        self._last_prune: Optional[datetime] = None

    def _prune(self, now: datetime):
        if self._last_prune is not None and now - self._last_prune < self.PRUNE_INTERVAL:
            return
        self._last_prune = now
        dropped = self.store.prune(now, self.block_window)
        if dropped:
            logger.debug("Pruned %d stale activation rate limit entries", dropped)

    def check(self, key: str) -> RateLimitStatus:
        """
        Check whether the key may attempt a redemption.

        A stale entry is deleted so the key starts over with a full
        allowance.
        """
        now = self.clock()
        self._prune(now)
        entry = self.store.get(key)

        if entry is None:
            return RateLimitStatus(allowed=True, remaining_attempts=self.max_attempts)

        if entry.is_stale(now, self.block_window):
            self.store.delete(key)
            return RateLimitStatus(allowed=True, remaining_attempts=self.max_attempts)

        if entry.blocked_until is not None:
            seconds_left = (entry.blocked_until - now).total_seconds()
            return RateLimitStatus(
                allowed=False,
                remaining_attempts=0,
                blocked_for_minutes=max(1, math.ceil(seconds_left / 60)),
            )

        return RateLimitStatus(
            allowed=True,
            remaining_attempts=max(0, self.max_attempts - entry.count),
        )

    def record_failure(self, key: str) -> RateLimitStatus:
        """
        Count a failed attempt, starting the block window when the
        post-increment count reaches max_attempts.
        """
        with self._lock:
            now = self.clock()
            entry = self.store.get(key)

            if entry is None or entry.is_stale(now, self.block_window):
                entry = RateLimitEntry()

            entry.count += 1
            if entry.blocked_until is None:
                entry.last_failure_at = now
            if entry.count >= self.max_attempts and entry.blocked_until is None:
                entry.blocked_until = now + self.block_window
                logger.warning(
                    "Blocking %s from activation for %d minutes after %d failed attempts",
                    key, int(self.block_window.total_seconds() // 60), entry.count
                )

            self.store.put(key, entry)

        return self.check(key)

    def clear(self, key: str):
        """Forget every failure for the key."""
        with self._lock:
            self.store.delete(key)


def create_rate_limiter(config) -> RateLimiter:
    """
    Build the limiter described by an app config mapping.

    Args:
        config: Flask config (or any mapping with the ACTIVATION_* keys)
    """
    storage = config.get('ACTIVATION_RATE_LIMIT_STORAGE', 'memory')
    if storage == 'database':
        store = DatabaseRateLimitStore()
    elif storage == 'memory':
        store = MemoryRateLimitStore()
    else:
        raise ValueError(f"Unknown ACTIVATION_RATE_LIMIT_STORAGE '{storage}'. Must be 'memory' or 'database'")

    return RateLimiter(
        store=store,
        max_attempts=config.get('ACTIVATION_MAX_FAILED_ATTEMPTS', 5),
        block_minutes=config.get('ACTIVATION_BLOCK_MINUTES', 15),
    )
