# src/lendgate/services/rate_limit.py
"""Per-caller, per-action rate limiting.

The limiter itself holds no counters. It asks a :class:`CounterStore` to
record one attempt and report whether that attempt is still within budget;
the store is responsible for doing the read-modify-write atomically.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Protocol

import redis
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lendgate.core.secure_logger import SecureLogger
from lendgate.core.settings import settings
from lendgate.db.time import as_utc, utcnow
from lendgate.models.rate_limit import RateLimitRecord

__all__ = [
    "CounterStore",
    "RateLimitPolicy",
    "RateLimitResult",
    "RateLimiter",
    "RedisCounterStore",
    "SqlCounterStore",
    "close_redis_counter_store",
    "get_counter_store",
    "get_rate_limit_policy",
    "rate_limit_policies",
]


@dataclass(frozen=True)
class RateLimitPolicy:
    """Attempt budget for a single action."""

    action: str
    max_attempts: int
    window_minutes: int
    fail_open: bool = True


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    error: str | None = None


class CounterStore(Protocol):
    """Atomic attempt counter keyed by identifier."""

    def hit(self, identifier: str, action: str, max_attempts: int, window_minutes: int) -> bool:
        """Record one attempt and return True if it is within budget."""
        ...


class SqlCounterStore:
    """Counter store backed by the ``rate_limits`` table.

    The row is locked for the duration of the update so concurrent requests
    for the same identifier are serialized on databases that support
    ``SELECT ... FOR UPDATE``.
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow) -> None:
        self.db = db
        self._clock = clock

    def hit(self, identifier: str, action: str, max_attempts: int, window_minutes: int) -> bool:
        now = self._clock()
        window = timedelta(minutes=window_minutes)
        try:
            record = self.db.execute(
                select(RateLimitRecord)
                .where(RateLimitRecord.identifier == identifier)
                .with_for_update()
            ).scalar_one_or_none()

            if record is None:
                record = RateLimitRecord(
                    identifier=identifier,
                    action_type=action,
                    attempt_count=1,
                    window_start=now,
                )
                self.db.add(record)
                self.db.commit()
                return max_attempts >= 1

            block_until = as_utc(record.block_until)
            if record.is_blocked and block_until is not None and now < block_until:
                self.db.commit()
                return False

            window_start = as_utc(record.window_start) or now
            if now >= window_start + window:
                record.attempt_count = 1
                record.window_start = now
                record.is_blocked = False
                record.block_until = None
            else:
                record.attempt_count += 1

            allowed = record.attempt_count <= max_attempts
            if not allowed:
                record.is_blocked = True
                record.block_until = now + window
            record.updated_at = now
            self.db.commit()
            return allowed
        except SQLAlchemyError:
            self.db.rollback()
            raise


class RedisCounterStore:
    """Counter store backed by Redis ``INCR`` with a window-length expiry."""

    _SCRIPT = """
local current = redis.call('INCR', KEYS[1])
if current == 1 then
    redis.call('EXPIRE', KEYS[1], ARGV[1])
end
return current
"""

    def __init__(self, client: Any) -> None:
        self._client = client
        self._incr = client.register_script(self._SCRIPT)

    @classmethod
    def from_url(cls, url: str) -> RedisCounterStore:
        return cls(redis.from_url(url))

    def hit(self, identifier: str, action: str, max_attempts: int, window_minutes: int) -> bool:
        count = self._incr(keys=[f"ratelimit:{identifier}"], args=[window_minutes * 60])
        return int(count) <= max_attempts

    def close(self) -> None:
        self._client.close()


class _RedisStoreSingleton:
    """Process-wide :class:`RedisCounterStore`, closed at application shutdown."""

    _instance: RedisCounterStore | None = None
    _lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> RedisCounterStore:
        with cls._lock:
            if cls._instance is None:
                cls._instance = RedisCounterStore.from_url(settings.redis_url)
            return cls._instance

    @classmethod
    def close(cls) -> None:
        with cls._lock:
            if cls._instance is not None:
                cls._instance.close()
                cls._instance = None


def close_redis_counter_store() -> None:
    _RedisStoreSingleton.close()


class RateLimiter:
    """Apply :class:`RateLimitPolicy` budgets through a counter store."""

    def __init__(self, store: CounterStore, logger: SecureLogger | None = None) -> None:
        self.store = store
        self.logger = logger or SecureLogger(__name__)

    def check(self, caller_id: str, policy: RateLimitPolicy) -> RateLimitResult:
        identifier = f"{caller_id}:{policy.action}"
        try:
            allowed = self.store.hit(
                identifier,
                policy.action,
                policy.max_attempts,
                policy.window_minutes,
            )
        except Exception as exc:
            self.logger.error(
                "Rate limit check failed",
                exc,
                action=policy.action,
                fail_open=policy.fail_open,
            )
            if policy.fail_open:
                return RateLimitResult(allowed=True)
            return RateLimitResult(
                allowed=False,
                error="Rate limiting is temporarily unavailable.",
            )

        if not allowed:
            return RateLimitResult(
                allowed=False,
                error=(
                    f"Rate limit exceeded. Maximum {policy.max_attempts} requests "
                    f"per {policy.window_minutes} minutes."
                ),
            )
        return RateLimitResult(allowed=True)


def rate_limit_policies() -> dict[str, RateLimitPolicy]:
    """Build the policy table from the current settings."""
    fail_closed = set(settings.rate_limit_fail_closed_actions)
    return {
        action: RateLimitPolicy(
            action=action,
            max_attempts=max_attempts,
            window_minutes=settings.rate_limit_window_minutes,
            fail_open=action not in fail_closed,
        )
        for action, max_attempts in settings.rate_limits.items()
    }


def get_rate_limit_policy(action: str) -> RateLimitPolicy:
    try:
        return rate_limit_policies()[action]
    except KeyError as err:
        raise KeyError(f"No rate limit policy configured for {action!r}") from err


def get_counter_store(db: Session) -> CounterStore:
    """Return the counter store selected by ``RATE_LIMIT_BACKEND``."""
    if settings.rate_limit_backend == "redis":
        return _RedisStoreSingleton.get_instance()
    return SqlCounterStore(db)
