# tests/services/test_rate_limit.py
"""Tests for the rate limiter and its counter stores."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from lendgate.core.settings import settings
from lendgate.models import RateLimitRecord
from lendgate.services.rate_limit import (
    RateLimiter,
    RateLimitPolicy,
    RedisCounterStore,
    SqlCounterStore,
    close_redis_counter_store,
    get_counter_store,
    get_rate_limit_policy,
    rate_limit_policies,
)

START = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class BrokenStore:
    def hit(self, identifier: str, action: str, max_attempts: int, window_minutes: int) -> bool:
        raise OperationalError("UPDATE rate_limits", {}, Exception("database is locked"))


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(START)


@pytest.fixture()
def limiter(db_session: Session, clock: FakeClock) -> RateLimiter:
    return RateLimiter(SqlCounterStore(db_session, clock=clock))


POLICY = RateLimitPolicy(action="admin_create_user", max_attempts=3, window_minutes=60)


class TestSqlCounterStore:
    def test_allows_up_to_max_then_denies(self, limiter: RateLimiter) -> None:
        results = [limiter.check("caller-1", POLICY) for _ in range(4)]
        assert [r.allowed for r in results] == [True, True, True, False]
        assert results[-1].error == "Rate limit exceeded. Maximum 3 requests per 60 minutes."

    def test_keys_by_caller_and_action(self, limiter: RateLimiter, db_session: Session) -> None:
        other_action = RateLimitPolicy(action="audit_log", max_attempts=3, window_minutes=60)
        for _ in range(3):
            limiter.check("caller-1", POLICY)
        assert limiter.check("caller-2", POLICY).allowed
        assert limiter.check("caller-1", other_action).allowed

        identifiers = set(db_session.scalars(select(RateLimitRecord.identifier)))
        assert identifiers == {
            "caller-1:admin_create_user",
            "caller-2:admin_create_user",
            "caller-1:audit_log",
        }

    def test_block_holds_until_window_passes(self, limiter: RateLimiter, clock: FakeClock) -> None:
        for _ in range(4):
            limiter.check("caller-1", POLICY)
        clock.advance(minutes=30)
        assert not limiter.check("caller-1", POLICY).allowed
        clock.advance(minutes=31)
        assert limiter.check("caller-1", POLICY).allowed

    def test_window_reset_restarts_count(
        self, limiter: RateLimiter, clock: FakeClock, db_session: Session
    ) -> None:
        limiter.check("caller-1", POLICY)
        limiter.check("caller-1", POLICY)
        clock.advance(minutes=61)
        assert limiter.check("caller-1", POLICY).allowed

        record = db_session.scalars(select(RateLimitRecord)).one()
        assert record.attempt_count == 1
        assert record.is_blocked is False


class TestFailurePolicy:
    def test_fail_open_allows(self) -> None:
        result = RateLimiter(BrokenStore()).check("caller-1", POLICY)
        assert result.allowed
        assert result.error is None

    def test_fail_closed_denies(self) -> None:
        policy = RateLimitPolicy(
            action="admin_delete_user", max_attempts=5, window_minutes=60, fail_open=False
        )
        result = RateLimiter(BrokenStore()).check("caller-1", policy)
        assert not result.allowed
        assert result.error == "Rate limiting is temporarily unavailable."


def test_redis_store_uses_atomic_script(mocker) -> None:
    client = mocker.MagicMock()
    script = client.register_script.return_value
    script.side_effect = [1, 2, 3, 4]
    limiter = RateLimiter(RedisCounterStore(client))

    outcomes = [limiter.check("caller-1", POLICY).allowed for _ in range(4)]

    assert outcomes == [True, True, True, False]
    client.register_script.assert_called_once()
    script.assert_called_with(keys=["ratelimit:caller-1:admin_create_user"], args=[3600])


def test_redis_connection_error_follows_policy(mocker) -> None:
    client = mocker.MagicMock()
    client.register_script.return_value.side_effect = ConnectionError("redis down")
    closed = RateLimitPolicy(action="x", max_attempts=1, window_minutes=1, fail_open=False)
    assert not RateLimiter(RedisCounterStore(client)).check("c", closed).allowed


def test_redis_backend_shares_one_connection_pool(
    mocker, monkeypatch: pytest.MonkeyPatch, db_session: Session
) -> None:
    monkeypatch.setattr(settings, "rate_limit_backend", "redis")
    from_url = mocker.patch("lendgate.services.rate_limit.redis.from_url")
    close_redis_counter_store()
    try:
        stores = [get_counter_store(db_session) for _ in range(3)]
        assert stores[0] is stores[1] is stores[2]
        from_url.assert_called_once_with(settings.redis_url)
    finally:
        close_redis_counter_store()

    from_url.return_value.close.assert_called_once_with()
    assert isinstance(get_counter_store(db_session), RedisCounterStore)
    close_redis_counter_store()


def test_database_backend_uses_the_request_session(db_session: Session) -> None:
    assert isinstance(get_counter_store(db_session), SqlCounterStore)


def test_policy_table_covers_every_action() -> None:
    policies = rate_limit_policies()
    assert policies["admin_create_user"].max_attempts == 10
    assert policies["admin_delete_user"].max_attempts == 5
    assert policies["admin_get_users"].max_attempts == 100
    assert {p.window_minutes for p in policies.values()} == {60}
    assert get_rate_limit_policy("scan_document").max_attempts == 30
    with pytest.raises(KeyError):
        get_rate_limit_policy("unknown")
