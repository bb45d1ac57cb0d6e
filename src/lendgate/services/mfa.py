# src/lendgate/services/mfa.py
"""Step-up (second factor) verification for destructive admin operations."""

from __future__ import annotations

import secrets
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Final, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from lendgate.core.security import hash_key
from lendgate.core.settings import settings
from lendgate.db.time import as_utc, utcnow
from lendgate.models.security import StepUpToken

USER_CREATION: Final[str] = "user_creation"
USER_UPDATE: Final[str] = "user_update"
USER_DELETION: Final[str] = "user_deletion"
PASSWORD_RESET: Final[str] = "password_reset"

STEP_UP_OPERATIONS: Final[frozenset[str]] = frozenset(
    {USER_CREATION, USER_UPDATE, USER_DELETION, PASSWORD_RESET}
)


class StepUpVerifier(Protocol):
    def verify(self, user_id: str, token: str, operation_type: str) -> bool:
        """Return True if ``token`` proves a fresh second factor for the operation."""
        ...


class DatabaseStepUpVerifier:
    """Verify single-use tokens stored (hashed) in ``step_up_tokens``.

    A token is accepted once, for the user it was issued to, for the one
    operation type it was issued for, and only before it expires.
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow) -> None:
        self.db = db
        self._clock = clock

    def verify(self, user_id: str, token: str, operation_type: str) -> bool:
        if operation_type not in STEP_UP_OPERATIONS or not token:
            return False
        record = self.db.execute(
            select(StepUpToken)
            .where(StepUpToken.token_hash == hash_key(token))
            .with_for_update()
        ).scalar_one_or_none()
        if record is None:
            return False
        now = self._clock()
        expires_at = as_utc(record.expires_at)
        if (
            record.user_id != user_id
            or record.operation_type != operation_type
            or record.consumed_at is not None
            or expires_at is None
            or now >= expires_at
        ):
            return False
        record.consumed_at = now
        self.db.commit()
        return True


def issue_step_up_token(
    db: Session,
    user_id: str,
    operation_type: str,
    *,
    ttl_seconds: int | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> str:
    """Create a step-up token and return its plaintext value.

    Only the hash is stored; the plaintext is shown to the caller once.
    """
    if operation_type not in STEP_UP_OPERATIONS:
        raise ValueError(f"Unknown step-up operation: {operation_type}")
    token = secrets.token_urlsafe(32)
    ttl = ttl_seconds if ttl_seconds is not None else settings.step_up_token_ttl_seconds
    db.add(
        StepUpToken(
            token_hash=hash_key(token),
            user_id=user_id,
            operation_type=operation_type,
            expires_at=clock() + timedelta(seconds=ttl),
        )
    )
    db.commit()
    return token
