"""The request gate shared by every privileged operation.

:meth:`RequestGate.run` walks a request through a fixed sequence of checks
and only reaches the operation when all of them pass:

1. authentication (an active account is attached to the caller)
2. admin role, when the policy asks for it
3. presence of a step-up token, when the policy names an operation type
4. rate limit for the policy's action
5. an optional guard for rules that need the raw body (self-deletion)
6. step-up token verification, bound to the operation type
7. all-or-nothing input validation
8. the operation itself, then a success event

Every rejection after authentication appends a security event carrying the
error code. Events are best effort; failing to write one never changes the
response.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from sqlalchemy.orm import Session

from lendgate.core.errors import (
    AuthError,
    GateError,
    InternalError,
    MfaError,
    PermissionDeniedError,
    RateLimitError,
)
from lendgate.core.secure_logger import SecureLogger, mask_user_id
from lendgate.models.user import UserAccount
from lendgate.services.audit import AuditTrail
from lendgate.services.mfa import StepUpVerifier
from lendgate.services.rate_limit import RateLimiter, RateLimitPolicy

T = TypeVar("T")

MFA_TOKEN_FIELD = "mfa_token"


@dataclass(frozen=True)
class GatePolicy:
    """Which checks apply to one action."""

    action: str
    rate_limit: RateLimitPolicy | None = None
    require_auth: bool = True
    require_admin: bool = False
    step_up_operation: str | None = None


@dataclass(frozen=True)
class CallerContext:
    user: UserAccount | None
    ip_address: str | None = None
    user_agent: str | None = None

    @property
    def user_id(self) -> str | None:
        return self.user.id if self.user is not None else None


@dataclass(frozen=True)
class GateEvent:
    event_type: str
    severity: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GateOutcome(Generic[T]):
    """What an operation hands back: the response body and its success event."""

    payload: T
    event: GateEvent | None = None


class RequestGate:
    """Run privileged operations behind authentication, throttling and audit."""

    def __init__(
        self,
        db: Session,
        rate_limiter: RateLimiter,
        verifier: StepUpVerifier,
        audit: AuditTrail,
        logger: SecureLogger | None = None,
    ) -> None:
        self.db = db
        self.rate_limiter = rate_limiter
        self.verifier = verifier
        self.audit = audit
        self.logger = logger or SecureLogger(__name__)

    def run(
        self,
        policy: GatePolicy,
        caller: CallerContext,
        body: Mapping[str, Any],
        *,
        validate: Callable[[Mapping[str, Any]], T],
        execute: Callable[[T], GateOutcome[Any]],
        guard: Callable[[Mapping[str, Any], CallerContext], None] | None = None,
    ) -> Any:
        if policy.require_auth and caller.user is None:
            raise AuthError("No authenticated caller")
        if caller.user is not None:
            self.logger.log_auth(caller.user.id, action=policy.action)

        try:
            self._check(policy, caller, body, guard)
            data = validate(body)
            outcome = execute(data)
        except GateError as exc:
            self.db.rollback()
            self._record_failure(policy, caller, exc)
            raise
        except Exception as exc:
            self.db.rollback()
            self.logger.error("Operation failed", exc, action=policy.action)
            failure = InternalError(f"{type(exc).__name__} during {policy.action}")
            self._record_failure(policy, caller, failure)
            raise failure from exc

        if outcome.event is not None:
            self.audit.record_event(
                outcome.event.event_type,
                outcome.event.severity,
                user_id=caller.user_id,
                ip_address=caller.ip_address,
                user_agent=caller.user_agent,
                details=outcome.event.details,
            )
        self.logger.log_action(policy.action, status="success")
        return outcome.payload

    def _check(
        self,
        policy: GatePolicy,
        caller: CallerContext,
        body: Mapping[str, Any],
        guard: Callable[[Mapping[str, Any], CallerContext], None] | None,
    ) -> None:
        user = caller.user
        if policy.require_admin and (user is None or not user.is_admin):
            raise PermissionDeniedError(
                "Admin access required",
                details={"function": policy.action},
            )

        token = body.get(MFA_TOKEN_FIELD)
        if policy.step_up_operation is not None and (not isinstance(token, str) or not token):
            raise MfaError(
                "Step-up token missing",
                details={"operation": policy.step_up_operation},
            )

        if policy.rate_limit is not None and user is not None:
            result = self.rate_limiter.check(user.id, policy.rate_limit)
            if not result.allowed:
                raise RateLimitError(
                    result.error or "Rate limit exceeded",
                    details={"action": policy.rate_limit.action},
                )

        if guard is not None:
            guard(body, caller)

        if policy.step_up_operation is not None and user is not None:
            if not self.verifier.verify(user.id, str(token), policy.step_up_operation):
                raise MfaError(
                    "Step-up token rejected",
                    details={"operation": policy.step_up_operation},
                )

    def _record_failure(self, policy: GatePolicy, caller: CallerContext, exc: GateError) -> None:
        self.logger.warning(
            "Request rejected",
            action=policy.action,
            code=exc.code,
            user=mask_user_id(caller.user_id),
        )
        if exc.event_type is None:
            return
        self.audit.record_event(
            exc.event_type,
            exc.severity,
            user_id=caller.user_id,
            ip_address=caller.ip_address,
            user_agent=caller.user_agent,
            details={
                "action": policy.action,
                "code": exc.code,
                "reason": exc.reason,
                **exc.details,
            },
        )
