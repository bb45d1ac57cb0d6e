"""Error taxonomy shared by every gated endpoint.

Each failure category is its own exception class carrying a fixed public
message, a stable code and an HTTP status. :func:`sanitize_error` picks the
response by class, so rewording an internal message can never change what a
caller sees. The internal reason is written to the secure logger only.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar

from fastapi import status

from lendgate.core.secure_logger import SecureLogger

logger = SecureLogger("lendgate.errors")


class GateError(Exception):
    """Base class for failures that map onto a public error envelope."""

    code: ClassVar[str] = "INTERNAL_ERROR"
    status_code: ClassVar[int] = status.HTTP_500_INTERNAL_SERVER_ERROR
    public_message: ClassVar[str] = (
        "An error occurred processing your request. Please try again or contact support."
    )
    # Security event recorded by the request gate; None means "do not audit".
    event_type: ClassVar[str | None] = "operation_failed"
    severity: ClassVar[str] = "high"

    def __init__(self, reason: str = "", *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(reason or self.public_message)
        self.reason = reason or self.public_message
        self.details: dict[str, Any] = dict(details or {})


class AuthError(GateError):
    code = "AUTH_FAILED"
    status_code = status.HTTP_401_UNAUTHORIZED
    public_message = "Authentication failed. Please log in again."
    event_type = None
    severity = "medium"


class PermissionDeniedError(GateError):
    code = "PERMISSION_DENIED"
    status_code = status.HTTP_403_FORBIDDEN
    public_message = "You do not have permission to perform this action."
    event_type = "unauthorized_admin_function_attempt"
    severity = "high"


class PolicyViolationError(PermissionDeniedError):
    """A permitted caller asked for something no caller may do (e.g. self-deletion)."""

    event_type = "policy_violation"


class RateLimitError(GateError):
    code = "RATE_LIMIT"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    public_message = "Too many requests. Please try again later."
    event_type = "rate_limit_exceeded"
    severity = "medium"


class MfaError(GateError):
    code = "MFA_FAILED"
    status_code = status.HTTP_403_FORBIDDEN
    public_message = "Multi-factor authentication verification failed."
    event_type = "mfa_verification_failed"
    severity = "high"


class ValidationError(GateError):
    """Aggregated input rejection; ``errors`` lists every violated rule."""

    code = "VALIDATION_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST
    public_message = "Invalid input provided. Please check your data."
    event_type = "input_validation_failed"
    severity = "low"

    def __init__(self, errors: Iterable[str], *, details: Mapping[str, Any] | None = None) -> None:
        self.errors = [error for error in errors if error]
        super().__init__("; ".join(self.errors), details=details)


class NotFoundError(GateError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    public_message = "The requested resource was not found."
    event_type = "target_not_found"
    severity = "low"


class InternalError(GateError):
    pass


@dataclass(frozen=True)
class ErrorResponse:
    """Public error envelope; never carries internal detail."""

    error: str
    code: str
    status_code: int
    errors: list[str] = field(default_factory=list)

    def body(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.error, "code": self.code}
        if self.errors:
            payload["errors"] = list(self.errors)
        return payload


def sanitize_error(exc: BaseException) -> ErrorResponse:
    """Map any exception onto its public envelope and log the original."""
    gate_error = exc if isinstance(exc, GateError) else InternalError()
    logger.error(
        "Request failed",
        exc,
        code=gate_error.code,
        details=gate_error.details,
    )
    errors = gate_error.errors if isinstance(gate_error, ValidationError) else []
    return ErrorResponse(
        error=gate_error.public_message,
        code=gate_error.code,
        status_code=gate_error.status_code,
        errors=errors,
    )
