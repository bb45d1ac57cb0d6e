# tests/test_errors.py
"""Tests for the error taxonomy and sanitizer."""

import pytest

from lendgate.core.errors import (
    AuthError,
    InternalError,
    MfaError,
    NotFoundError,
    PermissionDeniedError,
    PolicyViolationError,
    RateLimitError,
    ValidationError,
    sanitize_error,
)


@pytest.mark.parametrize(
    ("exc", "code", "status"),
    [
        (AuthError("jwt expired at 12:00"), "AUTH_FAILED", 401),
        (PermissionDeniedError("role lookup returned agent"), "PERMISSION_DENIED", 403),
        (PolicyViolationError("self deletion"), "PERMISSION_DENIED", 403),
        (RateLimitError("counter 11 > 10"), "RATE_LIMIT", 429),
        (MfaError("token hash mismatch"), "MFA_FAILED", 403),
        (NotFoundError("no row"), "NOT_FOUND", 404),
        (InternalError("db down"), "INTERNAL_ERROR", 500),
    ],
)
def test_maps_by_type_and_hides_reason(exc, code, status):
    response = sanitize_error(exc)
    assert response.code == code
    assert response.status_code == status
    assert exc.reason not in response.error
    assert response.body() == {"error": type(exc).public_message, "code": code}


def test_unknown_exception_becomes_internal_error():
    response = sanitize_error(KeyError("SELECT * FROM profiles"))
    assert response.code == "INTERNAL_ERROR"
    assert response.status_code == 500
    assert "profiles" not in response.error


def test_validation_errors_are_listed():
    response = sanitize_error(ValidationError(["Invalid email format", ""]))
    assert response.status_code == 400
    assert response.body() == {
        "error": "Invalid input provided. Please check your data.",
        "code": "VALIDATION_ERROR",
        "errors": ["Invalid email format"],
    }


def test_message_wording_does_not_change_category():
    # A reason mentioning "rate limit" must not turn an auth failure into a 429.
    response = sanitize_error(AuthError("rate limit exceeded while validating token"))
    assert response.code == "AUTH_FAILED"
