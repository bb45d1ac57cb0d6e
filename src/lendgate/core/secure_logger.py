"""Logging helpers that never emit PII, credentials or tokens.

Every payload handed to :class:`SecureLogger` is passed through
:func:`sanitize_payload` first, which replaces the value of any key that
looks sensitive. The same sanitizer is used for the ``details`` column of
security events so the audit trail and the logs share one redaction policy.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

REDACTED = "[REDACTED]"
MAX_DEPTH_MARKER = "[Max Depth]"
_MAX_DEPTH = 5

# Substring markers, matched case-insensitively against payload keys.
SENSITIVE_FIELDS: tuple[str, ...] = (
    "password",
    "token",
    "authorization",
    "api_key",
    "apikey",
    "secret",
    "credit_card",
    "ssn",
    "email",
    "phone",
    "address",
)

# Narrower set for audit rows, where contact details are the record itself.
SECRET_FIELDS: tuple[str, ...] = (
    "password",
    "token",
    "authorization",
    "api_key",
    "apikey",
    "secret",
    "credit_card",
    "ssn",
)

SENSITIVE_HEADERS: frozenset[str] = frozenset(
    {"authorization", "cookie", "x-api-key", "x-auth-token", "apikey"}
)


def sanitize_payload(
    value: Any,
    *,
    fields: Iterable[str] = SENSITIVE_FIELDS,
    depth: int = 0,
) -> Any:
    """Return a copy of ``value`` with sensitive keys redacted.

    Dicts and lists are walked recursively up to a fixed depth; anything
    deeper is replaced with a marker rather than emitted unchecked.
    """
    markers = tuple(fields)
    if depth > _MAX_DEPTH:
        return MAX_DEPTH_MARKER
    if isinstance(value, Mapping):
        sanitized: dict[str, Any] = {}
        for key, item in value.items():
            lowered = str(key).lower()
            if any(marker in lowered for marker in markers):
                sanitized[str(key)] = REDACTED
            else:
                sanitized[str(key)] = sanitize_payload(item, fields=markers, depth=depth + 1)
        return sanitized
    if isinstance(value, list | tuple):
        return [sanitize_payload(item, fields=markers, depth=depth + 1) for item in value]
    return value


def sanitize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Redact credential-bearing HTTP headers."""
    return {
        key: REDACTED if key.lower() in SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }


def mask_user_id(user_id: str | None) -> str:
    """Keep only the first and last four characters of an identifier."""
    if not user_id or len(user_id) < 8:
        return "[MASKED]"
    return f"{user_id[:4]}...{user_id[-4:]}"


class SecureLogger:
    """Thin wrapper over a stdlib logger that sanitizes structured context."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._logger = logging.getLogger(name)

    def info(self, message: str, **context: Any) -> None:
        self._logger.info("%s %s", message, sanitize_payload(context))

    def warning(self, message: str, **context: Any) -> None:
        self._logger.warning("%s %s", message, sanitize_payload(context))

    def error(self, message: str, exc: BaseException | None = None, **context: Any) -> None:
        """Log an error; only the exception class and message are kept."""
        payload = sanitize_payload(context)
        if exc is not None:
            payload["error"] = f"{type(exc).__name__}: {exc}"
        self._logger.error("%s %s", message, payload)

    def log_request(self, method: str, headers: Mapping[str, str], **context: Any) -> None:
        self.info(
            "Request received",
            method=method,
            headers=sanitize_headers(headers),
            **context,
        )

    def log_auth(self, user_id: str, **context: Any) -> None:
        self.info("User authenticated", user=mask_user_id(user_id), **context)

    def log_action(self, action: str, **context: Any) -> None:
        self.info(f"Action: {action}", **context)
