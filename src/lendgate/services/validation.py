"""Input validation for every user-supplied field.

Field validators are pure: they take an untrusted value and return a
:class:`ValidationResult` without raising. Rejected values always come back
with an empty ``sanitized`` string so they cannot be used by mistake.

Request bodies are assembled from these in :mod:`lendgate.schemas.requests`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Final

EMAIL_MAX_LENGTH: Final[int] = 254
PHONE_MAX_LENGTH: Final[int] = 20
PHONE_MIN_DIGITS: Final[int] = 10
PHONE_MAX_DIGITS: Final[int] = 15
NAME_MAX_LENGTH: Final[int] = 100
TEXT_DEFAULT_MAX_LENGTH: Final[int] = 1000
PASSWORD_MIN_LENGTH: Final[int] = 12
PASSWORD_MAX_LENGTH: Final[int] = 128

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_STRIP_RE = re.compile(r"[^\d+\-\s()]")
_NAME_RE = re.compile(r"^[a-zA-Z\s'\-]+$")
_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
_FILE_HASH_RE = re.compile(r"^(?:[0-9a-f]{32}|[0-9a-f]{40}|[0-9a-f]{64})$", re.IGNORECASE)
_DANGEROUS_TEXT = (
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
    re.compile(r"<iframe", re.IGNORECASE),
)
PASSWORD_SYMBOLS: Final[str] = "!@#$%^&*()_+-=[]{};':\"\\|,.<>/?"
_PASSWORD_CLASSES: Final[tuple[tuple[str, re.Pattern[str]], ...]] = (
    ("an uppercase letter", re.compile(r"[A-Z]")),
    ("a lowercase letter", re.compile(r"[a-z]")),
    ("a number", re.compile(r"[0-9]")),
    ("a special character", re.compile("[" + re.escape(PASSWORD_SYMBOLS) + "]")),
)


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a single field."""

    valid: bool
    sanitized: str = ""
    error: str | None = None

    @classmethod
    def ok(cls, value: str) -> ValidationResult:
        return cls(valid=True, sanitized=value)

    @classmethod
    def fail(cls, error: str) -> ValidationResult:
        return cls(valid=False, sanitized="", error=error)


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def validate_email(value: Any) -> ValidationResult:
    if _is_blank(value):
        return ValidationResult.fail("Email is required")
    if not isinstance(value, str):
        return ValidationResult.fail("Email must be a string")
    trimmed = value.strip().lower()
    if not _EMAIL_RE.match(trimmed):
        return ValidationResult.fail("Invalid email format")
    if len(trimmed) > EMAIL_MAX_LENGTH:
        return ValidationResult.fail(f"Email too long (max {EMAIL_MAX_LENGTH} characters)")
    return ValidationResult.ok(trimmed)


def validate_phone(value: Any) -> ValidationResult:
    """Validate an optional phone number, keeping only dialing characters."""
    if _is_blank(value):
        return ValidationResult.ok("")
    if not isinstance(value, str):
        return ValidationResult.fail("Phone must be a string")
    sanitized = _PHONE_STRIP_RE.sub("", value).strip()
    digits = sum(1 for char in sanitized if char.isdigit())
    if digits < PHONE_MIN_DIGITS or digits > PHONE_MAX_DIGITS:
        return ValidationResult.fail(
            f"Phone must be {PHONE_MIN_DIGITS}-{PHONE_MAX_DIGITS} digits"
        )
    if len(sanitized) > PHONE_MAX_LENGTH:
        return ValidationResult.fail(
            f"Phone too long (max {PHONE_MAX_LENGTH} characters with formatting)"
        )
    return ValidationResult.ok(sanitized)


def validate_name(value: Any, field_name: str = "Name") -> ValidationResult:
    """Validate an optional personal name.

    Only ASCII letters, spaces, hyphens and apostrophes are accepted.
    """
    if _is_blank(value):
        return ValidationResult.ok("")
    if not isinstance(value, str):
        return ValidationResult.fail(f"{field_name} must be a string")
    trimmed = value.strip()
    if not _NAME_RE.match(trimmed):
        return ValidationResult.fail(f"{field_name} contains invalid characters")
    if len(trimmed) > NAME_MAX_LENGTH:
        return ValidationResult.fail(f"{field_name} too long (max {NAME_MAX_LENGTH} characters)")
    return ValidationResult.ok(trimmed)


def validate_text(
    value: Any,
    field_name: str = "Text",
    max_length: int = TEXT_DEFAULT_MAX_LENGTH,
) -> ValidationResult:
    """Validate optional free text, rejecting markup that could execute script."""
    if _is_blank(value):
        return ValidationResult.ok("")
    if not isinstance(value, str):
        return ValidationResult.fail(f"{field_name} must be a string")
    trimmed = value.strip()
    if any(pattern.search(trimmed) for pattern in _DANGEROUS_TEXT):
        return ValidationResult.fail(f"{field_name} contains potentially dangerous content")
    if len(trimmed) > max_length:
        return ValidationResult.fail(f"{field_name} too long (max {max_length} characters)")
    return ValidationResult.ok(trimmed)


def validate_password(value: Any) -> ValidationResult:
    """Check the password policy; the password itself is never altered."""
    if _is_blank(value):
        return ValidationResult.fail("Password is required")
    if not isinstance(value, str):
        return ValidationResult.fail("Password must be a string")
    if len(value) < PASSWORD_MIN_LENGTH:
        return ValidationResult.fail(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
        )
    if len(value) > PASSWORD_MAX_LENGTH:
        return ValidationResult.fail(f"Password too long (max {PASSWORD_MAX_LENGTH} characters)")
    missing = [label for label, pattern in _PASSWORD_CLASSES if not pattern.search(value)]
    if missing:
        return ValidationResult.fail("Password must include " + ", ".join(missing))
    return ValidationResult.ok(value)


def validate_uuid(value: Any, field_name: str = "ID") -> ValidationResult:
    if _is_blank(value):
        return ValidationResult.fail(f"{field_name} is required")
    if not isinstance(value, str):
        return ValidationResult.fail(f"{field_name} must be a string")
    if not _UUID_RE.match(value):
        return ValidationResult.fail(f"Invalid {field_name} format")
    return ValidationResult.ok(value.lower())


def validate_file_hash(value: Any) -> ValidationResult:
    """Accept an MD5, SHA-1 or SHA-256 hex digest, lowercased."""
    if _is_blank(value):
        return ValidationResult.fail("File hash is required")
    if not isinstance(value, str) or not _FILE_HASH_RE.match(value):
        return ValidationResult.fail("File hash must be an MD5, SHA-1 or SHA-256 hex digest")
    return ValidationResult.ok(value.lower())
