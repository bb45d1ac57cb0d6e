# tests/test_validation.py
"""Tests for the pure field validators."""

import pytest

from lendgate.services.validation import (
    validate_email,
    validate_file_hash,
    validate_name,
    validate_password,
    validate_phone,
    validate_text,
    validate_uuid,
)

VALID_UUID = "3f2b8c1e-9a4d-4e6f-8b7a-1c2d3e4f5a6b"


class TestEmail:
    def test_trims_and_lowercases(self):
        result = validate_email("  Jane.Doe@Example.COM ")
        assert result.valid
        assert result.sanitized == "jane.doe@example.com"

    @pytest.mark.parametrize("value", ["", "no-at-sign", "a@b", "two words@example.com", None, 42])
    def test_rejects_malformed(self, value):
        result = validate_email(value)
        assert not result.valid
        assert result.sanitized == ""
        assert result.error

    def test_rejects_overlong(self):
        result = validate_email("a" * 250 + "@example.com")
        assert not result.valid
        assert "too long" in result.error


class TestPhone:
    def test_optional(self):
        assert validate_phone(None).valid
        assert validate_phone("").sanitized == ""

    def test_strips_disallowed_characters(self):
        result = validate_phone("+1 (555) 123-4567 ext")
        assert result.valid
        assert result.sanitized == "+1 (555) 123-4567"

    def test_rejects_too_few_digits(self):
        result = validate_phone("555-1234")
        assert not result.valid
        assert result.sanitized == ""

    def test_rejects_too_long_after_sanitizing(self):
        result = validate_phone("+1 (555) 123 - 4567 - 89")
        assert not result.valid


class TestName:
    def test_accepts_apostrophes_and_hyphens(self):
        result = validate_name("  Mary-Jane O'Neil ")
        assert result.valid
        assert result.sanitized == "Mary-Jane O'Neil"

    def test_rejects_digits_with_field_name(self):
        result = validate_name("R2D2", "First name")
        assert not result.valid
        assert result.error == "First name contains invalid characters"

    def test_rejects_non_ascii_letters(self):
        assert not validate_name("José").valid


class TestText:
    @pytest.mark.parametrize(
        "value",
        [
            "<SCRIPT>alert(1)</script>",
            "JavaScript:void(0)",
            '<img src=x onerror = "x">',
            "<iframe src='x'>",
        ],
    )
    def test_rejects_dangerous_content(self, value):
        result = validate_text(value, "Notes")
        assert not result.valid
        assert result.sanitized == ""
        assert "dangerous" in result.error

    def test_respects_max_length(self):
        assert validate_text("x" * 50, "City", 50).valid
        assert not validate_text("x" * 51, "City", 50).valid


class TestPassword:
    def test_accepts_strong_password_unchanged(self):
        result = validate_password(" Str0ng!Passphrase")
        assert result.valid
        assert result.sanitized == " Str0ng!Passphrase"

    def test_reports_length_first(self):
        result = validate_password("abc")
        assert not result.valid
        assert result.error == "Password must be at least 12 characters"

    def test_names_every_missing_class(self):
        result = validate_password("alllowercase1")
        assert not result.valid
        assert "an uppercase letter" in result.error
        assert "a special character" in result.error
        assert "a number" not in result.error

    def test_rejects_overlong(self):
        assert not validate_password("Aa1!" * 40).valid


class TestUuid:
    def test_lowercases(self):
        result = validate_uuid(VALID_UUID.upper(), "User ID")
        assert result.valid
        assert result.sanitized == VALID_UUID

    def test_rejects_non_canonical(self):
        result = validate_uuid("3f2b8c1e9a4d4e6f8b7a1c2d3e4f5a6b", "User ID")
        assert not result.valid
        assert result.error == "Invalid User ID format"

    def test_missing_id_is_required(self):
        result = validate_uuid(None, "User ID")
        assert not result.valid
        assert result.error == "User ID is required"


class TestMissingValues:
    @pytest.mark.parametrize("value", [None, ""])
    def test_email_is_required(self, value):
        assert validate_email(value).error == "Email is required"

    @pytest.mark.parametrize("value", [None, ""])
    def test_password_is_required(self, value):
        assert validate_password(value).error == "Password is required"

    def test_wrong_types_are_still_reported_as_such(self):
        assert validate_email(42).error == "Email must be a string"
        assert validate_password(["secret"]).error == "Password must be a string"
        assert validate_uuid(7, "Record ID").error == "Record ID must be a string"


class TestFileHash:
    @pytest.mark.parametrize("length", [32, 40, 64])
    def test_accepts_common_digests(self, length):
        result = validate_file_hash("AB" * (length // 2))
        assert result.valid
        assert result.sanitized == "ab" * (length // 2)

    def test_missing_hash_is_required(self):
        assert validate_file_hash(None).error == "File hash is required"

    def test_rejects_other_shapes(self):
        result = validate_file_hash("xyz")
        assert result.error == "File hash must be an MD5, SHA-1 or SHA-256 hex digest"
