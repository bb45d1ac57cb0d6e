# tests/test_requests.py
"""Tests for the pydantic request bodies."""

import pytest

from lendgate.core.errors import ValidationError
from lendgate.schemas.requests import (
    AuditEntryRequest,
    CreateUserRequest,
    DeleteUserRequest,
    HashRecordRequest,
    ResetPasswordRequest,
    ScanRequest,
    UpdateUserRequest,
)

VALID_UUID = "3f2b8c1e-9a4d-4e6f-8b7a-1c2d3e4f5a6b"


class TestCreateUser:
    def test_collects_every_error_in_field_order(self):
        with pytest.raises(ValidationError) as exc_info:
            CreateUserRequest.from_body({"email": "bad", "password": "abc", "firstName": "B0b"})
        assert exc_info.value.errors == [
            "Invalid email format",
            "Password must be at least 12 characters",
            "First name contains invalid characters",
        ]

    def test_missing_credentials_are_required(self):
        with pytest.raises(ValidationError) as exc_info:
            CreateUserRequest.from_body({})
        assert exc_info.value.errors == ["Email is required", "Password is required"]

    def test_defaults(self):
        data = CreateUserRequest.from_body(
            {"email": "New@Example.com", "password": "Str0ng!Passphrase"}
        )
        assert data.email == "new@example.com"
        assert data.role == "agent"
        assert data.is_active is True
        assert data.first_name is None
        assert data.phone is None

    def test_camel_case_keys_are_read(self):
        data = CreateUserRequest.from_body(
            {
                "email": "ann@example.com",
                "password": "Str0ng!Passphrase",
                "firstName": " Ann ",
                "lastName": "O'Neil",
                "isActive": False,
                "mfa_token": "ignored",
            }
        )
        assert data.first_name == "Ann"
        assert data.last_name == "O'Neil"
        assert data.is_active is False

    def test_rejects_unknown_role(self):
        with pytest.raises(ValidationError) as exc_info:
            CreateUserRequest.from_body(
                {"email": "a@example.com", "password": "Str0ng!Passphrase", "role": "root"}
            )
        assert exc_info.value.errors == ["Role is not recognised"]

    def test_is_active_must_be_boolean(self):
        with pytest.raises(ValidationError) as exc_info:
            CreateUserRequest.from_body(
                {"email": "a@example.com", "password": "Str0ng!Passphrase", "isActive": "yes"}
            )
        assert exc_info.value.errors == ["isActive must be a boolean"]

    def test_rejects_script_in_city(self):
        with pytest.raises(ValidationError) as exc_info:
            CreateUserRequest.from_body(
                {
                    "email": "a@example.com",
                    "password": "Str0ng!Passphrase",
                    "city": "<script>alert(1)</script>",
                }
            )
        assert exc_info.value.errors == ["City contains potentially dangerous content"]


class TestUpdateAndDelete:
    def test_update_requires_user_id(self):
        with pytest.raises(ValidationError) as exc_info:
            UpdateUserRequest.from_body({"firstName": "Ann"})
        assert exc_info.value.errors == ["User ID is required"]

    def test_update_keeps_omitted_fields_none(self):
        data = UpdateUserRequest.from_body({"userId": VALID_UUID.upper(), "isActive": False})
        assert data.user_id == VALID_UUID
        assert data.is_active is False
        assert data.city is None

    def test_delete_reads_user_id(self):
        assert DeleteUserRequest.from_body({"userId": VALID_UUID}).user_id == VALID_UUID

    def test_delete_rejects_malformed_id(self):
        with pytest.raises(ValidationError) as exc_info:
            DeleteUserRequest.from_body({"userId": "not-a-uuid"})
        assert exc_info.value.errors == ["Invalid User ID format"]


def test_password_reset():
    data = ResetPasswordRequest.from_body(
        {"user_id": VALID_UUID, "new_password": "Str0ng!Passphrase"}
    )
    assert data.user_id == VALID_UUID
    assert data.new_password == "Str0ng!Passphrase"


class TestAuditEntry:
    def test_requires_action_and_table(self):
        with pytest.raises(ValidationError) as exc_info:
            AuditEntryRequest.from_body({"record_id": "not-a-uuid"})
        assert exc_info.value.errors == [
            "Action is required",
            "Table name is required",
            "Invalid Record ID format",
        ]

    def test_rejects_non_object_values(self):
        with pytest.raises(ValidationError) as exc_info:
            AuditEntryRequest.from_body(
                {"action": "update", "table_name": "leads", "old_values": [1]}
            )
        assert exc_info.value.errors == ["Old values must be an object"]

    def test_blank_record_id_is_none(self):
        data = AuditEntryRequest.from_body(
            {"action": "update", "table_name": "leads", "record_id": "", "new_values": {"a": 1}}
        )
        assert data.record_id is None
        assert data.new_values == {"a": 1}


class TestHashRecord:
    def test_requires_data(self):
        with pytest.raises(ValidationError) as exc_info:
            HashRecordRequest.from_body({"recordType": "loan", "recordId": VALID_UUID})
        assert exc_info.value.errors == ["Data is required"]

    def test_metadata_defaults_to_empty_object(self):
        data = HashRecordRequest.from_body(
            {"recordType": "loan", "recordId": VALID_UUID, "data": {"amount": 1}}
        )
        assert data.record_type == "loan"
        assert data.metadata == {}


class TestScan:
    def test_checks_hash_shape(self):
        with pytest.raises(ValidationError) as exc_info:
            ScanRequest.from_body({"file_hash": "xyz"})
        assert exc_info.value.errors == ["File hash must be an MD5, SHA-1 or SHA-256 hex digest"]

    def test_lowercases_hash(self):
        data = ScanRequest.from_body(
            {"file_hash": "A" * 64, "file_name": "doc.pdf", "file_size": 10}
        )
        assert data.file_hash == "a" * 64
        assert data.file_name == "doc.pdf"
        assert data.document_id is None

    @pytest.mark.parametrize("size", [-1, True, "10", 1.5])
    def test_rejects_bad_sizes(self, size):
        with pytest.raises(ValidationError) as exc_info:
            ScanRequest.from_body({"file_hash": "a" * 32, "file_size": size})
        assert exc_info.value.errors == ["File size must be a non-negative integer"]

    def test_missing_hash_is_required(self):
        with pytest.raises(ValidationError) as exc_info:
            ScanRequest.from_body({})
        assert exc_info.value.errors == ["File hash is required"]
