# src/lendgate/schemas/__init__.py
"""
Pydantic schemas for API requests and responses.

Request models validate every field before reporting, so a rejected body
lists all of its violated rules at once.
"""

from .admin import (
    CreateUserResponse,
    DeleteUserResponse,
    ResetPasswordResponse,
    UpdateUserResponse,
    UserListResponse,
    UserSummary,
)
from .audit import AuditLogResponse
from .geo import EnhancedGeoResponse, GeoCheckResponse
from .records import HashRecordResponse, ScanResponse
from .requests import (
    AuditEntryRequest,
    CreateUserRequest,
    DeleteUserRequest,
    HashRecordRequest,
    RequestModel,
    ResetPasswordRequest,
    ScanRequest,
    UpdateUserRequest,
)

__all__ = [
    "CreateUserResponse", "DeleteUserResponse", "ResetPasswordResponse",
    "UpdateUserResponse", "UserListResponse", "UserSummary",
    "AuditLogResponse",
    "EnhancedGeoResponse", "GeoCheckResponse",
    "HashRecordResponse", "ScanResponse",
    "RequestModel", "CreateUserRequest", "UpdateUserRequest", "DeleteUserRequest",
    "ResetPasswordRequest", "AuditEntryRequest", "HashRecordRequest", "ScanRequest",
]
