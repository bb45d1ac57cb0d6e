"""Audit log response schema."""

from pydantic import BaseModel


class AuditLogResponse(BaseModel):
    success: bool = True
    audit_log_id: int
