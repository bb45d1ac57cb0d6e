"""Append-only security events and audit rows."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lendgate.core.secure_logger import SECRET_FIELDS, SecureLogger, sanitize_payload
from lendgate.models.audit import AuditLog
from lendgate.models.security import SecurityEvent

USER_AGENT_MAX_LENGTH = 500


class AuditTrail:
    """Write security events and audit log entries.

    Writes commit immediately. A failed write is rolled back and logged but
    never raised: the audit trail must not turn a completed operation into
    an error response.
    """

    def __init__(self, db: Session, logger: SecureLogger | None = None) -> None:
        self.db = db
        self.logger = logger or SecureLogger(__name__)

    def record_event(
        self,
        event_type: str,
        severity: str,
        *,
        user_id: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> SecurityEvent | None:
        event = SecurityEvent(
            event_type=event_type,
            severity=severity,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent[:USER_AGENT_MAX_LENGTH] if user_agent else None,
            details=sanitize_payload(dict(details or {})),
        )
        try:
            self.db.add(event)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            self.logger.error("Failed to record security event", exc, event_type=event_type)
            return None
        return event

    def record_audit(
        self,
        action: str,
        table_name: str,
        *,
        user_id: str | None = None,
        record_id: str | None = None,
        old_values: Mapping[str, Any] | None = None,
        new_values: Mapping[str, Any] | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        strict: bool = False,
    ) -> AuditLog | None:
        """Append an audit row; with ``strict`` a failed write is re-raised."""
        entry = AuditLog(
            user_id=user_id,
            action=action,
            table_name=table_name,
            record_id=record_id,
            old_values=sanitize_payload(dict(old_values), fields=SECRET_FIELDS)
            if old_values is not None
            else None,
            new_values=sanitize_payload(dict(new_values), fields=SECRET_FIELDS)
            if new_values is not None
            else None,
            ip_address=ip_address,
            user_agent=user_agent[:USER_AGENT_MAX_LENGTH] if user_agent else None,
        )
        try:
            self.db.add(entry)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            self.logger.error("Failed to write audit log", exc, action=action)
            if strict:
                raise
            return None
        return entry
