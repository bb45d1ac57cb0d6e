"""Client-reported audit log entries."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from lendgate.api.v1.dependencies import AuditTrailDep, CallerDep, GateDep, JsonBodyDep
from lendgate.core.errors import InternalError
from lendgate.schemas.audit import AuditLogResponse
from lendgate.schemas.requests import AuditEntryRequest
from lendgate.services.gate import GateOutcome, GatePolicy
from lendgate.services.rate_limit import get_rate_limit_policy

router = APIRouter(tags=["audit"])


@router.post("/audit-log", response_model=AuditLogResponse)
def audit_log(
    caller: CallerDep, body: JsonBodyDep, gate: GateDep, audit: AuditTrailDep
) -> dict[str, Any]:
    """Append one audit row attributed to the caller."""

    def execute(data: AuditEntryRequest) -> GateOutcome[dict[str, Any]]:
        entry = audit.record_audit(
            data.action,
            data.table_name,
            user_id=caller.user_id,
            record_id=data.record_id,
            old_values=data.old_values,
            new_values=data.new_values,
            ip_address=caller.ip_address,
            user_agent=caller.user_agent,
            strict=True,
        )
        if entry is None:
            raise InternalError("Audit log row was not written")
        return GateOutcome(payload={"success": True, "audit_log_id": entry.id})

    policy = GatePolicy(action="audit_log", rate_limit=get_rate_limit_policy("audit_log"))
    payload: dict[str, Any] = gate.run(
        policy, caller, body, validate=AuditEntryRequest.from_body, execute=execute
    )
    return payload
