"""Content hashing and document scanning endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from lendgate.api.v1.dependencies import (
    CallerDep,
    DocumentScannerDep,
    GateDep,
    JsonBodyDep,
    OptionalCallerDep,
    SessionDep,
)
from lendgate.schemas.records import HashRecordResponse, ScanResponse
from lendgate.schemas.requests import HashRecordRequest, ScanRequest
from lendgate.services.gate import GateEvent, GateOutcome, GatePolicy
from lendgate.services.hashing import create_hash_record
from lendgate.services.rate_limit import get_rate_limit_policy

router = APIRouter(tags=["records"])


@router.post("/blockchain-hash", response_model=HashRecordResponse)
def blockchain_hash(
    caller: OptionalCallerDep, body: JsonBodyDep, gate: GateDep, db: SessionDep
) -> dict[str, Any]:
    """Hash a record payload and store it with a simulated anchoring receipt.

    Anonymous callers are served; authenticated callers are rate limited.
    """

    def execute(data: HashRecordRequest) -> GateOutcome[dict[str, Any]]:
        record = create_hash_record(db, data)
        return GateOutcome(
            payload={
                "success": True,
                "blockchainRecordId": record.id,
                "dataHash": record.data_hash,
                "transactionHash": record.transaction_hash,
                "blockNumber": record.block_number,
                "blockchainHash": record.blockchain_hash,
                "verificationStatus": record.verification_status,
            },
            event=GateEvent(
                "blockchain_hash_created",
                "low",
                {
                    "record_type": record.record_type,
                    "record_id": record.record_id,
                    "data_hash": record.data_hash,
                    "transaction_hash": record.transaction_hash,
                    "block_number": record.block_number,
                },
            ),
        )

    policy = GatePolicy(
        action="blockchain_hash",
        rate_limit=get_rate_limit_policy("blockchain_hash"),
        require_auth=False,
    )
    payload: dict[str, Any] = gate.run(
        policy, caller, body, validate=HashRecordRequest.from_body, execute=execute
    )
    return payload


@router.post(
    "/scan-document",
    response_model=ScanResponse,
    response_model_exclude_none=True,
)
def scan_document(
    caller: CallerDep, body: JsonBodyDep, gate: GateDep, scanner: DocumentScannerDep
) -> dict[str, Any]:
    """Return a malware verdict for a file hash, cached per hash."""

    def execute(data: ScanRequest) -> GateOutcome[dict[str, Any]]:
        verdict = scanner.scan(data, scanned_by=caller.user_id)
        event = None
        if not verdict.is_safe and not verdict.cached:
            event = GateEvent(
                "malware_detected",
                "critical",
                {
                    "file_hash": data.file_hash,
                    "file_name": (data.file_name or "")[:100],
                    "threats": list(verdict.threats_found),
                    "scan_id": verdict.scan_id,
                },
            )
        return GateOutcome(payload=verdict.as_dict(), event=event)

    policy = GatePolicy(action="scan_document", rate_limit=get_rate_limit_policy("scan_document"))
    payload: dict[str, Any] = gate.run(
        policy, caller, body, validate=ScanRequest.from_body, execute=execute
    )
    return payload
