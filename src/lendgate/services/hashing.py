# src/lendgate/services/hashing.py
"""Content hashing of CRM records with a simulated anchoring receipt."""

from __future__ import annotations

import hashlib
import json
import secrets
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING, Any, Final

from sqlalchemy.orm import Session

from lendgate.db.time import utcnow
from lendgate.models.records import BlockchainRecord

if TYPE_CHECKING:
    from lendgate.schemas.requests import HashRecordRequest

HASH_ALGORITHM: Final[str] = "SHA-256"
METADATA_VERSION: Final[str] = "1.0"
BASE_BLOCK_NUMBER: Final[int] = 15_000_000
BLOCK_NUMBER_SPREAD: Final[int] = 1_000_000


def canonical_json(data: Any) -> str:
    """Compact JSON with keys in insertion order, as browsers serialize it."""
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def hash_data(data: Any) -> str:
    """Return the hex SHA-256 digest of the compact JSON encoding of ``data``."""
    return hashlib.sha256(canonical_json(data).encode("utf-8")).hexdigest()


def _simulated_hash() -> str:
    return f"0x{secrets.token_hex(32)}"


def create_hash_record(
    db: Session,
    data: HashRecordRequest,
    *,
    clock: Callable[[], datetime] = utcnow,
) -> BlockchainRecord:
    """Hash the payload, store it and stamp it with a simulated receipt.

    No chain is contacted: the transaction hash, blockchain hash and block
    number are random placeholders and the record is marked verified.
    """
    now = clock()
    record = BlockchainRecord(
        record_type=data.record_type,
        record_id=data.record_id,
        data_hash=hash_data(data.data),
        metadata_json={
            **data.metadata,
            "timestamp": now.isoformat(),
            "version": METADATA_VERSION,
            "hash_algorithm": HASH_ALGORITHM,
        },
        blockchain_hash=_simulated_hash(),
        transaction_hash=_simulated_hash(),
        block_number=BASE_BLOCK_NUMBER + secrets.randbelow(BLOCK_NUMBER_SPREAD),
        verification_status="verified",
        verified_at=now,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record
