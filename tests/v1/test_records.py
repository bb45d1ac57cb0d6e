# tests/v1/test_records.py
from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from lendgate.models import BlockchainRecord, SecurityEvent
from lendgate.services.hashing import hash_data

RECORD_ID = "7d1e2f3a-4b5c-4d6e-8f90-a1b2c3d4e5f6"
FILE_HASH = "44d88612fea8a8f36de82e1278abb02f"


class TestBlockchainHash:
    def test_anonymous_caller_is_served(self, client: Any, db_session: Session) -> None:
        payload = {"applicant": "Nia", "amount": 25000}
        r = client.post(
            "/api/v1/blockchain-hash",
            json={"recordType": "loan_application", "recordId": RECORD_ID, "data": payload},
        )
        assert r.status_code == 200
        body = r.json()
        assert body["success"] is True
        assert body["dataHash"] == hash_data(payload)
        assert body["verificationStatus"] == "verified"

        record = db_session.get(BlockchainRecord, body["blockchainRecordId"])
        assert record is not None
        assert record.metadata_json["hash_algorithm"] == "SHA-256"
        event = db_session.scalars(select(SecurityEvent)).one()
        assert event.event_type == "blockchain_hash_created"
        assert event.user_id is None

    def test_invalid_token_is_not_treated_as_anonymous(self, client: Any) -> None:
        r = client.post(
            "/api/v1/blockchain-hash",
            headers={"Authorization": "Bearer garbage"},
            json={"recordType": "loan", "recordId": RECORD_ID, "data": {"a": 1}},
        )
        assert r.status_code == 401

    def test_validation_errors(self, client: Any, agent_headers) -> None:
        r = client.post(
            "/api/v1/blockchain-hash",
            headers=agent_headers,
            json={"recordType": "loan", "recordId": "nope"},
        )
        assert r.status_code == 400
        assert set(r.json()["errors"]) == {"Invalid Record ID format", "Data is required"}


class TestScanDocument:
    def test_requires_authentication(self, client: Any) -> None:
        r = client.post("/api/v1/scan-document", json={"file_hash": FILE_HASH})
        assert r.status_code == 401

    def test_clean_document(self, client: Any, agent_headers) -> None:
        r = client.post(
            "/api/v1/scan-document",
            headers=agent_headers,
            json={"file_hash": FILE_HASH, "file_name": "paystub.pdf", "file_size": 1024},
        )
        assert r.status_code == 200
        body = r.json()
        assert body["is_safe"] is True
        assert body["threats_found"] == []
        assert body["confidence"] == 40
        assert "cached" not in body

    def test_dangerous_file_raises_alert_once(
        self, client: Any, db_session: Session, agent_headers
    ) -> None:
        request = {"file_hash": FILE_HASH, "file_name": "statement.exe", "file_size": 1024}
        first = client.post("/api/v1/scan-document", headers=agent_headers, json=request)
        second = client.post("/api/v1/scan-document", headers=agent_headers, json=request)

        assert first.json()["is_safe"] is False
        assert second.json()["cached"] is True
        alerts = db_session.scalars(
            select(SecurityEvent).where(SecurityEvent.event_type == "malware_detected")
        ).all()
        assert len(alerts) == 1
        assert alerts[0].severity == "critical"
        assert alerts[0].details["threats"] == ["Potentially dangerous file extension"]
