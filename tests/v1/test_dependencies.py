# tests/v1/test_dependencies.py
from __future__ import annotations

from typing import Any

import pytest
from sqlalchemy.orm import Session

from lendgate.core.security import create_access_token

AUTH_FAILED = {"error": "Authentication failed. Please log in again.", "code": "AUTH_FAILED"}


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"Authorization": "Bearer "},
        {"Authorization": "Bearer not-a-jwt"},
        {"Authorization": "Basic dXNlcjpwYXNz"},
    ],
)
def test_bad_credentials_are_rejected(client: Any, headers: dict[str, str]) -> None:
    r = client.post("/api/v1/admin-get-users", headers=headers)
    assert r.status_code == 401
    assert r.json() == AUTH_FAILED


def test_token_for_unknown_account(client: Any) -> None:
    token = create_access_token("00000000-0000-4000-8000-000000000000")
    r = client.post("/api/v1/audit-log", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


def test_inactive_account_is_rejected(client: Any, user_factory, headers_for) -> None:
    dormant = user_factory("dormant@example.com", is_active=False)
    r = client.post("/api/v1/audit-log", headers=headers_for(dormant), json={})
    assert r.status_code == 401
    assert r.json()["code"] == "AUTH_FAILED"


def test_token_signed_with_other_key(client: Any, agent_user) -> None:
    from jose import jwt

    forged = jwt.encode({"sub": agent_user.id}, "some-other-key", algorithm="HS256")
    r = client.post("/api/v1/audit-log", headers={"Authorization": f"Bearer {forged}"})
    assert r.status_code == 401


def test_malformed_json_body(client: Any, agent_headers, db_session: Session) -> None:
    r = client.post(
        "/api/v1/audit-log",
        headers={**agent_headers, "Content-Type": "application/json"},
        content=b"{not json",
    )
    assert r.status_code == 400
    assert r.json()["errors"] == ["Request body must be valid JSON"]


def test_non_object_body(client: Any, agent_headers) -> None:
    r = client.post("/api/v1/audit-log", headers=agent_headers, json=[1, 2, 3])
    assert r.status_code == 400
    assert r.json()["errors"] == ["Request body must be a JSON object"]
