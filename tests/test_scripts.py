# tests/test_scripts.py
"""Tests for the operator scripts."""

from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from lendgate.core.errors import ValidationError
from lendgate.core.security import decode_access_token
from lendgate.scripts import ensure_db, issue_token
from lendgate.services.mfa import USER_DELETION, DatabaseStepUpVerifier


class TestEnsureDb:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("postgresql+psycopg://u:p@db:5432/lendgate", "postgresql://u:p@db:5432/lendgate"),
            ("'postgresql://u@db/lendgate'", "postgresql://u@db/lendgate"),
        ],
    )
    def test_normalize(self, raw: str, expected: str) -> None:
        assert ensure_db.normalize_to_psycopg(raw) == expected

    def test_normalize_rejects_other_schemes(self) -> None:
        with pytest.raises(ValueError):
            ensure_db.normalize_to_psycopg("mysql://u@db/lendgate")
        with pytest.raises(ValueError):
            ensure_db.normalize_to_psycopg("  ")

    def test_maintenance_target(self) -> None:
        assert ensure_db.maintenance_target("postgresql+psycopg://u:p@db:5432/lendgate") == (
            "postgresql://u:p@db:5432/postgres",
            "lendgate",
        )

    def test_creates_missing_database(self, mocker) -> None:
        connect = mocker.patch.object(ensure_db.psycopg, "connect")
        cursor = connect.return_value.__enter__.return_value.cursor.return_value.__enter__.return_value
        cursor.fetchone.return_value = None

        assert ensure_db.ensure_database_exists("postgresql://u@db/lendgate") is True
        connect.assert_called_once_with("postgresql://u@db/postgres", autocommit=True)
        assert cursor.execute.call_count == 2

    def test_existing_database_is_left_alone(self, mocker) -> None:
        connect = mocker.patch.object(ensure_db.psycopg, "connect")
        cursor = connect.return_value.__enter__.return_value.cursor.return_value.__enter__.return_value
        cursor.fetchone.return_value = (1,)

        assert ensure_db.ensure_database_exists("postgresql://u@db/lendgate") is False
        assert cursor.execute.call_count == 1

    def test_main_skips_sqlite(self, mocker) -> None:
        ensure = mocker.patch.object(ensure_db, "ensure_database_exists")
        assert ensure_db.main(["--url", "sqlite:///./lendgate.db"]) == 0
        ensure.assert_not_called()

    def test_main_reports_bad_url(self, capsys) -> None:
        assert ensure_db.main(["--url", "mysql://u@db/x"]) == 1
        assert "ERROR" in capsys.readouterr().err


class TestIssueToken:
    def test_bootstrap_admin(self, db_session: Session) -> None:
        user = issue_token.bootstrap_admin(db_session, "Root@Example.com", "Str0ng!Passphrase")
        assert user.email == "root@example.com"
        assert user.is_admin

    def test_bootstrap_admin_validates_password(self, db_session: Session) -> None:
        with pytest.raises(ValidationError):
            issue_token.bootstrap_admin(db_session, "root@example.com", "short")

    def test_access_token_for_email(self, db_session: Session, agent_user, mocker, capsys) -> None:
        mocker.patch.object(issue_token, "SessionLocal", return_value=db_session)
        assert issue_token.main(["access", "agent@example.com"]) == 0
        token = capsys.readouterr().out.strip()
        assert decode_access_token(token) == agent_user.id

    def test_step_up_token(self, db_session: Session, admin_user, mocker, capsys) -> None:
        admin_id = admin_user.id
        mocker.patch.object(issue_token, "SessionLocal", return_value=db_session)
        assert issue_token.main(["step-up", admin_id, USER_DELETION]) == 0
        token = capsys.readouterr().out.strip()
        assert DatabaseStepUpVerifier(db_session).verify(admin_id, token, USER_DELETION)
