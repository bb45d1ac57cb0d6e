# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-lendgate")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from lendgate.core.security import create_access_token, hash_password  # noqa: E402
from lendgate.db.session import Base  # noqa: E402
from lendgate.db.session import get_db as app_get_session  # noqa: E402
from lendgate.main import app as fastapi_app  # noqa: E402
from lendgate.models import UserAccount, UserRole  # noqa: E402
from lendgate.services.mfa import issue_step_up_token  # noqa: E402

TEST_DB_URL = "sqlite://"
STRONG_PASSWORD = "Str0ng!Passphrase"


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    """Session whose commits are real; every table is emptied afterwards."""
    SessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


def make_user(
    db: Session,
    email: str,
    *,
    roles: tuple[str, ...] = ("agent",),
    is_active: bool = True,
) -> UserAccount:
    user = UserAccount(
        email=email,
        password_hash=hash_password(STRONG_PASSWORD),
        first_name="Test",
        last_name="User",
        is_active=is_active,
    )
    for role in roles:
        user.roles.append(UserRole(role=role))
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def bearer(user: UserAccount) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture()
def admin_user(db_session: Session) -> UserAccount:
    """An active account holding the admin role."""
    return make_user(db_session, "admin@example.com", roles=("admin",))


@pytest.fixture()
def agent_user(db_session: Session) -> UserAccount:
    """An active account without admin privileges."""
    return make_user(db_session, "agent@example.com", roles=("agent",))


@pytest.fixture()
def admin_headers(admin_user: UserAccount) -> dict[str, str]:
    return bearer(admin_user)


@pytest.fixture()
def agent_headers(agent_user: UserAccount) -> dict[str, str]:
    return bearer(agent_user)


@pytest.fixture()
def step_up_token(db_session: Session) -> Callable[[UserAccount, str], str]:
    """Factory issuing a fresh single-use step-up token."""

    def _issue(user: UserAccount, operation_type: str) -> str:
        return issue_step_up_token(db_session, user.id, operation_type)

    return _issue


@pytest.fixture()
def user_factory(db_session: Session) -> Callable[..., UserAccount]:
    """Create persisted accounts: ``user_factory(email, roles=(...), is_active=...)``."""

    def _create(email: str, **kwargs: object) -> UserAccount:
        return make_user(db_session, email, **kwargs)  # type: ignore[arg-type]

    return _create


@pytest.fixture()
def headers_for() -> Callable[[UserAccount], dict[str, str]]:
    return bearer
