"""CRUD-style helpers for managing staff accounts."""
from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from lendgate.core import security
from lendgate.core.errors import NotFoundError, ValidationError
from lendgate.db.time import utcnow
from lendgate.models.user import UserAccount, UserRole

if TYPE_CHECKING:
    from lendgate.schemas.requests import CreateUserRequest, UpdateUserRequest

__all__ = [
    "get_user",
    "get_user_by_email",
    "list_users",
    "create_user",
    "update_user",
    "delete_user",
    "reset_password",
    "serialize_user",
]

_UPDATABLE_FIELDS = ("first_name", "last_name", "phone", "city", "state", "is_active")


def get_user(db: Session, user_id: str) -> UserAccount | None:
    """Return a single account by primary key."""
    return db.get(UserAccount, user_id)


def get_user_by_email(db: Session, email: str) -> UserAccount | None:
    return db.execute(
        select(UserAccount).where(UserAccount.email == email)
    ).scalar_one_or_none()


def _require_user(db: Session, user_id: str) -> UserAccount:
    user = get_user(db, user_id)
    if user is None:
        raise NotFoundError("Target account does not exist", details={"target_user": user_id})
    return user


def list_users(db: Session) -> Sequence[UserAccount]:
    """Return every account, newest first, with roles loaded."""
    return (
        db.execute(
            select(UserAccount)
            .options(selectinload(UserAccount.roles))
            .order_by(UserAccount.created_at.desc())
        )
        .scalars()
        .all()
    )


def create_user(db: Session, data: CreateUserRequest) -> UserAccount:
    """Persist a new, pre-verified account with its initial role."""
    if get_user_by_email(db, data.email) is not None:
        raise ValidationError(["An account with this email already exists"])
    user = UserAccount(
        email=data.email,
        password_hash=security.hash_password(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        phone=data.phone,
        city=data.city,
        state=data.state,
        is_active=data.is_active,
        email_verified_at=utcnow(),
    )
    user.roles.append(UserRole(role=data.role))
    db.add(user)
    try:
        db.commit()
    except IntegrityError as err:
        db.rollback()
        raise ValidationError(["An account with this email already exists"]) from err
    db.refresh(user)
    return user


def update_user(db: Session, data: UpdateUserRequest) -> UserAccount:
    """Apply the fields that were supplied; omitted fields keep their value."""
    user = _require_user(db, data.user_id)
    for key in _UPDATABLE_FIELDS:
        value = getattr(data, key)
        if value is not None:
            setattr(user, key, value)
    db.commit()
    db.refresh(user)
    return user


def delete_user(db: Session, user_id: str) -> UserAccount:
    """Remove an account and its roles; returns the detached instance."""
    user = _require_user(db, user_id)
    db.delete(user)
    db.commit()
    return user


def reset_password(db: Session, user_id: str, new_password: str) -> UserAccount:
    user = _require_user(db, user_id)
    user.password_hash = security.hash_password(new_password)
    db.commit()
    return user


def serialize_user(user: UserAccount) -> dict[str, Any]:
    """Return the public listing shape of an account."""
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "phone": user.phone,
        "city": user.city,
        "state": user.state,
        "is_active": user.is_active,
        "role": user.effective_role,
        "created_at": user.created_at.isoformat() if user.created_at else None,
        "updated_at": user.updated_at.isoformat() if user.updated_at else None,
    }
