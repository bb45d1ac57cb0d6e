# src/lendgate/models/user.py
"""SQLAlchemy models for staff accounts and their roles."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Final

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lendgate.db.session import Base
from lendgate.db.time import utcnow

# Higher wins when an account holds several active roles.
ROLE_PRIORITY: Final[dict[str, int]] = {
    "super_admin": 5,
    "admin": 4,
    "manager": 3,
    "loan_processor": 2,
    "underwriter": 2,
    "funder": 2,
    "closer": 2,
    "loan_originator": 2,
    "agent": 1,
    "viewer": 0,
}
ADMIN_ROLES: Final[frozenset[str]] = frozenset({"admin", "super_admin"})
DEFAULT_ROLE: Final[str] = "agent"


def _new_id() -> str:
    return str(uuid.uuid4())


class UserAccount(Base):
    """Staff profile keyed by a lowercase UUID string."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(String(254), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    email_verified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    roles: Mapped[list[UserRole]] = relationship(
        "UserRole",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    @property
    def active_roles(self) -> list[str]:
        """Return the names of every active role held by the account."""
        return [role.role for role in self.roles if role.is_active]

    @property
    def effective_role(self) -> str:
        """Return the highest-priority active role, defaulting to agent."""
        active = self.active_roles
        if not active:
            return DEFAULT_ROLE
        return max(active, key=lambda name: ROLE_PRIORITY.get(name, 0))

    @property
    def is_admin(self) -> bool:
        return any(role in ADMIN_ROLES for role in self.active_roles)


class UserRole(Base):
    """Role assignment; an account may hold several."""

    __tablename__ = "user_roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[str] = mapped_column(String(32), nullable=False, default=DEFAULT_ROLE)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    user: Mapped[UserAccount] = relationship("UserAccount", back_populates="roles")
