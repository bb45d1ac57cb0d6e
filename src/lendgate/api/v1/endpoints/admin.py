"""Admin user-management endpoints.

Each route is a thin adapter: it names the gate policy, the body validator
and the operation, and :class:`~lendgate.services.gate.RequestGate` does
the rest.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from fastapi import APIRouter

from lendgate.api.v1.dependencies import (
    AuditTrailDep,
    CallerDep,
    GateDep,
    JsonBodyDep,
    SessionDep,
)
from lendgate.core.errors import PolicyViolationError
from lendgate.schemas.admin import (
    CreateUserResponse,
    DeleteUserResponse,
    ResetPasswordResponse,
    UpdateUserResponse,
    UserListResponse,
)
from lendgate.schemas.requests import (
    CreateUserRequest,
    DeleteUserRequest,
    ResetPasswordRequest,
    UpdateUserRequest,
)
from lendgate.services import users
from lendgate.services.gate import CallerContext, GateEvent, GateOutcome, GatePolicy
from lendgate.services.mfa import PASSWORD_RESET, USER_CREATION, USER_DELETION, USER_UPDATE
from lendgate.services.rate_limit import get_rate_limit_policy

router = APIRouter(tags=["admin"])


def admin_policy(action: str, step_up_operation: str | None = None) -> GatePolicy:
    return GatePolicy(
        action=action,
        rate_limit=get_rate_limit_policy(action),
        require_admin=True,
        step_up_operation=step_up_operation,
    )


def reject_self_deletion(body: Mapping[str, Any], caller: CallerContext) -> None:
    """Refuse requests in which an admin targets their own account."""
    target = body.get("userId")
    if isinstance(target, str) and caller.user_id and target.lower() == caller.user_id.lower():
        raise PolicyViolationError(
            "Cannot delete your own account",
            details={"target_user": target},
        )


@router.post("/admin-create-user", response_model=CreateUserResponse)
def admin_create_user(
    caller: CallerDep, body: JsonBodyDep, gate: GateDep, db: SessionDep
) -> dict[str, Any]:
    """Create a pre-verified account with an initial role."""

    def execute(data: CreateUserRequest) -> GateOutcome[dict[str, Any]]:
        user = users.create_user(db, data)
        return GateOutcome(
            payload={"success": True, "message": "User created successfully", "userId": user.id},
            event=GateEvent(
                "user_created_by_admin",
                "medium",
                {
                    "new_user_id": user.id,
                    "role": data.role,
                    "created_by_admin": True,
                    "email_auto_verified": True,
                },
            ),
        )

    payload: dict[str, Any] = gate.run(
        admin_policy("admin_create_user", USER_CREATION),
        caller,
        body,
        validate=CreateUserRequest.from_body,
        execute=execute,
    )
    return payload


@router.post("/admin-delete-user", response_model=DeleteUserResponse)
def admin_delete_user(
    caller: CallerDep, body: JsonBodyDep, gate: GateDep, db: SessionDep
) -> dict[str, Any]:
    """Permanently delete an account other than the caller's own."""

    def execute(data: DeleteUserRequest) -> GateOutcome[dict[str, Any]]:
        user_id = data.user_id
        users.delete_user(db, user_id)
        return GateOutcome(
            payload={
                "success": True,
                "message": "User permanently deleted",
                "deletedUserId": user_id,
            },
            event=GateEvent(
                "user_permanently_deleted",
                "critical",
                {
                    "deleted_user_id": user_id,
                    "reason": "Permanent deletion via admin user management",
                },
            ),
        )

    payload: dict[str, Any] = gate.run(
        admin_policy("admin_delete_user", USER_DELETION),
        caller,
        body,
        validate=DeleteUserRequest.from_body,
        execute=execute,
        guard=reject_self_deletion,
    )
    return payload


@router.post("/admin-update-user", response_model=UpdateUserResponse)
def admin_update_user(
    caller: CallerDep, body: JsonBodyDep, gate: GateDep, db: SessionDep
) -> dict[str, Any]:
    """Apply a partial profile update; omitted fields are left unchanged."""

    def execute(data: UpdateUserRequest) -> GateOutcome[dict[str, Any]]:
        user = users.update_user(db, data)
        changed = [
            name
            for name in ("first_name", "last_name", "phone", "city", "state", "is_active")
            if getattr(data, name) is not None
        ]
        return GateOutcome(
            payload={"success": True, "data": users.serialize_user(user)},
            event=GateEvent(
                "user_updated_by_admin",
                "medium",
                {"target_user": user.id, "fields": changed},
            ),
        )

    payload: dict[str, Any] = gate.run(
        admin_policy("admin_update_user", USER_UPDATE),
        caller,
        body,
        validate=UpdateUserRequest.from_body,
        execute=execute,
    )
    return payload


@router.post("/admin-reset-password", response_model=ResetPasswordResponse)
def admin_reset_password(
    caller: CallerDep,
    body: JsonBodyDep,
    gate: GateDep,
    db: SessionDep,
    audit: AuditTrailDep,
) -> dict[str, Any]:
    """Set a new password for another account and record it in the audit log."""

    def execute(data: ResetPasswordRequest) -> GateOutcome[dict[str, Any]]:
        users.reset_password(db, data.user_id, data.new_password)
        audit.record_audit(
            "admin_password_reset",
            "auth.users",
            user_id=caller.user_id,
            record_id=data.user_id,
            new_values={"admin_reset": True, "reset_by": caller.user_id},
            ip_address=caller.ip_address,
            user_agent=caller.user_agent,
        )
        return GateOutcome(
            payload={"success": True},
            event=GateEvent("admin_password_reset", "high", {"target_user": data.user_id}),
        )

    payload: dict[str, Any] = gate.run(
        admin_policy("admin_reset_password", PASSWORD_RESET),
        caller,
        body,
        validate=ResetPasswordRequest.from_body,
        execute=execute,
    )
    return payload


@router.post("/admin-get-users", response_model=UserListResponse)
def admin_get_users(
    caller: CallerDep, body: JsonBodyDep, gate: GateDep, db: SessionDep
) -> dict[str, Any]:
    """List every account with its highest-priority active role."""

    def execute(_: None) -> GateOutcome[dict[str, Any]]:
        return GateOutcome(
            payload={"users": [users.serialize_user(user) for user in users.list_users(db)]}
        )

    payload: dict[str, Any] = gate.run(
        admin_policy("admin_get_users"),
        caller,
        body,
        validate=lambda _body: None,
        execute=execute,
    )
    return payload
