"""Admin user-management response schemas."""

from pydantic import BaseModel, ConfigDict, Field


class UserSummary(BaseModel):
    """An account as shown in admin listings."""

    id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    city: str | None = None
    state: str | None = None
    is_active: bool
    role: str = Field(..., description="Highest-priority active role")
    created_at: str | None = None
    updated_at: str | None = None

    model_config = ConfigDict(from_attributes=True)


class CreateUserResponse(BaseModel):
    success: bool = True
    message: str = "User created successfully"
    userId: str = Field(..., description="Identifier of the new account")


class DeleteUserResponse(BaseModel):
    success: bool = True
    message: str = "User permanently deleted"
    deletedUserId: str


class UpdateUserResponse(BaseModel):
    success: bool = True
    data: UserSummary


class ResetPasswordResponse(BaseModel):
    success: bool = True


class UserListResponse(BaseModel):
    users: list[UserSummary]
