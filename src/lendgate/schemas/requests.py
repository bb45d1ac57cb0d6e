"""Request bodies accepted by the gated endpoints.

Every field runs through one of the pure validators in
:mod:`lendgate.services.validation`. Pydantic collects the failures of all
fields, and :meth:`RequestModel.from_body` reports them together as a single
:class:`~lendgate.core.errors.ValidationError`.
"""

from collections.abc import Callable, Mapping
from functools import partial
from typing import Annotated, Any, Self

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticCustomError

from lendgate.core.errors import ValidationError
from lendgate.models.user import DEFAULT_ROLE, ROLE_PRIORITY
from lendgate.services.validation import (
    ValidationResult,
    validate_email,
    validate_file_hash,
    validate_name,
    validate_password,
    validate_phone,
    validate_text,
    validate_uuid,
)


def _invalid(message: str) -> PydanticCustomError:
    return PydanticCustomError("invalid_field", message)


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def _checked(
    validator: Callable[[Any], ValidationResult], *, optional: bool = False
) -> BeforeValidator:
    """Adapt a field validator; optional fields map blank input to None."""

    def check(value: Any) -> str | None:
        if optional and _is_blank(value):
            return None
        result = validator(value)
        if not result.valid:
            raise _invalid(result.error or "Invalid value")
        if optional:
            return result.sanitized or None
        return result.sanitized

    return BeforeValidator(check)


def _required_text(field_name: str, max_length: int) -> BeforeValidator:
    def check(value: Any) -> str:
        if _is_blank(value):
            raise _invalid(f"{field_name} is required")
        result = validate_text(value, field_name, max_length)
        if not result.valid:
            raise _invalid(result.error or "Invalid value")
        return result.sanitized

    return BeforeValidator(check)


def _json_object(field_name: str) -> BeforeValidator:
    def check(value: Any) -> dict[str, Any] | None:
        if value is None:
            return None
        if not isinstance(value, Mapping):
            raise _invalid(f"{field_name} must be an object")
        return dict(value)

    return BeforeValidator(check)


def _flag(value: Any, field_name: str) -> bool | None:
    if value is None:
        return None
    if not isinstance(value, bool):
        raise _invalid(f"{field_name} must be a boolean")
    return value


Email = Annotated[str, _checked(validate_email)]
Password = Annotated[str, _checked(validate_password)]
UserId = Annotated[str, _checked(partial(validate_uuid, field_name="User ID"))]
FirstName = Annotated[
    str | None, _checked(partial(validate_name, field_name="First name"), optional=True)
]
LastName = Annotated[
    str | None, _checked(partial(validate_name, field_name="Last name"), optional=True)
]
Phone = Annotated[str | None, _checked(validate_phone, optional=True)]
City = Annotated[
    str | None, _checked(partial(validate_text, field_name="City", max_length=100), optional=True)
]
State = Annotated[
    str | None, _checked(partial(validate_text, field_name="State", max_length=50), optional=True)
]


class RequestModel(BaseModel):
    """Base for request bodies. Unknown keys such as ``mfa_token`` are ignored."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, validate_default=True)

    @classmethod
    def from_body(cls, body: Mapping[str, Any]) -> Self:
        """Validate a decoded JSON object.

        Raises:
            ValidationError: Listing every violated field rule, in field order.
        """
        try:
            return cls.model_validate(dict(body))
        except PydanticValidationError as err:
            raise ValidationError([str(error["msg"]) for error in err.errors()]) from err


class CreateUserRequest(RequestModel):
    email: Email = ""
    password: Password = ""
    first_name: FirstName = Field(default=None, alias="firstName")
    last_name: LastName = Field(default=None, alias="lastName")
    phone: Phone = None
    city: City = None
    state: State = None
    role: str = DEFAULT_ROLE
    is_active: bool = Field(default=True, alias="isActive")

    @field_validator("role", mode="before")
    @classmethod
    def check_role(cls, value: Any) -> str:
        if _is_blank(value):
            return DEFAULT_ROLE
        if not isinstance(value, str) or value not in ROLE_PRIORITY:
            raise _invalid("Role is not recognised")
        return value

    @field_validator("is_active", mode="before")
    @classmethod
    def check_active(cls, value: Any) -> bool:
        flag = _flag(value, "isActive")
        return True if flag is None else flag


class UpdateUserRequest(RequestModel):
    user_id: UserId = Field(default="", alias="userId")
    first_name: FirstName = Field(default=None, alias="firstName")
    last_name: LastName = Field(default=None, alias="lastName")
    phone: Phone = None
    city: City = None
    state: State = None
    is_active: bool | None = Field(default=None, alias="isActive")

    @field_validator("is_active", mode="before")
    @classmethod
    def check_active(cls, value: Any) -> bool | None:
        return _flag(value, "isActive")


class DeleteUserRequest(RequestModel):
    user_id: UserId = Field(default="", alias="userId")


class ResetPasswordRequest(RequestModel):
    user_id: UserId = ""
    new_password: Password = ""


class AuditEntryRequest(RequestModel):
    action: Annotated[str, _required_text("Action", 100)] = ""
    table_name: Annotated[str, _required_text("Table name", 100)] = ""
    record_id: Annotated[
        str | None, _checked(partial(validate_uuid, field_name="Record ID"), optional=True)
    ] = None
    old_values: Annotated[dict[str, Any] | None, _json_object("Old values")] = None
    new_values: Annotated[dict[str, Any] | None, _json_object("New values")] = None


class HashRecordRequest(RequestModel):
    record_type: Annotated[str, _required_text("Record type", 50)] = Field(
        default="", alias="recordType"
    )
    record_id: Annotated[str, _checked(partial(validate_uuid, field_name="Record ID"))] = Field(
        default="", alias="recordId"
    )
    data: Any = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("data", mode="before")
    @classmethod
    def check_data(cls, value: Any) -> Any:
        if value is None or value == "" or value == {} or value == []:
            raise _invalid("Data is required")
        return value

    @field_validator("metadata", mode="before")
    @classmethod
    def check_metadata(cls, value: Any) -> dict[str, Any]:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise _invalid("Metadata must be an object")
        return dict(value)


class ScanRequest(RequestModel):
    file_hash: Annotated[str, _checked(validate_file_hash)] = ""
    file_name: Annotated[
        str | None,
        _checked(partial(validate_text, field_name="File name", max_length=255), optional=True),
    ] = None
    file_size: int | None = None
    document_id: Annotated[
        str | None, _checked(partial(validate_uuid, field_name="Document ID"), optional=True)
    ] = None

    @field_validator("file_size", mode="before")
    @classmethod
    def check_file_size(cls, value: Any) -> int | None:
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise _invalid("File size must be a non-negative integer")
        return value
