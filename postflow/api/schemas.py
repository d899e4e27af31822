"""
Name: API Schemas (camelCase JSON)

Responsibilities:
  - Request validation for /auth and /users (-> 400 VALIDATION_ERROR)
  - Response shapes without password hashes

Notes:
  - Fields are snake_case in Python and camelCase on the wire
    (alias_generator=to_camel; populate_by_name keeps snake_case accepted)
"""

import re
from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..identity.users import User, UserRole, normalize_email

EMAIL_MAX_LENGTH = 255
NAME_MAX_LENGTH = 100
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 512

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PASSWORD_COMPLEXITY_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _validate_email(value: str) -> str:
    normalized = normalize_email(value)
    if not _EMAIL_RE.match(normalized):
        raise ValueError("Please provide a valid email address")
    return normalized


def _parse_role(value):
    if isinstance(value, str):
        try:
            return UserRole.parse(value)
        except ValueError as exc:
            raise ValueError("Role must be either ADMIN or USER") from exc
    return value


# ============================================================================
# Requests
# ============================================================================


class LoginRequest(CamelModel):
    email: str = Field(..., max_length=EMAIL_MAX_LENGTH)
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LENGTH)

    @field_validator("email")
    @classmethod
    def email_must_be_valid(cls, v: str) -> str:
        return _validate_email(v)


class CreatePasswordRequest(CamelModel):
    user_id: UUID
    password: str = Field(
        ..., min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH
    )

    @field_validator("password")
    @classmethod
    def password_complexity(cls, v: str) -> str:
        if not _PASSWORD_COMPLEXITY_RE.match(v):
            raise ValueError("Password must contain uppercase, lowercase, and a number")
        return v


class RefreshTokenRequest(CamelModel):
    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(CamelModel):
    refresh_token: Optional[str] = None


class UpdateProfileRequest(CamelModel):
    name: Optional[str] = Field(default=None, max_length=NAME_MAX_LENGTH)
    password: Optional[str] = Field(default=None, max_length=PASSWORD_MAX_LENGTH)


class CreateUserRequest(CamelModel):
    email: str = Field(..., max_length=EMAIL_MAX_LENGTH)
    name: str = Field(..., min_length=1, max_length=NAME_MAX_LENGTH)
    role: UserRole = UserRole.USER

    @field_validator("email")
    @classmethod
    def email_must_be_valid(cls, v: str) -> str:
        return _validate_email(v)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name is required")
        return v.strip()

    @field_validator("role", mode="before")
    @classmethod
    def role_case_insensitive(cls, v):
        return _parse_role(v)


class UpdateRoleRequest(CamelModel):
    role: UserRole

    @field_validator("role", mode="before")
    @classmethod
    def role_case_insensitive(cls, v):
        return _parse_role(v)


# ============================================================================
# Responses
# ============================================================================


class UserResponse(CamelModel):
    id: UUID
    email: str
    name: str
    role: UserRole
    password_reset: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


def to_user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        password_reset=user.password_reset,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


class TokenPairResponse(CamelModel):
    success: bool = True
    message: str
    access_token: str
    refresh_token: str
    expires_in: int


class LoginResponse(TokenPairResponse):
    user: UserResponse


class PasswordSetupResponse(CamelModel):
    success: bool = True
    message: str = "Password setup required"
    code: Literal["PASSWORD_RESET_REQUIRED"] = "PASSWORD_RESET_REQUIRED"
    user_id: UUID
    password_reset: bool = True
    user: UserResponse


class MessageResponse(CamelModel):
    success: bool = True
    message: str
    code: Optional[str] = None


class ProfileResponse(CamelModel):
    success: bool = True
    message: str = "Profile retrieved successfully"
    user: UserResponse


class ValidateResponse(CamelModel):
    valid: bool = True
    user: UserResponse


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class UsersListResponse(CamelModel):
    message: str = "Users retrieved successfully"
    users: List[UserResponse]
    pagination: Pagination


class UserCreatedResponse(CamelModel):
    message: str = (
        "User created successfully. They will be prompted to set a password on first login."
    )
    user: UserResponse


class RefreshTokenDebugEntry(CamelModel):
    id: UUID
    user_id: UUID
    token_preview: str
    created_at: datetime
    expires_at: datetime
    is_expired: bool


class RefreshTokenDebugResponse(CamelModel):
    success: bool = True
    count: int
    tokens: List[RefreshTokenDebugEntry]
