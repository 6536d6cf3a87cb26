"""Pydantic schemas for User read / admin CRUD."""

from __future__ import annotations

from datetime import datetime

from pydantic import ConfigDict, field_validator

from app.models.user import ROLE_ADMIN, VALID_ROLES
from app.schemas.response import ApiResponse, CamelModel

PASSWORD_MIN_LEN = 6
PASSWORD_MAX_LEN = 128


def _check_role(v: str | None) -> str | None:
    if v is not None and v not in VALID_ROLES:
        raise ValueError(f"Role must be one of: {', '.join(VALID_ROLES)}")
    return v


def _check_password(v: str | None) -> str | None:
    if v is not None and not (PASSWORD_MIN_LEN <= len(v) <= PASSWORD_MAX_LEN):
        raise ValueError(
            f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters"
        )
    return v


def _check_name(v: str | None) -> str | None:
    if v is None:
        return v
    v = v.strip()
    if not v:
        raise ValueError("Name must not be empty")
    return v


class UserCreate(CamelModel):
    email: str
    password: str
    name: str
    avatar: str | None = None
    role: str = ROLE_ADMIN

    @field_validator("role")
    @classmethod
    def _validate_role(cls, v: str | None) -> str | None:
        return _check_role(v)

    @field_validator("password")
    @classmethod
    def _validate_password(cls, v: str | None) -> str | None:
        return _check_password(v)

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Invalid email address")
        return v

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        return _check_name(v)


class UserUpdate(CamelModel):
    name: str | None = None
    avatar: str | None = None
    role: str | None = None
    is_active: bool | None = None
    password: str | None = None

    @field_validator("role")
    @classmethod
    def _validate_role(cls, v: str | None) -> str | None:
        return _check_role(v)

    @field_validator("password")
    @classmethod
    def _validate_password(cls, v: str | None) -> str | None:
        return _check_password(v)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str | None) -> str | None:
        return _check_name(v)


class UserRead(CamelModel):
    """Public projection of a user: never carries the hash or refresh tokens.

    Frozen, because the request guard hands the same instance to handlers
    as the caller's identity.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    email: str
    name: str
    avatar: str | None = None
    role: str
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime | None = None


CurrentUser = UserRead


class UserStats(CamelModel):
    """Account counts shown above the admin user list."""

    by_role: dict[str, int]
    active_users: int
    today_logins: int


class UserListResponse(ApiResponse[list[UserRead]]):
    stats: UserStats | None = None
