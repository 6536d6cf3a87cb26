"""Pydantic schemas for login / refresh / logout."""

from __future__ import annotations

from pydantic import field_validator

from app.schemas.response import CamelModel
from app.schemas.user import PASSWORD_MAX_LEN, PASSWORD_MIN_LEN, UserRead


class LoginRequest(CamelModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Invalid email address")
        return v

    @field_validator("password")
    @classmethod
    def _password_length(cls, v: str) -> str:
        if not (PASSWORD_MIN_LEN <= len(v) <= PASSWORD_MAX_LEN):
            raise ValueError(
                f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters"
            )
        return v


class RefreshRequest(CamelModel):
    # Optional so a missing token is reported as UNAUTHORIZED, not a 400
    refresh_token: str | None = None


class LogoutRequest(CamelModel):
    refresh_token: str | None = None


class LoginResult(CamelModel):
    token: str
    refresh_token: str
    user: UserRead
    expires_in: int


class RefreshResult(CamelModel):
    token: str
    expires_in: int
