"""
Session manager — login, refresh, logout and current-user lookup.

Refresh-token lifecycle::

    issued (login) -> active -> revoked (logout)
                             \\-> pruned (older than the prune window)

Refresh tokens are not rotated: the same token keeps minting access tokens
until it is logged out or swept by age.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    InvalidCredentialsError,
    InvalidTokenError,
    TokenExpiredError,
    UnauthorizedError,
)
from app.core.security import access_codec, dummy_verify_password, refresh_codec
from app.schemas.token import LoginResult, RefreshResult
from app.schemas.user import CurrentUser, UserRead
from app.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)


class SessionManager:
    def __init__(
        self,
        db: AsyncSession,
        prune_after: timedelta | None = None,
    ) -> None:
        self.db = db
        self.store = CredentialStore(db)
        self.prune_after = prune_after or timedelta(days=settings.REFRESH_TOKEN_PRUNE_DAYS)

    async def login(self, email: str, password: str) -> LoginResult:
        user = await self.store.get_by_email(email)

        # Unknown email and wrong password are indistinguishable to the client,
        # in response body and in bcrypt work done
        if user is None:
            dummy_verify_password()
            logger.warning("Failed login attempt for %s", email)
            raise InvalidCredentialsError()
        if not user.verify_password(password):
            logger.warning("Failed login attempt for %s", email)
            raise InvalidCredentialsError()

        if not user.is_active:
            logger.warning("Login refused for deactivated account %s", user.email)
            raise UnauthorizedError("Account is deactivated")

        self.store.record_login(user)
        access_token = self.store.issue_access_token(user)
        refresh_token = self.store.issue_refresh_token(user)
        # last_login_at and the new refresh token land in one commit
        await self.db.commit()
        await self.db.refresh(user)

        logger.info("User %s logged in", user.email)
        return LoginResult(
            token=access_token,
            refresh_token=refresh_token,
            user=UserRead.model_validate(user),
            expires_in=access_codec.expires_in_ms,
        )

    async def refresh(self, refresh_token: str | None) -> RefreshResult:
        if not refresh_token:
            raise UnauthorizedError("Refresh token is required")

        try:
            payload = refresh_codec.verify(refresh_token)
        except TokenExpiredError:
            raise TokenExpiredError("Refresh token expired")
        except InvalidTokenError:
            raise UnauthorizedError("Invalid refresh token")

        try:
            user_id = int(payload["sub"])
        except (TypeError, ValueError):
            raise UnauthorizedError("Invalid refresh token")

        user = await self.store.get_by_id(user_id)
        if user is None or not await self.store.has_refresh_token(user.id, refresh_token):
            raise UnauthorizedError("Invalid refresh token")
        if not user.is_active:
            raise UnauthorizedError("Account is deactivated")

        access_token = self.store.issue_access_token(user)
        await self.store.prune_expired_refresh_tokens(user.id, self.prune_after)

        return RefreshResult(token=access_token, expires_in=access_codec.expires_in_ms)

    async def logout(self, identity: CurrentUser, refresh_token: str | None = None) -> None:
        """Revoke ``refresh_token`` for the caller. Never fails."""
        if refresh_token:
            removed = await self.store.revoke_refresh_token(identity.id, refresh_token)
            logger.info("User %s logged out (%d refresh token(s) revoked)", identity.email, removed)
        else:
            logger.info("User %s logged out", identity.email)

    async def get_self(self, identity: CurrentUser) -> UserRead:
        user = await self.store.get_by_id(identity.id)
        if user is None:
            raise UnauthorizedError("User not found")
        return UserRead.model_validate(user)
