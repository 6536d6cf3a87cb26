"""
Credential store — users' password hashes and their active refresh tokens.

Refresh-token writes are single ``INSERT`` / ``DELETE`` statements against
``refresh_tokens`` rather than read-modify-write of a loaded collection, so
two requests for the same user cannot lose each other's update.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import create_access_token, create_refresh_token
from app.models.refresh_token import RefreshToken
from app.models.user import User

logger = logging.getLogger(__name__)


class CredentialStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # ── Lookups ─────────────────────────────────────────────────────
    async def get_by_email(self, email: str) -> User | None:
        result = await self.db.execute(
            select(User).where(User.email == User.normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, user_id: int) -> User | None:
        return await self.db.get(User, user_id)

    # ── Token issuance ──────────────────────────────────────────────
    def issue_access_token(self, user: User) -> str:
        return create_access_token(user.id, email=user.email, role=user.role)

    def issue_refresh_token(self, user: User) -> str:
        """Sign a refresh token and stage its record on the session.

        The token only becomes usable for ``/refresh`` once the caller
        commits.
        """
        token = create_refresh_token(user.id)
        self.db.add(
            RefreshToken(
                user_id=user.id,
                token=token,
                created_at=datetime.now(timezone.utc),
            )
        )
        return token

    def record_login(self, user: User) -> None:
        user.last_login_at = datetime.now(timezone.utc)

    # ── Refresh-token collection ────────────────────────────────────
    async def has_refresh_token(self, user_id: int, token: str) -> bool:
        result = await self.db.execute(
            select(RefreshToken.id)
            .where(RefreshToken.user_id == user_id, RefreshToken.token == token)
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def list_refresh_tokens(self, user_id: int) -> list[RefreshToken]:
        result = await self.db.execute(
            select(RefreshToken)
            .where(RefreshToken.user_id == user_id)
            .order_by(RefreshToken.id)
        )
        return list(result.scalars().all())

    async def prune_expired_refresh_tokens(self, user_id: int, max_age: timedelta) -> int:
        """Delete the user's refresh tokens created before ``now - max_age``."""
        cutoff = datetime.now(timezone.utc) - max_age
        result = await self.db.execute(
            delete(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.created_at < cutoff,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        if result.rowcount:
            logger.info("Pruned %d expired refresh token(s) for user %s", result.rowcount, user_id)
        return result.rowcount or 0

    async def revoke_refresh_token(self, user_id: int, token: str) -> int:
        """Delete one refresh token by exact value. Absent tokens are a no-op."""
        result = await self.db.execute(
            delete(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.token == token,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount or 0

    async def revoke_all_refresh_tokens(self, user_id: int) -> int:
        result = await self.db.execute(
            delete(RefreshToken)
            .where(RefreshToken.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount or 0
