"""
FastAPI dependencies — database session, request guard and role gate.

The guard returns an immutable ``CurrentUser`` that handlers take as a
parameter; nothing is stashed on the request object.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Awaitable, Callable

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    InsufficientPermissionsError,
    InvalidTokenError,
    UnauthorizedError,
)
from app.core.security import access_codec
from app.db.session import async_session_factory
from app.schemas.user import CurrentUser
from app.services.credential_store import CredentialStore
from app.services.session_manager import SessionManager

logger = logging.getLogger(__name__)

# auto_error=False so a missing header goes through our own 401 envelope
bearer_scheme = HTTPBearer(auto_error=False)


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


def get_session_manager(db: AsyncSession = Depends(get_db)) -> SessionManager:
    return SessionManager(db)


# ── Auth dependencies ───────────────────────────────────────────────
async def protect(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """Verify the Bearer access token and load the active user behind it."""
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError()

    try:
        payload = access_codec.verify(credentials.credentials)
        user_id = int(payload["sub"])
    except InvalidTokenError as exc:
        # Expired and forged tokens look the same to the client
        logger.debug("Access token rejected: %s", exc.message)
        raise InvalidTokenError("Not authorized to access this route")
    except (TypeError, ValueError):
        raise InvalidTokenError("Not authorized to access this route")

    user = await CredentialStore(db).get_by_id(user_id)
    if user is None:
        raise UnauthorizedError("User not found")
    if not user.is_active:
        raise UnauthorizedError("Account is deactivated")
    return CurrentUser.model_validate(user)


def authorize(*roles: str) -> Callable[..., Awaitable[CurrentUser]]:
    """Build a dependency admitting only callers whose role is in ``roles``."""
    allowed = frozenset(roles)

    async def _role_gate(current_user: CurrentUser = Depends(protect)) -> CurrentUser:
        if current_user.role not in allowed:
            raise InsufficientPermissionsError()
        return current_user

    return _role_gate
