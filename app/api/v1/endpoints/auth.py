"""
Auth endpoints — login, token refresh, logout & current user.
"""

from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.api.v1.deps import get_session_manager, protect
from app.core.config import settings
from app.schemas.response import ApiResponse
from app.schemas.token import (
    LoginRequest,
    LoginResult,
    LogoutRequest,
    RefreshRequest,
    RefreshResult,
)
from app.schemas.user import CurrentUser, UserRead
from app.services.session_manager import SessionManager

# Rate limiter — keyed by client IP
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=ApiResponse[LoginResult])
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    sessions: SessionManager = Depends(get_session_manager),
) -> ApiResponse[LoginResult]:
    """Exchange email + password for an access token and a refresh token."""
    result = await sessions.login(body.email, body.password)
    return ApiResponse[LoginResult](data=result)


@router.post("/refresh", response_model=ApiResponse[RefreshResult])
@limiter.limit(settings.REFRESH_RATE_LIMIT)
async def refresh(
    request: Request,
    body: RefreshRequest | None = None,
    sessions: SessionManager = Depends(get_session_manager),
) -> ApiResponse[RefreshResult]:
    """Mint a new access token from a stored, unexpired refresh token."""
    result = await sessions.refresh(body.refresh_token if body else None)
    return ApiResponse[RefreshResult](data=result)


@router.post("/logout", response_model=ApiResponse[None])
async def logout(
    body: LogoutRequest | None = None,
    current_user: CurrentUser = Depends(protect),
    sessions: SessionManager = Depends(get_session_manager),
) -> ApiResponse[None]:
    """Revoke the given refresh token. Succeeds even if it is already gone."""
    await sessions.logout(current_user, body.refresh_token if body else None)
    return ApiResponse[None](message="Logged out successfully")


@router.get("/me", response_model=ApiResponse[UserRead])
async def read_current_user(
    current_user: CurrentUser = Depends(protect),
    sessions: SessionManager = Depends(get_session_manager),
) -> ApiResponse[UserRead]:
    """Return profile of the currently authenticated user."""
    return ApiResponse[UserRead](data=await sessions.get_self(current_user))
