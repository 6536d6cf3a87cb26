"""
User management endpoints (admin only).

Listing is open to both admin roles; creating, editing and deactivating
accounts is reserved for ``super_admin``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import authorize, get_db
from app.core.exceptions import BadRequestError, DuplicateResourceError, NotFoundError
from app.models.user import ROLE_ADMIN, ROLE_SUPER_ADMIN, VALID_ROLES, User
from app.schemas.response import ApiResponse, pagination_meta
from app.schemas.user import (
    CurrentUser,
    UserCreate,
    UserListResponse,
    UserRead,
    UserStats,
    UserUpdate,
)
from app.services.credential_store import CredentialStore

router = APIRouter(prefix="/users", tags=["users"])
logger = logging.getLogger(__name__)

require_admin = authorize(ROLE_ADMIN, ROLE_SUPER_ADMIN)
require_super_admin = authorize(ROLE_SUPER_ADMIN)


async def _get_user_or_404(store: CredentialStore, user_id: int) -> User:
    user = await store.get_by_id(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def _user_stats(db: AsyncSession) -> UserStats:
    """Counts across all accounts, independent of the list filters."""
    by_role = dict.fromkeys(VALID_ROLES, 0)
    rows = await db.execute(select(User.role, func.count(User.id)).group_by(User.role))
    for role, count in rows.all():
        by_role[role] = count

    active = await db.scalar(select(func.count(User.id)).where(User.is_active.is_(True)))
    midnight = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    today = await db.scalar(select(func.count(User.id)).where(User.last_login_at >= midnight))
    return UserStats(by_role=by_role, active_users=active or 0, today_logins=today or 0)


@router.get("", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: str | None = Query(None, max_length=200),
    role: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    _admin: CurrentUser = Depends(require_admin),
) -> UserListResponse:
    """List accounts, most recent login first."""
    filters = []
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        filters.append(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
    if role:
        if role not in VALID_ROLES:
            raise BadRequestError(f"Role must be one of: {', '.join(VALID_ROLES)}")
        filters.append(User.role == role)

    total = await db.scalar(select(func.count(User.id)).where(*filters))
    result = await db.execute(
        select(User)
        .where(*filters)
        .order_by(User.last_login_at.is_(None), User.last_login_at.desc(), User.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    users = [UserRead.model_validate(u) for u in result.scalars().all()]
    return UserListResponse(
        data=users,
        meta=pagination_meta(total or 0, page, limit),
        stats=await _user_stats(db),
    )


@router.post("", response_model=ApiResponse[UserRead], status_code=201)
async def create_user(
    body: UserCreate,
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(require_super_admin),
) -> ApiResponse[UserRead]:
    """Create a new admin account (super_admin only)."""
    store = CredentialStore(db)
    if await store.get_by_email(body.email) is not None:
        raise DuplicateResourceError("email already exists")

    user = User(
        email=body.email,
        name=body.name,
        avatar=body.avatar,
        role=body.role,
        is_active=True,
    )
    user.set_password(body.password)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("User %s created by %s", user.email, admin.email)
    return ApiResponse[UserRead](data=UserRead.model_validate(user), message="User created")


@router.patch("/{user_id}", response_model=ApiResponse[UserRead])
async def update_user(
    user_id: int,
    body: UserUpdate,
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(require_super_admin),
) -> ApiResponse[UserRead]:
    """Edit profile fields, role, activation or password (super_admin only)."""
    store = CredentialStore(db)
    user = await _get_user_or_404(store, user_id)
    # Only avatar may be cleared; null for any other field means "unchanged"
    changes = {
        k: v
        for k, v in body.model_dump(exclude_unset=True).items()
        if v is not None or k == "avatar"
    }

    if user.id == admin.id and (
        changes.get("is_active") is False
        or changes.get("role", user.role) != user.role
    ):
        raise BadRequestError("You cannot demote or deactivate your own account")

    password = changes.pop("password", None)
    for field, value in changes.items():
        setattr(user, field, value)
    password_changed = password is not None and user.set_password(password)

    await db.commit()
    await db.refresh(user)

    if changes.get("is_active") is False or password_changed:
        # Stored sessions must not outlive a deactivation or password reset
        await store.revoke_all_refresh_tokens(user.id)

    logger.info("User %s updated by %s: %s", user.email, admin.email, sorted(changes))
    return ApiResponse[UserRead](data=UserRead.model_validate(user))


@router.delete("/{user_id}", response_model=ApiResponse[UserRead])
async def deactivate_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(require_super_admin),
) -> ApiResponse[UserRead]:
    """Soft-delete: mark the account inactive and revoke its refresh tokens."""
    if user_id == admin.id:
        raise BadRequestError("You cannot deactivate your own account")

    store = CredentialStore(db)
    user = await _get_user_or_404(store, user_id)
    user.is_active = False
    await db.commit()
    await store.revoke_all_refresh_tokens(user.id)
    await db.refresh(user)

    logger.info("User %s deactivated by %s", user.email, admin.email)
    return ApiResponse[UserRead](data=UserRead.model_validate(user), message="User deactivated")
