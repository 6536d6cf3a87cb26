"""
User model — portal admin accounts, credentials & role-based access control.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from app.core.security import get_password_hash, verify_password
from app.db.base import Base

ROLE_ADMIN = "admin"
ROLE_SUPER_ADMIN = "super_admin"
VALID_ROLES = (ROLE_ADMIN, ROLE_SUPER_ADMIN)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    email: str = Column(String(320), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    hashed_password: str = Column(String(128), nullable=False)  # type: ignore[assignment]
    name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    avatar: str | None = Column(String(1024), nullable=True)  # type: ignore[assignment]
    role: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default=ROLE_ADMIN,
        server_default=ROLE_ADMIN,
    )  # admin | super_admin
    is_active: bool = Column(Boolean, default=True, server_default="true", nullable=False)  # type: ignore[assignment]
    last_login_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(DateTime(timezone=True), default=_utcnow)  # type: ignore[assignment]
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
    )

    @staticmethod
    def normalize_email(email: str) -> str:
        return email.strip().lower()

    def set_password(self, plain: str) -> bool:
        """Hash and store ``plain``; returns False (no re-hash) if it is unchanged."""
        if self.hashed_password and verify_password(plain, self.hashed_password):
            return False
        self.hashed_password = get_password_hash(plain)
        return True

    def verify_password(self, candidate: str) -> bool:
        return verify_password(candidate, self.hashed_password)
