"""
JWT token signing / verification and password hashing (bcrypt).

Access and refresh tokens are two instances of the same ``TokenCodec``,
each with its own secret, lifetime and ``type`` claim.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from app.core.config import settings
from app.core.exceptions import InvalidTokenError, TokenExpiredError

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)


# ── Passwords ───────────────────────────────────────────────────────
def verify_password(plain: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    try:
        return pwd_context.verify(plain, hashed)
    except (ValueError, TypeError):
        # Unrecognised or corrupt hash
        return False


def dummy_verify_password() -> None:
    """Spend one bcrypt verification on a throwaway hash (unknown accounts)."""
    pwd_context.dummy_verify()


def get_password_hash(plain: str) -> str:
    return pwd_context.hash(plain)


# ── JWT tokens ──────────────────────────────────────────────────────
class TokenCodec:
    """Signs and verifies compact, expiring tokens of one ``kind``."""

    def __init__(
        self,
        secret: str,
        lifetime: timedelta,
        kind: str,
        algorithm: str = "HS256",
    ) -> None:
        self.kind = kind
        self.lifetime = lifetime
        self._secret = secret
        self._algorithm = algorithm

    def sign(self, claims: dict[str, Any], expires_delta: timedelta | None = None) -> str:
        now = datetime.now(timezone.utc)
        payload = dict(claims)
        payload.update(
            {
                "sub": str(claims["sub"]),
                "type": self.kind,
                "jti": uuid.uuid4().hex,
                "iat": now,
                "exp": now + (expires_delta if expires_delta is not None else self.lifetime),
            }
        )
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> dict[str, Any]:
        """Return the payload, or raise ``TokenExpiredError`` / ``InvalidTokenError``."""
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except ExpiredSignatureError as exc:
            raise TokenExpiredError(f"{self.kind.capitalize()} token expired") from exc
        except JWTError as exc:
            raise InvalidTokenError(f"Invalid {self.kind} token") from exc

        if payload.get("type") != self.kind or not payload.get("sub"):
            raise InvalidTokenError(f"Invalid {self.kind} token")
        return payload

    @property
    def expires_in_ms(self) -> int:
        return int(self.lifetime.total_seconds() * 1000)


access_codec = TokenCodec(
    secret=settings.ACCESS_TOKEN_SECRET,
    lifetime=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    kind="access",
    algorithm=settings.ALGORITHM,
)

refresh_codec = TokenCodec(
    secret=settings.REFRESH_TOKEN_SECRET,
    lifetime=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    kind="refresh",
    algorithm=settings.ALGORITHM,
)


def create_access_token(
    subject: str | Any,
    email: str,
    role: str,
    expires_delta: timedelta | None = None,
) -> str:
    return access_codec.sign(
        {"sub": subject, "email": email, "role": role},
        expires_delta=expires_delta,
    )


def create_refresh_token(subject: str | Any, expires_delta: timedelta | None = None) -> str:
    return refresh_codec.sign({"sub": subject}, expires_delta=expires_delta)
