"""
Shared test fixtures for the Portal API test suite.

Async throughout (aiosqlite + AsyncSession).
"""

import os
import sys
from collections.abc import AsyncGenerator, Awaitable, Callable

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ACCESS_TOKEN_SECRET"] = "test-access-secret"
os.environ["REFRESH_TOKEN_SECRET"] = "test-refresh-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api.v1.deps import get_db
from app.db.base import Base
from app.main import app
from app.models.user import ROLE_ADMIN, ROLE_SUPER_ADMIN, User

API = "/api/v1"
PASSWORD = "correct-horse"

# A separate in-memory engine shared by the app (via dependency override)
# and by tests that query the database directly
test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def setup_db():
    """Create all tables before usage and drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestingSessionLocal() as session:
        yield session


app.dependency_overrides[get_db] = _override_get_db


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app (lifespan not run)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with TestingSessionLocal() as session:
        yield session


# ── Users ───────────────────────────────────────────────────────────
@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    async def _make_user(
        email: str = "u1@example.com",
        password: str = PASSWORD,
        role: str = ROLE_ADMIN,
        is_active: bool = True,
        name: str = "User One",
    ) -> User:
        user = User(email=email, name=name, role=role, is_active=is_active)
        user.set_password(password)
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
async def admin_user(make_user) -> User:
    return await make_user()


@pytest.fixture
async def super_admin(make_user) -> User:
    return await make_user(
        email="root@example.com", role=ROLE_SUPER_ADMIN, name="Root Admin"
    )


async def login(client: AsyncClient, email: str, password: str = PASSWORD) -> dict:
    """POST /auth/login and return the ``data`` block of a successful response."""
    resp = await client.post(f"{API}/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
