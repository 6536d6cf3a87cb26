"""Tests for the admin user-management endpoints."""

import pytest
from httpx import AsyncClient

from app.models.user import ROLE_ADMIN, ROLE_SUPER_ADMIN
from app.services.credential_store import CredentialStore
from conftest import API, PASSWORD, TestingSessionLocal, bearer, login


@pytest.fixture
async def root_headers(async_client: AsyncClient, super_admin) -> dict[str, str]:
    tokens = await login(async_client, super_admin.email)
    return bearer(tokens["token"])


@pytest.mark.asyncio
async def test_list_users_paginates(async_client, make_user, root_headers):
    for i in range(3):
        await make_user(email=f"staff{i}@example.com", name=f"Staff {i}")

    resp = await async_client.get(f"{API}/users?page=1&limit=2", headers=root_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert len(body["data"]) == 2
    assert body["meta"] == {
        "total": 4,
        "page": 1,
        "limit": 2,
        "totalPages": 2,
        "hasNext": True,
        "hasPrev": False,
    }
    # The super admin just logged in, so sorts first
    assert body["data"][0]["role"] == ROLE_SUPER_ADMIN


@pytest.mark.asyncio
async def test_list_users_search_and_role_filter(async_client, make_user, root_headers):
    await make_user(email="maria@example.com", name="Maria Santos")
    await make_user(email="juan@example.com", name="Juan Cruz")

    resp = await async_client.get(f"{API}/users?search=santos", headers=root_headers)
    assert [u["email"] for u in resp.json()["data"]] == ["maria@example.com"]

    resp = await async_client.get(f"{API}/users?role={ROLE_ADMIN}", headers=root_headers)
    assert {u["email"] for u in resp.json()["data"]} == {"maria@example.com", "juan@example.com"}

    resp = await async_client.get(f"{API}/users?role=owner", headers=root_headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_plain_admin_can_list_but_not_create(async_client, admin_user):
    headers = bearer((await login(async_client, admin_user.email))["token"])

    assert (await async_client.get(f"{API}/users", headers=headers)).status_code == 200

    resp = await async_client.post(
        f"{API}/users",
        json={"email": "new@example.com", "password": PASSWORD, "name": "New"},
        headers=headers,
    )
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "INSUFFICIENT_PERMISSIONS"


@pytest.mark.asyncio
async def test_create_user_then_login(async_client, root_headers):
    resp = await async_client.post(
        f"{API}/users",
        json={"email": " New@Example.com ", "password": PASSWORD, "name": "Newbie"},
        headers=root_headers,
    )
    assert resp.status_code == 201
    created = resp.json()["data"]
    assert created["email"] == "new@example.com"
    assert created["role"] == ROLE_ADMIN

    tokens = await login(async_client, "new@example.com")
    assert tokens["user"]["id"] == created["id"]


@pytest.mark.asyncio
async def test_create_duplicate_email(async_client, admin_user, root_headers):
    resp = await async_client.post(
        f"{API}/users",
        json={"email": admin_user.email, "password": PASSWORD, "name": "Dup"},
        headers=root_headers,
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "DUPLICATE_RESOURCE"


@pytest.mark.asyncio
async def test_create_user_rejects_unknown_role(async_client, root_headers):
    resp = await async_client.post(
        f"{API}/users",
        json={"email": "x@example.com", "password": PASSWORD, "name": "X", "role": "owner"},
        headers=root_headers,
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_update_user_password_revokes_sessions(async_client, admin_user, root_headers):
    tokens = await login(async_client, admin_user.email)

    resp = await async_client.patch(
        f"{API}/users/{admin_user.id}",
        json={"password": "brand-new-pass", "name": "Renamed"},
        headers=root_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["name"] == "Renamed"

    refreshed = await async_client.post(
        f"{API}/auth/refresh", json={"refreshToken": tokens["refreshToken"]}
    )
    assert refreshed.status_code == 401
    await login(async_client, admin_user.email, "brand-new-pass")


@pytest.mark.asyncio
async def test_update_role(async_client, admin_user, root_headers):
    resp = await async_client.patch(
        f"{API}/users/{admin_user.id}", json={"role": ROLE_SUPER_ADMIN}, headers=root_headers
    )
    assert resp.json()["data"]["role"] == ROLE_SUPER_ADMIN


@pytest.mark.asyncio
async def test_cannot_demote_self(async_client, super_admin, root_headers):
    resp = await async_client.patch(
        f"{API}/users/{super_admin.id}", json={"role": ROLE_ADMIN}, headers=root_headers
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_deactivate_user(async_client, admin_user, root_headers):
    tokens = await login(async_client, admin_user.email)

    resp = await async_client.delete(f"{API}/users/{admin_user.id}", headers=root_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["isActive"] is False

    async with TestingSessionLocal() as session:
        store = CredentialStore(session)
        assert await store.list_refresh_tokens(admin_user.id) == []
        assert (await store.get_by_id(admin_user.id)) is not None

    me = await async_client.get(f"{API}/auth/me", headers=bearer(tokens["token"]))
    assert me.status_code == 401


@pytest.mark.asyncio
async def test_deactivate_self_refused(async_client, super_admin, root_headers):
    resp = await async_client.delete(f"{API}/users/{super_admin.id}", headers=root_headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_deactivate_missing_user(async_client, root_headers):
    resp = await async_client.delete(f"{API}/users/9999", headers=root_headers)
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "RESOURCE_NOT_FOUND"


@pytest.mark.asyncio
async def test_list_users_includes_stats(async_client, make_user, admin_user, root_headers):
    await make_user(email="off@example.com", is_active=False)
    await login(async_client, admin_user.email)

    resp = await async_client.get(f"{API}/users?role={ROLE_SUPER_ADMIN}", headers=root_headers)
    assert resp.status_code == 200
    # Stats cover every account, not just the filtered page
    assert resp.json()["stats"] == {
        "byRole": {ROLE_ADMIN: 2, ROLE_SUPER_ADMIN: 1},
        "activeUsers": 2,
        "todayLogins": 2,
    }


@pytest.mark.asyncio
async def test_update_rejects_blank_name(async_client, admin_user, root_headers):
    resp = await async_client.patch(
        f"{API}/users/{admin_user.id}", json={"name": "   "}, headers=root_headers
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    resp = await async_client.patch(
        f"{API}/users/{admin_user.id}", json={"name": "  Trimmed  "}, headers=root_headers
    )
    assert resp.json()["data"]["name"] == "Trimmed"


@pytest.mark.asyncio
async def test_unchanged_password_keeps_sessions(async_client, admin_user, root_headers):
    tokens = await login(async_client, admin_user.email)

    resp = await async_client.patch(
        f"{API}/users/{admin_user.id}", json={"password": PASSWORD}, headers=root_headers
    )
    assert resp.status_code == 200

    refreshed = await async_client.post(
        f"{API}/auth/refresh", json={"refreshToken": tokens["refreshToken"]}
    )
    assert refreshed.status_code == 200
