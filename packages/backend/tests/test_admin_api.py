"""Admin API tests.

Tests cover:
1. Role gate (401 without token, 403 for non-admins)
2. Stats, user listing with filters, status and role changes
3. Workspace listing and deletion
4. Cleanup, activity log, backup snapshot
"""

import uuid
from datetime import timedelta

import pytest
import pytest_asyncio
from sqlalchemy import select, update

from conftest import PASSWORD
from teamcollab.auth.jwt import create_refresh_token
from teamcollab.db.models import Friend, RefreshToken, utcnow


@pytest_asyncio.fixture()
async def admin(make_user):
    return await make_user("Root", role="admin")


@pytest_asyncio.fixture()
async def api(unauthenticated_client, admin):
    """Client that sends the admin's token on every request."""
    unauthenticated_client.headers.update(admin.headers)
    return unauthenticated_client


# ═══════════════════════════════════════════════════════════
# Gate
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_admin_requires_token(unauthenticated_client):
    r = await unauthenticated_client.get("/api/v1/admin/stats")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_admin_rejects_members(unauthenticated_client, alice):
    r = await unauthenticated_client.get("/api/v1/admin/stats", headers=alice.headers)
    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "ADMIN_ACCESS_REQUIRED"


# ═══════════════════════════════════════════════════════════
# Stats + users
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_stats(api, alice):
    await api.post("/api/v1/me/todos", json={"title": "t"}, headers=alice.headers)
    await api.post("/api/v1/workspaces", json={"name": "W"}, headers=alice.headers)

    r = await api.get("/api/v1/admin/stats")
    assert r.status_code == 200
    stats = r.json()
    assert stats["database"]["total_users"] == 2
    assert stats["database"]["total_workspaces"] == 1
    assert stats["database"]["total_personal_todos"] == 1
    assert stats["additional"]["workspaces_this_week"] == 1
    assert "timestamp" in stats


@pytest.mark.asyncio
async def test_list_users(api, alice, make_user):
    await make_user("Sleepy", is_active=False)
    await api.post("/api/v1/me/todos", json={"title": "t"}, headers=alice.headers)

    r = await api.get("/api/v1/admin/users")
    assert r.status_code == 200
    body = r.json()
    assert body["pagination"] == {"total": 3, "page": 1, "limit": 20, "total_pages": 1}
    by_name = {u["nickname"]: u for u in body["users"]}
    assert by_name["Alice"]["todo_count"] == 1
    assert by_name["Alice"]["owned_workspace_count"] == 0

    r = await api.get("/api/v1/admin/users", params={"status": "inactive"})
    assert [u["nickname"] for u in r.json()["users"]] == ["Sleepy"]

    r = await api.get("/api/v1/admin/users", params={"search": "ali"})
    assert [u["nickname"] for u in r.json()["users"]] == ["Alice"]


@pytest.mark.asyncio
async def test_deactivate_user_revokes_sessions(api, alice):
    """Deactivation blocks login and kills the refresh token."""
    tokens = (await api.post(
        "/api/v1/auth/login", json={"email": alice.email, "password": PASSWORD}
    )).json()

    r = await api.patch(f"/api/v1/admin/users/{alice.id}/status", json={"is_active": False})
    assert r.status_code == 200
    assert r.json()["is_active"] is False

    r = await api.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert r.status_code == 401
    r = await api.post(
        "/api/v1/auth/login", json={"email": alice.email, "password": PASSWORD}
    )
    assert r.status_code == 401

    r = await api.patch(f"/api/v1/admin/users/{alice.id}/status", json={"is_active": True})
    assert r.json()["is_active"] is True


@pytest.mark.asyncio
async def test_admin_cannot_deactivate_self(api, admin):
    r = await api.patch(f"/api/v1/admin/users/{admin.id}/status", json={"is_active": False})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_change_role(api, alice, admin):
    r = await api.patch(f"/api/v1/admin/users/{alice.id}/role", json={"role": "manager"})
    assert r.status_code == 200
    assert r.json()["role"] == "manager"

    r = await api.patch(f"/api/v1/admin/users/{alice.id}/role", json={"role": "king"})
    assert r.status_code == 422

    r = await api.patch(f"/api/v1/admin/users/{admin.id}/role", json={"role": "member"})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_unknown_user(api):
    missing = uuid.uuid4()
    r = await api.patch(f"/api/v1/admin/users/{missing}/status", json={"is_active": True})
    assert r.status_code == 404
    r = await api.patch(f"/api/v1/admin/users/{missing}/role", json={"role": "member"})
    assert r.status_code == 404


# ═══════════════════════════════════════════════════════════
# Workspaces
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_list_and_delete_workspaces(api, alice):
    ws = (await api.post(
        "/api/v1/workspaces", json={"name": "Doomed"}, headers=alice.headers
    )).json()

    r = await api.get("/api/v1/admin/workspaces")
    assert r.status_code == 200
    listed = r.json()["workspaces"]
    assert listed[0]["name"] == "Doomed"
    assert listed[0]["owner"]["nickname"] == "Alice"
    assert listed[0]["member_count"] == 0

    r = await api.delete(f"/api/v1/admin/workspaces/{ws['id']}")
    assert r.status_code == 200
    assert r.json()["deleted_workspace"]["name"] == "Doomed"

    r = await api.get(f"/api/v1/workspaces/{ws['id']}", headers=alice.headers)
    assert r.status_code == 404

    r = await api.delete(f"/api/v1/admin/workspaces/{ws['id']}")
    assert r.status_code == 404


# ═══════════════════════════════════════════════════════════
# Maintenance
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_cleanup(api, alice, make_user, session_factory):
    """Expired tokens and month-old blocked friendships are removed."""
    bob = await make_user("Bob")
    token, _ = create_refresh_token(str(alice.id))
    async with session_factory() as db:
        db.add(RefreshToken(
            token=token, user_id=alice.id, expires_at=utcnow() - timedelta(days=1)
        ))
        edge = Friend(user_id=alice.id, friend_id=bob.id, status="blocked")
        db.add(edge)
        await db.commit()
        await db.execute(
            update(Friend)
            .where(Friend.id == edge.id)
            .values(updated_at=utcnow() - timedelta(days=31))
        )
        await db.commit()

    r = await api.post("/api/v1/admin/cleanup")
    assert r.status_code == 200
    assert r.json()["results"] == {"expired_tokens": 1, "blocked_friendships": 1}

    async with session_factory() as db:
        assert (await db.execute(select(Friend))).first() is None


@pytest.mark.asyncio
async def test_activity_log(api, alice):
    await api.post("/api/v1/workspaces", json={"name": "Fresh"}, headers=alice.headers)

    r = await api.get("/api/v1/admin/logs")
    assert r.status_code == 200
    logs = r.json()["logs"]
    assert logs[0]["type"] == "workspace_created"
    assert {e["type"] for e in logs} == {"workspace_created", "user_signup"}

    r = await api.get("/api/v1/admin/logs", params={"limit": 1})
    assert len(r.json()["logs"]) == 1


@pytest.mark.asyncio
async def test_backup_snapshot(api, alice):
    r = await api.post("/api/v1/admin/backup")
    assert r.status_code == 200
    backup = r.json()["backup"]
    assert backup["user_count"] == 2
    assert backup["stats"]["total_users"] == 2
