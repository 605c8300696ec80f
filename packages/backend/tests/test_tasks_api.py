"""Group task tests.

Tests cover:
1. Task CRUD inside a workspace, date ordering rule
2. Filters, search, pagination
3. Stats (status, department, this week, upcoming deadlines)
4. Bulk status and per-department listing
5. Membership checks and cross-workspace isolation
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

START = "2025-06-01T09:00:00Z"
DUE = "2025-06-05T17:00:00Z"


@pytest_asyncio.fixture()
async def ws(client):
    r = await client.post("/api/v1/workspaces", json={"name": "Apollo"})
    return r.json()


def _url(ws, suffix=""):
    return f"/api/v1/workspaces/{ws['id']}/tasks{suffix}"


async def _create(client, ws, **fields):
    body = {
        "title": "Build login page",
        "department": "FE",
        "start_date": START,
        "due_date": DUE,
        **fields,
    }
    r = await client.post(_url(ws), json=body)
    assert r.status_code == 201, r.text
    return r.json()


def _iso(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


# ═══════════════════════════════════════════════════════════
# CRUD
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_create_task(client, ws):
    task = await _create(client, ws, description="OAuth too")
    assert task["workspace_id"] == ws["id"]
    assert task["status"] == "pending"
    assert task["department"] == "FE"
    assert task["start_date"].startswith("2025-06-01T09:00:00")


@pytest.mark.asyncio
async def test_due_date_must_follow_start(client, ws):
    r = await client.post(_url(ws), json={
        "title": "Backwards", "department": "BE", "start_date": DUE, "due_date": START,
    })
    assert r.status_code == 400
    assert r.json()["detail"] == "due_date must be after start_date"

    r = await client.post(_url(ws), json={
        "title": "Same instant", "department": "BE", "start_date": START, "due_date": START,
    })
    assert r.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize("override", [
    {"department": "OPS"},
    {"status": "done"},
    {"start_date": None},
    {"title": ""},
])
async def test_create_task_validation(client, ws, override):
    body = {"title": "t", "department": "QA", "start_date": START, "due_date": DUE, **override}
    r = await client.post(_url(ws), json=body)
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_get_update_delete(client, ws):
    task = await _create(client, ws)

    r = await client.get(_url(ws, f"/{task['id']}"))
    assert r.status_code == 200
    assert r.json()["title"] == "Build login page"

    r = await client.patch(
        _url(ws, f"/{task['id']}"), json={"status": "in_progress", "department": "BE"}
    )
    assert r.status_code == 200
    assert r.json()["status"] == "in_progress"
    assert r.json()["department"] == "BE"

    r = await client.delete(_url(ws, f"/{task['id']}"))
    assert r.status_code == 204
    assert (await client.get(_url(ws, f"/{task['id']}"))).status_code == 404


@pytest.mark.asyncio
async def test_update_checks_resulting_dates(client, ws):
    """Moving only the due date before the stored start date is rejected."""
    task = await _create(client, ws)
    r = await client.patch(
        _url(ws, f"/{task['id']}"), json={"due_date": "2025-05-01T00:00:00Z"}
    )
    assert r.status_code == 400

    r = await client.patch(
        _url(ws, f"/{task['id']}"), json={"due_date": "2025-06-20T00:00:00Z"}
    )
    assert r.status_code == 200
    assert r.json()["due_date"].startswith("2025-06-20")


@pytest.mark.asyncio
async def test_unknown_task(client, ws):
    missing = uuid.uuid4()
    assert (await client.get(_url(ws, f"/{missing}"))).status_code == 404
    assert (await client.patch(_url(ws, f"/{missing}"), json={})).status_code == 404
    assert (await client.delete(_url(ws, f"/{missing}"))).status_code == 404


@pytest.mark.asyncio
async def test_task_from_other_workspace_is_not_found(client, ws):
    other = (await client.post("/api/v1/workspaces", json={"name": "Gemini"})).json()
    task = await _create(client, other)
    r = await client.get(_url(ws, f"/{task['id']}"))
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_non_member_is_forbidden(unauthenticated_client, alice, make_user):
    bob = await make_user("Bob")
    ws = (await unauthenticated_client.post(
        "/api/v1/workspaces", json={"name": "Private"}, headers=alice.headers
    )).json()

    r = await unauthenticated_client.get(_url(ws), headers=bob.headers)
    assert r.status_code == 403
    r = await unauthenticated_client.post(_url(ws), json={
        "title": "Sneaky", "department": "FE", "start_date": START, "due_date": DUE,
    }, headers=bob.headers)
    assert r.status_code == 403

    r = await unauthenticated_client.get(
        f"/api/v1/workspaces/{uuid.uuid4()}/tasks", headers=bob.headers
    )
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_accepted_member_can_create(unauthenticated_client, alice, make_user):
    bob = await make_user("Bob")
    ws = (await unauthenticated_client.post(
        "/api/v1/workspaces", json={"name": "Shared"}, headers=alice.headers
    )).json()
    await unauthenticated_client.post(
        f"/api/v1/workspaces/{ws['id']}/members",
        json={"user_id": str(bob.id)},
        headers=alice.headers,
    )
    await unauthenticated_client.patch(
        f"/api/v1/workspaces/{ws['id']}/members/{bob.id}",
        json={"accepted": True},
        headers=bob.headers,
    )

    r = await unauthenticated_client.post(_url(ws), json={
        "title": "Bob's task", "department": "QA", "start_date": START, "due_date": DUE,
    }, headers=bob.headers)
    assert r.status_code == 201


# ═══════════════════════════════════════════════════════════
# Listing
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_list_filters_and_search(client, ws):
    await _create(client, ws, title="Login form", department="FE")
    await _create(client, ws, title="Login API", department="BE", status="completed")
    await _create(client, ws, title="Regression", department="QA",
                  description="covers login")

    r = await client.get(_url(ws), params={"department": "BE"})
    assert [t["title"] for t in r.json()["tasks"]] == ["Login API"]

    r = await client.get(_url(ws), params={"status": "pending"})
    assert sorted(t["title"] for t in r.json()["tasks"]) == ["Login form", "Regression"]

    r = await client.get(_url(ws), params={"search": "login"})
    assert r.json()["pagination"]["total"] == 3

    r = await client.get(_url(ws), params={"department": "ops"})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_list_pagination(client, ws):
    for i in range(3):
        await _create(client, ws, title=f"task {i}")
    r = await client.get(_url(ws), params={"limit": 2})
    body = r.json()
    assert [t["title"] for t in body["tasks"]] == ["task 2", "task 1"]
    assert body["pagination"] == {"total": 3, "limit": 2, "offset": 0, "has_more": True}


@pytest.mark.asyncio
async def test_list_date_window(client, ws):
    await _create(client, ws, title="june")
    await _create(client, ws, title="august",
                  start_date="2025-08-01T00:00:00Z", due_date="2025-08-10T00:00:00Z")

    r = await client.get(_url(ws), params={"from": "2025-07-01T00:00:00Z"})
    assert [t["title"] for t in r.json()["tasks"]] == ["august"]
    r = await client.get(_url(ws), params={"to": "2025-07-01T00:00:00Z"})
    assert [t["title"] for t in r.json()["tasks"]] == ["june"]


# ═══════════════════════════════════════════════════════════
# Stats, bulk, departments
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_stats_summary(client, ws):
    now = datetime.now(timezone.utc)
    await _create(client, ws, department="FE", status="completed")
    await _create(client, ws, department="BE", status="in_progress")
    # Due tomorrow and still open → upcoming
    await _create(client, ws, department="BE",
                  start_date=_iso(now - timedelta(days=1)),
                  due_date=_iso(now + timedelta(days=1)))
    # Due in a week → not upcoming
    await _create(client, ws, department="QA",
                  start_date=_iso(now), due_date=_iso(now + timedelta(days=7)))

    r = await client.get(_url(ws, "/stats/summary"))
    assert r.status_code == 200
    stats = r.json()
    assert stats["by_status"] == {
        "pending": 2, "in_progress": 1, "completed": 1, "total": 4,
    }
    assert stats["by_department"] == {"FE": 1, "BE": 2, "QA": 1}
    assert stats["week_completed"] == 1
    assert stats["upcoming_deadlines"] == 1


@pytest.mark.asyncio
async def test_bulk_status(client, ws):
    ids = [(await _create(client, ws, title=f"t{i}"))["id"] for i in range(3)]
    other = (await client.post("/api/v1/workspaces", json={"name": "Other"})).json()
    foreign = (await _create(client, other))["id"]

    r = await client.patch(
        _url(ws, "/bulk/status"), json={"task_ids": ids[:2] + [foreign], "status": "completed"}
    )
    assert r.status_code == 200
    assert r.json()["updated_count"] == 2

    r = await client.get(_url(ws), params={"status": "completed"})
    assert r.json()["pagination"]["total"] == 2


@pytest.mark.asyncio
async def test_by_department(client, ws):
    await _create(client, ws, title="late", department="QA", due_date="2025-06-30T00:00:00Z")
    await _create(client, ws, title="soon", department="QA")
    await _create(client, ws, title="done", department="QA", status="completed")
    await _create(client, ws, title="frontend", department="FE")

    r = await client.get(_url(ws, "/departments/QA"))
    assert r.status_code == 200
    assert [t["title"] for t in r.json()] == ["done", "soon", "late"]

    r = await client.get(_url(ws, "/departments/QA"), params={"status": "pending", "limit": 1})
    assert [t["title"] for t in r.json()] == ["soon"]


@pytest.mark.asyncio
async def test_by_unknown_department(client, ws):
    r = await client.get(_url(ws, "/departments/OPS"))
    assert r.status_code == 400
