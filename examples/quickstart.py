#!/usr/bin/env python3
"""
teamcollab quickstart — two users, one workspace, end to end.

Alice creates a workspace → invites Bob → Bob accepts → they share tasks
and chat → Alice checks her unread counter.
Run with: python examples/quickstart.py

Requires: pip install httpx
Backend must be running: http://localhost:4000
"""

from datetime import datetime, timedelta, timezone

from _common import check_backend, create_client


def main():
    check_backend()

    print("\n1. Signing up Alice and Bob...")
    alice, alice_user = create_client("Alice")
    bob, bob_user = create_client("Bob")
    print(f"   Alice: {alice_user['email']}")
    print(f"   Bob:   {bob_user['email']}")

    # ── Friendship ────────────────────────────────────────────────
    print("\n2. Alice sends Bob a friend request...")
    resp = alice.post("/friends", json={"user_id": bob_user["id"]})
    assert resp.status_code == 201, f"Failed: {resp.text}"
    request = resp.json()
    resp = bob.patch(f"/friends/{request['id']}", json={"relation": "accepted"})
    assert resp.status_code == 200, f"Failed: {resp.text}"
    print("   Bob accepted.")

    # ── Workspace ─────────────────────────────────────────────────
    print("\n3. Alice creates a workspace and invites Bob...")
    resp = alice.post("/workspaces", json={"name": "Launch", "description": "Q3 launch"})
    assert resp.status_code == 201, f"Failed: {resp.text}"
    ws = resp.json()

    resp = alice.post(f"/workspaces/{ws['id']}/members", json={"user_id": bob_user["id"]})
    assert resp.status_code == 201, f"Failed: {resp.text}"
    resp = bob.patch(
        f"/workspaces/{ws['id']}/members/{bob_user['id']}", json={"accepted": True}
    )
    assert resp.status_code == 200, f"Failed: {resp.text}"
    print(f"   Workspace: {ws['name']} ({ws['id'][:8]}...), Bob joined")

    # ── Tasks ─────────────────────────────────────────────────────
    print("\n4. Bob creates tasks...")
    now = datetime.now(timezone.utc)
    for title, department in [("Landing page", "FE"), ("Billing API", "BE"), ("Smoke tests", "QA")]:
        resp = bob.post(f"/workspaces/{ws['id']}/tasks", json={
            "title": title,
            "department": department,
            "start_date": now.isoformat(),
            "due_date": (now + timedelta(days=2)).isoformat(),
        })
        assert resp.status_code == 201, f"Failed: {resp.text}"
        print(f"   [{department}] {title}")

    stats = alice.get(f"/workspaces/{ws['id']}/tasks/stats/summary").json()
    print(f"   Stats: {stats['by_status']['total']} tasks, {stats['upcoming_deadlines']} due soon")

    # ── Chat ──────────────────────────────────────────────────────
    print("\n5. Bob posts in chat...")
    for text in ["Tasks are up", "Ping me if the dates look wrong"]:
        resp = bob.post(f"/chat/workspace/{ws['id']}", json={"content": text})
        assert resp.status_code == 201, f"Failed: {resp.text}"

    unread = alice.get(f"/chat/workspace/{ws['id']}/unread-count").json()
    print(f"   Alice has {unread['unread_count']} unread messages")
    alice.post(f"/chat/workspace/{ws['id']}/read")
    unread = alice.get(f"/chat/workspace/{ws['id']}/unread-count").json()
    print(f"   After reading: {unread['unread_count']}")

    print(f"\n✓ Done. Workspace {ws['id']} has a team, tasks and a conversation.")


if __name__ == "__main__":
    main()
