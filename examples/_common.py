"""
Shared helpers for the teamcollab example scripts.

Handles the health check and signup + login so each example can focus on
its own workflow.
"""

import sys
import uuid

import httpx

BASE = "http://localhost:4000/api/v1"
PASSWORD = "demo-password-123"


def check_backend() -> None:
    """Verify the backend is reachable and its database is up."""
    try:
        resp = httpx.get(f"{BASE}/health", timeout=5)
    except httpx.ConnectError:
        print(f"ERROR: Backend not reachable at {BASE}")
        print("Start it with:  teamcollab serve --reload")
        sys.exit(1)

    if resp.status_code != 200:
        print(f"ERROR: Health check returned {resp.status_code}")
        sys.exit(1)

    health = resp.json()
    print(f"Backend health: {health['status']}")
    print(f"  Database: {'✓' if health['database'] == 'ok' else '✗'}")
    print(f"  Redis:    {'✓' if health['redis'] == 'ok' else '✗ (local delivery only)'}")

    if health["database"] != "ok":
        print("\nERROR: Database is not connected. Check TEAMCOLLAB_DATABASE_URL")
        sys.exit(1)


def signup_and_login(nickname: str) -> dict:
    """Create a fresh account and log in.

    Uses a unique email per run so examples can be re-run against the same
    database. Returns the login response (user + tokens).
    """
    email = f"{nickname.lower()}-{uuid.uuid4().hex[:8]}@example.com"

    resp = httpx.post(
        f"{BASE}/auth/signup",
        json={"email": email, "password": PASSWORD, "nickname": nickname},
        timeout=10,
    )
    if resp.status_code != 201:
        print(f"ERROR: Signup failed: {resp.status_code} {resp.text}")
        sys.exit(1)

    resp = httpx.post(
        f"{BASE}/auth/login",
        json={"email": email, "password": PASSWORD},
        timeout=10,
    )
    if resp.status_code != 200:
        print(f"ERROR: Login failed: {resp.status_code} {resp.text}")
        sys.exit(1)
    return resp.json()


def create_client(nickname: str) -> tuple[httpx.Client, dict]:
    """Sign up `nickname` and return (authenticated client, user)."""
    session = signup_and_login(nickname)
    client = httpx.Client(
        base_url=BASE,
        timeout=10,
        headers={"Authorization": f"Bearer {session['access_token']}"},
    )
    return client, session["user"]
