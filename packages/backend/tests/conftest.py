"""Test fixtures — a throwaway SQLite database per test.

Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own SQLite file under tmp_path, tables created with
   create_all (foreign keys on, so cascades behave like PostgreSQL)
2. The app's get_db is overridden to open a session on that database per
   request, exactly like production does
3. Users are inserted directly and authenticated with real access tokens,
   so tests never pay for a signup + login round trip

TEAMCOLLAB_DATABASE_URL is pointed at an in-memory database before the app
is imported, so nothing ever touches a real server.
"""

import os

os.environ["TEAMCOLLAB_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

import uuid

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from teamcollab.auth.dependencies import CurrentIdentity, get_current_user
from teamcollab.auth.jwt import create_access_token
from teamcollab.auth.password import hash_password
from teamcollab.db.engine import build_engine, create_tables, get_db
from teamcollab.db.models import User
from teamcollab.main import app

PASSWORD = "password123"
# Hashed once; bcrypt at 12 rounds is too slow to repeat per user.
PASSWORD_HASH = hash_password(PASSWORD)


class Account:
    """A user row plus ready-to-use credentials."""

    def __init__(self, user: User):
        self.id = user.id
        self.email = user.email
        self.nickname = user.nickname
        self.role = user.role

    @property
    def token(self) -> str:
        return create_access_token(str(self.id), self.email, self.role)

    @property
    def headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"}

    @property
    def identity(self) -> CurrentIdentity:
        return CurrentIdentity(user_id=self.id, email=self.email, role=self.role)


@pytest_asyncio.fixture()
async def engine(tmp_path):
    """Fresh database file per test."""
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_tables(eng)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture()
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def make_user(session_factory):
    """Factory: `await make_user("bob")` → Account."""

    async def _make(
        nickname: str | None = None,
        role: str = "member",
        email: str | None = None,
        is_active: bool = True,
    ) -> Account:
        nickname = nickname or f"user-{uuid.uuid4().hex[:6]}"
        email = email or f"{nickname.lower()}-{uuid.uuid4().hex[:6]}@example.com"
        async with session_factory() as db:
            user = User(
                email=email,
                password_hash=PASSWORD_HASH,
                nickname=nickname,
                role=role,
                is_active=is_active,
            )
            db.add(user)
            await db.commit()
            return Account(user)

    return _make


@pytest_asyncio.fixture()
async def alice(make_user):
    return await make_user("Alice")


def _override_db(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    return override_get_db


@pytest_asyncio.fixture()
async def client(session_factory, alice):
    """HTTP client with get_db and auth overridden — every request is Alice.

    Tests that need several users send real tokens through
    `unauthenticated_client` instead.
    """
    app.dependency_overrides[get_db] = _override_db(session_factory)
    app.dependency_overrides[get_current_user] = lambda: alice.identity

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def unauthenticated_client(session_factory):
    """HTTP client WITHOUT auth override — requests carry real JWTs.

    Only get_db is overridden (for isolation); the Bearer token pipeline,
    role checks included, runs for real.
    """
    app.dependency_overrides[get_db] = _override_db(session_factory)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
