"""Auth service — signup, login, refresh, logout.

Refresh tokens are JWTs *and* database rows. A token only works while its
row exists, so logout and admin deactivation revoke sessions by deleting
rows. Login replaces every previous row for the user (one live session).
"""

import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from teamcollab.auth.jwt import (
    TokenError,
    create_access_token,
    create_refresh_token,
    verify_refresh_token,
)
from teamcollab.auth.password import hash_password, verify_password
from teamcollab.db.models import RefreshToken, User, as_utc
from teamcollab.errors import AuthenticationError, ConflictError

logger = structlog.get_logger()

_BAD_CREDENTIALS = "Invalid email or password"
_BAD_REFRESH = "Invalid refresh token"


def issue_access_token(user: User) -> str:
    return create_access_token(str(user.id), user.email, user.role)


class AuthService:
    """Business logic for accounts and sessions."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def signup(self, email: str, password: str, nickname: str) -> User:
        existing = await self.db.execute(select(User.id).where(User.email == email))
        if existing.first():
            raise ConflictError("Email already registered")

        user = User(
            email=email,
            password_hash=hash_password(password),
            nickname=nickname,
        )
        self.db.add(user)
        await self.db.commit()
        logger.info("auth.signup", user_id=str(user.id))
        return user

    async def login(self, email: str, password: str) -> tuple[User, str, str]:
        """Returns (user, access_token, refresh_token).

        Unknown email, inactive account and wrong password all fail with
        the same message.
        """
        result = await self.db.execute(select(User).where(User.email == email))
        user = result.scalars().first()

        if (
            not user
            or not user.is_active
            or not verify_password(password, user.password_hash)
        ):
            logger.info("auth.login_failed", email=email)
            raise AuthenticationError(_BAD_CREDENTIALS)

        user.last_login = datetime.now(timezone.utc)

        refresh_token, expires_at = create_refresh_token(str(user.id))
        await self.db.execute(
            delete(RefreshToken).where(RefreshToken.user_id == user.id)
        )
        self.db.add(
            RefreshToken(token=refresh_token, user_id=user.id, expires_at=expires_at)
        )
        await self.db.commit()

        logger.info("auth.login", user_id=str(user.id))
        return user, issue_access_token(user), refresh_token

    async def refresh(self, token: str) -> tuple[User, str]:
        """Exchange a stored refresh token for a new access token."""
        result = await self.db.execute(
            select(RefreshToken)
            .where(RefreshToken.token == token)
            .options(selectinload(RefreshToken.user))
        )
        stored = result.scalars().first()
        if not stored:
            raise AuthenticationError(_BAD_REFRESH)

        if as_utc(stored.expires_at) < datetime.now(timezone.utc):
            await self.db.delete(stored)
            await self.db.commit()
            raise AuthenticationError("Refresh token has expired")

        user = stored.user
        if not user.is_active:
            raise AuthenticationError("User account is inactive")

        try:
            verify_refresh_token(token)
        except TokenError as e:
            logger.info("auth.refresh_rejected", user_id=str(user.id), error=str(e))
            await self.db.delete(stored)
            await self.db.commit()
            raise AuthenticationError(_BAD_REFRESH)

        return user, issue_access_token(user)

    async def logout(self, user_id: uuid.UUID) -> int:
        """Delete all of the user's refresh tokens. Returns how many."""
        result = await self.db.execute(
            delete(RefreshToken).where(RefreshToken.user_id == user_id)
        )
        await self.db.commit()
        logger.info("auth.logout", user_id=str(user_id), revoked=result.rowcount)
        return result.rowcount


# ─── Seeding ────────────────────────────────────────────

DEFAULT_USERS = (
    ("admin@example.com", "Administrator", "admin"),
    ("test@example.com", "Test User", "member"),
)
DEFAULT_PASSWORD = "password123"


async def seed_default_users(db: AsyncSession, password: str = DEFAULT_PASSWORD) -> list[str]:
    """Create the default admin and test accounts if missing. Returns created emails."""
    created = []
    for email, nickname, role in DEFAULT_USERS:
        exists = await db.execute(select(User.id).where(User.email == email))
        if exists.first():
            continue
        db.add(
            User(
                email=email,
                password_hash=hash_password(password),
                nickname=nickname,
                role=role,
            )
        )
        created.append(email)
    await db.commit()
    if created:
        logger.info("auth.seeded_users", emails=created)
    return created
