"""User service — profiles and user search."""

import uuid
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from teamcollab.auth.password import hash_password
from teamcollab.db.models import Friend, User
from teamcollab.errors import BadRequestError

SEARCH_LIMIT = 10
_UNSET = object()


def friendship_between(a: uuid.UUID, b: uuid.UUID):
    """WHERE clause matching the edge between two users in either direction."""
    return or_(
        (Friend.user_id == a) & (Friend.friend_id == b),
        (Friend.user_id == b) & (Friend.friend_id == a),
    )


class UserService:
    """Business logic for user profiles."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def update_profile(
        self,
        user_id: uuid.UUID,
        nickname: Optional[str] = None,
        password: Optional[str] = None,
        avatar=_UNSET,
    ) -> Optional[User]:
        """Apply a partial update. Pass avatar=None to clear the avatar."""
        user = await self.db.get(User, user_id)
        if not user:
            return None

        if nickname:
            user.nickname = nickname
        if password:
            user.password_hash = hash_password(password)
        if avatar is not _UNSET:
            user.avatar = avatar

        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def search(self, user_id: uuid.UUID, q: Optional[str]) -> list[User]:
        """Active users other than the caller whose email or nickname contains q."""
        if not q or len(q) < 2:
            raise BadRequestError("Search query must be at least 2 characters")

        result = await self.db.execute(
            select(User)
            .where(
                User.id != user_id,
                User.is_active.is_(True),
                or_(
                    User.email.icontains(q, autoescape=True),
                    User.nickname.icontains(q, autoescape=True),
                ),
            )
            .order_by(User.nickname)
            .limit(SEARCH_LIMIT)
        )
        return list(result.scalars().all())

    async def public_profile(
        self, viewer_id: uuid.UUID, user_id: uuid.UUID
    ) -> Optional[dict]:
        """Another user's public fields plus the friendship state with the viewer."""
        user = await self.db.get(User, user_id)
        if not user:
            return None

        result = await self.db.execute(
            select(Friend.status).where(friendship_between(viewer_id, user_id))
        )
        status = result.scalars().first()

        return {
            "id": user.id,
            "email": user.email,
            "nickname": user.nickname,
            "avatar": user.avatar,
            "created_at": user.created_at,
            "friendship_status": status,
            "is_friend": status == "accepted",
        }
