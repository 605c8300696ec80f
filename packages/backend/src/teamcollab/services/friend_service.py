"""Friend service — friend requests and relationship state.

An edge is directed (requester → recipient) but at most one edge exists per
pair of users. Only the recipient can accept; either party can block or
delete.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from teamcollab.db.models import Friend, User
from teamcollab.errors import BadRequestError, NotFoundError, PermissionDeniedError
from teamcollab.services.user_service import friendship_between

logger = structlog.get_logger()


class FriendService:
    """Business logic for friendships."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _edges(self):
        return (
            select(Friend)
            .options(selectinload(Friend.user), selectinload(Friend.friend))
            .execution_options(populate_existing=True)
        )

    async def _get_edge(self, edge_id: uuid.UUID) -> Optional[Friend]:
        result = await self.db.execute(self._edges().where(Friend.id == edge_id))
        return result.scalars().first()

    async def _get_own_edge(self, user_id: uuid.UUID, edge_id: uuid.UUID) -> Friend:
        """Load an edge the caller is a party to, else 404."""
        result = await self.db.execute(
            self._edges().where(
                Friend.id == edge_id,
                or_(Friend.user_id == user_id, Friend.friend_id == user_id),
            )
        )
        edge = result.scalars().first()
        if not edge:
            raise NotFoundError("Friendship not found")
        return edge

    async def send_request(
        self, user_id: uuid.UUID, target_id: Optional[uuid.UUID]
    ) -> Friend:
        if not target_id or target_id == user_id:
            raise BadRequestError("Invalid user id")

        if not await self.db.get(User, target_id):
            raise NotFoundError("User not found")

        existing = await self.db.execute(
            select(Friend.id).where(friendship_between(user_id, target_id))
        )
        if existing.first():
            raise BadRequestError("Friendship or request already exists")

        edge = Friend(user_id=user_id, friend_id=target_id)
        self.db.add(edge)
        await self.db.commit()
        logger.info("friends.requested", user_id=str(user_id), target_id=str(target_id))
        return await self._get_edge(edge.id)

    async def list_friendships(
        self, user_id: uuid.UUID, status: Optional[str] = None
    ) -> list[dict]:
        """Every edge involving the caller, seen from the caller's side."""
        q = self._edges().where(
            or_(Friend.user_id == user_id, Friend.friend_id == user_id)
        )
        if status:
            q = q.where(Friend.status == status)
        result = await self.db.execute(q.order_by(Friend.created_at.desc()))

        views = []
        for edge in result.scalars().all():
            is_initiator = edge.user_id == user_id
            views.append({
                "id": edge.id,
                "user": edge.friend if is_initiator else edge.user,
                "status": edge.status,
                "is_initiator": is_initiator,
                "created_at": edge.created_at,
                "updated_at": edge.updated_at,
            })
        return views

    async def update_relation(
        self, user_id: uuid.UUID, edge_id: uuid.UUID, relation: str
    ) -> Friend:
        edge = await self._get_own_edge(user_id, edge_id)

        if relation == "accepted" and edge.friend_id != user_id:
            raise PermissionDeniedError("Only the recipient can accept a friend request")

        edge.status = relation
        await self.db.commit()
        logger.info("friends.relation_changed", edge_id=str(edge_id), relation=relation)
        return await self._get_edge(edge_id)

    async def delete_friendship(self, user_id: uuid.UUID, edge_id: uuid.UUID) -> None:
        edge = await self._get_own_edge(user_id, edge_id)
        await self.db.delete(edge)
        await self.db.commit()

    async def received_requests(self, user_id: uuid.UUID) -> list[Friend]:
        result = await self.db.execute(
            self._edges()
            .where(Friend.friend_id == user_id, Friend.status == "pending")
            .order_by(Friend.created_at.desc())
        )
        return list(result.scalars().all())

    async def sent_requests(self, user_id: uuid.UUID) -> list[Friend]:
        result = await self.db.execute(
            self._edges()
            .where(Friend.user_id == user_id, Friend.status == "pending")
            .order_by(Friend.created_at.desc())
        )
        return list(result.scalars().all())

    async def accepted_friend_ids(self, user_id: uuid.UUID) -> list[uuid.UUID]:
        """Ids of every accepted friend, whichever side sent the request."""
        result = await self.db.execute(
            select(Friend.user_id, Friend.friend_id).where(
                Friend.status == "accepted",
                or_(Friend.user_id == user_id, Friend.friend_id == user_id),
            )
        )
        return [
            friend_id if requester == user_id else requester
            for requester, friend_id in result.all()
        ]
