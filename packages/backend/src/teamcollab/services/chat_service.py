"""Chat service — workspace messages and per-user unread counters.

ChatNotification.unread_count is denormalised:
- posting a message bumps every other member's counter (rows created at 1
  if missing)
- marking read zeroes it and moves last_read_at
- deleting a message recomputes the counters of accepted members and the
  owner as the number of remaining messages newer than last_read_at
"""

import uuid

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from teamcollab.db.models import ChatMessage, ChatNotification, Workspace, utcnow
from teamcollab.errors import BadRequestError, NotFoundError, PermissionDeniedError
from teamcollab.services.common import page_pagination
from teamcollab.services.workspace_service import accepted_member_ids, ensure_member

logger = structlog.get_logger()


class ChatService:
    """Business logic for workspace chat."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _page(self, conditions: list, page: int, limit: int) -> dict:
        total = await self.db.scalar(select(func.count(ChatMessage.id)).where(*conditions))
        result = await self.db.execute(
            select(ChatMessage)
            .where(*conditions)
            .options(selectinload(ChatMessage.user))
            .order_by(ChatMessage.created_at.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        newest_first = list(result.scalars().all())
        return {
            "messages": list(reversed(newest_first)),
            "pagination": page_pagination(total or 0, page, limit, len(newest_first)),
        }

    async def history(
        self, workspace_id: uuid.UUID, user_id: uuid.UUID, page: int = 1, limit: int = 50
    ) -> dict:
        """One page counted back from the newest message, returned oldest first."""
        await ensure_member(self.db, workspace_id, user_id)
        return await self._page([ChatMessage.workspace_id == workspace_id], page, limit)

    async def search(
        self,
        workspace_id: uuid.UUID,
        user_id: uuid.UUID,
        query: str,
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        query = (query or "").strip()
        if not query:
            raise BadRequestError("Search query is required")
        await ensure_member(self.db, workspace_id, user_id)
        return await self._page(
            [
                ChatMessage.workspace_id == workspace_id,
                ChatMessage.content.icontains(query, autoescape=True),
            ],
            page,
            limit,
        )

    async def post_message(
        self, workspace_id: uuid.UUID, user_id: uuid.UUID, content: str
    ) -> ChatMessage:
        content = (content or "").strip()
        if not content:
            raise BadRequestError("Message content is required")

        workspace, _ = await ensure_member(self.db, workspace_id, user_id)

        message = ChatMessage(workspace_id=workspace_id, user_id=user_id, content=content)
        self.db.add(message)

        recipients = [
            uid for uid in await accepted_member_ids(self.db, workspace_id) if uid != user_id
        ]
        if workspace.owner_id != user_id:
            recipients.append(workspace.owner_id)
        await self._bump_unread(workspace_id, recipients)

        await self.db.commit()
        logger.info(
            "chat.message_posted",
            workspace_id=str(workspace_id),
            message_id=str(message.id),
            recipients=len(recipients),
        )
        return await self._load_message(message.id)

    async def _bump_unread(self, workspace_id: uuid.UUID, recipients: list[uuid.UUID]) -> None:
        if not recipients:
            return
        result = await self.db.execute(
            select(ChatNotification.user_id).where(
                ChatNotification.workspace_id == workspace_id,
                ChatNotification.user_id.in_(recipients),
            )
        )
        existing = set(result.scalars().all())

        if existing:
            await self.db.execute(
                update(ChatNotification)
                .where(
                    ChatNotification.workspace_id == workspace_id,
                    ChatNotification.user_id.in_(existing),
                )
                .values(unread_count=ChatNotification.unread_count + 1)
                .execution_options(synchronize_session=False)
            )
        for uid in recipients:
            if uid not in existing:
                self.db.add(
                    ChatNotification(user_id=uid, workspace_id=workspace_id, unread_count=1)
                )

    async def _load_message(self, message_id: uuid.UUID) -> ChatMessage:
        result = await self.db.execute(
            select(ChatMessage)
            .where(ChatMessage.id == message_id)
            .options(selectinload(ChatMessage.user))
            .execution_options(populate_existing=True)
        )
        return result.scalars().one()

    async def delete_message(self, message_id: uuid.UUID, user_id: uuid.UUID) -> None:
        """Author or workspace owner only; recomputes counters afterwards."""
        message = await self.db.get(ChatMessage, message_id)
        if not message:
            raise NotFoundError("Message not found")

        workspace = await self.db.get(Workspace, message.workspace_id)
        if message.user_id != user_id and workspace.owner_id != user_id:
            raise PermissionDeniedError("Not allowed to delete this message")

        await self.db.execute(delete(ChatMessage).where(ChatMessage.id == message_id))
        await self._recompute_unread(workspace)
        await self.db.commit()
        logger.info("chat.message_deleted", message_id=str(message_id))

    async def _recompute_unread(self, workspace: Workspace) -> None:
        workspace_id = workspace.id
        readers = await accepted_member_ids(self.db, workspace_id) + [workspace.owner_id]
        result = await self.db.execute(
            select(ChatNotification).where(
                ChatNotification.workspace_id == workspace_id,
                ChatNotification.user_id.in_(readers),
            )
        )
        for notification in result.scalars().all():
            unread = await self.db.scalar(
                select(func.count(ChatMessage.id)).where(
                    ChatMessage.workspace_id == workspace_id,
                    ChatMessage.created_at > notification.last_read_at,
                )
            )
            notification.unread_count = unread or 0

    async def mark_read(self, workspace_id: uuid.UUID, user_id: uuid.UUID) -> None:
        await ensure_member(self.db, workspace_id, user_id)
        notification = await self._notification(workspace_id, user_id)
        if notification:
            notification.unread_count = 0
            notification.last_read_at = utcnow()
        else:
            self.db.add(
                ChatNotification(
                    user_id=user_id,
                    workspace_id=workspace_id,
                    unread_count=0,
                    last_read_at=utcnow(),
                )
            )
        await self.db.commit()

    async def unread_count(self, workspace_id: uuid.UUID, user_id: uuid.UUID) -> int:
        await ensure_member(self.db, workspace_id, user_id)
        notification = await self._notification(workspace_id, user_id)
        return notification.unread_count if notification else 0

    async def _notification(self, workspace_id: uuid.UUID, user_id: uuid.UUID):
        result = await self.db.execute(
            select(ChatNotification)
            .where(
                ChatNotification.workspace_id == workspace_id,
                ChatNotification.user_id == user_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()
