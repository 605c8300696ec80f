"""Workspace service — workspaces, memberships and invitations.

Membership model:
- The owner is implicit (Workspace.owner_id), never a WorkspaceMember row
- A WorkspaceMember row with accepted=False is a pending invitation
- "Member" everywhere means owner or accepted row

Every member (owner included) has a ChatNotification row per workspace,
created on workspace creation / invitation and removed with the membership.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from teamcollab.db.models import (
    ChatNotification,
    GroupTask,
    User,
    Workspace,
    WorkspaceMember,
    utcnow,
)
from teamcollab.errors import (
    BadRequestError,
    NotFoundError,
    PermissionDeniedError,
)

logger = structlog.get_logger()

_UNSET = object()


async def member_role(
    db: AsyncSession, workspace: Workspace, user_id: uuid.UUID
) -> Optional[str]:
    """'owner', 'member' or None."""
    if workspace.owner_id == user_id:
        return "owner"
    result = await db.execute(
        select(WorkspaceMember.id).where(
            WorkspaceMember.workspace_id == workspace.id,
            WorkspaceMember.user_id == user_id,
            WorkspaceMember.accepted.is_(True),
        )
    )
    return "member" if result.first() else None


async def ensure_member(
    db: AsyncSession, workspace_id: uuid.UUID, user_id: uuid.UUID
) -> tuple[Workspace, str]:
    """Load a workspace the user belongs to. 404 if missing, 403 if not a member."""
    workspace = await db.get(Workspace, workspace_id)
    if not workspace:
        raise NotFoundError("Workspace not found")
    role = await member_role(db, workspace, user_id)
    if not role:
        raise PermissionDeniedError("You are not a member of this workspace")
    return workspace, role


async def is_member(
    db: AsyncSession, workspace_id: uuid.UUID, user_id: uuid.UUID
) -> bool:
    workspace = await db.get(Workspace, workspace_id)
    return bool(workspace and await member_role(db, workspace, user_id))


async def accepted_member_ids(
    db: AsyncSession, workspace_id: uuid.UUID
) -> list[uuid.UUID]:
    result = await db.execute(
        select(WorkspaceMember.user_id).where(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.accepted.is_(True),
        )
    )
    return list(result.scalars().all())


class WorkspaceService:
    """Business logic for workspaces and their membership."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Helpers ────────────────────────────────────────

    async def _load(self, workspace_id: uuid.UUID) -> Optional[Workspace]:
        result = await self.db.execute(
            select(Workspace)
            .where(Workspace.id == workspace_id)
            .options(selectinload(Workspace.owner))
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def _require_owner(
        self, workspace_id: uuid.UUID, user_id: uuid.UUID
    ) -> Workspace:
        workspace = await self._load(workspace_id)
        if not workspace:
            raise NotFoundError("Workspace not found")
        if workspace.owner_id != user_id:
            raise PermissionDeniedError("Only the workspace owner can do this")
        return workspace

    async def _counts(self, workspace_id: uuid.UUID, user_id: uuid.UUID) -> dict:
        member_count = await self.db.scalar(
            select(func.count(WorkspaceMember.id)).where(
                WorkspaceMember.workspace_id == workspace_id,
                WorkspaceMember.accepted.is_(True),
            )
        )
        task_count = await self.db.scalar(
            select(func.count(GroupTask.id)).where(
                GroupTask.workspace_id == workspace_id
            )
        )
        unread = await self.db.scalar(
            select(ChatNotification.unread_count).where(
                ChatNotification.workspace_id == workspace_id,
                ChatNotification.user_id == user_id,
            )
        )
        return {
            "member_count": member_count or 0,
            "task_count": task_count or 0,
            "unread_chat_count": unread or 0,
        }

    async def _load_membership(
        self, workspace_id: uuid.UUID, user_id: uuid.UUID
    ) -> Optional[WorkspaceMember]:
        result = await self.db.execute(
            select(WorkspaceMember)
            .where(
                WorkspaceMember.workspace_id == workspace_id,
                WorkspaceMember.user_id == user_id,
            )
            .options(
                selectinload(WorkspaceMember.user),
                selectinload(WorkspaceMember.workspace),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    # ─── Workspaces ─────────────────────────────────────

    async def create_workspace(
        self, owner_id: uuid.UUID, name: str, description: Optional[str] = None
    ) -> Workspace:
        workspace = Workspace(name=name, description=description, owner_id=owner_id)
        self.db.add(workspace)
        await self.db.flush()

        self.db.add(
            ChatNotification(
                user_id=owner_id,
                workspace_id=workspace.id,
                unread_count=0,
                last_read_at=utcnow(),
            )
        )
        await self.db.commit()
        logger.info("workspace.created", workspace_id=str(workspace.id))
        return await self._load(workspace.id)

    async def list_workspaces(self, user_id: uuid.UUID) -> list[dict]:
        """Owned workspaces first, then accepted memberships."""
        member_of = select(WorkspaceMember.workspace_id).where(
            WorkspaceMember.user_id == user_id,
            WorkspaceMember.accepted.is_(True),
        )
        result = await self.db.execute(
            select(Workspace)
            .where(or_(Workspace.owner_id == user_id, Workspace.id.in_(member_of)))
            .options(selectinload(Workspace.owner))
            .order_by(Workspace.created_at.desc())
        )
        workspaces = list(result.scalars().all())
        workspaces.sort(key=lambda ws: ws.owner_id != user_id)

        items = []
        for ws in workspaces:
            items.append({
                **_workspace_fields(ws),
                "role": "owner" if ws.owner_id == user_id else "member",
                **await self._counts(ws.id, user_id),
            })
        return items

    async def get_detail(self, workspace_id: uuid.UUID, user_id: uuid.UUID) -> dict:
        _, role = await ensure_member(self.db, workspace_id, user_id)
        workspace = await self._load(workspace_id)
        counts = await self._counts(workspace_id, user_id)
        return {
            **_workspace_fields(workspace),
            "role": role,
            "unread_chat_count": counts["unread_chat_count"],
            "task_count": counts["task_count"],
            "members": await self._member_entries(workspace),
        }

    async def update_workspace(
        self,
        workspace_id: uuid.UUID,
        user_id: uuid.UUID,
        name: Optional[str] = None,
        description=_UNSET,
    ) -> Workspace:
        workspace = await self._require_owner(workspace_id, user_id)
        if name:
            workspace.name = name
        if description is not _UNSET:
            workspace.description = description
        await self.db.commit()
        return await self._load(workspace_id)

    async def delete_workspace(self, workspace_id: uuid.UUID, user_id: uuid.UUID) -> None:
        await self._require_owner(workspace_id, user_id)
        await self.db.execute(delete(Workspace).where(Workspace.id == workspace_id))
        await self.db.commit()
        logger.info("workspace.deleted", workspace_id=str(workspace_id))

    # ─── Members ────────────────────────────────────────

    async def _member_entries(self, workspace: Workspace) -> list[dict]:
        """Owner entry first, then every membership row by join time."""
        result = await self.db.execute(
            select(WorkspaceMember)
            .where(WorkspaceMember.workspace_id == workspace.id)
            .options(selectinload(WorkspaceMember.user))
            .order_by(WorkspaceMember.joined_at.asc())
        )
        entries = [{
            "id": None,
            "workspace_id": workspace.id,
            "user_id": workspace.owner_id,
            "accepted": True,
            "joined_at": workspace.created_at,
            "role": "owner",
            "user": workspace.owner,
        }]
        for row in result.scalars().all():
            entries.append({
                "id": row.id,
                "workspace_id": row.workspace_id,
                "user_id": row.user_id,
                "accepted": row.accepted,
                "joined_at": row.joined_at,
                "role": "member",
                "user": row.user,
            })
        return entries

    async def list_members(self, workspace_id: uuid.UUID, user_id: uuid.UUID) -> list[dict]:
        await ensure_member(self.db, workspace_id, user_id)
        workspace = await self._load(workspace_id)
        return await self._member_entries(workspace)

    async def invite(
        self,
        workspace_id: uuid.UUID,
        owner_id: uuid.UUID,
        target_id: Optional[uuid.UUID],
    ) -> WorkspaceMember:
        """Create a pending invitation plus the invitee's chat counter."""
        await self._require_owner(workspace_id, owner_id)
        if not target_id:
            raise BadRequestError("user_id is required")

        target = await self.db.get(User, target_id)
        if not target:
            raise NotFoundError("User not found")
        return await self._create_invitation(workspace_id, owner_id, target)

    async def invite_by_email(
        self, workspace_id: uuid.UUID, owner_id: uuid.UUID, email: str
    ) -> WorkspaceMember:
        await self._require_owner(workspace_id, owner_id)

        result = await self.db.execute(select(User).where(User.email == email))
        target = result.scalars().first()
        if not target:
            raise NotFoundError("No user registered with that email")
        return await self._create_invitation(workspace_id, owner_id, target)

    async def _create_invitation(
        self, workspace_id: uuid.UUID, owner_id: uuid.UUID, target: User
    ) -> WorkspaceMember:
        if target.id == owner_id:
            raise BadRequestError("You cannot invite yourself")
        if await self._load_membership(workspace_id, target.id):
            raise BadRequestError("User is already a member or invited")

        self.db.add(WorkspaceMember(workspace_id=workspace_id, user_id=target.id))
        notification = await self.db.scalar(
            select(ChatNotification).where(
                ChatNotification.workspace_id == workspace_id,
                ChatNotification.user_id == target.id,
            )
        )
        if not notification:
            self.db.add(
                ChatNotification(
                    user_id=target.id,
                    workspace_id=workspace_id,
                    unread_count=0,
                    last_read_at=utcnow(),
                )
            )
        await self.db.commit()
        logger.info(
            "workspace.member_invited",
            workspace_id=str(workspace_id),
            user_id=str(target.id),
        )
        return await self._load_membership(workspace_id, target.id)

    async def respond_to_invitation(
        self,
        workspace_id: uuid.UUID,
        invitee_id: uuid.UUID,
        caller_id: uuid.UUID,
        accepted: bool,
    ) -> Optional[WorkspaceMember]:
        """Accept (returns the membership) or decline (returns None)."""
        if invitee_id != caller_id:
            raise PermissionDeniedError("You can only respond to your own invitations")

        member = await self._load_membership(workspace_id, invitee_id)
        if not member:
            raise NotFoundError("Invitation not found")

        if not accepted:
            await self.db.delete(member)
            await self._drop_notification(workspace_id, invitee_id)
            await self.db.commit()
            return None

        member.accepted = True
        await self.db.commit()
        logger.info(
            "workspace.member_joined",
            workspace_id=str(workspace_id),
            user_id=str(invitee_id),
        )
        return await self._load_membership(workspace_id, invitee_id)

    async def remove_member(
        self, workspace_id: uuid.UUID, target_id: uuid.UUID, caller_id: uuid.UUID
    ) -> None:
        """Owner removes anyone; members may remove themselves."""
        workspace = await self.db.get(Workspace, workspace_id)
        is_owner = bool(workspace and workspace.owner_id == caller_id)
        if not is_owner and target_id != caller_id:
            raise PermissionDeniedError("Not allowed to remove this member")

        member = await self._load_membership(workspace_id, target_id)
        if not member:
            raise NotFoundError("Member not found")

        await self.db.delete(member)
        await self._drop_notification(workspace_id, target_id)
        await self.db.commit()
        logger.info(
            "workspace.member_removed",
            workspace_id=str(workspace_id),
            user_id=str(target_id),
        )

    async def _drop_notification(self, workspace_id: uuid.UUID, user_id: uuid.UUID) -> None:
        await self.db.execute(
            delete(ChatNotification).where(
                ChatNotification.workspace_id == workspace_id,
                ChatNotification.user_id == user_id,
            )
        )

    async def received_invitations(self, user_id: uuid.UUID) -> list[WorkspaceMember]:
        result = await self.db.execute(
            select(WorkspaceMember)
            .where(
                WorkspaceMember.user_id == user_id,
                WorkspaceMember.accepted.is_(False),
            )
            .options(
                selectinload(WorkspaceMember.workspace).selectinload(Workspace.owner)
            )
            .order_by(WorkspaceMember.joined_at.desc())
        )
        return list(result.scalars().all())


def _workspace_fields(ws: Workspace) -> dict:
    return {
        "id": ws.id,
        "name": ws.name,
        "description": ws.description,
        "owner_id": ws.owner_id,
        "created_at": ws.created_at,
        "updated_at": ws.updated_at,
        "owner": ws.owner,
    }
