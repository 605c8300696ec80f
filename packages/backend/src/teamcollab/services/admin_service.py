"""Admin service — system statistics, user/workspace management, cleanup.

Also hosts the maintenance routines the CleanupWorker and the
`teamcollab cleanup` command run outside any request.
"""

import math
import uuid
from datetime import timedelta
from typing import Optional

import structlog
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from teamcollab.db.models import (
    Friend,
    GroupTask,
    PersonalTodo,
    RefreshToken,
    User,
    Workspace,
    WorkspaceMember,
    as_utc,
    utcnow,
)
from teamcollab.errors import BadRequestError, NotFoundError

logger = structlog.get_logger()

BLOCKED_FRIENDSHIP_TTL = timedelta(days=30)
ACTIVE_USER_WINDOW = timedelta(days=30)
LOG_WINDOW = timedelta(hours=24)
LOG_SOURCE_LIMIT = 10


async def delete_expired_tokens(db: AsyncSession) -> int:
    result = await db.execute(
        delete(RefreshToken)
        .where(RefreshToken.expires_at < utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def delete_stale_blocked_friendships(db: AsyncSession) -> int:
    result = await db.execute(
        delete(Friend).where(
            Friend.status == "blocked",
            Friend.updated_at < utcnow() - BLOCKED_FRIENDSHIP_TTL,
        ).execution_options(synchronize_session=False)
    )
    return result.rowcount


def _page_info(total: int, page: int, limit: int) -> dict:
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if limit else 0,
    }


class AdminService:
    """Business logic behind /admin."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _count(self, model, *conditions) -> int:
        return await self.db.scalar(select(func.count(model.id)).where(*conditions)) or 0

    async def _member_count(self, workspace_id: uuid.UUID) -> int:
        return await self._count(
            WorkspaceMember,
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.accepted.is_(True),
        )

    async def _task_count(self, workspace_id: uuid.UUID) -> int:
        return await self._count(GroupTask, GroupTask.workspace_id == workspace_id)

    # ─── Statistics ─────────────────────────────────────

    async def database_stats(self) -> dict:
        return {
            "total_users": await self._count(User),
            "total_workspaces": await self._count(Workspace),
            "total_personal_todos": await self._count(PersonalTodo),
            "total_group_tasks": await self._count(GroupTask),
            "total_friendships": await self._count(Friend, Friend.status == "accepted"),
            "total_refresh_tokens": await self._count(RefreshToken),
        }

    async def stats(self) -> dict:
        now = utcnow()
        week_ago = now - timedelta(days=7)
        return {
            "timestamp": now,
            "database": await self.database_stats(),
            "additional": {
                "active_users_last_30_days": await self._count(
                    User, User.last_login >= now - ACTIVE_USER_WINDOW
                ),
                "workspaces_this_week": await self._count(
                    Workspace, Workspace.created_at >= week_ago
                ),
                "todos_completed_this_week": await self._count(
                    PersonalTodo,
                    PersonalTodo.status == "completed",
                    PersonalTodo.updated_at >= week_ago,
                ),
                "expired_tokens": await self._count(
                    RefreshToken, RefreshToken.expires_at < now
                ),
            },
        }

    # ─── Users ──────────────────────────────────────────

    async def list_users(
        self,
        page: int = 1,
        limit: int = 20,
        search: Optional[str] = None,
        status: Optional[str] = None,
    ) -> dict:
        conditions = []
        if search:
            conditions.append(
                or_(
                    User.email.icontains(search, autoescape=True),
                    User.nickname.icontains(search, autoescape=True),
                )
            )
        if status:
            conditions.append(User.is_active.is_(status == "active"))

        total = await self._count(User, *conditions)
        result = await self.db.execute(
            select(User)
            .where(*conditions)
            .order_by(User.created_at.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )

        users = []
        for user in result.scalars().all():
            users.append({
                **_admin_user_fields(user),
                "todo_count": await self._count(
                    PersonalTodo, PersonalTodo.user_id == user.id
                ),
                "owned_workspace_count": await self._count(
                    Workspace, Workspace.owner_id == user.id
                ),
            })
        return {"users": users, "pagination": _page_info(total, page, limit)}

    async def set_user_status(
        self, admin_id: uuid.UUID, user_id: uuid.UUID, is_active: bool
    ) -> dict:
        if user_id == admin_id and not is_active:
            raise BadRequestError("You cannot deactivate your own account")

        user = await self.db.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")

        user.is_active = is_active
        if not is_active:
            await self.db.execute(
                delete(RefreshToken).where(RefreshToken.user_id == user_id)
            )
        await self.db.commit()
        logger.info("admin.user_status_changed", user_id=str(user_id), is_active=is_active)
        return _admin_user_fields(user)

    async def set_user_role(
        self, admin_id: uuid.UUID, user_id: uuid.UUID, role: str
    ) -> dict:
        if user_id == admin_id and role != "admin":
            raise BadRequestError("You cannot remove your own admin role")

        user = await self.db.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")

        user.role = role
        await self.db.commit()
        logger.info("admin.user_role_changed", user_id=str(user_id), role=role)
        return _admin_user_fields(user)

    # ─── Workspaces ─────────────────────────────────────

    async def list_workspaces(
        self, page: int = 1, limit: int = 20, search: Optional[str] = None
    ) -> dict:
        conditions = []
        if search:
            conditions.append(Workspace.name.icontains(search, autoescape=True))

        total = await self._count(Workspace, *conditions)
        result = await self.db.execute(
            select(Workspace)
            .where(*conditions)
            .options(selectinload(Workspace.owner))
            .order_by(Workspace.created_at.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )

        workspaces = []
        for ws in result.scalars().all():
            workspaces.append({
                "id": ws.id,
                "name": ws.name,
                "description": ws.description,
                "created_at": as_utc(ws.created_at),
                "owner": _owner_fields(ws.owner),
                "member_count": await self._member_count(ws.id),
                "task_count": await self._task_count(ws.id),
            })
        return {"workspaces": workspaces, "pagination": _page_info(total, page, limit)}

    async def delete_workspace(self, workspace_id: uuid.UUID) -> dict:
        result = await self.db.execute(
            select(Workspace)
            .where(Workspace.id == workspace_id)
            .options(selectinload(Workspace.owner))
        )
        workspace = result.scalars().first()
        if not workspace:
            raise NotFoundError("Workspace not found")

        summary = {
            "id": workspace.id,
            "name": workspace.name,
            "owner": _owner_fields(workspace.owner),
            "member_count": await self._member_count(workspace.id),
            "task_count": await self._task_count(workspace.id),
        }
        await self.db.execute(delete(Workspace).where(Workspace.id == workspace_id))
        await self.db.commit()
        logger.info("admin.workspace_deleted", workspace_id=str(workspace_id))
        return {"message": "Workspace deleted", "deleted_workspace": summary}

    # ─── Maintenance ────────────────────────────────────

    async def cleanup(self) -> dict:
        expired = await delete_expired_tokens(self.db)
        blocked = await delete_stale_blocked_friendships(self.db)
        await self.db.commit()
        logger.info("admin.cleanup", expired_tokens=expired, blocked_friendships=blocked)
        return {
            "message": "Cleanup completed",
            "results": {"expired_tokens": expired, "blocked_friendships": blocked},
        }

    async def activity_log(self, limit: int = 100) -> list[dict]:
        """Recent signups and workspace creations, newest first."""
        since = utcnow() - LOG_WINDOW

        users = await self.db.execute(
            select(User)
            .where(User.created_at >= since)
            .order_by(User.created_at.desc())
            .limit(LOG_SOURCE_LIMIT)
        )
        workspaces = await self.db.execute(
            select(Workspace)
            .where(Workspace.created_at >= since)
            .order_by(Workspace.created_at.desc())
            .limit(LOG_SOURCE_LIMIT)
        )

        entries = [
            {
                "timestamp": as_utc(user.created_at),
                "level": "info",
                "type": "user_signup",
                "message": f"New user signed up: {user.email}",
                "data": {"user_id": str(user.id)},
            }
            for user in users.scalars().all()
        ] + [
            {
                "timestamp": as_utc(ws.created_at),
                "level": "info",
                "type": "workspace_created",
                "message": f"Workspace created: {ws.name}",
                "data": {"workspace_id": str(ws.id)},
            }
            for ws in workspaces.scalars().all()
        ]
        entries.sort(key=lambda e: e["timestamp"], reverse=True)
        return entries[:limit]

    async def backup(self) -> dict:
        """Statistics snapshot. No dump file is produced."""
        stats = await self.database_stats()
        return {
            "message": "Backup snapshot created",
            "backup": {
                "timestamp": utcnow(),
                "stats": stats,
                "user_count": stats["total_users"],
                "workspace_count": stats["total_workspaces"],
                "todo_count": stats["total_personal_todos"],
                "task_count": stats["total_group_tasks"],
            },
            "note": "Statistics only; use the database's own tooling for a full dump",
        }


def _admin_user_fields(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "nickname": user.nickname,
        "role": user.role,
        "is_active": user.is_active,
        "last_login": as_utc(user.last_login),
        "created_at": as_utc(user.created_at),
    }


def _owner_fields(owner: User) -> dict:
    return {"id": owner.id, "email": owner.email, "nickname": owner.nickname}
