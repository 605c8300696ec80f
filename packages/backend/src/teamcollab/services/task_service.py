"""Group task service — department-scoped tasks inside a workspace.

Every operation first checks that the caller is a workspace member, then
scopes the query by workspace_id so a task id from another workspace is
"not found".
"""

import uuid
from datetime import datetime, timedelta
from typing import Optional

import structlog
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from teamcollab.db.models import GroupTask, as_utc, utcnow
from teamcollab.errors import BadRequestError
from teamcollab.schemas.task import DEPARTMENTS
from teamcollab.services.common import date_window, offset_pagination, start_of_week
from teamcollab.services.workspace_service import ensure_member

logger = structlog.get_logger()

UPCOMING_WINDOW = timedelta(days=3)


def _check_dates(start_date: datetime, due_date: datetime) -> None:
    if as_utc(due_date) <= as_utc(start_date):
        raise BadRequestError("due_date must be after start_date")


class GroupTaskService:
    """Business logic for workspace tasks."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_tasks(
        self,
        workspace_id: uuid.UUID,
        user_id: uuid.UUID,
        department: Optional[str] = None,
        status: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> dict:
        await ensure_member(self.db, workspace_id, user_id)

        conditions = [GroupTask.workspace_id == workspace_id]
        if department:
            conditions.append(GroupTask.department == department)
        if status:
            conditions.append(GroupTask.status == status)
        if search:
            conditions.append(
                or_(
                    GroupTask.title.icontains(search, autoescape=True),
                    GroupTask.description.icontains(search, autoescape=True),
                )
            )
        conditions.extend(date_window(GroupTask, date_from, date_to))

        total = await self.db.scalar(select(func.count(GroupTask.id)).where(*conditions))
        result = await self.db.execute(
            select(GroupTask)
            .where(*conditions)
            .order_by(GroupTask.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return {
            "tasks": list(result.scalars().all()),
            "pagination": offset_pagination(total or 0, limit, offset),
        }

    async def create_task(
        self,
        workspace_id: uuid.UUID,
        user_id: uuid.UUID,
        title: str,
        department: str,
        start_date: datetime,
        due_date: datetime,
        description: Optional[str] = None,
        status: str = "pending",
    ) -> GroupTask:
        await ensure_member(self.db, workspace_id, user_id)
        _check_dates(start_date, due_date)

        task = GroupTask(
            workspace_id=workspace_id,
            title=title,
            description=description,
            department=department,
            status=status,
            start_date=as_utc(start_date),
            due_date=as_utc(due_date),
        )
        self.db.add(task)
        await self.db.commit()
        logger.info(
            "task.created", workspace_id=str(workspace_id), task_id=str(task.id)
        )
        return task

    async def find_task(
        self, workspace_id: uuid.UUID, task_id: uuid.UUID
    ) -> Optional[GroupTask]:
        """Lookup without a membership check (callers have done it)."""
        result = await self.db.execute(
            select(GroupTask).where(
                GroupTask.id == task_id, GroupTask.workspace_id == workspace_id
            )
        )
        return result.scalars().first()

    async def get_task(
        self, workspace_id: uuid.UUID, user_id: uuid.UUID, task_id: uuid.UUID
    ) -> Optional[GroupTask]:
        await ensure_member(self.db, workspace_id, user_id)
        return await self.find_task(workspace_id, task_id)

    async def update_task(
        self,
        workspace_id: uuid.UUID,
        user_id: uuid.UUID,
        task_id: uuid.UUID,
        changes: dict,
    ) -> Optional[GroupTask]:
        """Apply the fields present in `changes`; the resulting dates must
        still be ordered, whichever of them was sent."""
        task = await self.get_task(workspace_id, user_id, task_id)
        if not task:
            return None

        if changes.get("start_date") is None:
            changes.pop("start_date", None)
        if changes.get("due_date") is None:
            changes.pop("due_date", None)
        _check_dates(
            changes.get("start_date", task.start_date),
            changes.get("due_date", task.due_date),
        )

        for field, value in changes.items():
            if field in ("start_date", "due_date"):
                value = as_utc(value)
            setattr(task, field, value)

        await self.db.commit()
        await self.db.refresh(task)
        return task

    async def delete_task(
        self, workspace_id: uuid.UUID, user_id: uuid.UUID, task_id: uuid.UUID
    ) -> bool:
        task = await self.get_task(workspace_id, user_id, task_id)
        if not task:
            return False
        await self.db.delete(task)
        await self.db.commit()
        return True

    async def stats(self, workspace_id: uuid.UUID, user_id: uuid.UUID) -> dict:
        await ensure_member(self.db, workspace_id, user_id)

        by_status = {"pending": 0, "in_progress": 0, "completed": 0, "total": 0}
        by_department = {dept: 0 for dept in DEPARTMENTS}

        rows = await self.db.execute(
            select(GroupTask.status, func.count(GroupTask.id))
            .where(GroupTask.workspace_id == workspace_id)
            .group_by(GroupTask.status)
        )
        for status, count in rows.all():
            by_status[status] = count
            by_status["total"] += count

        rows = await self.db.execute(
            select(GroupTask.department, func.count(GroupTask.id))
            .where(GroupTask.workspace_id == workspace_id)
            .group_by(GroupTask.department)
        )
        for department, count in rows.all():
            by_department[department] = count

        week_completed = await self.db.scalar(
            select(func.count(GroupTask.id)).where(
                GroupTask.workspace_id == workspace_id,
                GroupTask.status == "completed",
                GroupTask.updated_at >= start_of_week(),
            )
        )

        now = utcnow()
        upcoming = await self.db.scalar(
            select(func.count(GroupTask.id)).where(
                GroupTask.workspace_id == workspace_id,
                GroupTask.status != "completed",
                GroupTask.due_date >= now,
                GroupTask.due_date <= now + UPCOMING_WINDOW,
            )
        )
        return {
            "by_status": by_status,
            "by_department": by_department,
            "week_completed": week_completed or 0,
            "upcoming_deadlines": upcoming or 0,
        }

    async def bulk_update_status(
        self,
        workspace_id: uuid.UUID,
        user_id: uuid.UUID,
        task_ids: list[uuid.UUID],
        status: str,
    ) -> int:
        await ensure_member(self.db, workspace_id, user_id)
        result = await self.db.execute(
            update(GroupTask)
            .where(GroupTask.id.in_(task_ids), GroupTask.workspace_id == workspace_id)
            .values(status=status, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount

    async def by_department(
        self,
        workspace_id: uuid.UUID,
        user_id: uuid.UUID,
        department: str,
        status: Optional[str] = None,
        limit: int = 20,
    ) -> list[GroupTask]:
        await ensure_member(self.db, workspace_id, user_id)
        if department not in DEPARTMENTS:
            raise BadRequestError("Department must be one of FE, BE, QA")

        q = select(GroupTask).where(
            GroupTask.workspace_id == workspace_id,
            GroupTask.department == department,
        )
        if status:
            q = q.where(GroupTask.status == status)
        result = await self.db.execute(
            q.order_by(GroupTask.status.asc(), GroupTask.due_date.asc()).limit(limit)
        )
        return list(result.scalars().all())
