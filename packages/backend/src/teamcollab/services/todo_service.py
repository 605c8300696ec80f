"""Personal todo service.

Every query is scoped by user_id, so another user's todo is simply
"not found" rather than "forbidden".
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from teamcollab.db.models import PersonalTodo, as_utc, utcnow
from teamcollab.services.common import date_window, offset_pagination, start_of_week


class TodoService:
    """Business logic for a user's personal todos."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_todos(
        self,
        user_id: uuid.UUID,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> dict:
        conditions = [PersonalTodo.user_id == user_id]
        if status:
            conditions.append(PersonalTodo.status == status)
        if priority:
            conditions.append(PersonalTodo.priority == priority)
        conditions.extend(date_window(PersonalTodo, date_from, date_to))

        total = await self.db.scalar(
            select(func.count(PersonalTodo.id)).where(*conditions)
        )
        result = await self.db.execute(
            select(PersonalTodo)
            .where(*conditions)
            .order_by(PersonalTodo.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return {
            "todos": list(result.scalars().all()),
            "pagination": offset_pagination(total or 0, limit, offset),
        }

    async def create_todo(
        self,
        user_id: uuid.UUID,
        title: str,
        description: Optional[str] = None,
        status: str = "pending",
        priority: str = "medium",
        start_date: Optional[datetime] = None,
        due_date: Optional[datetime] = None,
    ) -> PersonalTodo:
        todo = PersonalTodo(
            user_id=user_id,
            title=title,
            description=description,
            status=status,
            priority=priority,
            start_date=as_utc(start_date),
            due_date=as_utc(due_date),
        )
        self.db.add(todo)
        await self.db.commit()
        return todo

    async def get_todo(
        self, user_id: uuid.UUID, todo_id: uuid.UUID
    ) -> Optional[PersonalTodo]:
        result = await self.db.execute(
            select(PersonalTodo).where(
                PersonalTodo.id == todo_id, PersonalTodo.user_id == user_id
            )
        )
        return result.scalars().first()

    async def update_todo(
        self, user_id: uuid.UUID, todo_id: uuid.UUID, changes: dict
    ) -> Optional[PersonalTodo]:
        """Apply the fields present in `changes`. Returns None if not found."""
        todo = await self.get_todo(user_id, todo_id)
        if not todo:
            return None

        for field, value in changes.items():
            if field in ("start_date", "due_date"):
                value = as_utc(value)
            setattr(todo, field, value)

        await self.db.commit()
        await self.db.refresh(todo)
        return todo

    async def delete_todo(self, user_id: uuid.UUID, todo_id: uuid.UUID) -> bool:
        todo = await self.get_todo(user_id, todo_id)
        if not todo:
            return False
        await self.db.delete(todo)
        await self.db.commit()
        return True

    async def stats(self, user_id: uuid.UUID) -> dict:
        by_status = {"pending": 0, "in_progress": 0, "completed": 0, "total": 0}
        by_priority = {"low": 0, "medium": 0, "high": 0}

        rows = await self.db.execute(
            select(PersonalTodo.status, func.count(PersonalTodo.id))
            .where(PersonalTodo.user_id == user_id)
            .group_by(PersonalTodo.status)
        )
        for status, count in rows.all():
            by_status[status] = count
            by_status["total"] += count

        rows = await self.db.execute(
            select(PersonalTodo.priority, func.count(PersonalTodo.id))
            .where(PersonalTodo.user_id == user_id)
            .group_by(PersonalTodo.priority)
        )
        for priority, count in rows.all():
            by_priority[priority] = count

        week_completed = await self.db.scalar(
            select(func.count(PersonalTodo.id)).where(
                PersonalTodo.user_id == user_id,
                PersonalTodo.status == "completed",
                PersonalTodo.updated_at >= start_of_week(),
            )
        )
        return {
            "by_status": by_status,
            "by_priority": by_priority,
            "week_completed": week_completed or 0,
        }

    async def bulk_update_status(
        self, user_id: uuid.UUID, todo_ids: list[uuid.UUID], status: str
    ) -> int:
        """Set status on the caller's todos among `todo_ids`. Returns the count."""
        result = await self.db.execute(
            update(PersonalTodo)
            .where(PersonalTodo.id.in_(todo_ids), PersonalTodo.user_id == user_id)
            .values(status=status, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount
