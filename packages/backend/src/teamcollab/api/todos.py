"""Personal todo API — mounted at /me/todos, always scoped to the caller.

Static paths (/stats/summary, /bulk/status) are declared before /{todo_id}.
"""

import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from teamcollab.auth.dependencies import CurrentIdentity, get_current_user
from teamcollab.db.engine import get_db
from teamcollab.schemas.common import BulkStatusResult
from teamcollab.schemas.todo import (
    PRIORITY_PATTERN,
    STATUS_PATTERN,
    TodoBulkStatus,
    TodoCreate,
    TodoList,
    TodoRead,
    TodoStats,
    TodoUpdate,
)
from teamcollab.services.todo_service import TodoService

router = APIRouter(prefix="/me/todos")

_REQUIRED_FIELDS = ("title", "status", "priority")


def _svc(db: AsyncSession = Depends(get_db)) -> TodoService:
    return TodoService(db)


@router.get("", response_model=TodoList)
async def list_todos(
    status: Optional[str] = Query(None, pattern=STATUS_PATTERN),
    priority: Optional[str] = Query(None, pattern=PRIORITY_PATTERN),
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TodoService = Depends(_svc),
):
    """List the caller's todos, newest first."""
    return await svc.list_todos(
        identity.user_id,
        status=status,
        priority=priority,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )


@router.post("", response_model=TodoRead, status_code=201)
async def create_todo(
    body: TodoCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TodoService = Depends(_svc),
):
    return await svc.create_todo(identity.user_id, **body.model_dump())


@router.get("/stats/summary", response_model=TodoStats)
async def todo_stats(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TodoService = Depends(_svc),
):
    """Counts by status and priority, plus todos completed since Sunday."""
    return await svc.stats(identity.user_id)


@router.patch("/bulk/status", response_model=BulkStatusResult)
async def bulk_update_status(
    body: TodoBulkStatus,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TodoService = Depends(_svc),
):
    """Set one status on many todos. Ids the caller doesn't own are ignored."""
    count = await svc.bulk_update_status(identity.user_id, body.todo_ids, body.status)
    return {"message": f"Updated status of {count} todos", "updated_count": count}


@router.get("/{todo_id}", response_model=TodoRead)
async def get_todo(
    todo_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TodoService = Depends(_svc),
):
    todo = await svc.get_todo(identity.user_id, todo_id)
    if not todo:
        raise HTTPException(status_code=404, detail="Todo not found")
    return todo


@router.patch("/{todo_id}", response_model=TodoRead)
async def update_todo(
    todo_id: uuid.UUID,
    body: TodoUpdate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TodoService = Depends(_svc),
):
    changes = {
        k: v
        for k, v in body.model_dump(exclude_unset=True).items()
        if v is not None or k not in _REQUIRED_FIELDS
    }
    todo = await svc.update_todo(identity.user_id, todo_id, changes)
    if not todo:
        raise HTTPException(status_code=404, detail="Todo not found")
    return todo


@router.delete("/{todo_id}", status_code=204)
async def delete_todo(
    todo_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TodoService = Depends(_svc),
):
    if not await svc.delete_todo(identity.user_id, todo_id):
        raise HTTPException(status_code=404, detail="Todo not found")
    return Response(status_code=204)
