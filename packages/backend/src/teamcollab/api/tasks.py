"""Group task API — mounted at /workspaces/{ws_id}/tasks.

Every route requires workspace membership (checked in the service).
Static paths (/stats/summary, /bulk/status, /departments/...) are declared
before /{task_id}.
"""

import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from teamcollab.auth.dependencies import CurrentIdentity, get_current_user
from teamcollab.db.engine import get_db
from teamcollab.schemas.common import BulkStatusResult
from teamcollab.schemas.task import (
    DEPARTMENT_PATTERN,
    STATUS_PATTERN,
    GroupTaskBulkStatus,
    GroupTaskCreate,
    GroupTaskList,
    GroupTaskRead,
    GroupTaskStats,
    GroupTaskUpdate,
)
from teamcollab.services.task_service import GroupTaskService

router = APIRouter(prefix="/workspaces/{ws_id}/tasks")

_REQUIRED_FIELDS = ("title", "department", "status", "start_date", "due_date")


def _svc(db: AsyncSession = Depends(get_db)) -> GroupTaskService:
    return GroupTaskService(db)


@router.get("", response_model=GroupTaskList)
async def list_tasks(
    ws_id: uuid.UUID,
    department: Optional[str] = Query(None, pattern=DEPARTMENT_PATTERN),
    status: Optional[str] = Query(None, pattern=STATUS_PATTERN),
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    search: Optional[str] = Query(None, description="Matches title or description"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    identity: CurrentIdentity = Depends(get_current_user),
    svc: GroupTaskService = Depends(_svc),
):
    return await svc.list_tasks(
        ws_id,
        identity.user_id,
        department=department,
        status=status,
        date_from=date_from,
        date_to=date_to,
        search=search,
        limit=limit,
        offset=offset,
    )


@router.post("", response_model=GroupTaskRead, status_code=201)
async def create_task(
    ws_id: uuid.UUID,
    body: GroupTaskCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: GroupTaskService = Depends(_svc),
):
    """Create a task. due_date must be after start_date (400 otherwise)."""
    return await svc.create_task(ws_id, identity.user_id, **body.model_dump())


@router.get("/stats/summary", response_model=GroupTaskStats)
async def task_stats(
    ws_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: GroupTaskService = Depends(_svc),
):
    """Counts by status and department, this week's completions, and open
    tasks due in the next three days."""
    return await svc.stats(ws_id, identity.user_id)


@router.patch("/bulk/status", response_model=BulkStatusResult)
async def bulk_update_status(
    ws_id: uuid.UUID,
    body: GroupTaskBulkStatus,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: GroupTaskService = Depends(_svc),
):
    count = await svc.bulk_update_status(ws_id, identity.user_id, body.task_ids, body.status)
    return {"message": f"Updated status of {count} tasks", "updated_count": count}


@router.get("/departments/{department}", response_model=list[GroupTaskRead])
async def tasks_by_department(
    ws_id: uuid.UUID,
    department: str,
    status: Optional[str] = Query(None, pattern=STATUS_PATTERN),
    limit: int = Query(20, ge=1, le=500),
    identity: CurrentIdentity = Depends(get_current_user),
    svc: GroupTaskService = Depends(_svc),
):
    """One department's tasks ordered by status, then due date."""
    return await svc.by_department(ws_id, identity.user_id, department, status, limit)


@router.get("/{task_id}", response_model=GroupTaskRead)
async def get_task(
    ws_id: uuid.UUID,
    task_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: GroupTaskService = Depends(_svc),
):
    task = await svc.get_task(ws_id, identity.user_id, task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.patch("/{task_id}", response_model=GroupTaskRead)
async def update_task(
    ws_id: uuid.UUID,
    task_id: uuid.UUID,
    body: GroupTaskUpdate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: GroupTaskService = Depends(_svc),
):
    changes = {
        k: v
        for k, v in body.model_dump(exclude_unset=True).items()
        if v is not None or k not in _REQUIRED_FIELDS
    }
    task = await svc.update_task(ws_id, identity.user_id, task_id, changes)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.delete("/{task_id}", status_code=204)
async def delete_task(
    ws_id: uuid.UUID,
    task_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: GroupTaskService = Depends(_svc),
):
    if not await svc.delete_task(ws_id, identity.user_id, task_id):
        raise HTTPException(status_code=404, detail="Task not found")
    return Response(status_code=204)
