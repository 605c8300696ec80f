"""Pydantic schemas for group tasks.

- GroupTaskCreate: what you POST (dates required)
- GroupTaskUpdate: what you PATCH (all optional; dates re-validated together)
- GroupTaskRead: what the API returns
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from teamcollab.schemas.common import OffsetPagination, UtcDatetime

DEPARTMENTS = ("FE", "BE", "QA")
DEPARTMENT_PATTERN = r"^(FE|BE|QA)$"
STATUS_PATTERN = r"^(pending|in_progress|completed)$"


class GroupTaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    department: str = Field(..., pattern=DEPARTMENT_PATTERN)
    status: str = Field(default="pending", pattern=STATUS_PATTERN)
    start_date: datetime
    due_date: datetime


class GroupTaskUpdate(BaseModel):
    """Partial update — only fields present in the body are applied."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    department: Optional[str] = Field(None, pattern=DEPARTMENT_PATTERN)
    status: Optional[str] = Field(None, pattern=STATUS_PATTERN)
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None


class GroupTaskBulkStatus(BaseModel):
    task_ids: list[uuid.UUID] = Field(..., min_length=1)
    status: str = Field(..., pattern=STATUS_PATTERN)


class GroupTaskRead(BaseModel):
    id: uuid.UUID
    workspace_id: uuid.UUID
    title: str
    description: Optional[str]
    department: str
    status: str
    start_date: UtcDatetime
    due_date: UtcDatetime
    created_at: UtcDatetime
    updated_at: UtcDatetime

    model_config = {"from_attributes": True}


class GroupTaskList(BaseModel):
    tasks: list[GroupTaskRead]
    pagination: OffsetPagination


class TaskStatusCounts(BaseModel):
    pending: int = 0
    in_progress: int = 0
    completed: int = 0
    total: int = 0


class DepartmentCounts(BaseModel):
    FE: int = 0
    BE: int = 0
    QA: int = 0


class GroupTaskStats(BaseModel):
    by_status: TaskStatusCounts
    by_department: DepartmentCounts
    week_completed: int
    upcoming_deadlines: int
