"""Pydantic schemas for personal todos.

- TodoCreate: what you POST (status/priority default to pending/medium)
- TodoUpdate: what you PATCH (all optional)
- TodoRead: what the API returns
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from teamcollab.schemas.common import OffsetPagination, UtcDatetime

STATUS_PATTERN = r"^(pending|in_progress|completed)$"
PRIORITY_PATTERN = r"^(low|medium|high)$"


class TodoCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    status: str = Field(default="pending", pattern=STATUS_PATTERN)
    priority: str = Field(default="medium", pattern=PRIORITY_PATTERN)
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None


class TodoUpdate(BaseModel):
    """Partial update — only fields present in the body are applied."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[str] = Field(None, pattern=STATUS_PATTERN)
    priority: Optional[str] = Field(None, pattern=PRIORITY_PATTERN)
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None


class TodoBulkStatus(BaseModel):
    todo_ids: list[uuid.UUID] = Field(..., min_length=1)
    status: str = Field(..., pattern=STATUS_PATTERN)


class TodoRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    title: str
    description: Optional[str]
    status: str
    priority: str
    start_date: Optional[UtcDatetime]
    due_date: Optional[UtcDatetime]
    created_at: UtcDatetime
    updated_at: UtcDatetime

    model_config = {"from_attributes": True}


class TodoList(BaseModel):
    todos: list[TodoRead]
    pagination: OffsetPagination


class TodoStatusCounts(BaseModel):
    pending: int = 0
    in_progress: int = 0
    completed: int = 0
    total: int = 0


class TodoPriorityCounts(BaseModel):
    low: int = 0
    medium: int = 0
    high: int = 0


class TodoStats(BaseModel):
    by_status: TodoStatusCounts
    by_priority: TodoPriorityCounts
    week_completed: int
