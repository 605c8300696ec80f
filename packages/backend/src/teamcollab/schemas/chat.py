"""Pydantic schemas for workspace chat."""

import uuid

from pydantic import BaseModel

from teamcollab.schemas.common import PagePagination, UtcDatetime
from teamcollab.schemas.user import UserSummary


class MessageCreate(BaseModel):
    content: str = ""


class ChatMessageRead(BaseModel):
    id: uuid.UUID
    workspace_id: uuid.UUID
    user_id: uuid.UUID
    content: str
    created_at: UtcDatetime
    user: UserSummary

    model_config = {"from_attributes": True}


class ChatHistory(BaseModel):
    messages: list[ChatMessageRead]
    pagination: PagePagination


class UnreadCount(BaseModel):
    unread_count: int
