"""Pydantic schemas for friendships."""

import uuid
from typing import Optional

from pydantic import BaseModel, Field

from teamcollab.schemas.common import UtcDatetime
from teamcollab.schemas.user import UserSummary


class FriendRequestCreate(BaseModel):
    user_id: Optional[uuid.UUID] = None


class RelationUpdate(BaseModel):
    relation: str = Field(..., pattern=r"^(accepted|blocked)$")


class FriendRead(BaseModel):
    """A raw edge with both parties attached."""
    id: uuid.UUID
    user_id: uuid.UUID
    friend_id: uuid.UUID
    status: str
    created_at: UtcDatetime
    updated_at: UtcDatetime
    user: UserSummary
    friend: UserSummary

    model_config = {"from_attributes": True}


class FriendshipView(BaseModel):
    """An edge seen from the caller's side: `user` is the other party."""
    id: uuid.UUID
    user: UserSummary
    status: str
    is_initiator: bool
    created_at: UtcDatetime
    updated_at: UtcDatetime
