"""Pydantic schemas for workspaces, memberships and invitations."""

import uuid
from typing import Optional

from pydantic import BaseModel, Field

from teamcollab.schemas.common import UtcDatetime
from teamcollab.schemas.user import EMAIL_PATTERN, UserSummary


# ─── Workspaces ──────────────────────────────────────────

class WorkspaceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None


class WorkspaceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None


class WorkspaceRead(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str]
    owner_id: uuid.UUID
    created_at: UtcDatetime
    updated_at: UtcDatetime
    owner: UserSummary

    model_config = {"from_attributes": True}


class WorkspaceRef(BaseModel):
    id: uuid.UUID
    name: str

    model_config = {"from_attributes": True}


class WorkspaceListItem(WorkspaceRead):
    role: str  # owner | member
    unread_chat_count: int
    member_count: int
    task_count: int


class WorkspaceDetail(WorkspaceRead):
    role: str
    unread_chat_count: int
    task_count: int
    members: list["MemberRead"]


# ─── Members ─────────────────────────────────────────────

class MemberInvite(BaseModel):
    user_id: Optional[uuid.UUID] = None


class MemberInviteByEmail(BaseModel):
    email: str = Field(..., pattern=EMAIL_PATTERN)


class InvitationResponse(BaseModel):
    accepted: bool


class MemberRead(BaseModel):
    """A membership row (or the synthesized owner entry)."""
    id: Optional[uuid.UUID] = None  # None for the owner
    workspace_id: uuid.UUID
    user_id: uuid.UUID
    accepted: bool
    joined_at: UtcDatetime
    role: str = "member"
    user: UserSummary


class InvitationRead(BaseModel):
    id: uuid.UUID
    workspace_id: uuid.UUID
    user_id: uuid.UUID
    accepted: bool
    joined_at: UtcDatetime
    user: UserSummary
    workspace: WorkspaceRef

    model_config = {"from_attributes": True}


class InviteByEmailResult(BaseModel):
    message: str
    member: InvitationRead


class ReceivedInvitation(BaseModel):
    id: uuid.UUID
    workspace_id: uuid.UUID
    accepted: bool
    joined_at: UtcDatetime
    workspace: WorkspaceRead

    model_config = {"from_attributes": True}


WorkspaceDetail.model_rebuild()
