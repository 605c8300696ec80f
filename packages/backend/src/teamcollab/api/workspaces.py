"""Workspace API — workspaces, members and invitations.

Key patterns:
- Owner-only routes (PATCH/DELETE workspace, invites) → 403 for members
- Member routes → 404 unknown workspace, 403 non-member
- PATCH /members/{user_id} is the invitee's accept/decline
"""

import uuid

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from teamcollab.auth.dependencies import CurrentIdentity, get_current_user
from teamcollab.db.engine import get_db
from teamcollab.schemas.workspace import (
    InvitationRead,
    InvitationResponse,
    InviteByEmailResult,
    MemberInvite,
    MemberInviteByEmail,
    MemberRead,
    ReceivedInvitation,
    WorkspaceCreate,
    WorkspaceDetail,
    WorkspaceListItem,
    WorkspaceRead,
    WorkspaceUpdate,
)
from teamcollab.services.workspace_service import WorkspaceService

router = APIRouter(prefix="/workspaces")


def _svc(db: AsyncSession = Depends(get_db)) -> WorkspaceService:
    return WorkspaceService(db)


# ═══════════════════════════════════════════════════════════
# Workspaces
# ═══════════════════════════════════════════════════════════


@router.post("", response_model=WorkspaceRead, status_code=201)
async def create_workspace(
    body: WorkspaceCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: WorkspaceService = Depends(_svc),
):
    return await svc.create_workspace(identity.user_id, body.name, body.description)


@router.get("", response_model=list[WorkspaceListItem])
async def list_workspaces(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: WorkspaceService = Depends(_svc),
):
    """Owned and joined workspaces with role, counts and unread chat."""
    return await svc.list_workspaces(identity.user_id)


@router.get("/invitations/received", response_model=list[ReceivedInvitation])
async def received_invitations(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: WorkspaceService = Depends(_svc),
):
    """Pending invitations addressed to the caller, newest first."""
    return await svc.received_invitations(identity.user_id)


@router.get("/{ws_id}", response_model=WorkspaceDetail)
async def get_workspace(
    ws_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: WorkspaceService = Depends(_svc),
):
    return await svc.get_detail(ws_id, identity.user_id)


@router.patch("/{ws_id}", response_model=WorkspaceRead)
async def update_workspace(
    ws_id: uuid.UUID,
    body: WorkspaceUpdate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: WorkspaceService = Depends(_svc),
):
    kwargs = {"name": body.name}
    if "description" in body.model_fields_set:
        kwargs["description"] = body.description
    return await svc.update_workspace(ws_id, identity.user_id, **kwargs)


@router.delete("/{ws_id}", status_code=204)
async def delete_workspace(
    ws_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: WorkspaceService = Depends(_svc),
):
    """Delete a workspace with its members, tasks and chat."""
    await svc.delete_workspace(ws_id, identity.user_id)
    return Response(status_code=204)


# ═══════════════════════════════════════════════════════════
# Members
# ═══════════════════════════════════════════════════════════


@router.get("/{ws_id}/members", response_model=list[MemberRead])
async def list_members(
    ws_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: WorkspaceService = Depends(_svc),
):
    """Owner first, then members and pending invitees by join time."""
    return await svc.list_members(ws_id, identity.user_id)


@router.post("/{ws_id}/members", response_model=InvitationRead, status_code=201)
async def invite_member(
    ws_id: uuid.UUID,
    body: MemberInvite,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: WorkspaceService = Depends(_svc),
):
    return await svc.invite(ws_id, identity.user_id, body.user_id)


@router.post(
    "/{ws_id}/members/invite-by-email",
    response_model=InviteByEmailResult,
    status_code=201,
)
async def invite_member_by_email(
    ws_id: uuid.UUID,
    body: MemberInviteByEmail,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: WorkspaceService = Depends(_svc),
):
    member = await svc.invite_by_email(ws_id, identity.user_id, body.email)
    return {"message": "Invitation sent", "member": member}


@router.patch("/{ws_id}/members/{user_id}", response_model=InvitationRead)
async def respond_to_invitation(
    ws_id: uuid.UUID,
    user_id: uuid.UUID,
    body: InvitationResponse,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: WorkspaceService = Depends(_svc),
):
    """Invitee accepts (200 + membership) or declines (204, invitation removed)."""
    member = await svc.respond_to_invitation(
        ws_id, user_id, identity.user_id, body.accepted
    )
    if member is None:
        return Response(status_code=204)
    return member


@router.delete("/{ws_id}/members/{user_id}", status_code=204)
async def remove_member(
    ws_id: uuid.UUID,
    user_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: WorkspaceService = Depends(_svc),
):
    """Owner removes a member, or a member leaves."""
    await svc.remove_member(ws_id, user_id, identity.user_id)
    return Response(status_code=204)
