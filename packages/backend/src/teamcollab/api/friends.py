"""Friends API — friend requests and relationship management."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from teamcollab.auth.dependencies import CurrentIdentity, get_current_user
from teamcollab.db.engine import get_db
from teamcollab.schemas.friend import (
    FriendRead,
    FriendRequestCreate,
    FriendshipView,
    RelationUpdate,
)
from teamcollab.services.friend_service import FriendService

router = APIRouter(prefix="/friends")


def _svc(db: AsyncSession = Depends(get_db)) -> FriendService:
    return FriendService(db)


@router.post("", response_model=FriendRead, status_code=201)
async def send_friend_request(
    body: FriendRequestCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: FriendService = Depends(_svc),
):
    return await svc.send_request(identity.user_id, body.user_id)


@router.get("", response_model=list[FriendshipView])
async def list_friends(
    status: Optional[str] = Query(None, pattern=r"^(pending|accepted|blocked)$"),
    identity: CurrentIdentity = Depends(get_current_user),
    svc: FriendService = Depends(_svc),
):
    """Every friendship involving the caller; `user` is the other party."""
    return await svc.list_friendships(identity.user_id, status)


# ─── Requests (before /{friendship_id}) ─────────────────


@router.get("/requests/received", response_model=list[FriendRead])
async def received_requests(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: FriendService = Depends(_svc),
):
    return await svc.received_requests(identity.user_id)


@router.get("/requests/sent", response_model=list[FriendRead])
async def sent_requests(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: FriendService = Depends(_svc),
):
    return await svc.sent_requests(identity.user_id)


# ─── Single friendship ──────────────────────────────────


@router.patch("/{friendship_id}", response_model=FriendRead)
async def update_relation(
    friendship_id: uuid.UUID,
    body: RelationUpdate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: FriendService = Depends(_svc),
):
    """Accept (recipient only) or block."""
    return await svc.update_relation(identity.user_id, friendship_id, body.relation)


@router.delete("/{friendship_id}", status_code=204)
async def delete_friendship(
    friendship_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: FriendService = Depends(_svc),
):
    await svc.delete_friendship(identity.user_id, friendship_id)
    return Response(status_code=204)
