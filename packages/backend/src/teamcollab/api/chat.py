"""Chat API — workspace messages, search and unread counters.

Mounted at /chat. Every route requires workspace membership (owner or
accepted member); message deletion is limited to the author or the owner.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from teamcollab.auth.dependencies import CurrentIdentity, get_current_user
from teamcollab.db.engine import get_db
from teamcollab.schemas.chat import ChatHistory, ChatMessageRead, MessageCreate, UnreadCount
from teamcollab.services.chat_service import ChatService

router = APIRouter(prefix="/chat")


def _svc(db: AsyncSession = Depends(get_db)) -> ChatService:
    return ChatService(db)


@router.get("/workspace/{ws_id}", response_model=ChatHistory)
async def chat_history(
    ws_id: uuid.UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ChatService = Depends(_svc),
):
    """A page of messages (page 1 = newest), oldest first within the page."""
    return await svc.history(ws_id, identity.user_id, page, limit)


@router.post("/workspace/{ws_id}", response_model=ChatMessageRead, status_code=201)
async def post_message(
    ws_id: uuid.UUID,
    body: MessageCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ChatService = Depends(_svc),
):
    return await svc.post_message(ws_id, identity.user_id, body.content)


@router.get("/workspace/{ws_id}/search", response_model=ChatHistory)
async def search_messages(
    ws_id: uuid.UUID,
    query: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ChatService = Depends(_svc),
):
    return await svc.search(ws_id, identity.user_id, query, page, limit)


@router.post("/workspace/{ws_id}/read")
async def mark_read(
    ws_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ChatService = Depends(_svc),
):
    await svc.mark_read(ws_id, identity.user_id)
    return {"message": "Marked as read"}


@router.get("/workspace/{ws_id}/unread-count", response_model=UnreadCount)
async def unread_count(
    ws_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ChatService = Depends(_svc),
):
    return {"unread_count": await svc.unread_count(ws_id, identity.user_id)}


@router.delete("/message/{message_id}")
async def delete_message(
    message_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ChatService = Depends(_svc),
):
    await svc.delete_message(message_id, identity.user_id)
    return {"message": "Message deleted"}
