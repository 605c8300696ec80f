"""User API — own profile, user search, public profiles."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from teamcollab.auth.dependencies import CurrentIdentity, get_current_user
from teamcollab.db.engine import get_db
from teamcollab.schemas.user import PublicProfile, UserProfile, UserSummary, UserUpdate
from teamcollab.services.user_service import UserService

router = APIRouter(prefix="/users")


def _svc(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db)


@router.get("/me", response_model=UserProfile)
async def get_me(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: UserService = Depends(_svc),
):
    user = await svc.get_user(identity.user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.patch("/me", response_model=UserProfile)
async def update_me(
    body: UserUpdate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: UserService = Depends(_svc),
):
    """Partial profile update. Sending `"avatar": null` clears the avatar."""
    kwargs = {"nickname": body.nickname, "password": body.password}
    if "avatar" in body.model_fields_set:
        kwargs["avatar"] = body.avatar
    user = await svc.update_profile(identity.user_id, **kwargs)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


# Declared before /{user_id} so "search" isn't parsed as a UUID.
@router.get("/search", response_model=list[UserSummary])
async def search_users(
    q: Optional[str] = Query(None, description="Matches email or nickname"),
    identity: CurrentIdentity = Depends(get_current_user),
    svc: UserService = Depends(_svc),
):
    return await svc.search(identity.user_id, q)


@router.get("/{user_id}", response_model=PublicProfile)
async def get_user(
    user_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: UserService = Depends(_svc),
):
    profile = await svc.public_profile(identity.user_id, user_id)
    if not profile:
        raise HTTPException(status_code=404, detail="User not found")
    return profile
