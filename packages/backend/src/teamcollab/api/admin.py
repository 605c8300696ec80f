"""Admin API — system statistics, user and workspace management.

Every route depends on require_admin (role claim in the access token);
anything else gets 403 with code ADMIN_ACCESS_REQUIRED.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from teamcollab.auth.dependencies import CurrentIdentity, require_admin
from teamcollab.db.engine import get_db
from teamcollab.services.admin_service import AdminService

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


# ─── Schemas ─────────────────────────────────────────────


class UserStatusUpdate(BaseModel):
    is_active: bool


class UserRoleUpdate(BaseModel):
    role: str = Field(..., pattern=r"^(admin|manager|member)$")


def _svc(db: AsyncSession = Depends(get_db)) -> AdminService:
    return AdminService(db)


# ─── Statistics ─────────────────────────────────────────


@router.get("/stats")
async def system_stats(svc: AdminService = Depends(_svc)):
    return await svc.stats()


# ─── Users ──────────────────────────────────────────────


@router.get("/users")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    search: Optional[str] = None,
    status: Optional[str] = Query(None, pattern=r"^(active|inactive)$"),
    svc: AdminService = Depends(_svc),
):
    return await svc.list_users(page, limit, search, status)


@router.patch("/users/{user_id}/status")
async def set_user_status(
    user_id: uuid.UUID,
    body: UserStatusUpdate,
    identity: CurrentIdentity = Depends(require_admin),
    svc: AdminService = Depends(_svc),
):
    """Activate or deactivate. Deactivation revokes the user's refresh tokens."""
    return await svc.set_user_status(identity.user_id, user_id, body.is_active)


@router.patch("/users/{user_id}/role")
async def set_user_role(
    user_id: uuid.UUID,
    body: UserRoleUpdate,
    identity: CurrentIdentity = Depends(require_admin),
    svc: AdminService = Depends(_svc),
):
    return await svc.set_user_role(identity.user_id, user_id, body.role)


# ─── Workspaces ─────────────────────────────────────────


@router.get("/workspaces")
async def list_workspaces(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    search: Optional[str] = None,
    svc: AdminService = Depends(_svc),
):
    return await svc.list_workspaces(page, limit, search)


@router.delete("/workspaces/{ws_id}")
async def delete_workspace(ws_id: uuid.UUID, svc: AdminService = Depends(_svc)):
    return await svc.delete_workspace(ws_id)


# ─── Maintenance ────────────────────────────────────────


@router.post("/cleanup")
async def cleanup(svc: AdminService = Depends(_svc)):
    """Delete expired refresh tokens and month-old blocked friendships."""
    return await svc.cleanup()


@router.get("/logs")
async def activity_log(
    limit: int = Query(100, ge=1, le=1000),
    svc: AdminService = Depends(_svc),
):
    """Signups and workspace creations from the last 24 hours."""
    return {"logs": await svc.activity_log(limit)}


@router.post("/backup")
async def backup(svc: AdminService = Depends(_svc)):
    return await svc.backup()
