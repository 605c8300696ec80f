"""API route aggregation.

All routers registered here get mounted in main.py under /api/v1.

Auth is applied at the include_router level using FastAPI's dependencies
parameter, so every handler behind it is protected. Health and auth stay
open (logout checks the token itself); admin adds its own role gate.
"""

from fastapi import APIRouter, Depends

from teamcollab.api.admin import router as admin_router
from teamcollab.api.auth import router as auth_router
from teamcollab.api.chat import router as chat_router
from teamcollab.api.friends import router as friends_router
from teamcollab.api.health import router as health_router
from teamcollab.api.tasks import router as tasks_router
from teamcollab.api.todos import router as todos_router
from teamcollab.api.users import router as users_router
from teamcollab.api.workspaces import router as workspaces_router
from teamcollab.auth.dependencies import get_current_user

# All protected routers require authentication
_auth = [Depends(get_current_user)]

api_router = APIRouter(prefix="/api/v1")

# Open routes — no auth required
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])

# Protected routes — require a valid access token
api_router.include_router(users_router, tags=["users"], dependencies=_auth)
api_router.include_router(friends_router, tags=["friends"], dependencies=_auth)
api_router.include_router(todos_router, tags=["todos"], dependencies=_auth)
api_router.include_router(tasks_router, tags=["tasks"], dependencies=_auth)
api_router.include_router(workspaces_router, tags=["workspaces"], dependencies=_auth)
api_router.include_router(chat_router, tags=["chat"], dependencies=_auth)
api_router.include_router(admin_router, tags=["admin"], dependencies=_auth)
