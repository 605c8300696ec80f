"""Auth API — signup, login, token refresh, logout.

- POST /auth/signup → create an account (201)
- POST /auth/login → email/password → access + refresh JWTs
- POST /auth/refresh → stored refresh token → new access token
- POST /auth/logout → revoke every refresh token of the caller (204)
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from teamcollab.auth.dependencies import CurrentIdentity, get_current_user
from teamcollab.db.engine import get_db
from teamcollab.schemas.user import (
    AccessTokenResponse,
    LoginRequest,
    RefreshRequest,
    SignupRequest,
    TokenResponse,
    UserProfile,
)
from teamcollab.services.auth_service import AuthService

router = APIRouter(prefix="/auth")


def _svc(db: AsyncSession = Depends(get_db)) -> AuthService:
    return AuthService(db)


# ─── Signup ──────────────────────────────────────────────


@router.post("/signup", response_model=UserProfile, status_code=201)
async def signup(body: SignupRequest, svc: AuthService = Depends(_svc)):
    """Create a new user account. Duplicate email → 409."""
    return await svc.signup(body.email, body.password, body.nickname)


# ─── Login ───────────────────────────────────────────────


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, svc: AuthService = Depends(_svc)):
    """Login with email and password → JWT tokens."""
    user, access_token, refresh_token = await svc.login(body.email, body.password)
    return {
        "user": user,
        "access_token": access_token,
        "refresh_token": refresh_token,
    }


# ─── Refresh ────────────────────────────────────────────


@router.post("/refresh", response_model=AccessTokenResponse)
async def refresh(body: RefreshRequest, svc: AuthService = Depends(_svc)):
    """Exchange a stored refresh token for a new access token."""
    user, access_token = await svc.refresh(body.refresh_token)
    return {"access_token": access_token, "user": user}


# ─── Logout ─────────────────────────────────────────────


@router.post("/logout", status_code=204)
async def logout(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: AuthService = Depends(_svc),
):
    """Revoke all of the caller's refresh tokens."""
    await svc.logout(identity.user_id)
    return Response(status_code=204)
