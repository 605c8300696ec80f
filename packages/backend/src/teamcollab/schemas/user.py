"""Pydantic schemas for users and authentication.

- SignupRequest / LoginRequest / RefreshRequest: auth request bodies
- UserSummary: the compact author/owner/friend shape embedded elsewhere
- UserProfile: what /users/me returns
- PublicProfile: another user's profile plus friendship state
"""

import uuid
from typing import Optional

from pydantic import BaseModel, Field

from teamcollab.schemas.common import UtcDatetime

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


# ─── Auth ────────────────────────────────────────────────

class SignupRequest(BaseModel):
    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(..., min_length=6)
    nickname: str = Field(..., min_length=1, max_length=100)


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


# ─── Users ───────────────────────────────────────────────

class UserSummary(BaseModel):
    id: uuid.UUID
    email: str
    nickname: str
    avatar: Optional[str] = None

    model_config = {"from_attributes": True}


class AuthUser(UserSummary):
    role: str


class UserProfile(BaseModel):
    id: uuid.UUID
    email: str
    nickname: str
    avatar: Optional[str]
    role: str
    last_login: Optional[UtcDatetime]
    created_at: UtcDatetime

    model_config = {"from_attributes": True}


class UserUpdate(BaseModel):
    """Partial update. `avatar` may be sent as null to clear it."""
    nickname: Optional[str] = Field(None, min_length=1, max_length=100)
    password: Optional[str] = Field(None, min_length=6)
    avatar: Optional[str] = None


class PublicProfile(BaseModel):
    id: uuid.UUID
    email: str
    nickname: str
    avatar: Optional[str]
    created_at: UtcDatetime
    friendship_status: Optional[str] = None
    is_friend: bool = False


class TokenResponse(BaseModel):
    user: AuthUser
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AccessTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: AuthUser
