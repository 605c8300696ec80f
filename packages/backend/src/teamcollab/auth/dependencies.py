"""FastAPI auth dependencies.

These are used as Depends() in route handlers to extract and validate the
current user from the `Authorization: Bearer <jwt>` header.

The identity is built from the token claims alone; routes that need the
full user row load it through the service layer.
"""

import uuid
from typing import Optional

from fastapi import Depends, HTTPException, Header

from teamcollab.auth.jwt import TokenError, verify_token


class CurrentIdentity:
    """The authenticated user making the request."""

    def __init__(
        self,
        user_id: uuid.UUID,
        email: str = "",
        role: str = "member",
    ):
        self.user_id = user_id
        self.email = email
        self.role = role

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @classmethod
    def from_token(cls, token: str) -> "CurrentIdentity":
        """Decode an access token. Raises TokenError if it is unusable."""
        payload = verify_token(token)
        try:
            user_id = uuid.UUID(payload["sub"])
        except (KeyError, ValueError, TypeError):
            raise TokenError("Invalid token: bad subject")
        return cls(
            user_id=user_id,
            email=payload.get("email", ""),
            role=payload.get("role", "member"),
        )


async def get_current_user_optional(
    authorization: Optional[str] = Header(None),
) -> Optional[CurrentIdentity]:
    """Extract current identity (optional — returns None if no auth)."""
    if authorization and authorization.startswith("Bearer "):
        return _authenticate_jwt(authorization[7:])
    return None


async def get_current_user(
    identity: Optional[CurrentIdentity] = Depends(get_current_user_optional),
) -> CurrentIdentity:
    """Extract current identity (required — 401 if no auth)."""
    if not identity:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


async def require_admin(
    identity: CurrentIdentity = Depends(get_current_user),
) -> CurrentIdentity:
    """Gate for /admin routes. The role comes from the token claims."""
    if not identity.is_admin:
        raise HTTPException(
            status_code=403,
            detail={
                "error": "Admin access required",
                "code": "ADMIN_ACCESS_REQUIRED",
            },
        )
    return identity


def _authenticate_jwt(token: str) -> CurrentIdentity:
    try:
        return CurrentIdentity.from_token(token)
    except TokenError as e:
        raise HTTPException(
            status_code=401,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )
