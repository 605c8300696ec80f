"""JWT token creation and verification.

- Access token: short-lived (15 min), sent as Bearer on every API call and
  as `?token=` on the socket handshake
- Refresh token: long-lived (7 days), signed with its own secret and stored
  in the refresh_tokens table so it can be revoked

Access tokens carry email and role so the admin gate and the socket layer
don't need a database round-trip.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from teamcollab.config import settings


class TokenError(Exception):
    """Raised when token creation/verification fails."""


def create_access_token(
    user_id: str,
    email: str,
    role: str = "member",
    expires_minutes: Optional[int] = None,
) -> str:
    """Create a JWT access token."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "email": email,
        "role": role,
        "type": "access",
        "exp": now + timedelta(
            minutes=expires_minutes or settings.access_token_expire_minutes
        ),
        "iat": now,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_refresh_token(
    user_id: str,
    expires_days: Optional[int] = None,
) -> tuple[str, datetime]:
    """Create a JWT refresh token. Returns (token, expires_at)."""
    now = datetime.now(timezone.utc)
    expires = now + timedelta(days=expires_days or settings.refresh_token_expire_days)
    payload = {
        "sub": user_id,
        "type": "refresh",
        "jti": uuid.uuid4().hex,  # unique even when issued in the same second
        "exp": expires,
        "iat": now,
    }
    token = jwt.encode(
        payload, settings.refresh_token_secret, algorithm=settings.jwt_algorithm
    )
    return token, expires


def _decode(token: str, secret: str, expected_type: str) -> dict:
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")

    if payload.get("type") != expected_type:
        raise TokenError("Invalid token type")
    return payload


def verify_token(token: str) -> dict:
    """Verify and decode an access token.

    Returns the payload dict on success.
    Raises TokenError on failure.
    """
    return _decode(token, settings.jwt_secret, "access")


def verify_refresh_token(token: str) -> dict:
    """Verify and decode a refresh token (signed with the refresh secret)."""
    return _decode(token, settings.refresh_token_secret, "refresh")
