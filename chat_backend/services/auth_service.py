"""
Token verification for the chat service.

The portal issues signed JWTs at login; this service only verifies them.

Claims used:
- userId (or sub): numeric user id, stored with chat messages
- username: display name
- isAdmin: grants access to the moderation endpoints
"""

from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwt
from pydantic import BaseModel

from chat_backend.core.config import settings
from chat_backend.core.logging import get_logger

logger = get_logger(__name__)


class TokenUser(BaseModel):
    id: Optional[int] = None
    username: Optional[str] = None
    is_admin: bool = False


class InvalidTokenError(Exception):
    pass


def verify_token(token: str) -> TokenUser:
    """Decode and verify a portal token."""
    if not settings.JWT_SECRET:
        raise InvalidTokenError("Token verification is not configured (JWT_SECRET unset)")

    try:
        claims: Dict[str, Any] = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        raise InvalidTokenError(str(e)) from e

    raw_id = claims.get("userId", claims.get("sub"))
    try:
        user_id = int(raw_id) if raw_id is not None else None
    except (TypeError, ValueError):
        raise InvalidTokenError(f"Invalid user id claim: {raw_id!r}")

    return TokenUser(
        id=user_id,
        username=claims.get("username"),
        is_admin=bool(claims.get("isAdmin", False)),
    )


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


async def get_current_user(request: Request) -> TokenUser:
    """
    Get current authenticated user from the Authorization header.
    Use as dependency for protected endpoints.
    """
    token = _bearer_token(request)
    if not token:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Access token required")

    try:
        return verify_token(token)
    except InvalidTokenError as e:
        logger.warning(f"Rejected token: {e}")
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Invalid or expired token")


async def require_admin(user: TokenUser = Depends(get_current_user)) -> TokenUser:
    if not user.is_admin:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Admin access required")
    return user
