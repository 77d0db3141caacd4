"""
Request dependencies: database session and the signed-in user.
"""

import jwt
from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from community.core.config import settings
from community.core.database import get_db
from community.core.security import can_admin, can_moderate, decode_access_token
from community.models import User
from community.modules.users.service import UserService


def _extract_token(request: Request, authorization: str | None) -> str | None:
    # Authorization: Bearer header first, then the session cookie
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization.split(" ", 1)[1].strip()
        if token:
            return token
    return request.cookies.get(settings.session_cookie_name)


async def _resolve_user(db: AsyncSession, token: str) -> User | None:
    try:
        payload = decode_access_token(token)
        user_id = int(payload["sub"])
    except (jwt.InvalidTokenError, KeyError, ValueError):
        return None
    return await UserService(db).get_user(user_id)


async def get_optional_user(
    request: Request,
    authorization: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """Signed-in user for pages that also work anonymously."""
    token = _extract_token(request, authorization)
    if not token:
        return None
    user = await _resolve_user(db, token)
    if user is None or user.is_banned:
        return None
    return user


async def get_current_user(
    request: Request,
    authorization: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Signed-in, unbanned user.

    The token only identifies the user; role and ban state are re-read from
    the database on every request so changes apply immediately.

    Raises:
        HTTPException (401): no token, bad token or unknown user
        HTTPException (403): user is banned
    """
    token = _extract_token(request, authorization)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    user = await _resolve_user(db, token)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired session")
    if user.is_banned:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="This account has been suspended")
    return user


async def require_moderator(user: User = Depends(get_current_user)) -> User:
    if not can_moderate(user.role):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Moderator access required")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not can_admin(user.role):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Administrator access required")
    return user
