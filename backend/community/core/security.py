"""
Password hashing, session tokens and role checks.
"""

from datetime import datetime, timedelta
from typing import Any

import bcrypt
import jwt

from community.core.config import settings
from community.models.user import UserRole


def hash_password(plain: str, rounds: int | None = None) -> str:
    """Hash a plain text password with bcrypt."""
    salt = bcrypt.gensalt(rounds=rounds or settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Check a plain text password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in storage
        return False


def create_access_token(user_id: int, role: str, expires_minutes: int | None = None) -> str:
    """
    Create a signed session token.

    Payload:
        sub: user id (string, per JWT convention)
        role: role at issue time
        iat / exp: issue and expiry timestamps
    """
    now = datetime.utcnow()
    expires = timedelta(minutes=expires_minutes or settings.jwt_access_token_expire_minutes)
    payload = {
        "sub": str(user_id),
        "role": role,
        "iat": now,
        "exp": now + expires,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and validate a session token.

    Raises:
        jwt.ExpiredSignatureError: token expired
        jwt.InvalidTokenError: token malformed or signature mismatch
    """
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])


def can_moderate(role: UserRole | str) -> bool:
    return role in (UserRole.MODERATOR, UserRole.ADMIN)


def can_admin(role: UserRole | str) -> bool:
    return role == UserRole.ADMIN


def is_trusted(role: UserRole | str) -> bool:
    return role in (UserRole.TRUSTED, UserRole.MODERATOR, UserRole.ADMIN)
