"""
Auth API Endpoints.

One-time codes, signup, sign in and the current session.
"""

import re
from typing import Any, Literal

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from community.api.v1.deps import get_current_user
from community.api.v1.serializers import session_user
from community.core.config import settings
from community.core.database import get_db
from community.core.rate_limit import limiter
from community.models import User
from community.modules.auth.service import AuthService

router = APIRouter()


# ==================== Schemas ====================


class SendOtpRequest(BaseModel):
    email: EmailStr
    type: Literal["signup", "signin"]


class VerifyOtpRequest(BaseModel):
    email: EmailStr
    code: str = Field(..., min_length=6, max_length=6)
    type: Literal["signup", "signin"]


class SignupRequest(BaseModel):
    """New password account."""

    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8)

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        if not re.search(r"[A-Z]", v):
            raise ValueError("Password must contain at least one uppercase letter")
        if not re.search(r"[0-9]", v):
            raise ValueError("Password must contain at least one number")
        return v


class LoginRequest(BaseModel):
    """Password, or "OTP:<code>" after verifying a sign in code."""

    email: EmailStr
    password: str = Field(..., min_length=1)


# ==================== One-time codes ====================


@router.post("/send-otp")
@limiter.limit(settings.rate_limit_auth)
async def send_otp(
    request: Request,
    body: SendOtpRequest,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Email a signup or sign in code."""
    await AuthService(db).send_otp(body.email, body.type)
    return {"success": True}


@router.post("/verify-otp")
@limiter.limit(settings.rate_limit_auth)
async def verify_otp(
    request: Request,
    body: VerifyOtpRequest,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Check a code; the client then completes signup or sign in."""
    check = await AuthService(db).verify_otp(body.email, body.code, body.type)
    return {"success": True, "verified": True, "user_id": check.user_id}


# ==================== Accounts ====================


@router.post("/signup", status_code=201)
@limiter.limit(settings.rate_limit_auth)
async def signup(
    request: Request,
    body: SignupRequest,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Create a password account."""
    user = await AuthService(db).signup(body.name, body.email, body.password)
    return {
        "success": True,
        "user": {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "username": user.username,
            "email_verified": user.email_verified_at is not None,
        },
    }


@router.post("/login")
@limiter.limit(settings.rate_limit_auth)
async def login(
    request: Request,
    body: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """
    Sign in.

    The session token is returned in the body and also set as an HttpOnly
    cookie for browser clients.
    """
    result = await AuthService(db).login(body.email, body.password)
    response.set_cookie(
        settings.session_cookie_name,
        result.access_token,
        max_age=settings.jwt_access_token_expire_minutes * 60,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )
    return {
        "success": True,
        "user": session_user(result.user),
        "access_token": result.access_token,
        "token_type": "bearer",
    }


@router.get("/me")
async def me(user: User = Depends(get_current_user)) -> dict[str, Any]:
    return session_user(user)


@router.post("/logout")
async def logout(response: Response) -> dict[str, Any]:
    response.delete_cookie(settings.session_cookie_name)
    return {"success": True}
