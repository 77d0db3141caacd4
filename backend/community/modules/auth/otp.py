"""
One-time verification codes.

A code is single use: verifying marks it used, and issuing a new one for the
same email and purpose invalidates the codes still outstanding.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from community.core.config import settings
from community.models import VerificationCode, VerificationCodeType


@dataclass
class CodeCheck:
    valid: bool
    user_id: int | None = None


def generate_otp(length: int | None = None) -> str:
    """Random numeric code without a leading zero."""
    length = length or settings.otp_length
    low = 10 ** (length - 1)
    return str(low + secrets.randbelow(9 * low))


async def create_verification_code(
    db: AsyncSession,
    email: str,
    code_type: VerificationCodeType,
    user_id: int | None = None,
) -> str:
    """
    Issue and store a new code.

    Args:
        db: Database session
        email: Recipient address
        code_type: Signup verification or sign in
        user_id: Account the code belongs to, when one exists

    Returns:
        The plain code to send
    """
    code = generate_otp()
    expires_at = datetime.utcnow() + timedelta(minutes=settings.otp_expire_minutes)

    # Invalidate any existing codes for this email/type
    await db.execute(
        update(VerificationCode)
        .where(
            VerificationCode.email == email,
            VerificationCode.type == code_type,
            VerificationCode.used == False,
        )
        .values(used=True)
        .execution_options(synchronize_session=False)
    )

    db.add(
        VerificationCode(
            code=code,
            type=code_type,
            email=email,
            user_id=user_id,
            expires_at=expires_at,
        )
    )
    await db.flush()
    return code


async def verify_code(
    db: AsyncSession,
    email: str,
    code: str,
    code_type: VerificationCodeType,
) -> CodeCheck:
    """Consume a live code; invalid, used and expired codes all fail."""
    result = await db.execute(
        select(VerificationCode)
        .where(
            VerificationCode.email == email,
            VerificationCode.code == code,
            VerificationCode.type == code_type,
            VerificationCode.used == False,
            VerificationCode.expires_at > datetime.utcnow(),
        )
        .order_by(VerificationCode.created_at.desc())
    )
    verification = result.scalars().first()
    if verification is None:
        return CodeCheck(valid=False)

    verification.used = True
    verification.verified_at = datetime.utcnow()
    await db.flush()
    return CodeCheck(valid=True, user_id=verification.user_id)


async def was_recently_verified(
    db: AsyncSession,
    email: str,
    code_type: VerificationCodeType,
    code: str | None = None,
) -> bool:
    """
    Whether a code was verified for this email within the grace window.

    Used to finish a flow (sign in, signup) right after the code was
    checked by the verify endpoint. Codes invalidated by a newer code are
    marked used but never verified, so they do not count.
    """
    cutoff = datetime.utcnow() - timedelta(minutes=settings.otp_grace_minutes)
    query = select(VerificationCode.id).where(
        VerificationCode.email == email,
        VerificationCode.type == code_type,
        VerificationCode.verified_at.is_not(None),
        VerificationCode.verified_at > cutoff,
    )
    if code is not None:
        query = query.where(VerificationCode.code == code)

    return (await db.execute(query.limit(1))).scalar_one_or_none() is not None


async def cleanup_expired_codes(db: AsyncSession) -> int:
    """
    Delete codes that are expired or used and older than the retention window.

    Returns:
        Number of deleted codes
    """
    now = datetime.utcnow()
    retention_cutoff = now - timedelta(hours=settings.otp_cleanup_after_hours)
    result = await db.execute(
        delete(VerificationCode).where(
            and_(
                or_(VerificationCode.expires_at < now, VerificationCode.used == True),
                VerificationCode.created_at < retention_cutoff,
            )
        )
    )
    return result.rowcount or 0
