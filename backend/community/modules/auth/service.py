"""
Auth Service - one-time codes, signup and sign in.
"""

import re
from dataclasses import dataclass
from datetime import datetime

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from community.core.exceptions import (
    AuthenticationError,
    DeliveryError,
    InvalidOperationError,
    PermissionDeniedError,
)
from community.core.security import create_access_token, hash_password, verify_password
from community.models import User, UserRole, VerificationCodeType
from community.modules.auth import otp
from community.modules.auth.email import EmailSender, OtpPurpose
from community.modules.users.service import UserService

OTP_PASSWORD_PREFIX = "OTP:"
USERNAME_MAX_LENGTH = 30

_CODE_TYPES: dict[str, VerificationCodeType] = {
    "signup": VerificationCodeType.EMAIL_VERIFICATION,
    "signin": VerificationCodeType.SIGN_IN,
}

_USERNAME_STRIP = re.compile(r"[^A-Za-z0-9_-]")


@dataclass
class LoginResult:
    user: User
    access_token: str


def username_base(email: str) -> str:
    """Email local part reduced to username characters."""
    base = _USERNAME_STRIP.sub("", email.split("@", 1)[0])[:USERNAME_MAX_LENGTH]
    return base or "user"


class AuthService:
    """
    Service for passwordless codes and credential sign in.

    Usage:
        auth = AuthService(db_session)
        await auth.send_otp("user@example.com", "signin")
        result = await auth.login("user@example.com", "OTP:123456")
    """

    def __init__(self, db: AsyncSession, sender: EmailSender | None = None) -> None:
        """Initialize auth service with database session and email sender."""
        self.db = db
        self.sender = sender or EmailSender()
        self.users = UserService(db)

    # ==================== One-time codes ====================

    async def send_otp(self, email: str, purpose: OtpPurpose) -> None:
        """
        Issue and email a code.

        Sign in requests for unknown emails succeed silently so the endpoint
        does not reveal which addresses have accounts.

        Raises:
            InvalidOperationError: signup for an existing account
            PermissionDeniedError: sign in for a banned account
            DeliveryError: email could not be sent
        """
        email = email.lower()
        user = await self.users.get_by_email(email)

        if purpose == "signup":
            if user is not None:
                raise InvalidOperationError(
                    "An account with this email already exists", code="EMAIL_TAKEN"
                )
        else:
            if user is None:
                logger.info(f"Sign in code requested for unknown email {email}")
                return
            if user.is_banned:
                raise PermissionDeniedError("This account has been suspended", code="BANNED")

        code = await otp.create_verification_code(
            self.db, email, _CODE_TYPES[purpose], user_id=user.id if user else None
        )
        if not await self.sender.send_code(email, code, purpose):
            raise DeliveryError("Failed to send verification email. Please try again.")

    async def verify_otp(self, email: str, code: str, purpose: OtpPurpose) -> otp.CodeCheck:
        """
        Consume a code.

        Raises:
            InvalidOperationError: code unknown, used or expired
        """
        check = await otp.verify_code(self.db, email.lower(), code, _CODE_TYPES[purpose])
        if not check.valid:
            logger.warning(f"Rejected {purpose} code for {email}")
            raise InvalidOperationError(
                "Invalid or expired verification code", code="INVALID_CODE"
            )
        return check

    async def cleanup_codes(self) -> int:
        deleted = await otp.cleanup_expired_codes(self.db)
        logger.info(f"Removed {deleted} stale verification codes")
        return deleted

    # ==================== Accounts ====================

    async def _unique_username(self, email: str) -> str:
        base = username_base(email)
        username = base

        counter = 1
        while True:
            existing = await self.db.execute(select(User.id).where(User.username == username))
            if existing.scalar_one_or_none() is None:
                return username
            suffix = str(counter)
            username = f"{base[:USERNAME_MAX_LENGTH - len(suffix)]}{suffix}"
            counter += 1

    async def signup(self, name: str, email: str, password: str) -> User:
        """
        Create a password account.

        The email counts as verified when a signup code for it was checked
        within the grace window.

        Args:
            name: Display name
            email: Login email
            password: Plain password (already validated for strength)

        Returns:
            Created user
        """
        email = email.lower()
        if await self.users.get_by_email(email) is not None:
            raise InvalidOperationError(
                "An account with this email already exists", code="EMAIL_TAKEN"
            )

        verified = await otp.was_recently_verified(
            self.db, email, VerificationCodeType.EMAIL_VERIFICATION
        )

        user = User(
            name=name,
            email=email,
            username=await self._unique_username(email),
            hashed_password=hash_password(password),
            role=UserRole.USER,
            email_verified_at=datetime.utcnow() if verified else None,
        )
        self.db.add(user)
        await self.db.flush()

        logger.info(f"User {user.id} signed up as '{user.username}' (verified={verified})")
        return user

    async def login(self, email: str, password: str) -> LoginResult:
        """
        Authenticate with a password or a just-verified sign in code.

        A password of the form "OTP:<code>" signs in with a code that the
        verify endpoint accepted within the grace window.

        Raises:
            AuthenticationError: unknown email, wrong password or code
            PermissionDeniedError: banned account
            InvalidOperationError: account has no password
        """
        email = email.lower()
        user = await self.users.get_by_email(email)
        if user is None:
            raise AuthenticationError("No user found with this email")
        if user.is_banned:
            raise PermissionDeniedError("This account has been suspended", code="BANNED")

        if password.startswith(OTP_PASSWORD_PREFIX):
            code = password[len(OTP_PASSWORD_PREFIX):]
            if not await otp.was_recently_verified(
                self.db, email, VerificationCodeType.SIGN_IN, code=code
            ):
                raise AuthenticationError(
                    "Invalid or expired verification code", code="INVALID_CODE"
                )
        else:
            if not user.hashed_password:
                raise InvalidOperationError(
                    "Please sign in with a one-time code or set up a password",
                    code="NO_PASSWORD",
                )
            if not verify_password(password, user.hashed_password):
                logger.warning(f"Wrong password for user {user.id}")
                raise AuthenticationError("Invalid password")

        user.last_login = datetime.utcnow()
        await self.db.flush()

        logger.info(f"User {user.id} signed in")
        return LoginResult(user=user, access_token=create_access_token(user.id, user.role.value))
