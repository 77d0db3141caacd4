"""
User, verification code and badge models.
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from community.core.database import Base

if TYPE_CHECKING:
    from community.models.forum import Bookmark, Reply, Topic


class UserRole(str, PyEnum):
    """Community role, ordered by privilege."""

    USER = "USER"
    TRUSTED = "TRUSTED"
    MODERATOR = "MODERATOR"
    ADMIN = "ADMIN"


class VerificationCodeType(str, PyEnum):
    EMAIL_VERIFICATION = "EMAIL_VERIFICATION"
    SIGN_IN = "SIGN_IN"


class User(Base):
    """User account model."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    username: Mapped[str | None] = mapped_column(String(30), unique=True, index=True)
    # Null for accounts that only sign in with one-time codes
    hashed_password: Mapped[str | None] = mapped_column(String(255))

    # Profile
    name: Mapped[str | None] = mapped_column(String(100))
    image: Mapped[str | None] = mapped_column(String(500))
    bio: Mapped[str | None] = mapped_column(Text)
    website: Mapped[str | None] = mapped_column(String(255))
    github: Mapped[str | None] = mapped_column(String(50))
    twitter: Mapped[str | None] = mapped_column(String(50))

    # Standing
    role: Mapped[UserRole] = mapped_column(Enum(UserRole), default=UserRole.USER)
    reputation: Mapped[int] = mapped_column(Integer, default=0)
    is_banned: Mapped[bool] = mapped_column(Boolean, default=False)
    email_verified_at: Mapped[datetime | None] = mapped_column(DateTime)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    last_login: Mapped[datetime | None] = mapped_column(DateTime)

    # Relationships
    topics: Mapped[list["Topic"]] = relationship(back_populates="author")
    replies: Mapped[list["Reply"]] = relationship(back_populates="author")
    bookmarks: Mapped[list["Bookmark"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    badges: Mapped[list["UserBadge"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="desc(UserBadge.awarded_at)",
    )

    @property
    def display_name(self) -> str:
        return self.name or self.username or "Unknown"

    def __repr__(self) -> str:
        return f"<User {self.username or self.email}>"


class VerificationCode(Base):
    """One-time code emailed for signup verification or passwordless sign in."""

    __tablename__ = "verification_codes"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(12))
    type: Mapped[VerificationCodeType] = mapped_column(Enum(VerificationCodeType))
    email: Mapped[str] = mapped_column(String(255), index=True)
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE")
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime)
    used: Mapped[bool] = mapped_column(Boolean, default=False)
    # Set only when the code was consumed by a successful check
    verified_at: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<VerificationCode {self.type.value} for {self.email}>"


class Badge(Base):
    """Achievement shown on profiles."""

    __tablename__ = "badges"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100))
    slug: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    description: Mapped[str | None] = mapped_column(String(255))
    icon: Mapped[str | None] = mapped_column(String(50))
    color: Mapped[str | None] = mapped_column(String(20))

    def __repr__(self) -> str:
        return f"<Badge {self.slug}>"


class UserBadge(Base):
    __tablename__ = "user_badges"
    __table_args__ = (UniqueConstraint("user_id", "badge_id"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    badge_id: Mapped[int] = mapped_column(ForeignKey("badges.id", ondelete="CASCADE"))
    awarded_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    user: Mapped["User"] = relationship(back_populates="badges")
    badge: Mapped["Badge"] = relationship()
