"""
User Service - profiles, reputation, badges and roles.
"""

from typing import Any

from loguru import logger
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from community.core.config import settings
from community.core.exceptions import ConflictError
from community.models import (
    Badge,
    Bookmark,
    Reply,
    Topic,
    User,
    UserBadge,
    UserRole,
)
from community.models.loaders import topic_list_options

# Profile fields stored as NULL when submitted empty
_NULLABLE_PROFILE_FIELDS = ("website", "github", "twitter")


class UserService:
    """
    Service for user profiles and standing.

    Usage:
        users = UserService(db_session)
        profile = await users.get_profile("alice")
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize user service with database session."""
        self.db = db

    # ==================== Lookup ====================

    async def get_user(self, user_id: int) -> User | None:
        query = (
            select(User)
            .where(User.id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> User | None:
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> User | None:
        result = await self.db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    # ==================== Profiles ====================

    async def get_profile(self, identifier: str) -> User | None:
        """
        Get a user by username, or by numeric id.

        Args:
            identifier: Username or user id as it appears in the URL

        Returns:
            User with badges loaded, or None
        """
        condition = User.username == identifier
        if identifier.isdigit():
            condition = or_(condition, User.id == int(identifier))

        query = (
            select(User)
            .options(selectinload(User.badges).selectinload(UserBadge.badge))
            .where(condition)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return result.scalars().first()

    async def get_profile_counts(self, user_id: int) -> dict[str, int]:
        """Topic and reply totals shown on a profile."""
        topics = await self.db.scalar(
            select(func.count(Topic.id)).where(Topic.author_id == user_id)
        )
        replies = await self.db.scalar(
            select(func.count(Reply.id)).where(Reply.author_id == user_id)
        )
        return {"topics": topics or 0, "replies": replies or 0}

    async def get_user_topics(self, user_id: int, limit: int | None = None) -> list[Topic]:
        query = (
            select(Topic)
            .options(*topic_list_options())
            .where(Topic.author_id == user_id)
            .order_by(Topic.created_at.desc(), Topic.id.desc())
            .limit(limit or settings.forum_profile_items)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_user_replies(self, user_id: int, limit: int | None = None) -> list[Reply]:
        query = (
            select(Reply)
            .options(selectinload(Reply.topic).selectinload(Topic.product))
            .where(Reply.author_id == user_id, Reply.is_deleted == False)
            .order_by(Reply.created_at.desc(), Reply.id.desc())
            .limit(limit or settings.forum_profile_items)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_user_bookmarks(
        self, user_id: int, limit: int | None = None
    ) -> list[Bookmark]:
        query = (
            select(Bookmark)
            .options(selectinload(Bookmark.topic).options(*topic_list_options()))
            .where(Bookmark.user_id == user_id)
            .order_by(Bookmark.created_at.desc(), Bookmark.id.desc())
            .limit(limit or settings.forum_profile_items)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def update_profile(self, user: User, changes: dict[str, Any]) -> User:
        """
        Apply profile changes.

        Args:
            user: Profile owner
            changes: Submitted fields only (unset fields are left alone)

        Raises:
            ConflictError: username belongs to someone else
        """
        username = changes.get("username")
        if username:
            existing = await self.db.execute(
                select(User.id).where(User.username == username, User.id != user.id)
            )
            if existing.scalar_one_or_none() is not None:
                raise ConflictError("Username is already taken", code="USERNAME_TAKEN")

        for field, value in changes.items():
            if field in _NULLABLE_PROFILE_FIELDS and not value:
                value = None
            setattr(user, field, value)

        await self.db.flush()
        logger.info(f"Profile updated for user {user.id}: {sorted(changes)}")
        return user

    # ==================== Standing ====================

    async def add_reputation(self, user_id: int, points: int) -> None:
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(reputation=User.reputation + points)
            .execution_options(synchronize_session=False)
        )

    async def award_badge(self, user_id: int, badge_slug: str) -> bool:
        """
        Award a badge once.

        Returns:
            True if newly awarded (False if missing badge or already held)
        """
        badge_id = await self.db.scalar(select(Badge.id).where(Badge.slug == badge_slug))
        if badge_id is None:
            return False

        held = await self.db.scalar(
            select(UserBadge.id).where(
                UserBadge.user_id == user_id, UserBadge.badge_id == badge_id
            )
        )
        if held is not None:
            return False

        self.db.add(UserBadge(user_id=user_id, badge_id=badge_id))
        await self.db.flush()
        logger.info(f"Badge '{badge_slug}' awarded to user {user_id}")
        return True

    async def get_role_stats(self) -> dict[str, int]:
        """User totals by role for the admin dashboard."""
        rows = await self.db.execute(select(User.role, func.count(User.id)).group_by(User.role))
        by_role = {role: count for role, count in rows.all()}
        return {
            "total": sum(by_role.values()),
            "admins": by_role.get(UserRole.ADMIN, 0),
            "moderators": by_role.get(UserRole.MODERATOR, 0),
            "trusted": by_role.get(UserRole.TRUSTED, 0),
        }

    async def set_role(self, user: User, role: UserRole) -> User:
        previous = user.role
        user.role = role
        await self.db.flush()
        logger.info(f"User {user.id} role changed {previous.value} -> {role.value}")
        return user

    async def set_banned(self, user: User, banned: bool) -> User:
        user.is_banned = banned
        await self.db.flush()
        return user
