"""
Moderation Service - reports, topic controls and user sanctions.

Every moderator action is written to the ModAction log.
"""

from typing import Any, Literal

from loguru import logger
from sqlalchemy import case, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from community.core.config import settings
from community.core.exceptions import (
    InvalidOperationError,
    NotFoundError,
    PermissionDeniedError,
)
from community.core.security import can_admin, can_moderate
from community.models import (
    Bookmark,
    Category,
    ModAction,
    ModActionType,
    Product,
    Reply,
    Report,
    ReportReason,
    ReportStatus,
    Tag,
    Topic,
    TopicStatus,
    TopicTag,
    User,
    UserRole,
    Vote,
)
from community.modules.forum.service import ForumService
from community.modules.search.provider import get_search_provider

ReportFilter = Literal["pending", "reviewed", "resolved", "dismissed", "all"]
ReportDecision = Literal["RESOLVE", "DISMISS"]


class ModerationService:
    """
    Service for the moderation queue.

    Usage:
        moderation = ModerationService(db_session)
        await moderation.lock_topic(topic, moderator, reason="Off topic")
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize moderation service with database session."""
        self.db = db
        self.forum = ForumService(db)

    @staticmethod
    def _require_moderator(user: User) -> None:
        if not can_moderate(user.role):
            raise PermissionDeniedError("Moderator access required")

    async def _record(
        self,
        action_type: ModActionType,
        moderator: User,
        reason: str | None = None,
        details: dict[str, Any] | None = None,
        **targets: int | None,
    ) -> ModAction:
        action = ModAction(
            type=action_type,
            moderator_id=moderator.id,
            reason=reason,
            details=details,
            **targets,
        )
        self.db.add(action)
        await self.db.flush()

        target_ids = {name: value for name, value in targets.items() if value is not None}
        logger.info(f"Mod action {action_type.value} by user {moderator.id} {target_ids}")
        return action

    # ==================== Reports ====================

    async def report_content(
        self,
        reporter: User,
        reason: ReportReason,
        details: str | None = None,
        topic_id: int | None = None,
        reply_id: int | None = None,
    ) -> Report:
        """
        File a report against a topic or a reply.

        Any signed-in user may report; moderators work the queue.
        """
        if (topic_id is None) == (reply_id is None):
            raise InvalidOperationError("Report exactly one of a topic or a reply")

        if topic_id is not None and await self.db.get(Topic, topic_id) is None:
            raise NotFoundError("Topic not found")
        if reply_id is not None:
            reply = await self.db.get(Reply, reply_id)
            if reply is None or reply.is_deleted:
                raise NotFoundError("Reply not found")

        report = Report(
            reason=reason,
            details=details or None,
            reporter_id=reporter.id,
            topic_id=topic_id,
            reply_id=reply_id,
        )
        self.db.add(report)
        await self.db.flush()

        logger.info(f"Report {report.id} ({reason.value}) filed by user {reporter.id}")
        return report

    async def get_report(self, report_id: int) -> Report | None:
        return await self.db.get(Report, report_id)

    async def list_reports(
        self,
        status: ReportFilter = "pending",
        limit: int | None = None,
    ) -> list[Report]:
        """
        Newest reports with reporter and target context.

        Args:
            status: pending, reviewed, resolved, dismissed or all
            limit: Max results
        """
        query = (
            select(Report)
            .options(
                selectinload(Report.reporter),
                selectinload(Report.topic).selectinload(Topic.product),
                selectinload(Report.reply)
                .selectinload(Reply.topic)
                .selectinload(Topic.product),
            )
            .order_by(Report.created_at.desc(), Report.id.desc())
            .limit(limit or settings.forum_mod_queue_size)
            .execution_options(populate_existing=True)
        )
        if status != "all":
            query = query.where(Report.status == ReportStatus(status.upper()))

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def report_stats(self) -> dict[str, int]:
        """Report totals by outcome."""
        rows = await self.db.execute(
            select(Report.status, func.count(Report.id)).group_by(Report.status)
        )
        by_status = {status: count for status, count in rows.all()}

        pending = by_status.get(ReportStatus.PENDING, 0)
        resolved = by_status.get(ReportStatus.RESOLVED, 0)
        dismissed = by_status.get(ReportStatus.DISMISSED, 0)
        return {
            "pending": pending,
            "resolved": resolved,
            "dismissed": dismissed,
            "total": pending + resolved + dismissed,
        }

    async def recent_actions(self, limit: int | None = None) -> list[ModAction]:
        query = (
            select(ModAction)
            .options(selectinload(ModAction.moderator), selectinload(ModAction.target_user))
            .order_by(ModAction.created_at.desc(), ModAction.id.desc())
            .limit(limit or settings.forum_mod_recent_actions)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def resolve_report(
        self,
        report: Report,
        moderator: User,
        decision: ReportDecision,
    ) -> Report:
        """Close a report as resolved or dismissed."""
        self._require_moderator(moderator)

        if decision == "RESOLVE":
            report.status = ReportStatus.RESOLVED
            action_type = ModActionType.RESOLVE_REPORT
        else:
            report.status = ReportStatus.DISMISSED
            action_type = ModActionType.DISMISS_REPORT

        await self._record(action_type, moderator, report_id=report.id)
        return report

    # ==================== Topics ====================

    async def lock_topic(self, topic: Topic, moderator: User, reason: str | None = None) -> Topic:
        self._require_moderator(moderator)
        topic.status = TopicStatus.LOCKED
        await self._record(ModActionType.LOCK_TOPIC, moderator, reason, topic_id=topic.id)
        return topic

    async def unlock_topic(self, topic: Topic, moderator: User, reason: str | None = None) -> Topic:
        self._require_moderator(moderator)
        topic.status = TopicStatus.OPEN
        await self._record(ModActionType.UNLOCK_TOPIC, moderator, reason, topic_id=topic.id)
        return topic

    async def pin_topic(self, topic: Topic, moderator: User) -> Topic:
        """Toggle the pinned flag."""
        self._require_moderator(moderator)
        topic.is_pinned = not topic.is_pinned
        action_type = ModActionType.PIN_TOPIC if topic.is_pinned else ModActionType.UNPIN_TOPIC
        await self._record(action_type, moderator, topic_id=topic.id)
        return topic

    async def change_status(
        self,
        topic: Topic,
        moderator: User,
        status: TopicStatus,
        reason: str | None = None,
    ) -> Topic:
        self._require_moderator(moderator)
        previous = topic.status
        topic.status = status
        await self._record(
            ModActionType.CHANGE_STATUS,
            moderator,
            reason,
            details={"from": previous.value, "to": status.value},
            topic_id=topic.id,
        )
        return topic

    async def move_topic(
        self,
        topic: Topic,
        moderator: User,
        product_id: int | None = None,
        category_id: int | None = None,
        reason: str | None = None,
    ) -> Topic:
        """
        Move a topic to another product and/or category.

        Moving to another product drops a category that does not apply
        there and re-slugs the topic if its slug is taken in the target.
        """
        self._require_moderator(moderator)

        details: dict[str, Any] = {}
        if product_id is not None and product_id != topic.product_id:
            product = await self.db.get(Product, product_id)
            if product is None:
                raise NotFoundError("Product not found")

            details["from_product_id"] = topic.product_id
            details["to_product_id"] = product.id
            topic.slug = await self.forum.unique_slug(product.id, topic.title)
            topic.product_id = product.id
            if topic.category is not None and topic.category.product_id not in (None, product.id):
                topic.category_id = None

        if category_id is not None:
            category = await self.db.get(Category, category_id)
            if category is None or category.product_id not in (None, topic.product_id):
                raise InvalidOperationError(
                    "Category does not belong to this product", code="INVALID_CATEGORY"
                )
            details["from_category_id"] = topic.category_id
            details["to_category_id"] = category.id
            topic.category_id = category.id

        await self._record(
            ModActionType.MOVE_TOPIC, moderator, reason, details=details, topic_id=topic.id
        )
        return await self.forum.reindex_topic(topic.id)

    async def delete_topic(self, topic: Topic, moderator: User, reason: str | None = None) -> str:
        """
        Permanently delete a topic with its replies, votes, bookmarks and tags.

        Returns:
            Slug of the product the topic belonged to
        """
        self._require_moderator(moderator)

        topic_id = topic.id
        title = topic.title
        product_slug = await self.db.scalar(
            select(Product.slug).where(Product.id == topic.product_id)
        )
        reply_ids = select(Reply.id).where(Reply.topic_id == topic_id)

        # Keep reports and the action log, detached from the removed content
        for model in (Report, ModAction):
            await self.db.execute(
                update(model)
                .where(model.topic_id == topic_id)
                .values(topic_id=None)
                .execution_options(synchronize_session=False)
            )
            await self.db.execute(
                update(model)
                .where(model.reply_id.in_(reply_ids))
                .values(reply_id=None)
                .execution_options(synchronize_session=False)
            )

        await self.db.execute(
            update(Tag)
            .where(Tag.id.in_(select(TopicTag.tag_id).where(TopicTag.topic_id == topic_id)))
            .values(usage_count=Tag.usage_count - 1)
            .execution_options(synchronize_session=False)
        )

        for statement in (
            delete(Vote).where(or_(Vote.topic_id == topic_id, Vote.reply_id.in_(reply_ids))),
            delete(Bookmark).where(Bookmark.topic_id == topic_id),
            delete(TopicTag).where(TopicTag.topic_id == topic_id),
            delete(Reply).where(Reply.topic_id == topic_id),
            delete(Topic).where(Topic.id == topic_id),
        ):
            await self.db.execute(statement.execution_options(synchronize_session=False))

        self.db.expunge(topic)
        await get_search_provider(self.db).delete_topic(topic_id)

        await self._record(
            ModActionType.DELETE_TOPIC, moderator, reason, details={"title": title}
        )
        return product_slug

    # ==================== Replies ====================

    async def delete_reply(self, reply: Reply, moderator: User, reason: str | None = None) -> Reply:
        """
        Soft delete a reply.

        The reply disappears from listings and stops counting toward the
        topic; an accepted answer that gets deleted is un-accepted. Children
        of a deleted top-level reply are promoted to top level so they stay
        listed.
        """
        self._require_moderator(moderator)
        if reply.is_deleted:
            raise NotFoundError("Reply not found")

        reply.is_deleted = True
        if reply.parent_id is None:
            await self.db.execute(
                update(Reply)
                .where(Reply.parent_id == reply.id)
                .values(parent_id=None)
                .execution_options(synchronize_session=False)
            )
        await self.db.execute(
            update(Topic)
            .where(Topic.id == reply.topic_id)
            .values(
                reply_count=case((Topic.reply_count > 0, Topic.reply_count - 1), else_=0)
            )
            .execution_options(synchronize_session=False)
        )

        topic = await self.db.get(Topic, reply.topic_id)
        if topic is not None and topic.accepted_reply_id == reply.id:
            topic.accepted_reply_id = None
            if topic.status == TopicStatus.ANSWERED:
                topic.status = TopicStatus.OPEN

        await self._record(
            ModActionType.DELETE_REPLY,
            moderator,
            reason,
            topic_id=reply.topic_id,
            reply_id=reply.id,
        )
        return reply

    # ==================== Users ====================

    def _check_sanction(self, target: User, moderator: User) -> None:
        if target.id == moderator.id:
            raise InvalidOperationError("You cannot sanction yourself")
        if target.role == UserRole.ADMIN:
            raise PermissionDeniedError("Administrators cannot be sanctioned")
        if target.role == UserRole.MODERATOR and not can_admin(moderator.role):
            raise PermissionDeniedError("Only administrators can sanction moderators")

    async def ban_user(self, target: User, moderator: User, reason: str | None = None) -> User:
        self._require_moderator(moderator)
        self._check_sanction(target, moderator)

        target.is_banned = True
        await self._record(ModActionType.BAN_USER, moderator, reason, target_user_id=target.id)
        return target

    async def unban_user(self, target: User, moderator: User, reason: str | None = None) -> User:
        self._require_moderator(moderator)

        target.is_banned = False
        await self._record(ModActionType.UNBAN_USER, moderator, reason, target_user_id=target.id)
        return target

    async def warn_user(self, target: User, moderator: User, reason: str | None = None) -> User:
        self._require_moderator(moderator)
        self._check_sanction(target, moderator)

        await self._record(ModActionType.WARN_USER, moderator, reason, target_user_id=target.id)
        return target
