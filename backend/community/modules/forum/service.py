"""
Forum Service - Topic, reply, vote and bookmark management.
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from loguru import logger
from slugify import slugify
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from community.core.config import settings
from community.core.exceptions import (
    InvalidOperationError,
    NotFoundError,
    PermissionDeniedError,
)
from community.core.security import can_moderate
from community.models import (
    Bookmark,
    Category,
    Product,
    Reply,
    Tag,
    Topic,
    TopicStatus,
    TopicTag,
    TopicType,
    User,
    Vote,
    VoteType,
)
from community.models.loaders import reply_options, topic_list_options
from community.modules.forum.markdown import render_markdown
from community.modules.search.provider import IndexableDocument, get_search_provider
from community.modules.users.service import UserService

FeedFilter = Literal["latest", "trending", "unanswered", "resolved"]
TopicSort = Literal["latest", "votes", "views", "activity"]

_SORT_COLUMNS = {
    "votes": Topic.vote_score,
    "views": Topic.view_count,
    "activity": Topic.last_activity,
    "latest": Topic.created_at,
}

_SLUG_MAX_LENGTH = 200


@dataclass
class TopicPage:
    """One page of a product's topic listing."""

    items: list[Topic]
    total: int
    page: int
    pages: int


@dataclass
class VoteResult:
    score: int
    user_vote: VoteType | None


def vote_delta(existing: VoteType | None, requested: VoteType) -> tuple[int, VoteType | None]:
    """
    Score change and resulting vote when a user clicks a vote button.

    Clicking the same direction again withdraws the vote; clicking the
    opposite direction flips it, which moves the score by two.
    """
    step = 1 if requested == VoteType.UP else -1
    if existing is None:
        return step, requested
    if existing == requested:
        return -step, None
    return 2 * step, requested


class ForumService:
    """
    Service for managing topics, replies, votes and bookmarks.

    Usage:
        forum = ForumService(db_session)
        topics = await forum.get_feed("trending")
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize forum service with database session."""
        self.db = db
        self.users = UserService(db)

    def _topics(self):
        return (
            select(Topic)
            .options(*topic_list_options())
            .execution_options(populate_existing=True)
        )

    async def _bump(self, model, row_id: int, **deltas: int) -> None:
        """Add deltas to counter columns with a single UPDATE."""
        values = {name: getattr(model, name) + delta for name, delta in deltas.items()}
        await self.db.execute(
            update(model)
            .where(model.id == row_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    # ==================== Feeds ====================

    async def get_feed(
        self,
        feed: FeedFilter = "latest",
        limit: int | None = None,
    ) -> list[Topic]:
        """
        Get the community-wide topic feed.

        Args:
            feed: latest, trending, unanswered or resolved
            limit: Max results

        Returns:
            List of topics
        """
        query = self._topics()

        if feed == "trending":
            query = query.order_by(Topic.vote_score.desc(), Topic.id.desc())
        elif feed == "unanswered":
            query = query.where(
                Topic.status == TopicStatus.OPEN,
                Topic.type == TopicType.QUESTION,
                Topic.reply_count == 0,
            ).order_by(Topic.created_at.desc(), Topic.id.desc())
        elif feed == "resolved":
            query = query.where(
                Topic.status.in_([TopicStatus.ANSWERED, TopicStatus.RESOLVED])
            ).order_by(Topic.last_activity.desc(), Topic.id.desc())
        else:
            query = query.order_by(Topic.last_activity.desc(), Topic.id.desc())

        query = query.limit(limit or settings.forum_feed_size)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_announcements(self, limit: int | None = None) -> list[Topic]:
        """Get pinned announcements, newest first."""
        query = (
            self._topics()
            .where(Topic.type == TopicType.ANNOUNCEMENT, Topic.is_pinned == True)
            .order_by(Topic.created_at.desc(), Topic.id.desc())
            .limit(limit or settings.forum_announcements)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_product_topics(
        self,
        product_id: int,
        topic_type: TopicType | None = None,
        status: TopicStatus | None = None,
        category_slug: str | None = None,
        sort: TopicSort = "latest",
        page: int = 1,
        per_page: int | None = None,
    ) -> TopicPage:
        """
        Get a page of a product's topics, pinned topics first.

        Args:
            product_id: Product ID
            topic_type: Filter by type
            status: Filter by status
            category_slug: Filter by category within the product
            sort: latest, votes, views or activity
            page: 1-based page number
            per_page: Page size

        Returns:
            TopicPage with items and totals
        """
        per_page = per_page or settings.forum_topics_per_page
        conditions = [Topic.product_id == product_id]

        if topic_type:
            conditions.append(Topic.type == topic_type)
        if status:
            conditions.append(Topic.status == status)
        if category_slug:
            category_id = await self.db.scalar(
                select(Category.id).where(
                    Category.product_id == product_id, Category.slug == category_slug
                )
            )
            # Unknown category: show the unfiltered listing
            if category_id is not None:
                conditions.append(Topic.category_id == category_id)

        sort_column = _SORT_COLUMNS.get(sort, Topic.created_at)
        query = (
            self._topics()
            .where(*conditions)
            .order_by(Topic.is_pinned.desc(), sort_column.desc(), Topic.id.desc())
            .limit(per_page)
            .offset((page - 1) * per_page)
        )

        result = await self.db.execute(query)
        total = await self.db.scalar(select(func.count(Topic.id)).where(*conditions)) or 0

        return TopicPage(
            items=list(result.scalars().all()),
            total=total,
            page=page,
            pages=math.ceil(total / per_page),
        )

    # ==================== Topics ====================

    async def get_topic(self, topic_id: int) -> Topic | None:
        """Get topic by ID with author, product, category and tags."""
        result = await self.db.execute(self._topics().where(Topic.id == topic_id))
        return result.scalar_one_or_none()

    async def get_topic_by_slug(
        self,
        product_slug: str,
        topic_slug: str,
    ) -> Topic | None:
        """Get topic by product and topic slugs."""
        query = (
            self._topics()
            .join(Product, Topic.product_id == Product.id)
            .where(Product.slug == product_slug, Topic.slug == topic_slug)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def reindex_topic(self, topic_id: int) -> Topic:
        """Reload a written topic and hand it to the search provider."""
        topic = await self.get_topic(topic_id)
        await get_search_provider(self.db).index_topic(IndexableDocument.from_topic(topic))
        return topic

    async def increment_view_count(self, topic: Topic) -> None:
        """Increment topic view count."""
        await self._bump(Topic, topic.id, view_count=1)
        set_committed_value(topic, "view_count", topic.view_count + 1)

    async def unique_slug(self, product_id: int, title: str) -> str:
        base_slug = slugify(title)[:_SLUG_MAX_LENGTH].strip("-") or "topic"
        slug = base_slug

        # Ensure unique slug within the product
        counter = 1
        while True:
            existing = await self.db.execute(
                select(Topic.id).where(Topic.product_id == product_id, Topic.slug == slug)
            )
            if existing.scalar_one_or_none() is None:
                return slug
            slug = f"{base_slug}-{counter}"
            counter += 1

    async def _load_tags(self, tag_ids: Sequence[int]) -> list[Tag]:
        unique_ids = list(dict.fromkeys(tag_ids))
        if len(unique_ids) > settings.forum_max_tags_per_topic:
            raise InvalidOperationError(
                f"Maximum {settings.forum_max_tags_per_topic} tags allowed"
            )
        if not unique_ids:
            return []

        result = await self.db.execute(select(Tag).where(Tag.id.in_(unique_ids)))
        tags = list(result.scalars().all())
        if len(tags) != len(unique_ids):
            raise InvalidOperationError("Unknown tag", code="UNKNOWN_TAG")
        return tags

    async def _check_category(self, category_id: int, product_id: int) -> None:
        category = await self.db.get(Category, category_id)
        if category is None or category.product_id not in (None, product_id):
            raise InvalidOperationError(
                "Category does not belong to this product", code="INVALID_CATEGORY"
            )

    async def create_topic(
        self,
        author: User,
        product_id: int,
        title: str,
        body: str,
        topic_type: TopicType = TopicType.QUESTION,
        category_id: int | None = None,
        tag_ids: Sequence[int] = (),
    ) -> Topic:
        """
        Create new forum topic.

        Args:
            author: Posting user
            product_id: Product ID (must be visible)
            title: Topic title
            body: Topic body (markdown)
            topic_type: Question, discussion, announcement or showcase
            category_id: Optional category of the product (or global)
            tag_ids: Up to five tag IDs

        Returns:
            Created topic with relationships loaded
        """
        product = await self.db.get(Product, product_id)
        if product is None or not product.is_visible:
            raise NotFoundError("Product not found")

        if category_id is not None:
            await self._check_category(category_id, product.id)

        if topic_type == TopicType.ANNOUNCEMENT and not can_moderate(author.role):
            raise PermissionDeniedError("Only moderators can post announcements")

        tags = await self._load_tags(tag_ids)
        slug = await self.unique_slug(product.id, title)

        topic = Topic(
            product_id=product.id,
            category_id=category_id,
            author_id=author.id,
            title=title,
            slug=slug,
            body=body,
            body_html=render_markdown(body),
            type=topic_type,
            last_activity=datetime.utcnow(),
            tag_links=[TopicTag(tag_id=tag.id) for tag in tags],
        )
        self.db.add(topic)
        await self.db.flush()

        # Update tag usage counts
        if tags:
            await self.db.execute(
                update(Tag)
                .where(Tag.id.in_([tag.id for tag in tags]))
                .values(usage_count=Tag.usage_count + 1)
                .execution_options(synchronize_session=False)
            )

        await self.users.add_reputation(author.id, settings.reputation_topic)
        await self.users.award_badge(author.id, "first-post")

        logger.info(f"Topic {topic.id} '{slug}' created by user {author.id} in {product.slug}")
        return await self.reindex_topic(topic.id)

    async def update_topic(
        self,
        topic: Topic,
        editor: User,
        title: str | None = None,
        body: str | None = None,
        category_id: int | None = None,
        tag_ids: Sequence[int] | None = None,
    ) -> Topic:
        """
        Edit a topic. The slug is kept so existing links stay valid.

        Raises:
            PermissionDeniedError: editor is neither author nor moderator,
                or the topic is closed and editor is not a moderator
        """
        is_mod = can_moderate(editor.role)
        if topic.author_id != editor.id and not is_mod:
            raise PermissionDeniedError("Only the author can edit this topic")
        if topic.is_closed and not is_mod:
            raise PermissionDeniedError("This topic is closed")

        if title is not None:
            topic.title = title
        if body is not None:
            topic.body = body
            topic.body_html = render_markdown(body)
        if category_id is not None:
            await self._check_category(category_id, topic.product_id)
            topic.category_id = category_id

        if tag_ids is not None:
            await self._replace_tags(topic, tag_ids)

        await self.db.flush()
        logger.info(f"Topic {topic.id} edited by user {editor.id}")
        return await self.reindex_topic(topic.id)

    async def _replace_tags(self, topic: Topic, tag_ids: Sequence[int]) -> None:
        tags = await self._load_tags(tag_ids)
        wanted = {tag.id for tag in tags}
        current = {link.tag_id for link in topic.tag_links}

        removed = current - wanted
        added = wanted - current

        if removed:
            topic.tag_links = [link for link in topic.tag_links if link.tag_id not in removed]
            await self.db.execute(
                update(Tag)
                .where(Tag.id.in_(removed))
                .values(usage_count=Tag.usage_count - 1)
                .execution_options(synchronize_session=False)
            )
        if added:
            topic.tag_links.extend(TopicTag(tag_id=tag_id) for tag_id in added)
            await self.db.execute(
                update(Tag)
                .where(Tag.id.in_(added))
                .values(usage_count=Tag.usage_count + 1)
                .execution_options(synchronize_session=False)
            )

    async def get_related_topics(self, topic: Topic, limit: int | None = None) -> list[Topic]:
        """
        Other topics of the same product; ones sharing a tag come first.
        """
        query = self._topics().where(
            Topic.product_id == topic.product_id, Topic.id != topic.id
        )

        tag_ids = [link.tag_id for link in topic.tag_links]
        if tag_ids:
            shared_tags = (
                select(func.count(TopicTag.id))
                .where(TopicTag.topic_id == Topic.id, TopicTag.tag_id.in_(tag_ids))
                .correlate(Topic)
                .scalar_subquery()
            )
            query = query.order_by(shared_tags.desc())

        query = query.order_by(Topic.vote_score.desc(), Topic.id.desc()).limit(
            limit or settings.forum_related_topics
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    # ==================== Replies ====================

    async def get_reply(self, reply_id: int) -> Reply | None:
        query = (
            select(Reply)
            .options(*reply_options())
            .where(Reply.id == reply_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_replies(self, topic_id: int) -> list[Reply]:
        """
        Get top-level replies of a topic with their children.

        Top-level replies are ordered by score, then age; children by age.
        Deleted replies are excluded (children are filtered by the caller
        through `visible_children`).
        """
        query = (
            select(Reply)
            .options(*reply_options())
            .where(
                Reply.topic_id == topic_id,
                Reply.is_deleted == False,
                Reply.parent_id.is_(None),
            )
            .order_by(Reply.vote_score.desc(), Reply.created_at.asc(), Reply.id.asc())
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    def visible_children(reply: Reply) -> list[Reply]:
        return [child for child in reply.children if not child.is_deleted]

    async def create_reply(
        self,
        topic: Topic,
        author: User,
        body: str,
        parent_id: int | None = None,
    ) -> Reply:
        """
        Create new reply in topic.

        Args:
            topic: Topic being replied to
            author: Posting user
            body: Reply content (markdown)
            parent_id: Reply being answered; nesting is one level deep

        Returns:
            Created reply
        """
        if topic.is_closed:
            raise InvalidOperationError(
                "This topic is closed for replies", code="TOPIC_CLOSED"
            )

        if parent_id is not None:
            parent = await self.db.get(Reply, parent_id)
            if parent is None or parent.topic_id != topic.id or parent.is_deleted:
                raise InvalidOperationError("Parent reply not found in this topic")
            # Replies to a child attach to the thread's top-level reply
            parent_id = parent.parent_id or parent.id

        reply = Reply(
            topic_id=topic.id,
            author_id=author.id,
            parent_id=parent_id,
            body=body,
            body_html=render_markdown(body),
        )
        self.db.add(reply)
        await self.db.flush()

        # Update topic stats
        await self.db.execute(
            update(Topic)
            .where(Topic.id == topic.id)
            .values(reply_count=Topic.reply_count + 1, last_activity=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        await self.users.add_reputation(author.id, settings.reputation_reply)

        logger.info(f"Reply {reply.id} added to topic {topic.id} by user {author.id}")
        return await self.get_reply(reply.id)

    async def update_reply(self, reply: Reply, editor: User, body: str) -> Reply:
        """Update reply content."""
        if reply.is_deleted:
            raise NotFoundError("Reply not found")
        if reply.author_id != editor.id and not can_moderate(editor.role):
            raise PermissionDeniedError("Only the author can edit this reply")

        reply.body = body
        reply.body_html = render_markdown(body)
        reply.is_edited = True

        await self.db.flush()
        return await self.get_reply(reply.id)

    async def accept_answer(self, topic: Topic, reply: Reply, user: User) -> Topic:
        """
        Mark a reply as the accepted answer.

        The topic author or a moderator may accept; on a locked or archived
        topic only a moderator may, and the topic keeps its status. The reply
        author earns reputation only when the accepted reply changes.
        """
        is_mod = can_moderate(user.role)
        if topic.author_id != user.id and not is_mod:
            raise PermissionDeniedError("Only the topic author can accept answers")
        if topic.is_closed and not is_mod:
            raise PermissionDeniedError("This topic is closed")
        if reply.topic_id != topic.id or reply.is_deleted:
            raise InvalidOperationError("Reply does not belong to this topic")

        previous = topic.accepted_reply_id
        topic.accepted_reply_id = reply.id
        if not topic.is_closed:
            topic.status = TopicStatus.ANSWERED
        await self.db.flush()

        if previous != reply.id:
            await self.users.add_reputation(
                reply.author_id, settings.reputation_accepted_answer
            )
            await self.users.award_badge(reply.author_id, "helpful")
            logger.info(f"Reply {reply.id} accepted on topic {topic.id} by user {user.id}")

        return await self.get_topic(topic.id)

    async def get_accepted_reply(self, topic: Topic) -> Reply | None:
        if topic.accepted_reply_id is None:
            return None
        reply = await self.get_reply(topic.accepted_reply_id)
        if reply is None or reply.is_deleted:
            return None
        return reply

    # ==================== Votes ====================

    async def vote(
        self,
        user: User,
        vote_type: VoteType,
        topic_id: int | None = None,
        reply_id: int | None = None,
    ) -> VoteResult:
        """
        Toggle the user's vote on a topic or reply.

        Args:
            user: Voting user
            vote_type: UP or DOWN
            topic_id: Topic ID (mutually exclusive with reply_id)
            reply_id: Reply ID (mutually exclusive with topic_id)

        Returns:
            New score and the user's resulting vote
        """
        if (topic_id is None) == (reply_id is None):
            raise InvalidOperationError("Vote on exactly one of a topic or a reply")

        if topic_id is not None:
            model, target_id = Topic, topic_id
            target = await self.db.get(Topic, topic_id)
            query = select(Vote).where(Vote.user_id == user.id, Vote.topic_id == topic_id)
        else:
            model, target_id = Reply, reply_id
            target = await self.db.get(Reply, reply_id)
            if target is not None and target.is_deleted:
                target = None
            query = select(Vote).where(Vote.user_id == user.id, Vote.reply_id == reply_id)

        if target is None:
            raise NotFoundError(f"{model.__name__} not found")

        existing = (await self.db.execute(query)).scalar_one_or_none()
        delta, resulting = vote_delta(existing.type if existing else None, vote_type)

        if existing is None:
            self.db.add(
                Vote(user_id=user.id, topic_id=topic_id, reply_id=reply_id, type=vote_type)
            )
        elif resulting is None:
            await self.db.delete(existing)
        else:
            existing.type = resulting
        await self.db.flush()

        await self._bump(model, target_id, vote_score=delta)
        score = await self.db.scalar(select(model.vote_score).where(model.id == target_id))

        logger.debug(
            f"User {user.id} vote on {model.__name__.lower()} {target_id}: "
            f"{resulting.value if resulting else 'removed'} ({delta:+d})"
        )
        return VoteResult(score=score, user_vote=resulting)

    async def get_topic_vote(self, user_id: int, topic_id: int) -> VoteType | None:
        return await self.db.scalar(
            select(Vote.type).where(Vote.user_id == user_id, Vote.topic_id == topic_id)
        )

    async def get_reply_votes(
        self, user_id: int, reply_ids: Sequence[int]
    ) -> dict[int, VoteType]:
        """The user's votes on the given replies, keyed by reply ID."""
        if not reply_ids:
            return {}
        result = await self.db.execute(
            select(Vote.reply_id, Vote.type).where(
                Vote.user_id == user_id, Vote.reply_id.in_(list(reply_ids))
            )
        )
        return {reply_id: vote_type for reply_id, vote_type in result.all()}

    # ==================== Bookmarks ====================

    async def toggle_bookmark(self, user: User, topic_id: int) -> bool:
        """
        Bookmark or un-bookmark a topic.

        Returns:
            True if the topic is now bookmarked
        """
        if await self.db.get(Topic, topic_id) is None:
            raise NotFoundError("Topic not found")

        removed = await self.db.execute(
            delete(Bookmark).where(Bookmark.user_id == user.id, Bookmark.topic_id == topic_id)
        )
        if removed.rowcount:
            return False

        self.db.add(Bookmark(user_id=user.id, topic_id=topic_id))
        await self.db.flush()
        return True

    async def is_bookmarked(self, user_id: int, topic_id: int) -> bool:
        bookmark_id = await self.db.scalar(
            select(Bookmark.id).where(Bookmark.user_id == user_id, Bookmark.topic_id == topic_id)
        )
        return bookmark_id is not None
