"""
Forum models for community discussions.

Includes:
- Topics (threads) with tags
- Replies (one level of nesting)
- Votes on topics and replies
- Bookmarks
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
    from community.models.catalog import Category, Product, Tag
    from community.models.user import User


class TopicType(str, PyEnum):
    QUESTION = "QUESTION"
    DISCUSSION = "DISCUSSION"
    ANNOUNCEMENT = "ANNOUNCEMENT"
    SHOWCASE = "SHOWCASE"


class TopicStatus(str, PyEnum):
    OPEN = "OPEN"
    ANSWERED = "ANSWERED"
    RESOLVED = "RESOLVED"
    LOCKED = "LOCKED"
    ARCHIVED = "ARCHIVED"


CLOSED_TOPIC_STATUSES = (TopicStatus.LOCKED, TopicStatus.ARCHIVED)


class VoteType(str, PyEnum):
    UP = "UP"
    DOWN = "DOWN"


class Topic(Base):
    """Forum topic/thread."""

    __tablename__ = "topics"
    __table_args__ = (UniqueConstraint("product_id", "slug"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), index=True)
    category_id: Mapped[int | None] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL")
    )
    author_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)

    title: Mapped[str] = mapped_column(String(200))
    slug: Mapped[str] = mapped_column(String(255), index=True)
    body: Mapped[str] = mapped_column(Text)
    body_html: Mapped[str | None] = mapped_column(Text)  # Rendered markdown

    type: Mapped[TopicType] = mapped_column(Enum(TopicType), default=TopicType.QUESTION)
    status: Mapped[TopicStatus] = mapped_column(
        Enum(TopicStatus), default=TopicStatus.OPEN, index=True
    )
    is_pinned: Mapped[bool] = mapped_column(Boolean, default=False)

    # Stats (denormalized)
    vote_score: Mapped[int] = mapped_column(Integer, default=0)
    view_count: Mapped[int] = mapped_column(Integer, default=0)
    reply_count: Mapped[int] = mapped_column(Integer, default=0)

    # Plain id: replies reference topics, so no FK back
    accepted_reply_id: Mapped[int | None] = mapped_column(Integer)

    # Timestamps
    last_activity: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    product: Mapped["Product"] = relationship(back_populates="topics")
    category: Mapped["Category | None"] = relationship(back_populates="topics")
    author: Mapped["User"] = relationship(back_populates="topics")
    tag_links: Mapped[list["TopicTag"]] = relationship(
        back_populates="topic", cascade="all, delete-orphan"
    )
    replies: Mapped[list["Reply"]] = relationship(
        back_populates="topic", cascade="all, delete-orphan"
    )
    votes: Mapped[list["Vote"]] = relationship(
        back_populates="topic", cascade="all, delete-orphan"
    )
    bookmarks: Mapped[list["Bookmark"]] = relationship(
        back_populates="topic", cascade="all, delete-orphan"
    )

    @property
    def tags(self) -> list["Tag"]:
        return [link.tag for link in self.tag_links]

    @property
    def is_closed(self) -> bool:
        return self.status in CLOSED_TOPIC_STATUSES

    def __repr__(self) -> str:
        return f"<Topic {self.title[:30]}>"


class TopicTag(Base):
    """Topic to tag association."""

    __tablename__ = "topic_tags"
    __table_args__ = (UniqueConstraint("topic_id", "tag_id"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    topic_id: Mapped[int] = mapped_column(
        ForeignKey("topics.id", ondelete="CASCADE"), index=True
    )
    tag_id: Mapped[int] = mapped_column(ForeignKey("tags.id", ondelete="CASCADE"), index=True)

    topic: Mapped["Topic"] = relationship(back_populates="tag_links")
    tag: Mapped["Tag"] = relationship(back_populates="topic_links")


class Reply(Base):
    """Reply inside a topic."""

    __tablename__ = "replies"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    topic_id: Mapped[int] = mapped_column(
        ForeignKey("topics.id", ondelete="CASCADE"), index=True
    )
    author_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("replies.id", ondelete="CASCADE")
    )

    body: Mapped[str] = mapped_column(Text)
    body_html: Mapped[str | None] = mapped_column(Text)  # Rendered markdown

    # Status
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    is_edited: Mapped[bool] = mapped_column(Boolean, default=False)

    # Stats
    vote_score: Mapped[int] = mapped_column(Integer, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    topic: Mapped["Topic"] = relationship(back_populates="replies")
    author: Mapped["User"] = relationship(back_populates="replies")
    parent: Mapped["Reply | None"] = relationship(
        "Reply", remote_side=[id], back_populates="children"
    )
    children: Mapped[list["Reply"]] = relationship(
        "Reply", back_populates="parent", order_by="Reply.created_at"
    )
    votes: Mapped[list["Vote"]] = relationship(
        back_populates="reply", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Reply {self.id} in topic {self.topic_id}>"


class Vote(Base):
    """Up/down vote on a topic or a reply (exactly one is set)."""

    __tablename__ = "votes"
    __table_args__ = (
        UniqueConstraint("user_id", "topic_id"),
        UniqueConstraint("user_id", "reply_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    topic_id: Mapped[int | None] = mapped_column(
        ForeignKey("topics.id", ondelete="CASCADE"), index=True
    )
    reply_id: Mapped[int | None] = mapped_column(
        ForeignKey("replies.id", ondelete="CASCADE"), index=True
    )
    type: Mapped[VoteType] = mapped_column(Enum(VoteType))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    topic: Mapped["Topic | None"] = relationship(back_populates="votes")
    reply: Mapped["Reply | None"] = relationship(back_populates="votes")


class Bookmark(Base):
    __tablename__ = "bookmarks"
    __table_args__ = (UniqueConstraint("user_id", "topic_id"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    topic_id: Mapped[int] = mapped_column(ForeignKey("topics.id", ondelete="CASCADE"))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    user: Mapped["User"] = relationship(back_populates="bookmarks")
    topic: Mapped["Topic"] = relationship(back_populates="bookmarks")
