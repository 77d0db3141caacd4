"""
Topic search providers.

PostgreSQL uses its built-in full-text search; other databases (SQLite in
development and tests) fall back to substring matching. Both implement
the same SearchProvider contract so an external engine can be added later
without touching the API layer.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from loguru import logger
from sqlalchemy import ColumnElement, Select, case, exists, func, literal, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from community.core.config import settings
from community.models import (
    Category,
    Product,
    Tag,
    Topic,
    TopicStatus,
    TopicTag,
    TopicType,
    User,
)


@dataclass
class SearchParams:
    query: str = ""
    product_id: int | None = None
    category_id: int | None = None
    tag_ids: list[int] = field(default_factory=list)
    status: TopicStatus | None = None
    type: TopicType | None = None
    page: int = 1
    limit: int = 20

    @property
    def is_empty(self) -> bool:
        """Nothing to search for: no query, product or tags."""
        return not (self.query.strip() or self.product_id or self.tag_ids)


@dataclass
class SearchHit:
    id: int
    title: str
    body: str
    slug: str
    status: TopicStatus
    type: TopicType
    product_slug: str
    product_name: str
    category_slug: str | None
    category_name: str | None
    author_name: str
    author_username: str | None
    created_at: datetime
    vote_score: int
    reply_count: int
    tags: list[dict[str, str]] = field(default_factory=list)


@dataclass
class SearchResult:
    items: list[SearchHit]
    total: int
    page: int
    total_pages: int

    @classmethod
    def empty(cls, page: int = 1) -> "SearchResult":
        return cls(items=[], total=0, page=page, total_pages=0)


@dataclass
class IndexableDocument:
    id: int
    title: str
    body: str
    product_id: int
    author_id: int
    category_id: int | None = None
    tags: list[str] = field(default_factory=list)

    @classmethod
    def from_topic(cls, topic: Topic) -> "IndexableDocument":
        """Build from a topic loaded with its tag links."""
        return cls(
            id=topic.id,
            title=topic.title,
            body=topic.body,
            product_id=topic.product_id,
            author_id=topic.author_id,
            category_id=topic.category_id,
            tags=[link.tag.slug for link in topic.tag_links],
        )


class SearchProvider(ABC):
    """Contract for topic search backends."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @abstractmethod
    def match_clause(self, query: str) -> ColumnElement[bool]:
        """Condition selecting topics that match the text query."""

    @abstractmethod
    def rank_clause(self, query: str) -> ColumnElement[Any]:
        """Relevance expression, higher is better."""

    async def index_topic(self, document: IndexableDocument) -> None:
        """Database-backed providers index on write; nothing to do."""

    async def delete_topic(self, topic_id: int) -> None:
        """Rows disappear with the topic; nothing to do."""

    def _conditions(self, params: SearchParams) -> list[ColumnElement[bool]]:
        conditions: list[ColumnElement[bool]] = []
        query = params.query.strip()

        if query:
            conditions.append(self.match_clause(query))
        if params.product_id:
            conditions.append(Topic.product_id == params.product_id)
        if params.category_id:
            conditions.append(Topic.category_id == params.category_id)
        if params.status:
            conditions.append(Topic.status == params.status)
        if params.type:
            conditions.append(Topic.type == params.type)
        if params.tag_ids:
            conditions.append(
                exists().where(
                    TopicTag.topic_id == Topic.id, TopicTag.tag_id.in_(params.tag_ids)
                )
            )
        return conditions

    def _hits_query(self, params: SearchParams, conditions: list) -> Select:
        author = aliased(User)
        query = (
            select(
                Topic.id,
                Topic.title,
                Topic.body,
                Topic.slug,
                Topic.status,
                Topic.type,
                Topic.created_at,
                Topic.vote_score,
                Topic.reply_count,
                Product.slug.label("product_slug"),
                Product.name.label("product_name"),
                Category.slug.label("category_slug"),
                Category.name.label("category_name"),
                author.name.label("author_name"),
                author.username.label("author_username"),
            )
            .join(Product, Topic.product_id == Product.id)
            .outerjoin(Category, Topic.category_id == Category.id)
            .join(author, Topic.author_id == author.id)
            .where(*conditions)
        )

        text = params.query.strip()
        if text:
            query = query.order_by(self.rank_clause(text).desc())
        return (
            query.order_by(Topic.last_activity.desc(), Topic.id.desc())
            .limit(params.limit)
            .offset((params.page - 1) * params.limit)
        )

    async def _tags_by_topic(self, topic_ids: list[int]) -> dict[int, list[dict[str, str]]]:
        if not topic_ids:
            return {}
        result = await self.db.execute(
            select(TopicTag.topic_id, Tag.name, Tag.slug)
            .join(Tag, Tag.id == TopicTag.tag_id)
            .where(TopicTag.topic_id.in_(topic_ids))
            .order_by(Tag.name)
        )
        tags: dict[int, list[dict[str, str]]] = {}
        for topic_id, name, slug in result.all():
            tags.setdefault(topic_id, []).append({"name": name, "slug": slug})
        return tags

    async def search(self, params: SearchParams) -> SearchResult:
        """
        Search topics.

        Args:
            params: Text query, filters and pagination

        Returns:
            One page of hits with totals
        """
        conditions = self._conditions(params)

        total = await self.db.scalar(
            select(func.count(Topic.id)).select_from(Topic).where(*conditions)
        ) or 0

        rows = (await self.db.execute(self._hits_query(params, conditions))).all()
        tags = await self._tags_by_topic([row.id for row in rows])

        items = [
            SearchHit(
                id=row.id,
                title=row.title,
                body=row.body[: settings.search_snippet_length],
                slug=row.slug,
                status=row.status,
                type=row.type,
                product_slug=row.product_slug,
                product_name=row.product_name,
                category_slug=row.category_slug,
                category_name=row.category_name,
                author_name=row.author_name or row.author_username or "Unknown",
                author_username=row.author_username,
                created_at=row.created_at,
                vote_score=row.vote_score,
                reply_count=row.reply_count,
                tags=tags.get(row.id, []),
            )
            for row in rows
        ]

        logger.debug(
            f"{type(self).__name__} '{params.query}' -> {total} hits (page {params.page})"
        )
        return SearchResult(
            items=items,
            total=total,
            page=params.page,
            total_pages=math.ceil(total / params.limit),
        )


class PostgresSearchProvider(SearchProvider):
    """PostgreSQL full-text search over title and body."""

    config = "english"

    def _document(self):
        return func.to_tsvector(self.config, Topic.title + literal(" ") + Topic.body)

    def _tsquery(self, query: str):
        return func.plainto_tsquery(self.config, query)

    def match_clause(self, query: str) -> ColumnElement[bool]:
        return self._document().bool_op("@@")(self._tsquery(query))

    def rank_clause(self, query: str) -> ColumnElement[Any]:
        return func.ts_rank(self._document(), self._tsquery(query))


class LikeSearchProvider(SearchProvider):
    """Case-insensitive substring search; title matches rank first."""

    @staticmethod
    def _pattern(query: str) -> str:
        escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        return f"%{escaped}%"

    def match_clause(self, query: str) -> ColumnElement[bool]:
        pattern = self._pattern(query)
        return or_(
            Topic.title.ilike(pattern, escape="\\"),
            Topic.body.ilike(pattern, escape="\\"),
        )

    def rank_clause(self, query: str) -> ColumnElement[Any]:
        return case((Topic.title.ilike(self._pattern(query), escape="\\"), 1), else_=0)


_PROVIDERS: dict[str, type[SearchProvider]] = {
    "postgres": PostgresSearchProvider,
    "like": LikeSearchProvider,
}


def get_search_provider(db: AsyncSession) -> SearchProvider:
    """
    Pick the search backend.

    `settings.search_backend` may name a provider explicitly; "auto" picks
    full-text search on PostgreSQL and substring matching elsewhere.
    """
    backend = settings.search_backend
    if backend == "auto":
        dialect = db.get_bind().dialect.name
        backend = "postgres" if dialect == "postgresql" else "like"

    provider_class = _PROVIDERS.get(backend)
    if provider_class is None:
        raise ValueError(f"Unknown search backend: {backend}")
    return provider_class(db)


async def search_topics(db: AsyncSession, params: SearchParams) -> SearchResult:
    """Search with the configured provider."""
    if params.is_empty:
        return SearchResult.empty(params.page)
    return await get_search_provider(db).search(params)
