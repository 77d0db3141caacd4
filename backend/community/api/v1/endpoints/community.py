"""
Community API Endpoints.

Product directory, community feeds, product topic listings and topic pages.
"""

from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from community.api.v1.deps import get_optional_user
from community.api.v1.serializers import (
    category_data,
    product_data,
    reply_data,
    tag_data,
    topic_card,
    topic_detail,
)
from community.core.config import settings
from community.core.database import get_db
from community.core.security import can_moderate
from community.models import TopicStatus, TopicType, User
from community.modules.catalog.service import CatalogService
from community.modules.forum.service import ForumService

router = APIRouter()


# ==================== Products ====================


@router.get("/products")
async def get_products(db: AsyncSession = Depends(get_db)) -> list[dict[str, Any]]:
    """Active and beta products with topic counts."""
    summaries = await CatalogService(db).get_visible_products()
    return [
        {**product_data(s.product), "topic_count": s.topic_count}
        for s in summaries
    ]


@router.get("")
async def get_community_home(
    filter: Literal["latest", "trending", "unanswered", "resolved"] = Query("latest"),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Community landing page: products, announcements and one feed."""
    forum = ForumService(db)
    summaries = await CatalogService(db).get_visible_products()
    announcements = await forum.get_announcements()
    feed = await forum.get_feed(filter)

    return {
        "products": [
            {**product_data(s.product), "topic_count": s.topic_count}
            for s in summaries
        ],
        "announcements": [topic_card(t) for t in announcements],
        "filter": filter,
        "topics": [topic_card(t) for t in feed],
    }


@router.get("/feed")
async def get_feed(
    filter: Literal["latest", "trending", "unanswered", "resolved"] = Query("latest"),
    db: AsyncSession = Depends(get_db),
) -> list[dict[str, Any]]:
    topics = await ForumService(db).get_feed(filter)
    return [topic_card(t) for t in topics]


@router.get("/announcements")
async def get_announcements(db: AsyncSession = Depends(get_db)) -> list[dict[str, Any]]:
    topics = await ForumService(db).get_announcements()
    return [topic_card(t) for t in topics]


@router.get("/tags")
async def get_tags(
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
) -> list[dict[str, Any]]:
    """Tags by usage, for tag pickers."""
    tags = await CatalogService(db).get_tags(limit=limit)
    return [tag_data(tag) for tag in tags]


@router.get("/products/{product_slug}")
async def get_product_page(
    product_slug: str,
    type: TopicType | None = Query(None),
    status: TopicStatus | None = Query(None),
    category: str | None = Query(None, description="Category slug"),
    sort: Literal["latest", "votes", "views", "activity"] = Query("latest"),
    page: int = Query(1, ge=1),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """
    Product page: details, categories, popular tags and one page of topics.
    """
    catalog = CatalogService(db)
    summary = await catalog.get_visible_product(product_slug)
    if not summary:
        raise HTTPException(status_code=404, detail="Product not found")

    product = summary.product
    topics = await ForumService(db).get_product_topics(
        product.id,
        topic_type=type,
        status=status,
        category_slug=category,
        sort=sort,
        page=page,
    )
    popular_tags = await catalog.get_popular_tags(product.id)

    return {
        "product": {
            **product_data(product),
            "topic_count": summary.topic_count,
            "category_count": summary.category_count,
        },
        "categories": [category_data(c) for c in product.categories],
        "popular_tags": [
            {"id": tc.tag.id, "name": tc.tag.name, "slug": tc.tag.slug, "count": tc.count}
            for tc in popular_tags
        ],
        "topics": {
            "items": [topic_card(t) for t in topics.items],
            "total": topics.total,
            "page": topics.page,
            "pages": topics.pages,
            "per_page": settings.forum_topics_per_page,
        },
    }


# ==================== Topic view ====================


@router.get("/products/{product_slug}/topics/{topic_slug}")
async def get_topic_page(
    product_slug: str,
    topic_slug: str,
    viewer: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """
    Topic page: the topic, its accepted answer, threaded replies and
    related topics, plus the viewer's vote and bookmark state.

    Every request counts as a view.
    """
    forum = ForumService(db)
    topic = await forum.get_topic_by_slug(product_slug, topic_slug)
    if not topic:
        raise HTTPException(status_code=404, detail="Topic not found")

    await forum.increment_view_count(topic)

    replies = await forum.get_replies(topic.id)
    threads = [(reply, forum.visible_children(reply)) for reply in replies]
    accepted = await forum.get_accepted_reply(topic)
    related = await forum.get_related_topics(topic)

    topic_vote = None
    reply_votes = {}
    bookmarked = False
    if viewer:
        reply_ids = [r.id for r, children in threads] + [
            c.id for r, children in threads for c in children
        ]
        if accepted:
            reply_ids.append(accepted.id)
        topic_vote = await forum.get_topic_vote(viewer.id, topic.id)
        reply_votes = await forum.get_reply_votes(viewer.id, reply_ids)
        bookmarked = await forum.is_bookmarked(viewer.id, topic.id)

    is_mod = bool(viewer and can_moderate(viewer.role))
    is_author = bool(viewer and viewer.id == topic.author_id)

    return {
        "topic": topic_detail(topic),
        "accepted_reply": reply_data(accepted, user_votes=reply_votes) if accepted else None,
        "replies": [
            reply_data(reply, children=children, user_votes=reply_votes)
            for reply, children in threads
        ],
        "related": [topic_card(t) for t in related],
        "viewer": {
            "vote": topic_vote.value if topic_vote else None,
            "bookmarked": bookmarked,
            "can_edit": is_mod or (is_author and not topic.is_closed),
            "can_accept": is_mod or is_author,
            "can_moderate": is_mod,
            "can_reply": viewer is not None and not topic.is_closed,
        },
    }
