"""
Response payload builders shared by the endpoint modules.

Every builder only touches relationships the services eager-load.
"""

from datetime import datetime
from typing import Any

from community.models import (
    Badge,
    Category,
    ModAction,
    Product,
    Reply,
    Report,
    Tag,
    Topic,
    User,
    VoteType,
)
from community.modules.search.provider import SearchHit


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def user_brief(user: User | None) -> dict[str, Any] | None:
    if user is None:
        return None
    return {
        "id": user.id,
        "name": user.display_name,
        "username": user.username,
        "image": user.image,
        "role": user.role.value,
        "reputation": user.reputation,
    }


def session_user(user: User) -> dict[str, Any]:
    """The signed-in user as returned by login and /me."""
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "username": user.username,
        "image": user.image,
        "role": user.role.value,
        "reputation": user.reputation,
        "email_verified": user.email_verified_at is not None,
    }


def product_data(product: Product) -> dict[str, Any]:
    return {
        "id": product.id,
        "slug": product.slug,
        "name": product.name,
        "description": product.description,
        "icon": product.icon,
        "color": product.color,
        "status": product.status.value,
        "ordering": product.ordering,
        "docs_url": product.docs_url,
        "release_url": product.release_url,
    }


def category_data(category: Category) -> dict[str, Any]:
    return {
        "id": category.id,
        "slug": category.slug,
        "name": category.name,
        "description": category.description,
        "icon": category.icon,
        "ordering": category.ordering,
        "product_id": category.product_id,
    }


def tag_data(tag: Tag) -> dict[str, Any]:
    return {
        "id": tag.id,
        "name": tag.name,
        "slug": tag.slug,
        "description": tag.description,
        "color": tag.color,
        "usage_count": tag.usage_count,
    }


def badge_data(badge: Badge) -> dict[str, Any]:
    return {
        "id": badge.id,
        "name": badge.name,
        "slug": badge.slug,
        "description": badge.description,
        "icon": badge.icon,
        "color": badge.color,
    }


def topic_card(topic: Topic) -> dict[str, Any]:
    """Topic as shown in listings."""
    return {
        "id": topic.id,
        "title": topic.title,
        "slug": topic.slug,
        "type": topic.type.value,
        "status": topic.status.value,
        "is_pinned": topic.is_pinned,
        "vote_score": topic.vote_score,
        "view_count": topic.view_count,
        "reply_count": topic.reply_count,
        "has_accepted_answer": topic.accepted_reply_id is not None,
        "author": user_brief(topic.author),
        "product": {
            "id": topic.product.id,
            "slug": topic.product.slug,
            "name": topic.product.name,
            "color": topic.product.color,
        },
        "category": {
            "id": topic.category.id,
            "slug": topic.category.slug,
            "name": topic.category.name,
        } if topic.category else None,
        "tags": [{"id": t.id, "name": t.name, "slug": t.slug, "color": t.color} for t in topic.tags],
        "last_activity": _iso(topic.last_activity),
        "created_at": _iso(topic.created_at),
    }


def topic_detail(topic: Topic) -> dict[str, Any]:
    """Full topic, body included."""
    return {
        **topic_card(topic),
        "body": topic.body,
        "body_html": topic.body_html,
        "accepted_reply_id": topic.accepted_reply_id,
        "updated_at": _iso(topic.updated_at),
    }


def reply_data(
    reply: Reply,
    children: list[Reply] | None = None,
    user_votes: dict[int, VoteType] | None = None,
) -> dict[str, Any]:
    """Reply with its visible children (top-level replies only)."""
    user_votes = user_votes or {}
    vote = user_votes.get(reply.id)
    data = {
        "id": reply.id,
        "topic_id": reply.topic_id,
        "parent_id": reply.parent_id,
        "body": reply.body,
        "body_html": reply.body_html,
        "vote_score": reply.vote_score,
        "is_edited": reply.is_edited,
        "author": user_brief(reply.author),
        "user_vote": vote.value if vote else None,
        "created_at": _iso(reply.created_at),
        "updated_at": _iso(reply.updated_at),
    }
    if children is not None:
        data["children"] = [reply_data(child, user_votes=user_votes) for child in children]
    return data


def search_hit(hit: SearchHit) -> dict[str, Any]:
    return {
        "id": hit.id,
        "title": hit.title,
        "body": hit.body,
        "slug": hit.slug,
        "status": hit.status.value,
        "type": hit.type.value,
        "product": {"slug": hit.product_slug, "name": hit.product_name},
        "category": {"slug": hit.category_slug, "name": hit.category_name}
        if hit.category_slug
        else None,
        "author": {"name": hit.author_name, "username": hit.author_username},
        "created_at": _iso(hit.created_at),
        "vote_score": hit.vote_score,
        "reply_count": hit.reply_count,
        "tags": hit.tags,
    }


def report_data(report: Report) -> dict[str, Any]:
    reply = report.reply
    return {
        "id": report.id,
        "reason": report.reason.value,
        "details": report.details,
        "status": report.status.value,
        "reporter": {
            "id": report.reporter.id,
            "name": report.reporter.name,
            "username": report.reporter.username,
        },
        "topic": {
            "id": report.topic.id,
            "title": report.topic.title,
            "slug": report.topic.slug,
            "product_slug": report.topic.product.slug,
        } if report.topic else None,
        "reply": {
            "id": reply.id,
            "body": reply.body,
            "topic_slug": reply.topic.slug,
            "product_slug": reply.topic.product.slug,
        } if reply else None,
        "created_at": _iso(report.created_at),
    }


def mod_action_data(action: ModAction) -> dict[str, Any]:
    return {
        "id": action.id,
        "type": action.type.value,
        "reason": action.reason,
        "details": action.details,
        "moderator": {
            "id": action.moderator.id,
            "name": action.moderator.name,
            "username": action.moderator.username,
        },
        "topic_id": action.topic_id,
        "reply_id": action.reply_id,
        "report_id": action.report_id,
        "target_user_id": action.target_user_id,
        "created_at": _iso(action.created_at),
    }
