"""
Moderation API Endpoints.

Report queue, topic controls and user sanctions. Moderators and admins only.
"""

from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from community.api.v1.deps import require_moderator
from community.api.v1.serializers import mod_action_data, report_data, topic_detail
from community.core.database import get_db
from community.models import Reply, Topic, TopicStatus, User
from community.modules.forum.service import ForumService
from community.modules.moderation.service import ModerationService, ReportFilter
from community.modules.users.service import UserService

router = APIRouter()


# ==================== Schemas ====================


class ReasonRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)


class ResolveReportRequest(BaseModel):
    action: Literal["RESOLVE", "DISMISS"]


class ChangeStatusRequest(ReasonRequest):
    status: TopicStatus


class MoveTopicRequest(ReasonRequest):
    product_id: int | None = None
    category_id: int | None = None


async def _get_topic(db: AsyncSession, topic_id: int) -> Topic:
    topic = await ForumService(db).get_topic(topic_id)
    if not topic:
        raise HTTPException(status_code=404, detail="Topic not found")
    return topic


async def _get_user(db: AsyncSession, user_id: int) -> User:
    user = await UserService(db).get_user(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _topic_state(topic: Topic) -> dict[str, Any]:
    return {
        "id": topic.id,
        "status": topic.status.value,
        "is_pinned": topic.is_pinned,
    }


# ==================== Queue ====================


@router.get("")
async def get_dashboard(
    status: ReportFilter = Query("pending"),
    moderator: User = Depends(require_moderator),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Moderation page: report queue, stats and recent actions."""
    moderation = ModerationService(db)
    reports = await moderation.list_reports(status)
    stats = await moderation.report_stats()
    actions = await moderation.recent_actions()

    return {
        "status": status,
        "reports": [report_data(r) for r in reports],
        "stats": stats,
        "recent_actions": [mod_action_data(a) for a in actions],
    }


@router.get("/reports")
async def get_reports(
    status: ReportFilter = Query("pending"),
    moderator: User = Depends(require_moderator),
    db: AsyncSession = Depends(get_db),
) -> list[dict[str, Any]]:
    reports = await ModerationService(db).list_reports(status)
    return [report_data(r) for r in reports]


@router.post("/reports/{report_id}/resolve")
async def resolve_report(
    report_id: int,
    request: ResolveReportRequest,
    moderator: User = Depends(require_moderator),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    moderation = ModerationService(db)
    report = await moderation.get_report(report_id)
    if not report:
        raise HTTPException(status_code=404, detail="Report not found")

    report = await moderation.resolve_report(report, moderator, request.action)
    return {"id": report.id, "status": report.status.value}


# ==================== Topics ====================


@router.post("/topics/{topic_id}/lock")
async def lock_topic(
    topic_id: int,
    request: ReasonRequest,
    moderator: User = Depends(require_moderator),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    topic = await _get_topic(db, topic_id)
    topic = await ModerationService(db).lock_topic(topic, moderator, request.reason)
    return _topic_state(topic)


@router.post("/topics/{topic_id}/unlock")
async def unlock_topic(
    topic_id: int,
    request: ReasonRequest,
    moderator: User = Depends(require_moderator),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    topic = await _get_topic(db, topic_id)
    topic = await ModerationService(db).unlock_topic(topic, moderator, request.reason)
    return _topic_state(topic)


@router.post("/topics/{topic_id}/pin")
async def pin_topic(
    topic_id: int,
    moderator: User = Depends(require_moderator),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Pin or unpin."""
    topic = await _get_topic(db, topic_id)
    topic = await ModerationService(db).pin_topic(topic, moderator)
    return _topic_state(topic)


@router.post("/topics/{topic_id}/status")
async def change_status(
    topic_id: int,
    request: ChangeStatusRequest,
    moderator: User = Depends(require_moderator),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    topic = await _get_topic(db, topic_id)
    topic = await ModerationService(db).change_status(
        topic, moderator, request.status, request.reason
    )
    return _topic_state(topic)


@router.post("/topics/{topic_id}/move")
async def move_topic(
    topic_id: int,
    request: MoveTopicRequest,
    moderator: User = Depends(require_moderator),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    topic = await _get_topic(db, topic_id)
    topic = await ModerationService(db).move_topic(
        topic,
        moderator,
        product_id=request.product_id,
        category_id=request.category_id,
        reason=request.reason,
    )
    return topic_detail(topic)


@router.delete("/topics/{topic_id}")
async def delete_topic(
    topic_id: int,
    reason: str | None = Query(None, max_length=500),
    moderator: User = Depends(require_moderator),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Delete a topic for good; the client returns to the product page."""
    topic = await _get_topic(db, topic_id)
    product_slug = await ModerationService(db).delete_topic(topic, moderator, reason)
    return {"success": True, "product_slug": product_slug}


# ==================== Replies ====================


@router.delete("/replies/{reply_id}")
async def delete_reply(
    reply_id: int,
    reason: str | None = Query(None, max_length=500),
    moderator: User = Depends(require_moderator),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    reply = await db.get(Reply, reply_id)
    if not reply:
        raise HTTPException(status_code=404, detail="Reply not found")

    await ModerationService(db).delete_reply(reply, moderator, reason)
    return {"success": True}


# ==================== Users ====================


@router.post("/users/{user_id}/ban")
async def ban_user(
    user_id: int,
    request: ReasonRequest,
    moderator: User = Depends(require_moderator),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    target = await _get_user(db, user_id)
    target = await ModerationService(db).ban_user(target, moderator, request.reason)
    return {"id": target.id, "is_banned": target.is_banned}


@router.post("/users/{user_id}/unban")
async def unban_user(
    user_id: int,
    request: ReasonRequest,
    moderator: User = Depends(require_moderator),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    target = await _get_user(db, user_id)
    target = await ModerationService(db).unban_user(target, moderator, request.reason)
    return {"id": target.id, "is_banned": target.is_banned}


@router.post("/users/{user_id}/warn")
async def warn_user(
    user_id: int,
    request: ReasonRequest,
    moderator: User = Depends(require_moderator),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    target = await _get_user(db, user_id)
    await ModerationService(db).warn_user(target, moderator, request.reason)
    return {"id": target.id, "warned": True}
