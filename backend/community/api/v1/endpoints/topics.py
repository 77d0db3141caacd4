"""
Forum API Endpoints.

Topic and reply writes, votes, bookmarks, accepted answers and reports.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from community.api.v1.deps import get_current_user
from community.api.v1.serializers import reply_data, topic_card, topic_detail
from community.core.config import settings
from community.core.database import get_db
from community.models import ReportReason, TopicType, User, VoteType
from community.modules.forum.service import ForumService
from community.modules.moderation.service import ModerationService

router = APIRouter()


# ==================== Schemas ====================


class CreateTopicRequest(BaseModel):
    """Create new topic."""

    product_id: int
    title: str = Field(..., min_length=10, max_length=200)
    body: str = Field(..., min_length=30, max_length=50000)
    type: TopicType = TopicType.QUESTION
    category_id: int | None = None
    tag_ids: list[int] = Field(default_factory=list, max_length=settings.forum_max_tags_per_topic)


class UpdateTopicRequest(BaseModel):
    """Edit topic; omitted fields are unchanged."""

    title: str | None = Field(None, min_length=10, max_length=200)
    body: str | None = Field(None, min_length=30, max_length=50000)
    category_id: int | None = None
    tag_ids: list[int] | None = Field(None, max_length=settings.forum_max_tags_per_topic)


class CreateReplyRequest(BaseModel):
    body: str = Field(..., min_length=10, max_length=30000)
    parent_id: int | None = None


class UpdateReplyRequest(BaseModel):
    body: str = Field(..., min_length=10, max_length=30000)


class AcceptAnswerRequest(BaseModel):
    reply_id: int


class _OneTarget(BaseModel):
    topic_id: int | None = None
    reply_id: int | None = None

    @model_validator(mode="after")
    def exactly_one_target(self):
        if (self.topic_id is None) == (self.reply_id is None):
            raise ValueError("Either topic_id or reply_id must be provided")
        return self


class VoteRequest(_OneTarget):
    type: VoteType


class ReportRequest(_OneTarget):
    reason: ReportReason
    details: str | None = Field(None, max_length=1000)


async def _get_topic_or_404(forum: ForumService, topic_id: int):
    topic = await forum.get_topic(topic_id)
    if not topic:
        raise HTTPException(status_code=404, detail="Topic not found")
    return topic


# ==================== Topics ====================


@router.post("/topics", status_code=201)
async def create_topic(
    request: CreateTopicRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Create new topic."""
    topic = await ForumService(db).create_topic(
        author=user,
        product_id=request.product_id,
        title=request.title,
        body=request.body,
        topic_type=request.type,
        category_id=request.category_id,
        tag_ids=request.tag_ids,
    )
    return topic_detail(topic)


@router.patch("/topics/{topic_id}")
async def update_topic(
    topic_id: int,
    request: UpdateTopicRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    forum = ForumService(db)
    topic = await _get_topic_or_404(forum, topic_id)

    topic = await forum.update_topic(
        topic,
        editor=user,
        title=request.title,
        body=request.body,
        category_id=request.category_id,
        tag_ids=request.tag_ids,
    )
    return topic_detail(topic)


@router.get("/topics/{topic_id}/related")
async def get_related_topics(
    topic_id: int,
    db: AsyncSession = Depends(get_db),
) -> list[dict[str, Any]]:
    forum = ForumService(db)
    topic = await _get_topic_or_404(forum, topic_id)
    related = await forum.get_related_topics(topic)
    return [topic_card(t) for t in related]


@router.post("/topics/{topic_id}/accept")
async def accept_answer(
    topic_id: int,
    request: AcceptAnswerRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Mark a reply as the accepted answer."""
    forum = ForumService(db)
    topic = await _get_topic_or_404(forum, topic_id)

    reply = await forum.get_reply(request.reply_id)
    if not reply:
        raise HTTPException(status_code=404, detail="Reply not found")

    topic = await forum.accept_answer(topic, reply, user)
    return {
        "success": True,
        "status": topic.status.value,
        "accepted_reply_id": topic.accepted_reply_id,
    }


@router.post("/topics/{topic_id}/bookmark")
async def toggle_bookmark(
    topic_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    bookmarked = await ForumService(db).toggle_bookmark(user, topic_id)
    return {"bookmarked": bookmarked}


# ==================== Replies ====================


@router.post("/topics/{topic_id}/replies", status_code=201)
async def create_reply(
    topic_id: int,
    request: CreateReplyRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Create new reply in topic."""
    forum = ForumService(db)
    topic = await _get_topic_or_404(forum, topic_id)

    reply = await forum.create_reply(
        topic=topic,
        author=user,
        body=request.body,
        parent_id=request.parent_id,
    )
    return reply_data(reply)


@router.patch("/replies/{reply_id}")
async def update_reply(
    reply_id: int,
    request: UpdateReplyRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    forum = ForumService(db)
    reply = await forum.get_reply(reply_id)
    if not reply:
        raise HTTPException(status_code=404, detail="Reply not found")

    reply = await forum.update_reply(reply, user, request.body)
    return reply_data(reply)


# ==================== Votes & reports ====================


@router.post("/votes")
async def vote(
    request: VoteRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """
    Vote on a topic or a reply.

    Repeating a vote withdraws it; voting the other way flips it.
    """
    result = await ForumService(db).vote(
        user,
        request.type,
        topic_id=request.topic_id,
        reply_id=request.reply_id,
    )
    return {
        "score": result.score,
        "user_vote": result.user_vote.value if result.user_vote else None,
    }


@router.post("/reports", status_code=201)
async def report_content(
    request: ReportRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    report = await ModerationService(db).report_content(
        reporter=user,
        reason=request.reason,
        details=request.details,
        topic_id=request.topic_id,
        reply_id=request.reply_id,
    )
    return {"success": True, "id": report.id}
