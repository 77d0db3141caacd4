"""
Users API Endpoints.

Public profiles and profile editing.
"""

from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, HttpUrl
from sqlalchemy.ext.asyncio import AsyncSession

from community.api.v1.deps import get_current_user, get_optional_user
from community.api.v1.serializers import badge_data, session_user, topic_card, user_brief
from community.core.database import get_db
from community.models import User
from community.modules.users.service import UserService

router = APIRouter()


# ==================== Schemas ====================


class UpdateProfileRequest(BaseModel):
    """Profile changes; omitted fields are unchanged."""

    name: str | None = Field(None, min_length=2, max_length=100)
    username: str | None = Field(None, min_length=3, max_length=30, pattern=r"^[a-zA-Z0-9_-]+$")
    bio: str | None = Field(None, max_length=500)
    # Empty string clears the field
    website: Literal[""] | HttpUrl | None = None
    github: str | None = Field(None, max_length=50)
    twitter: str | None = Field(None, max_length=50)

    def changes(self) -> dict[str, Any]:
        data = self.model_dump(exclude_unset=True)
        # Name and username can be changed but not cleared
        for field in ("name", "username"):
            if field in data and data[field] is None:
                del data[field]
        if data.get("website"):
            data["website"] = str(data["website"])
        return data


# ==================== Profiles ====================


@router.get("/{identifier}")
async def get_profile(
    identifier: str,
    viewer: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """
    User profile by username or id.

    Bookmarks are only included for the profile owner.
    """
    users = UserService(db)
    user = await users.get_profile(identifier)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    counts = await users.get_profile_counts(user.id)
    topics = await users.get_user_topics(user.id)
    replies = await users.get_user_replies(user.id)
    is_owner = viewer is not None and viewer.id == user.id

    bookmarks = None
    if is_owner:
        bookmarks = [topic_card(b.topic) for b in await users.get_user_bookmarks(user.id)]

    return {
        "user": {
            **user_brief(user),
            "bio": user.bio,
            "website": user.website,
            "github": user.github,
            "twitter": user.twitter,
            "created_at": user.created_at.isoformat(),
        },
        "badges": [
            {**badge_data(ub.badge), "awarded_at": ub.awarded_at.isoformat()}
            for ub in user.badges
        ],
        "counts": counts,
        "topics": [topic_card(t) for t in topics],
        "replies": [
            {
                "id": r.id,
                "body": r.body,
                "vote_score": r.vote_score,
                "created_at": r.created_at.isoformat(),
                "topic": {
                    "id": r.topic.id,
                    "title": r.topic.title,
                    "slug": r.topic.slug,
                    "product_slug": r.topic.product.slug,
                },
            }
            for r in replies
        ],
        "bookmarks": bookmarks,
        "is_owner": is_owner,
    }


@router.patch("/me")
async def update_profile(
    request: UpdateProfileRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    user = await UserService(db).update_profile(user, request.changes())
    return {
        **session_user(user),
        "bio": user.bio,
        "website": user.website,
        "github": user.github,
        "twitter": user.twitter,
    }
