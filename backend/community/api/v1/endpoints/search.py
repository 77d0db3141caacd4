"""
Search API Endpoints.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from community.api.v1.serializers import search_hit
from community.core.config import settings
from community.core.database import get_db
from community.models import TopicStatus, TopicType
from community.modules.search.provider import SearchParams, search_topics

router = APIRouter()


def _parse_ids(raw: str | None) -> list[int]:
    """Comma-separated ids, e.g. "3,7,12"."""
    if not raw:
        return []
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError:
        raise HTTPException(status_code=422, detail="tags must be comma-separated ids")


@router.get("")
async def search(
    q: str | None = Query(None, min_length=2, max_length=200),
    product_id: int | None = Query(None),
    category_id: int | None = Query(None),
    tags: str | None = Query(None, description="Comma-separated tag ids"),
    status: TopicStatus | None = Query(None),
    type: TopicType | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.search_default_limit, ge=1, le=settings.search_max_limit),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """
    Search topics.

    Without a query, product or tags nothing is searched and the result
    is empty.
    """
    params = SearchParams(
        query=q or "",
        product_id=product_id,
        category_id=category_id,
        tag_ids=_parse_ids(tags),
        status=status,
        type=type,
        page=page,
        limit=limit,
    )
    result = await search_topics(db, params)

    return {
        "items": [search_hit(hit) for hit in result.items],
        "total": result.total,
        "page": result.page,
        "total_pages": result.total_pages,
    }
