"""
Admin API Endpoints.

Catalog management and user roles. Administrators only.
"""

from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, HttpUrl
from sqlalchemy.ext.asyncio import AsyncSession

from community.api.v1.deps import require_admin
from community.api.v1.serializers import (
    badge_data,
    category_data,
    product_data,
    session_user,
    tag_data,
)
from community.core.database import get_db
from community.models import Product, ProductStatus, User, UserRole
from community.modules.catalog.service import CatalogService
from community.modules.users.service import UserService

router = APIRouter()

SLUG_PATTERN = r"^[a-z0-9-]+$"
COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


# ==================== Schemas ====================


class CreateProductRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    slug: str = Field(..., min_length=2, max_length=50, pattern=SLUG_PATTERN)
    description: str | None = Field(None, max_length=1000)
    icon: str | None = Field(None, max_length=100)
    color: str | None = Field(None, pattern=COLOR_PATTERN)
    status: ProductStatus = ProductStatus.HIDDEN
    ordering: int | None = None
    docs_url: Literal[""] | HttpUrl | None = None
    release_url: Literal[""] | HttpUrl | None = None


class UpdateProductRequest(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=100)
    slug: str | None = Field(None, min_length=2, max_length=50, pattern=SLUG_PATTERN)
    description: str | None = Field(None, max_length=1000)
    icon: str | None = Field(None, max_length=100)
    color: str | None = Field(None, pattern=COLOR_PATTERN)
    status: ProductStatus | None = None
    ordering: int | None = None
    docs_url: Literal[""] | HttpUrl | None = None
    release_url: Literal[""] | HttpUrl | None = None


class CreateCategoryRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    slug: str = Field(..., min_length=2, max_length=50, pattern=SLUG_PATTERN)
    description: str | None = Field(None, max_length=500)
    icon: str | None = Field(None, max_length=100)
    product_id: int | None = None
    ordering: int = 0


class CreateTagRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=30)
    slug: str = Field(..., min_length=2, max_length=30, pattern=SLUG_PATTERN)
    description: str | None = Field(None, max_length=200)
    color: str | None = Field(None, pattern=COLOR_PATTERN)


class CreateBadgeRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    slug: str = Field(..., min_length=2, max_length=100, pattern=SLUG_PATTERN)
    description: str | None = Field(None, max_length=255)
    icon: str | None = Field(None, max_length=50)
    color: str | None = Field(None, max_length=20)


class AwardBadgeRequest(BaseModel):
    badge_slug: str


class SetRoleRequest(BaseModel):
    role: UserRole


def _url_fields(data: dict[str, Any]) -> dict[str, Any]:
    for field in ("docs_url", "release_url"):
        if data.get(field):
            data[field] = str(data[field])
    return data


async def _get_user(db: AsyncSession, user_id: int) -> User:
    user = await UserService(db).get_user(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


# ==================== Dashboard ====================


@router.get("")
async def get_dashboard(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Admin page: every product, categories, top tags and user stats."""
    catalog = CatalogService(db)
    products = await catalog.get_all_products()
    categories = await catalog.get_categories()
    tags = await catalog.get_tags(limit=50)
    stats = await UserService(db).get_role_stats()

    return {
        "products": [
            {
                **product_data(s.product),
                "topic_count": s.topic_count,
                "category_count": s.category_count,
            }
            for s in products
        ],
        "categories": [
            {
                **category_data(s.category),
                "product_name": s.category.product.name if s.category.product else None,
                "topic_count": s.topic_count,
            }
            for s in categories
        ],
        "tags": [tag_data(tag) for tag in tags],
        "user_stats": stats,
    }


# ==================== Products ====================


@router.post("/products", status_code=201)
async def create_product(
    request: CreateProductRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    data = _url_fields(request.model_dump())
    product = await CatalogService(db).create_product(**data)
    return product_data(product)


@router.patch("/products/{product_id}")
async def update_product(
    product_id: int,
    request: UpdateProductRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    product = await db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    changes = _url_fields(request.model_dump(exclude_unset=True))
    for field in ("name", "slug", "status", "ordering"):
        if field in changes and changes[field] is None:
            del changes[field]
    product = await CatalogService(db).update_product(product, changes)
    return product_data(product)


# ==================== Categories, tags & badges ====================


@router.post("/categories", status_code=201)
async def create_category(
    request: CreateCategoryRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    category = await CatalogService(db).create_category(**request.model_dump())
    return category_data(category)


@router.post("/tags", status_code=201)
async def create_tag(
    request: CreateTagRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    tag = await CatalogService(db).create_tag(**request.model_dump())
    return tag_data(tag)


@router.get("/badges")
async def get_badges(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> list[dict[str, Any]]:
    badges = await CatalogService(db).get_badges()
    return [badge_data(badge) for badge in badges]


@router.post("/badges", status_code=201)
async def create_badge(
    request: CreateBadgeRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    badge = await CatalogService(db).create_badge(**request.model_dump())
    return badge_data(badge)


# ==================== Users ====================


@router.post("/users/{user_id}/badges")
async def award_badge(
    user_id: int,
    request: AwardBadgeRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    user = await _get_user(db, user_id)
    awarded = await CatalogService(db).award_badge(user, request.badge_slug)
    return {"awarded": awarded}


@router.post("/users/{user_id}/role")
async def set_user_role(
    user_id: int,
    request: SetRoleRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    user = await _get_user(db, user_id)
    user = await UserService(db).set_role(user, request.role)
    return session_user(user)
