"""
Catalog Service - Products, categories, tags and badges.
"""

from dataclasses import dataclass
from typing import Any

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from community.core.exceptions import ConflictError, NotFoundError
from community.models import (
    VISIBLE_PRODUCT_STATUSES,
    Badge,
    Category,
    Product,
    ProductStatus,
    Tag,
    Topic,
    TopicTag,
    User,
)
from community.modules.users.service import UserService


@dataclass
class ProductSummary:
    product: Product
    topic_count: int
    category_count: int = 0


@dataclass
class CategorySummary:
    category: Category
    topic_count: int


@dataclass
class TagCount:
    tag: Tag
    count: int


class CatalogService:
    """
    Service for the community catalog.

    Usage:
        catalog = CatalogService(db_session)
        products = await catalog.get_visible_products()
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize catalog service with database session."""
        self.db = db

    # ==================== Products ====================

    def _topic_count(self):
        return (
            select(func.count(Topic.id))
            .where(Topic.product_id == Product.id)
            .correlate(Product)
            .scalar_subquery()
        )

    def _category_count(self):
        return (
            select(func.count(Category.id))
            .where(Category.product_id == Product.id)
            .correlate(Product)
            .scalar_subquery()
        )

    async def get_visible_products(self) -> list[ProductSummary]:
        """Get active and beta products with topic counts."""
        query = (
            select(Product, self._topic_count())
            .where(Product.status.in_(VISIBLE_PRODUCT_STATUSES))
            .order_by(Product.ordering, Product.id)
        )
        result = await self.db.execute(query)
        return [ProductSummary(product, topics) for product, topics in result.all()]

    async def get_all_products(self) -> list[ProductSummary]:
        """Get every product, hidden included, for the admin dashboard."""
        query = select(Product, self._topic_count(), self._category_count()).order_by(
            Product.ordering, Product.id
        )
        result = await self.db.execute(query)
        return [ProductSummary(p, topics, categories) for p, topics, categories in result.all()]

    async def get_product(self, slug: str) -> Product | None:
        """Get product by slug regardless of status."""
        result = await self.db.execute(select(Product).where(Product.slug == slug))
        return result.scalar_one_or_none()

    async def get_visible_product(self, slug: str) -> ProductSummary | None:
        """
        Get a visible product with its categories and counts.

        Args:
            slug: Product slug

        Returns:
            Summary, or None when missing or hidden
        """
        query = (
            select(Product, self._topic_count(), self._category_count())
            .options(selectinload(Product.categories))
            .where(Product.slug == slug, Product.status.in_(VISIBLE_PRODUCT_STATUSES))
            .execution_options(populate_existing=True)
        )
        row = (await self.db.execute(query)).first()
        if row is None:
            return None
        product, topics, categories = row
        return ProductSummary(product, topics, categories)

    async def create_product(
        self,
        name: str,
        slug: str,
        description: str | None = None,
        icon: str | None = None,
        color: str | None = None,
        status: ProductStatus = ProductStatus.HIDDEN,
        ordering: int | None = None,
        docs_url: str | None = None,
        release_url: str | None = None,
    ) -> Product:
        """Create new product; new products are appended to the ordering."""
        if await self.get_product(slug):
            raise ConflictError(f"Product '{slug}' already exists", code="SLUG_TAKEN")

        if ordering is None:
            ordering = (await self.db.scalar(select(func.max(Product.ordering))) or 0) + 1

        product = Product(
            name=name,
            slug=slug,
            description=description,
            icon=icon,
            color=color,
            status=status,
            ordering=ordering,
            docs_url=docs_url or None,
            release_url=release_url or None,
        )
        self.db.add(product)
        await self.db.flush()
        logger.info(f"Product '{slug}' created ({status.value})")
        return product

    async def update_product(self, product: Product, changes: dict[str, Any]) -> Product:
        """Update product fields; empty URLs are stored as NULL."""
        new_slug = changes.get("slug")
        if new_slug and new_slug != product.slug and await self.get_product(new_slug):
            raise ConflictError(f"Product '{new_slug}' already exists", code="SLUG_TAKEN")

        for field, value in changes.items():
            if field in ("docs_url", "release_url") and not value:
                value = None
            setattr(product, field, value)

        await self.db.flush()
        logger.info(f"Product {product.id} updated: {sorted(changes)}")
        return product

    # ==================== Categories ====================

    async def get_categories(self) -> list[CategorySummary]:
        """All categories with topic counts, for the admin dashboard."""
        topic_count = (
            select(func.count(Topic.id))
            .where(Topic.category_id == Category.id)
            .correlate(Category)
            .scalar_subquery()
        )
        query = (
            select(Category, topic_count)
            .options(selectinload(Category.product))
            .order_by(Category.ordering, Category.id)
        )
        result = await self.db.execute(query)
        return [CategorySummary(category, count) for category, count in result.all()]

    async def create_category(
        self,
        name: str,
        slug: str,
        description: str | None = None,
        icon: str | None = None,
        product_id: int | None = None,
        ordering: int = 0,
    ) -> Category:
        """Create category for a product, or a global one without product_id."""
        if product_id is not None and await self.db.get(Product, product_id) is None:
            raise NotFoundError("Product not found")

        existing = await self.db.scalar(
            select(Category.id).where(
                Category.slug == slug,
                Category.product_id.is_(None)
                if product_id is None
                else Category.product_id == product_id,
            )
        )
        if existing is not None:
            raise ConflictError(f"Category '{slug}' already exists", code="SLUG_TAKEN")

        category = Category(
            name=name,
            slug=slug,
            description=description,
            icon=icon,
            product_id=product_id,
            ordering=ordering,
        )
        self.db.add(category)
        await self.db.flush()
        return category

    # ==================== Tags ====================

    async def get_tags(self, limit: int = 50) -> list[Tag]:
        """Most used tags first."""
        query = select(Tag).order_by(Tag.usage_count.desc(), Tag.name).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_popular_tags(self, product_id: int, limit: int = 10) -> list[TagCount]:
        """Tags most used within one product."""
        usage = func.count(TopicTag.id).label("usage")
        query = (
            select(Tag, usage)
            .join(TopicTag, TopicTag.tag_id == Tag.id)
            .join(Topic, Topic.id == TopicTag.topic_id)
            .where(Topic.product_id == product_id)
            .group_by(Tag.id)
            .order_by(usage.desc(), Tag.name)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return [TagCount(tag, count) for tag, count in result.all()]

    async def create_tag(
        self,
        name: str,
        slug: str,
        description: str | None = None,
        color: str | None = None,
    ) -> Tag:
        """Create new tag."""
        if await self.db.scalar(select(Tag.id).where(Tag.slug == slug)) is not None:
            raise ConflictError(f"Tag '{slug}' already exists", code="SLUG_TAKEN")

        tag = Tag(name=name, slug=slug, description=description, color=color)
        self.db.add(tag)
        await self.db.flush()
        return tag

    # ==================== Badges ====================

    async def get_badges(self) -> list[Badge]:
        result = await self.db.execute(select(Badge).order_by(Badge.name))
        return list(result.scalars().all())

    async def create_badge(
        self,
        name: str,
        slug: str,
        description: str | None = None,
        icon: str | None = None,
        color: str | None = None,
    ) -> Badge:
        if await self.db.scalar(select(Badge.id).where(Badge.slug == slug)) is not None:
            raise ConflictError(f"Badge '{slug}' already exists", code="SLUG_TAKEN")

        badge = Badge(name=name, slug=slug, description=description, icon=icon, color=color)
        self.db.add(badge)
        await self.db.flush()
        return badge

    async def award_badge(self, user: User, badge_slug: str) -> bool:
        """Award a badge by slug; False when already held."""
        if await self.db.scalar(select(Badge.id).where(Badge.slug == badge_slug)) is None:
            raise NotFoundError("Badge not found")
        return await UserService(self.db).award_badge(user.id, badge_slug)
