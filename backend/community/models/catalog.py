"""
Catalog models: products, categories and tags.

Products are the top-level community spaces. Categories are scoped to a
product (or global when product_id is null). Tags are shared.
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

from sqlalchemy import (
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
    from community.models.forum import Topic, TopicTag


class ProductStatus(str, PyEnum):
    """Product visibility."""

    ACTIVE = "ACTIVE"
    BETA = "BETA"
    HIDDEN = "HIDDEN"


VISIBLE_PRODUCT_STATUSES = (ProductStatus.ACTIVE, ProductStatus.BETA)


class Product(Base):
    """Product community space."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(100))
    description: Mapped[str | None] = mapped_column(Text)
    icon: Mapped[str | None] = mapped_column(String(100))
    color: Mapped[str | None] = mapped_column(String(20))  # Hex color
    status: Mapped[ProductStatus] = mapped_column(
        Enum(ProductStatus), default=ProductStatus.HIDDEN
    )
    ordering: Mapped[int] = mapped_column(Integer, default=0)
    docs_url: Mapped[str | None] = mapped_column(String(500))
    release_url: Mapped[str | None] = mapped_column(String(500))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    categories: Mapped[list["Category"]] = relationship(
        back_populates="product", order_by="Category.ordering"
    )
    topics: Mapped[list["Topic"]] = relationship(back_populates="product")

    @property
    def is_visible(self) -> bool:
        return self.status in VISIBLE_PRODUCT_STATUSES

    def __repr__(self) -> str:
        return f"<Product {self.slug}>"


class Category(Base):
    """Topic category, scoped to a product or global."""

    __tablename__ = "categories"
    __table_args__ = (UniqueConstraint("product_id", "slug"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    product_id: Mapped[int | None] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE")
    )
    slug: Mapped[str] = mapped_column(String(50), index=True)
    name: Mapped[str] = mapped_column(String(100))
    description: Mapped[str | None] = mapped_column(Text)
    icon: Mapped[str | None] = mapped_column(String(100))
    ordering: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    product: Mapped["Product | None"] = relationship(back_populates="categories")
    topics: Mapped[list["Topic"]] = relationship(back_populates="category")

    def __repr__(self) -> str:
        return f"<Category {self.slug}>"


class Tag(Base):
    """Shared topic tag."""

    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(30))
    slug: Mapped[str] = mapped_column(String(30), unique=True, index=True)
    description: Mapped[str | None] = mapped_column(String(200))
    color: Mapped[str | None] = mapped_column(String(20))

    # Stats (denormalized)
    usage_count: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    topic_links: Mapped[list["TopicTag"]] = relationship(back_populates="tag")

    def __repr__(self) -> str:
        return f"<Tag {self.slug}>"
