import os
import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from community.core.config import settings  # noqa: E402
from community.core.database import Base, get_db  # noqa: E402
from community.core.rate_limit import limiter  # noqa: E402
from community.core.security import create_access_token, hash_password  # noqa: E402
from community.main import app  # noqa: E402
from community.models import (  # noqa: E402
    Badge,
    Category,
    Product,
    ProductStatus,
    Tag,
    User,
    UserRole,
)
from community.modules.forum.service import ForumService  # noqa: E402

settings.bcrypt_rounds = 4
limiter.enabled = False

DEFAULT_PASSWORD = "UserPass123"
TOPIC_BODY = "This is a sufficiently long topic body for the forum tests."


@pytest_asyncio.fixture
async def engine(tmp_path):
    """
    Fresh SQLite database file per test, tables created from the models.
    """
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'community.db'}", poolclass=NullPool
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    """Session for arranging data and inspecting results directly."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    """
    Provide an HTTPX AsyncClient bound to the FastAPI app with a fresh DB.
    """

    async def _get_test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_test_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        yield async_client
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def create_user(db):
    """
    Factory fixture to create users directly via ORM.
    """

    async def _create_user(
        role: UserRole = UserRole.USER,
        password: str | None = DEFAULT_PASSWORD,
        email: str | None = None,
        username: str | None = None,
        is_banned: bool = False,
    ) -> User:
        suffix = uuid.uuid4().hex[:6]
        user = User(
            email=email or f"user_{suffix}@example.com",
            username=username or f"user_{suffix}",
            name=f"User {suffix}",
            hashed_password=hash_password(password) if password else None,
            role=role,
            is_banned=is_banned,
        )
        db.add(user)
        await db.commit()
        return user

    return _create_user


@pytest_asyncio.fixture
async def create_product(db):
    async def _create_product(
        slug: str = "acme", status: ProductStatus = ProductStatus.ACTIVE
    ) -> Product:
        product = Product(slug=slug, name=slug.title(), status=status, ordering=1)
        db.add(product)
        await db.commit()
        return product

    return _create_product


@pytest_asyncio.fixture
async def create_category(db):
    async def _create_category(product: Product | None, slug: str = "general") -> Category:
        category = Category(
            slug=slug,
            name=slug.title(),
            product_id=product.id if product else None,
        )
        db.add(category)
        await db.commit()
        return category

    return _create_category


@pytest_asyncio.fixture
async def create_tag(db):
    async def _create_tag(slug: str = "python") -> Tag:
        tag = Tag(slug=slug, name=slug.title())
        db.add(tag)
        await db.commit()
        return tag

    return _create_tag


@pytest_asyncio.fixture
async def create_badges(db):
    """Badges awarded automatically by the forum."""

    async def _create_badges() -> None:
        db.add_all(
            [
                Badge(slug="first-post", name="First Post"),
                Badge(slug="helpful", name="Helpful"),
            ]
        )
        await db.commit()

    return _create_badges


@pytest_asyncio.fixture
async def create_topic(session_factory):
    """
    Factory fixture creating topics through the forum service.
    """

    async def _create_topic(
        author: User,
        product: Product,
        title: str = "How do I configure the client?",
        body: str = TOPIC_BODY,
        **kwargs,
    ):
        async with session_factory() as session:
            topic = await ForumService(session).create_topic(
                author=author, product_id=product.id, title=title, body=body, **kwargs
            )
            await session.commit()
        return topic

    return _create_topic


@pytest.fixture
def auth_headers():
    """Authorization header for a user, signed directly."""

    def _headers(user: User) -> dict[str, str]:
        token = create_access_token(user.id, user.role.value)
        return {"Authorization": f"Bearer {token}"}

    return _headers
