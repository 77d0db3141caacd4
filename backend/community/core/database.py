"""
Database engine and session management.

Async SQLAlchemy engine shared by the application, with a request-scoped
session dependency for FastAPI.
"""

from typing import AsyncGenerator

from loguru import logger
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from community.core.config import settings


class Base(DeclarativeBase):
    """Declarative base for all models."""


def create_engine(url: str | None = None, **kwargs) -> AsyncEngine:
    """Create async engine; pool options only apply to server databases."""
    url = url or settings.database_url
    options = {"echo": settings.database_echo, **kwargs}
    if not url.startswith("sqlite"):
        options.setdefault("pool_size", settings.database_pool_size)
        options.setdefault("max_overflow", settings.database_max_overflow)
        options.setdefault("pool_pre_ping", True)
    return create_async_engine(url, **options)


engine = create_engine()

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped database session.

    Commits when the request handler returns, rolls back on any error.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create tables for all registered models."""
    # Import models so they register with Base.metadata
    import community.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.debug(f"Schema ready on {engine.url.render_as_string(hide_password=True)}")


async def close_db() -> None:
    """Dispose engine connections."""
    await engine.dispose()
