"""
Management commands.

Usage:
    community init-db
    community seed
    community cleanup-codes
    community serve --host 0.0.0.0 --port 8000
"""

import argparse
import asyncio
import sys

from loguru import logger

from community.core.config import settings
from community.core.database import async_session_factory, close_db, init_db
from community.core.logging import configure_logging


async def _init_db() -> None:
    try:
        await init_db()
    finally:
        await close_db()


async def _seed() -> None:
    from community.seed import seed_database

    try:
        await init_db()
        async with async_session_factory() as session:
            inserted = await seed_database(session)
            await session.commit()
        if inserted:
            logger.info("Demo data inserted")
    finally:
        await close_db()


async def _cleanup_codes() -> None:
    from community.modules.auth.otp import cleanup_expired_codes

    try:
        async with async_session_factory() as session:
            removed = await cleanup_expired_codes(session)
            await session.commit()
        logger.info(f"Removed {removed} stale verification codes")
    finally:
        await close_db()


def _serve(args: argparse.Namespace) -> None:
    import uvicorn

    uvicorn.run(
        "community.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )


def main() -> None:
    parser = argparse.ArgumentParser(prog="community", description="Community forum management")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create database tables")
    commands.add_parser("seed", help="Insert demo products, users and topics")
    commands.add_parser("cleanup-codes", help="Delete expired and used verification codes")

    serve = commands.add_parser("serve", help="Run the API server")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true")

    args = parser.parse_args()
    configure_logging(level=args.log_level)

    try:
        if args.command == "serve":
            _serve(args)
        elif args.command == "init-db":
            asyncio.run(_init_db())
            logger.info("Database initialized")
        elif args.command == "seed":
            asyncio.run(_seed())
        elif args.command == "cleanup-codes":
            asyncio.run(_cleanup_codes())
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except Exception as e:
        logger.exception(f"Command {args.command} failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
