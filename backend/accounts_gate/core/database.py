"""Accounts Gate Database Configuration - Async SQLAlchemy.

The gate reads the host application's ``accounts`` table and, with the
database revocation backend, owns ``revoked_tokens``.
"""

import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from accounts_gate.core.config import settings

logger = logging.getLogger(__name__)


def build_engine(database_url: str) -> AsyncEngine:
    """Create an async engine. Pool sizing only applies to server databases."""
    options: dict[str, Any] = {"echo": settings.debug and settings.log_level == "DEBUG"}
    if not database_url.startswith("sqlite"):
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
            pool_recycle=settings.db_pool_recycle,
            pool_pre_ping=True,
        )
    return create_async_engine(database_url, **options)


# Connects lazily on first use
engine = build_engine(settings.database_url)

async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def check_db_connection(
    session_maker: async_sessionmaker[AsyncSession] = async_session_maker,
) -> bool:
    """Run ``SELECT 1``; False if the database cannot be reached."""
    try:
        async with session_maker() as session:
            await session.execute(text("SELECT 1"))
        return True
    except (OSError, ConnectionError) as e:
        logger.debug(f"Database connection check failed: {e}")
        return False
    except Exception as e:
        logger.warning(f"Unexpected error checking database connection: {e}")
        return False
