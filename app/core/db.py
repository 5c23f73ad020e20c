import asyncio
import logging
import re
from collections.abc import AsyncGenerator
from typing import Any, Dict

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import get_settings
from app.models.base import Base

logger = logging.getLogger(__name__)
settings = get_settings()


def get_async_database_url(url: str) -> str:
    """Normalize a Postgres URL to the psycopg 3 driver; other URLs pass through."""
    for prefix in ("postgresql://", "postgres://"):
        if url.startswith(prefix):
            url = "postgresql+psycopg://" + url[len(prefix):]
            break

    # Neon adds channel_binding, which psycopg rejects as a URL query argument
    if "channel_binding=" in url:
        url = re.sub(r"[&?]channel_binding=[^&]*", "", url)
        url = url.replace("?&", "?").rstrip("?")
    return url


def _engine_options(url: str) -> Dict[str, Any]:
    if url.startswith("postgresql"):
        return {
            "pool_pre_ping": True,
            "pool_recycle": 3600,
            "pool_timeout": 10,
            "max_overflow": 10,
            "connect_args": {"connect_timeout": 10},
        }
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {}


database_url = get_async_database_url(settings.database_url)

engine: AsyncEngine = create_async_engine(
    database_url,
    future=True,
    echo=settings.debug,
    **_engine_options(database_url),
)
logger.info("database_engine_created", extra={"dialect": engine.dialect.name})

AsyncSessionFactory = async_sessionmaker(
    bind=engine,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionFactory() as session:
        yield session


async def init_database() -> None:
    """Create all tables. In production use Alembic migrations instead."""
    import app.models  # noqa: F401 register models on the metadata

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database_initialized")
    except Exception as exc:
        # Migrations are the source of truth; the app can run on their schema
        logger.warning("create_all failed, continuing with migrated schema", extra={"error": str(exc)})


async def test_database_connection() -> bool:
    """Test database connection with timeout."""

    async def _test_connection():
        async with engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            result.fetchone()

    try:
        await asyncio.wait_for(_test_connection(), timeout=10.0)
        return True
    except asyncio.TimeoutError:
        logger.error("Database connection test timed out after 10 seconds")
        return False
    except Exception as exc:
        logger.error("Database connection test failed", extra={"error": str(exc), "error_type": type(exc).__name__})
        return False
