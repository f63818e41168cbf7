"""
Optical-Assist Database Connection Management

PostgreSQL async connection pool with SQLAlchemy 2.0.
Includes session handling and health checks.
"""

import logging
import ssl
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from optiassist.config import get_settings
from optiassist.db.models import Base

logger = logging.getLogger(__name__)

# ============================================
# Configuration Constants
# ============================================

POOL_RECYCLE = 1800  # 30 minutes
POOL_PRE_PING = True

ASYNC_DRIVER_PREFIX = "postgresql+asyncpg://"


# ============================================
# Database URL
# ============================================


def normalize_database_url(url: str) -> str:
    """
    Rewrite a plain Postgres URL to use the asyncpg driver.

    Hosted Postgres providers hand out ``postgres://`` or ``postgresql://``
    URLs; SQLAlchemy's async engine needs the driver spelled out.
    """
    for prefix in ("postgres://", "postgresql://", "postgresql+psycopg2://"):
        if url.startswith(prefix):
            return ASYNC_DRIVER_PREFIX + url[len(prefix):]
    return url


def get_database_url() -> str:
    """
    Get database URL from configuration.

    Returns:
        Database connection URL string using the asyncpg driver.
    """
    return normalize_database_url(get_settings().database_url)


def _connect_args(use_ssl: bool) -> dict[str, Any]:
    if not use_ssl:
        return {}
    # Hosted providers commonly present certificates we cannot verify
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return {"ssl": context}


# ============================================
# Engine & Session Factory
# ============================================


def create_db_engine(database_url: str | None = None) -> AsyncEngine:
    """
    Create async database engine with connection pooling.

    Args:
        database_url: Optional database URL. Uses configuration if not provided.

    Returns:
        AsyncEngine configured with connection pool.
    """
    settings = get_settings()
    url = normalize_database_url(database_url) if database_url else get_database_url()

    return create_async_engine(
        url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_recycle=POOL_RECYCLE,
        pool_pre_ping=POOL_PRE_PING,
        echo=settings.db_echo,
        connect_args=_connect_args(settings.database_ssl),
    )


# Global engine instance (lazy initialization)
_engine: AsyncEngine | None = None
_session_maker: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """
    Get or create the global async engine instance.

    Returns:
        AsyncEngine instance.
    """
    global _engine
    if _engine is None:
        _engine = create_db_engine()
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """
    Get async session maker bound to the pooled engine.

    Returns:
        Async session maker instance.
    """
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_maker


# ============================================
# Session Context Manager
# ============================================


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Async context manager for database sessions.

    Automatically commits on success, rolls back on exception.
    The connection returns to the pool when the block exits.

    Example:
        async with get_db_session() as session:
            result = await session.execute(query)
    """
    session = get_session_maker()()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


# ============================================
# Health Check
# ============================================


async def check_database_health() -> dict:
    """
    Check database connectivity and health.

    Returns:
        Dict with status and connection details.
    """
    try:
        async with get_db_session() as session:
            result = await session.execute(text("SELECT 1 AS health_check"))
            if result.scalar() == 1:
                return {
                    "status": "healthy",
                    "database": "connected",
                    "pool_size": get_settings().db_pool_size,
                }
    except Exception as e:
        logger.warning("Database health check failed: %s", e)
        return {
            "status": "unhealthy",
            "database": "disconnected",
        }

    return {
        "status": "unknown",
        "database": "check_failed",
    }


async def check_pgvector_extension() -> bool:
    """Return True if the pgvector extension is installed."""
    try:
        async with get_db_session() as session:
            result = await session.execute(
                text("SELECT extname FROM pg_extension WHERE extname = 'vector'")
            )
            return result.scalar() == "vector"
    except Exception:
        return False


# ============================================
# Lifecycle Management
# ============================================


async def init_db(create_tables: bool = True) -> None:
    """
    Initialize the connection pool and make sure the schema exists.

    Production deployments apply the Alembic revision instead; create_all
    is idempotent and only adds missing tables.
    """
    engine = get_engine()

    health = await check_database_health()
    if health["status"] != "healthy":
        raise RuntimeError(f"Database connection failed: {health}")

    if create_tables:
        async with engine.begin() as conn:
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema verified")


async def close_db() -> None:
    """
    Close database connection pool.

    Call during application shutdown.
    """
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_maker = None
