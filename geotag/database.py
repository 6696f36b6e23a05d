"""
GeoTag Backend - Database Session Management
==============================================

What:  Async SQLAlchemy engine, session factory, declarative base and the
       FastAPI session dependency.
How:   One engine per process with connection pooling; one AsyncSession per
       request that commits on success and rolls back on any error.
Who:   Route handlers receive sessions via Depends(get_db_session); services
       receive the session as their first argument.

Concurrency model:
    Each request gets its own session, so there is no shared mutable ORM state
    between requests. Single-row writes are atomic; concurrent updates to the
    same entry race at the database and the last commit wins.

Connection pooling (PostgreSQL):
    pool_size=20, max_overflow=10, pool_pre_ping, pool_recycle=3600.
    SQLite (aiosqlite) uses SQLAlchemy's default pool for the dialect, so the
    sizing arguments are only passed for server databases.
"""

from typing import Any, AsyncGenerator, Dict

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from geotag.config import settings


def build_engine(database_url: str) -> AsyncEngine:
    """
    Create the async engine for `database_url`.

    Pool sizing only applies to server databases; the SQLite dialect picks
    its own pool class and rejects pool_size/max_overflow.
    """
    kwargs: Dict[str, Any] = {"echo": settings.log_level == "DEBUG"}
    if not database_url.startswith("sqlite"):
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return create_async_engine(database_url, **kwargs)


# ── Engine & Session Factory ──────────────────────────────────────────────
engine = build_engine(settings.database_url)

# expire_on_commit=False: response models are built after commit, and an
# expired attribute would trigger a lazy load outside the async context
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models (and Alembic metadata)."""
    pass


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    1. Creates a session from the factory
    2. Yields it to the route handler
    3. Commits on success, rolls back on any exception, always closes

    Raises:
        Whatever the handler raised, after rollback. Global exception
        handlers turn it into the JSON error response.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def create_all_tables() -> None:
    """Create every mapped table. Used when AUTO_CREATE_TABLES is set."""
    # Models must be imported so they are registered on Base.metadata
    from geotag.models import Entry, User  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Close all pooled connections. Called from the lifespan shutdown."""
    await engine.dispose()
