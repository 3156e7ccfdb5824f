"""
Database configuration.

Async engine and session factory builders for workers and scripts.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from app.config.settings import settings


def create_engine(url: str | None = None, *, null_pool: bool = False) -> AsyncEngine:
    """
    Create async engine.

    Args:
        url: Database URL (defaults to settings)
        null_pool: Disable pooling (for dramatiq workers)

    Returns:
        AsyncEngine
    """
    kwargs = {"echo": settings.database_echo}
    if null_pool:
        kwargs["poolclass"] = NullPool
    return create_async_engine(url or settings.async_database_url, **kwargs)


def create_session_maker(
    engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    """Create session factory bound to engine."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
