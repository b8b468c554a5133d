"""Async SQLAlchemy engine and session factory.

SQLAlchemy 2.0 async mode: create_async_engine for connection pooling,
AsyncSession for per-request database access, dependency injection via FastAPI.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from gatekeep.config import settings


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an engine; pool sizing only applies to server databases."""
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=echo)
    # Connection pool: min 5, max 20 connections.
    return create_async_engine(
        database_url,
        echo=echo,
        pool_size=5,
        max_overflow=15,
    )


engine = build_engine(settings.database_url, echo=settings.debug)

# Session factory: each request gets its own session.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncSession:
    """FastAPI dependency: yields a session per request, auto-closes."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
