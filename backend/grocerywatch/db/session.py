"""Async database engine and session factory configuration."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from grocerywatch.config import settings
from grocerywatch.models import Base


def create_engine(database_url: str | None = None) -> AsyncEngine:
    """Create an async engine for ``database_url`` (defaults to settings)."""
    url = database_url or settings.DATABASE_URL

    # SQLite doesn't support pool_size / max_overflow / pool_pre_ping
    engine_kwargs: dict = {"echo": settings.DEBUG}
    if not url.startswith("sqlite"):
        engine_kwargs.update(pool_size=20, max_overflow=10, pool_pre_ping=True)

    return create_async_engine(url, **engine_kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_models(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
