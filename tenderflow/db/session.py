"""Async SQLAlchemy database session configuration."""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from tenderflow.config import settings


def build_engine(database_url: str, **kwargs) -> AsyncEngine:
    """
    Create an async engine for the document store.

    PostgreSQL behind a transaction pooler needs NullPool and no prepared
    statement cache; other URLs (e.g. SQLite in tests) pass kwargs through.
    """
    connect_args = kwargs.pop("connect_args", {})
    if "pooler" in database_url and "asyncpg" in database_url:
        connect_args["prepared_statement_cache_size"] = 0
    if database_url.startswith("postgresql"):
        kwargs.setdefault("poolclass", NullPool)

    return create_async_engine(
        database_url,
        echo=settings.log_level == "DEBUG",
        connect_args=connect_args,
        **kwargs,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to an engine."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine(settings.database_url)

# Session factory
AsyncSessionLocal = build_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for FastAPI routes.

    Usage:
        @app.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise

