"""Async SQLAlchemy engine and session management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from meetup.db.base import Base


class Database:
    """Owns the async engine and session factory for one process.

    Built once in the application lifespan and handed to request handlers
    and background tasks; nothing here is module-global.
    """

    def __init__(self, url: str, *, echo: bool = False) -> None:
        engine_kwargs: dict[str, object] = {"echo": echo, "pool_pre_ping": True}
        if make_url(url).get_backend_name() == "postgresql":
            engine_kwargs.update(
                pool_size=20,
                max_overflow=10,
                connect_args={"statement_cache_size": 0},
            )
        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Open a session scoped to one logical operation."""
        async with self.session_factory() as session:
            yield session

    async def create_all(self) -> None:
        """Create every table known to the ORM metadata (tests, bootstrap)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        """Dispose of the engine's connection pool."""
        await self.engine.dispose()
