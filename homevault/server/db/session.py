"""Database session manager."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from homevault.server.db import models  # noqa: F401
from homevault.server.db.base import Base


class DatabaseSessionManager:
    """Database session manager.

    Catalog mutations that check for existing rows before writing hold
    `write_lock` so that the check and the write are not interleaved with
    another request on the event loop.
    """

    def __init__(self, host: str, engine_kwargs: dict[str, object] | None = None):
        """Initialize the database session manager."""
        self._engine: AsyncEngine | None = create_async_engine(
            host, **(engine_kwargs or {})
        )
        self._sessionmaker: async_sessionmaker | None = async_sessionmaker(
            autocommit=False, bind=self._engine, expire_on_commit=False
        )
        self.write_lock = asyncio.Lock()

    async def create_all(self) -> None:
        """Create all tables that do not exist yet."""
        if self._engine is None:
            raise Exception("DatabaseSessionManager is not initialized")
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """Close the database session manager."""
        if self._engine is None:
            raise Exception("DatabaseSessionManager is not initialized")
        await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a database session."""
        if self._sessionmaker is None:
            raise Exception("DatabaseSessionManager is not initialized")

        session = self._sessionmaker()
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
