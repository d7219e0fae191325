"""
Local store handle built on SQLAlchemy async.

The store is constructed explicitly and passed to every component that needs
it. It owns the engine and the session factory, and releases both when the
``async with`` block exits, whatever the exit path.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional
from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, StaticPool
from core.config import settings
from core.exceptions import DatabaseError
import logging

logger = logging.getLogger(__name__)


class LocalStore:
    """
    Explicit open/close lifecycle around one async engine.

    Usage:
        async with LocalStore(settings.DATABASE_URL) as store:
            async with store.session() as session:
                ...
    """

    def __init__(self, database_url: Optional[str] = None, echo: bool = False):
        self.database_url = database_url or settings.DATABASE_URL
        self.echo = echo
        self.engine: Optional[AsyncEngine] = None
        self._session_maker: Optional[async_sessionmaker] = None

    @property
    def is_open(self) -> bool:
        return self.engine is not None

    @property
    def is_sqlite(self) -> bool:
        return make_url(self.database_url).get_backend_name() == "sqlite"

    async def open(self) -> "LocalStore":
        """Create the engine and session factory."""
        if self.engine is not None:
            return self

        url = make_url(self.database_url)
        engine_kwargs = {"echo": self.echo, "future": True}

        if self.is_sqlite:
            database = url.database or ""
            if database in ("", ":memory:"):
                # One shared connection, otherwise every session gets its own empty database
                engine_kwargs["poolclass"] = StaticPool
                engine_kwargs["connect_args"] = {"check_same_thread": False}
            else:
                Path(database).parent.mkdir(parents=True, exist_ok=True)
                engine_kwargs["poolclass"] = NullPool
        else:
            engine_kwargs["poolclass"] = NullPool

        try:
            self.engine = create_async_engine(self.database_url, **engine_kwargs)
        except Exception as e:
            raise DatabaseError(
                "Failed to create database engine",
                context={"backend": url.get_backend_name()},
                original_exception=e
            )

        if self.is_sqlite:
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        self._session_maker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False
        )
        logger.info(f"Opened local store ({url.get_backend_name()})")
        return self

    async def close(self):
        """Dispose of the engine. Safe to call more than once."""
        if self.engine is None:
            return
        await self.engine.dispose()
        self.engine = None
        self._session_maker = None
        logger.info("Local store closed")

    async def __aenter__(self) -> "LocalStore":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session bound to this store."""
        if self._session_maker is None:
            raise DatabaseError("Local store is not open", context={"operation": "session"})
        async with self._session_maker() as session:
            yield session

    async def create_schema(self):
        """Create every table registered on the declarative base."""
        from models import Base  # registers all models

        if self.engine is None:
            raise DatabaseError("Local store is not open", context={"operation": "create_schema"})
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Local store schema ensured")

    async def ping(self) -> bool:
        """Return True if the store answers a trivial query."""
        try:
            async with self.session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Local store ping failed: {str(e)}")
            return False


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
