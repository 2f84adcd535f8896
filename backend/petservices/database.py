"""
PetServices Backend — Database Handle and Session Management
=============================================================

What:  Async SQLAlchemy engine, session factory, and FastAPI dependency.
How:   `Database` owns the engine and session factory. It is constructed once
       by `create_app()`, stored on `app.state.db`, and disposed at shutdown.
       Requests get a session from `get_db_session`, which commits on success
       and rolls back on error. Work queued with `after_commit()` runs only
       once the commit has succeeded.
Who:   Route handlers (through Depends), Alembic, tests.

Connection Pooling Strategy (server databases):
    pool_size=20, max_overflow=10, pool_pre_ping, pool_recycle=3600.
    SQLite (tests) keeps SQLAlchemy's default pool and gets
    `PRAGMA foreign_keys=ON` on every connection so ON DELETE CASCADE holds.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, AsyncIterator, Awaitable, Callable, Optional

from fastapi import Request
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from petservices.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_AFTER_COMMIT = "after_commit"


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares one metadata object between the models, `Database.create_all()`
    and Alembic autogenerate.
    """
    pass


def _enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """Turn on FK enforcement for every new SQLite connection."""

    @event.listens_for(engine.sync_engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class Database:
    """
    Explicitly constructed handle around the async engine.

    An empty URL yields an unconfigured handle: it can be created and
    disposed, but `session()` raises ConfigurationError.
    """

    def __init__(
        self,
        url: str,
        pool_size: int = 20,
        max_overflow: int = 10,
        pool_pre_ping: bool = True,
        echo: bool = False,
    ):
        self.url = url
        self.engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

        if not url:
            logger.warning("DATABASE_URL is not set; database operations will fail")
            return

        if url.startswith("sqlite"):
            self.engine = create_async_engine(url, echo=echo)
            _enable_sqlite_foreign_keys(self.engine)
        else:
            self.engine = create_async_engine(
                url,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_pre_ping=pool_pre_ping,
                pool_recycle=3600,
                echo=echo,
            )

        # expire_on_commit=False: objects stay readable after the request commits
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings) -> "Database":
        return cls(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            echo=settings.log_level == "DEBUG",
        )

    @property
    def configured(self) -> bool:
        return self._session_factory is not None

    def session(self) -> AsyncSession:
        """Open a new session. Raises ConfigurationError when unconfigured."""
        if self._session_factory is None:
            raise ConfigurationError("DATABASE_URL")
        return self._session_factory()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """
        Session scope for scripts and tests: commit on success, roll back
        on error, always close.
        """
        session = self.session()
        try:
            yield session
            await commit(session)
        except Exception:
            await rollback(session)
            raise
        finally:
            await session.close()

    async def create_all(self) -> None:
        """Create every table known to Base.metadata (tests, local dev)."""
        if self.engine is None:
            raise ConfigurationError("DATABASE_URL")
        # Models must be imported so their tables are registered
        from petservices import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> bool:
        """SELECT 1 against the database; False when unreachable or unconfigured."""
        if self.engine is None:
            return False
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("Database ping failed: %s", str(e))
            return False

    async def dispose(self) -> None:
        """Close all pooled connections (application shutdown)."""
        if self.engine is not None:
            await self.engine.dispose()


# ── Post-commit Work ──────────────────────────────────────────────────────
def after_commit(session: AsyncSession, callback: Callable[[], Awaitable[Any]]) -> None:
    """
    Queue work that may only happen once the session's transaction is
    durable, such as deleting the image an old row pointed to.

    Callbacks run in order after a successful `commit()` and are dropped
    on rollback.
    """
    session.info.setdefault(_AFTER_COMMIT, []).append(callback)


async def commit(session: AsyncSession) -> None:
    """Commit, then run the callbacks queued with after_commit()."""
    await session.commit()
    callbacks = session.info.pop(_AFTER_COMMIT, [])
    for callback in callbacks:
        try:
            await callback()
        except Exception as e:
            # The transaction is already committed
            logger.error("Post-commit callback failed: %s", str(e), exc_info=True)


async def rollback(session: AsyncSession) -> None:
    """Roll back and forget any queued post-commit work."""
    session.info.pop(_AFTER_COMMIT, None)
    await session.rollback()


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the app's Database handle
        2. Yields it to the route handler
        3. On success: commits, then runs the after_commit() callbacks
        4. On error: rolls back (dropping the callbacks) and re-raises for the global error handler
        5. Always: closes the session (returns connection to pool)
    """
    database: Database = request.app.state.db
    session = database.session()
    try:
        yield session
        await commit(session)
    except Exception:
        await rollback(session)
        raise
    finally:
        await session.close()
