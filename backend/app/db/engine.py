"""Database engine and the process-wide store handle."""

from collections.abc import AsyncGenerator
from typing import Any

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from backend.app.config import Settings
from backend.app.db.models import Base


def normalize_database_url(database_url: str) -> str:
    """Map sync driver URLs onto their async drivers."""
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if database_url.startswith("sqlite://"):
        return database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return database_url


# Connection execution option marking a transaction as a write unit of work
WRITE_LOCK_OPTION = "write_lock"


def _serialize_sqlite_writers(engine: AsyncEngine) -> None:
    """Make SQLite write units of work take the write lock up front.

    pysqlite defers BEGIN until the first DML statement, which lets two
    admissions read the same count before either writes. Transactions opened
    through ``begin_write`` issue BEGIN IMMEDIATE so concurrent writers wait on
    the busy timeout instead. Every other transaction gets a plain deferred
    BEGIN.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:
        if conn.get_execution_options().get(WRITE_LOCK_OPTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


async def begin_write(session: AsyncSession) -> None:
    """Open the session's transaction as a write unit of work.

    Must be called before the transaction's first statement. On SQLite this
    takes the database write lock at BEGIN; row locks cover other dialects.
    """
    await session.connection(execution_options={WRITE_LOCK_OPTION: True})


def create_async_engine_from_settings(settings: Settings, **engine_kwargs: Any) -> AsyncEngine:
    """Create async SQLAlchemy engine from settings.

    Raises:
        ValueError: If DATABASE_URL is unset or empty.
    """
    if not settings.database_url:
        raise ValueError(
            "DATABASE_URL must be set to a valid connection string. "
            "Please configure the database_url setting."
        )

    database_url = normalize_database_url(settings.database_url)
    engine = create_async_engine(database_url, pool_pre_ping=True, echo=False, **engine_kwargs)

    if engine.dialect.name == "sqlite":
        _serialize_sqlite_writers(engine)

    return engine


class Store:
    """Explicit handle on the backing store.

    Opened once per process and passed to every component that needs a
    session; there is no module-level engine.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self.session_factory = async_sessionmaker(engine, expire_on_commit=False)

    @classmethod
    def open(cls, settings: Settings, **engine_kwargs: Any) -> "Store":
        """Build the engine and session factory from settings."""
        return cls(create_async_engine_from_settings(settings, **engine_kwargs))

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def session(self) -> AsyncSession:
        """Create a new session bound to this store."""
        return self.session_factory()

    async def create_all(self) -> None:
        """Create all tables (dev and tests; production uses Alembic)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """Dispose of pooled connections."""
        await self.engine.dispose()


def get_store(request: Request) -> Store:
    """FastAPI dependency returning the application's store handle."""
    store: Store = request.app.state.store
    return store


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for async database session.

    Yields:
        AsyncSession instance
    """
    async with get_store(request).session() as session:
        yield session
