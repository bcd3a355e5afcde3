from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from flash_query.config import flash_query_settings
from flash_query.logging import get_logger

from .strategy import register_sqlalchemy

if TYPE_CHECKING:
    from sqlalchemy import MetaData

    from flash_query.dispatcher import QueryDispatcher

logger = get_logger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """
    Enable SQLite foreign key enforcement for every DBAPI connection.
    """

    @event.listens_for(engine.sync_engine.pool, "connect")  # pragma: no cover
    def _set_sqlite_pragma(dbapi_connection, _):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def init_db(
    database_url: str | None = None,
    *,
    echo: bool | None = None,
    dispatcher: QueryDispatcher | None = None,
    register_strategy: bool = True,
    **engine_kwargs: Any,
) -> None:
    """
    Initialize the asynchronous engine, the session factory and, by default,
    register ``SQLAlchemyStrategy`` with the dispatcher.

    Args:
        database_url: Connection URL; defaults to ``DATABASE_URL`` from settings.
        echo: Log emitted SQL; defaults to ``DB_ECHO`` from settings.
        dispatcher: Dispatcher to register with (default: process-wide).
        register_strategy: Set to False to wire the strategy yourself.
        **engine_kwargs: Passed through to ``create_async_engine``.

    Raises:
        RuntimeError: If no URL is given and none is configured.

    Example:
        >>> init_db("sqlite+aiosqlite:///db.sqlite3")
    """
    global _engine, _session_factory

    database_url = database_url or flash_query_settings.DATABASE_URL
    if not database_url:
        msg = "No database URL given and DATABASE_URL is not configured."
        raise RuntimeError(msg)

    # Normalize PostgreSQL async driver
    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    is_sqlite = database_url.startswith("sqlite")

    options: dict[str, Any] = {
        "echo": flash_query_settings.DB_ECHO if echo is None else echo,
        **engine_kwargs,
    }

    if is_sqlite:
        # SQLite does not support pooling options
        options.pop("pool_size", None)
        options.pop("max_overflow", None)
        options.pop("pool_pre_ping", None)
        options.setdefault("connect_args", {"check_same_thread": False})
    else:
        options.setdefault("pool_size", flash_query_settings.DB_POOL_SIZE)
        options.setdefault("max_overflow", flash_query_settings.DB_MAX_OVERFLOW)
        options.setdefault("pool_pre_ping", True)

    _engine = create_async_engine(database_url, **options)

    if is_sqlite:
        _enable_sqlite_foreign_keys(_engine)

    _session_factory = async_sessionmaker(
        bind=_engine,
        expire_on_commit=False,
        autoflush=False,
    )

    if register_strategy:
        register_sqlalchemy(dispatcher)


async def close_db() -> None:
    """
    Dispose of the database engine and forget the session factory.

    Example:
        >>> await close_db()
    """
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


def _require_engine() -> AsyncEngine:
    if _engine is None:
        msg = "Database not initialized. Call init_db() first."
        raise RuntimeError(msg)
    return _engine


def _require_session_factory() -> async_sessionmaker[AsyncSession]:
    if _session_factory is None:
        msg = "Database not initialized. Call init_db() first."
        raise RuntimeError(msg)
    return _session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Async generator that yields a database session.
    Suitable for use as a FastAPI dependency.

    Example:
        >>> async for db in get_db():
        ...     await q.count(SelectQuery.of(db, Product))
    """
    factory = _require_session_factory()
    async with factory() as session:
        yield session


async def migrate(
    metadata: MetaData,
    seed: Callable[[AsyncSession], Awaitable[None]] | None = None,
) -> None:
    """
    Create every table in ``metadata`` and optionally seed initial data.

    This is a one-shot startup step to run after ``init_db()`` and before
    any query is dispatched. ``seed`` receives a fresh session and is
    responsible for committing its own work.

    Raises:
        RuntimeError: If the database has not been initialized.
        SQLAlchemyError: Logged with the database URL, then re-raised.

    Example:
        >>> init_db("sqlite+aiosqlite:///db.sqlite3")
        >>> await migrate(Model.metadata)
    """
    engine = _require_engine()
    url = engine.url.render_as_string(hide_password=True)

    try:
        async with engine.begin() as conn:
            await conn.run_sync(metadata.create_all)

        if seed is not None:
            async with _require_session_factory()() as session:
                await seed(session)
    except SQLAlchemyError:
        logger.exception("An error occurred while migrating the database (%s)", url)
        raise

    logger.info("Database schema initialized (%s)", url)
