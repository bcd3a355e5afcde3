import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio
from flash_query.orm import SQLALCHEMY_ENGINE, close_db, get_db, init_db, migrate
from flash_query.orm import db as db_module
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Base, Category

pytestmark = pytest.mark.asyncio

DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(autouse=True)
async def reset_db():
    """Every test starts and ends without an initialized database."""
    await close_db()
    yield
    await close_db()


def fake_engine():
    engine = MagicMock()
    engine.dispose = AsyncMock()
    return engine


class TestInitDb:
    async def test_requires_a_url(self, monkeypatch):
        monkeypatch.setattr(db_module.flash_query_settings, "DATABASE_URL", None)

        with pytest.raises(RuntimeError, match="DATABASE_URL"):
            init_db()

    async def test_falls_back_to_configured_url(self, monkeypatch, dispatcher):
        monkeypatch.setattr(db_module.flash_query_settings, "DATABASE_URL", DATABASE_URL)

        init_db(dispatcher=dispatcher)

        assert dispatcher.is_registered(SQLALCHEMY_ENGINE)

    async def test_normalizes_postgres_driver(self, dispatcher):
        with patch(
            "flash_query.orm.db.create_async_engine", return_value=fake_engine()
        ) as create:
            init_db("postgresql://user:secret@db/shop", register_strategy=False)

        url, options = create.call_args.args[0], create.call_args.kwargs
        assert url == "postgresql+asyncpg://user:secret@db/shop"
        assert options["pool_size"] == db_module.flash_query_settings.DB_POOL_SIZE
        assert options["pool_pre_ping"] is True
        assert not dispatcher.is_registered(SQLALCHEMY_ENGINE)

    async def test_sqlite_drops_pool_options(self):
        with patch(
            "flash_query.orm.db.create_async_engine", return_value=fake_engine()
        ) as create, patch("flash_query.orm.db._enable_sqlite_foreign_keys"):
            init_db(DATABASE_URL, echo=True, pool_size=5, register_strategy=False)

        options = create.call_args.kwargs
        assert "pool_size" not in options
        assert options["echo"] is True
        assert options["connect_args"] == {"check_same_thread": False}


class TestLifecycle:
    async def test_close_db_is_safe_when_uninitialized(self):
        await close_db()
        await close_db()

    async def test_get_db_requires_init(self):
        with pytest.raises(RuntimeError, match="init_db"):
            async for _ in get_db():
                pass

    async def test_migrate_requires_init(self):
        with pytest.raises(RuntimeError, match="init_db"):
            await migrate(Base.metadata)

    async def test_get_db_yields_sessions(self, dispatcher):
        init_db(DATABASE_URL, dispatcher=dispatcher)

        async for session in get_db():
            assert isinstance(session, AsyncSession)


class TestMigrate:
    async def test_creates_tables_and_seeds(self, dispatcher, caplog):
        async def seed(session):
            session.add_all([Category(title="Tools"), Category(title="Paint")])
            await session.commit()

        init_db(DATABASE_URL, dispatcher=dispatcher)
        with caplog.at_level(logging.INFO, logger="flash_query.orm.db"):
            await migrate(Base.metadata, seed)

        async for session in get_db():
            assert await session.scalar(select(func.count()).select_from(Category)) == 2
        assert "Database schema initialized" in caplog.text

    async def test_logs_and_reraises_failures(self, dispatcher, caplog):
        metadata = MagicMock()
        metadata.create_all.side_effect = OperationalError(
            "CREATE TABLE", {}, Exception("disk I/O error")
        )
        init_db(DATABASE_URL, dispatcher=dispatcher)

        with caplog.at_level(logging.ERROR, logger="flash_query.orm.db"):
            with pytest.raises(OperationalError):
                await migrate(metadata)

        assert "error occurred while migrating" in caplog.text
        assert "Database schema initialized" not in caplog.text

    async def test_seed_failures_propagate(self, dispatcher):
        seed = AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("boom")))
        init_db(DATABASE_URL, dispatcher=dispatcher)

        with pytest.raises(OperationalError):
            await migrate(Base.metadata, seed)
        seed.assert_awaited_once()
