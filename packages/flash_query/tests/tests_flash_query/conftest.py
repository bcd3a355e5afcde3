import pytest
import pytest_asyncio
from flash_query import QueryDispatcher, set_dispatcher
from flash_query.orm import db as db_module
from flash_query.orm import migrate

from .models import Base, Product

DATABASE_URL = "sqlite+aiosqlite:///:memory:"  # in-memory DB for tests


@pytest.fixture
def dispatcher():
    """Install a fresh dispatcher as the process-wide default."""
    fresh = QueryDispatcher()
    previous = set_dispatcher(fresh)
    yield fresh
    set_dispatcher(previous)


@pytest_asyncio.fixture(scope="function")
async def init_test_db(dispatcher):
    """Initialize the engine, register the SQL strategy and create tables."""
    db_module.init_db(DATABASE_URL, echo=False, dispatcher=dispatcher)
    await migrate(Base.metadata)

    yield

    await db_module.close_db()


@pytest_asyncio.fixture()
async def db_session(init_test_db):  # noqa: ARG001
    """Provide a database session for tests."""
    async for session in db_module.get_db():
        yield session


@pytest_asyncio.fixture()
async def products(db_session):
    """Five products priced 10..50, the last one without stock."""
    rows = [
        Product(name="Anvil", price=10, stock=3),
        Product(name="Bolt", price=20, stock=100),
        Product(name="Crate", price=30, stock=7),
        Product(name="Drill", price=40, stock=1),
        Product(name="Easel", price=50, stock=None),
    ]
    db_session.add_all(rows)
    await db_session.commit()
    return rows
