"""Test fixtures and configuration."""

import logging
import os
import sys

import pytest
import pytest_asyncio
import structlog
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.logger import get_logger

logger = get_logger(__name__)

# Set ENVIRONMENT for pydantic settings
os.environ["ENVIRONMENT"] = "testing"

TEST_DATABASE_URL = "sqlite+aiosqlite://"


# --- Structlog Configuration for Tests ---
@pytest.fixture(autouse=True, scope="session")
def configure_structlog_for_tests():
    """Configure structlog for proper capsys capture in tests."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer(),
        foreign_pre_chain=processors[:-1],
    )

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG)

    yield

    structlog.reset_defaults()


@pytest.fixture(autouse=True)
def reset_reconciliation_config():
    """Drop the cached scoring config so each test sees the bundled defaults."""
    from src.services import reconciliation

    reconciliation._config_cache = None
    yield
    reconciliation._config_cache = None


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """In-memory SQLite engine with a fresh schema per test.

    A single shared connection (StaticPool) keeps the in-memory database alive
    for the whole test. pysqlite/aiosqlite transaction handling is replaced by
    explicit BEGIN so SAVEPOINT (AsyncSession.begin_nested) works.
    """
    from src.database import Base
    import src.models  # noqa: F401

    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_maker(db_engine):
    """Session maker bound to the test engine, also used by API handlers."""
    from src import database

    test_maker = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    previous = database.set_test_session_maker(test_maker)
    yield test_maker
    database.set_test_session_maker(previous)


@pytest_asyncio.fixture(scope="function")
async def db(session_maker):
    """Database session for one test. The schema is discarded with the engine."""
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def organization(db):
    """Committed organization so API request sessions can see it."""
    from tests.factories import OrganizationFactory

    org = await OrganizationFactory.create_async(db)
    await db.commit()
    return org


@pytest_asyncio.fixture(scope="function")
async def chart(db, organization):
    """Organization with the default PCG chart seeded and committed."""
    from src.services.chart_of_accounts import init_chart_of_accounts

    await init_chart_of_accounts(db, organization.id)
    await db.commit()
    return organization


@pytest_asyncio.fixture(scope="function")
async def client(session_maker, organization):
    """Async test client scoped to the test organization."""
    from src.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"X-Organization-Id": str(organization.id)},
    ) as client_instance:
        yield client_instance


@pytest_asyncio.fixture(scope="function")
async def public_client(session_maker):
    """Async test client without organization header."""
    from src.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client_instance:
        yield client_instance
