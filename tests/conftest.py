"""Test fixtures and configuration."""

import logging
import os
import sys
from collections.abc import AsyncIterator
from unittest.mock import patch
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
import structlog
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool

# Set ENVIRONMENT for pydantic settings before the app is imported
os.environ["ENVIRONMENT"] = "testing"

from syndic_api.logger import get_logger  # noqa: E402

logger = get_logger(__name__)


# --- Bootloader Mock ---
# Prevent Bootloader from creating its own engine against the default database
@pytest.fixture(autouse=True)
def mock_bootloader_db_check():
    from syndic_api.boot import ServiceStatus

    async def mock_check():
        return ServiceStatus("database", "ok", "Mocked for tests", 0.0)

    with patch("syndic_api.boot.Bootloader.check_database", new=mock_check):
        yield


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
        processor=structlog.dev.ConsoleRenderer(colors=False),
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


def _enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Let SQLAlchemy drive BEGIN/SAVEPOINT itself on pysqlite-style drivers."""

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest.fixture
def test_database_url(tmp_path) -> str:
    """PostgreSQL when TEST_DATABASE_URL is set, otherwise a per-test SQLite file."""
    return os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest_asyncio.fixture
async def db_engine(test_database_url: str) -> AsyncIterator[AsyncEngine]:
    """Create a test engine with a freshly created schema.

    Uses NullPool so no connection outlives the test's event loop.
    """
    from syndic_api.database import Base
    import syndic_api.models  # noqa: F401

    engine = create_async_engine(test_database_url, echo=False, poolclass=NullPool)
    if make_url(test_database_url).get_backend_name() == "sqlite":
        _enable_sqlite_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def db(db_engine: AsyncEngine, request) -> AsyncIterator[AsyncSession]:
    """Create a test database session with transaction rollback for isolation.

    The session joins an outer transaction through savepoints, so commits
    issued by routers release a savepoint and everything is discarded when
    the outer transaction rolls back.
    """
    test_name = request.node.name
    connection = await db_engine.connect()
    transaction = await connection.begin()
    session = AsyncSession(
        bind=connection,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )

    yield session

    try:
        await session.close()
        await transaction.rollback()
    except Exception as e:
        logger.error(
            "CRITICAL: Transaction rollback failed - test isolation compromised",
            test_name=test_name,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise
    finally:
        await connection.close()


# --- Domain fixtures ---


@pytest.fixture
def tenant_id() -> UUID:
    return uuid4()


@pytest_asyncio.fixture
async def test_user(db: AsyncSession, tenant_id: UUID):
    from tests.factories import UserFactory

    return await UserFactory.create_async(db, tenant_id=tenant_id)


@pytest_asyncio.fixture
async def condominium(db: AsyncSession, tenant_id: UUID):
    from tests.factories import CondominiumFactory

    return await CondominiumFactory.create_async(db, tenant_id=tenant_id)


@pytest_asyncio.fixture
async def bank_account(db: AsyncSession, tenant_id: UUID, condominium):
    from tests.factories import BankAccountFactory

    return await BankAccountFactory.create_async(
        db, tenant_id=tenant_id, condominium_id=condominium.id
    )


@pytest.fixture
def auth_headers(test_user, tenant_id: UUID) -> dict[str, str]:
    from syndic_api.security import create_access_token

    token = create_access_token({"sub": str(test_user.id), "tenant_id": str(tenant_id)})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client(db: AsyncSession) -> AsyncIterator[AsyncClient]:
    """HTTP client bound to the test session through dependency overrides."""
    from syndic_api.database import get_db
    from syndic_api.main import app
    from syndic_api.services.notifier import WebhookNotifier, get_notifier

    async def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: WebhookNotifier(None)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
