# This project was developed with assistance from AI tools.
"""Integration test fixtures -- real PostgreSQL, no mocks.

A session-scoped container provides PostgreSQL with the Alembic migrations
applied (including the append-only audit trigger). Function-scoped fixtures
give each test an isolated DB session with savepoint rollback so tests don't
leak state.
"""

import os

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from testcontainers.postgres import PostgresContainer

from src.main import create_app
from src.services.audit import AuditService

from ..conftest import build_settings

# ---------------------------------------------------------------------------
# Mark all tests in this directory as integration
# ---------------------------------------------------------------------------
pytestmark = pytest.mark.integration

_DB_ROOT = os.path.join(os.path.dirname(__file__), "..", "..", "..", "db")


# ---------------------------------------------------------------------------
# Session-scoped: container + engine + migrations
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def pg_container():
    """Start postgres:16 via testcontainers."""
    with PostgresContainer(image="postgres:16", username="test", password="test", dbname="test") as pg:
        yield pg


@pytest.fixture(scope="session")
def db_url(pg_container):
    """Async DB URL for asyncpg."""
    host = pg_container.get_container_host_ip()
    port = pg_container.get_exposed_port(5432)
    return f"postgresql+asyncpg://test:test@{host}:{port}/test"


@pytest.fixture(scope="session")
def _run_migrations(db_url):
    """alembic upgrade head against the container."""
    from alembic import command
    from alembic.config import Config

    os.environ["DATABASE_URL"] = db_url
    alembic_cfg = Config(os.path.join(_DB_ROOT, "alembic.ini"))
    alembic_cfg.set_main_option("script_location", os.path.join(_DB_ROOT, "alembic"))
    command.upgrade(alembic_cfg, "head")


@pytest.fixture(scope="session")
def async_engine(db_url, _run_migrations):
    """Create an async engine pointing at the test container."""
    engine = create_async_engine(db_url, echo=False, poolclass=NullPool)
    yield engine


@pytest.fixture(scope="session")
def session_factory(async_engine):
    return async_sessionmaker(bind=async_engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)


# ---------------------------------------------------------------------------
# Function-scoped: per-test session with savepoint rollback
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def db_session(async_engine):
    """Per-test DB session with savepoint rollback."""
    conn = await async_engine.connect()
    txn = await conn.begin()
    session = AsyncSession(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield session
    await session.close()
    await txn.rollback()
    await conn.close()


@pytest_asyncio.fixture
async def truncate_audit(async_engine):
    """Yield-based: empties audit_logs after the test (TRUNCATE bypasses row triggers)."""
    yield
    async with async_engine.begin() as conn:
        await conn.execute(text("TRUNCATE TABLE audit_logs RESTART IDENTITY"))


@pytest.fixture
def audit_service(session_factory):
    """Real AuditService writing through its own sessions to the container."""
    return AuditService(session_factory=session_factory)


@pytest.fixture
def client_factory(db_session, audit_service, async_engine):
    """Factory returning an async httpx client over a fresh app bound to the test DB."""
    from db import DatabaseService, get_db, get_db_service

    db_service = DatabaseService(engine=async_engine)

    apps = []

    def _make(**setting_overrides) -> httpx.AsyncClient:
        app = create_app(build_settings(**setting_overrides))
        app.state.audit_service = audit_service

        async def _get_db():
            yield db_session

        app.dependency_overrides[get_db] = _get_db
        app.dependency_overrides[get_db_service] = lambda: db_service
        apps.append(app)
        transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
        return httpx.AsyncClient(transport=transport, base_url="http://test")

    yield _make

    for app in apps:
        app.dependency_overrides.clear()
