"""Integration test fixtures — in-memory app, async client, tenant tokens."""

import os
import tempfile

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Force test config BEFORE any app imports
os.environ["DEBUG"] = "true"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-for-integration-tests"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="statboard-logs-")

import statboard.database as db_mod
import statboard.dependencies as dep_mod

TEST_SECRET = os.environ["SECRET_KEY"]


def _reset_singletons():
    """Reset module-level singletons so each test session starts clean."""
    db_mod._engine = None
    db_mod._session_factory = None
    dep_mod._config_instance = None
    dep_mod._dashboard_service = None


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def test_app():
    """Create test app with in-memory database (shared via StaticPool)."""
    _reset_singletons()

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    db_mod.enable_foreign_keys(engine)

    # Inject into database module BEFORE app import
    db_mod._engine = engine
    factory = async_sessionmaker(engine, expire_on_commit=False)
    db_mod._session_factory = factory

    dep_mod.get_app_config()

    from statboard.models import Base, SavCase
    from statboard.main import app

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with factory() as session:
        for i in range(12):
            session.add(SavCase(
                tenant_id="shop-data",
                case_number=f"D-{i:03d}",
                status="ready" if i < 4 else "in_progress",
                device_brand="Apple" if i % 2 == 0 else "Samsung",
            ))
        session.add(SavCase(tenant_id="shop-other", case_number="O-001", status="ready"))
        await session.commit()

    yield app

    await engine.dispose()
    _reset_singletons()


@pytest_asyncio.fixture(loop_scope="session")
async def client(test_app):
    """Async HTTP client for testing."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers():
    """Build Bearer headers for a tenant: ``auth_headers("shop-a")``."""
    from statboard.utils.security import create_access_token

    def _make(tenant_id: str, **claims) -> dict:
        payload = {"sub": f"operator@{tenant_id}", "tenant_id": tenant_id, **claims}
        token = create_access_token(payload, TEST_SECRET)
        return {"Authorization": f"Bearer {token}"}

    return _make
