"""Shared test fixtures."""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from statboard.database import enable_foreign_keys
from statboard.models import Base, Part, SavCase


@pytest_asyncio.fixture
async def session_factory():
    """Fresh in-memory database per test, shared across sessions via StaticPool."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def seeded_records(session_factory):
    """12 SAV cases for shop-a, 3 for shop-b, and a few parts for shop-a."""
    async with session_factory() as session:
        for i in range(12):
            session.add(SavCase(
                tenant_id="shop-a",
                case_number=f"A-{i:03d}",
                status="ready" if i % 3 == 0 else "in_progress",
                sav_type="client",
                device_brand="Apple" if i % 2 == 0 else "Samsung",
                device_model=f"Model {i}",
                total_cost=10.0 * i,
                total_price=25.0 * i,
            ))
        for i in range(3):
            session.add(SavCase(
                tenant_id="shop-b",
                case_number=f"B-{i:03d}",
                status="ready",
                sav_type="internal",
                device_brand="Apple",
            ))
        for name, qty in (("Screen", 4), ("Battery", 9), ("Connector", 1)):
            session.add(Part(tenant_id="shop-a", name=name, quantity=qty, min_stock=2))
        await session.commit()
    return session_factory


@pytest.fixture
def allowed_sources():
    return ["sav_cases", "parts", "customers", "quotes"]
