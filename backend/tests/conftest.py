"""Pytest configuration and shared fixtures."""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from dealgalaxy.config import PipelineConfig
from dealgalaxy.models import Base

from fakes import FakeSource


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend for tests."""
    return "asyncio"


@pytest_asyncio.fixture
async def test_db():
    """Create an in-memory SQLite database for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    SessionLocal = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with SessionLocal() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def pipeline_config() -> PipelineConfig:
    """Config with zero pacing delay and small run sizes."""
    return PipelineConfig(
        base_url="https://www.amazon.in",
        affiliate_tag="dealgalaxy-21",
        delay_min_ms=0,
        delay_max_ms=0,
        max_deals=10,
        max_search_results=5,
    )


@pytest.fixture
def fake_source() -> FakeSource:
    return FakeSource()
