# tests/conftest.py
import httpx
import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.db import get_session
from app.domain.pricing_config import default_pricing_configuration
from app.entrypoints.fastapi_app import create_app
from app.models import Base
from app.service_layer.config_provider import StaticConfigProvider
from app.service_layer.defaults import seed_defaults


@pytest.fixture
async def engine():
    """
    Fresh in-memory DB per test. StaticPool makes all connections share the same
    in-memory database for the lifetime of this engine fixture.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def async_session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=True)


@pytest.fixture
def provider():
    return StaticConfigProvider(default_pricing_configuration(), version=1)


@pytest.fixture
async def seeded(async_session_maker):
    """Default rate card (v1) and business hours written to the DB."""
    async with async_session_maker() as session:
        await seed_defaults(session)
        await session.commit()


@pytest.fixture
async def client(async_session_maker):
    app = create_app()

    async def _session_override():
        async with async_session_maker() as session:
            yield session

    app.dependency_overrides[get_session] = _session_override
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c
