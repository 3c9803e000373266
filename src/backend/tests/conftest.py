"""Pytest configuration and fixtures for portal tests."""

from datetime import datetime, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from portal.main import fastapi_app as app
from portal.models.base import Base
# Import all models to ensure they're registered with Base.metadata
from portal.models import DeviceModel, DeviceTag, Label, LorawanDevice
from portal.core.deps import get_db, get_device_registry
from portal.services.device_model_image_service import DeviceModelImageService
from portal.twin.registry import InMemoryDeviceRegistry
from portal.twin.snapshot import ConnectionState, TwinSnapshot, TwinStatus

# Test database URL (use SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine with shared connection."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(db_engine) -> async_sessionmaker:
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def registry() -> InMemoryDeviceRegistry:
    """Empty in-memory device registry."""
    return InMemoryDeviceRegistry()


@pytest.fixture
def image_service() -> DeviceModelImageService:
    """Image service with fixed URLs."""
    return DeviceModelImageService(
        base_url="http://images.test/models",
        default_image="http://images.test/default.png",
    )


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, registry) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with database and registry overrides."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    async def override_get_device_registry() -> InMemoryDeviceRegistry:
        return registry

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_device_registry] = override_get_device_registry

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_model(db_session: AsyncSession) -> DeviceModel:
    """Create a LoRaWAN device model with one label."""
    model = DeviceModel(
        id="m1",
        name="Temperature sensor",
        description="LoRaWAN temperature sensor",
        support_lora_features=True,
        labels=[Label(name="outdoor", color="#00ff00")],
    )
    db_session.add(model)
    await db_session.commit()
    return model


@pytest_asyncio.fixture
async def device_tags(db_session: AsyncSession) -> list[DeviceTag]:
    """Create the custom tag catalogue."""
    tags = [
        DeviceTag(name="assetId", label="Asset", required=False, searchable=True),
        DeviceTag(name="location", label="Location", required=False, searchable=False),
    ]
    db_session.add_all(tags)
    await db_session.commit()
    return tags


@pytest_asyncio.fixture
async def lorawan_device(db_session: AsyncSession, test_model: DeviceModel) -> LorawanDevice:
    """Create a stored LoRaWAN device without telemetry."""
    device = LorawanDevice(
        id="lora-1",
        name="Sensor 1",
        device_model_id=test_model.id,
        is_connected=False,
        is_enabled=True,
        version=1,
        use_otaa=True,
        app_eui="0000000000000001",
        app_key="00112233445566778899AABBCCDDEEFF",
    )
    db_session.add(device)
    await db_session.commit()
    return device


def _build_twin(device_id: str = "lora-1", **kwargs) -> TwinSnapshot:
    kwargs.setdefault("connection_state", ConnectionState.CONNECTED)
    kwargs.setdefault("status", TwinStatus.ENABLED)
    kwargs.setdefault("status_updated_time", datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc))
    kwargs.setdefault("version", 3)
    return TwinSnapshot(device_id=device_id, **kwargs)


@pytest.fixture
def make_twin():
    """Factory for connected, enabled twin snapshots."""
    return _build_twin
