"""Dependency injection utilities for FastAPI."""

from typing import Annotated, AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

import redis.asyncio as aioredis

from portal.core.config import settings
from portal.twin.registry import DeviceRegistryClient, InMemoryDeviceRegistry

# Database engine and session factory
engine = create_async_engine(settings.database_url, echo=settings.debug)
async_session_factory = async_sessionmaker(engine, expire_on_commit=False)

# Redis client singleton
_redis_client: aioredis.Redis | None = None

# Device registry singleton
_device_registry: DeviceRegistryClient | None = None


async def get_redis() -> aioredis.Redis:
    """Get Redis client singleton. Callable from any context (consumers, FastAPI)."""
    global _redis_client
    if _redis_client is None:
        _redis_client = aioredis.from_url(settings.redis_url, decode_responses=False)
    return _redis_client


def set_device_registry(registry: DeviceRegistryClient) -> None:
    """Install the registry client used by the API layer."""
    global _device_registry
    _device_registry = registry


async def get_device_registry() -> DeviceRegistryClient:
    """Get the device registry client, defaulting to the in-memory registry."""
    global _device_registry
    if _device_registry is None:
        _device_registry = InMemoryDeviceRegistry()
    return _device_registry


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
DeviceRegistry = Annotated[DeviceRegistryClient, Depends(get_device_registry)]
