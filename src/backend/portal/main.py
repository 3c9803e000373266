"""IoT Hub Portal FastAPI Application Entry Point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI

from portal.api import router as api_router
from portal.core.config import settings
from portal.core.deps import async_session_factory, get_redis
from portal.services.telemetry_consumer_service import TelemetryConsumerService

logger = structlog.get_logger()

# Module-level reference for lifecycle management
_telemetry_consumer: TelemetryConsumerService | None = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown events."""
    global _telemetry_consumer

    # Startup
    logger.info("Starting IoT Hub Portal", environment=settings.environment)

    # LoRaWAN telemetry consumer (Redis Stream -> device telemetry history)
    if settings.telemetry_consumer_enabled:
        try:
            redis_client = await get_redis()
            _telemetry_consumer = TelemetryConsumerService(
                redis_client=redis_client,
                session_factory=async_session_factory,
                stream_name=settings.telemetry_stream_name,
                group_name=settings.telemetry_consumer_group,
                num_workers=settings.telemetry_consumer_num_workers,
                retention_max=settings.telemetry_retention_max,
            )
            await _telemetry_consumer.start()
        except Exception as e:
            logger.warning("Failed to start telemetry consumer", error=str(e))
            _telemetry_consumer = None

    yield

    # Shutdown
    logger.info("Shutting down IoT Hub Portal")

    if _telemetry_consumer:
        await _telemetry_consumer.stop()


fastapi_app = FastAPI(
    title="IoT Hub Portal API",
    description="Device twin management and LoRaWAN telemetry",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan,
)

# Include API routes
fastapi_app.include_router(api_router, prefix="/api/v1")


@fastapi_app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint for Kubernetes probes."""
    return {"status": "healthy", "version": "0.1.0"}
