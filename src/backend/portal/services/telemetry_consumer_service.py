"""Redis Stream consumer feeding the LoRaWAN telemetry ingestion pipeline.

Consumes hub events from the telemetry stream using a consumer group. Every
entry is ingested in its own database session and acknowledged once the
pipeline has reached a terminal state; redelivered entries are discarded by
the pipeline's sequence number check.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import structlog
import redis.asyncio as aioredis
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import async_sessionmaker

from portal.core.config import settings
from portal.schemas.telemetry import TelemetryEvent
from portal.services.telemetry_ingestion_service import (
    LoRaTelemetryIngestionService,
    TelemetryIngestionResult,
)

logger = structlog.get_logger()


def _field(entry: dict, name: str) -> Any:
    """Read a stream entry field stored under either a bytes or a str key."""
    value = entry.get(name.encode())
    if value is None:
        value = entry.get(name)
    return value


def decode_stream_entry(entry: dict) -> TelemetryEvent:
    """Build a ``TelemetryEvent`` from the fields of one stream entry.

    Raises:
        ValueError: If a mandatory field is missing or cannot be decoded
    """
    sequence_number = _field(entry, "sequence_number")
    enqueued_time = _field(entry, "enqueued_time")
    if sequence_number is None or enqueued_time is None:
        raise ValueError("Stream entry needs sequence_number and enqueued_time")

    raw_properties = _field(entry, "system_properties")
    if isinstance(raw_properties, bytes):
        raw_properties = raw_properties.decode()
    system_properties = json.loads(raw_properties) if raw_properties else {}
    if not isinstance(system_properties, dict):
        raise ValueError("system_properties must be a JSON object")

    if isinstance(sequence_number, bytes):
        sequence_number = sequence_number.decode()
    if isinstance(enqueued_time, bytes):
        enqueued_time = enqueued_time.decode()

    try:
        return TelemetryEvent(
            sequence_number=sequence_number,
            enqueued_time=enqueued_time,
            system_properties=system_properties,
            body=_field(entry, "body") or b"",
        )
    except ValidationError as e:
        raise ValueError(str(e)) from e


class TelemetryConsumerService:
    """Consumes LoRaWAN telemetry events from a Redis Stream."""

    def __init__(
        self,
        redis_client: aioredis.Redis,
        session_factory: async_sessionmaker,
        stream_name: str | None = None,
        group_name: str | None = None,
        num_workers: int = 1,
        retention_max: int | None = None,
    ):
        self.redis = redis_client
        self.session_factory = session_factory
        self.stream_name = stream_name or settings.telemetry_stream_name
        self.group_name = group_name or settings.telemetry_consumer_group
        self.num_workers = num_workers
        self.retention_max = retention_max or settings.telemetry_retention_max
        self._running = False
        self._worker_tasks: list[asyncio.Task] = []

    async def start(self) -> None:
        """Start worker pool consuming from the stream."""
        self._running = True

        # Create consumer group if not exists
        try:
            await self.redis.xgroup_create(self.stream_name, self.group_name, id="0", mkstream=True)
        except aioredis.ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise

        for i in range(self.num_workers):
            task = asyncio.create_task(
                self._worker_loop(worker_id=i),
                name=f"lorawan-telemetry-consumer-{i}",
            )
            self._worker_tasks.append(task)

        logger.info(
            "Telemetry consumer started",
            stream=self.stream_name,
            num_workers=self.num_workers,
        )

    async def stop(self) -> None:
        """Stop worker pool gracefully."""
        self._running = False

        for task in self._worker_tasks:
            task.cancel()

        for task in self._worker_tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._worker_tasks.clear()
        logger.info("Telemetry consumer stopped")

    async def _worker_loop(self, worker_id: int) -> None:
        """Main consumer loop for a single worker."""
        consumer_name = f"consumer-{worker_id}"
        logger.info("Telemetry consumer worker started", worker_id=worker_id)

        while self._running:
            try:
                messages = await self.redis.xreadgroup(
                    groupname=self.group_name,
                    consumername=consumer_name,
                    streams={self.stream_name: ">"},
                    count=100,
                    block=1000,
                )
                for _stream, entries in messages or []:
                    for entry_id, entry in entries:
                        await self.handle_entry(entry_id, entry)

            except asyncio.CancelledError:
                logger.info("Telemetry consumer worker cancelled", worker_id=worker_id)
                raise
            except Exception as e:
                logger.error("Telemetry consumer error", worker_id=worker_id, error=str(e))
                await asyncio.sleep(1)

    async def handle_entry(self, entry_id: Any, entry: dict) -> TelemetryIngestionResult | None:
        """Ingest one stream entry and acknowledge it.

        Undecodable entries are acknowledged without ingestion. Returns the
        pipeline result, or None when the entry could not be decoded.
        """
        try:
            event = decode_stream_entry(entry)
        except (ValueError, UnicodeDecodeError) as e:
            logger.warning("Dropping undecodable telemetry entry", entry_id=entry_id, error=str(e))
            await self.redis.xack(self.stream_name, self.group_name, entry_id)
            return None

        async with self.session_factory() as session:
            ingestion = LoRaTelemetryIngestionService(session, retention_max=self.retention_max)
            result = await ingestion.process_event(event)

        await self.redis.xack(self.stream_name, self.group_name, entry_id)
        return result
