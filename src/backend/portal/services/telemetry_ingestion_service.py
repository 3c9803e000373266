"""LoRaWAN telemetry ingestion: validate, deduplicate, append and prune.

Each event from the hub's event stream goes through a short pipeline:

    received -> validated -> deduplicated -> appended -> pruned

and ends either stored or discarded. The pipeline never raises. Discards are
logged with a severity that reflects who has to act on them: a malformed event
is a warning, an event outside the device scope is a trace, an unknown device
or a redelivered event is silent, and a storage failure is an error.
"""

from enum import Enum
from typing import Any

import structlog
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from portal.core.config import settings
from portal.models.device import LorawanDevice
from portal.models.lora_telemetry import LoRaDeviceTelemetry
from portal.schemas.telemetry import (
    AUTH_METHOD_PROPERTY,
    DEVICE_ID_PROPERTY,
    ConnectionAuthMethod,
    LoRaTelemetry,
    TelemetryEvent,
)
from portal.services.telemetry_retention import TelemetryRetentionPolicy

logger = structlog.get_logger()


class TelemetryIngestionResult(str, Enum):
    """Terminal state of one processed event."""

    STORED = "stored"
    DISCARDED_MALFORMED = "discarded_malformed"
    DISCARDED_IRRELEVANT = "discarded_irrelevant"
    DISCARDED_UNKNOWN_DEVICE = "discarded_unknown_device"
    DISCARDED_DUPLICATE = "discarded_duplicate"
    FAILED_STORAGE = "failed_storage"


def _as_text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode()
    return str(value)


class LoRaTelemetryIngestionService:
    """Stores LoRaWAN uplink telemetry in each device's bounded history."""

    def __init__(self, db: AsyncSession, retention_max: int | None = None):
        self.db = db
        self.retention = TelemetryRetentionPolicy(
            capacity=retention_max or settings.telemetry_retention_max,
        )

    async def process_event(self, event: TelemetryEvent) -> TelemetryIngestionResult:
        """Run one event through the pipeline and report where it ended."""
        properties = event.system_properties or {}
        sequence_number = event.sequence_number

        raw_auth_method = properties.get(AUTH_METHOD_PROPERTY)
        if raw_auth_method is None:
            logger.warning(
                "Telemetry event has no auth method property",
                sequence_number=sequence_number,
            )
            return TelemetryIngestionResult.DISCARDED_MALFORMED

        auth_method = self._parse_auth_method(raw_auth_method)
        if auth_method is None:
            logger.warning(
                "Telemetry event auth method could not be parsed",
                sequence_number=sequence_number,
            )
            return TelemetryIngestionResult.DISCARDED_MALFORMED

        if not auth_method.is_device_scope:
            logger.debug(
                "Ignoring telemetry event outside device scope",
                sequence_number=sequence_number,
                scope=auth_method.scope,
            )
            return TelemetryIngestionResult.DISCARDED_IRRELEVANT

        raw_device_id = properties.get(DEVICE_ID_PROPERTY)
        if not raw_device_id:
            logger.warning(
                "Telemetry event has no device id property",
                sequence_number=sequence_number,
            )
            return TelemetryIngestionResult.DISCARDED_MALFORMED
        try:
            device_id = _as_text(raw_device_id)
        except UnicodeDecodeError:
            logger.warning(
                "Telemetry event device id could not be decoded",
                sequence_number=sequence_number,
            )
            return TelemetryIngestionResult.DISCARDED_MALFORMED

        device = await self._get_device(device_id)
        if device is None:
            return TelemetryIngestionResult.DISCARDED_UNKNOWN_DEVICE

        try:
            payload = LoRaTelemetry.model_validate_json(event.body)
        except ValidationError as e:
            logger.warning(
                "Telemetry event body could not be parsed",
                sequence_number=sequence_number,
                device_id=device_id,
                error=str(e),
            )
            return TelemetryIngestionResult.DISCARDED_MALFORMED

        record = LoRaDeviceTelemetry(
            id=str(sequence_number),
            device_id=device.id,
            enqueued_time=event.enqueued_time,
            telemetry=payload.model_dump(mode="json", by_alias=True),
        )

        added, evicted = self.retention.add(device.telemetry, record)
        if not added:
            return TelemetryIngestionResult.DISCARDED_DUPLICATE

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Failed to store telemetry",
                sequence_number=sequence_number,
                device_id=device_id,
                error=str(e),
            )
            return TelemetryIngestionResult.FAILED_STORAGE

        logger.debug(
            "Telemetry stored",
            sequence_number=sequence_number,
            device_id=device_id,
            evicted=len(evicted),
        )
        return TelemetryIngestionResult.STORED

    def _parse_auth_method(self, raw: Any) -> ConnectionAuthMethod | None:
        """Decode the auth method property, given as a mapping or as JSON text."""
        try:
            if isinstance(raw, dict):
                return ConnectionAuthMethod.model_validate(raw)
            return ConnectionAuthMethod.model_validate_json(raw)
        except (ValidationError, TypeError):
            return None

    async def _get_device(self, device_id: str) -> LorawanDevice | None:
        result = await self.db.execute(
            select(LorawanDevice)
            .options(selectinload(LorawanDevice.telemetry))
            .where(LorawanDevice.id == device_id)
        )
        return result.scalar_one_or_none()
