"""LoRaWAN device management service.

Keeps the relational store and the external device registry in step: every
write goes to the registry first (through the twin mapper) and is then
mirrored in the store within a single commit.
"""

from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from portal.core.exceptions import (
    DeviceAlreadyExistsError,
    DeviceNotFoundError,
    InternalServerError,
    RegistryDeviceNotFoundError,
    TwinMappingError,
)
from portal.models.device import Device, LorawanDevice
from portal.models.device_model import DeviceModel
from portal.models.device_tag import DeviceTagValue
from portal.models.label import Label
from portal.schemas.device import LabelDto, merge_labels
from portal.schemas.lorawan import LoRaDeviceDetails
from portal.schemas.telemetry import LoRaDeviceTelemetryDto, TelemetryEvent
from portal.services.device_model_image_service import DeviceModelImageService
from portal.services.device_tag_service import DeviceTagService
from portal.services.telemetry_ingestion_service import (
    LoRaTelemetryIngestionService,
    TelemetryIngestionResult,
)
from portal.services.telemetry_retention import as_utc
from portal.twin.mappers.lorawan import LoRaDeviceTwinMapper
from portal.twin.registry import DeviceRegistryClient
from portal.twin.snapshot import TwinStatus

logger = structlog.get_logger()

# Columns shared one-to-one between LorawanDevice and LoRaDeviceDetails
LORA_FIELDS = (
    "use_otaa",
    "app_key",
    "app_eui",
    "app_s_key",
    "nwk_s_key",
    "dev_addr",
    "already_logged_in_once",
    "data_rate",
    "tx_power",
    "nb_rep",
    "reported_rx2_data_rate",
    "reported_rx1_dr_offset",
    "reported_rx_delay",
    "sensor_decoder",
    "gateway_id",
    "downlink",
    "class_type",
    "preferred_window",
    "deduplication",
    "rx1_dr_offset",
    "rx2_data_rate",
    "rx_delay",
    "abp_relax_mode",
    "fcnt_up_start",
    "fcnt_down_start",
    "fcnt_reset_counter",
    "supports_32bit_fcnt",
    "keep_alive_timeout",
)


class LoRaWanDeviceService:
    """Service for LoRaWAN device CRUD, telemetry history and labels."""

    def __init__(
        self,
        db: AsyncSession,
        registry: DeviceRegistryClient,
        twin_mapper: LoRaDeviceTwinMapper | None = None,
        image_service: DeviceModelImageService | None = None,
        tag_service: DeviceTagService | None = None,
        retention_max: int | None = None,
    ):
        self.db = db
        self.registry = registry
        self.image_service = image_service or DeviceModelImageService()
        self.twin_mapper = twin_mapper or LoRaDeviceTwinMapper(self.image_service)
        self.tag_service = tag_service or DeviceTagService(db)
        self.ingestion = LoRaTelemetryIngestionService(db, retention_max=retention_max)

    async def get_device(self, device_id: str) -> LoRaDeviceDetails:
        """Get a LoRaWAN device with its visible tags and labels.

        Raises:
            DeviceNotFoundError: If the device is not in the store
        """
        device = await self._get_entity(device_id)
        if not device:
            raise DeviceNotFoundError(f"The LoRaWAN device with id {device_id} doesn't exist")

        details = self._to_details(device)
        details.image_url = self.image_service.compute_image_uri(details.model_id)
        details.tags = await self._filter_device_tags(details.tags)
        return details

    async def check_if_device_exists(self, device_id: str) -> bool:
        result = await self.db.execute(
            select(LorawanDevice.id).where(LorawanDevice.id == device_id)
        )
        return result.scalar_one_or_none() is not None

    async def create_device(self, details: LoRaDeviceDetails) -> LoRaDeviceDetails:
        """Register a device in the registry, then insert it in the store.

        Raises:
            DeviceAlreadyExistsError: If the device id is taken
            DeviceNotFoundError: If the device model does not exist
            TwinMappingError: If the device has no model
            InternalServerError: If the store fails; the registered twin is removed again
        """
        if not details.model_id:
            raise TwinMappingError(f"Device {details.device_id} has no model")
        if await self.check_if_device_exists(details.device_id):
            raise DeviceAlreadyExistsError(f"The LoRaWAN device {details.device_id} already exists")
        if await self.db.get(DeviceModel, details.model_id) is None:
            raise DeviceNotFoundError(f"The device model {details.model_id} doesn't exist")

        twin = await self.registry.create_new_twin(details.device_id)
        self.twin_mapper.apply_to_snapshot(twin, details)
        twin = await self.registry.create_device_with_twin(
            details.device_id,
            False,
            twin,
            TwinStatus.ENABLED if details.is_enabled else TwinStatus.DISABLED,
        )

        device = LorawanDevice(id=details.device_id)
        self._apply_to_entity(details, device)
        device.is_connected = twin.is_connected
        device.is_enabled = twin.is_enabled
        device.status_updated_time = twin.status_updated_time
        device.version = twin.version
        self.db.add(device)
        try:
            await self._save("create", details.device_id)
        except InternalServerError:
            await self._unregister(details.device_id)
            raise

        logger.info("Created LoRaWAN device", device_id=details.device_id, version=twin.version)
        return await self.get_device(details.device_id)

    async def update_device(self, details: LoRaDeviceDetails) -> LoRaDeviceDetails:
        """Push status and twin changes to the registry, then refresh the store.

        Tag values and labels are replaced wholesale.

        Raises:
            DeviceNotFoundError: If the device is unknown to the store or registry
        """
        device = await self._get_entity(details.device_id)
        if not device:
            raise DeviceNotFoundError(f"The LoRaWAN device {details.device_id} doesn't exist")

        try:
            await self.registry.update_device_status(
                details.device_id,
                TwinStatus.ENABLED if details.is_enabled else TwinStatus.DISABLED,
            )
            twin = await self.registry.get_device_twin(details.device_id)
            self.twin_mapper.apply_to_snapshot(twin, details)
            twin = await self.registry.update_device_twin(twin)
        except RegistryDeviceNotFoundError as e:
            raise DeviceNotFoundError(str(e)) from e

        self._apply_to_entity(details, device)
        device.is_connected = twin.is_connected
        device.is_enabled = twin.is_enabled
        device.status_updated_time = twin.status_updated_time
        device.version = twin.version
        await self._save("update", details.device_id)

        logger.info("Updated LoRaWAN device", device_id=details.device_id, version=twin.version)
        return await self.get_device(details.device_id)

    async def delete_device(self, device_id: str) -> None:
        """Delete a device from the registry and the store.

        A device missing from the registry is still removed from the store, and
        deleting an unknown device is a no-op.
        """
        try:
            await self.registry.delete_device(device_id)
        except RegistryDeviceNotFoundError as e:
            logger.warning(
                "Device not found in registry, deleting from store only",
                device_id=device_id,
                error=str(e),
            )

        device = await self._get_entity(device_id, with_telemetry=True)
        if not device:
            return

        await self.db.delete(device)
        await self._save("delete", device_id)
        logger.info("Deleted LoRaWAN device", device_id=device_id)

    async def get_device_telemetry(self, device_id: str) -> list[LoRaDeviceTelemetryDto]:
        """Telemetry history of a device, newest first; empty for an unknown device."""
        result = await self.db.execute(
            select(LorawanDevice)
            .options(selectinload(LorawanDevice.telemetry))
            .where(LorawanDevice.id == device_id)
        )
        device = result.scalar_one_or_none()
        if not device:
            return []

        records = sorted(device.telemetry, key=lambda r: as_utc(r.enqueued_time), reverse=True)
        return [LoRaDeviceTelemetryDto.model_validate(record) for record in records]

    async def process_telemetry_event(self, event: TelemetryEvent) -> TelemetryIngestionResult:
        return await self.ingestion.process_event(event)

    async def get_available_labels(self) -> list[LabelDto]:
        """Labels in use: those on devices and those on the models of devices."""
        device_labels = await self.db.execute(
            select(Label).where(Label.device_id.is_not(None))
        )
        model_labels = await self.db.execute(
            select(Label)
            .join(Device, Device.device_model_id == Label.device_model_id)
            .distinct()
        )
        return merge_labels(device_labels.scalars().all(), model_labels.scalars().all())

    # ==================== Helpers ====================

    async def _get_entity(self, device_id: str, with_telemetry: bool = False) -> LorawanDevice | None:
        options = [selectinload(LorawanDevice.tags), selectinload(LorawanDevice.labels)]
        if with_telemetry:
            options.append(selectinload(LorawanDevice.telemetry))

        result = await self.db.execute(
            select(LorawanDevice).options(*options).where(LorawanDevice.id == device_id)
        )
        return result.scalar_one_or_none()

    async def _filter_device_tags(self, tags: dict[str, str | None]) -> dict[str, str | None]:
        """Keep only catalogue tags; catalogue tags the device lacks become empty."""
        tag_names = await self.tag_service.get_all_tag_names()
        return {name: tags.get(name, "") for name in tag_names}

    async def _unregister(self, device_id: str) -> None:
        try:
            await self.registry.delete_device(device_id)
        except RegistryDeviceNotFoundError:
            return
        logger.warning("Removed registry twin of a device the store rejected", device_id=device_id)

    async def _save(self, operation: str, device_id: str) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Failed to store LoRaWAN device",
                operation=operation,
                device_id=device_id,
                error=str(e),
            )
            raise InternalServerError(f"Unable to {operation} the LoRaWAN device {device_id}") from e

    def _to_details(self, device: LorawanDevice) -> LoRaDeviceDetails:
        values: dict[str, Any] = {
            name: getattr(device, name)
            for name in LORA_FIELDS
            if getattr(device, name) is not None
        }
        return LoRaDeviceDetails(
            device_id=device.id,
            model_id=device.device_model_id,
            device_name=device.name,
            is_connected=device.is_connected,
            is_enabled=device.is_enabled,
            status_updated_time=device.status_updated_time,
            version=device.version,
            tags={tag.name: tag.value for tag in device.tags},
            labels=[LabelDto.model_validate(label) for label in device.labels],
            **values,
        )

    def _apply_to_entity(self, details: LoRaDeviceDetails, device: LorawanDevice) -> None:
        device.name = details.device_name or details.device_id
        device.device_model_id = details.model_id or device.device_model_id

        # None leaves the stored value, as it leaves the twin property
        for name in LORA_FIELDS:
            value = getattr(details, name)
            if value is not None:
                setattr(device, name, getattr(value, "value", value))

        # Reassigning the collections deletes the previous rows (delete-orphan)
        device.tags = [
            DeviceTagValue(name=name, value=value or "")
            for name, value in details.tags.items()
        ]
        device.labels = [Label(name=label.name, color=label.color) for label in details.labels]
