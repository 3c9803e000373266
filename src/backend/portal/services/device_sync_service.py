"""Pulls LoRaWAN device twins from the registry into the relational store."""

from dataclasses import dataclass

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from portal.core.exceptions import TwinMappingError
from portal.models.device import LorawanDevice
from portal.models.device_model import DeviceModel
from portal.models.device_tag import DeviceTagValue
from portal.schemas.lorawan import LoRaDeviceDetails
from portal.services.device_model_image_service import DeviceModelImageService
from portal.services.device_tag_service import DeviceTagService
from portal.services.lorawan_device_service import LORA_FIELDS
from portal.twin.mappers.device import SUPPORT_LORA_FEATURES_TAG
from portal.twin.mappers.lorawan import LoRaDesired, LoRaDeviceTwinMapper, LoRaReported
from portal.twin.properties import get_tag, parse_bool
from portal.twin.registry import DeviceRegistryClient
from portal.twin.snapshot import TwinSnapshot

logger = structlog.get_logger()

# Twin property each stored LoRaWAN column is read from
FIELD_SOURCES: dict[str, tuple[str, str]] = {
    "use_otaa": ("desired", LoRaDesired.APP_EUI),
    "app_eui": ("desired", LoRaDesired.APP_EUI),
    "app_key": ("desired", LoRaDesired.APP_KEY),
    "app_s_key": ("desired", LoRaDesired.APP_S_KEY),
    "nwk_s_key": ("desired", LoRaDesired.NWK_S_KEY),
    "dev_addr": ("desired", LoRaDesired.DEV_ADDR),
    "sensor_decoder": ("desired", LoRaDesired.SENSOR_DECODER),
    "gateway_id": ("desired", LoRaDesired.GATEWAY_ID),
    "downlink": ("desired", LoRaDesired.DOWNLINK),
    "class_type": ("desired", LoRaDesired.CLASS_TYPE),
    "preferred_window": ("desired", LoRaDesired.PREFERRED_WINDOW),
    "deduplication": ("desired", LoRaDesired.DEDUPLICATION),
    "rx1_dr_offset": ("desired", LoRaDesired.RX1_DR_OFFSET),
    "rx2_data_rate": ("desired", LoRaDesired.RX2_DATA_RATE),
    "rx_delay": ("desired", LoRaDesired.RX_DELAY),
    "abp_relax_mode": ("desired", LoRaDesired.ABP_RELAX_MODE),
    "fcnt_up_start": ("desired", LoRaDesired.FCNT_UP_START),
    "fcnt_down_start": ("desired", LoRaDesired.FCNT_DOWN_START),
    "fcnt_reset_counter": ("desired", LoRaDesired.FCNT_RESET_COUNTER),
    "supports_32bit_fcnt": ("desired", LoRaDesired.SUPPORTS_32BIT_FCNT),
    "keep_alive_timeout": ("desired", LoRaDesired.KEEP_ALIVE_TIMEOUT),
    "already_logged_in_once": ("reported", LoRaReported.DEV_ADDR),
    "data_rate": ("reported", LoRaReported.DATA_RATE),
    "tx_power": ("reported", LoRaReported.TX_POWER),
    "nb_rep": ("reported", LoRaReported.NB_REP),
    "reported_rx2_data_rate": ("reported", LoRaReported.RX2_DATA_RATE),
    "reported_rx1_dr_offset": ("reported", LoRaReported.RX1_DR_OFFSET),
    "reported_rx_delay": ("reported", LoRaReported.RX_DELAY),
}


@dataclass
class DeviceSyncSummary:
    """Outcome counters of one synchronization run."""

    created: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    deleted: int = 0
    models_imported: int = 0


class DeviceSyncService:
    """Mirrors the registry's LoRaWAN twins into ``LorawanDevice`` rows.

    Twins are the source of truth: a row is refreshed only when its twin has a
    newer version, and rows whose twin disappeared are deleted.
    """

    def __init__(
        self,
        db: AsyncSession,
        registry: DeviceRegistryClient,
        twin_mapper: LoRaDeviceTwinMapper | None = None,
        tag_service: DeviceTagService | None = None,
        page_size: int = 100,
    ):
        self.db = db
        self.registry = registry
        self.twin_mapper = twin_mapper or LoRaDeviceTwinMapper(DeviceModelImageService())
        self.tag_service = tag_service or DeviceTagService(db)
        self.page_size = page_size

    async def sync_lorawan_devices(self) -> DeviceSyncSummary:
        summary = DeviceSyncSummary()
        tag_names = await self.tag_service.get_all_tag_names()
        known_models: set[str] = set()
        registry_ids: set[str] = set()

        async for page in self.registry.list_twins(page_size=self.page_size):
            for twin in page:
                if twin.device_id:
                    registry_ids.add(twin.device_id)
                if not parse_bool(get_tag(twin, SUPPORT_LORA_FEATURES_TAG)):
                    continue

                try:
                    details = self.twin_mapper.create_details(twin, tag_names)
                except TwinMappingError as e:
                    logger.warning("Skipping twin that cannot be mapped", device_id=twin.device_id, error=str(e))
                    summary.skipped += 1
                    continue

                if details.model_id not in known_models:
                    await self._ensure_model(details.model_id, summary)
                    known_models.add(details.model_id)

                await self._upsert(twin, details, summary)

        summary.deleted = await self._delete_missing(registry_ids)

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Device synchronization failed", error=str(e))
            raise

        logger.info(
            "LoRaWAN devices synchronized",
            created=summary.created,
            updated=summary.updated,
            unchanged=summary.unchanged,
            skipped=summary.skipped,
            deleted=summary.deleted,
            models_imported=summary.models_imported,
        )
        return summary

    async def _ensure_model(self, model_id: str, summary: DeviceSyncSummary) -> None:
        if await self.db.get(DeviceModel, model_id) is not None:
            return
        # Only LoRaWAN twins reach this point
        self.db.add(DeviceModel(id=model_id, name=model_id, support_lora_features=True))
        await self.db.flush()
        summary.models_imported += 1
        logger.info("Importing missing device model", model_id=model_id)

    async def _upsert(
        self,
        twin: TwinSnapshot,
        details: LoRaDeviceDetails,
        summary: DeviceSyncSummary,
    ) -> None:
        result = await self.db.execute(
            select(LorawanDevice)
            .options(selectinload(LorawanDevice.tags))
            .where(LorawanDevice.id == details.device_id)
        )
        device = result.scalar_one_or_none()

        if device is None:
            device = LorawanDevice(id=details.device_id)
            self._copy_registry_state(details, device)
            for name in LORA_FIELDS:
                self._copy_field(details, device, name)
            self.db.add(device)
            summary.created += 1
            return

        if device.version >= details.version:
            summary.unchanged += 1
            return

        self._copy_registry_state(details, device)
        # Columns absent from the twin keep their stored value
        for name, (group, key) in FIELD_SOURCES.items():
            properties = twin.desired if group == "desired" else twin.reported
            if key in properties:
                self._copy_field(details, device, name)
        summary.updated += 1

    async def _delete_missing(self, registry_ids: set[str]) -> int:
        result = await self.db.execute(
            select(LorawanDevice).options(
                selectinload(LorawanDevice.tags),
                selectinload(LorawanDevice.labels),
                selectinload(LorawanDevice.telemetry),
            )
        )
        deleted = 0
        for device in result.scalars().all():
            if device.id not in registry_ids:
                await self.db.delete(device)
                deleted += 1
                logger.info("Deleting device missing from registry", device_id=device.id)
        return deleted

    def _copy_registry_state(self, details: LoRaDeviceDetails, device: LorawanDevice) -> None:
        device.name = details.device_name or details.device_id
        device.device_model_id = details.model_id
        device.is_connected = details.is_connected
        device.is_enabled = details.is_enabled
        device.status_updated_time = details.status_updated_time
        device.version = details.version or 0
        device.tags = [
            DeviceTagValue(name=name, value=value)
            for name, value in details.tags.items()
            if value is not None
        ]

    def _copy_field(self, details: LoRaDeviceDetails, device: LorawanDevice, name: str) -> None:
        value = getattr(details, name)
        setattr(device, name, getattr(value, "value", value))
