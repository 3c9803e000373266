"""Portal Services Module."""

from portal.services.device_model_image_service import DeviceModelImageService
from portal.services.device_tag_service import DeviceTagService
from portal.services.telemetry_retention import TelemetryRetentionPolicy
from portal.services.telemetry_ingestion_service import (
    LoRaTelemetryIngestionService,
    TelemetryIngestionResult,
)
from portal.services.telemetry_consumer_service import TelemetryConsumerService
from portal.services.lorawan_device_service import LoRaWanDeviceService
from portal.services.device_sync_service import DeviceSyncService, DeviceSyncSummary

__all__ = [
    "DeviceModelImageService",
    "DeviceTagService",
    "TelemetryRetentionPolicy",
    "LoRaTelemetryIngestionService",
    "TelemetryIngestionResult",
    "TelemetryConsumerService",
    "LoRaWanDeviceService",
    "DeviceSyncService",
    "DeviceSyncSummary",
]
