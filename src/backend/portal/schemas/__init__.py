"""Portal domain and transport schemas."""

from portal.schemas.device import DeviceDetails, DeviceListItem, LabelDto, merge_labels
from portal.schemas.lorawan import ClassType, DeduplicationMode, LoRaDeviceDetails
from portal.schemas.concentrator import Concentrator
from portal.schemas.edge_device import IoTEdgeDevice, IoTEdgeListItem, IoTEdgeModule
from portal.schemas.telemetry import (
    ConnectionAuthMethod,
    LoRaDeviceTelemetryDto,
    LoRaTelemetry,
    TelemetryEvent,
)

__all__ = [
    "DeviceDetails",
    "DeviceListItem",
    "LabelDto",
    "merge_labels",
    "ClassType",
    "DeduplicationMode",
    "LoRaDeviceDetails",
    "Concentrator",
    "IoTEdgeDevice",
    "IoTEdgeListItem",
    "IoTEdgeModule",
    "ConnectionAuthMethod",
    "LoRaDeviceTelemetryDto",
    "LoRaTelemetry",
    "TelemetryEvent",
]
