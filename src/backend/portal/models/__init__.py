"""Portal Database Models."""

from portal.models.base import Base, TimestampMixin
from portal.models.device_model import DeviceModel
from portal.models.device import Device, LorawanDevice
from portal.models.device_tag import DeviceTag, DeviceTagValue
from portal.models.label import Label
from portal.models.lora_telemetry import LoRaDeviceTelemetry

__all__ = [
    "Base",
    "TimestampMixin",
    "DeviceModel",
    "Device",
    "LorawanDevice",
    "DeviceTag",
    "DeviceTagValue",
    "Label",
    "LoRaDeviceTelemetry",
]
