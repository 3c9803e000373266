"""Twin-to-domain mappers, one per device kind."""

from portal.twin.mappers.base import TwinMapper
from portal.twin.mappers.device import DeviceTwinMapper
from portal.twin.mappers.lorawan import LoRaDeviceTwinMapper
from portal.twin.mappers.concentrator import ConcentratorTwinMapper
from portal.twin.mappers.edge_device import EdgeDeviceTwinMapper

__all__ = [
    "TwinMapper",
    "DeviceTwinMapper",
    "LoRaDeviceTwinMapper",
    "ConcentratorTwinMapper",
    "EdgeDeviceTwinMapper",
]
