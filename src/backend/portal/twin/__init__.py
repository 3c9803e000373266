"""Device twin snapshots, typed property access and the registry client."""

from portal.twin.snapshot import ConnectionState, TwinSnapshot, TwinStatus
from portal.twin.registry import DeviceRegistryClient, InMemoryDeviceRegistry

__all__ = [
    "ConnectionState",
    "TwinSnapshot",
    "TwinStatus",
    "DeviceRegistryClient",
    "InMemoryDeviceRegistry",
]
