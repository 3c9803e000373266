"""Device registry client interface and in-memory implementation.

The registry is the external system owning device identities and twins. The
portal never keeps a twin object between calls: every read returns a fresh
snapshot, and writes go through ``update_device_twin``.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import AsyncIterator

import structlog

from portal.core.exceptions import DeviceAlreadyExistsError, RegistryDeviceNotFoundError
from portal.twin.snapshot import TwinSnapshot, TwinStatus

logger = structlog.get_logger()


class DeviceRegistryClient(ABC):
    """Contract for the registry adapters used by the services."""

    @abstractmethod
    async def create_new_twin(self, device_id: str) -> TwinSnapshot:
        """Return an empty, unsaved twin for ``device_id``."""
        pass

    @abstractmethod
    async def get_device_twin(self, device_id: str) -> TwinSnapshot:
        """Fetch the twin of a device.

        Raises:
            RegistryDeviceNotFoundError: If the device is not registered
        """
        pass

    @abstractmethod
    async def get_device_twin_with_modules(self, device_id: str) -> TwinSnapshot:
        """Fetch the twin holding the module deployment of an edge device."""
        pass

    @abstractmethod
    async def create_device_with_twin(
        self,
        device_id: str,
        is_edge: bool,
        twin: TwinSnapshot,
        status: TwinStatus,
    ) -> TwinSnapshot:
        """Register a device with an initial twin.

        Raises:
            DeviceAlreadyExistsError: If the identifier is taken
        """
        pass

    @abstractmethod
    async def update_device_twin(self, twin: TwinSnapshot) -> TwinSnapshot:
        """Replace the tags and desired properties of an existing twin."""
        pass

    @abstractmethod
    async def update_device_status(self, device_id: str, status: TwinStatus) -> None:
        pass

    @abstractmethod
    async def delete_device(self, device_id: str) -> None:
        """Remove a device.

        Raises:
            RegistryDeviceNotFoundError: If the device is not registered
        """
        pass

    @abstractmethod
    def list_twins(self, page_size: int = 100) -> AsyncIterator[list[TwinSnapshot]]:
        """Iterate over all twins, one page at a time."""
        pass


class InMemoryDeviceRegistry(DeviceRegistryClient):
    """Registry kept in process memory.

    Used for local runs and tests. Snapshots are deep-copied in and out so
    callers only ever hold point-in-time copies. Every mutation bumps the
    twin version.
    """

    def __init__(self):
        self._twins: dict[str, TwinSnapshot] = {}
        self._module_twins: dict[str, TwinSnapshot] = {}
        self._edge_devices: set[str] = set()

    async def create_new_twin(self, device_id: str) -> TwinSnapshot:
        return TwinSnapshot(device_id=device_id)

    async def get_device_twin(self, device_id: str) -> TwinSnapshot:
        return copy.deepcopy(self._get_stored(device_id))

    async def get_device_twin_with_modules(self, device_id: str) -> TwinSnapshot:
        self._get_stored(device_id)
        module_twin = self._module_twins.get(device_id)
        if module_twin is None:
            return TwinSnapshot(device_id=device_id)
        return copy.deepcopy(module_twin)

    def set_module_twin(self, device_id: str, twin: TwinSnapshot) -> None:
        """Attach the module twin reported by an edge runtime."""
        self._get_stored(device_id)
        self._module_twins[device_id] = copy.deepcopy(twin)

    async def create_device_with_twin(
        self,
        device_id: str,
        is_edge: bool,
        twin: TwinSnapshot,
        status: TwinStatus,
    ) -> TwinSnapshot:
        if device_id in self._twins:
            raise DeviceAlreadyExistsError(f"Device {device_id} already registered")

        stored = copy.deepcopy(twin)
        stored.device_id = device_id
        stored.status = status
        stored.status_updated_time = datetime.now(timezone.utc)
        stored.version = 1
        self._twins[device_id] = stored
        if is_edge:
            self._edge_devices.add(device_id)

        logger.info("Registered device", device_id=device_id, is_edge=is_edge)
        return copy.deepcopy(stored)

    async def update_device_twin(self, twin: TwinSnapshot) -> TwinSnapshot:
        stored = self._get_stored(twin.device_id)
        stored.tags = copy.deepcopy(twin.tags)
        stored.desired = copy.deepcopy(twin.desired)
        stored.version += 1
        return copy.deepcopy(stored)

    async def update_device_status(self, device_id: str, status: TwinStatus) -> None:
        stored = self._get_stored(device_id)
        if stored.status != status:
            stored.status = status
            stored.status_updated_time = datetime.now(timezone.utc)
        stored.version += 1

    async def delete_device(self, device_id: str) -> None:
        self._get_stored(device_id)
        del self._twins[device_id]
        self._module_twins.pop(device_id, None)
        self._edge_devices.discard(device_id)
        logger.info("Removed device from registry", device_id=device_id)

    async def list_twins(self, page_size: int = 100) -> AsyncIterator[list[TwinSnapshot]]:
        if page_size < 1:
            raise ValueError("page_size must be positive")
        device_ids = sorted(self._twins)
        for start in range(0, len(device_ids), page_size):
            yield [
                copy.deepcopy(self._twins[device_id])
                for device_id in device_ids[start:start + page_size]
            ]

    def put_twin(self, twin: TwinSnapshot) -> None:
        """Store a twin as-is, as if the device had been provisioned elsewhere."""
        if not twin.device_id:
            raise ValueError("twin.device_id is required")
        self._twins[twin.device_id] = copy.deepcopy(twin)

    def is_edge_device(self, device_id: str) -> bool:
        return device_id in self._edge_devices

    def _get_stored(self, device_id: str | None) -> TwinSnapshot:
        twin = self._twins.get(device_id) if device_id else None
        if twin is None:
            raise RegistryDeviceNotFoundError(f"Device {device_id} not found in registry")
        return twin
