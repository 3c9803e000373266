"""Point-in-time copy of a device twin held by the external device registry."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ConnectionState(str, Enum):
    """Device connectivity as seen by the registry."""

    CONNECTED = "Connected"
    DISCONNECTED = "Disconnected"


class TwinStatus(str, Enum):
    """Registry-level enabled/disabled status."""

    ENABLED = "Enabled"
    DISABLED = "Disabled"


@dataclass
class TwinSnapshot:
    """Twin of one device: tags, desired and reported properties plus registry state.

    The three property groups are untyped, case-sensitive mappings. Mappers read
    them through ``portal.twin.properties`` and only ``apply_to_snapshot``
    mutates them.
    """

    device_id: str | None = None
    tags: dict[str, Any] = field(default_factory=dict)
    desired: dict[str, Any] = field(default_factory=dict)
    reported: dict[str, Any] = field(default_factory=dict)
    connection_state: ConnectionState = ConnectionState.DISCONNECTED
    status: TwinStatus = TwinStatus.DISABLED
    status_updated_time: datetime | None = None
    device_scope: str | None = None
    version: int = 0

    @property
    def is_connected(self) -> bool:
        return self.connection_state == ConnectionState.CONNECTED

    @property
    def is_enabled(self) -> bool:
        return self.status == TwinStatus.ENABLED
