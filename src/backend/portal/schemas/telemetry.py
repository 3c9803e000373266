"""LoRaWAN telemetry payload, inbound event and transport schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# System properties stamped on every event by the hub
AUTH_METHOD_PROPERTY = "iothub-connection-auth-method"
DEVICE_ID_PROPERTY = "iothub-connection-device-id"


class LoRaTelemetry(BaseModel):
    """Uplink message as forwarded by the LoRaWAN network server.

    Radio metrics are optional; only the uplink timestamp is required.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    time: datetime
    tmms: int | None = None
    freq: float | None = None
    chan: int | None = None
    rfch: int | None = None
    modu: str | None = None
    datr: str | None = None
    rssi: float | None = None
    lsnr: float | None = None
    data: Any = None
    port: int | None = None
    fcnt: int | None = None
    edgets: int | None = None
    rawdata: str | None = None
    device_eui: str | None = Field(default=None, alias="eui")
    gateway_id: str | None = Field(default=None, alias="gatewayid")
    station_eui: str | None = Field(default=None, alias="stationeui")
    dupmsg: bool | None = None


class ConnectionAuthMethod(BaseModel):
    """Decoded ``iothub-connection-auth-method`` system property."""

    model_config = ConfigDict(extra="ignore")

    scope: str
    type: str | None = None
    issuer: str | None = None

    @property
    def is_device_scope(self) -> bool:
        return self.scope.lower() == "device"


class TelemetryEvent(BaseModel):
    """Inbound event delivered by the event stream."""

    sequence_number: int
    enqueued_time: datetime
    system_properties: dict[str, Any] = Field(default_factory=dict)
    body: bytes | str = b""


class LoRaDeviceTelemetryDto(BaseModel):
    """Stored telemetry record returned to API callers."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    enqueued_time: datetime
    telemetry: LoRaTelemetry
