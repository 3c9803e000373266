"""LoRaWAN concentrator (gateway) schema."""

from pydantic import BaseModel, Field


class Concentrator(BaseModel):
    """LoRa Basics Station concentrator registered as a device."""

    device_id: str = Field(..., min_length=1, max_length=128)
    device_name: str | None = None
    lora_region: str | None = None
    device_type: str | None = None
    client_thumbprint: str | None = None
    is_connected: bool = False
    is_enabled: bool = False
    already_logged_in_once: bool = False
