"""Domain schemas shared by every device kind."""

from datetime import datetime
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field


class LabelDto(BaseModel):
    """Label as exposed to callers; hashable so label sets can be merged."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    name: str
    color: str


class DeviceListItem(BaseModel):
    """Lightweight device summary for list views."""

    device_id: str
    device_name: str | None = None
    device_model_id: str | None = None
    image_url: str | None = None
    is_connected: bool = False
    is_enabled: bool = False
    status_updated_time: datetime | None = None
    support_lora_features: bool = False
    labels: list[LabelDto] = Field(default_factory=list)


class DeviceDetails(BaseModel):
    """Full device representation used for retrieval and edition."""

    device_id: str = Field(..., min_length=1, max_length=128)
    model_id: str | None = None
    device_name: str | None = None
    image_url: str | None = None
    is_connected: bool = False
    is_enabled: bool = False
    status_updated_time: datetime | None = None
    version: int | None = None
    tags: dict[str, str | None] = Field(default_factory=dict)
    labels: list[LabelDto] = Field(default_factory=list)

    @property
    def is_lorawan(self) -> bool:
        return False


def merge_labels(*label_groups: Iterable[Any]) -> list[LabelDto]:
    """Set union of labels (DTOs or ORM rows), ordered by name then colour."""
    merged = {LabelDto.model_validate(label) for group in label_groups for label in group}
    return sorted(merged, key=lambda label: (label.name, label.color))
