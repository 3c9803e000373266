"""IoT Edge device schemas."""

from pydantic import BaseModel, Field

from portal.schemas.device import LabelDto


class IoTEdgeModule(BaseModel):
    """Module reported by an edge device runtime."""

    module_name: str
    image_uri: str | None = None
    status: str | None = None


class IoTEdgeDevice(BaseModel):
    """Edge gateway with its module and downstream device counts."""

    device_id: str = Field(..., min_length=1, max_length=128)
    device_name: str | None = None
    model_id: str | None = None
    image_url: str | None = None
    connection_state: str | None = None
    is_enabled: bool = False
    scope: str | None = None
    version: int | None = None
    nb_devices: int = 0
    nb_modules: int = 0
    runtime_response: str | None = None
    modules: list[IoTEdgeModule] = Field(default_factory=list)
    tags: dict[str, str | None] = Field(default_factory=dict)
    labels: list[LabelDto] = Field(default_factory=list)


class IoTEdgeListItem(BaseModel):
    """Edge device summary for list views."""

    device_id: str
    device_name: str | None = None
    image_url: str | None = None
    status: str | None = None
    nb_devices: int = 0
    labels: list[LabelDto] = Field(default_factory=list)
