"""Twin mapper for LoRa Basics Station concentrators."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from portal.schemas.concentrator import Concentrator
from portal.schemas.device import DeviceListItem
from portal.twin.mappers.base import require_device_id
from portal.twin.mappers.device import DEVICE_NAME_TAG
from portal.twin.properties import (
    CLIENT_THUMBPRINT_PROPERTY,
    get_client_thumbprint,
    get_reported_property,
    get_tag,
    set_desired_property,
    set_tag,
)
from portal.twin.snapshot import TwinSnapshot

if TYPE_CHECKING:
    from portal.services.device_model_image_service import DeviceModelImageService

LORA_REGION_TAG = "loraRegion"
DEVICE_TYPE_TAG = "deviceType"


class ConcentratorTwinMapper:
    """Maps the twin of a concentrator to ``Concentrator`` and back."""

    def __init__(self, image_service: DeviceModelImageService):
        self.image_service = image_service

    def create_details(
        self,
        snapshot: TwinSnapshot,
        tag_names: Iterable[str] | None = None,
    ) -> Concentrator:
        device_id = require_device_id(snapshot)

        return Concentrator(
            device_id=device_id,
            device_name=get_tag(snapshot, DEVICE_NAME_TAG),
            lora_region=get_tag(snapshot, LORA_REGION_TAG),
            device_type=get_tag(snapshot, DEVICE_TYPE_TAG),
            client_thumbprint=get_client_thumbprint(snapshot),
            is_connected=snapshot.is_connected,
            is_enabled=snapshot.is_enabled,
            already_logged_in_once=get_reported_property(snapshot, "DevAddr") is not None,
        )

    def create_list_item(self, snapshot: TwinSnapshot) -> DeviceListItem:
        device_id = require_device_id(snapshot)

        return DeviceListItem(
            device_id=device_id,
            device_name=get_tag(snapshot, DEVICE_NAME_TAG),
            image_url=self.image_service.compute_image_uri(None),
            is_connected=snapshot.is_connected,
            is_enabled=snapshot.is_enabled,
            status_updated_time=snapshot.status_updated_time,
            support_lora_features=True,
        )

    def apply_to_snapshot(self, snapshot: TwinSnapshot, item: Concentrator) -> None:
        set_tag(snapshot, DEVICE_NAME_TAG, item.device_name)
        set_tag(snapshot, DEVICE_TYPE_TAG, item.device_type)
        set_tag(snapshot, LORA_REGION_TAG, item.lora_region)

        thumbprint = [item.client_thumbprint] if item.client_thumbprint else None
        set_desired_property(snapshot, CLIENT_THUMBPRINT_PROPERTY, thumbprint, clearable=True)
