"""Twin mapper for generic (non-LoRaWAN) devices."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from portal.schemas.device import DeviceDetails, DeviceListItem
from portal.twin.mappers.base import custom_tags, require_device_id, require_model_id
from portal.twin.properties import get_tag, parse_bool, set_tag
from portal.twin.snapshot import TwinSnapshot

if TYPE_CHECKING:
    from portal.services.device_model_image_service import DeviceModelImageService

MODEL_ID_TAG = "modelId"
DEVICE_NAME_TAG = "deviceName"
SUPPORT_LORA_FEATURES_TAG = "supportLoRaFeatures"


class DeviceTwinMapper:
    """Maps the twin of a generic device to ``DeviceDetails`` and back."""

    def __init__(self, image_service: DeviceModelImageService):
        self.image_service = image_service

    def create_details(
        self,
        snapshot: TwinSnapshot,
        tag_names: Iterable[str] | None = None,
    ) -> DeviceDetails:
        device_id = require_device_id(snapshot)
        model_id = require_model_id(snapshot, get_tag(snapshot, MODEL_ID_TAG))

        return DeviceDetails(
            device_id=device_id,
            model_id=model_id,
            device_name=get_tag(snapshot, DEVICE_NAME_TAG),
            image_url=self.image_service.compute_image_uri(model_id),
            is_connected=snapshot.is_connected,
            is_enabled=snapshot.is_enabled,
            status_updated_time=snapshot.status_updated_time,
            version=snapshot.version,
            tags=custom_tags(snapshot, tag_names),
        )

    def create_list_item(self, snapshot: TwinSnapshot) -> DeviceListItem:
        device_id = require_device_id(snapshot)
        model_id = get_tag(snapshot, MODEL_ID_TAG)

        return DeviceListItem(
            device_id=device_id,
            device_name=get_tag(snapshot, DEVICE_NAME_TAG),
            device_model_id=model_id,
            image_url=self.image_service.compute_image_uri(model_id),
            is_connected=snapshot.is_connected,
            is_enabled=snapshot.is_enabled,
            status_updated_time=snapshot.status_updated_time,
            support_lora_features=parse_bool(get_tag(snapshot, SUPPORT_LORA_FEATURES_TAG)) or False,
        )

    def apply_to_snapshot(self, snapshot: TwinSnapshot, item: DeviceDetails) -> None:
        set_tag(snapshot, DEVICE_NAME_TAG, item.device_name)
        set_tag(snapshot, MODEL_ID_TAG, item.model_id)

        for name, value in item.tags.items():
            set_tag(snapshot, name, value)
