"""Twin mapper for IoT Edge gateways."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable

from portal.schemas.device import merge_labels
from portal.schemas.edge_device import IoTEdgeDevice, IoTEdgeListItem
from portal.twin.mappers.base import custom_tags, require_device_id
from portal.twin.mappers.device import DEVICE_NAME_TAG, MODEL_ID_TAG
from portal.twin.properties import (
    get_connected_device_count,
    get_module_count,
    get_module_list,
    get_runtime_response,
    get_tag,
    set_tag,
)
from portal.twin.snapshot import TwinSnapshot

if TYPE_CHECKING:
    from portal.services.device_model_image_service import DeviceModelImageService


class EdgeDeviceTwinMapper:
    """Maps an edge device twin, and the twin of its modules, to ``IoTEdgeDevice``."""

    def __init__(self, image_service: DeviceModelImageService):
        self.image_service = image_service

    def create_details(
        self,
        snapshot: TwinSnapshot,
        tag_names: Iterable[str] | None = None,
        modules_snapshot: TwinSnapshot | None = None,
        device_labels: Iterable[Any] = (),
        model_labels: Iterable[Any] = (),
    ) -> IoTEdgeDevice:
        """Build the edge device view.

        Downstream device count, module count, runtime status and module list
        all come from ``modules_snapshot``; without it they stay empty.
        """
        device_id = require_device_id(snapshot)
        model_id = get_tag(snapshot, MODEL_ID_TAG)

        return IoTEdgeDevice(
            device_id=device_id,
            device_name=get_tag(snapshot, DEVICE_NAME_TAG),
            model_id=model_id,
            image_url=self.image_service.compute_image_uri(model_id),
            connection_state=snapshot.connection_state.value,
            is_enabled=snapshot.is_enabled,
            scope=snapshot.device_scope,
            version=snapshot.version,
            nb_devices=get_connected_device_count(modules_snapshot),
            nb_modules=get_module_count(modules_snapshot, device_id),
            runtime_response=get_runtime_response(modules_snapshot),
            modules=get_module_list(modules_snapshot),
            tags=custom_tags(snapshot, tag_names),
            labels=merge_labels(device_labels, model_labels),
        )

    def create_list_item(self, snapshot: TwinSnapshot) -> IoTEdgeListItem:
        device_id = require_device_id(snapshot)

        return IoTEdgeListItem(
            device_id=device_id,
            device_name=get_tag(snapshot, DEVICE_NAME_TAG),
            image_url=self.image_service.compute_image_uri(get_tag(snapshot, MODEL_ID_TAG)),
            status=snapshot.connection_state.value,
            nb_devices=get_connected_device_count(snapshot),
        )

    def apply_to_snapshot(self, snapshot: TwinSnapshot, item: IoTEdgeDevice) -> None:
        set_tag(snapshot, DEVICE_NAME_TAG, item.device_name)
        set_tag(snapshot, MODEL_ID_TAG, item.model_id)

        for name, value in item.tags.items():
            set_tag(snapshot, name, value)
