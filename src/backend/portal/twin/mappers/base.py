"""Contract shared by the twin mappers of every device kind."""

from typing import Iterable, Protocol, TypeVar

from portal.core.exceptions import TwinMappingError
from portal.twin.properties import get_tag
from portal.twin.snapshot import TwinSnapshot

DetailsT = TypeVar("DetailsT")
ListItemT = TypeVar("ListItemT", covariant=True)


class TwinMapper(Protocol[DetailsT, ListItemT]):
    """Converts between a twin snapshot and the domain model of one device kind.

    ``create_details`` and ``create_list_item`` are pure reads of the snapshot.
    ``apply_to_snapshot`` writes the editable fields back and leaves everything
    it does not own untouched.
    """

    def create_details(
        self,
        snapshot: TwinSnapshot,
        tag_names: Iterable[str] | None = None,
    ) -> DetailsT:
        ...

    def create_list_item(self, snapshot: TwinSnapshot) -> ListItemT:
        ...

    def apply_to_snapshot(self, snapshot: TwinSnapshot, item: DetailsT) -> None:
        ...


def require_device_id(snapshot: TwinSnapshot | None) -> str:
    """Return the snapshot's device id or raise ``TwinMappingError``."""
    if snapshot is None:
        raise TwinMappingError("Twin snapshot is required")
    if not snapshot.device_id:
        raise TwinMappingError("Twin snapshot has no device id")
    return snapshot.device_id


def require_model_id(snapshot: TwinSnapshot, model_id: str | None) -> str:
    if not model_id:
        raise TwinMappingError(f"Twin of device {snapshot.device_id} has no modelId tag")
    return model_id


def custom_tags(snapshot: TwinSnapshot, tag_names: Iterable[str] | None) -> dict[str, str | None]:
    """Copy the requested custom tags; absent tags map to None."""
    return {name: get_tag(snapshot, name) for name in (tag_names or ())}
