"""Typed access to the tags, desired and reported properties of a twin snapshot.

Reads never raise: an absent snapshot, an absent key and a malformed value all
degrade to ``None`` (or to the supplied default for enums) so that a single bad
property cannot abort the mapping of an otherwise valid device.
"""

import json
from enum import Enum
from typing import Any, TypeVar

import structlog

from portal.schemas.edge_device import IoTEdgeModule
from portal.twin.snapshot import TwinSnapshot

logger = structlog.get_logger()

E = TypeVar("E", bound=Enum)

CLIENT_THUMBPRINT_PROPERTY = "clientThumbprint"


def to_camel_case(name: str) -> str:
    """Lower the first character: ``ModelId`` -> ``modelId``."""
    if not name:
        return name
    return name[0].lower() + name[1:]


def _stringify(value: Any) -> str | None:
    """Render a raw twin value the way it appears on the wire."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    # bool before numbers: isinstance(True, int) is True
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value)
    return str(value)


def _log_fallback(group: str, key: str, raw: str) -> None:
    logger.debug(
        "Twin property could not be parsed, using fallback",
        group=group,
        key=key,
        value=raw,
    )


# ==================== Reads ====================

def get_tag(snapshot: TwinSnapshot | None, key: str) -> str | None:
    """Return a tag value, or None if the tag or the snapshot is absent."""
    if snapshot is None or not key:
        return None
    return _stringify(snapshot.tags.get(to_camel_case(key)))


def get_desired_property(snapshot: TwinSnapshot | None, key: str) -> str | None:
    """Return a desired property as text, or None."""
    if snapshot is None or not key:
        return None
    return _stringify(snapshot.desired.get(key))


def get_reported_property(snapshot: TwinSnapshot | None, key: str) -> str | None:
    """Return a reported property as text, or None."""
    if snapshot is None or not key:
        return None
    return _stringify(snapshot.reported.get(key))


def parse_bool(raw: str | None) -> bool | None:
    if raw is None:
        return None
    normalized = raw.strip().lower()
    if normalized == "true":
        return True
    if normalized == "false":
        return False
    return None


def parse_int(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


def parse_enum(raw: str | None, enum_type: type[E]) -> E | None:
    """Match an enum member by name or value, case-insensitively."""
    if raw is None:
        return None
    normalized = raw.strip().lower()
    for member in enum_type:
        if normalized in (member.name.lower(), str(member.value).lower()):
            return member
    return None


def get_desired_property_as_bool(snapshot: TwinSnapshot | None, key: str) -> bool | None:
    raw = get_desired_property(snapshot, key)
    parsed = parse_bool(raw)
    if raw is not None and parsed is None:
        _log_fallback("desired", key, raw)
    return parsed


def get_desired_property_as_int(snapshot: TwinSnapshot | None, key: str) -> int | None:
    raw = get_desired_property(snapshot, key)
    parsed = parse_int(raw)
    if raw is not None and parsed is None:
        _log_fallback("desired", key, raw)
    return parsed


def get_desired_property_as_enum(
    snapshot: TwinSnapshot | None,
    key: str,
    enum_type: type[E],
    default: E,
) -> E:
    """Parse a desired property into ``enum_type``.

    Absent and unparsable values both yield ``default``; the failure is not
    surfaced to the caller.
    """
    raw = get_desired_property(snapshot, key)
    parsed = parse_enum(raw, enum_type)
    if parsed is None:
        if raw is not None:
            _log_fallback("desired", key, raw)
        return default
    return parsed


# ==================== Writes ====================

def set_tag(snapshot: TwinSnapshot, key: str, value: Any) -> None:
    """Write a tag. A None value leaves the existing tag untouched."""
    if snapshot is None:
        raise ValueError("snapshot is required")
    if value is None:
        return
    snapshot.tags[to_camel_case(key)] = _stringify(value)


def set_desired_property(
    snapshot: TwinSnapshot,
    key: str,
    value: Any,
    clearable: bool = False,
) -> None:
    """Write a desired property, keeping its native wire type.

    A None value leaves the property untouched, unless the property is
    ``clearable``: then None or an empty string removes the entry.
    """
    if snapshot is None:
        raise ValueError("snapshot is required")
    if value is None or (clearable and value == ""):
        if clearable:
            snapshot.desired.pop(key, None)
        return
    if isinstance(value, Enum):
        value = value.value
    snapshot.desired[key] = value


# ==================== Specialised extractors ====================

def get_client_thumbprint(snapshot: TwinSnapshot | None) -> str | None:
    """First entry of the desired ``clientThumbprint`` array.

    Returns None when the property is absent, empty or not an array.
    """
    serialized = get_desired_property(snapshot, CLIENT_THUMBPRINT_PROPERTY)
    if serialized is None:
        return None

    try:
        thumbprints = json.loads(serialized)
    except json.JSONDecodeError:
        return None

    if not isinstance(thumbprints, list) or not thumbprints:
        return None
    return _stringify(thumbprints[0])


def get_connected_device_count(snapshot: TwinSnapshot | None) -> int:
    """Number of downstream devices in the reported ``clients`` property."""
    if snapshot is None:
        return 0
    clients = snapshot.reported.get("clients")
    return len(clients) if isinstance(clients, (dict, list)) else 0


def get_module_count(snapshot: TwinSnapshot | None, device_id: str) -> int:
    """Number of desired ``modules`` when the snapshot belongs to ``device_id``."""
    if snapshot is None or snapshot.device_id != device_id:
        return 0
    modules = snapshot.desired.get("modules")
    return len(modules) if isinstance(modules, (dict, list)) else 0


def get_runtime_response(snapshot: TwinSnapshot | None) -> str:
    """Runtime status of the edgeAgent system module, or an empty string."""
    if snapshot is None:
        return ""
    system_modules = snapshot.reported.get("systemModules")
    if not isinstance(system_modules, dict):
        return ""
    edge_agent = system_modules.get("edgeAgent")
    if not isinstance(edge_agent, dict):
        return ""
    return _stringify(edge_agent.get("runtimeStatus")) or ""


def get_module_list(snapshot: TwinSnapshot | None) -> list[IoTEdgeModule]:
    """Modules listed in the reported ``modules`` property."""
    if snapshot is None:
        return []
    modules = snapshot.reported.get("modules")
    if not isinstance(modules, dict):
        return []

    result = []
    for name, module in modules.items():
        module = module if isinstance(module, dict) else {}
        settings = module.get("settings")
        image = settings.get("image") if isinstance(settings, dict) else None
        result.append(
            IoTEdgeModule(
                module_name=name,
                image_uri=_stringify(image),
                status=_stringify(module.get("status")),
            )
        )
    return result
