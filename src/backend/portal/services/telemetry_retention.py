"""Bounded-history policy for per-device telemetry collections."""

from datetime import datetime, timezone
from operator import attrgetter
from typing import Any, Callable, MutableSequence


def as_utc(value: datetime) -> datetime:
    # Some stores (SQLite) hand back naive datetimes; treat them as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class TelemetryRetentionPolicy:
    """Keeps at most ``capacity`` records, evicting the oldest by timestamp.

    The policy works on any mutable sequence of records, so the same object
    drives an ORM relationship collection or a plain list.
    """

    def __init__(
        self,
        capacity: int = 100,
        timestamp: Callable[[Any], datetime] = attrgetter("enqueued_time"),
        identity: Callable[[Any], Any] = attrgetter("id"),
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._timestamp = timestamp
        self._identity = identity

    def contains(self, records: MutableSequence[Any], record: Any) -> bool:
        """Whether a record with the same identity is already held."""
        key = self._identity(record)
        return any(self._identity(existing) == key for existing in records)

    def apply(self, records: MutableSequence[Any]) -> list[Any]:
        """Remove and return every record beyond the newest ``capacity``."""
        if len(records) <= self.capacity:
            return []

        newest_first = sorted(
            records,
            key=lambda record: as_utc(self._timestamp(record)),
            reverse=True,
        )
        evicted = newest_first[self.capacity:]
        for record in evicted:
            records.remove(record)
        return evicted

    def add(self, records: MutableSequence[Any], record: Any) -> tuple[bool, list[Any]]:
        """Append ``record`` unless its identity is already present, then prune.

        Returns whether the record was appended and the records evicted by the
        prune. A record older than a full history is evicted straight away.
        """
        if self.contains(records, record):
            return False, []
        records.append(record)
        return True, self.apply(records)
