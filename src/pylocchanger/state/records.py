"""History log and favorites set.

Both collections deduplicate on record identity (exact ``name`` match).
Neither is thread-safe on its own; :class:`~pylocchanger.state.store.LocationStore`
guards them with its lock.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from pylocchanger.config import DEFAULT_HISTORY_CAPACITY, validate_history_capacity
from pylocchanger.models.location import LocationRecord


class HistoryLog:
    """Bounded, name-deduplicated log of records, stored oldest first."""

    def __init__(
        self,
        records: Iterable[LocationRecord] = (),
        *,
        capacity: int = DEFAULT_HISTORY_CAPACITY,
    ) -> None:
        self._capacity = validate_history_capacity(capacity)
        self._entries: list[LocationRecord] = []
        # Replaying through insert() repairs duplicates and oversize stored logs.
        for record in records:
            self.insert(record)

    @property
    def capacity(self) -> int:
        return self._capacity

    def insert(self, record: LocationRecord) -> LocationRecord | None:
        """Append *record* as the newest entry.

        Any entry with the same name is removed first. Returns the evicted
        oldest entry when the log overflowed, else ``None``.
        """
        self._entries = [entry for entry in self._entries if not entry.same_location(record)]
        self._entries.append(record)
        if len(self._entries) > self._capacity:
            return self._entries.pop(0)
        return None

    def newest_first(self) -> list[LocationRecord]:
        return self._entries[::-1]

    def oldest_first(self) -> list[LocationRecord]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LocationRecord]:
        return iter(list(self._entries))

    def __contains__(self, record: object) -> bool:
        return isinstance(record, LocationRecord) and any(entry.same_location(record) for entry in self._entries)


class FavoritesSet:
    """Name-unique favorites, kept in insertion order."""

    def __init__(self, records: Iterable[LocationRecord] = ()) -> None:
        self._entries: list[LocationRecord] = []
        for record in records:
            self.add(record)

    def add(self, record: LocationRecord) -> bool:
        """Append *record* unless its name is already present. Returns whether it was added."""
        if record in self:
            return False
        self._entries.append(record)
        return True

    def remove(self, record: LocationRecord) -> int:
        """Drop every entry sharing *record*'s name. Returns how many were removed."""
        kept = [entry for entry in self._entries if not entry.same_location(record)]
        removed = len(self._entries) - len(kept)
        self._entries = kept
        return removed

    def snapshot(self) -> list[LocationRecord]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LocationRecord]:
        return iter(list(self._entries))

    def __contains__(self, record: object) -> bool:
        return isinstance(record, LocationRecord) and any(entry.same_location(record) for entry in self._entries)
