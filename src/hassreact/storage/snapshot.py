"""In-memory snapshot store.

Keeps exactly two snapshots: the latest one and the one it replaced.

Usage:
    store = SnapshotStore()
    store.ingest({"sensor.temperature": EntityState("sensor.temperature", "20")})
    store.get("sensor.temperature").state  # "20"
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any

from hassreact.core.errors import NotReadyError, UnknownAttributeError, UnknownEntityError
from hassreact.core.types import EntityState, Snapshot


class SnapshotStore:
    """Holds the current and previous full snapshots.

    On the first ingestion ``previous`` is seeded with the same snapshot as
    ``current``, so the first tick never looks like a transition. After that,
    every ingestion moves ``current`` into ``previous`` before replacing it.
    """

    def __init__(self) -> None:
        self._current: Snapshot | None = None
        self._previous: Snapshot | None = None
        self._ingestions = 0

    @property
    def ready(self) -> bool:
        return self._current is not None

    @property
    def current(self) -> Snapshot | None:
        return self._current

    @property
    def previous(self) -> Snapshot | None:
        return self._previous

    @property
    def ingestions(self) -> int:
        """Number of snapshots ingested so far."""
        return self._ingestions

    def ingest(self, snapshot: Snapshot) -> bool:
        """Make ``snapshot`` current.

        The snapshot is copied into a read-only view, so later mutation of
        the caller's mapping does not leak into the store.

        Returns:
            True if this was the first snapshot ingested.
        """
        frozen = MappingProxyType(dict(snapshot))
        first = self._current is None
        self._previous = frozen if first else self._current
        self._current = frozen
        self._ingestions += 1
        return first

    def _select(self, prev: bool) -> Snapshot:
        snapshot = self._previous if prev else self._current
        if snapshot is None:
            raise NotReadyError()
        return snapshot

    def get(self, entity_id: str, prev: bool = False) -> EntityState:
        """Get an entity's state record.

        Args:
            entity_id: Entity to look up.
            prev: Read from the previous snapshot instead of the current one.

        Raises:
            NotReadyError: If no snapshot has been ingested yet.
            UnknownEntityError: If the entity is absent from the selected snapshot.
        """
        snapshot = self._select(prev)
        try:
            return snapshot[entity_id]
        except KeyError:
            raise UnknownEntityError(entity_id) from None

    def get_attribute(self, entity_id: str, attribute: str, prev: bool = False) -> Any:
        """Get a raw attribute value.

        Raises:
            NotReadyError: If no snapshot has been ingested yet.
            UnknownEntityError: If the entity is absent from the selected snapshot.
            UnknownAttributeError: If the entity has no such attribute.
        """
        entity = self.get(entity_id, prev)
        try:
            return entity.attributes[attribute]
        except KeyError:
            raise UnknownAttributeError(entity_id, attribute) from None
