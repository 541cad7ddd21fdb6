"""Storage protocol for swappable snapshot stores.

The runtime keeps its current and previous snapshots behind this interface,
so a store that mirrors snapshots elsewhere can be injected.

Usage:
    store = SnapshotStore()
    runtime = EntityRuntime(entities, store=store)
"""

from __future__ import annotations

from typing import Any, Protocol

from hassreact.core.types import EntityState, Snapshot


class SnapshotStorage(Protocol):
    """Abstract snapshot store. Implementations hold current and previous snapshots."""

    @property
    def ready(self) -> bool:
        """True once the first snapshot has been ingested."""
        ...

    @property
    def current(self) -> Snapshot | None:
        """Latest ingested snapshot, or None before the first one."""
        ...

    @property
    def previous(self) -> Snapshot | None:
        """Snapshot that was current before the latest ingestion."""
        ...

    def ingest(self, snapshot: Snapshot) -> bool:
        """Replace the current snapshot. Returns True for the first ingestion."""
        ...

    def get(self, entity_id: str, prev: bool = False) -> EntityState:
        """Look up an entity in the current (or previous) snapshot."""
        ...

    def get_attribute(self, entity_id: str, attribute: str, prev: bool = False) -> Any:
        """Look up a raw attribute value in the current (or previous) snapshot."""
        ...
