"""Snapshot storage backends."""

from hassreact.storage.protocol import SnapshotStorage
from hassreact.storage.snapshot import SnapshotStore

__all__ = [
    "SnapshotStorage",
    "SnapshotStore",
]
