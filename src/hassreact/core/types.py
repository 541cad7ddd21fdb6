"""Core type definitions for hassreact."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, TypeAlias, TypeVar

Snapshot: TypeAlias = Mapping[str, "EntityState"]
"""Full point-in-time mapping of entity id to its state record."""

StateValue: TypeAlias = float | str
"""A state converted according to its declared StateType."""


@dataclass(frozen=True, slots=True)
class EntityState:
    """State record of a single entity within a snapshot.

    Attributes:
        entity_id: Identifier of the entity, e.g. ``sensor.temperature``.
        state: Raw state string as reported by the source.
        attributes: Raw attribute values keyed by attribute name.
        last_changed: When ``state`` last changed.
        last_updated: When the state or any attribute last changed.
        context_id: Id of the context that caused the last change, if known.
    """

    entity_id: str
    state: str
    attributes: Mapping[str, Any] = field(default_factory=dict)
    last_changed: datetime | None = None
    last_updated: datetime | None = None
    context_id: str | None = None


T = TypeVar("T")


class StateChangeHandler(Protocol[T]):
    """Callback invoked with the new value and the value it replaced."""

    def __call__(self, state: T, *, prev_state: T) -> None: ...


SnapshotCallback = Callable[[Snapshot], None]
"""Push callback receiving each full snapshot."""
