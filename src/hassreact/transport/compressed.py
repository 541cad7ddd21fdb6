"""Decoding of compressed ``subscribe_entities`` updates.

Home Assistant pushes entity changes as compact diffs::

    {"a": {entity_id: {"s": state, "a": attrs, "c": context, "lc": ts, "lu": ts}},
     "r": [entity_id, ...],
     "c": {entity_id: {"+": {...}, "-": {"a": [attr, ...]}}}}

``a`` adds (or replaces) entities, ``r`` removes them and ``c`` patches
existing ones. apply_entity_updates folds one such message into the previous
snapshot and returns a new one; the input snapshot is never mutated.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from hassreact.core.types import EntityState, Snapshot

logger = logging.getLogger(__name__)


def _timestamp(value: float | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=UTC)


def _context_id(value: Any, default: str | None = None) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        return value.get("id", default)
    return default


def decode_entity(entity_id: str, data: Mapping[str, Any]) -> EntityState:
    """Build an EntityState from a compressed ``a`` entry."""
    last_changed = _timestamp(data.get("lc"))
    last_updated = _timestamp(data.get("lu")) or last_changed
    return EntityState(
        entity_id=entity_id,
        state=data["s"],
        attributes=dict(data.get("a") or {}),
        last_changed=last_changed,
        last_updated=last_updated,
        context_id=_context_id(data.get("c")),
    )


def _apply_diff(entity: EntityState, diff: Mapping[str, Any]) -> EntityState:
    to_add: Mapping[str, Any] = diff.get("+") or {}
    to_remove: Mapping[str, Any] = diff.get("-") or {}
    changes: dict[str, Any] = {}

    if "s" in to_add:
        changes["state"] = to_add["s"]
    if to_add.get("c"):
        changes["context_id"] = _context_id(to_add["c"], entity.context_id)
    if to_add.get("lc"):
        changes["last_changed"] = changes["last_updated"] = _timestamp(to_add["lc"])
    elif to_add.get("lu"):
        changes["last_updated"] = _timestamp(to_add["lu"])

    if to_add.get("a") or to_remove.get("a"):
        attributes = dict(entity.attributes)
        attributes.update(to_add.get("a") or {})
        for name in to_remove.get("a") or ():
            attributes.pop(name, None)
        changes["attributes"] = attributes

    return replace(entity, **changes) if changes else entity


def apply_entity_updates(snapshot: Snapshot, updates: Mapping[str, Any]) -> dict[str, EntityState]:
    """Fold one compressed update message into ``snapshot``.

    Args:
        snapshot: Snapshot before the update.
        updates: Event payload with optional ``a``, ``r`` and ``c`` keys.

    Returns:
        A new snapshot dict. Entities untouched by the update keep their
        EntityState instances.
    """
    state = dict(snapshot)

    for entity_id, data in (updates.get("a") or {}).items():
        state[entity_id] = decode_entity(entity_id, data)

    for entity_id in updates.get("r") or ():
        state.pop(entity_id, None)

    for entity_id, diff in (updates.get("c") or {}).items():
        entity = state.get(entity_id)
        if entity is None:
            logger.warning("Received state update for unknown entity %s", entity_id)
            continue
        state[entity_id] = _apply_diff(entity, diff)

    return state
