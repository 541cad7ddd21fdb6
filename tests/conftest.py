"""Shared test fixtures."""

import asyncio
import sys

import pytest

# Ensure src is in path
sys.path.insert(0, "src")

from collections.abc import Callable, Mapping
from typing import Any

from hassreact import (
    EntityDefinition,
    EntityRuntime,
    EntitySpec,
    EntityState,
    Remover,
    StateType,
)

StateSpec = str | tuple[str, Mapping[str, Any]]


def make_snapshot(states: Mapping[str, StateSpec]) -> dict[str, EntityState]:
    """Build a snapshot from ``{entity_id: state}`` or ``{entity_id: (state, attributes)}``."""
    snapshot = {}
    for entity_id, spec in states.items():
        if isinstance(spec, tuple):
            state, attributes = spec
        else:
            state, attributes = spec, {}
        snapshot[entity_id] = EntityState(entity_id, state, dict(attributes))
    return snapshot


class FakeConnection:
    def __init__(self) -> None:
        self.closed = False
        self._done = asyncio.Event()

    async def close(self) -> None:
        self.closed = True
        self._done.set()

    async def wait_closed(self) -> None:
        await self._done.wait()

    def drop(self) -> None:
        """Simulate the remote end closing the connection."""
        self._done.set()


class FakeTransport:
    """In-memory transport. ``push`` delivers a snapshot to the subscriber."""

    def __init__(self) -> None:
        self.connection = FakeConnection()
        self.on_snapshot: Callable[[Any], None] | None = None
        self.subscribed = False
        self.calls: list[tuple[str, str, Any, Any]] = []
        self.result: Any = {"context": {"id": "ctx-1"}}

    async def connect(self) -> FakeConnection:
        return self.connection

    async def subscribe_entities(self, conn: FakeConnection, on_snapshot: Callable[[Any], None]) -> Remover:
        self.on_snapshot = on_snapshot
        self.subscribed = True

        def unsubscribe() -> None:
            self.subscribed = False

        return Remover(unsubscribe)

    async def call_service(
        self,
        conn: FakeConnection,
        domain: str,
        service: str,
        service_data: Any = None,
        target: Any = None,
    ) -> Any:
        self.calls.append((domain, service, service_data, target))
        return self.result

    def push(self, states: Mapping[str, StateSpec]) -> None:
        assert self.on_snapshot is not None, "not subscribed"
        self.on_snapshot(make_snapshot(states))


@pytest.fixture
def snapshot() -> Callable[[Mapping[str, StateSpec]], dict[str, EntityState]]:
    """Snapshot builder."""
    return make_snapshot


@pytest.fixture
def entities() -> EntityDefinition:
    return EntityDefinition(
        {
            "sensor.temp": EntitySpec(StateType.NUMBER),
            "sensor.a": EntitySpec(StateType.NUMBER),
            "sensor.b": EntitySpec(StateType.NUMBER),
            "light.kitchen": EntitySpec(
                StateType.STRING, attributes={"brightness": StateType.NUMBER}
            ),
        }
    )


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def runtime(entities: EntityDefinition, fake_transport: FakeTransport) -> EntityRuntime:
    """Fresh runtime wired to a fake transport. Drive it with runtime.ingest()."""
    return EntityRuntime(entities, transport=fake_transport)
