"""EntityRuntime: reacts to entity state changes and calls remote services.

Usage:
    runtime = EntityRuntime(entities, services, settings=ConnectionSettings())

    def on_temperature(state, *, prev_state):
        if prev_state < 25 <= state:
            asyncio.ensure_future(
                runtime.call_service("fan.turn_on", target={"entity_id": "fan.office"})
            )

    runtime.on_state_change("sensor.temperature", on_temperature)

    async with runtime:
        await runtime.wait_closed()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from enum import Enum, auto
from typing import Any

from hassreact.config.settings import ConnectionSettings
from hassreact.core.change import ChangeEdgeDetector
from hassreact.core.definitions import EntityDefinition, EntitySpec, ServiceDefinition
from hassreact.core.errors import MalformedServiceIdError, TransportError
from hassreact.core.remover import Remover
from hassreact.core.types import EntityState, Snapshot, StateValue
from hassreact.runtime.gate import ReadyGate
from hassreact.storage.protocol import SnapshotStorage
from hassreact.storage.snapshot import SnapshotStore
from hassreact.transport.protocol import Connection, Transport
from hassreact.transport.websocket import HomeAssistantTransport

logger = logging.getLogger(__name__)


class RuntimeState(Enum):
    """Lifecycle of an EntityRuntime. CLOSED is terminal."""

    CONNECTING = auto()
    """Waiting for the first snapshot. Queries raise NotReadyError."""

    READY = auto()
    """At least one snapshot has been ingested."""

    CLOSED = auto()


class _Listener:
    """One registered handler on an entity's state or one of its attributes."""

    __slots__ = ("entity_id", "attribute", "handler", "detector", "active")

    def __init__(
        self,
        entity_id: str,
        attribute: str | None,
        handler: Callable[..., None],
    ) -> None:
        self.entity_id = entity_id
        self.attribute = attribute
        self.handler = handler
        self.detector: ChangeEdgeDetector[Any] | None = None
        self.active = True

    def notify(self, value: Any, previous: Any) -> None:
        self.handler(value, prev_state=previous)

    def describe(self) -> str:
        if self.attribute is None:
            return self.entity_id
        return f"{self.entity_id}[{self.attribute}]"


class EntityRuntime:
    """Central runtime owning the connection, the snapshots and all listeners.

    Snapshots pushed by the transport are stored, then every listener of
    every entity in the snapshot is fed its current value. A listener's
    handler runs only when that value differs from the one it saw last.
    Dispatch is synchronous and ordered by registration within an entity.

    Args:
        entities: Entity definition used to convert raw states.
        services: Service definition (informational, never used for validation).
        transport: Remote transport. Defaults to HomeAssistantTransport built
            from ``settings``.
        settings: Connection settings for the default transport.
        store: Snapshot store. Defaults to an in-memory SnapshotStore.
    """

    def __init__(
        self,
        entities: EntityDefinition | Mapping[str, EntitySpec] | None = None,
        services: ServiceDefinition | None = None,
        *,
        transport: Transport | None = None,
        settings: ConnectionSettings | None = None,
        store: SnapshotStorage | None = None,
    ) -> None:
        if isinstance(entities, EntityDefinition):
            self._entities = entities
        else:
            self._entities = EntityDefinition(entities)
        self._services = services or ServiceDefinition()
        self._transport = transport
        self._settings = settings
        self._store: SnapshotStorage = store or SnapshotStore()
        self._listeners: dict[str, list[_Listener]] = {}
        self._gate = ReadyGate()
        self._state = RuntimeState.CONNECTING
        self._connection_task: asyncio.Task[Connection] | None = None
        self._unsubscribe: Remover | None = None
        self._watcher: asyncio.Future[None] | None = None
        self._closed = asyncio.Event()

    @property
    def state(self) -> RuntimeState:
        return self._state

    @property
    def entities(self) -> EntityDefinition:
        return self._entities

    @property
    def services(self) -> ServiceDefinition:
        return self._services

    @property
    def store(self) -> SnapshotStorage:
        return self._store

    @property
    def transport(self) -> Transport:
        """The transport, created from the settings on first use."""
        if self._transport is None:
            self._transport = HomeAssistantTransport(self._settings)
        return self._transport

    # Lifecycle

    def start(self) -> asyncio.Task[Connection]:
        """Start connecting and subscribing in the background.

        Must be called with a running event loop. Calling it again returns
        the same task.
        """
        if self._connection_task is None:
            task = asyncio.get_running_loop().create_task(self._open(), name="hassreact-connect")
            task.add_done_callback(self._connection_done)
            self._connection_task = task
        return self._connection_task

    async def _open(self) -> Connection:
        transport = self.transport
        conn = await transport.connect()
        self._unsubscribe = await transport.subscribe_entities(conn, self.ingest)
        logger.debug("Subscribed to entity snapshots")
        self._watcher = asyncio.ensure_future(self._watch(conn))
        return conn

    async def _watch(self, conn: Connection) -> None:
        await conn.wait_closed()
        if self._state is not RuntimeState.CLOSED:
            logger.warning("Connection lost, runtime closed")
            self._mark_closed()

    def _connection_done(self, task: asyncio.Task[Connection]) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error("Connection failed: %s", task.exception())

    async def _connection(self) -> Connection:
        return await self.start()

    def _mark_closed(self) -> None:
        self._state = RuntimeState.CLOSED
        self._closed.set()

    async def wait_until_ready(self) -> None:
        """Start the runtime if needed and wait for the first snapshot.

        Raises:
            ConfigMissingError, TransportError: If connecting fails, or if
                the runtime closes before the first snapshot arrives.
        """
        if self._gate.is_open:
            return
        await self._connection()
        ready = asyncio.ensure_future(self._gate.wait())
        closed = asyncio.ensure_future(self._closed.wait())
        try:
            await asyncio.wait((ready, closed), return_when=asyncio.FIRST_COMPLETED)
        finally:
            ready.cancel()
            closed.cancel()
        if not self._gate.is_open:
            raise TransportError("Runtime closed before the first snapshot")

    async def wait_closed(self) -> None:
        """Suspend until the runtime is closed, by close() or by losing the connection."""
        await self._closed.wait()

    async def close(self) -> None:
        """Unsubscribe and close the connection. Terminal; call once.

        A connection attempt that failed is logged, not raised again.
        """
        try:
            if self._connection_task is not None:
                try:
                    conn = await self._connection_task
                except Exception as e:
                    logger.warning("Closing runtime whose connection failed: %s", e)
                else:
                    if self._watcher is not None:
                        self._watcher.cancel()
                    if self._unsubscribe is not None:
                        self._unsubscribe()
                    await conn.close()
        finally:
            self._mark_closed()
            logger.info("Runtime closed")

    async def __aenter__(self) -> EntityRuntime:
        await self.wait_until_ready()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # Ingestion and dispatch

    def ingest(self, snapshot: Snapshot) -> None:
        """Ingest a full snapshot and dispatch changes to listeners.

        This is the push callback handed to the transport.
        """
        if self._state is RuntimeState.CLOSED:
            logger.debug("Ignoring snapshot received after close")
            return

        first = self._store.ingest(snapshot)
        if first:
            self._state = RuntimeState.READY
            logger.info("Received first snapshot with %d entities", len(snapshot))
            self._gate.open()

        current = self._store.current
        assert current is not None
        self._dispatch(current)

    def _dispatch(self, snapshot: Snapshot) -> None:
        for entity_id, entity in snapshot.items():
            listeners = self._listeners.get(entity_id)
            if not listeners:
                continue
            # Removals and registrations made by handlers apply from the next snapshot
            for listener in tuple(listeners):
                self._feed(listener, entity)

    def _feed(self, listener: _Listener, entity: EntityState) -> None:
        try:
            value = self._value_of(listener, entity)
            if listener.detector is None:
                listener.detector = ChangeEdgeDetector(value, listener.notify)
            else:
                listener.detector.feed(value)
        except Exception:
            logger.exception("A state handler for '%s' raised", listener.describe())

    def _value_of(self, listener: _Listener, entity: EntityState) -> Any:
        if listener.attribute is None:
            return self._entities.convert_state(listener.entity_id, entity.state)
        return entity.attributes.get(listener.attribute)

    # Registration

    def on_state_change(self, entity_id: str, handler: Callable[..., None]) -> Remover:
        """Call ``handler(state, prev_state=...)`` whenever the entity's state changes.

        Registrations made before the first snapshot are queued and take
        effect once it arrives. The change baseline is the entity's state at
        the moment the registration takes effect.

        Args:
            entity_id: Entity to watch.
            handler: Called with the converted new state and, as keyword
                ``prev_state``, the converted state it replaced.

        Returns:
            Remover detaching this handler.
        """
        return self._register(_Listener(entity_id, None, handler))

    def on_entity_attribute_change(
        self, entity_id: str, attribute: str, handler: Callable[..., None]
    ) -> Remover:
        """Call ``handler(value, prev_state=...)`` whenever one attribute changes.

        Attribute values are compared raw, without conversion. An attribute
        that is absent from an entity reads as None.
        """
        return self._register(_Listener(entity_id, attribute, handler))

    def _register(self, listener: _Listener) -> Remover:
        self._gate.defer(lambda: self._attach(listener))
        return Remover(lambda: self._detach(listener))

    def _attach(self, listener: _Listener) -> None:
        if not listener.active:
            return
        current = self._store.current or {}
        entity = current.get(listener.entity_id)
        if entity is not None:
            try:
                listener.detector = ChangeEdgeDetector(
                    self._value_of(listener, entity), listener.notify
                )
            except Exception:
                # Left unseeded; the first value that converts becomes the baseline
                logger.exception("Could not read baseline for '%s'", listener.describe())
        self._listeners.setdefault(listener.entity_id, []).append(listener)

    def _detach(self, listener: _Listener) -> None:
        listener.active = False
        listeners = self._listeners.get(listener.entity_id)
        if listeners is None or listener not in listeners:
            return
        listeners.remove(listener)
        if not listeners:
            del self._listeners[listener.entity_id]

    def listener_count(self, entity_id: str | None = None) -> int:
        """Number of attached listeners, for one entity or overall."""
        if entity_id is not None:
            return len(self._listeners.get(entity_id, ()))
        return sum(len(listeners) for listeners in self._listeners.values())

    # Queries

    def get_entity(self, entity_id: str, prev: bool = False) -> EntityState:
        """Raw state record of an entity in the current (or previous) snapshot."""
        return self._store.get(entity_id, prev)

    def get_entity_state(self, entity_id: str, prev: bool = False) -> StateValue:
        """Converted state of an entity.

        Args:
            entity_id: Entity to read.
            prev: Read the previous snapshot. Most useful from inside a
                handler, where it reflects the tick before the current one.

        Raises:
            NotReadyError: Before the first snapshot.
            UnknownEntityError: If the entity is absent from the snapshot.
            StateConversionError: If a NUMBER entity's state does not parse.
        """
        entity = self._store.get(entity_id, prev)
        return self._entities.convert_state(entity_id, entity.state)

    def get_entity_attribute_state(self, entity_id: str, attribute: str, prev: bool = False) -> Any:
        """Raw value of an entity attribute.

        Raises:
            NotReadyError: Before the first snapshot.
            UnknownEntityError: If the entity is absent from the snapshot.
            UnknownAttributeError: If the entity has no such attribute.
        """
        return self._store.get_attribute(entity_id, attribute, prev)

    # Services

    async def call_service(
        self,
        service_id: str,
        service_data: Mapping[str, Any] | None = None,
        target: Mapping[str, Any] | None = None,
    ) -> Any:
        """Call a remote service.

        Args:
            service_id: ``domain.service``, e.g. ``light.turn_on``.
            service_data: Payload fields for the service.
            target: Service target, e.g. ``{"entity_id": "light.kitchen"}``.

        Returns:
            Whatever the transport returns for the call.

        Raises:
            MalformedServiceIdError: If ``service_id`` is not ``domain.service``.
        """
        parts = service_id.split(".")
        if len(parts) != 2:
            raise MalformedServiceIdError(service_id)
        domain, service = parts

        conn = await self._connection()
        logger.debug("Calling service %s.%s", domain, service)
        return await self.transport.call_service(conn, domain, service, service_data, target)


def create_runtime(
    entities: EntityDefinition | Mapping[str, EntitySpec] | None = None,
    services: ServiceDefinition | None = None,
    **kwargs: Any,
) -> EntityRuntime:
    """Create an EntityRuntime. Keyword arguments are passed through."""
    return EntityRuntime(entities, services, **kwargs)
