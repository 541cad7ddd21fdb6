"""hassreact: reactive entity-state runtime for Home Assistant.

Usage:
    from hassreact import EntityDefinition, EntityRuntime, EntitySpec, StateType, multi_predicate

    entities = EntityDefinition({
        "sensor.temperature": EntitySpec(StateType.NUMBER),
        "binary_sensor.window": EntitySpec(StateType.STRING),
    })
    runtime = EntityRuntime(entities)

    def on_temperature(state, *, prev_state):
        print(f"{prev_state} -> {state}")

    runtime.on_state_change("sensor.temperature", on_temperature)

    multi_predicate(runtime).with_state(
        "sensor.temperature", lambda t: t > 25
    ).with_state(
        "binary_sensor.window", lambda w: w == "off"
    ).do(lambda t, w: print("warm and closed"))

    async with runtime:
        await runtime.call_service("light.turn_on", {"brightness": 80}, {"entity_id": "light.kitchen"})
        await runtime.wait_closed()
"""

import logging

__version__ = "0.1.0"

# Core primitives
from hassreact.core import (
    AuthenticationError,
    ChangeEdgeDetector,
    ConfigMissingError,
    EntityDefinition,
    EntitySpec,
    EntityState,
    HassReactError,
    MalformedServiceIdError,
    NotReadyError,
    Remover,
    ServiceCallError,
    ServiceDefinition,
    ServiceField,
    ServiceSpec,
    Snapshot,
    StateConversionError,
    StateType,
    TransportError,
    UnknownAttributeError,
    UnknownEntityError,
    guess_state_type,
    with_predicate,
)

# Configuration
from hassreact.config import ConnectionSettings, RetryPolicy

# Runtime
from hassreact.runtime import (
    EntityRuntime,
    MultiPredicate,
    RuntimeState,
    create_runtime,
    multi_predicate,
)

# Storage
from hassreact.storage import SnapshotStorage, SnapshotStore

# Transport
from hassreact.transport import Connection, HomeAssistantTransport, Transport

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Version
    "__version__",
    # Core
    "EntityState",
    "Snapshot",
    "Remover",
    "StateType",
    "EntitySpec",
    "EntityDefinition",
    "ServiceField",
    "ServiceSpec",
    "ServiceDefinition",
    "guess_state_type",
    "ChangeEdgeDetector",
    "with_predicate",
    # Errors
    "HassReactError",
    "ConfigMissingError",
    "NotReadyError",
    "UnknownEntityError",
    "UnknownAttributeError",
    "MalformedServiceIdError",
    "StateConversionError",
    "TransportError",
    "AuthenticationError",
    "ServiceCallError",
    # Config
    "ConnectionSettings",
    "RetryPolicy",
    # Runtime
    "EntityRuntime",
    "RuntimeState",
    "create_runtime",
    "MultiPredicate",
    "multi_predicate",
    # Storage
    "SnapshotStorage",
    "SnapshotStore",
    # Transport
    "Connection",
    "Transport",
    "HomeAssistantTransport",
]
