"""Core functionalities: stateless types, definitions and change detection.

Architecture Note:
    core/ contains pure building blocks with no I/O. For stateful services,
    see storage/, runtime/ and transport/.
"""

from hassreact.core.change import ChangeEdgeDetector, with_predicate
from hassreact.core.definitions import (
    EntityDefinition,
    EntitySpec,
    ServiceDefinition,
    ServiceField,
    ServiceSpec,
    StateType,
    convert_value,
    guess_state_type,
)
from hassreact.core.errors import (
    AuthenticationError,
    ConfigMissingError,
    HassReactError,
    MalformedServiceIdError,
    NotReadyError,
    ServiceCallError,
    StateConversionError,
    TransportError,
    UnknownAttributeError,
    UnknownEntityError,
)
from hassreact.core.remover import Remover
from hassreact.core.types import EntityState, Snapshot, SnapshotCallback, StateChangeHandler

__all__ = [
    # Types
    "EntityState",
    "Remover",
    "Snapshot",
    "SnapshotCallback",
    "StateChangeHandler",
    # Definitions
    "StateType",
    "EntitySpec",
    "EntityDefinition",
    "ServiceField",
    "ServiceSpec",
    "ServiceDefinition",
    "convert_value",
    "guess_state_type",
    # Change detection
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
]
