"""Static entity and service definitions.

An EntityDefinition declares, per entity, whether its state is a number or a
string; the runtime uses it to convert raw state strings into typed values.
A ServiceDefinition lists the services available on the remote end together
with the payload fields they accept. It is informational only and never
consulted to validate calls.

Usage:
    entities = EntityDefinition({
        "sensor.temperature": EntitySpec(StateType.NUMBER),
        "light.kitchen": EntitySpec(
            StateType.STRING, attributes={"brightness": StateType.NUMBER}
        ),
    })
    entities.convert_state("sensor.temperature", "21.5")  # 21.5

    # Or infer both from a live snapshot / service listing
    entities = EntityDefinition.from_snapshot(snapshot)
    services = ServiceDefinition.from_services(raw_services)
"""

from __future__ import annotations

import math
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any

from hassreact.core.errors import StateConversionError
from hassreact.core.types import Snapshot, StateValue


class StateType(Enum):
    """Declared type of an entity state or attribute."""

    NUMBER = auto()
    """Converted with float()."""

    STRING = auto()
    """Kept as the raw string."""


def guess_state_type(raw: Any) -> StateType:
    """Guess the StateType of a raw value.

    A value is a NUMBER when it parses as a finite float. Booleans are
    strings, even though they would parse.
    """
    if isinstance(raw, bool):
        return StateType.STRING
    try:
        number = float(raw)
    except (TypeError, ValueError):
        return StateType.STRING
    return StateType.NUMBER if math.isfinite(number) else StateType.STRING


def convert_value(state_type: StateType, raw: str, entity_id: str = "") -> StateValue:
    """Convert a raw state string according to ``state_type``.

    Raises:
        StateConversionError: If ``state_type`` is NUMBER and ``raw`` does not parse.
    """
    if state_type is StateType.NUMBER:
        try:
            return float(raw)
        except (TypeError, ValueError) as e:
            raise StateConversionError(entity_id, raw) from e
    return raw


@dataclass(frozen=True, slots=True)
class EntitySpec:
    """Declared types of one entity.

    Attributes:
        state_type: Type the raw state is converted to.
        attributes: Declared type per attribute name.
    """

    state_type: StateType = StateType.STRING
    attributes: Mapping[str, StateType] = field(default_factory=dict)


class EntityDefinition(Mapping[str, EntitySpec]):
    """Immutable mapping of entity id to its EntitySpec.

    Entities missing from the definition are treated as STRING entities.
    """

    def __init__(self, specs: Mapping[str, EntitySpec] | None = None) -> None:
        self._specs: dict[str, EntitySpec] = dict(specs or {})

    def __getitem__(self, entity_id: str) -> EntitySpec:
        return self._specs[entity_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._specs)

    def __len__(self) -> int:
        return len(self._specs)

    def __repr__(self) -> str:
        return f"EntityDefinition({self._specs!r})"

    def state_type(self, entity_id: str) -> StateType:
        """Declared state type of ``entity_id`` (STRING when undeclared)."""
        spec = self._specs.get(entity_id)
        return spec.state_type if spec is not None else StateType.STRING

    def convert_state(self, entity_id: str, raw: str) -> StateValue:
        """Convert a raw state of ``entity_id`` to its declared type."""
        return convert_value(self.state_type(entity_id), raw, entity_id)

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> EntityDefinition:
        """Build a definition by guessing types from a live snapshot."""
        return cls(
            {
                entity_id: EntitySpec(
                    state_type=guess_state_type(entity.state),
                    attributes={
                        name: guess_state_type(value) for name, value in entity.attributes.items()
                    },
                )
                for entity_id, entity in snapshot.items()
            }
        )


@dataclass(frozen=True, slots=True)
class ServiceField:
    """One payload field accepted by a service."""

    field_type: StateType = StateType.STRING
    required: bool = False
    description: str | None = None


@dataclass(frozen=True, slots=True)
class ServiceSpec:
    """Payload fields accepted by a service, keyed by field name."""

    fields: Mapping[str, ServiceField] = field(default_factory=dict)


class ServiceDefinition(Mapping[str, ServiceSpec]):
    """Immutable mapping of ``domain.service`` id to its ServiceSpec."""

    def __init__(self, specs: Mapping[str, ServiceSpec] | None = None) -> None:
        self._specs: dict[str, ServiceSpec] = dict(specs or {})

    def __getitem__(self, service_id: str) -> ServiceSpec:
        return self._specs[service_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._specs)

    def __len__(self) -> int:
        return len(self._specs)

    def __repr__(self) -> str:
        return f"ServiceDefinition({self._specs!r})"

    @classmethod
    def from_services(cls, services: Mapping[str, Mapping[str, Any]]) -> ServiceDefinition:
        """Build a definition from a Home Assistant service listing.

        Args:
            services: ``{domain: {service: {"fields": {...}}}}`` as returned by
                the ``get_services`` command. A field is a NUMBER when its
                selector is a number selector.
        """
        specs: dict[str, ServiceSpec] = {}
        for domain, domain_services in services.items():
            for service, service_info in domain_services.items():
                fields = {
                    name: ServiceField(
                        field_type=(
                            StateType.NUMBER
                            if "number" in (info.get("selector") or {})
                            else StateType.STRING
                        ),
                        required=bool(info.get("required", False)),
                        description=info.get("description"),
                    )
                    for name, info in (service_info.get("fields") or {}).items()
                }
                specs[f"{domain}.{service}"] = ServiceSpec(fields=fields)
        return cls(specs)
