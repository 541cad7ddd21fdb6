"""Edge-triggered AND conditions over several entities.

Usage:
    remove = (
        multi_predicate(runtime)
        .with_state("sensor.temperature", lambda t: t > 25)
        .with_attr("climate.office", "hvac_action", lambda a: a == "idle")
        .do(on_too_hot, on_back_to_normal)
    )

``on_too_hot(temperature, hvac_action)`` runs once when both conditions
become true together; ``on_back_to_normal`` runs once when either stops
holding. Builders are immutable, so a partial chain can be reused:

    warm = multi_predicate(runtime).with_state("sensor.temperature", lambda t: t > 25)
    warm.with_state("binary_sensor.window", lambda w: w == "off").do(close_blinds)
    warm.with_state("person.alice", lambda p: p == "home").do(turn_on_fan)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from hassreact.core.remover import Remover

if TYPE_CHECKING:
    from hassreact.runtime.runtime import EntityRuntime

Predicate = Callable[[Any], bool]


@dataclass(frozen=True, slots=True)
class PredicateClause:
    """One condition of a MultiPredicate.

    Attributes:
        register: Attaches a change listener for the underlying value and
            returns its Remover.
        check: Reads the current (or, with ``True``, previous) value and
            returns ``(value, satisfied)``.
    """

    register: Callable[[Callable[..., None]], Remover]
    check: Callable[[bool], tuple[Any, bool]]


class MultiPredicate:
    """Immutable builder of an edge-triggered AND condition.

    Args:
        runtime: Runtime the conditions are evaluated against.
        clauses: Conditions accumulated so far, in declaration order.
    """

    __slots__ = ("_runtime", "_clauses")

    def __init__(self, runtime: EntityRuntime, clauses: tuple[PredicateClause, ...] = ()) -> None:
        self._runtime = runtime
        self._clauses = clauses

    @property
    def clauses(self) -> tuple[PredicateClause, ...]:
        return self._clauses

    def _extend(self, clause: PredicateClause) -> MultiPredicate:
        return MultiPredicate(self._runtime, (*self._clauses, clause))

    def with_state(self, entity_id: str, predicate: Predicate) -> MultiPredicate:
        """Return a new builder with a condition on an entity's converted state."""
        runtime = self._runtime

        def register(listener: Callable[..., None]) -> Remover:
            return runtime.on_state_change(entity_id, listener)

        def check(prev: bool = False) -> tuple[Any, bool]:
            value = runtime.get_entity_state(entity_id, prev)
            return value, bool(predicate(value))

        return self._extend(PredicateClause(register, check))

    def with_attr(self, entity_id: str, attribute: str, predicate: Predicate) -> MultiPredicate:
        """Return a new builder with a condition on an entity attribute's raw value.

        An attribute absent from the entity reads as None, matching what
        attribute change listeners receive, so ``predicate`` must accept None.
        """
        runtime = self._runtime

        def register(listener: Callable[..., None]) -> Remover:
            return runtime.on_entity_attribute_change(entity_id, attribute, listener)

        def check(prev: bool = False) -> tuple[Any, bool]:
            value = runtime.get_entity(entity_id, prev).attributes.get(attribute)
            return value, bool(predicate(value))

        return self._extend(PredicateClause(register, check))

    def do(
        self,
        on_handler: Callable[..., None],
        off_handler: Callable[..., None] | None = None,
    ) -> Remover:
        """Register handlers for the combined condition.

        Whenever any clause's underlying value changes, every clause is
        re-evaluated against the current snapshot. ``on_handler(*values)``
        runs when all clauses hold and did not before; ``off_handler(*values)``
        runs when they held and no longer do. Values are passed in clause
        declaration order.

        The combined state is seeded on the first evaluation from the
        previous snapshot, so a condition that already held at registration
        does not fire until it is broken and restored.

        Returns:
            Remover detaching all underlying listeners.
        """
        clauses = self._clauses
        satisfied: bool | None = None

        def listener(*_args: Any, **_kwargs: Any) -> None:
            nonlocal satisfied
            if satisfied is None:
                satisfied = all(clause.check(True)[1] for clause in clauses)

            values: list[Any] = []
            all_satisfied = True
            for clause in clauses:
                value, ok = clause.check(False)
                values.append(value)
                all_satisfied = all_satisfied and ok

            if all_satisfied:
                if not satisfied:
                    satisfied = True
                    on_handler(*values)
            elif satisfied:
                satisfied = False
                if off_handler is not None:
                    off_handler(*values)

        return Remover.combine([clause.register(listener) for clause in clauses])


def multi_predicate(runtime: EntityRuntime) -> MultiPredicate:
    """Start an empty MultiPredicate builder for ``runtime``."""
    return MultiPredicate(runtime)
