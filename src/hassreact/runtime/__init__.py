"""Entity runtime and predicate combinators.

Architecture Note:
    runtime/ is the stateful service layer. It owns the connection, the
    snapshot store and every listener, and turns pushed snapshots into
    handler calls.
"""

from hassreact.runtime.gate import ReadyGate
from hassreact.runtime.predicates import MultiPredicate, PredicateClause, multi_predicate
from hassreact.runtime.runtime import EntityRuntime, RuntimeState, create_runtime

__all__ = [
    "EntityRuntime",
    "RuntimeState",
    "create_runtime",
    "ReadyGate",
    "MultiPredicate",
    "PredicateClause",
    "multi_predicate",
]
