"""Removal handles returned by every registration.

Usage:
    remove = runtime.on_state_change("sensor.temperature", handler)
    remove()  # detaches handler
    remove()  # no-op
"""

from __future__ import annotations

from collections.abc import Callable, Iterable


class Remover:
    """Detaches exactly one registration. Safe to call any number of times.

    Args:
        detach: Called on the first invocation only.
    """

    __slots__ = ("_detach", "_removed")

    def __init__(self, detach: Callable[[], None]) -> None:
        self._detach = detach
        self._removed = False

    @property
    def removed(self) -> bool:
        """True once the registration has been detached."""
        return self._removed

    def __call__(self) -> None:
        if self._removed:
            return
        self._removed = True
        self._detach()

    remove = __call__

    @classmethod
    def combine(cls, removers: Iterable[Callable[[], None]]) -> Remover:
        """Build one Remover that invokes all ``removers`` in order."""
        collected = list(removers)

        def detach_all() -> None:
            for remover in collected:
                remover()

        return cls(detach_all)
