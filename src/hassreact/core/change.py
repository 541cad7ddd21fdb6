"""Change detection primitives.

Usage:
    detector = ChangeEdgeDetector(20.0, lambda new, old: print(old, "->", new))
    detector.feed(20.0)  # nothing
    detector.feed(25.0)  # prints 20.0 -> 25.0
    detector.feed(25.0)  # nothing

    # Fire only when a condition switches to true
    handler = with_predicate(lambda t: t > 30, on_hot)
    runtime.on_state_change("sensor.temperature", handler)
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class ChangeEdgeDetector(Generic[T]):
    """Turns a stream of values into change events.

    Holds the last value seen, seeded from ``initial``. Feeding a value that
    differs from it calls ``on_change(new, last)`` once; the stored value is
    replaced on every feed, changed or not.

    Args:
        initial: Value to compare the first fed value against.
        on_change: Called with ``(new_value, last_value)`` on inequality.
    """

    __slots__ = ("_last", "_on_change")

    def __init__(self, initial: T, on_change: Callable[[T, T], None]) -> None:
        self._last = initial
        self._on_change = on_change

    @property
    def last(self) -> T:
        """The most recently fed value (or the initial one)."""
        return self._last

    def feed(self, value: T) -> bool:
        """Feed a value, firing ``on_change`` if it differs from the last one.

        Returns:
            True if the value changed.
        """
        previous, self._last = self._last, value
        if value != previous:
            self._on_change(value, previous)
            return True
        return False

    __call__ = feed


def with_predicate(
    predicate: Callable[[T], bool],
    on_change: Callable[..., None],
) -> Callable[..., None]:
    """Wrap a state change handler so it only fires when ``predicate`` becomes true.

    The predicate's previous result is seeded lazily from the ``prev_state``
    of the first change received, so a condition that already held before
    registration does not fire.

    Args:
        predicate: Condition over the new state.
        on_change: Handler called as ``on_change(state, prev_state=...)``.

    Returns:
        A handler suitable for ``EntityRuntime.on_state_change``.
    """
    last: bool | None = None

    def handler(state: T, *, prev_state: T) -> None:
        nonlocal last
        if last is None:
            last = bool(predicate(prev_state))
        current = bool(predicate(state))
        if current and not last:
            on_change(state, prev_state=prev_state)
        last = current

    return handler
