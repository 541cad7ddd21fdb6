"""One-shot gate for work that must wait for the first snapshot.

Usage:
    gate = ReadyGate()
    gate.defer(lambda: print("attached"))  # queued
    gate.open()                            # prints "attached"
    gate.defer(lambda: print("now"))       # runs immediately
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable


class ReadyGate:
    """One-shot gate.

    Actions deferred while the gate is closed are queued and run once, in
    order, when it opens. Actions deferred after that run immediately.
    A gate cannot be opened twice.
    """

    def __init__(self) -> None:
        self._queue: deque[Callable[[], None]] = deque()
        self._opened = asyncio.Event()

    @property
    def is_open(self) -> bool:
        return self._opened.is_set()

    @property
    def pending(self) -> int:
        """Number of actions waiting for the gate to open."""
        return len(self._queue)

    def defer(self, action: Callable[[], None]) -> None:
        if self.is_open:
            action()
        else:
            self._queue.append(action)

    def open(self) -> None:
        """Open the gate and drain queued actions in order.

        Raises:
            RuntimeError: If the gate is already open.
        """
        if self.is_open:
            raise RuntimeError("Gate is already open")
        self._opened.set()
        while self._queue:
            self._queue.popleft()()

    async def wait(self) -> None:
        """Suspend until the gate is open."""
        await self._opened.wait()
