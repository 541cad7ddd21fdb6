"""Transport protocols for the remote push source.

The runtime talks to the remote end only through these interfaces, so the
websocket implementation can be swapped for a fake in tests or for another
backend.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from hassreact.core.remover import Remover
from hassreact.core.types import SnapshotCallback


@runtime_checkable
class Connection(Protocol):
    """An established, authenticated connection."""

    async def close(self) -> None:
        """Close the connection. Called exactly once by the owner."""
        ...

    async def wait_closed(self) -> None:
        """Suspend until the connection is closed, locally or by the remote end."""
        ...


@runtime_checkable
class Transport(Protocol):
    """Protocol for connecting, subscribing to entity snapshots and calling services.

    Usage:
        transport = HomeAssistantTransport(ConnectionSettings())
        conn = await transport.connect()
        remove = await transport.subscribe_entities(conn, print)
        await transport.call_service(conn, "light", "turn_on", target={"entity_id": "light.kitchen"})
        remove()
        await conn.close()
    """

    async def connect(self) -> Connection:
        """Open and authenticate a connection.

        Raises:
            ConfigMissingError: If required settings are absent (before any I/O).
            AuthenticationError: If the credentials are rejected.
        """
        ...

    async def subscribe_entities(self, conn: Connection, on_snapshot: SnapshotCallback) -> Remover:
        """Subscribe to full entity snapshots.

        The first push is the full current snapshot; every later push is the
        full snapshot after an upstream change.

        Args:
            conn: Connection returned by ``connect``.
            on_snapshot: Called synchronously with each snapshot.

        Returns:
            Remover that ends the subscription.
        """
        ...

    async def call_service(
        self,
        conn: Connection,
        domain: str,
        service: str,
        service_data: Mapping[str, Any] | None = None,
        target: Mapping[str, Any] | None = None,
    ) -> Any:
        """Invoke a remote service and return its opaque result.

        Raises:
            ServiceCallError: If the remote end reports failure.
        """
        ...
