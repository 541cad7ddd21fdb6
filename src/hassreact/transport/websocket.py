"""Home Assistant websocket transport.

Usage:
    transport = HomeAssistantTransport(ConnectionSettings())
    conn = await transport.connect()
    remove = await transport.subscribe_entities(conn, on_snapshot)
    await transport.call_service(conn, "light", "turn_on", {"brightness": 80})

    # Retry transient connection failures (requires tenacity: pip install hassreact[retry])
    settings = ConnectionSettings(connect_attempts=5, connect_backoff="exponential")
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from hassreact.config.models import RetryPolicy
from hassreact.config.settings import ConnectionSettings
from hassreact.core.errors import AuthenticationError, ServiceCallError, TransportError
from hassreact.core.remover import Remover
from hassreact.core.types import EntityState, SnapshotCallback
from hassreact.transport.compressed import apply_entity_updates

# Optional tenacity import for retry functionality
try:
    import tenacity

    TENACITY_AVAILABLE = True
except ImportError:
    TENACITY_AVAILABLE = False

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], None]


class HomeAssistantConnection:
    """An authenticated websocket connection.

    A reader task owns the socket's receive side. It resolves pending
    commands from ``result`` messages and hands ``event`` messages to the
    handler of the matching subscription. Handlers run synchronously on the
    reader task; an exception in one is logged and the reader keeps going,
    as it does for frames that cannot be decoded. When the socket closes,
    pending commands fail with TransportError and ``wait_closed`` returns.

    Args:
        websocket: Open, already authenticated websocket.
        ha_version: Version reported by the server during authentication.
    """

    def __init__(self, websocket: Any, ha_version: str | None = None) -> None:
        self._ws = websocket
        self.ha_version = ha_version
        self._next_id = 1
        self._pending: dict[int, asyncio.Future[Any]] = {}
        self._handlers: dict[int, EventHandler] = {}
        self._background: set[asyncio.Task[Any]] = set()
        self._closed = False
        self._done = asyncio.Event()
        self._reader = asyncio.create_task(self._read_loop(), name="hassreact-reader")

    @property
    def closed(self) -> bool:
        return self._closed

    def _allocate_id(self) -> int:
        msg_id = self._next_id
        self._next_id += 1
        return msg_id

    async def _send(self, msg_id: int, command_type: str, fields: Mapping[str, Any]) -> Any:
        if self._closed:
            raise TransportError("Connection is closed")
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[msg_id] = future
        payload = {"id": msg_id, "type": command_type, **fields}
        logger.debug("-> %s", payload)
        try:
            await self._ws.send(json.dumps(payload))
        except BaseException:
            self._pending.pop(msg_id, None)
            raise
        return await future

    async def send_command(self, command_type: str, **fields: Any) -> Any:
        """Send a command and wait for its result.

        Raises:
            ServiceCallError: If the server answers with ``success: false``.
            TransportError: If the connection closes before the answer arrives.
        """
        return await self._send(self._allocate_id(), command_type, fields)

    async def subscribe(self, command_type: str, handler: EventHandler, **fields: Any) -> int:
        """Send a subscription command and route its events to ``handler``.

        Returns:
            Subscription id, to be passed to ``unsubscribe``.
        """
        msg_id = self._allocate_id()
        # Events may arrive right behind the result
        self._handlers[msg_id] = handler
        try:
            await self._send(msg_id, command_type, fields)
        except BaseException:
            self._handlers.pop(msg_id, None)
            raise
        return msg_id

    def unsubscribe(self, subscription: int) -> None:
        """Stop routing events for ``subscription`` and tell the server.

        Events are dropped locally at once; the server side unsubscribe is
        sent in the background.
        """
        if self._handlers.pop(subscription, None) is None or self._closed:
            return
        task = asyncio.ensure_future(
            self.send_command("unsubscribe_events", subscription=subscription)
        )
        self._background.add(task)
        task.add_done_callback(self._background_done)

    def _background_done(self, task: asyncio.Task[Any]) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Background command failed: %s", task.exception())

    async def ping(self) -> None:
        """Round-trip a ping to check the connection is alive."""
        await self.send_command("ping")

    async def wait_closed(self) -> None:
        """Suspend until the connection is closed, by either side."""
        await self._done.wait()

    async def _read_loop(self) -> None:
        error = TransportError("Connection closed")
        try:
            while True:
                raw = await self._ws.recv()
                try:
                    message = json.loads(raw)
                except ValueError:
                    logger.exception("Dropping undecodable message %r", raw)
                    continue
                for item in message if isinstance(message, list) else [message]:
                    try:
                        self._dispatch(item)
                    except Exception:
                        logger.exception("Could not handle message %r", item)
        except ConnectionClosed as e:
            logger.info("Connection closed by server: %s", e)
            error = TransportError(f"Connection closed: {e}")
        except Exception as e:
            logger.exception("Reader stopped")
            error = TransportError(f"Connection failed: {e}")
        finally:
            self._closed = True
            self._fail_pending(error)
            self._done.set()

    def _dispatch(self, message: Mapping[str, Any]) -> None:
        logger.debug("<- %s", message)
        msg_type = message.get("type")
        msg_id = message.get("id")

        if msg_type in ("result", "pong"):
            future = self._pending.pop(msg_id, None)  # type: ignore[arg-type]
            if future is None or future.done():
                return
            if msg_type == "pong" or message.get("success"):
                future.set_result(message.get("result"))
            else:
                error = message.get("error") or {}
                future.set_exception(
                    ServiceCallError(
                        error.get("code", "unknown_error"), error.get("message", "")
                    )
                )
        elif msg_type == "event":
            handler = self._handlers.get(msg_id)  # type: ignore[arg-type]
            if handler is None:
                logger.debug("Dropping event for unknown subscription %s", msg_id)
                return
            try:
                handler(message.get("event"))
            except Exception:
                logger.exception("Event handler for subscription %s raised", msg_id)

    def _fail_pending(self, error: Exception) -> None:
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(error)

    async def close(self) -> None:
        """Stop the reader, fail pending commands and close the socket."""
        if self._closed and self._reader.done():
            return
        self._closed = True
        for task in tuple(self._background):
            task.cancel()
        self._reader.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._reader
        self._fail_pending(TransportError("Connection closed"))
        try:
            await self._ws.close()
        finally:
            self._done.set()
        logger.info("Connection closed")


class HomeAssistantTransport:
    """Transport speaking the Home Assistant websocket API.

    Args:
        settings: Connection settings. Loaded from the environment when omitted.
        connector: Coroutine function opening a websocket, called as
            ``connector(url, max_size=None, open_timeout=...)``.
            Defaults to ``websockets.connect``.
    """

    def __init__(
        self,
        settings: ConnectionSettings | None = None,
        connector: Callable[..., Awaitable[Any]] | None = None,
    ) -> None:
        self._settings = settings or ConnectionSettings()
        self._connector = connector or websockets.connect

    @property
    def settings(self) -> ConnectionSettings:
        return self._settings

    async def connect(self) -> HomeAssistantConnection:
        """Open and authenticate a connection, retrying per the settings' policy.

        Raises:
            ConfigMissingError: If the URL or token is not configured.
            AuthenticationError: If the token is rejected (never retried).
            TransportError: If every attempt failed.
        """
        self._settings.require()
        policy = self._settings.retry_policy()

        if policy.max_attempts <= 1:
            return await self._connect_once()

        if not TENACITY_AVAILABLE:
            msg = "Retry policy requires tenacity. Install with: pip install hassreact[retry]"
            raise ImportError(msg)

        retryer = self._build_retryer(policy)

        try:
            async for attempt in retryer:
                with attempt:
                    return await self._connect_once()
        except tenacity.RetryError as e:
            msg = f"Could not connect after {policy.max_attempts} attempts"
            raise TransportError(msg) from e.last_attempt.exception()

        raise TransportError("Could not connect")  # pragma: no cover

    def _build_retryer(self, policy: RetryPolicy) -> tenacity.AsyncRetrying:
        """Build a tenacity retryer from RetryPolicy configuration."""
        stop = tenacity.stop_after_attempt(policy.max_attempts)

        wait: tenacity.wait.wait_base
        if policy.backoff == "exponential":
            wait = tenacity.wait_exponential(multiplier=policy.base_delay, min=policy.base_delay)
        elif policy.backoff == "linear":
            wait = tenacity.wait_incrementing(start=policy.base_delay, increment=policy.base_delay)
        else:
            wait = tenacity.wait_none()

        return tenacity.AsyncRetrying(
            stop=stop,
            wait=wait,
            retry=tenacity.retry_if_exception_type((OSError, WebSocketException)),
            before_sleep=lambda state: logger.warning(
                "Connection attempt %d failed: %s",
                state.attempt_number,
                state.outcome.exception() if state.outcome else None,
            ),
            reraise=False,
        )

    async def _connect_once(self) -> HomeAssistantConnection:
        url = self._settings.websocket_url
        logger.info("Connecting to %s", url)
        websocket = await self._connector(
            url, max_size=None, open_timeout=self._settings.open_timeout
        )
        try:
            version = await self._authenticate(websocket)
        except BaseException:
            await websocket.close()
            raise
        logger.info("Authenticated with Home Assistant %s", version)
        return HomeAssistantConnection(websocket, ha_version=version)

    async def _authenticate(self, websocket: Any) -> str | None:
        message = json.loads(await websocket.recv())
        if message.get("type") != "auth_required":
            raise TransportError(f"Unexpected message before authentication: {message}")

        await websocket.send(json.dumps({"type": "auth", "access_token": self._settings.token}))
        message = json.loads(await websocket.recv())
        if message.get("type") == "auth_invalid":
            raise AuthenticationError(message.get("message") or "Invalid access token")
        if message.get("type") != "auth_ok":
            raise TransportError(f"Unexpected authentication response: {message}")
        return message.get("ha_version")

    async def subscribe_entities(
        self, conn: HomeAssistantConnection, on_snapshot: SnapshotCallback
    ) -> Remover:
        """Subscribe to entity states, pushing a full snapshot per update."""
        snapshot: dict[str, EntityState] = {}

        def handle(event: Mapping[str, Any]) -> None:
            nonlocal snapshot
            snapshot = apply_entity_updates(snapshot, event)
            on_snapshot(snapshot)

        subscription = await conn.subscribe("subscribe_entities", handle)
        return Remover(lambda: conn.unsubscribe(subscription))

    async def call_service(
        self,
        conn: HomeAssistantConnection,
        domain: str,
        service: str,
        service_data: Mapping[str, Any] | None = None,
        target: Mapping[str, Any] | None = None,
    ) -> Any:
        """Invoke ``domain.service`` and return the server's result."""
        fields: dict[str, Any] = {"domain": domain, "service": service}
        if service_data is not None:
            fields["service_data"] = dict(service_data)
        if target is not None:
            fields["target"] = dict(target)
        return await conn.send_command("call_service", **fields)

    async def get_services(self, conn: HomeAssistantConnection) -> dict[str, Any]:
        """Fetch the service listing, e.g. for ServiceDefinition.from_services."""
        return await conn.send_command("get_services")
