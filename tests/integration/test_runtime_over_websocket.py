"""End-to-end: EntityRuntime driven by HomeAssistantTransport over a scripted socket."""

import asyncio
import json

import pytest
from websockets.exceptions import ConnectionClosedOK

from hassreact import (
    ConnectionSettings,
    EntityRuntime,
    EntitySpec,
    HomeAssistantTransport,
    RuntimeState,
    StateType,
    TransportError,
    multi_predicate,
)


class ScriptedHomeAssistant:
    """Fake server socket: authenticates, answers commands, pushes entity events."""

    def __init__(self, states):
        self.incoming = asyncio.Queue()
        self.sent = []
        self.closed = False
        self.states = states
        self.subscription = None
        self._push({"type": "auth_required", "ha_version": "2024.6.0"})

    def _push(self, message):
        self.incoming.put_nowait(json.dumps(message))

    async def recv(self):
        raw = await self.incoming.get()
        if raw is None:
            raise ConnectionClosedOK(None, None)
        return raw

    def hang_up(self):
        self.incoming.put_nowait(None)

    async def send(self, raw):
        message = json.loads(raw)
        self.sent.append(message)
        if message["type"] == "auth":
            self._push({"type": "auth_ok", "ha_version": "2024.6.0"})
            return
        self._push({"id": message["id"], "type": "result", "success": True, "result": None})
        if message["type"] == "subscribe_entities":
            self.subscription = message["id"]
            added = {eid: {"s": s, "a": {}, "lc": 1.0} for eid, s in self.states.items()}
            self.event({"a": added})

    def event(self, payload):
        self._push({"id": self.subscription, "type": "event", "event": payload})

    def change(self, entity_id, state):
        self.event({"c": {entity_id: {"+": {"s": state, "lc": 2.0}}}})

    async def close(self):
        self.closed = True


async def until(condition, attempts=100):
    for _ in range(attempts):
        if condition():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


@pytest.fixture
def server():
    return ScriptedHomeAssistant({"sensor.a": "0", "sensor.b": "5", "light.kitchen": "off"})


@pytest.fixture
def transport(server):
    async def connector(url, **kwargs):
        return server

    settings = ConnectionSettings(url="http://ha.local:8123", token="secret", _env_file=None)
    return HomeAssistantTransport(settings, connector=connector)


@pytest.mark.asyncio
async def test_runtime_reacts_to_pushed_changes(server, transport):
    runtime = EntityRuntime(
        {"sensor.a": EntitySpec(StateType.NUMBER), "sensor.b": EntitySpec(StateType.NUMBER)},
        transport=transport,
    )
    changes = []
    combined = []
    runtime.on_state_change("sensor.a", lambda s, *, prev_state: changes.append((prev_state, s)))
    multi_predicate(runtime).with_state("sensor.a", lambda v: v > 5).with_state(
        "sensor.b", lambda v: v < 3
    ).do(lambda a, b: combined.append(("on", a, b)), lambda a, b: combined.append(("off", a, b)))

    async with runtime:
        assert runtime.state is RuntimeState.READY
        assert runtime.get_entity_state("sensor.a") == 0

        server.change("sensor.a", "10")
        await until(lambda: changes == [(0, 10)])
        server.change("sensor.b", "1")
        await until(lambda: combined == [("on", 10, 1)])
        server.change("sensor.a", "2")
        await until(lambda: combined == [("on", 10, 1), ("off", 2, 1)])

        await runtime.call_service("light.turn_on", target={"entity_id": "light.kitchen"})

    assert runtime.state is RuntimeState.CLOSED
    assert server.closed
    (call,) = [m for m in server.sent if m["type"] == "call_service"]
    assert call["domain"] == "light"
    assert call["target"] == {"entity_id": "light.kitchen"}


@pytest.mark.asyncio
async def test_handler_can_call_service(server, transport):
    runtime = EntityRuntime(transport=transport)
    pending = []

    def on_light(state, *, prev_state):
        if state == "on":
            pending.append(
                asyncio.ensure_future(
                    runtime.call_service("fan.turn_on", {"speed": "high"})
                )
            )

    runtime.on_state_change("light.kitchen", on_light)

    async with runtime:
        server.change("light.kitchen", "on")
        await until(lambda: len(pending) == 1)
        await pending[0]

    (call,) = [m for m in server.sent if m["type"] == "call_service"]
    assert (call["domain"], call["service"], call["service_data"]) == ("fan", "turn_on", {"speed": "high"})


@pytest.mark.asyncio
async def test_server_hang_up_closes_runtime(server, transport):
    runtime = EntityRuntime(transport=transport)

    async with runtime:
        server.hang_up()
        await asyncio.wait_for(runtime.wait_closed(), timeout=1)

        assert runtime.state is RuntimeState.CLOSED
        with pytest.raises(TransportError):
            await runtime.call_service("light.turn_on")
