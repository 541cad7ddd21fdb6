"""Transports connecting the runtime to a remote push source."""

from hassreact.transport.compressed import apply_entity_updates, decode_entity
from hassreact.transport.protocol import Connection, Transport
from hassreact.transport.websocket import HomeAssistantConnection, HomeAssistantTransport

__all__ = [
    "Connection",
    "Transport",
    "HomeAssistantConnection",
    "HomeAssistantTransport",
    "apply_entity_updates",
    "decode_entity",
]
