"""Error taxonomy for the entity runtime.

Every error raised by hassreact derives from HassReactError. Lookup errors
also derive from KeyError and argument errors from ValueError, so callers
can catch them with the builtin they would expect.
"""

from __future__ import annotations


class HassReactError(Exception):
    """Base class for all hassreact errors."""


class ConfigMissingError(HassReactError):
    """Raised before connecting when a required connection parameter is absent."""


class NotReadyError(HassReactError):
    """Raised when state is queried before the first snapshot has arrived."""

    def __init__(self, message: str = "No state available yet") -> None:
        super().__init__(message)


class UnknownEntityError(HassReactError, KeyError):
    """Raised when an entity id is absent from the selected snapshot."""

    def __init__(self, entity_id: str) -> None:
        super().__init__(f"Entity {entity_id} not found")
        self.entity_id = entity_id

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class UnknownAttributeError(HassReactError, KeyError):
    """Raised when an attribute is absent from an entity in the selected snapshot."""

    def __init__(self, entity_id: str, attribute: str) -> None:
        super().__init__(f"Attribute {attribute} not found on entity {entity_id}")
        self.entity_id = entity_id
        self.attribute = attribute

    def __str__(self) -> str:
        return str(self.args[0])


class MalformedServiceIdError(HassReactError, ValueError):
    """Raised when a service id is not exactly ``domain.service``."""

    def __init__(self, service_id: str) -> None:
        super().__init__(f"Unknown service id {service_id!r}: expected 'domain.service'")
        self.service_id = service_id


class StateConversionError(HassReactError, ValueError):
    """Raised when a raw state cannot be converted to its declared type."""

    def __init__(self, entity_id: str, raw: str) -> None:
        super().__init__(f"State {raw!r} of entity {entity_id} is not a number")
        self.entity_id = entity_id
        self.raw = raw


class TransportError(HassReactError):
    """Raised when the remote connection fails."""


class AuthenticationError(TransportError):
    """Raised when the remote end rejects the access token."""


class ServiceCallError(TransportError):
    """Raised when a remote service call reports failure.

    Attributes:
        code: Error code reported by the remote end.
        message: Human-readable error message.
    """

    def __init__(self, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
