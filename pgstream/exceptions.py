"""Exceptions raised by pgstream.

Messages never include connection passwords.
"""

from __future__ import annotations


class StreamError(Exception):
    """Base exception for change streaming."""

    pass


class ConfigurationError(StreamError):
    """Raised when the database target or settings are invalid or missing."""

    pass


class UnsupportedBackendError(ConfigurationError):
    """Raised when the configured database is not PostgreSQL."""

    def __init__(self, backend: str) -> None:
        self.backend = backend
        super().__init__(f"Change streaming requires PostgreSQL, got backend '{backend}'")


class FieldNotRecognizedError(StreamError):
    """Raised when a requested field does not exist on the entity."""

    def __init__(self, field: str, entity: str | None = None) -> None:
        self.field = field
        self.entity = entity
        target = f"entity '{entity}'" if entity else "the table"
        super().__init__(f"Field '{field}' is not valid for {target}")


class UnsupportedOperationError(StreamError):
    """Raised when an operation outside INSERT/UPDATE/DELETE is requested."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(
            f"Operation '{operation}' is not supported; expected INSERT, UPDATE or DELETE"
        )


class ProvisioningError(StreamError):
    """Raised when installing or removing trigger objects fails."""

    def __init__(self, table: str, action: str, message: str) -> None:
        self.table = table
        self.action = action
        super().__init__(f"Failed to {action} change trigger on table '{table}': {message}")


class BridgeError(StreamError):
    """Base exception for the notification listening connection."""

    pass


class ConnectionLostError(BridgeError):
    """Raised on the event sequence when the listening connection drops."""

    def __init__(self, channel: str) -> None:
        self.channel = channel
        super().__init__(f"Listening connection for channel '{channel}' was lost")


class MalformedPayloadError(BridgeError):
    """Raised when a notification payload is not a valid change event."""

    def __init__(self, message: str, payload: str | None = None) -> None:
        self.payload = payload
        super().__init__(message)


class SessionError(StreamError):
    """Base exception for stream session lifecycle misuse."""

    pass


class SessionNotOpenError(SessionError):
    """Raised when iterating a session that was never opened."""

    pass


class SessionClosedError(SessionError):
    """Raised when reopening a session that has already been closed."""

    pass
