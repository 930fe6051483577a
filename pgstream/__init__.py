"""pgstream: live PostgreSQL row-change streams via triggers and LISTEN/NOTIFY."""

from pgstream.backend import dsn_from_engine, resolve_dsn
from pgstream.bridge import NotificationBridge
from pgstream.channel import EventChannel
from pgstream.config import ConfigLoadError, StreamSettings, config_path, load_settings
from pgstream.entities import EntityDescriptor
from pgstream.events import ChangeEvent
from pgstream.exceptions import (
    BridgeError,
    ConfigurationError,
    ConnectionLostError,
    FieldNotRecognizedError,
    MalformedPayloadError,
    ProvisioningError,
    SessionClosedError,
    SessionError,
    SessionNotOpenError,
    StreamError,
    UnsupportedBackendError,
    UnsupportedOperationError,
)
from pgstream.identifiers import ALL_OPERATIONS, WILDCARD, Operation, SubscriptionDescriptor, sanitize_identifier
from pgstream.models import Base, StreamableMixin
from pgstream.provisioner import ArtifactStatus, TriggerProvisioner, default_provisioner
from pgstream.session import StreamSession, stream
from pgstream.validation import validate_fields

__all__ = [
    "ALL_OPERATIONS",
    "ArtifactStatus",
    "Base",
    "BridgeError",
    "ChangeEvent",
    "ConfigLoadError",
    "ConfigurationError",
    "ConnectionLostError",
    "EntityDescriptor",
    "EventChannel",
    "FieldNotRecognizedError",
    "MalformedPayloadError",
    "NotificationBridge",
    "Operation",
    "ProvisioningError",
    "SessionClosedError",
    "SessionError",
    "SessionNotOpenError",
    "StreamError",
    "StreamSession",
    "StreamSettings",
    "StreamableMixin",
    "SubscriptionDescriptor",
    "TriggerProvisioner",
    "UnsupportedBackendError",
    "UnsupportedOperationError",
    "WILDCARD",
    "config_path",
    "default_provisioner",
    "dsn_from_engine",
    "load_settings",
    "resolve_dsn",
    "sanitize_identifier",
    "stream",
    "validate_fields",
]
