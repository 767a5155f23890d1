# ruff: noqa: F401
import logging

from .binding import MediaBinding
from .configuration import (
    NegotiationConfiguration,
    NegotiationRole,
    role_from_identifiers,
)
from .engine import NegotiationEngine
from .envelope import SignalingEnvelope, envelope_from_string, envelope_to_string
from .events import RemoteTrackEvent
from .exceptions import (
    InvalidStateError,
    NegotiationError,
    OperationError,
    SignalingClosedError,
)
from .signaling import (
    BaseSignaling,
    QueueSignaling,
    TcpSocketSignaling,
    UnixSocketSignaling,
    WebSocketSignaling,
    queue_signaling_pair,
    relay,
)

__version__ = "0.1.0"

# Set default logging handler to avoid "No handler found" warnings.
logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "BaseSignaling",
    "InvalidStateError",
    "MediaBinding",
    "NegotiationConfiguration",
    "NegotiationEngine",
    "NegotiationError",
    "NegotiationRole",
    "OperationError",
    "QueueSignaling",
    "RemoteTrackEvent",
    "SignalingClosedError",
    "SignalingEnvelope",
    "TcpSocketSignaling",
    "UnixSocketSignaling",
    "WebSocketSignaling",
    "envelope_from_string",
    "envelope_to_string",
    "queue_signaling_pair",
    "relay",
    "role_from_identifiers",
]
