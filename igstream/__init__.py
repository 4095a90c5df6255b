"""Real-time streaming for the IG dealing platform.

Public API:
    StreamingSession    - Owns the push transport and the event queue
    DataEvent, DataWithSnapshotEvent, TransportErrorEvent - Queue items
    Scale               - Consolidated chart bar widths
    StreamingCredentials - Username, password and endpoint for the transport
    PushTransport       - Abstract interface for push transports
    DealingPlatform     - Abstract interface for the parent session
    create_transport    - Factory that selects Lightstreamer or the simulator
    create_stream_router - FastAPI router factory for the SSE endpoint
"""

from .credentials import StreamingCredentials
from .errors import (
    CoercionError,
    MalformedTopicKey,
    StreamingConnectionError,
    StreamingError,
    SubscriptionStartError,
    TransportError,
)
from .events import DataEvent, DataWithSnapshotEvent, StreamEvent, TransportErrorEvent
from .factory import EnvironmentPlatform, create_transport
from .interface import DealingPlatform, PushTransport
from .keys import Scale
from .session import ConnectionState, StreamingSession
from .stream import create_stream_router
from .subscriptions import SubscriptionDescriptor, SubscriptionMode, UpdateFamily

__all__ = [
    "StreamingSession",
    "ConnectionState",
    "DataEvent",
    "DataWithSnapshotEvent",
    "TransportErrorEvent",
    "StreamEvent",
    "Scale",
    "SubscriptionDescriptor",
    "SubscriptionMode",
    "UpdateFamily",
    "StreamingCredentials",
    "PushTransport",
    "DealingPlatform",
    "EnvironmentPlatform",
    "create_transport",
    "create_stream_router",
    "StreamingError",
    "StreamingConnectionError",
    "TransportError",
    "SubscriptionStartError",
    "MalformedTopicKey",
    "CoercionError",
]
