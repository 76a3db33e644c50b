"""Message bridge between the tracker and its host application."""

from .host import FanoutBridge, HostBridge, InMemoryBridge, JsonLinesBridge
from .messages import (
    InboundMessage,
    MessageError,
    MessageType,
    TrackingUpdate,
    decode_inbound,
    snapshot_from_query,
)

__all__ = [
    "FanoutBridge",
    "HostBridge",
    "InMemoryBridge",
    "InboundMessage",
    "JsonLinesBridge",
    "MessageError",
    "MessageType",
    "TrackingUpdate",
    "decode_inbound",
    "snapshot_from_query",
]
