"""Host bridge implementations that deliver notifications to the embedding app."""

from __future__ import annotations

import json
import logging
import sys
from threading import RLock
from typing import Any, Dict, List, Optional, Protocol, TextIO

LOGGER = logging.getLogger(__name__)

Message = Dict[str, Any]


class HostBridge(Protocol):
    def post(self, message: Message) -> None:
        ...


class InMemoryBridge:
    """Keep posted messages in memory, e.g. for polling clients."""

    def __init__(self, max_messages: Optional[int] = None) -> None:
        self.max_messages = max_messages
        self._messages: List[Message] = []
        self._lock = RLock()

    def post(self, message: Message) -> None:
        with self._lock:
            self._messages.append(message)
            if self.max_messages is not None and len(self._messages) > self.max_messages:
                del self._messages[: len(self._messages) - self.max_messages]

    def messages(self, message_type: str | None = None) -> List[Message]:
        with self._lock:
            if message_type is None:
                return list(self._messages)
            return [message for message in self._messages if message.get("type") == message_type]

    def clear(self) -> None:
        with self._lock:
            self._messages = []


class FanoutBridge:
    """Post every message to each wrapped bridge in order."""

    def __init__(self, *bridges: HostBridge) -> None:
        self.bridges = list(bridges)

    def post(self, message: Message) -> None:
        for bridge in self.bridges:
            bridge.post(message)


class JsonLinesBridge:
    """Write one compact JSON document per line to a text stream."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream or sys.stdout
        self._lock = RLock()

    def post(self, message: Message) -> None:
        line = json.dumps(message, separators=(",", ":"))
        with self._lock:
            self._stream.write(line + "\n")
            self._stream.flush()


__all__ = ["FanoutBridge", "HostBridge", "InMemoryBridge", "JsonLinesBridge", "Message"]
