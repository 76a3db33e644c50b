"""Single-slot hand-off between the camera producer and the frame consumer."""

from __future__ import annotations

import time
from threading import Condition
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ChannelClosed(Exception):
    """Raised by ``put`` once the channel has been closed."""


class LatestFrameChannel(Generic[T]):
    """Capacity-1 channel where a new item replaces an unconsumed one."""

    def __init__(self) -> None:
        self._item: Optional[T] = None
        self._has_item = False
        self._closed = False
        self._cond = Condition()
        self.dropped = 0
        self.delivered = 0

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def put(self, item: T) -> bool:
        """Offer ``item``; returns True when it replaced a pending item."""
        with self._cond:
            if self._closed:
                raise ChannelClosed("channel is closed")
            replaced = self._has_item
            if replaced:
                self.dropped += 1
            self._item = item
            self._has_item = True
            self._cond.notify()
            return replaced

    def get(self, timeout: float | None = None) -> Optional[T]:
        """Take the pending item, waiting up to ``timeout`` seconds.

        Returns ``None`` on timeout or once the channel is closed and drained.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while not self._has_item:
                if self._closed:
                    return None
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return None
                self._cond.wait(remaining)
            item = self._item
            self._item = None
            self._has_item = False
            self.delivered += 1
            return item

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()


__all__ = ["ChannelClosed", "LatestFrameChannel"]
