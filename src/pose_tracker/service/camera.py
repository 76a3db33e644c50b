"""OpenCV camera capture feeding the frame channel."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Event, Thread
from typing import Callable, Optional

import cv2
import numpy as np

from pose_tracker.tracking.channel import ChannelClosed, LatestFrameChannel

LOGGER = logging.getLogger(__name__)


class CameraUnavailableError(RuntimeError):
    """Raised when the capture device cannot be opened."""


@dataclass(slots=True)
class CapturedFrame:
    timestamp_seconds: float
    image: np.ndarray


class CameraSource:
    """Read frames from a capture device on a background thread."""

    def __init__(
        self,
        device: int | str = 0,
        *,
        width: int = 640,
        height: int = 480,
        capture_factory: Callable[[int | str], object] | None = None,
        read_failure_limit: int = 30,
    ) -> None:
        self.device = device
        self.width = int(width)
        self.height = int(height)
        self.read_failure_limit = int(read_failure_limit)
        self._capture_factory = capture_factory or cv2.VideoCapture
        self._capture: Optional[object] = None
        self._thread: Optional[Thread] = None
        self._stop = Event()
        self.frames_read = 0
        self.failure: Optional[str] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def open(self) -> None:
        if self._capture is not None:
            return
        capture = self._capture_factory(self.device)
        if not capture.isOpened():
            capture.release()
            raise CameraUnavailableError(f"Unable to open camera {self.device!r}")
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self._capture = capture
        LOGGER.info("Camera %r opened at %dx%d", self.device, self.width, self.height)

    def start(self, channel: LatestFrameChannel[CapturedFrame]) -> None:
        """Open the device and start publishing frames into ``channel``."""
        if self.running:
            return
        self.open()
        self._stop.clear()
        self.failure = None
        self._thread = Thread(target=self._run, args=(channel,), name="camera-capture", daemon=True)
        self._thread.start()

    def _run(self, channel: LatestFrameChannel[CapturedFrame]) -> None:
        started = time.monotonic()
        failures = 0
        while not self._stop.is_set():
            ok, image = self._capture.read()
            if not ok or image is None:
                failures += 1
                if failures >= self.read_failure_limit:
                    LOGGER.error("Camera %r stopped delivering frames", self.device)
                    self.failure = f"Camera {self.device!r} stopped delivering frames"
                    channel.close()
                    break
                continue
            failures = 0
            self.frames_read += 1
            try:
                channel.put(CapturedFrame(time.monotonic() - started, image))
            except ChannelClosed:
                break

    def stop(self, timeout: float = 2.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            LOGGER.info("Camera %r released", self.device)


__all__ = ["CameraSource", "CameraUnavailableError", "CapturedFrame"]
