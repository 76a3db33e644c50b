"""Wire camera capture, pose estimation and the tracking session together."""

from __future__ import annotations

import logging
import time
from threading import RLock, Thread
from typing import Callable, Dict, Optional

from pose_tracker.pose.estimator import PoseEstimator
from pose_tracker.tracking.channel import LatestFrameChannel
from pose_tracker.tracking.session import TrackingSession

from .camera import CameraSource, CameraUnavailableError, CapturedFrame

LOGGER = logging.getLogger(__name__)

STATUS_STARTING = "Starting camera..."
STATUS_READY = "Camera ready"
STATUS_DETECTING = "Detecting poses..."
STATUS_STOPPED = "Stopped"
STATUS_ERROR = "Error"


class TrackerStartupError(RuntimeError):
    """Raised when the pose engine does not become available in time."""


class TrackingRunner:
    """Own the producer/consumer threads for one live tracking session."""

    def __init__(
        self,
        session: TrackingSession,
        *,
        estimator: PoseEstimator | None = None,
        camera: CameraSource | None = None,
        ready_attempts: int = 20,
        ready_interval: float = 0.3,
        poll_timeout: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.session = session
        self.estimator = estimator or PoseEstimator()
        self.camera = camera or CameraSource()
        self.ready_attempts = max(1, int(ready_attempts))
        self.ready_interval = float(ready_interval)
        self.poll_timeout = float(poll_timeout)
        self._sleep = sleep
        self._lock = RLock()
        self._channel: Optional[LatestFrameChannel[CapturedFrame]] = None
        self._consumer: Optional[Thread] = None
        self.status = STATUS_STOPPED
        self.error: Optional[str] = None

        if session.on_start_camera is None:
            session.on_start_camera = self.start
        if session.on_stop_camera is None:
            session.on_stop_camera = self.stop

    @property
    def running(self) -> bool:
        consumer_alive = self._consumer is not None and self._consumer.is_alive()
        return consumer_alive and self.camera.running

    # ------------------------------------------------------------------ #
    # Startup
    # ------------------------------------------------------------------ #
    def wait_for_engine(self) -> None:
        """Poll the pose engine until it loads or the attempt budget runs out."""
        for attempt in range(1, self.ready_attempts + 1):
            try:
                self.estimator.load()
                return
            except ModuleNotFoundError as exc:
                raise TrackerStartupError(str(exc)) from exc
            except (RuntimeError, OSError) as exc:
                LOGGER.info(
                    "Waiting for pose engine... (%d/%d): %s", attempt, self.ready_attempts, exc
                )
                if attempt < self.ready_attempts:
                    self._sleep(self.ready_interval)
        raise TrackerStartupError("Pose engine failed to load")

    def start(self) -> None:
        with self._lock:
            if self.running:
                return
            if self._consumer is not None:
                # Leftovers from a session that died on its own.
                self._release(timeout=2.0)
            self.status = STATUS_STARTING
            self.error = None
            try:
                self.wait_for_engine()
                self.status = STATUS_READY
                channel: LatestFrameChannel[CapturedFrame] = LatestFrameChannel()
                self.camera.start(channel)
            except (TrackerStartupError, CameraUnavailableError) as exc:
                self.estimator.close()
                self._fail(exc)
                raise

            self.session.announce_ready()
            self._channel = channel
            self._consumer = Thread(target=self._consume, args=(channel,), name="pose-consumer", daemon=True)
            self._consumer.start()
            self.status = STATUS_DETECTING
            LOGGER.info("Tracking started")

    def _fail(self, exc: Exception) -> None:
        LOGGER.error("Pose detection failed: %s", exc)
        self.status = STATUS_ERROR
        self.error = f"{exc}. Try restarting the tracker."
        self.session.report_error(str(exc))

    # ------------------------------------------------------------------ #
    # Frame loop
    # ------------------------------------------------------------------ #
    def _consume(self, channel: LatestFrameChannel[CapturedFrame]) -> None:
        try:
            while True:
                captured = channel.get(timeout=self.poll_timeout)
                if captured is None:
                    if channel.closed:
                        break
                    continue
                frame = self.estimator.process_frame(captured.image, timestamp=captured.timestamp_seconds)
                self.session.process_landmarks(frame)
        except Exception as exc:
            LOGGER.exception("Frame processing stopped: %s", exc)
            channel.close()
            self.status = STATUS_ERROR
            self.error = str(exc)
            self.session.report_error(str(exc))
            return

        if self.camera.failure is not None:
            self._fail(CameraUnavailableError(self.camera.failure))

    # ------------------------------------------------------------------ #
    # Shutdown
    # ------------------------------------------------------------------ #
    def _release(self, timeout: float) -> None:
        self.camera.stop(timeout)
        if self._channel is not None:
            self._channel.close()
        if self._consumer is not None:
            self._consumer.join(timeout)
        self._consumer = None
        self._channel = None
        self.estimator.close()

    def stop(self, timeout: float = 2.0) -> None:
        with self._lock:
            self._release(timeout)
            if self.status != STATUS_ERROR:
                self.status = STATUS_STOPPED
            LOGGER.info("Tracking stopped")

    def status_dict(self) -> Dict[str, object]:
        channel = self._channel
        return {
            "status": self.status,
            "error": self.error,
            "running": self.running,
            "paused": self.session.paused,
            "frames_processed": self.session.frames_processed,
            "dropped_frames": channel.dropped if channel is not None else 0,
        }


__all__ = [
    "STATUS_DETECTING",
    "STATUS_ERROR",
    "STATUS_READY",
    "STATUS_STARTING",
    "STATUS_STOPPED",
    "TrackerStartupError",
    "TrackingRunner",
]
