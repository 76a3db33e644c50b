"""Per-frame tracking orchestration and host message handling."""

from __future__ import annotations

import logging
from threading import Event
from typing import Any, Callable, Mapping, Optional

from pydantic import ValidationError

from pose_tracker.bridge.host import HostBridge
from pose_tracker.bridge.messages import (
    InboundMessage,
    MessageError,
    MessageType,
    camera_error_message,
    decode_inbound,
    pose_data_message,
    ready_message,
    tracking_result_message,
)
from pose_tracker.pose.estimator import LandmarkFrame

from .config import ConfigError, ConfigSnapshot, ConfigStore
from .evaluator import EvaluationResult, evaluate_frame

LOGGER = logging.getLogger(__name__)

CameraCommand = Callable[[], None]


class TrackingSession:
    """Evaluate frames against the current configuration and notify the host.

    Each processed frame reads one configuration snapshot, so an update that
    lands mid-frame only becomes visible on the next frame.
    """

    def __init__(
        self,
        bridge: HostBridge,
        *,
        store: ConfigStore | None = None,
        on_start_camera: CameraCommand | None = None,
        on_stop_camera: CameraCommand | None = None,
    ) -> None:
        self.bridge = bridge
        self.store = store or ConfigStore()
        self.on_start_camera = on_start_camera
        self.on_stop_camera = on_stop_camera
        self._paused = Event()
        self.frames_processed = 0
        self.last_result: Optional[EvaluationResult] = None

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #
    @property
    def paused(self) -> bool:
        return self._paused.is_set()

    def set_paused(self, paused: bool) -> None:
        if paused:
            self._paused.set()
        else:
            self._paused.clear()
        LOGGER.info("Tracking %s", "paused" if paused else "resumed")

    def snapshot(self) -> ConfigSnapshot:
        return self.store.snapshot()

    # ------------------------------------------------------------------ #
    # Frame path
    # ------------------------------------------------------------------ #
    def process_landmarks(self, frame: LandmarkFrame) -> Optional[EvaluationResult]:
        """Evaluate one frame and emit TRACKING_RESULT followed by POSE_DATA."""
        if self.paused:
            return None
        if not frame.landmarks:
            return None

        snapshot = self.store.snapshot()
        result = evaluate_frame(frame.landmarks, snapshot)
        self.frames_processed += 1
        self.last_result = result

        if not result.matched:
            LOGGER.warning("No valid angle could be calculated")
            return result

        LOGGER.debug(
            "Angle for %s: %.1f deg, conditions met: %s",
            result.name,
            result.angle,
            result.conditions_met,
        )
        self.bridge.post(tracking_result_message(result))
        self.bridge.post(pose_data_message(frame.landmarks))
        return result

    # ------------------------------------------------------------------ #
    # Host messages
    # ------------------------------------------------------------------ #
    def handle_message(self, raw: str | bytes | Mapping[str, Any]) -> Optional[InboundMessage]:
        """Apply a host message. Invalid messages are logged and ignored."""
        try:
            message = decode_inbound(raw)
        except MessageError as exc:
            LOGGER.error("Error handling message from host: %s", exc)
            return None

        if message.type is MessageType.SET_TRACKING:
            self._apply_tracking_update(message)
        elif message.type is MessageType.START_CAMERA:
            LOGGER.info("Received START_CAMERA command")
            self._run_command(self.on_start_camera, "start")
        elif message.type is MessageType.STOP_CAMERA:
            LOGGER.info("Received STOP_CAMERA command")
            self._run_command(self.on_stop_camera, "stop")
        elif message.type is MessageType.PAUSE_TRACKING:
            self.set_paused(message.pause)
        else:
            LOGGER.warning("Ignoring outbound-only message type %s", message.type.value)
        return message

    def _apply_tracking_update(self, message: InboundMessage) -> None:
        try:
            update = message.tracking_update()
            self.store.update(update.config_changes(), focus_points=update.to_focus_points())
        except (ConfigError, ValidationError) as exc:
            LOGGER.error("Rejected tracking config update: %s", exc)

    def _run_command(self, command: CameraCommand | None, label: str) -> None:
        if command is None:
            LOGGER.debug("No camera %s handler registered", label)
            return
        try:
            command()
        except RuntimeError as exc:
            LOGGER.error("Error during camera %s: %s", label, exc)

    # ------------------------------------------------------------------ #
    # Lifecycle notifications
    # ------------------------------------------------------------------ #
    def announce_ready(self) -> None:
        self.bridge.post(ready_message())

    def report_error(self, error: str) -> None:
        self.bridge.post(camera_error_message(error))


__all__ = ["TrackingSession"]
