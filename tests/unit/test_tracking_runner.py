from __future__ import annotations

import math
import time
from types import SimpleNamespace

import numpy as np
import pytest

from pose_tracker.bridge.host import InMemoryBridge
from pose_tracker.pose import PoseEstimator
from pose_tracker.service import CameraSource, CameraUnavailableError, TrackerStartupError, TrackingRunner
from pose_tracker.service.runner import STATUS_DETECTING, STATUS_ERROR, STATUS_STOPPED
from pose_tracker.tracking.session import TrackingSession


def _elbow_coords(degrees: float) -> list[tuple[float, float, float, float]]:
    coords = [(0.0, 0.0, 0.0, 0.9)] * 33
    coords[11] = (0.6, 0.5, 0.0, 0.9)
    coords[13] = (0.5, 0.5, 0.0, 0.9)
    coords[15] = (
        0.5 + 0.1 * math.cos(math.radians(degrees)),
        0.5 + 0.1 * math.sin(math.radians(degrees)),
        0.0,
        0.9,
    )
    return coords


class _ElbowEngine:
    def __init__(self, degrees: float = 160.0) -> None:
        self.coords = _elbow_coords(degrees)
        self.closed = False

    def process(self, image):
        return SimpleNamespace(
            pose_landmarks=SimpleNamespace(
                landmark=[SimpleNamespace(x=x, y=y, z=z, visibility=v) for (x, y, z, v) in self.coords]
            )
        )

    def close(self) -> None:
        self.closed = True


class _FakeCapture:
    def __init__(self, opened: bool = True, fail_after: int | None = None) -> None:
        self.opened = opened
        self.fail_after = fail_after
        self.reads = 0
        self.released = False
        self.settings: dict[int, float] = {}

    def isOpened(self) -> bool:
        return self.opened

    def set(self, prop, value) -> bool:
        self.settings[prop] = value
        return True

    def read(self):
        time.sleep(0.005)
        self.reads += 1
        if self.fail_after is not None and self.reads > self.fail_after:
            return False, None
        return True, np.zeros((4, 4, 3), dtype=np.uint8)

    def release(self) -> None:
        self.released = True


def _wait_for(predicate, timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def _runner(bridge, *, engine_factory, capture, **kwargs) -> TrackingRunner:
    session = TrackingSession(bridge)
    return TrackingRunner(
        session,
        estimator=PoseEstimator(engine_factory=engine_factory),
        camera=CameraSource(0, capture_factory=lambda _device: capture),
        **kwargs,
    )


def test_runner_streams_results_until_stopped():
    bridge = InMemoryBridge()
    engine = _ElbowEngine(160.0)
    capture = _FakeCapture()
    runner = _runner(bridge, engine_factory=lambda: engine, capture=capture)

    runner.start()
    try:
        assert runner.status == STATUS_DETECTING
        assert bridge.messages()[0] == {"type": "WEBVIEW_LOADED"}
        assert _wait_for(lambda: bridge.messages("TRACKING_RESULT"))
    finally:
        runner.stop()

    result = bridge.messages("TRACKING_RESULT")[0]["data"]
    assert result["conditionsMet"] is True
    assert result["angle"] == pytest.approx(160.0)
    assert bridge.messages("POSE_DATA")
    assert runner.status == STATUS_STOPPED
    assert runner.running is False
    assert capture.released is True
    assert engine.closed is True


def test_session_commands_control_runner():
    bridge = InMemoryBridge()
    capture = _FakeCapture()
    runner = _runner(bridge, engine_factory=_ElbowEngine, capture=capture)

    runner.session.handle_message({"type": "START_CAMERA"})
    assert runner.running is True
    runner.session.handle_message({"type": "STOP_CAMERA"})
    assert runner.running is False
    assert capture.released is True


def test_wait_for_engine_retries_until_ready():
    attempts = {"count": 0}

    def _flaky_engine():
        attempts["count"] += 1
        if attempts["count"] < 3:
            raise RuntimeError("engine still loading")
        return _ElbowEngine()

    sleeps: list[float] = []
    runner = _runner(
        InMemoryBridge(),
        engine_factory=_flaky_engine,
        capture=_FakeCapture(),
        ready_interval=0.3,
        sleep=sleeps.append,
    )
    runner.wait_for_engine()
    assert attempts["count"] == 3
    assert sleeps == [0.3, 0.3]
    assert runner.estimator.is_ready is True


def test_start_reports_error_when_engine_never_loads():
    def _broken_engine():
        raise RuntimeError("components failed to load")

    bridge = InMemoryBridge()
    sleeps: list[float] = []
    runner = _runner(
        bridge,
        engine_factory=_broken_engine,
        capture=_FakeCapture(),
        ready_attempts=4,
        sleep=sleeps.append,
    )
    with pytest.raises(TrackerStartupError):
        runner.start()

    assert len(sleeps) == 3
    assert runner.status == STATUS_ERROR
    assert "Try restarting" in runner.error
    assert bridge.messages("CAMERA_ERROR") == [{"type": "CAMERA_ERROR", "error": "Pose engine failed to load"}]


def test_missing_mediapipe_fails_without_polling():
    def _missing():
        raise ModuleNotFoundError("mediapipe is required")

    sleeps: list[float] = []
    runner = _runner(InMemoryBridge(), engine_factory=_missing, capture=_FakeCapture(), sleep=sleeps.append)
    with pytest.raises(TrackerStartupError):
        runner.wait_for_engine()
    assert sleeps == []


def test_start_reports_unavailable_camera():
    bridge = InMemoryBridge()
    engine = _ElbowEngine()
    capture = _FakeCapture(opened=False)
    runner = _runner(bridge, engine_factory=lambda: engine, capture=capture)

    with pytest.raises(CameraUnavailableError):
        runner.start()

    assert capture.released is True
    assert runner.status == STATUS_ERROR
    assert bridge.messages("CAMERA_ERROR")
    assert runner.status_dict()["running"] is False
    assert engine.closed is True
    assert runner.estimator.is_ready is False


class _CrashingEngine:
    def process(self, image):
        raise RuntimeError("inference crashed")

    def close(self) -> None:
        pass


def test_camera_that_stops_delivering_frames_is_reported_and_restartable():
    bridge = InMemoryBridge()
    failing = _FakeCapture(fail_after=3)
    healthy = _FakeCapture()
    captures = iter([failing, healthy])
    runner = TrackingRunner(
        TrackingSession(bridge),
        estimator=PoseEstimator(engine_factory=_ElbowEngine),
        camera=CameraSource(0, capture_factory=lambda _device: next(captures), read_failure_limit=3),
    )

    runner.start()
    assert _wait_for(lambda: bridge.messages("CAMERA_ERROR"))
    assert _wait_for(lambda: not runner.running)
    assert runner.status == STATUS_ERROR
    assert "stopped delivering frames" in bridge.messages("CAMERA_ERROR")[0]["error"]

    runner.session.handle_message({"type": "START_CAMERA"})
    try:
        assert runner.running is True
        assert runner.status == STATUS_DETECTING
        assert failing.released is True
    finally:
        runner.stop()
    assert healthy.released is True


def test_frame_processing_error_is_reported():
    bridge = InMemoryBridge()
    runner = _runner(bridge, engine_factory=_CrashingEngine, capture=_FakeCapture())

    runner.start()
    try:
        assert _wait_for(lambda: bridge.messages("CAMERA_ERROR"))
        assert _wait_for(lambda: not runner.running)
    finally:
        runner.stop()

    assert bridge.messages("CAMERA_ERROR")[0] == {"type": "CAMERA_ERROR", "error": "inference crashed"}
    assert runner.status == STATUS_ERROR
    assert runner.error == "inference crashed"
