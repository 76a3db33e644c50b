from __future__ import annotations

import json
import math
import time

import pytest
from fastapi.testclient import TestClient

from pose_tracker.bridge.host import FanoutBridge
from pose_tracker.pose.estimator import LandmarkFrame, PoseLandmark
from pose_tracker.service import TrackerStartupError
from pose_tracker.tracking.session import TrackingSession
from webapp import main


class _FakeRunner:
    def __init__(self, session: TrackingSession, *, fail_start: bool = False) -> None:
        self.session = session
        self.fail_start = fail_start
        self.started = 0
        self.stopped = 0

    def start(self) -> None:
        if self.fail_start:
            raise TrackerStartupError("Pose engine failed to load")
        self.started += 1

    def stop(self) -> None:
        self.stopped += 1

    def status_dict(self) -> dict[str, object]:
        return {
            "status": "Detecting poses..." if self.started else "Stopped",
            "running": bool(self.started),
            "paused": self.session.paused,
        }


@pytest.fixture
def session(monkeypatch) -> TrackingSession:
    main.recent_messages.clear()
    fresh = TrackingSession(FanoutBridge(main.connection_manager, main.recent_messages))
    monkeypatch.setattr(main, "SESSION", fresh)
    monkeypatch.setattr(main, "RUNNER", _FakeRunner(fresh))
    return fresh


@pytest.fixture
def client(session):
    with TestClient(main.app) as test_client:
        yield test_client


def _wait_until(predicate, timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def _elbow_frame(degrees: float) -> LandmarkFrame:
    landmarks: list[PoseLandmark | None] = [None] * 33
    landmarks[11] = PoseLandmark(index=11, name="left_shoulder", x=0.6, y=0.5)
    landmarks[13] = PoseLandmark(index=13, name="left_elbow", x=0.5, y=0.5)
    landmarks[15] = PoseLandmark(
        index=15,
        name="left_wrist",
        x=0.5 + 0.1 * math.cos(math.radians(degrees)),
        y=0.5 + 0.1 * math.sin(math.radians(degrees)),
    )
    return LandmarkFrame(timestamp_seconds=0.0, landmarks=landmarks)


def test_get_config_returns_defaults(client):
    response = client.get("/api/config")
    assert response.status_code == 200
    data = response.json()
    assert data["angleTrue"] == 150.0
    assert data["condTrue"] == ">"
    assert data["focusPoints"] is None


def test_post_config_publishes_snapshot(client, session):
    response = client.post(
        "/api/config",
        json={"angleTrue": 120, "condTrue": "<", "focusPoints": [{"points": [23, 25, 27], "name": "knee"}]},
    )
    assert response.status_code == 200
    assert response.json()["angleTrue"] == 120.0
    assert session.snapshot().focus_points[0].name == "knee"


def test_post_config_rejects_invalid_operator(client, session):
    before = session.snapshot()
    response = client.post("/api/config", json={"condTrue": "=="})
    assert response.status_code == 422
    assert session.snapshot() is before


def test_camera_endpoints_drive_runner(client):
    assert client.post("/api/camera/start").json()["running"] is True
    assert main.RUNNER.started == 1
    client.post("/api/camera/stop")
    assert main.RUNNER.stopped >= 1


def test_camera_start_failure_maps_to_503(client, session, monkeypatch):
    monkeypatch.setattr(main, "RUNNER", _FakeRunner(session, fail_start=True))
    response = client.post("/api/camera/start")
    assert response.status_code == 503


def test_pause_endpoint(client, session):
    response = client.post("/api/tracking/pause", json={"pause": True})
    assert response.json()["paused"] is True
    assert session.paused is True


def test_messages_endpoint_lists_recent_notifications(client, session):
    session.process_landmarks(_elbow_frame(160.0))
    messages = client.get("/api/messages", params={"message_type": "TRACKING_RESULT"}).json()
    assert len(messages) == 1
    assert messages[0]["data"]["conditionsMet"] is True


def test_websocket_query_params_and_inbound_messages(client, session):
    with client.websocket_connect("/ws?angleTrue=170&condTrue=%3C") as websocket:
        websocket.send_text(json.dumps({"type": "PAUSE_TRACKING", "pause": True}))
        assert _wait_until(lambda: session.paused)
    assert session.snapshot().config.angle_true_deg == 170.0
    assert session.snapshot().config.cond_true.value == "<"
    assert session.paused is True


def test_websocket_receives_tracking_notifications(client, session):
    with client.websocket_connect("/ws") as websocket:
        assert _wait_until(lambda: client.get("/api/status").json()["clients"] >= 1)
        session.process_landmarks(_elbow_frame(160.0))
        result = websocket.receive_json()
        pose = websocket.receive_json()

    assert result["type"] == "TRACKING_RESULT"
    assert result["data"]["pointIndices"] == [11, 13, 15]
    assert pose["type"] == "POSE_DATA"
    assert len(pose["data"]) == 33
