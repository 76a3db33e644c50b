"""FastAPI application exposing the tracker to a host app over WebSocket and REST."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, Set

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

# Load environment variables from .env file
load_dotenv()

from pose_tracker.bridge.host import FanoutBridge, InMemoryBridge, Message
from pose_tracker.bridge.messages import TrackingUpdate, snapshot_from_query, snapshot_payload
from pose_tracker.pose.estimator import PoseEstimator
from pose_tracker.service.camera import CameraSource, CameraUnavailableError
from pose_tracker.service.runner import TrackerStartupError, TrackingRunner
from pose_tracker.tracking.config import ConfigError
from pose_tracker.tracking.session import TrackingSession

LOGGER = logging.getLogger(__name__)

TRACKING_QUERY_KEYS = ("num_angle", "angleFalse", "angleTrue", "condFalse", "condTrue", "focusPoints")


def _is_feature_enabled(env_var: str, default: bool = False) -> bool:
    value = os.getenv(env_var, str(default)).lower()
    return value in ("true", "1", "yes")


def _env_number(env_var: str, default: float) -> float:
    raw = os.getenv(env_var)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        LOGGER.warning("Ignoring invalid %s=%r; using %s", env_var, raw, default)
        return default


def _camera_device() -> int | str:
    raw = os.getenv("POSEGATE_CAMERA_INDEX", "0")
    return int(raw) if raw.isdigit() else raw


class ConnectionManager:
    """Broadcast outbound notifications to every connected host socket."""

    def __init__(self) -> None:
        self._clients: Set[WebSocket] = set()
        self._lock = asyncio.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._clients.add(websocket)

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._clients.discard(websocket)

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def broadcast_json(self, message: Dict[str, Any]) -> None:
        payload = json.dumps(message, separators=(",", ":"))
        async with self._lock:
            if not self._clients:
                return
            clients = list(self._clients)
            outcomes = await asyncio.gather(*(ws.send_text(payload) for ws in clients), return_exceptions=True)
            for websocket, outcome in zip(clients, outcomes):
                if isinstance(outcome, Exception):
                    LOGGER.info("Dropping host socket after send failure: %s", outcome)
                    self._clients.discard(websocket)

    def post(self, message: Message) -> None:
        """Thread-safe entry point used by the frame consumer thread."""
        loop = self._loop
        if loop is None or loop.is_closed() or not self._clients:
            return
        asyncio.run_coroutine_threadsafe(self.broadcast_json(message), loop)


connection_manager = ConnectionManager()
recent_messages = InMemoryBridge(max_messages=int(_env_number("POSEGATE_MESSAGE_BUFFER", 200)))
SESSION = TrackingSession(FanoutBridge(connection_manager, recent_messages))
RUNNER = TrackingRunner(
    SESSION,
    estimator=PoseEstimator(smoothing_alpha=_env_number("POSEGATE_SMOOTHING_ALPHA", 0.0)),
    camera=CameraSource(
        _camera_device(),
        width=int(_env_number("POSEGATE_FRAME_WIDTH", 640)),
        height=int(_env_number("POSEGATE_FRAME_HEIGHT", 480)),
    ),
)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    connection_manager.bind_loop(asyncio.get_running_loop())
    if _is_feature_enabled("POSEGATE_AUTOSTART"):
        try:
            await run_in_threadpool(RUNNER.start)
        except (TrackerStartupError, CameraUnavailableError) as exc:
            LOGGER.error("Autostart failed: %s", exc)
    try:
        yield
    finally:
        await run_in_threadpool(RUNNER.stop)


app = FastAPI(title="PoseGate Tracker", lifespan=lifespan)


class PauseRequest(BaseModel):
    pause: bool = Field(True, description="True pauses evaluation, False resumes it")


# ============================================================================
# REST endpoints
# ============================================================================

@app.get("/api/status")
async def get_status() -> dict[str, object]:
    return {**RUNNER.status_dict(), "clients": connection_manager.client_count}


@app.get("/api/config")
async def get_config() -> dict[str, object]:
    return snapshot_payload(SESSION.snapshot())


@app.post("/api/config")
async def update_config(payload: TrackingUpdate) -> dict[str, object]:
    try:
        snapshot = SESSION.store.update(payload.config_changes(), focus_points=payload.to_focus_points())
    except ConfigError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return snapshot_payload(snapshot)


@app.post("/api/camera/start")
async def start_camera() -> dict[str, object]:
    try:
        await run_in_threadpool(RUNNER.start)
    except (TrackerStartupError, CameraUnavailableError) as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return RUNNER.status_dict()


@app.post("/api/camera/stop")
async def stop_camera() -> dict[str, object]:
    await run_in_threadpool(RUNNER.stop)
    return RUNNER.status_dict()


@app.post("/api/tracking/pause")
async def pause_tracking(request: PauseRequest) -> dict[str, object]:
    SESSION.set_paused(request.pause)
    return RUNNER.status_dict()


@app.get("/api/messages")
async def list_messages(message_type: str | None = None, limit: int = 50) -> list[dict[str, object]]:
    messages = recent_messages.messages(message_type)
    return messages[-limit:] if limit > 0 else []


# ============================================================================
# Host bridge
# ============================================================================

@app.websocket("/ws")
async def host_bridge(websocket: WebSocket) -> None:
    params = {key: websocket.query_params[key] for key in TRACKING_QUERY_KEYS if key in websocket.query_params}
    if params:
        try:
            SESSION.store.publish(snapshot_from_query(params))
        except ConfigError as exc:
            LOGGER.error("Ignoring invalid tracking parameters: %s", exc)

    await connection_manager.connect(websocket)
    try:
        while True:
            text = await websocket.receive_text()
            await run_in_threadpool(SESSION.handle_message, text)
    except WebSocketDisconnect:
        LOGGER.info("Host socket disconnected")
    finally:
        await connection_manager.disconnect(websocket)


# ============================================================================
# Middleware
# ============================================================================

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Emit simple structured logs for every incoming HTTP request."""
    LOGGER.info(">> %s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
    except Exception as exc:  # pragma: no cover
        LOGGER.exception("!! %s %s failed: %s", request.method, request.url.path, exc)
        raise
    LOGGER.info("<< %s %s %s", request.method, request.url.path, response.status_code)
    return response
