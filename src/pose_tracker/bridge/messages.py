"""Wire models for messages exchanged with the host application."""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Literal, Mapping, Optional, Sequence
from urllib.parse import unquote

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from pose_tracker.tracking.config import ConfigError, ConfigSnapshot, FocusPoint, TrackingConfig
from pose_tracker.tracking.evaluator import EvaluationResult

LOGGER = logging.getLogger(__name__)


class MessageType(str, Enum):
    SET_TRACKING = "SET_TRACKING"
    START_CAMERA = "START_CAMERA"
    STOP_CAMERA = "STOP_CAMERA"
    PAUSE_TRACKING = "PAUSE_TRACKING"
    TRACKING_RESULT = "TRACKING_RESULT"
    POSE_DATA = "POSE_DATA"
    WEBVIEW_LOADED = "WEBVIEW_LOADED"
    CAMERA_ERROR = "CAMERA_ERROR"


class MessageError(ValueError):
    """Raised when an inbound message cannot be decoded."""


class FocusPointPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    points: list[int] = Field(default_factory=list, description="Landmark indices, vertex second")
    threshold: Optional[float] = Field(None, description="Angle threshold in degrees")
    # Any operator is stored; only '>' and '<' can ever be met.
    condition: Optional[Any] = Field(None, description="'>' or '<'")
    name: Optional[str] = None

    def to_focus_point(self) -> FocusPoint:
        return FocusPoint(
            points=tuple(self.points),
            threshold=self.threshold,
            condition=None if self.condition is None else str(self.condition),
            name=self.name,
        )


def _focus_points_from(items: Sequence[Any]) -> list[FocusPoint]:
    """Convert rules one by one; a malformed rule is dropped on its own."""
    focus_points: list[FocusPoint] = []
    for position, item in enumerate(items):
        try:
            payload = FocusPointPayload.model_validate(item)
        except ValidationError as exc:
            LOGGER.warning("Skipping malformed focus point #%d: %s", position, exc.errors())
            continue
        focus_points.append(payload.to_focus_point())
    return focus_points


class TrackingUpdate(BaseModel):
    """Payload of SET_TRACKING; accepts camelCase keys as well as field names."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    num_angle_rules: Optional[int] = Field(None, alias="num_angle", ge=0)
    angle_false_deg: Optional[float] = Field(None, alias="angleFalse", ge=0.0, le=360.0)
    angle_true_deg: Optional[float] = Field(None, alias="angleTrue", ge=0.0, le=360.0)
    cond_false: Optional[Literal["<", ">"]] = Field(None, alias="condFalse")
    cond_true: Optional[Literal["<", ">"]] = Field(None, alias="condTrue")
    focus_points: Optional[list[Any]] = Field(None, alias="focusPoints")

    def config_changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True, exclude={"focus_points"})

    def to_focus_points(self) -> Optional[list[FocusPoint]]:
        if self.focus_points is None:
            return None
        return _focus_points_from(self.focus_points)


class InboundMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: MessageType
    data: Optional[dict[str, Any]] = None
    pause: bool = True

    def tracking_update(self) -> TrackingUpdate:
        return TrackingUpdate.model_validate(self.data or {})


class TrackingResultPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    conditions_met: bool = Field(alias="conditionsMet")
    angle: float
    threshold: float
    name: Optional[str] = None
    point_indices: list[int] = Field(default_factory=list, alias="pointIndices")
    rule_threshold: Optional[float] = Field(None, alias="ruleThreshold")

    @classmethod
    def from_result(cls, result: EvaluationResult) -> "TrackingResultPayload":
        return cls(
            conditions_met=result.conditions_met,
            angle=result.angle,
            threshold=result.threshold,
            name=result.name,
            point_indices=list(result.point_indices),
            rule_threshold=result.rule_threshold,
        )


def decode_inbound(raw: str | bytes | Mapping[str, Any]) -> InboundMessage:
    """Parse a JSON string or mapping into an ``InboundMessage``."""
    try:
        if isinstance(raw, (str, bytes)):
            return InboundMessage.model_validate_json(raw)
        return InboundMessage.model_validate(dict(raw))
    except ValidationError as exc:
        raise MessageError(f"Invalid host message: {exc.errors()}") from exc


def tracking_result_message(result: EvaluationResult) -> dict[str, Any]:
    payload = TrackingResultPayload.from_result(result)
    return {"type": MessageType.TRACKING_RESULT.value, "data": payload.model_dump(by_alias=True)}


def pose_data_message(landmarks: Sequence[object]) -> dict[str, Any]:
    data = [landmark.as_dict() if landmark is not None else None for landmark in landmarks]
    return {"type": MessageType.POSE_DATA.value, "data": data}


def ready_message() -> dict[str, Any]:
    return {"type": MessageType.WEBVIEW_LOADED.value}


def camera_error_message(error: str) -> dict[str, Any]:
    return {"type": MessageType.CAMERA_ERROR.value, "error": error}


def snapshot_payload(snapshot: ConfigSnapshot) -> dict[str, Any]:
    focus_points = None
    if snapshot.focus_points is not None:
        focus_points = [
            {
                "points": list(point.points),
                "threshold": point.threshold,
                "condition": point.condition,
                "name": point.name,
            }
            for point in snapshot.focus_points
        ]
    return {**snapshot.config.as_dict(), "focusPoints": focus_points, "version": snapshot.version}


def snapshot_from_query(params: Mapping[str, str]) -> ConfigSnapshot:
    """Build the initial snapshot from URL query parameters.

    ``focusPoints`` is a URL-encoded JSON list. A focus point parameter that
    cannot be parsed is logged and ignored; invalid threshold values raise
    ``ConfigError``.
    """
    fields = {key: params[key] for key in ("num_angle", "angleFalse", "angleTrue", "condFalse", "condTrue") if key in params}
    try:
        update = TrackingUpdate.model_validate(fields)
    except ValidationError as exc:
        raise ConfigError(f"Invalid tracking parameters: {exc.errors()}") from exc
    config = TrackingConfig().merged(update.config_changes())

    focus_points: Optional[tuple[FocusPoint, ...]] = None
    raw_points = params.get("focusPoints")
    if raw_points:
        try:
            decoded = json.loads(unquote(raw_points))
            parsed = TrackingUpdate.model_validate({"focusPoints": decoded}).to_focus_points()
            focus_points = tuple(parsed or ())
            LOGGER.info("Loaded %d focus point(s) from query parameters", len(focus_points))
        except (ValueError, ValidationError) as exc:
            LOGGER.error("Error parsing focusPoints from query parameters: %s", exc)
    return ConfigSnapshot(config=config, focus_points=focus_points)


__all__ = [
    "FocusPointPayload",
    "InboundMessage",
    "MessageError",
    "MessageType",
    "TrackingResultPayload",
    "TrackingUpdate",
    "camera_error_message",
    "decode_inbound",
    "pose_data_message",
    "ready_message",
    "snapshot_from_query",
    "snapshot_payload",
    "tracking_result_message",
]
