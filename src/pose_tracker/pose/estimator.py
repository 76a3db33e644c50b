"""Pose estimation over live video frames."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

import cv2
import numpy as np

from .filters import exponential_smooth
from .landmarks import landmark_name

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PoseLandmark:
    """Normalized landmark coordinates."""

    index: int
    name: str
    x: float
    y: float
    z: float = 0.0
    visibility: float = 1.0

    def as_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z, "visibility": self.visibility}


@dataclass(slots=True)
class LandmarkFrame:
    """Landmarks detected on a single video frame.

    ``landmarks`` is either empty (no pose found) or one entry per body
    landmark, where entries below the visibility cut-off are ``None``.
    """

    timestamp_seconds: float
    landmarks: List[Optional[PoseLandmark]] = field(default_factory=list)
    detection_score: float = 0.0

    @property
    def detected(self) -> bool:
        return any(landmark is not None for landmark in self.landmarks)


class PoseEstimator:
    """Run streaming pose inference via MediaPipe or injected backends."""

    def __init__(
        self,
        *,
        engine_factory: Callable[[], object] | None = None,
        model_complexity: int = 0,
        smooth_landmarks: bool = True,
        min_detection_confidence: float = 0.6,
        min_tracking_confidence: float = 0.5,
        min_visibility: float = 0.0,
        smoothing_alpha: float = 0.0,
        landmark_names: Optional[Sequence[str]] = None,
    ) -> None:
        self._engine_factory = engine_factory
        self.model_complexity = int(model_complexity)
        self.smooth_landmarks = smooth_landmarks
        self.min_detection_confidence = float(min_detection_confidence)
        self.min_tracking_confidence = float(min_tracking_confidence)
        self.min_visibility = float(min_visibility)
        self.smoothing_alpha = float(smoothing_alpha)
        self._landmark_names = list(landmark_names) if landmark_names else None
        self._engine: Optional[object] = None
        self._previous: Optional[List[Optional[PoseLandmark]]] = None

    # --------------------------------------------------------------------- #
    # Engine lifecycle
    # --------------------------------------------------------------------- #
    def _create_mediapipe_engine(self) -> object:
        try:
            import mediapipe as mp
        except ModuleNotFoundError as exc:  # pragma: no cover - requires optional dependency
            raise ModuleNotFoundError(
                "mediapipe is required for PoseEstimator. Install it with `pip install mediapipe` "
                "or inject a custom engine via `engine_factory`."
            ) from exc

        self._landmark_names = [lm.name.lower() for lm in mp.solutions.pose.PoseLandmark]
        return mp.solutions.pose.Pose(
            static_image_mode=False,
            model_complexity=self.model_complexity,
            smooth_landmarks=self.smooth_landmarks,
            enable_segmentation=False,
            min_detection_confidence=self.min_detection_confidence,
            min_tracking_confidence=self.min_tracking_confidence,
        )

    @property
    def is_ready(self) -> bool:
        return self._engine is not None

    def load(self) -> None:
        """Initialise the underlying pose engine."""
        if self._engine is not None:
            return
        factory = self._engine_factory or self._create_mediapipe_engine
        self._engine = factory()
        LOGGER.info("Pose engine loaded (model_complexity=%s)", self.model_complexity)

    def close(self) -> None:
        """Release engine resources."""
        if self._engine is None:
            return
        close_fn = getattr(self._engine, "close", None)
        if callable(close_fn):
            close_fn()
        self._engine = None
        self._previous = None

    # --------------------------------------------------------------------- #
    # Inference helpers
    # --------------------------------------------------------------------- #
    def _name_for(self, index: int) -> str:
        if self._landmark_names is not None and index < len(self._landmark_names):
            return self._landmark_names[index]
        return landmark_name(index)

    def _landmarks_from_result(self, result) -> List[Optional[PoseLandmark]]:
        pose_landmarks = getattr(result, "pose_landmarks", None)
        if pose_landmarks is None:
            return []
        raw = getattr(pose_landmarks, "landmark", None)
        if not raw:
            return []

        converted: list[Optional[PoseLandmark]] = []
        for idx, landmark in enumerate(raw):
            visibility = float(getattr(landmark, "visibility", 0.0))
            if visibility < self.min_visibility:
                converted.append(None)
                continue
            converted.append(
                PoseLandmark(
                    index=idx,
                    name=self._name_for(idx),
                    x=float(landmark.x),
                    y=float(landmark.y),
                    z=float(getattr(landmark, "z", 0.0)),
                    visibility=visibility,
                )
            )
        return converted

    # --------------------------------------------------------------------- #
    # Public API
    # --------------------------------------------------------------------- #
    def process_rgb(self, rgb: np.ndarray, *, timestamp: float = 0.0) -> LandmarkFrame:
        """Run pose inference on an RGB image."""
        if self._engine is None:
            raise RuntimeError("Pose engine is not loaded; call load() first.")
        process_fn = getattr(self._engine, "process", None)
        if not callable(process_fn):
            raise AttributeError("Pose engine does not expose a callable `process` method.")

        landmarks = self._landmarks_from_result(process_fn(rgb))
        if landmarks and self._previous and 0.0 < self.smoothing_alpha < 1.0:
            landmarks = exponential_smooth(self._previous, landmarks, self.smoothing_alpha)
        self._previous = landmarks if landmarks else None

        visible = [lm.visibility for lm in landmarks if lm is not None]
        detection_score = float(np.mean(visible)) if visible else 0.0
        return LandmarkFrame(timestamp, landmarks, detection_score)

    def process_frame(self, image: np.ndarray, *, timestamp: float = 0.0) -> LandmarkFrame:
        """Run pose inference on a BGR frame as delivered by OpenCV."""
        rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        return self.process_rgb(rgb, timestamp=timestamp)


__all__ = ["LandmarkFrame", "PoseEstimator", "PoseLandmark"]
