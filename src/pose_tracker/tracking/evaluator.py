"""Focus-point evaluation over a single frame's landmarks."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

from pose_tracker.features.geometry import angle_at
from pose_tracker.pose.landmarks import LEFT_ELBOW_POINTS, RIGHT_ELBOW_POINTS

from .config import Comparison, ConfigSnapshot, FocusPoint, TrackingConfig

LOGGER = logging.getLogger(__name__)

DEFAULT_RULE_NAME = "elbow"
UNNAMED_RULE = "unnamed"


@dataclass(frozen=True, slots=True)
class EvaluationResult:
    """Outcome of one frame.

    ``threshold`` is the configured ``angle_true_deg`` reported to the host;
    ``rule_threshold`` is the value the comparison actually used.
    """

    angle: float
    conditions_met: bool
    threshold: float
    name: Optional[str] = None
    point_indices: Tuple[int, ...] = ()
    matched: bool = True
    rule_threshold: Optional[float] = None

    @classmethod
    def degenerate(cls, config: TrackingConfig) -> "EvaluationResult":
        """Result reported when no rule produced an angle."""
        return cls(
            angle=0.0,
            conditions_met=False,
            threshold=config.angle_true_deg,
            matched=False,
        )


def condition_holds(angle: float, threshold: float, condition: str) -> bool:
    """Compare ``angle`` with ``threshold``; unknown operators never hold."""
    if condition == Comparison.GREATER_THAN.value:
        return angle > threshold
    if condition == Comparison.LESS_THAN.value:
        return angle < threshold
    return False


def _landmark_at(landmarks: Sequence[object], index: int) -> object | None:
    if index < 0 or index >= len(landmarks):
        return None
    return landmarks[index]


def _angle_for(landmarks: Sequence[object], points: Sequence[int]) -> Optional[float]:
    p1, p2, p3 = (_landmark_at(landmarks, idx) for idx in points[:3])
    return angle_at(p1, p2, p3)


def evaluate_focus_point(
    landmarks: Sequence[object],
    focus_point: FocusPoint,
    config: TrackingConfig,
) -> Optional[EvaluationResult]:
    """Evaluate one rule, or return ``None`` when it cannot be computed."""
    if not landmarks or not focus_point.is_valid:
        return None
    angle = _angle_for(landmarks, focus_point.points)
    if angle is None:
        return None

    rule_threshold = focus_point.threshold if focus_point.threshold is not None else config.angle_true_deg
    condition = focus_point.condition if focus_point.condition is not None else config.cond_true.value
    return EvaluationResult(
        angle=angle,
        conditions_met=condition_holds(angle, rule_threshold, condition),
        threshold=config.angle_true_deg,
        rule_threshold=rule_threshold,
        name=focus_point.name or UNNAMED_RULE,
        point_indices=tuple(focus_point.points[:3]),
    )


def evaluate_focus_points(
    landmarks: Sequence[object],
    focus_points: Iterable[FocusPoint],
    config: TrackingConfig,
) -> list[EvaluationResult]:
    """Evaluate every rule in order, skipping the ones that cannot be computed."""
    results: list[EvaluationResult] = []
    for focus_point in focus_points:
        result = evaluate_focus_point(landmarks, focus_point, config)
        if result is None:
            LOGGER.debug("Skipping focus point %s: landmarks unavailable", focus_point.name or focus_point.points)
            continue
        results.append(result)
    return results


def evaluate_default_elbow(
    landmarks: Sequence[object],
    config: TrackingConfig,
) -> Optional[EvaluationResult]:
    """Left elbow angle, falling back to the right elbow when the left is missing."""
    if not landmarks:
        return None
    for points in (LEFT_ELBOW_POINTS, RIGHT_ELBOW_POINTS):
        angle = _angle_for(landmarks, points)
        if angle is None:
            continue
        return EvaluationResult(
            angle=angle,
            conditions_met=condition_holds(angle, config.angle_true_deg, config.cond_true.value),
            threshold=config.angle_true_deg,
            rule_threshold=config.angle_true_deg,
            name=DEFAULT_RULE_NAME,
            point_indices=points,
        )
    return None


def evaluate_frame(landmarks: Sequence[object], snapshot: ConfigSnapshot) -> EvaluationResult:
    """Select the reportable result for one frame.

    With custom focus points, the first rule (in configured order) whose angle
    could be computed wins and the rest are discarded. Without them the
    default elbow rule applies. If nothing can be computed a degenerate,
    unmatched result is returned instead of raising.
    """
    config = snapshot.config
    if snapshot.has_focus_points:
        results = evaluate_focus_points(landmarks, snapshot.focus_points or (), config)
        selected = results[0] if results else None
    else:
        selected = evaluate_default_elbow(landmarks, config)

    if selected is None:
        return EvaluationResult.degenerate(config)
    return selected


__all__ = [
    "DEFAULT_RULE_NAME",
    "EvaluationResult",
    "UNNAMED_RULE",
    "condition_holds",
    "evaluate_default_elbow",
    "evaluate_focus_point",
    "evaluate_focus_points",
    "evaluate_frame",
]
