"""Angle rule evaluation and tracking session orchestration."""

from .channel import ChannelClosed, LatestFrameChannel
from .config import (
    Comparison,
    ConfigError,
    ConfigSnapshot,
    ConfigStore,
    FocusPoint,
    TrackingConfig,
)
from .evaluator import (
    EvaluationResult,
    evaluate_default_elbow,
    evaluate_focus_point,
    evaluate_frame,
)

__all__ = [
    "ChannelClosed",
    "Comparison",
    "ConfigError",
    "ConfigSnapshot",
    "ConfigStore",
    "EvaluationResult",
    "FocusPoint",
    "LatestFrameChannel",
    "TrackingConfig",
    "evaluate_default_elbow",
    "evaluate_focus_point",
    "evaluate_frame",
]
