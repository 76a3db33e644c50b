"""Tracking configuration and the snapshot store shared with the frame loop."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from enum import Enum
from threading import RLock
from typing import Any, Mapping, Optional, Sequence, Tuple

LOGGER = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when a tracking configuration value violates its constraints."""


class Comparison(str, Enum):
    GREATER_THAN = ">"
    LESS_THAN = "<"

    @classmethod
    def parse(cls, value: "Comparison | str") -> "Comparison":
        try:
            return cls(value)
        except ValueError as exc:
            raise ConfigError(f"Unsupported comparison operator: {value!r}") from exc


@dataclass(frozen=True, slots=True)
class FocusPoint:
    """Angle rule over three landmark indices; the vertex is ``points[1]``.

    ``condition`` is kept as the raw operator string so that unknown operators
    evaluate to "not met" instead of failing the whole rule set.
    """

    points: Tuple[int, ...]
    threshold: Optional[float] = None
    condition: Optional[str] = None
    name: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return len(self.points) >= 3


def _check_degrees(label: str, value: float) -> float:
    try:
        degrees = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{label} must be a number, got {value!r}") from exc
    if not math.isfinite(degrees) or not 0.0 <= degrees <= 360.0:
        raise ConfigError(f"{label} must be within [0, 360] degrees, got {value!r}")
    return degrees


@dataclass(frozen=True, slots=True)
class TrackingConfig:
    """Global thresholds and operators for the "true" and "false" states."""

    num_angle_rules: int = 1
    angle_false_deg: float = 120.0
    angle_true_deg: float = 150.0
    cond_false: Comparison = Comparison.LESS_THAN
    cond_true: Comparison = Comparison.GREATER_THAN

    def __post_init__(self) -> None:
        object.__setattr__(self, "angle_false_deg", _check_degrees("angle_false_deg", self.angle_false_deg))
        object.__setattr__(self, "angle_true_deg", _check_degrees("angle_true_deg", self.angle_true_deg))
        object.__setattr__(self, "cond_false", Comparison.parse(self.cond_false))
        object.__setattr__(self, "cond_true", Comparison.parse(self.cond_true))
        if int(self.num_angle_rules) < 0:
            raise ConfigError(f"num_angle_rules must be non-negative, got {self.num_angle_rules!r}")
        object.__setattr__(self, "num_angle_rules", int(self.num_angle_rules))

    def merged(self, changes: Mapping[str, Any]) -> "TrackingConfig":
        """Return a copy with ``changes`` applied; unknown keys are ignored."""
        known = {key: value for key, value in changes.items() if key in _CONFIG_FIELDS}
        if not known:
            return self
        return replace(self, **known)

    def as_dict(self) -> dict[str, object]:
        return {
            "num_angle": self.num_angle_rules,
            "angleFalse": self.angle_false_deg,
            "angleTrue": self.angle_true_deg,
            "condFalse": self.cond_false.value,
            "condTrue": self.cond_true.value,
        }


_CONFIG_FIELDS = frozenset(TrackingConfig.__dataclass_fields__)


@dataclass(frozen=True, slots=True)
class ConfigSnapshot:
    """Immutable view of the configuration read by one frame evaluation."""

    config: TrackingConfig = field(default_factory=TrackingConfig)
    focus_points: Optional[Tuple[FocusPoint, ...]] = None
    version: int = 0

    @property
    def has_focus_points(self) -> bool:
        return bool(self.focus_points)


class ConfigStore:
    """Publishes whole snapshots; readers never observe a partial update."""

    def __init__(self, initial: ConfigSnapshot | None = None) -> None:
        self._snapshot = initial or ConfigSnapshot()
        self._lock = RLock()

    def snapshot(self) -> ConfigSnapshot:
        return self._snapshot

    def publish(self, snapshot: ConfigSnapshot) -> ConfigSnapshot:
        with self._lock:
            self._snapshot = replace(snapshot, version=self._snapshot.version + 1)
            return self._snapshot

    def update(
        self,
        changes: Mapping[str, Any] | None = None,
        *,
        focus_points: Sequence[FocusPoint] | None = None,
    ) -> ConfigSnapshot:
        """Merge config ``changes`` and, when given, replace the focus points wholesale.

        Raises ``ConfigError`` without publishing if the merged config is invalid.
        """
        with self._lock:
            current = self._snapshot
            config = current.config.merged(changes or {})
            points = current.focus_points if focus_points is None else tuple(focus_points)
            updated = self.publish(ConfigSnapshot(config=config, focus_points=points))
        LOGGER.info(
            "Tracking config v%d published: %s, %d focus point(s)",
            updated.version,
            updated.config.as_dict(),
            len(updated.focus_points or ()),
        )
        return updated


__all__ = [
    "Comparison",
    "ConfigError",
    "ConfigSnapshot",
    "ConfigStore",
    "FocusPoint",
    "TrackingConfig",
]
