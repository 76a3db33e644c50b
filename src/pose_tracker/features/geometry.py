"""Three-point joint angle computation."""

from __future__ import annotations

import math
from typing import Optional, Sequence, Union

Point = Union[Sequence[float], object]


def _xy(point: Point) -> tuple[float, float]:
    if hasattr(point, "x") and hasattr(point, "y"):
        return float(point.x), float(point.y)
    return float(point[0]), float(point[1])


def normalize_angle(raw_degrees: float) -> float:
    """Reflect an absolute angular difference into [0, 180]."""
    magnitude = abs(raw_degrees)
    if magnitude > 180.0:
        magnitude = 360.0 - magnitude
    return magnitude


def angle_at(p1: Optional[Point], p2: Optional[Point], p3: Optional[Point]) -> Optional[float]:
    """Angle in degrees at vertex ``p2`` between the rays towards ``p1`` and ``p3``.

    Points may be landmark objects exposing ``x``/``y`` or plain ``(x, y)``
    sequences. Returns ``None`` when any point is missing.

    The ray directions are compared with ``atan2`` rather than the law of
    cosines; the absolute difference is reflected so the result always lies in
    [0, 180].
    """
    if p1 is None or p2 is None or p3 is None:
        return None

    x1, y1 = _xy(p1)
    x2, y2 = _xy(p2)
    x3, y3 = _xy(p3)
    radians = math.atan2(y3 - y2, x3 - x2) - math.atan2(y1 - y2, x1 - x2)
    return normalize_angle(radians * 180.0 / math.pi)


__all__ = ["angle_at", "normalize_angle"]
