"""Geometric feature helpers for pose landmarks."""

from .geometry import angle_at, normalize_angle

__all__ = ["angle_at", "normalize_angle"]
