"""Service-layer helpers running live camera tracking."""

from .camera import CameraSource, CameraUnavailableError, CapturedFrame
from .runner import TrackerStartupError, TrackingRunner

__all__ = [
    "CameraSource",
    "CameraUnavailableError",
    "CapturedFrame",
    "TrackerStartupError",
    "TrackingRunner",
]
