"""Pose estimation interfaces."""

from .estimator import LandmarkFrame, PoseEstimator, PoseLandmark
from .landmarks import LANDMARK_INDEX, POSE_LANDMARK_COUNT, POSE_LANDMARK_NAMES

__all__ = [
    "LANDMARK_INDEX",
    "LandmarkFrame",
    "POSE_LANDMARK_COUNT",
    "POSE_LANDMARK_NAMES",
    "PoseEstimator",
    "PoseLandmark",
]
