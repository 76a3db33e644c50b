"""BlazePose landmark layout used by MediaPipe Pose."""

from __future__ import annotations

from typing import Dict, Tuple

POSE_LANDMARK_NAMES: Tuple[str, ...] = (
    "nose",
    "left_eye_inner",
    "left_eye",
    "left_eye_outer",
    "right_eye_inner",
    "right_eye",
    "right_eye_outer",
    "left_ear",
    "right_ear",
    "mouth_left",
    "mouth_right",
    "left_shoulder",
    "right_shoulder",
    "left_elbow",
    "right_elbow",
    "left_wrist",
    "right_wrist",
    "left_pinky",
    "right_pinky",
    "left_index",
    "right_index",
    "left_thumb",
    "right_thumb",
    "left_hip",
    "right_hip",
    "left_knee",
    "right_knee",
    "left_ankle",
    "right_ankle",
    "left_heel",
    "right_heel",
    "left_foot_index",
    "right_foot_index",
)

POSE_LANDMARK_COUNT = len(POSE_LANDMARK_NAMES)

LANDMARK_INDEX: Dict[str, int] = {name: idx for idx, name in enumerate(POSE_LANDMARK_NAMES)}

# (shoulder, elbow, wrist) triples; the vertex is the elbow.
LEFT_ELBOW_POINTS: Tuple[int, int, int] = (
    LANDMARK_INDEX["left_shoulder"],
    LANDMARK_INDEX["left_elbow"],
    LANDMARK_INDEX["left_wrist"],
)
RIGHT_ELBOW_POINTS: Tuple[int, int, int] = (
    LANDMARK_INDEX["right_shoulder"],
    LANDMARK_INDEX["right_elbow"],
    LANDMARK_INDEX["right_wrist"],
)


def landmark_name(index: int) -> str:
    if 0 <= index < POSE_LANDMARK_COUNT:
        return POSE_LANDMARK_NAMES[index]
    return f"landmark_{index}"


__all__ = [
    "LANDMARK_INDEX",
    "LEFT_ELBOW_POINTS",
    "POSE_LANDMARK_COUNT",
    "POSE_LANDMARK_NAMES",
    "RIGHT_ELBOW_POINTS",
    "landmark_name",
]
