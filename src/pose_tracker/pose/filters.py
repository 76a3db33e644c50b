"""Smoothing utilities for pose landmark sequences."""

from __future__ import annotations

from typing import Optional, Sequence, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - imports only for type hints
    from .estimator import PoseLandmark


def exponential_smooth(
    previous: Sequence[Optional["PoseLandmark"]] | None,
    current: Sequence[Optional["PoseLandmark"]],
    alpha: float,
) -> list[Optional["PoseLandmark"]]:
    """Apply exponential moving average between landmark sequences.

    Entries missing from either frame are passed through from ``current``.
    """
    from .estimator import PoseLandmark

    if not current:
        return []
    if previous is None or len(previous) != len(current) or not (0.0 < alpha < 1.0):
        return list(current)

    beta = 1.0 - alpha
    smoothed: list[Optional[PoseLandmark]] = []
    for prev, curr in zip(previous, current):
        if prev is None or curr is None:
            smoothed.append(curr)
            continue
        smoothed.append(
            PoseLandmark(
                index=curr.index,
                name=curr.name,
                x=alpha * curr.x + beta * prev.x,
                y=alpha * curr.y + beta * prev.y,
                z=alpha * curr.z + beta * prev.z,
                visibility=alpha * curr.visibility + beta * prev.visibility,
            )
        )
    return smoothed


__all__ = ["exponential_smooth"]
