"""Scale-normalized geometric ratios from ordered landmark points.

Indices follow the detector order in ``facebank.types.LANDMARK_NAMES``:
0/1 eyes, 2 nose base, 3/4 mouth corners, 5 mouth bottom.
A ratio whose landmark is missing is skipped; the block is zero-padded.
"""

from __future__ import annotations

import math
from typing import Optional

import numpy as np

from facebank.types import GEOMETRIC_SIZE, Landmarks

MIN_POINTS = 3
SYMMETRY_SIZE = 5
CENTER_SIZE = 5

LEFT_EYE, RIGHT_EYE, NOSE, MOUTH_LEFT, MOUTH_RIGHT = range(5)


def _distance(p: tuple[float, float], q: tuple[float, float]) -> float:
    return math.hypot(p[0] - q[0], p[1] - q[1])


def _pad(values: list[float], size: int) -> list[float]:
    return (values + [0.0] * size)[:size]


def symmetry_features(landmarks: Landmarks) -> list[float]:
    """Vertical eye/mouth offsets and horizontal eye-centre symmetry (5 values)."""
    pts, box = landmarks.points, landmarks.bbox
    features: list[float] = []
    if len(pts) > RIGHT_EYE:
        features.append(abs(pts[LEFT_EYE][1] - pts[RIGHT_EYE][1]) / box.height)
    if len(pts) > MOUTH_RIGHT:
        features.append(abs(pts[MOUTH_LEFT][1] - pts[MOUTH_RIGHT][1]) / box.height)
    if len(pts) > RIGHT_EYE:
        left = abs(pts[LEFT_EYE][0] - box.center_x)
        right = abs(pts[RIGHT_EYE][0] - box.center_x)
        features.append(abs(left - right) / box.width)
    return _pad(features, SYMMETRY_SIZE)


def center_features(landmarks: Landmarks) -> list[float]:
    """Distance of the first five points to the bbox centre over bbox width."""
    box = landmarks.bbox
    center = (box.center_x, box.center_y)
    features = [_distance(p, center) / box.width for p in landmarks.points[:CENTER_SIZE]]
    return _pad(features, CENTER_SIZE)


def geometric_features(landmarks: Optional[Landmarks]) -> Optional[np.ndarray]:
    """Compute the 20-value geometric block.

    Returns:
        Array of exactly ``GEOMETRIC_SIZE`` values (all zero with fewer than
        three points), or None when the bounding box is degenerate.
    """
    if landmarks is None or len(landmarks) < MIN_POINTS:
        return np.zeros(GEOMETRIC_SIZE, dtype=np.float32)

    pts, box = landmarks.points, landmarks.bbox
    if not (box.width > 0 and box.height > 0):
        return None

    features: list[float] = []
    if len(pts) > RIGHT_EYE:
        features.append(_distance(pts[LEFT_EYE], pts[RIGHT_EYE]) / box.width)
    if len(pts) > MOUTH_LEFT:
        features.append(_distance(pts[NOSE], pts[MOUTH_LEFT]) / box.height)
    features.append(box.width / box.height)
    features.extend(symmetry_features(landmarks))
    features.extend(center_features(landmarks))
    if len(pts) > MOUTH_RIGHT:
        features.append(_distance(pts[MOUTH_LEFT], pts[MOUTH_RIGHT]) / box.width)

    block = np.asarray(_pad(features, GEOMETRIC_SIZE), dtype=np.float32)
    if not np.all(np.isfinite(block)):
        return None
    return block


__all__ = [
    "MIN_POINTS",
    "symmetry_features",
    "center_features",
    "geometric_features",
]
