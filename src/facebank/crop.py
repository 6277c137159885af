"""Crop utilities for detector adapters."""

from __future__ import annotations

from typing import Optional

import cv2
import numpy as np

from facebank.types import BoundingBox


def face_crop(
    image: np.ndarray,
    bbox: BoundingBox,
    padding: float = 0.2,
    output_size: Optional[int] = None,
) -> tuple[np.ndarray, BoundingBox]:
    """Extract a padded face crop from a full frame.

    Args:
        image: Full frame (H, W, 3) RGB.
        bbox: Face bounding box in frame pixels.
        padding: Fraction of the box width/height added on each side.
        output_size: Resize the crop to this square size when given.

    Returns:
        Tuple of (crop, actual_box):
          - crop: The padded region. The whole frame if the clamped box is empty.
          - actual_box: Clamped box used for the crop.
    """
    h, w = image.shape[:2]
    pad_x = int(bbox.width * padding)
    pad_y = int(bbox.height * padding)

    x1 = max(0, int(bbox.left) - pad_x)
    y1 = max(0, int(bbox.top) - pad_y)
    x2 = min(w, int(bbox.right) + pad_x)
    y2 = min(h, int(bbox.bottom) + pad_y)

    if x2 <= x1 or y2 <= y1:
        crop = image.copy()
        actual_box = BoundingBox(0, 0, w, h)
    else:
        crop = image[y1:y2, x1:x2].copy()
        actual_box = BoundingBox(x1, y1, x2, y2)

    if output_size is not None and crop.size > 0:
        crop = cv2.resize(crop, (output_size, output_size))
    return crop, actual_box


__all__ = ["face_crop"]
