"""Legacy descriptor codec: LBP ‖ HOG ‖ geometric, z-score normalized."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from facebank.features.geometry import geometric_features
from facebank.features.texture import WORKING_SIZE, hog_histogram, lbp_histogram, working_image
from facebank.types import (
    GEOMETRIC_SIZE,
    HOG_SIZE,
    LBP_SIZE,
    Descriptor,
    Landmarks,
)

logger = logging.getLogger(__name__)


def zscore(values: np.ndarray) -> np.ndarray:
    """Subtract the mean and divide by the population std.

    A constant vector (std 0) is returned unnormalized.
    """
    arr = np.asarray(values, dtype=np.float64)
    std = float(arr.std())
    if std > 0:
        return ((arr - arr.mean()) / std).astype(np.float32)
    return arr.astype(np.float32)


@dataclass
class CodecOutput:
    """Result of one legacy extraction.

    Attributes:
        descriptor: The 420-d legacy descriptor.
        fallbacks: Blocks replaced by their zero default ("lbp", "hog",
            "geometric"), in extraction order.
    """

    descriptor: Descriptor
    fallbacks: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.fallbacks)


class DescriptorCodec:
    """Classical face descriptor built from texture and landmark geometry.

    Args:
        working_size: Square resolution the crop is resized to.

    Example:
        >>> codec = DescriptorCodec()
        >>> out = codec.extract(face_rgb, landmarks)
        >>> len(out.descriptor)
        420
    """

    def __init__(self, working_size: int = WORKING_SIZE):
        self.working_size = working_size

    def extract(self, image: Optional[np.ndarray], landmarks: Optional[Landmarks]) -> CodecOutput:
        fallbacks: list[str] = []

        gray = working_image(image, self.working_size)

        lbp = lbp_histogram(gray)
        if lbp is None or lbp.shape[0] != LBP_SIZE:
            fallbacks.append("lbp")
            lbp = np.zeros(LBP_SIZE, dtype=np.float32)

        hog = hog_histogram(gray)
        if hog is None or hog.shape[0] != HOG_SIZE:
            fallbacks.append("hog")
            hog = np.zeros(HOG_SIZE, dtype=np.float32)

        geometric = geometric_features(landmarks)
        if geometric is None:
            fallbacks.append("geometric")
            geometric = np.zeros(GEOMETRIC_SIZE, dtype=np.float32)

        if fallbacks:
            logger.warning("Legacy extraction used zero blocks for %s", ", ".join(fallbacks))

        combined = np.concatenate([lbp, hog, geometric])
        return CodecOutput(descriptor=Descriptor.legacy(zscore(combined)), fallbacks=fallbacks)

    def describe(self, image: Optional[np.ndarray], landmarks: Optional[Landmarks]) -> Descriptor:
        """Shortcut returning only the descriptor."""
        return self.extract(image, landmarks).descriptor


__all__ = ["zscore", "CodecOutput", "DescriptorCodec"]
