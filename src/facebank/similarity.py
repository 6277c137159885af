"""Descriptor similarity metrics.

All metrics are symmetric and return 0.0 for vectors of different length
instead of raising.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from facebank.config import SimilarityWeights
from facebank.types import Descriptor, DescriptorKind


def _pair(a, b) -> Optional[tuple[np.ndarray, np.ndarray]]:
    va = np.asarray(a, dtype=np.float64).reshape(-1)
    vb = np.asarray(b, dtype=np.float64).reshape(-1)
    if va.shape[0] != vb.shape[0] or va.shape[0] == 0:
        return None
    return va, vb


def cosine_similarity(a, b) -> float:
    """dot(a, b) / (|a| |b|); 0.0 if either norm is 0."""
    pair = _pair(a, b)
    if pair is None:
        return 0.0
    va, vb = pair
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def euclidean_similarity(a, b) -> float:
    """1 / (1 + L2 distance)."""
    pair = _pair(a, b)
    if pair is None:
        return 0.0
    va, vb = pair
    return 1.0 / (1.0 + float(np.linalg.norm(va - vb)))


def manhattan_similarity(a, b) -> float:
    """1 / (1 + L1 distance)."""
    pair = _pair(a, b)
    if pair is None:
        return 0.0
    va, vb = pair
    return 1.0 / (1.0 + float(np.abs(va - vb).sum()))


def combined_similarity(a, b, weights: Optional[SimilarityWeights] = None) -> float:
    """Weighted cosine + euclidean + manhattan similarity (legacy path)."""
    if _pair(a, b) is None:
        return 0.0
    w = weights or SimilarityWeights()
    return (
        w.cosine * cosine_similarity(a, b)
        + w.euclidean * euclidean_similarity(a, b)
        + w.manhattan * manhattan_similarity(a, b)
    )


def descriptor_similarity(
    a: Descriptor,
    b: Descriptor,
    weights: Optional[SimilarityWeights] = None,
) -> float:
    """Variant-aware similarity.

    Embeddings compare by cosine alone, legacy descriptors by the combined
    metric. Descriptors of different kinds score 0.0.
    """
    if a.kind is not b.kind:
        return 0.0
    if a.kind is DescriptorKind.EMBEDDING:
        return cosine_similarity(a.values, b.values)
    return combined_similarity(a.values, b.values, weights)


__all__ = [
    "cosine_similarity",
    "euclidean_similarity",
    "manhattan_similarity",
    "combined_similarity",
    "descriptor_similarity",
]
