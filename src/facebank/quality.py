"""Quality gate for descriptors and detector output."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from facebank.config import DetectionLimits, QualityConfig
from facebank.types import Descriptor, DescriptorKind, DetectedFace


@dataclass(frozen=True)
class QualityReport:
    """Outcome of a quality check.

    Attributes:
        accepted: Whether the descriptor may be stored or matched.
        reason: Short rejection reason, empty when accepted.
        value: The measured variance (legacy) or L2 norm (embedding).
    """

    accepted: bool
    reason: str = ""
    value: float = 0.0


class QualityGate:
    """Rejects degenerate descriptors before they reach the gallery.

    Legacy descriptors must be finite and have population variance above
    ``min_variance``. Embeddings must be finite with an L2 norm inside
    ``[norm_min, norm_max]``.
    """

    def __init__(self, config: Optional[QualityConfig] = None):
        self.config = config or QualityConfig()

    def assess(self, descriptor: Descriptor) -> QualityReport:
        values = descriptor.values
        if not np.all(np.isfinite(values)):
            return QualityReport(accepted=False, reason="non-finite values")

        if descriptor.kind is DescriptorKind.LEGACY:
            variance = float(np.var(values.astype(np.float64)))
            if variance <= self.config.min_variance:
                return QualityReport(
                    accepted=False, reason=f"variance {variance:.5f} too low", value=variance,
                )
            return QualityReport(accepted=True, value=variance)

        norm = float(np.linalg.norm(values.astype(np.float64)))
        if not (self.config.norm_min <= norm <= self.config.norm_max):
            return QualityReport(
                accepted=False,
                reason=f"norm {norm:.3f} outside [{self.config.norm_min}, {self.config.norm_max}]",
                value=norm,
            )
        return QualityReport(accepted=True, value=norm)

    def accepts(self, descriptor: Descriptor) -> bool:
        return self.assess(descriptor).accepted


def face_is_usable(face: DetectedFace, limits: Optional[DetectionLimits] = None) -> bool:
    """Check that a detection is good enough to extract a descriptor from."""
    limits = limits or DetectionLimits()
    return (
        face.confidence > limits.min_confidence
        and face.angle.is_valid
        and len(face.landmarks) >= limits.min_landmarks
        and face.bbox.width > limits.min_face_size
        and face.bbox.height > limits.min_face_size
    )


__all__ = ["QualityReport", "QualityGate", "face_is_usable"]
