"""Match resolver: best gallery candidate with angle-aware scoring.

Scoring per record:
    adjusted = similarity(query, record) + boost    if angles match
    adjusted = similarity(query, record) - penalty  otherwise

The first record with the strictly highest adjusted score wins, and it is
accepted only when that score is strictly above the variant threshold.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from facebank.config import BankConfig
from facebank.gallery import GallerySnapshot
from facebank.similarity import descriptor_similarity
from facebank.types import AngleClass, Descriptor, RecognitionResult

logger = logging.getLogger(__name__)

SimilarityFn = Callable[[Descriptor, Descriptor], float]


@dataclass(frozen=True)
class MatchOutcome:
    """Full result of one gallery scan.

    Attributes:
        result: Accepted match, or None for "no match".
        identity_id: Best candidate even when rejected (None if no candidate).
        matched_angle: Angle of the best candidate record.
        raw_score: Similarity before the angle adjustment.
        adjusted_score: Score compared against the threshold.
        threshold: Threshold that applied.
        compared: Number of records scored.
    """

    result: Optional[RecognitionResult]
    identity_id: Optional[str] = None
    matched_angle: Optional[AngleClass] = None
    raw_score: float = 0.0
    adjusted_score: float = 0.0
    threshold: float = 0.0
    compared: int = 0

    @property
    def accepted(self) -> bool:
        return self.result is not None


class MatchResolver:
    """Scans a gallery snapshot for the best identity match.

    Args:
        config: Thresholds, angle adjustments and similarity weights.
        similarity: Optional override for the pairwise similarity.
    """

    def __init__(
        self,
        config: Optional[BankConfig] = None,
        similarity: Optional[SimilarityFn] = None,
    ):
        self.config = config or BankConfig()
        if similarity is None:
            weights = self.config.similarity
            similarity = lambda a, b: descriptor_similarity(a, b, weights)  # noqa: E731
        self._similarity = similarity

    def resolve(
        self,
        query: Descriptor,
        angle: AngleClass,
        gallery: GallerySnapshot,
    ) -> MatchOutcome:
        policy = self.config.policy_for(query.kind)

        best_id: Optional[str] = None
        best_angle: Optional[AngleClass] = None
        best_raw = 0.0
        best_score = float("-inf")
        compared = 0

        for identity_id, records in gallery.records.items():
            for record in records:
                if record.descriptor.kind is not query.kind:
                    continue
                compared += 1
                raw = self._similarity(query, record.descriptor)
                if record.angle_class == angle:
                    score = raw + policy.same_angle_boost
                else:
                    score = raw - policy.different_angle_penalty
                if score > best_score:
                    best_id, best_angle = identity_id, record.angle_class
                    best_raw, best_score = raw, score

        if best_id is None:
            logger.debug("No %s records to match against", query.kind.value)
            return MatchOutcome(result=None, threshold=policy.threshold)

        outcome = dict(
            identity_id=best_id,
            matched_angle=best_angle,
            raw_score=best_raw,
            adjusted_score=best_score,
            threshold=policy.threshold,
            compared=compared,
        )
        if best_score <= policy.threshold:
            logger.debug(
                "Best candidate %s scored %.3f (raw %.3f), threshold %.2f",
                best_id, best_score, best_raw, policy.threshold,
            )
            return MatchOutcome(result=None, **outcome)

        result = RecognitionResult(
            identity_id=best_id,
            display_name=gallery.names.get(best_id, best_id),
            confidence=min(1.0, max(0.0, best_score)),
            matched_angle=best_angle,
            timestamp=time.time(),
        )
        return MatchOutcome(result=result, **outcome)

    def match(
        self,
        query: Descriptor,
        angle: AngleClass,
        gallery: GallerySnapshot,
    ) -> Optional[RecognitionResult]:
        """Return the accepted match, or None for "no match"."""
        return self.resolve(query, angle, gallery).result


__all__ = ["MatchOutcome", "MatchResolver"]
