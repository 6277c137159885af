"""Configuration classes for facebank.

Every recognition knob lives here so sessions never hardcode a threshold.

Example:
    >>> from facebank.config import BankConfig
    >>> from facebank.types import DescriptorKind
    >>> config = BankConfig.from_yaml("facebank.yaml")
    >>> config.policy_for(DescriptorKind.LEGACY).threshold
    0.65

YAML layout (all keys optional):

    legacy:
      threshold: 0.65
      same_angle_boost: 0.15
      different_angle_penalty: 0.10
    embedding:
      threshold: 0.75
      same_angle_boost: 0.05
      different_angle_penalty: 0.02
    quality:
      min_variance: 0.001
      norm_min: 0.9
      norm_max: 1.1
    similarity:
      cosine: 0.5
      euclidean: 0.3
      manhattan: 0.2
    enrollment:
      auto_capture_confidence: 0.7
    detection:
      min_confidence: 0.3
      min_landmarks: 5
      min_face_size: 100
    require_complete_enrollment: true
    device: cpu
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict

from facebank.types import DescriptorKind


@dataclass(frozen=True)
class VariantPolicy:
    """Matching policy for one descriptor variant.

    Attributes:
        threshold: Adjusted score must be strictly above this to accept.
        same_angle_boost: Added when gallery and query angles match.
        different_angle_penalty: Subtracted when they differ.
    """

    threshold: float
    same_angle_boost: float
    different_angle_penalty: float


LEGACY_POLICY = VariantPolicy(
    threshold=0.65, same_angle_boost=0.15, different_angle_penalty=0.10,
)
EMBEDDING_POLICY = VariantPolicy(
    threshold=0.75, same_angle_boost=0.05, different_angle_penalty=0.02,
)


@dataclass(frozen=True)
class QualityConfig:
    """Quality gate limits.

    Attributes:
        min_variance: Legacy descriptors with population variance at or
            below this are treated as flat (default: 0.001).
        norm_min: Lowest accepted embedding L2 norm (default: 0.9).
        norm_max: Highest accepted embedding L2 norm (default: 1.1).
    """

    min_variance: float = 0.001
    norm_min: float = 0.9
    norm_max: float = 1.1

    def __post_init__(self) -> None:
        if self.norm_min > self.norm_max:
            raise ValueError(
                f"norm_min ({self.norm_min}) must not exceed norm_max ({self.norm_max})"
            )


@dataclass(frozen=True)
class SimilarityWeights:
    """Weights of the combined legacy similarity (should sum to 1.0)."""

    cosine: float = 0.5
    euclidean: float = 0.3
    manhattan: float = 0.2


@dataclass(frozen=True)
class DetectionLimits:
    """Minimum detector output accepted before extraction.

    Attributes:
        min_confidence: Detection confidence must exceed this (default: 0.3).
        min_landmarks: Minimum landmark count (default: 5).
        min_face_size: Bbox width and height must exceed this, in pixels (default: 100).
    """

    min_confidence: float = 0.3
    min_landmarks: int = 5
    min_face_size: float = 100.0


@dataclass(frozen=True)
class EnrollmentConfig:
    """Enrollment flow settings.

    Attributes:
        auto_capture_confidence: A frame whose pose matches the target angle
            is captured automatically when detection confidence exceeds this.
    """

    auto_capture_confidence: float = 0.7


@dataclass
class BankConfig:
    """Complete facebank configuration.

    Attributes:
        legacy: Policy for 420-d LBP/HOG/geometric descriptors.
        embedding: Policy for 512-d embeddings.
        quality: Quality gate limits.
        similarity: Combined-similarity weights (legacy path).
        detection: Detector output limits.
        enrollment: Enrollment flow settings.
        require_complete_enrollment: Recognition only considers identities
            with all canonical angles captured.
        device: Inference device for the embedding backend.
    """

    legacy: VariantPolicy = LEGACY_POLICY
    embedding: VariantPolicy = EMBEDDING_POLICY
    quality: QualityConfig = field(default_factory=QualityConfig)
    similarity: SimilarityWeights = field(default_factory=SimilarityWeights)
    detection: DetectionLimits = field(default_factory=DetectionLimits)
    enrollment: EnrollmentConfig = field(default_factory=EnrollmentConfig)
    require_complete_enrollment: bool = True
    device: str = "cpu"

    def policy_for(self, kind: DescriptorKind) -> VariantPolicy:
        if kind is DescriptorKind.EMBEDDING:
            return self.embedding
        return self.legacy

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BankConfig":
        """Create BankConfig from a dictionary (e.g., loaded from YAML).

        Missing sections and keys keep their defaults.

        Raises:
            ValueError: On unknown keys inside a section.
        """
        data = data or {}
        return cls(
            legacy=_section(VariantPolicy, data.get("legacy"), LEGACY_POLICY),
            embedding=_section(VariantPolicy, data.get("embedding"), EMBEDDING_POLICY),
            quality=_section(QualityConfig, data.get("quality"), QualityConfig()),
            similarity=_section(SimilarityWeights, data.get("similarity"), SimilarityWeights()),
            detection=_section(DetectionLimits, data.get("detection"), DetectionLimits()),
            enrollment=_section(EnrollmentConfig, data.get("enrollment"), EnrollmentConfig()),
            require_complete_enrollment=bool(data.get("require_complete_enrollment", True)),
            device=str(data.get("device", "cpu")),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str) -> "BankConfig":
        """Load BankConfig from a YAML file.

        Raises:
            FileNotFoundError: If the file doesn't exist.
        """
        import yaml

        with open(yaml_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)

        return cls.from_dict(data or {})

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)


def _section(section_cls, values: Any, default):
    if not values:
        return default
    if not isinstance(values, dict):
        raise ValueError(f"{section_cls.__name__} section must be a mapping, got {type(values).__name__}")
    merged = asdict(default)
    unknown = set(values) - set(merged)
    if unknown:
        raise ValueError(f"Unknown {section_cls.__name__} keys: {sorted(unknown)}")
    merged.update(values)
    return section_cls(**merged)


__all__ = [
    "VariantPolicy",
    "LEGACY_POLICY",
    "EMBEDDING_POLICY",
    "QualityConfig",
    "SimilarityWeights",
    "DetectionLimits",
    "EnrollmentConfig",
    "BankConfig",
]
