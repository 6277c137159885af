"""facebank - Multi-angle face descriptor extraction and gallery matching.

Turns detected face crops into fixed-length descriptors (a 420-d
LBP/HOG/geometric vector, or a 512-d embedding when a model is available),
gates them for quality, and enrolls or recognizes identities across five
canonical head angles.

Quick Start:
    >>> from facebank import FaceContext, EnrollmentSession, RecognitionSession
    >>> context = FaceContext.create()
    >>> enroll = EnrollmentSession(context, detector)
    >>> enroll.start("Alice")
    >>> enroll.process_frame(frame_rgb)
    >>> recog = RecognitionSession(context, detector)
    >>> recog.start()
    >>> recog.process_frame(frame_rgb)
    >>> print(recog.state.last_result)
"""

__version__ = "0.1.0"

from facebank.types import (
    AngleClass,
    CANONICAL_ANGLES,
    FaceAngle,
    BoundingBox,
    Landmarks,
    DetectedFace,
    DescriptorKind,
    Descriptor,
    GalleryRecord,
    Identity,
    RecognitionResult,
)
from facebank.config import BankConfig, QualityConfig, SimilarityWeights, VariantPolicy
from facebank.features import DescriptorCodec
from facebank.embedding import EmbeddingAdapter
from facebank.quality import QualityGate, face_is_usable
from facebank.similarity import combined_similarity, cosine_similarity, descriptor_similarity
from facebank.matcher import MatchOutcome, MatchResolver
from facebank.enrollment import completion_progress, is_complete, next_required_angle
from facebank.gallery import GallerySnapshot, GalleryStore, InMemoryGallery
from facebank.persistence import save_gallery, load_gallery
from facebank.pipeline import (
    DescriptorExtractor,
    EnrollmentSession,
    FaceContext,
    FrameStatus,
    RecognitionSession,
)

__all__ = [
    "__version__",
    "AngleClass",
    "CANONICAL_ANGLES",
    "FaceAngle",
    "BoundingBox",
    "Landmarks",
    "DetectedFace",
    "DescriptorKind",
    "Descriptor",
    "GalleryRecord",
    "Identity",
    "RecognitionResult",
    "BankConfig",
    "QualityConfig",
    "SimilarityWeights",
    "VariantPolicy",
    "DescriptorCodec",
    "EmbeddingAdapter",
    "QualityGate",
    "face_is_usable",
    "cosine_similarity",
    "combined_similarity",
    "descriptor_similarity",
    "MatchOutcome",
    "MatchResolver",
    "next_required_angle",
    "completion_progress",
    "is_complete",
    "GallerySnapshot",
    "GalleryStore",
    "InMemoryGallery",
    "save_gallery",
    "load_gallery",
    "DescriptorExtractor",
    "EnrollmentSession",
    "FaceContext",
    "FrameStatus",
    "RecognitionSession",
]
