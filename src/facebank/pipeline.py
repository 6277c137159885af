"""Per-session enrollment and recognition pipelines.

A ``FaceContext`` is built once and owns the descriptor codec, the
embedding adapter, the quality gate, the match resolver and the gallery.
Sessions borrow it and run one frame at a time:

    detect -> extract -> quality gate -> append (enrollment) / match (recognition)

Example:
    >>> context = FaceContext.create()
    >>> enroll = EnrollmentSession(context, detector)
    >>> enroll.start("Alice")
    >>> status = enroll.process_frame(frame_rgb)
    >>> enroll.state.progress
    0.2
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import FrozenSet, List, Optional, Protocol

import numpy as np

from facebank.backends.base import EmbeddingBackend
from facebank.config import BankConfig
from facebank.embedding import EmbeddingAdapter
from facebank.enrollment import (
    completion_progress,
    instruction_for,
    next_required_angle,
    pose_guidance,
)
from facebank.features.codec import DescriptorCodec
from facebank.gallery import GalleryStore, InMemoryGallery
from facebank.matcher import MatchOutcome, MatchResolver
from facebank.quality import QualityGate, face_is_usable
from facebank.types import (
    AngleClass,
    Descriptor,
    DetectedFace,
    GalleryRecord,
    Landmarks,
    RecognitionResult,
)

logger = logging.getLogger(__name__)


class FaceDetector(Protocol):
    """External face detector contract."""

    def detect(self, image: np.ndarray) -> List[DetectedFace]:
        """Detect faces in an RGB frame (H, W, 3)."""
        ...


class FrameStatus(str, Enum):
    """Outcome of one ``process_frame`` call."""

    INACTIVE = "inactive"  # session not running
    DROPPED = "dropped"  # another frame was in flight
    NO_FACE = "no_face"
    POOR_FACE = "poor_face"  # detection failed the usability check
    ADJUST_POSE = "adjust_pose"  # enrollment: waiting for the target angle
    CAPTURED = "captured"
    LOW_QUALITY = "low_quality"  # descriptor rejected by the quality gate
    MATCHED = "matched"
    NO_MATCH = "no_match"
    ERROR = "error"


@dataclass
class ExtractionResult:
    """Descriptor for one face, or the reason there is none.

    Attributes:
        descriptor: The extracted descriptor, None on failure.
        fallbacks: Legacy blocks replaced by zeros.
        error: Message of a caught extraction fault.
    """

    descriptor: Optional[Descriptor] = None
    fallbacks: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.descriptor is not None


class DescriptorExtractor:
    """Chooses between the embedding adapter and the legacy codec.

    Embeddings are used while the adapter is available. A frame whose
    embedding comes back empty, or fails the quality gate when one is given,
    falls back to the codec.
    """

    def __init__(
        self,
        codec: DescriptorCodec,
        adapter: Optional[EmbeddingAdapter] = None,
        gate: Optional[QualityGate] = None,
    ):
        self.codec = codec
        self.adapter = adapter
        self.gate = gate

    @property
    def uses_embeddings(self) -> bool:
        return self.adapter is not None and self.adapter.available

    def extract(self, image: np.ndarray, landmarks: Optional[Landmarks]) -> ExtractionResult:
        try:
            if self.uses_embeddings:
                descriptor = self.adapter.embed(image)
                if descriptor is None:
                    logger.debug("Embedding unavailable for this frame, using legacy codec")
                elif self.gate is not None and not self.gate.accepts(descriptor):
                    logger.debug("Embedding rejected by quality gate, using legacy codec")
                else:
                    return ExtractionResult(descriptor=descriptor)

            output = self.codec.extract(image, landmarks)
            return ExtractionResult(descriptor=output.descriptor, fallbacks=output.fallbacks)
        except Exception as e:
            logger.warning("Descriptor extraction failed: %s", e)
            return ExtractionResult(error=str(e))

    def extract_descriptor(self, image: np.ndarray, landmarks: Optional[Landmarks]) -> Optional[Descriptor]:
        return self.extract(image, landmarks).descriptor


@dataclass
class FaceContext:
    """Shared engine state for one application session."""

    config: BankConfig
    gallery: GalleryStore
    extractor: DescriptorExtractor
    gate: QualityGate
    matcher: MatchResolver

    @classmethod
    def create(
        cls,
        config: Optional[BankConfig] = None,
        gallery: Optional[GalleryStore] = None,
        backend: Optional[EmbeddingBackend] = None,
        use_embeddings: bool = True,
    ) -> FaceContext:
        """Build a context and initialize the embedding backend once.

        Args:
            config: Bank configuration. Defaults to BankConfig().
            gallery: Gallery store. Defaults to a new InMemoryGallery.
            backend: Embedding backend. Defaults to FaceNetONNXBackend.
            use_embeddings: Set False to always use the legacy codec.
        """
        config = config or BankConfig()
        adapter = None
        if use_embeddings:
            adapter = EmbeddingAdapter(backend=backend, device=config.device)
            adapter.initialize()

        gate = QualityGate(config.quality)
        return cls(
            config=config,
            gallery=gallery if gallery is not None else InMemoryGallery(),
            extractor=DescriptorExtractor(DescriptorCodec(), adapter, gate),
            gate=gate,
            matcher=MatchResolver(config),
        )

    def close(self) -> None:
        if self.extractor.adapter is not None:
            self.extractor.adapter.close()


def _best_face(faces: List[DetectedFace]) -> Optional[DetectedFace]:
    if not faces:
        return None
    return max(faces, key=lambda f: f.confidence)


def _detect(detector: FaceDetector, image: np.ndarray) -> tuple[Optional[List[DetectedFace]], Optional[str]]:
    try:
        return list(detector.detect(image)), None
    except Exception as e:
        logger.warning("Face detection failed: %s", e)
        return None, str(e)


@dataclass
class EnrollmentState:
    """Enrollment progress as reported to the caller."""

    active: bool = False
    identity_id: Optional[str] = None
    display_name: str = ""
    target_angle: Optional[AngleClass] = None
    instruction: str = ""
    captured: FrozenSet[AngleClass] = frozenset()
    skipped: FrozenSet[AngleClass] = frozenset()
    progress: float = 0.0
    is_complete: bool = False
    last_status: Optional[FrameStatus] = None
    last_error: Optional[str] = None


class EnrollmentSession:
    """Captures one descriptor per canonical angle for a new identity.

    A frame is captured automatically when the detected pose matches the
    target angle and the detection confidence is high enough.

    Each frame works on the state it started with. A capture is written to
    the gallery only if that state is still the current, active one, so a
    frame left over from a stopped or restarted session never persists.
    """

    def __init__(self, context: FaceContext, detector: FaceDetector):
        self.context = context
        self.detector = detector
        self._busy = threading.Lock()  # one frame at a time
        self._guard = threading.Lock()  # state swaps and gallery writes
        self._state = EnrollmentState()
        self._last_face: Optional[DetectedFace] = None

    @property
    def state(self) -> EnrollmentState:
        return replace(self._state)

    @property
    def active(self) -> bool:
        return self._state.active

    def start(self, display_name: str) -> EnrollmentState:
        """Create the identity and target the first canonical angle.

        Raises:
            ValueError: If the name is blank.
        """
        name = display_name.strip()
        if not name:
            raise ValueError("Display name must not be empty")

        identity = self.context.gallery.create_identity(name)
        target = next_required_angle(())
        with self._guard:
            self._last_face = None
            self._state = EnrollmentState(
                active=True,
                identity_id=identity.identity_id,
                display_name=name,
                target_angle=target,
                instruction=instruction_for(target),
            )
        logger.info("Enrollment started for %s (%s)", name, identity.identity_id)
        return self.state

    def stop(self) -> None:
        """Refuse new frames. A frame already in flight is not persisted."""
        with self._guard:
            self._state.active = False
        logger.info("Enrollment stopped for %s", self._state.identity_id)

    def reset(self) -> None:
        with self._busy, self._guard:
            self._state = EnrollmentState()
            self._last_face = None

    def process_frame(self, image: np.ndarray) -> FrameStatus:
        state = self._state
        if not state.active:
            return FrameStatus.INACTIVE
        if not self._busy.acquire(blocking=False):
            return FrameStatus.DROPPED
        try:
            status = self._process(state, image)
        finally:
            self._busy.release()
        state.last_status = status
        return status

    def force_capture(self) -> FrameStatus:
        """Capture the last usable face at the current target angle."""
        with self._busy:
            state = self._state
            if not state.active or state.target_angle is None:
                return FrameStatus.INACTIVE
            if self._last_face is None:
                state.last_status = FrameStatus.NO_FACE
                return FrameStatus.NO_FACE
            logger.debug("Manual capture for %s", state.target_angle.value)
            status = self._capture(state, self._last_face, state.target_angle)
            state.last_status = status
            return status

    def skip_current_angle(self) -> EnrollmentState:
        """Move on without capturing the current target angle."""
        with self._busy, self._guard:
            state = self._state
            target = state.target_angle
            if target is not None:
                logger.info("Skipped %s for %s", target.value, state.identity_id)
                state.skipped = state.skipped | {target}
                self._advance(state)
        return self.state

    def _process(self, state: EnrollmentState, image: np.ndarray) -> FrameStatus:
        faces, error = _detect(self.detector, image)
        if faces is None:
            state.last_error = error
            return FrameStatus.ERROR

        face = _best_face(faces)
        if face is None:
            state.instruction = "No face found, move closer to the camera"
            return FrameStatus.NO_FACE

        if not face_is_usable(face, self.context.config.detection):
            state.instruction = "Face quality is low, improve the lighting and hold still"
            return FrameStatus.POOR_FACE

        with self._guard:
            if state is self._state:
                self._last_face = face
        target = state.target_angle
        state.instruction = pose_guidance(target, face.angle, face.confidence)

        threshold = self.context.config.enrollment.auto_capture_confidence
        if face.angle.angle_class == target and face.confidence > threshold:
            return self._capture(state, face, target)
        return FrameStatus.ADJUST_POSE

    def _capture(self, state: EnrollmentState, face: DetectedFace, angle: AngleClass) -> FrameStatus:
        extraction = self.context.extractor.extract(face.image, face.landmarks)
        if not extraction.ok:
            state.last_error = extraction.error
            return FrameStatus.ERROR

        report = self.context.gate.assess(extraction.descriptor)
        if not report.accepted:
            logger.debug("Capture rejected: %s", report.reason)
            state.instruction = "Descriptor quality is low, try again"
            return FrameStatus.LOW_QUALITY

        with self._guard:
            if state is not self._state or not state.active:
                logger.debug("Enrollment stopped mid-frame, discarding capture")
                return FrameStatus.INACTIVE

            record = GalleryRecord(
                identity_id=state.identity_id,
                angle_class=angle,
                descriptor=extraction.descriptor,
                captured_at=time.time(),
                confidence=face.confidence,
            )
            self.context.gallery.append(record)
            state.captured = state.captured | {angle}
            state.last_error = None
            self._advance(state)

        logger.info(
            "Captured %s for %s (%s)",
            angle.value, state.identity_id, extraction.descriptor.label,
        )
        return FrameStatus.CAPTURED

    def _advance(self, state: EnrollmentState) -> None:
        done = state.captured | state.skipped
        target = next_required_angle(done)
        state.target_angle = target
        state.progress = completion_progress(done)
        state.instruction = instruction_for(target)
        if target is None:
            state.is_complete = True
            state.active = False
            logger.info(
                "Enrollment finished for %s (%d captured, %d skipped)",
                state.identity_id, len(state.captured), len(state.skipped),
            )


@dataclass
class RecognitionState:
    """Recognition output as reported to the caller."""

    active: bool = False
    last_result: Optional[RecognitionResult] = None
    last_outcome: Optional[MatchOutcome] = None
    last_status: Optional[FrameStatus] = None
    last_error: Optional[str] = None


class RecognitionSession:
    """Matches the most confident face of each frame against the gallery."""

    def __init__(self, context: FaceContext, detector: FaceDetector):
        self.context = context
        self.detector = detector
        self._busy = threading.Lock()
        self._guard = threading.Lock()
        self._state = RecognitionState()

    @property
    def state(self) -> RecognitionState:
        return replace(self._state)

    @property
    def active(self) -> bool:
        return self._state.active

    def start(self) -> None:
        with self._guard:
            self._state = RecognitionState(active=True)
        logger.info("Recognition started")

    def stop(self) -> None:
        with self._guard:
            self._state.active = False
        logger.info("Recognition stopped")

    def process_frame(self, image: np.ndarray) -> FrameStatus:
        state = self._state
        if not state.active:
            return FrameStatus.INACTIVE
        if not self._busy.acquire(blocking=False):
            return FrameStatus.DROPPED
        try:
            status = self._process(state, image)
        finally:
            self._busy.release()
        if state.active:
            state.last_status = status
        return status

    def _process(self, state: RecognitionState, image: np.ndarray) -> FrameStatus:
        faces, error = _detect(self.detector, image)
        if faces is None:
            state.last_error = error
            return FrameStatus.ERROR

        face = _best_face(faces)
        if face is None:
            state.last_result = None
            return FrameStatus.NO_FACE
        if not face_is_usable(face, self.context.config.detection):
            return FrameStatus.POOR_FACE

        extraction = self.context.extractor.extract(face.image, face.landmarks)
        if not extraction.ok:
            state.last_error = extraction.error
            return FrameStatus.ERROR

        report = self.context.gate.assess(extraction.descriptor)
        if not report.accepted:
            logger.debug("Query rejected: %s", report.reason)
            return FrameStatus.LOW_QUALITY

        snapshot = self.context.gallery.snapshot(
            complete_only=self.context.config.require_complete_enrollment,
        )
        outcome = self.context.matcher.resolve(
            extraction.descriptor, face.angle.angle_class, snapshot,
        )
        with self._guard:
            if state is not self._state or not state.active:
                logger.debug("Recognition stopped mid-frame, discarding result")
                return FrameStatus.INACTIVE

            state.last_outcome = outcome
            state.last_result = outcome.result
            state.last_error = None
        if outcome.result is None:
            return FrameStatus.NO_MATCH

        logger.debug(
            "Recognized %s (%.2f) at %s",
            outcome.result.display_name, outcome.result.confidence,
            outcome.result.matched_angle.value,
        )
        return FrameStatus.MATCHED


__all__ = [
    "FaceDetector",
    "FrameStatus",
    "ExtractionResult",
    "DescriptorExtractor",
    "FaceContext",
    "EnrollmentState",
    "EnrollmentSession",
    "RecognitionState",
    "RecognitionSession",
]
