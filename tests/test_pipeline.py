"""Tests for enrollment and recognition sessions."""

import threading

import numpy as np
import pytest

from facebank.config import BankConfig, QualityConfig
from facebank.features.codec import DescriptorCodec
from facebank.pipeline import (
    EnrollmentSession,
    FaceContext,
    FrameStatus,
    RecognitionSession,
)
from facebank.types import CANONICAL_ANGLES, AngleClass, DescriptorKind, GalleryRecord

FRAME = np.zeros((480, 640, 3), dtype=np.uint8)


@pytest.fixture
def context():
    return FaceContext.create(use_embeddings=False)


def _run_in_thread(fn):
    out = {}
    thread = threading.Thread(target=lambda: out.setdefault("status", fn()))
    thread.start()
    return thread, out


def _enroll_all(gallery, name, descriptor):
    ident = gallery.create_identity(name)
    for angle in CANONICAL_ANGLES:
        gallery.append(GalleryRecord(ident.identity_id, angle, descriptor))
    return ident


class TestEnrollmentSession:
    def test_start(self, context, detector):
        session = EnrollmentSession(context, detector)
        state = session.start("  Alice ")
        assert state.active
        assert state.display_name == "Alice"
        assert state.target_angle == AngleClass.FRONTAL
        assert state.instruction
        assert context.gallery.get_identity(state.identity_id) is not None

    def test_blank_name(self, context, detector):
        with pytest.raises(ValueError):
            EnrollmentSession(context, detector).start("   ")

    def test_inactive_before_start(self, context, detector, make_face):
        detector.faces = [make_face()]
        assert EnrollmentSession(context, detector).process_frame(FRAME) == FrameStatus.INACTIVE
        assert detector.calls == 0

    def test_auto_capture(self, context, detector, make_face):
        detector.faces = [make_face("frontal", confidence=0.9)]
        session = EnrollmentSession(context, detector)
        session.start("Alice")

        assert session.process_frame(FRAME) == FrameStatus.CAPTURED
        state = session.state
        assert state.captured == frozenset({AngleClass.FRONTAL})
        assert state.target_angle == AngleClass.LEFT_PROFILE
        assert state.progress == pytest.approx(0.2)
        records = context.gallery.records_for(state.identity_id)
        assert len(records) == 1
        assert records[0].descriptor.kind == DescriptorKind.LEGACY
        assert records[0].confidence == 0.9

    def test_wrong_angle_waits(self, context, detector, make_face):
        detector.faces = [make_face("right_profile")]
        session = EnrollmentSession(context, detector)
        session.start("Alice")
        assert session.process_frame(FRAME) == FrameStatus.ADJUST_POSE
        assert session.state.instruction == "Turn your head left"
        assert context.gallery.records_for(session.state.identity_id) == []

    def test_low_confidence_waits(self, context, detector, make_face):
        detector.faces = [make_face("frontal", confidence=0.6)]
        session = EnrollmentSession(context, detector)
        session.start("Alice")
        assert session.process_frame(FRAME) == FrameStatus.ADJUST_POSE

    def test_best_face_used(self, context, detector, make_face):
        detector.faces = [make_face("right_profile", confidence=0.5), make_face("frontal", confidence=0.95)]
        session = EnrollmentSession(context, detector)
        session.start("Alice")
        assert session.process_frame(FRAME) == FrameStatus.CAPTURED

    def test_no_face_and_poor_face(self, context, detector, make_face):
        session = EnrollmentSession(context, detector)
        session.start("Alice")
        assert session.process_frame(FRAME) == FrameStatus.NO_FACE
        detector.faces = [make_face(confidence=0.2)]
        assert session.process_frame(FRAME) == FrameStatus.POOR_FACE
        assert session.state.last_status == FrameStatus.POOR_FACE

    def test_full_enrollment(self, context, detector, make_face):
        session = EnrollmentSession(context, detector)
        session.start("Alice")
        for angle in CANONICAL_ANGLES:
            detector.faces = [make_face(angle.value)]
            assert session.process_frame(FRAME) == FrameStatus.CAPTURED

        state = session.state
        assert state.is_complete
        assert state.progress == 1.0
        assert state.target_angle is None
        assert not state.active
        assert context.gallery.get_identity(state.identity_id).is_complete
        assert session.process_frame(FRAME) == FrameStatus.INACTIVE

    def test_low_quality_not_stored(self, detector, make_face):
        config = BankConfig(quality=QualityConfig(min_variance=1e9))
        context = FaceContext.create(config=config, use_embeddings=False)
        detector.faces = [make_face()]
        session = EnrollmentSession(context, detector)
        session.start("Alice")
        assert session.process_frame(FRAME) == FrameStatus.LOW_QUALITY
        assert context.gallery.records_for(session.state.identity_id) == []

    def test_skip_current_angle(self, context, detector):
        session = EnrollmentSession(context, detector)
        session.start("Alice")
        state = session.skip_current_angle()
        assert state.skipped == frozenset({AngleClass.FRONTAL})
        assert state.target_angle == AngleClass.LEFT_PROFILE
        assert state.progress == pytest.approx(0.2)
        assert not context.gallery.get_identity(state.identity_id).is_complete

    def test_skip_all_completes_session_only(self, context, detector):
        session = EnrollmentSession(context, detector)
        session.start("Alice")
        for _ in CANONICAL_ANGLES:
            session.skip_current_angle()
        assert session.state.is_complete
        assert not context.gallery.get_identity(session.state.identity_id).captured_angles

    def test_force_capture(self, context, detector, make_face):
        detector.faces = [make_face("up_angle")]
        session = EnrollmentSession(context, detector)
        session.start("Alice")
        assert session.force_capture() == FrameStatus.NO_FACE
        assert session.process_frame(FRAME) == FrameStatus.ADJUST_POSE
        assert session.force_capture() == FrameStatus.CAPTURED
        records = context.gallery.records_for(session.state.identity_id)
        assert records[0].angle_class == AngleClass.FRONTAL

    def test_reset(self, context, detector):
        session = EnrollmentSession(context, detector)
        session.start("Alice")
        session.reset()
        assert not session.active
        assert session.state.identity_id is None

    def test_detector_error(self, context, detector):
        def broken(image):
            raise RuntimeError("camera gone")

        detector.detect = broken
        session = EnrollmentSession(context, detector)
        session.start("Alice")
        assert session.process_frame(FRAME) == FrameStatus.ERROR
        assert session.state.last_error == "camera gone"
        assert session.active

    def test_frame_in_flight_is_dropped(self, context, blocking_detector, make_face):
        blocking_detector.faces = [make_face()]
        session = EnrollmentSession(context, blocking_detector)
        session.start("Alice")

        thread, out = _run_in_thread(lambda: session.process_frame(FRAME))
        assert blocking_detector.entered.wait(timeout=5.0)
        assert session.process_frame(FRAME) == FrameStatus.DROPPED
        blocking_detector.release.set()
        thread.join(timeout=5.0)

        assert out["status"] == FrameStatus.CAPTURED
        assert blocking_detector.calls == 1

    def test_stop_discards_in_flight_capture(self, context, blocking_detector, make_face):
        blocking_detector.faces = [make_face()]
        session = EnrollmentSession(context, blocking_detector)
        identity_id = session.start("Alice").identity_id

        thread, out = _run_in_thread(lambda: session.process_frame(FRAME))
        assert blocking_detector.entered.wait(timeout=5.0)
        session.stop()
        assert session.process_frame(FRAME) == FrameStatus.INACTIVE
        blocking_detector.release.set()
        thread.join(timeout=5.0)

        assert out["status"] == FrameStatus.INACTIVE
        assert context.gallery.records_for(identity_id) == []
        assert session.state.captured == frozenset()

    def test_restart_ignores_previous_in_flight_capture(self, context, blocking_detector, make_face):
        blocking_detector.faces = [make_face()]
        session = EnrollmentSession(context, blocking_detector)
        alice_id = session.start("Alice").identity_id

        thread, out = _run_in_thread(lambda: session.process_frame(FRAME))
        assert blocking_detector.entered.wait(timeout=5.0)
        session.stop()
        bob_id = session.start("Bob").identity_id
        blocking_detector.release.set()
        thread.join(timeout=5.0)

        assert out["status"] == FrameStatus.INACTIVE
        assert context.gallery.records_for(alice_id) == []
        assert context.gallery.records_for(bob_id) == []
        state = session.state
        assert state.identity_id == bob_id
        assert state.active
        assert state.captured == frozenset()
        assert state.target_angle == AngleClass.FRONTAL
        assert state.last_status is None

    def test_start_without_stop_ignores_in_flight_capture(self, context, blocking_detector, make_face):
        blocking_detector.faces = [make_face()]
        session = EnrollmentSession(context, blocking_detector)
        session.start("Alice")

        thread, out = _run_in_thread(lambda: session.process_frame(FRAME))
        assert blocking_detector.entered.wait(timeout=5.0)
        bob_id = session.start("Bob").identity_id
        blocking_detector.release.set()
        thread.join(timeout=5.0)

        assert out["status"] == FrameStatus.INACTIVE
        assert context.gallery.records_for(bob_id) == []
        assert session.force_capture() == FrameStatus.NO_FACE

    def test_stop_during_extraction_not_persisted(self, context, detector, make_face):
        detector.faces = [make_face()]
        session = EnrollmentSession(context, detector)
        identity_id = session.start("Alice").identity_id
        extract = context.extractor.extract

        def extract_then_stop(image, landmarks):
            result = extract(image, landmarks)
            session.stop()
            return result

        context.extractor.extract = extract_then_stop
        assert session.process_frame(FRAME) == FrameStatus.INACTIVE
        assert context.gallery.records_for(identity_id) == []


class TestRecognitionSession:
    def test_inactive_before_start(self, context, detector):
        assert RecognitionSession(context, detector).process_frame(FRAME) == FrameStatus.INACTIVE

    def test_empty_gallery_no_match(self, context, detector, make_face):
        detector.faces = [make_face()]
        session = RecognitionSession(context, detector)
        session.start()
        assert session.process_frame(FRAME) == FrameStatus.NO_MATCH
        assert session.state.last_result is None

    def test_recognizes_enrolled_face(self, context, detector, make_face, make_landmarks, face_image):
        descriptor = DescriptorCodec().describe(face_image, make_landmarks(8))
        ident = _enroll_all(context.gallery, "Alice", descriptor)
        detector.faces = [make_face("frontal")]
        session = RecognitionSession(context, detector)
        session.start()

        assert session.process_frame(FRAME) == FrameStatus.MATCHED
        result = session.state.last_result
        assert result.identity_id == ident.identity_id
        assert result.display_name == "Alice"
        assert result.confidence == 1.0
        assert session.state.last_outcome.accepted

    def test_incomplete_identity_ignored(self, context, detector, make_face, make_landmarks, face_image):
        descriptor = DescriptorCodec().describe(face_image, make_landmarks(8))
        ident = context.gallery.create_identity("Alice")
        context.gallery.append(GalleryRecord(ident.identity_id, AngleClass.FRONTAL, descriptor))
        detector.faces = [make_face("frontal")]
        session = RecognitionSession(context, detector)
        session.start()
        assert session.process_frame(FRAME) == FrameStatus.NO_MATCH

    def test_incomplete_identity_allowed_by_config(self, detector, make_face, make_landmarks, face_image):
        context = FaceContext.create(
            config=BankConfig(require_complete_enrollment=False), use_embeddings=False,
        )
        descriptor = DescriptorCodec().describe(face_image, make_landmarks(8))
        ident = context.gallery.create_identity("Alice")
        context.gallery.append(GalleryRecord(ident.identity_id, AngleClass.FRONTAL, descriptor))
        detector.faces = [make_face("frontal")]
        session = RecognitionSession(context, detector)
        session.start()
        assert session.process_frame(FRAME) == FrameStatus.MATCHED

    def test_low_quality(self, detector, make_face):
        config = BankConfig(quality=QualityConfig(min_variance=1e9))
        context = FaceContext.create(config=config, use_embeddings=False)
        detector.faces = [make_face()]
        session = RecognitionSession(context, detector)
        session.start()
        assert session.process_frame(FRAME) == FrameStatus.LOW_QUALITY

    def test_embedding_path(self, detector, make_face, mock_backend):
        context = FaceContext.create(backend=mock_backend)
        detector.faces = [make_face("frontal")]
        enroll = EnrollmentSession(context, detector)
        enroll.start("Alice")
        for angle in CANONICAL_ANGLES:
            detector.faces = [make_face(angle.value)]
            enroll.process_frame(FRAME)
        assert enroll.state.is_complete

        session = RecognitionSession(context, detector)
        session.start()
        detector.faces = [make_face("frontal")]
        assert session.process_frame(FRAME) == FrameStatus.MATCHED
        outcome = session.state.last_outcome
        assert outcome.threshold == 0.75
        assert outcome.result.confidence == 1.0

    def test_stop_discards_in_flight_result(self, context, blocking_detector, make_face,
                                            make_landmarks, face_image):
        descriptor = DescriptorCodec().describe(face_image, make_landmarks(8))
        _enroll_all(context.gallery, "Alice", descriptor)
        blocking_detector.faces = [make_face()]
        session = RecognitionSession(context, blocking_detector)
        session.start()

        thread, out = _run_in_thread(lambda: session.process_frame(FRAME))
        assert blocking_detector.entered.wait(timeout=5.0)
        session.stop()
        blocking_detector.release.set()
        thread.join(timeout=5.0)

        assert out["status"] == FrameStatus.INACTIVE
        assert session.state.last_result is None

    def test_restart_ignores_previous_in_flight_result(self, context, blocking_detector, make_face,
                                                       make_landmarks, face_image):
        descriptor = DescriptorCodec().describe(face_image, make_landmarks(8))
        _enroll_all(context.gallery, "Alice", descriptor)
        blocking_detector.faces = [make_face()]
        session = RecognitionSession(context, blocking_detector)
        session.start()

        thread, out = _run_in_thread(lambda: session.process_frame(FRAME))
        assert blocking_detector.entered.wait(timeout=5.0)
        session.stop()
        session.start()
        blocking_detector.release.set()
        thread.join(timeout=5.0)

        assert out["status"] == FrameStatus.INACTIVE
        state = session.state
        assert state.active
        assert state.last_result is None
        assert state.last_outcome is None
        assert state.last_status is None

    def test_rejected_embedding_uses_legacy_codec(self, detector, make_face, mock_backend,
                                                  make_landmarks, face_image):
        mock_backend.embed.return_value = np.zeros(512, dtype=np.float32)
        context = FaceContext.create(backend=mock_backend)
        descriptor = DescriptorCodec().describe(face_image, make_landmarks(8))
        _enroll_all(context.gallery, "Alice", descriptor)
        detector.faces = [make_face("frontal")]
        session = RecognitionSession(context, detector)
        session.start()

        assert session.process_frame(FRAME) == FrameStatus.MATCHED
        assert session.state.last_outcome.threshold == 0.65
        assert context.extractor.uses_embeddings
