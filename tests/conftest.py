"""Shared fixtures for facebank tests.

All images, landmarks and embeddings are synthetic. NO ML models needed.
"""

import threading
from unittest.mock import MagicMock

import numpy as np
import pytest

from facebank.types import BoundingBox, DetectedFace, FaceAngle, Landmarks

# Points for a 200x200 face box, in LANDMARK_NAMES order.
FACE_POINTS = (
    (60.0, 80.0),    # left_eye
    (140.0, 80.0),   # right_eye
    (100.0, 120.0),  # nose_base
    (70.0, 150.0),   # mouth_left
    (130.0, 150.0),  # mouth_right
    (100.0, 170.0),  # mouth_bottom
    (40.0, 120.0),   # left_cheek
    (160.0, 120.0),  # right_cheek
)

POSES = {
    "frontal": FaceAngle(yaw=0.0, pitch=0.0),
    "left_profile": FaceAngle(yaw=-30.0, pitch=0.0),
    "right_profile": FaceAngle(yaw=30.0, pitch=0.0),
    "up_angle": FaceAngle(yaw=0.0, pitch=30.0),
    "down_angle": FaceAngle(yaw=0.0, pitch=-30.0),
}


@pytest.fixture
def face_image():
    """Textured 200x200 RGB face crop."""
    rng = np.random.default_rng(42)
    return rng.integers(0, 256, size=(200, 200, 3), dtype=np.uint8)


@pytest.fixture
def other_face_image():
    """A second, unrelated face crop."""
    rng = np.random.default_rng(7)
    return rng.integers(0, 256, size=(200, 200, 3), dtype=np.uint8)


@pytest.fixture
def make_landmarks():
    """Factory for landmarks with the first n points of FACE_POINTS."""
    def _make(n: int = 8, bbox: BoundingBox = None) -> Landmarks:
        return Landmarks(
            points=FACE_POINTS[:n],
            bbox=bbox or BoundingBox(0.0, 0.0, 200.0, 200.0),
        )
    return _make


@pytest.fixture
def make_face(face_image, make_landmarks):
    """Factory for a usable DetectedFace at a named pose."""
    def _make(pose: str = "frontal", confidence: float = 0.9, image=None) -> DetectedFace:
        return DetectedFace(
            bbox=BoundingBox(0.0, 0.0, 200.0, 200.0),
            landmarks=make_landmarks(8),
            angle=POSES[pose],
            confidence=confidence,
            image=face_image if image is None else image,
        )
    return _make


@pytest.fixture
def make_embedding():
    """Factory fixture for generating deterministic L2-normalized embeddings."""
    def _make(seed: int = 0, dim: int = 512) -> np.ndarray:
        rng = np.random.default_rng(seed)
        v = rng.standard_normal(dim).astype(np.float32)
        return v / np.linalg.norm(v)
    return _make


@pytest.fixture
def similar_embedding(make_embedding):
    """Embedding close to make_embedding(0) (cos > 0.9)."""
    rng = np.random.default_rng(99)
    v = make_embedding(0) + rng.standard_normal(512).astype(np.float32) * 0.02
    return v / np.linalg.norm(v)


@pytest.fixture
def mock_backend(make_embedding):
    """Embedding backend returning a fixed, unnormalized 512-d vector."""
    backend = MagicMock()
    backend.embed_dim = 512
    backend.input_size = 160
    backend.embed.return_value = make_embedding(0) * 3.0
    return backend


@pytest.fixture
def failing_backend():
    """Embedding backend whose model file is missing."""
    backend = MagicMock()
    backend.embed_dim = 512
    backend.input_size = 160
    backend.initialize.side_effect = FileNotFoundError("facenet_512.onnx not found")
    return backend


class StubDetector:
    """Detector returning a configurable face list."""

    def __init__(self, faces=None):
        self.faces = list(faces or [])
        self.calls = 0

    def detect(self, image):
        self.calls += 1
        return list(self.faces)


class BlockingDetector(StubDetector):
    """Detector that holds the frame until ``release`` is set."""

    def __init__(self, faces=None):
        super().__init__(faces)
        self.entered = threading.Event()
        self.release = threading.Event()

    def detect(self, image):
        self.entered.set()
        self.release.wait(timeout=5.0)
        return super().detect(image)


@pytest.fixture
def detector():
    return StubDetector()


@pytest.fixture
def blocking_detector():
    return BlockingDetector()
