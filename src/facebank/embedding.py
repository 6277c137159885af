"""Embedding adapter: preprocessing, inference and output validation.

Wraps an EmbeddingBackend. When the backend fails to initialize the adapter
stays unavailable for its whole lifetime and callers fall back to the
legacy descriptor codec.
"""

from __future__ import annotations

import logging
from typing import Optional

import cv2
import numpy as np

from facebank.backends.base import EmbeddingBackend
from facebank.types import EMBEDDING_SIZE, Descriptor

logger = logging.getLogger(__name__)


def l2_normalize(vec: np.ndarray) -> np.ndarray:
    """Return vec / ||vec||, or an unchanged copy when the norm is 0."""
    out = np.array(vec, dtype=np.float32).reshape(-1)
    norm = float(np.linalg.norm(out))
    if norm > 0:
        out = out / norm
    return out


def preprocess(image: np.ndarray, input_size: int) -> Optional[np.ndarray]:
    """Resize an RGB crop and scale to [-1, 1] as a (1, S, S, 3) tensor.

    Returns None for an empty or non-RGB image.
    """
    if image is None:
        return None
    arr = np.asarray(image)
    if arr.size == 0 or arr.ndim != 3 or arr.shape[2] < 3:
        return None

    rgb = arr[:, :, :3]
    if rgb.shape[:2] != (input_size, input_size):
        rgb = cv2.resize(rgb, (input_size, input_size), interpolation=cv2.INTER_LINEAR)
    tensor = rgb.astype(np.float32) / 127.5 - 1.0
    return tensor[np.newaxis, ...]


class EmbeddingAdapter:
    """Produces 512-d L2-normalized embedding descriptors.

    Args:
        backend: Embedding backend. Defaults to FaceNetONNXBackend.
        device: Device passed to ``backend.initialize``.

    Example:
        >>> adapter = EmbeddingAdapter()
        >>> adapter.initialize()
        >>> if adapter.available:
        ...     descriptor = adapter.embed(face_rgb)
    """

    def __init__(self, backend: Optional[EmbeddingBackend] = None, device: str = "cpu"):
        self._backend = backend
        self._device = device
        self._initialized = False
        self._available = False

    @property
    def available(self) -> bool:
        return self._available

    @property
    def input_size(self) -> int:
        return self._backend.input_size if self._backend is not None else 160

    def initialize(self) -> bool:
        """Load the backend once. Returns whether embeddings are available."""
        if self._initialized:
            return self._available
        self._initialized = True

        try:
            if self._backend is None:
                from facebank.backends.facenet import FaceNetONNXBackend
                self._backend = FaceNetONNXBackend()
            self._backend.initialize(self._device)
        except (ImportError, FileNotFoundError) as e:
            logger.warning("Embedding backend not available, using legacy descriptors: %s", e)
            return False
        except Exception as e:
            logger.warning("Failed to initialize embedding backend: %s", e)
            return False

        if self._backend.embed_dim != EMBEDDING_SIZE:
            logger.warning(
                "Embedding backend dimension %d != %d, disabling embeddings",
                self._backend.embed_dim, EMBEDDING_SIZE,
            )
            return False

        self._available = True
        logger.info("Embedding adapter ready (input %dx%d)", self.input_size, self.input_size)
        return True

    def embed(self, image: np.ndarray) -> Optional[Descriptor]:
        """Embed one RGB face crop.

        Returns:
            An EMBEDDING descriptor, or None when the adapter is unavailable,
            the image is unusable, or the model output is malformed.
        """
        if not self._available:
            return None

        tensor = preprocess(image, self.input_size)
        if tensor is None:
            return None

        raw = np.asarray(self._backend.embed(tensor), dtype=np.float32).reshape(-1)
        if raw.shape[0] != EMBEDDING_SIZE:
            logger.warning("Embedding has %d values, expected %d", raw.shape[0], EMBEDDING_SIZE)
            return None
        if not np.all(np.isfinite(raw)):
            logger.debug("Embedding contains non-finite values")
            return None

        return Descriptor.embedding(l2_normalize(raw))

    def close(self) -> None:
        if self._available and self._backend is not None:
            self._backend.cleanup()
        self._available = False


__all__ = ["l2_normalize", "preprocess", "EmbeddingAdapter"]
