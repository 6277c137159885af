"""Backend protocol for face embedding models."""

from __future__ import annotations

from typing import Protocol

import numpy as np


class EmbeddingBackend(Protocol):
    """Protocol for face embedding backends.

    Implementations should be swappable without changing adapter logic.
    Preprocessing and L2 normalization are done by the adapter; a backend
    only runs inference on an already prepared tensor.
    """

    def initialize(self, device: str) -> None:
        """Initialize the backend and load model to device.

        Raises:
            FileNotFoundError: If the model file is missing.
        """
        ...

    def embed(self, tensor: np.ndarray) -> np.ndarray:
        """Run inference on one preprocessed face.

        Args:
            tensor: Float32 NHWC tensor (1, S, S, 3) scaled to [-1, 1].

        Returns:
            Raw (unnormalized) embedding vector.
        """
        ...

    @property
    def embed_dim(self) -> int:
        """Embedding dimension (512 for FaceNet-512)."""
        ...

    @property
    def input_size(self) -> int:
        """Square input resolution in pixels."""
        ...

    def cleanup(self) -> None:
        """Release resources and unload model."""
        ...


__all__ = ["EmbeddingBackend"]
