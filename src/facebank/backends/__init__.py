"""Embedding model backends."""

from facebank.backends.base import EmbeddingBackend
from facebank.backends.facenet import FaceNetONNXBackend

__all__ = ["EmbeddingBackend", "FaceNetONNXBackend"]
