"""FaceNet-512 ONNX embedding backend.

ONNX model:
  - facenet_512.onnx: [1,160,160,3] float32 in [-1, 1] -> [1,512]
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)


class FaceNetONNXBackend:
    """FaceNet-512 backend running on onnxruntime.

    Model loaded from ``<models_dir>/facenet/facenet_512.onnx``, where
    models_dir defaults to :func:`facebank.paths.get_models_dir`, unless an
    explicit ``model_path`` is given.
    """

    MODEL_SUBDIR = "facenet"
    MODEL_FILE = "facenet_512.onnx"

    def __init__(
        self,
        models_dir: Optional[Path] = None,
        model_path: Optional[Path] = None,
    ):
        self._models_dir = models_dir
        self._model_path = Path(model_path) if model_path is not None else None
        self._session = None
        self._input_name: Optional[str] = None
        self._initialized = False

    @property
    def embed_dim(self) -> int:
        return 512

    @property
    def input_size(self) -> int:
        return 160

    def initialize(self, device: str = "cpu") -> None:
        if self._initialized:
            return

        import onnxruntime as ort

        model_path = self._model_path
        if model_path is None:
            if self._models_dir is not None:
                model_path = Path(self._models_dir) / self.MODEL_SUBDIR / self.MODEL_FILE
            else:
                from facebank.paths import model_path as resolve_model
                model_path = resolve_model(self.MODEL_SUBDIR, self.MODEL_FILE)

        if not model_path.exists():
            raise FileNotFoundError(
                f"FaceNet ONNX model not found at {model_path}. "
                f"Place {self.MODEL_FILE} under <models_dir>/{self.MODEL_SUBDIR}/."
            )

        providers = ["CUDAExecutionProvider", "CPUExecutionProvider"]
        if "cpu" in device.lower():
            providers = ["CPUExecutionProvider"]

        self._session = ort.InferenceSession(str(model_path), providers=providers)
        self._input_name = self._session.get_inputs()[0].name
        self._initialized = True
        logger.info("FaceNet backend initialized from %s", model_path)

    def embed(self, tensor: np.ndarray) -> np.ndarray:
        if not self._initialized:
            raise RuntimeError("Backend not initialized. Call initialize() first.")

        output = self._session.run(None, {self._input_name: tensor})[0]
        # Output shape: [1, 512] -> [512]
        return np.asarray(output, dtype=np.float32).reshape(-1)

    def cleanup(self) -> None:
        self._session = None
        self._input_name = None
        self._initialized = False
        logger.info("FaceNet backend cleaned up")


__all__ = ["FaceNetONNXBackend"]
