"""Where facebank looks for model files.

Layout::

    ~/.facebank/                 FACEBANK_HOME
        models/                  FACEBANK_MODELS_DIR
            facenet/facenet_512.onnx

``FACEBANK_MODELS_DIR`` moves the models directory on its own, so one model
cache can be shared by several homes.
"""

import os
from pathlib import Path
from typing import Optional

HOME_ENV = "FACEBANK_HOME"
MODELS_ENV = "FACEBANK_MODELS_DIR"


def _env_path(name: str) -> Optional[Path]:
    value = os.environ.get(name, "").strip()
    if not value:
        return None
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = Path.cwd() / path
    return path


def get_home_dir() -> Path:
    """Return the facebank home directory, creating it if needed."""
    home_dir = _env_path(HOME_ENV) or Path.home() / ".facebank"
    home_dir.mkdir(parents=True, exist_ok=True)
    return home_dir


def get_models_dir() -> Path:
    """Return the models directory, creating it if it doesn't exist.

    Raises:
        NotADirectoryError: If the configured location is an existing file.
    """
    models_dir = _env_path(MODELS_ENV) or get_home_dir() / "models"
    if models_dir.exists() and not models_dir.is_dir():
        raise NotADirectoryError(f"{MODELS_ENV} points at a file: {models_dir}")
    models_dir.mkdir(parents=True, exist_ok=True)
    return models_dir


def model_path(*parts: str) -> Path:
    """Path of a model file under the models directory.

    The file itself is not required to exist.
    """
    return get_models_dir().joinpath(*parts)


__all__ = ["HOME_ENV", "MODELS_ENV", "get_home_dir", "get_models_dir", "model_path"]
