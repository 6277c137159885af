"""Texture descriptors: grayscale working image, LBP and HOG histograms.

All functions are pure; they return new arrays and never modify their input.
Functions that can be handed unusable input return None instead of raising.
"""

from __future__ import annotations

from typing import Optional

import cv2
import numpy as np

from facebank.types import LBP_SIZE

WORKING_SIZE = 64  # square working resolution

# Neighbour offsets (dx, dy); bit i of the LBP code belongs to entry i.
LBP_NEIGHBORS: tuple[tuple[int, int], ...] = (
    (-1, -1), (-1, 0), (-1, 1),
    (0, 1), (1, 1), (1, 0),
    (1, -1), (0, -1),
)

HOG_CELL_SIZE = 16  # 4x4 cells over the 64x64 working image
HOG_BINS = 9
HOG_BIN_WIDTH = 180.0 / HOG_BINS

# Luma weights for R, G, B.
_LUMA = np.array([0.299, 0.587, 0.114], dtype=np.float64)


def to_grayscale(image: Optional[np.ndarray]) -> Optional[np.ndarray]:
    """Convert an RGB (H, W, 3) image to uint8 luma.

    Single-channel input is passed through. Returns None for an empty or
    malformed image.
    """
    if image is None:
        return None
    arr = np.asarray(image)
    if arr.size == 0:
        return None
    if arr.ndim == 2:
        return arr.astype(np.uint8, copy=True)
    if arr.ndim != 3 or arr.shape[2] < 3:
        return None

    rgb = arr[:, :, :3].astype(np.float64)
    gray = np.floor(rgb @ _LUMA)
    return np.clip(gray, 0, 255).astype(np.uint8)


def working_image(image: Optional[np.ndarray], size: int = WORKING_SIZE) -> Optional[np.ndarray]:
    """Grayscale + bilinear resize to the square working resolution."""
    gray = to_grayscale(image)
    if gray is None:
        return None
    if gray.shape != (size, size):
        gray = cv2.resize(gray, (size, size), interpolation=cv2.INTER_LINEAR)
    return gray


def lbp_codes(gray: np.ndarray) -> np.ndarray:
    """8-bit LBP code per pixel; border pixels keep code 0."""
    g = np.asarray(gray, dtype=np.int16)
    h, w = g.shape
    codes = np.zeros((h, w), dtype=np.int32)
    if h < 3 or w < 3:
        return codes

    center = g[1:-1, 1:-1]
    inner = codes[1:-1, 1:-1]
    for bit, (dx, dy) in enumerate(LBP_NEIGHBORS):
        neighbor = g[1 + dy:h - 1 + dy, 1 + dx:w - 1 + dx]
        inner |= (neighbor >= center).astype(np.int32) << bit
    return codes


def lbp_histogram(gray: Optional[np.ndarray]) -> Optional[np.ndarray]:
    """256-bin LBP histogram normalized to sum 1 (all-zero if empty)."""
    if gray is None or np.asarray(gray).ndim != 2:
        return None
    codes = lbp_codes(gray)
    hist = np.bincount(codes.ravel(), minlength=LBP_SIZE)[:LBP_SIZE].astype(np.float32)
    total = float(hist.sum())
    if total > 0:
        hist /= total
    return hist


def gradients(gray: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Centered differences; zero on the one-pixel border."""
    g = np.asarray(gray, dtype=np.float32)
    gx = np.zeros_like(g)
    gy = np.zeros_like(g)
    if g.shape[0] >= 3 and g.shape[1] >= 3:
        gx[1:-1, 1:-1] = g[1:-1, 2:] - g[1:-1, :-2]
        gy[1:-1, 1:-1] = g[2:, 1:-1] - g[:-2, 1:-1]
    return gx, gy


def hog_histogram(
    gray: Optional[np.ndarray],
    cell_size: int = HOG_CELL_SIZE,
) -> Optional[np.ndarray]:
    """Per-cell 9-bin unsigned orientation histograms, each L2-normalized.

    Orientation is folded into [0, 180) with 20 degree bins and weighted by
    gradient magnitude. Flat cells stay zero.

    Returns:
        Concatenated cell histograms (cells_y * cells_x * 9,), or None when
        the image holds no complete cell.
    """
    if gray is None or np.asarray(gray).ndim != 2:
        return None
    h, w = np.asarray(gray).shape
    cells_y, cells_x = h // cell_size, w // cell_size
    if cells_y == 0 or cells_x == 0:
        return None

    gx, gy = gradients(gray)
    gx = gx[:cells_y * cell_size, :cells_x * cell_size]
    gy = gy[:cells_y * cell_size, :cells_x * cell_size]

    magnitude = np.sqrt(gx * gx + gy * gy)
    angle = np.degrees(np.arctan2(gy, gx))
    folded = np.mod(angle + 180.0, 180.0)
    bins = np.clip((folded / HOG_BIN_WIDTH).astype(np.int64), 0, HOG_BINS - 1)

    rows = np.arange(gx.shape[0]) // cell_size
    cols = np.arange(gx.shape[1]) // cell_size
    cell_index = rows[:, None] * cells_x + cols[None, :]

    mask = magnitude > 0
    flat_index = (cell_index * HOG_BINS + bins)[mask]
    n_cells = cells_y * cells_x
    hist = np.bincount(
        flat_index, weights=magnitude[mask], minlength=n_cells * HOG_BINS,
    ).reshape(n_cells, HOG_BINS)

    norms = np.linalg.norm(hist, axis=1, keepdims=True)
    safe = np.where(norms > 0, norms, 1.0)
    hist = np.where(norms > 0, hist / safe, 0.0)
    return hist.reshape(-1).astype(np.float32)


__all__ = [
    "WORKING_SIZE",
    "LBP_NEIGHBORS",
    "HOG_CELL_SIZE",
    "HOG_BINS",
    "to_grayscale",
    "working_image",
    "lbp_codes",
    "lbp_histogram",
    "gradients",
    "hog_histogram",
]
