"""Alpha compositing and PNG export of finished overlays."""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
from PIL import Image

from .errors import InvalidDimensionsError

_LOGGER = logging.getLogger("polyoverlay.composite")


def add_overlay(base: np.ndarray, overlay: np.ndarray, alphalayer: float = 1.0) -> np.ndarray:
    """Blend `overlay` over `base` (both floats in [0, 1], same pixel size).

    `base` may be RGB or RGBA; the result keeps its channel count.
    `alphalayer` scales the overlay's own alpha channel.
    """
    if not 0.0 <= float(alphalayer) <= 1.0:
        raise ValueError(f"alphalayer must be within [0, 1], got {alphalayer!r}")
    base_arr = np.asarray(base, dtype=np.float64)
    over_arr = np.asarray(overlay, dtype=np.float64)
    if over_arr.ndim != 3 or over_arr.shape[2] != 4:
        raise InvalidDimensionsError(f"Overlay must be (height, width, 4), got {over_arr.shape}")
    if base_arr.ndim != 3 or base_arr.shape[2] not in (3, 4):
        raise InvalidDimensionsError(f"Base must be (height, width, 3|4), got {base_arr.shape}")
    if base_arr.shape[:2] != over_arr.shape[:2]:
        raise InvalidDimensionsError(
            f"Overlay size {over_arr.shape[:2]} does not match base size {base_arr.shape[:2]}"
        )

    alpha = over_arr[..., 3:4] * float(alphalayer)
    out = base_arr.copy()
    if base_arr.shape[2] == 3:
        out[...] = over_arr[..., :3] * alpha + base_arr * (1.0 - alpha)
        return out

    base_alpha = base_arr[..., 3:4]
    out_alpha = alpha + base_alpha * (1.0 - alpha)
    premultiplied = over_arr[..., :3] * alpha + base_arr[..., :3] * base_alpha * (1.0 - alpha)
    with np.errstate(invalid="ignore", divide="ignore"):
        rgb = np.where(out_alpha > 0.0, premultiplied / out_alpha, 0.0)
    out[..., :3] = rgb
    out[..., 3:4] = out_alpha
    return out


def save_overlay_png(overlay: np.ndarray, path: Path) -> Path:
    """Write an RGBA overlay in [0, 1] to `path` as PNG."""
    arr = np.asarray(overlay, dtype=np.float64)
    if arr.ndim != 3 or arr.shape[2] != 4:
        raise InvalidDimensionsError(f"Overlay must be (height, width, 4), got {arr.shape}")
    pixels = np.clip(np.rint(arr * 255.0), 0, 255).astype(np.uint8)
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(pixels).save(path, format="PNG")
    _LOGGER.debug("Wrote %dx%d overlay PNG to %s", arr.shape[1], arr.shape[0], path)
    return path


def load_overlay_png(path: Path) -> np.ndarray:
    """Read a PNG back into a `(height, width, 4)` float array in [0, 1]."""
    with Image.open(path) as img:
        rgba = np.asarray(img.convert("RGBA"), dtype=np.float64)
    return rgba / 255.0
