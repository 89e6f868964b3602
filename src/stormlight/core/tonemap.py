"""Tone mapping and 8-bit encoding of linear renders.

Every image leaving the renderer goes through ``encode_srgb8``: an optional
tone curve compresses radiance above 1 (lightning channels and directly
viewed lights), then the sRGB transfer curve and 8-bit quantisation are
applied. The render target, the preview window and array export all share
this path, so the same linear image always produces the same bytes.

Tone curves:
    none:     L, clipped to [0, 1] by the sRGB step
    reinhard: L / (1 + L)
    exposure: 1 - exp(-L * exposure)

Example:
    >>> from src.stormlight.core.tonemap import encode_srgb8, write_image
    >>> pixels = encode_srgb8(linear, tone_map="reinhard")
    >>> write_image(linear, "storm.png", tone_map="exposure", exposure=2.0)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

from src.stormlight.core.ray import linear_to_srgb

logger = logging.getLogger(__name__)

ToneMapMethod = Literal["none", "reinhard", "exposure"]

TONE_MAP_METHODS = ("none", "reinhard", "exposure")

# Suffixes write_image knows how to write, mapped to Pillow format names
IMAGE_FORMATS = {".png": "PNG", ".ppm": "PPM"}


def _reinhard(image: np.ndarray, exposure: float) -> np.ndarray:
    return image / (1.0 + image)


def _exposure(image: np.ndarray, exposure: float) -> np.ndarray:
    return 1.0 - np.exp(-image * exposure)


def _identity(image: np.ndarray, exposure: float) -> np.ndarray:
    return image


_TONE_CURVES = {
    "none": _identity,
    "reinhard": _reinhard,
    "exposure": _exposure,
}


def check_tone_map(method: str, exposure: float = 1.0) -> None:
    """Validate tone mapping settings.

    Raises:
        ValueError: If the method is unknown or exposure is not positive.
    """
    if method not in _TONE_CURVES:
        raise ValueError(f"Unknown tone mapping method {method!r}; use one of {TONE_MAP_METHODS}")
    if not exposure > 0.0:
        raise ValueError(f"exposure must be positive, got {exposure}")


def apply_tone_map(
    image: npt.ArrayLike,
    method: ToneMapMethod = "none",
    exposure: float = 1.0,
) -> npt.NDArray[np.float64]:
    """Apply a tone curve to linear radiance.

    Negative and non-finite values are treated as black.

    Args:
        image: Linear radiance of any shape.
        method: "none", "reinhard" or "exposure".
        exposure: Scale for the exposure curve; ignored by the others.

    Returns:
        Linear values, in [0, 1) for the compressive curves.

    Raises:
        ValueError: If the method or exposure is invalid.
    """
    check_tone_map(method, exposure)
    linear = np.asarray(image, dtype=np.float64)
    linear = np.where(np.isfinite(linear), np.maximum(linear, 0.0), 0.0)
    return _TONE_CURVES[method](linear, exposure)


def _encode(image: npt.ArrayLike, tone_map: str, exposure: float) -> np.ndarray:
    mapped = apply_tone_map(image, tone_map, exposure)
    return np.clip(linear_to_srgb(mapped), 0.0, 1.0)


def encode_srgb(
    image: npt.ArrayLike,
    tone_map: ToneMapMethod = "none",
    exposure: float = 1.0,
) -> npt.NDArray[np.float32]:
    """Tone map and sRGB encode a linear image into [0, 1] floats."""
    return _encode(image, tone_map, exposure).astype(np.float32)


def encode_srgb8(
    image: npt.ArrayLike,
    tone_map: ToneMapMethod = "none",
    exposure: float = 1.0,
) -> npt.NDArray[np.uint8]:
    """Tone map and sRGB encode a linear image into 8 bits per channel."""
    return np.rint(255.0 * _encode(image, tone_map, exposure)).astype(np.uint8)


def write_image(
    image: npt.ArrayLike,
    filepath: str | Path,
    tone_map: ToneMapMethod = "none",
    exposure: float = 1.0,
) -> Path:
    """Encode a linear (H, W, 3) image and save it as PNG or PPM.

    The format is chosen by the file extension.

    Returns:
        The path written.

    Raises:
        ValueError: If the extension is not .png or .ppm, the image is not
            (H, W, 3), or the tone mapping settings are invalid.
    """
    path = Path(filepath)
    fmt = IMAGE_FORMATS.get(path.suffix.lower())
    if fmt is None:
        raise ValueError(f"Unsupported image format {path.suffix!r}; use .png or .ppm")

    image = np.asarray(image)
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected image of shape (H, W, 3), got {image.shape}")

    PILImage.fromarray(encode_srgb8(image, tone_map, exposure)).save(path, format=fmt)
    logger.info("Wrote %s (tone map %s)", path, tone_map)
    return path
