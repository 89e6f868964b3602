"""Render target and per-pass image rendering.

A render pass shoots one (optionally jittered) primary ray per pixel,
shades it with ``RayTracer.trace_ray`` and folds the result into a
running-average colour buffer held in Taichi fields:

    avg_n = avg_{n-1} + (x_n - avg_{n-1}) / n

Negative, NaN and infinite samples are zeroed before accumulation.

The buffer holds linear radiance. Readback functions convert to the usual
image layout (height, width, 3) with the top row first; ``save_image``
hands the linear image to ``core.tonemap`` for tone mapping, sRGB encoding
and PNG or PPM output.

Example:
    >>> import numpy as np
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.stormlight.core.integrator import render_pass, save_image, setup_render_target
    >>> setup_render_target(64, 64)
    >>> render_pass(tracer, num_bounces=2, rng=np.random.default_rng(0))
    >>> save_image("out.ppm")
"""

import logging
from collections.abc import Callable
from pathlib import Path

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.stormlight.camera.pinhole import generate_primary_rays
from src.stormlight.core.ray import Ray
from src.stormlight.core.tonemap import ToneMapMethod, write_image

logger = logging.getLogger(__name__)

vec3 = tm.vec3

# =============================================================================
# Render Target (Image Buffer)
# =============================================================================

# Preallocated so a resize never recompiles kernels
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048

_image_width = ti.field(dtype=ti.i32, shape=())
_image_height = ti.field(dtype=ti.i32, shape=())
_color_buffer = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))
_sample_count = ti.field(dtype=ti.i32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))
_render_target_initialized = ti.field(dtype=ti.i32, shape=())


def setup_render_target(width: int, height: int) -> None:
    """Set the active image size and clear the buffers.

    Raises:
        ValueError: If dimensions are not positive or exceed the maximum.
    """
    if width < 1 or height < 1:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")
    if width > MAX_IMAGE_WIDTH or height > MAX_IMAGE_HEIGHT:
        raise ValueError(
            f"Image dimensions ({width}x{height}) exceed maximum supported "
            f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
        )
    _image_width[None] = width
    _image_height[None] = height
    _render_target_initialized[None] = 1
    clear_render_target()


def clear_render_target() -> None:
    """Zero the colour buffer and sample counts."""
    _color_buffer.fill(0.0)
    _sample_count.fill(0)


def reset_render_target() -> None:
    """Forget the render target entirely (used between tests)."""
    clear_render_target()
    _render_target_initialized[None] = 0


def get_image_dimensions() -> tuple[int, int]:
    """Active (width, height)."""
    return int(_image_width[None]), int(_image_height[None])


def _check_render_target_initialized() -> None:
    if _render_target_initialized[None] == 0:
        raise RuntimeError("Render target not set up. Call setup_render_target() first.")


def get_total_samples() -> int:
    """Samples accumulated so far (read from pixel (0, 0)).

    Raises:
        RuntimeError: If the render target has not been set up.
    """
    _check_render_target_initialized()
    return int(_sample_count[0, 0])


# =============================================================================
# Accumulation
# =============================================================================


@ti.kernel
def _accumulate_kernel(samples: ti.types.ndarray(dtype=ti.f32, ndim=3), width: ti.i32, height: ti.i32):
    for i, j in ti.ndrange(width, height):
        color = vec3(samples[i, j, 0], samples[i, j, 1], samples[i, j, 2])

        for c in ti.static(range(3)):
            if tm.isnan(color[c]) or tm.isinf(color[c]):
                color[c] = 0.0
        color = tm.max(color, vec3(0.0, 0.0, 0.0))

        _sample_count[i, j] += 1
        n = _sample_count[i, j]
        _color_buffer[i, j] += (color - _color_buffer[i, j]) / ti.cast(n, ti.f32)


def accumulate_samples(samples: npt.ArrayLike) -> None:
    """Fold one sample per pixel into the running average.

    Args:
        samples: Linear RGB samples of shape (width, height, 3); pixel
            (0, 0) is the bottom-left corner.

    Raises:
        RuntimeError: If the render target has not been set up.
        ValueError: If the sample array does not match the render target.
    """
    _check_render_target_initialized()
    width, height = get_image_dimensions()
    arr = np.ascontiguousarray(np.asarray(samples, dtype=np.float32))
    if arr.shape != (width, height, 3):
        raise ValueError(f"Expected samples of shape {(width, height, 3)}, got {arr.shape}")
    _accumulate_kernel(arr, width, height)


# =============================================================================
# Rendering
# =============================================================================

# Callback receives (columns_done, width) during a pass
PassCallback = Callable[[int, int], None]


def render_pass(
    tracer,
    num_bounces: int,
    rng: np.random.Generator | None = None,
    progress_callback: PassCallback | None = None,
) -> None:
    """Trace one sample per pixel and accumulate it.

    Args:
        tracer: RayTracer used to shade each primary ray.
        num_bounces: Reflection bounce budget per primary ray.
        rng: Generator for sub-pixel jitter; None samples pixel centers.
        progress_callback: Optional progress callback, called after each column
            of pixels with (columns_done, width).

    Raises:
        RuntimeError: If the render target has not been set up.
    """
    _check_render_target_initialized()
    width, height = get_image_dimensions()
    origin, directions = generate_primary_rays(width, height, rng)

    samples = np.zeros((width, height, 3), dtype=np.float32)
    for i in range(width):
        for j in range(height):
            samples[i, j] = tracer.trace_ray(Ray(origin, directions[i, j]), num_bounces)
        if progress_callback is not None:
            progress_callback(i + 1, width)
    accumulate_samples(samples)


# =============================================================================
# Readback and Output
# =============================================================================


def get_linear_image_numpy() -> npt.NDArray[np.float32]:
    """Accumulated linear radiance, shape (height, width, 3), top row first.

    Raises:
        RuntimeError: If the render target has not been set up.
    """
    _check_render_target_initialized()
    width, height = get_image_dimensions()
    image = _color_buffer.to_numpy()[:width, :height, :]
    image = np.flipud(np.transpose(image, (1, 0, 2)))
    return np.ascontiguousarray(image, dtype=np.float32)


def get_normalized_image_numpy() -> npt.NDArray[np.float32]:
    """Accumulated linear radiance clamped to [0, 1], shape (height, width, 3)."""
    return np.clip(get_linear_image_numpy(), 0.0, 1.0).astype(np.float32)


def save_image(filepath: str | Path, tone_map: ToneMapMethod = "none", exposure: float = 1.0) -> Path:
    """Save the accumulated image as sRGB PNG or PPM.

    Args:
        filepath: Output path; the extension picks the format.
        tone_map: Tone curve applied before sRGB encoding.
        exposure: Used by the exposure curve only.

    Raises:
        RuntimeError: If the render target has not been set up.
        ValueError: If the file extension is not .png or .ppm, or the tone
            mapping settings are invalid.
    """
    return write_image(get_linear_image_numpy(), filepath, tone_map, exposure)
