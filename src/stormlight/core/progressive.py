"""Progressive renderer tying together photon tracing and ray tracing.

The ProgressiveRenderer owns everything a render needs besides the scene:
the random generator (seeded from the configuration), the photon map, the
ray tracer and the render target. Samples accumulate across ``render``
calls, so an image can be refined until it looks converged.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.stormlight.config import RenderConfig
    >>> from src.stormlight.core.progressive import ProgressiveRenderer
    >>> from src.stormlight.scene.cornell_box import create_cornell_box_scene
    >>>
    >>> scene, camera = create_cornell_box_scene()
    >>> config = RenderConfig(width=64, height=64, gather_indirect=True, seed=1)
    >>> renderer = ProgressiveRenderer(scene, config, camera)
    >>> renderer.trace_photons()
    >>> renderer.render(4)
    >>> renderer.save_image("cornell.png")
"""

import logging
from collections.abc import Callable, Generator

import numpy as np
import numpy.typing as npt

from src.stormlight.camera.pinhole import PinholeCamera, setup_camera
from src.stormlight.config import RenderConfig
from src.stormlight.core.integrator import (
    clear_render_target,
    get_linear_image_numpy,
    get_normalized_image_numpy,
    get_total_samples,
    render_pass,
    save_image,
    setup_render_target,
)
from src.stormlight.core.kdtree import KDTree
from src.stormlight.core.photon_mapping import PhotonMapping
from src.stormlight.core.raytracer import RayTracer
from src.stormlight.core.tonemap import encode_srgb8

logger = logging.getLogger(__name__)

# Callback receives (current_samples, target_samples)
ProgressCallback = Callable[[int, int], None]


class ProgressiveRenderer:
    """Renders a scene progressively with photon-mapped indirect light.

    Args:
        scene: The SceneManager to render.
        config: Render settings. The renderer's random generator is seeded
            from ``config.seed``.
        camera: Camera to render through. If None, the camera state set by
            an earlier ``setup_camera`` call is used.

    Attributes:
        rng: The render's random generator.
        photon_mapping: Photon map shared with the ray tracer.
        tracer: Ray tracer shading each primary ray.
    """

    def __init__(
        self,
        scene,
        config: RenderConfig | None = None,
        camera: PinholeCamera | None = None,
    ) -> None:
        self.scene = scene
        self.config = config if config is not None else RenderConfig()
        self.rng = np.random.default_rng(self.config.seed)
        scene.set_rasterization(
            self.config.sphere_horizontal_patches, self.config.sphere_vertical_patches
        )
        self.photon_mapping = PhotonMapping(scene, self.config, self.rng)
        self.tracer = RayTracer(scene, self.config, self.photon_mapping, self.rng)
        if camera is not None:
            setup_camera(camera)
        setup_render_target(self.config.width, self.config.height)

    @property
    def width(self) -> int:
        return self.config.width

    @property
    def height(self) -> int:
        return self.config.height

    @property
    def sample_count(self) -> int:
        """Samples accumulated per pixel so far."""
        return get_total_samples()

    def reset(self) -> None:
        """Clear the accumulated image; the photon map is kept."""
        clear_render_target()

    def trace_photons(self) -> KDTree:
        """Run a photon pass and return the new photon map."""
        return self.photon_mapping.trace_photons()

    def _ensure_photons(self) -> None:
        if self.config.gather_indirect and not self.photon_mapping.has_photons:
            logger.info("Indirect gathering enabled without a photon map; tracing photons first")
            self.photon_mapping.trace_photons()

    def _render_one(self) -> None:
        jitter_rng = self.rng if self.config.samples_per_pixel > 1 else None
        render_pass(self.tracer, self.config.num_bounces, jitter_rng)

    def render(
        self,
        num_samples: int | None = None,
        batch_size: int = 1,
        callback: ProgressCallback | None = None,
    ) -> None:
        """Accumulate samples into the image.

        Args:
            num_samples: Samples per pixel to add. Defaults to
                ``config.samples_per_pixel``.
            batch_size: Samples to render between callbacks.
            callback: Optional callback receiving (current, target) sample
                counts after each batch.
        """
        for current, target in self.render_progressive(num_samples, batch_size):
            if callback is not None:
                callback(current, target)

    def render_progressive(
        self,
        num_samples: int | None = None,
        batch_size: int = 1,
    ) -> Generator[tuple[int, int], None, None]:
        """Accumulate samples, yielding (current, target) after each batch."""
        if num_samples is None:
            num_samples = self.config.samples_per_pixel
        if num_samples <= 0:
            return
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")

        self._ensure_photons()
        target = self.sample_count + num_samples
        remaining = num_samples
        while remaining > 0:
            batch = min(batch_size, remaining)
            for _ in range(batch):
                self._render_one()
            remaining -= batch
            logger.info("Rendered %d/%d samples per pixel", self.sample_count, target)
            yield (self.sample_count, target)

    def get_image_numpy(self) -> npt.NDArray[np.float32]:
        """Linear image clamped to [0, 1], shape (height, width, 3)."""
        return get_normalized_image_numpy()

    def get_linear_image(self) -> npt.NDArray[np.float32]:
        """Unclamped linear radiance, shape (height, width, 3)."""
        return get_linear_image_numpy()

    def get_image_uint8(self) -> npt.NDArray[np.uint8]:
        """8-bit sRGB image with the configured tone curve, shape (height, width, 3)."""
        return encode_srgb8(get_linear_image_numpy(), self.config.tone_map, self.config.exposure)

    def save_image(self, filepath):
        """Save the image as PNG or PPM, chosen by extension.

        The configured tone curve is applied before sRGB encoding.
        """
        return save_image(filepath, self.config.tone_map, self.config.exposure)

    def __repr__(self) -> str:
        return (
            f"ProgressiveRenderer(width={self.width}, height={self.height}, "
            f"samples={self.sample_count})"
        )
