"""Render configuration.

RenderConfig collects every knob the renderer reads: image size, photon
budget, gather settings, bounce limits, shadow sampling, output tone
mapping and the random seed.
The configuration is read-only once a render starts; the renderer, photon
tracer and ray tracer all take the same instance.

Example:
    >>> from src.stormlight.config import RenderConfig
    >>> config = RenderConfig(width=200, height=200, gather_indirect=True, seed=3)
    >>> config.to_dict()["num_photons_to_collect"]
    100
"""

from dataclasses import asdict, dataclass, fields
from typing import Any

from src.stormlight.core.tonemap import check_tone_map


@dataclass
class RenderConfig:
    """Settings for one render.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        samples_per_pixel: Jittered primary rays per pixel.
        num_photons_to_shoot: Photon budget shared across all area lights.
        num_photons_to_collect: Photons a gather must accept before it stops
            growing its search radius.
        num_bounces: Reflection depth for ray tracing.
        num_photon_bounces: Maximum bounce index of a traced photon.
        num_shadow_samples: Shadow rays per light. 0 disables occlusion tests,
            1 aims at the light centroid, more samples random light points.
        gather_indirect: Estimate indirect light from the photon map instead
            of using the flat ambient term alone.
        gather_initial_radius: Starting half-width of the gather search box.
        kdtree_leaf_capacity: Photons a KD-tree leaf holds before splitting.
        kdtree_max_depth: Depth below which KD-tree leaves never split.
        sphere_horizontal_patches: Longitude divisions of rasterized spheres.
        sphere_vertical_patches: Latitude divisions of rasterized spheres.
        tone_map: Tone curve applied when the image is saved or shown:
            "none", "reinhard" or "exposure".
        exposure: Scale for the exposure tone curve.
        seed: Seed for the render's random generator. None draws fresh
            entropy from the operating system.
    """

    width: int = 100
    height: int = 100
    samples_per_pixel: int = 1
    num_photons_to_shoot: int = 10000
    num_photons_to_collect: int = 100
    num_bounces: int = 0
    num_photon_bounces: int = 10
    num_shadow_samples: int = 0
    gather_indirect: bool = False
    gather_initial_radius: float = 1e-4
    kdtree_leaf_capacity: int = 10
    kdtree_max_depth: int = 15
    sphere_horizontal_patches: int = 16
    sphere_vertical_patches: int = 12
    tone_map: str = "none"
    exposure: float = 1.0
    seed: int | None = None

    def __post_init__(self) -> None:
        """Validate configuration values.

        Raises:
            ValueError: If any value is out of range.
        """
        if self.width < 1 or self.height < 1:
            raise ValueError(f"Image size must be positive, got {self.width}x{self.height}")
        if self.samples_per_pixel < 1:
            raise ValueError(f"samples_per_pixel must be >= 1, got {self.samples_per_pixel}")
        for name in ("num_photons_to_shoot", "num_bounces", "num_photon_bounces", "num_shadow_samples"):
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"{name} must be non-negative, got {value}")
        if self.num_photons_to_collect < 1:
            raise ValueError(
                f"num_photons_to_collect must be >= 1, got {self.num_photons_to_collect}"
            )
        if self.gather_initial_radius <= 0.0:
            raise ValueError(
                f"gather_initial_radius must be positive, got {self.gather_initial_radius}"
            )
        if self.kdtree_leaf_capacity < 1:
            raise ValueError(f"kdtree_leaf_capacity must be >= 1, got {self.kdtree_leaf_capacity}")
        if self.kdtree_max_depth < 0:
            raise ValueError(f"kdtree_max_depth must be non-negative, got {self.kdtree_max_depth}")
        if self.sphere_horizontal_patches < 4 or self.sphere_horizontal_patches % 2 != 0:
            raise ValueError(
                "sphere_horizontal_patches must be even and >= 4, "
                f"got {self.sphere_horizontal_patches}"
            )
        if self.sphere_vertical_patches < 2 or self.sphere_vertical_patches % 2 != 0:
            raise ValueError(
                "sphere_vertical_patches must be even and >= 2, "
                f"got {self.sphere_vertical_patches}"
            )
        check_tone_map(self.tone_map, self.exposure)

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    def to_dict(self) -> dict[str, Any]:
        """Export the configuration as a JSON-compatible dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RenderConfig":
        """Create a configuration from a dictionary.

        Args:
            data: Mapping of field names to values. Missing fields keep their
                defaults.

        Raises:
            ValueError: If the dictionary contains unknown keys or invalid values.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown render settings: {sorted(unknown)}")
        return cls(**data)
