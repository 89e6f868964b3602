"""Phong material: diffuse, mirror reflection, emission and highlights.

A PhongMaterial answers every question the tracers ask of a surface:

- ``get_diffuse_color(s, t)``: albedo, optionally from a texture
- ``reflective``: mirror reflectance used for reflection rays and
  specular photon bounces
- ``emitted``: emitted radiance; a surface with non-zero emission is a light
- ``shade``: direct lighting from one light direction

Shading follows the Phong model:

    color = emitted
          + light * diffuse * max(0, n . l)
          + light * specular * max(0, e . r)^exponent * max(0, n . l)

where r is l mirrored about n and e points back along the view ray.

Example:
    >>> from src.stormlight.materials.phong import PhongMaterial
    >>> red = PhongMaterial(diffuse=(0.8, 0.1, 0.1))
    >>> mirror = PhongMaterial(diffuse=(0.0, 0.0, 0.0), reflective=(0.9, 0.9, 0.9))
    >>> lamp = PhongMaterial(emitted=(4.0, 4.0, 4.0))
"""

from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
from PIL import Image

from src.stormlight.core.ray import Vec3, as_vec3, normalize, srgb_to_linear

# Materials whose emitted colour is longer than this are lights
EMISSIVE_THRESHOLD = 0.001


def load_texture(path: str | Path) -> np.ndarray:
    """Load an image as a linear-light float RGB array of shape (h, w, 3).

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    with Image.open(path) as img:
        rgb = np.asarray(img.convert("RGB"), dtype=np.float64) / 255.0
    return srgb_to_linear(rgb)


def _check_unit_color(name: str, color: Vec3) -> None:
    if np.any(color < 0.0) or np.any(color > 1.0):
        raise ValueError(f"{name} components must be in [0, 1], got {tuple(color)}")


@dataclass(eq=False)
class PhongMaterial:
    """Surface material for ray and photon tracing.

    Attributes:
        diffuse: Diffuse albedo, each component in [0, 1].
        reflective: Mirror reflectance, each component in [0, 1].
        emitted: Emitted radiance, non-negative (may exceed 1).
        specular: Phong highlight colour, each component in [0, 1].
        exponent: Phong highlight exponent (> 0).
        texture: Optional (h, w, 3) linear RGB array replacing ``diffuse``.
        texture_path: File the texture was loaded from, kept for serialization.
    """

    diffuse: Vec3 = field(default_factory=lambda: np.full(3, 0.5))
    reflective: Vec3 = field(default_factory=lambda: np.zeros(3))
    emitted: Vec3 = field(default_factory=lambda: np.zeros(3))
    specular: Vec3 = field(default_factory=lambda: np.zeros(3))
    exponent: float = 100.0
    texture: np.ndarray | None = None
    texture_path: str | None = None

    def __post_init__(self) -> None:
        self.diffuse = as_vec3(self.diffuse)
        self.reflective = as_vec3(self.reflective)
        self.emitted = as_vec3(self.emitted)
        self.specular = as_vec3(self.specular)
        _check_unit_color("diffuse", self.diffuse)
        _check_unit_color("reflective", self.reflective)
        _check_unit_color("specular", self.specular)
        if np.any(self.emitted < 0.0):
            raise ValueError(f"emitted components must be non-negative, got {tuple(self.emitted)}")
        if self.exponent <= 0.0:
            raise ValueError(f"exponent must be positive, got {self.exponent}")
        if self.texture is None and self.texture_path is not None:
            self.texture = load_texture(self.texture_path)
        if self.texture is not None:
            self.texture = np.asarray(self.texture, dtype=np.float64)
            if self.texture.ndim != 3 or self.texture.shape[2] != 3:
                raise ValueError(f"texture must have shape (h, w, 3), got {self.texture.shape}")

    def is_emissive(self) -> bool:
        return float(np.linalg.norm(self.emitted)) > EMISSIVE_THRESHOLD

    def has_texture(self) -> bool:
        return self.texture is not None

    def get_diffuse_color(self, s: float = 0.0, t: float = 0.0) -> Vec3:
        """Albedo at surface coordinates (s, t).

        Textures are sampled with nearest-neighbour lookup and wrap in s;
        t = 0 is the bottom row of the image.
        """
        if self.texture is None:
            return self.diffuse
        h, w, _ = self.texture.shape
        x = int(np.floor((s % 1.0) * w)) % w
        y = min(max(int(np.floor((1.0 - t) * h)), 0), h - 1)
        return self.texture[y, x]

    def shade(self, ray, hit, dir_to_light: Vec3, light_color: Vec3) -> Vec3:
        """Direct lighting at a hit from a single light direction.

        Args:
            ray: The viewing ray that produced the hit.
            hit: The hit record (normal and surface coordinates are used).
            dir_to_light: Unit direction from the hit point to the light.
            light_color: Incident light colour at the hit point.

        Returns:
            Emitted plus diffuse plus highlight contribution.
        """
        n = hit.normal
        e = -normalize(ray.direction)
        answer = self.emitted.copy()

        dot_nl = max(0.0, float(np.dot(n, dir_to_light)))
        diffuse = self.get_diffuse_color(*hit.uv)
        answer += light_color * diffuse * dot_nl

        if np.any(self.specular > 0.0) and dot_nl > 0.0:
            r = normalize(-dir_to_light + 2.0 * dot_nl * n)
            dot_er = max(0.0, float(np.dot(e, r)))
            answer += light_color * self.specular * (dot_er**self.exponent) * dot_nl

        return answer

    def to_dict(self) -> dict:
        """Export the material parameters (textures by path only)."""
        data = {
            "diffuse": self.diffuse.tolist(),
            "reflective": self.reflective.tolist(),
            "emitted": self.emitted.tolist(),
            "specular": self.specular.tolist(),
            "exponent": self.exponent,
        }
        if self.texture_path is not None:
            data["texture_path"] = self.texture_path
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "PhongMaterial":
        return cls(**data)
