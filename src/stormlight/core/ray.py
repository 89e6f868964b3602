"""Ray data structure and vector utilities for the Python-side tracer.

The recursive parts of the renderer (ray tracing, photon tracing and photon
gathering) run in Python on small NumPy vectors. This module provides the
Ray dataclass and the vector helpers they share.

All random sampling takes an explicit ``numpy.random.Generator`` so that a
render is reproducible from its seed and independent workers can own
independent generators.

Example:
    >>> import numpy as np
    >>> rng = np.random.default_rng(7)
    >>> ray = Ray(origin=vec3(0.0, 0.0, 0.0), direction=vec3(0.0, 0.0, -1.0))
    >>> point = ray.point_at(5.0)  # Point 5 units along the ray
    >>> bounce = random_diffuse_direction(vec3(0.0, 1.0, 0.0), rng)
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

# Type alias for 3D vectors and RGB triples
Vec3 = npt.NDArray[np.float64]

# Offset applied to secondary ray origins to avoid self-intersection
RAY_EPSILON = 1e-4

# Lengths below this are treated as zero
ZERO_LENGTH = 1e-12


def vec3(x: float, y: float, z: float) -> Vec3:
    """Create a float64 3-vector."""
    return np.array([x, y, z], dtype=np.float64)


def as_vec3(values) -> Vec3:
    """Convert any 3-sequence to a float64 3-vector."""
    v = np.asarray(values, dtype=np.float64)
    if v.shape != (3,):
        raise ValueError(f"Expected 3 components, got shape {v.shape}")
    return v


@dataclass(frozen=True, eq=False)
class Ray:
    """A ray with an origin point and direction vector.

    Attributes:
        origin: The starting point of the ray.
        direction: The direction of the ray. Normalized by every caller in
            this package, but not enforced.
    """

    origin: Vec3
    direction: Vec3

    def point_at(self, t: float) -> Vec3:
        """Compute the point origin + t * direction."""
        return self.origin + t * self.direction


# =============================================================================
# Vector Utility Functions
# =============================================================================


def length(v: Vec3) -> float:
    """Euclidean length of a vector."""
    return float(math.sqrt(float(np.dot(v, v))))


def normalize(v: Vec3) -> Vec3:
    """Normalize a vector to unit length.

    Returns a zero vector if v is zero-length.
    """
    n = length(v)
    if n < ZERO_LENGTH:
        return np.zeros(3, dtype=np.float64)
    return v / n


def try_normalize(v: Vec3) -> Vec3 | None:
    """Normalize a vector, or return None if it has no direction.

    Callers use this where a zero-length vector means the contribution
    being computed has to be skipped.
    """
    n = length(v)
    if n < ZERO_LENGTH or not math.isfinite(n):
        return None
    return v / n


def reflect(incident: Vec3, normal: Vec3) -> Vec3:
    """Reflect an incident vector about a unit normal."""
    return incident - 2.0 * float(np.dot(incident, normal)) * normal


def mirror_direction(normal: Vec3, incoming: Vec3) -> Vec3:
    """Unit mirror direction of an incoming direction about a normal."""
    return normalize(reflect(incoming, normal))


def offset_ray_origin(point: Vec3, normal: Vec3, direction: Vec3) -> Vec3:
    """Push a hit point off the surface on the side the new ray travels to."""
    if float(np.dot(direction, normal)) < 0.0:
        return point - RAY_EPSILON * normal
    return point + RAY_EPSILON * normal


def max_component(v: Vec3) -> float:
    """Largest component of a vector."""
    return float(np.max(v))


# =============================================================================
# Random Sampling Utilities
# =============================================================================


def build_onb_from_normal(normal: Vec3) -> tuple[Vec3, Vec3, Vec3]:
    """Build an orthonormal basis (tangent, bitangent, normal) around a normal."""
    a = vec3(1.0, 0.0, 0.0)
    if abs(normal[0]) > 0.9:
        a = vec3(0.0, 1.0, 0.0)
    tangent = normalize(np.cross(a, normal))
    bitangent = np.cross(normal, tangent)
    return tangent, bitangent, normal


def random_cosine_direction(rng: np.random.Generator) -> Vec3:
    """Random direction in the local z-up frame with pdf cos(theta) / pi."""
    r1, r2 = rng.random(2)
    phi = 2.0 * math.pi * r1
    sqrt_r2 = math.sqrt(r2)
    return vec3(math.cos(phi) * sqrt_r2, math.sin(phi) * sqrt_r2, math.sqrt(1.0 - r2))


def random_diffuse_direction(normal: Vec3, rng: np.random.Generator) -> Vec3:
    """Cosine-weighted random direction in the hemisphere around a normal."""
    local = random_cosine_direction(rng)
    tangent, bitangent, n = build_onb_from_normal(normal)
    direction = local[0] * tangent + local[1] * bitangent + local[2] * n
    return normalize(direction)


# =============================================================================
# Colour Space
# =============================================================================


def srgb_to_linear(c):
    """Convert display-gamma sRGB values in [0, 1] to linear light.

    Works on scalars and NumPy arrays.
    """
    c = np.asarray(c, dtype=np.float64)
    return np.where(c <= 0.04045, c / 12.92, ((c + 0.055) / 1.055) ** 2.4)


def linear_to_srgb(c):
    """Convert linear light to display-gamma sRGB values.

    Negative input is clamped to zero. Works on scalars and NumPy arrays.
    """
    c = np.maximum(np.asarray(c, dtype=np.float64), 0.0)
    return np.where(c <= 0.0031308, 12.92 * c, 1.055 * np.power(c, 1.0 / 2.4) - 0.055)
