"""Core rendering module.

Components:
    ray: Python-side rays, vector helpers, hemisphere sampling, sRGB conversion
    kdtree: Bounding boxes, photons and the photon KD-tree
    lightning: Glow of lightning segments seen along a viewing ray
    photon_mapping: Photon tracing and indirect-light gathering
    raytracer: Recursive ray tracing with shadows and reflection
    tonemap: Tone curves, sRGB encoding and PNG/PPM output
    integrator: Taichi render target and sample accumulation
    progressive: ProgressiveRenderer tying it all together
"""

from .kdtree import BoundingBox, KDTree, Photon
from .ray import (
    Ray,
    as_vec3,
    build_onb_from_normal,
    length,
    linear_to_srgb,
    mirror_direction,
    normalize,
    random_cosine_direction,
    random_diffuse_direction,
    reflect,
    srgb_to_linear,
    try_normalize,
    vec3,
)

# photon_mapping, raytracer and progressive import the scene package, which
# imports from here; import them directly, e.g.
#   from src.stormlight.core.progressive import ProgressiveRenderer

__all__ = [
    "BoundingBox",
    "KDTree",
    "Photon",
    "Ray",
    "as_vec3",
    "build_onb_from_normal",
    "length",
    "linear_to_srgb",
    "mirror_direction",
    "normalize",
    "random_cosine_direction",
    "random_diffuse_direction",
    "reflect",
    "srgb_to_linear",
    "try_normalize",
    "vec3",
]
