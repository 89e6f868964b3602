"""Geometry primitives and their Taichi intersection routines."""

from .quad import Quad, hit_quad
from .sphere import HitRecord, Sphere, hit_sphere, rasterize_sphere, sphere_point
from .triangle import Triangle, hit_triangle

__all__ = [
    "HitRecord",
    "Quad",
    "Sphere",
    "Triangle",
    "hit_quad",
    "hit_sphere",
    "hit_triangle",
    "rasterize_sphere",
    "sphere_point",
]
