"""Triangle primitive with Moller-Trumbore ray intersection.

Triangles make up the rasterized sphere patches. Each carries the surface
coordinates of its three corners so a hit reports interpolated (s, t)
coordinates consistent with the analytic sphere it approximates.
"""

import taichi as ti
import taichi.math as tm

from .sphere import HitRecord

vec3 = tm.vec3
vec2 = tm.vec2


@ti.dataclass
class Triangle:
    """A triangle with per-corner surface coordinates.

    Attributes:
        a: First corner.
        b: Second corner.
        c: Third corner.
        uv_a: Surface coordinates at a.
        uv_b: Surface coordinates at b.
        uv_c: Surface coordinates at c.
    """

    a: vec3
    b: vec3
    c: vec3
    uv_a: vec2
    uv_b: vec2
    uv_c: vec2


@ti.func
def hit_triangle(
    ray_origin: vec3,
    ray_direction: vec3,
    tri: Triangle,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Test for ray-triangle intersection.

    Solves origin + t * direction = (1 - b1 - b2) * a + b1 * b + b2 * c for
    (t, b1, b2) with Cramer's rule; the hit is inside when b1, b2 >= 0 and
    b1 + b2 <= 1. The face normal is normalize(cross(b - a, c - a)).

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        tri: The triangle to test intersection against.
        t_min: Hits at or below this parameter are ignored.
        t_max: Hits at or beyond this parameter are ignored.

    Returns:
        A HitRecord; check the hit field to determine if intersection occurred.
    """
    edge1 = tri.b - tri.a
    edge2 = tri.c - tri.a
    pvec = tm.cross(ray_direction, edge2)
    det = tm.dot(edge1, pvec)

    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    is_front_face = 0
    hit_uv = vec2(0.0, 0.0)

    if ti.abs(det) > 1e-12:
        inv_det = 1.0 / det
        tvec = ray_origin - tri.a
        b1 = tm.dot(tvec, pvec) * inv_det
        qvec = tm.cross(tvec, edge1)
        b2 = tm.dot(ray_direction, qvec) * inv_det
        t = tm.dot(edge2, qvec) * inv_det

        if b1 >= 0.0 and b2 >= 0.0 and b1 + b2 <= 1.0 and t > t_min and t < t_max:
            did_hit = 1
            hit_t = t
            hit_point = ray_origin + t * ray_direction
            hit_uv = (1.0 - b1 - b2) * tri.uv_a + b1 * tri.uv_b + b2 * tri.uv_c
            normal = tm.normalize(tm.cross(edge1, edge2))
            if tm.dot(ray_direction, normal) > 0.0:
                is_front_face = 0
                hit_normal = -normal
            else:
                is_front_face = 1
                hit_normal = normal

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        front_face=is_front_face,
        uv=hit_uv,
    )
