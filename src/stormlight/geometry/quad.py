"""Quad primitive with ray-quad intersection.

A quad is the parallelogram spanned from a corner Q by two edge vectors:
vertices Q, Q+u, Q+v, Q+u+v. Its face normal is normalize(cross(u, v)).
Walls, floors and area lights are all quads.

The hit point is written as P = Q + alpha * u + beta * v; (alpha, beta) are
both the inside test (each in [0, 1]) and the surface coordinates reported
for texture lookup.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.stormlight.geometry.quad import Quad, hit_quad
    >>> floor = Quad(Q=ti.math.vec3(0, 0, 0), u=ti.math.vec3(1, 0, 0), v=ti.math.vec3(0, 0, 1))
    >>> # Use hit_quad within a Taichi kernel
"""

import taichi as ti
import taichi.math as tm

from .sphere import HitRecord

vec3 = tm.vec3
vec2 = tm.vec2


@ti.dataclass
class Quad:
    """A parallelogram defined by a corner point and two edge vectors.

    Attributes:
        Q: The corner point of the quad (vec3).
        u: Edge vector from Q to adjacent corner (vec3).
        v: Edge vector from Q to other adjacent corner (vec3).
    """

    Q: vec3
    u: vec3
    v: vec3


@ti.func
def _compute_quad_frame(quad: Quad):
    """Plane normal, plane constant and the dual vectors of (u, v).

    w_u and w_v satisfy dot(w_u, u) = dot(w_v, v) = 1 and
    dot(w_u, v) = dot(w_v, u) = 0, so alpha = dot(w_u, P - Q) and
    beta = dot(w_v, P - Q). Both are zero for a degenerate quad.
    """
    n = tm.cross(quad.u, quad.v)
    n_dot_n = tm.dot(n, n)

    normal = vec3(0.0, 0.0, 0.0)
    w_u = vec3(0.0, 0.0, 0.0)
    w_v = vec3(0.0, 0.0, 0.0)
    if n_dot_n > 1e-10:
        normal = n / ti.sqrt(n_dot_n)
        w_u = tm.cross(quad.v, n) / n_dot_n
        w_v = tm.cross(n, quad.u) / n_dot_n

    d = tm.dot(normal, quad.Q)
    return normal, d, w_u, w_v


@ti.func
def hit_quad(
    ray_origin: vec3,
    ray_direction: vec3,
    quad: Quad,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Test for ray-quad intersection.

    Intersects the ray with the quad's plane,
        t = (d - dot(normal, origin)) / dot(normal, direction),
    then checks that the hit's (alpha, beta) lie in [0, 1] x [0, 1].

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        quad: The quad to test intersection against.
        t_min: Hits at or below this parameter are ignored.
        t_max: Hits at or beyond this parameter are ignored.

    Returns:
        A HitRecord; check the hit field to determine if intersection occurred.
    """
    normal, d, w_u, w_v = _compute_quad_frame(quad)
    denom = tm.dot(normal, ray_direction)

    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    is_front_face = 0
    hit_uv = vec2(0.0, 0.0)

    # Parallel rays and degenerate quads never hit
    if ti.abs(denom) > 1e-8:
        t = (d - tm.dot(normal, ray_origin)) / denom
        if t > t_min and t < t_max:
            point = ray_origin + t * ray_direction
            p_minus_q = point - quad.Q
            alpha = tm.dot(w_u, p_minus_q)
            beta = tm.dot(w_v, p_minus_q)

            if alpha >= 0.0 and alpha <= 1.0 and beta >= 0.0 and beta <= 1.0:
                did_hit = 1
                hit_t = t
                hit_point = point
                hit_uv = vec2(alpha, beta)
                if denom > 0.0:
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
