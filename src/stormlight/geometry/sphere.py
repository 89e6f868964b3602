"""Sphere primitive: ray intersection, surface parametrization and tessellation.

The intersection uses the robust quadratic formula from Ray Tracing Gems to
avoid cancellation when the discriminant is nearly zero.

Surface coordinates (s, t) in [0, 1) x [0, 1] follow the longitude/latitude
parametrization

    angle = 2 * pi * s
    y = -cos(pi * t)
    x =  sqrt(1 - y^2) * cos(angle)
    z = -sqrt(1 - y^2) * sin(angle)

of the unit sphere, so t = 0 is the south pole and t = 1 the north pole.
The same parametrization drives ``rasterize_sphere``, which tessellates a
sphere into triangles for the rasterized-patch geometry path.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.stormlight.geometry.sphere import Sphere, hit_sphere, rasterize_sphere
    >>> sphere = Sphere(center=ti.math.vec3(0, 0, -1), radius=0.5)
    >>> # Use hit_sphere within a Taichi kernel
    >>> triangles = rasterize_sphere((0, 0, -1), 0.5, 16, 12)
"""

import math

import numpy as np
import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3
vec2 = tm.vec2


@ti.dataclass
class Sphere:
    """A sphere defined by center point and radius.

    Attributes:
        center: The center point of the sphere (vec3).
        radius: The radius of the sphere (positive float).
    """

    center: vec3
    radius: ti.f32


@ti.dataclass
class HitRecord:
    """Record of a ray-primitive intersection.

    Shared by every primitive type in this package.

    Attributes:
        hit: Whether the ray intersected the primitive (1 if hit, 0 if miss).
        t: The parameter value along the ray where intersection occurred.
        point: The 3D point where the ray intersected the surface.
        normal: Unit surface normal, flipped to face the ray origin.
        front_face: Whether the ray hit the front face (1) or back face (0).
        uv: Surface coordinates (s, t) of the hit, used for texture lookup.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32
    uv: vec2


@ti.func
def _solve_quadratic_robust(h: ti.f32, a: ti.f32, c: ti.f32, sqrt_d: ti.f32):
    """Solve a*t^2 + 2*h*t + c = 0, returning (t0, t1) with t0 <= t1."""
    sign_h = ti.select(h < 0.0, -1.0, 1.0)
    q = -(h + sign_h * sqrt_d)

    t0 = 0.0
    t1 = 0.0
    if ti.abs(q) < 1e-10:
        t0 = (-h - sqrt_d) / a
        t1 = (-h + sqrt_d) / a
    else:
        t0 = q / a
        t1 = c / q

    if t0 > t1:
        temp = t0
        t0 = t1
        t1 = temp

    return t0, t1


@ti.func
def sphere_uv(outward_normal: vec3) -> vec2:
    """Surface coordinates (s, t) of a point given its unit outward normal."""
    y = ti.min(ti.max(outward_normal.y, -1.0), 1.0)
    t = ti.acos(-y) / tm.pi
    s = ti.atan2(-outward_normal.z, outward_normal.x) / (2.0 * tm.pi)
    if s < 0.0:
        s += 1.0
    return vec2(s, t)


@ti.func
def hit_sphere(
    ray_origin: vec3,
    ray_direction: vec3,
    sphere: Sphere,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Test for ray-sphere intersection.

    Solves |origin + t * direction - center|^2 = radius^2 in half-b form:
        a = dot(direction, direction)
        h = dot(direction, origin - center)
        c = dot(origin - center, origin - center) - radius^2

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        sphere: The sphere to test intersection against.
        t_min: Hits at or below this parameter are ignored.
        t_max: Hits at or beyond this parameter are ignored.

    Returns:
        A HitRecord; check the hit field to determine if intersection occurred.
    """
    oc = ray_origin - sphere.center

    a = tm.dot(ray_direction, ray_direction)
    h = tm.dot(ray_direction, oc)
    c = tm.dot(oc, oc) - sphere.radius * sphere.radius
    discriminant = h * h - a * c

    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    is_front_face = 0
    hit_uv = vec2(0.0, 0.0)

    if discriminant >= 0.0 and sphere.radius > 0.0:
        sqrt_d = ti.sqrt(discriminant)
        t0, t1 = _solve_quadratic_robust(h, a, c, sqrt_d)

        # Nearer root first, then the far side (ray starting inside)
        t = t0
        valid = (t > t_min) and (t < t_max)
        if not valid:
            t = t1
            valid = (t > t_min) and (t < t_max)

        if valid:
            did_hit = 1
            hit_t = t
            hit_point = ray_origin + t * ray_direction
            outward_normal = (hit_point - sphere.center) / sphere.radius
            hit_uv = sphere_uv(outward_normal)

            if tm.dot(ray_direction, outward_normal) > 0.0:
                is_front_face = 0
                hit_normal = -outward_normal
            else:
                is_front_face = 1
                hit_normal = outward_normal

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        front_face=is_front_face,
        uv=hit_uv,
    )


# =============================================================================
# Tessellation (Python side)
# =============================================================================


def sphere_point(center, radius: float, s: float, t: float) -> np.ndarray:
    """Point on a sphere at surface coordinates (s, t)."""
    angle = 2.0 * math.pi * s
    y = -math.cos(math.pi * t)
    ring = math.sqrt(max(0.0, 1.0 - y * y))
    local = np.array([ring * math.cos(angle), y, -ring * math.sin(angle)], dtype=np.float64)
    return np.asarray(center, dtype=np.float64) + radius * local


def rasterize_sphere(
    center,
    radius: float,
    horizontal_patches: int,
    vertical_patches: int,
) -> list[tuple[np.ndarray, np.ndarray]]:
    """Tessellate a sphere into triangles on a longitude/latitude grid.

    Each grid cell becomes two triangles. Cells touching a pole collapse one
    edge to a point, and the resulting zero-area triangle is dropped.

    Args:
        center: Sphere center as (x, y, z).
        radius: Sphere radius.
        horizontal_patches: Number of longitude divisions.
        vertical_patches: Number of latitude divisions.

    Returns:
        List of (vertices, uvs) pairs: vertices is a (3, 3) array of
        triangle corners in counter-clockwise order seen from outside,
        uvs a (3, 2) array of their surface coordinates.

    Raises:
        ValueError: If the radius or either patch count is not positive.
    """
    if radius <= 0.0:
        raise ValueError(f"Sphere radius must be positive, got {radius}")
    if horizontal_patches < 1 or vertical_patches < 1:
        raise ValueError(
            f"Patch counts must be positive, got {horizontal_patches}x{vertical_patches}"
        )

    triangles = []
    for j in range(vertical_patches):
        t0 = j / vertical_patches
        t1 = (j + 1) / vertical_patches
        for i in range(horizontal_patches):
            s0 = i / horizontal_patches
            s1 = (i + 1) / horizontal_patches
            corners = [(s0, t0), (s1, t0), (s1, t1), (s0, t1)]
            points = [sphere_point(center, radius, s, t) for s, t in corners]
            for a, b, c in ((0, 1, 2), (0, 2, 3)):
                verts = np.array([points[a], points[b], points[c]])
                area2 = np.linalg.norm(np.cross(verts[1] - verts[0], verts[2] - verts[0]))
                if area2 < 1e-12 * radius * radius:
                    continue
                uvs = np.array([corners[a], corners[b], corners[c]], dtype=np.float64)
                triangles.append((verts, uvs))
    return triangles
