"""Scene-level primitive storage and closest-hit ray casting.

Primitives live in Taichi fields (Structure of Arrays layout) so the
intersection loop runs inside a kernel. Three primitive kinds are stored:

- quads: walls, floors and area lights
- spheres: analytic spheres
- triangles: rasterized sphere patches approximating the spheres

Every cast tests all quads first and then either the analytic spheres or
the rasterized triangles. A later primitive only replaces the current hit
if it is strictly nearer, so ties resolve to the primitive tested first.

Rays are cast in batches: ``cast_rays`` takes (n, 3) arrays of origins and
directions and fills NumPy output arrays in one kernel launch. ``cast_ray``
wraps a single ray and returns a ``Hit`` or None.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.stormlight.scene.intersection import add_sphere, cast_ray, clear_scene
    >>> clear_scene()
    >>> add_sphere((0, 0, -1), 0.5, material_id=0)
    >>> hit = cast_ray((0, 0, 0), (0, 0, -1))
    >>> round(hit.t, 3)
    0.5
"""

from dataclasses import dataclass

import numpy as np
import taichi as ti
import taichi.math as tm

from src.stormlight.geometry.quad import Quad, hit_quad
from src.stormlight.geometry.sphere import HitRecord, Sphere, hit_sphere
from src.stormlight.geometry.triangle import Triangle, hit_triangle

vec3 = tm.vec3
vec2 = tm.vec2

# Secondary rays start this far along the ray to skip self-intersection
T_MIN = 1e-4
T_MAX = 1e30


@ti.dataclass
class SceneHitRecord:
    """Closest hit of a ray against the whole scene.

    Attributes:
        hit: 1 if anything was hit, 0 on a miss.
        t: Ray parameter of the hit.
        point: Hit position.
        normal: Unit normal facing the ray origin.
        front_face: 1 if the outside of the surface was hit.
        uv: Surface coordinates of the hit.
        material_id: Material of the hit primitive, -1 on a miss.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32
    uv: vec2
    material_id: ti.i32


@dataclass(frozen=True, eq=False)
class Hit:
    """Python-side record of a ray hit.

    Attributes:
        t: Ray parameter of the hit.
        point: Hit position.
        normal: Unit normal facing the ray origin.
        material_id: Material of the hit primitive.
        uv: Surface coordinates (s, t).
        front_face: True if the outside of the surface was hit.
    """

    t: float
    point: np.ndarray
    normal: np.ndarray
    material_id: int
    uv: tuple[float, float]
    front_face: bool


# Maximum number of primitives supported in the scene
MAX_SPHERES = 1024
MAX_QUADS = 1024
MAX_TRIANGLES = 16384

sphere_centers = ti.Vector.field(3, dtype=ti.f32, shape=MAX_SPHERES)
sphere_radii = ti.field(dtype=ti.f32, shape=MAX_SPHERES)
sphere_material_ids = ti.field(dtype=ti.i32, shape=MAX_SPHERES)
num_spheres = ti.field(dtype=ti.i32, shape=())

quad_corners = ti.Vector.field(3, dtype=ti.f32, shape=MAX_QUADS)
quad_edge_u = ti.Vector.field(3, dtype=ti.f32, shape=MAX_QUADS)
quad_edge_v = ti.Vector.field(3, dtype=ti.f32, shape=MAX_QUADS)
quad_material_ids = ti.field(dtype=ti.i32, shape=MAX_QUADS)
num_quads = ti.field(dtype=ti.i32, shape=())

triangle_a = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
triangle_b = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
triangle_c = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
triangle_uv_a = ti.Vector.field(2, dtype=ti.f32, shape=MAX_TRIANGLES)
triangle_uv_b = ti.Vector.field(2, dtype=ti.f32, shape=MAX_TRIANGLES)
triangle_uv_c = ti.Vector.field(2, dtype=ti.f32, shape=MAX_TRIANGLES)
triangle_material_ids = ti.field(dtype=ti.i32, shape=MAX_TRIANGLES)
num_triangles = ti.field(dtype=ti.i32, shape=())


def _vec3(v) -> vec3:
    return vec3(float(v[0]), float(v[1]), float(v[2]))


def _vec2(v) -> vec2:
    return vec2(float(v[0]), float(v[1]))


def clear_scene() -> None:
    """Remove every primitive.

    Only the counts are reset; stale field data is overwritten by later adds.
    """
    num_spheres[None] = 0
    num_quads[None] = 0
    num_triangles[None] = 0


def add_sphere(center, radius: float, material_id: int = 0) -> int:
    """Add a sphere and return its index.

    Raises:
        RuntimeError: If the maximum number of spheres is exceeded.
    """
    idx = num_spheres[None]
    if idx >= MAX_SPHERES:
        raise RuntimeError(f"Maximum number of spheres ({MAX_SPHERES}) exceeded")
    sphere_centers[idx] = _vec3(center)
    sphere_radii[idx] = radius
    sphere_material_ids[idx] = material_id
    num_spheres[None] = idx + 1
    return idx


def add_quad(q, u, v, material_id: int = 0) -> int:
    """Add a quad with vertices q, q+u, q+v, q+u+v and return its index.

    Raises:
        RuntimeError: If the maximum number of quads is exceeded.
    """
    idx = num_quads[None]
    if idx >= MAX_QUADS:
        raise RuntimeError(f"Maximum number of quads ({MAX_QUADS}) exceeded")
    quad_corners[idx] = _vec3(q)
    quad_edge_u[idx] = _vec3(u)
    quad_edge_v[idx] = _vec3(v)
    quad_material_ids[idx] = material_id
    num_quads[None] = idx + 1
    return idx


def add_triangle(vertices, uvs, material_id: int = 0) -> int:
    """Add a triangle and return its index.

    Args:
        vertices: Three corners, shape (3, 3).
        uvs: Surface coordinates of the corners, shape (3, 2).
        material_id: Material of the triangle.

    Raises:
        RuntimeError: If the maximum number of triangles is exceeded.
    """
    idx = num_triangles[None]
    if idx >= MAX_TRIANGLES:
        raise RuntimeError(f"Maximum number of triangles ({MAX_TRIANGLES}) exceeded")
    triangle_a[idx] = _vec3(vertices[0])
    triangle_b[idx] = _vec3(vertices[1])
    triangle_c[idx] = _vec3(vertices[2])
    triangle_uv_a[idx] = _vec2(uvs[0])
    triangle_uv_b[idx] = _vec2(uvs[1])
    triangle_uv_c[idx] = _vec2(uvs[2])
    triangle_material_ids[idx] = material_id
    num_triangles[None] = idx + 1
    return idx


def get_sphere_count() -> int:
    return int(num_spheres[None])


def get_quad_count() -> int:
    return int(num_quads[None])


def get_triangle_count() -> int:
    return int(num_triangles[None])


# =============================================================================
# Taichi intersection
# =============================================================================


@ti.func
def _to_scene_hit(rec: HitRecord, material_id: ti.i32) -> SceneHitRecord:
    return SceneHitRecord(
        hit=rec.hit,
        t=rec.t,
        point=rec.point,
        normal=rec.normal,
        front_face=rec.front_face,
        uv=rec.uv,
        material_id=material_id,
    )


@ti.func
def intersect_scene(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
    use_patches: ti.i32,
) -> SceneHitRecord:
    """Closest hit over quads plus either triangles or analytic spheres.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        t_min: Hits at or below this parameter are ignored.
        t_max: Hits at or beyond this parameter are ignored.
        use_patches: 1 to test rasterized triangles instead of spheres.

    Returns:
        The closest SceneHitRecord, or one with hit == 0.
    """
    closest_t = t_max
    result = SceneHitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        front_face=0,
        uv=vec2(0.0, 0.0),
        material_id=-1,
    )

    for i in range(num_quads[None]):
        quad = Quad(Q=quad_corners[i], u=quad_edge_u[i], v=quad_edge_v[i])
        rec = hit_quad(ray_origin, ray_direction, quad, t_min, closest_t)
        if rec.hit == 1:
            closest_t = rec.t
            result = _to_scene_hit(rec, quad_material_ids[i])

    if use_patches == 1:
        for i in range(num_triangles[None]):
            tri = Triangle(
                a=triangle_a[i],
                b=triangle_b[i],
                c=triangle_c[i],
                uv_a=triangle_uv_a[i],
                uv_b=triangle_uv_b[i],
                uv_c=triangle_uv_c[i],
            )
            rec = hit_triangle(ray_origin, ray_direction, tri, t_min, closest_t)
            if rec.hit == 1:
                closest_t = rec.t
                result = _to_scene_hit(rec, triangle_material_ids[i])
    else:
        for i in range(num_spheres[None]):
            sphere = Sphere(center=sphere_centers[i], radius=sphere_radii[i])
            rec = hit_sphere(ray_origin, ray_direction, sphere, t_min, closest_t)
            if rec.hit == 1:
                closest_t = rec.t
                result = _to_scene_hit(rec, sphere_material_ids[i])

    return result


@ti.kernel
def _cast_rays_kernel(
    origins: ti.types.ndarray(dtype=ti.f32, ndim=2),
    directions: ti.types.ndarray(dtype=ti.f32, ndim=2),
    t_min: ti.f32,
    t_max: ti.f32,
    use_patches: ti.i32,
    out_hit: ti.types.ndarray(dtype=ti.i32, ndim=1),
    out_t: ti.types.ndarray(dtype=ti.f32, ndim=1),
    out_point: ti.types.ndarray(dtype=ti.f32, ndim=2),
    out_normal: ti.types.ndarray(dtype=ti.f32, ndim=2),
    out_uv: ti.types.ndarray(dtype=ti.f32, ndim=2),
    out_front: ti.types.ndarray(dtype=ti.i32, ndim=1),
    out_material: ti.types.ndarray(dtype=ti.i32, ndim=1),
):
    for i in range(origins.shape[0]):
        o = vec3(origins[i, 0], origins[i, 1], origins[i, 2])
        d = vec3(directions[i, 0], directions[i, 1], directions[i, 2])
        rec = intersect_scene(o, d, t_min, t_max, use_patches)
        out_hit[i] = rec.hit
        out_t[i] = rec.t
        out_front[i] = rec.front_face
        out_material[i] = rec.material_id
        for k in ti.static(range(3)):
            out_point[i, k] = rec.point[k]
            out_normal[i, k] = rec.normal[k]
        for k in ti.static(range(2)):
            out_uv[i, k] = rec.uv[k]


@dataclass
class RayBatchHits:
    """Hits of a batch of rays as parallel NumPy arrays.

    Entries of rays that missed (``hit[i] == False``) are meaningless.
    """

    hit: np.ndarray
    t: np.ndarray
    point: np.ndarray
    normal: np.ndarray
    uv: np.ndarray
    front_face: np.ndarray
    material_id: np.ndarray

    def __len__(self) -> int:
        return len(self.hit)

    def get(self, i: int) -> Hit | None:
        """Hit record of ray i, or None if it missed."""
        if not self.hit[i]:
            return None
        return Hit(
            t=float(self.t[i]),
            point=self.point[i].astype(np.float64),
            normal=self.normal[i].astype(np.float64),
            material_id=int(self.material_id[i]),
            uv=(float(self.uv[i, 0]), float(self.uv[i, 1])),
            front_face=bool(self.front_face[i]),
        )


def cast_rays(
    origins,
    directions,
    t_min: float = T_MIN,
    t_max: float = T_MAX,
    use_rasterized_patches: bool = False,
) -> RayBatchHits:
    """Find the closest hit of every ray in a batch.

    Args:
        origins: Ray origins, shape (n, 3).
        directions: Ray directions, shape (n, 3).
        t_min: Hits at or below this parameter are ignored.
        t_max: Hits at or beyond this parameter are ignored.
        use_rasterized_patches: Test rasterized triangles instead of spheres.

    Returns:
        A RayBatchHits with one entry per ray.

    Raises:
        ValueError: If the input arrays are not matching (n, 3) arrays.
    """
    o = np.ascontiguousarray(np.asarray(origins, dtype=np.float32).reshape(-1, 3))
    d = np.ascontiguousarray(np.asarray(directions, dtype=np.float32).reshape(-1, 3))
    if o.shape != d.shape:
        raise ValueError(f"Origins {o.shape} and directions {d.shape} differ in shape")

    n = o.shape[0]
    out = RayBatchHits(
        hit=np.zeros(n, dtype=np.int32),
        t=np.zeros(n, dtype=np.float32),
        point=np.zeros((n, 3), dtype=np.float32),
        normal=np.zeros((n, 3), dtype=np.float32),
        uv=np.zeros((n, 2), dtype=np.float32),
        front_face=np.zeros(n, dtype=np.int32),
        material_id=np.full(n, -1, dtype=np.int32),
    )
    if n > 0:
        _cast_rays_kernel(
            o,
            d,
            t_min,
            t_max,
            1 if use_rasterized_patches else 0,
            out.hit,
            out.t,
            out.point,
            out.normal,
            out.uv,
            out.front_face,
            out.material_id,
        )
    out.hit = out.hit.astype(bool)
    return out


def cast_ray(
    origin,
    direction,
    t_min: float = T_MIN,
    t_max: float = T_MAX,
    use_rasterized_patches: bool = False,
) -> Hit | None:
    """Closest hit of a single ray, or None if it escapes the scene."""
    hits = cast_rays(
        np.asarray(origin).reshape(1, 3),
        np.asarray(direction).reshape(1, 3),
        t_min,
        t_max,
        use_rasterized_patches,
    )
    return hits.get(0)
