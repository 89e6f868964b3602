"""Pinhole camera and primary-ray generation.

The camera builds an orthonormal basis (u, v, w) from look-at parameters:

- w: points from lookat toward lookfrom (opposite the view direction)
- u: points right in the image plane
- v: points up in the image plane

Primary rays for a whole image are generated in one Taichi kernel. Sub-pixel
jitter is drawn on the Python side from the render's NumPy generator, so a
seeded render reproduces the same rays.

Example:
    >>> import numpy as np
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.stormlight.camera.pinhole import PinholeCamera, generate_primary_rays, setup_camera
    >>> camera = PinholeCamera(
    ...     lookfrom=(0.0, 0.0, 3.0),
    ...     lookat=(0.0, 0.0, 0.0),
    ...     vup=(0.0, 1.0, 0.0),
    ...     vfov=60.0,
    ...     aspect_ratio=1.0,
    ... )
    >>> setup_camera(camera)
    >>> origin, directions = generate_primary_rays(64, 64)  # Pixel centers
    >>> directions.shape
    (64, 64, 3)
"""

import math
from dataclasses import asdict, dataclass
from typing import Any

import numpy as np
import taichi as ti
import taichi.math as tm

vec3 = tm.vec3

# =============================================================================
# Camera Data Structures
# =============================================================================


@dataclass
class PinholeCamera:
    """Configuration for a pinhole (perspective) camera.

    Attributes:
        lookfrom: Camera position in world space (x, y, z).
        lookat: Point the camera is looking at in world space (x, y, z).
        vup: Up direction vector for camera orientation (typically (0, 1, 0)).
        vfov: Vertical field of view in degrees.
        aspect_ratio: Width divided by height of the output image.
    """

    lookfrom: tuple[float, float, float]
    lookat: tuple[float, float, float]
    vup: tuple[float, float, float]
    vfov: float
    aspect_ratio: float

    def __post_init__(self) -> None:
        if not 0.0 < self.vfov < 180.0:
            raise ValueError(f"vfov must be in (0, 180) degrees, got {self.vfov}")
        if self.aspect_ratio <= 0.0:
            raise ValueError(f"aspect_ratio must be positive, got {self.aspect_ratio}")
        if np.allclose(self.lookfrom, self.lookat):
            raise ValueError("lookfrom and lookat must differ")

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for key in ("lookfrom", "lookat", "vup"):
            data[key] = list(data[key])
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PinholeCamera":
        return cls(
            lookfrom=tuple(data["lookfrom"]),
            lookat=tuple(data["lookat"]),
            vup=tuple(data.get("vup", (0.0, 1.0, 0.0))),
            vfov=float(data.get("vfov", 40.0)),
            aspect_ratio=float(data.get("aspect_ratio", 1.0)),
        )


# =============================================================================
# Taichi Fields for Camera State
# =============================================================================

_camera_origin = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_u = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_v = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_w = ti.Vector.field(3, dtype=ti.f32, shape=())

# Viewport at unit distance in front of the camera
_viewport_horizontal = ti.Vector.field(3, dtype=ti.f32, shape=())
_viewport_vertical = ti.Vector.field(3, dtype=ti.f32, shape=())
_lower_left_corner = ti.Vector.field(3, dtype=ti.f32, shape=())


def setup_camera(camera: PinholeCamera) -> None:
    """Write the camera basis and viewport into the Taichi camera state.

    Must be called before ``generate_primary_rays``.

    Raises:
        ValueError: If vup is parallel to the view direction.
    """
    theta = math.radians(camera.vfov)
    viewport_height = 2.0 * math.tan(theta / 2.0)
    viewport_width = camera.aspect_ratio * viewport_height

    lookfrom = np.array(camera.lookfrom, dtype=np.float64)
    lookat = np.array(camera.lookat, dtype=np.float64)
    vup = np.array(camera.vup, dtype=np.float64)

    w = lookfrom - lookat
    w = w / np.linalg.norm(w)
    u = np.cross(vup, w)
    u_len = np.linalg.norm(u)
    if u_len < 1e-12:
        raise ValueError("vup must not be parallel to the view direction")
    u = u / u_len
    v = np.cross(w, u)

    horizontal = viewport_width * u
    vertical = viewport_height * v
    lower_left = lookfrom - w - horizontal / 2.0 - vertical / 2.0

    _camera_origin[None] = lookfrom.tolist()
    _camera_u[None] = u.tolist()
    _camera_v[None] = v.tolist()
    _camera_w[None] = w.tolist()
    _viewport_horizontal[None] = horizontal.tolist()
    _viewport_vertical[None] = vertical.tolist()
    _lower_left_corner[None] = lower_left.tolist()


@ti.func
def get_ray_direction(u: ti.f32, v: ti.f32) -> vec3:
    """Unit direction through normalized image coordinates (u, v).

    u runs left to right and v bottom to top, both over [0, 1].
    """
    point_on_viewport = (
        _lower_left_corner[None] + u * _viewport_horizontal[None] + v * _viewport_vertical[None]
    )
    return tm.normalize(point_on_viewport - _camera_origin[None])


@ti.kernel
def _generate_rays_kernel(
    jitter: ti.types.ndarray(dtype=ti.f32, ndim=3),
    out_directions: ti.types.ndarray(dtype=ti.f32, ndim=3),
):
    width = out_directions.shape[0]
    height = out_directions.shape[1]
    for i, j in ti.ndrange(width, height):
        u = (ti.cast(i, ti.f32) + jitter[i, j, 0]) / ti.cast(width, ti.f32)
        v = (ti.cast(j, ti.f32) + jitter[i, j, 1]) / ti.cast(height, ti.f32)
        d = get_ray_direction(u, v)
        for k in ti.static(range(3)):
            out_directions[i, j, k] = d[k]


def generate_primary_rays(
    width: int,
    height: int,
    rng: np.random.Generator | None = None,
) -> tuple[np.ndarray, np.ndarray]:
    """Camera rays for every pixel.

    Args:
        width: Image width in pixels.
        height: Image height in pixels.
        rng: Generator for sub-pixel jitter. None shoots through pixel centers.

    Returns:
        Tuple (origin, directions): the camera position as a float64
        3-vector and unit directions of shape (width, height, 3), where
        pixel (0, 0) is the bottom-left corner.
    """
    if rng is None:
        jitter = np.full((width, height, 2), 0.5, dtype=np.float32)
    else:
        jitter = rng.random((width, height, 2), dtype=np.float32)
    directions = np.zeros((width, height, 3), dtype=np.float32)
    _generate_rays_kernel(jitter, directions)
    o = _camera_origin[None]
    origin = np.array([o[0], o[1], o[2]], dtype=np.float64)
    return origin, directions.astype(np.float64)


def get_camera_info() -> dict[str, tuple[float, float, float]]:
    """Current camera state, for debugging."""
    fields = {
        "origin": _camera_origin,
        "u": _camera_u,
        "v": _camera_v,
        "w": _camera_w,
        "horizontal": _viewport_horizontal,
        "vertical": _viewport_vertical,
        "lower_left": _lower_left_corner,
    }
    info = {}
    for name, field in fields.items():
        vec = field[None]
        info[name] = (float(vec[0]), float(vec[1]), float(vec[2]))
    return info
