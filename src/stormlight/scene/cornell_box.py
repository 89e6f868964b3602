"""Cornell box scene, optionally struck by lightning.

The box spans [0, box_size] on every axis with an open front:

- left wall red, right wall green, back wall, floor and ceiling white
- a rectangular area light just below the ceiling, facing down
- a white diffuse sphere and a mirror sphere resting on the floor
- optionally a lightning bolt from under the ceiling down to the floor

The camera sits outside the open front looking toward +Z, so the left of
the image is +X.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.stormlight.scene.cornell_box import CornellBoxParams, create_cornell_box_scene
    >>> scene, camera = create_cornell_box_scene(params=CornellBoxParams(lightning=True))
    >>> scene.get_quad_count()
    6
"""

from dataclasses import dataclass

import numpy as np

from src.stormlight.camera.pinhole import PinholeCamera
from src.stormlight.scene.manager import SceneManager

# =============================================================================
# Cornell Box Parameters
# =============================================================================


@dataclass
class CornellBoxParams:
    """Adjustable parts of the Cornell box.

    Attributes:
        light_intensity: Scale of the area light's emitted colour.
        light_color: RGB colour of the area light.
        left_wall_color: Albedo of the left wall.
        right_wall_color: Albedo of the right wall.
        back_wall_color: Albedo of the back wall, floor and ceiling.
        ambient_light: Flat ambient light colour.
        lightning: Add a lightning bolt.
        lightning_segments: Number of straight segments in the bolt.
        lightning_radius: Channel radius of every segment.
        lightning_seed: Seed for the bolt's zig-zag offsets.
    """

    light_intensity: float = 15.0
    light_color: tuple[float, float, float] = (1.0, 1.0, 1.0)
    left_wall_color: tuple[float, float, float] = (0.65, 0.05, 0.05)
    right_wall_color: tuple[float, float, float] = (0.12, 0.45, 0.15)
    back_wall_color: tuple[float, float, float] = (0.73, 0.73, 0.73)
    ambient_light: tuple[float, float, float] = (0.05, 0.05, 0.05)
    lightning: bool = False
    lightning_segments: int = 8
    lightning_radius: float = 0.01
    lightning_seed: int | None = 0


# =============================================================================
# Cornell Box Constants
# =============================================================================

BOX_SIZE = 2.0

# Light size as a fraction of the box (130 x 105 in the classic 555 box)
LIGHT_WIDTH_FRACTION = 130.0 / 555.0
LIGHT_DEPTH_FRACTION = 105.0 / 555.0

DIFFUSE_SPHERE_ALBEDO = (0.73, 0.73, 0.73)
MIRROR_SPHERE_DIFFUSE = (0.05, 0.05, 0.05)
MIRROR_SPHERE_REFLECTIVE = (0.9, 0.9, 0.9)
SPHERE_RADIUS_FRACTION = 0.16


# =============================================================================
# Lightning Bolt
# =============================================================================


def create_lightning_bolt(
    start,
    end,
    num_segments: int,
    max_offset: float,
    rng: np.random.Generator,
) -> list[tuple[np.ndarray, np.ndarray]]:
    """Zig-zag chain of straight segments from start to end.

    Interior joints are displaced sideways by up to ``max_offset``
    perpendicular to the start-end line; the two ends stay fixed.

    Raises:
        ValueError: If num_segments < 1 or start equals end.
    """
    if num_segments < 1:
        raise ValueError(f"num_segments must be >= 1, got {num_segments}")
    start = np.asarray(start, dtype=np.float64)
    end = np.asarray(end, dtype=np.float64)
    axis = end - start
    if np.linalg.norm(axis) < 1e-12:
        raise ValueError("Lightning start and end must differ")
    axis = axis / np.linalg.norm(axis)

    helper = np.array([1.0, 0.0, 0.0]) if abs(axis[0]) < 0.9 else np.array([0.0, 0.0, 1.0])
    side1 = np.cross(axis, helper)
    side1 /= np.linalg.norm(side1)
    side2 = np.cross(axis, side1)

    joints = [start]
    for k in range(1, num_segments):
        base = start + (end - start) * (k / num_segments)
        a, b = rng.uniform(-max_offset, max_offset, size=2)
        joints.append(base + a * side1 + b * side2)
    joints.append(end)
    return [(joints[k], joints[k + 1]) for k in range(num_segments)]


# =============================================================================
# Cornell Box Factory
# =============================================================================


def create_cornell_box_scene(
    box_size: float = BOX_SIZE,
    params: CornellBoxParams | None = None,
) -> tuple[SceneManager, PinholeCamera]:
    """Build the Cornell box.

    Args:
        box_size: Edge length of the box.
        params: Colours, light and lightning settings. Defaults to
            CornellBoxParams().

    Returns:
        Tuple (scene, camera).
    """
    if params is None:
        params = CornellBoxParams()

    scene = SceneManager()
    scene.set_ambient_light(params.ambient_light)

    red_mat = scene.add_material(diffuse=params.left_wall_color)
    green_mat = scene.add_material(diffuse=params.right_wall_color)
    white_mat = scene.add_material(diffuse=params.back_wall_color)
    light_mat = scene.add_material(
        diffuse=(0.0, 0.0, 0.0),
        emitted=tuple(params.light_intensity * c for c in params.light_color),
    )
    diffuse_mat = scene.add_material(diffuse=DIFFUSE_SPHERE_ALBEDO)
    mirror_mat = scene.add_material(
        diffuse=MIRROR_SPHERE_DIFFUSE,
        reflective=MIRROR_SPHERE_REFLECTIVE,
        specular=(0.3, 0.3, 0.3),
    )

    s = box_size

    # =========================================================================
    # Walls: edge order makes every face normal point into the box
    # =========================================================================

    scene.add_quad((s, 0.0, s), (0.0, s, 0.0), (0.0, 0.0, -s), red_mat)
    scene.add_quad((0.0, 0.0, 0.0), (0.0, s, 0.0), (0.0, 0.0, s), green_mat)
    scene.add_quad((0.0, 0.0, s), (0.0, s, 0.0), (s, 0.0, 0.0), white_mat)
    scene.add_quad((0.0, 0.0, 0.0), (0.0, 0.0, s), (s, 0.0, 0.0), white_mat)
    scene.add_quad((0.0, s, s), (0.0, 0.0, -s), (s, 0.0, 0.0), white_mat)

    # Light just below the ceiling; cross(u, v) points down
    light_width = LIGHT_WIDTH_FRACTION * s
    light_depth = LIGHT_DEPTH_FRACTION * s
    light_y = s * (1.0 - 0.001)
    scene.add_quad(
        ((s - light_width) / 2.0, light_y, (s - light_depth) / 2.0),
        (light_width, 0.0, 0.0),
        (0.0, 0.0, light_depth),
        light_mat,
    )

    radius = SPHERE_RADIUS_FRACTION * s
    scene.add_sphere((0.3 * s, radius, 0.6 * s), radius, diffuse_mat)
    scene.add_sphere((0.7 * s, radius, 0.35 * s), radius, mirror_mat)

    if params.lightning:
        rng = np.random.default_rng(params.lightning_seed)
        start = (0.55 * s, 0.9 * s, 0.75 * s)
        end = (0.5 * s, 0.0, 0.7 * s)
        for seg_start, seg_end in create_lightning_bolt(
            start, end, params.lightning_segments, 0.06 * s, rng
        ):
            scene.add_lightning_segment(seg_start, seg_end, params.lightning_radius * s / BOX_SIZE)

    camera = PinholeCamera(
        lookfrom=(s / 2.0, s / 2.0, -1.44 * s),
        lookat=(s / 2.0, s / 2.0, s / 2.0),
        vup=(0.0, 1.0, 0.0),
        vfov=40.0,
        aspect_ratio=1.0,
    )
    return scene, camera


def get_cornell_box_bounds(box_size: float = BOX_SIZE) -> dict[str, tuple[float, float, float]]:
    """Min, max, center and size of the box."""
    return {
        "min": (0.0, 0.0, 0.0),
        "max": (box_size, box_size, box_size),
        "center": (box_size / 2.0, box_size / 2.0, box_size / 2.0),
        "size": (box_size, box_size, box_size),
    }
