"""Scene storage, lights and scene factories.

Components:
    intersection: Taichi primitive storage and batched closest-hit queries
    lights: Area lights and lightning line lights
    manager: SceneManager holding materials, primitives and lights
    cornell_box: Cornell box factory
"""

from .intersection import Hit, RayBatchHits, cast_ray, cast_rays, clear_scene
from .lights import LineLight, QuadLight
from .manager import SceneConfig, SceneManager

__all__ = [
    "Hit",
    "LineLight",
    "QuadLight",
    "RayBatchHits",
    "SceneConfig",
    "SceneManager",
    "cast_ray",
    "cast_rays",
    "clear_scene",
]
