"""Recursive Whitted-style ray tracer with photon-mapped indirect light.

``trace_ray`` shades the closest hit of a ray as the sum of:

1. Indirect light: diffuse * (photon gather + ambient) when gathering is
   enabled, otherwise diffuse * ambient.
2. Direct light from every area light, attenuated by pi * distance^2 and
   tested for shadows with 0, 1 or n shadow rays.
3. Lightning: channel and halo glow along the viewing ray, plus direct light
   from each segment treated as a point light at its midpoint (or at random
   points along it when several shadow samples are taken).
4. Mirror reflection, recursing until the bounce budget is spent.

Rays that escape return the background colour plus lightning glow. Rays that
hit an emissive surface return white.
"""

import logging
import math

import numpy as np

from src.stormlight.config import RenderConfig
from src.stormlight.core.lightning import lightning_glow
from src.stormlight.core.ray import (
    Ray,
    Vec3,
    length,
    mirror_direction,
    offset_ray_origin,
    srgb_to_linear,
    try_normalize,
)
from src.stormlight.scene.intersection import T_MAX, T_MIN, Hit, cast_ray, cast_rays

logger = logging.getLogger(__name__)

# Reflective colours shorter than this are not traced
REFLECTION_EPSILON = 1e-4


class RayTracer:
    """Casts rays against a scene and shades them recursively.

    Args:
        scene: The SceneManager to render.
        config: Render settings (bounces, shadow samples, gather toggle).
        photon_mapping: Photon map used when ``config.gather_indirect`` is set.
        rng: Random generator for soft-shadow and line-light sampling.
    """

    def __init__(self, scene, config: RenderConfig, photon_mapping, rng: np.random.Generator):
        self.scene = scene
        self.config = config
        self.photon_mapping = photon_mapping
        self.rng = rng

    def cast_ray(self, ray: Ray, use_rasterized_patches: bool = False) -> Hit | None:
        """Closest hit along a ray, or None if the ray escapes."""
        return cast_ray(ray.origin, ray.direction, T_MIN, T_MAX, use_rasterized_patches)

    def trace_ray(self, ray: Ray, bounce_count: int) -> Vec3:
        """Radiance arriving along a ray.

        Args:
            ray: The ray to trace; its direction must be unit length.
            bounce_count: Remaining reflection bounces.

        Returns:
            Linear RGB radiance.
        """
        scene = self.scene
        hit = self.cast_ray(ray)

        if hit is None:
            answer = srgb_to_linear(scene.background_color)
            if scene.line_lights:
                answer = answer + lightning_glow(
                    ray.origin, ray.direction, self._far_distance(ray), scene.line_lights
                )
            return answer

        material = scene.get_material(hit.material_id)
        if material.is_emissive():
            return np.ones(3)

        point = hit.point
        normal = hit.normal

        diffuse = material.get_diffuse_color(*hit.uv)
        if self.config.gather_indirect:
            indirect = self.photon_mapping.gather_indirect(point, normal, ray.direction)
            answer = diffuse * (indirect + scene.ambient_light)
        else:
            answer = diffuse * scene.ambient_light

        for light in scene.lights:
            answer = answer + self._shade_area_light(ray, hit, material, light)

        if scene.line_lights:
            answer = answer + lightning_glow(ray.origin, ray.direction, hit.t, scene.line_lights)
            for segment in scene.line_lights:
                answer = answer + self._shade_line_light(ray, hit, material, segment)

        reflective = material.reflective
        if length(reflective) > REFLECTION_EPSILON and bounce_count > 0:
            direction = mirror_direction(normal, ray.direction)
            reflect_ray = Ray(offset_ray_origin(point, normal, direction), direction)
            answer = answer + self.trace_ray(reflect_ray, bounce_count - 1) * reflective

        return answer

    # =========================================================================
    # Direct lighting
    # =========================================================================

    def _shade_area_light(self, ray: Ray, hit: Hit, material, light) -> Vec3:
        """Direct light from one area light with 0, 1 or n shadow rays."""
        point = hit.point
        num_samples = self.config.num_shadow_samples
        light_color = light.power

        if num_samples <= 1:
            to_light = light.centroid - point
            dist = length(to_light)
            direction = try_normalize(to_light)
            if direction is None:
                logger.debug("Skipping light whose centroid coincides with the hit point")
                return np.zeros(3)
            if num_samples == 1 and not self._sees_light(point, hit.normal, direction[None, :])[0]:
                return np.zeros(3)
            return material.shade(ray, hit, direction, light_color / (math.pi * dist * dist))

        targets = np.array([light.random_point(self.rng) for _ in range(num_samples)])
        offsets = targets - point
        dists = np.linalg.norm(offsets, axis=1)
        valid = dists > 1e-12
        directions = np.zeros_like(offsets)
        directions[valid] = offsets[valid] / dists[valid, None]
        visible = self._sees_light(point, hit.normal, directions) & valid

        shaded = np.zeros(3)
        for direction, dist in zip(directions[visible], dists[visible]):
            shaded += material.shade(ray, hit, direction, light_color / (math.pi * dist * dist))
        return shaded / num_samples

    def _sees_light(self, point: Vec3, normal: Vec3, directions: np.ndarray) -> np.ndarray:
        """For each direction, whether the first surface hit is emissive."""
        origins = np.array([offset_ray_origin(point, normal, d) for d in directions])
        hits = cast_rays(origins, directions, T_MIN, T_MAX)
        visible = np.zeros(len(directions), dtype=bool)
        for i in range(len(directions)):
            if hits.hit[i]:
                visible[i] = self.scene.get_material(int(hits.material_id[i])).is_emissive()
        return visible

    def _shade_line_light(self, ray: Ray, hit: Hit, material, segment) -> Vec3:
        """Direct light from a lightning segment treated as a point light."""
        if segment.is_degenerate():
            return np.zeros(3)

        point = hit.point
        num_samples = self.config.num_shadow_samples
        if num_samples > 1:
            targets = np.array([segment.random_point(self.rng) for _ in range(num_samples)])
        else:
            targets = segment.midpoint[None, :]

        offsets = targets - point
        dists = np.linalg.norm(offsets, axis=1)
        valid = dists > 1e-12
        if not np.any(valid):
            logger.debug("Skipping lightning segment touching the hit point")
            return np.zeros(3)
        directions = np.zeros_like(offsets)
        directions[valid] = offsets[valid] / dists[valid, None]

        if num_samples > 0:
            origins = np.array([offset_ray_origin(point, hit.normal, d) for d in directions])
            blockers = cast_rays(origins, directions, T_MIN, T_MAX)
            # A surface nearer than the light point keeps the hit in shadow
            lit = valid & ~(blockers.hit & (blockers.t < dists))
        else:
            lit = valid

        light_color = segment.power
        shaded = np.zeros(3)
        for direction, dist in zip(directions[lit], dists[lit]):
            shaded += material.shade(ray, hit, direction, light_color / (math.pi * dist * dist))
        return shaded / len(targets)

    def _far_distance(self, ray: Ray) -> float:
        """Ray length that reaches past every lightning segment."""
        far = 1.0
        for segment in self.scene.line_lights:
            far = max(far, length(segment.start - ray.origin), length(segment.end - ray.origin))
        return 2.0 * far
