"""Photon tracing and indirect-light gathering.

A photon pass shoots ``num_photons_to_shoot`` photons from the area lights,
shared out in proportion to light area, and follows each through the scene
with Russian roulette:

1. Cast the photon's ray; if it escapes, stop.
2. Store a photon at the hit, whatever happens next.
3. With p_reflect = max over channels of (diffuse + reflective), split into
   p_diffuse and p_specular in proportion to the channel sums of the two
   colours. Draw u in [0, 1):
     - u > p_reflect: absorbed
     - u <= p_diffuse: cosine-weighted bounce, energy *= diffuse / p_diffuse
     - otherwise: mirror bounce, energy *= reflective / p_specular
4. Continue while bounce_index < num_photon_bounces.

Dividing by the branch probability keeps the expected energy of a surviving
photon equal to energy * (diffuse + reflective) even though most photons are
terminated.

The photons land in a KDTree. ``gather_indirect`` estimates irradiance at
a surface point from the nearest ``num_photons_to_collect`` unoccluded
photons, growing a cubic search window until enough are found:

    E = sum(energy_i * max(0, -direction_i . n)) / (pi * r^2)

where r is the distance to the farthest accepted photon.

Example:
    >>> import numpy as np
    >>> from src.stormlight.config import RenderConfig
    >>> from src.stormlight.core.photon_mapping import PhotonMapping
    >>> mapping = PhotonMapping(scene, RenderConfig(num_photons_to_shoot=5000), np.random.default_rng(1))
    >>> tree = mapping.trace_photons()
    >>> irradiance = mapping.gather_indirect(point, normal, view_direction)
"""

import logging
import math

import numpy as np

from src.stormlight.config import RenderConfig
from src.stormlight.core.kdtree import BoundingBox, KDTree, Photon
from src.stormlight.core.ray import (
    Vec3,
    mirror_direction,
    random_diffuse_direction,
    try_normalize,
)
from src.stormlight.scene.intersection import T_MIN, cast_ray, cast_rays

logger = logging.getLogger(__name__)

# Root box margin, as a fraction of the scene extent on every side
BOUNDS_MARGIN = 0.001


def roulette_probabilities(diffuse: Vec3, reflective: Vec3) -> tuple[float, float, float]:
    """Russian-roulette probabilities (p_reflect, p_diffuse, p_specular).

    p_reflect is capped at 1; a material with no reflectance gets all zeros.
    """
    p_reflect = min(1.0, float(np.max(diffuse + reflective)))
    diffuse_sum = float(np.sum(diffuse))
    specular_sum = float(np.sum(reflective))
    total = diffuse_sum + specular_sum
    if total <= 0.0 or p_reflect <= 0.0:
        return 0.0, 0.0, 0.0
    return p_reflect, p_reflect * diffuse_sum / total, p_reflect * specular_sum / total


class PhotonMapping:
    """Photon map owner: traces photon passes and answers gathers.

    Each ``trace_photons`` call builds a new KDTree and swaps it in once the
    pass is complete, so gathers always see a finished map.

    Args:
        scene: The SceneManager to trace against.
        config: Render settings (photon budget, bounce limit, gather size).
        rng: Random generator used for emission and roulette.
    """

    def __init__(self, scene, config: RenderConfig, rng: np.random.Generator):
        self.scene = scene
        self.config = config
        self.rng = rng
        self.kdtree: KDTree | None = None

    @property
    def has_photons(self) -> bool:
        return self.kdtree is not None

    def clear(self) -> None:
        """Drop the current photon map."""
        self.kdtree = None

    # =========================================================================
    # Photon Tracing
    # =========================================================================

    def photon_counts(self) -> list[int]:
        """Photons allocated to each area light, proportional to light area.

        Counts are truncated, so their sum may fall short of the budget.
        Every count is zero when the lights have no total area.
        """
        areas = [light.area for light in self.scene.lights]
        total_area = sum(areas)
        if total_area <= 0.0:
            return [0] * len(areas)
        budget = self.config.num_photons_to_shoot
        return [int(budget * area / total_area) for area in areas]

    def trace_photons(self) -> KDTree:
        """Run a full photon pass and install the resulting map.

        Returns:
            The new KDTree (also stored as ``self.kdtree``).
        """
        bounds = self.scene.bounding_box().expanded(BOUNDS_MARGIN)
        kdtree = KDTree(
            bounds,
            leaf_capacity=self.config.kdtree_leaf_capacity,
            max_depth=self.config.kdtree_max_depth,
        )

        lights = self.scene.lights
        counts = self.photon_counts()
        if lights and sum(light.area for light in lights) <= 0.0:
            logger.warning("Total light area is zero; skipping photon emission")
        elif not lights:
            logger.warning("Scene has no area lights; the photon map will be empty")

        logger.info(
            "Tracing %d photons from %d lights", self.config.num_photons_to_shoot, len(lights)
        )
        for light, num in zip(lights, counts):
            if num == 0:
                continue
            energy = light.area / num * light.emitted
            if not np.any(energy > 0.0):
                continue
            normal = light.normal
            logger.info("Light %d: %d photons of energy %s", light.material_id, num, energy)
            for _ in range(num):
                start = light.random_point(self.rng)
                direction = random_diffuse_direction(normal, self.rng)
                self.trace_photon(start, direction, energy, 0, kdtree)

        self.kdtree = kdtree
        logger.info("Photon map holds %d photons", len(kdtree))
        return kdtree

    def trace_photon(
        self,
        position: Vec3,
        direction: Vec3,
        energy: Vec3,
        bounce_index: int,
        kdtree: KDTree | None = None,
    ) -> None:
        """Follow one photon, storing it at every surface it reaches.

        Args:
            position: Where the photon starts.
            direction: Unit travel direction.
            energy: RGB energy carried by the photon.
            bounce_index: Bounces so far (0 for a photon leaving a light).
            kdtree: Map to store into; defaults to the current map.

        Raises:
            RuntimeError: If there is no map to store into.
        """
        if kdtree is None:
            kdtree = self.kdtree
        if kdtree is None:
            raise RuntimeError("trace_photon needs a KD-tree; run trace_photons first")

        max_bounces = self.config.num_photon_bounces
        while True:
            hit = cast_ray(position, direction)
            if hit is None:
                return

            hit_point = hit.point
            if kdtree.bbox.contains(hit_point):
                kdtree.insert(Photon(hit_point, direction, energy, bounce_index))
            else:
                logger.debug("Dropping photon outside the map bounds at %s", hit_point)

            material = self.scene.get_material(hit.material_id)
            diffuse = material.get_diffuse_color(*hit.uv)
            reflective = material.reflective
            p_reflect, p_diffuse, p_specular = roulette_probabilities(diffuse, reflective)

            choice = self.rng.random()
            if choice > p_reflect or p_reflect == 0.0:
                return
            if choice <= p_diffuse and p_diffuse > 0.0:
                new_direction = random_diffuse_direction(hit.normal, self.rng)
                new_energy = energy * diffuse / p_diffuse
            elif p_specular > 0.0:
                new_direction = mirror_direction(hit.normal, direction)
                new_energy = energy * reflective / p_specular
            else:
                return

            if bounce_index >= max_bounces or not np.any(new_energy > 0.0):
                return
            new_direction = try_normalize(new_direction)
            if new_direction is None:
                logger.debug("Dropping photon with degenerate bounce direction at %s", hit_point)
                return

            position = hit_point
            direction = new_direction
            energy = new_energy
            bounce_index += 1

    # =========================================================================
    # Gathering
    # =========================================================================

    def gather_indirect(
        self,
        point: Vec3,
        normal: Vec3,
        direction_from: Vec3,
        kdtree: KDTree | None = None,
    ) -> Vec3:
        """Estimate indirect irradiance at a surface point from the photon map.

        Args:
            point: Surface point.
            normal: Unit surface normal facing the viewer.
            direction_from: Direction of the ray that reached the point.
                Photons are kept only if a ray from them back along this
                direction escapes the scene.
            kdtree: Map to gather from; defaults to the current map.

        Returns:
            RGB irradiance. Zero if no photon map has been traced or no
            photon could be accepted.
        """
        if kdtree is None:
            kdtree = self.kdtree
        if kdtree is None:
            logger.warning("Photons have not been traced throughout the scene")
            return np.zeros(3)

        wanted = self.config.num_photons_to_collect
        back = -np.asarray(direction_from, dtype=np.float64)
        radius = self.config.gather_initial_radius
        # Past this radius every stored photon is a candidate within range
        reach = kdtree.bbox.farthest_distance(point)
        accepted: list[Photon] = []
        accepted_dist: list[float] = []

        while True:
            box = BoundingBox.from_center(point, radius)
            candidates: list[Photon] = []
            kdtree.collect_in_box(box, candidates)
            covers_all = radius > reach

            if len(candidates) >= wanted or covers_all:
                accepted, accepted_dist = self._filter_candidates(point, back, radius, candidates)
                if len(accepted) >= wanted or covers_all:
                    break
            radius *= 2.0

        if not accepted:
            return np.zeros(3)

        final_radius = accepted_dist[-1]
        if final_radius <= 0.0:
            final_radius = radius

        result = np.zeros(3)
        for photon in accepted:
            weight = max(0.0, float(np.dot(-photon.direction_from, normal)))
            result += photon.energy * weight
        return result / (math.pi * final_radius * final_radius)

    def _filter_candidates(
        self,
        point: Vec3,
        back: Vec3,
        radius: float,
        candidates: list[Photon],
    ) -> tuple[list[Photon], list[float]]:
        """Nearest unoccluded candidates strictly within ``radius``, nearest first."""
        wanted = self.config.num_photons_to_collect
        positions = np.array([p.position for p in candidates]).reshape(-1, 3)
        dists = np.linalg.norm(positions - point, axis=1)
        order = np.argsort(dists, kind="stable")
        order = order[dists[order] < radius]
        if len(order) == 0:
            return [], []

        occluded = cast_rays(positions[order], np.tile(back, (len(order), 1)), T_MIN).hit

        accepted: list[Photon] = []
        accepted_dist: list[float] = []
        for idx, blocked in zip(order, occluded):
            if blocked:
                continue
            accepted.append(candidates[idx])
            accepted_dist.append(float(dists[idx]))
            if len(accepted) >= wanted:
                break
        return accepted, accepted_dist
