"""Lightning glow: distance from a viewing ray to a line light and its falloffs.

A lightning bolt is a chain of straight segments, each treated as a line
light with a radius. Seen along a viewing ray, each segment contributes two
glows that depend only on the closest distance ``d`` between the ray and the
segment:

    channel = MAX_CHANNEL_CONTRIBUTION * exp(-(2 d / width) ^ CHANNEL_SHARPNESS)
    halo    = MAX_GLOW_CONTRIBUTION    * exp(-(d / glow_width) ^ 2)

with ``width = 2 * radius`` and ``glow_width = 8 * radius``. The channel is
the bright, sharp core of the bolt; the halo is the soft light around it.
Both are scaled by LIGHTNING_COLOR and added regardless of what the ray hits.
"""

import logging
import math

import numpy as np

from .ray import Vec3, vec3

logger = logging.getLogger(__name__)

# Colour of lightning light, slightly blue
LIGHTNING_COLOR = vec3(0.8, 0.85, 1.0)

# Scale of direct lighting from a line light per unit segment length
LINE_LIGHT_INTENSITY = 1.0

MAX_CHANNEL_CONTRIBUTION = 1.0
MAX_GLOW_CONTRIBUTION = 0.3
CHANNEL_SHARPNESS = 4.0

# Channel and halo widths relative to the segment radius
CHANNEL_WIDTH_SCALE = 2.0
GLOW_WIDTH_SCALE = 8.0

_PARALLEL_EPSILON = 1e-12


def closest_distance_segment_segment(p1: Vec3, q1: Vec3, p2: Vec3, q2: Vec3) -> float:
    """Closest distance between segments [p1, q1] and [p2, q2].

    Either segment may be degenerate (a point). Follows the clamped
    parametric solution from Ericson, Real-Time Collision Detection, 5.1.9.
    """
    d1 = q1 - p1
    d2 = q2 - p2
    r = p1 - p2
    a = float(np.dot(d1, d1))
    e = float(np.dot(d2, d2))
    f = float(np.dot(d2, r))

    if a <= _PARALLEL_EPSILON and e <= _PARALLEL_EPSILON:
        return float(np.linalg.norm(p1 - p2))
    if a <= _PARALLEL_EPSILON:
        s = 0.0
        t = min(max(f / e, 0.0), 1.0)
    else:
        c = float(np.dot(d1, r))
        if e <= _PARALLEL_EPSILON:
            t = 0.0
            s = min(max(-c / a, 0.0), 1.0)
        else:
            b = float(np.dot(d1, d2))
            denom = a * e - b * b
            s = min(max((b * f - c * e) / denom, 0.0), 1.0) if denom > _PARALLEL_EPSILON else 0.0
            t = (b * s + f) / e
            if t < 0.0:
                t = 0.0
                s = min(max(-c / a, 0.0), 1.0)
            elif t > 1.0:
                t = 1.0
                s = min(max((b - c) / a, 0.0), 1.0)

    c1 = p1 + d1 * s
    c2 = p2 + d2 * t
    return float(np.linalg.norm(c1 - c2))


def ray_segment_distance(origin: Vec3, direction: Vec3, t_far: float, start: Vec3, end: Vec3) -> float:
    """Closest distance between the ray piece origin + [0, t_far] * direction and a segment."""
    return closest_distance_segment_segment(origin, origin + t_far * direction, start, end)


def channel_glow(distance: float, width: float) -> float:
    """Sharp falloff of the bright channel; MAX_CHANNEL_CONTRIBUTION at distance 0."""
    if width <= 0.0:
        return 0.0
    return MAX_CHANNEL_CONTRIBUTION * math.exp(-((2.0 * distance / width) ** CHANNEL_SHARPNESS))


def halo_glow(distance: float, glow_width: float) -> float:
    """Soft Gaussian falloff of the halo; MAX_GLOW_CONTRIBUTION at distance 0."""
    if glow_width <= 0.0:
        return 0.0
    return MAX_GLOW_CONTRIBUTION * math.exp(-((distance / glow_width) ** 2))


def lightning_glow(origin: Vec3, direction: Vec3, t_far: float, segments) -> Vec3:
    """Summed channel and halo glow of every segment seen along a ray.

    Args:
        origin: Ray origin.
        direction: Unit ray direction.
        t_far: Length of the ray to consider (the hit distance, or a large
            value for rays that miss).
        segments: Iterable of LineLight.

    Returns:
        RGB glow to add to the ray's radiance.
    """
    total = 0.0
    for segment in segments:
        if segment.is_degenerate():
            logger.debug("Skipping degenerate lightning segment at %s", segment.start)
            continue
        d = ray_segment_distance(origin, direction, t_far, segment.start, segment.end)
        total += channel_glow(d, CHANNEL_WIDTH_SCALE * segment.radius)
        total += halo_glow(d, GLOW_WIDTH_SCALE * segment.radius)
    return total * LIGHTNING_COLOR
