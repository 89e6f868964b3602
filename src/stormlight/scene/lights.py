"""Light sources: emissive quads and lightning line lights.

Both kinds expose a power proxy, a representative point used for distance
falloff and uniform random point sampling. Area lights also expose their
area and the normal photons are emitted around.
"""

from dataclasses import dataclass

import numpy as np

from src.stormlight.core.lightning import LIGHTNING_COLOR, LINE_LIGHT_INTENSITY
from src.stormlight.core.ray import Vec3, as_vec3, length, normalize

# Segments shorter than this carry no light
MIN_SEGMENT_LENGTH = 1e-9


@dataclass(eq=False)
class QuadLight:
    """An emissive parallelogram corner, corner+u, corner+v, corner+u+v.

    Attributes:
        corner: Corner point.
        edge_u: First edge vector.
        edge_v: Second edge vector.
        emitted: Emitted radiance of the light's material.
        material_id: Material of the quad in the scene.
    """

    corner: Vec3
    edge_u: Vec3
    edge_v: Vec3
    emitted: Vec3
    material_id: int = -1

    def __post_init__(self) -> None:
        self.corner = as_vec3(self.corner)
        self.edge_u = as_vec3(self.edge_u)
        self.edge_v = as_vec3(self.edge_v)
        self.emitted = as_vec3(self.emitted)

    @property
    def area(self) -> float:
        return length(np.cross(self.edge_u, self.edge_v))

    @property
    def normal(self) -> Vec3:
        """Unit emission direction, normalize(cross(u, v))."""
        return normalize(np.cross(self.edge_u, self.edge_v))

    @property
    def centroid(self) -> Vec3:
        return self.corner + 0.5 * (self.edge_u + self.edge_v)

    @property
    def power(self) -> Vec3:
        """Emitted radiance times area."""
        return self.emitted * self.area

    def random_point(self, rng: np.random.Generator) -> Vec3:
        """Uniformly distributed point on the quad."""
        a, b = rng.random(2)
        return self.corner + a * self.edge_u + b * self.edge_v


@dataclass(eq=False)
class LineLight:
    """A straight lightning segment acting as a line light.

    Attributes:
        start: First end point.
        end: Second end point.
        radius: Thickness of the channel; sets the glow widths.
    """

    start: Vec3
    end: Vec3
    radius: float

    def __post_init__(self) -> None:
        self.start = as_vec3(self.start)
        self.end = as_vec3(self.end)
        if self.radius < 0.0:
            raise ValueError(f"Segment radius must be non-negative, got {self.radius}")

    @property
    def length(self) -> float:
        return length(self.end - self.start)

    @property
    def midpoint(self) -> Vec3:
        return 0.5 * (self.start + self.end)

    @property
    def power(self) -> Vec3:
        """Line-light colour times intensity times segment length."""
        return LIGHTNING_COLOR * LINE_LIGHT_INTENSITY * self.length

    def is_degenerate(self) -> bool:
        return self.length < MIN_SEGMENT_LENGTH or self.radius <= 0.0

    def random_point(self, rng: np.random.Generator) -> Vec3:
        """Uniformly distributed point along the segment."""
        return self.start + rng.random() * (self.end - self.start)
