"""Scene manager: materials, primitives, lights and lightning.

The SceneManager is the scene interface the tracers consume. It owns:

- the material list (a material ID indexes into it)
- the primitives, mirrored into the Taichi storage of
  ``scene.intersection`` (quads, analytic spheres and their rasterized
  triangle patches)
- the area lights (every quad with an emissive material)
- the lightning line lights
- the ambient light and background colour

Scenes serialize to and from JSON-compatible dictionaries.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.stormlight.scene.manager import SceneManager
    >>> scene = SceneManager()
    >>> white = scene.add_material(diffuse=(0.8, 0.8, 0.8))
    >>> lamp = scene.add_material(diffuse=(0, 0, 0), emitted=(5, 5, 5))
    >>> scene.add_quad((-1, 0, -1), (0, 0, 2), (2, 0, 0), white)
    >>> scene.add_quad((-0.2, 1.99, -0.2), (0.4, 0, 0), (0, 0, 0.4), lamp)
    >>> len(scene.lights)
    1
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np

from src.stormlight.core.kdtree import BoundingBox
from src.stormlight.core.ray import as_vec3, vec3
from src.stormlight.geometry.sphere import rasterize_sphere
from src.stormlight.materials.phong import PhongMaterial
from src.stormlight.scene.intersection import (
    MAX_QUADS,
    MAX_SPHERES,
    MAX_TRIANGLES,
    add_quad,
    add_sphere,
    add_triangle,
    clear_scene,
    get_quad_count,
    get_sphere_count,
    get_triangle_count,
    num_triangles,
)
from src.stormlight.scene.lights import LineLight, QuadLight

logger = logging.getLogger(__name__)

DEFAULT_AMBIENT_LIGHT = (0.1, 0.1, 0.1)
DEFAULT_BACKGROUND_COLOR = (0.0, 0.0, 0.0)


@dataclass
class SphereInfo:
    """A sphere in the scene.

    Attributes:
        sphere_index: Index in the sphere storage arrays.
        center: Center of the sphere.
        radius: Radius of the sphere.
        material_id: Material assigned to the sphere.
    """

    sphere_index: int
    center: tuple[float, float, float]
    radius: float
    material_id: int


@dataclass
class QuadInfo:
    """A quad in the scene.

    Attributes:
        quad_index: Index in the quad storage arrays.
        corner: Corner point (Q) of the quad.
        edge_u: First edge vector.
        edge_v: Second edge vector.
        material_id: Material assigned to the quad.
    """

    quad_index: int
    corner: tuple[float, float, float]
    edge_u: tuple[float, float, float]
    edge_v: tuple[float, float, float]
    material_id: int


@dataclass
class SceneConfig:
    """Serializable description of a scene.

    Attributes:
        materials: Material parameter dictionaries, indexed by material ID.
        spheres: Sphere dictionaries (center, radius, material_id).
        quads: Quad dictionaries (corner, edge_u, edge_v, material_id).
        lightning: Segment dictionaries (start, end, radius).
        ambient_light: Flat ambient light colour.
        background_color: Display-gamma colour of rays that miss.
    """

    materials: list[dict[str, Any]] = field(default_factory=list)
    spheres: list[dict[str, Any]] = field(default_factory=list)
    quads: list[dict[str, Any]] = field(default_factory=list)
    lightning: list[dict[str, Any]] = field(default_factory=list)
    ambient_light: list[float] = field(default_factory=lambda: list(DEFAULT_AMBIENT_LIGHT))
    background_color: list[float] = field(default_factory=lambda: list(DEFAULT_BACKGROUND_COLOR))


class SceneManager:
    """Scene container shared by the photon tracer and the ray tracer.

    Only one scene can own the Taichi primitive storage at a time; creating
    a SceneManager clears it.

    Args:
        horizontal_patches: Longitude divisions of rasterized spheres.
        vertical_patches: Latitude divisions of rasterized spheres.

    Attributes:
        materials: Materials indexed by material ID.
        spheres: Spheres in insertion order.
        quads: Quads in insertion order.
        lights: Area lights (quads with emissive materials).
        line_lights: Lightning segments.
        ambient_light: Flat ambient light colour (linear).
        background_color: Colour of escaping rays (display gamma).
    """

    def __init__(self, horizontal_patches: int = 16, vertical_patches: int = 12) -> None:
        self.materials: list[PhongMaterial] = []
        self.spheres: list[SphereInfo] = []
        self.quads: list[QuadInfo] = []
        self.lights: list[QuadLight] = []
        self.line_lights: list[LineLight] = []
        self.ambient_light = vec3(*DEFAULT_AMBIENT_LIGHT)
        self.background_color = vec3(*DEFAULT_BACKGROUND_COLOR)
        self.horizontal_patches = horizontal_patches
        self.vertical_patches = vertical_patches
        self._clear_all()

    def _clear_all(self) -> None:
        clear_scene()
        self.materials.clear()
        self.spheres.clear()
        self.quads.clear()
        self.lights.clear()
        self.line_lights.clear()

    def clear(self) -> None:
        """Remove all materials, primitives and lights."""
        self._clear_all()

    # =========================================================================
    # Materials
    # =========================================================================

    def add_material(self, material: PhongMaterial | None = None, **params) -> int:
        """Register a material and return its ID.

        Args:
            material: A ready-made material, or None to build one from params.
            **params: PhongMaterial fields (diffuse, reflective, emitted,
                specular, exponent, texture, texture_path).

        Raises:
            ValueError: If a parameter is out of range.
        """
        if material is None:
            material = PhongMaterial(**params)
        elif params:
            raise ValueError("Pass either a material or material parameters, not both")
        self.materials.append(material)
        return len(self.materials) - 1

    def get_material(self, material_id: int) -> PhongMaterial:
        """Material for an ID.

        Raises:
            ValueError: If the ID is unknown.
        """
        if not 0 <= material_id < len(self.materials):
            raise ValueError(f"Invalid material_id: {material_id}")
        return self.materials[material_id]

    def get_material_count(self) -> int:
        return len(self.materials)

    def _check_material_id(self, material_id: int) -> None:
        if not 0 <= material_id < len(self.materials):
            raise ValueError(f"Invalid material_id: {material_id}")

    # =========================================================================
    # Primitives
    # =========================================================================

    def add_sphere(self, center, radius: float, material_id: int) -> int:
        """Add a sphere and its rasterized patches.

        Raises:
            ValueError: If the radius is not positive or the material is unknown.
            RuntimeError: If sphere or triangle storage is full.
        """
        self._check_material_id(material_id)
        if radius <= 0.0:
            raise ValueError(f"Sphere radius must be positive, got {radius}")
        center = tuple(float(c) for c in center)
        sphere_index = add_sphere(center, radius, material_id)
        self.spheres.append(SphereInfo(sphere_index, center, float(radius), material_id))
        self._add_patches(self.spheres[-1])
        return sphere_index

    def _add_patches(self, sphere: SphereInfo) -> None:
        for vertices, uvs in rasterize_sphere(
            sphere.center, sphere.radius, self.horizontal_patches, self.vertical_patches
        ):
            add_triangle(vertices, uvs, sphere.material_id)

    def set_rasterization(self, horizontal_patches: int, vertical_patches: int) -> None:
        """Re-tessellate every sphere at a new patch resolution."""
        if horizontal_patches == self.horizontal_patches and vertical_patches == self.vertical_patches:
            return
        self.horizontal_patches = horizontal_patches
        self.vertical_patches = vertical_patches
        num_triangles[None] = 0
        for sphere in self.spheres:
            self._add_patches(sphere)

    def add_quad(self, corner, edge_u, edge_v, material_id: int) -> int:
        """Add a quad; a quad with an emissive material also becomes an area light.

        Raises:
            ValueError: If the material is unknown.
            RuntimeError: If quad storage is full.
        """
        self._check_material_id(material_id)
        corner = tuple(float(c) for c in corner)
        edge_u = tuple(float(c) for c in edge_u)
        edge_v = tuple(float(c) for c in edge_v)
        quad_index = add_quad(corner, edge_u, edge_v, material_id)
        self.quads.append(QuadInfo(quad_index, corner, edge_u, edge_v, material_id))

        material = self.materials[material_id]
        if material.is_emissive():
            light = QuadLight(corner, edge_u, edge_v, material.emitted, material_id)
            if light.area <= 0.0:
                logger.warning("Emissive quad %d has zero area and emits no photons", quad_index)
            self.lights.append(light)
        return quad_index

    def add_lightning_segment(self, start, end, radius: float) -> LineLight:
        """Add one straight lightning segment as a line light."""
        segment = LineLight(start, end, radius)
        self.line_lights.append(segment)
        return segment

    def set_ambient_light(self, color) -> None:
        self.ambient_light = as_vec3(color)

    def set_background_color(self, color) -> None:
        self.background_color = as_vec3(color)

    # =========================================================================
    # Scene Queries
    # =========================================================================

    def get_sphere_count(self) -> int:
        return get_sphere_count()

    def get_quad_count(self) -> int:
        return get_quad_count()

    def get_triangle_count(self) -> int:
        return get_triangle_count()

    def get_primitive_count(self) -> int:
        return self.get_sphere_count() + self.get_quad_count()

    def bounding_box(self) -> BoundingBox:
        """Smallest box containing every quad, sphere and lightning segment.

        Raises:
            ValueError: If the scene is empty.
        """
        points = []
        for quad in self.quads:
            q = np.asarray(quad.corner)
            u = np.asarray(quad.edge_u)
            v = np.asarray(quad.edge_v)
            points.extend([q, q + u, q + v, q + u + v])
        for sphere in self.spheres:
            c = np.asarray(sphere.center)
            points.extend([c - sphere.radius, c + sphere.radius])
        for segment in self.line_lights:
            points.extend([segment.start, segment.end])
        if not points:
            raise ValueError("Cannot compute the bounding box of an empty scene")
        return BoundingBox.from_points(np.array(points))

    # =========================================================================
    # Scene Serialization
    # =========================================================================

    def to_config(self) -> SceneConfig:
        """Export the scene to a configuration object."""
        config = SceneConfig(
            ambient_light=self.ambient_light.tolist(),
            background_color=self.background_color.tolist(),
        )
        config.materials = [m.to_dict() for m in self.materials]
        for sphere in self.spheres:
            config.spheres.append(
                {
                    "center": list(sphere.center),
                    "radius": sphere.radius,
                    "material_id": sphere.material_id,
                }
            )
        for quad in self.quads:
            config.quads.append(
                {
                    "corner": list(quad.corner),
                    "edge_u": list(quad.edge_u),
                    "edge_v": list(quad.edge_v),
                    "material_id": quad.material_id,
                }
            )
        for segment in self.line_lights:
            config.lightning.append(
                {
                    "start": segment.start.tolist(),
                    "end": segment.end.tolist(),
                    "radius": segment.radius,
                }
            )
        return config

    def from_config(self, config: SceneConfig) -> None:
        """Replace the current scene with a configuration.

        Raises:
            ValueError: If the configuration contains invalid data.
        """
        self.clear()
        for mat_config in config.materials:
            self.add_material(**mat_config)
        for sphere in config.spheres:
            self.add_sphere(sphere["center"], sphere["radius"], sphere.get("material_id", 0))
        for quad in config.quads:
            self.add_quad(quad["corner"], quad["edge_u"], quad["edge_v"], quad.get("material_id", 0))
        for segment in config.lightning:
            self.add_lightning_segment(segment["start"], segment["end"], segment["radius"])
        self.set_ambient_light(config.ambient_light)
        self.set_background_color(config.background_color)

    def to_dict(self) -> dict[str, Any]:
        """Export the scene as a JSON-compatible dictionary."""
        config = self.to_config()
        return {
            "materials": config.materials,
            "spheres": config.spheres,
            "quads": config.quads,
            "lightning": config.lightning,
            "ambient_light": config.ambient_light,
            "background_color": config.background_color,
        }

    def from_dict(self, data: dict[str, Any]) -> None:
        """Load a scene from a dictionary produced by ``to_dict``."""
        config = SceneConfig(
            materials=data.get("materials", []),
            spheres=data.get("spheres", []),
            quads=data.get("quads", []),
            lightning=data.get("lightning", []),
            ambient_light=data.get("ambient_light", list(DEFAULT_AMBIENT_LIGHT)),
            background_color=data.get("background_color", list(DEFAULT_BACKGROUND_COLOR)),
        )
        self.from_config(config)

    def save_json(self, path: str | Path) -> None:
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    def load_json(self, path: str | Path) -> None:
        """Load a scene from a JSON file written by ``save_json``."""
        with open(path) as f:
            self.from_dict(json.load(f))

    # =========================================================================
    # Capacity Information
    # =========================================================================

    @staticmethod
    def get_max_spheres() -> int:
        return MAX_SPHERES

    @staticmethod
    def get_max_quads() -> int:
        return MAX_QUADS

    @staticmethod
    def get_max_triangles() -> int:
        return MAX_TRIANGLES
