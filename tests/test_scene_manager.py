"""Tests for the SceneManager.

Tests cover:
- Material registration and lookup
- Quads, spheres and their rasterized patches
- Area lights from emissive quads and lightning line lights
- Bounding boxes
- Dictionary and JSON serialization
"""

import json

import numpy as np
import pytest


class TestMaterials:
    """Tests for material registration."""

    def test_add_material_returns_sequential_ids(self):
        """IDs index the material list in insertion order."""
        from src.stormlight.scene.manager import SceneManager

        scene = SceneManager()
        a = scene.add_material(diffuse=(0.1, 0.2, 0.3))
        b = scene.add_material(diffuse=(0.4, 0.5, 0.6))

        assert (a, b) == (0, 1)
        assert scene.get_material_count() == 2
        assert np.allclose(scene.get_material(b).diffuse, (0.4, 0.5, 0.6))

    def test_add_prebuilt_material(self):
        """A PhongMaterial instance is stored as-is."""
        from src.stormlight.materials.phong import PhongMaterial
        from src.stormlight.scene.manager import SceneManager

        scene = SceneManager()
        material = PhongMaterial(diffuse=(0.2, 0.2, 0.2))
        mat_id = scene.add_material(material)

        assert scene.get_material(mat_id) is material

    def test_material_and_params_together_rejected(self):
        """Passing a material and loose parameters is ambiguous."""
        from src.stormlight.materials.phong import PhongMaterial
        from src.stormlight.scene.manager import SceneManager

        with pytest.raises(ValueError, match="either"):
            SceneManager().add_material(PhongMaterial(), diffuse=(0.1, 0.1, 0.1))

    def test_invalid_material_id(self):
        """Unknown material IDs are rejected everywhere."""
        from src.stormlight.scene.manager import SceneManager

        scene = SceneManager()
        with pytest.raises(ValueError, match="material_id"):
            scene.get_material(0)
        with pytest.raises(ValueError, match="material_id"):
            scene.add_quad((0, 0, 0), (1, 0, 0), (0, 0, 1), 3)
        with pytest.raises(ValueError, match="material_id"):
            scene.add_sphere((0, 0, 0), 1.0, -1)


class TestPrimitives:
    """Tests for quads and spheres."""

    def test_add_quad_counts(self):
        """Quads land in Taichi storage."""
        from src.stormlight.scene.manager import SceneManager

        scene = SceneManager()
        mat = scene.add_material()
        scene.add_quad((0, 0, 0), (1, 0, 0), (0, 0, 1), mat)
        scene.add_quad((0, 1, 0), (1, 0, 0), (0, 0, 1), mat)

        assert scene.get_quad_count() == 2
        assert scene.get_primitive_count() == 2

    def test_add_sphere_adds_patches(self):
        """Each sphere also gets 2*h*v - 2*h triangle patches."""
        from src.stormlight.scene.manager import SceneManager

        scene = SceneManager(horizontal_patches=8, vertical_patches=4)
        mat = scene.add_material()
        scene.add_sphere((0, 0, 0), 1.0, mat)

        assert scene.get_sphere_count() == 1
        assert scene.get_triangle_count() == 2 * 8 * 4 - 2 * 8

    def test_set_rasterization_retessellates(self):
        """Changing the patch resolution rebuilds every sphere's triangles."""
        from src.stormlight.scene.manager import SceneManager

        scene = SceneManager(horizontal_patches=8, vertical_patches=4)
        mat = scene.add_material()
        scene.add_sphere((0, 0, 0), 1.0, mat)
        scene.add_sphere((3, 0, 0), 1.0, mat)
        scene.set_rasterization(4, 2)

        assert scene.get_triangle_count() == 2 * (2 * 4 * 2 - 2 * 4)

    def test_sphere_radius_must_be_positive(self):
        """Zero-radius spheres are rejected."""
        from src.stormlight.scene.manager import SceneManager

        scene = SceneManager()
        mat = scene.add_material()
        with pytest.raises(ValueError, match="radius"):
            scene.add_sphere((0, 0, 0), 0.0, mat)

    def test_new_manager_clears_storage(self):
        """Creating a SceneManager empties the shared primitive storage."""
        from src.stormlight.scene.manager import SceneManager

        first = SceneManager()
        mat = first.add_material()
        first.add_quad((0, 0, 0), (1, 0, 0), (0, 0, 1), mat)

        second = SceneManager()
        assert second.get_quad_count() == 0

    def test_capacity_constants(self):
        """Capacity getters report the storage limits."""
        from src.stormlight.scene.intersection import MAX_QUADS, MAX_SPHERES, MAX_TRIANGLES
        from src.stormlight.scene.manager import SceneManager

        assert SceneManager.get_max_spheres() == MAX_SPHERES
        assert SceneManager.get_max_quads() == MAX_QUADS
        assert SceneManager.get_max_triangles() == MAX_TRIANGLES


class TestLights:
    """Tests for area lights and lightning segments."""

    def test_emissive_quad_becomes_light(self):
        """Only quads with emissive materials are area lights."""
        from src.stormlight.scene.manager import SceneManager

        scene = SceneManager()
        wall = scene.add_material()
        lamp = scene.add_material(diffuse=(0, 0, 0), emitted=(4, 4, 4))
        scene.add_quad((0, 0, 0), (1, 0, 0), (0, 0, 1), wall)
        scene.add_quad((0, 2, 0), (0.5, 0, 0), (0, 0, 0.5), lamp)

        assert len(scene.lights) == 1
        light = scene.lights[0]
        assert light.material_id == lamp
        assert light.area == pytest.approx(0.25)
        assert np.allclose(light.power, (1.0, 1.0, 1.0))

    def test_zero_area_light_warns(self, caplog):
        """A degenerate emissive quad is kept but logged."""
        from src.stormlight.scene.manager import SceneManager

        scene = SceneManager()
        lamp = scene.add_material(diffuse=(0, 0, 0), emitted=(4, 4, 4))
        with caplog.at_level("WARNING", logger="src.stormlight.scene.manager"):
            scene.add_quad((0, 0, 0), (1, 0, 0), (2, 0, 0), lamp)

        assert len(scene.lights) == 1
        assert "zero area" in caplog.text

    def test_add_lightning_segment(self):
        """Lightning segments are stored as line lights."""
        from src.stormlight.scene.manager import SceneManager

        scene = SceneManager()
        segment = scene.add_lightning_segment((0, 0, 0), (0, 1, 0), 0.02)

        assert scene.line_lights == [segment]
        assert segment.length == pytest.approx(1.0)

    def test_ambient_and_background(self):
        """Setters store colours as float vectors."""
        from src.stormlight.scene.manager import DEFAULT_AMBIENT_LIGHT, SceneManager

        scene = SceneManager()
        assert np.allclose(scene.ambient_light, DEFAULT_AMBIENT_LIGHT)
        scene.set_ambient_light((0.2, 0.3, 0.4))
        scene.set_background_color((1, 0, 0))

        assert np.allclose(scene.ambient_light, (0.2, 0.3, 0.4))
        assert scene.background_color.dtype == np.float64


class TestBoundingBox:
    """Tests for SceneManager.bounding_box."""

    def test_covers_all_primitives(self):
        """Quads, spheres and lightning all extend the box."""
        from src.stormlight.scene.manager import SceneManager

        scene = SceneManager()
        mat = scene.add_material()
        scene.add_quad((0, 0, 0), (1, 0, 0), (0, 0, 1), mat)
        scene.add_sphere((2, 0, 0), 0.5, mat)
        scene.add_lightning_segment((0, 3, 0), (0, 4, -2), 0.01)
        box = scene.bounding_box()

        assert np.allclose(box.min, (0.0, -0.5, -2.0))
        assert np.allclose(box.max, (2.5, 4.0, 1.0))

    def test_empty_scene_raises(self):
        """An empty scene has no bounding box."""
        from src.stormlight.scene.manager import SceneManager

        with pytest.raises(ValueError, match="empty"):
            SceneManager().bounding_box()


class TestSerialization:
    """Tests for to_dict/from_dict and JSON files."""

    def _build(self):
        from src.stormlight.scene.manager import SceneManager

        scene = SceneManager()
        wall = scene.add_material(diffuse=(0.7, 0.1, 0.1), specular=(0.2, 0.2, 0.2), exponent=20.0)
        lamp = scene.add_material(diffuse=(0, 0, 0), emitted=(5, 5, 5))
        scene.add_quad((0, 0, 0), (1, 0, 0), (0, 0, 1), wall)
        scene.add_quad((0.25, 1, 0.25), (0.5, 0, 0), (0, 0, 0.5), lamp)
        scene.add_sphere((0.5, 0.3, 0.5), 0.3, wall)
        scene.add_lightning_segment((0.1, 0.9, 0.1), (0.2, 0.0, 0.1), 0.01)
        scene.set_ambient_light((0.05, 0.05, 0.05))
        scene.set_background_color((0.1, 0.2, 0.3))
        return scene

    def test_to_dict_contents(self):
        """Every part of the scene appears in the dictionary."""
        data = self._build().to_dict()

        assert len(data["materials"]) == 2
        assert len(data["quads"]) == 2
        assert len(data["spheres"]) == 1
        assert len(data["lightning"]) == 1
        assert data["materials"][0]["exponent"] == 20.0
        assert data["background_color"] == pytest.approx([0.1, 0.2, 0.3])
        json.dumps(data)

    def test_dict_round_trip(self):
        """from_dict rebuilds an equivalent scene."""
        from src.stormlight.scene.manager import SceneManager

        data = self._build().to_dict()
        restored = SceneManager()
        restored.from_dict(data)

        assert restored.to_dict() == data
        assert len(restored.lights) == 1
        assert restored.get_quad_count() == 2
        assert restored.get_sphere_count() == 1

    def test_json_round_trip(self, tmp_path):
        """save_json and load_json preserve the scene."""
        from src.stormlight.scene.manager import SceneManager

        scene = self._build()
        path = tmp_path / "scene.json"
        scene.save_json(path)

        restored = SceneManager()
        restored.load_json(path)
        assert restored.to_dict() == scene.to_dict()

    def test_from_dict_defaults(self):
        """Missing sections fall back to an empty scene with default lighting."""
        from src.stormlight.scene.manager import DEFAULT_AMBIENT_LIGHT, SceneManager

        scene = SceneManager()
        scene.from_dict({})

        assert scene.get_material_count() == 0
        assert np.allclose(scene.ambient_light, DEFAULT_AMBIENT_LIGHT)

    def test_from_dict_invalid_material(self):
        """Out-of-range material parameters are rejected."""
        from src.stormlight.scene.manager import SceneManager

        with pytest.raises(ValueError):
            SceneManager().from_dict({"materials": [{"diffuse": [2.0, 0.0, 0.0]}]})
