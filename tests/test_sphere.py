"""Tests for sphere surface parametrisation and rasterization."""

import math

import numpy as np
import pytest


class TestSpherePoint:
    """Tests for sphere_point."""

    def test_poles(self):
        """Test t=0 is the bottom pole and t=1 the top pole."""
        from src.stormlight.geometry.sphere import sphere_point

        assert np.allclose(sphere_point((0.0, 0.0, 0.0), 2.0, 0.3, 0.0), [0.0, -2.0, 0.0])
        assert np.allclose(sphere_point((0.0, 0.0, 0.0), 2.0, 0.3, 1.0), [0.0, 2.0, 0.0])

    def test_equator(self):
        """Test s=0 on the equator points along +X and s=0.25 along -Z."""
        from src.stormlight.geometry.sphere import sphere_point

        assert np.allclose(sphere_point((1.0, 0.0, 0.0), 1.0, 0.0, 0.5), [2.0, 0.0, 0.0])
        assert np.allclose(sphere_point((0.0, 0.0, 0.0), 1.0, 0.25, 0.5), [0.0, 0.0, -1.0])

    def test_on_surface(self):
        """Test every point lies at the radius from the center."""
        from src.stormlight.geometry.sphere import sphere_point

        center = np.array([1.0, -2.0, 3.0])
        for s in np.linspace(0.0, 1.0, 7):
            for t in np.linspace(0.0, 1.0, 5):
                p = sphere_point(center, 0.5, s, t)
                assert abs(np.linalg.norm(p - center) - 0.5) < 1e-12


class TestRasterizeSphere:
    """Tests for rasterize_sphere."""

    def test_triangle_count(self):
        """Test two triangles per cell, minus one per pole cell."""
        from src.stormlight.geometry.sphere import rasterize_sphere

        h, v = 8, 4
        triangles = rasterize_sphere((0.0, 0.0, 0.0), 1.0, h, v)
        assert len(triangles) == 2 * h * v - 2 * h

    def test_outward_winding(self):
        """Test triangle normals point away from the center."""
        from src.stormlight.geometry.sphere import rasterize_sphere

        center = np.array([0.0, 1.0, 0.0])
        for verts, _ in rasterize_sphere(center, 1.0, 16, 12):
            n = np.cross(verts[1] - verts[0], verts[2] - verts[0])
            centroid = verts.mean(axis=0)
            assert np.dot(n, centroid - center) > 0.0

    def test_uvs_in_unit_square(self):
        """Test corner coordinates stay within [0, 1]."""
        from src.stormlight.geometry.sphere import rasterize_sphere

        for _, uvs in rasterize_sphere((0.0, 0.0, 0.0), 1.0, 6, 4):
            assert uvs.shape == (3, 2)
            assert np.all(uvs >= 0.0) and np.all(uvs <= 1.0)

    @pytest.mark.parametrize("radius, h, v", [(0.0, 4, 2), (1.0, 0, 2), (1.0, 4, 0)])
    def test_invalid_arguments(self, radius, h, v):
        """Test bad radius or patch counts are rejected."""
        from src.stormlight.geometry.sphere import rasterize_sphere

        with pytest.raises(ValueError):
            rasterize_sphere((0.0, 0.0, 0.0), radius, h, v)


class TestSphereUV:
    """Tests for the hit-time surface coordinates of analytic spheres."""

    def test_uv_matches_tessellation(self):
        """Test the analytic hit's (s, t) maps back to the hit point."""
        from src.stormlight.geometry.sphere import sphere_point
        from src.stormlight.scene.intersection import add_sphere, cast_ray

        add_sphere((0.0, 0.0, 0.0), 1.0)
        direction = np.array([-1.0, -0.5, 0.3])
        direction /= np.linalg.norm(direction)
        hit = cast_ray(-3.0 * direction, direction)
        s, t = hit.uv
        assert 0.0 <= s < 1.0
        assert 0.0 <= t <= 1.0
        assert np.allclose(sphere_point((0.0, 0.0, 0.0), 1.0, s, t), hit.point, atol=1e-4)

    def test_top_pole_t(self):
        """Test the top of the sphere has t = 1."""
        from src.stormlight.scene.intersection import add_sphere, cast_ray

        add_sphere((0.0, 0.0, 0.0), 1.0)
        hit = cast_ray((0.0, 5.0, 0.0), (0.0, -1.0, 0.0))
        assert math.isclose(hit.uv[1], 1.0, abs_tol=1e-4)
