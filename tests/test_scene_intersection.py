"""Tests for scene-level closest-hit queries.

Tests cover:
- Closest hit over spheres and quads
- Hits from inside a sphere and with concentric spheres
- t_min / t_max windows
- Quad-first tie resolution and rasterized patches
- Batched casting and capacity errors
"""

import numpy as np
import pytest


class TestSphereHits:
    """Tests for analytic sphere hits."""

    def test_front_hit(self):
        """Test a ray hits the near side of a sphere."""
        from src.stormlight.scene.intersection import add_sphere, cast_ray

        add_sphere((0.0, 0.0, -3.0), 1.0, material_id=4)
        hit = cast_ray((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert hit is not None
        assert abs(hit.t - 2.0) < 1e-5
        assert hit.material_id == 4
        assert hit.front_face
        assert np.allclose(hit.normal, [0.0, 0.0, 1.0], atol=1e-5)

    def test_miss(self):
        """Test a ray pointing away misses."""
        from src.stormlight.scene.intersection import add_sphere, cast_ray

        add_sphere((0.0, 0.0, -3.0), 1.0)
        assert cast_ray((0.0, 0.0, 0.0), (0.0, 0.0, 1.0)) is None

    def test_empty_scene_misses(self):
        """Test casting into an empty scene returns None."""
        from src.stormlight.scene.intersection import cast_ray

        assert cast_ray((0.0, 0.0, 0.0), (1.0, 0.0, 0.0)) is None

    def test_hit_from_inside(self):
        """Test a ray starting inside hits the far side, normal facing the ray."""
        from src.stormlight.scene.intersection import add_sphere, cast_ray

        add_sphere((0.0, 0.0, 0.0), 1.0)
        hit = cast_ray((0.0, 0.0, 0.0), (1.0, 0.0, 0.0))
        assert abs(hit.t - 1.0) < 1e-5
        assert not hit.front_face
        assert np.allclose(hit.normal, [-1.0, 0.0, 0.0], atol=1e-5)

    def test_concentric_spheres_outer_first(self):
        """Test the outer of two concentric spheres is hit first from outside."""
        from src.stormlight.scene.intersection import add_sphere, cast_ray

        add_sphere((0.0, 0.0, 0.0), 1.0, material_id=1)
        add_sphere((0.0, 0.0, 0.0), 2.0, material_id=2)
        hit = cast_ray((0.0, 0.0, -5.0), (0.0, 0.0, 1.0))
        assert abs(hit.t - 3.0) < 1e-5
        assert hit.material_id == 2

    def test_t_min_skips_near_hit(self):
        """Test hits at or below t_min are ignored."""
        from src.stormlight.scene.intersection import add_sphere, cast_ray

        add_sphere((0.0, 0.0, -3.0), 1.0)
        hit = cast_ray((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), t_min=2.5)
        assert abs(hit.t - 4.0) < 1e-5

    def test_t_max_excludes_far_hit(self):
        """Test hits at or beyond t_max are ignored."""
        from src.stormlight.scene.intersection import add_sphere, cast_ray

        add_sphere((0.0, 0.0, -3.0), 1.0)
        assert cast_ray((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), t_max=1.5) is None


class TestQuadHits:
    """Tests for quad hits and tie-breaking."""

    def test_quad_hit_uv(self):
        """Test a quad hit reports its (alpha, beta) coordinates."""
        from src.stormlight.scene.intersection import add_quad, cast_ray

        add_quad((0.0, 0.0, -2.0), (2.0, 0.0, 0.0), (0.0, 4.0, 0.0), material_id=3)
        hit = cast_ray((0.5, 1.0, 0.0), (0.0, 0.0, -1.0))
        assert abs(hit.t - 2.0) < 1e-5
        assert hit.material_id == 3
        assert abs(hit.uv[0] - 0.25) < 1e-5
        assert abs(hit.uv[1] - 0.25) < 1e-5

    def test_quad_outside_edges_misses(self):
        """Test a ray through the quad's plane outside its edges misses."""
        from src.stormlight.scene.intersection import add_quad, cast_ray

        add_quad((0.0, 0.0, -2.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0))
        assert cast_ray((1.5, 0.5, 0.0), (0.0, 0.0, -1.0)) is None

    def test_closest_of_quad_and_sphere(self):
        """Test the nearer primitive wins regardless of kind."""
        from src.stormlight.scene.intersection import add_quad, add_sphere, cast_ray

        add_quad((-5.0, -5.0, -10.0), (10.0, 0.0, 0.0), (0.0, 10.0, 0.0), material_id=0)
        add_sphere((0.0, 0.0, -4.0), 1.0, material_id=1)
        hit = cast_ray((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert hit.material_id == 1

    def test_tie_resolves_to_quad(self):
        """Test a triangle at exactly the quad's distance does not replace it."""
        from src.stormlight.scene.intersection import add_quad, add_triangle, cast_ray

        add_quad((-1.0, -1.0, 0.0), (2.0, 0.0, 0.0), (0.0, 2.0, 0.0), material_id=1)
        verts = np.array([[-1.0, -1.0, 0.0], [1.0, -1.0, 0.0], [0.0, 1.0, 0.0]])
        add_triangle(verts, np.zeros((3, 2)), material_id=2)
        hit = cast_ray((0.0, 0.0, -1.0), (0.0, 0.0, 1.0), use_rasterized_patches=True)
        assert abs(hit.t - 1.0) < 1e-6
        assert hit.material_id == 1


class TestRasterizedPatches:
    """Tests for the rasterized sphere mode."""

    def test_mode_selects_primitives(self):
        """Test triangles are only tested in rasterized mode and spheres only outside it."""
        from src.stormlight.scene.intersection import add_sphere, add_triangle, cast_ray

        add_sphere((0.0, 0.0, -10.0), 1.0, material_id=1)
        verts = np.array([[-1.0, -1.0, -3.0], [1.0, -1.0, -3.0], [0.0, 1.0, -3.0]])
        add_triangle(verts, np.zeros((3, 2)), material_id=2)

        assert cast_ray((0.0, 0.0, 0.0), (0.0, 0.0, -1.0)).material_id == 1
        assert cast_ray((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), use_rasterized_patches=True).material_id == 2

    def test_triangle_uv_interpolated(self):
        """Test triangle hits interpolate the corner coordinates."""
        from src.stormlight.scene.intersection import add_triangle, cast_ray

        verts = np.array([[0.0, 0.0, -1.0], [1.0, 0.0, -1.0], [0.0, 1.0, -1.0]])
        uvs = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])
        add_triangle(verts, uvs)
        hit = cast_ray((0.25, 0.5, 0.0), (0.0, 0.0, -1.0), use_rasterized_patches=True)
        assert abs(hit.uv[0] - 0.25) < 1e-5
        assert abs(hit.uv[1] - 0.5) < 1e-5

    def test_tessellated_sphere_close_to_analytic(self):
        """Test a tessellated sphere is hit near the analytic surface."""
        from src.stormlight.geometry.sphere import rasterize_sphere
        from src.stormlight.scene.intersection import add_triangle, cast_ray

        for verts, uvs in rasterize_sphere((0.0, 0.0, -3.0), 1.0, 32, 16):
            add_triangle(verts, uvs, material_id=7)
        hit = cast_ray((0.1, 0.2, 0.0), (0.0, 0.0, -1.0), use_rasterized_patches=True)
        assert hit is not None
        assert hit.material_id == 7
        assert abs(np.linalg.norm(hit.point - np.array([0.0, 0.0, -3.0])) - 1.0) < 0.02


class TestBatchCasting:
    """Tests for cast_rays."""

    def test_batch_matches_single(self):
        """Test batched hits agree with single casts."""
        from src.stormlight.scene.intersection import add_sphere, cast_ray, cast_rays

        add_sphere((0.0, 0.0, -3.0), 1.0)
        origins = np.zeros((3, 3))
        directions = np.array([[0.0, 0.0, -1.0], [0.0, 1.0, 0.0], [0.1, 0.0, -1.0]])
        hits = cast_rays(origins, directions)

        assert len(hits) == 3
        assert list(hits.hit) == [True, False, True]
        assert hits.get(1) is None
        single = cast_ray(origins[2], directions[2])
        assert abs(hits.get(2).t - single.t) < 1e-6

    def test_shape_mismatch(self):
        """Test mismatched origin and direction arrays are rejected."""
        from src.stormlight.scene.intersection import cast_rays

        with pytest.raises(ValueError):
            cast_rays(np.zeros((2, 3)), np.zeros((3, 3)))

    def test_empty_batch(self):
        """Test an empty batch returns empty results."""
        from src.stormlight.scene.intersection import cast_rays

        hits = cast_rays(np.zeros((0, 3)), np.zeros((0, 3)))
        assert len(hits) == 0


class TestStorage:
    """Tests for primitive storage."""

    def test_counts_and_clear(self):
        """Test counts follow adds and clear_scene."""
        from src.stormlight.scene.intersection import (
            add_quad,
            add_sphere,
            clear_scene,
            get_quad_count,
            get_sphere_count,
        )

        add_sphere((0.0, 0.0, 0.0), 1.0)
        add_quad((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0))
        assert get_sphere_count() == 1
        assert get_quad_count() == 1
        clear_scene()
        assert get_sphere_count() == 0
        assert get_quad_count() == 0

    def test_sphere_capacity(self):
        """Test exceeding sphere storage raises RuntimeError."""
        from src.stormlight.scene.intersection import MAX_SPHERES, add_sphere, num_spheres

        num_spheres[None] = MAX_SPHERES
        with pytest.raises(RuntimeError):
            add_sphere((0.0, 0.0, 0.0), 1.0)
