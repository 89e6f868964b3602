"""Tests for area lights and lightning line lights."""

import numpy as np
import pytest


class TestQuadLight:
    """Tests for QuadLight."""

    def _light(self):
        from src.stormlight.scene.lights import QuadLight

        return QuadLight(
            corner=(0.0, 2.0, 0.0),
            edge_u=(2.0, 0.0, 0.0),
            edge_v=(0.0, 0.0, 3.0),
            emitted=(4.0, 4.0, 4.0),
        )

    def test_area_normal_centroid(self):
        """Test derived geometry of the light."""
        light = self._light()
        assert abs(light.area - 6.0) < 1e-12
        assert np.allclose(light.normal, [0.0, -1.0, 0.0])
        assert np.allclose(light.centroid, [1.0, 2.0, 1.5])

    def test_power_is_emitted_times_area(self):
        """Test the power proxy scales with area."""
        assert np.allclose(self._light().power, [24.0, 24.0, 24.0])

    def test_random_points_on_quad(self, rng):
        """Test sampled points lie on the quad and cover it uniformly."""
        light = self._light()
        points = np.array([light.random_point(rng) for _ in range(4000)])
        assert np.allclose(points[:, 1], 2.0)
        assert points[:, 0].min() >= 0.0 and points[:, 0].max() <= 2.0
        assert points[:, 2].min() >= 0.0 and points[:, 2].max() <= 3.0
        assert abs(points[:, 0].mean() - 1.0) < 0.05
        assert abs(points[:, 2].mean() - 1.5) < 0.08


class TestLineLight:
    """Tests for LineLight."""

    def test_length_and_midpoint(self):
        """Test segment length and midpoint."""
        from src.stormlight.scene.lights import LineLight

        seg = LineLight((0.0, 0.0, 0.0), (0.0, 4.0, 0.0), 0.1)
        assert abs(seg.length - 4.0) < 1e-12
        assert np.allclose(seg.midpoint, [0.0, 2.0, 0.0])

    def test_power_scales_with_length(self):
        """Test the power proxy is colour times intensity times length."""
        from src.stormlight.core.lightning import LIGHTNING_COLOR, LINE_LIGHT_INTENSITY
        from src.stormlight.scene.lights import LineLight

        seg = LineLight((0.0, 0.0, 0.0), (3.0, 0.0, 0.0), 0.1)
        assert np.allclose(seg.power, LIGHTNING_COLOR * LINE_LIGHT_INTENSITY * 3.0)

    def test_negative_radius(self):
        """Test a negative radius is rejected."""
        from src.stormlight.scene.lights import LineLight

        with pytest.raises(ValueError):
            LineLight((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), -0.1)

    def test_degenerate(self):
        """Test zero length or zero radius makes a segment degenerate."""
        from src.stormlight.scene.lights import LineLight

        assert LineLight((1.0, 1.0, 1.0), (1.0, 1.0, 1.0), 0.1).is_degenerate()
        assert LineLight((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), 0.0).is_degenerate()
        assert not LineLight((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), 0.1).is_degenerate()

    def test_random_point_on_segment(self, rng):
        """Test sampled points lie on the segment."""
        from src.stormlight.scene.lights import LineLight

        seg = LineLight((0.0, 0.0, 0.0), (0.0, 0.0, 2.0), 0.1)
        for _ in range(100):
            p = seg.random_point(rng)
            assert p[0] == 0.0 and p[1] == 0.0
            assert 0.0 <= p[2] <= 2.0
