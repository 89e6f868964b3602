"""Pytest configuration for renderer tests.

Taichi must be initialized once per session before any module that
declares Taichi fields is imported, so test modules import package code
inside the test functions.
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Repeated ti.init() calls reset the runtime and invalidate fields that
    other modules already hold.
    """
    ti.init(arch=ti.cpu, random_seed=42)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Clear primitive storage and the render target around each test."""
    from src.stormlight.core.integrator import reset_render_target
    from src.stormlight.scene.intersection import clear_scene

    clear_scene()
    reset_render_target()
    yield
    clear_scene()
    reset_render_target()


@pytest.fixture
def rng():
    """Seeded generator for deterministic sampling."""
    import numpy as np

    return np.random.default_rng(1234)
