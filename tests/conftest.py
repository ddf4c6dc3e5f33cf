"""Pytest configuration for path tracer tests.

Taichi is initialized once per session, before any module that declares
Taichi fields is imported; test modules therefore import the package inside
test functions.
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Repeated ti.init() calls would invalidate every field declared so far.
    """
    ti.init(arch=ti.cpu, random_seed=42)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Reset every registry and integrator setting around each test."""
    from pathtracer.core.integrator import clear_render_target, reset_integrator_settings
    from pathtracer.scene.manager import clear_all_scene_data as clear_registries

    def _clear_all():
        clear_registries()
        clear_render_target()
        reset_integrator_settings()

    _clear_all()
    yield
    _clear_all()


@pytest.fixture
def seeded_rng():
    import numpy as np

    return np.random.default_rng(1234)
