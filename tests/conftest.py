"""Pytest configuration for pathtracer tests.

Taichi must be initialised once per session, before any module that declares
Taichi fields is imported, so test modules import those inside the tests.
"""

import pytest


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls, which would discard
    fields allocated by earlier tests.
    """
    from pathtracer.runtime import init_taichi

    init_taichi(threads=4)
    yield


@pytest.fixture(autouse=True)
def clear_device_tables():
    """Empty the device scene and material tables around each test."""
    from pathtracer.materials.registry import clear_materials
    from pathtracer.scene.intersection import clear_scene

    clear_scene()
    clear_materials()
    yield
    clear_scene()
    clear_materials()
