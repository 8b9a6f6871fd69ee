"""Core rendering module.

Components:
    ray: Ray data structure, vector helpers and stream-based direction sampling
    rng: Per-pixel xorshift random streams seeded from one global seed
    aabb: Axis-aligned bounding boxes (Python and Taichi slab tests)
    integrator: Iterative light transport and the row-band render kernel
    renderer: Render settings, frame buffer and the Renderer

Only aabb is imported here. The other modules declare Taichi fields and must
be imported directly, after pathtracer.runtime.init_taichi() has run:

    >>> from pathtracer.runtime import init_taichi
    >>> init_taichi()
    >>> from pathtracer.core.renderer import Renderer, RenderSettings
"""

from .aabb import AABB, PAD_EPSILON, hit_aabb

__all__ = [
    "AABB",
    "PAD_EPSILON",
    "hit_aabb",
]
