"""Geometry module for primitives and spatial acceleration.

Components:
    sphere: Sphere primitive with ray-sphere intersection
    quad: Parallelogram primitive
    box: Boxes as six quads, and as medium boundaries
    medium: Constant-density participating media
    transform: Host-side rotation and translation of descriptors
    bvh: Median-split bounding volume hierarchy and its flat array form

Intersection routines are Taichi functions (@ti.func); the descriptors
(SphereInfo, QuadInfo, BoxInfo, ConstantMediumInfo) and the BVH builder are
plain Python.
"""

from .box import BoxInfo, create_box
from .bvh import LEAF_SIZE, BVHNode, FlatBVH, build_bvh, flatten_bvh
from .medium import ConstantMediumInfo
from .quad import Quad, QuadInfo, hit_quad
from .sphere import HitRecord, Sphere, SphereInfo, hit_sphere
from .transform import rotation_matrix

__all__ = [
    # Sphere
    "Sphere",
    "SphereInfo",
    "HitRecord",
    "hit_sphere",
    # Quad
    "Quad",
    "QuadInfo",
    "hit_quad",
    # Box
    "BoxInfo",
    "create_box",
    # Medium
    "ConstantMediumInfo",
    # Transform
    "rotation_matrix",
    # BVH
    "BVHNode",
    "FlatBVH",
    "LEAF_SIZE",
    "build_bvh",
    "flatten_bvh",
]
