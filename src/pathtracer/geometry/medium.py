"""Constant-density participating media (smoke, fog).

A medium fills a convex boundary, a sphere or a box. A ray crossing it
travels a free-flight distance drawn from the exponential distribution

    d = -(1 / density) * ln(1 - u),   u uniform in [0, 1)

and scatters there if d is shorter than the chord inside the boundary;
otherwise it passes straight through. The mean free path is 1 / density.
Scattering is handled by the medium's material, normally an isotropic one.

The kernel helpers take the uniform u as an argument, so the caller decides
which random stream pays for it.

Example:
    >>> fog = ConstantMediumInfo(BoxInfo.from_corners((0, 0, 0), (1, 1, 1)), 0.5,
    ...                          IsotropicMaterial((1.0, 1.0, 1.0)))
"""

import math
from dataclasses import dataclass, replace
from typing import Any, Union

import taichi as ti
import taichi.math as tm

from pathtracer.core.aabb import AABB
from pathtracer.geometry.box import BoxInfo
from pathtracer.geometry.sphere import HitRecord, SphereInfo, _solve_quadratic_robust

vec3 = tm.vec3

# Half-width of the "unbounded" line parameter range
_T_INFINITY = 1e30

Boundary = Union[SphereInfo, BoxInfo]


@dataclass(frozen=True)
class ConstantMediumInfo:
    """Scene description of a constant-density medium.

    Attributes:
        boundary: Sphere or box enclosing the medium; its own material is
            dropped.
        density: Scattering events per unit length, > 0.
        material: Phase function applied at scattering events.
    """

    boundary: Boundary
    density: float
    material: Any

    def __post_init__(self) -> None:
        if not isinstance(self.boundary, (SphereInfo, BoxInfo)):
            raise TypeError(f"Medium boundary must be a sphere or a box, got {self.boundary!r}")
        object.__setattr__(self, "boundary", replace(self.boundary, material=None))
        density = float(self.density)
        if not (math.isfinite(density) and density > 0.0):
            raise ValueError(f"Medium density must be positive, got {self.density}")
        object.__setattr__(self, "density", density)

    @property
    def neg_inv_density(self) -> float:
        return -1.0 / self.density

    def bounding_box(self) -> AABB:
        return self.boundary.bounding_box()

    def centroid(self) -> tuple[float, float, float]:
        return self.boundary.centroid()

    def translated(self, offset) -> "ConstantMediumInfo":
        return replace(self, boundary=self.boundary.translated(offset))

    def rotated(self, axis, angle: float) -> "ConstantMediumInfo":
        return replace(self, boundary=self.boundary.rotated(axis, angle))


@ti.func
def sphere_interval(ray_origin: vec3, ray_direction: vec3, center: vec3, radius: ti.f32):
    """Entry and exit parameters of the whole line through a sphere.

    Returns:
        (inside, t_enter, t_exit); inside is 0 when the line misses.
    """
    oc = ray_origin - center
    a = tm.dot(ray_direction, ray_direction)
    h = tm.dot(ray_direction, oc)
    c = tm.dot(oc, oc) - radius * radius
    discriminant = h * h - a * c

    inside = 0
    t_enter = 0.0
    t_exit = 0.0
    if discriminant >= 0.0 and a > 0.0:
        inside = 1
        t_enter, t_exit = _solve_quadratic_robust(h, a, c, ti.sqrt(discriminant))
    return inside, t_enter, t_exit


@ti.func
def _slab(s0: ti.f32, ds: ti.f32, t_lo: ti.f32, t_hi: ti.f32):
    """Clip (t_lo, t_hi) to the parameters where s0 + t * ds lies in [0, 1]."""
    lo = t_lo
    hi = t_hi
    if ti.abs(ds) < 1e-12:
        if s0 < 0.0 or s0 > 1.0:
            lo = 1.0
            hi = 0.0
    else:
        a = -s0 / ds
        b = (1.0 - s0) / ds
        lo = ti.max(lo, ti.min(a, b))
        hi = ti.min(hi, ti.max(a, b))
    return lo, hi


@ti.func
def box_interval(
    ray_origin: vec3,
    ray_direction: vec3,
    corner: vec3,
    edge_x: vec3,
    edge_y: vec3,
    edge_z: vec3,
):
    """Entry and exit parameters of the whole line through a parallelepiped.

    The ray is expressed in the box frame with the dual basis of the edges,
    where the box is the unit cube, and clipped against its three slabs.

    Returns:
        (inside, t_enter, t_exit); inside is 0 when the line misses.
    """
    det = tm.dot(edge_x, tm.cross(edge_y, edge_z))
    w_x = tm.cross(edge_y, edge_z) / det
    w_y = tm.cross(edge_z, edge_x) / det
    w_z = tm.cross(edge_x, edge_y) / det

    rel = ray_origin - corner
    t_lo, t_hi = _slab(tm.dot(w_x, rel), tm.dot(w_x, ray_direction), -_T_INFINITY, _T_INFINITY)
    t_lo, t_hi = _slab(tm.dot(w_y, rel), tm.dot(w_y, ray_direction), t_lo, t_hi)
    t_lo, t_hi = _slab(tm.dot(w_z, rel), tm.dot(w_z, ray_direction), t_lo, t_hi)

    inside = 0
    if t_lo < t_hi:
        inside = 1
    return inside, t_lo, t_hi


@ti.func
def free_flight_hit(
    ray_origin: vec3,
    ray_direction: vec3,
    t_enter: ti.f32,
    t_exit: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
    neg_inv_density: ti.f32,
    u: ti.f32,
) -> HitRecord:
    """Scattering event inside a medium spanning (t_enter, t_exit) on the line.

    The chord is clipped to (t_min, t_max) first. The record has an arbitrary
    normal and front_face = 1; isotropic scattering ignores both.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The ray direction (need not be normalized).
        t_enter: Line parameter where the boundary is entered.
        t_exit: Line parameter where the boundary is left.
        t_min: Exclusive lower bound on t.
        t_max: Exclusive upper bound on t.
        neg_inv_density: -1 / density.
        u: Uniform random number in [0, 1).

    Returns:
        A HitRecord; hit is 0 when the ray passes through unscattered.
    """
    rec = HitRecord(
        hit=0, t=0.0, point=vec3(0.0), normal=vec3(0.0), front_face=0, uv=tm.vec2(0.0)
    )
    t1 = ti.max(ti.max(t_enter, t_min), 0.0)
    t2 = ti.min(t_exit, t_max)
    if t1 < t2:
        speed = tm.length(ray_direction)
        chord = (t2 - t1) * speed
        distance = neg_inv_density * ti.log(1.0 - u)
        if distance < chord:
            t = t1 + distance / speed
            rec = HitRecord(
                hit=1,
                t=t,
                point=ray_origin + t * ray_direction,
                normal=vec3(1.0, 0.0, 0.0),
                front_face=1,
                uv=tm.vec2(0.0),
            )
    return rec
