"""Sphere primitive with robust ray-sphere intersection.

Two representations live here:
- SphereInfo: immutable Python descriptor used to build scenes and the BVH
- Sphere: Taichi dataclass consumed by hit_sphere inside kernels

The quadratic is solved in half-b form with the cancellation-free root
formula (Ray Tracing Gems, chapter 7), so grazing rays stay stable.

Example:
    >>> info = SphereInfo(center=(0.0, 0.0, -1.0), radius=0.5, material=glass)
    >>> info.bounding_box().minimum
    (-0.5, -0.5, -1.5)
"""

import math
from dataclasses import dataclass, replace
from typing import Any

import taichi as ti
import taichi.math as tm

from pathtracer.core.aabb import AABB
from pathtracer.geometry.transform import rotate, rotation_matrix, translate

vec3 = tm.vec3


@ti.dataclass
class Sphere:
    """A sphere defined by center point and radius.

    Attributes:
        center: The center point of the sphere (vec3).
        radius: The radius of the sphere (positive float).
    """

    center: vec3
    radius: ti.f32


@ti.dataclass
class HitRecord:
    """Record of a ray-primitive intersection.

    Attributes:
        hit: 1 if the ray intersected the primitive, 0 on a miss.
        t: Ray parameter of the intersection. Only valid if hit == 1.
        point: World-space intersection point. Only valid if hit == 1.
        normal: Unit surface normal, flipped so it always opposes the ray.
            Only valid if hit == 1.
        front_face: 1 if the ray arrived from the outward side of the surface.
            Only valid if hit == 1.
        uv: Surface coordinates in [0, 1]^2 used for texture lookup.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32
    uv: tm.vec2


@dataclass(frozen=True)
class SphereInfo:
    """Scene description of a sphere.

    Attributes:
        center: Center point (x, y, z).
        radius: Strictly positive radius.
        material: Material descriptor shading this sphere.
    """

    center: tuple[float, float, float]
    radius: float
    material: Any

    def __post_init__(self) -> None:
        if len(self.center) != 3:
            raise ValueError(f"Sphere center must have three components, got {self.center!r}")
        object.__setattr__(self, "center", tuple(float(c) for c in self.center))
        object.__setattr__(self, "radius", float(self.radius))
        if not all(math.isfinite(c) for c in self.center):
            raise ValueError(f"Sphere center must be finite, got {self.center}")
        if not (self.radius > 0.0 and math.isfinite(self.radius)):
            raise ValueError(f"Sphere radius must be positive, got {self.radius}")

    def bounding_box(self) -> AABB:
        """Box spanning center +/- radius on every axis."""
        r = self.radius
        return AABB(
            tuple(c - r for c in self.center),
            tuple(c + r for c in self.center),
        )

    def centroid(self) -> tuple[float, float, float]:
        return self.bounding_box().centroid()

    def translated(self, offset) -> "SphereInfo":
        return replace(self, center=translate(self.center, offset))

    def rotated(self, axis, angle: float) -> "SphereInfo":
        """Rotate the center by angle degrees about axis through the origin."""
        return replace(self, center=rotate(rotation_matrix(axis, angle), self.center))


@ti.func
def sphere_uv(outward_normal: vec3) -> tm.vec2:
    """Map a point on the unit sphere to (u, v).

    u is the angle around the Y axis from X = -1, v the angle from Y = -1,
    both scaled to [0, 1].
    """
    theta = ti.acos(ti.min(ti.max(-outward_normal.y, -1.0), 1.0))
    phi = ti.atan2(-outward_normal.z, outward_normal.x) + tm.pi
    return tm.vec2(phi / (2.0 * tm.pi), theta / tm.pi)


@ti.func
def _solve_quadratic_robust(h: ti.f32, a: ti.f32, c: ti.f32, sqrt_d: ti.f32):
    """Roots of a*t^2 + 2*h*t + c = 0, ordered t0 <= t1."""
    sign_h = ti.select(h < 0.0, -1.0, 1.0)
    q = -(h + sign_h * sqrt_d)

    t0 = 0.0
    t1 = 0.0
    if ti.abs(q) < 1e-10:
        # q vanishes when both h and the discriminant are ~0
        t0 = (-h - sqrt_d) / a
        t1 = (-h + sqrt_d) / a
    else:
        t0 = q / a
        t1 = c / q

    if t0 > t1:
        tmp = t0
        t0 = t1
        t1 = tmp

    return t0, t1


@ti.func
def hit_sphere(
    ray_origin: vec3,
    ray_direction: vec3,
    sphere: Sphere,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Nearest intersection of a ray with a sphere inside (t_min, t_max).

    With oc = origin - center the intersection satisfies
        a*t^2 + 2*h*t + c = 0
    where a = dot(d, d), h = dot(d, oc), c = dot(oc, oc) - r^2. The smaller
    root strictly inside the interval wins; otherwise the larger one is tried.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The ray direction (need not be normalized).
        sphere: The sphere to test.
        t_min: Exclusive lower bound on t.
        t_max: Exclusive upper bound on t.

    Returns:
        A HitRecord; check its hit field before reading the others.
    """
    oc = ray_origin - sphere.center
    a = tm.dot(ray_direction, ray_direction)
    h = tm.dot(ray_direction, oc)
    c = tm.dot(oc, oc) - sphere.radius * sphere.radius
    discriminant = h * h - a * c

    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    is_front_face = 0
    hit_uv = tm.vec2(0.0, 0.0)

    if discriminant >= 0.0 and a > 0.0:
        sqrt_d = ti.sqrt(discriminant)
        t0, t1 = _solve_quadratic_robust(h, a, c, sqrt_d)

        t = t0
        valid = t > t_min and t < t_max
        if not valid:
            t = t1
            valid = t > t_min and t < t_max

        if valid:
            did_hit = 1
            hit_t = t
            hit_point = ray_origin + t * ray_direction
            outward_normal = (hit_point - sphere.center) / sphere.radius
            hit_uv = sphere_uv(outward_normal)

            if tm.dot(ray_direction, outward_normal) < 0.0:
                is_front_face = 1
                hit_normal = outward_normal
            else:
                is_front_face = 0
                hit_normal = -outward_normal

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        front_face=is_front_face,
        uv=hit_uv,
    )
