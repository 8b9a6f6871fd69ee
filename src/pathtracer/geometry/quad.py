"""Quad primitive with ray-quad intersection.

A quad is the parallelogram spanned by a corner Q and two edge vectors u and
v, with vertices Q, Q+u, Q+v and Q+u+v. Its outward normal follows the
right-hand rule, normalize(cross(u, v)). Quads are used for walls, floors and
the faces of boxes.

Intersection is a plane test followed by a bounds check on the planar
coordinates (alpha, beta) of the hit point:
    P = Q + alpha * u + beta * v,   0 <= alpha, beta <= 1

Example:
    >>> floor = QuadInfo(corner=(0, 0, 0), edge_u=(1, 0, 0), edge_v=(0, 0, 1),
    ...                  material=white)
    >>> floor.bounding_box().extent()[1]  # padded zero-thickness axis
    0.0001
"""

import math
from dataclasses import dataclass, replace
from typing import Any

import taichi as ti
import taichi.math as tm

from pathtracer.core.aabb import AABB
from pathtracer.geometry.transform import rotate, rotation_matrix, translate
from pathtracer.geometry.sphere import HitRecord

vec3 = tm.vec3


@ti.dataclass
class Quad:
    """A parallelogram given by a corner and two edge vectors.

    Attributes:
        Q: The corner point of the quad (vec3).
        u: Edge vector from Q to an adjacent corner (vec3).
        v: Edge vector from Q to the other adjacent corner (vec3).
    """

    Q: vec3
    u: vec3
    v: vec3


def _cross(a, b) -> tuple[float, float, float]:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


@dataclass(frozen=True)
class QuadInfo:
    """Scene description of a quad.

    Attributes:
        corner: Corner point Q.
        edge_u: First edge vector.
        edge_v: Second edge vector; must not be parallel to edge_u.
        material: Material descriptor shading this quad.
    """

    corner: tuple[float, float, float]
    edge_u: tuple[float, float, float]
    edge_v: tuple[float, float, float]
    material: Any

    def __post_init__(self) -> None:
        for name in ("corner", "edge_u", "edge_v"):
            value = getattr(self, name)
            if len(value) != 3:
                raise ValueError(f"Quad {name} must have three components, got {value!r}")
            value = tuple(float(c) for c in value)
            if not all(math.isfinite(c) for c in value):
                raise ValueError(f"Quad {name} must be finite, got {value}")
            object.__setattr__(self, name, value)

        n = _cross(self.edge_u, self.edge_v)
        if sum(c * c for c in n) <= 1e-12:
            raise ValueError("Quad edges must span a non-degenerate parallelogram")

    def vertices(self) -> tuple[tuple[float, float, float], ...]:
        q, u, v = self.corner, self.edge_u, self.edge_v
        return (
            q,
            tuple(a + b for a, b in zip(q, u)),
            tuple(a + b for a, b in zip(q, v)),
            tuple(a + b + c for a, b, c in zip(q, u, v)),
        )

    def bounding_box(self) -> AABB:
        """Padded box of the four vertices."""
        return AABB.from_points(*self.vertices())

    def centroid(self) -> tuple[float, float, float]:
        return self.bounding_box().centroid()

    def normal(self) -> tuple[float, float, float]:
        n = _cross(self.edge_u, self.edge_v)
        length = math.sqrt(sum(c * c for c in n))
        return tuple(c / length for c in n)

    def translated(self, offset) -> "QuadInfo":
        return replace(self, corner=translate(self.corner, offset))

    def rotated(self, axis, angle: float) -> "QuadInfo":
        """Rotate corner and edges by angle degrees about axis through the origin."""
        m = rotation_matrix(axis, angle)
        return replace(
            self,
            corner=rotate(m, self.corner),
            edge_u=rotate(m, self.edge_u),
            edge_v=rotate(m, self.edge_v),
        )


@ti.func
def _compute_quad_frame(quad: Quad):
    """Plane normal, plane constant and the dual vectors w_u, w_v.

    w_u and w_v satisfy dot(w_u, u) = 1, dot(w_u, v) = 0, dot(w_v, u) = 0 and
    dot(w_v, v) = 1, so alpha = dot(w_u, P - Q) and beta = dot(w_v, P - Q).
    """
    n = tm.cross(quad.u, quad.v)
    n_dot_n = tm.dot(n, n)

    normal = vec3(0.0, 0.0, 0.0)
    w_u = vec3(0.0, 0.0, 0.0)
    w_v = vec3(0.0, 0.0, 0.0)
    if n_dot_n > 1e-12:
        normal = n / ti.sqrt(n_dot_n)
        w_u = tm.cross(quad.v, n) / n_dot_n
        w_v = tm.cross(n, quad.u) / n_dot_n

    d = tm.dot(normal, quad.Q)
    return normal, d, w_u, w_v


@ti.func
def hit_quad(
    ray_origin: vec3,
    ray_direction: vec3,
    quad: Quad,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Intersection of a ray with a quad inside (t_min, t_max).

    Rays parallel to the plane never hit. The front face is the side the
    outward normal points to; the returned normal always opposes the ray.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The ray direction (need not be normalized).
        quad: The quad to test.
        t_min: Exclusive lower bound on t.
        t_max: Exclusive upper bound on t.

    Returns:
        A HitRecord; check its hit field before reading the others.
    """
    normal, d, w_u, w_v = _compute_quad_frame(quad)
    denom = tm.dot(normal, ray_direction)

    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    is_front_face = 0
    hit_uv = tm.vec2(0.0, 0.0)

    if ti.abs(denom) > 1e-8:
        t = (d - tm.dot(normal, ray_origin)) / denom
        if t > t_min and t < t_max:
            p = ray_origin + t * ray_direction
            rel = p - quad.Q
            alpha = tm.dot(w_u, rel)
            beta = tm.dot(w_v, rel)

            if alpha >= 0.0 and alpha <= 1.0 and beta >= 0.0 and beta <= 1.0:
                did_hit = 1
                hit_t = t
                hit_point = p
                hit_uv = tm.vec2(alpha, beta)
                if denom < 0.0:
                    is_front_face = 1
                    hit_normal = normal
                else:
                    is_front_face = 0
                    hit_normal = -normal

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        front_face=is_front_face,
        uv=hit_uv,
    )
