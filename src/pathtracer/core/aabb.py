"""Axis-aligned bounding boxes.

The Python-side AABB is used while building the BVH; hit_aabb performs the
same slab test on the flattened node bounds inside Taichi kernels.

Example:
    >>> a = AABB.from_points((0, 0, 0), (1, 1, 1))
    >>> b = AABB.from_points((2, 0, 0), (3, 1, 1))
    >>> a.union(b).maximum
    (3.0, 1.0, 1.0)
"""

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3

# Boxes thinner than this along an axis are widened to this thickness
PAD_EPSILON = 1e-4

Point = Sequence[float]


@dataclass(frozen=True)
class AABB:
    """A box spanning [minimum, maximum] on each axis.

    Attributes:
        minimum: Lower corner (x, y, z).
        maximum: Upper corner (x, y, z); maximum[i] >= minimum[i] on every axis.
    """

    minimum: tuple[float, float, float]
    maximum: tuple[float, float, float]

    def __post_init__(self) -> None:
        if len(self.minimum) != 3 or len(self.maximum) != 3:
            raise ValueError("AABB corners must have three components")
        object.__setattr__(self, "minimum", tuple(float(c) for c in self.minimum))
        object.__setattr__(self, "maximum", tuple(float(c) for c in self.maximum))
        for axis in range(3):
            if self.minimum[axis] > self.maximum[axis]:
                raise ValueError(
                    f"AABB minimum exceeds maximum on axis {axis}: "
                    f"{self.minimum[axis]} > {self.maximum[axis]}"
                )

    @classmethod
    def from_points(cls, *points: Point) -> "AABB":
        """Smallest box containing every point, padded on thin axes.

        Args:
            *points: One or more (x, y, z) points in any order.

        Returns:
            The padded bounding box of the points.

        Raises:
            ValueError: If no points are given.
        """
        if not points:
            raise ValueError("AABB.from_points needs at least one point")
        lo = tuple(min(float(p[axis]) for p in points) for axis in range(3))
        hi = tuple(max(float(p[axis]) for p in points) for axis in range(3))
        return cls(lo, hi).padded()

    @classmethod
    def union_all(cls, boxes: Iterable["AABB"]) -> "AABB":
        """Union of a non-empty collection of boxes."""
        result = None
        for box in boxes:
            result = box if result is None else result.union(box)
        if result is None:
            raise ValueError("AABB.union_all needs at least one box")
        return result

    def padded(self, delta: float = PAD_EPSILON) -> "AABB":
        """Widen every axis thinner than delta to exactly delta, centred."""
        lo = list(self.minimum)
        hi = list(self.maximum)
        for axis in range(3):
            if hi[axis] - lo[axis] < delta:
                mid = 0.5 * (lo[axis] + hi[axis])
                lo[axis] = mid - delta / 2
                hi[axis] = mid + delta / 2
        return AABB(tuple(lo), tuple(hi))

    def union(self, other: "AABB") -> "AABB":
        """Smallest box containing both boxes."""
        return AABB(
            tuple(min(a, b) for a, b in zip(self.minimum, other.minimum)),
            tuple(max(a, b) for a, b in zip(self.maximum, other.maximum)),
        )

    def extent(self) -> tuple[float, float, float]:
        return tuple(hi - lo for lo, hi in zip(self.minimum, self.maximum))

    def centroid(self) -> tuple[float, float, float]:
        return tuple(0.5 * (lo + hi) for lo, hi in zip(self.minimum, self.maximum))

    def longest_axis(self) -> int:
        """Index of the widest axis; ties go to the lowest index."""
        ext = self.extent()
        axis = 0
        for i in (1, 2):
            if ext[i] > ext[axis]:
                axis = i
        return axis

    def contains(self, other: "AABB") -> bool:
        """Whether other lies entirely inside this box."""
        return all(
            lo <= olo and ohi <= hi
            for lo, hi, olo, ohi in zip(self.minimum, self.maximum, other.minimum, other.maximum)
        )

    def contains_point(self, point: Point) -> bool:
        return all(lo <= p <= hi for lo, hi, p in zip(self.minimum, self.maximum, point))

    def hit(self, origin: Point, direction: Point, t_min: float, t_max: float) -> bool:
        """Slab test: does the ray overlap the box for some t in (t_min, t_max)?

        A direction component of zero means the ray is parallel to that slab
        and only overlaps it when the origin already lies inside.
        """
        lo = t_min
        hi = t_max
        for axis in range(3):
            d = float(direction[axis])
            o = float(origin[axis])
            if d == 0.0:
                if o < self.minimum[axis] or o > self.maximum[axis]:
                    return False
                continue
            inv = 1.0 / d
            t0 = (self.minimum[axis] - o) * inv
            t1 = (self.maximum[axis] - o) * inv
            if inv < 0.0:
                t0, t1 = t1, t0
            lo = max(lo, t0)
            hi = min(hi, t1)
            if hi <= lo:
                return False
        return not math.isnan(lo) and not math.isnan(hi)


@ti.func
def hit_aabb(
    box_min: vec3,
    box_max: vec3,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> ti.i32:
    """Slab test for a ray against a box inside a kernel.

    Args:
        box_min: Lower corner of the box.
        box_max: Upper corner of the box.
        ray_origin: Ray origin.
        ray_direction: Ray direction (need not be normalized).
        t_min: Lower end of the open parameter interval.
        t_max: Upper end of the open parameter interval.

    Returns:
        1 if the ray overlaps the box within (t_min, t_max), else 0.
    """
    lo = t_min
    hi = t_max
    parallel_miss = 0
    for axis in ti.static(range(3)):
        d = ray_direction[axis]
        o = ray_origin[axis]
        if d == 0.0:
            if o < box_min[axis] or o > box_max[axis]:
                parallel_miss = 1
        else:
            inv = 1.0 / d
            t0 = (box_min[axis] - o) * inv
            t1 = (box_max[axis] - o) * inv
            if inv < 0.0:
                tmp = t0
                t0 = t1
                t1 = tmp
            lo = ti.max(lo, t0)
            hi = ti.min(hi, t1)

    result = 0
    if parallel_miss == 0 and hi > lo:
        result = 1
    return result
