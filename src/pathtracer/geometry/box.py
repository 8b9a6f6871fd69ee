"""Boxes: six quads enclosing a parallelepiped.

A BoxInfo is a corner plus three edge vectors forming a right-handed frame.
Axis-aligned boxes come from BoxInfo.from_corners; rotating and translating
the descriptor moves all six faces together. A box is not itself a scene
primitive. Either expand it into quads with faces(), or use it as the
boundary of a constant medium.

Example:
    >>> block = BoxInfo.from_corners((0, 0, 0), (165, 330, 165), white)
    >>> faces = block.rotated((0, 1, 0), 15.0).translated((265, 0, 295)).faces()
"""

import math
from dataclasses import dataclass, replace
from typing import Any

import numpy as np

from pathtracer.core.aabb import AABB
from pathtracer.geometry.quad import QuadInfo
from pathtracer.geometry.transform import rotate, rotation_matrix, translate


@dataclass(frozen=True)
class BoxInfo:
    """Scene description of a box.

    Attributes:
        corner: Corner the three edges start from.
        edge_x: First edge vector.
        edge_y: Second edge vector.
        edge_z: Third edge vector; (edge_x, edge_y, edge_z) must be
            right-handed with positive volume.
        material: Material shared by the faces; unused as a medium boundary.
    """

    corner: tuple[float, float, float]
    edge_x: tuple[float, float, float]
    edge_y: tuple[float, float, float]
    edge_z: tuple[float, float, float]
    material: Any = None

    def __post_init__(self) -> None:
        for name in ("corner", "edge_x", "edge_y", "edge_z"):
            value = getattr(self, name)
            if len(value) != 3:
                raise ValueError(f"Box {name} must have three components, got {value!r}")
            value = tuple(float(c) for c in value)
            if not all(math.isfinite(c) for c in value):
                raise ValueError(f"Box {name} must be finite, got {value}")
            object.__setattr__(self, name, value)

        if self.volume() <= 1e-12:
            raise ValueError("Box edges must form a right-handed frame with positive volume")

    @classmethod
    def from_corners(cls, a, b, material: Any = None) -> "BoxInfo":
        """Axis-aligned box with opposite corners a and b, in either order."""
        lo = tuple(min(p, q) for p, q in zip(a, b))
        hi = tuple(max(p, q) for p, q in zip(a, b))
        return cls(
            lo,
            (hi[0] - lo[0], 0.0, 0.0),
            (0.0, hi[1] - lo[1], 0.0),
            (0.0, 0.0, hi[2] - lo[2]),
            material,
        )

    def volume(self) -> float:
        return float(np.dot(self.edge_x, np.cross(self.edge_y, self.edge_z)))

    def vertices(self) -> np.ndarray:
        c = np.asarray(self.corner)
        x, y, z = (np.asarray(e) for e in (self.edge_x, self.edge_y, self.edge_z))
        return np.array(
            [c + i * x + j * y + k * z for i in (0, 1) for j in (0, 1) for k in (0, 1)]
        )

    def bounding_box(self) -> AABB:
        return AABB.from_points(*(tuple(v) for v in self.vertices()))

    def centroid(self) -> tuple[float, float, float]:
        return self.bounding_box().centroid()

    def translated(self, offset) -> "BoxInfo":
        return replace(self, corner=translate(self.corner, offset))

    def rotated(self, axis, angle: float) -> "BoxInfo":
        """Rotate the whole box by angle degrees about axis through the origin."""
        m = rotation_matrix(axis, angle)
        return replace(
            self,
            corner=rotate(m, self.corner),
            edge_x=rotate(m, self.edge_x),
            edge_y=rotate(m, self.edge_y),
            edge_z=rotate(m, self.edge_z),
        )

    def faces(self) -> list[QuadInfo]:
        """Six outward-facing quads in the order front, right, back, left, top, bottom."""
        c = np.asarray(self.corner)
        x, y, z = (np.asarray(e) for e in (self.edge_x, self.edge_y, self.edge_z))
        m = self.material

        def quad(corner, u, v) -> QuadInfo:
            return QuadInfo(tuple(corner), tuple(u), tuple(v), m)

        return [
            quad(c + z, x, y),
            quad(c + x + z, -z, y),
            quad(c + x, -x, y),
            quad(c, z, y),
            quad(c + y + z, x, -z),
            quad(c, x, z),
        ]


def create_box(a, b, material, axis=(0.0, 1.0, 0.0), angle: float = 0.0, offset=None):
    """Six outward-facing quads enclosing the box with opposite corners a and b.

    The box is first rotated by angle degrees about axis through the origin
    and then moved by offset.

    Args:
        a: One corner of the box.
        b: The opposite corner.
        material: Material shared by all six faces.
        axis: Rotation axis.
        angle: Rotation angle in degrees.
        offset: Translation applied after the rotation.

    Returns:
        Quads in the order front, right, back, left, top, bottom.
    """
    box = BoxInfo.from_corners(a, b, material)
    if angle != 0.0:
        box = box.rotated(axis, angle)
    if offset is not None:
        box = box.translated(offset)
    return box.faces()
