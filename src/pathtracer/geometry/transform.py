"""Rigid transforms applied to scene descriptors on the host.

Rotations follow Rodrigues' formula about an axis through the world origin,
so a box built at the origin, rotated and then translated turns in place.
All transforms run in numpy before upload; kernels only ever see the
transformed geometry.
"""

import math
from typing import Sequence

import numpy as np

Vec3 = tuple[float, float, float]


def rotation_matrix(axis: Sequence[float], angle: float) -> np.ndarray:
    """3x3 matrix rotating counter-clockwise by angle degrees about axis.

    Raises:
        ValueError: If the axis is zero or not finite.
    """
    a = np.asarray(axis, dtype=np.float64)
    norm = float(np.linalg.norm(a))
    if a.shape != (3,) or not math.isfinite(norm) or norm == 0.0:
        raise ValueError(f"Rotation axis must be a finite non-zero 3-vector, got {axis!r}")
    x, y, z = a / norm

    theta = math.radians(angle)
    c = math.cos(theta)
    s = math.sin(theta)
    k = 1.0 - c
    return np.array(
        [
            [c + x * x * k, x * y * k - z * s, x * z * k + y * s],
            [y * x * k + z * s, c + y * y * k, y * z * k - x * s],
            [z * x * k - y * s, z * y * k + x * s, c + z * z * k],
        ]
    )


def rotate(matrix: np.ndarray, v: Sequence[float]) -> Vec3:
    return tuple(float(c) for c in matrix @ np.asarray(v, dtype=np.float64))


def translate(v: Sequence[float], offset: Sequence[float]) -> Vec3:
    if len(offset) != 3:
        raise ValueError(f"Offset must have three components, got {offset!r}")
    return tuple(float(p) + float(o) for p, o in zip(v, offset))
