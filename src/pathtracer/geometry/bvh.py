"""Bounding volume hierarchy construction.

The tree is built once per scene on the Python side and then flattened into
preorder arrays that the Taichi traversal in scene.intersection reads.

Build rules:
- The split axis is the axis along which the primitive centroids spread the
  most; ties go to the lowest axis (x, then y, then z).
- Primitives are stably sorted by centroid on that axis, so equal centroids
  keep their scene order, and split at n // 2.
- Nodes with two or fewer primitives become leaves.
- A node's box is the union of its children's boxes (computed bottom-up).

The same primitive list therefore always produces the same tree.

Example:
    >>> root = build_bvh(four_spheres)
    >>> flat = flatten_bvh(root)
    >>> flat.node_count, flat.prim_indices.shape
    (3, (4,))
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from pathtracer.core.aabb import AABB

# Largest number of primitives a leaf may own
LEAF_SIZE = 2


@dataclass(frozen=True)
class BVHNode:
    """A node of the hierarchy.

    Interior nodes have both children and no primitives; leaves have no
    children and own one or two primitive indices.

    Attributes:
        bbox: Box enclosing everything below this node.
        left: Child holding the lower half along the split axis.
        right: Child holding the upper half along the split axis.
        primitives: Indices into the scene's primitive list (leaves only).
        axis: Split axis of an interior node (0, 1 or 2).
    """

    bbox: AABB
    left: BVHNode | None = None
    right: BVHNode | None = None
    primitives: tuple[int, ...] = field(default_factory=tuple)
    axis: int = 0

    @property
    def is_leaf(self) -> bool:
        return self.left is None

    def node_count(self) -> int:
        if self.is_leaf:
            return 1
        return 1 + self.left.node_count() + self.right.node_count()

    def depth(self) -> int:
        if self.is_leaf:
            return 1
        return 1 + max(self.left.depth(), self.right.depth())

    def leaf_primitives(self) -> list[int]:
        """Primitive indices of all leaves, left to right."""
        if self.is_leaf:
            return list(self.primitives)
        return self.left.leaf_primitives() + self.right.leaf_primitives()


def _split_axis(indices: Sequence[int], centroids: Sequence[tuple[float, float, float]]) -> int:
    axis = 0
    best = -1.0
    for a in range(3):
        values = [centroids[i][a] for i in indices]
        spread = max(values) - min(values)
        if spread > best:
            best = spread
            axis = a
    return axis


def _build(
    indices: list[int],
    boxes: Sequence[AABB],
    centroids: Sequence[tuple[float, float, float]],
) -> BVHNode:
    if len(indices) <= LEAF_SIZE:
        bbox = AABB.union_all(boxes[i] for i in indices)
        return BVHNode(bbox=bbox, primitives=tuple(indices))

    axis = _split_axis(indices, centroids)
    ordered = sorted(indices, key=lambda i: centroids[i][axis])
    mid = len(ordered) // 2

    left = _build(ordered[:mid], boxes, centroids)
    right = _build(ordered[mid:], boxes, centroids)
    return BVHNode(bbox=left.bbox.union(right.bbox), left=left, right=right, axis=axis)


def build_bvh(primitives: Sequence) -> BVHNode | None:
    """Build a median-split BVH over primitives.

    Args:
        primitives: Objects exposing bounding_box() -> AABB.

    Returns:
        The root node, or None for an empty primitive list.
    """
    if not primitives:
        return None
    boxes = [p.bounding_box() for p in primitives]
    centroids = [b.centroid() for b in boxes]
    return _build(list(range(len(primitives))), boxes, centroids)


@dataclass(eq=False)
class FlatBVH:
    """Preorder array form of a BVH, ready for upload to Taichi fields.

    Node 0 is the root. For node i, left[i] and right[i] are child indices
    (-1 for leaves), and a leaf owns prim_indices[prim_offset[i]:
    prim_offset[i] + prim_count[i]].
    """

    node_min: np.ndarray
    node_max: np.ndarray
    left: np.ndarray
    right: np.ndarray
    axis: np.ndarray
    prim_offset: np.ndarray
    prim_count: np.ndarray
    prim_indices: np.ndarray

    @property
    def node_count(self) -> int:
        return int(self.left.shape[0])

    @classmethod
    def empty(cls) -> FlatBVH:
        return cls(
            node_min=np.zeros((0, 3), dtype=np.float32),
            node_max=np.zeros((0, 3), dtype=np.float32),
            left=np.zeros(0, dtype=np.int32),
            right=np.zeros(0, dtype=np.int32),
            axis=np.zeros(0, dtype=np.int32),
            prim_offset=np.zeros(0, dtype=np.int32),
            prim_count=np.zeros(0, dtype=np.int32),
            prim_indices=np.zeros(0, dtype=np.int32),
        )


def flatten_bvh(root: BVHNode | None) -> FlatBVH:
    """Lay a tree out in preorder arrays.

    Args:
        root: Tree returned by build_bvh (None gives an empty layout).

    Returns:
        The flattened hierarchy.
    """
    if root is None:
        return FlatBVH.empty()

    mins: list[tuple[float, float, float]] = []
    maxs: list[tuple[float, float, float]] = []
    lefts: list[int] = []
    rights: list[int] = []
    axes: list[int] = []
    offsets: list[int] = []
    counts: list[int] = []
    prims: list[int] = []

    def emit(node: BVHNode) -> int:
        idx = len(lefts)
        mins.append(node.bbox.minimum)
        maxs.append(node.bbox.maximum)
        lefts.append(-1)
        rights.append(-1)
        axes.append(node.axis)
        offsets.append(len(prims))
        counts.append(0)

        if node.is_leaf:
            prims.extend(node.primitives)
            counts[idx] = len(node.primitives)
        else:
            lefts[idx] = emit(node.left)
            rights[idx] = emit(node.right)
        return idx

    emit(root)

    # Round outward so float32 bounds still enclose the float64 boxes
    node_min = np.nextafter(np.asarray(mins, dtype=np.float32), np.float32(-np.inf))
    node_max = np.nextafter(np.asarray(maxs, dtype=np.float32), np.float32(np.inf))

    return FlatBVH(
        node_min=node_min.reshape(-1, 3),
        node_max=node_max.reshape(-1, 3),
        left=np.asarray(lefts, dtype=np.int32),
        right=np.asarray(rights, dtype=np.int32),
        axis=np.asarray(axes, dtype=np.int32),
        prim_offset=np.asarray(offsets, dtype=np.int32),
        prim_count=np.asarray(counts, dtype=np.int32),
        prim_indices=np.asarray(prims, dtype=np.int32),
    )
