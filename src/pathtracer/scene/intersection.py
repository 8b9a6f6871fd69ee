"""Scene-level ray queries over the device primitive and BVH tables.

A committed scene lives in two groups of Structure-of-Arrays fields:

Primitives (one row per primitive, tagged by PrimitiveType):
    prim_kind       SPHERE, QUAD, MEDIUM_SPHERE or MEDIUM_BOX
    prim_a          sphere center, quad corner Q or box corner
    prim_b, prim_c  quad edge vectors u and v, or the first two box edges
    prim_d          third box edge
    prim_radius     sphere radius
    prim_density    -1 / density of a medium
    prim_material   row of the material table

BVH (preorder, node 0 is the root; see geometry.bvh.flatten_bvh):
    bvh_min, bvh_max, bvh_left, bvh_right, bvh_axis,
    bvh_prim_offset, bvh_prim_count, bvh_prim_indices

intersect_scene walks the BVH; intersect_scene_linear tests every primitive
and exists to cross-check the hierarchy. Both take the random stream of the
current pixel, which media draw their free-flight distances from.

Example:
    >>> scene.commit()  # uploads both tables
    >>> # In a kernel:
    >>> # rec = intersect_scene(origin, direction, 1e-3, 1e10, stream)
"""

from enum import IntEnum
from typing import Sequence

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.core.aabb import hit_aabb
from pathtracer.core.rng import next_float
from pathtracer.geometry.bvh import FlatBVH
from pathtracer.geometry.medium import (
    ConstantMediumInfo,
    box_interval,
    free_flight_hit,
    sphere_interval,
)
from pathtracer.geometry.quad import Quad, QuadInfo, hit_quad
from pathtracer.geometry.sphere import HitRecord, Sphere, SphereInfo, hit_sphere

vec3 = tm.vec3


class PrimitiveType(IntEnum):
    SPHERE = 0
    QUAD = 1
    MEDIUM_SPHERE = 2
    MEDIUM_BOX = 3


_SPHERE = int(PrimitiveType.SPHERE)
_QUAD = int(PrimitiveType.QUAD)
_MEDIUM_SPHERE = int(PrimitiveType.MEDIUM_SPHERE)
_MEDIUM_BOX = int(PrimitiveType.MEDIUM_BOX)

# Maximum number of primitives in a committed scene
MAX_PRIMITIVES = 65536
# A binary tree with leaves of at least one primitive has fewer than 2n nodes
MAX_BVH_NODES = 2 * MAX_PRIMITIVES
# Traversal stack depth; median splits keep the tree depth near log2(n)
BVH_STACK_SIZE = 64


@ti.dataclass
class SceneHitRecord:
    """Closest hit of a scene query.

    Attributes:
        hit: 1 if any primitive was hit, 0 on a miss.
        t: Ray parameter of the closest hit. Only valid if hit == 1.
        point: World-space hit point. Only valid if hit == 1.
        normal: Unit normal opposing the ray. Only valid if hit == 1.
        front_face: 1 if the outward side was hit. Only valid if hit == 1.
        uv: Surface coordinates of the hit, for texture lookup.
        material_id: Material table row of the hit primitive, -1 on a miss.
        primitive_id: Index of the hit primitive in the scene, -1 on a miss.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32
    uv: tm.vec2
    material_id: ti.i32
    primitive_id: ti.i32


prim_kind = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
prim_a = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PRIMITIVES)
prim_b = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PRIMITIVES)
prim_c = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PRIMITIVES)
prim_d = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PRIMITIVES)
prim_radius = ti.field(dtype=ti.f32, shape=MAX_PRIMITIVES)
prim_density = ti.field(dtype=ti.f32, shape=MAX_PRIMITIVES)
prim_material = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
num_primitives = ti.field(dtype=ti.i32, shape=())

bvh_min = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_max = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_left = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_right = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_axis = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_prim_offset = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_prim_count = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_prim_indices = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
num_bvh_nodes = ti.field(dtype=ti.i32, shape=())


def clear_scene() -> None:
    """Empty the device scene: no primitives and no BVH nodes."""
    num_primitives[None] = 0
    num_bvh_nodes[None] = 0


def _padded(values: np.ndarray, capacity: int) -> np.ndarray:
    out = np.zeros((capacity,) + values.shape[1:], dtype=values.dtype)
    out[: values.shape[0]] = values
    return out


def upload_primitives(primitives: Sequence, material_ids: Sequence[int]) -> None:
    """Write primitive descriptors into the device table.

    Args:
        primitives: SphereInfo, QuadInfo or ConstantMediumInfo descriptors; row i
            holds primitives[i].
        material_ids: Material table row for each primitive.

    Raises:
        RuntimeError: If there are more than MAX_PRIMITIVES primitives.
        TypeError: If a primitive is not a sphere, quad or medium.
    """
    n = len(primitives)
    if n > MAX_PRIMITIVES:
        raise RuntimeError(f"Scene has {n} primitives; maximum is {MAX_PRIMITIVES}")

    kinds = np.zeros(n, dtype=np.int32)
    a = np.zeros((n, 3), dtype=np.float32)
    b = np.zeros((n, 3), dtype=np.float32)
    c = np.zeros((n, 3), dtype=np.float32)
    d = np.zeros((n, 3), dtype=np.float32)
    radius = np.zeros(n, dtype=np.float32)
    density = np.zeros(n, dtype=np.float32)

    for i, prim in enumerate(primitives):
        if isinstance(prim, SphereInfo):
            kinds[i] = _SPHERE
            a[i] = prim.center
            radius[i] = prim.radius
        elif isinstance(prim, QuadInfo):
            kinds[i] = _QUAD
            a[i] = prim.corner
            b[i] = prim.edge_u
            c[i] = prim.edge_v
        elif isinstance(prim, ConstantMediumInfo):
            density[i] = prim.neg_inv_density
            boundary = prim.boundary
            if isinstance(boundary, SphereInfo):
                kinds[i] = _MEDIUM_SPHERE
                a[i] = boundary.center
                radius[i] = boundary.radius
            else:
                kinds[i] = _MEDIUM_BOX
                a[i] = boundary.corner
                b[i] = boundary.edge_x
                c[i] = boundary.edge_y
                d[i] = boundary.edge_z
        else:
            raise TypeError(f"Unsupported primitive: {prim!r}")

    prim_kind.from_numpy(_padded(kinds, MAX_PRIMITIVES))
    prim_a.from_numpy(_padded(a, MAX_PRIMITIVES))
    prim_b.from_numpy(_padded(b, MAX_PRIMITIVES))
    prim_c.from_numpy(_padded(c, MAX_PRIMITIVES))
    prim_d.from_numpy(_padded(d, MAX_PRIMITIVES))
    prim_radius.from_numpy(_padded(radius, MAX_PRIMITIVES))
    prim_density.from_numpy(_padded(density, MAX_PRIMITIVES))
    prim_material.from_numpy(_padded(np.asarray(material_ids, dtype=np.int32), MAX_PRIMITIVES))
    num_primitives[None] = n


def upload_bvh(flat: FlatBVH) -> None:
    """Write a flattened hierarchy into the device BVH table.

    Raises:
        RuntimeError: If the hierarchy exceeds the table capacity.
    """
    if flat.node_count > MAX_BVH_NODES or flat.prim_indices.shape[0] > MAX_PRIMITIVES:
        raise RuntimeError(
            f"BVH with {flat.node_count} nodes does not fit the device table"
        )

    bvh_min.from_numpy(_padded(flat.node_min, MAX_BVH_NODES))
    bvh_max.from_numpy(_padded(flat.node_max, MAX_BVH_NODES))
    bvh_left.from_numpy(_padded(flat.left, MAX_BVH_NODES))
    bvh_right.from_numpy(_padded(flat.right, MAX_BVH_NODES))
    bvh_axis.from_numpy(_padded(flat.axis, MAX_BVH_NODES))
    bvh_prim_offset.from_numpy(_padded(flat.prim_offset, MAX_BVH_NODES))
    bvh_prim_count.from_numpy(_padded(flat.prim_count, MAX_BVH_NODES))
    bvh_prim_indices.from_numpy(_padded(flat.prim_indices, MAX_PRIMITIVES))
    num_bvh_nodes[None] = flat.node_count


def get_primitive_count() -> int:
    """Get the number of primitives in the device table."""
    return int(num_primitives[None])


def get_bvh_node_count() -> int:
    """Get the number of BVH nodes in the device table."""
    return int(num_bvh_nodes[None])


@ti.func
def _make_miss_record() -> SceneHitRecord:
    return SceneHitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        front_face=0,
        uv=tm.vec2(0.0, 0.0),
        material_id=-1,
        primitive_id=-1,
    )


@ti.func
def _to_scene_hit_record(rec: HitRecord, prim: ti.i32) -> SceneHitRecord:
    return SceneHitRecord(
        hit=rec.hit,
        t=rec.t,
        point=rec.point,
        normal=rec.normal,
        front_face=rec.front_face,
        uv=rec.uv,
        material_id=prim_material[prim],
        primitive_id=prim,
    )


@ti.func
def hit_primitive(
    prim: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
    stream: ti.i32,
) -> HitRecord:
    """Intersect one primitive from the device table, dispatching on its kind.

    A medium draws one number from stream, and only when the ray's chord
    through its boundary overlaps (t_min, t_max).
    """
    rec = HitRecord(
        hit=0, t=0.0, point=vec3(0.0), normal=vec3(0.0), front_face=0, uv=tm.vec2(0.0)
    )
    kind = prim_kind[prim]
    if kind == _SPHERE:
        sphere = Sphere(center=prim_a[prim], radius=prim_radius[prim])
        rec = hit_sphere(ray_origin, ray_direction, sphere, t_min, t_max)
    elif kind == _QUAD:
        quad = Quad(Q=prim_a[prim], u=prim_b[prim], v=prim_c[prim])
        rec = hit_quad(ray_origin, ray_direction, quad, t_min, t_max)
    else:
        inside = 0
        t_enter = 0.0
        t_exit = 0.0
        if kind == _MEDIUM_SPHERE:
            inside, t_enter, t_exit = sphere_interval(
                ray_origin, ray_direction, prim_a[prim], prim_radius[prim]
            )
        elif kind == _MEDIUM_BOX:
            inside, t_enter, t_exit = box_interval(
                ray_origin, ray_direction, prim_a[prim], prim_b[prim], prim_c[prim], prim_d[prim]
            )
        if inside == 1 and ti.max(t_enter, t_min) < ti.min(t_exit, t_max):
            rec = free_flight_hit(
                ray_origin,
                ray_direction,
                t_enter,
                t_exit,
                t_min,
                t_max,
                prim_density[prim],
                next_float(stream),
            )
    return rec


@ti.func
def _axis_component(v: vec3, axis: ti.i32) -> ti.f32:
    result = v.x
    if axis == 1:
        result = v.y
    elif axis == 2:
        result = v.z
    return result


@ti.func
def intersect_scene(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
    stream: ti.i32,
) -> SceneHitRecord:
    """Closest hit in (t_min, t_max) using the BVH.

    Nodes whose boxes the ray misses within (t_min, closest_t) are pruned.
    Interior nodes push the far child first so the near child (by the sign of
    the ray direction on the split axis) is visited next, which tightens
    closest_t early.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The ray direction (need not be normalized).
        t_min: Exclusive lower bound on t.
        t_max: Exclusive upper bound on t.
        stream: Random stream of the current pixel.

    Returns:
        The closest hit, or a miss record if nothing was hit.
    """
    closest_t = t_max
    result = _make_miss_record()

    stack = ti.Vector([0 for _ in range(BVH_STACK_SIZE)], dt=ti.i32)
    stack_ptr = 0
    if num_bvh_nodes[None] > 0:
        stack[0] = 0
        stack_ptr = 1

    while stack_ptr > 0:
        stack_ptr -= 1
        node = stack[stack_ptr]

        if hit_aabb(bvh_min[node], bvh_max[node], ray_origin, ray_direction, t_min, closest_t):
            if bvh_left[node] < 0:
                offset = bvh_prim_offset[node]
                for k in range(bvh_prim_count[node]):
                    prim = bvh_prim_indices[offset + k]
                    rec = hit_primitive(prim, ray_origin, ray_direction, t_min, closest_t, stream)
                    if rec.hit == 1:
                        closest_t = rec.t
                        result = _to_scene_hit_record(rec, prim)
            else:
                near = bvh_left[node]
                far = bvh_right[node]
                if _axis_component(ray_direction, bvh_axis[node]) < 0.0:
                    near = bvh_right[node]
                    far = bvh_left[node]
                if stack_ptr + 2 <= BVH_STACK_SIZE:
                    stack[stack_ptr] = far
                    stack[stack_ptr + 1] = near
                    stack_ptr += 2

    return result


@ti.func
def intersect_scene_linear(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
    stream: ti.i32,
) -> SceneHitRecord:
    """Closest hit in (t_min, t_max) by testing every primitive in order."""
    closest_t = t_max
    result = _make_miss_record()
    for prim in range(num_primitives[None]):
        rec = hit_primitive(prim, ray_origin, ray_direction, t_min, closest_t, stream)
        if rec.hit == 1:
            closest_t = rec.t
            result = _to_scene_hit_record(rec, prim)
    return result
