"""Immutable scene description.

A Scene owns the primitive list, the deduplicated material table, the
background and the BVH built over the primitives. Everything is validated
and the hierarchy is built once, in the constructor; commit() then copies the
scene into the device tables read by the render kernels.

Dictionary form (see Scene.from_dict):

    {
        "materials": [{"type": "lambertian", "albedo": [0.5, 0.5, 0.5]}, ...],
        "primitives": [
            {"type": "sphere", "center": [0, 0, -1], "radius": 0.5, "material_id": 0},
            {"type": "quad", "corner": [...], "edge_u": [...], "edge_v": [...],
             "material_id": 1},
            {"type": "medium", "density": 0.01, "material_id": 2,
             "boundary": {"type": "box", "corner": [...], "edge_x": [...],
                          "edge_y": [...], "edge_z": [...]}},
        ],
        "background": "sky",   # or [r, g, b]
    }

Example:
    >>> ground = LambertianMaterial(albedo=(0.5, 0.5, 0.5))
    >>> scene = Scene([SphereInfo((0.0, -1000.0, 0.0), 1000.0, ground)])
    >>> scene.commit()
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Sequence

from pathtracer.core.aabb import AABB
from pathtracer.geometry.box import BoxInfo
from pathtracer.geometry.bvh import BVHNode, FlatBVH, build_bvh, flatten_bvh
from pathtracer.geometry.medium import ConstantMediumInfo
from pathtracer.geometry.quad import QuadInfo
from pathtracer.geometry.sphere import SphereInfo
from pathtracer.materials.base import Color, as_color, require
from pathtracer.materials.registry import is_material, material_from_dict, upload_materials
from pathtracer.scene.intersection import upload_bvh, upload_primitives

logger = logging.getLogger(__name__)

PRIMITIVE_CLASSES = (SphereInfo, QuadInfo, ConstantMediumInfo)


class Scene:
    """Read-only collection of primitives, materials and a background.

    Attributes:
        primitives: Primitive descriptors in insertion order.
        materials: Distinct materials in order of first use.
        material_ids: Row in materials for each primitive.
        background: Constant background colour, or None for the sky gradient.
        bvh: Root of the hierarchy (None for an empty scene).
        flat_bvh: Preorder array form of the hierarchy.
    """

    def __init__(
        self,
        primitives: Iterable = (),
        background: Sequence[float] | None = None,
    ) -> None:
        """Validate primitives and build the BVH.

        Args:
            primitives: SphereInfo, QuadInfo or ConstantMediumInfo descriptors.
            background: RGB colour returned by rays that miss everything, or
                None for the white-to-blue sky gradient.

        Raises:
            TypeError: If an entry is not a primitive or carries no material.
            ValueError: If background is not a valid non-negative colour.
        """
        prims = tuple(primitives)
        materials: list = []
        index: dict = {}
        material_ids: list[int] = []

        for i, prim in enumerate(prims):
            if not isinstance(prim, PRIMITIVE_CLASSES):
                raise TypeError(f"Primitive {i} is not a sphere, quad or medium: {prim!r}")
            if not is_material(prim.material):
                raise TypeError(f"Primitive {i} has no valid material: {prim.material!r}")
            if prim.material not in index:
                index[prim.material] = len(materials)
                materials.append(prim.material)
            material_ids.append(index[prim.material])

        self._primitives = prims
        self._materials = tuple(materials)
        self._material_ids = tuple(material_ids)
        self._background: Color | None = (
            None if background is None else as_color(background, "background", upper=None)
        )
        self._bvh = build_bvh(prims)
        self._flat_bvh = flatten_bvh(self._bvh)

        logger.info(
            "Built scene: %d primitives, %d materials, %d BVH nodes (depth %d)",
            len(prims),
            len(materials),
            self._flat_bvh.node_count,
            self._bvh.depth() if self._bvh is not None else 0,
        )

    @property
    def primitives(self) -> tuple:
        return self._primitives

    @property
    def materials(self) -> tuple:
        return self._materials

    @property
    def material_ids(self) -> tuple[int, ...]:
        return self._material_ids

    @property
    def background(self) -> Color | None:
        return self._background

    @property
    def bvh(self) -> BVHNode | None:
        return self._bvh

    @property
    def flat_bvh(self) -> FlatBVH:
        return self._flat_bvh

    def __len__(self) -> int:
        return len(self._primitives)

    def is_empty(self) -> bool:
        return not self._primitives

    def bounding_box(self) -> AABB | None:
        """Box around every primitive, or None for an empty scene."""
        return None if self._bvh is None else self._bvh.bbox

    def commit(self) -> None:
        """Copy materials, primitives and the BVH into the device tables.

        Raises:
            RuntimeError: If the scene exceeds a device table's capacity.
        """
        upload_materials(self._materials)
        upload_primitives(self._primitives, self._material_ids)
        upload_bvh(self._flat_bvh)
        logger.debug("Committed scene with %d primitives to device tables", len(self))

    # =========================================================================
    # Dictionary form
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """Export the scene to a dictionary (for JSON serialization)."""
        primitives = []
        for prim, material_id in zip(self._primitives, self._material_ids):
            entry = _primitive_to_dict(prim)
            entry["material_id"] = material_id
            primitives.append(entry)

        return {
            "materials": [m.to_dict() for m in self._materials],
            "primitives": primitives,
            "background": "sky" if self._background is None else list(self._background),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Scene:
        """Build a scene from its dictionary form.

        Args:
            data: Mapping with "materials", "primitives" and optional
                "background" keys.

        Returns:
            The validated scene.

        Raises:
            ValueError: On unknown material or primitive types, material ids
                out of range, missing fields or invalid field values.
        """
        materials = [material_from_dict(m) for m in data.get("materials", [])]

        primitives = []
        for i, entry in enumerate(data.get("primitives", [])):
            owner = f"Primitive {i}"
            material_id = require(entry, "material_id", owner)
            if not 0 <= material_id < len(materials):
                raise ValueError(f"{owner} references unknown material {material_id}")
            primitives.append(_primitive_from_dict(entry, materials[material_id], owner))

        background = data.get("background", "sky")
        if isinstance(background, str):
            if background != "sky":
                raise ValueError(f"Unknown background: {background!r}")
            background = None
        return cls(primitives, background=background)


def _primitive_to_dict(prim) -> dict[str, Any]:
    if isinstance(prim, SphereInfo):
        return {"type": "sphere", "center": list(prim.center), "radius": prim.radius}
    if isinstance(prim, QuadInfo):
        return {
            "type": "quad",
            "corner": list(prim.corner),
            "edge_u": list(prim.edge_u),
            "edge_v": list(prim.edge_v),
        }
    if isinstance(prim.boundary, BoxInfo):
        boundary = {
            "type": "box",
            "corner": list(prim.boundary.corner),
            "edge_x": list(prim.boundary.edge_x),
            "edge_y": list(prim.boundary.edge_y),
            "edge_z": list(prim.boundary.edge_z),
        }
    else:
        boundary = _primitive_to_dict(prim.boundary)
    return {"type": "medium", "boundary": boundary, "density": prim.density}


def _primitive_from_dict(entry: Mapping[str, Any], material, owner: str):
    kind = entry.get("type")
    if kind == "sphere":
        return SphereInfo(
            tuple(require(entry, "center", owner)), require(entry, "radius", owner), material
        )
    if kind == "quad":
        return QuadInfo(
            tuple(require(entry, "corner", owner)),
            tuple(require(entry, "edge_u", owner)),
            tuple(require(entry, "edge_v", owner)),
            material,
        )
    if kind == "medium":
        boundary = require(entry, "boundary", owner)
        boundary_owner = f"{owner} boundary"
        if boundary.get("type") == "sphere":
            shape = SphereInfo(
                tuple(require(boundary, "center", boundary_owner)),
                require(boundary, "radius", boundary_owner),
                None,
            )
        elif boundary.get("type") == "box":
            shape = BoxInfo(
                *(
                    tuple(require(boundary, key, boundary_owner))
                    for key in ("corner", "edge_x", "edge_y", "edge_z")
                )
            )
        else:
            raise ValueError(f"Unknown medium boundary type: {boundary.get('type')!r}")
        return ConstantMediumInfo(shape, require(entry, "density", owner), material)
    raise ValueError(f"Unknown primitive type: {kind!r}")
