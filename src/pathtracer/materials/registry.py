"""Device-side material table and scatter dispatch.

All materials of a scene share one Structure-of-Arrays table indexed by
material id. Each row carries a MaterialType tag plus the union of the
per-kind parameters:

    kind       MaterialType value
    tex_kind   TextureType of the albedo (SOLID for untextured materials)
    albedo     solid colour, even checker colour, noise tint
    albedo_b   odd checker colour
    tex_scale  factor applied to the hit point before a texture lookup
    image      (offset, width, height) of an image in the texel pool
    param      metal fuzz or dielectric index of refraction
    emission   emitted radiance (emissive only)

Image textures share one texel pool; each distinct image is stored once,
bottom row first.

scatter_material and emitted_material switch on the tag; every kind is
handled explicitly.

Example:
    >>> clear_materials()
    >>> white = add_material(LambertianMaterial(albedo=(0.73, 0.73, 0.73)))
    >>> glass = add_material(DielectricMaterial(ior=1.5))
"""

from typing import Any, Mapping, Sequence

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.materials.base import MaterialType, require
from pathtracer.materials.dielectric import DielectricMaterial, scatter_dielectric
from pathtracer.materials.emissive import EmissiveMaterial, emitted_emissive
from pathtracer.materials.isotropic import IsotropicMaterial, scatter_isotropic
from pathtracer.materials.lambertian import LambertianMaterial, scatter_lambertian
from pathtracer.materials.metal import MetalMaterial, scatter_metal
from pathtracer.materials.perlin import ensure_noise, turbulence
from pathtracer.materials.texture import (
    ImageTexture,
    TextureType,
    as_texture,
    checker_parity,
    image_texel,
    texture_from_dict,
)

vec3 = tm.vec3

MATERIAL_CLASSES = (
    LambertianMaterial,
    MetalMaterial,
    DielectricMaterial,
    EmissiveMaterial,
    IsotropicMaterial,
)

_LAMBERTIAN = int(MaterialType.LAMBERTIAN)
_METAL = int(MaterialType.METAL)
_DIELECTRIC = int(MaterialType.DIELECTRIC)
_EMISSIVE = int(MaterialType.EMISSIVE)
_ISOTROPIC = int(MaterialType.ISOTROPIC)

_CHECKER = int(TextureType.CHECKER)
_NOISE = int(TextureType.NOISE)
_IMAGE = int(TextureType.IMAGE)

# Maximum number of distinct materials in a scene
MAX_MATERIALS = 4096
# Texel pool shared by all image textures (1024 x 1024 RGB)
MAX_TEXELS = 1 << 20

material_kind = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
material_tex_kind = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
material_albedo = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MATERIALS)
material_albedo_b = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MATERIALS)
material_tex_scale = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
material_image = ti.Vector.field(3, dtype=ti.i32, shape=MAX_MATERIALS)
material_param = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
material_emission = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())

texels = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXELS)
num_texels = ti.field(dtype=ti.i32, shape=())


def is_material(obj: Any) -> bool:
    return isinstance(obj, MATERIAL_CLASSES)


def _albedo_from_dict(data: Mapping[str, Any], owner: str):
    if "texture" in data:
        return texture_from_dict(data["texture"])
    return tuple(require(data, "albedo", owner))


def material_from_dict(data: Mapping[str, Any]):
    """Build a material descriptor from its dictionary form.

    Args:
        data: Mapping with a "type" key of lambertian, metal, dielectric,
            emissive or isotropic plus that material's fields. Lambertian and
            isotropic materials take either "albedo" or "texture".

    Returns:
        The material descriptor.

    Raises:
        ValueError: For an unknown type, a missing field or invalid values.
    """
    kind = data.get("type")
    owner = f"{kind} material"
    if kind == "lambertian":
        return LambertianMaterial(albedo=_albedo_from_dict(data, owner))
    if kind == "isotropic":
        return IsotropicMaterial(albedo=_albedo_from_dict(data, owner))
    if kind == "metal":
        return MetalMaterial(
            albedo=tuple(require(data, "albedo", owner)), fuzz=data.get("fuzz", 0.0)
        )
    if kind == "dielectric":
        return DielectricMaterial(ior=require(data, "ior", owner))
    if kind == "emissive":
        return EmissiveMaterial(
            color=tuple(require(data, "color", owner)), intensity=data.get("intensity", 1.0)
        )
    raise ValueError(f"Unknown material type: {kind!r}")


@ti.kernel
def _copy_texels(offset: ti.i32, data: ti.types.ndarray(dtype=tm.vec3, ndim=1)):
    for i in range(data.shape[0]):
        texels[offset + i] = data[i]


def _store_image(image: ImageTexture, offset: int) -> tuple[int, int, int]:
    """Copy an image into the texel pool at offset; returns its image column."""
    n = image.width * image.height
    if offset + n > MAX_TEXELS:
        raise RuntimeError(
            f"Image textures need {offset + n} texels; maximum is {MAX_TEXELS}"
        )
    _copy_texels(offset, image.texels())
    return offset, image.width, image.height


def clear_materials() -> None:
    """Reset the material and texel counts; stale rows are overwritten later."""
    num_materials[None] = 0
    num_texels[None] = 0


def add_material(material) -> int:
    """Append one material to the table.

    Args:
        material: A Lambertian, Metal, Dielectric, Emissive or Isotropic
            descriptor.

    Returns:
        The material id (row index).

    Raises:
        TypeError: If material is not a known descriptor.
        RuntimeError: If the table or the texel pool is full.
    """
    if not is_material(material):
        raise TypeError(f"Not a material: {material!r}")

    idx = num_materials[None]
    if idx >= MAX_MATERIALS:
        raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")

    kind, albedo, param, emission = material.table_row()
    texture = as_texture(albedo)
    tex_kind, color_a, color_b, tex_scale = texture.texture_row()
    image = (0, 0, 0)
    if isinstance(texture, ImageTexture):
        image = _store_image(texture, num_texels[None])
        num_texels[None] = image[0] + image[1] * image[2]
    elif tex_kind == _NOISE:
        ensure_noise()

    material_kind[idx] = kind
    material_tex_kind[idx] = tex_kind
    material_albedo[idx] = vec3(*color_a)
    material_albedo_b[idx] = vec3(*color_b)
    material_tex_scale[idx] = tex_scale
    material_image[idx] = list(image)
    material_param[idx] = param
    material_emission[idx] = vec3(*emission)
    num_materials[None] = idx + 1
    return idx


def upload_materials(materials: Sequence) -> None:
    """Replace the whole table with materials, in order.

    Row i of the table holds materials[i]. Uses one bulk copy per column
    instead of per-element writes; each distinct image is copied once.

    Raises:
        TypeError: If an entry is not a material descriptor.
        RuntimeError: If there are more than MAX_MATERIALS entries or the
            images exceed the texel pool.
    """
    if len(materials) > MAX_MATERIALS:
        raise RuntimeError(
            f"Scene has {len(materials)} materials; maximum is {MAX_MATERIALS}"
        )

    kinds = np.zeros(MAX_MATERIALS, dtype=np.int32)
    tex_kinds = np.zeros(MAX_MATERIALS, dtype=np.int32)
    albedos = np.zeros((MAX_MATERIALS, 3), dtype=np.float32)
    albedos_b = np.zeros((MAX_MATERIALS, 3), dtype=np.float32)
    tex_scales = np.ones(MAX_MATERIALS, dtype=np.float32)
    images = np.zeros((MAX_MATERIALS, 3), dtype=np.int32)
    params = np.zeros(MAX_MATERIALS, dtype=np.float32)
    emissions = np.zeros((MAX_MATERIALS, 3), dtype=np.float32)

    stored: dict[int, tuple[int, int, int]] = {}
    next_texel = 0
    for i, material in enumerate(materials):
        if not is_material(material):
            raise TypeError(f"Not a material: {material!r}")
        kinds[i], albedo, params[i], emissions[i] = material.table_row()
        texture = as_texture(albedo)
        tex_kinds[i], albedos[i], albedos_b[i], tex_scales[i] = texture.texture_row()

        if isinstance(texture, ImageTexture):
            if id(texture) not in stored:
                stored[id(texture)] = _store_image(texture, next_texel)
                next_texel += texture.width * texture.height
            images[i] = stored[id(texture)]
        elif tex_kinds[i] == _NOISE:
            ensure_noise()

    material_kind.from_numpy(kinds)
    material_tex_kind.from_numpy(tex_kinds)
    material_albedo.from_numpy(albedos)
    material_albedo_b.from_numpy(albedos_b)
    material_tex_scale.from_numpy(tex_scales)
    material_image.from_numpy(images)
    material_param.from_numpy(params)
    material_emission.from_numpy(emissions)
    num_texels[None] = next_texel
    num_materials[None] = len(materials)


def get_material_count() -> int:
    """Get the number of materials in the table."""
    return int(num_materials[None])


@ti.func
def sample_albedo(material_id: ti.i32, point: vec3, uv: tm.vec2) -> vec3:
    """Albedo of the material at material_id for a hit at point with coordinates uv."""
    tex_kind = material_tex_kind[material_id]
    color = material_albedo[material_id]
    scale = material_tex_scale[material_id]

    if tex_kind == _CHECKER:
        if checker_parity(point, scale) == 1:
            color = material_albedo_b[material_id]
    elif tex_kind == _NOISE:
        color = color * ti.min(turbulence(scale * point), 1.0)
    elif tex_kind == _IMAGE:
        image = material_image[material_id]
        color = texels[image[0] + image_texel(uv, image[1], image[2])]
    return color


@ti.func
def scatter_material(
    material_id: ti.i32,
    incident_direction: vec3,
    point: vec3,
    normal: vec3,
    uv: tm.vec2,
    front_face: ti.i32,
    stream: ti.i32,
):
    """Scatter an incoming ray according to the material at material_id.

    Args:
        material_id: Row of the material table.
        incident_direction: Incoming ray direction (any length).
        point: World-space hit point, used by solid textures.
        normal: Unit normal on the side the ray arrived from.
        uv: Surface coordinates of the hit, used by image textures.
        front_face: 1 if the ray hit the outward side of the surface.
        stream: Random stream to draw from.

    Returns:
        A tuple of (direction, attenuation, did_scatter). did_scatter == 0
        means the ray was absorbed and direction/attenuation are unused.
    """
    kind = material_kind[material_id]
    param = material_param[material_id]

    direction = vec3(0.0, 0.0, 0.0)
    attenuation = vec3(0.0, 0.0, 0.0)
    did_scatter = 0

    if kind == _LAMBERTIAN:
        albedo = sample_albedo(material_id, point, uv)
        direction, attenuation, did_scatter = scatter_lambertian(albedo, normal, stream)
    elif kind == _METAL:
        direction, attenuation, did_scatter = scatter_metal(
            material_albedo[material_id], param, incident_direction, normal, stream
        )
    elif kind == _DIELECTRIC:
        direction, attenuation, did_scatter = scatter_dielectric(
            param, incident_direction, normal, front_face, stream
        )
    elif kind == _ISOTROPIC:
        albedo = sample_albedo(material_id, point, uv)
        direction, attenuation, did_scatter = scatter_isotropic(albedo, stream)
    elif kind == _EMISSIVE:
        did_scatter = 0

    return direction, attenuation, did_scatter


@ti.func
def emitted_material(material_id: ti.i32, front_face: ti.i32) -> vec3:
    """Radiance emitted toward the ray by the material at material_id."""
    result = vec3(0.0, 0.0, 0.0)
    if material_kind[material_id] == _EMISSIVE:
        result = emitted_emissive(material_emission[material_id], front_face)
    return result
