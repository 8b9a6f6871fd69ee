"""Isotropic phase function for participating media.

A ray scattered inside a constant medium leaves in a uniformly random
direction, tinted by the albedo. The surface normal carries no meaning here.

Example:
    >>> smoke = IsotropicMaterial(albedo=(0.0, 0.0, 0.0))
"""

from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import random_unit_vector
from pathtracer.materials.base import Color, MaterialType, as_color
from pathtracer.materials.texture import Texture, is_texture

vec3 = tm.vec3


@dataclass(frozen=True)
class IsotropicMaterial:
    """Uniform scattering in every direction.

    Attributes:
        albedo: Scattering tint, RGB in [0, 1] or a texture descriptor.
    """

    albedo: Color | Texture

    kind = MaterialType.ISOTROPIC

    def __post_init__(self) -> None:
        if not is_texture(self.albedo):
            object.__setattr__(self, "albedo", as_color(self.albedo, "albedo"))

    def table_row(self) -> tuple[int, Color | Texture, float, Color]:
        return int(self.kind), self.albedo, 0.0, (0.0, 0.0, 0.0)

    def to_dict(self) -> dict:
        if is_texture(self.albedo):
            return {"type": "isotropic", "texture": self.albedo.to_dict()}
        return {"type": "isotropic", "albedo": list(self.albedo)}


@ti.func
def scatter_isotropic(albedo: vec3, stream: ti.i32):
    """Returns (direction, attenuation, did_scatter); always scatters."""
    return random_unit_vector(stream), albedo, 1
