"""Lambertian (ideal diffuse) material.

A diffuse bounce leaves along normal + u, where u is uniform on the unit
sphere. The resulting directions follow a cosine distribution about the
normal, so the attenuation is simply the albedo. The albedo may be a
texture, sampled at the hit before scattering.

Example:
    >>> white = LambertianMaterial(albedo=(0.73, 0.73, 0.73))
    >>> floor = LambertianMaterial(albedo=CheckerTexture((0, 0, 0), (1, 1, 1)))
    >>> # In a kernel:
    >>> # direction, attenuation, did_scatter = scatter_lambertian(albedo, normal, stream)
"""

from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import near_zero, random_unit_vector
from pathtracer.materials.base import Color, MaterialType, as_color
from pathtracer.materials.texture import Texture, is_texture

vec3 = tm.vec3


@dataclass(frozen=True)
class LambertianMaterial:
    """Diffuse material.

    Attributes:
        albedo: Diffuse reflectance, either RGB with each component in
            [0, 1] or a texture descriptor.
    """

    albedo: Color | Texture

    kind = MaterialType.LAMBERTIAN

    def __post_init__(self) -> None:
        if not is_texture(self.albedo):
            object.__setattr__(self, "albedo", as_color(self.albedo, "albedo"))

    def table_row(self) -> tuple[int, Color | Texture, float, Color]:
        return int(self.kind), self.albedo, 0.0, (0.0, 0.0, 0.0)

    def to_dict(self) -> dict:
        if is_texture(self.albedo):
            return {"type": "lambertian", "texture": self.albedo.to_dict()}
        return {"type": "lambertian", "albedo": list(self.albedo)}


@ti.func
def scatter_lambertian(albedo: vec3, normal: vec3, stream: ti.i32):
    """Sample a diffuse bounce.

    When the random unit vector almost cancels the normal the direction
    falls back to the normal itself.

    Args:
        albedo: Diffuse reflectance.
        normal: Unit normal on the side the ray arrived from.
        stream: Random stream to draw from.

    Returns:
        A tuple of (direction, attenuation, did_scatter); diffuse surfaces
        always scatter.
    """
    direction = normal + random_unit_vector(stream)
    if near_zero(direction) == 1:
        direction = normal
    return direction, albedo, 1
