"""Metal (specular reflective) material.

The incident direction is mirrored about the normal and then perturbed by a
random point in a sphere of radius fuzz:

    R = normalize(I) - 2 (normalize(I) . N) N + fuzz * p,   |p| < 1

Rays perturbed below the surface are absorbed.
"""

import math
from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import random_in_unit_sphere, reflect
from pathtracer.materials.base import Color, MaterialType, as_color

vec3 = tm.vec3


@dataclass(frozen=True)
class MetalMaterial:
    """Reflective material.

    Attributes:
        albedo: Tint of the reflected light (RGB in [0, 1]).
        fuzz: Radius of the reflection perturbation in [0, 1]; 0 is a mirror.
    """

    albedo: Color
    fuzz: float = 0.0

    kind = MaterialType.METAL

    def __post_init__(self) -> None:
        object.__setattr__(self, "albedo", as_color(self.albedo, "albedo"))
        fuzz = float(self.fuzz)
        if not math.isfinite(fuzz) or fuzz < 0.0 or fuzz > 1.0:
            raise ValueError(f"Metal fuzz must be in [0, 1], got {self.fuzz}")
        object.__setattr__(self, "fuzz", fuzz)

    def table_row(self) -> tuple[int, Color, float, Color]:
        return int(self.kind), self.albedo, self.fuzz, (0.0, 0.0, 0.0)

    def to_dict(self) -> dict:
        return {"type": "metal", "albedo": list(self.albedo), "fuzz": self.fuzz}


@ti.func
def scatter_metal(
    albedo: vec3,
    fuzz: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    stream: ti.i32,
):
    """Reflect an incoming ray off a metal surface.

    Args:
        albedo: Reflective tint.
        fuzz: Perturbation radius in [0, 1].
        incident_direction: Incoming ray direction (any length).
        normal: Unit normal on the side the ray arrived from.
        stream: Random stream to draw from.

    Returns:
        A tuple of (direction, attenuation, did_scatter). did_scatter is 0
        when the perturbed direction points into the surface.
    """
    reflected = reflect(tm.normalize(incident_direction), normal)
    direction = reflected + fuzz * random_in_unit_sphere(stream)

    did_scatter = 0
    if tm.dot(direction, normal) > 0.0:
        did_scatter = 1

    return direction, albedo, did_scatter
