"""Dielectric (glass/water) material.

Key physics:
    - Snell's law for refraction: n1 * sin(theta1) = n2 * sin(theta2)
    - Schlick's approximation for Fresnel reflectance
    - Total internal reflection when (n1 / n2) * sin(theta1) > 1

Each bounce reflects with the Schlick probability and refracts otherwise.
Clear dielectrics absorb nothing, so the attenuation is always white.

Example:
    >>> glass = DielectricMaterial(ior=1.5)
    >>> # In a kernel:
    >>> # direction, attenuation, did_scatter = scatter_dielectric(
    >>> #     ior, incident_dir, normal, front_face, stream
    >>> # )
"""

import math
from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import reflect, refract, schlick_reflectance
from pathtracer.core.rng import next_float
from pathtracer.materials.base import Color, MaterialType

vec3 = tm.vec3


@dataclass(frozen=True)
class DielectricMaterial:
    """Transparent material.

    Attributes:
        ior: Index of refraction relative to the surrounding medium, > 0.
            Common values: water 1.33, glass 1.5, diamond 2.4.
            Values below 1 model a bubble, e.g. air in water is 1 / 1.33.
    """

    ior: float

    kind = MaterialType.DIELECTRIC

    def __post_init__(self) -> None:
        ior = float(self.ior)
        if not math.isfinite(ior) or ior <= 0.0:
            raise ValueError(f"Index of refraction must be positive, got {self.ior}")
        object.__setattr__(self, "ior", ior)

    def table_row(self) -> tuple[int, Color, float, Color]:
        return int(self.kind), (1.0, 1.0, 1.0), self.ior, (0.0, 0.0, 0.0)

    def to_dict(self) -> dict:
        return {"type": "dielectric", "ior": self.ior}


@ti.func
def refraction_ratio(ior: ti.f32, front_face: ti.i32) -> ti.f32:
    """n_incident / n_transmitted: 1/ior entering the material, ior leaving it."""
    ratio = ior
    if front_face == 1:
        ratio = 1.0 / ior
    return ratio


@ti.func
def scatter_dielectric(
    ior: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
    stream: ti.i32,
):
    """Reflect or refract an incoming ray at a dielectric boundary.

    Args:
        ior: Index of refraction of the material.
        incident_direction: Incoming ray direction (any length).
        normal: Unit normal on the side the ray arrived from.
        front_face: 1 when entering the material, 0 when leaving it.
        stream: Random stream to draw from.

    Returns:
        A tuple of (direction, attenuation, did_scatter). Dielectrics always
        scatter and never tint.
    """
    attenuation = vec3(1.0, 1.0, 1.0)
    ratio = refraction_ratio(ior, front_face)

    unit_direction = tm.normalize(incident_direction)
    cos_theta = ti.min(tm.dot(-unit_direction, normal), 1.0)
    sin_theta = ti.sqrt(ti.max(1.0 - cos_theta * cos_theta, 0.0))

    cannot_refract = 0
    if ratio * sin_theta > 1.0:
        cannot_refract = 1

    # Always draw so the stream advances the same way on every branch
    u = next_float(stream)

    direction = vec3(0.0, 0.0, 0.0)
    if cannot_refract == 1 or u < schlick_reflectance(cos_theta, ratio):
        direction = reflect(unit_direction, normal)
    else:
        direction = refract(unit_direction, normal, ratio)

    return direction, attenuation, 1
