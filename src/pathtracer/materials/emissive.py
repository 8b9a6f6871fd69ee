"""Emissive (area light) material.

An emitter radiates color * intensity from its front face and absorbs every
ray that reaches it, so light paths terminate there. Back faces are dark,
which keeps one-sided ceiling lights from lighting the space above them.

Example:
    >>> light = EmissiveMaterial(color=(1.0, 1.0, 1.0), intensity=15.0)
    >>> light.radiance
    (15.0, 15.0, 15.0)
"""

import math
from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from pathtracer.materials.base import Color, MaterialType, as_color

vec3 = tm.vec3


@dataclass(frozen=True)
class EmissiveMaterial:
    """Light-emitting material.

    Attributes:
        color: Emission color (RGB in [0, 1]).
        intensity: Non-negative scale applied to color.
    """

    color: Color
    intensity: float = 1.0

    kind = MaterialType.EMISSIVE

    def __post_init__(self) -> None:
        object.__setattr__(self, "color", as_color(self.color, "color"))
        intensity = float(self.intensity)
        if not math.isfinite(intensity) or intensity < 0.0:
            raise ValueError(f"Emission intensity must be finite and >= 0, got {self.intensity}")
        object.__setattr__(self, "intensity", intensity)

    @property
    def radiance(self) -> Color:
        return tuple(c * self.intensity for c in self.color)

    def table_row(self) -> tuple[int, Color, float, Color]:
        return int(self.kind), (0.0, 0.0, 0.0), 0.0, self.radiance

    def to_dict(self) -> dict:
        return {"type": "emissive", "color": list(self.color), "intensity": self.intensity}


@ti.func
def emitted_emissive(radiance: vec3, front_face: ti.i32) -> vec3:
    """Radiance leaving an emitter toward the ray: full on the front, zero behind."""
    result = vec3(0.0, 0.0, 0.0)
    if front_face == 1:
        result = radiance
    return result
