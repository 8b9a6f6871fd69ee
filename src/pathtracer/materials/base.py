"""Material kinds and shared descriptor validation.

Every material descriptor is a frozen dataclass that knows its MaterialType
and how to pack itself into one row of the device material table:

    (kind, albedo, param, emission)

where albedo is an RGB triple or, for diffuse and isotropic materials, a
texture descriptor, and param is the metal fuzz or the dielectric index of
refraction.
"""

from __future__ import annotations

import math
from enum import IntEnum
from typing import Any, Mapping, Sequence


class MaterialType(IntEnum):
    """Tag stored in the device table; scatter dispatch switches on it."""

    LAMBERTIAN = 0
    METAL = 1
    DIELECTRIC = 2
    EMISSIVE = 3
    ISOTROPIC = 4


Color = tuple[float, float, float]


def as_color(value: Sequence[float], name: str, upper: float | None = 1.0) -> Color:
    """Validate and normalise an RGB triple.

    Args:
        value: Three numeric components.
        name: Field name used in error messages.
        upper: Inclusive upper bound per component, or None for no bound.

    Returns:
        The components as a tuple of floats.

    Raises:
        ValueError: If the value is not three finite components in range.
    """
    if len(value) != 3:
        raise ValueError(f"{name} must have three components, got {value!r}")
    color = tuple(float(c) for c in value)
    for i, component in enumerate(color):
        if not math.isfinite(component) or component < 0.0:
            raise ValueError(f"{name} component {i} = {component} must be finite and >= 0")
        if upper is not None and component > upper:
            raise ValueError(f"{name} component {i} = {component} is outside [0, {upper}]")
    return color


def require(data: Mapping[str, Any], key: str, owner: str) -> Any:
    """Look up a required field of a dictionary description.

    Raises:
        ValueError: If the field is absent, naming both owner and field.
    """
    if key not in data:
        raise ValueError(f"{owner} is missing required field {key!r}")
    return data[key]
