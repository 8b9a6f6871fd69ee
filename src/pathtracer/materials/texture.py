"""Textures: spatially varying albedo for diffuse and isotropic materials.

A texture maps a hit (point, uv) to an RGB albedo. Four kinds exist:

    SolidColor      one colour everywhere
    CheckerTexture  3D checkerboard of two colours, cells of edge `scale`
    NoiseTexture    Perlin turbulence, `scale` multiplies the point
    ImageTexture    RGB image looked up by the surface (u, v)

Descriptors pack into the material table as

    (tex_kind, color_a, color_b, tex_scale)

where tex_scale is the factor applied to the hit point before lookup. Image
pixels travel separately, in the registry's texel pool.

Example:
    >>> floor = LambertianMaterial(CheckerTexture((0.2, 0.3, 0.1), (0.9, 0.9, 0.9), 0.32))
    >>> marble = LambertianMaterial(NoiseTexture(scale=4.0))
"""

import math
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Any, Mapping, Union

import numpy as np
import taichi as ti
import taichi.math as tm
from PIL import Image

from pathtracer.materials.base import Color, as_color, require

vec3 = tm.vec3


class TextureType(IntEnum):
    SOLID = 0
    CHECKER = 1
    NOISE = 2
    IMAGE = 3


TextureRow = tuple[int, Color, Color, float]


def _positive(value: float, name: str) -> float:
    value = float(value)
    if not (math.isfinite(value) and value > 0.0):
        raise ValueError(f"{name} must be positive and finite, got {value}")
    return value


@dataclass(frozen=True)
class SolidColor:
    color: Color

    kind = TextureType.SOLID

    def __post_init__(self) -> None:
        object.__setattr__(self, "color", as_color(self.color, "color"))

    def texture_row(self) -> TextureRow:
        return int(self.kind), self.color, (0.0, 0.0, 0.0), 1.0

    def to_dict(self) -> dict:
        return {"type": "solid", "color": list(self.color)}


@dataclass(frozen=True)
class CheckerTexture:
    """Alternating colours on a 3D lattice of cubes.

    The cell containing point p is even when
    floor(p.x / scale) + floor(p.y / scale) + floor(p.z / scale) is even.

    Attributes:
        even: Colour of even cells.
        odd: Colour of odd cells.
        scale: Edge length of one cell.
    """

    even: Color
    odd: Color
    scale: float = 1.0

    kind = TextureType.CHECKER

    def __post_init__(self) -> None:
        object.__setattr__(self, "even", as_color(self.even, "even"))
        object.__setattr__(self, "odd", as_color(self.odd, "odd"))
        object.__setattr__(self, "scale", _positive(self.scale, "Checker scale"))

    def texture_row(self) -> TextureRow:
        return int(self.kind), self.even, self.odd, 1.0 / self.scale

    def to_dict(self) -> dict:
        return {
            "type": "checker",
            "even": list(self.even),
            "odd": list(self.odd),
            "scale": self.scale,
        }


@dataclass(frozen=True)
class NoiseTexture:
    """Perlin turbulence tinting a base colour.

    The albedo is color * min(turbulence(scale * p), 1) with seven octaves.

    Attributes:
        scale: Frequency multiplier; larger values give finer detail.
        color: Colour at full turbulence.
    """

    scale: float = 1.0
    color: Color = (1.0, 1.0, 1.0)

    kind = TextureType.NOISE

    def __post_init__(self) -> None:
        object.__setattr__(self, "scale", _positive(self.scale, "Noise scale"))
        object.__setattr__(self, "color", as_color(self.color, "color"))

    def texture_row(self) -> TextureRow:
        return int(self.kind), self.color, (0.0, 0.0, 0.0), self.scale

    def to_dict(self) -> dict:
        return {"type": "noise", "scale": self.scale, "color": list(self.color)}


@dataclass(frozen=True, eq=False)
class ImageTexture:
    """RGB image mapped onto the surface (u, v).

    Pixels are stored top row first, as image files are; v = 0 is the
    bottom row. Instances compare by identity.

    Attributes:
        pixels: float32 array of shape (height, width, 3) in [0, 1].
        path: File the pixels were loaded from, if any.
    """

    pixels: np.ndarray = field(repr=False)
    path: str | None = None

    kind = TextureType.IMAGE

    def __post_init__(self) -> None:
        pixels = np.asarray(self.pixels, dtype=np.float32)
        if pixels.ndim != 3 or pixels.shape[2] != 3 or pixels.shape[0] < 1 or pixels.shape[1] < 1:
            raise ValueError(f"Image pixels must have shape (H, W, 3), got {pixels.shape}")
        if not np.all(np.isfinite(pixels)) or pixels.min() < 0.0 or pixels.max() > 1.0:
            raise ValueError("Image pixels must be finite and in [0, 1]")
        object.__setattr__(self, "pixels", pixels)

    @classmethod
    def from_file(cls, path: str | Path) -> "ImageTexture":
        """Load any image Pillow can read, dropping alpha."""
        with Image.open(path) as img:
            rgb = np.asarray(img.convert("RGB"), dtype=np.float32) / 255.0
        return cls(rgb, str(path))

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    def texels(self) -> np.ndarray:
        """Pixels flattened bottom row first, shape (height * width, 3)."""
        return np.ascontiguousarray(self.pixels[::-1].reshape(-1, 3))

    def texture_row(self) -> TextureRow:
        return int(self.kind), (0.0, 0.0, 0.0), (0.0, 0.0, 0.0), 1.0

    def to_dict(self) -> dict:
        if self.path is not None:
            return {"type": "image", "path": self.path}
        return {"type": "image", "pixels": self.pixels.tolist()}


TEXTURE_CLASSES = (SolidColor, CheckerTexture, NoiseTexture, ImageTexture)

Texture = Union[SolidColor, CheckerTexture, NoiseTexture, ImageTexture]


def is_texture(obj: Any) -> bool:
    return isinstance(obj, TEXTURE_CLASSES)


def as_texture(value: Any, name: str = "albedo"):
    """Return value if it is a texture, else a SolidColor of the RGB triple."""
    if is_texture(value):
        return value
    return SolidColor(as_color(value, name))


def texture_from_dict(data: Mapping[str, Any]):
    """Build a texture descriptor from its dictionary form.

    Raises:
        ValueError: For an unknown type, a missing field or invalid values.
    """
    kind = data.get("type")
    owner = f"{kind} texture"
    if kind == "solid":
        return SolidColor(tuple(require(data, "color", owner)))
    if kind == "checker":
        return CheckerTexture(
            tuple(require(data, "even", owner)),
            tuple(require(data, "odd", owner)),
            data.get("scale", 1.0),
        )
    if kind == "noise":
        return NoiseTexture(data.get("scale", 1.0), tuple(data.get("color", (1.0, 1.0, 1.0))))
    if kind == "image":
        if "path" in data:
            return ImageTexture.from_file(data["path"])
        return ImageTexture(np.asarray(require(data, "pixels", owner), dtype=np.float32))
    raise ValueError(f"Unknown texture type: {kind!r}")


@ti.func
def checker_parity(point: vec3, inv_scale: ti.f32) -> ti.i32:
    """0 for an even cell, 1 for an odd one."""
    cell = ti.floor(inv_scale * point)
    total = ti.cast(cell.x, ti.i32) + ti.cast(cell.y, ti.i32) + ti.cast(cell.z, ti.i32)
    return total & 1


@ti.func
def image_texel(uv: tm.vec2, width: ti.i32, height: ti.i32) -> ti.i32:
    """Row-major index of the texel under uv; uv is clamped to the unit square."""
    u = ti.min(ti.max(uv.x, 0.0), 1.0)
    v = ti.min(ti.max(uv.y, 0.0), 1.0)
    x = ti.min(ti.cast(u * width, ti.i32), width - 1)
    y = ti.min(ti.cast(v * height, ti.i32), height - 1)
    return y * width + x
