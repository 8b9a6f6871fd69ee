"""Materials module for light scattering models.

Components:
    base: MaterialType tags and colour validation
    texture: Solid, checker, noise and image albedo textures
    perlin: Gradient noise tables and turbulence
    lambertian: Ideal diffuse reflection
    metal: Mirror reflection with optional fuzz
    dielectric: Glass-like refraction with Schlick reflectance
    emissive: Light-emitting surface that never scatters
    isotropic: Uniform scattering inside participating media
    registry: Device material table and scatter dispatch

Each scatter function returns (direction, attenuation, did_scatter); a
did_scatter of 0 means the ray was absorbed.

The registry and perlin modules declare Taichi fields; import them directly
once Taichi is initialised.
"""

from .base import Color, MaterialType, as_color
from .texture import (
    CheckerTexture,
    ImageTexture,
    NoiseTexture,
    SolidColor,
    TextureType,
    as_texture,
    texture_from_dict,
)

__all__ = [
    "Color",
    "MaterialType",
    "as_color",
    "TextureType",
    "SolidColor",
    "CheckerTexture",
    "NoiseTexture",
    "ImageTexture",
    "as_texture",
    "texture_from_dict",
]
