"""Ready-made scenes with matching cameras.

Each factory returns a (Scene, ThinLensCamera) pair:
- three_spheres_scene: diffuse, glass and fuzzy-metal spheres on a large ground sphere
- random_spheres_scene: the classic field of small random spheres around three large ones
- noise_spheres_scene: a Perlin-marbled sphere on a Perlin-marbled ground
- cornell_box_scene: open-front box lit by an emissive ceiling quad, optionally
  holding rotated blocks or smoke

Example:
    >>> scene, camera = random_spheres_scene(seed=7, aspect_ratio=16.0 / 9.0)
    >>> len(scene) > 4
    True
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from pathtracer.camera.thin_lens import ThinLensCamera
from pathtracer.geometry.box import BoxInfo
from pathtracer.geometry.medium import ConstantMediumInfo
from pathtracer.geometry.quad import QuadInfo
from pathtracer.geometry.sphere import SphereInfo
from pathtracer.materials.dielectric import DielectricMaterial
from pathtracer.materials.emissive import EmissiveMaterial
from pathtracer.materials.isotropic import IsotropicMaterial
from pathtracer.materials.lambertian import LambertianMaterial
from pathtracer.materials.metal import MetalMaterial
from pathtracer.materials.texture import CheckerTexture, NoiseTexture
from pathtracer.scene.scene import Scene

# =============================================================================
# Three Spheres
# =============================================================================


def three_spheres_scene(aspect_ratio: float = 16.0 / 9.0) -> tuple[Scene, ThinLensCamera]:
    """Three spheres (diffuse, glass, metal) resting on a ground sphere."""
    ground = LambertianMaterial(albedo=(0.8, 0.8, 0.0))
    center = LambertianMaterial(albedo=(0.1, 0.2, 0.5))
    glass = DielectricMaterial(ior=1.5)
    gold = MetalMaterial(albedo=(0.8, 0.6, 0.2), fuzz=0.3)

    scene = Scene(
        [
            SphereInfo((0.0, -100.5, -1.0), 100.0, ground),
            SphereInfo((0.0, 0.0, -1.2), 0.5, center),
            SphereInfo((-1.0, 0.0, -1.0), 0.5, glass),
            SphereInfo((1.0, 0.0, -1.0), 0.5, gold),
        ]
    )
    camera = ThinLensCamera(
        look_from=(-2.0, 2.0, 1.0),
        look_at=(0.0, 0.0, -1.0),
        vfov=20.0,
        aspect_ratio=aspect_ratio,
        aperture=0.1,
        focus_dist=3.4,
    )
    return scene, camera


# =============================================================================
# Random Spheres
# =============================================================================


def random_spheres_scene(
    seed: int = 0,
    aspect_ratio: float = 16.0 / 9.0,
    grid: int = 11,
    checkered_ground: bool = False,
) -> tuple[Scene, ThinLensCamera]:
    """A ground plane of small random spheres around three large feature spheres.

    Small spheres sit on a (2 * grid) x (2 * grid) lattice with random jitter.
    80% are diffuse, 15% metal and 5% glass. Spheres too close to the large
    metal sphere are skipped.

    Args:
        seed: Seed for numpy's generator; equal seeds give equal scenes.
        aspect_ratio: Camera aspect ratio.
        grid: Half-width of the lattice.
        checkered_ground: Paint the ground with a green and white checker.

    Returns:
        The scene and a camera with mild defocus blur.
    """
    rng = np.random.default_rng(seed)
    glass = DielectricMaterial(ior=1.5)

    ground = LambertianMaterial((0.5, 0.5, 0.5))
    if checkered_ground:
        ground = LambertianMaterial(CheckerTexture((0.9, 0.9, 0.9), (0.2, 0.3, 0.1), scale=0.32))
    primitives = [SphereInfo((0.0, -1000.0, 0.0), 1000.0, ground)]

    for a in range(-grid, grid):
        for b in range(-grid, grid):
            choose_mat = rng.random()
            center = (a + 0.9 * rng.random(), 0.2, b + 0.9 * rng.random())
            if np.linalg.norm(np.subtract(center, (4.0, 0.2, 0.0))) <= 0.9:
                continue

            if choose_mat < 0.8:
                albedo = tuple(rng.random(3) * rng.random(3))
                material = LambertianMaterial(albedo=albedo)
            elif choose_mat < 0.95:
                albedo = tuple(rng.uniform(0.5, 1.0, 3))
                material = MetalMaterial(albedo=albedo, fuzz=rng.uniform(0.0, 0.5))
            else:
                material = glass
            primitives.append(SphereInfo(center, 0.2, material))

    primitives.append(SphereInfo((0.0, 1.0, 0.0), 1.0, glass))
    primitives.append(SphereInfo((-4.0, 1.0, 0.0), 1.0, LambertianMaterial((0.4, 0.2, 0.1))))
    primitives.append(SphereInfo((4.0, 1.0, 0.0), 1.0, MetalMaterial((0.7, 0.6, 0.5), fuzz=0.0)))

    camera = ThinLensCamera(
        look_from=(13.0, 2.0, 3.0),
        look_at=(0.0, 0.0, 0.0),
        vfov=20.0,
        aspect_ratio=aspect_ratio,
        aperture=0.1,
        focus_dist=10.0,
    )
    return Scene(primitives), camera


# =============================================================================
# Noise Spheres
# =============================================================================


def noise_spheres_scene(
    aspect_ratio: float = 16.0 / 9.0,
    scale: float = 4.0,
) -> tuple[Scene, ThinLensCamera]:
    """Two spheres shaded with Perlin turbulence."""
    marble = LambertianMaterial(NoiseTexture(scale=scale))
    scene = Scene(
        [
            SphereInfo((0.0, -1000.0, 0.0), 1000.0, marble),
            SphereInfo((0.0, 2.0, 0.0), 2.0, marble),
        ]
    )
    camera = ThinLensCamera(
        look_from=(13.0, 2.0, 3.0),
        look_at=(0.0, 0.0, 0.0),
        vfov=20.0,
        aspect_ratio=aspect_ratio,
    )
    return scene, camera


# =============================================================================
# Cornell Box
# =============================================================================

# Classic Cornell box dimensions (approximately 555x555x555 units)
BOX_SIZE = 555.0

# Ceiling light footprint
LIGHT_WIDTH = 130.0
LIGHT_DEPTH = 105.0


@dataclass
class CornellBoxParams:
    """Parameters for configuring a Cornell box scene.

    Attributes:
        light_intensity: Scale applied to light_color.
        light_color: RGB color of the light (each component in [0, 1]).
        red_wall_color: Albedo of the wall at x = 0.
        green_wall_color: Albedo of the wall at x = box_size.
        white_color: Albedo of the floor, ceiling and back wall.
        blocks: Use the two classic rotated blocks instead of spheres.
        smoke: Fill the blocks with dark and light smoke instead of solid
            faces. Only used when blocks is set.
        smoke_density: Density of both smoke volumes.
    """

    light_intensity: float = 15.0
    light_color: tuple[float, float, float] = (1.0, 1.0, 1.0)
    red_wall_color: tuple[float, float, float] = (0.65, 0.05, 0.05)
    green_wall_color: tuple[float, float, float] = (0.12, 0.45, 0.15)
    white_color: tuple[float, float, float] = (0.73, 0.73, 0.73)
    blocks: bool = False
    smoke: bool = False
    smoke_density: float = 0.01


def cornell_box_scene(
    box_size: float = BOX_SIZE,
    params: CornellBoxParams | None = None,
) -> tuple[Scene, ThinLensCamera]:
    """Create a Cornell box lit only by its ceiling light.

    The box spans [0, box_size] on every axis with the open side facing the
    camera at z < 0. Rays escaping through the opening see black.

    Args:
        box_size: Edge length of the box.
        params: Colours, light and contents; defaults to CornellBoxParams().

    Returns:
        The scene and a square-image pinhole camera looking into the box.
    """
    if params is None:
        params = CornellBoxParams()
    s = box_size

    red = LambertianMaterial(albedo=params.red_wall_color)
    green = LambertianMaterial(albedo=params.green_wall_color)
    white = LambertianMaterial(albedo=params.white_color)
    light = EmissiveMaterial(color=params.light_color, intensity=params.light_intensity)

    primitives: list = [
        QuadInfo((0.0, 0.0, 0.0), (0.0, s, 0.0), (0.0, 0.0, s), red),
        QuadInfo((s, 0.0, s), (0.0, s, 0.0), (0.0, 0.0, -s), green),
        QuadInfo((0.0, 0.0, s), (s, 0.0, 0.0), (0.0, s, 0.0), white),
        QuadInfo((0.0, 0.0, 0.0), (s, 0.0, 0.0), (0.0, 0.0, s), white),
        QuadInfo((0.0, s, s), (s, 0.0, 0.0), (0.0, 0.0, -s), white),
    ]

    # Light faces down (cross(+x, +z) = -y) and sits just below the ceiling
    scale = s / BOX_SIZE
    light_w = LIGHT_WIDTH * scale
    light_d = LIGHT_DEPTH * scale
    primitives.append(
        QuadInfo(
            ((s - light_w) / 2.0, s - 1.0 * scale, (s - light_d) / 2.0),
            (light_w, 0.0, 0.0),
            (0.0, 0.0, light_d),
            light,
        )
    )

    if params.blocks:
        tall = (
            BoxInfo.from_corners((0.0, 0.0, 0.0), (0.3 * s, 0.6 * s, 0.3 * s), white)
            .rotated((0.0, 1.0, 0.0), 15.0)
            .translated((0.48 * s, 0.0, 0.53 * s))
        )
        short = (
            BoxInfo.from_corners((0.0, 0.0, 0.0), (0.3 * s, 0.3 * s, 0.3 * s), white)
            .rotated((0.0, 1.0, 0.0), -18.0)
            .translated((0.23 * s, 0.0, 0.12 * s))
        )
        if params.smoke:
            # Density is per unit length, so it scales inversely with the box
            density = params.smoke_density / scale
            primitives.append(
                ConstantMediumInfo(tall, density, IsotropicMaterial((0.0, 0.0, 0.0)))
            )
            primitives.append(
                ConstantMediumInfo(short, density, IsotropicMaterial((1.0, 1.0, 1.0)))
            )
        else:
            primitives.extend(tall.faces())
            primitives.extend(short.faces())
    else:
        r = 80.0 * scale
        primitives.append(SphereInfo((0.27 * s, r, 0.35 * s), r, white))
        primitives.append(
            SphereInfo((0.73 * s, r, 0.35 * s), r, MetalMaterial((0.95, 0.93, 0.88), fuzz=0.3))
        )
        primitives.append(SphereInfo((0.5 * s, r, 0.65 * s), r, DielectricMaterial(ior=1.5)))

    camera = ThinLensCamera(
        look_from=(s / 2.0, s / 2.0, -800.0 * scale),
        look_at=(s / 2.0, s / 2.0, s / 2.0),
        vfov=40.0,
        aspect_ratio=1.0,
    )
    return Scene(primitives, background=(0.0, 0.0, 0.0)), camera
