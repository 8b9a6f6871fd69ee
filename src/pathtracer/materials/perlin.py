"""Gradient (Perlin) noise and turbulence for NoiseTexture.

The lattice holds 256 random unit gradients. Corner (i, j, k) of the cell
containing p picks gradient perm_x[i] ^ perm_y[j] ^ perm_z[k], and the eight
corner contributions are blended with the Hermite fade t^2 * (3 - 2t).
Noise is exactly zero on integer lattice points.

The tables are generated on the host by numpy from a seed, so equal seeds
give identical textures across runs.
"""

import numpy as np
import taichi as ti
import taichi.math as tm

vec3 = tm.vec3

POINT_COUNT = 256
TURBULENCE_DEPTH = 7

_gradients = ti.Vector.field(3, dtype=ti.f32, shape=POINT_COUNT)
_perm_x = ti.field(dtype=ti.i32, shape=POINT_COUNT)
_perm_y = ti.field(dtype=ti.i32, shape=POINT_COUNT)
_perm_z = ti.field(dtype=ti.i32, shape=POINT_COUNT)

_seed = None


def setup_noise(seed: int = 0) -> None:
    """Generate and upload the gradient and permutation tables."""
    global _seed
    rng = np.random.default_rng(seed)
    gradients = rng.normal(size=(POINT_COUNT, 3))
    gradients /= np.linalg.norm(gradients, axis=1, keepdims=True)
    _gradients.from_numpy(gradients.astype(np.float32))
    _perm_x.from_numpy(rng.permutation(POINT_COUNT).astype(np.int32))
    _perm_y.from_numpy(rng.permutation(POINT_COUNT).astype(np.int32))
    _perm_z.from_numpy(rng.permutation(POINT_COUNT).astype(np.int32))
    _seed = seed


def ensure_noise() -> None:
    """Upload the default tables unless some have been uploaded already."""
    if _seed is None:
        setup_noise()


@ti.func
def perlin_noise(p: vec3) -> ti.f32:
    """Gradient noise at p, roughly in [-1, 1]."""
    cell = ti.floor(p)
    frac = p - cell
    fade = frac * frac * (3.0 - 2.0 * frac)
    i = ti.cast(cell.x, ti.i32)
    j = ti.cast(cell.y, ti.i32)
    k = ti.cast(cell.z, ti.i32)

    accum = 0.0
    for di in ti.static(range(2)):
        for dj in ti.static(range(2)):
            for dk in ti.static(range(2)):
                g = _gradients[
                    _perm_x[(i + di) & 255] ^ _perm_y[(j + dj) & 255] ^ _perm_z[(k + dk) & 255]
                ]
                weight = frac - vec3(di, dj, dk)
                accum += (
                    (di * fade.x + (1 - di) * (1.0 - fade.x))
                    * (dj * fade.y + (1 - dj) * (1.0 - fade.y))
                    * (dk * fade.z + (1 - dk) * (1.0 - fade.z))
                    * tm.dot(g, weight)
                )
    return accum


@ti.func
def turbulence(p: vec3) -> ti.f32:
    """Absolute sum of TURBULENCE_DEPTH octaves, each half the weight of the last."""
    accum = 0.0
    temp_p = p
    weight = 1.0
    for _ in range(TURBULENCE_DEPTH):
        accum += weight * perlin_noise(temp_p)
        weight *= 0.5
        temp_p *= 2.0
    return ti.abs(accum)
