"""Light transport and the row-band render kernel.

This module implements the per-sample radiance estimate and the kernels that
accumulate samples into the image:

    ray_color(r, depth) = 0                                      if depth == 0
                        = background(r)                          on a miss
                        = emitted + attenuation * ray_color(scattered, depth - 1)

The recursion is evaluated as a loop with an accumulated throughput, so the
bounce limit never touches the call stack.

The image is split into bands of contiguous rows. The outermost loop of
_render_bands runs over bands, which Taichi's CPU backend spreads across its
worker pool; everything inside a band (rows, columns, samples and bounces) is
serial on that worker. Each pixel owns random stream row * width + col, so the
output does not depend on how bands are scheduled.

Key features:
    - Material dispatch through the unified material table
    - Sky gradient or constant background
    - Random, stratified or pixel-centre sub-pixel sampling
    - NaN/Inf samples dropped to zero
    - Self-intersection avoidance with ray offset

Example:
    >>> setup_render_target(400, 225)
    >>> upload_bands([(0, 113), (113, 225)])
    >>> clear_accumulation()
    >>> render_batch(2, 400, 225, 0, 100, 100, 50, SAMPLING_RANDOM)
    >>> pixels = resolve_image(400, 225, 100)
"""

import math
from typing import Sequence

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.camera.thin_lens import get_ray
from pathtracer.core.rng import next_float
from pathtracer.materials.registry import emitted_material, scatter_material
from pathtracer.scene.intersection import intersect_scene

vec3 = tm.vec3

# =============================================================================
# Constants
# =============================================================================

# Distance a scattered ray's origin is pushed off the surface
RAY_EPSILON = 1e-4

# Parametric interval for every scene query
T_MIN = 1e-3
T_MAX = 1e10

# Sub-pixel sampling patterns
SAMPLING_RANDOM = 0
SAMPLING_STRATIFIED = 1
SAMPLING_CENTER = 2
SAMPLING_MODES = {
    "random": SAMPLING_RANDOM,
    "stratified": SAMPLING_STRATIFIED,
    "center": SAMPLING_CENTER,
}

# =============================================================================
# Background
# =============================================================================

_BACKGROUND_SKY = 0
_BACKGROUND_CONSTANT = 1

_background_mode = ti.field(dtype=ti.i32, shape=())
_background_color = ti.Vector.field(3, dtype=ti.f32, shape=())


def set_background(color: Sequence[float] | None) -> None:
    """Select the colour returned by rays that escape the scene.

    Args:
        color: RGB constant, or None for the white-to-blue sky gradient.
    """
    if color is None:
        _background_mode[None] = _BACKGROUND_SKY
        _background_color[None] = [0.0, 0.0, 0.0]
    else:
        _background_mode[None] = _BACKGROUND_CONSTANT
        _background_color[None] = [float(c) for c in color]


@ti.func
def sky_color(direction: vec3) -> vec3:
    """Vertical blend from white (looking down) to light blue (looking up)."""
    unit = tm.normalize(direction)
    a = 0.5 * (unit.y + 1.0)
    return (1.0 - a) * vec3(1.0, 1.0, 1.0) + a * vec3(0.5, 0.7, 1.0)


@ti.func
def background_color(direction: vec3) -> vec3:
    result = _background_color[None]
    if _background_mode[None] == _BACKGROUND_SKY:
        result = sky_color(direction)
    return result


# =============================================================================
# Render Target
# =============================================================================

# Maximum image dimensions supported
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048
MAX_BANDS = MAX_IMAGE_HEIGHT

# Per-pixel sum of samples, indexed [row, col] with row 0 at the top
_accum = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_HEIGHT, MAX_IMAGE_WIDTH))

# Row ranges [start, end) owned by each band
_band_start = ti.field(dtype=ti.i32, shape=MAX_BANDS)
_band_end = ti.field(dtype=ti.i32, shape=MAX_BANDS)

# Rows finished since the last reset_progress()
_rows_completed = ti.field(dtype=ti.i32, shape=())


def setup_render_target(width: int, height: int) -> None:
    """Check that an image of the given size fits the render target.

    Raises:
        ValueError: If a dimension is non-positive or too large.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")
    if width > MAX_IMAGE_WIDTH or height > MAX_IMAGE_HEIGHT:
        raise ValueError(
            f"Image dimensions {width}x{height} exceed maximum "
            f"{MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT}"
        )


def upload_bands(bands: Sequence[tuple[int, int]]) -> None:
    """Store the row range of each band.

    Raises:
        ValueError: If there are no bands or more than MAX_BANDS.
    """
    if not 0 < len(bands) <= MAX_BANDS:
        raise ValueError(f"Band count must be in [1, {MAX_BANDS}], got {len(bands)}")
    starts = np.zeros(MAX_BANDS, dtype=np.int32)
    ends = np.zeros(MAX_BANDS, dtype=np.int32)
    for i, (start, end) in enumerate(bands):
        starts[i] = start
        ends[i] = end
    _band_start.from_numpy(starts)
    _band_end.from_numpy(ends)


def clear_accumulation() -> None:
    """Zero the sample sums and the row counter."""
    _accum.fill(0.0)
    reset_progress()


def reset_progress() -> None:
    _rows_completed[None] = 0


def get_rows_completed() -> int:
    """Rows finished by all bands since the last reset."""
    return int(_rows_completed[None])


# =============================================================================
# Path Tracing Core
# =============================================================================


@ti.func
def _offset_ray_origin(point: vec3, normal: vec3, direction: vec3) -> vec3:
    """Push a hit point off the surface, on the side the new ray leaves through."""
    offset_dir = normal
    if tm.dot(direction, normal) < 0.0:
        offset_dir = -normal
    return point + RAY_EPSILON * offset_dir


@ti.func
def ray_color(origin: vec3, direction: vec3, max_depth: ti.i32, stream: ti.i32) -> vec3:
    """Estimate the radiance arriving along a ray.

    Args:
        origin: Ray origin.
        direction: Ray direction (need not be normalized).
        max_depth: Maximum number of surface interactions; 0 yields black.
        stream: Random stream of the pixel being sampled.

    Returns:
        The radiance estimate (RGB, unbounded).
    """
    radiance = vec3(0.0, 0.0, 0.0)
    throughput = vec3(1.0, 1.0, 1.0)
    ray_origin = origin
    ray_direction = direction
    active = 1

    for _ in range(max_depth):
        if active == 1:
            rec = intersect_scene(ray_origin, ray_direction, T_MIN, T_MAX, stream)

            if rec.hit == 0:
                radiance += throughput * background_color(ray_direction)
                active = 0
            else:
                radiance += throughput * emitted_material(rec.material_id, rec.front_face)

                scattered, attenuation, did_scatter = scatter_material(
                    rec.material_id,
                    ray_direction,
                    rec.point,
                    rec.normal,
                    rec.uv,
                    rec.front_face,
                    stream,
                )
                if did_scatter == 0:
                    active = 0
                else:
                    throughput *= attenuation
                    ray_origin = _offset_ray_origin(rec.point, rec.normal, scattered)
                    ray_direction = scattered

    return radiance


@ti.func
def _sanitize(color: vec3) -> vec3:
    """Replace NaN/Inf components with zero and clamp negatives."""
    result = color
    for c in ti.static(range(3)):
        if tm.isnan(result[c]) or tm.isinf(result[c]) or result[c] < 0.0:
            result[c] = 0.0
    return result


@ti.func
def _pixel_offset(sample: ti.i32, mode: ti.i32, grid_n: ti.i32, stream: ti.i32):
    """Sub-pixel position (ox, oy) in [0, 1)^2 for one sample."""
    ox = 0.5
    oy = 0.5
    if mode == SAMPLING_RANDOM:
        ox = next_float(stream)
        oy = next_float(stream)
    elif mode == SAMPLING_STRATIFIED:
        cell = sample % (grid_n * grid_n)
        cx = cell % grid_n
        cy = cell // grid_n
        ox = (ti.cast(cx, ti.f32) + next_float(stream)) / ti.cast(grid_n, ti.f32)
        oy = (ti.cast(cy, ti.f32) + next_float(stream)) / ti.cast(grid_n, ti.f32)
    return ox, oy


@ti.func
def sample_pixel(
    row: ti.i32,
    col: ti.i32,
    sample: ti.i32,
    width: ti.i32,
    height: ti.i32,
    max_depth: ti.i32,
    mode: ti.i32,
    grid_n: ti.i32,
) -> vec3:
    """One radiance sample for pixel (row, col); row 0 is the top of the image."""
    stream = row * width + col
    ox, oy = _pixel_offset(sample, mode, grid_n, stream)
    s = (ti.cast(col, ti.f32) + ox) / ti.cast(width, ti.f32)
    t = 1.0 - (ti.cast(row, ti.f32) + oy) / ti.cast(height, ti.f32)
    ray = get_ray(s, t, stream)
    return _sanitize(ray_color(ray.origin, ray.direction, max_depth, stream))


# =============================================================================
# Rendering Kernels
# =============================================================================


@ti.kernel
def _render_bands(
    num_bands: ti.i32,
    width: ti.i32,
    height: ti.i32,
    sample_start: ti.i32,
    sample_end: ti.i32,
    max_depth: ti.i32,
    mode: ti.i32,
    grid_n: ti.i32,
):
    for band in range(num_bands):
        for row in range(_band_start[band], _band_end[band]):
            for col in range(width):
                acc = vec3(0.0, 0.0, 0.0)
                for sample in range(sample_start, sample_end):
                    acc += sample_pixel(row, col, sample, width, height, max_depth, mode, grid_n)
                _accum[row, col] += acc
            ti.atomic_add(_rows_completed[None], 1)


_trace_result = ti.Vector.field(3, dtype=ti.f32, shape=())


@ti.kernel
def _trace_single(
    ox: ti.f32,
    oy: ti.f32,
    oz: ti.f32,
    dx: ti.f32,
    dy: ti.f32,
    dz: ti.f32,
    max_depth: ti.i32,
    stream: ti.i32,
):
    # Single-iteration outer loop keeps the bounce loop serial
    for _ in range(1):
        _trace_result[None] = ray_color(vec3(ox, oy, oz), vec3(dx, dy, dz), max_depth, stream)


# =============================================================================
# Public Rendering API
# =============================================================================


def render_batch(
    num_bands: int,
    width: int,
    height: int,
    sample_start: int,
    sample_end: int,
    samples_per_pixel: int,
    max_depth: int,
    mode: int,
) -> None:
    """Add samples [sample_start, sample_end) of every pixel to the sums.

    Blocks until all bands have finished.

    Args:
        num_bands: Number of bands previously stored with upload_bands().
        width: Image width in pixels.
        height: Image height in pixels.
        sample_start: Index of the first sample in this batch.
        sample_end: One past the last sample index in this batch.
        samples_per_pixel: Total samples per pixel (sizes the stratified grid).
        max_depth: Bounce limit per sample.
        mode: One of SAMPLING_RANDOM, SAMPLING_STRATIFIED, SAMPLING_CENTER.
    """
    grid_n = max(1, math.isqrt(samples_per_pixel))
    _render_bands(num_bands, width, height, sample_start, sample_end, max_depth, mode, grid_n)


def resolve_image(width: int, height: int, samples_per_pixel: int) -> np.ndarray:
    """Average, gamma-correct (gamma 2) and clamp the accumulated samples.

    Returns:
        float32 array of shape (height, width, 3) with values in [0, 1].
    """
    sums = _accum.to_numpy()[:height, :width].astype(np.float64)
    mean = sums / float(samples_per_pixel)
    return np.clip(np.sqrt(np.maximum(mean, 0.0)), 0.0, 1.0).astype(np.float32)


def trace_ray(
    origin: Sequence[float],
    direction: Sequence[float],
    max_depth: int,
    stream: int = 0,
) -> tuple[float, float, float]:
    """Radiance along a single ray against the committed scene.

    Python-callable for testing and debugging; uses the given random stream.
    """
    _trace_single(
        float(origin[0]),
        float(origin[1]),
        float(origin[2]),
        float(direction[0]),
        float(direction[1]),
        float(direction[2]),
        max_depth,
        stream,
    )
    color = _trace_result[None]
    return (float(color[0]), float(color[1]), float(color[2]))
