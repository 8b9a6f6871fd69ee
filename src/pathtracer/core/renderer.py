"""Render orchestration: settings, frame buffer and the Renderer.

The Renderer commits a scene and camera to the device, seeds one random
stream per pixel, splits the image rows into bands and runs the band kernel
in sample batches, reporting progress between batches. The caller blocks
until the image is complete.

Example:
    >>> from pathtracer.runtime import init_taichi
    >>> init_taichi(threads=8)
    >>> from pathtracer.core.renderer import Renderer, RenderSettings
    >>> from pathtracer.scene.presets import three_spheres_scene
    >>>
    >>> scene, camera = three_spheres_scene()
    >>> settings = RenderSettings(width=400, height=225, samples_per_pixel=100, threads=8)
    >>> frame = Renderer(scene, camera, settings).render()
    >>> frame.pixels.shape
    (225, 400, 3)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

import numpy as np
import numpy.typing as npt

from pathtracer.camera.thin_lens import ThinLensCamera, setup_camera
from pathtracer.core.integrator import (
    MAX_IMAGE_HEIGHT,
    MAX_IMAGE_WIDTH,
    SAMPLING_MODES,
    clear_accumulation,
    get_rows_completed,
    render_batch,
    resolve_image,
    set_background,
    setup_render_target,
    upload_bands,
)
from pathtracer.core.rng import seed_streams
from pathtracer.runtime import default_thread_count, get_thread_count
from pathtracer.scene.scene import Scene

logger = logging.getLogger(__name__)

# Callback receives (samples_done, samples_total)
ProgressCallback = Callable[[int, int], None]


@dataclass
class RenderSettings:
    """Image and sampling configuration.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        samples_per_pixel: Samples averaged into each pixel.
        max_depth: Maximum surface interactions per sample.
        threads: Number of row bands rendered in parallel. At most the worker
            pool size set by init_taichi() run at once.
        seed: Global seed; equal seeds and settings give identical images.
        sampling: Sub-pixel pattern: "random", "stratified" or "center".
        batch_size: Samples per pixel rendered between progress callbacks.
            None renders all samples in one batch.
    """

    width: int
    height: int
    samples_per_pixel: int = 100
    max_depth: int = 50
    threads: int = field(default_factory=default_thread_count)
    seed: int = 0
    sampling: str = "random"
    batch_size: int | None = None

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Image dimensions must be positive, got {self.width}x{self.height}")
        if self.width > MAX_IMAGE_WIDTH or self.height > MAX_IMAGE_HEIGHT:
            raise ValueError(
                f"Image dimensions {self.width}x{self.height} exceed maximum "
                f"{MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT}"
            )
        if self.samples_per_pixel <= 0:
            raise ValueError(f"Samples per pixel must be positive, got {self.samples_per_pixel}")
        if self.max_depth < 0:
            raise ValueError(f"Max depth must be non-negative, got {self.max_depth}")
        if self.threads <= 0:
            raise ValueError(f"Thread count must be positive, got {self.threads}")
        if self.seed < 0:
            raise ValueError(f"Seed must be non-negative, got {self.seed}")
        if self.sampling not in SAMPLING_MODES:
            raise ValueError(
                f"Unknown sampling pattern {self.sampling!r}; "
                f"expected one of {sorted(SAMPLING_MODES)}"
            )
        if self.batch_size is not None and self.batch_size <= 0:
            raise ValueError(f"Batch size must be positive, got {self.batch_size}")

    @classmethod
    def from_aspect(cls, width: int, aspect_ratio: float, **kwargs) -> RenderSettings:
        """Settings whose height is width / aspect_ratio, rounded down (at least 1)."""
        if aspect_ratio <= 0.0:
            raise ValueError(f"Aspect ratio must be positive, got {aspect_ratio}")
        height = max(1, int(width / aspect_ratio))
        return cls(width=width, height=height, **kwargs)

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height


@dataclass(eq=False)
class FrameBuffer:
    """A finished image.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        pixels: float32 array of shape (height, width, 3). Row 0 is the top
            row; values are gamma-2 corrected and clamped to [0, 1].
    """

    width: int
    height: int
    pixels: npt.NDArray[np.float32]

    def __post_init__(self) -> None:
        expected = (self.height, self.width, 3)
        if self.pixels.shape != expected:
            raise ValueError(f"Pixel array has shape {self.pixels.shape}, expected {expected}")

    def pixel(self, row: int, col: int) -> tuple[float, float, float]:
        r, g, b = self.pixels[row, col]
        return (float(r), float(g), float(b))

    def mean_color(self) -> tuple[float, float, float]:
        r, g, b = self.pixels.reshape(-1, 3).mean(axis=0)
        return (float(r), float(g), float(b))


def partition_rows(height: int, bands: int) -> list[tuple[int, int]]:
    """Split rows [0, height) into contiguous, disjoint [start, end) ranges.

    The first height % bands ranges get one extra row, so band sizes differ
    by at most one.

    Args:
        height: Number of image rows.
        bands: Number of ranges; clamped to [1, height].

    Returns:
        The row ranges in top-to-bottom order.
    """
    if height <= 0:
        raise ValueError(f"Height must be positive, got {height}")
    bands = max(1, min(bands, height))
    base, extra = divmod(height, bands)

    ranges = []
    start = 0
    for i in range(bands):
        end = start + base + (1 if i < extra else 0)
        ranges.append((start, end))
        start = end
    return ranges


class Renderer:
    """Renders one scene through one camera with fixed settings.

    The scene, camera and settings are read-only for the lifetime of the
    renderer; each render() uploads them and produces a new FrameBuffer.
    """

    def __init__(self, scene: Scene, camera: ThinLensCamera, settings: RenderSettings) -> None:
        self._scene = scene
        self._camera = camera
        self._settings = settings
        self._rows_completed = 0

        if abs(camera.aspect_ratio - settings.aspect_ratio) > 0.01 * settings.aspect_ratio:
            logger.warning(
                "Camera aspect ratio %.4f differs from image aspect ratio %.4f",
                camera.aspect_ratio,
                settings.aspect_ratio,
            )

        pool = get_thread_count()
        if pool is not None and settings.threads > pool:
            logger.warning(
                "%d render bands requested but the worker pool has %d threads; "
                "extra bands wait for a free worker",
                settings.threads,
                pool,
            )

    @property
    def scene(self) -> Scene:
        return self._scene

    @property
    def camera(self) -> ThinLensCamera:
        return self._camera

    @property
    def settings(self) -> RenderSettings:
        return self._settings

    @property
    def rows_completed(self) -> int:
        """Rows finished by the band kernel during the last render, summed over batches."""
        return self._rows_completed

    def bands(self) -> list[tuple[int, int]]:
        return partition_rows(self._settings.height, self._settings.threads)

    def _prepare(self) -> list[tuple[int, int]]:
        s = self._settings
        setup_render_target(s.width, s.height)
        self._scene.commit()
        set_background(self._scene.background)
        setup_camera(self._camera)
        seed_streams(s.seed, s.width * s.height)

        bands = self.bands()
        upload_bands(bands)
        clear_accumulation()
        return bands

    def render(self, progress: ProgressCallback | None = None) -> FrameBuffer:
        """Render the image.

        Args:
            progress: Optional callback invoked after each sample batch with
                (samples_done, samples_total).

        Returns:
            The finished frame buffer.

        Raises:
            RuntimeError: If the scene does not fit the device tables.
        """
        s = self._settings
        start_time = time.perf_counter()
        bands = self._prepare()
        mode = SAMPLING_MODES[s.sampling]
        batch = s.batch_size or s.samples_per_pixel

        logger.info(
            "Rendering %dx%d, %d spp, depth %d, %d bands, %s sampling",
            s.width,
            s.height,
            s.samples_per_pixel,
            s.max_depth,
            len(bands),
            s.sampling,
        )

        done = 0
        while done < s.samples_per_pixel:
            end = min(done + batch, s.samples_per_pixel)
            render_batch(
                len(bands), s.width, s.height, done, end, s.samples_per_pixel, s.max_depth, mode
            )
            done = end
            logger.debug("Finished %d/%d samples per pixel", done, s.samples_per_pixel)
            if progress is not None:
                progress(done, s.samples_per_pixel)

        self._rows_completed = get_rows_completed()
        pixels = resolve_image(s.width, s.height, s.samples_per_pixel)

        logger.info("Render finished in %.2fs", time.perf_counter() - start_time)
        return FrameBuffer(width=s.width, height=s.height, pixels=pixels)


def render(
    scene: Scene,
    camera: ThinLensCamera,
    settings: RenderSettings,
    progress: ProgressCallback | None = None,
) -> FrameBuffer:
    """Render a scene in one call; see Renderer.render."""
    return Renderer(scene, camera, settings).render(progress)
