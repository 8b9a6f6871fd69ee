"""Image export for finished frame buffers.

Frame buffers already hold gamma-corrected values in [0, 1]; export only
quantises them to 8 bits per channel:

    byte = int(256 * clamp(c, 0, 0.999))

Supported formats:
    - PNG (8-bit RGB via Pillow)
    - PPM (plain-text P3)

Example:
    >>> frame = Renderer(scene, camera, settings).render()
    >>> save_png(frame, "render.png")
    >>> save_ppm(frame, "render.ppm")
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

if TYPE_CHECKING:
    from pathtracer.core.renderer import FrameBuffer

logger = logging.getLogger(__name__)


def frame_to_uint8(pixels: npt.NDArray[np.floating]) -> npt.NDArray[np.uint8]:
    """Quantise [0, 1] channel values to bytes.

    Args:
        pixels: Array of shape (H, W, 3) with display-ready values.

    Returns:
        uint8 array of the same shape.
    """
    clamped = np.clip(np.asarray(pixels, dtype=np.float64), 0.0, 0.999)
    return (256.0 * clamped).astype(np.uint8)


def save_png(frame: FrameBuffer, filepath: str | os.PathLike) -> None:
    """Save a frame buffer as an 8-bit RGB PNG."""
    image = PILImage.fromarray(frame_to_uint8(frame.pixels))
    image.save(filepath, format="PNG")
    logger.info("Wrote %dx%d PNG to %s", frame.width, frame.height, filepath)


def format_ppm(frame: FrameBuffer) -> str:
    """Plain PPM text: header "P3", dimensions, 255, then one "R G B" line per pixel.

    Pixels are listed row by row starting with the top row.
    """
    data = frame_to_uint8(frame.pixels).reshape(-1, 3)
    lines = ["P3", f"{frame.width} {frame.height}", "255"]
    lines.extend(f"{r} {g} {b}" for r, g, b in data)
    return "\n".join(lines) + "\n"


def save_ppm(frame: FrameBuffer, filepath: str | os.PathLike) -> None:
    """Save a frame buffer as a plain-text PPM."""
    with open(filepath, "w", encoding="ascii") as f:
        f.write(format_ppm(frame))
    logger.info("Wrote %dx%d PPM to %s", frame.width, frame.height, filepath)


def save_image(frame: FrameBuffer, filepath: str | os.PathLike) -> None:
    """Save by file extension: .ppm writes plain PPM, anything else goes through Pillow."""
    if str(filepath).lower().endswith(".ppm"):
        save_ppm(frame, filepath)
    else:
        image = PILImage.fromarray(frame_to_uint8(frame.pixels))
        image.save(filepath)
        logger.info("Wrote %dx%d image to %s", frame.width, frame.height, filepath)


def compute_rmse(
    image_a: npt.NDArray[np.floating],
    image_b: npt.NDArray[np.floating],
) -> float:
    """Root mean square difference between two images of equal shape.

    Raises:
        ValueError: If the shapes differ.
    """
    if image_a.shape != image_b.shape:
        raise ValueError(f"Image shapes differ: {image_a.shape} vs {image_b.shape}")
    diff = np.asarray(image_a, dtype=np.float64) - np.asarray(image_b, dtype=np.float64)
    return float(np.sqrt(np.mean(diff * diff)))
