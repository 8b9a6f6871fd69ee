"""Image output for finished renders.

Example:
    >>> from pathtracer.preview import save_png
    >>> save_png(frame, "output.png")
"""

from pathtracer.preview.export import (
    compute_rmse,
    format_ppm,
    frame_to_uint8,
    save_image,
    save_png,
    save_ppm,
)

__all__ = [
    "frame_to_uint8",
    "format_ppm",
    "save_png",
    "save_ppm",
    "save_image",
    "compute_rmse",
]
