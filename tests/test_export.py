"""Tests for image export.

Tests cover:
- Quantisation of [0, 1] values to bytes
- PNG output readable by Pillow
- Plain PPM layout
- RMSE between images
"""

import numpy as np
import pytest
from PIL import Image

from pathtracer.preview.export import (
    compute_rmse,
    format_ppm,
    frame_to_uint8,
    save_image,
    save_png,
    save_ppm,
)


def _frame(pixels):
    from pathtracer.core.renderer import FrameBuffer

    pixels = np.asarray(pixels, dtype=np.float32)
    return FrameBuffer(width=pixels.shape[1], height=pixels.shape[0], pixels=pixels)


class TestQuantisation:
    def test_byte_mapping(self):
        values = np.array([[[0.0, 0.5, 1.0], [0.999, -0.2, 2.0]]])
        out = frame_to_uint8(values)
        assert out.dtype == np.uint8
        assert out.tolist() == [[[0, 128, 255], [255, 0, 255]]]

    def test_small_values_round_down(self):
        out = frame_to_uint8(np.array([[[0.003, 0.0039, 0.004]]]))
        assert out.tolist() == [[[0, 0, 1]]]


class TestWriters:
    def test_png_round_trip(self, tmp_path):
        pixels = np.zeros((3, 4, 3), dtype=np.float32)
        pixels[0, 0] = (1.0, 0.0, 0.0)
        pixels[2, 3] = (0.0, 0.5, 1.0)
        path = tmp_path / "out.png"
        save_png(_frame(pixels), path)

        with Image.open(path) as img:
            assert img.mode == "RGB"
            assert img.size == (4, 3)
            data = np.asarray(img)
        assert data[0, 0].tolist() == [255, 0, 0]
        assert data[2, 3].tolist() == [0, 128, 255]

    def test_ppm_layout(self):
        pixels = [[[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]], [[0.0, 0.0, 1.0], [0.5, 0.5, 0.5]]]
        text = format_ppm(_frame(pixels))
        assert text.splitlines() == [
            "P3",
            "2 2",
            "255",
            "255 0 0",
            "0 255 0",
            "0 0 255",
            "128 128 128",
        ]

    def test_save_ppm(self, tmp_path):
        path = tmp_path / "out.ppm"
        save_ppm(_frame(np.zeros((1, 2, 3))), path)
        assert path.read_text(encoding="ascii") == "P3\n2 1\n255\n0 0 0\n0 0 0\n"

    def test_save_image_picks_format_by_extension(self, tmp_path):
        frame = _frame(np.full((2, 2, 3), 0.5))
        save_image(frame, tmp_path / "a.ppm")
        save_image(frame, tmp_path / "b.png")
        assert (tmp_path / "a.ppm").read_text(encoding="ascii").startswith("P3\n")
        with Image.open(tmp_path / "b.png") as img:
            assert img.size == (2, 2)


class TestRmse:
    def test_identical_images(self):
        a = np.random.default_rng(0).random((4, 4, 3))
        assert compute_rmse(a, a) == 0.0

    def test_known_difference(self):
        a = np.zeros((2, 2, 3))
        b = np.full((2, 2, 3), 0.5)
        assert compute_rmse(a, b) == pytest.approx(0.5)

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            compute_rmse(np.zeros((2, 2, 3)), np.zeros((2, 3, 3)))
