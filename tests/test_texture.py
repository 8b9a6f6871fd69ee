"""Unit tests for textures and Perlin noise.

Tests cover:
- Texture descriptor validation and dictionary forms
- Checker cell parity, including negative coordinates
- Image texel lookup, clamping and loading through Pillow
- Perlin noise zeros on the lattice, value range and determinism
"""

import numpy as np
import pytest
import taichi as ti
from PIL import Image

from pathtracer.materials.texture import (
    CheckerTexture,
    ImageTexture,
    NoiseTexture,
    SolidColor,
    TextureType,
    as_texture,
    checker_parity,
    image_texel,
    texture_from_dict,
)

N_POINTS = 4096


class TestDescriptors:
    """Tests for texture descriptors."""

    def test_as_texture_wraps_colors(self):
        assert as_texture((0.1, 0.2, 0.3)) == SolidColor((0.1, 0.2, 0.3))
        checker = CheckerTexture((0.0, 0.0, 0.0), (1.0, 1.0, 1.0))
        assert as_texture(checker) is checker

    def test_checker_row_stores_inverse_scale(self):
        row = CheckerTexture((0.0, 0.0, 0.0), (1.0, 1.0, 1.0), scale=0.25).texture_row()
        assert row[0] == int(TextureType.CHECKER)
        assert row[3] == pytest.approx(4.0)

    @pytest.mark.parametrize("scale", [0.0, -1.0, float("nan"), float("inf")])
    def test_rejects_bad_scale(self, scale):
        with pytest.raises(ValueError):
            CheckerTexture((0.0, 0.0, 0.0), (1.0, 1.0, 1.0), scale=scale)
        with pytest.raises(ValueError):
            NoiseTexture(scale=scale)

    @pytest.mark.parametrize(
        "pixels",
        [
            np.zeros((2, 2), dtype=np.float32),
            np.zeros((2, 2, 4), dtype=np.float32),
            np.full((2, 2, 3), 1.5, dtype=np.float32),
        ],
    )
    def test_image_rejects_bad_pixels(self, pixels):
        with pytest.raises(ValueError):
            ImageTexture(pixels)

    def test_image_texels_start_at_bottom_row(self):
        pixels = np.zeros((2, 3, 3), dtype=np.float32)
        pixels[0, :, 0] = 1.0
        texels = ImageTexture(pixels).texels()
        assert texels.shape == (6, 3)
        np.testing.assert_array_equal(texels[:3, 0], 0.0)
        np.testing.assert_array_equal(texels[3:, 0], 1.0)

    def test_image_from_file(self, tmp_path):
        data = np.zeros((4, 2, 4), dtype=np.uint8)
        data[..., 0] = 255
        data[..., 3] = 128
        path = tmp_path / "red.png"
        Image.fromarray(data).save(path)

        texture = ImageTexture.from_file(path)
        assert (texture.width, texture.height) == (2, 4)
        np.testing.assert_allclose(texture.pixels[..., 0], 1.0)
        np.testing.assert_allclose(texture.pixels[..., 1:], 0.0)
        assert texture_from_dict(texture.to_dict()).pixels.shape == (4, 2, 3)

    def test_dict_round_trip(self):
        for texture in (
            SolidColor((0.5, 0.5, 0.5)),
            CheckerTexture((0.2, 0.3, 0.1), (0.9, 0.9, 0.9), scale=0.32),
            NoiseTexture(scale=4.0, color=(1.0, 0.8, 0.6)),
        ):
            assert texture_from_dict(texture.to_dict()) == texture

    def test_in_memory_image_dict_round_trip(self):
        pixels = np.random.default_rng(0).random((2, 3, 3)).astype(np.float32)
        restored = texture_from_dict(ImageTexture(pixels).to_dict())
        np.testing.assert_allclose(restored.pixels, pixels)

    def test_missing_field_names_the_field(self):
        with pytest.raises(ValueError, match="missing required field 'odd'"):
            texture_from_dict({"type": "checker", "even": [0, 0, 0]})

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            texture_from_dict({"type": "marble"})


class TestCheckerParity:
    """Tests for the checker cell test."""

    def test_parity(self):
        points = [
            (0.5, 0.5, 0.5),
            (1.5, 0.5, 0.5),
            (1.5, 1.5, 0.5),
            (-0.5, 0.5, 0.5),
            (-0.5, -0.5, 0.5),
            (2.5, 2.5, 3.5),
        ]
        parity = ti.field(dtype=ti.i32, shape=len(points))
        point_field = ti.Vector.field(3, dtype=ti.f32, shape=len(points))
        point_field.from_numpy(np.asarray(points, dtype=np.float32))

        @ti.kernel
        def test_kernel():
            for i in range(len(points)):
                parity[i] = checker_parity(point_field[i], 1.0)

        test_kernel()
        assert parity.to_numpy().tolist() == [0, 1, 0, 1, 0, 1]

    def test_scale_sets_cell_size(self):
        parity = ti.field(dtype=ti.i32, shape=2)

        @ti.kernel
        def test_kernel():
            # Cells of edge 2: x = 1.5 and x = 2.5 fall in different cells
            parity[0] = checker_parity(ti.math.vec3(1.5, 0.5, 0.5), 0.5)
            parity[1] = checker_parity(ti.math.vec3(2.5, 0.5, 0.5), 0.5)

        test_kernel()
        assert parity.to_numpy().tolist() == [0, 1]


class TestImageTexel:
    """Tests for mapping (u, v) to a texel index."""

    @pytest.mark.parametrize(
        "uv, index",
        [
            ((0.0, 0.0), 0),
            ((0.99, 0.0), 3),
            ((1.0, 0.0), 3),
            ((0.0, 1.0), 8),
            ((1.0, 1.0), 11),
            ((0.5, 0.5), 6),
            ((-3.0, 7.0), 8),
        ],
    )
    def test_index(self, uv, index):
        result = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = image_texel(ti.math.vec2(uv[0], uv[1]), 4, 3)

        test_kernel()
        assert result[None] == index


class TestPerlinNoise:
    """Tests for gradient noise and turbulence."""

    def _sample(self, points, scale=1.0):
        from pathtracer.materials.perlin import perlin_noise, turbulence

        n = len(points)
        point_field = ti.Vector.field(3, dtype=ti.f32, shape=n)
        noise = ti.field(dtype=ti.f32, shape=n)
        turb = ti.field(dtype=ti.f32, shape=n)
        point_field.from_numpy(np.asarray(points, dtype=np.float32))

        @ti.kernel
        def test_kernel():
            for i in range(n):
                noise[i] = perlin_noise(scale * point_field[i])
                turb[i] = turbulence(scale * point_field[i])

        test_kernel()
        return noise.to_numpy(), turb.to_numpy()

    def test_zero_on_lattice_points(self):
        from pathtracer.materials.perlin import setup_noise

        setup_noise(3)
        lattice = [(i, j, k) for i in (-2, 0, 5) for j in (-1, 1) for k in (0, 7)]
        noise, turb = self._sample(lattice)
        np.testing.assert_allclose(noise, 0.0, atol=1e-6)
        np.testing.assert_allclose(turb, 0.0, atol=1e-6)

    def test_range(self):
        from pathtracer.materials.perlin import setup_noise

        setup_noise(0)
        points = np.random.default_rng(1).uniform(-20.0, 20.0, (N_POINTS, 3))
        noise, turb = self._sample(points)
        assert np.all(np.isfinite(noise)) and np.all(np.isfinite(turb))
        assert np.all(np.abs(noise) <= 1.0)
        assert np.all(turb >= 0.0)
        assert noise.std() > 0.05
        # A Lambertian noise albedo is min(turbulence, 1), so it stays in [0, 1]
        albedo = np.minimum(turb, 1.0)
        assert albedo.min() >= 0.0 and albedo.max() <= 1.0

    def test_same_seed_same_noise(self):
        from pathtracer.materials.perlin import setup_noise

        points = np.random.default_rng(2).uniform(-5.0, 5.0, (64, 3))
        setup_noise(11)
        first, _ = self._sample(points)
        setup_noise(12)
        other, _ = self._sample(points)
        setup_noise(11)
        again, _ = self._sample(points)
        np.testing.assert_array_equal(first, again)
        assert not np.allclose(first, other)

    def test_noise_albedo_in_unit_range(self):
        from pathtracer.materials.lambertian import LambertianMaterial
        from pathtracer.materials.registry import sample_albedo, upload_materials

        upload_materials([LambertianMaterial(NoiseTexture(scale=4.0, color=(1.0, 0.5, 0.25)))])
        points = np.random.default_rng(3).uniform(-3.0, 3.0, (N_POINTS, 3))
        point_field = ti.Vector.field(3, dtype=ti.f32, shape=N_POINTS)
        albedo = ti.Vector.field(3, dtype=ti.f32, shape=N_POINTS)
        point_field.from_numpy(points.astype(np.float32))

        @ti.kernel
        def test_kernel():
            for i in range(N_POINTS):
                albedo[i] = sample_albedo(0, point_field[i], ti.math.vec2(0.0, 0.0))

        test_kernel()
        a = albedo.to_numpy()
        assert a.min() >= 0.0
        assert np.all(a[:, 0] <= 1.0) and np.all(a[:, 1] <= 0.5) and np.all(a[:, 2] <= 0.25)
        np.testing.assert_allclose(a[:, 1], 0.5 * a[:, 0], atol=1e-6)
        assert a[:, 0].max() > 0.1
