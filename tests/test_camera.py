"""Unit tests for the thin-lens camera.

Tests cover:
- Configuration validation
- Orthonormal basis and viewport geometry
- Pinhole rays through the image centre and corners
- Defocus: lens origins within the aperture, rays converging at the focus plane
- Camera state uploaded to the device
"""

import numpy as np
import pytest
import taichi as ti


def _camera(**kwargs):
    from pathtracer.camera.thin_lens import ThinLensCamera

    params = dict(
        look_from=(0.0, 0.0, 0.0),
        look_at=(0.0, 0.0, -1.0),
        vfov=90.0,
        aspect_ratio=2.0,
    )
    params.update(kwargs)
    return ThinLensCamera(**params)


class TestCameraConfig:
    """Tests for ThinLensCamera validation."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"vfov": 0.0},
            {"vfov": 180.0},
            {"aspect_ratio": 0.0},
            {"aperture": -0.1},
            {"focus_dist": 0.0},
            {"look_at": (0.0, 0.0, 0.0)},
            {"vup": (0.0, 0.0, 1.0)},
            {"look_from": (0.0, 0.0)},
        ],
    )
    def test_invalid_configuration(self, kwargs):
        with pytest.raises(ValueError):
            _camera(**kwargs)

    def test_lens_radius_is_half_aperture(self):
        assert _camera(aperture=0.5).lens_radius == 0.25


class TestCameraGeometry:
    """Tests for the derived frame and viewport."""

    def test_basis_is_orthonormal(self):
        camera = _camera(look_from=(13.0, 2.0, 3.0), look_at=(0.0, 0.0, 0.0))
        u, v, w = camera.basis()
        for a in (u, v, w):
            assert np.linalg.norm(a) == pytest.approx(1.0)
        assert np.dot(u, v) == pytest.approx(0.0, abs=1e-12)
        assert np.dot(u, w) == pytest.approx(0.0, abs=1e-12)
        assert np.dot(v, w) == pytest.approx(0.0, abs=1e-12)
        # w points from look_at back toward the camera
        np.testing.assert_allclose(w, np.array([13.0, 2.0, 3.0]) / np.linalg.norm([13.0, 2.0, 3.0]))

    def test_viewport_size(self):
        """vfov 90 at focus distance 2 gives a viewport 4 tall and 8 wide."""
        vp = _camera(focus_dist=2.0).viewport()
        np.testing.assert_allclose(vp["vertical"], [0.0, 4.0, 0.0], atol=1e-12)
        np.testing.assert_allclose(vp["horizontal"], [8.0, 0.0, 0.0], atol=1e-12)
        np.testing.assert_allclose(vp["lower_left"], [-4.0, -2.0, -2.0], atol=1e-12)

    def test_pinhole_ray_through_centre(self):
        origin, direction = _camera().pinhole_ray(0.5, 0.5)
        np.testing.assert_allclose(origin, [0.0, 0.0, 0.0])
        np.testing.assert_allclose(direction, [0.0, 0.0, -1.0], atol=1e-12)

    def test_pinhole_ray_through_top_right(self):
        _, direction = _camera().pinhole_ray(1.0, 1.0)
        np.testing.assert_allclose(direction, [2.0, 1.0, -1.0], atol=1e-12)


class TestDeviceRays:
    """Tests for get_ray inside kernels."""

    def test_setup_camera_uploads_state(self):
        from pathtracer.camera.thin_lens import get_camera_info, setup_camera

        camera = _camera(aperture=0.2, focus_dist=3.0)
        setup_camera(camera)
        info = get_camera_info()
        assert info["origin"] == pytest.approx((0.0, 0.0, 0.0))
        assert info["w"] == pytest.approx((0.0, 0.0, 1.0))
        assert info["lens_radius"] == pytest.approx(0.1)
        assert info["lower_left"] == pytest.approx(tuple(camera.viewport()["lower_left"]), abs=1e-5)

    def test_pinhole_get_ray_matches_python(self):
        from pathtracer.camera.thin_lens import get_ray, setup_camera
        from pathtracer.core.rng import seed_streams

        camera = _camera(look_from=(1.0, 2.0, 3.0), look_at=(0.0, 0.5, -1.0), vfov=40.0)
        setup_camera(camera)
        seed_streams(0, 1)
        origin = ti.Vector.field(3, dtype=ti.f32, shape=())
        direction = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            for _ in range(1):
                ray = get_ray(0.25, 0.75, 0)
                origin[None] = ray.origin
                direction[None] = ray.direction

        test_kernel()
        expected_origin, expected_direction = camera.pinhole_ray(0.25, 0.75)
        np.testing.assert_allclose(origin.to_numpy(), expected_origin, atol=1e-5)
        np.testing.assert_allclose(direction.to_numpy(), expected_direction, atol=1e-5)

    def test_defocus_rays_converge_on_focus_plane(self):
        from pathtracer.camera.thin_lens import get_ray, setup_camera
        from pathtracer.core.rng import seed_streams

        n = 256
        camera = _camera(aperture=0.5, focus_dist=4.0)
        setup_camera(camera)
        seed_streams(11, n)
        origins = ti.Vector.field(3, dtype=ti.f32, shape=n)
        targets = ti.Vector.field(3, dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                ray = get_ray(0.3, 0.6, i)
                origins[i] = ray.origin
                targets[i] = ray.origin + ray.direction

        test_kernel()
        o = origins.to_numpy()
        t = targets.to_numpy()

        # Lens points lie on the disk of radius 0.25 in the camera's xy-plane
        assert np.all(np.hypot(o[:, 0], o[:, 1]) < 0.25 + 1e-6)
        np.testing.assert_allclose(o[:, 2], 0.0, atol=1e-6)
        assert o[:, 0].max() - o[:, 0].min() > 0.1

        # Every ray passes through the same point on the focus plane
        _, pinhole_dir = camera.pinhole_ray(0.3, 0.6)
        np.testing.assert_allclose(t, np.tile(pinhole_dir, (n, 1)), atol=1e-5)
