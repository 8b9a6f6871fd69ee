"""Unit tests for sphere intersection.

Tests cover:
- Ray hitting a sphere from outside (front face)
- Ray missing a sphere, or pointing away from it
- Ray starting inside a sphere (back face)
- Open (t_min, t_max) interval boundaries
- Unnormalized directions and large/small spheres
- Spherical (u, v) coordinates of hits
- SphereInfo validation and bounding box
"""

import math

import pytest
import taichi as ti

from pathtracer.geometry.sphere import SphereInfo


def _trace_sphere(center, radius, origin, direction, t_min=0.001, t_max=1000.0):
    """Run hit_sphere in a kernel and return the record as Python values."""
    from pathtracer.geometry.sphere import Sphere, hit_sphere

    hit = ti.field(dtype=ti.i32, shape=())
    t_val = ti.field(dtype=ti.f32, shape=())
    point = ti.Vector.field(3, dtype=ti.f32, shape=())
    normal = ti.Vector.field(3, dtype=ti.f32, shape=())
    front_face = ti.field(dtype=ti.i32, shape=())
    uv = ti.Vector.field(2, dtype=ti.f32, shape=())

    @ti.kernel
    def test_kernel():
        sphere = Sphere(center=ti.math.vec3(center), radius=radius)
        rec = hit_sphere(ti.math.vec3(origin), ti.math.vec3(direction), sphere, t_min, t_max)
        hit[None] = rec.hit
        t_val[None] = rec.t
        point[None] = rec.point
        normal[None] = rec.normal
        front_face[None] = rec.front_face
        uv[None] = rec.uv

    test_kernel()
    return {
        "hit": hit[None],
        "t": t_val[None],
        "point": tuple(float(c) for c in point.to_numpy()),
        "normal": tuple(float(c) for c in normal.to_numpy()),
        "front_face": front_face[None],
        "uv": tuple(float(c) for c in uv.to_numpy()),
    }


class TestSphereIntersection:
    """Tests for ray-sphere intersection."""

    def test_direct_hit_from_outside(self):
        """Ray from z=5 toward a unit sphere at the origin hits at t=4."""
        rec = _trace_sphere((0.0, 0.0, 0.0), 1.0, (0.0, 0.0, 5.0), (0.0, 0.0, -1.0))
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(4.0, abs=1e-5)
        assert rec["point"] == pytest.approx((0.0, 0.0, 1.0), abs=1e-5)
        assert rec["normal"] == pytest.approx((0.0, 0.0, 1.0), abs=1e-5)
        assert rec["front_face"] == 1

    def test_miss(self):
        rec = _trace_sphere((0.0, 0.0, 0.0), 1.0, (2.0, 0.0, 5.0), (0.0, 0.0, -1.0))
        assert rec["hit"] == 0

    def test_sphere_behind_ray(self):
        rec = _trace_sphere((0.0, 0.0, 0.0), 1.0, (0.0, 0.0, 5.0), (0.0, 0.0, 1.0))
        assert rec["hit"] == 0

    def test_inside_hits_far_wall_as_back_face(self):
        """From the centre the only valid root is the exit point."""
        rec = _trace_sphere((0.0, 0.0, 0.0), 2.0, (0.0, 0.0, 0.0), (1.0, 0.0, 0.0))
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(2.0, abs=1e-5)
        assert rec["front_face"] == 0
        # Normal is flipped to oppose the ray
        assert rec["normal"] == pytest.approx((-1.0, 0.0, 0.0), abs=1e-5)

    def test_t_max_excludes_hit(self):
        rec = _trace_sphere((0.0, 0.0, 0.0), 1.0, (0.0, 0.0, 5.0), (0.0, 0.0, -1.0), t_max=3.9)
        assert rec["hit"] == 0

    def test_t_min_skips_near_root(self):
        """With t_min past the entry point the exit point is returned."""
        rec = _trace_sphere((0.0, 0.0, 0.0), 1.0, (0.0, 0.0, 5.0), (0.0, 0.0, -1.0), t_min=4.5)
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(6.0, abs=1e-5)
        assert rec["front_face"] == 0

    def test_unnormalized_direction(self):
        """t scales with the direction length; the point and normal do not."""
        rec = _trace_sphere((0.0, 0.0, 0.0), 1.0, (0.0, 0.0, 5.0), (0.0, 0.0, -2.0))
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(2.0, abs=1e-5)
        assert rec["point"] == pytest.approx((0.0, 0.0, 1.0), abs=1e-5)

    def test_normal_is_unit_at_oblique_hit(self):
        rec = _trace_sphere((0.0, 0.0, -3.0), 1.5, (0.0, 0.0, 0.0), (0.3, 0.2, -1.0))
        assert rec["hit"] == 1
        assert math.sqrt(sum(c * c for c in rec["normal"])) == pytest.approx(1.0, abs=1e-5)
        d = (0.3, 0.2, -1.0)
        assert sum(a * b for a, b in zip(rec["normal"], d)) < 0.0

    def test_large_distant_sphere(self):
        """Ground-sphere sized geometry stays numerically stable."""
        rec = _trace_sphere((0.0, -1000.0, 0.0), 1000.0, (0.0, 2.0, 0.0), (0.0, -1.0, 0.0))
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(2.0, abs=1e-3)
        assert rec["normal"] == pytest.approx((0.0, 1.0, 0.0), abs=1e-4)

    def test_small_sphere(self):
        rec = _trace_sphere((0.0, 0.0, -1.0), 0.01, (0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(0.99, abs=1e-4)

    @pytest.mark.parametrize(
        "origin, direction, uv",
        [
            ((0.0, 0.0, 5.0), (0.0, 0.0, -1.0), (0.25, 0.5)),
            ((5.0, 0.0, 0.0), (-1.0, 0.0, 0.0), (0.5, 0.5)),
            ((0.0, -5.0, 0.0), (0.0, 1.0, 0.0), (None, 0.0)),
            ((0.0, 5.0, 0.0), (0.0, -1.0, 0.0), (None, 1.0)),
        ],
    )
    def test_uv_from_outward_normal(self, origin, direction, uv):
        """u runs around the Y axis from X = -1, v from the south pole."""
        rec = _trace_sphere((0.0, 0.0, 0.0), 1.0, origin, direction)
        assert rec["hit"] == 1
        if uv[0] is not None:
            assert rec["uv"][0] == pytest.approx(uv[0], abs=1e-5)
        assert rec["uv"][1] == pytest.approx(uv[1], abs=1e-3)

    def test_uv_on_shifted_sphere(self):
        rec = _trace_sphere((3.0, 0.0, -2.0), 2.0, (3.0, 0.0, 5.0), (0.0, 0.0, -1.0))
        assert rec["uv"] == pytest.approx((0.25, 0.5), abs=1e-5)


class TestSphereInfo:
    """Tests for the scene-side sphere descriptor."""

    def test_bounding_box(self):
        box = SphereInfo((1.0, 2.0, 3.0), 0.5, material=None).bounding_box()
        assert box.minimum == (0.5, 1.5, 2.5)
        assert box.maximum == (1.5, 2.5, 3.5)

    def test_centroid_is_center(self):
        assert SphereInfo((1.0, -2.0, 3.0), 2.0, material=None).centroid() == (1.0, -2.0, 3.0)

    @pytest.mark.parametrize("radius", [0.0, -1.0, float("nan"), float("inf")])
    def test_invalid_radius(self, radius):
        with pytest.raises(ValueError):
            SphereInfo((0.0, 0.0, 0.0), radius, material=None)

    def test_invalid_center(self):
        with pytest.raises(ValueError):
            SphereInfo((0.0, 0.0), 1.0, material=None)
        with pytest.raises(ValueError):
            SphereInfo((0.0, float("nan"), 0.0), 1.0, material=None)
