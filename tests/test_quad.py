"""Unit tests for quad intersection.

Tests cover:
- Front and back face hits
- Edges and corners (inclusive bounds)
- Misses outside the bounds, parallel rays and quads behind the ray
- Planar (u, v) coordinates of hits
- Hits on rotated and translated quads and box faces
- QuadInfo validation, padded bounding box and create_box
"""

import pytest
import taichi as ti

from pathtracer.geometry.box import BoxInfo, create_box
from pathtracer.geometry.quad import QuadInfo

# Unit square in the z = 0 plane; cross(u, v) = +z
UNIT_Q = (0.0, 0.0, 0.0)
UNIT_U = (1.0, 0.0, 0.0)
UNIT_V = (0.0, 1.0, 0.0)


def _trace_quad(origin, direction, q=UNIT_Q, u=UNIT_U, v=UNIT_V, t_min=0.001, t_max=1000.0):
    """Run hit_quad in a kernel and return the record as Python values."""
    from pathtracer.geometry.quad import Quad, hit_quad

    hit = ti.field(dtype=ti.i32, shape=())
    t_val = ti.field(dtype=ti.f32, shape=())
    normal = ti.Vector.field(3, dtype=ti.f32, shape=())
    front_face = ti.field(dtype=ti.i32, shape=())
    uv = ti.Vector.field(2, dtype=ti.f32, shape=())

    @ti.kernel
    def test_kernel():
        quad = Quad(Q=ti.math.vec3(q), u=ti.math.vec3(u), v=ti.math.vec3(v))
        rec = hit_quad(ti.math.vec3(origin), ti.math.vec3(direction), quad, t_min, t_max)
        hit[None] = rec.hit
        t_val[None] = rec.t
        normal[None] = rec.normal
        front_face[None] = rec.front_face
        uv[None] = rec.uv

    test_kernel()
    return {
        "hit": hit[None],
        "t": t_val[None],
        "normal": tuple(float(c) for c in normal.to_numpy()),
        "front_face": front_face[None],
        "uv": tuple(float(c) for c in uv.to_numpy()),
    }


class TestQuadIntersection:
    """Tests for ray-quad intersection."""

    def test_hit_center_front_face(self):
        rec = _trace_quad((0.5, 0.5, 2.0), (0.0, 0.0, -1.0))
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(2.0, abs=1e-5)
        assert rec["front_face"] == 1
        assert rec["normal"] == pytest.approx((0.0, 0.0, 1.0), abs=1e-6)

    def test_hit_back_face(self):
        rec = _trace_quad((0.5, 0.5, -2.0), (0.0, 0.0, 1.0))
        assert rec["hit"] == 1
        assert rec["front_face"] == 0
        assert rec["normal"] == pytest.approx((0.0, 0.0, -1.0), abs=1e-6)

    @pytest.mark.parametrize("x, y", [(0.0, 0.5), (1.0, 0.5), (0.0, 0.0), (1.0, 1.0)])
    def test_edges_and_corners_hit(self, x, y):
        rec = _trace_quad((x, y, 1.0), (0.0, 0.0, -1.0))
        assert rec["hit"] == 1

    def test_miss_outside_bounds(self):
        rec = _trace_quad((1.5, 0.5, 1.0), (0.0, 0.0, -1.0))
        assert rec["hit"] == 0

    def test_miss_parallel_ray(self):
        rec = _trace_quad((0.5, 0.5, 1.0), (1.0, 0.0, 0.0))
        assert rec["hit"] == 0

    def test_miss_behind_ray(self):
        rec = _trace_quad((0.5, 0.5, 1.0), (0.0, 0.0, 1.0))
        assert rec["hit"] == 0

    def test_t_max_excludes_hit(self):
        rec = _trace_quad((0.5, 0.5, 2.0), (0.0, 0.0, -1.0), t_max=1.5)
        assert rec["hit"] == 0

    def test_oblique_hit_on_floor(self):
        """A Cornell-box floor hit from above at an angle."""
        rec = _trace_quad(
            (100.0, 300.0, 100.0),
            (0.2, -1.0, 0.3),
            q=(0.0, 0.0, 0.0),
            u=(0.0, 0.0, 555.0),
            v=(555.0, 0.0, 0.0),
        )
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(300.0, rel=1e-4)
        assert rec["normal"] == pytest.approx((0.0, 1.0, 0.0), abs=1e-6)

    def test_uv_are_planar_coordinates(self):
        rec = _trace_quad((0.25, 0.75, 2.0), (0.0, 0.0, -1.0))
        assert rec["uv"] == pytest.approx((0.25, 0.75), abs=1e-6)

    def test_uv_along_each_edge(self):
        rec = _trace_quad(
            (100.0, 300.0, 100.0),
            (0.2, -1.0, 0.3),
            q=(0.0, 0.0, 0.0),
            u=(0.0, 0.0, 555.0),
            v=(555.0, 0.0, 0.0),
        )
        assert rec["uv"] == pytest.approx((190.0 / 555.0, 160.0 / 555.0), abs=1e-4)

    def test_rotated_quad_is_hit_where_it_moved(self):
        quad = QuadInfo(UNIT_Q, UNIT_U, UNIT_V, None)
        quad = quad.rotated((0.0, 1.0, 0.0), 90.0).translated((0.0, 0.0, 3.0))
        # Now spans x = 0, y in [0, 1], z in [2, 3] and faces +x
        rec = _trace_quad(
            (2.0, 0.5, 2.5), (-1.0, 0.0, 0.0), q=quad.corner, u=quad.edge_u, v=quad.edge_v
        )
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(2.0, abs=1e-5)
        assert rec["front_face"] == 1
        assert rec["normal"] == pytest.approx((1.0, 0.0, 0.0), abs=1e-6)

        miss = _trace_quad(
            (2.0, 0.5, 0.5), (-1.0, 0.0, 0.0), q=quad.corner, u=quad.edge_u, v=quad.edge_v
        )
        assert miss["hit"] == 0

    def test_box_face_hit_after_rotation(self):
        box = BoxInfo.from_corners((-1.0, 0.0, -1.0), (1.0, 1.0, 1.0)).rotated((0, 1, 0), 45.0)
        front = box.faces()[0]
        # Rotated front face normal is (sin 45, 0, cos 45)
        direction = tuple(-c for c in front.normal())
        rec = _trace_quad(
            (3.0, 0.5, 3.0), direction, q=front.corner, u=front.edge_u, v=front.edge_v
        )
        assert rec["hit"] == 1
        assert rec["front_face"] == 1
        assert rec["t"] == pytest.approx(3.0 * 2.0**0.5 - 1.0, abs=1e-4)


class TestQuadInfo:
    """Tests for the scene-side quad descriptor."""

    def test_bounding_box_is_padded_on_flat_axis(self):
        box = QuadInfo(UNIT_Q, UNIT_U, UNIT_V, material=None).bounding_box()
        assert box.minimum[0] == 0.0 and box.maximum[0] == 1.0
        assert box.minimum[2] < 0.0 < box.maximum[2]

    def test_vertices(self):
        verts = QuadInfo((1.0, 1.0, 1.0), (2.0, 0.0, 0.0), (0.0, 3.0, 0.0), None).vertices()
        assert verts == (
            (1.0, 1.0, 1.0),
            (3.0, 1.0, 1.0),
            (1.0, 4.0, 1.0),
            (3.0, 4.0, 1.0),
        )

    def test_normal(self):
        assert QuadInfo(UNIT_Q, UNIT_U, UNIT_V, None).normal() == (0.0, 0.0, 1.0)

    def test_parallel_edges_rejected(self):
        with pytest.raises(ValueError):
            QuadInfo(UNIT_Q, (1.0, 0.0, 0.0), (2.0, 0.0, 0.0), None)

    def test_wrong_component_count_rejected(self):
        with pytest.raises(ValueError):
            QuadInfo(UNIT_Q, (1.0, 0.0), UNIT_V, None)


class TestCreateBox:
    """Tests for the six-quad box helper."""

    def test_six_outward_faces(self):
        faces = create_box((0.0, 0.0, 0.0), (1.0, 2.0, 3.0), material=None)
        assert len(faces) == 6
        center = (0.5, 1.0, 1.5)
        for face in faces:
            verts = face.vertices()
            face_center = tuple(sum(v[i] for v in verts) / 4.0 for i in range(3))
            outward = tuple(f - c for f, c in zip(face_center, center))
            assert sum(n * o for n, o in zip(face.normal(), outward)) > 0.0

    def test_corners_in_any_order(self):
        a = create_box((1.0, 2.0, 3.0), (0.0, 0.0, 0.0), material=None)
        b = create_box((0.0, 0.0, 0.0), (1.0, 2.0, 3.0), material=None)
        assert a == b
