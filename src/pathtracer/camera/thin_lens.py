"""Thin-lens camera model with defocus blur.

The camera builds an orthonormal basis (u, v, w) from the view parameters:
- w: points from look_at toward look_from (opposite the view direction)
- u: points right in the image plane
- v: points up in the image plane

The viewport sits at focus_dist in front of the camera and is
2 * tan(vfov / 2) * focus_dist tall. Rays start at a random point on a lens
disk of radius aperture / 2 and pass through the viewport point for the
requested image coordinates, so only geometry at focus_dist is sharp. With a
zero aperture every ray starts at look_from (a pinhole camera).

Example:
    >>> camera = ThinLensCamera(
    ...     look_from=(13.0, 2.0, 3.0),
    ...     look_at=(0.0, 0.0, 0.0),
    ...     vfov=20.0,
    ...     aspect_ratio=16.0 / 9.0,
    ...     aperture=0.1,
    ...     focus_dist=10.0,
    ... )
    >>> setup_camera(camera)
    >>> @ti.kernel
    ... def render():
    ...     ray = get_ray(0.5, 0.5, stream)  # Ray through the image centre
"""

import math
from dataclasses import dataclass

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import Ray, random_in_unit_disk, vec3

# =============================================================================
# Camera Data Structures
# =============================================================================


@dataclass(frozen=True)
class ThinLensCamera:
    """Configuration for a thin-lens camera.

    Attributes:
        look_from: Camera position in world space.
        look_at: Point the camera is aimed at.
        vup: Approximate up direction; must not be parallel to the view axis.
        vfov: Vertical field of view in degrees, in (0, 180).
        aspect_ratio: Image width divided by height.
        aperture: Lens diameter; 0 disables defocus blur.
        focus_dist: Distance from look_from to the plane in perfect focus.
    """

    look_from: tuple[float, float, float]
    look_at: tuple[float, float, float]
    vup: tuple[float, float, float] = (0.0, 1.0, 0.0)
    vfov: float = 90.0
    aspect_ratio: float = 16.0 / 9.0
    aperture: float = 0.0
    focus_dist: float = 1.0

    def __post_init__(self) -> None:
        for name in ("look_from", "look_at", "vup"):
            value = getattr(self, name)
            if len(value) != 3:
                raise ValueError(f"Camera {name} must have three components, got {value!r}")
            value = tuple(float(c) for c in value)
            if not all(math.isfinite(c) for c in value):
                raise ValueError(f"Camera {name} must be finite, got {value}")
            object.__setattr__(self, name, value)

        if not 0.0 < self.vfov < 180.0:
            raise ValueError(f"Vertical field of view must be in (0, 180), got {self.vfov}")
        if not self.aspect_ratio > 0.0:
            raise ValueError(f"Aspect ratio must be positive, got {self.aspect_ratio}")
        if not self.aperture >= 0.0:
            raise ValueError(f"Aperture must be non-negative, got {self.aperture}")
        if not self.focus_dist > 0.0:
            raise ValueError(f"Focus distance must be positive, got {self.focus_dist}")

        view = np.subtract(self.look_from, self.look_at)
        if np.linalg.norm(view) == 0.0:
            raise ValueError("Camera look_from and look_at must differ")
        if np.linalg.norm(np.cross(self.vup, view)) < 1e-9 * np.linalg.norm(view):
            raise ValueError("Camera vup must not be parallel to the view direction")

    @property
    def lens_radius(self) -> float:
        return self.aperture / 2.0

    def basis(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Orthonormal (u, v, w) frame of the camera, in float64."""
        w = np.subtract(self.look_from, self.look_at).astype(np.float64)
        w /= np.linalg.norm(w)
        u = np.cross(self.vup, w)
        u /= np.linalg.norm(u)
        v = np.cross(w, u)
        return u, v, w

    def viewport(self) -> dict[str, np.ndarray]:
        """Origin, horizontal/vertical spans and lower-left corner of the viewport."""
        h = math.tan(math.radians(self.vfov) / 2.0)
        viewport_height = 2.0 * h * self.focus_dist
        viewport_width = self.aspect_ratio * viewport_height

        u, v, w = self.basis()
        origin = np.asarray(self.look_from, dtype=np.float64)
        horizontal = viewport_width * u
        vertical = viewport_height * v
        lower_left = origin - horizontal / 2.0 - vertical / 2.0 - self.focus_dist * w
        return {
            "origin": origin,
            "horizontal": horizontal,
            "vertical": vertical,
            "lower_left": lower_left,
        }

    def pinhole_ray(self, s: float, t: float) -> tuple[np.ndarray, np.ndarray]:
        """Ray through (s, t) from the lens centre, ignoring defocus.

        Args:
            s: Horizontal image coordinate, 0 at the left edge.
            t: Vertical image coordinate, 0 at the bottom edge.

        Returns:
            (origin, direction) as float64 arrays; direction is unnormalized.
        """
        vp = self.viewport()
        target = vp["lower_left"] + s * vp["horizontal"] + t * vp["vertical"]
        return vp["origin"], target - vp["origin"]


# =============================================================================
# Taichi Fields for Camera State
# =============================================================================

_camera_origin = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_u = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_v = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_w = ti.Vector.field(3, dtype=ti.f32, shape=())
_viewport_horizontal = ti.Vector.field(3, dtype=ti.f32, shape=())
_viewport_vertical = ti.Vector.field(3, dtype=ti.f32, shape=())
_lower_left_corner = ti.Vector.field(3, dtype=ti.f32, shape=())
_lens_radius = ti.field(dtype=ti.f32, shape=())


def setup_camera(camera: ThinLensCamera) -> None:
    """Upload a camera's derived frame and viewport to the device.

    Must be called from Python before any kernel that uses get_ray.

    Args:
        camera: Camera configuration.
    """
    u, v, w = camera.basis()
    vp = camera.viewport()

    _camera_origin[None] = vp["origin"].tolist()
    _camera_u[None] = u.tolist()
    _camera_v[None] = v.tolist()
    _camera_w[None] = w.tolist()
    _viewport_horizontal[None] = vp["horizontal"].tolist()
    _viewport_vertical[None] = vp["vertical"].tolist()
    _lower_left_corner[None] = vp["lower_left"].tolist()
    _lens_radius[None] = camera.lens_radius


# =============================================================================
# Ray Generation
# =============================================================================


@ti.func
def get_ray(s: ti.f32, t: ti.f32, stream: ti.i32) -> Ray:
    """Generate a camera ray through normalized image coordinates (s, t).

    - s = 0: left edge, s = 1: right edge
    - t = 0: bottom edge, t = 1: top edge

    No random numbers are drawn when the lens radius is zero.

    Args:
        s: Horizontal coordinate in [0, 1].
        t: Vertical coordinate in [0, 1].
        stream: Random stream used to pick the lens point.

    Returns:
        A Ray from the lens point toward the viewport point. The direction is
        not normalized.
    """
    offset = vec3(0.0, 0.0, 0.0)
    lens_radius = _lens_radius[None]
    if lens_radius > 0.0:
        rd = lens_radius * random_in_unit_disk(stream)
        offset = _camera_u[None] * rd.x + _camera_v[None] * rd.y

    origin = _camera_origin[None] + offset
    target = (
        _lower_left_corner[None] + s * _viewport_horizontal[None] + t * _viewport_vertical[None]
    )
    return Ray(origin=origin, direction=target - origin)


def get_camera_info() -> dict[str, tuple[float, ...] | float]:
    """Read back the uploaded camera state for debugging.

    Returns:
        Dictionary with origin, u, v, w, horizontal, vertical, lower_left and
        lens_radius.
    """

    def _read(f) -> tuple[float, float, float]:
        vec = f[None]
        return (float(vec[0]), float(vec[1]), float(vec[2]))

    return {
        "origin": _read(_camera_origin),
        "u": _read(_camera_u),
        "v": _read(_camera_v),
        "w": _read(_camera_w),
        "horizontal": _read(_viewport_horizontal),
        "vertical": _read(_viewport_vertical),
        "lower_left": _read(_lower_left_corner),
        "lens_radius": float(_lens_radius[None]),
    }
