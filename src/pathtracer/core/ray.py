"""Ray data structure, vector helpers and stream-based sampling.

All functions here run inside Taichi kernels. Random sampling draws from the
per-pixel streams in core.rng, so every sampler takes the caller's stream
index instead of using ti.random().

Example:
    >>> origin = tm.vec3(0.0, 0.0, 0.0)
    >>> direction = tm.vec3(0.0, 0.0, -1.0)
    >>> ray = Ray(origin=origin, direction=direction)
    >>> point = ray_at(ray, 5.0)  # Point 5 units along the ray
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.rng import next_float

vec3 = tm.vec3

# Attempts before rejection samplers give up and return their last candidate
_MAX_REJECTION_TRIES = 64


@ti.dataclass
class Ray:
    """A ray with an origin point and direction vector.

    Attributes:
        origin: The starting point of the ray (vec3).
        direction: The direction vector of the ray (vec3). Not required to be
            unit length; camera rays in particular are left unnormalized.
    """

    origin: vec3
    direction: vec3


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    """Compute the point origin + t * direction."""
    return ray.origin + t * ray.direction


# =============================================================================
# Vector Utility Functions
# =============================================================================


@ti.func
def length_squared(v: vec3) -> ti.f32:
    return tm.dot(v, v)


@ti.func
def reflect(incident: vec3, normal: vec3) -> vec3:
    """Reflect an incident vector about a unit normal.

    Args:
        incident: The incoming direction vector (pointing toward the surface).
        normal: The surface normal (unit length).

    Returns:
        The mirrored direction, incident - 2 * dot(incident, normal) * normal.
    """
    return incident - 2.0 * tm.dot(incident, normal) * normal


@ti.func
def refract(unit_incident: vec3, normal: vec3, eta_ratio: ti.f32) -> vec3:
    """Refract a unit incident vector through a surface by Snell's law.

    The caller is responsible for ruling out total internal reflection first;
    the parallel component is clamped so a grazing ray never produces NaN.

    Args:
        unit_incident: Incoming direction (unit length).
        normal: Unit normal on the incident side of the surface.
        eta_ratio: n_incident / n_transmitted.

    Returns:
        The refracted direction.
    """
    cos_theta = ti.min(tm.dot(-unit_incident, normal), 1.0)
    r_perp = eta_ratio * (unit_incident + cos_theta * normal)
    r_parallel = -ti.sqrt(ti.abs(1.0 - length_squared(r_perp))) * normal
    return r_perp + r_parallel


@ti.func
def schlick_reflectance(cosine: ti.f32, eta_ratio: ti.f32) -> ti.f32:
    """Schlick's approximation of Fresnel reflectance.

    Args:
        cosine: Cosine of the angle between the incident ray and the normal.
        eta_ratio: Ratio of refractive indices across the surface.

    Returns:
        The probability that the ray reflects rather than refracts.
    """
    r0 = (1.0 - eta_ratio) / (1.0 + eta_ratio)
    r0 = r0 * r0
    return r0 + (1.0 - r0) * ((1.0 - cosine) ** 5)


@ti.func
def near_zero(v: vec3) -> ti.i32:
    """Return 1 if every component of v is within 1e-8 of zero, else 0."""
    s = 1e-8
    result = 0
    if ti.abs(v.x) < s and ti.abs(v.y) < s and ti.abs(v.z) < s:
        result = 1
    return result


# =============================================================================
# Random Sampling Utilities for Monte Carlo
# =============================================================================


@ti.func
def random_in_unit_sphere(stream: ti.i32) -> vec3:
    """Generate a random point strictly inside the unit sphere.

    Uses rejection sampling on the [-1, 1]^3 cube. Points extremely close to
    the origin are rejected as well so the result can always be normalized.

    Args:
        stream: Random stream to draw from.

    Returns:
        A random point p with 1e-12 < |p|^2 < 1.
    """
    p = vec3(0.0, 0.0, 0.0)
    found = 0
    for _ in range(_MAX_REJECTION_TRIES):
        if found == 0:
            p = vec3(
                next_float(stream) * 2.0 - 1.0,
                next_float(stream) * 2.0 - 1.0,
                next_float(stream) * 2.0 - 1.0,
            )
            len_sq = length_squared(p)
            if len_sq > 1e-12 and len_sq < 1.0:
                found = 1
    return p


@ti.func
def random_unit_vector(stream: ti.i32) -> vec3:
    """Generate a unit vector uniformly distributed on the sphere."""
    return tm.normalize(random_in_unit_sphere(stream))


@ti.func
def random_in_unit_disk(stream: ti.i32) -> vec3:
    """Generate a random point inside the unit disk in the xy-plane.

    Used to pick the lens position for defocus blur.

    Args:
        stream: Random stream to draw from.

    Returns:
        A random point (x, y, 0) with x^2 + y^2 < 1.
    """
    p = vec3(0.0, 0.0, 0.0)
    found = 0
    for _ in range(_MAX_REJECTION_TRIES):
        if found == 0:
            p = vec3(next_float(stream) * 2.0 - 1.0, next_float(stream) * 2.0 - 1.0, 0.0)
            if p.x * p.x + p.y * p.y < 1.0:
                found = 1
    return p
