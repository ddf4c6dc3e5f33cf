"""Sphere primitive: intersection, surface parametrization and light sampling.

Intersection uses the robust quadratic formula from Ray Tracing Gems
(chapter 7) so grazing rays do not lose precision to catastrophic
cancellation. Spheres can also act as light sources: ``sphere_pdf_value``
and ``sphere_random`` sample the cone of directions the sphere subtends from
a shading point.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.geometry.sphere import Sphere, hit_sphere, vec3
    >>> sphere = Sphere(center=vec3(0, 0, -1), radius=0.5)
    >>> # hit_sphere(origin, direction, sphere, 0.001, 1e10) inside a kernel
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import build_onb_from_normal, local_to_world, random_to_sphere
from pathtracer.geometry.aabb import AABB

vec3 = tm.vec3

# Lower bound used when probing a light shape from a shading point
PDF_T_MIN = 0.001
PDF_T_MAX = 1e10


@ti.dataclass
class Sphere:
    """A sphere defined by center point and radius."""

    center: vec3
    radius: ti.f32


@ti.dataclass
class HitRecord:
    """Record of a ray-primitive intersection.

    All fields other than ``hit`` are only meaningful when ``hit == 1``.

    Attributes:
        hit: 1 if the ray intersected the primitive, 0 on a miss.
        t: Ray parameter of the intersection.
        point: World-space intersection point.
        normal: Unit surface normal, oriented against the incoming ray.
        front_face: 1 if the ray arrived from the outward-facing side.
        u: First surface coordinate in [0, 1].
        v: Second surface coordinate in [0, 1].
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32
    u: ti.f32
    v: ti.f32


@ti.func
def _solve_quadratic_robust(h: ti.f32, a: ti.f32, c: ti.f32, sqrt_d: ti.f32):
    """Roots of ``a t^2 + 2 h t + c = 0`` in ascending order.

    Args:
        h: Half of the linear coefficient.
        a: Quadratic coefficient.
        c: Constant term.
        sqrt_d: Square root of the reduced discriminant ``h^2 - a c``.

    Returns:
        Tuple (t0, t1) with t0 <= t1.
    """
    # q = -(h + sign(h) sqrt(d)) never subtracts nearly equal quantities
    sign_h = ti.select(h < 0.0, -1.0, 1.0)
    q = -(h + sign_h * sqrt_d)

    t0 = 0.0
    t1 = 0.0
    if ti.abs(q) < 1e-10:
        t0 = (-h - sqrt_d) / a
        t1 = (-h + sqrt_d) / a
    else:
        t0 = q / a
        t1 = c / q

    if t0 > t1:
        temp = t0
        t0 = t1
        t1 = temp

    return t0, t1


@ti.func
def sphere_uv(p: vec3):
    """Spherical (u, v) of a point on the unit sphere.

    ``u = 1 - (atan2(z, x) + pi) / (2 pi)`` sweeps longitude and
    ``v = (asin(y) + pi / 2) / pi`` runs from the south pole (0) to the
    north pole (1).
    """
    phi = tm.atan2(p.z, p.x)
    theta = ti.asin(tm.clamp(p.y, -1.0, 1.0))
    u = 1.0 - (phi + tm.pi) / (2.0 * tm.pi)
    v = (theta + tm.pi / 2.0) / tm.pi
    return u, v


@ti.func
def hit_sphere(
    ray_origin: vec3,
    ray_direction: vec3,
    sphere: Sphere,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Nearest intersection of a ray with a sphere inside ``(t_min, t_max)``.

    Solves ``|origin + t dir - center|^2 = r^2`` written in half-b form,
    ``a t^2 + 2 h t + c = 0`` with ``a = dir . dir``, ``h = dir . oc``,
    ``c = oc . oc - r^2`` and ``oc = origin - center``. The smaller root wins
    when it lies in the open interval, otherwise the larger one is tried.

    The outward normal is ``(point - center) / radius``; when the ray
    travels along it (leaving the sphere) the stored normal is flipped and
    ``front_face`` is cleared.

    Args:
        ray_origin: Ray origin.
        ray_direction: Ray direction (need not be normalized).
        sphere: Sphere to test.
        t_min: Exclusive lower bound on t.
        t_max: Exclusive upper bound on t.

    Returns:
        A HitRecord; ``hit`` is 0 on a miss.
    """
    oc = ray_origin - sphere.center
    a = tm.dot(ray_direction, ray_direction)
    h = tm.dot(ray_direction, oc)
    c = tm.dot(oc, oc) - sphere.radius * sphere.radius
    discriminant = h * h - a * c

    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    is_front_face = 0
    hit_u = 0.0
    hit_v = 0.0

    if discriminant >= 0.0:
        sqrt_d = ti.sqrt(discriminant)
        t0, t1 = _solve_quadratic_robust(h, a, c, sqrt_d)

        t = t0
        valid = (t > t_min) and (t < t_max)
        if not valid:
            t = t1
            valid = (t > t_min) and (t < t_max)

        if valid:
            did_hit = 1
            hit_t = t
            hit_point = ray_origin + t * ray_direction
            outward_normal = (hit_point - sphere.center) / sphere.radius
            hit_u, hit_v = sphere_uv(outward_normal)

            if tm.dot(ray_direction, outward_normal) > 0.0:
                is_front_face = 0
                hit_normal = -outward_normal
            else:
                is_front_face = 1
                hit_normal = outward_normal

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        front_face=is_front_face,
        u=hit_u,
        v=hit_v,
    )


@ti.func
def sphere_pdf_value(sphere: Sphere, origin: vec3, direction: vec3) -> ti.f32:
    """Solid-angle density of ``sphere_random`` for a given direction.

    Zero when the ray from ``origin`` misses the sphere, otherwise
    ``1 / (2 pi (1 - cos_theta_max))`` with
    ``cos_theta_max = sqrt(1 - r^2 / |center - origin|^2)``.
    """
    rec = hit_sphere(origin, direction, sphere, PDF_T_MIN, PDF_T_MAX)
    result = 0.0
    if rec.hit == 1:
        offset = sphere.center - origin
        distance_squared = tm.dot(offset, offset)
        cos_theta_max = ti.sqrt(
            tm.max(1.0 - sphere.radius * sphere.radius / distance_squared, 0.0)
        )
        solid_angle = 2.0 * tm.pi * (1.0 - cos_theta_max)
        result = 1.0 / solid_angle
    return result


@ti.func
def sphere_random(sphere: Sphere, origin: vec3) -> vec3:
    """Direction drawn uniformly from the cone the sphere subtends at ``origin``."""
    direction = sphere.center - origin
    distance_squared = tm.dot(direction, direction)
    tangent, bitangent, w = build_onb_from_normal(direction)
    local = random_to_sphere(sphere.radius, distance_squared)
    return local_to_world(local, tangent, bitangent, w)


# =============================================================================
# Host-side Helpers
# =============================================================================


def sphere_bounding_box(center: tuple[float, float, float], radius: float) -> AABB:
    """Box spanning ``center - |radius|`` to ``center + |radius|``."""
    r = abs(radius)
    return AABB(
        (center[0] - r, center[1] - r, center[2] - r),
        (center[0] + r, center[1] + r, center[2] + r),
    )
