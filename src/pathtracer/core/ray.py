"""Rays, vector helpers and Monte Carlo direction sampling.

Everything here runs inside Taichi kernels. Points, directions and colors all
share the ``vec3`` representation; colors use component-wise products.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.core.ray import make_ray, ray_at, vec3
    >>> @ti.kernel
    ... def march() -> vec3:
    ...     ray = make_ray(vec3(0.0, 0.0, 0.0), vec3(0.0, 0.0, -2.0))
    ...     return ray_at(ray, 5.0)  # (0, 0, -5): the direction was normalized
"""

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3


@ti.dataclass
class Ray:
    """A ray ``origin + t * direction``.

    Attributes:
        origin: Starting point of the ray.
        direction: Direction of travel. Rays built with ``make_ray`` carry a
            unit direction; the raw dataclass does not enforce it.
    """

    origin: vec3
    direction: vec3


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    """Point reached after travelling parameter ``t`` along the ray."""
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3) -> Ray:
    """Build a ray with a normalized direction.

    Args:
        origin: Starting point.
        direction: Any non-degenerate direction vector.

    Returns:
        A Ray whose direction has unit length.
    """
    return Ray(origin=origin, direction=tm.normalize(direction))


# =============================================================================
# Vector Helpers
# =============================================================================


@ti.func
def length(v: vec3) -> ti.f32:
    """Euclidean length of ``v``."""
    return tm.length(v)


@ti.func
def length_squared(v: vec3) -> ti.f32:
    """Squared Euclidean length, avoiding the square root."""
    return tm.dot(v, v)


@ti.func
def normalize(v: vec3) -> vec3:
    """Unit vector along ``v``."""
    return tm.normalize(v)


@ti.func
def dot(a: vec3, b: vec3) -> ti.f32:
    """Dot product ``a . b``."""
    return tm.dot(a, b)


@ti.func
def cross(a: vec3, b: vec3) -> vec3:
    """Cross product ``a x b``."""
    return tm.cross(a, b)


@ti.func
def reflect(incident: vec3, normal: vec3) -> vec3:
    """Mirror ``incident`` about a unit ``normal``: ``I - 2 (I . N) N``."""
    return incident - 2.0 * tm.dot(incident, normal) * normal


@ti.func
def refract(incident: vec3, normal: vec3, eta: ti.f32) -> vec3:
    """Bend a unit direction through a surface following Snell's law.

    Args:
        incident: Unit incoming direction, pointing toward the surface.
        normal: Unit normal on the incoming side.
        eta: Ratio of refractive indices, n_incident / n_transmitted.

    Returns:
        The transmitted direction, or the zero vector under total internal
        reflection. Callers that already ruled out total internal reflection
        never see the zero vector.
    """
    cos_i = tm.min(-tm.dot(incident, normal), 1.0)
    sin2_t = eta * eta * (1.0 - cos_i * cos_i)
    result = vec3(0.0, 0.0, 0.0)
    if sin2_t <= 1.0:
        cos_t = ti.sqrt(1.0 - sin2_t)
        result = eta * incident + (eta * cos_i - cos_t) * normal
    return result


@ti.func
def schlick_fresnel(cosine: ti.f32, ref_idx: ti.f32) -> ti.f32:
    """Schlick's polynomial approximation of Fresnel reflectance.

    Args:
        cosine: Cosine of the incident angle.
        ref_idx: Refractive index ratio.

    Returns:
        Reflection probability in [0, 1].
    """
    r0 = (1.0 - ref_idx) / (1.0 + ref_idx)
    r0 = r0 * r0
    return r0 + (1.0 - r0) * ((1.0 - cosine) ** 5)


@ti.func
def near_zero(v: vec3) -> ti.i32:
    """1 when every component is within 1e-8 of zero."""
    s = 1e-8
    return ti.abs(v.x) < s and ti.abs(v.y) < s and ti.abs(v.z) < s


# =============================================================================
# Random Sampling
# =============================================================================
#
# All samplers draw from ti.random, whose generator state is private to the
# executing thread, so concurrent rows never share or lock a stream.


@ti.func
def random_in_unit_sphere() -> vec3:
    """Uniform point strictly inside the unit ball (rejection sampling)."""
    p = vec3(0.0, 0.0, 0.0)
    found = False
    for _ in range(100):
        if not found:
            p = vec3(
                ti.random(ti.f32) * 2.0 - 1.0,
                ti.random(ti.f32) * 2.0 - 1.0,
                ti.random(ti.f32) * 2.0 - 1.0,
            )
            if length_squared(p) < 1.0:
                found = True
    return p


@ti.func
def random_unit_vector() -> vec3:
    """Uniform direction on the unit sphere."""
    return normalize(random_in_unit_sphere())


@ti.func
def random_in_unit_disk() -> vec3:
    """Uniform point ``(x, y, 0)`` inside the unit disk, for lens sampling."""
    p = vec3(0.0, 0.0, 0.0)
    found = False
    for _ in range(100):
        if not found:
            p = vec3(
                ti.random(ti.f32) * 2.0 - 1.0,
                ti.random(ti.f32) * 2.0 - 1.0,
                0.0,
            )
            if p.x * p.x + p.y * p.y < 1.0:
                found = True
    return p


@ti.func
def random_cosine_direction() -> vec3:
    """Cosine-weighted direction about +z (density ``cos(theta) / pi``).

    Projects a uniform disk sample up onto the hemisphere:
    ``phi = 2 pi r1``, ``x = cos(phi) sqrt(r2)``, ``y = sin(phi) sqrt(r2)``,
    ``z = sqrt(1 - r2)``.
    """
    r1 = ti.random(ti.f32)
    r2 = ti.random(ti.f32)
    phi = 2.0 * tm.pi * r1
    sqrt_r2 = ti.sqrt(r2)
    x = ti.cos(phi) * sqrt_r2
    y = ti.sin(phi) * sqrt_r2
    z = ti.sqrt(1.0 - r2)
    return vec3(x, y, z)


@ti.func
def random_to_sphere(radius: ti.f32, distance_squared: ti.f32) -> vec3:
    """Uniform direction inside the cone subtended by a sphere, about +z.

    Args:
        radius: Sphere radius.
        distance_squared: Squared distance from the viewer to the center.

    Returns:
        A unit direction in the local frame whose z-axis points at the
        sphere's center.
    """
    r1 = ti.random(ti.f32)
    r2 = ti.random(ti.f32)
    cos_theta_max = ti.sqrt(tm.max(1.0 - radius * radius / distance_squared, 0.0))
    z = 1.0 + r2 * (cos_theta_max - 1.0)
    phi = 2.0 * tm.pi * r1
    sin_theta = ti.sqrt(tm.max(1.0 - z * z, 0.0))
    return vec3(ti.cos(phi) * sin_theta, ti.sin(phi) * sin_theta, z)


# =============================================================================
# Orthonormal Basis
# =============================================================================


@ti.func
def build_onb_from_normal(normal: vec3):
    """Orthonormal frame whose third axis is ``normalize(normal)``.

    Returns:
        A tuple (tangent, bitangent, w).
    """
    w = normalize(normal)
    a = vec3(1.0, 0.0, 0.0)
    if ti.abs(w.x) > 0.9:
        a = vec3(0.0, 1.0, 0.0)
    tangent = normalize(cross(a, w))
    bitangent = cross(w, tangent)
    return tangent, bitangent, w


@ti.func
def local_to_world(local_dir: vec3, tangent: vec3, bitangent: vec3, normal: vec3) -> vec3:
    """Express a local (z-up) direction in the world frame of the basis."""
    return local_dir.x * tangent + local_dir.y * bitangent + local_dir.z * normal
