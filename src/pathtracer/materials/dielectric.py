"""Dielectric (glass/water) material.

Light either reflects or refracts at a dielectric boundary:

    - Snell's law: n1 sin(theta1) = n2 sin(theta2)
    - Total internal reflection when (n1 / n2) sin(theta1) > 1
    - Otherwise reflect with probability schlick(cos(theta1), n1 / n2)

Attenuation is always white; clear dielectrics absorb nothing.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.materials.dielectric import add_dielectric_material
    >>> glass = add_dielectric_material(ior=1.5)
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import reflect, refract, schlick_fresnel

vec3 = tm.vec3


@ti.func
def _refraction_ratio(ior: ti.f32, front_face: ti.i32) -> ti.f32:
    # Entering the material goes from air (1.0) to ior, leaving goes back
    ratio = ior
    if front_face == 1:
        ratio = 1.0 / ior
    return ratio


@ti.func
def will_reflect(ior: ti.f32, incident_direction: vec3, normal: vec3, front_face: ti.i32) -> ti.i32:
    """1 if the ray is totally internally reflected."""
    ratio = _refraction_ratio(ior, front_face)
    cos_theta = tm.min(-tm.dot(tm.normalize(incident_direction), normal), 1.0)
    sin_theta = ti.sqrt(tm.max(1.0 - cos_theta * cos_theta, 0.0))
    return 1 if ratio * sin_theta > 1.0 else 0


@ti.func
def fresnel_reflectance(
    ior: ti.f32, incident_direction: vec3, normal: vec3, front_face: ti.i32
) -> ti.f32:
    """Schlick reflection probability for a ray meeting the boundary."""
    ratio = _refraction_ratio(ior, front_face)
    cos_theta = tm.min(-tm.dot(tm.normalize(incident_direction), normal), 1.0)
    return schlick_fresnel(cos_theta, ratio)


@ti.func
def scatter_dielectric(
    ior: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
) -> vec3:
    """Reflected or refracted continuation direction.

    Args:
        ior: Index of refraction of the material.
        incident_direction: Incoming direction; normalized here.
        normal: Unit normal facing the incoming ray.
        front_face: 1 when entering the material, 0 when leaving it.

    Returns:
        Unit outgoing direction.
    """
    unit_direction = tm.normalize(incident_direction)

    scattered = vec3(0.0, 0.0, 0.0)
    if will_reflect(ior, unit_direction, normal, front_face) == 1:
        scattered = reflect(unit_direction, normal)
    elif ti.random(ti.f32) < fresnel_reflectance(ior, unit_direction, normal, front_face):
        scattered = reflect(unit_direction, normal)
    else:
        scattered = refract(unit_direction, normal, _refraction_ratio(ior, front_face))
    return tm.normalize(scattered)


# =============================================================================
# Material Field Storage
# =============================================================================

MAX_DIELECTRIC_MATERIALS = 256

dielectric_iors = ti.field(dtype=ti.f32, shape=MAX_DIELECTRIC_MATERIALS)
num_dielectric_materials = ti.field(dtype=ti.i32, shape=())


def clear_dielectric_materials() -> None:
    """Reset the dielectric registry."""
    num_dielectric_materials[None] = 0


def add_dielectric_material(ior: float = 1.5) -> int:
    """Add a dielectric material to the registry.

    Args:
        ior: Index of refraction. Values below 1 model a bubble of a thinner
            medium, for example air inside water.

    Returns:
        The index of the added material.

    Raises:
        ValueError: If ``ior`` is not positive.
        RuntimeError: If the registry is full.
    """
    if ior <= 0.0:
        raise ValueError(f"Index of refraction must be positive, got {ior}")

    idx = num_dielectric_materials[None]
    if idx >= MAX_DIELECTRIC_MATERIALS:
        raise RuntimeError(
            f"Maximum number of dielectric materials ({MAX_DIELECTRIC_MATERIALS}) exceeded"
        )

    dielectric_iors[idx] = ior
    num_dielectric_materials[None] = idx + 1
    return idx


def get_dielectric_material_count() -> int:
    """Number of dielectric materials in the registry."""
    return int(num_dielectric_materials[None])


@ti.func
def get_dielectric_ior(material_idx: ti.i32) -> ti.f32:
    """Index of refraction of a dielectric material."""
    return dielectric_iors[material_idx]
