"""Lambertian (ideal diffuse) material.

A Lambertian surface reflects incident light equally in all directions, so
its BRDF is the constant ``albedo / pi``. Scattering does not pick a
direction itself: it reports a cosine-weighted PDF about the surface normal
and leaves the draw to the integrator, which may mix it with light sampling.
The matching scattering density is

    scattering_pdf = max(0, cos(theta)) / pi

with theta measured between the normal and the normalized outgoing
direction. Albedo comes from a texture lookup at the hit's (u, v).

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.materials.lambertian import add_lambertian_material
    >>> idx = add_lambertian_material(albedo=(0.73, 0.73, 0.73))
"""

import taichi as ti
import taichi.math as tm

from pathtracer.materials.textures import add_solid_texture, texture_value

vec3 = tm.vec3


@ti.func
def lambertian_scattering_pdf(normal: vec3, scattered_direction: vec3) -> ti.f32:
    """Density ``max(0, cos(theta)) / pi`` of an outgoing direction.

    Args:
        normal: Unit surface normal.
        scattered_direction: Outgoing direction; normalized here.

    Returns:
        The density, 0 for directions below the surface.
    """
    cos_theta = tm.dot(normal, tm.normalize(scattered_direction))
    pdf = 0.0
    if cos_theta > 0.0:
        pdf = cos_theta / tm.pi
    return pdf


# =============================================================================
# Material Field Storage
# =============================================================================

MAX_LAMBERTIAN_MATERIALS = 1024

# Each Lambertian material references a texture for its albedo
lambertian_texture_ids = ti.field(dtype=ti.i32, shape=MAX_LAMBERTIAN_MATERIALS)
num_lambertian_materials = ti.field(dtype=ti.i32, shape=())


def clear_lambertian_materials() -> None:
    """Reset the Lambertian registry."""
    num_lambertian_materials[None] = 0


def add_lambertian_material(
    albedo: tuple[float, float, float] | None = None,
    texture_id: int | None = None,
) -> int:
    """Add a Lambertian material to the registry.

    Exactly one of ``albedo`` and ``texture_id`` is given. A plain albedo is
    stored as a new solid texture.

    Args:
        albedo: Diffuse reflectance (R, G, B), each component in [0, 1].
        texture_id: Id of an existing texture to use as albedo.

    Returns:
        The index of the added material.

    Raises:
        ValueError: If both or neither source is given, or if an albedo
            component is outside [0, 1].
        RuntimeError: If the registry is full.
    """
    if (albedo is None) == (texture_id is None):
        raise ValueError("Give exactly one of albedo or texture_id")

    idx = num_lambertian_materials[None]
    if idx >= MAX_LAMBERTIAN_MATERIALS:
        raise RuntimeError(
            f"Maximum number of Lambertian materials ({MAX_LAMBERTIAN_MATERIALS}) exceeded"
        )

    if albedo is not None:
        for i, component in enumerate(albedo):
            if component < 0.0 or component > 1.0:
                raise ValueError(
                    f"Albedo component {i} = {component} is outside [0, 1]. "
                    "This would violate energy conservation."
                )
        texture_id = add_solid_texture(albedo)

    lambertian_texture_ids[idx] = texture_id
    num_lambertian_materials[None] = idx + 1
    return idx


def get_lambertian_material_count() -> int:
    """Get the number of Lambertian materials in the registry."""
    return int(num_lambertian_materials[None])


@ti.func
def get_lambertian_albedo(material_idx: ti.i32, u: ti.f32, v: ti.f32, point: vec3) -> vec3:
    """Albedo of a Lambertian material at a surface point."""
    return texture_value(lambertian_texture_ids[material_idx], u, v, point)
