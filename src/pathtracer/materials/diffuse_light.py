"""Diffuse area light material.

An emitter never scatters: paths end on it and collect its emission, a
texture lookup at the hit point. Emission is one-sided-agnostic; both faces
of a light quad emit.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.materials.diffuse_light import add_diffuse_light_material
    >>> lamp = add_diffuse_light_material(emission=(15.0, 15.0, 15.0))
"""

import taichi as ti
import taichi.math as tm

from pathtracer.materials.textures import add_solid_texture, texture_value

vec3 = tm.vec3

MAX_DIFFUSE_LIGHT_MATERIALS = 64

diffuse_light_texture_ids = ti.field(dtype=ti.i32, shape=MAX_DIFFUSE_LIGHT_MATERIALS)
num_diffuse_light_materials = ti.field(dtype=ti.i32, shape=())


def clear_diffuse_light_materials() -> None:
    """Reset the diffuse light registry."""
    num_diffuse_light_materials[None] = 0


def add_diffuse_light_material(
    emission: tuple[float, float, float] | None = None,
    texture_id: int | None = None,
) -> int:
    """Add an emissive material to the registry.

    Args:
        emission: Emitted radiance (R, G, B). Components may exceed 1 but
            must not be negative.
        texture_id: Id of an existing texture to use as emission.

    Returns:
        The index of the added material.

    Raises:
        ValueError: If both or neither source is given, or if an emission
            component is negative.
        RuntimeError: If the registry is full.
    """
    if (emission is None) == (texture_id is None):
        raise ValueError("Give exactly one of emission or texture_id")

    idx = num_diffuse_light_materials[None]
    if idx >= MAX_DIFFUSE_LIGHT_MATERIALS:
        raise RuntimeError(
            f"Maximum number of diffuse light materials ({MAX_DIFFUSE_LIGHT_MATERIALS}) exceeded"
        )

    if emission is not None:
        for i, component in enumerate(emission):
            if component < 0.0:
                raise ValueError(f"Emission component {i} = {component} is negative")
        texture_id = add_solid_texture(emission)

    diffuse_light_texture_ids[idx] = texture_id
    num_diffuse_light_materials[None] = idx + 1
    return idx


def get_diffuse_light_material_count() -> int:
    """Number of diffuse light materials in the registry."""
    return int(num_diffuse_light_materials[None])


@ti.func
def get_diffuse_light_emission(material_idx: ti.i32, u: ti.f32, v: ti.f32, point: vec3) -> vec3:
    """Emitted radiance of a diffuse light at a surface point."""
    return texture_value(diffuse_light_texture_ids[material_idx], u, v, point)
