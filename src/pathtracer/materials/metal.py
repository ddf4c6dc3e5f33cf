"""Metal (specular reflective) material.

The incident direction is mirrored about the surface normal,

    R = I - 2(I . N)N

then perturbed by ``fuzz * random_in_unit_sphere()``. A fuzz of 0 is a
perfect mirror. A perturbed reflection that dips below the surface is kept
as-is rather than absorbed; it continues into the geometry behind it.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.materials.metal import add_metal_material
    >>> idx = add_metal_material(albedo=(0.8, 0.6, 0.2), fuzz=0.3)
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import random_in_unit_sphere, reflect

vec3 = tm.vec3


@ti.func
def scatter_metal(fuzz: ti.f32, incident_direction: vec3, normal: vec3) -> vec3:
    """Fuzzed mirror reflection of ``incident_direction``.

    Args:
        fuzz: Perturbation radius in [0, 1].
        incident_direction: Incoming unit direction.
        normal: Unit surface normal facing the incoming ray.

    Returns:
        The reflected direction (not normalized).
    """
    reflected = reflect(tm.normalize(incident_direction), normal)
    return reflected + fuzz * random_in_unit_sphere()


# =============================================================================
# Material Field Storage
# =============================================================================

MAX_METAL_MATERIALS = 256

metal_albedos = ti.Vector.field(3, dtype=ti.f32, shape=MAX_METAL_MATERIALS)
metal_fuzzes = ti.field(dtype=ti.f32, shape=MAX_METAL_MATERIALS)
num_metal_materials = ti.field(dtype=ti.i32, shape=())


def clear_metal_materials() -> None:
    """Reset the metal registry; stored entries are overwritten on reuse."""
    num_metal_materials[None] = 0


def add_metal_material(
    albedo: tuple[float, float, float],
    fuzz: float = 0.0,
) -> int:
    """Add a metal material to the registry.

    Args:
        albedo: Reflective color (R, G, B), each component in [0, 1].
        fuzz: Roughness of the reflection. Clamped to [0, 1].

    Returns:
        The index of the added material.

    Raises:
        ValueError: If any albedo component is outside [0, 1].
        RuntimeError: If the registry is full.
    """
    for i, component in enumerate(albedo):
        if component < 0.0 or component > 1.0:
            raise ValueError(
                f"Albedo component {i} = {component} is outside [0, 1]. "
                "This would violate energy conservation."
            )

    idx = num_metal_materials[None]
    if idx >= MAX_METAL_MATERIALS:
        raise RuntimeError(
            f"Maximum number of metal materials ({MAX_METAL_MATERIALS}) exceeded"
        )

    metal_albedos[idx] = vec3(albedo[0], albedo[1], albedo[2])
    metal_fuzzes[idx] = min(max(fuzz, 0.0), 1.0)
    num_metal_materials[None] = idx + 1
    return idx


def get_metal_material_count() -> int:
    """Number of metal materials in the registry."""
    return int(num_metal_materials[None])


def get_metal_fuzz_value(material_idx: int) -> float:
    """Stored (clamped) fuzz of a metal material, read from the host."""
    return float(metal_fuzzes[material_idx])


@ti.func
def get_metal_albedo(material_idx: ti.i32) -> vec3:
    """Reflective color of a metal material."""
    return metal_albedos[material_idx]


@ti.func
def get_metal_fuzz(material_idx: ti.i32) -> ti.f32:
    """Clamped fuzz of a metal material."""
    return metal_fuzzes[material_idx]
