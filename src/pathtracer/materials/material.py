"""Unified material ids and per-hit material dispatch.

Every material gets one id in a shared id space regardless of its type. The
id maps to a ``MaterialType`` tag and an index into that type's registry,
and the device-side entry points below match on the tag:

    scatter         -> ScatterRecord (absorbed, specular ray, or diffuse PDF)
    emitted         -> emitted radiance, zero except for diffuse lights
    scattering_pdf  -> density of an outgoing direction, Lambertian only

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.materials.lambertian import add_lambertian_material
    >>> from pathtracer.materials.material import MaterialType, register_material
    >>> mat_id = register_material(MaterialType.LAMBERTIAN, add_lambertian_material((0.5, 0.5, 0.5)))
"""

from enum import IntEnum

import taichi as ti
import taichi.math as tm

from pathtracer.core.pdf import PDF, make_cosine_pdf
from pathtracer.core.ray import Ray, make_ray, near_zero
from pathtracer.materials.dielectric import get_dielectric_ior, scatter_dielectric
from pathtracer.materials.diffuse_light import get_diffuse_light_emission
from pathtracer.materials.lambertian import get_lambertian_albedo, lambertian_scattering_pdf
from pathtracer.materials.metal import get_metal_albedo, get_metal_fuzz, scatter_metal
from pathtracer.scene.intersection import SceneHitRecord

vec3 = tm.vec3


class MaterialType(IntEnum):
    """Material tags used for dispatch."""

    LAMBERTIAN = 0
    METAL = 1
    DIELECTRIC = 2
    DIFFUSE_LIGHT = 3


MAX_MATERIALS = 1024

# material_types[i] is the MaterialType of material id i
material_types = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
# material_type_indices[i] is the index of material id i in its type registry
material_type_indices = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())


def clear_material_registry() -> None:
    """Forget every unified material id."""
    num_materials[None] = 0


def register_material(material_type: MaterialType, type_index: int) -> int:
    """Assign a unified id to an entry of a type registry.

    Raises:
        RuntimeError: If the id space is full.
    """
    material_id = num_materials[None]
    if material_id >= MAX_MATERIALS:
        raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")
    material_types[material_id] = int(material_type)
    material_type_indices[material_id] = type_index
    num_materials[None] = material_id + 1
    return material_id


def get_material_count() -> int:
    """Number of unified material ids handed out."""
    return int(num_materials[None])


@ti.func
def get_material_type(material_id: ti.i32) -> ti.i32:
    """Tag of a material id, -1 for ids that were never registered."""
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_types[material_id]
    return result


@ti.func
def get_material_type_index(material_id: ti.i32) -> ti.i32:
    """Index of a material within its type's registry."""
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_type_indices[material_id]
    return result


@ti.dataclass
class ScatterRecord:
    """Outcome of a scatter query.

    Attributes:
        did_scatter: 0 when the surface absorbs the path.
        is_specular: 1 when the continuation is the fixed ``specular_ray``,
            0 when it is drawn from ``pdf``.
        attenuation: Color the continued radiance is multiplied by.
        specular_ray: Continuation ray of a specular event.
        pdf: Distribution of the material for a diffuse event.
    """

    did_scatter: ti.i32
    is_specular: ti.i32
    attenuation: vec3
    specular_ray: Ray
    pdf: PDF


@ti.func
def _absorbed() -> ScatterRecord:
    return ScatterRecord(
        did_scatter=0,
        is_specular=0,
        attenuation=vec3(0.0, 0.0, 0.0),
        specular_ray=Ray(origin=vec3(0.0, 0.0, 0.0), direction=vec3(0.0, 0.0, 1.0)),
        pdf=make_cosine_pdf(vec3(0.0, 0.0, 1.0)),
    )


@ti.func
def scatter(ray_direction: vec3, rec: SceneHitRecord) -> ScatterRecord:
    """Ask the material at a hit how the path continues.

    Args:
        ray_direction: Direction of the incoming ray.
        rec: The hit being shaded.

    Returns:
        A ScatterRecord; diffuse lights and unknown ids absorb.
    """
    mat_type = get_material_type(rec.material_id)
    type_index = get_material_type_index(rec.material_id)
    result = _absorbed()

    if mat_type == int(MaterialType.LAMBERTIAN):
        result.did_scatter = 1
        result.attenuation = get_lambertian_albedo(type_index, rec.u, rec.v, rec.point)
        result.pdf = make_cosine_pdf(rec.normal)

    elif mat_type == int(MaterialType.METAL):
        direction = scatter_metal(get_metal_fuzz(type_index), ray_direction, rec.normal)
        # Fuzz can cancel the reflection outright
        if near_zero(direction) == 1:
            direction = rec.normal
        result.did_scatter = 1
        result.is_specular = 1
        result.attenuation = get_metal_albedo(type_index)
        result.specular_ray = make_ray(rec.point, direction)

    elif mat_type == int(MaterialType.DIELECTRIC):
        direction = scatter_dielectric(
            get_dielectric_ior(type_index), ray_direction, rec.normal, rec.front_face
        )
        result.did_scatter = 1
        result.is_specular = 1
        result.attenuation = vec3(1.0, 1.0, 1.0)
        result.specular_ray = make_ray(rec.point, direction)

    return result


@ti.func
def emitted(material_id: ti.i32, u: ti.f32, v: ti.f32, point: vec3) -> vec3:
    """Radiance emitted at a hit; zero unless the material is a diffuse light."""
    result = vec3(0.0, 0.0, 0.0)
    if get_material_type(material_id) == int(MaterialType.DIFFUSE_LIGHT):
        result = get_diffuse_light_emission(get_material_type_index(material_id), u, v, point)
    return result


@ti.func
def scattering_pdf(material_id: ti.i32, normal: vec3, scattered_direction: vec3) -> ti.f32:
    """Density the material assigns to ``scattered_direction``.

    Only Lambertian surfaces have a non-delta distribution; every other
    material reports 0.
    """
    result = 0.0
    if get_material_type(material_id) == int(MaterialType.LAMBERTIAN):
        result = lambertian_scattering_pdf(normal, scattered_direction)
    return result
