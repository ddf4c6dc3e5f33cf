"""Material models.

Components:
    textures: Solid and checker textures
    lambertian: Ideal diffuse reflection
    metal: Mirror reflection perturbed by fuzz
    dielectric: Refraction with Schlick reflectance
    diffuse_light: Emissive surfaces
    material: Unified material ids and scatter/emission dispatch

Each type keeps its parameters in its own Taichi field registry; the
unified id maps to a (type, index) pair.
"""

from .dielectric import (
    add_dielectric_material,
    clear_dielectric_materials,
    get_dielectric_material_count,
    scatter_dielectric,
)
from .diffuse_light import (
    add_diffuse_light_material,
    clear_diffuse_light_materials,
    get_diffuse_light_material_count,
)
from .lambertian import (
    add_lambertian_material,
    clear_lambertian_materials,
    get_lambertian_material_count,
    lambertian_scattering_pdf,
)
from .material import (
    MaterialType,
    ScatterRecord,
    clear_material_registry,
    emitted,
    register_material,
    scatter,
    scattering_pdf,
)
from .metal import add_metal_material, clear_metal_materials, get_metal_material_count, scatter_metal
from .textures import TextureType, add_checker_texture, add_solid_texture, clear_textures

__all__ = [
    "add_dielectric_material",
    "clear_dielectric_materials",
    "get_dielectric_material_count",
    "scatter_dielectric",
    "add_diffuse_light_material",
    "clear_diffuse_light_materials",
    "get_diffuse_light_material_count",
    "add_lambertian_material",
    "clear_lambertian_materials",
    "get_lambertian_material_count",
    "lambertian_scattering_pdf",
    "MaterialType",
    "ScatterRecord",
    "clear_material_registry",
    "emitted",
    "register_material",
    "scatter",
    "scattering_pdf",
    "add_metal_material",
    "clear_metal_materials",
    "get_metal_material_count",
    "scatter_metal",
    "TextureType",
    "add_checker_texture",
    "add_solid_texture",
    "clear_textures",
]
