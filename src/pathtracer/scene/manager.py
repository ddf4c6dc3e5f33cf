"""Scene manager coordinating materials, primitives, lights and the BVH.

The SceneManager is the host-side entry point for building a scene. It
keeps the unified material id space in step with the per-type registries,
records every primitive for serialization, registers emissive primitives as
lights, and finally builds and uploads the BVH.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.scene.manager import SceneManager
    >>> scene = SceneManager()
    >>> ground = scene.add_lambertian_material(albedo=(0.5, 0.5, 0.5))
    >>> lamp = scene.add_diffuse_light_material(emission=(4.0, 4.0, 4.0))
    >>> scene.add_sphere((0, -1000, 0), 1000, ground)
    >>> scene.add_quad((-1, 3, -1), (2, 0, 0), (0, 0, 2), lamp)
    >>> scene.build(seed=1)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import taichi.math as tm

from pathtracer.geometry.bvh import FlatBVH
from pathtracer.materials.dielectric import add_dielectric_material, clear_dielectric_materials
from pathtracer.materials.diffuse_light import (
    add_diffuse_light_material,
    clear_diffuse_light_materials,
)
from pathtracer.materials.lambertian import add_lambertian_material, clear_lambertian_materials
from pathtracer.materials.material import (
    MAX_MATERIALS,
    MaterialType,
    clear_material_registry,
    get_material_count,
    register_material,
)
from pathtracer.materials.metal import add_metal_material, clear_metal_materials
from pathtracer.materials.textures import add_checker_texture, clear_textures
from pathtracer.scene.intersection import (
    MAX_QUADS,
    MAX_SPHERES,
    add_light,
    add_quad,
    add_sphere,
    build_scene_bvh,
    clear_scene,
    get_light_count,
    get_primitive_count,
    get_quad_count,
    get_sphere_count,
)

logger = logging.getLogger(__name__)

vec3 = tm.vec3

Point3 = tuple[float, float, float]


def clear_all_scene_data() -> None:
    """Reset every primitive, material and texture registry."""
    clear_scene()
    clear_lambertian_materials()
    clear_metal_materials()
    clear_dielectric_materials()
    clear_diffuse_light_materials()
    clear_textures()
    clear_material_registry()


@dataclass
class MaterialInfo:
    """A registered material and the parameters it was created with."""

    material_id: int
    material_type: MaterialType
    type_index: int
    params: dict[str, Any]


@dataclass
class SphereInfo:
    primitive_id: int
    center: Point3
    radius: float
    material_id: int


@dataclass
class QuadInfo:
    primitive_id: int
    corner: Point3
    edge_u: Point3
    edge_v: Point3
    material_id: int


@dataclass
class SceneConfig:
    """Serializable description of a scene.

    Attributes:
        materials: Material configurations, in material id order.
        spheres: Sphere configurations.
        quads: Quad configurations.
        lights: Primitives registered as lights in addition to the emissive
            primitives, which are always registered. Each entry names a shape
            list and a position in it, e.g. ``{"shape": "sphere", "index": 2}``,
            so lights survive the renumbering ``from_config`` applies.
    """

    materials: list[dict[str, Any]] = field(default_factory=list)
    spheres: list[dict[str, Any]] = field(default_factory=list)
    quads: list[dict[str, Any]] = field(default_factory=list)
    lights: list[dict[str, Any]] = field(default_factory=list)


def _point(values: Any) -> Point3:
    return (float(values[0]), float(values[1]), float(values[2]))


class SceneManager:
    """High-level scene construction API.

    Creating a SceneManager clears all global scene registries, so only the
    most recently created manager describes the scene the renderer sees.

    Attributes:
        materials: All registered materials, indexed by material id.
        spheres: All spheres in insertion order.
        quads: All quads in insertion order.
    """

    def __init__(self) -> None:
        self.materials: list[MaterialInfo] = []
        self.spheres: list[SphereInfo] = []
        self.quads: list[QuadInfo] = []
        self._extra_lights: list[int] = []
        self._light_ids: set[int] = set()
        self._bvh: FlatBVH | None = None
        self.clear()

    def clear(self) -> None:
        """Remove every material, primitive and light."""
        clear_all_scene_data()
        self.materials.clear()
        self.spheres.clear()
        self.quads.clear()
        self._extra_lights.clear()
        self._light_ids.clear()
        self._bvh = None

    # =========================================================================
    # Material Management
    # =========================================================================

    def _register(self, material_type: MaterialType, type_index: int, params: dict[str, Any]) -> int:
        material_id = register_material(material_type, type_index)
        self.materials.append(MaterialInfo(material_id, material_type, type_index, params))
        return material_id

    def add_lambertian_material(self, albedo: Point3) -> int:
        """Add a diffuse material with a constant albedo.

        Raises:
            ValueError: If any albedo component is outside [0, 1].
            RuntimeError: If a registry is full.
        """
        albedo = _point(albedo)
        type_index = add_lambertian_material(albedo=albedo)
        return self._register(MaterialType.LAMBERTIAN, type_index, {"albedo": list(albedo)})

    def add_checker_material(self, even: Point3, odd: Point3, scale: float = 10.0) -> int:
        """Add a diffuse material whose albedo is a checker texture."""
        even, odd = _point(even), _point(odd)
        texture_id = add_checker_texture(even, odd, scale)
        type_index = add_lambertian_material(texture_id=texture_id)
        params = {
            "texture": {"type": "checker", "even": list(even), "odd": list(odd), "scale": float(scale)}
        }
        return self._register(MaterialType.LAMBERTIAN, type_index, params)

    def add_metal_material(self, albedo: Point3, fuzz: float = 0.0) -> int:
        """Add a metal material; ``fuzz`` is clamped to [0, 1]."""
        albedo = _point(albedo)
        type_index = add_metal_material(albedo, fuzz)
        params = {"albedo": list(albedo), "fuzz": min(max(float(fuzz), 0.0), 1.0)}
        return self._register(MaterialType.METAL, type_index, params)

    def add_dielectric_material(self, ior: float = 1.5) -> int:
        """Add a clear dielectric with index of refraction ``ior``."""
        type_index = add_dielectric_material(ior)
        return self._register(MaterialType.DIELECTRIC, type_index, {"ior": float(ior)})

    def add_diffuse_light_material(self, emission: Point3) -> int:
        """Add an emissive material. Primitives using it become lights."""
        emission = _point(emission)
        type_index = add_diffuse_light_material(emission=emission)
        return self._register(MaterialType.DIFFUSE_LIGHT, type_index, {"emission": list(emission)})

    def get_material_count(self) -> int:
        """Number of materials registered so far."""
        return get_material_count()

    def get_material_info(self, material_id: int) -> MaterialInfo | None:
        """Info for ``material_id``, or None if it is not registered."""
        if 0 <= material_id < len(self.materials):
            return self.materials[material_id]
        return None

    # =========================================================================
    # Primitive Management
    # =========================================================================

    def _check_material(self, material_id: int) -> MaterialInfo:
        info = self.get_material_info(material_id)
        if info is None:
            raise ValueError(f"Invalid material_id: {material_id}")
        return info

    def _on_primitive_added(self, primitive_id: int, info: MaterialInfo) -> None:
        self._bvh = None
        if info.material_type == MaterialType.DIFFUSE_LIGHT:
            self._register_light(primitive_id)

    def _register_light(self, primitive_id: int) -> None:
        if primitive_id not in self._light_ids:
            add_light(primitive_id)
            self._light_ids.add(primitive_id)

    def add_sphere(self, center: Point3, radius: float, material_id: int) -> int:
        """Add a sphere and return its primitive id.

        Raises:
            ValueError: If ``material_id`` is not registered.
            RuntimeError: If the primitive storage is full.
        """
        info = self._check_material(material_id)
        center = _point(center)
        primitive_id = add_sphere(vec3(*center), radius, material_id)
        self.spheres.append(SphereInfo(primitive_id, center, float(radius), material_id))
        self._on_primitive_added(primitive_id, info)
        return primitive_id

    def add_quad(self, corner: Point3, edge_u: Point3, edge_v: Point3, material_id: int) -> int:
        """Add a parallelogram and return its primitive id.

        Raises:
            ValueError: If ``material_id`` is not registered.
            RuntimeError: If the primitive storage is full.
        """
        info = self._check_material(material_id)
        corner, edge_u, edge_v = _point(corner), _point(edge_u), _point(edge_v)
        primitive_id = add_quad(vec3(*corner), vec3(*edge_u), vec3(*edge_v), material_id)
        self.quads.append(QuadInfo(primitive_id, corner, edge_u, edge_v, material_id))
        self._on_primitive_added(primitive_id, info)
        return primitive_id

    def add_light(self, primitive_id: int) -> None:
        """Importance-sample a non-emissive primitive as if it were a light.

        Useful for steering samples toward glass objects that focus light.

        Raises:
            ValueError: If the primitive does not exist.
        """
        if primitive_id < 0 or primitive_id >= get_primitive_count():
            raise ValueError(f"Unknown primitive id {primitive_id}")
        if primitive_id not in self._light_ids:
            self._extra_lights.append(primitive_id)
        self._register_light(primitive_id)

    def add_lambertian_sphere(self, center: Point3, radius: float, albedo: Point3) -> tuple[int, int]:
        """Add a Lambertian material and a sphere using it."""
        material_id = self.add_lambertian_material(albedo)
        return self.add_sphere(center, radius, material_id), material_id

    def add_metal_sphere(
        self, center: Point3, radius: float, albedo: Point3, fuzz: float = 0.0
    ) -> tuple[int, int]:
        """Add a metal material and a sphere using it."""
        material_id = self.add_metal_material(albedo, fuzz)
        return self.add_sphere(center, radius, material_id), material_id

    def add_dielectric_sphere(self, center: Point3, radius: float, ior: float = 1.5) -> tuple[int, int]:
        """Add a dielectric material and a sphere using it."""
        material_id = self.add_dielectric_material(ior)
        return self.add_sphere(center, radius, material_id), material_id

    def add_lambertian_quad(
        self, corner: Point3, edge_u: Point3, edge_v: Point3, albedo: Point3
    ) -> tuple[int, int]:
        """Add a Lambertian material and a quad using it."""
        material_id = self.add_lambertian_material(albedo)
        return self.add_quad(corner, edge_u, edge_v, material_id), material_id

    def add_light_quad(
        self, corner: Point3, edge_u: Point3, edge_v: Point3, emission: Point3
    ) -> tuple[int, int]:
        """Add a diffuse light material and a quad using it; the quad becomes a light."""
        material_id = self.add_diffuse_light_material(emission)
        return self.add_quad(corner, edge_u, edge_v, material_id), material_id

    # =========================================================================
    # Acceleration Structure
    # =========================================================================

    def build(self, rng: np.random.Generator | None = None, seed: int | None = None) -> FlatBVH:
        """Build and upload the BVH over all primitives.

        Must be called after the last primitive is added and before
        rendering.

        Args:
            rng: Generator for the BVH split axes.
            seed: Seed for a new generator when ``rng`` is not given.

        Raises:
            ValueError: If the scene has no primitives.
        """
        if rng is None:
            rng = np.random.default_rng(seed)
        self._bvh = build_scene_bvh(rng)
        logger.info(
            "Scene built: %d spheres, %d quads, %d lights, %d BVH nodes",
            get_sphere_count(),
            get_quad_count(),
            get_light_count(),
            self._bvh.node_count,
        )
        return self._bvh

    @property
    def is_built(self) -> bool:
        """True once ``build`` has run since the last primitive was added."""
        return self._bvh is not None

    @property
    def bvh(self) -> FlatBVH | None:
        """The flattened BVH from the last ``build``, if still current."""
        return self._bvh

    # =========================================================================
    # Scene Queries
    # =========================================================================

    def get_sphere_count(self) -> int:
        """Number of spheres in the scene."""
        return get_sphere_count()

    def get_quad_count(self) -> int:
        """Number of quads in the scene."""
        return get_quad_count()

    def get_primitive_count(self) -> int:
        """Number of spheres and quads in the scene."""
        return get_primitive_count()

    def get_light_count(self) -> int:
        """Number of primitives sampled as lights."""
        return get_light_count()

    @staticmethod
    def get_max_spheres() -> int:
        """Capacity of the sphere registry."""
        return MAX_SPHERES

    @staticmethod
    def get_max_quads() -> int:
        """Capacity of the quad registry."""
        return MAX_QUADS

    @staticmethod
    def get_max_materials() -> int:
        """Capacity of the unified material registry."""
        return MAX_MATERIALS

    # =========================================================================
    # Scene Serialization
    # =========================================================================

    def to_config(self) -> SceneConfig:
        """Describe the current scene as a ``SceneConfig``."""
        config = SceneConfig()
        for mat in self.materials:
            config.materials.append({"type": mat.material_type.name.lower(), **mat.params})
        for sphere in self.spheres:
            config.spheres.append(
                {
                    "center": list(sphere.center),
                    "radius": sphere.radius,
                    "material_id": sphere.material_id,
                }
            )
        for quad in self.quads:
            config.quads.append(
                {
                    "corner": list(quad.corner),
                    "edge_u": list(quad.edge_u),
                    "edge_v": list(quad.edge_v),
                    "material_id": quad.material_id,
                }
            )
        config.lights = [self._light_ref(primitive_id) for primitive_id in self._extra_lights]
        return config

    def _light_ref(self, primitive_id: int) -> dict[str, Any]:
        for index, sphere in enumerate(self.spheres):
            if sphere.primitive_id == primitive_id:
                return {"shape": "sphere", "index": index}
        for index, quad in enumerate(self.quads):
            if quad.primitive_id == primitive_id:
                return {"shape": "quad", "index": index}
        raise ValueError(f"Unknown primitive id {primitive_id}")

    def _load_material(self, mat_config: dict[str, Any]) -> int:
        mat_type = str(mat_config.get("type", "")).lower()
        if mat_type == "lambertian":
            texture = mat_config.get("texture")
            if texture is not None:
                if texture.get("type") != "checker":
                    raise ValueError(f"Unknown texture type: {texture.get('type')}")
                return self.add_checker_material(
                    _point(texture["even"]), _point(texture["odd"]), texture.get("scale", 10.0)
                )
            return self.add_lambertian_material(_point(mat_config.get("albedo", [0.5, 0.5, 0.5])))
        if mat_type == "metal":
            return self.add_metal_material(
                _point(mat_config.get("albedo", [0.8, 0.8, 0.8])), mat_config.get("fuzz", 0.0)
            )
        if mat_type == "dielectric":
            return self.add_dielectric_material(mat_config.get("ior", 1.5))
        if mat_type == "diffuse_light":
            return self.add_diffuse_light_material(_point(mat_config.get("emission", [1.0, 1.0, 1.0])))
        raise ValueError(f"Unknown material type: {mat_type}")

    def from_config(self, config: SceneConfig) -> None:
        """Replace the scene with the one described by ``config``.

        Primitive ids are assigned spheres first, then quads. The BVH is not
        built; call ``build`` afterwards.

        Raises:
            ValueError: If the configuration names an unknown material type
                or an invalid material id, or a light refers to a missing
                primitive.
        """
        self.clear()
        for mat_config in config.materials:
            self._load_material(mat_config)
        for sphere_config in config.spheres:
            self.add_sphere(
                _point(sphere_config.get("center", [0, 0, 0])),
                sphere_config.get("radius", 1.0),
                sphere_config.get("material_id", 0),
            )
        for quad_config in config.quads:
            self.add_quad(
                _point(quad_config.get("corner", [0, 0, 0])),
                _point(quad_config.get("edge_u", [1, 0, 0])),
                _point(quad_config.get("edge_v", [0, 1, 0])),
                quad_config.get("material_id", 0),
            )
        shapes = {"sphere": self.spheres, "quad": self.quads}
        for light in config.lights:
            shape = shapes.get(light.get("shape"))
            if shape is None:
                raise ValueError(f"Unknown light shape: {light.get('shape')}")
            index = light.get("index", -1)
            if not 0 <= index < len(shape):
                raise ValueError(f"Light index {index} out of range for {light['shape']}s")
            self.add_light(shape[index].primitive_id)

    def to_dict(self) -> dict[str, Any]:
        """JSON-serializable form of ``to_config``."""
        config = self.to_config()
        return {
            "materials": config.materials,
            "spheres": config.spheres,
            "quads": config.quads,
            "lights": config.lights,
        }

    def from_dict(self, data: dict[str, Any]) -> None:
        """Replace the scene with one produced by ``to_dict``."""
        self.from_config(
            SceneConfig(
                materials=data.get("materials", []),
                spheres=data.get("spheres", []),
                quads=data.get("quads", []),
                lights=data.get("lights", []),
            )
        )
