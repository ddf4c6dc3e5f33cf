"""Scene storage and construction.

Components:
    intersection: Primitive and light registries, BVH upload and traversal
    manager: SceneManager coordinating materials, primitives and lights
    cornell_box: The Cornell box scene
    random_spheres: The random spheres scene

Only ``intersection`` is imported here; the others depend on the integrator
and material dispatch, which import this package, so import them directly.
"""

from .intersection import (
    MAX_LIGHTS,
    MAX_QUADS,
    MAX_SPHERES,
    PrimitiveType,
    SceneHitRecord,
    add_light,
    add_quad,
    add_sphere,
    build_scene_bvh,
    clear_scene,
    get_light_count,
    get_quad_count,
    get_sphere_count,
    intersect_scene,
    intersect_scene_linear,
)

__all__ = [
    "MAX_LIGHTS",
    "MAX_QUADS",
    "MAX_SPHERES",
    "PrimitiveType",
    "SceneHitRecord",
    "add_light",
    "add_quad",
    "add_sphere",
    "build_scene_bvh",
    "clear_scene",
    "get_light_count",
    "get_quad_count",
    "get_sphere_count",
    "intersect_scene",
    "intersect_scene_linear",
]
