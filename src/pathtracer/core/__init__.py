"""Core rendering module.

Components:
    ray: Ray data structure, vector helpers and random direction sampling
    pdf: Cosine, geometry and mixture PDFs
    integrator: The path tracing estimator and render target
    progressive: Batched sample accumulation

Only ``ray`` is imported here. ``pdf`` and ``integrator`` depend on the scene
registries and are imported directly, e.g.
``from pathtracer.core.integrator import render_image``.
"""

from .ray import (
    Ray,
    build_onb_from_normal,
    cross,
    dot,
    length,
    length_squared,
    local_to_world,
    make_ray,
    near_zero,
    normalize,
    random_cosine_direction,
    random_in_unit_disk,
    random_in_unit_sphere,
    random_to_sphere,
    random_unit_vector,
    ray_at,
    reflect,
    refract,
    schlick_fresnel,
    vec3,
)

__all__ = [
    "Ray",
    "ray_at",
    "make_ray",
    "vec3",
    "length",
    "length_squared",
    "normalize",
    "dot",
    "cross",
    "reflect",
    "refract",
    "schlick_fresnel",
    "near_zero",
    "random_in_unit_sphere",
    "random_unit_vector",
    "random_in_unit_disk",
    "random_cosine_direction",
    "random_to_sphere",
    "build_onb_from_normal",
    "local_to_world",
]
