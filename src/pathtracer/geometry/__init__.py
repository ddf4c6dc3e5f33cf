"""Geometric primitives and the bounding volume hierarchy.

Components:
    aabb: Axis-aligned bounding boxes and the slab test
    sphere: Sphere intersection, bounds and solid-angle sampling
    quad: Parallelogram intersection, bounds and area sampling
    bvh: Host-side BVH construction and flattening
"""

from .aabb import AABB, hit_aabb, surrounding_box
from .bvh import BVHBranch, FlatBVH, PrimitiveNode, build_bvh, bvh_depth, flatten_bvh
from .quad import Quad, hit_quad, quad_area, quad_bounding_box
from .sphere import HitRecord, Sphere, hit_sphere, sphere_bounding_box

__all__ = [
    "AABB",
    "hit_aabb",
    "surrounding_box",
    "BVHBranch",
    "FlatBVH",
    "PrimitiveNode",
    "build_bvh",
    "bvh_depth",
    "flatten_bvh",
    "Quad",
    "hit_quad",
    "quad_area",
    "quad_bounding_box",
    "HitRecord",
    "Sphere",
    "hit_sphere",
    "sphere_bounding_box",
]
