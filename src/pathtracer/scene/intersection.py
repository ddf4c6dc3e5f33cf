"""Scene-level primitive storage, BVH traversal and light sampling.

Primitives live in Taichi fields: per-shape tables for spheres and quads and
a unified primitive table mapping a primitive id to its shape type, index
into the shape table and material id. The BVH built by
``pathtracer.geometry.bvh`` references primitives by id.

Ray queries walk the flattened BVH with an explicit stack. Emissive
primitives are registered in a light list that the integrator samples
toward.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.scene.intersection import (
    ...     add_sphere, add_quad, build_scene_bvh, clear_scene, vec3
    ... )
    >>> clear_scene()
    >>> add_sphere(vec3(0, 0, -1), 0.5, material_id=0)
    >>> add_quad(vec3(-1, -0.5, -2), vec3(2, 0, 0), vec3(0, 1, 0), material_id=1)
    >>> build_scene_bvh()
    >>> # Use intersect_scene within a Taichi kernel
"""

import logging

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.geometry.aabb import AABB, hit_aabb
from pathtracer.geometry.bvh import FlatBVH, PrimitiveNode, build_bvh, flatten_bvh
from pathtracer.geometry.quad import (
    Quad,
    hit_quad,
    quad_bounding_box,
    quad_pdf_value,
    quad_random,
)
from pathtracer.geometry.sphere import (
    HitRecord,
    Sphere,
    hit_sphere,
    sphere_bounding_box,
    sphere_pdf_value,
    sphere_random,
)

logger = logging.getLogger(__name__)

vec3 = tm.vec3


class PrimitiveType:
    """Shape tags stored in the primitive table."""

    SPHERE = 0
    QUAD = 1


@ti.dataclass
class SceneHitRecord:
    """Closest ray-scene intersection with shading information.

    Attributes:
        hit: 1 if any primitive was hit, 0 on a miss.
        t: Ray parameter of the hit.
        point: World-space hit point.
        normal: Unit normal facing against the ray.
        front_face: 1 if the ray hit the outward-facing side.
        u: Surface u coordinate.
        v: Surface v coordinate.
        material_id: Unified material id, -1 on a miss.
        primitive_id: Id of the hit primitive, -1 on a miss.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32
    u: ti.f32
    v: ti.f32
    material_id: ti.i32
    primitive_id: ti.i32


MAX_SPHERES = 1024
MAX_QUADS = 1024
MAX_PRIMITIVES = MAX_SPHERES + MAX_QUADS
MAX_LIGHTS = 64

# A BVH over n primitives has 2n - 1 nodes
MAX_BVH_NODES = 2 * MAX_PRIMITIVES

# Deep enough for any tree of MAX_PRIMITIVES leaves built by midpoint splits
BVH_STACK_SIZE = 64

# Sphere storage
sphere_centers = ti.Vector.field(3, dtype=ti.f32, shape=MAX_SPHERES)
sphere_radii = ti.field(dtype=ti.f32, shape=MAX_SPHERES)
num_spheres = ti.field(dtype=ti.i32, shape=())

# Quad storage
quad_corners = ti.Vector.field(3, dtype=ti.f32, shape=MAX_QUADS)
quad_edge_u = ti.Vector.field(3, dtype=ti.f32, shape=MAX_QUADS)
quad_edge_v = ti.Vector.field(3, dtype=ti.f32, shape=MAX_QUADS)
num_quads = ti.field(dtype=ti.i32, shape=())

# Unified primitive table
primitive_types = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
primitive_indices = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
primitive_material_ids = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
num_primitives = ti.field(dtype=ti.i32, shape=())

# Flattened BVH
bvh_box_min = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_box_max = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_left = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_right = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_primitive = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
num_bvh_nodes = ti.field(dtype=ti.i32, shape=())

# Light list (primitive ids sampled for direct lighting)
light_primitive_ids = ti.field(dtype=ti.i32, shape=MAX_LIGHTS)
num_lights = ti.field(dtype=ti.i32, shape=())

# Host-side mirror of primitive bounds for BVH construction
_primitive_boxes: list[AABB] = []


def clear_scene() -> None:
    """Remove all primitives, lights and the BVH.

    Field contents are left in place and overwritten by later additions.
    """
    num_spheres[None] = 0
    num_quads[None] = 0
    num_primitives[None] = 0
    num_bvh_nodes[None] = 0
    num_lights[None] = 0
    _primitive_boxes.clear()


def _register_primitive(prim_type: int, index: int, material_id: int, box: AABB) -> int:
    pid = num_primitives[None]
    if pid >= MAX_PRIMITIVES:
        raise RuntimeError(f"Maximum number of primitives ({MAX_PRIMITIVES}) exceeded")
    primitive_types[pid] = prim_type
    primitive_indices[pid] = index
    primitive_material_ids[pid] = material_id
    num_primitives[None] = pid + 1
    _primitive_boxes.append(box)
    # Geometry changed, so any uploaded tree is stale
    num_bvh_nodes[None] = 0
    return pid


def add_sphere(center: vec3, radius: float, material_id: int = 0) -> int:
    """Add a sphere to the scene.

    Args:
        center: Center of the sphere.
        radius: Radius of the sphere. A zero radius is accepted; shading
            values for rays through its center are undefined (NaN).
        material_id: Unified material id for shading.

    Returns:
        The primitive id of the sphere.

    Raises:
        RuntimeError: If the sphere or primitive table is full.
    """
    idx = num_spheres[None]
    if idx >= MAX_SPHERES:
        raise RuntimeError(f"Maximum number of spheres ({MAX_SPHERES}) exceeded")
    sphere_centers[idx] = center
    sphere_radii[idx] = radius
    num_spheres[None] = idx + 1
    c = (float(center[0]), float(center[1]), float(center[2]))
    return _register_primitive(
        PrimitiveType.SPHERE, idx, material_id, sphere_bounding_box(c, float(radius))
    )


def add_quad(q: vec3, u: vec3, v: vec3, material_id: int = 0) -> int:
    """Add a parallelogram with corners Q, Q+u, Q+v and Q+u+v.

    Returns:
        The primitive id of the quad.

    Raises:
        RuntimeError: If the quad or primitive table is full.
    """
    idx = num_quads[None]
    if idx >= MAX_QUADS:
        raise RuntimeError(f"Maximum number of quads ({MAX_QUADS}) exceeded")
    quad_corners[idx] = q
    quad_edge_u[idx] = u
    quad_edge_v[idx] = v
    num_quads[None] = idx + 1
    box = quad_bounding_box(
        (float(q[0]), float(q[1]), float(q[2])),
        (float(u[0]), float(u[1]), float(u[2])),
        (float(v[0]), float(v[1]), float(v[2])),
    )
    return _register_primitive(PrimitiveType.QUAD, idx, material_id, box)


def add_light(primitive_id: int) -> int:
    """Register a primitive as a light for direct light sampling.

    Returns:
        The index of the primitive in the light list.

    Raises:
        ValueError: If ``primitive_id`` does not name an existing primitive.
        RuntimeError: If the light list is full.
    """
    if primitive_id < 0 or primitive_id >= num_primitives[None]:
        raise ValueError(f"Unknown primitive id {primitive_id}")
    idx = num_lights[None]
    if idx >= MAX_LIGHTS:
        raise RuntimeError(f"Maximum number of lights ({MAX_LIGHTS}) exceeded")
    light_primitive_ids[idx] = primitive_id
    num_lights[None] = idx + 1
    return idx


def get_sphere_count() -> int:
    """Number of spheres stored."""
    return int(num_spheres[None])


def get_quad_count() -> int:
    """Number of quads stored."""
    return int(num_quads[None])


def get_primitive_count() -> int:
    """Number of primitives of any shape stored."""
    return int(num_primitives[None])


def get_light_count() -> int:
    """Number of entries in the light list."""
    return int(num_lights[None])


def get_bvh_node_count() -> int:
    """Number of uploaded BVH nodes, 0 before a build."""
    return int(num_bvh_nodes[None])


def is_bvh_built() -> bool:
    """True once a BVH covering every current primitive has been uploaded."""
    return num_bvh_nodes[None] > 0


def primitive_bounding_box(primitive_id: int) -> AABB:
    """Host-side bounding box of a stored primitive."""
    return _primitive_boxes[primitive_id]


# =============================================================================
# BVH Construction and Upload
# =============================================================================


def upload_bvh(flat: FlatBVH) -> None:
    """Copy a flattened BVH into the traversal fields.

    Raises:
        RuntimeError: If the tree has more nodes than the fields hold.
    """
    n = flat.node_count
    if n > MAX_BVH_NODES:
        raise RuntimeError(f"BVH has {n} nodes, more than the maximum ({MAX_BVH_NODES})")

    box_min = np.zeros((MAX_BVH_NODES, 3), dtype=np.float32)
    box_max = np.zeros((MAX_BVH_NODES, 3), dtype=np.float32)
    left = np.full(MAX_BVH_NODES, -1, dtype=np.int32)
    right = np.full(MAX_BVH_NODES, -1, dtype=np.int32)
    prim = np.full(MAX_BVH_NODES, -1, dtype=np.int32)
    box_min[:n] = flat.box_min
    box_max[:n] = flat.box_max
    left[:n] = flat.left
    right[:n] = flat.right
    prim[:n] = flat.primitive

    bvh_box_min.from_numpy(box_min)
    bvh_box_max.from_numpy(box_max)
    bvh_left.from_numpy(left)
    bvh_right.from_numpy(right)
    bvh_primitive.from_numpy(prim)
    num_bvh_nodes[None] = n


def build_scene_bvh(rng: np.random.Generator | None = None) -> FlatBVH:
    """Build a BVH over every primitive in the scene and upload it.

    Args:
        rng: Generator for the split axes; a fresh one is used when omitted.

    Returns:
        The flattened tree that was uploaded.

    Raises:
        ValueError: If the scene has no primitives.
    """
    leaves = [PrimitiveNode(pid, box) for pid, box in enumerate(_primitive_boxes)]
    root = build_bvh(leaves, rng=rng)
    flat = flatten_bvh(root)
    upload_bvh(flat)
    logger.debug(
        "Built BVH over %d primitives (%d nodes)", len(leaves), flat.node_count
    )
    return flat


# =============================================================================
# Device-side Queries
# =============================================================================


@ti.func
def _make_miss_record() -> SceneHitRecord:
    return SceneHitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        front_face=0,
        u=0.0,
        v=0.0,
        material_id=-1,
        primitive_id=-1,
    )


@ti.func
def _to_scene_record(rec: HitRecord, material_id: ti.i32, primitive_id: ti.i32) -> SceneHitRecord:
    return SceneHitRecord(
        hit=rec.hit,
        t=rec.t,
        point=rec.point,
        normal=rec.normal,
        front_face=rec.front_face,
        u=rec.u,
        v=rec.v,
        material_id=material_id,
        primitive_id=primitive_id,
    )


@ti.func
def _sphere_at(idx: ti.i32) -> Sphere:
    return Sphere(center=sphere_centers[idx], radius=sphere_radii[idx])


@ti.func
def _quad_at(idx: ti.i32) -> Quad:
    return Quad(Q=quad_corners[idx], u=quad_edge_u[idx], v=quad_edge_v[idx])


@ti.func
def hit_primitive(
    primitive_id: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> SceneHitRecord:
    """Intersect one primitive, dispatching on its shape tag."""
    prim_type = primitive_types[primitive_id]
    idx = primitive_indices[primitive_id]
    result = _make_miss_record()
    if prim_type == PrimitiveType.SPHERE:
        rec = hit_sphere(ray_origin, ray_direction, _sphere_at(idx), t_min, t_max)
        if rec.hit == 1:
            result = _to_scene_record(rec, primitive_material_ids[primitive_id], primitive_id)
    elif prim_type == PrimitiveType.QUAD:
        rec = hit_quad(ray_origin, ray_direction, _quad_at(idx), t_min, t_max)
        if rec.hit == 1:
            result = _to_scene_record(rec, primitive_material_ids[primitive_id], primitive_id)
    return result


@ti.func
def intersect_scene(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> SceneHitRecord:
    """Closest hit in ``(t_min, t_max)`` found by walking the BVH.

    Nodes are popped from a fixed-size stack; the right child is pushed
    before the left so the left subtree is visited first. Every accepted hit
    shrinks the search interval, so subtrees whose boxes lie entirely beyond
    the current closest hit are pruned by the box test. With no BVH uploaded
    the query misses.
    """
    closest_t = t_max
    result = _make_miss_record()

    stack = ti.Vector([0 for _ in range(BVH_STACK_SIZE)], dt=ti.i32)
    stack_ptr = 0
    if num_bvh_nodes[None] > 0:
        stack[0] = 0
        stack_ptr = 1

    while stack_ptr > 0:
        stack_ptr -= 1
        node = stack[stack_ptr]
        if hit_aabb(
            ray_origin, ray_direction, bvh_box_min[node], bvh_box_max[node], t_min, closest_t
        ):
            prim = bvh_primitive[node]
            if prim >= 0:
                rec = hit_primitive(prim, ray_origin, ray_direction, t_min, closest_t)
                if rec.hit == 1:
                    closest_t = rec.t
                    result = rec
            elif stack_ptr + 2 <= BVH_STACK_SIZE:
                stack[stack_ptr] = bvh_right[node]
                stack[stack_ptr + 1] = bvh_left[node]
                stack_ptr += 2

    return result


@ti.func
def intersect_scene_linear(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> SceneHitRecord:
    """Closest hit found by testing every primitive, without the BVH."""
    closest_t = t_max
    result = _make_miss_record()
    for pid in range(num_primitives[None]):
        rec = hit_primitive(pid, ray_origin, ray_direction, t_min, closest_t)
        if rec.hit == 1:
            closest_t = rec.t
            result = rec
    return result


@ti.func
def primitive_pdf_value(primitive_id: ti.i32, origin: vec3, direction: vec3) -> ti.f32:
    """Solid-angle density of ``primitive_random`` toward one primitive."""
    prim_type = primitive_types[primitive_id]
    idx = primitive_indices[primitive_id]
    result = 0.0
    if prim_type == PrimitiveType.SPHERE:
        result = sphere_pdf_value(_sphere_at(idx), origin, direction)
    elif prim_type == PrimitiveType.QUAD:
        result = quad_pdf_value(_quad_at(idx), origin, direction)
    return result


@ti.func
def primitive_random(primitive_id: ti.i32, origin: vec3) -> vec3:
    """Direction from ``origin`` toward a random point of one primitive."""
    prim_type = primitive_types[primitive_id]
    idx = primitive_indices[primitive_id]
    result = vec3(0.0, 0.0, 1.0)
    if prim_type == PrimitiveType.SPHERE:
        result = sphere_random(_sphere_at(idx), origin)
    elif prim_type == PrimitiveType.QUAD:
        result = quad_random(_quad_at(idx), origin)
    return result


@ti.func
def lights_pdf_value(origin: vec3, direction: vec3) -> ti.f32:
    """Mean density over the light list; zero when no light is registered."""
    n = num_lights[None]
    total = 0.0
    for i in range(n):
        total += primitive_pdf_value(light_primitive_ids[i], origin, direction)
    result = 0.0
    if n > 0:
        result = total / ti.cast(n, ti.f32)
    return result


@ti.func
def lights_random(origin: vec3) -> vec3:
    """Pick one registered light uniformly, then sample a direction toward it."""
    n = num_lights[None]
    result = vec3(0.0, 0.0, 1.0)
    if n > 0:
        i = tm.min(ti.cast(ti.random(ti.f32) * n, ti.i32), n - 1)
        result = primitive_random(light_primitive_ids[i], origin)
    return result
