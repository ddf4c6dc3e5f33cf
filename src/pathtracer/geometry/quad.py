"""Quad (parallelogram) primitive for walls and area lights.

A quad spans ``Q + alpha * u + beta * v`` for ``alpha, beta`` in [0, 1]. Its
normal is ``normalize(u x v)`` (right-hand rule). The parametric coordinates
of a hit double as the surface (u, v) coordinates, and quads can be sampled
as area lights through ``quad_pdf_value`` / ``quad_random``.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.geometry.quad import Quad, vec3
    >>> floor = Quad(Q=vec3(0, 0, 0), u=vec3(1, 0, 0), v=vec3(0, 0, 1))
"""

import taichi as ti
import taichi.math as tm

from pathtracer.geometry.aabb import AABB
from pathtracer.geometry.sphere import PDF_T_MAX, PDF_T_MIN, HitRecord

vec3 = tm.vec3

# Thickness given to the bounding box of a quad lying in an axis plane
QUAD_BOX_PADDING = 1e-4


@ti.dataclass
class Quad:
    """Parallelogram with corner ``Q`` and edge vectors ``u`` and ``v``."""

    Q: vec3
    u: vec3
    v: vec3


@ti.func
def _compute_quad_frame(quad: Quad):
    """Plane normal, plane constant and the dual vectors of the quad's edges.

    With ``n = u x v``, the vectors ``w_u = (v x n) / |n|^2`` and
    ``w_v = (n x u) / |n|^2`` recover the parametric coordinates of any
    in-plane point P as ``alpha = w_u . (P - Q)``, ``beta = w_v . (P - Q)``.
    A degenerate quad (parallel edges) gets zero dual vectors.
    """
    n = tm.cross(quad.u, quad.v)
    normal = tm.normalize(n)
    d = tm.dot(normal, quad.Q)
    n_dot_n = tm.dot(n, n)

    w_u = vec3(0.0, 0.0, 0.0)
    w_v = vec3(0.0, 0.0, 0.0)
    if n_dot_n > 1e-10:
        w_u = tm.cross(quad.v, n) / n_dot_n
        w_v = tm.cross(n, quad.u) / n_dot_n

    return normal, d, w_u, w_v


@ti.func
def hit_quad(
    ray_origin: vec3,
    ray_direction: vec3,
    quad: Quad,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Intersect a ray with a quad inside ``(t_min, t_max)``.

    Finds the plane crossing ``t = (d - n . origin) / (n . dir)``, then keeps
    it only if its parametric coordinates both lie in [0, 1]. Rays parallel
    to the plane miss.

    Returns:
        A HitRecord whose (u, v) are the parametric coordinates of the hit.
    """
    normal, d, w_u, w_v = _compute_quad_frame(quad)
    denom = tm.dot(normal, ray_direction)

    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    is_front_face = 0
    hit_u = 0.0
    hit_v = 0.0

    if ti.abs(denom) > 1e-8:
        t = (d - tm.dot(normal, ray_origin)) / denom
        if t > t_min and t < t_max:
            point = ray_origin + t * ray_direction
            p_minus_q = point - quad.Q
            alpha = tm.dot(w_u, p_minus_q)
            beta = tm.dot(w_v, p_minus_q)

            if alpha >= 0.0 and alpha <= 1.0 and beta >= 0.0 and beta <= 1.0:
                did_hit = 1
                hit_t = t
                hit_point = point
                hit_u = alpha
                hit_v = beta
                if denom > 0.0:
                    is_front_face = 0
                    hit_normal = -normal
                else:
                    is_front_face = 1
                    hit_normal = normal

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        front_face=is_front_face,
        u=hit_u,
        v=hit_v,
    )


@ti.func
def quad_area(quad: Quad) -> ti.f32:
    """Area of the parallelogram, ``|u x v|``."""
    return tm.length(tm.cross(quad.u, quad.v))


@ti.func
def quad_pdf_value(quad: Quad, origin: vec3, direction: vec3) -> ti.f32:
    """Solid-angle density of ``quad_random`` along ``direction``.

    Converts the uniform area density ``1 / area`` to solid angle:
    ``distance^2 / (|cos| * area)``. Zero when the ray misses the quad or
    grazes it.
    """
    rec = hit_quad(origin, direction, quad, PDF_T_MIN, PDF_T_MAX)
    result = 0.0
    if rec.hit == 1:
        length_sq = tm.dot(direction, direction)
        distance_squared = rec.t * rec.t * length_sq
        cosine = ti.abs(tm.dot(direction, rec.normal)) / ti.sqrt(length_sq)
        area = quad_area(quad)
        if cosine > 1e-8 and area > 0.0:
            result = distance_squared / (cosine * area)
    return result


@ti.func
def quad_random(quad: Quad, origin: vec3) -> vec3:
    """Vector from ``origin`` to a uniformly chosen point on the quad."""
    point = quad.Q + ti.random(ti.f32) * quad.u + ti.random(ti.f32) * quad.v
    return point - origin


# =============================================================================
# Host-side Helpers
# =============================================================================


def quad_bounding_box(
    corner: tuple[float, float, float],
    edge_u: tuple[float, float, float],
    edge_v: tuple[float, float, float],
) -> AABB:
    """Padded box around the four corners of a quad."""
    corners = [
        corner,
        tuple(corner[i] + edge_u[i] for i in range(3)),
        tuple(corner[i] + edge_v[i] for i in range(3)),
        tuple(corner[i] + edge_u[i] + edge_v[i] for i in range(3)),
    ]
    lo = tuple(min(c[i] for c in corners) for i in range(3))
    hi = tuple(max(c[i] for c in corners) for i in range(3))
    return AABB(lo, hi).padded(QUAD_BOX_PADDING)
