"""Axis-aligned bounding boxes.

Boxes are built on the host while the BVH is assembled (``AABB``) and tested
on the device during traversal (``hit_aabb``).

The slab test intersects the ray's parametric interval ``[t_min, t_max]``
with the interval it spends between each pair of axis-aligned planes. The
box is hit iff the running interval stays non-empty across all three axes.

Example:
    >>> from pathtracer.geometry.aabb import AABB, surrounding_box
    >>> a = AABB((0.0, 0.0, 0.0), (1.0, 1.0, 1.0))
    >>> b = AABB.from_corners((3.0, -1.0, 0.5), (2.0, 0.5, 2.0))
    >>> surrounding_box(a, b).maximum
    (3.0, 1.0, 2.0)
"""

from collections.abc import Sequence
from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3

Point3 = tuple[float, float, float]


@dataclass(frozen=True)
class AABB:
    """Immutable box spanning ``minimum`` to ``maximum`` on every axis.

    Attributes:
        minimum: Component-wise smallest corner.
        maximum: Component-wise largest corner.

    Raises:
        ValueError: If ``minimum`` exceeds ``maximum`` on any axis. Use
            ``AABB.from_corners`` to build a box from unordered corners.
    """

    minimum: Point3
    maximum: Point3

    def __post_init__(self) -> None:
        object.__setattr__(self, "minimum", _as_point(self.minimum))
        object.__setattr__(self, "maximum", _as_point(self.maximum))
        for axis in range(3):
            if self.minimum[axis] > self.maximum[axis]:
                raise ValueError(
                    f"Malformed AABB: minimum {self.minimum} exceeds maximum "
                    f"{self.maximum} on axis {axis}"
                )

    @classmethod
    def from_corners(cls, a: Sequence[float], b: Sequence[float]) -> "AABB":
        """Box spanned by two opposite corners given in any order."""
        return cls(
            (min(a[0], b[0]), min(a[1], b[1]), min(a[2], b[2])),
            (max(a[0], b[0]), max(a[1], b[1]), max(a[2], b[2])),
        )

    def axis_min(self, axis: int) -> float:
        """Lower bound of the box along ``axis``."""
        return self.minimum[axis]

    def centroid(self) -> Point3:
        """Center point of the box."""
        return (
            0.5 * (self.minimum[0] + self.maximum[0]),
            0.5 * (self.minimum[1] + self.maximum[1]),
            0.5 * (self.minimum[2] + self.maximum[2]),
        )

    def contains(self, other: "AABB") -> bool:
        """True if ``other`` lies entirely inside this box."""
        return all(
            self.minimum[axis] <= other.minimum[axis]
            and other.maximum[axis] <= self.maximum[axis]
            for axis in range(3)
        )

    def padded(self, delta: float = 1e-4) -> "AABB":
        """Copy of the box with every axis at least ``delta`` thick.

        Flat primitives (quads lying in an axis plane) would otherwise get a
        zero-width slab, which the strict ``t_max <= t_min`` test rejects.
        """
        lo = list(self.minimum)
        hi = list(self.maximum)
        for axis in range(3):
            if hi[axis] - lo[axis] < delta:
                lo[axis] -= delta / 2.0
                hi[axis] += delta / 2.0
        return AABB(tuple(lo), tuple(hi))


def surrounding_box(box0: AABB, box1: AABB) -> AABB:
    """Smallest box containing both inputs.

    Associative and commutative, and ``surrounding_box(a, a) == a``, so child
    boxes can be folded upward in any order.
    """
    return AABB(
        (
            min(box0.minimum[0], box1.minimum[0]),
            min(box0.minimum[1], box1.minimum[1]),
            min(box0.minimum[2], box1.minimum[2]),
        ),
        (
            max(box0.maximum[0], box1.maximum[0]),
            max(box0.maximum[1], box1.maximum[1]),
            max(box0.maximum[2], box1.maximum[2]),
        ),
    )


def _as_point(values: Sequence[float]) -> Point3:
    if len(values) != 3:
        raise ValueError(f"Expected 3 coordinates, got {len(values)}")
    return (float(values[0]), float(values[1]), float(values[2]))


# =============================================================================
# Slab Test (Taichi-compatible)
# =============================================================================


@ti.func
def hit_aabb(
    ray_origin: vec3,
    ray_direction: vec3,
    box_min: vec3,
    box_max: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> ti.i32:
    """Slab test of a ray against a box over ``[t_min, t_max]``.

    Entry and exit distances are ordered with min/max, so the sign of each
    direction component does not matter. A component of exactly zero is the
    IEEE limit case of the division: the ray never crosses that pair of
    planes, so the axis passes iff the origin already lies inside the slab.

    Args:
        ray_origin: Ray origin.
        ray_direction: Ray direction (need not be normalized).
        box_min: Minimum corner of the box.
        box_max: Maximum corner of the box.
        t_min: Lower bound of the parametric interval.
        t_max: Upper bound of the parametric interval.

    Returns:
        1 if the interval overlaps the box, 0 otherwise.
    """
    lo = t_min
    hi = t_max
    hit = 1
    for axis in ti.static(range(3)):
        if hit == 1:
            d = ray_direction[axis]
            o = ray_origin[axis]
            if d == 0.0:
                if o < box_min[axis] or o > box_max[axis]:
                    hit = 0
            else:
                inv_d = 1.0 / d
                t0 = (box_min[axis] - o) * inv_d
                t1 = (box_max[axis] - o) * inv_d
                lo = tm.max(lo, tm.min(t0, t1))
                hi = tm.min(hi, tm.max(t0, t1))
                if hi <= lo:
                    hit = 0
    return hit
