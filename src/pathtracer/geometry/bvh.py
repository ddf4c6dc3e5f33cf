"""Bounding volume hierarchy construction.

The tree is built once per scene on the host from tagged geometry nodes and
then flattened into parallel arrays that ``pathtracer.scene.intersection``
uploads to Taichi fields for traversal.

Construction picks a split axis uniformly at random (no surface-area
heuristic), orders the objects by the minimum of their bounding boxes on that
axis, and splits the ordered list at its midpoint. A single object is
returned as-is rather than wrapped in a one-child branch.

Example:
    >>> import numpy as np
    >>> from pathtracer.geometry.aabb import AABB
    >>> from pathtracer.geometry.bvh import PrimitiveNode, build_bvh, flatten_bvh
    >>> leaves = [
    ...     PrimitiveNode(i, AABB((i, 0, 0), (i + 1, 1, 1))) for i in range(5)
    ... ]
    >>> root = build_bvh(leaves, rng=np.random.default_rng(7))
    >>> flat = flatten_bvh(root)
    >>> flat.node_count
    9
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Union

import numpy as np
import numpy.typing as npt

from pathtracer.geometry.aabb import AABB, surrounding_box

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PrimitiveNode:
    """Leaf referring to one primitive of the scene's primitive table.

    Attributes:
        primitive_id: Index into the unified primitive table.
        box: Bounding box of the primitive. Every primitive in this renderer
            is boundable; None marks a caller error caught at build time.
    """

    primitive_id: int
    box: AABB | None

    def bounding_box(self) -> AABB | None:
        """Box of the primitive, None if it cannot be bounded."""
        return self.box


@dataclass(frozen=True)
class BVHBranch:
    """Interior node owning two subtrees and the box covering both."""

    left: BVHNode
    right: BVHNode
    box: AABB

    def bounding_box(self) -> AABB:
        """Box covering both subtrees."""
        return self.box


BVHNode = Union[PrimitiveNode, BVHBranch]


def _require_box(node: BVHNode) -> AABB:
    box = node.bounding_box()
    if box is None:
        raise TypeError(
            f"Cannot place {node!r} in a BVH: every primitive must have a bounding box"
        )
    return box


def _make_branch(left: BVHNode, right: BVHNode) -> BVHBranch:
    return BVHBranch(left, right, surrounding_box(_require_box(left), _require_box(right)))


def build_bvh(
    objects: Sequence[BVHNode],
    rng: np.random.Generator | None = None,
) -> BVHNode:
    """Build a BVH over ``objects``.

    Args:
        objects: Non-empty list of geometry nodes (leaves or prebuilt
            subtrees).
        rng: Generator used to choose split axes. A fresh unseeded generator
            is used when omitted.

    Returns:
        The root node. For a single object this is the object itself.

    Raises:
        ValueError: If ``objects`` is empty.
        TypeError: If any object has no bounding box.
    """
    if len(objects) == 0:
        raise ValueError("Cannot build a BVH from an empty primitive list")
    if rng is None:
        rng = np.random.default_rng()
    for node in objects:
        _require_box(node)
    root = _build(list(objects), rng)
    logger.debug("Built BVH over %d objects, depth %d", len(objects), bvh_depth(root))
    return root


def _build(objects: list[BVHNode], rng: np.random.Generator) -> BVHNode:
    axis = int(rng.integers(0, 3))

    def key(node: BVHNode) -> float:
        return _require_box(node).axis_min(axis)

    if len(objects) == 1:
        return objects[0]

    if len(objects) == 2:
        first, second = objects
        if key(first) <= key(second):
            return _make_branch(first, second)
        return _make_branch(second, first)

    # sorted() is stable, so equal minimums keep their input order
    ordered = sorted(objects, key=key)
    mid = len(ordered) // 2
    upper = ordered[mid:]
    lower = ordered[:mid]
    return _make_branch(_build(upper, rng), _build(lower, rng))


# =============================================================================
# Flattening for Device Traversal
# =============================================================================


@dataclass
class FlatBVH:
    """Pre-order array layout of a BVH (node 0 is the root).

    Attributes:
        box_min: (N, 3) minimum corners.
        box_max: (N, 3) maximum corners.
        left: (N,) index of the left child, -1 for leaves.
        right: (N,) index of the right child, -1 for leaves.
        primitive: (N,) primitive id for leaves, -1 for branches.
    """

    box_min: npt.NDArray[np.float32]
    box_max: npt.NDArray[np.float32]
    left: npt.NDArray[np.int32]
    right: npt.NDArray[np.int32]
    primitive: npt.NDArray[np.int32]

    @property
    def node_count(self) -> int:
        """Number of nodes in the flattened tree."""
        return int(self.primitive.shape[0])

    @property
    def leaf_count(self) -> int:
        """Number of leaf nodes, one per primitive."""
        return int(np.count_nonzero(self.primitive >= 0))


def flatten_bvh(root: BVHNode) -> FlatBVH:
    """Lay the tree out in pre-order: node, left subtree, right subtree."""
    mins: list[tuple[float, float, float]] = []
    maxs: list[tuple[float, float, float]] = []
    lefts: list[int] = []
    rights: list[int] = []
    prims: list[int] = []

    def visit(node: BVHNode) -> int:
        box = _require_box(node)
        index = len(prims)
        mins.append(box.minimum)
        maxs.append(box.maximum)
        lefts.append(-1)
        rights.append(-1)
        if isinstance(node, PrimitiveNode):
            prims.append(node.primitive_id)
        else:
            prims.append(-1)
            lefts[index] = visit(node.left)
            rights[index] = visit(node.right)
        return index

    visit(root)

    return FlatBVH(
        box_min=np.array(mins, dtype=np.float32).reshape(-1, 3),
        box_max=np.array(maxs, dtype=np.float32).reshape(-1, 3),
        left=np.array(lefts, dtype=np.int32),
        right=np.array(rights, dtype=np.int32),
        primitive=np.array(prims, dtype=np.int32),
    )


def bvh_depth(node: BVHNode) -> int:
    """Number of nodes on the longest root-to-leaf path."""
    if isinstance(node, PrimitiveNode):
        return 1
    return 1 + max(bvh_depth(node.left), bvh_depth(node.right))


def collect_primitive_ids(node: BVHNode) -> list[int]:
    """Primitive ids of all leaves, left to right."""
    if isinstance(node, PrimitiveNode):
        return [node.primitive_id]
    return collect_primitive_ids(node.left) + collect_primitive_ids(node.right)
