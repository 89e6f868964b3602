"""Photon storage: bounding boxes, photons and the KD-tree index.

The KD-tree partitions an axis-aligned bounding box into nested boxes. Every
node starts as a leaf holding a list of photons. Once a leaf holds more than
``leaf_capacity`` photons (and is shallower than ``max_depth``) it splits at
the midpoint of its longest axis into two children that partition its box:

    child1: position[axis] <  split
    child2: position[axis] >= split

Every point inside the root box therefore routes to exactly one leaf, and
``collect_in_box`` over the root box returns each stored photon exactly once
regardless of the shape the tree has grown into.

Example:
    >>> from src.stormlight.core.kdtree import BoundingBox, KDTree, Photon
    >>> tree = KDTree(BoundingBox(vec3(0, 0, 0), vec3(1, 1, 1)))
    >>> tree.insert(Photon(vec3(0.5, 0.5, 0.5), vec3(0, -1, 0), vec3(1, 1, 1), 0))
    >>> found = []
    >>> tree.collect_in_box(BoundingBox.from_center(vec3(0.5, 0.5, 0.5), 0.1), found)
    >>> len(found)
    1
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

import numpy as np

from .ray import Vec3, as_vec3, vec3

# Default splitting policy
DEFAULT_LEAF_CAPACITY = 10
DEFAULT_MAX_DEPTH = 15


@dataclass(frozen=True, eq=False)
class BoundingBox:
    """Axis-aligned box spanning ``min`` to ``max`` (inclusive on both ends).

    Attributes:
        min: Lower corner.
        max: Upper corner.
    """

    min: Vec3
    max: Vec3

    def __post_init__(self) -> None:
        object.__setattr__(self, "min", as_vec3(self.min))
        object.__setattr__(self, "max", as_vec3(self.max))

    @classmethod
    def from_center(cls, center: Vec3, half_width: float) -> BoundingBox:
        """Cube of the given half-width centered on a point."""
        center = as_vec3(center)
        return cls(center - half_width, center + half_width)

    @classmethod
    def from_points(cls, points) -> BoundingBox:
        """Smallest box containing every point in an (n, 3) array."""
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        if len(pts) == 0:
            raise ValueError("Cannot build a bounding box from zero points")
        return cls(pts.min(axis=0), pts.max(axis=0))

    @property
    def diagonal(self) -> Vec3:
        return self.max - self.min

    @property
    def center(self) -> Vec3:
        return 0.5 * (self.min + self.max)

    def max_dim(self) -> float:
        """Largest extent over the three axes."""
        return float(np.max(self.diagonal))

    def longest_axis(self) -> int:
        return int(np.argmax(self.diagonal))

    def is_valid(self) -> bool:
        """True when min < max on every axis.

        Degenerate (flat) and inverted boxes are not valid query windows and
        select nothing.
        """
        return bool(np.all(self.min < self.max))

    def contains(self, point: Vec3) -> bool:
        return bool(np.all(point >= self.min) and np.all(point <= self.max))

    def farthest_distance(self, point: Vec3) -> float:
        """Distance from ``point`` to the farthest corner of the box."""
        reach = np.maximum(np.abs(self.min - point), np.abs(self.max - point))
        return float(np.linalg.norm(reach))

    def intersects(self, other: BoundingBox) -> bool:
        return bool(np.all(self.min <= other.max) and np.all(other.min <= self.max))

    def expanded(self, fraction: float) -> BoundingBox:
        """Grow the box by ``fraction`` of its extent on every side."""
        margin = fraction * self.diagonal
        return BoundingBox(self.min - margin, self.max + margin)

    def union(self, other: BoundingBox) -> BoundingBox:
        return BoundingBox(np.minimum(self.min, other.min), np.maximum(self.max, other.max))

    def edges(self) -> list[tuple[Vec3, Vec3]]:
        """The 12 edges of the box as (start, end) pairs."""
        a, b = self.min, self.max
        corners = [
            vec3(x, y, z) for x in (a[0], b[0]) for y in (a[1], b[1]) for z in (a[2], b[2])
        ]
        edges = []
        for i in range(8):
            for j in range(i + 1, 8):
                # Corners differing in exactly one coordinate share an edge
                if int(np.count_nonzero(corners[i] != corners[j])) == 1:
                    edges.append((corners[i], corners[j]))
        return edges


@dataclass(frozen=True, eq=False)
class Photon:
    """A stored sample of light energy.

    Attributes:
        position: Where the photon landed.
        direction_from: Unit direction the photon was travelling when it
            arrived.
        energy: Non-negative RGB energy carried by the photon.
        bounce_index: Number of bounces before it landed (0 for a photon
            straight from a light).
    """

    position: Vec3
    direction_from: Vec3
    energy: Vec3
    bounce_index: int


class KDTree:
    """Recursive KD-tree node holding photons.

    A node is either a leaf with a photon list or an internal node with two
    children whose boxes split this node's box in two. Traversal is always
    top-down from the root.

    Args:
        bbox: The region this node covers.
        depth: Depth of this node (0 for the root).
        leaf_capacity: Photons a leaf holds before it splits.
        max_depth: Leaves at this depth never split.
    """

    def __init__(
        self,
        bbox: BoundingBox,
        depth: int = 0,
        leaf_capacity: int = DEFAULT_LEAF_CAPACITY,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        if leaf_capacity < 1:
            raise ValueError(f"leaf_capacity must be >= 1, got {leaf_capacity}")
        if max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {max_depth}")
        self.bbox = bbox
        self.depth = depth
        self.leaf_capacity = leaf_capacity
        self.max_depth = max_depth
        self._photons: list[Photon] = []
        self._child1: KDTree | None = None
        self._child2: KDTree | None = None
        self.split_axis = -1
        self.split_value = 0.0

    # =========================================================================
    # Node accessors
    # =========================================================================

    def is_leaf(self) -> bool:
        return self._child1 is None

    @property
    def min(self) -> Vec3:
        return self.bbox.min

    @property
    def max(self) -> Vec3:
        return self.bbox.max

    @property
    def photons(self) -> list[Photon]:
        """Photons stored in this leaf.

        Raises:
            RuntimeError: If called on an internal node.
        """
        if not self.is_leaf():
            raise RuntimeError("Internal KD-tree nodes do not store photons")
        return self._photons

    @property
    def child1(self) -> KDTree:
        """Child covering position[split_axis] < split_value."""
        if self._child1 is None:
            raise RuntimeError("A KD-tree leaf has no children")
        return self._child1

    @property
    def child2(self) -> KDTree:
        """Child covering position[split_axis] >= split_value."""
        if self._child2 is None:
            raise RuntimeError("A KD-tree leaf has no children")
        return self._child2

    # =========================================================================
    # Insertion
    # =========================================================================

    def insert(self, photon: Photon) -> None:
        """Store a photon in the leaf whose box contains its position.

        Raises:
            ValueError: If the position lies outside this node's box.
        """
        if not self.bbox.contains(photon.position):
            raise ValueError(
                f"Photon position {photon.position} is outside the KD-tree bounds "
                f"{self.bbox.min} - {self.bbox.max}"
            )
        node = self
        while not node.is_leaf():
            node = node._route(photon.position)
        node._photons.append(photon)
        if len(node._photons) > node.leaf_capacity and node.depth < node.max_depth:
            node._split()

    def _route(self, position: Vec3) -> KDTree:
        if position[self.split_axis] < self.split_value:
            return self._child1
        return self._child2

    def _split(self) -> None:
        """Turn this leaf into an internal node at the midpoint of its longest axis."""
        axis = self.bbox.longest_axis()
        split = float(0.5 * (self.bbox.min[axis] + self.bbox.max[axis]))

        upper1 = self.bbox.max.copy()
        upper1[axis] = split
        lower2 = self.bbox.min.copy()
        lower2[axis] = split

        self.split_axis = axis
        self.split_value = split
        self._child1 = KDTree(
            BoundingBox(self.bbox.min, upper1), self.depth + 1, self.leaf_capacity, self.max_depth
        )
        self._child2 = KDTree(
            BoundingBox(lower2, self.bbox.max), self.depth + 1, self.leaf_capacity, self.max_depth
        )

        photons, self._photons = self._photons, []
        for photon in photons:
            self._route(photon.position)._photons.append(photon)
        # All photons may land on one side; keep splitting that side
        for child in (self._child1, self._child2):
            if len(child._photons) > child.leaf_capacity and child.depth < child.max_depth:
                child._split()

    # =========================================================================
    # Queries
    # =========================================================================

    def collect_in_box(self, box: BoundingBox, out: list[Photon]) -> None:
        """Append every stored photon inside ``box`` to ``out``.

        ``out`` is not cleared. An inverted or flat box selects nothing.
        """
        if not box.is_valid():
            return
        todo = [self]
        while todo:
            node = todo.pop()
            if not node.bbox.intersects(box):
                continue
            if node.is_leaf():
                out.extend(p for p in node._photons if box.contains(p.position))
            else:
                todo.append(node._child2)
                todo.append(node._child1)

    def iter_leaves(self) -> Iterator[KDTree]:
        """Yield every leaf below (or at) this node."""
        todo = [self]
        while todo:
            node = todo.pop()
            if node.is_leaf():
                yield node
            else:
                todo.append(node._child2)
                todo.append(node._child1)

    def iter_nodes(self) -> Iterator[KDTree]:
        """Yield every node below (or at) this node, parents first."""
        todo = [self]
        while todo:
            node = todo.pop()
            yield node
            if not node.is_leaf():
                todo.append(node._child2)
                todo.append(node._child1)

    def iter_photons(self) -> Iterator[Photon]:
        for leaf in self.iter_leaves():
            yield from leaf._photons

    def __len__(self) -> int:
        return sum(len(leaf._photons) for leaf in self.iter_leaves())
