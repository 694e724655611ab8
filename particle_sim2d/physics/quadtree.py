"""
Barnes-Hut quadtree for 2D gravitational force calculation.

The tree is stored as a flat arena: every node is an index into a set of
parallel lists, and a branch stores the index of the first of its four
consecutive children. Both insertion and force evaluation walk the arena
iteratively, so deep trees never hit the recursion limit.

The algorithm works by:
1. Inserting particles one by one, folding each particle's mass and
   mass-weighted position into every node on its path
2. Splitting an occupied leaf into four quadrants when a second particle
   arrives
3. For each particle, traversing the tree and treating any distant branch
   as a single pseudo-particle at its center of mass

Constants:
    MAX_DEPTH: Default maximum tree depth
    MIN_SIZE: Nodes smaller than this are never split

Quadrant routing is half-open: a point goes east when ``x >= mid_x`` and
south when ``y >= mid_y``. Every point is therefore routed to exactly one
child and every inserted particle ends up in exactly one leaf. A leaf that
reaches the depth cap keeps additional particles in a bucket instead of
splitting, so coincident particles cannot recurse without bound.

Example:
    >>> from particle_sim2d.physics.quadtree import build_quadtree
    >>> xs, ys, ms = [10.0, 20.0, 30.0], [10.0, 40.0, 20.0], [1.0, 1.0, 2.0]
    >>> tree = build_quadtree(xs, ys, ms, width=64.0, height=64.0)
    >>> ax, ay = tree.accel_on(0, xs, ys, ms, g=1.0, eps2=0.01, theta=0.5)
"""

from __future__ import annotations

import math
from typing import Iterator, Sequence


MAX_DEPTH = 24
MIN_SIZE = 1e-9

# child offsets in units of half the parent size: top-right, top-left, bottom-left, bottom-right
QUADRANT_OFFSETS = ((1, 0), (0, 0), (0, 1), (1, 1))
TOP_RIGHT, TOP_LEFT, BOTTOM_LEFT, BOTTOM_RIGHT = range(4)


class QuadTree:
    """
    Flat-arena quadtree with incremental mass aggregation.

    Node ``k`` covers the square ``[x0[k], x0[k] + size[k]) x [y0[k], y0[k] + size[k])``
    (y grows downwards, as in screen space) and is one of:

    - Empty: ``body[k] == -1`` and ``first_child[k] == -1``
    - Occupied leaf: ``body[k] >= 0`` (plus ``extra[k]`` at the depth cap)
    - Branch: ``first_child[k] >= 0``; children are ``first_child[k] + 0..3``

    Attributes:
        mass: Aggregate mass of every particle under the node
        mx, my: Running sum of ``mass * position`` under the node
        leaf_of: Leaf node holding each inserted particle index
    """

    __slots__ = (
        "x0",
        "y0",
        "size",
        "mass",
        "mx",
        "my",
        "first_child",
        "body",
        "depth",
        "parent",
        "extra",
        "leaf_of",
        "max_depth",
        "count",
    )

    def __init__(self, x0: float, y0: float, size: float, *, max_depth: int = MAX_DEPTH) -> None:
        if not size > 0.0:
            raise ValueError("quadtree root size must be positive")
        self.x0: list[float] = []
        self.y0: list[float] = []
        self.size: list[float] = []
        self.mass: list[float] = []
        self.mx: list[float] = []
        self.my: list[float] = []
        self.first_child: list[int] = []
        self.body: list[int] = []
        self.depth: list[int] = []
        self.parent: list[int] = []
        self.extra: dict[int, list[int]] = {}
        self.leaf_of: dict[int, int] = {}
        self.max_depth = max(0, int(max_depth))
        self.count = 0
        self._new_node(float(x0), float(y0), float(size), depth=0, parent=-1)

    def __len__(self) -> int:
        return len(self.size)

    def _new_node(self, x0: float, y0: float, size: float, *, depth: int, parent: int) -> int:
        self.x0.append(x0)
        self.y0.append(y0)
        self.size.append(size)
        self.mass.append(0.0)
        self.mx.append(0.0)
        self.my.append(0.0)
        self.first_child.append(-1)
        self.body.append(-1)
        self.depth.append(depth)
        self.parent.append(parent)
        return len(self.size) - 1

    def _split(self, node: int) -> int:
        h = self.size[node] * 0.5
        x0 = self.x0[node]
        y0 = self.y0[node]
        depth = self.depth[node] + 1
        first = len(self.size)
        for ox, oy in QUADRANT_OFFSETS:
            self._new_node(x0 + ox * h, y0 + oy * h, h, depth=depth, parent=node)
        self.first_child[node] = first
        return first

    def quadrant(self, node: int, x: float, y: float) -> int:
        """Return the child slot (0..3) a point is routed to from ``node``."""
        h = self.size[node] * 0.5
        east = x >= self.x0[node] + h
        south = y >= self.y0[node] + h
        if south:
            return BOTTOM_RIGHT if east else BOTTOM_LEFT
        return TOP_RIGHT if east else TOP_LEFT

    def contains(self, node: int, x: float, y: float) -> bool:
        x0 = self.x0[node]
        y0 = self.y0[node]
        s = self.size[node]
        return x0 <= x < x0 + s and y0 <= y < y0 + s

    def insert(self, idx: int, xs: Sequence[float], ys: Sequence[float], ms: Sequence[float]) -> None:
        x = float(xs[idx])
        y = float(ys[idx])
        m = float(ms[idx])
        node = 0
        while True:
            self.mass[node] += m
            self.mx[node] += m * x
            self.my[node] += m * y

            first = self.first_child[node]
            if first >= 0:
                node = first + self.quadrant(node, x, y)
                continue

            resident = self.body[node]
            if resident < 0:
                self.body[node] = idx
                self.leaf_of[idx] = node
                self.count += 1
                return

            if self.depth[node] >= self.max_depth or self.size[node] * 0.5 <= MIN_SIZE:
                self.extra.setdefault(node, []).append(idx)
                self.leaf_of[idx] = node
                self.count += 1
                return

            # Occupied: push the resident (and any bucket) down one level, then retry from here.
            moved = [resident, *self.extra.pop(node, [])]
            self.body[node] = -1
            first = self._split(node)
            for j in moved:
                xj = float(xs[j])
                yj = float(ys[j])
                mj = float(ms[j])
                child = first + self.quadrant(node, xj, yj)
                self.mass[child] += mj
                self.mx[child] += mj * xj
                self.my[child] += mj * yj
                if self.body[child] < 0:
                    self.body[child] = j
                else:
                    self.extra.setdefault(child, []).append(j)
                self.leaf_of[j] = child
            node = first + self.quadrant(node, x, y)

    # -- queries -----------------------------------------------------------

    def is_leaf(self, node: int) -> bool:
        return self.first_child[node] < 0

    def is_empty(self, node: int) -> bool:
        return self.first_child[node] < 0 and self.body[node] < 0

    def children(self, node: int) -> tuple[int, int, int, int] | None:
        first = self.first_child[node]
        if first < 0:
            return None
        return first, first + 1, first + 2, first + 3

    def bodies(self, node: int) -> list[int]:
        """Particle indices stored directly in a leaf (empty for branches)."""
        b = self.body[node]
        if b < 0:
            return []
        return [b, *self.extra.get(node, ())]

    def center_of_mass(self, node: int) -> tuple[float, float] | None:
        m = self.mass[node]
        if m <= 0.0:
            return None
        inv = 1.0 / m
        return self.mx[node] * inv, self.my[node] * inv

    def iter_nodes(self) -> Iterator[int]:
        return iter(range(len(self.size)))

    def depth_max(self) -> int:
        return max(self.depth)

    def ancestors(self, idx: int) -> set[int]:
        """Node ids on the path from the root to the leaf holding ``idx``."""
        path: set[int] = set()
        node = self.leaf_of.get(idx, -1)
        while node >= 0:
            path.add(node)
            node = self.parent[node]
        return path

    # -- force evaluation --------------------------------------------------

    def accel_on(
        self,
        idx: int,
        xs: Sequence[float],
        ys: Sequence[float],
        ms: Sequence[float],
        *,
        g: float,
        eps2: float,
        theta: float,
    ) -> tuple[float, float]:
        """
        Barnes-Hut acceleration acting on particle ``idx``.

        A branch is replaced by its aggregate mass when ``size / d <= theta``
        (``d`` is the softened distance to its center of mass), unless the
        branch contains ``idx`` itself: those are always opened so a particle
        never feels its own mass.
        """
        xi = float(xs[idx])
        yi = float(ys[idx])
        own_path = self.ancestors(idx)
        first_child = self.first_child
        body = self.body
        extra = self.extra
        mass = self.mass
        mx = self.mx
        my = self.my
        size = self.size

        ax = ay = 0.0
        stack = [0]
        while stack:
            node = stack.pop()
            first = first_child[node]
            if first < 0:
                b = body[node]
                if b < 0:
                    continue
                for j in (b, *extra[node]) if node in extra else (b,):
                    if j == idx:
                        continue
                    dx = float(xs[j]) - xi
                    dy = float(ys[j]) - yi
                    d = math.sqrt(dx * dx + dy * dy + eps2)
                    if d == 0.0:
                        continue
                    f = g * float(ms[j]) / (d * d * d)
                    ax += dx * f
                    ay += dy * f
                continue

            m = mass[node]
            if m <= 0.0:
                continue
            if node not in own_path:
                inv = 1.0 / m
                dx = mx[node] * inv - xi
                dy = my[node] * inv - yi
                d = math.sqrt(dx * dx + dy * dy + eps2)
                if d > 0.0 and size[node] / d <= theta:
                    f = g * m / (d * d * d)
                    ax += dx * f
                    ay += dy * f
                    continue
            stack.extend((first + 3, first + 2, first + 1, first))
        return ax, ay


def build_quadtree(
    xs: Sequence[float],
    ys: Sequence[float],
    ms: Sequence[float],
    *,
    width: float,
    height: float,
    max_depth: int = MAX_DEPTH,
) -> QuadTree:
    """Build a fresh tree whose root is the square ``[0, max(width, height)]^2``."""
    n = len(xs)
    if len(ys) != n or len(ms) != n:
        raise ValueError("xs, ys and ms must have the same length")
    side = max(float(width), float(height))
    tree = QuadTree(0.0, 0.0, side, max_depth=max_depth)
    for i in range(n):
        tree.insert(i, xs, ys, ms)
    return tree
