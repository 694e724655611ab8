"""
Physics solvers for 2D N-body gravitational accelerations.

This module provides different backends for computing accelerations:
- Barnes-Hut (quadtree): O(N log N) approximation
- Direct CPU: O(N²) exact calculation, vectorised with NumPy
- compute_forces_direct: O(N²) pure Python reference

All backends use the same softened law:
    a_i = G * Σ_j m_j * (r_j - r_i) / (|r_j - r_i|² + ε²)^(3/2)

Example:
    >>> from particle_sim2d.physics.forces import BarnesHutSolver
    >>> solver = BarnesHutSolver(theta=0.6)
    >>> ax, ay = solver.compute(xs, ys, ms, g=1.0, eps2=100.0, width=512, height=512)
"""

from __future__ import annotations

import logging
import math
import time
from typing import TYPE_CHECKING, Sequence

import numpy as np

from particle_sim2d.physics.quadtree import MAX_DEPTH, QuadTree, build_quadtree

if TYPE_CHECKING:
    from particle_sim2d.core.sim import Particle2D

logger = logging.getLogger(__name__)


def compute_pair_accel(
    mj: float,
    xi: float, yi: float,
    xj: float, yj: float,
    g: float,
    eps2: float,
) -> tuple[float, float]:
    """
    Acceleration on particle i due to particle j.

    Args:
        mj: Mass of particle j
        xi, yi: Position of particle i
        xj, yj: Position of particle j
        g: Gravitational constant
        eps2: Softening length squared (avoids singularities)

    Returns:
        (ax, ay): Acceleration on particle i
    """
    dx = xj - xi
    dy = yj - yi
    d = math.sqrt(dx * dx + dy * dy + eps2)
    if d == 0.0:
        return 0.0, 0.0
    f = g * mj / (d * d * d)
    return dx * f, dy * f


def compute_forces_direct(
    xs: Sequence[float],
    ys: Sequence[float],
    ms: Sequence[float],
    g: float,
    eps2: float,
) -> tuple[list[float], list[float]]:
    """
    Compute accelerations using direct O(N²) summation (pure Python).

    This is the reference implementation for testing.
    """
    n = len(xs)
    ax = [0.0] * n
    ay = [0.0] * n

    for i in range(n):
        xi, yi = xs[i], ys[i]
        axi = ayi = 0.0
        for j in range(n):
            if i == j:
                continue
            dxj, dyj = compute_pair_accel(ms[j], xi, yi, xs[j], ys[j], g, eps2)
            axi += dxj
            ayi += dyj
        ax[i] = axi
        ay[i] = ayi

    return ax, ay


class ForceSolver:
    """
    Abstract base interface for force solvers.

    Subclasses implement different algorithms for computing N-body accelerations.
    """

    name = "base"

    def compute(
        self,
        xs: Sequence[float],
        ys: Sequence[float],
        ms: Sequence[float],
        *,
        g: float,
        eps2: float,
        **kwargs,
    ) -> tuple[list[float], list[float]]:
        """
        Compute accelerations for all particles.

        Returns:
            (ax, ay) lists, one entry per particle.
        """
        raise NotImplementedError


class BarnesHutSolver(ForceSolver):
    """
    Barnes-Hut tree-based force solver.

    Approximates distant particle groups as single masses,
    achieving O(N log N) complexity. A new tree is built on every call;
    the last one is kept in ``last_tree`` for inspection only.

    Attributes:
        theta: Opening angle parameter (0 = exact, higher = faster but less accurate)
        max_depth: Depth cap handed to the quadtree builder
    """

    name = "barnes_hut"

    def __init__(self, theta: float = 0.6, *, max_depth: int = MAX_DEPTH):
        """
        Initialize the Barnes-Hut solver.

        Args:
            theta: Opening angle parameter. Typical values:
                   0.0 = exact (same as direct)
                   0.3 = accurate
                   0.6 = balanced
                   1.0 = fast but approximate
            max_depth: Maximum subdivision depth of the quadtree
        """
        self.theta = theta
        self.max_depth = max_depth
        self.last_build_time_ms: float | None = None
        self.last_traverse_time_ms: float | None = None
        self.last_tree: QuadTree | None = None

    def build(
        self,
        xs: Sequence[float],
        ys: Sequence[float],
        ms: Sequence[float],
        *,
        width: float,
        height: float,
    ) -> QuadTree:
        t0 = time.perf_counter()
        tree = build_quadtree(xs, ys, ms, width=width, height=height, max_depth=self.max_depth)
        self.last_build_time_ms = (time.perf_counter() - t0) * 1000.0
        logger.debug(
            "quadtree: %d particles, %d nodes, depth %d, built in %.2f ms",
            tree.count,
            len(tree),
            tree.depth_max(),
            self.last_build_time_ms,
        )
        return tree

    def evaluate(
        self,
        tree: QuadTree,
        xs: Sequence[float],
        ys: Sequence[float],
        ms: Sequence[float],
        *,
        g: float,
        eps2: float,
    ) -> tuple[list[float], list[float]]:
        """Evaluate every particle against a fully built tree."""
        n = len(xs)
        ax = [0.0] * n
        ay = [0.0] * n

        t0 = time.perf_counter()
        theta = self.theta
        for i in range(n):
            ax[i], ay[i] = tree.accel_on(i, xs, ys, ms, g=g, eps2=eps2, theta=theta)
        self.last_traverse_time_ms = (time.perf_counter() - t0) * 1000.0
        return ax, ay

    def compute(
        self,
        xs: Sequence[float],
        ys: Sequence[float],
        ms: Sequence[float],
        *,
        g: float,
        eps2: float,
        width: float | None = None,
        height: float | None = None,
        **kwargs,
    ) -> tuple[list[float], list[float]]:
        """
        Compute accelerations using the Barnes-Hut algorithm.

        Args:
            xs, ys: Particle positions
            ms: Particle masses
            g: Gravitational constant
            eps2: Softening squared
            width, height: Domain extent; when omitted the root is sized to
                           enclose every particle

        Returns:
            (ax, ay) lists
        """
        n = len(xs)
        if n == 0:
            return [], []

        if width is None or height is None:
            width = height = max(1.0, max(xs), max(ys)) * 1.01

        tree = self.build(xs, ys, ms, width=width, height=height)
        result = self.evaluate(tree, xs, ys, ms, g=g, eps2=eps2)
        self.last_tree = tree
        return result


class DirectSolver(ForceSolver):
    """
    Direct O(N²) force solver using NumPy on CPU.

    Exact (up to float64 rounding) but slower than Barnes-Hut for large N.
    Uses tiled computation to bound memory usage.
    """

    name = "direct"

    def __init__(self, tile_size: int = 256):
        self.tile_size = tile_size

    def compute(
        self,
        xs: Sequence[float],
        ys: Sequence[float],
        ms: Sequence[float],
        *,
        g: float,
        eps2: float,
        **kwargs,
    ) -> tuple[list[float], list[float]]:
        """Compute accelerations using tiled direct summation."""
        n = len(xs)
        if n == 0:
            return [], []

        pos = np.empty((n, 2), dtype=np.float64)
        pos[:, 0] = xs
        pos[:, 1] = ys
        masses = np.asarray(ms, dtype=np.float64)

        acc = np.zeros((n, 2), dtype=np.float64)
        tile = max(1, int(self.tile_size))

        for i0 in range(0, n, tile):
            i1 = min(n, i0 + tile)
            pi = pos[i0:i1]
            acc_i = np.zeros((i1 - i0, 2), dtype=np.float64)

            for j0 in range(0, n, tile):
                j1 = min(n, j0 + tile)
                pj = pos[j0:j1]
                mj = masses[j0:j1].reshape(1, -1)

                d = pj[None, :, :] - pi[:, None, :]
                r2 = np.sum(d * d, axis=2) + eps2

                if i0 == j0:
                    diag = np.arange(min(i1 - i0, j1 - j0), dtype=np.int64)
                    r2[diag, diag] = np.inf
                # coincident particles without softening contribute nothing
                r2[r2 == 0.0] = np.inf

                inv_r = 1.0 / np.sqrt(r2)
                inv_r3 = inv_r * inv_r * inv_r
                f = g * (mj * inv_r3)
                acc_i += np.sum(d * f[:, :, None], axis=1)

            acc[i0:i1] = acc_i

        return acc[:, 0].tolist(), acc[:, 1].tolist()


def accumulate_field(
    tree: QuadTree,
    idx: int,
    particles: Sequence["Particle2D"],
    xs: Sequence[float],
    ys: Sequence[float],
    ms: Sequence[float],
    *,
    g: float,
    eps2: float,
    theta: float,
) -> None:
    """
    Add the Barnes-Hut acceleration on ``particles[idx]`` into its ``ax, ay``.

    ``xs, ys, ms`` is the position/mass snapshot the tree was built from.
    """
    ax, ay = tree.accel_on(idx, xs, ys, ms, g=g, eps2=eps2, theta=theta)
    particles[idx].ax += ax
    particles[idx].ay += ay
