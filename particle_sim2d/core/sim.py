from __future__ import annotations

import logging
import math
import random
import time
from dataclasses import dataclass

from particle_sim2d.params import Sim2DParams
from particle_sim2d.physics.forces import BarnesHutSolver, DirectSolver, accumulate_field
from particle_sim2d.physics.quadtree import QuadTree
from particle_sim2d.core.init_conditions import create_central_disk, sample_spawn_position

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Particle2D:
    x: float
    y: float
    vx: float = 0.0
    vy: float = 0.0
    m: float = 1.0
    ax: float = 0.0
    ay: float = 0.0
    ax_prev: float = 0.0
    ay_prev: float = 0.0
    # no previous acceleration sample exists until one integration cycle has run
    first_step: bool = True


class ParticleSim2D:
    """
    Barnes-Hut gravity simulation over a fixed 2D domain.

    Each call to :meth:`step` runs four strictly sequential phases over the
    particle store owned by this object:

    1. :meth:`respawn_escaped` moves particles that left the domain back
       around the centre
    2. :meth:`build_tree` inserts every particle into a fresh quadtree
    3. :meth:`compute_accelerations` evaluates every particle against the
       finished tree
    4. :meth:`integrate` kicks velocities and drifts positions

    The tree is dropped at the end of the step.
    """

    def __init__(self, params: Sim2DParams) -> None:
        self.params = params
        self._rng = random.Random(params.seed)
        self.particles: list[Particle2D] = []
        self._xs: list[float] = []
        self._ys: list[float] = []
        self._ms: list[float] = []
        self.step_count = 0
        self.sim_time = 0.0
        self.last_force_ms: float | None = None
        self.last_force_backend: str = "off"
        self.last_respawned = 0

        self._barnes_hut_solver: BarnesHutSolver | None = None
        self._direct_solver: DirectSolver | None = None

        self.reset()

    def reset(self) -> None:
        p = self.params
        self._rng = random.Random(p.seed)
        self.step_count = 0
        self.sim_time = 0.0
        self.particles = [
            Particle2D(x=ip.x, y=ip.y, vx=ip.vx, vy=ip.vy, m=ip.m)
            for ip in create_central_disk(p, self._rng)
        ]

    # -- phase 0: domain policy ---------------------------------------------

    def in_domain(self, pt: Particle2D) -> bool:
        p = self.params
        return 0.0 < pt.x < p.width and 0.0 < pt.y < p.height

    def respawn(self, pt: Particle2D) -> None:
        x, y, r, a = sample_spawn_position(self.params, self._rng)
        spin = float(self.params.respawn_spin)
        pt.x = x
        pt.y = y
        pt.vx = -spin * r * math.sin(a)
        pt.vy = spin * r * math.cos(a)
        pt.ax = 0.0
        pt.ay = 0.0
        pt.first_step = True

    def respawn_escaped(self) -> int:
        """Re-spawn every particle not strictly inside the domain; return how many moved."""
        count = 0
        for pt in self.particles:
            if not self.in_domain(pt):
                self.respawn(pt)
                count += 1
        self.last_respawned = count
        if count:
            logger.debug("re-spawned %d escaped particles", count)
        return count

    # -- phase 1/2: forces --------------------------------------------------

    def _snapshot(self) -> tuple[list[float], list[float], list[float]]:
        n = len(self.particles)
        xs = self._xs
        ys = self._ys
        ms = self._ms
        for arr in (xs, ys, ms):
            if len(arr) < n:
                arr.extend([0.0] * (n - len(arr)))
            else:
                del arr[n:]
        for i, pt in enumerate(self.particles):
            xs[i] = pt.x
            ys[i] = pt.y
            ms[i] = pt.m
        return xs, ys, ms

    def _ensure_barnes_hut(self) -> BarnesHutSolver:
        p = self.params
        solver = self._barnes_hut_solver
        if solver is None or solver.theta != p.theta or solver.max_depth != p.max_depth:
            solver = BarnesHutSolver(theta=p.theta, max_depth=p.max_depth)
            self._barnes_hut_solver = solver
        return solver

    def build_tree(self) -> QuadTree:
        """Build a fresh quadtree over the current positions."""
        p = self.params
        xs, ys, ms = self._snapshot()
        return self._ensure_barnes_hut().build(xs, ys, ms, width=p.width, height=p.height)

    def compute_accelerations(self, tree: QuadTree | None = None) -> None:
        """
        Add this step's acceleration into every particle's ``ax, ay``.

        With the Barnes-Hut backend ``tree`` must be fully built from the
        current positions; it is built here when omitted.
        """
        p = self.params
        n = len(self.particles)
        self.last_force_backend = "off"
        self.last_force_ms = None
        if n < 2 or p.g <= 0.0:
            return

        eps2 = p.softening * p.softening
        t0 = time.perf_counter()
        if p.force_backend == "direct":
            if self._direct_solver is None or self._direct_solver.tile_size != p.force_tile_size:
                self._direct_solver = DirectSolver(tile_size=p.force_tile_size)
            xs, ys, ms = self._snapshot()
            ax, ay = self._direct_solver.compute(xs, ys, ms, g=p.g, eps2=eps2)
            for i, pt in enumerate(self.particles):
                pt.ax += ax[i]
                pt.ay += ay[i]
            self.last_force_backend = "direct"
        else:
            if tree is None:
                tree = self.build_tree()
            xs, ys, ms = self._snapshot()
            particles = self.particles
            for i in range(n):
                accumulate_field(tree, i, particles, xs, ys, ms, g=p.g, eps2=eps2, theta=p.theta)
            self.last_force_backend = "barnes_hut"
        self.last_force_ms = (time.perf_counter() - t0) * 1000.0

    # -- phase 3: integration -----------------------------------------------

    def integrate(self, dt: float) -> None:
        """
        Trapezoidal velocity kick followed by the position drift.

        ``verlet`` drifts with ``x += v*dt + a*dt²/2`` using this step's
        acceleration. ``legacy`` reproduces ``x += v*dt``: the acceleration is
        cleared before the drift, so the quadratic term is always zero.
        """
        half_dt = 0.5 * dt
        quad = 0.5 * dt * dt if self.params.position_update == "verlet" else 0.0
        for pt in self.particles:
            if not pt.first_step:
                pt.vx += half_dt * (pt.ax_prev + pt.ax)
                pt.vy += half_dt * (pt.ay_prev + pt.ay)
            else:
                pt.first_step = False

            pt.x += pt.vx * dt + pt.ax * quad
            pt.y += pt.vy * dt + pt.ay * quad

            pt.ax_prev = pt.ax
            pt.ay_prev = pt.ay
            pt.ax = 0.0
            pt.ay = 0.0

    def step(self, dt: float | None = None) -> None:
        """
        Advance the simulation by one time step.

        Args:
            dt: Time step in simulation units, ``params.dt`` when omitted.
        """
        if dt is None:
            dt = self.params.dt
        if not self.particles:
            return

        self.respawn_escaped()
        tree = self.build_tree() if self.params.force_backend == "barnes_hut" and len(self.particles) > 1 else None
        self.compute_accelerations(tree)
        del tree
        self.integrate(dt)

        self.step_count += 1
        self.sim_time += dt

    # -- diagnostics ----------------------------------------------------------

    def total_mass(self) -> float:
        return sum(pt.m for pt in self.particles)

    def center_of_mass(self) -> tuple[float, float]:
        m = self.total_mass()
        if m <= 0.0:
            return 0.0, 0.0
        cx = sum(pt.m * pt.x for pt in self.particles) / m
        cy = sum(pt.m * pt.y for pt in self.particles) / m
        return cx, cy

    def total_momentum(self) -> tuple[float, float]:
        px = sum(pt.m * pt.vx for pt in self.particles)
        py = sum(pt.m * pt.vy for pt in self.particles)
        return px, py

    def kinetic_energy(self) -> float:
        return sum(0.5 * pt.m * (pt.vx * pt.vx + pt.vy * pt.vy) for pt in self.particles)

    def potential_energy(self) -> float:
        """Softened pairwise potential energy: -G * Σ_{i<j} m_i m_j / sqrt(r² + ε²)."""
        g = self.params.g
        eps2 = self.params.softening * self.params.softening
        pe = 0.0
        particles = self.particles
        n = len(particles)
        for i in range(n):
            pi = particles[i]
            for j in range(i + 1, n):
                pj = particles[j]
                dx = pj.x - pi.x
                dy = pj.y - pi.y
                r = math.sqrt(dx * dx + dy * dy + eps2)
                if r > 0.0:
                    pe -= g * pi.m * pj.m / r
        return pe

    def speeds(self) -> list[float]:
        return [math.hypot(pt.vx, pt.vy) for pt in self.particles]

    def validate_state(self) -> list[str]:
        issues: list[str] = []
        for i, pt in enumerate(self.particles):
            if not (
                math.isfinite(pt.x)
                and math.isfinite(pt.y)
                and math.isfinite(pt.vx)
                and math.isfinite(pt.vy)
            ):
                issues.append(f"particle {i} has non-finite position/velocity")
                continue
            if not pt.m > 0.0:
                issues.append(f"particle {i} has non-positive mass")
            if not self.in_domain(pt):
                issues.append(f"particle {i} out of domain")
        return issues
