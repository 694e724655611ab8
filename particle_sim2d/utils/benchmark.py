#!/usr/bin/env python3
"""
Performance benchmark for the 2D Barnes-Hut simulation.

Compares force calculation backends:
- Barnes-Hut (quadtree, O(N log N)) at several opening angles
- Direct CPU (NumPy, O(N²))

and reports the Barnes-Hut error against the direct result.

Usage:
    python -m particle_sim2d.utils.benchmark [--particles 1000] [--iterations 10]
"""

from __future__ import annotations

import argparse
import math
import random
import sys
import time

from particle_sim2d.params import Sim2DParams
from particle_sim2d.core.init_conditions import create_central_disk
from particle_sim2d.physics.forces import BarnesHutSolver, DirectSolver


def generate_particles(n: int, seed: int = 42) -> tuple[list[float], list[float], list[float], Sim2DParams]:
    """Central body plus n orbiting particles, as used by the simulation."""
    params = Sim2DParams(particle_count=n, seed=seed).clamp()
    initial = create_central_disk(params, random.Random(seed))
    xs = [ip.x for ip in initial]
    ys = [ip.y for ip in initial]
    ms = [ip.m for ip in initial]
    return xs, ys, ms, params


def _timed(fn, iterations: int) -> tuple[float, float]:
    times = []
    for _ in range(iterations):
        t0 = time.perf_counter()
        fn()
        times.append(time.perf_counter() - t0)
    mean = sum(times) / len(times)
    std = math.sqrt(sum((t - mean) ** 2 for t in times) / len(times))
    return mean * 1000.0, std * 1000.0


def max_relative_error(
    ax: list[float], ay: list[float], ref_x: list[float], ref_y: list[float]
) -> float:
    worst = 0.0
    for a, b, ra, rb in zip(ax, ay, ref_x, ref_y):
        norm = math.hypot(ra, rb)
        if norm < 1e-12:
            continue
        worst = max(worst, math.hypot(a - ra, b - rb) / norm)
    return worst


def run_benchmark(n_particles: int, iterations: int, thetas: tuple[float, ...] = (0.3, 0.6, 1.0)) -> dict:
    """Run full benchmark suite."""
    print(f"\n{'='*60}")
    print(f"Benchmark: {n_particles} particles, {iterations} iterations")
    print(f"{'='*60}")

    print("Generating particles...", end=" ", flush=True)
    xs, ys, ms, params = generate_particles(n_particles)
    print("done")
    g = params.g
    eps2 = params.softening * params.softening

    results: dict[str, float] = {}

    print("Direct CPU (NumPy)...", end=" ", flush=True)
    direct = DirectSolver(tile_size=params.force_tile_size)
    ref_x, ref_y = direct.compute(xs, ys, ms, g=g, eps2=eps2)
    direct_ms, direct_std = _timed(lambda: direct.compute(xs, ys, ms, g=g, eps2=eps2), iterations)
    print(f"{direct_ms:.2f} ± {direct_std:.2f} ms")
    results["direct"] = direct_ms

    for theta in thetas:
        print(f"Barnes-Hut (θ={theta})...", end=" ", flush=True)
        solver = BarnesHutSolver(theta=theta, max_depth=params.max_depth)

        def run() -> tuple[list[float], list[float]]:
            return solver.compute(xs, ys, ms, g=g, eps2=eps2, width=params.width, height=params.height)

        ax, ay = run()
        bh_ms, bh_std = _timed(run, iterations)
        err = max_relative_error(ax, ay, ref_x, ref_y)
        print(
            f"{bh_ms:.2f} ± {bh_std:.2f} ms "
            f"(build {solver.last_build_time_ms:.2f} ms, max rel err {err:.2e})"
        )
        results[f"barnes_hut_{theta}"] = bh_ms
        results[f"barnes_hut_{theta}_err"] = err

    print(f"\n{'='*60}")
    print("Summary:")
    for theta in thetas:
        bh = results[f"barnes_hut_{theta}"]
        speedup = results["direct"] / bh if bh > 0 else float("inf")
        print(f"  Barnes-Hut (θ={theta}): {bh:.2f} ms ({speedup:.1f}x vs direct)")
    print(f"  Direct CPU: {results['direct']:.2f} ms")

    return results


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Benchmark 2D Barnes-Hut force calculations")
    parser.add_argument("--particles", "-n", type=int, default=1000, help="Number of particles")
    parser.add_argument("--iterations", "-i", type=int, default=5, help="Benchmark iterations")
    parser.add_argument("--sweep", action="store_true", help="Run sweep over particle counts")
    args = parser.parse_args(argv)

    print("2D Barnes-Hut Performance Benchmark")
    print(f"Platform: {sys.platform}")

    iterations = max(1, args.iterations)
    if args.sweep:
        for n in (100, 500, 1000, 2000, 5000):
            run_benchmark(n, iterations)
    else:
        run_benchmark(max(1, args.particles), iterations)


if __name__ == "__main__":
    main()
