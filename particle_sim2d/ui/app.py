from __future__ import annotations

import argparse
import logging
import sys
import time
from collections import deque
from pathlib import Path

import numpy as np

from particle_sim2d.params import Sim2DParams
from particle_sim2d.core.sim import ParticleSim2D
from particle_sim2d.rendering.color_mapper import rasterize
from particle_sim2d.rendering.pyglet_renderer import RenderFrame, run_pyglet

FPS_WINDOW = 30
ENERGY_REPORT_MAX_N = 2000


class ParticleSim2DApp:
    def __init__(self, params_path: str | Path | None = None) -> None:
        if params_path is None:
            params_path = Path(__file__).resolve().parent / "params.json"
        self.params_path = Path(params_path)
        self.params = self._load_initial_params()
        for warning in self.params.validate():
            print(f"[sim] warning: {warning}", file=sys.stderr)
        self.sim = ParticleSim2D(self.params)
        self._running = True
        self._frame_times: deque[float] = deque(maxlen=FPS_WINDOW)

    def _load_initial_params(self) -> Sim2DParams:
        if self.params_path.exists():
            try:
                return Sim2DParams.load(self.params_path)
            except (OSError, ValueError) as exc:
                print(f"[sim] failed to load {self.params_path}: {exc}", file=sys.stderr)
        return Sim2DParams().clamp()

    def _step(self, _dt: float) -> None:
        # fixed timestep: frame duration only drives the fps counter
        if self._running:
            self.sim.step(self.params.dt)

    def _on_key(self, name: str) -> None:
        if name == "space":
            self._running = not self._running
        elif name == "r":
            self.sim.reset()
        elif name == "f":
            self.params.fps_report = not self.params.fps_report

    def _on_frame(self, frame: RenderFrame) -> None:
        self._frame_times.append(frame.dt)
        if self.params.fps_report:
            print(f"{self.fps():.1f}")

    def fps(self) -> float:
        total = sum(self._frame_times)
        if total <= 0.0:
            return 0.0
        return len(self._frame_times) / total

    def _get_frame(self) -> np.ndarray:
        sim = self.sim
        return rasterize(
            [pt.x for pt in sim.particles],
            [pt.y for pt in sim.particles],
            sim.speeds(),
            self.params.width,
            self.params.height,
            self.params.background,
            point_size=self.params.point_size,
        )

    def _get_caption(self) -> str:
        state = "PAUSE" if not self._running else "RUN"
        force_ms = self.sim.last_force_ms or 0.0
        return (
            f"Barnes Hut | t={self.sim.sim_time:7.2f} | {state} | "
            f"N={len(self.sim.particles)} | force {force_ms:6.1f} ms | {self.fps():5.1f} fps"
        )

    def run(self) -> None:
        run_pyglet(
            width=self.params.width,
            height=self.params.height,
            get_frame=self._get_frame,
            step_simulation=self._step,
            on_key=self._on_key,
            get_caption=self._get_caption,
            on_frame=self._on_frame,
            target_fps=self.params.target_fps,
            title="Barnes Hut",
        )

    def run_headless(self, steps: int, *, report_every: int = 0) -> list[str]:
        """Step without a window; return the state issues found at the end."""
        sim = self.sim
        t_start = time.perf_counter()
        for k in range(max(0, int(steps))):
            t0 = time.perf_counter()
            sim.step(self.params.dt)
            self._frame_times.append(time.perf_counter() - t0)
            if report_every > 0 and (k + 1) % report_every == 0:
                print(
                    f"[sim] step {k + 1}: {self.fps():.1f} steps/s, "
                    f"force {sim.last_force_ms or 0.0:.1f} ms, respawned {sim.last_respawned}"
                )
        elapsed = time.perf_counter() - t_start
        issues = sim.validate_state()
        summary = f"[sim] {sim.step_count} steps in {elapsed:.2f} s, t={sim.sim_time:.3f}"
        # pairwise potential energy is O(n^2)
        if len(sim.particles) <= ENERGY_REPORT_MAX_N:
            summary += f", E={sim.kinetic_energy() + sim.potential_energy():.6g}"
        print(summary)
        for issue in issues[:10]:
            print(f"[sim] {issue}", file=sys.stderr)
        return issues


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="2D Barnes-Hut gravity simulation")
    parser.add_argument("--params", "-p", type=Path, default=None, help="JSON parameter file")
    parser.add_argument("--headless", action="store_true", help="Run without a window")
    parser.add_argument("--steps", "-s", type=int, default=100, help="Steps to run in headless mode")
    parser.add_argument("--report-every", type=int, default=10, help="Headless progress interval (0 = off)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    app = ParticleSim2DApp(args.params)
    if args.headless:
        issues = app.run_headless(args.steps, report_every=args.report_every)
        return 1 if any("non-finite" in issue for issue in issues) else 0
    app.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
