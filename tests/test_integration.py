"""Tests for orbital dynamics and energy conservation over many steps."""

import math
import unittest

from particle_sim2d.params import Sim2DParams
from particle_sim2d.core.sim import Particle2D, ParticleSim2D


class TestOrbitalDynamics(unittest.TestCase):
    """A light body on a circular orbit around the central mass."""

    def test_circular_orbit_stays_circular(self) -> None:
        params = Sim2DParams(
            init_mode="empty",
            central_mass=1e4,
            g=1.0,
            softening=0.01,
            theta=0.6,
            dt=0.01,
        ).clamp()
        sim = ParticleSim2D(params)

        r = 100.0
        v = math.sqrt(params.g * params.central_mass / r)
        center = sim.particles[0]
        sim.particles.append(Particle2D(x=center.x + r, y=center.y, vx=0.0, vy=v, m=1.0))

        for _ in range(2000):
            sim.step()
            body = sim.particles[1]
            dx = body.x - center.x
            dy = body.y - center.y
            dist = math.hypot(dx, dy)
            self.assertLess(abs(dist - r) / r, 0.01, f"radius drifted to {dist:.3f}")

            rvx = body.vx - center.vx
            rvy = body.vy - center.vy
            radial = (dx * rvx + dy * rvy) / dist
            self.assertLess(abs(radial) / math.hypot(rvx, rvy), 0.05)

        self.assertEqual(sim.last_respawned, 0)
        # the orbit covered about a third of a revolution
        angle = math.atan2(sim.particles[1].y - center.y, sim.particles[1].x - center.x)
        self.assertGreater(angle, 1.5)

    def test_momentum_conserved_at_theta_zero(self) -> None:
        params = Sim2DParams(init_mode="empty", softening=1.0, theta=0.0, dt=0.01).clamp()
        sim = ParticleSim2D(params)
        sim.particles = [
            Particle2D(x=200.0, y=200.0, vx=1.0, vy=0.0, m=50.0),
            Particle2D(x=220.0, y=200.0, vx=-0.5, vy=0.5, m=50.0),
            Particle2D(x=200.0, y=230.0, vx=-0.5, vy=-0.5, m=20.0),
        ]
        p0 = sim.total_momentum()
        for _ in range(200):
            sim.step()
        p1 = sim.total_momentum()

        self.assertEqual(sim.last_respawned, 0)
        self.assertAlmostEqual(p1[0], p0[0], places=6)
        self.assertAlmostEqual(p1[1], p0[1], places=6)


class TestEnergyConservation(unittest.TestCase):
    """Total energy of a bound disk should not drift."""

    def _disk(self, position_update: str) -> ParticleSim2D:
        params = Sim2DParams(
            particle_count=20,
            spawn_radius_min=50.0,
            spawn_radius_max=100.0,
            theta=0.0,
            position_update=position_update,
            seed=4,
        ).clamp()
        return ParticleSim2D(params)

    def _energy(self, sim: ParticleSim2D) -> float:
        return sim.kinetic_energy() + sim.potential_energy()

    def test_energy_drift_verlet(self) -> None:
        sim = self._disk("verlet")
        sim.step()
        e0 = self._energy(sim)
        for _ in range(300):
            sim.step()
        e1 = self._energy(sim)

        self.assertEqual(sim.validate_state(), [])
        self.assertLess(abs(e1 - e0) / abs(e0), 1e-3, f"energy drifted from {e0:.6g} to {e1:.6g}")

    def test_legacy_update_stays_bounded(self) -> None:
        sim = self._disk("legacy")
        sim.step()
        e0 = self._energy(sim)
        for _ in range(300):
            sim.step()
        e1 = self._energy(sim)

        self.assertEqual(sim.validate_state(), [])
        self.assertLess(abs(e1 - e0) / abs(e0), 0.05)


class TestLargePopulation(unittest.TestCase):
    def test_default_disk_runs_without_issues(self) -> None:
        sim = ParticleSim2D(Sim2DParams(particle_count=500, seed=7).clamp())
        for _ in range(5):
            sim.step()
        self.assertEqual(sim.step_count, 5)
        self.assertEqual(len(sim.particles), 501)
        self.assertEqual(sim.validate_state(), [])
        self.assertEqual(sim.last_force_backend, "barnes_hut")


if __name__ == "__main__":
    unittest.main()
