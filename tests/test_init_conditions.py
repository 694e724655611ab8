"""Tests for initial condition generation."""

import math
import random
import unittest

from particle_sim2d.params import Sim2DParams
from particle_sim2d.core.init_conditions import (
    circular_speed,
    create_central_disk,
    domain_center,
    sample_spawn_position,
)


class TestCentralDisk(unittest.TestCase):
    """Tests for init_mode=central_disk."""

    def _params(self, **overrides) -> Sim2DParams:
        base = dict(particle_count=200, spawn_radius_min=20.0, spawn_radius_max=100.0, seed=11)
        base.update(overrides)
        return Sim2DParams(**base).clamp()

    def test_particle_count(self) -> None:
        params = self._params()
        particles = create_central_disk(params, random.Random(params.seed))
        self.assertEqual(len(particles), 201)

    def test_central_body_first(self) -> None:
        params = self._params(central_mass=5e3)
        central = create_central_disk(params, random.Random(params.seed))[0]
        self.assertEqual((central.x, central.y), (256.0, 256.0))
        self.assertEqual((central.vx, central.vy), (0.0, 0.0))
        self.assertEqual(central.m, 5e3)

    def test_radii_within_spawn_annulus(self) -> None:
        params = self._params()
        cx, cy = domain_center(params)
        for ip in create_central_disk(params, random.Random(params.seed))[1:]:
            r = math.hypot(ip.x - cx, ip.y - cy)
            self.assertGreaterEqual(r, 20.0 - 1e-9)
            self.assertLessEqual(r, 100.0 + 1e-9)
            self.assertEqual(ip.m, params.particle_mass)

    def test_circular_velocities(self) -> None:
        """Velocities are tangential with the Keplerian speed of the central mass."""
        params = self._params()
        cx, cy = domain_center(params)
        for ip in create_central_disk(params, random.Random(params.seed))[1:]:
            dx = ip.x - cx
            dy = ip.y - cy
            r = math.hypot(dx, dy)
            speed = math.hypot(ip.vx, ip.vy)
            self.assertAlmostEqual(speed, math.sqrt(params.g * params.central_mass / r), places=9)
            self.assertAlmostEqual((dx * ip.vx + dy * ip.vy) / (r * speed), 0.0, places=9)
            # counter-clockwise in (x, y)
            self.assertGreater(dx * ip.vy - dy * ip.vx, 0.0)

    def test_empty_mode_has_only_central_body(self) -> None:
        params = self._params(init_mode="empty")
        particles = create_central_disk(params, random.Random(params.seed))
        self.assertEqual(len(particles), 1)

    def test_zero_particle_count(self) -> None:
        params = self._params(particle_count=0)
        self.assertEqual(len(create_central_disk(params, random.Random(0))), 1)

    def test_odd_domain_centre_truncates(self) -> None:
        params = self._params(width=101, height=51, spawn_radius_min=1.0, spawn_radius_max=2.0)
        self.assertEqual(domain_center(params), (50.0, 25.0))


class TestSpawnSampling(unittest.TestCase):
    def test_angle_range(self) -> None:
        params = Sim2DParams().clamp()
        rng = random.Random(3)
        for _ in range(500):
            x, y, r, a = sample_spawn_position(params, rng)
            self.assertGreaterEqual(a, -math.pi)
            self.assertLessEqual(a, math.pi)
            self.assertAlmostEqual(x, 256.0 + r * math.cos(a), places=9)
            self.assertAlmostEqual(y, 256.0 + r * math.sin(a), places=9)

    def test_single_ring(self) -> None:
        params = Sim2DParams(spawn_radius_min=40.0, spawn_radius_max=40.0).clamp()
        _, _, r, _ = sample_spawn_position(params, random.Random(1))
        self.assertEqual(r, 40.0)

    def test_circular_speed(self) -> None:
        self.assertAlmostEqual(circular_speed(1.0, 1e4, 100.0), 10.0)
        self.assertEqual(circular_speed(1.0, 1e4, 0.0), 0.0)
        self.assertEqual(circular_speed(0.0, 1e4, 10.0), 0.0)


class TestSeedReproducibility(unittest.TestCase):
    def test_same_seed_same_particles(self) -> None:
        params = Sim2DParams(particle_count=50).clamp()
        a = create_central_disk(params, random.Random(5))
        b = create_central_disk(params, random.Random(5))
        self.assertEqual(a, b)

    def test_different_seed_different_particles(self) -> None:
        params = Sim2DParams(particle_count=50).clamp()
        a = create_central_disk(params, random.Random(5))
        b = create_central_disk(params, random.Random(6))
        self.assertNotEqual(a, b)


if __name__ == "__main__":
    unittest.main()
