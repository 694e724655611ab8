"""
Initial condition generators for the 2D Barnes-Hut simulation.

This module builds the starting particle population and samples the
positions used when an escaped particle is re-spawned.

Available modes:
- central_disk: one massive body at the domain centre plus a ring of light
  bodies on near-circular orbits around it
- empty: only the central body
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from particle_sim2d.params import Sim2DParams


@dataclass(slots=True)
class InitialParticle:
    """
    Initial conditions for a single particle.

    Attributes:
        x, y: Position coordinates
        vx, vy: Velocity components
        m: Mass (always positive)
    """
    x: float
    y: float
    vx: float
    vy: float
    m: float


def domain_center(params: "Sim2DParams") -> tuple[float, float]:
    return float(params.width // 2), float(params.height // 2)


def circular_speed(g: float, m: float, r: float) -> float:
    """
    Speed of a circular Keplerian orbit of radius r around mass m.

    v(r) = sqrt(G * M / r)
    """
    if r <= 0.0 or m <= 0.0 or g <= 0.0:
        return 0.0
    return math.sqrt(g * m / r)


def sample_spawn_position(
    params: "Sim2DParams",
    rng: random.Random,
) -> tuple[float, float, float, float]:
    """
    Sample a spawn point around the domain centre.

    The radius is uniform in [spawn_radius_min, spawn_radius_max] and the
    angle uniform in [-pi, pi).

    Returns:
        (x, y, r, angle)
    """
    cx, cy = domain_center(params)
    r = rng.uniform(params.spawn_radius_min, params.spawn_radius_max)
    a = rng.uniform(-math.pi, math.pi)
    return cx + r * math.cos(a), cy + r * math.sin(a), r, a


def create_central_disk(
    params: "Sim2DParams",
    rng: random.Random,
) -> list[InitialParticle]:
    """
    Create a central body surrounded by particles on circular orbits.

    Velocities are perpendicular to the radius vector, with the Keplerian
    speed of the central mass alone.

    Args:
        params: Simulation parameters
        rng: Random number generator

    Returns:
        The central body first, followed by ``particle_count`` light bodies.
    """
    cx, cy = domain_center(params)
    particles = [InitialParticle(x=cx, y=cy, vx=0.0, vy=0.0, m=float(params.central_mass))]
    if params.init_mode == "empty":
        return particles

    m = float(params.particle_mass)
    for _ in range(int(params.particle_count)):
        x, y, r, a = sample_spawn_position(params, rng)
        v = circular_speed(params.g, params.central_mass, r)
        particles.append(InitialParticle(x=x, y=y, vx=-v * math.sin(a), vy=v * math.cos(a), m=m))
    return particles
