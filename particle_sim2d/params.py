from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Sim2DParams:
    # simulation domain [0, width] x [0, height], also the window size in pixels
    width: int = 512
    height: int = 512
    background: tuple[int, int, int] = (0, 0, 0)

    init_mode: str = "central_disk"  # central_disk | empty

    particle_count: int = 5000
    central_mass: float = 1e4
    particle_mass: float = 1.0
    spawn_radius_min: float = 20.0
    spawn_radius_max: float = 100.0
    respawn_spin: float = 0.01  # tangential speed per unit radius for re-spawned particles

    g: float = 1.0
    theta: float = 0.6  # Barnes-Hut opening angle
    softening: float = 10.0
    dt: float = 1.0 / 60.0
    max_depth: int = 24
    force_backend: str = "barnes_hut"  # barnes_hut | direct
    force_tile_size: int = 256
    position_update: str = "verlet"  # verlet | legacy

    point_size: float = 1.0
    target_fps: int = 60
    fps_report: bool = False
    seed: int = 1

    def clamp(self) -> "Sim2DParams":
        self.width = max(16, int(self.width))
        self.height = max(16, int(self.height))
        self.background = tuple(max(0, min(255, int(c))) for c in tuple(self.background)[:3])  # type: ignore[assignment]
        if len(self.background) != 3:
            self.background = (0, 0, 0)
        self.init_mode = str(self.init_mode or "central_disk").strip().lower()
        if self.init_mode not in {"central_disk", "empty"}:
            logger.warning("unknown init_mode %r, using central_disk", self.init_mode)
            self.init_mode = "central_disk"
        self.particle_count = max(0, int(self.particle_count))
        self.central_mass = max(1e-9, float(self.central_mass))
        self.particle_mass = max(1e-9, float(self.particle_mass))

        half = 0.5 * min(self.width, self.height)
        self.spawn_radius_max = min(half * 0.99, max(0.0, float(self.spawn_radius_max)))
        self.spawn_radius_min = min(self.spawn_radius_max, max(0.0, float(self.spawn_radius_min)))
        self.respawn_spin = float(self.respawn_spin)

        self.g = max(0.0, float(self.g))
        self.theta = min(2.0, max(0.0, float(self.theta)))
        self.softening = max(0.0, float(self.softening))
        self.dt = min(1.0, max(1e-6, float(self.dt)))
        self.max_depth = max(1, min(64, int(self.max_depth)))
        self.force_backend = str(self.force_backend or "barnes_hut").strip().lower()
        if self.force_backend in {"bh", "barnes-hut", "tree"}:
            self.force_backend = "barnes_hut"
        if self.force_backend not in {"barnes_hut", "direct"}:
            logger.warning("unknown force_backend %r, falling back to barnes_hut", self.force_backend)
            self.force_backend = "barnes_hut"
        self.force_tile_size = max(16, min(2048, int(self.force_tile_size)))
        self.position_update = str(self.position_update or "verlet").strip().lower()
        if self.position_update not in {"verlet", "legacy"}:
            logger.warning("unknown position_update %r, using verlet", self.position_update)
            self.position_update = "verlet"

        self.point_size = max(1.0, float(self.point_size))
        self.target_fps = max(10, int(self.target_fps))
        self.fps_report = bool(self.fps_report)
        self.seed = int(self.seed)
        return self

    def validate(self) -> list[str]:
        warnings: list[str] = []

        if self.width != self.height:
            warnings.append("width != height: the quadtree root is the square max(width, height).")
        if self.theta == 0.0 and self.force_backend == "barnes_hut":
            warnings.append("theta=0 opens every cell: Barnes-Hut degrades to O(n^2).")
        if self.theta > 1.0:
            warnings.append("theta > 1 gives a coarse force approximation.")
        if self.softening == 0.0:
            warnings.append("softening=0: close encounters produce unbounded accelerations.")
        if self.init_mode == "empty" and self.particle_count > 0:
            warnings.append("particle_count ignored when init_mode=empty.")
        if self.spawn_radius_min == self.spawn_radius_max:
            warnings.append("spawn_radius_min == spawn_radius_max: every particle spawns on one ring.")
        if self.force_backend == "direct" and self.particle_count > 20000:
            warnings.append("force_backend=direct is O(n^2) and slow for large particle_count.")
        if self.force_backend == "direct" and self.max_depth != 24:
            warnings.append("max_depth ignored when force_backend=direct.")

        return warnings

    @classmethod
    def load(cls, path: str | Path) -> "Sim2DParams":
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("Parameter file must contain a JSON object.")
        # Older configs named the gravitational constant `grav`.
        if "grav" in data and "g" not in data:
            data["g"] = data["grav"]
        filtered: dict[str, Any] = {k: v for k, v in data.items() if k in cls.__annotations__}
        if "background" in filtered:
            filtered["background"] = tuple(filtered["background"])
        return cls(**filtered).clamp()

    def save(self, path: str | Path) -> None:
        data = asdict(self)
        data["background"] = list(self.background)
        Path(path).write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
