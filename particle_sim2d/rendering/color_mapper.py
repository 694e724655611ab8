"""
Speed colouring and rasterisation for the 2D particle view.

Particles are drawn as single pixels whose colour moves from blue (slow)
to red (fast) with the magnitude of their velocity.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np


# =============================================================================
# Colours
# =============================================================================

GREEN_CHANNEL = 40
ALPHA = 255


def speed_blend(speed: float) -> float:
    """
    Blue weight for a speed: 1 below unit speed, then 1/speed.

    Returns:
        Value in (0, 1]; 1 is fully blue, towards 0 is red.
    """
    if not math.isfinite(speed):
        return 0.0
    if speed < 1.0:
        return 1.0
    return 1.0 / speed


def speed_color(speed: float) -> tuple[int, int, int, int]:
    """RGBA colour for a particle moving at ``speed``."""
    d = speed_blend(speed)
    return int(255.0 * (1.0 - d)), GREEN_CHANNEL, int(255.0 * d), ALPHA


# =============================================================================
# Rasterisation
# =============================================================================

def rasterize(
    xs: Sequence[float],
    ys: Sequence[float],
    speeds: Sequence[float],
    width: int,
    height: int,
    background: tuple[int, int, int] = (0, 0, 0),
    point_size: float = 1.0,
) -> np.ndarray:
    """
    Draw particles into an RGBA frame.

    Only particles whose truncated pixel coordinates lie strictly inside the
    frame are drawn; with single-pixel points, later particles overwrite
    earlier ones on the same pixel. Each particle covers a square of ``round(point_size)`` pixels centred on
    its pixel, clipped to the frame.

    Args:
        xs, ys: Particle positions in pixels (row 0 is the top of the frame)
        speeds: Velocity magnitudes, one per particle
        width, height: Frame size
        background: RGB fill colour
        point_size: Side of the drawn square in pixels

    Returns:
        uint8 array of shape (height, width, 4)
    """
    frame = np.empty((height, width, 4), dtype=np.uint8)
    frame[:, :, :3] = background
    frame[:, :, 3] = ALPHA
    n = len(xs)
    if n == 0:
        return frame

    px = np.asarray(xs, dtype=np.float64)
    py = np.asarray(ys, dtype=np.float64)
    sp = np.asarray(speeds, dtype=np.float64)

    finite = np.isfinite(px) & np.isfinite(py)
    px = np.where(finite, px, -1.0).astype(np.int64)
    py = np.where(finite, py, -1.0).astype(np.int64)
    visible = finite & (px > 0) & (px < width) & (py > 0) & (py < height)
    if not np.any(visible):
        return frame

    sp = sp[visible]
    d = np.where(sp < 1.0, 1.0, 1.0 / np.where(sp < 1.0, 1.0, sp))
    d = np.where(np.isfinite(sp), d, 0.0)
    red = (255.0 * (1.0 - d)).astype(np.uint8)
    blue = (255.0 * d).astype(np.uint8)
    size = max(1, int(round(point_size)))
    lo = -((size - 1) // 2)
    for oy in range(lo, lo + size):
        rows = py[visible] + oy
        in_rows = (rows >= 0) & (rows < height)
        for ox in range(lo, lo + size):
            cols = px[visible] + ox
            keep = in_rows & (cols >= 0) & (cols < width)
            r = rows[keep]
            c = cols[keep]
            frame[r, c, 0] = red[keep]
            frame[r, c, 1] = GREEN_CHANNEL
            frame[r, c, 2] = blue[keep]
            frame[r, c, 3] = ALPHA
    return frame
