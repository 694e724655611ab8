from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

import numpy as np


@dataclass(slots=True)
class RenderFrame:
    dt: float


def run_pyglet(
    *,
    width: int,
    height: int,
    get_frame: Callable[[], np.ndarray],
    step_simulation: Callable[[float], None],
    on_key: Callable[[str], None],
    get_caption: Callable[[], str] | None = None,
    on_frame: Callable[[RenderFrame], None] | None = None,
    target_fps: int,
    title: str,
) -> None:
    """
    Open a window and drive the simulation from the pyglet clock.

    ``get_frame`` returns an RGBA uint8 array of shape (height, width, 4)
    whose row 0 is the top of the view; it is flipped into OpenGL's
    bottom-up order before upload.
    """
    try:
        import pyglet  # type: ignore
    except Exception as e:  # pragma: no cover
        raise RuntimeError("Missing dependency: install pyglet (pip install pyglet).") from e

    from pyglet.window import key  # type: ignore

    window = pyglet.window.Window(
        width=width,
        height=height,
        caption=title,
        resizable=False,
        vsync=True,
    )
    image: Any = None

    @window.event
    def on_draw() -> None:
        nonlocal image
        window.clear()
        frame = np.ascontiguousarray(get_frame()[::-1])
        data = frame.tobytes()
        if image is None:
            image = pyglet.image.ImageData(width, height, "RGBA", data, pitch=width * 4)
        else:
            image.set_data("RGBA", width * 4, data)
        image.blit(0, 0)

    @window.event
    def on_key_press(symbol: int, modifiers: int) -> None:  # noqa: ARG001
        mapping = {
            key.ESCAPE: "escape",
            key.SPACE: "space",
            key.R: "r",
            key.F: "f",
        }
        name = mapping.get(symbol)
        if name == "escape":
            window.close()
            pyglet.app.exit()
            return
        if name is not None:
            on_key(name)

    def tick(dt: float) -> None:
        step_simulation(dt)
        if on_frame is not None:
            on_frame(RenderFrame(dt=dt))
        window.set_caption(get_caption() if get_caption is not None else title)

    pyglet.clock.schedule_interval(tick, 1.0 / max(10, target_fps))
    pyglet.app.run()
