"""Pan/zoom state of a layer and its animated transitions.

A transform maps world coordinates to screen coordinates:
`screen = world * k + (x, y)`.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping, Optional, Tuple

from .core.signals import Signal

if TYPE_CHECKING:
    from .core.layout import TransformStore
    from .core.models import Layer, Node
    from .core.settings import Settings

logger = logging.getLogger(__name__)

FRAME_INTERVAL = 1 / 60
FOCUS_DURATION = 0.25
SCALE_DURATION = 0.2
# extra wait after a focus animation before callers continue
SETTLE_DELAY = 0.1
DEFAULT_SCALE = 0.1
AREA_FILL = 0.9

Extent = Tuple[Tuple[float, float], Tuple[float, float]]
UNBOUNDED: Extent = ((-math.inf, -math.inf), (math.inf, math.inf))


@dataclass(frozen=True)
class Transform:
    x: float = 0.0
    y: float = 0.0
    k: float = 1.0

    def apply(self, point: Tuple[float, float]) -> Tuple[float, float]:
        return (point[0] * self.k + self.x, point[1] * self.k + self.y)

    def invert(self, point: Tuple[float, float]) -> Tuple[float, float]:
        return ((point[0] - self.x) / self.k, (point[1] - self.y) / self.k)

    def translate(self, dx: float, dy: float) -> "Transform":
        """Translate by a world-space offset."""
        return Transform(self.x + self.k * dx, self.y + self.k * dy, self.k)

    def scale(self, k: float) -> "Transform":
        return Transform(self.x, self.y, self.k * k)

    def interpolate(self, other: "Transform", t: float) -> "Transform":
        return Transform(
            self.x + (other.x - self.x) * t,
            self.y + (other.y - self.y) * t,
            self.k + (other.k - self.k) * t,
        )

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "k": self.k}

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Transform":
        return cls(float(d["x"]), float(d["y"]), float(d["k"]))

    def __str__(self) -> str:
        return f"translate({self.x},{self.y}) scale({self.k})"


IDENTITY = Transform()


def ease_cubic_in_out(t: float) -> float:
    t *= 2
    if t <= 1:
        return t * t * t / 2
    t -= 2
    return (t * t * t + 2) / 2


def constrain(t: Transform, extent: Extent, translate_extent: Extent) -> Transform:
    """Keep the translate extent covering the viewport (centred when it cannot)."""
    (vx0, vy0), (vx1, vy1) = extent
    (tx0, ty0), (tx1, ty1) = translate_extent
    dx0 = t.invert((vx0, vy0))[0] - tx0
    dx1 = t.invert((vx1, vy1))[0] - tx1
    dy0 = t.invert((vx0, vy0))[1] - ty0
    dy1 = t.invert((vx1, vy1))[1] - ty1

    def shift(d0: float, d1: float) -> float:
        if d1 > d0:
            return (d0 + d1) / 2
        return min(0.0, d0) or max(0.0, d1)

    sx = shift(dx0, dx1)
    sy = shift(dy0, dy1)
    if not (math.isfinite(sx) and math.isfinite(sy)):
        return t
    return t.translate(sx, sy)


class Viewport:
    """Per-layer pan/zoom controller.

    Input (wheel, toolbar zoom, pan) is rejected while a group of the layer
    is focused. Programmatic `set_transform` and `focus` are not.
    """

    def __init__(self, layer: "Layer", settings: "Settings", width: float, height: float):
        self.layer = layer
        self.settings = settings
        self.width = width
        self.height = height
        self.scale_extent: Tuple[float, float] = settings.scale_extent
        self.translate_extent: Extent = UNBOUNDED
        # emitted with the transform after every finished interaction or transition
        self.ended = Signal("zoom-end")
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        if layer.transform is None:
            layer.transform = IDENTITY

    @property
    def transform(self) -> Transform:
        return self.layer.transform or IDENTITY

    @property
    def locked(self) -> bool:
        return self.layer.focused_group > -1

    @property
    def extent(self) -> Extent:
        return ((0.0, 0.0), (self.width, self.height))

    @property
    def center(self) -> Tuple[float, float]:
        return (self.width / 2, self.height / 2)

    def apply_settings(self) -> None:
        self.scale_extent = self.settings.scale_extent

    def set_transform(self, t: Transform) -> None:
        self.layer.transform = t
        if self.layer.surface is not None:
            self.layer.surface.set_transform(t)

    def interrupt(self) -> None:
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def transition(self, target: Transform, duration: float) -> bool:
        """Animate to `target`. Returns False when another animation interrupted it."""
        self._generation += 1
        generation = self._generation
        start = self.transform
        frames = int(round(duration / FRAME_INTERVAL))
        for i in range(1, frames + 1):
            await asyncio.sleep(FRAME_INTERVAL)
            if generation != self._generation:
                return False
            self.set_transform(start.interpolate(target, ease_cubic_in_out(i / frames)))
        if generation != self._generation:
            return False
        self.set_transform(target)
        self.ended.emit(target)
        return True

    def _animate(self, target: Transform, duration: float) -> None:
        """Start a transition on the running loop, or jump when there is none."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._generation += 1
            self.set_transform(target)
            self.ended.emit(target)
            return
        self._task = loop.create_task(self.transition(target, duration))

    async def focus(self, x: float, y: float, scale: float = 1.0, duration: float = FOCUS_DURATION) -> None:
        """Centre world point (x, y) at `scale`; returns once the camera has settled."""
        cx, cy = self.center
        target = Transform(cx - x * scale, cy - y * scale, scale)
        if duration > 0:
            await self.transition(target, duration)
            await asyncio.sleep(SETTLE_DELAY)
        else:
            self._generation += 1
            self.set_transform(target)
            self.ended.emit(target)

    def _stop_simulations(self) -> None:
        if self.layer.simulations is not None:
            self.layer.simulations.stop()

    async def focus_on_node(self, node: "Node", scale: Optional[float] = None, duration: float = FOCUS_DURATION) -> None:
        self._stop_simulations()
        await self.focus(node.x, node.y, 1.0 if scale is None else scale, duration)

    def area_scale(self, width: float, height: float) -> float:
        return AREA_FILL / max(width / self.width, height / self.height)

    async def focus_on_area(self, area: Any, duration: float = FOCUS_DURATION) -> None:
        """Frame anything with `cx`, `cy`, `width` and `height` (a group)."""
        self._stop_simulations()
        await self.focus(area.cx, area.cy, self.area_scale(area.width, area.height), duration)

    def _clamp_k(self, k: float) -> float:
        lo, hi = self.scale_extent
        return max(lo, min(hi, k))

    def scaled(self, k: float) -> Transform:
        """The transform at scale `k` keeping the viewport centre fixed, constrained."""
        t = self.transform
        k = self._clamp_k(k)
        p0 = self.center
        p1 = t.invert(p0)
        moved = Transform(p0[0] - p1[0] * k, p0[1] - p1[1] * k, k)
        return constrain(moved, self.extent, self.translate_extent)

    def scale(self, by: float) -> bool:
        """Animated zoom by a factor. No-op (False) while a group is focused."""
        if self.locked:
            return False
        self._animate(self.scaled(self.transform.k * by), SCALE_DURATION)
        return True

    scale_by = scale

    async def scale_to(self, k: float, duration: float = FOCUS_DURATION) -> None:
        await self.transition(self.scaled(k), duration)

    def increment(self) -> bool:
        return self.scale(self.settings.zoom_in_mult)

    def decrement(self) -> bool:
        return self.scale(self.settings.zoom_out_mult)

    def wheel(self, delta: float) -> bool:
        """Positive delta zooms in."""
        if self.locked:
            return False
        return self.scale(self.settings.zoom_in_mult if delta > 0 else self.settings.zoom_out_mult)

    def pan(self, dx: float, dy: float) -> bool:
        """Drag the canvas by a screen-space offset."""
        if self.locked:
            return False
        t = self.transform
        moved = constrain(Transform(t.x + dx, t.y + dy, t.k), self.extent, self.translate_extent)
        self.interrupt()
        self.set_transform(moved)
        self.ended.emit(moved)
        return True

    def restrict_area(self, area: Optional[Extent] = None) -> Extent:
        """Limit panning to `area`, by default the world rectangle now in view."""
        if area is None:
            t = self.transform
            area = (
                (-t.x / t.k, -t.y / t.k),
                ((-t.x + self.width) / t.k, (-t.y + self.height) / t.k),
            )
        self.translate_extent = area
        return area

    def default_transform(self) -> dict:
        return {"x": self.width / 2, "y": self.height / 2, "k": DEFAULT_SCALE}

    def restore(self, store: "TransformStore") -> Transform:
        """Explicit, else stored, else default transform, applied immediately."""
        t = Transform.from_dict(store.get(self.default_transform()))
        self.set_transform(t)
        logger.debug("Restored transform %s on layer %s", t, self.layer.id)
        return t
