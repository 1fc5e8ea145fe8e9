"""The navigation stack of layers.

Index 0 is the head: the layer currently shown and interacted with. Every
diagram-level accessor goes through `current_layer()`.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Union

from .core.ingest import ingest
from .core.models import Layer
from .core.settings import Settings
from .core.signals import Signal
from .errors import LayerBusyError
from .viewport import FRAME_INTERVAL, Viewport
from .views.surface import RenderSurface, TopologySurface

logger = logging.getLogger(__name__)

FADE_DURATION = 1.0

SurfaceFactory = Callable[[Layer, bool], RenderSurface]
PayloadSource = Union[Mapping[str, Any], Awaitable[Mapping[str, Any]]]


def default_surface_factory(settings: Settings) -> SurfaceFactory:
    def factory(layer: Layer, inset: bool) -> RenderSurface:
        return TopologySurface(settings.width, settings.height, inset=inset, layer_id=layer.id)

    return factory


class LayerStack:
    def __init__(
        self,
        settings: Settings,
        surface_factory: Optional[SurfaceFactory] = None,
        *,
        on_teardown: Optional[Callable[[Layer], None]] = None,
        fade_duration: float = FADE_DURATION,
    ):
        self.settings = settings
        self.surface_factory = surface_factory or default_surface_factory(settings)
        self.on_teardown = on_teardown
        self.fade_duration = fade_duration
        self.layers: List[Layer] = []
        self.pushed = Signal("pushed")
        self.popped = Signal("popped")

    def current_layer(self) -> Optional[Layer]:
        return self.layers[0] if self.layers else None

    @property
    def root(self) -> Optional[Layer]:
        return self.layers[-1] if self.layers else None

    def __len__(self) -> int:
        return len(self.layers)

    def __iter__(self):
        return iter(self.layers)

    async def fade(self, layer: Layer, show: bool, duration: float) -> None:
        """Linear opacity ramp of the layer's surface."""
        surface = layer.surface
        if surface is None:
            return
        target = 1.0 if show else 0.0
        frames = int(round(duration / FRAME_INTERVAL))
        start = getattr(surface, "opacity", 1.0 - target)
        for i in range(1, frames + 1):
            await asyncio.sleep(FRAME_INTERVAL)
            surface.set_opacity(start + (target - start) * i / frames)
        surface.set_opacity(target)

    async def _fade_in_later(self, layer: Layer, delay: float, duration: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
        await self.fade(layer, True, duration)

    async def push(
        self,
        layer_id: str,
        data: PayloadSource,
        *,
        delay: float = 0.0,
        fade_duration: Optional[float] = None,
        strict: bool = False,
    ) -> Layer:
        """Put a new layer on top and populate it once `data` resolves.

        The returned layer is still `processing`; the caller clears the flag
        when its own setup (simulations, layout, camera) is done.
        """
        head = self.current_layer()
        if head is not None and head.processing:
            raise LayerBusyError(f"Layer {head.id!r} is still processing")

        first = head is None
        layer = Layer(id=layer_id)
        self.layers.insert(0, layer)
        surface = self.surface_factory(layer, not first)
        layer.surface = surface
        layer.viewport = Viewport(layer, self.settings, surface.width, surface.height)
        surface.set_loading(True)

        if not first:
            duration = self.fade_duration if fade_duration is None else fade_duration
            layer.tasks.append(asyncio.ensure_future(self._fade_in_later(layer, delay, duration)))

        try:
            payload = await data if inspect.isawaitable(data) else data
            ingest(layer, payload, strict=strict)
        except Exception:
            self._discard(layer)
            raise

        surface.build(layer)
        surface.set_loading(False)
        logger.debug("Pushed layer %s (depth %d): %s", layer.id, len(self.layers), layer.stats())
        self.pushed.emit(layer)
        return layer

    def _discard(self, layer: Layer) -> None:
        if layer in self.layers:
            self.layers.remove(layer)
        self._release(layer)

    def _release(self, layer: Layer) -> None:
        for task in layer.tasks:
            task.cancel()
        layer.tasks.clear()
        if self.on_teardown is not None:
            self.on_teardown(layer)
        if layer.viewport is not None:
            layer.viewport.interrupt()
            layer.viewport.ended.clear()
        if layer.surface is not None:
            layer.surface.destroy()

    async def pop(self, layer: Optional[Layer] = None, *, fade_duration: Optional[float] = None) -> bool:
        """Fade a layer out and release it. Rejected (False) while it is processing."""
        layer = layer or self.current_layer()
        if layer is None or layer.processing:
            return False
        layer.processing = True
        if layer in self.layers:
            self.layers.remove(layer)
        for task in layer.tasks:
            task.cancel()
        layer.tasks.clear()
        await self.fade(layer, False, self.fade_duration if fade_duration is None else fade_duration)
        self._release(layer)
        logger.debug("Popped layer %s (depth %d)", layer.id, len(self.layers))
        self.popped.emit(layer)
        return True

    def clear(self) -> None:
        """Release every layer at once (diagram teardown and reload)."""
        while self.layers:
            self._release(self.layers.pop(0))
