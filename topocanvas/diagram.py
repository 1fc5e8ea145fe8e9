"""Diagram assembly and the public operations of an embedded diagram."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set, Union

from .core.datasource import DataSource
from .core.layout import LayoutStore, TransformStore
from .core.models import Edge, Group, Layer, Node
from .core.settings import FLAGS, ZOOM_BOUNDS, Settings
from .core.signals import Signal, SubscriptionList
from .core.store import KeyValueBackend, MemoryBackend, Store
from .drilldown import DrillDown
from .errors import SettingsError
from .groups import GroupManager
from .layers import LayerStack, SurfaceFactory
from .physics.engine import SimulationEngine
from .physics.simulation import SimulationClock
from .viewport import Transform
from .views.surface import GestureContext

logger = logging.getLogger(__name__)

ROOT_LAYER_ID = "main"
RESET_PROMPT = "Are you sure you want to clear all saved locations and revert all devices to natural float?"

# settings flags persisted per diagram, keyed by their embedding-API name
STORED_FLAGS = {"grouping": "grouping", "show_ip_address": "showIpAddress"}


class Diagram:
    def __init__(
        self,
        diagram_id: str,
        source: DataSource,
        settings: Settings,
        store: Store,
        *,
        surface_factory: Optional[SurfaceFactory] = None,
        confirm: Optional[Callable[[str], bool]] = None,
        clock: Optional[SimulationClock] = None,
    ):
        self.id = diagram_id
        self.source = source
        self.settings = settings
        self.store = store
        self.confirm = confirm

        self.layout = LayoutStore(store, settings)
        self.transforms = TransformStore(store, settings)
        self.groups = GroupManager(settings, self.layout)
        self.clock = clock or SimulationClock()
        self.engine = SimulationEngine(settings, self.groups, self.clock)
        self.stack = LayerStack(settings, surface_factory, on_teardown=self.engine.teardown)
        self.drilldown = DrillDown(self.stack, source, self.engine, self.groups, settings, self.layout)

        # emitted with a link's URL when it is clicked with the modifier held
        self.navigate = Signal("navigate")
        self.subscriptions = SubscriptionList()
        self._layer_subs: Dict[int, SubscriptionList] = {}
        self._tasks: Set[asyncio.Task] = set()
        self.destroyed = False

        self.subscriptions.add(self.stack.pushed.connect(self._wire))
        self.subscriptions.add(self.stack.popped.connect(self._unwire))
        self.subscriptions.add(self.engine.settled.connect(self.layout.schedule_save))

    # -- lifecycle --

    async def load(self) -> Layer:
        """Push and set up the root layer."""
        layer = await self.stack.push(ROOT_LAYER_ID, self.source.fetch(None))
        self.layout.restore(layer)
        self.engine.start(layer)
        layer.viewport.restore(self.transforms)
        self.groups.init(layer)
        layer.processing = False
        return layer

    def destroy(self) -> None:
        """Release every subscription, simulation and surface."""
        if self.destroyed:
            return
        self.layout.flush()
        self.transforms.flush()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        for subs in self._layer_subs.values():
            subs.release_all()
        self._layer_subs.clear()
        self.subscriptions.release_all()
        self.stack.clear()
        self.engine.settled.clear()
        self.clock.close()
        self.navigate.clear()
        self.destroyed = True
        logger.debug("Destroyed diagram %s", self.id)

    async def reset(self) -> bool:
        """Forget stored positions and camera, then reload. Needs confirmation."""
        if self.confirm is None or not self.confirm(RESET_PROMPT):
            return False
        self.layout.clear()
        self.transforms.clear()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        for subs in self._layer_subs.values():
            subs.release_all()
        self._layer_subs.clear()
        self.stack.clear()
        await self.load()
        logger.info("Reset diagram %s", self.id)
        return True

    # -- accessors --

    def current_layer(self) -> Optional[Layer]:
        return self.stack.current_layer()

    def find_node(self, value: str) -> Optional[Node]:
        layer = self.current_layer()
        return layer.find_node(value) if layer is not None else None

    def search_items(self) -> List[str]:
        """Search candidates for the current layer: subnet addresses, then device names."""
        layer = self.current_layer()
        return list(layer.search_items) if layer is not None else []

    async def find_and_focus(self, value: str) -> bool:
        node = self.find_node(value)
        if node is None:
            return False
        await self.current_layer().viewport.focus_on_node(node)
        return True

    async def drill_down(self, value: str) -> Optional[Layer]:
        """Programmatic drill-down into a node of the current layer."""
        node = self.find_node(value)
        if node is None:
            raise KeyError(value)
        return await self.drilldown(node, GestureContext(modifier=True))

    async def close_layer(self) -> bool:
        if len(self.stack) <= 1:
            return False
        return await self.stack.pop(self.current_layer())

    def run_until_settled(self, max_ticks: int = 300) -> int:
        """Synchronously settle the current layer (for headless rendering)."""
        layer = self.current_layer()
        if layer is None:
            return 0
        ticks = self.engine.run_until_settled(layer, max_ticks)
        self.groups.update(layer)
        return ticks

    # -- settings and toggles --

    def toggle_grouping(self) -> bool:
        layer = self.current_layer()
        if layer is None or self.engine.toggle_grouping(layer) is None:
            return self.settings.grouping
        self.store.set_flag(STORED_FLAGS["grouping"], self.settings.grouping)
        return self.settings.grouping

    def toggle_float_mode(self) -> bool:
        self.settings.float_mode = not self.settings.float_mode
        return self.settings.float_mode

    def toggle_ip_address(self) -> bool:
        self.settings.show_ip_address = not self.settings.show_ip_address
        for layer in self.stack:
            if layer.surface is not None:
                layer.surface.set_ip_labels_visible(self.settings.show_ip_address)
        self.store.set_flag(STORED_FLAGS["show_ip_address"], self.settings.show_ip_address)
        return self.settings.show_ip_address

    def toggle_toolbar(self) -> bool:
        self.settings.toolbar = not self.settings.toolbar
        for layer in self.stack:
            if layer.surface is not None:
                layer.surface.set_toolbar_visible(self.settings.toolbar)
        return self.settings.toolbar

    def update_settings(self, new_settings: Mapping[str, Any]) -> None:
        """Apply changed settings; flags go through their toggle routine.

        Keys and flag values are validated before anything is applied.
        """
        changes = {Settings.normalize_key(key): value for key, value in new_settings.items()}
        for name, value in changes.items():
            if name in FLAGS and not isinstance(value, bool):
                raise SettingsError(f"{name} must be a boolean value")

        toggles = {
            "toolbar": self.toggle_toolbar,
            "grouping": self.toggle_grouping,
            "float_mode": self.toggle_float_mode,
            "show_ip_address": self.toggle_ip_address,
        }
        zoom_changed = False
        for name, value in changes.items():
            if name in FLAGS:
                if value != getattr(self.settings, name):
                    toggles[name]()
                continue
            if name in ZOOM_BOUNDS:
                zoom_changed = True
            setattr(self.settings, name, value)

        layer = self.current_layer()
        if zoom_changed and layer is not None and layer.viewport is not None:
            layer.viewport.apply_settings()

    # -- input wiring --

    def _spawn(self, coro: Awaitable[Any]) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(coro)
            return None
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Diagram %s: background task failed", self.id, exc_info=task.exception())

    def _wire(self, layer: Layer) -> None:
        surface = layer.surface
        if surface is None:
            return
        surface.set_ip_labels_visible(self.settings.show_ip_address)
        surface.set_toolbar_visible(self.settings.toolbar)

        ev = surface.events
        groups = self.groups
        subs = SubscriptionList()
        subs.add(ev.node_clicked.connect(lambda node, ctx: self._on_node_clicked(node, ctx)))
        subs.add(ev.node_drag_started.connect(lambda node, ctx: groups.node_drag_start(layer, node, ctx)))
        subs.add(ev.node_dragged.connect(lambda node, ctx: groups.node_drag(layer, node, ctx)))
        subs.add(ev.node_drag_ended.connect(lambda node, ctx: groups.node_drag_end(layer, node, ctx)))
        subs.add(ev.group_clicked.connect(lambda group, ctx: self._on_group_clicked(layer, group, ctx)))
        subs.add(ev.group_drag_started.connect(lambda group, ctx: groups.group_drag_start(layer, group, ctx)))
        subs.add(ev.group_dragged.connect(lambda group, ctx: groups.group_drag(layer, group, ctx)))
        subs.add(ev.group_drag_ended.connect(lambda group, ctx: groups.group_drag_end(layer, group, ctx)))
        subs.add(ev.link_clicked.connect(lambda edge, ctx: self._on_link_clicked(edge, ctx)))
        subs.add(ev.close_clicked.connect(lambda kind: self._on_close_clicked(layer, kind)))
        subs.add(ev.wheel.connect(lambda delta: layer.viewport.wheel(delta)))
        subs.add(layer.viewport.ended.connect(lambda t: self._on_zoom_end(layer, t)))
        self._layer_subs[id(layer)] = subs

    def _unwire(self, layer: Layer) -> None:
        subs = self._layer_subs.pop(id(layer), None)
        if subs is not None:
            subs.release_all()

    def _on_node_clicked(self, node: Node, ctx: GestureContext) -> None:
        if ctx.modifier:
            self._spawn(self.drilldown(node, ctx))

    def _on_group_clicked(self, layer: Layer, group: Group, ctx: GestureContext) -> None:
        if ctx.modifier:
            self._spawn(self.groups.focus(layer, group.id))

    def _on_link_clicked(self, edge: Edge, ctx: GestureContext) -> None:
        if ctx.modifier and edge.url:
            self.navigate.emit(edge.url)

    def _on_close_clicked(self, layer: Layer, kind: str) -> None:
        """`kind` is "group" for the focused group's button, "layer" for an inset's."""
        if kind == "group":
            self._spawn(self.groups.dismiss(layer))
        elif kind == "layer" and layer is not self.stack.root:
            self._spawn(self.stack.pop(layer))

    def _on_zoom_end(self, layer: Layer, transform: Transform) -> None:
        # only the root layer's camera is persisted
        if len(self.stack) == 1 and layer is self.stack.root:
            self.transforms.save(transform.to_dict())


async def create(
    diagram_id: str,
    source: DataSource,
    settings: Union[Settings, Mapping[str, Any], None] = None,
    store: Union[Store, KeyValueBackend, None] = None,
    surface_factory: Optional[SurfaceFactory] = None,
    confirm: Optional[Callable[[str], bool]] = None,
    *,
    clock: Optional[SimulationClock] = None,
) -> Diagram:
    """Build a diagram and load its root layer.

    `store` may be a ready `Store` or a bare key-value backend; without one
    state is kept in memory. Stored `grouping` / `showIpAddress` flags seed
    the defaults that `settings` can override.
    """
    if store is None:
        store = Store(MemoryBackend(), diagram_id)
    elif not isinstance(store, Store):
        store = Store(store, diagram_id)

    if isinstance(settings, Settings):
        resolved = settings
    else:
        defaults = {name: store.get_flag(key) is not False for name, key in STORED_FLAGS.items()}
        resolved = Settings.from_dict(settings, **defaults)

    diagram = Diagram(
        diagram_id,
        source,
        resolved,
        store,
        surface_factory=surface_factory,
        confirm=confirm,
        clock=clock,
    )
    await diagram.load()
    logger.debug("Created diagram %s: %s", diagram_id, diagram.current_layer().stats())
    return diagram
