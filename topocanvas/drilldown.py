"""Drill-down navigation from a clicked node into a detail layer.

Each pipeline stage is a plain function (or coroutine) over the layer so it
can be exercised on its own:

    device: fetch -> frame entry -> push -> arrange -> restrict
    subnet: fetch -> frame entry -> push -> start -> settle -> pin externals
            -> frame -> restrict
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional

from .core.datasource import DataSource, Payload
from .core.layout import LayoutStore
from .core.models import Group, Layer, Node
from .core.settings import Settings
from .groups import GroupManager
from .layers import LayerStack
from .physics.engine import SimulationEngine
from .views.surface import GestureContext

logger = logging.getLogger(__name__)

ENTRY_MIN_SCALE = 1.5
ENTRY_DURATION = 0.25
SUBNET_FADE = 0.5
SETTLE_DURATION = 0.5
RADIUS_MARGIN = 100
MAX_SEPARATION = 0.5


def _unique(names: List[str]) -> List[str]:
    seen = set()
    return [n for n in names if not (n in seen or seen.add(n))]


async def fetch_device(source: DataSource, node: Node) -> Payload:
    """Neighbourhood of one device: the device itself plus one stub per neighbour."""
    data = dict(await source.fetch({"device": node.name}))
    links = data.get("links") or []
    neighbours = _unique([link["target"] for link in links if link["target"] != node.name])
    clone = node.to_dict()
    clone.pop("group", None)
    data["devices"] = [clone] + [{"name": name} for name in neighbours]
    data["groups"] = []
    data.setdefault("subnets", [])
    return data


async def fetch_subnet(source: DataSource, node: Node) -> Payload:
    """Subnet membership; link endpoints outside it are added as external devices."""
    data = dict(await source.fetch({"subnet": node.subnet or node.name}))
    devices: List[Dict[str, Any]] = list(data.get("devices") or [])
    known = {d["name"] for d in devices} | {s["name"] for s in data.get("subnets") or []}
    for link in data.get("links") or []:
        for end in (link["source"], link["target"]):
            if end not in known:
                devices.append({"name": end, "external": True})
                known.add(end)
    data["devices"] = devices
    return data


async def frame_entry(layer: Layer, node: Node) -> float:
    """Zoom onto the clicked node before the child layer appears. Returns the scale used."""
    k = max(ENTRY_MIN_SCALE, layer.transform.k if layer.transform is not None else 1.0)
    if layer.viewport is not None:
        await layer.viewport.focus_on_node(node, k, ENTRY_DURATION)
    return k


def radius_for(width: float, height: float) -> float:
    return max(width, height) + RADIUS_MARGIN


def arrange_device(layer: Layer, name: str) -> Optional[Node]:
    """Centre the device and lay its neighbours on a circle around it."""
    center = layer.find_node(name)
    if center is None:
        return None
    surface = layer.surface
    width = surface.width if surface is not None else 0.0
    height = surface.height if surface is not None else 0.0
    center.x, center.y = width / 2, height / 2

    neighbours: List[Node] = []
    for edge in layer.edges:
        edge.source = center
        if edge.target is not center and edge.target not in neighbours:
            neighbours.append(edge.target)
    if neighbours:
        radius = radius_for(width, height)
        separation = 2 * math.pi / len(neighbours)
        for i, n in enumerate(neighbours):
            n.x = center.x + math.cos(separation * i) * radius
            n.y = center.y + math.sin(separation * i) * radius
    if surface is not None:
        surface.update_nodes(layer)
    return center


def pin_externals(layer: Layer, groups: GroupManager) -> Optional[Group]:
    """Pin external neighbours on a ring outside the settled members' box.

    Returns the box around the internal members (None when there are none).
    """
    internal = [n for n in layer.nodes if not n.external]
    externals = [n for n in layer.nodes if n.external]
    box = groups.from_nodes(internal)
    if box is None:
        return None
    if externals:
        surface = layer.surface
        width = surface.width if surface is not None else 0.0
        height = surface.height if surface is not None else 0.0
        radius = max(radius_for(width, height), math.hypot(box.width, box.height) / 2 + groups.settings.group_padding)
        separation = min(2 * math.pi / len(externals), MAX_SEPARATION)
        for i, node in enumerate(externals):
            node.x = node.fx = box.cx + math.cos(separation * i) * radius
            node.y = node.fy = box.cy + math.sin(separation * i) * radius
    if layer.surface is not None:
        layer.surface.update_nodes(layer)
    return box


def restrict(layer: Layer, min_scale: float, settings: Settings) -> None:
    """Lock panning to what is in view and zooming out below `min_scale`."""
    if layer.viewport is None:
        return
    layer.viewport.restrict_area()
    layer.viewport.scale_extent = (min_scale, settings.max_zoom_in)


class DrillDown:
    def __init__(
        self,
        stack: LayerStack,
        source: DataSource,
        engine: SimulationEngine,
        groups: GroupManager,
        settings: Settings,
        layout: Optional[LayoutStore] = None,
        *,
        settle_duration: float = SETTLE_DURATION,
    ):
        self.stack = stack
        self.source = source
        self.engine = engine
        self.groups = groups
        self.settings = settings
        self.layout = layout
        self.settle_duration = settle_duration
        self.busy = False

    async def __call__(self, node: Node, ctx: GestureContext) -> Optional[Layer]:
        """Drill into `node` when the modifier is held and the current layer is idle."""
        layer = self.stack.current_layer()
        if not ctx.modifier or layer is None or layer.processing or self.busy:
            return None
        self.busy = True
        try:
            if node.is_cloud:
                child = await self.subnet(layer, node)
            else:
                child = await self.device(layer, node)
        finally:
            self.busy = False
        child.processing = False
        return child

    async def device(self, parent: Layer, node: Node) -> Layer:
        data = await fetch_device(self.source, node)
        k = await frame_entry(parent, node)
        layer = await self.stack.push(node.name, data)

        center = arrange_device(layer, node.name)
        if center is not None and layer.viewport is not None:
            await layer.viewport.focus_on_node(center, k, 0)
        restrict(layer, k, self.settings)
        logger.debug("Device drill-down into %s: %d neighbours", node.name, len(layer.nodes) - 1)
        return layer

    async def subnet(self, parent: Layer, node: Node) -> Layer:
        data = await fetch_subnet(self.source, node)
        await frame_entry(parent, node)
        layer = await self.stack.push(node.name, data, delay=0, fade_duration=SUBNET_FADE)

        if self.layout is not None:
            self.layout.restore(layer)
        self.engine.start(layer)
        await self.engine.settle(layer, self.settle_duration)

        box = pin_externals(layer, self.groups)
        if self.layout is not None:
            self.layout.schedule_save(layer)
        if box is not None and layer.viewport is not None:
            await layer.viewport.focus_on_area(box)
        restrict(layer, layer.transform.k, self.settings)
        logger.debug("Subnet drill-down into %s: %d nodes", node.name, len(layer.nodes))
        return layer
