"""Group geometry, focus and the drag protocols for groups and nodes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Tuple, Union

from .core.models import Bounds, Group, Layer, Node, Point
from .core.settings import Settings
from .views.geometry import Rect, bounds_of, polygon_hull, rects_intersect

if TYPE_CHECKING:
    from .core.layout import LayoutStore
    from .views.surface import GestureContext

logger = logging.getLogger(__name__)

DRAG_ALPHA_TARGET = 0.7


def group_rect(group: Group) -> Rect:
    return Rect(group.x or 0.0, group.y or 0.0, group.width, group.height)


@dataclass
class DragSession:
    """State captured at drag start and consulted until drag end."""

    layer: Layer
    target: Union[Node, Group]
    start: Point = (0.0, 0.0)
    origins: Dict[int, Point] = field(default_factory=dict)
    fixed_groups: List[Group] = field(default_factory=list)
    # inner box of the focused group; a node dragged inside a focused group stays in it
    containment: Optional[Rect] = None


class GroupManager:
    def __init__(self, settings: Settings, layout: Optional["LayoutStore"] = None):
        self.settings = settings
        self.layout = layout
        self.session: Optional[DragSession] = None

    # -- geometry --

    def derive_geometry(self, group: Group, nodes: Iterable[Node]) -> Optional[List[Point]]:
        """Recompute a group's box from its members. None for an empty member set."""
        raw = bounds_of((n.x, n.y) for n in nodes)
        if raw is None:
            return None
        pad = self.settings.group_padding
        group.bounds = Bounds(raw.left, raw.right, raw.top, raw.bottom)
        padded = raw.inset(-pad)
        group.x, group.y = padded.x, padded.y
        group.width, group.height = padded.w, padded.h
        group.cx, group.cy = padded.cx, padded.cy
        group.polygon = polygon_hull(padded.corners)
        return group.polygon

    def from_nodes(self, nodes: Iterable[Node], name: str = "") -> Optional[Group]:
        """A detached group around `nodes`."""
        group = Group(id=-1, name=name)
        if self.derive_geometry(group, list(nodes)) is None:
            return None
        return group

    def update(self, layer: Layer) -> None:
        """Re-derive every unlocked group from its current members and redraw it."""
        if not self.settings.grouping or not layer.groups:
            return
        for group in layer.groups:
            if group.locked:
                continue
            group.nodes = layer.members(group.id)
            if self.derive_geometry(group, group.nodes) is None:
                continue
            if layer.surface is not None:
                layer.surface.update_group(layer, group)

    def init(self, layer: Layer) -> None:
        if not layer.groups:
            return
        for group in layer.groups:
            group.nodes = layer.members(group.id)
            self.derive_geometry(group, group.nodes)
        if layer.surface is not None:
            for group in layer.groups:
                if group.has_geometry:
                    layer.surface.update_group(layer, group)
            layer.surface.set_group_display(self.settings.grouping)

    # -- fixed state --

    def is_fixed(self, layer: Layer, group: Group) -> bool:
        """Pinned, holding a pinned member, or focused."""
        if group.fx is not None or group.fy is not None:
            return True
        if any(n.is_fixed for n in group.nodes):
            return True
        return layer.focused_group == group.id

    def get_fixed(self, layer: Layer, other_than: Optional[int] = None) -> List[Group]:
        return [g for g in layer.groups if g.id != other_than and self.is_fixed(layer, g)]

    def intersects(self, g1: Group, g2: Group) -> bool:
        if not (g1.has_geometry and g2.has_geometry):
            return False
        return rects_intersect(group_rect(g1), group_rect(g2), self.settings.group_border_width)

    def move(self, nodes: Iterable[Node], dx: float, dy: float, force_lock: bool = False) -> None:
        """Translate nodes together; pinned ones (or all, with `force_lock`) stay pinned."""
        for node in nodes:
            node.x += dx
            node.y += dy
            if node.fx is not None or force_lock:
                node.fx = node.x
            if node.fy is not None or force_lock:
                node.fy = node.y

    # -- focus --

    async def focus(self, layer: Layer, group_id: int) -> None:
        """Isolate one group and frame the camera on it."""
        await self.unfocus(layer)
        group = layer.groups[group_id]
        prior_k = layer.transform.k if layer.transform is not None else None

        layer.focused_group = group_id
        group.locked = True
        if layer.surface is not None:
            layer.surface.set_group_focus(layer, group, True)

        async def dismiss() -> None:
            await self.unfocus(layer, prior_k)

        layer.focus_dismiss = dismiss
        logger.debug("Focused group %s on layer %s", group.name, layer.id)
        if layer.viewport is not None:
            await layer.viewport.focus_on_area(group)

    async def unfocus(self, layer: Layer, target_k: Optional[float] = None) -> None:
        """Clear focus, restore the group's visuals, optionally zoom to `target_k`."""
        group = layer.focused()
        if group is None:
            return
        group.locked = False
        layer.focused_group = -1
        layer.focus_dismiss = None
        if layer.surface is not None:
            layer.surface.set_group_focus(layer, group, False)
        if target_k and layer.viewport is not None:
            await layer.viewport.scale_to(target_k)

    async def dismiss(self, layer: Layer) -> None:
        """Run the close action registered by `focus`."""
        if layer.focus_dismiss is not None:
            await layer.focus_dismiss()

    # -- drag protocol --

    def _heat(self, layer: Layer, ctx: "GestureContext", groups: bool) -> None:
        if ctx.active == 0 and layer.simulations is not None:
            layer.simulations.heat(DRAG_ALPHA_TARGET, groups=groups)

    def _cool(self, layer: Layer, ctx: "GestureContext") -> None:
        if ctx.active == 0 and layer.simulations is not None:
            layer.simulations.cool()

    def _should_float(self, group: Optional[Group], fixed: List[Group]) -> bool:
        if self.settings.float_mode:
            return True
        return group is not None and any(self.intersects(fg, group) for fg in fixed)

    def _save(self, layer: Layer) -> None:
        if self.layout is not None:
            self.layout.schedule_save(layer)

    def node_drag_start(self, layer: Layer, node: Node, ctx: "GestureContext") -> bool:
        if ctx.modifier:
            return False
        self._heat(layer, ctx, groups=self.settings.grouping)
        node.pin()

        containment = None
        focused = layer.focused()
        if focused is not None:
            focused.locked = True
            pad = self.settings.group_padding
            containment = group_rect(focused).inset(pad)

        self.session = DragSession(
            layer=layer,
            target=node,
            start=(ctx.x, ctx.y),
            fixed_groups=self.get_fixed(layer, node.group),
            containment=containment,
        )
        return True

    def node_drag(self, layer: Layer, node: Node, ctx: "GestureContext") -> None:
        if ctx.modifier or self.session is None:
            return
        box = self.session.containment
        if box is None or box.left < ctx.x < box.right:
            node.fx = ctx.x
        if box is None or box.top < ctx.y < box.bottom:
            node.fy = ctx.y

    def node_drag_end(self, layer: Layer, node: Node, ctx: "GestureContext") -> None:
        if ctx.modifier:
            return
        session, self.session = self.session, None
        fixed = session.fixed_groups if session is not None else []
        self._cool(layer, ctx)
        if layer.groups:
            self.update(layer)
        group = layer.groups[node.group] if layer.groups and node.group is not None else None
        if self._should_float(group, fixed):
            node.release()
        self._save(layer)

    def group_drag_start(self, layer: Layer, group: Group, ctx: "GestureContext") -> bool:
        if ctx.modifier or layer.focused_group == group.id:
            return False
        self._heat(layer, ctx, groups=True)
        members = layer.members(group.id)
        group.nodes = members
        origins: Dict[int, Point] = {id(group): (group.x or 0.0, group.y or 0.0)}
        for node in members:
            node.pin()
            origins[id(node)] = (node.x, node.y)
        self.session = DragSession(
            layer=layer,
            target=group,
            start=(ctx.x, ctx.y),
            origins=origins,
            fixed_groups=self.get_fixed(layer, group.id),
        )
        return True

    def _delta(self, ctx: "GestureContext") -> Tuple[float, float]:
        sx, sy = self.session.start
        return ctx.x - sx, ctx.y - sy

    def group_drag(self, layer: Layer, group: Group, ctx: "GestureContext") -> None:
        if ctx.modifier or layer.focused_group == group.id or self.session is None:
            return
        dx, dy = self._delta(ctx)
        origins = self.session.origins
        for node in group.nodes:
            ox, oy = origins.get(id(node), (node.x, node.y))
            node.x = node.fx = ox + dx
            node.y = node.fy = oy + dy
        gx, gy = origins[id(group)]
        group.fx = gx + dx
        group.fy = gy + dy

    def group_drag_end(self, layer: Layer, group: Group, ctx: "GestureContext") -> None:
        if ctx.modifier:
            return
        session, self.session = self.session, None
        fixed = session.fixed_groups if session is not None else []
        self._cool(layer, ctx)
        self.update(layer)
        if self._should_float(group, fixed):
            group.release()
            for node in group.nodes:
                node.release()
        self._save(layer)
