"""Render surfaces: where a layer's primitives live and where input comes from.

The diagram only talks to the `RenderSurface` protocol. `TopologySurface`
keeps the geometry of every primitive in memory and renders it to SVG.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Protocol, Tuple

from ..core.models import Edge, Group, Layer, Node, NodeKind
from ..core.signals import Signal
from .geometry import Point, Rect
from .svg import COLORS, SVGCanvas, Style, save_png

if TYPE_CHECKING:
    from ..viewport import Transform

NODE_SIZE = 60
CLOUD_SCALE = 1.5
INSET_MARGIN = (40, 30)
INSET_SHRINK = 60
CLOSE_OFFSET = (-20, -10)
GROUP_LABEL_OFFSET = (20, 45)


@dataclass
class GestureContext:
    """Input state captured when a gesture starts.

    `modifier` is the secondary-interaction key (shift); `active` counts
    other gestures already in progress on the surface.
    """

    modifier: bool = False
    x: float = 0.0
    y: float = 0.0
    active: int = 0


@dataclass
class SurfaceEvents:
    node_clicked: Signal = field(default_factory=lambda: Signal("node_clicked"))
    node_drag_started: Signal = field(default_factory=lambda: Signal("node_drag_started"))
    node_dragged: Signal = field(default_factory=lambda: Signal("node_dragged"))
    node_drag_ended: Signal = field(default_factory=lambda: Signal("node_drag_ended"))
    group_clicked: Signal = field(default_factory=lambda: Signal("group_clicked"))
    group_drag_started: Signal = field(default_factory=lambda: Signal("group_drag_started"))
    group_dragged: Signal = field(default_factory=lambda: Signal("group_dragged"))
    group_drag_ended: Signal = field(default_factory=lambda: Signal("group_drag_ended"))
    link_clicked: Signal = field(default_factory=lambda: Signal("link_clicked"))
    close_clicked: Signal = field(default_factory=lambda: Signal("close_clicked"))
    wheel: Signal = field(default_factory=lambda: Signal("wheel"))

    def all(self) -> List[Signal]:
        return [getattr(self, name) for name in self.__dataclass_fields__]

    def clear(self) -> None:
        for signal in self.all():
            signal.clear()


class RenderSurface(Protocol):
    width: float
    height: float
    events: SurfaceEvents

    def build(self, layer: Layer) -> None: ...

    def update_nodes(self, layer: Layer) -> None: ...

    def update_group(self, layer: Layer, group: Group) -> None: ...

    def set_group_display(self, visible: bool) -> None: ...

    def set_group_focus(self, layer: Layer, group: Group, focused: bool) -> None: ...

    def set_transform(self, transform: "Transform") -> None: ...

    def set_opacity(self, opacity: float) -> None: ...

    def set_loading(self, loading: bool) -> None: ...

    def set_ip_labels_visible(self, visible: bool) -> None: ...

    def set_toolbar_visible(self, visible: bool) -> None: ...

    def destroy(self) -> None: ...


def cloud_degree(layer: Layer, node: Node) -> int:
    return sum(1 for e in layer.edges if e.source is node or e.target is node)


def node_label(layer: Layer, node: Node) -> str:
    if node.kind == NodeKind.UNMANAGED:
        return ""
    if node.is_cloud:
        if not node.is_private and cloud_degree(layer, node) <= 1:
            return "Internet"
        return node.subnet or node.name
    return node.name


def link_color(edge: Edge) -> str:
    if edge.is_static_wan:
        return COLORS["static_wan"]
    if edge.warning:
        return COLORS["warning"]
    return COLORS["link"]


@dataclass
class NodePrimitive:
    name: str
    x: float
    y: float
    size: float
    label: str
    ip_label: Optional[str] = None
    image: Optional[str] = None
    cloud: bool = False


@dataclass
class LinkPrimitive:
    source: Point
    target: Point
    color: str
    width: int
    url: Optional[str] = None


@dataclass
class GroupPrimitive:
    name: str
    rect: Rect
    focused: bool = False


class TopologySurface:
    """In-memory surface rendering to SVG.

    A root surface spans the canvas; a child (drill-down) surface is an inset
    panel with its own frame and starts fully transparent.
    """

    def __init__(self, width: float = 1200, height: float = 800, *, inset: bool = False, layer_id: str = ""):
        self.inset = inset
        self.layer_id = layer_id
        self.canvas_width = width
        self.canvas_height = height
        if inset:
            width, height = width - INSET_SHRINK, height - INSET_SHRINK
        self.width = width
        self.height = height
        self.events = SurfaceEvents()

        self.nodes: Dict[str, NodePrimitive] = {}
        self.links: List[LinkPrimitive] = []
        self.groups: Dict[int, GroupPrimitive] = {}
        self.close_button: Optional[Point] = None

        self.transform: Optional["Transform"] = None
        self.opacity = 0.0 if inset else 1.0
        self.loading = False
        self.group_display = True
        self.ip_labels_visible = True
        self.toolbar_visible = False
        self.destroyed = False
        self.frames = 0

    def build(self, layer: Layer) -> None:
        self.nodes = {}
        for node in layer.nodes:
            size = NODE_SIZE * CLOUD_SCALE if node.is_cloud else NODE_SIZE
            self.nodes[node.name] = NodePrimitive(
                name=node.name,
                x=node.x or 0.0,
                y=node.y or 0.0,
                size=size,
                label=node_label(layer, node),
                ip_label=node.ip_address if node.url else None,
                image=node.image,
                cloud=node.is_cloud,
            )
        self.groups = {g.id: GroupPrimitive(g.name, Rect(0, 0, 0, 0)) for g in layer.groups}
        self.update_nodes(layer)

    def update_nodes(self, layer: Layer) -> None:
        self.frames += 1
        for node in layer.nodes:
            prim = self.nodes.get(node.name)
            if prim is not None and node.x is not None:
                prim.x, prim.y = node.x, node.y
        self.links = [
            LinkPrimitive(
                source=(e.source.x or 0.0, e.source.y or 0.0),
                target=(e.target.x or 0.0, e.target.y or 0.0),
                color=link_color(e),
                width=e.width,
                url=e.url,
            )
            for e in layer.edges
        ]

    def update_group(self, layer: Layer, group: Group) -> None:
        prim = self.groups.setdefault(group.id, GroupPrimitive(group.name, Rect(0, 0, 0, 0)))
        prim.rect = Rect(group.x or 0.0, group.y or 0.0, group.width, group.height)
        if layer.focused_group == group.id:
            self.close_button = (prim.rect.right + CLOSE_OFFSET[0], prim.rect.top + CLOSE_OFFSET[1])

    def set_group_display(self, visible: bool) -> None:
        self.group_display = visible

    def set_group_focus(self, layer: Layer, group: Group, focused: bool) -> None:
        prim = self.groups.get(group.id)
        if prim is None:
            return
        prim.focused = focused
        if focused:
            self.update_group(layer, group)
        else:
            self.close_button = None

    def set_transform(self, transform: "Transform") -> None:
        self.transform = transform

    def set_opacity(self, opacity: float) -> None:
        self.opacity = max(0.0, min(1.0, opacity))

    def set_loading(self, loading: bool) -> None:
        self.loading = loading

    def set_ip_labels_visible(self, visible: bool) -> None:
        self.ip_labels_visible = visible

    def set_toolbar_visible(self, visible: bool) -> None:
        self.toolbar_visible = visible

    def destroy(self) -> None:
        self.destroyed = True
        self.events.clear()
        self.nodes.clear()
        self.links.clear()
        self.groups.clear()

    # -- rendering --

    def _draw_groups(self, svg: SVGCanvas) -> None:
        display = None if self.group_display else "none"
        for prim in self.groups.values():
            r = prim.rect
            if r.w <= 0 and r.h <= 0:
                continue
            svg.add_rect(
                r.x,
                r.y,
                r.w,
                r.h,
                rx=15,
                style=Style(
                    fill="transparent" if prim.focused else COLORS["group_fill"],
                    stroke=COLORS["group_stroke"],
                    stroke_width=10,
                    display=display,
                ),
            )
            svg.add_text(
                r.x + GROUP_LABEL_OFFSET[0],
                r.y + GROUP_LABEL_OFFSET[1],
                prim.name,
                Style(fill=COLORS["text"], font_size=36, display=display),
            )
        if self.close_button is not None and self.group_display:
            self._draw_close(svg, *self.close_button)

    def _draw_close(self, svg: SVGCanvas, x: float, y: float) -> None:
        svg.add_circle(x + 15, y + 15, 15, Style(fill=COLORS["bg"], stroke=COLORS["muted"], stroke_width=2))
        svg.add_text(x + 15, y + 21, "×", Style(fill=COLORS["text"], font_size=18, text_anchor="middle"))

    def _draw_nodes(self, svg: SVGCanvas) -> None:
        for prim in self.nodes.values():
            half = prim.size / 2
            svg.add_circle(prim.x, prim.y, half, Style(fill=COLORS["node_fill"], stroke=COLORS["node_stroke"]))
            if prim.image:
                svg.add_image(prim.x - half, prim.y - half, prim.size, prim.size, prim.image)
            if prim.label:
                dy = 45 * 0.1 if prim.cloud else 45
                svg.add_text(
                    prim.x,
                    prim.y + dy,
                    prim.label,
                    Style(fill=COLORS["text"], font_size=13 if prim.cloud else 16, text_anchor="middle"),
                )
            if prim.ip_label:
                svg.add_text(
                    prim.x,
                    prim.y + 60,
                    prim.ip_label,
                    Style(
                        fill=COLORS["text"],
                        text_anchor="middle",
                        visibility="visible" if self.ip_labels_visible else "hidden",
                    ),
                )

    def render(self) -> str:
        w, h = int(self.canvas_width), int(self.canvas_height)
        svg = SVGCanvas(w, h)
        if self.inset:
            svg.open_group(transform=f"translate({INSET_MARGIN[0]},{INSET_MARGIN[1]})", opacity=self.opacity, css_class="inset")
            svg.add_rect(5, 5, self.width - 10, self.height - 10, rx=15, style=Style(fill=COLORS["inset_bg"], stroke=COLORS["group_stroke"], stroke_width=10))
        else:
            svg.open_group(opacity=self.opacity)

        svg.open_group(transform=str(self.transform) if self.transform is not None else None, css_class="layer")
        self._draw_groups(svg)
        for link in self.links:
            svg.add_line(*link.source, *link.target, Style(stroke=link.color, stroke_width=link.width))
        self._draw_nodes(svg)
        svg.close_group()

        if self.inset:
            self._draw_close(svg, self.width - 35, 5)
        svg.close_group()

        if self.loading:
            svg.add_text(w / 2, h / 2, "Loading…", Style(fill=COLORS["muted"], font_size=24, text_anchor="middle"))
        if self.toolbar_visible:
            svg.add_rect(0, 0, w, 40, style=Style(fill=COLORS["inset_bg"]))
            svg.add_text(10, 26, "+  −  grouping  float  ip  reset", Style(fill=COLORS["text"]))
        return svg.render()

    def save(self, path: str | Path) -> Path:
        out = Path(path)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(self.render(), encoding="utf-8")
        return out

    def save_png(self, path: str | Path) -> bytes:
        return save_png(self.render(), path)

    def node_at(self, name: str) -> Optional[Tuple[float, float]]:
        prim = self.nodes.get(name)
        return (prim.x, prim.y) if prim is not None else None
