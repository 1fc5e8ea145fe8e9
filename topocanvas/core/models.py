from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

if TYPE_CHECKING:
    from ..physics.simulation import SimulationPair
    from ..viewport import Transform, Viewport
    from ..views.surface import RenderSurface

Point = Tuple[float, float]


class NodeKind(str, Enum):
    """Node types found in a topology payload."""

    DEVICE = "device"
    SUBNET = "subnet"
    UNMANAGED = "unmanaged"  # WAN / provider clouds


# Payload keys consumed into typed Node fields; everything else lands in attrs.
_NODE_KEYS = {"name", "group", "image", "subnet", "mask", "isPrivate", "isUnmanaged", "isCloud", "external", "fx", "fy"}
_EDGE_KEYS = {"source", "target", "bandwidth", "isStaticWan", "warning", "url"}

_LINK_WIDTH_TIERS: List[Tuple[float, int]] = [
    (10_000_000, 3),
    (100_000_000, 4),
    (1_000_000_000, 5),
    (10_000_000_000, 6),
    (25_000_000_000, 7),
    (50_000_000_000, 8),
    (100_000_000_000, 9),
    (float("inf"), 10),
]

_BANDWIDTH_LABELS: List[Tuple[float, str]] = [
    (100_000_000_000, "100gig"),
    (50_000_000_000, "50gig"),
    (40_000_000_000, "40gig"),
    (25_000_000_000, "25gig"),
    (20_000_000_000, "20gig"),
    (10_000_000_000, "10gig"),
    (1_000_000_000, "1gig"),
    (100_000_000, "100meg"),
    (10_000_000, "10meg"),
]

STATIC_WAN_WIDTH = 5


def link_width(bandwidth: float) -> int:
    """Stroke width tier for a link of the given bandwidth (bits/s)."""
    for limit, width in _LINK_WIDTH_TIERS:
        if bandwidth < limit:
            return width
    return _LINK_WIDTH_TIERS[-1][1]


def downscale_bandwidth(bandwidth: float) -> str:
    for limit, label in _BANDWIDTH_LABELS:
        if bandwidth >= limit:
            return label
    return f"{int(bandwidth)}bits"


def is_private_subnet(subnet: str) -> bool:
    """RFC1918 / link-local check for a dotted subnet address."""
    try:
        return ipaddress.ip_address(subnet.strip()).is_private
    except ValueError:
        return False


@dataclass(eq=False)
class Node:
    name: str
    kind: NodeKind = NodeKind.DEVICE
    x: Optional[float] = None
    y: Optional[float] = None
    vx: float = 0.0
    vy: float = 0.0
    fx: Optional[float] = None
    fy: Optional[float] = None
    # position stashed by the last grouping toggle
    px: Optional[float] = None
    py: Optional[float] = None
    group: Optional[int] = None
    image: Optional[str] = None
    subnet: Optional[str] = None
    mask: Optional[str] = None
    is_private: bool = True
    external: bool = False
    index: int = 0
    attrs: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_cloud(self) -> bool:
        return self.kind in (NodeKind.SUBNET, NodeKind.UNMANAGED)

    @property
    def is_fixed(self) -> bool:
        return self.fx is not None or self.fy is not None

    @property
    def url(self) -> Optional[str]:
        return self.attrs.get("url")

    @property
    def ip_address(self) -> Optional[str]:
        return self.attrs.get("ipAddress")

    def release(self) -> None:
        self.fx = None
        self.fy = None

    def pin(self) -> None:
        self.fx = self.x
        self.fy = self.y

    @classmethod
    def from_dict(cls, d: Dict[str, Any], *, cloud: bool = False) -> "Node":
        if cloud:
            kind = NodeKind.UNMANAGED if d.get("isUnmanaged") else NodeKind.SUBNET
        else:
            kind = NodeKind.DEVICE
        subnet = d.get("subnet")
        if "isPrivate" in d:
            private = bool(d["isPrivate"])
        else:
            private = is_private_subnet(subnet) if subnet else True
        group = d.get("group")
        return cls(
            name=str(d.get("name") or ""),
            kind=kind,
            group=int(group) if isinstance(group, int) else None,
            image=d.get("image"),
            subnet=subnet,
            mask=d.get("mask"),
            is_private=private,
            external=bool(d.get("external", False)),
            fx=d.get("fx"),
            fy=d.get("fy"),
            attrs={k: v for k, v in d.items() if k not in _NODE_KEYS},
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = dict(self.attrs)
        d["name"] = self.name
        if self.group is not None:
            d["group"] = self.group
        if self.image is not None:
            d["image"] = self.image
        if self.is_cloud:
            d["subnet"] = self.subnet
            d["mask"] = self.mask
            d["isPrivate"] = self.is_private
            if self.kind == NodeKind.UNMANAGED:
                d["isUnmanaged"] = True
        if self.external:
            d["external"] = True
        return d


@dataclass(eq=False)
class Edge:
    source: Node
    target: Node
    bandwidth: float = 0
    is_static_wan: bool = False
    warning: bool = False
    width: int = 3
    url: Optional[str] = None
    attrs: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: Dict[str, Any], source: Node, target: Node) -> "Edge":
        bandwidth = d.get("bandwidth") or 0
        static_wan = bool(d.get("isStaticWan", False))
        return cls(
            source=source,
            target=target,
            bandwidth=bandwidth,
            is_static_wan=static_wan,
            warning=bool(d.get("warning", False)),
            width=STATIC_WAN_WIDTH if static_wan else link_width(bandwidth),
            url=d.get("url"),
            attrs={k: v for k, v in d.items() if k not in _EDGE_KEYS},
        )


@dataclass
class Bounds:
    """Raw (unpadded) extent of a group's member nodes."""

    x0: float
    x1: float
    y0: float
    y1: float

    def contains(self, x: float, y: float) -> bool:
        return self.x0 <= x <= self.x1 and self.y0 <= y <= self.y1


@dataclass(eq=False)
class Group:
    id: int
    name: str
    bounds: Optional[Bounds] = None
    x: Optional[float] = None
    y: Optional[float] = None
    width: float = 0.0
    height: float = 0.0
    cx: Optional[float] = None
    cy: Optional[float] = None
    polygon: List[Point] = field(default_factory=list)
    locked: bool = False
    fx: Optional[float] = None
    fy: Optional[float] = None
    nodes: List[Node] = field(default_factory=list)
    # simulation state
    vx: float = 0.0
    vy: float = 0.0
    index: int = 0

    @property
    def has_geometry(self) -> bool:
        return self.bounds is not None

    def release(self) -> None:
        self.fx = None
        self.fy = None


@dataclass(eq=False)
class Layer:
    """One view in the navigation stack."""

    id: str
    nodes: List[Node] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)
    groups: List[Group] = field(default_factory=list)
    focused_group: int = -1
    processing: bool = True
    transform: Optional["Transform"] = None
    simulations: Optional["SimulationPair"] = None
    surface: Optional["RenderSurface"] = None
    viewport: Optional["Viewport"] = None
    search_items: List[str] = field(default_factory=list)
    invalid_edges: List[Dict[str, Any]] = field(default_factory=list)
    focus_dismiss: Optional[Callable[[], Any]] = None
    tasks: List[Any] = field(default_factory=list)

    @property
    def has_groups(self) -> bool:
        return len(self.groups) > 0

    def focused(self) -> Optional[Group]:
        if 0 <= self.focused_group < len(self.groups):
            return self.groups[self.focused_group]
        return None

    def members(self, group_id: int) -> List[Node]:
        return [n for n in self.nodes if n.group == group_id]

    def find_node(self, value: str) -> Optional[Node]:
        """Match by subnet address or node name."""
        for node in self.nodes:
            if node.subnet == value or node.name == value:
                return node
        return None

    def stats(self) -> Dict[str, int]:
        return {
            "devices": sum(1 for n in self.nodes if n.kind == NodeKind.DEVICE),
            "clouds": sum(1 for n in self.nodes if n.is_cloud),
            "edges": len(self.edges),
            "groups": len(self.groups),
            "pinned": sum(1 for n in self.nodes if n.is_fixed),
        }
