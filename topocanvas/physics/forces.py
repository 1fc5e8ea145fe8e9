"""Forces applied by the node and group simulations.

A force is initialised with the simulation's nodes and then called once per
tick with the current alpha. Forces read positions and add to velocities;
the rectangle collision force is the exception and displaces group members
directly, since group rectangles are derived from their members.
"""

from __future__ import annotations

import math
import random
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from ..core.models import Edge, Group, Layer
from ..core.settings import Settings
from .quadtree import Quad, QuadTree


CLUSTER_STRENGTH = 0.2
RECT_PADDING = 100


def jiggle(rng: random.Random) -> float:
    return (rng.random() - 0.5) * 1e-6


class Force:
    def __init__(self) -> None:
        self.nodes: List[Any] = []
        self.random = random.Random(0)

    def initialize(self, nodes: Sequence[Any], rng: Optional[random.Random] = None) -> None:
        self.nodes = list(nodes)
        if rng is not None:
            self.random = rng

    def __call__(self, alpha: float) -> None:
        raise NotImplementedError


class ForceX(Force):
    """Spring toward a fixed x coordinate."""

    def __init__(self, x: float = 0.0, strength: float = 0.1):
        super().__init__()
        self.x = x
        self.strength = strength

    def __call__(self, alpha: float) -> None:
        k = self.strength * alpha
        for node in self.nodes:
            node.vx += (self.x - node.x) * k


class ForceY(Force):
    def __init__(self, y: float = 0.0, strength: float = 0.1):
        super().__init__()
        self.y = y
        self.strength = strength

    def __call__(self, alpha: float) -> None:
        k = self.strength * alpha
        for node in self.nodes:
            node.vy += (self.y - node.y) * k


class ForceLink(Force):
    """Spring along each edge toward a rest distance.

    The displacement is split between the endpoints by degree, so a leaf moves
    more than the hub it hangs off.
    """

    def __init__(
        self,
        links: Sequence[Edge],
        strength: Union[float, Callable[[Edge], float]] = 1.0,
        distance: float = 30.0,
        iterations: int = 1,
    ):
        super().__init__()
        self.links = list(links)
        self.strength = strength
        self.distance = distance
        self.iterations = iterations
        self._strengths: List[float] = []
        self._bias: List[float] = []

    def initialize(self, nodes: Sequence[Any], rng: Optional[random.Random] = None) -> None:
        super().initialize(nodes, rng)
        count: Dict[int, int] = {}
        for link in self.links:
            count[id(link.source)] = count.get(id(link.source), 0) + 1
            count[id(link.target)] = count.get(id(link.target), 0) + 1
        self._bias = []
        for link in self.links:
            s = count[id(link.source)]
            self._bias.append(s / (s + count[id(link.target)]))
        self.refresh()

    def refresh(self) -> None:
        """Re-evaluate per-link strengths (they depend on grouping state)."""
        if callable(self.strength):
            self._strengths = [float(self.strength(link)) for link in self.links]
        else:
            self._strengths = [float(self.strength)] * len(self.links)

    def __call__(self, alpha: float) -> None:
        for _ in range(self.iterations):
            for link, bias, strength in zip(self.links, self._bias, self._strengths):
                source, target = link.source, link.target
                x = target.x + target.vx - source.x - source.vx or jiggle(self.random)
                y = target.y + target.vy - source.y - source.vy or jiggle(self.random)
                length = math.sqrt(x * x + y * y)
                length = (length - self.distance) / length * alpha * strength
                x *= length
                y *= length
                target.vx -= x * bias
                target.vy -= y * bias
                source.vx += x * (1 - bias)
                source.vy += y * (1 - bias)


class ManyBody(Force):
    """Inverse-square charge between all nodes (Barnes-Hut approximation)."""

    def __init__(self, strength: float = -30.0, theta: float = 0.9, distance_min: float = 1.0, distance_max: float = math.inf):
        super().__init__()
        self.strength = strength
        self.theta2 = theta * theta
        self.distance_min2 = distance_min * distance_min
        self.distance_max2 = distance_max * distance_max

    def _accumulate(self, quad: Quad) -> None:
        if quad.is_leaf:
            n = len(quad.items)
            quad.x = sum(p[0] for p in quad.items) / n
            quad.y = sum(p[1] for p in quad.items) / n
            quad.value = self.strength * n
            return

        strength = weight = x = y = 0.0
        for child in quad.children:
            if child is None:
                continue
            c = abs(child.value)
            if c:
                strength += child.value
                weight += c
                x += c * child.x
                y += c * child.y
        if weight:
            quad.x = x / weight
            quad.y = y / weight
        quad.value = strength

    def __call__(self, alpha: float) -> None:
        if not self.nodes:
            return
        tree = QuadTree(self.nodes, lambda d: d.x, lambda d: d.y)
        tree.visit_after(self._accumulate)

        for node in self.nodes:

            def apply(quad: Quad, x1: float, _y1: float, x2: float, _y2: float) -> bool:
                if not quad.value:
                    return True
                x = quad.x - node.x
                y = quad.y - node.y
                w = x2 - x1
                dist2 = x * x + y * y

                # far enough away: treat the quad as a single body
                if w * w / self.theta2 < dist2:
                    if dist2 < self.distance_max2:
                        if x == 0:
                            x = jiggle(self.random)
                            dist2 += x * x
                        if y == 0:
                            y = jiggle(self.random)
                            dist2 += y * y
                        if dist2 < self.distance_min2:
                            dist2 = math.sqrt(self.distance_min2 * dist2)
                        node.vx += x * quad.value * alpha / dist2
                        node.vy += y * quad.value * alpha / dist2
                    return True

                if not quad.is_leaf or dist2 >= self.distance_max2:
                    return False

                others = [d for d in quad.data if d is not node]
                if not others:
                    return True
                if x == 0:
                    x = jiggle(self.random)
                    dist2 += x * x
                if y == 0:
                    y = jiggle(self.random)
                    dist2 += y * y
                if dist2 < self.distance_min2:
                    dist2 = math.sqrt(self.distance_min2 * dist2)
                for _ in others:
                    w = self.strength * alpha / dist2
                    node.vx += x * w
                    node.vy += y * w
                return True

            tree.visit(apply)


class ClusterForce(Force):
    """Pull each grouped node toward its group's centre."""

    def __init__(self, layer: Layer, settings: Settings, strength: float = CLUSTER_STRENGTH):
        super().__init__()
        self.layer = layer
        self.settings = settings
        self.strength = strength

    def __call__(self, alpha: float) -> None:
        groups = self.layer.groups
        if not self.settings.grouping or not groups:
            return
        k = alpha * self.strength
        for node in self.nodes:
            if node.group is None or not (0 <= node.group < len(groups)):
                continue
            group = groups[node.group]
            if group.cx is None or group.cy is None:
                continue
            node.vx -= (node.x - group.cx) * k
            node.vy -= (node.y - group.cy) * k


class RectCollide(Force):
    """Keep group rectangles apart.

    Rectangles are indexed by centre in a quad-tree. Each overlapping pair is
    pushed apart along the axis of least overlap, the push split by relative
    area. The push moves member nodes; groups reported fixed stay put.
    """

    def __init__(
        self,
        is_fixed: Callable[[Group], bool],
        padding: float = RECT_PADDING,
        iterations: int = 1,
        strength: float = 1.0,
    ):
        super().__init__()
        self.is_fixed = is_fixed
        self.padding = padding
        self.iterations = iterations
        self.strength = strength

    @staticmethod
    def _size(g: Group) -> Tuple[float, float]:
        return (g.width, g.height)

    @staticmethod
    def _x_center(g: Group) -> float:
        return g.x + g.vx + g.width / 2

    @staticmethod
    def _y_center(g: Group) -> float:
        return g.y + g.vy + g.height / 2

    def __call__(self, alpha: float) -> None:
        for _ in range(self.iterations):
            self._iterate()

    def _prepare(self, quad: Quad) -> None:
        if quad.is_leaf:
            quad.size = (max(d.width for d in quad.data), max(d.height for d in quad.data))
            return
        w = h = 0.0
        for child in quad.children:
            if child is not None:
                w = max(w, child.size[0])
                h = max(h, child.size[1])
        quad.size = (w, h)

    def _iterate(self) -> None:
        rects = [g for g in self.nodes if g.has_geometry and g.x is not None]
        if len(rects) < 2:
            return
        tree = QuadTree(rects, self._x_center, self._y_center)
        tree.visit_after(self._prepare)

        for node in rects:
            size = self._size(node)
            mass = size[0] * size[1]
            xi = self._x_center(node)
            yi = self._y_center(node)

            def apply(quad: Quad, x0: float, y0: float, x1: float, y1: float) -> bool:
                x_reach = (size[0] + quad.size[0]) / 2 + self.padding
                y_reach = (size[1] + quad.size[1]) / 2 + self.padding
                if quad.is_leaf:
                    for data in quad.data:
                        if data.index <= node.index:
                            continue
                        self._separate(node, data, size, mass, xi, yi)
                return x0 > xi + x_reach or y0 > yi + y_reach or x1 < xi - x_reach or y1 < yi - y_reach

            tree.visit(apply)

    def _separate(self, node: Group, data: Group, size: Tuple[float, float], mass: float, xi: float, yi: float) -> None:
        x_reach = (size[0] + data.width) / 2 + self.padding
        y_reach = (size[1] + data.height) / 2 + self.padding
        x = xi - self._x_center(data)
        y = yi - self._y_center(data)
        xd = abs(x) - x_reach
        yd = abs(y) - y_reach
        if not (xd < 0 and yd < 0):
            return

        length = math.sqrt(x * x + y * y)
        if length == 0:
            x = jiggle(self.random)
            length = abs(x)
        data_mass = data.width * data.height
        total = mass + data_mass
        m = data_mass / total if total else 0.5

        if abs(xd) < abs(yd):
            x *= xd / length * self.strength
            if not self.is_fixed(node):
                for n in node.nodes:
                    n.x -= x * m
            if not self.is_fixed(data):
                for n in data.nodes:
                    n.x += x * (1 - m)
        else:
            y *= yd / length * self.strength
            if not self.is_fixed(node):
                for n in node.nodes:
                    n.y -= y * m
            if not self.is_fixed(data):
                for n in data.nodes:
                    n.y += y * (1 - m)
