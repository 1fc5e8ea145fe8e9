"""Point quad-tree used by the charge and rectangle-collision forces.

Children are indexed `(y >= ym) << 1 | (x >= xm)`. Leaves hold every item
that falls in them (coincident points, or everything left once the depth cap
is reached). Forces hang their aggregates (`value`, `x`, `y`, `size`) on the
quads while visiting.
"""

from __future__ import annotations

from typing import Any, Callable, Generic, Iterable, List, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")

MAX_DEPTH = 32


class Quad(Generic[T]):
    __slots__ = ("children", "items", "x0", "y0", "x1", "y1", "value", "x", "y", "size")

    def __init__(self, x0: float, y0: float, x1: float, y1: float):
        self.children: Optional[List[Optional["Quad[T]"]]] = None
        self.items: List[Tuple[float, float, T]] = []
        self.x0, self.y0, self.x1, self.y1 = x0, y0, x1, y1
        self.value = 0.0
        self.x = 0.0
        self.y = 0.0
        self.size: Tuple[float, float] = (0.0, 0.0)

    @property
    def is_leaf(self) -> bool:
        return self.children is None

    @property
    def data(self) -> List[T]:
        return [item for _, _, item in self.items]


class QuadTree(Generic[T]):
    def __init__(self, items: Iterable[T], x: Callable[[T], float], y: Callable[[T], float]):
        points = [(x(d), y(d), d) for d in items]
        self.size = len(points)
        self.root: Optional[Quad[T]] = None
        if not points:
            return

        x0 = min(p[0] for p in points)
        y0 = min(p[1] for p in points)
        x1 = max(p[0] for p in points)
        y1 = max(p[1] for p in points)
        # square cover so quads stay square
        side = max(x1 - x0, y1 - y0) or 1.0
        self.root = self._build(points, x0, y0, x0 + side, y0 + side, 0)

    def _build(self, points: Sequence[Tuple[float, float, T]], x0: float, y0: float, x1: float, y1: float, depth: int) -> Quad[T]:
        quad: Quad[T] = Quad(x0, y0, x1, y1)
        first = points[0]
        coincident = all(p[0] == first[0] and p[1] == first[1] for p in points)
        if len(points) == 1 or coincident or depth >= MAX_DEPTH:
            quad.items = list(points)
            return quad

        xm = (x0 + x1) / 2
        ym = (y0 + y1) / 2
        buckets: List[List[Tuple[float, float, T]]] = [[], [], [], []]
        for p in points:
            buckets[(p[1] >= ym) << 1 | (p[0] >= xm)].append(p)

        quad.children = [None, None, None, None]
        for i, bucket in enumerate(buckets):
            if not bucket:
                continue
            cx0 = xm if i & 1 else x0
            cx1 = x1 if i & 1 else xm
            cy0 = ym if i & 2 else y0
            cy1 = y1 if i & 2 else ym
            quad.children[i] = self._build(bucket, cx0, cy0, cx1, cy1, depth + 1)
        return quad

    def visit(self, callback: Callable[[Quad[T], float, float, float, float], Any]) -> None:
        """Pre-order walk; a truthy callback result skips that quad's children."""
        if self.root is None:
            return
        stack = [self.root]
        while stack:
            quad = stack.pop()
            if callback(quad, quad.x0, quad.y0, quad.x1, quad.y1) or quad.children is None:
                continue
            for child in reversed(quad.children):
                if child is not None:
                    stack.append(child)

    def visit_after(self, callback: Callable[[Quad[T]], Any]) -> None:
        """Post-order walk: children before parents."""
        if self.root is None:
            return
        stack = [self.root]
        order: List[Quad[T]] = []
        while stack:
            quad = stack.pop()
            order.append(quad)
            if quad.children is not None:
                for child in quad.children:
                    if child is not None:
                        stack.append(child)
        for quad in reversed(order):
            callback(quad)

    def __len__(self) -> int:
        return self.size
