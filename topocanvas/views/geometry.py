from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

Point = Tuple[float, float]


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    w: float
    h: float

    @property
    def left(self) -> float:
        return self.x

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def top(self) -> float:
        return self.y

    @property
    def bottom(self) -> float:
        return self.y + self.h

    @property
    def cx(self) -> float:
        return self.x + self.w / 2

    @property
    def cy(self) -> float:
        return self.y + self.h / 2

    @property
    def corners(self) -> List[Point]:
        return [
            (self.left, self.top),
            (self.right, self.top),
            (self.right, self.bottom),
            (self.left, self.bottom),
        ]

    def inset(self, d: float) -> "Rect":
        """Shrink (or grow, for negative `d`) by `d` on every side."""
        return Rect(self.x + d, self.y + d, self.w - 2 * d, self.h - 2 * d)


def bounds_of(points: Iterable[Point]) -> Optional[Rect]:
    """Tight axis-aligned box around `points`; None when there are none."""
    pts = list(points)
    if not pts:
        return None
    xs = [p[0] for p in pts]
    ys = [p[1] for p in pts]
    return Rect(min(xs), min(ys), max(xs) - min(xs), max(ys) - min(ys))


def _cross(o: Point, a: Point, b: Point) -> float:
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def polygon_hull(points: Sequence[Point]) -> List[Point]:
    """Convex hull (monotone chain), counter-clockwise, no repeated endpoint.

    Degenerate input (fewer than three distinct points) comes back as the
    distinct points themselves.
    """
    pts = sorted(set(points))
    if len(pts) < 3:
        return pts

    lower: List[Point] = []
    for p in pts:
        while len(lower) >= 2 and _cross(lower[-2], lower[-1], p) <= 0:
            lower.pop()
        lower.append(p)

    upper: List[Point] = []
    for p in reversed(pts):
        while len(upper) >= 2 and _cross(upper[-2], upper[-1], p) <= 0:
            upper.pop()
        upper.append(p)

    return lower[:-1] + upper[:-1]


def rects_intersect(r1: Rect, r2: Rect, margin: float = 0.0) -> bool:
    """Overlap test with `r1` grown by `margin` (the group border width)."""
    return not (
        r2.left - margin > r1.right
        or r2.right < r1.left - margin
        or r2.top - margin > r1.bottom
        or r2.bottom < r1.top - margin
    )
