"""Planar geometry primitives: points, rings, polygons with holes, GeoDivs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Sequence

from flowcarto.constants import DBL_RESOLUTION


class Point(tuple):
    """An immutable 2D point that behaves like an ``(x, y)`` tuple."""

    __slots__ = ()

    def __new__(cls, x: float, y: float) -> "Point":
        return super().__new__(cls, (float(x), float(y)))

    @property
    def x(self) -> float:
        return self[0]

    @property
    def y(self) -> float:
        return self[1]

    def __repr__(self) -> str:
        return f"Point({self[0]!r}, {self[1]!r})"


@dataclass(frozen=True)
class Bbox:
    """Axis-aligned rectangle."""

    xmin: float
    ymin: float
    xmax: float
    ymax: float


def almost_equal(a: float, b: float) -> bool:
    """True if two numbers differ by at most the coordinate resolution."""
    return abs(a - b) <= DBL_RESOLUTION


def points_almost_equal(p: Sequence[float], q: Sequence[float]) -> bool:
    """True if both coordinates of two points are almost equal."""
    return almost_equal(p[0], q[0]) and almost_equal(p[1], q[1])


def less_than(a: float, b: float) -> bool:
    """True if ``a`` is smaller than ``b`` by more than the resolution."""
    return a < b and not almost_equal(a, b)


def point_less_than(p: Sequence[float], q: Sequence[float]) -> bool:
    """Lexicographic, tolerance-aware comparison of two points."""
    return less_than(p[0], q[0]) or (
        almost_equal(p[0], q[0]) and less_than(p[1], q[1])
    )


def _edges(ring: Sequence[Sequence[float]]) -> Iterator[tuple]:
    """Yield consecutive vertex pairs of a closed ring."""
    n = len(ring)
    for i, start in enumerate(ring):
        yield start, ring[(i + 1) % n]


def signed_area(polygon: Sequence[Sequence[float]]) -> float:
    """Shoelace area: positive for counter-clockwise rings."""
    twice = sum(p[0] * q[1] - q[0] * p[1] for p, q in _edges(polygon))
    return 0.5 * twice


def polygon_bbox(polygon: Iterable[Sequence[float]]) -> Bbox:
    """Bounding box of a sequence of points."""
    pts = list(polygon)
    if not pts:
        raise ValueError("bounding box of an empty point set")
    xs = [p[0] for p in pts]
    ys = [p[1] for p in pts]
    return Bbox(min(xs), min(ys), max(xs), max(ys))


def _bbox_union(boxes: Iterable[Bbox]) -> Bbox:
    boxes = list(boxes)
    if not boxes:
        raise ValueError("bounding box of an empty geometry")
    return Bbox(
        min(b.xmin for b in boxes),
        min(b.ymin for b in boxes),
        max(b.xmax for b in boxes),
        max(b.ymax for b in boxes),
    )


def _on_segment(p, q, pt) -> bool:
    cross = (q[0] - p[0]) * (pt[1] - p[1]) - (q[1] - p[1]) * (pt[0] - p[0])
    if cross != 0.0:
        return False
    return (
        min(p[0], q[0]) <= pt[0] <= max(p[0], q[0])
        and min(p[1], q[1]) <= pt[1] <= max(p[1], q[1])
    )


def point_inside_polygon(
    polygon: Sequence[Sequence[float]], pt: Sequence[float]
) -> bool:
    """True if ``pt`` lies strictly inside the ring; boundary points are not."""
    x, y = pt[0], pt[1]
    inside = False
    for p, q in _edges(polygon):
        if _on_segment(p, q, pt):
            return False
        if (p[1] > y) != (q[1] > y):
            x_cross = p[0] + (y - p[1]) * (q[0] - p[0]) / (q[1] - p[1])
            if x_cross > x:
                inside = not inside
    return inside


def line_segment_intersection(
    a: Sequence[float],
    b: Sequence[float],
    coef_x: float,
    coef_y: float,
    coef_const: float,
) -> Point | None:
    """Point where segment ``ab`` meets ``coef_x*x + coef_y*y + coef_const = 0``.

    Returns None if they do not meet in exactly one point.
    """
    fa = coef_x * a[0] + coef_y * a[1] + coef_const
    fb = coef_x * b[0] + coef_y * b[1] + coef_const
    if fa == 0.0 and fb == 0.0:
        return None
    if fa == 0.0:
        return Point(a[0], a[1])
    if fb == 0.0:
        return Point(b[0], b[1])
    if (fa > 0.0) == (fb > 0.0):
        return None
    t = fa / (fa - fb)
    x = a[0] + t * (b[0] - a[0])
    y = a[1] + t * (b[1] - a[1])
    if coef_y == 0.0:
        x = -coef_const / coef_x
    elif coef_x == 0.0:
        y = -coef_const / coef_y
    return Point(x, y)


def _as_ring(points: Iterable[Sequence[float]]) -> list[Point]:
    return [p if isinstance(p, Point) else Point(p[0], p[1]) for p in points]


@dataclass
class PolygonWithHoles:
    """An outer ring together with zero or more hole rings."""

    outer: list[Point]
    holes: list[list[Point]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.outer = _as_ring(self.outer)
        self.holes = [_as_ring(h) for h in self.holes]

    def area(self) -> float:
        """Area of the outer ring minus the areas of the holes."""
        return abs(signed_area(self.outer)) - sum(
            abs(signed_area(h)) for h in self.holes
        )

    def bbox(self) -> Bbox:
        return polygon_bbox(self.outer)


@dataclass
class GeoDiv:
    """A named geographic division made of polygons with holes."""

    id: str
    polygons_with_holes: list[PolygonWithHoles] = field(default_factory=list)
    adjacent_geodivs: set[str] = field(default_factory=set)
    min_ellipses: list = field(default_factory=list)

    def area(self) -> float:
        return sum(pwh.area() for pwh in self.polygons_with_holes)

    def adjacent_to(self, other_id: str) -> None:
        """Record adjacency with another GeoDiv; self-adjacency is ignored."""
        if other_id != self.id:
            self.adjacent_geodivs.add(other_id)

    def n_points(self) -> int:
        return sum(
            len(pwh.outer) + sum(len(h) for h in pwh.holes)
            for pwh in self.polygons_with_holes
        )

    def bbox(self) -> Bbox:
        return _bbox_union(pwh.bbox() for pwh in self.polygons_with_holes)