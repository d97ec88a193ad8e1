"""Densify polygon boundaries at crossings with the lattice and its diagonals.

Grid cells are centred on half-integer coordinates, so the lattice lines used
here lie at ``x = k + 0.5`` and ``y = k + 0.5``. Besides these, each segment
is split where it crosses the cell diagonals, and near the edges of the
``[0, lx] x [0, ly]`` domain also where it crosses the steeper and gentler
edge diagonals.
"""

from __future__ import annotations

import math
from typing import Iterable, Iterator, Sequence

from flowcarto.geometry import (
    GeoDiv,
    Point,
    PolygonWithHoles,
    almost_equal,
    less_than,
    line_segment_intersection,
    point_less_than,
    points_almost_equal,
)


def _as_point(p: Sequence[float]) -> Point:
    return p if isinstance(p, Point) else Point(p[0], p[1])


def _insert(points: list[Point], p: Point) -> None:
    """Insert ``p`` into a list kept sorted by ``point_less_than``.

    A point equivalent (within tolerance) to one already present is dropped.
    """
    lo, hi = 0, len(points)
    while lo < hi:
        mid = (lo + hi) // 2
        if point_less_than(points[mid], p):
            lo = mid + 1
        else:
            hi = mid
    if lo < len(points) and not point_less_than(p, points[lo]):
        return
    points.insert(lo, p)


def _grid_values(start: float, end: float) -> Iterator[float]:
    value = start
    while value <= end:
        yield value
        value += 0.5 if almost_equal(value, 0.0) else 1.0


def _add_diagonal_intersections(
    points: list[Point],
    a: Point,
    b: Point,
    slope: float,
    base_intercept: float,
    step: float,
    lx: int,
    ly: int,
) -> None:
    """Add crossings of segment ``ab`` with diagonals ``y = slope*x + d``."""
    intercept_a = a.y - slope * a.x
    intercept_b = b.y - slope * b.x
    d = math.floor(min(intercept_a, intercept_b)) + base_intercept
    intercept_end = max(intercept_a, intercept_b)
    abs_slope = abs(slope)
    while d <= intercept_end:
        inter = line_segment_intersection(a, b, slope, -1.0, d)
        if inter is not None:
            on_left_or_right = inter.x < 0.5 or inter.x > lx - 0.5
            on_top_or_bottom = inter.y < 0.5 or inter.y > ly - 0.5
            if (
                (almost_equal(abs_slope, 2.0) and on_left_or_right)
                or (almost_equal(abs_slope, 0.5) and on_top_or_bottom)
                or (
                    almost_equal(abs_slope, 1.0)
                    and on_left_or_right == on_top_or_bottom
                )
            ):
                _insert(points, inter)
        d += step


def _is_reversed(pt1: Point, pt2: Point) -> bool:
    return less_than(pt2.x, pt1.x) or (
        almost_equal(pt1.x, pt2.x) and less_than(pt2.y, pt1.y)
    )


def densification_points(
    pt1: Sequence[float], pt2: Sequence[float], lx: int, ly: int
) -> list[Point]:
    """Points along segment ``pt1 -> pt2`` where it crosses the lattice.

    The result starts at ``pt1``, ends at ``pt2`` and is ordered along the
    segment.
    """
    pt1, pt2 = _as_point(pt1), _as_point(pt2)
    if points_almost_equal(pt1, pt2):
        return [pt1, pt2]

    # Work with a fixed orientation so that (a, b) and (b, a) give the same
    # crossings.
    reverse = _is_reversed(pt1, pt2)
    a, b = (pt2, pt1) if reverse else (pt1, pt2)

    points: list[Point] = []
    _insert(points, a)
    _insert(points, b)

    # Vertical grid lines
    for x in _grid_values(math.floor(a.x + 0.5) + 0.5, b.x):
        inter = line_segment_intersection(a, b, 1.0, 0.0, -x)
        if inter is not None:
            _insert(points, inter)

    # Horizontal grid lines
    y_start = math.floor(min(a.y, b.y) + 0.5) + 0.5
    for y in _grid_values(y_start, max(a.y, b.y)):
        inter = line_segment_intersection(a, b, 0.0, 1.0, -y)
        if inter is not None:
            _insert(points, inter)

    # Cell diagonals
    _add_diagonal_intersections(points, a, b, 1.0, 0.0, 1.0, lx, ly)
    _add_diagonal_intersections(points, a, b, -1.0, 0.0, 1.0, lx, ly)

    # Steep diagonals in cells near the left and right edges
    if a.x < 0.5 or b.x < 0.5 or a.x > lx - 0.5 or b.x > lx - 0.5:
        _add_diagonal_intersections(points, a, b, 2.0, 0.5, 1.0, lx, ly)
        _add_diagonal_intersections(points, a, b, -2.0, 0.5, 1.0, lx, ly)

    # Gentle diagonals in cells near the bottom and top edges
    if a.y < 0.5 or b.y < 0.5 or a.y > ly - 0.5 or b.y > ly - 0.5:
        _add_diagonal_intersections(points, a, b, 0.5, 0.25, 0.5, lx, ly)
        _add_diagonal_intersections(points, a, b, -0.5, 0.25, 0.5, lx, ly)

    if reverse:
        points.reverse()
    return points


def densify_ring(
    ring: Sequence[Sequence[float]], lx: int, ly: int
) -> list[Point]:
    """Densify every edge of a closed ring, including the closing edge."""
    vertices = [_as_point(p) for p in ring]
    n = len(vertices)
    densified: list[Point] = []
    for i, start in enumerate(vertices):
        end = vertices[(i + 1) % n]
        # The final point is the start of the next edge.
        densified.extend(densification_points(start, end, lx, ly)[:-1])
    return densified


def densify_polygon_with_holes(
    pwh: PolygonWithHoles, lx: int, ly: int
) -> PolygonWithHoles:
    """Densify the outer ring and all holes of a polygon."""
    return PolygonWithHoles(
        densify_ring(pwh.outer, lx, ly),
        [densify_ring(hole, lx, ly) for hole in pwh.holes],
    )


def densify_geo_divs(
    geo_divs: Iterable[GeoDiv], lx: int, ly: int
) -> list[GeoDiv]:
    """Return new GeoDivs with the same IDs and densified polygons."""
    return [
        GeoDiv(
            gd.id,
            [
                densify_polygon_with_holes(pwh, lx, ly)
                for pwh in gd.polygons_with_holes
            ],
        )
        for gd in geo_divs
    ]


def new_points(
    original: Iterable[Sequence[float]], densified: Iterable[Sequence[float]]
) -> set[Point]:
    """Points of ``densified`` that are not vertices of ``original``."""
    return {_as_point(p) for p in densified} - {_as_point(p) for p in original}