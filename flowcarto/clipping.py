"""Clip paths and polygons against grid cells and measure overlap areas.

A grid cell with bottom-left corner ``(cx, cy)`` is the unit square
``[cx, cx + 1] x [cy, cy + 1]``. Paths are open polylines and polygons are
closed rings; both are sequences of points.
"""

from __future__ import annotations

import math
from typing import Callable, Iterable, Sequence

from flowcarto.geometry import (
    Bbox,
    Point,
    PolygonWithHoles,
    almost_equal,
    signed_area,
)

Cell = tuple[int, int]
EdgeRange = tuple[int, int]

_EPS = 1e-9


def _as_point(p: Sequence[float]) -> Point:
    return p if isinstance(p, Point) else Point(p[0], p[1])


# ---------------------------------------------------------------------------
# Half-plane clipping
# ---------------------------------------------------------------------------

InsideTest = Callable[[Point], bool]
Intersector = Callable[[Point, Point], Point]


def _vertical_half_plane(x: float, keep_right: bool) -> tuple[InsideTest, Intersector]:
    def inside(p: Point) -> bool:
        return p.x >= x if keep_right else p.x <= x

    def intersect(p: Point, q: Point) -> Point:
        return Point(x, p.y + (q.y - p.y) * (x - p.x) / (q.x - p.x))

    return inside, intersect


def _horizontal_half_plane(y: float, keep_above: bool) -> tuple[InsideTest, Intersector]:
    def inside(p: Point) -> bool:
        return p.y >= y if keep_above else p.y <= y

    def intersect(p: Point, q: Point) -> Point:
        return Point(p.x + (q.x - p.x) * (y - p.y) / (q.y - p.y), y)

    return inside, intersect


def _half_planes(bbox: Bbox) -> list[tuple[InsideTest, Intersector]]:
    return [
        _vertical_half_plane(bbox.xmin, True),
        _vertical_half_plane(bbox.xmax, False),
        _horizontal_half_plane(bbox.ymin, True),
        _horizontal_half_plane(bbox.ymax, False),
    ]


def _clip_path(
    path: list[Point], inside: InsideTest, intersect: Intersector
) -> list[Point]:
    """Clip an open polyline against one half-plane."""
    if not path:
        return []
    clipped: list[Point] = []
    prev = path[0]
    prev_in = inside(prev)
    if prev_in:
        clipped.append(prev)
    for curr in path[1:]:
        curr_in = inside(curr)
        if prev_in != curr_in:
            clipped.append(intersect(prev, curr))
            if curr_in:
                clipped.append(curr)
        elif curr_in:
            clipped.append(curr)
        prev, prev_in = curr, curr_in
    return clipped


def _clip_polygon(
    polygon: list[Point], inside: InsideTest, intersect: Intersector
) -> list[Point]:
    """Clip a closed ring against one half-plane (Sutherland-Hodgman)."""
    if not polygon:
        return []
    clipped: list[Point] = []
    prev = polygon[-1]
    prev_in = inside(prev)
    for curr in polygon:
        curr_in = inside(curr)
        if curr_in:
            if not prev_in:
                clipped.append(intersect(prev, curr))
            clipped.append(curr)
        elif prev_in:
            clipped.append(intersect(prev, curr))
        prev, prev_in = curr, curr_in
    return clipped


def clip_path_by_rectangle(
    path: Iterable[Sequence[float]], bbox: Bbox
) -> list[Point]:
    """Part of an open polyline that lies inside ``bbox``."""
    clipped = [_as_point(p) for p in path]
    for inside, intersect in _half_planes(bbox):
        clipped = _clip_path(clipped, inside, intersect)
    return clipped


def clip_polygon_by_rectangle(
    polygon: Iterable[Sequence[float]], bbox: Bbox
) -> list[Point]:
    """Ring of the part of a polygon that lies inside ``bbox``."""
    clipped = [_as_point(p) for p in polygon]
    for inside, intersect in _half_planes(bbox):
        clipped = _clip_polygon(clipped, inside, intersect)
    return clipped


def polygon_rectangle_overlap_area(
    polygon: Iterable[Sequence[float]], bbox: Bbox
) -> float:
    """Area of the intersection of a ring with a rectangle."""
    return abs(signed_area(clip_polygon_by_rectangle(polygon, bbox)))


def pwh_rectangle_overlap_area(pwh: PolygonWithHoles, bbox: Bbox) -> float:
    """Area of the intersection of a polygon with holes and a rectangle."""
    area = polygon_rectangle_overlap_area(pwh.outer, bbox)
    return area - sum(polygon_rectangle_overlap_area(h, bbox) for h in pwh.holes)


# ---------------------------------------------------------------------------
# Rasterisation of edges
# ---------------------------------------------------------------------------


def supercover_line(x0: float, y0: float, x1: float, y1: float) -> list[Cell]:
    """Grid cells traversed by the segment from ``(x0, y0)`` to ``(x1, y1)``.

    Uses the Amanatides-Woo voxel traversal; cells are listed in the order
    the segment visits them.
    """
    cell_x, cell_y = math.floor(x0), math.floor(y0)
    end_x, end_y = math.floor(x1), math.floor(y1)
    cells: list[Cell] = [(cell_x, cell_y)]

    delta_x, delta_y = x1 - x0, y1 - y0
    step_x = 1 if delta_x > 0 else (-1 if delta_x < 0 else 0)
    step_y = 1 if delta_y > 0 else (-1 if delta_y < 0 else 0)

    if almost_equal(delta_x, 0.0):
        t_delta_x = t_max_x = math.inf
    else:
        t_delta_x = 1.0 / abs(delta_x)
        if step_x > 0:
            t_max_x = ((cell_x + 1) - x0) / delta_x
        else:
            t_max_x = (x0 - cell_x) / -delta_x

    if almost_equal(delta_y, 0.0):
        t_delta_y = t_max_y = math.inf
    else:
        t_delta_y = 1.0 / abs(delta_y)
        if step_y > 0:
            t_max_y = ((cell_y + 1) - y0) / delta_y
        else:
            t_max_y = (y0 - cell_y) / -delta_y

    t = 0.0
    while t <= 1.0:
        if t_max_x < t_max_y:
            cell_x += step_x
            t = t_max_x
            t_max_x += t_delta_x
        else:
            cell_y += step_y
            t = t_max_y
            t_max_y += t_delta_y
        if t > 1.0:
            break
        cells.append((cell_x, cell_y))
        if cell_x == end_x and cell_y == end_y:
            break
    return cells


def rasterize_polygon_edges(
    polygon: Sequence[Sequence[float]],
) -> list[tuple[Cell, EdgeRange]]:
    """Cells crossed by the edges of a ring, in traversal order.

    Each entry pairs a cell with ``(first, after_last)``: the index of the
    vertex where the ring enters the cell and the index of the first vertex
    past the cell.
    """
    ring = [_as_point(p) for p in polygon]
    n = len(ring)
    if n < 2:
        return []

    runs: list[list] = []
    for i, (p0, p1) in enumerate(zip(ring, ring[1:] + ring[:1])):
        for cell in supercover_line(p0.x, p0.y, p1.x, p1.y):
            if runs and runs[-1][0] == cell:
                runs[-1][2] = i
            else:
                runs.append([cell, i, i])

    for run in runs:
        run[2] = (run[2] + 1) % n

    # The ring is closed: merge the final run into the first if both lie in
    # the same cell and join up.
    if len(runs) > 1 and runs[0][0] == runs[-1][0] and runs[0][1] == runs[-1][2]:
        runs[0][1] = runs[-1][1]
        runs.pop()

    return [(cell, (first, last)) for cell, first, last in runs]


def extract_subpath(
    polygon: Sequence[Sequence[float]], start_idx: int, end_idx: int
) -> list[Point]:
    """Vertices from ``start_idx`` to ``end_idx`` inclusive, wrapping around."""
    ring = [_as_point(p) for p in polygon]
    if not ring:
        return []
    if end_idx > start_idx:
        return ring[start_idx : end_idx + 1]
    return ring[start_idx:] + ring[: end_idx + 1]


# ---------------------------------------------------------------------------
# Walking the cell boundary clockwise
# ---------------------------------------------------------------------------
#
# Cell boundary edges in clockwise order: 0 right (upwards as stored corner
# ordering below), 1 bottom, 2 left, 3 top.


def _edge_index_cw(p: Point, cx: float, cy: float) -> int:
    if abs(p.x - (cx + 1)) < _EPS:
        return 0
    if abs(p.y - cy) < _EPS:
        return 1
    if abs(p.x - cx) < _EPS:
        return 2
    if abs(p.y - (cy + 1)) < _EPS:
        return 3
    raise ValueError("Point is not on the cell boundary.")


def _corner_cw(edge: int, cx: float, cy: float) -> Point:
    corners = {
        0: Point(cx + 1, cy),
        1: Point(cx, cy),
        2: Point(cx, cy + 1),
        3: Point(cx + 1, cy + 1),
    }
    try:
        return corners[edge]
    except KeyError:
        raise ValueError("Invalid edge index.") from None


def _in_order_on_edge_cw(a: Point, b: Point, edge: int) -> bool:
    if edge == 0:
        return a.y > b.y - _EPS
    if edge == 1:
        return a.x > b.x + _EPS
    if edge == 2:
        return a.y < b.y + _EPS
    if edge == 3:
        return a.x < b.x - _EPS
    raise ValueError("Invalid edge index.")


def connecting_path_cw(
    p1: Sequence[float], p2: Sequence[float], cx: float, cy: float
) -> list[Point]:
    """Path along the boundary of cell ``(cx, cy)`` from ``p2`` towards ``p1``.

    The path starts at ``p2`` and lists the cell corners passed on the way;
    ``p1`` itself is not included. Both points must lie on the boundary.
    """
    p1, p2 = _as_point(p1), _as_point(p2)
    path = [p2]
    edge_p1 = _edge_index_cw(p1, cx, cy)
    edge_p2 = _edge_index_cw(p2, cx, cy)

    if edge_p1 == edge_p2 and _in_order_on_edge_cw(p2, p1, edge_p1):
        return path

    corner = _corner_cw(edge_p2, cx, cy)
    if corner != p2:
        path.append(corner)
    edge = (edge_p2 + 1) % 4
    while edge != edge_p1:
        path.append(_corner_cw(edge, cx, cy))
        edge = (edge + 1) % 4
    return path


def _on_rect_edge(p: Point, bbox: Bbox) -> bool:
    within_x = bbox.xmin - _EPS <= p.x <= bbox.xmax + _EPS
    within_y = bbox.ymin - _EPS <= p.y <= bbox.ymax + _EPS
    return (
        (abs(p.y - bbox.ymin) < _EPS and within_x)
        or (abs(p.y - bbox.ymax) < _EPS and within_x)
        or (abs(p.x - bbox.xmin) < _EPS and within_y)
        or (abs(p.x - bbox.xmax) < _EPS and within_y)
    )


def _contained_within_cell(path: list[Point], bbox: Bbox) -> bool:
    return bool(path) and _on_rect_edge(path[0], bbox) and _on_rect_edge(path[-1], bbox)


def build_closed_polygon(
    clipped_path: Sequence[Sequence[float]], cell: Cell
) -> list[Point]:
    """Close a path whose ends lie on the cell boundary, walking clockwise.

    The result starts and ends at the first vertex of ``clipped_path``.
    """
    path = [_as_point(p) for p in clipped_path]
    cx, cy = float(cell[0]), float(cell[1])
    p1, p2 = path[0], path[-1]
    connector = connecting_path_cw(p1, p2, cx, cy)
    return path + connector[1:] + [p1]


def path_union_area(
    polygon: Sequence[Sequence[float]],
    is_outer: bool,
    intervals: Iterable[Sequence[int]],
    cell: Cell,
) -> float:
    """Area inside ``cell`` enclosed by the given pieces of a ring.

    ``intervals`` holds ``(enter, exit)`` vertex-index pairs as produced by
    :func:`rasterize_polygon_edges` for this cell. Outer rings are taken to
    be counter-clockwise; holes clockwise.
    """
    cx, cy = cell
    cell_bbox = Bbox(cx, cy, cx + 1, cy + 1)
    unified: list[Point] = []

    for i, (enter, exit_) in enumerate(intervals):
        subpath = extract_subpath(polygon, enter, exit_)
        clipped = clip_path_by_rectangle(subpath, cell_bbox)

        if i == 0 and not _contained_within_cell(clipped, cell_bbox):
            return polygon_rectangle_overlap_area(polygon, cell_bbox)
        if not clipped:
            continue
        if is_outer:
            clipped.reverse()

        if i == 0:
            unified = clipped
        else:
            connector = connecting_path_cw(clipped[0], unified[-1], cx, cy)
            unified.extend(connector[1:])
            unified.extend(clipped)

    if not unified:
        return polygon_rectangle_overlap_area(polygon, cell_bbox)
    area = abs(signed_area(build_closed_polygon(unified, cell)))
    return area - math.floor(area)