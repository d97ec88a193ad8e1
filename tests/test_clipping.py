import pytest

from flowcarto.clipping import (
    build_closed_polygon,
    clip_path_by_rectangle,
    clip_polygon_by_rectangle,
    connecting_path_cw,
    extract_subpath,
    path_union_area,
    polygon_rectangle_overlap_area,
    pwh_rectangle_overlap_area,
    rasterize_polygon_edges,
    supercover_line,
)
from flowcarto.geometry import Bbox, Point, PolygonWithHoles, signed_area

TRIANGLE = [Point(0.3, 0.4), Point(2.7, 0.6), Point(1.2, 2.6)]


def _bbox_area(b):
    return (b.xmax - b.xmin) * (b.ymax - b.ymin)


def _inside(p, b, eps=1e-9):
    return b.xmin - eps <= p.x <= b.xmax + eps and b.ymin - eps <= p.y <= b.ymax + eps


def test_polygon_inside_rectangle_is_unchanged_in_area():
    box = Bbox(0.0, 0.0, 5.0, 5.0)
    clipped = clip_polygon_by_rectangle(TRIANGLE, box)
    assert abs(signed_area(clipped)) == pytest.approx(abs(signed_area(TRIANGLE)))


def test_rectangle_inside_polygon_gives_rectangle_area():
    big = [(-10, -10), (10, -10), (10, 10), (-10, 10)]
    box = Bbox(1.0, 2.0, 3.5, 4.0)
    assert polygon_rectangle_overlap_area(big, box) == pytest.approx(_bbox_area(box))


def test_disjoint_polygon_has_zero_overlap():
    box = Bbox(10.0, 10.0, 11.0, 11.0)
    assert clip_polygon_by_rectangle(TRIANGLE, box) == []
    assert polygon_rectangle_overlap_area(TRIANGLE, box) == 0.0


def test_overlaps_over_cells_sum_to_polygon_area():
    total = sum(
        polygon_rectangle_overlap_area(TRIANGLE, Bbox(i, j, i + 1, j + 1))
        for i in range(3)
        for j in range(3)
    )
    assert total == pytest.approx(abs(signed_area(TRIANGLE)))


def test_clipped_polygon_points_lie_in_rectangle():
    box = Bbox(0.5, 0.5, 1.5, 1.5)
    clipped = clip_polygon_by_rectangle(TRIANGLE, box)
    assert clipped
    assert all(_inside(p, box) for p in clipped)


def test_pwh_overlap_subtracts_holes():
    outer = [(0, 0), (4, 0), (4, 4), (0, 4)]
    hole = [(1.2, 1.2), (1.2, 1.8), (1.8, 1.8), (1.8, 1.2)]
    pwh = PolygonWithHoles(outer, [hole])
    box = Bbox(1.0, 1.0, 2.0, 2.0)
    expected = polygon_rectangle_overlap_area(outer, box) - polygon_rectangle_overlap_area(hole, box)
    assert pwh_rectangle_overlap_area(pwh, box) == pytest.approx(expected)
    assert pwh_rectangle_overlap_area(pwh, box) < _bbox_area(box)


def test_clip_path_keeps_inside_part():
    box = Bbox(0.0, 0.0, 1.0, 1.0)
    path = [(-1.0, 0.5), (0.5, 0.5), (2.0, 0.5)]
    clipped = clip_path_by_rectangle(path, box)
    assert clipped[0] == Point(0.0, 0.5)
    assert clipped[-1] == Point(1.0, 0.5)
    assert Point(0.5, 0.5) in clipped


def test_clip_path_empty():
    assert clip_path_by_rectangle([], Bbox(0, 0, 1, 1)) == []


def test_supercover_horizontal_line():
    assert supercover_line(0.5, 0.5, 3.5, 0.5) == [(0, 0), (1, 0), (2, 0), (3, 0)]


@pytest.mark.parametrize(
    "x0,y0,x1,y1",
    [(0.2, 0.3, 3.7, 2.9), (3.7, 2.9, 0.2, 0.3), (1.5, 4.2, 1.6, 0.1), (0.1, 0.9, 2.9, 0.2)],
)
def test_supercover_endpoints_and_adjacency(x0, y0, x1, y1):
    cells = supercover_line(x0, y0, x1, y1)
    assert cells[0] == (int(x0), int(y0))
    assert cells[-1] == (int(x1), int(y1))
    for (ax, ay), (bx, by) in zip(cells, cells[1:]):
        assert abs(ax - bx) + abs(ay - by) == 1


def test_supercover_single_point():
    assert supercover_line(1.5, 2.5, 1.5, 2.5) == [(1, 2)]


def test_rasterize_covers_vertex_cells_and_valid_indices():
    entries = rasterize_polygon_edges(TRIANGLE)
    cells = {cell for cell, _ in entries}
    for p in TRIANGLE:
        assert (int(p.x), int(p.y)) in cells
    n = len(TRIANGLE)
    assert all(0 <= a < n and 0 <= b < n for _, (a, b) in entries)
    assert entries[0][0] != entries[-1][0]


def test_rasterize_degenerate():
    assert rasterize_polygon_edges([(0.5, 0.5)]) == []


def test_extract_subpath_forward_and_wrap():
    ring = [Point(i, 0) for i in range(5)]
    assert extract_subpath(ring, 1, 3) == ring[1:4]
    assert extract_subpath(ring, 3, 1) == ring[3:] + ring[:2]
    assert extract_subpath([], 0, 0) == []


def test_connecting_path_same_edge_in_order():
    path = connecting_path_cw((1.0, 0.2), (1.0, 0.8), 0.0, 0.0)
    assert path == [Point(1.0, 0.8)]


def test_connecting_path_points_on_boundary():
    path = connecting_path_cw((1.0, 0.8), (1.0, 0.2), 0.0, 0.0)
    assert path[0] == Point(1.0, 0.2)
    box = Bbox(0, 0, 1, 1)
    assert all(_inside(p, box) for p in path)
    assert len(path) > 1


def test_connecting_path_rejects_interior_point():
    with pytest.raises(ValueError):
        connecting_path_cw((0.5, 0.5), (1.0, 0.2), 0.0, 0.0)


def test_build_closed_polygon_is_closed():
    clipped = [Point(1.0, 0.3), Point(0.4, 0.5), Point(0.6, 1.0)]
    closed = build_closed_polygon(clipped, (0, 0))
    assert closed[0] == closed[-1] == clipped[0]
    assert closed[: len(clipped)] == clipped


def _grouped_intervals(polygon):
    groups = {}
    for cell, interval in rasterize_polygon_edges(polygon):
        groups.setdefault(cell, []).append(interval)
    return groups


def test_path_union_area_matches_overlap_for_outer_ring():
    for cell, intervals in _grouped_intervals(TRIANGLE).items():
        box = Bbox(cell[0], cell[1], cell[0] + 1, cell[1] + 1)
        expected = polygon_rectangle_overlap_area(TRIANGLE, box)
        assert path_union_area(TRIANGLE, True, intervals, cell) == pytest.approx(
            expected, abs=1e-9
        )


def test_path_union_area_matches_overlap_for_hole_ring():
    hole = list(reversed(TRIANGLE))
    for cell, intervals in _grouped_intervals(hole).items():
        box = Bbox(cell[0], cell[1], cell[0] + 1, cell[1] + 1)
        expected = polygon_rectangle_overlap_area(hole, box)
        assert path_union_area(hole, False, intervals, cell) == pytest.approx(
            expected, abs=1e-9
        )