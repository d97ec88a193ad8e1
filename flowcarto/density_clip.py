"""Fill the density grid by clipping GeoDiv polygons against grid cells.

Cells crossed by polygon boundaries ("edge cells") get a density averaged
over the exact areas of the pieces of each polygon inside them. All other
cells are grouped into 4-connected components, and each component is
assigned either to a single polygon or to the exterior ("ocean").
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Sequence

import numpy as np

from flowcarto.clipping import Cell, path_union_area, rasterize_polygon_edges
from flowcarto.geometry import GeoDiv, Point, point_inside_polygon

_NEIGHBOURS = ((0, 1), (0, -1), (1, 0), (-1, 0))


@dataclass(frozen=True)
class PolygonInfo:
    """A ring of a polygon with holes that passes through an edge cell.

    ``pwh_tot_id`` numbers all polygons with holes of the inset
    consecutively. ``entering_first_edge_idx`` and ``exited_last_edge_idx``
    give the vertex where the ring enters the cell and the first vertex past
    it.
    """

    gd_id: int
    pwh_tot_id: int
    pwh_id: int
    is_hole: bool = False
    hole_id: int = 0
    entering_first_edge_idx: int = 0
    exited_last_edge_idx: int = 0


@dataclass
class EdgeIndex:
    """Which rings pass through which grid cells, plus per-polygon metadata."""

    cells: dict[Cell, list[PolygonInfo]] = field(default_factory=dict)
    pwh_info: list[PolygonInfo] = field(default_factory=list)

    def at(self, x: int, y: int) -> list[PolygonInfo]:
        return self.cells.get((x, y), [])

    def is_edge(self, x: int, y: int) -> bool:
        return bool(self.cells.get((x, y)))


def build_edge_index(geo_divs: Sequence[GeoDiv], lx: int, ly: int) -> EdgeIndex:
    """Rasterise all rings of all GeoDivs onto the ``lx`` by ``ly`` grid."""
    index = EdgeIndex()

    def record(ring, info_for) -> None:
        for (x, y), (enter, exit_) in rasterize_polygon_edges(ring):
            if 0 <= x < lx and 0 <= y < ly:
                index.cells.setdefault((x, y), []).append(info_for(enter, exit_))

    for gd_id, gd in enumerate(geo_divs):
        for pwh_id, pwh in enumerate(gd.polygons_with_holes):
            tot_id = len(index.pwh_info)
            record(
                pwh.outer,
                lambda enter, exit_: PolygonInfo(
                    gd_id, tot_id, pwh_id, False, 0, enter, exit_
                ),
            )
            for hole_id, hole in enumerate(pwh.holes):
                record(
                    hole,
                    lambda enter, exit_, hole_id=hole_id: PolygonInfo(
                        gd_id, tot_id, pwh_id, True, hole_id, enter, exit_
                    ),
                )
            index.pwh_info.append(PolygonInfo(gd_id, tot_id, pwh_id))
    return index


def _neighbours(x: int, y: int, lx: int, ly: int) -> Iterable[Cell]:
    for dx, dy in _NEIGHBOURS:
        nx, ny = x + dx, y + dy
        if 0 <= nx < lx and 0 <= ny < ly:
            yield nx, ny


def connected_components(
    edge_index: EdgeIndex, lx: int, ly: int
) -> tuple[np.ndarray, int]:
    """Label 4-connected components of non-edge cells.

    Returns an ``(lx, ly)`` integer array (``-1`` for edge cells) and the
    number of components.
    """
    comp = np.full((lx, ly), -1, dtype=int)
    n_components = 0
    for x in range(lx):
        for y in range(ly):
            if edge_index.is_edge(x, y) or comp[x, y] != -1:
                continue
            comp[x, y] = n_components
            queue = deque([(x, y)])
            while queue:
                cx, cy = queue.popleft()
                for nx, ny in _neighbours(cx, cy, lx, ly):
                    if not edge_index.is_edge(nx, ny) and comp[nx, ny] == -1:
                        comp[nx, ny] = n_components
                        queue.append((nx, ny))
            n_components += 1
    return comp, n_components


def map_components_to_pwh(
    edge_index: EdgeIndex,
    components: np.ndarray,
    n_components: int,
    geo_divs: Sequence[GeoDiv],
    lx: int,
    ly: int,
) -> list[int]:
    """Assign each component the total polygon index it lies in, or ``-1``.

    A component is tested against the rings passing through edge cells next
    to it, using the centre of the neighbouring non-edge cell.
    """
    mapping = [-1] * n_components
    outside: list[set[int]] = [set() for _ in edge_index.pwh_info]

    for x in range(lx):
        for y in range(ly):
            comp_id = int(components[x, y])
            if edge_index.is_edge(x, y) or (comp_id != -1 and mapping[comp_id] != -1):
                continue
            centre = Point(x + 0.5, y + 0.5)
            for nx, ny in _neighbours(x, y, lx, ly):
                for info in edge_index.at(nx, ny):
                    tot_id = info.pwh_tot_id
                    if comp_id in outside[tot_id]:
                        continue
                    pwh = geo_divs[info.gd_id].polygons_with_holes[info.pwh_id]
                    if info.is_hole:
                        if point_inside_polygon(pwh.holes[info.hole_id], centre):
                            outside[tot_id].add(comp_id)
                        else:
                            mapping[comp_id] = tot_id
                    elif point_inside_polygon(pwh.outer, centre):
                        mapping[comp_id] = tot_id
                    else:
                        outside[tot_id].add(comp_id)
    return mapping


def _intervals(infos: Sequence[PolygonInfo]) -> list[tuple[int, int]]:
    return [(i.entering_first_edge_idx, i.exited_last_edge_idx) for i in infos]


def _take_run(infos: Sequence[PolygonInfo], start: int, same) -> int:
    """Index one past the run of entries from ``start`` satisfying ``same``."""
    end = start + 1
    while end < len(infos) and same(infos[end]):
        end += 1
    return end


def _edge_cell_pieces(
    infos: Sequence[PolygonInfo], geo_divs: Sequence[GeoDiv], cell: Cell
) -> Iterable[tuple[int, float]]:
    """Yield ``(gd_id, area)`` for each polygon with holes present in a cell."""
    i, n = 0, len(infos)
    while i < n:
        info = infos[i]
        tot_id = info.pwh_tot_id
        pwh = geo_divs[info.gd_id].polygons_with_holes[info.pwh_id]
        outer_area = 1.0
        hole_area = 0.0
        if not info.is_hole:
            end = _take_run(
                infos, i, lambda o: o.pwh_tot_id == tot_id and not o.is_hole
            )
            outer_area = path_union_area(
                pwh.outer, True, _intervals(infos[i:end]), cell
            )
            i = end
        while i < n and infos[i].pwh_tot_id == tot_id:
            hole_id = infos[i].hole_id
            end = _take_run(
                infos,
                i,
                lambda o: o.pwh_tot_id == tot_id and o.hole_id == hole_id,
            )
            hole_area += path_union_area(
                pwh.holes[hole_id], False, _intervals(infos[i:end]), cell
            )
            i = end
        yield info.gd_id, outer_area - hole_area


def fill_with_density_clip(
    geo_divs: Sequence[GeoDiv],
    target_areas: Mapping[str, float],
    area_errors: Mapping[str, float],
    lx: int,
    ly: int,
) -> np.ndarray:
    """Return the ``(lx, ly)`` density grid computed by polygon clipping.

    Densities of GeoDivs and of the exterior are weighted by the area each
    covers in a cell times its area error.
    """
    edge_index = build_edge_index(geo_divs, lx, ly)
    components, n_components = connected_components(edge_index, lx, ly)
    mapping = map_components_to_pwh(
        edge_index, components, n_components, geo_divs, lx, ly
    )

    gd_density = [target_areas[gd.id] / gd.area() for gd in geo_divs]
    gd_error = [area_errors[gd.id] for gd in geo_divs]
    total_target = sum(target_areas[gd.id] for gd in geo_divs)
    total_inset = sum(gd.area() for gd in geo_divs)
    grid_area = lx * ly
    ocean_density = (grid_area - total_target) / (grid_area - total_inset)
    ocean_area_error = abs(
        (grid_area - total_inset) / (grid_area - total_target) - 1.0
    )

    rho = np.empty((lx, ly))
    for x in range(lx):
        for y in range(ly):
            num = den = area_tot = 0.0
            comp_id = int(components[x, y])
            if comp_id != -1 and mapping[comp_id] != -1:
                gd_id = edge_index.pwh_info[mapping[comp_id]].gd_id
                weight = gd_error[gd_id]
                num += weight * gd_density[gd_id]
                den += weight
                area_tot += 1.0
            elif edge_index.is_edge(x, y):
                for gd_id, area in _edge_cell_pieces(
                    edge_index.at(x, y), geo_divs, (x, y)
                ):
                    weight = area * gd_error[gd_id]
                    num += weight * gd_density[gd_id]
                    den += weight
                    area_tot += area
            ocean_weight = (1.0 - area_tot) * ocean_area_error
            num += ocean_weight * ocean_density
            den += ocean_weight
            rho[x, y] = num / den if den > 0.0 else ocean_density
    return rho


def create_contiguity_graph(geo_divs: Sequence[GeoDiv], lx: int, ly: int) -> None:
    """Mark GeoDivs whose boundaries share a grid cell as adjacent.

    The GeoDivs must already be expressed in lattice coordinates.
    """
    edge_index = build_edge_index(geo_divs, lx, ly)
    for infos in edge_index.cells.values():
        for i, first in enumerate(infos):
            gd_1 = geo_divs[first.gd_id]
            for second in infos[i + 1 :]:
                gd_2 = geo_divs[second.gd_id]
                gd_1.adjacent_to(gd_2.id)
                gd_2.adjacent_to(gd_1.id)