"""Rasterise GeoDiv densities onto the lattice by shooting horizontal rays."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Mapping, Sequence

import numpy as np

from flowcarto.constants import (
    DBL_RESOLUTION,
    DEFAULT_LONG_GRID_LENGTH,
    DEFAULT_RESOLUTION,
)
from flowcarto.geometry import GeoDiv, almost_equal, less_than


class InvalidGeometryError(ValueError):
    """Raised when polygons, holes or GeoDivs intersect each other."""


@dataclass(eq=False)
class RayIntersection:
    """Crossing of a horizontal ray with a GeoDiv boundary."""

    x: float
    target_density: float
    geo_div_id: str
    pwh_idx: int = 0
    ray_enters: bool = True

    def __lt__(self, other: "RayIntersection") -> bool:
        # At coinciding positions an entering crossing sorts first.
        return less_than(self.x, other.x) or (
            almost_equal(self.x, other.x)
            and self.ray_enters
            and not other.ray_enters
        )


def ray_resolution(lx: int, ly: int) -> int:
    """Number of rays per grid row for an ``lx`` by ``ly`` lattice."""
    long_grid_length = max(lx, ly)
    if long_grid_length > DEFAULT_LONG_GRID_LENGTH:
        return int(
            (DEFAULT_RESOLUTION * DEFAULT_LONG_GRID_LENGTH)
            * (1.0 / long_grid_length)
        )
    return DEFAULT_RESOLUTION


def _add(rho_num, rho_den, cell: int, k: int, num: float, den: float) -> None:
    if num == 0.0 and den == 0.0:
        return
    rho_num[cell, k] += num
    rho_den[cell, k] += den


def _fill_ray(
    crossings: list[RayIntersection],
    k: int,
    y: float,
    rho_num: np.ndarray,
    rho_den: np.ndarray,
    area_errors: Mapping[str, float],
    exterior_density: float,
    ext_weight: float,
) -> float:
    """Accumulate one sorted ray into the grid; return its interior density."""
    interior = 0.0
    n = len(crossings)
    for i in range(0, n - 1, 2):
        enter, leave = crossings[i], crossings[i + 1]
        left_x, right_x = enter.x, leave.x
        target_dens = enter.target_density
        weight = area_errors[enter.geo_div_id]
        interior += (right_x - left_x) * target_dens

        if enter.ray_enters == leave.ray_enters:
            raise InvalidGeometryError(
                "Intersection of Polygons/Holes/Geodivs at "
                f"y={y}, left x={left_x}, right x={right_x}"
            )

        # Ray enters the GeoDiv from empty space
        if i == 0:
            prev_x = math.floor(left_x)
        else:
            prev_x = max(math.floor(left_x), crossings[i - 1].x)
        left_empty = left_x - prev_x
        gd_length_left = min(math.ceil(left_x), right_x) - left_x
        _add(
            rho_num,
            rho_den,
            math.floor(left_x),
            k,
            left_empty * exterior_density * ext_weight
            + gd_length_left * target_dens * weight,
            left_empty * ext_weight + weight * gd_length_left,
        )

        # Cells fully covered by the GeoDiv
        first, last = math.ceil(left_x), math.floor(right_x)
        if first < last:
            rho_num[first:last, k] += weight * target_dens
            rho_den[first:last, k] += weight

        # Ray exits the GeoDiv to empty space
        if i + 2 == n:
            next_x = math.ceil(right_x)
        else:
            next_x = min(math.ceil(right_x), crossings[i + 2].x)
        right_empty = next_x - right_x if almost_equal(next_x, right_x) else 0.0
        gd_length_right = (
            0.0 if math.floor(right_x) <= left_x else right_x - math.floor(right_x)
        )
        _add(
            rho_num,
            rho_den,
            math.floor(right_x),
            k,
            right_empty * exterior_density * ext_weight
            + gd_length_right * target_dens * weight,
            right_empty * exterior_density * ext_weight
            + gd_length_right * weight,
        )
    return interior


def fill_with_density_rays(
    intersections_by_ray: Sequence[Sequence[RayIntersection]],
    geo_divs: Sequence[GeoDiv],
    target_areas: Mapping[str, float],
    area_errors: Mapping[str, float],
    lx: int,
    ly: int,
    initial_area: float,
    resolution: int,
) -> tuple[np.ndarray, float, float]:
    """Fill an ``(lx, ly)`` density grid from ray intersections.

    ``intersections_by_ray[k * resolution + r]`` holds the crossings of the
    ray at ``y = k + (r + 0.5) / resolution``. Returns the density grid, the
    mean interior density and the exterior density.
    """
    total_inset_area = sum(gd.area() for gd in geo_divs)
    exterior_density = (lx * ly - initial_area) / (lx * ly - total_inset_area)
    ext_weight = abs(1.0 / exterior_density - 1.0)

    rho_num = np.zeros((lx, ly))
    rho_den = np.zeros((lx, ly))
    total_interior_density = 0.0

    for k in range(ly):
        for r in range(resolution):
            crossings = sorted(intersections_by_ray[k * resolution + r])
            total_interior_density += _fill_ray(
                crossings,
                k,
                k + (r + 0.5) / resolution,
                rho_num,
                rho_den,
                area_errors,
                exterior_density,
                ext_weight,
            )

    dens_mean = (total_interior_density / resolution) / total_inset_area

    # Every polygon also contributes at the cell holding its bounding-box
    # centre, so that polygons too small to be hit by a ray are not lost.
    for gd in sorted(geo_divs, key=lambda g: g.id):
        if not gd.polygons_with_holes:
            continue
        weight = area_errors[gd.id]
        if weight < 0.01:
            continue
        target_dens = target_areas[gd.id] / gd.area()
        for pwh in gd.polygons_with_holes:
            box = pwh.bbox()
            grid_i = math.floor((box.xmin + box.xmax) / 2.0)
            grid_j = math.floor((box.ymin + box.ymax) / 2.0)
            rho_num[grid_i, grid_j] += weight * target_dens
            rho_den[grid_i, grid_j] += weight

    empty = np.abs(rho_den) <= DBL_RESOLUTION
    safe_den = np.where(empty, 1.0, rho_den)
    rho = np.where(empty, exterior_density, rho_num / safe_den)
    return rho, dens_mean, exterior_density