import pytest

from flowcarto.constants import DEFAULT_RESOLUTION
from flowcarto.density_rays import (
    InvalidGeometryError,
    RayIntersection,
    fill_with_density_rays,
    ray_resolution,
)
from flowcarto.geometry import GeoDiv, PolygonWithHoles

LX = LY = 4
RES = 2


def _square_geodiv(x0, y0, x1, y1, name="A"):
    ring = [(x0, y0), (x1, y0), (x1, y1), (x0, y1)]
    return GeoDiv(name, [PolygonWithHoles(ring)])


def _rays_for_square(gd, target, x0, x1, y0, y1):
    dens = target / gd.area()
    rays = []
    for k in range(LY):
        for r in range(RES):
            y = k + (r + 0.5) / RES
            if y0 < y < y1:
                rays.append(
                    [
                        RayIntersection(x1, dens, gd.id, 0, False),
                        RayIntersection(x0, dens, gd.id, 0, True),
                    ]
                )
            else:
                rays.append([])
    return rays


def test_ray_resolution_default_for_small_grids():
    assert ray_resolution(256, 100) == DEFAULT_RESOLUTION
    assert ray_resolution(10, 10) == DEFAULT_RESOLUTION


def test_ray_resolution_shrinks_for_large_grids():
    assert ray_resolution(512, 10) == 8
    assert ray_resolution(1024, 2048) < ray_resolution(512, 10)


def test_intersection_sorting_puts_entry_first_at_same_x():
    leave = RayIntersection(1.0, 1.0, "A", ray_enters=False)
    enter = RayIntersection(1.0 + 1e-10, 1.0, "B", ray_enters=True)
    far = RayIntersection(0.5, 1.0, "C", ray_enters=False)
    assert sorted([leave, enter, far]) == [far, enter, leave]


def test_square_cells_take_target_density():
    gd = _square_geodiv(1, 1, 3, 3)
    target = 8.0
    rays = _rays_for_square(gd, target, 1, 3, 1, 3)
    rho, dens_mean, exterior = fill_with_density_rays(
        rays, [gd], {"A": target}, {"A": 0.5}, LX, LY, gd.area(), RES
    )
    td = target / gd.area()
    assert rho.shape == (LX, LY)
    for i in range(LX):
        for j in range(LY):
            expected = td if (1 <= i < 3 and 1 <= j < 3) else exterior
            assert rho[i, j] == pytest.approx(expected)
    assert dens_mean == pytest.approx(td)
    assert exterior == pytest.approx(1.0)


def test_exterior_density_corrects_area_drift():
    gd = _square_geodiv(1, 1, 3, 3)
    rays = _rays_for_square(gd, 4.0, 1, 3, 1, 3)
    rho, _, exterior = fill_with_density_rays(
        rays, [gd], {"A": 4.0}, {"A": 0.5}, LX, LY, 2.0, RES
    )
    assert exterior == pytest.approx(7 / 6)
    assert rho[0, 0] == pytest.approx(exterior)
    assert rho[3, 3] == pytest.approx(exterior)


def test_partially_covered_cells_are_mixtures():
    gd = _square_geodiv(1.5, 1, 2.5, 3)
    target = 6.0
    rays = _rays_for_square(gd, target, 1.5, 2.5, 1, 3)
    rho, _, exterior = fill_with_density_rays(
        rays, [gd], {"A": target}, {"A": 1.0}, LX, LY, 1.0, RES
    )
    td = target / gd.area()
    low, high = sorted([td, exterior])
    for cell in [(1, 1), (2, 1), (1, 2), (2, 2)]:
        assert low - 1e-12 <= rho[cell] <= high + 1e-12
    assert rho[0, 0] == pytest.approx(exterior)


def test_tiny_polygon_missed_by_rays_fills_its_cell():
    gd = _square_geodiv(2.1, 2.1, 2.3, 2.3)
    rays = [[] for _ in range(LY * RES)]
    rho, _, exterior = fill_with_density_rays(
        rays, [gd], {"A": 1.0}, {"A": 0.5}, LX, LY, gd.area(), RES
    )
    assert rho[2, 2] == pytest.approx(1.0 / gd.area())
    assert rho[0, 0] == pytest.approx(exterior)


def test_converged_tiny_polygon_is_skipped():
    gd = _square_geodiv(2.1, 2.1, 2.3, 2.3)
    rays = [[] for _ in range(LY * RES)]
    rho, _, exterior = fill_with_density_rays(
        rays, [gd], {"A": 1.0}, {"A": 0.001}, LX, LY, gd.area(), RES
    )
    assert rho[2, 2] == pytest.approx(exterior)


def test_two_entries_in_a_row_are_invalid_geometry():
    gd = _square_geodiv(1, 1, 3, 3)
    rays = [[] for _ in range(LY * RES)]
    rays[2] = [
        RayIntersection(1.0, 1.0, "A", 0, True),
        RayIntersection(2.0, 1.0, "A", 0, True),
    ]
    with pytest.raises(InvalidGeometryError):
        fill_with_density_rays(
            rays, [gd], {"A": 4.0}, {"A": 0.5}, LX, LY, gd.area(), RES
        )