# flowcarto

Building blocks for flow-based contiguous cartograms. You lay a map's regions
(`GeoDiv`s made of `PolygonWithHoles`) on an `lx` × `ly` grid, add points to
their boundaries where they cross the grid, and give each grid cell a
density that comes from the regions' target areas. Each stage is a plain
function that works on plain data. You can run a stage by itself, look at
its result, or combine stages in your own pipeline.

## Installation

```
pip install flowcarto
```

The package needs Python 3.10 or later and `numpy`.

## Modules

- `flowcarto.constants`: the numerical constants shared by the algorithms,
  for example `DEFAULT_RESOLUTION`, `DEFAULT_LONG_GRID_LENGTH` and `XI_SQ`.
- `flowcarto.geometry`: `Point` (an immutable `(x, y)` tuple), `Bbox`,
  `PolygonWithHoles` and `GeoDiv`. It also has comparisons that allow a
  small tolerance (`almost_equal`, `points_almost_equal`, `less_than`,
  `point_less_than`), and the helpers `signed_area`, `polygon_bbox`,
  `point_inside_polygon` and `line_segment_intersection`.
- `flowcarto.densify`: adds points to boundaries where they cross the grid
  lines at half-integer coordinates or the cell diagonals. Near the edges of
  the domain it also uses steeper and gentler diagonals. Functions:
  `densification_points`, `densify_ring`, `densify_polygon_with_holes`,
  `densify_geo_divs` and `new_points`.
- `flowcarto.density_rays`: builds the density grid from crossings of
  horizontal rays (`RayIntersection`). `ray_resolution` gives the number of
  rays per grid row. `fill_with_density_rays` returns the density grid, the
  mean interior density and the exterior density. It raises
  `InvalidGeometryError` when consecutive crossings show overlapping
  polygons, holes or GeoDivs.
- `flowcarto.clipping`: clips paths and rings against rectangles
  (`clip_path_by_rectangle`, `clip_polygon_by_rectangle`) and measures
  overlap areas (`polygon_rectangle_overlap_area`,
  `pwh_rectangle_overlap_area`). It rasterizes edges with a supercover
  traversal (`supercover_line`, `rasterize_polygon_edges`), and it computes
  the area of the pieces of a ring that lie in one cell (`extract_subpath`,
  `connecting_path_cw`, `build_closed_polygon`, `path_union_area`).
- `flowcarto.density_clip`: builds the density grid from the exact clipped
  areas (`fill_with_density_clip`). The steps it uses are also public:
  `build_edge_index` (returns an `EdgeIndex` of `PolygonInfo` entries),
  `connected_components` and `map_components_to_pwh`.
  `create_contiguity_graph` marks two GeoDivs as adjacent when their
  boundaries share a grid cell.
- `flowcarto.ellipse`: the `Ellipse` class, which you can create with
  `Ellipse.from_coefficients` from conic coefficients. It has
  `normalized_radius_sq`. The module also has the kernel functions for the
  density bump and its flux: `ellipse_density_prefactor`,
  `ellipse_density_polynomial` and `ellipse_flux_prefactor`.

## Example

```python
from flowcarto.geometry import Point, PolygonWithHoles, GeoDiv
from flowcarto.densify import densify_geo_divs
from flowcarto.density_clip import fill_with_density_clip, create_contiguity_graph

square = [Point(2, 2), Point(6, 2), Point(6, 6), Point(2, 6)]
region = GeoDiv("A", [PolygonWithHoles(square)])

lx = ly = 8
divs = densify_geo_divs([region], lx, ly)
rho = fill_with_density_clip(
    divs, target_areas={"A": 32.0}, area_errors={"A": 1.0}, lx=lx, ly=ly
)
print(rho.shape)  # (8, 8)
```

`rho[x, y]` is the density of the cell `[x, x + 1] × [y, y + 1]`.

## What the package does not do

- It does not flatten the density. There is no flow field and no time
  integration, so it produces no cartogram projection. It stops once the
  density grid is filled.
- It does not compute the ray crossings that `fill_with_density_rays`
  takes as input. The caller must provide `RayIntersection` lists for each
  ray.
- It does not compute minimum enclosing ellipses of polygons. `Ellipse`
  only evaluates an ellipse that you pass in.
- It does not read or write map files, project coordinates, or rescale maps
  to the grid, and it has no command-line program. Geometry must already be
  in grid coordinates.