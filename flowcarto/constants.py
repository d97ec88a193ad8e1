"""Numerical constants shared by the cartogram algorithms."""

import math
import sys

DEFAULT_LONG_GRID_LENGTH = 256
MAX_ALLOWED_AUTOSCALE_GRID_LENGTH = 2048
DEFAULT_GRID_FACTOR = 2
DBL_EPSILON = sys.float_info.epsilon
DBL_INF = math.inf
DBL_RESOLUTION = 1e-8
MAX_INTEGRATIONS = 100
MAX_PERMITTED_AREA_ERROR = 0.01
MAX_PERMITTED_AREA_DRIFT = 0.05
PADDING_UNLESS_WORLD = 1.5
PI = math.pi
EARTH_SURFACE_AREA = 510.1e6

# Number of rays shot through each grid cell when filling densities, and the
# number used when drawing intersection diagnostics.
DEFAULT_RESOLUTION = 16
INTERSECTIONS_RESOLUTION = 1

# Points retained after simplification
DEFAULT_TARGET_POINTS_PER_INSET = 10000
MIN_POINTS_PER_RING = 10

# Minimum size of polygons as proportion of total area
DEFAULT_MINIMUM_POLYGON_AREA = 0.0001

# Fraction of square side length by which squares on heatmap overlap
SQ_OVERLAP = 0.2

# Fraction of the total width/height of all insets left as empty space
INSET_SPACING_FACTOR = 0.1

# Fraction of the tallest/widest inset that a divider spans
DIVIDER_LENGTH = 0.8

# Font size range for labelling
MIN_FONT_SIZE = 6.0
MAX_FONT_SIZE = 10.0

# Fraction of the non-missing, non-zero total area below which a target
# area counts as too small
SMALL_AREA_THRESHOLD_FRAC = 0.0001

# Squared enlargement of the minimum enclosing ellipse used in polygon
# preprocessing
XI_SQ = 4.0

# Distance between plotted grid lines on the heatmap, in lattice units
PLOTTED_CELL_LENGTH = 8

# Identifier of the custom Cartesian coordinate reference system
CUSTOM_CRS = "EPSG:cartesian"