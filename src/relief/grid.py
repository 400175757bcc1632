"""
Regular elevation grid with geo-referencing.

The Grid class models regularly spaced values, for example a digital elevation
model. Values are stored as a float32 array with row 0 at the northern border;
NaN marks void (no data) cells.

Cell values sit on a lattice: column 0 lies at ``west``, row 0 at ``north``,
and neighboring samples are ``cell_size`` apart.
"""

import logging
import math

import numpy as np
from numba import jit
from rasterio import Affine

from src.relief.errors import InvalidArgument
from src.utils.helpers import format_number

logger = logging.getLogger(__name__)

MIN_DIMENSION = 3


@jit(nopython=True, nogil=True, cache=True)
def _bilinear(values, west, south, cell_size, x, y):
    """
    Bilinear interpolation on a value array.

    See "What's the point? Interpolation and extrapolation with a regular
    grid DEM" (GeoComputation 99). All four corner values are assumed valid.
    """
    rows, cols = values.shape
    north = south + (rows - 1) * cell_size
    dx = (x - west) / cell_size

    # column and row of the top left corner
    col = int(math.floor(dx))
    row = int(math.floor((north - y) / cell_size))
    if col < 0 or col + 1 >= cols or row < 0 or row + 1 >= rows:
        return np.nan

    rel_x = dx - col
    rel_y = (y - south) / cell_size - rows + row + 2

    h1 = values[row + 1, col]  # bottom left
    h2 = values[row + 1, col + 1]  # bottom right
    h3 = values[row, col]  # top left
    h4 = values[row, col + 1]  # top right
    return h1 + (h2 - h1) * rel_x + (h3 - h1) * rel_y + (h1 - h2 - h3 + h4) * rel_x * rel_y


@jit(nopython=True, nogil=True, cache=True)
def _horn_slope(values, col, row, cell_size):
    """Horn slope magnitude with neighbor indices clamped to the grid."""
    rows, cols = values.shape
    col_left = col - 1 if col > 0 else 0
    col_right = col + 1 if col < cols - 1 else cols - 1
    row_top = row - 1 if row > 0 else 0
    row_bottom = row + 1 if row < rows - 1 else rows - 1

    a = values[row_top, col_left]
    b = values[row_top, col]
    c = values[row_top, col_right]
    d = values[row, col_left]
    f = values[row, col_right]
    g = values[row_bottom, col_left]
    h = values[row_bottom, col]
    i = values[row_bottom, col_right]

    dz_dx = ((c + 2.0 * f + i) - (a + 2.0 * d + g)) / (8.0 * cell_size)
    dz_dy = ((g + 2.0 * h + i) - (a + 2.0 * b + c)) / (8.0 * cell_size)
    return math.sqrt(dz_dx * dz_dx + dz_dy * dz_dy)


class Grid:
    """
    Dense 2D float32 raster with west/south origin and square cells.

    Dimensions are fixed at construction; cell values may be mutated in place.
    A grid built from an array or from a template always owns a copy of the
    values, so two grids never share a backing array.

    Attributes:
        west: Horizontal coordinate of column 0
        south: Vertical coordinate of the last (southernmost) row
    """

    def __init__(self, cols, rows, cell_size=1.0, west=0.0, south=0.0):
        """
        Create a zero-filled grid.

        Args:
            cols: Number of columns (at least 3)
            rows: Number of rows (at least 3)
            cell_size: Distance between neighboring columns or rows (> 0)
            west: Coordinate of the western border
            south: Coordinate of the southern border

        Raises:
            InvalidArgument: If the grid is too small or the cell size is not positive
        """
        cols = int(cols)
        rows = int(rows)
        if cols < MIN_DIMENSION or rows < MIN_DIMENSION:
            raise InvalidArgument(f"Not enough data points: {cols} x {rows}")
        if not cell_size > 0:
            raise InvalidArgument(f"Cell size must be positive, got {cell_size}")

        self._cell_size = float(cell_size)
        self.west = float(west)
        self.south = float(south)
        self._values = np.zeros((rows, cols), dtype=np.float32)

    @classmethod
    def from_array(cls, values, cell_size=1.0, west=0.0, south=0.0):
        """
        Create a grid holding a copy of a 2D array.

        Args:
            values: 2D array-like with shape (rows, cols)
            cell_size: Cell size
            west: Western border
            south: Southern border

        Returns:
            Grid: New grid owning a float32 copy of the values
        """
        array = np.asarray(values)
        if array.ndim != 2:
            raise InvalidArgument(f"Grid values must be 2D, got shape {array.shape}")
        rows, cols = array.shape
        grid = cls(cols, rows, cell_size, west, south)
        grid._values[...] = array
        return grid

    @classmethod
    def like(cls, template, fill_value=0.0):
        """Create a grid with the size and geo-referencing of a template grid."""
        grid = cls(template.cols, template.rows, template.cell_size, template.west, template.south)
        if fill_value != 0:
            grid._values.fill(fill_value)
        return grid

    def copy(self):
        """Deep copy of values and geo-referencing."""
        return Grid.from_array(self._values, self._cell_size, self.west, self.south)

    @property
    def values(self):
        """The owned (rows, cols) float32 value array, for bulk row-major access."""
        return self._values

    @property
    def cols(self):
        return self._values.shape[1]

    @property
    def rows(self):
        return self._values.shape[0]

    @property
    def shape(self):
        """(rows, cols), matching the numpy array layout."""
        return self._values.shape

    @property
    def cell_size(self):
        return self._cell_size

    @property
    def north(self):
        """The northern border of this grid."""
        return self.south + (self.rows - 1) * self._cell_size

    @property
    def east(self):
        """The eastern border of this grid."""
        return self.west + (self.cols - 1) * self._cell_size

    @property
    def transform(self):
        """
        Affine transform from (col, row) pixel corners to world coordinates.

        Cell values are samples at pixel centers, so the top-left pixel corner
        lies half a cell north-west of (west, north).
        """
        half = self._cell_size / 2
        return Affine(self._cell_size, 0.0, self.west - half, 0.0, -self._cell_size, self.north + half)

    def get_value(self, col, row):
        """Return the value at 0-indexed (col, row)."""
        return float(self._values[row, col])

    def set_value(self, col, row, value):
        """Store a value at 0-indexed (col, row); the value is cast to float32."""
        self._values[row, col] = value

    def bilinear_interpolate(self, x, y):
        """
        Interpolate a value at world coordinates (x, y).

        Returns NaN if the 2x2 cell window enclosing the point is outside the
        grid. Void corners are not handled: a void corner yields NaN or a
        meaningless blend, so callers needing void awareness must check first.
        """
        return float(_bilinear(self._values, self.west, self.south, self._cell_size, x, y))

    def min_max(self):
        """
        Minimum and maximum value of the grid, ignoring void cells.

        Returns:
            tuple: (min, max), or (nan, nan) if all cells are void
        """
        valid = self._values[~np.isnan(self._values)]
        if valid.size == 0:
            return float("nan"), float("nan")
        return float(valid.min()), float(valid.max())

    def is_identical_in_size(self, other):
        """True if other has the same number of columns and rows and the same cell size."""
        if other is None:
            return False
        return (
            self.cols == other.cols
            and self.rows == other.rows
            and self.cell_size == other.cell_size
        )

    def slope(self, col, row):
        """
        Slope magnitude (rise over run) using Horn's 3x3 method.

        Neighbor indices are clamped at the grid border.
        """
        return float(_horn_slope(self._values, col, row, self._cell_size))

    def slope_inside_grid(self, col, row):
        """Horn slope for col in [1, cols-2] and row in [1, rows-2], without clamping."""
        if not (0 < col < self.cols - 1 and 0 < row < self.rows - 1):
            raise InvalidArgument(f"Cell ({col}, {row}) is not inside the grid")
        g = self._values
        a, b, c = g[row - 1, col - 1], g[row - 1, col], g[row - 1, col + 1]
        d, f = g[row, col - 1], g[row, col + 1]
        gg, h, i = g[row + 1, col - 1], g[row + 1, col], g[row + 1, col + 1]
        dz_dx = ((c + 2.0 * f + i) - (a + 2.0 * d + gg)) / (8 * self._cell_size)
        dz_dy = ((gg + 2.0 * h + i) - (a + 2.0 * b + c)) / (8 * self._cell_size)
        return math.sqrt(dz_dx * dz_dx + dz_dy * dz_dy)

    def aspect(self, col, row):
        """
        Aspect angle in radians at a cell.

        Angle of the (east - west, north - south) gradient; east is 0,
        counter-clockwise positive. Neighbor indices are clamped at the border.
        """
        col_left = max(col - 1, 0)
        col_right = min(col + 1, self.cols - 1)
        row_top = max(row - 1, 0)
        row_bottom = min(row + 1, self.rows - 1)
        w = float(self._values[row, col_left])
        e = float(self._values[row, col_right])
        n = float(self._values[row_top, col])
        s = float(self._values[row_bottom, col])
        return math.atan2(n - s, e - w)

    def aspect_at(self, x, y, sampling_dist):
        """Aspect angle in radians at world coordinates, from bilinear samples."""
        w = self.bilinear_interpolate(x - sampling_dist, y)
        e = self.bilinear_interpolate(x + sampling_dist, y)
        s = self.bilinear_interpolate(x, y - sampling_dist)
        n = self.bilinear_interpolate(x, y + sampling_dist)
        return math.atan2(n - s, e - w)

    def is_well_formed(self):
        """True if the grid has non-zero dimensions and a non-NaN position."""
        return (
            self.cols > 0
            and self.rows > 0
            and self._cell_size > 0
            and not math.isnan(self.west)
            and not math.isnan(self.north)
        )

    def description(self, new_line="\n"):
        """Descriptive text with dimension, cell size and borders."""
        decimals = 6 if self._cell_size < 1 else 1
        lines = [
            f"Dimension: {format_number(self.cols, 0)} × {format_number(self.rows, 0)}",
            f"Cell size: {format_number(self._cell_size, decimals)}",
            f"West: {format_number(self.west, decimals)}",
            f"East: {format_number(self.east, decimals)}",
            f"South: {format_number(self.south, decimals)}",
            f"North: {format_number(self.north, decimals)}",
        ]
        return new_line.join(lines)

    def description_with_statistics(self, new_line="\n"):
        """Descriptive text including the minimum and maximum value."""
        min_value, max_value = self.min_max()
        return new_line.join(
            [
                self.description(new_line),
                f"Minimum value: {format_number(min_value, 6)}",
                f"Maximum value: {format_number(max_value, 6)}",
            ]
        )

    def __repr__(self):
        min_value, max_value = self.min_max()
        return (
            f"Grid(rows={self.rows}, cols={self.cols}, cell_size={self._cell_size}, "
            f"range={min_value} to {max_value})"
        )
