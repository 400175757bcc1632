"""
Gaussian and Laplacian grid pyramids.

The Gaussian pyramid repeatedly low-pass filters and halves a grid. The
Laplacian pyramid stores, for every Gaussian level, the difference between
that level and the expanded next coarser level; the coarsest Laplacian level
is the coarsest Gaussian level. Summing the expanded Laplacian levels restores
the original grid, and weighting the levels before summing generalizes it.

Reference: Burt, P. J. and Adelson, E. H. (1983) The Laplacian Pyramid as a
Compact Image Code. IEEE Transactions on Communications 31(4).

Void (NaN) cells are handled by re-normalizing with the weights of the valid
taps. A void output is produced only where every tap is void.
"""

import logging

import numpy as np
from numba import jit
from scipy.ndimage import correlate1d

from src.config import PYRAMID_MAX_LEVELS, PYRAMID_MIN_SIDE_LENGTH
from src.relief.errors import InvalidArgument, ShapeMismatch
from src.relief.grid import Grid
from src.relief.operators import add_grids, copy_grid, difference_grid, run_row_chunks, scale_grid

logger = logging.getLogger(__name__)

# Burt & Adelson generating kernel weights
WA = 0.4
WB = 0.25
WC = 0.05

MIN_SIDE_LENGTH = PYRAMID_MIN_SIDE_LENGTH
DEFAULT_MAX_LEVELS = PYRAMID_MAX_LEVELS

_REDUCE_KERNEL = np.array([WC, WB, WA, WB, WC], dtype=np.float64)


def reduce(grid):
    """
    Low-pass filter a grid with the 5x5 generating kernel and halve it.

    The separable kernel ``[wc, wb, wa, wb, wc]`` is applied with replicated
    borders, then every second column and row is kept, starting with the
    north-west sample.

    Args:
        grid: Source grid

    Returns:
        Grid: ``floor(cols/2) x floor(rows/2)`` cells with double the cell size

    Raises:
        InvalidArgument: If a side has 4 or 5 cells, since the result would be
            smaller than the 3 x 3 minimum of a Grid
    """
    if grid is None:
        raise InvalidArgument("Cannot reduce a missing grid")
    new_cols = grid.cols // 2
    new_rows = grid.rows // 2

    values = grid.values
    valid = ~np.isnan(values)
    filled = np.where(valid, values, 0).astype(np.float64)
    weights = valid.astype(np.float64)

    # horizontal pass, then keep even columns
    filled = correlate1d(filled, _REDUCE_KERNEL, axis=1, mode="nearest")[:, 0 : 2 * new_cols : 2]
    weights = correlate1d(weights, _REDUCE_KERNEL, axis=1, mode="nearest")[:, 0 : 2 * new_cols : 2]

    # vertical pass, then keep even rows
    filled = correlate1d(filled, _REDUCE_KERNEL, axis=0, mode="nearest")[0 : 2 * new_rows : 2]
    weights = correlate1d(weights, _REDUCE_KERNEL, axis=0, mode="nearest")[0 : 2 * new_rows : 2]

    with np.errstate(divide="ignore", invalid="ignore"):
        reduced = np.where(weights > 0, filled / weights, np.nan)

    cell_size = grid.cell_size * 2
    south = grid.north - (new_rows - 1) * cell_size
    return Grid.from_array(reduced, cell_size, grid.west, south)


@jit(nopython=True, nogil=True, cache=True)
def _expand_triplet(v0, v1, v2):
    """
    Even and odd output samples for input sample v1 with neighbors v0 and v2.

    Void taps are dropped and the remaining weights are scaled up to the full
    kernel gain.
    """
    if not (np.isnan(v0) or np.isnan(v1) or np.isnan(v2)):
        even = 2.0 * (WC * (v0 + v2) + WA * v1)
        odd = 2.0 * WB * (v1 + v2)
        return even, odd

    even = 0.0
    odd = 0.0
    tot_even = 0.0
    tot_odd = 0.0
    if not np.isnan(v0):
        even += WC * v0
        tot_even += WC
    if not np.isnan(v1):
        even += WA * v1
        odd += WB * v1
        tot_even += WA
        tot_odd += WB
    if not np.isnan(v2):
        even += WC * v2
        odd += WB * v2
        tot_even += WC
        tot_odd += WB

    if tot_even == 0:
        even = np.nan
    else:
        even *= 2.0 * (2.0 * WC + WA) / tot_even
    if tot_odd == 0:
        odd = np.nan
    else:
        odd *= 2.0 * (2.0 * WB) / tot_odd
    return even, odd


@jit(nopython=True, nogil=True, cache=True)
def _expand_horizontal(src, dst, start, end):
    cols = src.shape[1]
    for r in range(start, end):
        for c in range(cols):
            v1 = src[r, c]
            v0 = src[r, c - 1] if c > 0 else v1
            v2 = src[r, c + 1] if c < cols - 1 else v1
            even, odd = _expand_triplet(v0, v1, v2)
            dst[r, 2 * c] = even
            dst[r, 2 * c + 1] = odd


@jit(nopython=True, nogil=True, cache=True)
def _expand_vertical(src, dst, start, end):
    rows, cols = src.shape
    for r in range(start, end):
        r0 = r - 1 if r > 0 else r
        r2 = r + 1 if r < rows - 1 else r
        for c in range(cols):
            even, odd = _expand_triplet(src[r0, c], src[r, c], src[r2, c])
            dst[2 * r, c] = even
            dst[2 * r + 1, c] = odd


def expand(grid, max_cols, max_rows):
    """
    Double the resolution of a grid.

    A horizontal and then a vertical pass turn every input sample into an
    even and an odd output sample. Borders replicate the nearest edge value.

    Args:
        grid: Grid to expand
        max_cols: Upper limit for the number of output columns
        max_rows: Upper limit for the number of output rows

    Returns:
        Grid: ``min(max_cols, 2*cols) x min(max_rows, 2*rows)`` cells with
        half the cell size
    """
    if grid is None:
        raise InvalidArgument("Cannot expand a missing grid")
    rows, cols = grid.shape
    new_cols = min(max_cols, cols * 2)
    new_rows = min(max_rows, rows * 2)

    src = grid.values
    horizontal = np.empty((rows, cols * 2), dtype=np.float32)
    expanded = np.empty((rows * 2, cols * 2), dtype=np.float32)
    run_row_chunks(lambda start, end: _expand_horizontal(src, horizontal, start, end), rows)
    run_row_chunks(lambda start, end: _expand_vertical(horizontal, expanded, start, end), rows)

    cell_size = grid.cell_size / 2
    south = grid.north - (new_rows - 1) * cell_size
    return Grid.from_array(expanded[:new_rows, :new_cols], cell_size, grid.west, south)


def _expand_to(grid, template):
    """
    Expand a grid to the size of the next finer pyramid level.

    Odd sides of the finer level are filled by replicating the last expanded
    row or column, and the finer level's georeference is used.
    """
    expanded = expand(grid, template.cols, template.rows)
    pad_rows = template.rows - expanded.rows
    pad_cols = template.cols - expanded.cols
    if pad_rows == 0 and pad_cols == 0:
        expanded.west = template.west
        expanded.south = template.south
        return expanded
    padded = np.pad(expanded.values, ((0, pad_rows), (0, pad_cols)), mode="edge")
    return Grid.from_array(padded, template.cell_size, template.west, template.south)


def create_gaussian_pyramid(grid, max_levels=DEFAULT_MAX_LEVELS, min_cell_count=MIN_SIDE_LENGTH**2):
    """
    Build the levels of a Gaussian pyramid.

    Reduction stops when a new level would have a side of MIN_SIDE_LENGTH
    cells or less, fewer than ``min_cell_count`` cells, or when ``max_levels``
    levels exist.

    Args:
        grid: Full resolution grid, stored as a copy at level 0
        max_levels: Maximum number of levels
        min_cell_count: Minimum number of cells of the coarsest level

    Returns:
        tuple: Grids from full to coarsest resolution, at least one
    """
    if grid is None:
        raise InvalidArgument("Cannot build a pyramid without a grid")
    levels = [copy_grid(grid)]
    current = levels[0]
    while True:
        new_cols = current.cols // 2
        new_rows = current.rows // 2
        if (
            new_cols <= MIN_SIDE_LENGTH
            or new_rows <= MIN_SIDE_LENGTH
            or new_cols * new_rows < min_cell_count
            or len(levels) >= max_levels
        ):
            break
        current = reduce(current)
        levels.append(current)

    logger.debug(
        f"Gaussian pyramid with {len(levels)} levels, coarsest {levels[-1].cols}x{levels[-1].rows}"
    )
    return tuple(levels)


class GaussianPyramid:
    """
    Sequence of progressively reduced grids.

    Level 0 has full resolution; the last level is the coarsest. Levels are
    not modified after construction.
    """

    def __init__(self, grid, max_levels=DEFAULT_MAX_LEVELS, min_cell_count=MIN_SIDE_LENGTH**2):
        self._levels = create_gaussian_pyramid(grid, max_levels, min_cell_count)

    @property
    def levels(self):
        return self._levels

    @property
    def level_count(self):
        return len(self._levels)

    @property
    def full_resolution_level(self):
        return self._levels[0]

    def level(self, level):
        """Grid at a level; 0 is full resolution, ``level_count - 1`` the coarsest."""
        return self._levels[level]

    def value(self, col, row, level):
        return self._levels[level].get_value(col, row)

    def expanded_levels(self):
        """
        Every level expanded back to full resolution.

        Returns:
            list: One full resolution grid per level; level 0 is a copy
        """
        expanded = []
        for i, level in enumerate(self._levels):
            grid = level
            for finer in reversed(self._levels[:i]):
                grid = _expand_to(grid, finer)
            expanded.append(grid if i > 0 else copy_grid(grid))
        return expanded


class LaplacianPyramid:
    """
    Band-pass decomposition of a grid.

    Level i holds ``G_i - expand(G_{i+1})`` for Gaussian levels ``G``; the last
    level is a copy of the coarsest Gaussian level.

    Args:
        gaussian_levels: A GaussianPyramid or a sequence of Gaussian levels
    """

    def __init__(self, gaussian_levels):
        if isinstance(gaussian_levels, GaussianPyramid):
            gaussian_levels = gaussian_levels.levels
        gaussian_levels = list(gaussian_levels)
        if not gaussian_levels:
            raise InvalidArgument("A Laplacian pyramid needs at least one Gaussian level")

        levels = [None] * len(gaussian_levels)
        levels[-1] = copy_grid(gaussian_levels[-1])
        for i in range(len(gaussian_levels) - 1, 0, -1):
            finer = gaussian_levels[i - 1]
            expanded = _expand_to(gaussian_levels[i], finer)
            levels[i - 1] = difference_grid(finer, expanded)
        self._levels = tuple(levels)

    @classmethod
    def from_grid(cls, grid, max_levels=DEFAULT_MAX_LEVELS, min_cell_count=MIN_SIDE_LENGTH**2):
        """Build the Gaussian pyramid of a grid and derive the Laplacian pyramid."""
        return cls(create_gaussian_pyramid(grid, max_levels, min_cell_count))

    @property
    def levels(self):
        return self._levels

    @property
    def level_count(self):
        return len(self._levels)

    def level(self, level):
        return self._levels[level]

    def constant_weights(self, value):
        """List with one weight per level, all set to ``value``."""
        return [float(value)] * self.level_count

    def sum_levels(self, weights=None):
        """
        Reconstruct a full resolution grid from weighted levels.

        Starting with the coarsest level, the running sum is expanded to the
        size of the next finer level and that level is added, scaled by its
        weight. Levels with a weight of exactly 0 are not added. With all
        weights equal to 1 the original grid is restored.

        Args:
            weights: One weight per level, finest first; None for all ones

        Returns:
            Grid: New full resolution grid

        Raises:
            ShapeMismatch: If the number of weights differs from the number of levels
        """
        if weights is None:
            weights = self.constant_weights(1)
        if len(weights) != self.level_count:
            raise ShapeMismatch(
                f"Expected {self.level_count} pyramid weights, got {len(weights)}"
            )

        total = scale_grid(self._levels[-1], weights[-1])
        for i in range(self.level_count - 2, -1, -1):
            level = self._levels[i]
            total = _expand_to(total, level)
            if weights[i] != 0:
                total = add_grids(total, level, weights[i])
        return total
