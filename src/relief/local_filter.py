"""
Local contrast enhancement for local hypsometric tints.

The terrain minus a low-pass version of itself is divided by the local
standard deviation of a high-pass band, then rescaled to the original value
range. See Huffman, D. P. and Patterson, T. (2013) The Design of Gray Earth:
A Monochrome Terrain Dataset of the World. Cartographic Perspectives 74.
"""

import logging

import numpy as np
from numba import jit
from scipy.ndimage import gaussian_filter

from src.config import DEFAULT_LOW_PASS_STD, DEFAULT_STD_DEV_LEVELS, STD_DEV_FILTER_SIZE_SCALE
from src.relief.errors import InvalidArgument
from src.relief.grid import Grid
from src.relief.operators import diff_div, run_row_chunks, scale_to_range

logger = logging.getLogger(__name__)


def gaussian_low_pass(grid, std=DEFAULT_LOW_PASS_STD):
    """
    Gaussian blur that ignores void cells.

    Void cells are excluded by normalized convolution: the blurred values are
    divided by the blurred validity mask. Void cells remain void.

    Args:
        grid: Source grid
        std: Standard deviation of the Gaussian bell in cells

    Returns:
        Grid: Low-pass filtered grid
    """
    if grid is None:
        raise InvalidArgument("Cannot filter a missing grid")
    if std < 0:
        raise InvalidArgument(f"Standard deviation must not be negative, got {std}")

    values = grid.values
    valid = ~np.isnan(values)
    filled = gaussian_filter(np.where(valid, values, 0).astype(np.float64), std, mode="nearest")
    weights = gaussian_filter(valid.astype(np.float64), std, mode="nearest")
    with np.errstate(divide="ignore", invalid="ignore"):
        blurred = np.where(valid & (weights > 0), filled / weights, np.nan)

    low_pass = Grid.like(grid)
    low_pass.values[...] = blurred
    return low_pass


def std_dev_filter_size(levels):
    """Side length in cells of the square standard deviation window."""
    return levels * STD_DEV_FILTER_SIZE_SCALE + 1


def _summed_area_table(array):
    table = np.zeros((array.shape[0] + 1, array.shape[1] + 1), dtype=np.float64)
    np.cumsum(np.cumsum(array, axis=0), axis=1, out=table[1:, 1:])
    return table


@jit(nopython=True, nogil=True, cache=True)
def _window_rms_rows(sq_table, count_table, out, half, start, end):
    rows, cols = out.shape
    for row in range(start, end):
        r0 = max(row - half, 0)
        r1 = min(row + half + 1, rows)
        for col in range(cols):
            c0 = max(col - half, 0)
            c1 = min(col + half + 1, cols)
            count = count_table[r1, c1] - count_table[r0, c1] - count_table[r1, c0] + count_table[r0, c0]
            if count <= 0:
                out[row, col] = np.nan
                continue
            sq_sum = sq_table[r1, c1] - sq_table[r0, c1] - sq_table[r1, c0] + sq_table[r0, c0]
            out[row, col] = np.sqrt(max(sq_sum, 0.0) / count)


def local_standard_deviation(grid, laplacian, levels=DEFAULT_STD_DEV_LEVELS):
    """
    Estimate the local standard deviation of the high frequencies of a grid.

    The high-pass band is the sum of the ``levels`` finest Laplacian levels.
    The result is the root mean square of the band over a square window of
    ``levels * 16 + 1`` cells, counting only valid cells and clipping the
    window at the grid border.

    Args:
        grid: Full resolution grid the pyramid was built from
        laplacian: LaplacianPyramid of the grid
        levels: Number of fine levels forming the high-pass band

    Returns:
        Grid: Local standard deviation
    """
    if grid is None or laplacian is None:
        raise InvalidArgument("Grid and Laplacian pyramid are required")
    if levels < 1:
        raise InvalidArgument(f"At least one pyramid level is required, got {levels}")

    weights = laplacian.constant_weights(0)
    for i in range(min(levels, len(weights))):
        weights[i] = 1
    high_pass = laplacian.sum_levels(weights)
    if not grid.is_identical_in_size(high_pass):
        raise InvalidArgument("Laplacian pyramid does not match the grid")

    band = high_pass.values.astype(np.float64)
    valid = ~np.isnan(band) & ~np.isnan(grid.values)
    sq_table = _summed_area_table(np.where(valid, band * band, 0.0))
    count_table = _summed_area_table(valid.astype(np.float64))

    half = std_dev_filter_size(levels) // 2
    std = Grid.like(grid)
    out = std.values
    run_row_chunks(
        lambda start, end: _window_rms_rows(sq_table, count_table, out, half, start, end),
        grid.rows,
    )
    logger.debug(f"Local standard deviation with {levels} levels, window {2 * half + 1} cells")
    return std


def local_contrast_grid(
    grid,
    laplacian,
    low_pass_std=DEFAULT_LOW_PASS_STD,
    levels=DEFAULT_STD_DEV_LEVELS,
    value_range=None,
):
    """
    High-pass filtered grid divided by the local standard deviation.

    Computes ``(grid - low_pass) / (std + 1)`` and rescales it to the value
    range of the original grid. Infinite quotients become void.

    Args:
        grid: Elevation grid
        laplacian: LaplacianPyramid of the grid
        low_pass_std: Standard deviation of the low-pass filter in cells
        levels: Number of Laplacian levels for the standard deviation
        value_range: (min, max) of the output; the grid's own range if None

    Returns:
        Grid: Local contrast grid
    """
    if value_range is None:
        value_range = grid.min_max()
    low_pass = gaussian_low_pass(grid, low_pass_std)
    std = local_standard_deviation(grid, laplacian, levels)
    contrast = diff_div(grid, low_pass, std)
    return scale_to_range(contrast, value_range[0], value_range[1])
