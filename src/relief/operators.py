"""
Parallel row-chunk raster operators.

Every operator splits the rows of its destination into contiguous chunks and
runs a per-chunk function on a thread pool. The destination grid is always
freshly allocated, so a source can never be written while it is being read.
Per-cell kernels are numba functions compiled with ``nogil=True`` so chunks
execute concurrently.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor

import numpy as np
from numba import jit

from src.relief.errors import InvalidArgument, ShapeMismatch
from src.relief.grid import Grid, _horn_slope

logger = logging.getLogger(__name__)


def available_parallelism():
    """Number of worker threads used when an operator is not told otherwise."""
    return os.cpu_count() or 1


def row_chunks(rows, n_chunks):
    """
    Split ``[0, rows)`` into at most ``n_chunks`` contiguous, non-empty ranges.

    Args:
        rows: Number of rows to cover
        n_chunks: Requested number of chunks

    Returns:
        list: (start, end) tuples, end exclusive, in ascending order
    """
    n_chunks = max(1, min(int(n_chunks), rows))
    if rows <= 0:
        return []
    bounds = np.linspace(0, rows, n_chunks + 1).astype(int)
    return [(int(s), int(e)) for s, e in zip(bounds[:-1], bounds[1:]) if e > s]


def run_row_chunks(func, rows, n_workers=None, cancel=None):
    """
    Fan out ``func(start, end)`` over row chunks and wait for all of them.

    Args:
        func: Callable processing rows ``[start, end)``
        rows: Total number of rows
        n_workers: Number of chunks and threads (default: CPU count)
        cancel: Optional threading.Event; chunks not yet started are skipped once set

    Raises:
        Exception: The first exception raised by a chunk, in chunk order
    """
    n_workers = n_workers or available_parallelism()
    chunks = row_chunks(rows, n_workers)

    def _run(start, end):
        if cancel is not None and cancel.is_set():
            return
        func(start, end)

    if not chunks:
        return
    if len(chunks) == 1:
        _run(*chunks[0])
        return

    with ThreadPoolExecutor(max_workers=len(chunks)) as executor:
        futures = [executor.submit(_run, start, end) for start, end in chunks]
        for future in futures:
            future.result()


def _check_sources(sources):
    if not sources:
        raise InvalidArgument("At least one source grid is required")
    for grid in sources:
        if grid is None:
            raise InvalidArgument("Source grid is None")
    first = sources[0]
    for grid in sources[1:]:
        if not first.is_identical_in_size(grid):
            raise ShapeMismatch(
                f"Grids of different size: {first.cols}x{first.rows} (cell size {first.cell_size}) "
                f"and {grid.cols}x{grid.rows} (cell size {grid.cell_size})"
            )


def map_rows(chunk_func, *sources, n_workers=None, cancel=None):
    """
    Parallel map of a per-chunk function over one or more source grids.

    All sources must be identical in size. The check happens before the
    destination is allocated. The destination takes its georeference from the
    first source.

    Args:
        chunk_func: ``chunk_func(*source_arrays, dst_array, start, end)`` writing
            rows ``[start, end)`` of ``dst_array``
        *sources: Source grids (read only)
        n_workers: Number of chunks and threads
        cancel: Optional threading.Event checked before each chunk starts

    Returns:
        Grid: New destination grid

    Raises:
        InvalidArgument: If a source is None
        ShapeMismatch: If the sources differ in size
    """
    _check_sources(sources)
    dst = Grid.like(sources[0])
    arrays = [grid.values for grid in sources]
    out = dst.values

    run_row_chunks(lambda start, end: chunk_func(*arrays, out, start, end), dst.rows, n_workers, cancel)
    return dst


def copy_grid(grid):
    """Row-parallel deep copy."""

    def _copy(src, out, start, end):
        out[start:end] = src[start:end]

    return map_rows(_copy, grid)


def add_grids(grid_a, grid_b, scale=1.0):
    """Return ``a + b * scale``; void in either input yields void."""
    scale = np.float32(scale)

    def _add(a, b, out, start, end):
        np.add(a[start:end], b[start:end] * scale, out=out[start:end])

    return map_rows(_add, grid_a, grid_b)


def difference_grid(grid_a, grid_b):
    """Return ``a - b``; void in either input yields void."""

    def _subtract(a, b, out, start, end):
        np.subtract(a[start:end], b[start:end], out=out[start:end])

    return map_rows(_subtract, grid_a, grid_b)


def scale_grid(grid, factor):
    """Multiply all values by a factor."""
    factor = np.float32(factor)

    def _scale(src, out, start, end):
        np.multiply(src[start:end], factor, out=out[start:end])

    return map_rows(_scale, grid)


def offset_grid(grid, offset):
    """Add a constant to all values."""
    offset = np.float32(offset)

    def _offset(src, out, start, end):
        np.add(src[start:end], offset, out=out[start:end])

    return map_rows(_offset, grid)


def scale_to_range(grid, new_min, new_max):
    """
    Linearly rescale values so the grid minimum maps to ``new_min`` and the
    maximum to ``new_max``.

    A grid with a constant value or no valid values is returned as a copy.
    """
    if grid is None:
        raise InvalidArgument("Source grid is None")
    old_min, old_max = grid.min_max()
    old_range = old_max - old_min
    if not old_range > 0:
        logger.debug("Grid has no value range, scale_to_range returns a copy")
        return copy_grid(grid)

    factor = (new_max - new_min) / old_range

    def _rescale(src, out, start, end):
        out[start:end] = (src[start:end] - old_min) * factor + new_min

    return map_rows(_rescale, grid)


def diff_div(grid_a, grid_b, grid_c):
    """
    Return ``(a - b) / (c + 1)`` with infinite results mapped to void.

    Used for local contrast enhancement: a is the terrain, b its low-pass
    version and c the local standard deviation.
    """

    def _diff_div(a, b, c, out, start, end):
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            v = (a[start:end] - b[start:end]) / (c[start:end] + np.float32(1))
        v[np.isinf(v)] = np.nan
        out[start:end] = v

    return map_rows(_diff_div, grid_a, grid_b, grid_c)


@jit(nopython=True, nogil=True, cache=True)
def _slope_rows(values, cell_size, out, start, end):
    cols = values.shape[1]
    for row in range(start, end):
        for col in range(cols):
            out[row, col] = _horn_slope(values, col, row, cell_size)


def slope_grid(grid):
    """Grid of Horn slope magnitudes (rise over run), borders clamped."""
    cell_size = grid.cell_size if grid is not None else 1.0

    def _slope(src, out, start, end):
        _slope_rows(src, cell_size, out, start, end)

    return map_rows(_slope, grid)
