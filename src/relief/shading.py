"""
Shaded relief computation.

A surface normal is computed for each cell from its four axis-aligned
neighbors: one cross product per quadrant, summed and normalized. The gray
value is the dot product of the normal with the light direction, scaled from
[-1, 1] to [0, 255].
"""

import logging
import math
from dataclasses import dataclass

import numpy as np
from numba import jit

from src.config import (
    DEFAULT_AZIMUTH,
    DEFAULT_ZENITH,
    EARTH_RADIUS_M,
    GEOGRAPHIC_CELL_SIZE_LIMIT,
)
from src.relief.operators import map_rows

logger = logging.getLogger(__name__)


@dataclass
class ShadingSettings:
    """Illumination parameters for shaded relief."""

    azimuth: float = DEFAULT_AZIMUTH
    """Light direction in degrees, clockwise from north."""

    zenith: float = DEFAULT_ZENITH
    """Angle of the light from the vertical in degrees, 0 is straight above."""

    vertical_exaggeration: float = 1.0
    """Factor applied to elevation differences before computing normals."""


def light_vector(azimuth, zenith):
    """
    Unit vector pointing toward the light.

    x points east, y north and z up.
    """
    az = math.radians(azimuth)
    zen = math.radians(zenith)
    return (
        math.sin(az) * math.sin(zen),
        math.cos(az) * math.sin(zen),
        math.cos(zen),
    )


def metric_cell_size(cell_size):
    """
    Cell size in meters.

    Cell sizes below GEOGRAPHIC_CELL_SIZE_LIMIT are taken to be degrees on a
    sphere with the mean earth radius.
    """
    if cell_size < GEOGRAPHIC_CELL_SIZE_LIMIT:
        return cell_size / 180.0 * math.pi * EARTH_RADIUS_M
    return cell_size


@jit(nopython=True, nogil=True, cache=True)
def _shade_rows(src, out, start, end, cell_size, exaggeration, lx, ly, lz):
    rows, cols = src.shape
    d = cell_size
    for row in range(start, end):
        for col in range(cols):
            center = src[row, col]
            if math.isnan(center):
                out[row, col] = np.nan
                continue

            # border cells have a level surface
            nx = 0.0
            ny = 0.0
            nz = 1.0
            if 0 < col < cols - 1 and 0 < row < rows - 1:
                s = (src[row + 1, col] - center) * exaggeration
                e = (src[row, col + 1] - center) * exaggeration
                n = (src[row - 1, col] - center) * exaggeration
                w = (src[row, col - 1] - center) * exaggeration

                # sum of south x east, east x north, north x west, west x south
                nx = 2.0 * d * (w - e)
                ny = 2.0 * d * (s - n)
                nz = 4.0 * d * d
                length = math.sqrt(nx * nx + ny * ny + nz * nz)
                nx /= length
                ny /= length
                nz /= length

            dot = nx * lx + ny * ly + nz * lz
            out[row, col] = (dot + 1.0) / 2.0 * 255.0


def shade(grid, settings=None):
    """
    Compute shaded relief.

    Args:
        grid: Elevation grid
        settings: ShadingSettings, defaults if None

    Returns:
        Grid: Gray values between 0 (black) and 255 (white); void cells stay void
    """
    if settings is None:
        settings = ShadingSettings()
    lx, ly, lz = light_vector(settings.azimuth, settings.zenith)
    cell_size = metric_cell_size(grid.cell_size) if grid is not None else 1.0
    exaggeration = float(settings.vertical_exaggeration)

    logger.debug(
        f"Shading with azimuth {settings.azimuth}, zenith {settings.zenith}, "
        f"exaggeration {exaggeration}"
    )

    def _shade(src, out, start, end):
        _shade_rows(src, out, start, end, cell_size, exaggeration, lx, ly, lz)

    return map_rows(_shade, grid)
