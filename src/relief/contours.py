"""
Illuminated and shaded contour lines.

Contour lines are rendered per pixel: a pixel is on a line when its elevation
is close enough to a multiple of the contour interval. The line width and
gray value depend on the angle between the illumination direction and the
local aspect, so that lines on slopes facing the light are bright and lines on
slopes facing away are black (Tanaka, K. (1950) The Relief Contour Method of
Representing Topography on Maps. Geographical Review 40(3)).

The output is an RGBA image; pixels off any contour line are left untouched.
"""

import logging
import math
import threading
from dataclasses import dataclass

import numpy as np
from numba import jit

from src.config import DEFAULT_AZIMUTH, DEFAULT_CONTOUR_INTERVAL
from src.relief.errors import InvalidArgument
from src.relief.grid import _bilinear, _horn_slope
from src.relief.operators import available_parallelism, run_row_chunks
from src.relief.progress import as_monitor

logger = logging.getLogger(__name__)

CONTOURS_TRANSPARENT = -1


@dataclass
class ContourSettings:
    """
    Line parameters for illuminated contours.

    Widths are relative to the cell size and are multiplied by the local slope.
    Widths at the lowest and highest elevation of ``value_range`` are linearly
    interpolated for elevations in between.
    """

    illuminated: bool = True
    """Illuminated and shaded lines if True, only shaded (black) lines otherwise."""

    shadow_width_low: float = 0.5
    shadow_width_high: float = 0.5
    illuminated_width_low: float = 0.5
    illuminated_width_high: float = 0.5

    min_width: float = 0.1
    """Lines are never narrower than this."""

    tanaka: bool = True
    """Vary the line width continuously with the aspect angle."""

    azimuth: float = DEFAULT_AZIMUTH
    """Illumination direction in degrees, clockwise from north."""

    interval: float = DEFAULT_CONTOUR_INTERVAL

    gradient_angle: float = 0
    """Half-width in degrees of the band blending illuminated and shaded gray."""

    illuminated_gray: int = 255
    """Gray value of lines on illuminated slopes."""

    transition_angle: float = 90
    """Angle between illumination and aspect separating illuminated and shaded lines."""


# indices into the packed parameter array used by the compiled kernels
_P_ILLUMINATED = 0
_P_SHADOW_LOW = 1
_P_SHADOW_HIGH = 2
_P_ILLUMINATED_LOW = 3
_P_ILLUMINATED_HIGH = 4
_P_MIN_WIDTH = 5
_P_TANAKA = 6
_P_AZIMUTH = 7
_P_INTERVAL = 8
_P_GRADIENT = 9
_P_GRAY = 10
_P_TRANSITION = 11
_P_MIN_ELEVATION = 12
_P_MAX_ELEVATION = 13


def _pack_settings(settings, value_range):
    if not settings.interval > 0:
        raise InvalidArgument(f"Contour interval must be positive, got {settings.interval}")
    min_elevation, max_elevation = value_range
    return np.array(
        [
            1.0 if settings.illuminated else 0.0,
            settings.shadow_width_low,
            settings.shadow_width_high,
            settings.illuminated_width_low,
            settings.illuminated_width_high,
            settings.min_width,
            1.0 if settings.tanaka else 0.0,
            settings.azimuth,
            settings.interval,
            settings.gradient_angle,
            settings.illuminated_gray,
            settings.transition_angle,
            min_elevation,
            max_elevation,
        ],
        dtype=np.float64,
    )


@jit(nopython=True, nogil=True, cache=True)
def _angle_difference(azimuth, aspect):
    """Smallest angle in degrees between an azimuth (clockwise from north) and an aspect."""
    geometric_angle = 90.0 - azimuth
    return abs((abs(geometric_angle - aspect) + 180.0) % 360.0 - 180.0)


@jit(nopython=True, nogil=True, cache=True)
def _gray(elevation, aspect, slope, cell_size, p):
    """
    Contour gray of a cell, or CONTOURS_TRANSPARENT off the lines.

    Inside the transition band the gray blends linearly from the illuminated
    gray (not from white) to black.
    """
    if np.isnan(elevation) or np.isnan(aspect) or np.isnan(slope):
        return CONTOURS_TRANSPARENT

    angle_diff = _angle_difference(p[_P_AZIMUTH], aspect)
    transition = p[_P_TRANSITION]

    # relative elevation for interpolating line widths
    t = 0.0
    elevation_range = p[_P_MAX_ELEVATION] - p[_P_MIN_ELEVATION]
    if elevation_range > 0:
        t = min(max((elevation - p[_P_MIN_ELEVATION]) / elevation_range, 0.0), 1.0)

    if angle_diff > transition:
        width = p[_P_SHADOW_LOW] + (p[_P_SHADOW_HIGH] - p[_P_SHADOW_LOW]) * t
    else:
        width = p[_P_ILLUMINATED_LOW] + (p[_P_ILLUMINATED_HIGH] - p[_P_ILLUMINATED_LOW]) * t
    a = width * slope * cell_size
    if p[_P_TANAKA] != 0:
        a *= abs(math.cos(angle_diff / 180.0 * math.pi))
    a = max(p[_P_MIN_WIDTH] * slope * cell_size, a)

    # equal line width on both sides of the contour elevation
    interval = p[_P_INTERVAL]
    dist = abs(elevation) % interval
    if dist > a:
        dist = interval - dist
    if not a > dist:
        return CONTOURS_TRANSPARENT

    base = p[_P_GRAY] if p[_P_ILLUMINATED] != 0 else 0.0
    gradient = p[_P_GRADIENT]
    if angle_diff >= transition + gradient:
        return 0
    if angle_diff <= transition - gradient:
        return int(base)
    blend = (angle_diff - (transition - gradient)) / (2.0 * gradient)
    return int(base * (1.0 - blend))


@jit(nopython=True, nogil=True, cache=True)
def _write_gray(image, image_row, image_col, gray):
    image[image_row, image_col, 0] = gray
    image[image_row, image_col, 1] = gray
    image[image_row, image_col, 2] = gray
    image[image_row, image_col, 3] = 255


@jit(nopython=True, nogil=True, cache=True)
def _render_row(values, row, cell_size, p, image):
    cols = values.shape[1]
    for col in range(1, cols - 1):
        slope = _horn_slope(values, col, row, cell_size)
        w = values[row, col - 1]
        e = values[row, col + 1]
        n = values[row - 1, col]
        s = values[row + 1, col]
        aspect = (math.atan2(n - s, e - w) + math.pi) * 180.0 / math.pi
        g = _gray(values[row, col], aspect, slope, cell_size, p)
        if g != CONTOURS_TRANSPARENT:
            _write_gray(image, row, col, g)


@jit(nopython=True, nogil=True, cache=True)
def _render_row_scaled(values, slopes, west, south, north, row, cell_size, scale, p, image):
    cols = values.shape[1]
    sampling_dist = cell_size / scale
    for col in range(1, cols - 1):
        for r in range(scale):
            y = north - (row + r / scale) * cell_size
            for c in range(scale):
                x = west + (col + c / scale) * cell_size

                # interpolate elevation and its four neighbors once per sub-pixel
                center = _bilinear(values, west, south, cell_size, x, y)
                w = _bilinear(values, west, south, cell_size, x - sampling_dist, y)
                e = _bilinear(values, west, south, cell_size, x + sampling_dist, y)
                s = _bilinear(values, west, south, cell_size, x, y - sampling_dist)
                n = _bilinear(values, west, south, cell_size, x, y + sampling_dist)
                slope = _bilinear(slopes, west, south, cell_size, x, y)
                aspect = (math.atan2(n - s, e - w) + math.pi) * 180.0 / math.pi

                g = _gray(center, aspect, slope, cell_size, p)
                if g != CONTOURS_TRANSPARENT:
                    _write_gray(image, row * scale + r, col * scale + c, g)


def contour_gray(elevation, aspect, slope, cell_size, settings=None, value_range=None):
    """
    Gray value of a contour line pixel.

    Args:
        elevation: Elevation of the pixel
        aspect: Aspect in degrees in [0, 360), from ``(atan2 + pi) * 180 / pi``
        slope: Slope (rise over run) at the pixel
        cell_size: Cell size of the elevation grid
        settings: ContourSettings, defaults if None
        value_range: (min, max) elevation used for interpolating line widths

    Returns:
        int: Gray value in [0, 255], or CONTOURS_TRANSPARENT off contour lines
    """
    if settings is None:
        settings = ContourSettings()
    if value_range is None:
        value_range = (0.0, 0.0)
    p = _pack_settings(settings, value_range)
    return int(_gray(float(elevation), float(aspect), float(slope), float(cell_size), p))


def render_illuminated_contours(
    grid,
    slope_grid,
    settings=None,
    scale=1,
    destination=None,
    value_range=None,
    cancel=None,
    progress=None,
):
    """
    Render illuminated contour lines to an RGBA image.

    With a scale of 1 the slope and aspect are computed from the grid itself.
    With larger scales each cell is rendered as ``scale x scale`` pixels with
    elevation and slope interpolated bilinearly. Border cells are not rendered.

    Args:
        grid: Elevation grid
        slope_grid: Slope grid of the same size, used for scales above 1
        settings: ContourSettings, defaults if None
        scale: Number of image pixels per grid cell along each axis
        destination: Optional (rows*scale, cols*scale, 4) uint8 image to draw on
        value_range: (min, max) elevation for width interpolation; grid range if None
        cancel: Optional threading.Event, polled once per row
        progress: Optional callback or ProgressMonitor

    Returns:
        numpy.ndarray: The RGBA image. A cancelled render is returned incomplete.
    """
    if grid is None:
        raise InvalidArgument("Cannot render contours without a grid")
    scale = int(scale)
    if scale < 1:
        raise InvalidArgument(f"Scale must be at least 1, got {scale}")
    if scale > 1 and not grid.is_identical_in_size(slope_grid):
        raise InvalidArgument("Slope grid must have the size of the elevation grid")
    if settings is None:
        settings = ContourSettings()
    if value_range is None:
        value_range = grid.min_max()

    shape = (grid.rows * scale, grid.cols * scale, 4)
    if destination is None:
        destination = np.zeros(shape, dtype=np.uint8)
    elif destination.shape != shape or destination.dtype != np.uint8:
        raise InvalidArgument(f"Destination image must be uint8 with shape {shape}")

    p = _pack_settings(settings, value_range)
    values = grid.values
    slopes = slope_grid.values if scale > 1 else values
    cell_size = grid.cell_size
    west, south, north = grid.west, grid.south, grid.north

    monitor = as_monitor(progress, cancel, label="Illuminated contours")
    total_rows = grid.rows - 2
    lock = threading.Lock()
    rows_done = [0]

    def _chunk(start, end):
        for row in range(max(1, start), min(grid.rows - 1, end)):
            if monitor.cancelled or (cancel is not None and cancel.is_set()):
                return
            if scale == 1:
                _render_row(values, row, cell_size, p, destination)
            else:
                _render_row_scaled(
                    values, slopes, west, south, north, row, cell_size, scale, p, destination
                )
            with lock:
                rows_done[0] += 1
                percent = 100 * rows_done[0] / total_rows
            monitor.update(percent)

    run_row_chunks(_chunk, grid.rows, available_parallelism(), monitor.cancel_event)
    if monitor.cancelled:
        logger.info("Illuminated contour rendering cancelled")
    return destination
