"""
Color mapping for terrain background images.

Combines shaded relief and hypsometric tints into RGBA images using matplotlib
colormaps, and writes images with Pillow.
"""

import logging
from enum import Enum

import matplotlib
import numpy as np
from matplotlib.colors import LinearSegmentedColormap, to_rgba
from PIL import Image

from src.relief.errors import InvalidArgument
from src.relief.world_file import write_world_file_for_grid

logger = logging.getLogger(__name__)


class ColorVisualization(Enum):
    """Background coloring of terrain."""

    GRAY_SHADING = "gray_shading"
    HYPSOMETRIC = "hypsometric"
    HYPSOMETRIC_SHADING = "hypsometric_shading"
    LOCAL_HYPSOMETRIC = "local_hypsometric"
    LOCAL_HYPSOMETRIC_SHADING = "local_hypsometric_shading"
    CONTINUOUS = "continuous"

    @property
    def is_local(self):
        """True if colors are taken from the local contrast grid."""
        return self in (ColorVisualization.LOCAL_HYPSOMETRIC, ColorVisualization.LOCAL_HYPSOMETRIC_SHADING)

    @property
    def is_shaded(self):
        return self in (
            ColorVisualization.GRAY_SHADING,
            ColorVisualization.HYPSOMETRIC_SHADING,
            ColorVisualization.LOCAL_HYPSOMETRIC_SHADING,
        )

    @property
    def is_hypsometric(self):
        return self in (
            ColorVisualization.HYPSOMETRIC,
            ColorVisualization.HYPSOMETRIC_SHADING,
            ColorVisualization.LOCAL_HYPSOMETRIC,
            ColorVisualization.LOCAL_HYPSOMETRIC_SHADING,
        )


# Named color ramps: (colors, relative positions between 0 and 1)
PREDEFINED_COLOR_RAMPS = {
    "Soft Gray": (["#808080", "#ffffff"], [0.0, 1.0]),
    "Hard Gray": (["#000000", "#ffffff"], [0.5, 1.0]),
    "Natural Light (Exposition)": (
        ["#6d7ea1", "#97a3ba", "#bcbcbc", "#dedace", "#e8e8e8"],
        [0.0, 0.56, 0.81, 0.93, 1.0],
    ),
    "Swiss Style (Exposition)": (
        ["#526b75", "#6a8e82", "#a6b4a9", "#e2d4ac", "#f7f3b1"],
        [0.0, 0.42, 0.73, 0.88, 1.0],
    ),
    "Hypsometric": (
        ["#78b58d", "#7cac68", "#bec26b", "#d4daaa", "#e1f6f4", "#ffffff"],
        [0.0, 0.08, 0.24, 0.43, 0.69, 0.89],
    ),
}

DEFAULT_COLOR_RAMP = "Soft Gray"
DEFAULT_SOLID_COLOR = "lightgray"


def color_ramp(colors, positions=None, name="relief_ramp"):
    """
    Create a colormap from colors at relative positions.

    Colors before the first and after the last position are extended to 0
    and 1.

    Args:
        colors: Sequence of matplotlib color specifications
        positions: Increasing positions in [0, 1], evenly spaced if None
        name: Name of the colormap

    Returns:
        LinearSegmentedColormap: The color ramp
    """
    colors = list(colors)
    if not colors:
        raise InvalidArgument("A color ramp needs at least one color")
    if positions is None:
        positions = np.linspace(0, 1, len(colors)) if len(colors) > 1 else [0.0]
    positions = [float(p) for p in positions]
    if len(positions) != len(colors):
        raise InvalidArgument(f"Got {len(colors)} colors but {len(positions)} positions")
    if any(b < a for a, b in zip(positions[:-1], positions[1:])):
        raise InvalidArgument("Color ramp positions must be increasing")

    if positions[0] > 0:
        positions.insert(0, 0.0)
        colors.insert(0, colors[0])
    if positions[-1] < 1:
        positions.append(1.0)
        colors.append(colors[-1])
    return LinearSegmentedColormap.from_list(name, list(zip(positions, colors)))


def predefined_color_ramp(name=DEFAULT_COLOR_RAMP):
    """Colormap for one of the PREDEFINED_COLOR_RAMPS."""
    if name not in PREDEFINED_COLOR_RAMPS:
        raise InvalidArgument(f"Unknown color ramp '{name}'")
    colors, positions = PREDEFINED_COLOR_RAMPS[name]
    return color_ramp(colors, positions, name=name)


def _get_cmap(cmap):
    if cmap is None:
        return predefined_color_ramp()
    if isinstance(cmap, str):
        if cmap in PREDEFINED_COLOR_RAMPS:
            return predefined_color_ramp(cmap)
        return matplotlib.colormaps.get_cmap(cmap)
    return cmap


def hypsometric_colors(grid, cmap=None, value_range=None):
    """
    Map grid values to colors.

    Args:
        grid: Grid with values to color
        cmap: Colormap, matplotlib colormap name or predefined ramp name
        value_range: (min, max) mapped to the ends of the colormap; grid range if None

    Returns:
        numpy.ndarray: RGBA float array in [0, 1] with shape (rows, cols, 4);
        void cells are fully transparent
    """
    values = grid.values
    valid = ~np.isnan(values)
    if value_range is None:
        value_range = grid.min_max()
    min_value, max_value = value_range

    normalized = np.zeros(values.shape, dtype=np.float64)
    if max_value > min_value:
        normalized[valid] = (values[valid] - min_value) / (max_value - min_value)
    normalized = np.clip(normalized, 0.0, 1.0)

    rgba = _get_cmap(cmap)(normalized)
    rgba[~valid] = 0.0
    return rgba


def colorize(
    terrain_grid,
    shading_grid=None,
    visualization=ColorVisualization.GRAY_SHADING,
    cmap=None,
    value_range=None,
    solid_color=DEFAULT_SOLID_COLOR,
):
    """
    Render a background image from terrain and shading.

    Shaded modes multiply colors by the shading gray normalized to [0, 1].
    For local modes ``terrain_grid`` is expected to be the local contrast grid.

    Args:
        terrain_grid: Grid used for hypsometric colors
        shading_grid: Grid of gray values in [0, 255], required by shaded modes
        visualization: ColorVisualization
        cmap: Colormap for hypsometric modes
        value_range: (min, max) for hypsometric colors
        solid_color: Color for CONTINUOUS

    Returns:
        numpy.ndarray: RGBA uint8 image; void cells are transparent
    """
    if terrain_grid is None:
        raise InvalidArgument("A terrain grid is required")
    visualization = ColorVisualization(visualization)
    rows, cols = terrain_grid.shape

    if visualization is ColorVisualization.CONTINUOUS:
        rgba = np.empty((rows, cols, 4), dtype=np.float64)
        rgba[...] = to_rgba(solid_color)
        return (rgba * 255).round().astype(np.uint8)

    if visualization.is_shaded:
        if shading_grid is None or shading_grid.shape != terrain_grid.shape:
            raise InvalidArgument(f"{visualization.name} requires a shading grid of the terrain's size")
        shade = np.clip(shading_grid.values / 255.0, 0.0, 1.0)
    else:
        shade = None

    if visualization.is_hypsometric:
        rgba = hypsometric_colors(terrain_grid, cmap, value_range)
    else:
        rgba = np.ones((rows, cols, 4), dtype=np.float64)
        rgba[np.isnan(terrain_grid.values)] = 0.0

    if shade is not None:
        rgba[..., :3] *= shade[..., np.newaxis]
        rgba[np.isnan(shade)] = 0.0

    return (np.nan_to_num(rgba) * 255).round().astype(np.uint8)


def save_image(rgba, path, grid=None, scale=1):
    """
    Write an RGBA image and, if a grid is given, its world file.

    Args:
        rgba: (rows, cols, 4) uint8 array
        path: Output image path; the format follows the extension
        grid: Optional grid the image was rendered from
        scale: Image pixels per grid cell along each axis
    """
    Image.fromarray(np.asarray(rgba, dtype=np.uint8)).save(path)
    logger.info(f"Saved image to {path}")
    if grid is not None:
        write_world_file_for_grid(path, grid, scale)
