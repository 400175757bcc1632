"""
Terrain model: generalization and rendering of an elevation grid.

TerrainModel keeps the original grid, its Laplacian pyramid, the generalized
grid reconstructed with per-level weights, and a cached local contrast grid.
It renders background images (shading and hypsometric tints) and foreground
contour images from these grids.
"""

import logging
from dataclasses import dataclass
from enum import Enum

import numpy as np

from src.config import (
    DEFAULT_AZIMUTH,
    DEFAULT_CONTOUR_INTERVAL,
    DEFAULT_LOW_PASS_STD,
    DEFAULT_STD_DEV_LEVELS,
    DEFAULT_ZENITH,
)
from src.relief.color_mapping import (
    DEFAULT_COLOR_RAMP,
    DEFAULT_SOLID_COLOR,
    ColorVisualization,
    colorize,
)
from src.relief.contours import ContourSettings, render_illuminated_contours
from src.relief.errors import InvalidArgument
from src.relief.local_filter import local_contrast_grid
from src.relief.operators import offset_grid, scale_grid, scale_to_range, slope_grid
from src.relief.pyramid import LaplacianPyramid
from src.relief.shading import ShadingSettings, shade

logger = logging.getLogger(__name__)


class ForegroundVisualization(Enum):
    """Contour lines drawn over the background."""

    NONE = "none"
    ILLUMINATED_CONTOURS = "illuminated_contours"
    SHADED_CONTOURS = "shaded_contours"


def generalization_weight(level, max_levels, details):
    """
    Weight of one Laplacian pyramid level for generalization.

    Levels at or above ``max_levels`` keep their full weight. Below, the
    weight follows a line through the level index controlled by ``details``:
    -1 keeps all detail (weight 1), +1 removes it (weight 0).

    Args:
        level: Pyramid level, 0 holds the highest frequencies
        max_levels: Number of levels that are filtered
        details: Amount of filtering in [-1, 1]

    Returns:
        float: Weight in [0, 1]
    """
    if level >= max_levels or max_levels <= 0:
        return 1.0
    if details == 1:
        return 0.0

    if details > 0:
        # line crossing the level axis at details * max_levels
        m = 1.0 / (max_levels * (1.0 - details))
        c = details / (details - 1.0)
    else:
        # line crossing the weight axis at -details
        c = -details
        m = (1.0 + details) / max_levels
    return min(max(0.0, m * level + c), 1.0)


def generalization_weights(level_count, max_levels, details):
    """List of generalization weights, one per pyramid level."""
    return [generalization_weight(i, max_levels, details) for i in range(level_count)]


@dataclass
class RenderSettings:
    """All user parameters of a terrain rendering."""

    # Generalization
    generalization_max_levels: int = 0
    generalization_details: float = -0.8

    # Illumination
    azimuth: float = DEFAULT_AZIMUTH
    zenith: float = DEFAULT_ZENITH
    shading_vertical_exaggeration: float = 1.0

    # Background
    background: ColorVisualization = ColorVisualization.GRAY_SHADING
    color_ramp: str = DEFAULT_COLOR_RAMP
    solid_color: str = DEFAULT_SOLID_COLOR

    # Local hypsometric tints
    local_low_pass_std: float = DEFAULT_LOW_PASS_STD
    local_std_dev_levels: int = DEFAULT_STD_DEV_LEVELS

    # Foreground
    foreground: ForegroundVisualization = ForegroundVisualization.NONE
    contours_interval: float = DEFAULT_CONTOUR_INTERVAL
    contours_illuminated_width_low: float = 0.5
    contours_illuminated_width_high: float = 0.5
    contours_shadow_width_low: float = 0.5
    contours_shadow_width_high: float = 0.5
    contours_min_width: float = 0.1
    contours_tanaka: bool = True
    contours_gradient_angle: float = 0
    contours_illuminated_gray: int = 255
    contours_transition_angle: float = 90

    def validate(self):
        if not -1 <= self.generalization_details <= 1:
            raise InvalidArgument(
                f"generalization_details must be in [-1, 1], got {self.generalization_details}"
            )
        if self.generalization_max_levels < 0:
            raise InvalidArgument("generalization_max_levels must not be negative")

    def shading_settings(self):
        return ShadingSettings(self.azimuth, self.zenith, self.shading_vertical_exaggeration)

    def contour_settings(self, illuminated=True):
        return ContourSettings(
            illuminated=illuminated,
            shadow_width_low=self.contours_shadow_width_low,
            shadow_width_high=self.contours_shadow_width_high,
            illuminated_width_low=self.contours_illuminated_width_low,
            illuminated_width_high=self.contours_illuminated_width_high,
            min_width=self.contours_min_width,
            tanaka=self.contours_tanaka,
            azimuth=self.azimuth,
            interval=self.contours_interval,
            gradient_angle=self.contours_gradient_angle,
            illuminated_gray=self.contours_illuminated_gray,
            transition_angle=self.contours_transition_angle,
        )


class TerrainModel:
    """
    Elevation grid with generalization and cached derived grids.

    Call ``update_generalized_grid`` after changing generalization settings.
    The local contrast grid is recomputed lazily whenever its parameters or
    the generalized grid change.
    """

    def __init__(self, settings=None):
        self.settings = settings if settings is not None else RenderSettings()
        self.grid = None
        self.grid_min_max = None
        self.laplacian_pyramid = None
        self.generalized_grid = None
        self.generalized_slope_grid = None
        self._local_grid = None
        self._local_grid_key = None

    def set_grid(self, grid):
        """
        Use a new elevation grid and rebuild the pyramid and generalized grid.

        Args:
            grid: Elevation grid; the model keeps a reference to it
        """
        if grid is None:
            raise InvalidArgument("Terrain model needs a grid")
        self.grid = grid
        self.grid_min_max = grid.min_max()
        self.laplacian_pyramid = LaplacianPyramid.from_grid(grid)
        logger.info(
            f"Terrain model with {self.laplacian_pyramid.level_count} pyramid levels, "
            f"values {self.grid_min_max[0]} to {self.grid_min_max[1]}"
        )
        self.update_generalized_grid()

    def pyramid_weights(self):
        return generalization_weights(
            self.laplacian_pyramid.level_count,
            self.settings.generalization_max_levels,
            self.settings.generalization_details,
        )

    def update_generalized_grid(self):
        """Reconstruct the generalized grid and its slope from the pyramid."""
        if self.laplacian_pyramid is None:
            return
        self.settings.validate()
        weights = self.pyramid_weights()
        logger.debug(f"Pyramid weights: {np.round(weights, 3).tolist()}")

        summed = self.laplacian_pyramid.sum_levels(weights)
        self.generalized_grid = scale_to_range(summed, *self.grid_min_max)
        self.generalized_slope_grid = slope_grid(self.generalized_grid)
        self._local_grid = None

    @property
    def local_grid(self):
        """Local contrast grid of the generalized grid, computed on first access."""
        if self.generalized_grid is None:
            return None
        key = (self.settings.local_low_pass_std, self.settings.local_std_dev_levels)
        if self._local_grid is None or self._local_grid_key != key:
            self._local_grid = local_contrast_grid(
                self.generalized_grid,
                self.laplacian_pyramid,
                low_pass_std=key[0],
                levels=key[1],
                value_range=self.grid_min_max,
            )
            self._local_grid_key = key
        return self._local_grid

    def render_background(self):
        """
        Render the background image.

        Returns:
            numpy.ndarray: RGBA uint8 image, or None without a grid
        """
        if self.generalized_grid is None:
            return None
        visualization = ColorVisualization(self.settings.background)
        shading = None
        if visualization.is_shaded:
            shading = shade(self.generalized_grid, self.settings.shading_settings())
        terrain = self.local_grid if visualization.is_local else self.generalized_grid
        return colorize(
            terrain,
            shading,
            visualization,
            cmap=self.settings.color_ramp,
            value_range=self.grid_min_max,
            solid_color=self.settings.solid_color,
        )

    def render_foreground(self, scale=1, destination=None, cancel=None, progress=None):
        """
        Render contour lines.

        Args:
            scale: Image pixels per grid cell along each axis
            destination: Optional RGBA image to draw on
            cancel: Optional threading.Event
            progress: Optional progress callback or ProgressMonitor

        Returns:
            numpy.ndarray: RGBA uint8 image, or None without a grid
        """
        if self.generalized_grid is None:
            return None
        foreground = ForegroundVisualization(self.settings.foreground)
        if foreground is ForegroundVisualization.NONE:
            if destination is not None:
                return destination
            rows, cols = self.generalized_grid.shape
            return np.zeros((rows * scale, cols * scale, 4), dtype=np.uint8)

        illuminated = foreground is ForegroundVisualization.ILLUMINATED_CONTOURS
        return render_illuminated_contours(
            self.generalized_grid,
            self.generalized_slope_grid,
            self.settings.contour_settings(illuminated),
            scale=scale,
            destination=destination,
            value_range=self.grid_min_max,
            cancel=cancel,
            progress=progress,
        )

    def scale_terrain(self, factor):
        """Multiply all elevations by a factor and rebuild the model."""
        self.set_grid(scale_grid(self.grid, factor))

    def offset_terrain(self, offset):
        """Add a constant to all elevations and rebuild the model."""
        self.set_grid(offset_grid(self.grid, offset))
