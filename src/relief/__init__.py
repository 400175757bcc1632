"""
Terrain generalization and visualization with grid pyramids.

Core functionality:
- Grid class for geo-referenced elevation rasters
- Parallel row-chunk raster operators
- Gaussian and Laplacian pyramids for terrain generalization
- Shaded relief, local hypsometric tints and illuminated contours
- Streaming Esri ASCII grid reader and writer, world files
"""

from .errors import CorruptGrid, GridReadError, InvalidArgument, InvalidHeader, ShapeMismatch
from .grid import Grid
from .pyramid import GaussianPyramid, LaplacianPyramid, expand, reduce
from .shading import ShadingSettings, shade
from .contours import ContourSettings, render_illuminated_contours
from .ascii_grid import read_ascii_grid, write_ascii_grid
from .model import RenderSettings, TerrainModel

__all__ = [
    "CorruptGrid",
    "GridReadError",
    "InvalidArgument",
    "InvalidHeader",
    "ShapeMismatch",
    "Grid",
    "GaussianPyramid",
    "LaplacianPyramid",
    "expand",
    "reduce",
    "ShadingSettings",
    "shade",
    "ContourSettings",
    "render_illuminated_contours",
    "read_ascii_grid",
    "write_ascii_grid",
    "RenderSettings",
    "TerrainModel",
]
