#!/usr/bin/env python3
"""
Relief Rendering Demo: Esri ASCII grid to georeferenced images.

Reads a DEM, generalizes it with a Laplacian pyramid and writes:
1. A background image (shading and/or hypsometric tints)
2. A foreground image with illuminated contour lines
3. World files for both images
4. Optionally the generalized grid as an Esri ASCII grid

Without --dem a synthetic terrain is used.

Usage:
    python examples/render_relief.py --dem data/dem/alps.asc
    python examples/render_relief.py --background local_hypsometric_shading --details 0.3
    python examples/render_relief.py --contours illuminated_contours --interval 100 --scale 2
"""

import sys
from pathlib import Path

import numpy as np

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.config import OUTPUT_DIR
from src.utils.helpers import setup_logging
from src.relief.ascii_grid import read_ascii_grid, write_ascii_grid
from src.relief.color_mapping import ColorVisualization, save_image
from src.relief.grid import Grid
from src.relief.model import ForegroundVisualization, RenderSettings, TerrainModel
from src.relief.progress import ProgressMonitor

logger = setup_logging("relief")


def synthetic_dem(cols=400, rows=300, cell_size=25.0):
    """Two ridges and some noise, roughly 400 m to 2400 m."""
    x = np.linspace(0, 4 * np.pi, cols)
    y = np.linspace(0, 3 * np.pi, rows)
    X, Y = np.meshgrid(x, y)
    rng = np.random.default_rng(0)
    Z = 1400 + 600 * np.sin(X) * np.cos(Y / 2) + 300 * np.cos(X / 3 + Y) + rng.normal(0, 8, X.shape)
    return Grid.from_array(Z, cell_size=cell_size, west=600000.0, south=5100000.0)


def main():
    import argparse
    parser = argparse.ArgumentParser(description="Relief Rendering Demo")
    parser.add_argument("--dem", type=Path, help="Esri ASCII grid; synthetic terrain if omitted")
    parser.add_argument("--output-dir", type=Path, default=OUTPUT_DIR)
    parser.add_argument(
        "--background",
        choices=[v.value for v in ColorVisualization],
        default=ColorVisualization.HYPSOMETRIC_SHADING.value,
    )
    parser.add_argument(
        "--contours",
        choices=[v.value for v in ForegroundVisualization],
        default=ForegroundVisualization.ILLUMINATED_CONTOURS.value,
    )
    parser.add_argument("--levels", type=int, default=4, help="Number of generalized pyramid levels")
    parser.add_argument("--details", type=float, default=0.0, help="-1 keeps all detail, +1 removes it")
    parser.add_argument("--interval", type=float, default=200.0, help="Contour interval")
    parser.add_argument("--scale", type=int, default=1, help="Contour image pixels per cell")
    parser.add_argument("--color-ramp", default="Hypsometric")
    parser.add_argument("--export-grid", action="store_true", help="Write the generalized grid")
    args = parser.parse_args()

    args.output_dir.mkdir(parents=True, exist_ok=True)

    # Step 1: Load DEM
    if args.dem is not None:
        with ProgressMonitor(label="Reading grid", show_bar=True) as monitor:
            grid = read_ascii_grid(args.dem, progress=monitor)
        if grid is None:
            logger.warning("Reading cancelled")
            return 1
        name = args.dem.stem
    else:
        grid = synthetic_dem()
        name = "synthetic"
    logger.info(f"Loaded DEM:\n{grid.description_with_statistics()}")

    # Step 2: Build the model
    settings = RenderSettings(
        generalization_max_levels=args.levels,
        generalization_details=args.details,
        background=ColorVisualization(args.background),
        color_ramp=args.color_ramp,
        foreground=ForegroundVisualization(args.contours),
        contours_interval=args.interval,
    )
    model = TerrainModel(settings)
    model.set_grid(grid)
    logger.info(f"Pyramid weights: {np.round(model.pyramid_weights(), 2).tolist()}")

    # Step 3: Background
    background_path = args.output_dir / f"{name}_background.png"
    save_image(model.render_background(), background_path, grid=model.generalized_grid)
    logger.info(f"✓ Background: {background_path}")

    # Step 4: Contours
    if model.settings.foreground is not ForegroundVisualization.NONE:
        with ProgressMonitor(label="Contours", show_bar=True) as monitor:
            contours = model.render_foreground(scale=args.scale, progress=monitor)
        contours_path = args.output_dir / f"{name}_contours.png"
        save_image(contours, contours_path, grid=model.generalized_grid, scale=args.scale)
        logger.info(f"✓ Contours: {contours_path}")

    # Step 5: Generalized grid
    if args.export_grid:
        grid_path = args.output_dir / f"{name}_generalized.asc"
        write_ascii_grid(model.generalized_grid, grid_path)
        logger.info(f"✓ Generalized grid: {grid_path}")

    logger.info("✓ Done!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
