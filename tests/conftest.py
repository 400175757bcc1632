"""Pytest configuration and fixtures for relief-pyramid tests."""
import sys
from pathlib import Path

# Add project root to Python path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import pytest
import numpy as np


@pytest.fixture
def sample_dem():
    """Create a small synthetic DEM for testing."""
    # Create a simple 64x48 elevation grid
    x = np.linspace(-10, 10, 64)
    y = np.linspace(-10, 10, 48)
    X, Y = np.meshgrid(x, y)
    # Create a simple terrain with a peak in the center
    Z = 1000 + 500 * np.exp(-(X**2 + Y**2) / 30)
    return Z.astype(np.float32)


@pytest.fixture
def sample_grid(sample_dem):
    """Grid wrapping the sample DEM with a 30 m cell size."""
    from src.relief.grid import Grid

    return Grid.from_array(sample_dem, cell_size=30.0, west=500000.0, south=4000000.0)


@pytest.fixture
def wave_grid():
    """16x16 grid of sin(col) + cos(row) without void cells."""
    from src.relief.grid import Grid

    cols, rows = np.meshgrid(np.arange(16), np.arange(16))
    return Grid.from_array(np.sin(cols) + np.cos(rows), cell_size=10.0)


@pytest.fixture
def ascii_grid_text():
    """Small Esri ASCII grid with one void cell."""
    return (
        "ncols 4\n"
        "nrows 3\n"
        "xllcorner 100.0\n"
        "yllcorner 200.0\n"
        "cellsize 10.0\n"
        "NODATA_value -9999\n"
        "1 2 3 4\n"
        "5 -9999 7 8\n"
        "9 10 11 12\n"
    )


@pytest.fixture
def ascii_grid_file(tmp_path, ascii_grid_text):
    """Path to a temporary Esri ASCII grid file."""
    path = tmp_path / "sample.asc"
    path.write_text(ascii_grid_text)
    return path


@pytest.fixture
def project_root():
    """Get the project root directory."""
    return Path(__file__).parent.parent
