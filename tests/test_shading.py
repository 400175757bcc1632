"""
Tests for shaded relief.
"""

import math

import pytest
import numpy as np


class TestLightVector:
    """Tests for the illumination direction."""

    def test_light_from_above(self):
        """Test that a zenith of 0 points straight up."""
        from src.relief.shading import light_vector

        x, y, z = light_vector(0, 0)

        assert (x, y, z) == pytest.approx((0.0, 0.0, 1.0))

    def test_light_from_east_on_horizon(self):
        """Test azimuth 90 and zenith 90 point east."""
        from src.relief.shading import light_vector

        x, y, z = light_vector(90, 90)

        assert x == pytest.approx(1.0)
        assert y == pytest.approx(0.0, abs=1e-12)
        assert z == pytest.approx(0.0, abs=1e-12)

    def test_geographic_cell_size_is_converted(self):
        """Test that cell sizes below 0.1 are treated as degrees."""
        from src.relief.shading import metric_cell_size

        assert metric_cell_size(0.001) == pytest.approx(0.001 / 180 * math.pi * 6371000.0)
        assert metric_cell_size(30.0) == 30.0


class TestShade:
    """Tests for shade."""

    def test_flat_grid(self):
        """Test that a flat surface is lit with the cosine of the zenith angle."""
        from src.relief.grid import Grid
        from src.relief.shading import ShadingSettings, shade

        grid = Grid.from_array(np.full((6, 7), 120.0), cell_size=10.0)
        shaded = shade(grid, ShadingSettings(azimuth=315, zenith=45))

        expected = (math.cos(math.radians(45)) + 1) / 2 * 255
        np.testing.assert_allclose(shaded.values, expected, rtol=1e-5)

    def test_slope_facing_the_light_is_white(self):
        """Test a 45 degree slope facing the light source."""
        from src.relief.grid import Grid
        from src.relief.shading import ShadingSettings, shade

        cols, _ = np.meshgrid(np.arange(6), np.arange(6))
        # rising to the east, so facing west
        grid = Grid.from_array(cols * 10.0, cell_size=10.0)

        lit = shade(grid, ShadingSettings(azimuth=270, zenith=45))
        grazing = shade(grid, ShadingSettings(azimuth=90, zenith=45))

        assert lit.get_value(2, 2) == pytest.approx(255.0, rel=1e-5)
        assert grazing.get_value(2, 2) == pytest.approx(127.5, rel=1e-5)

    def test_border_cells_are_level(self):
        """Test that border cells are shaded like a flat surface."""
        from src.relief.grid import Grid
        from src.relief.shading import ShadingSettings, shade

        cols, _ = np.meshgrid(np.arange(6), np.arange(6))
        grid = Grid.from_array(cols * 10.0, cell_size=10.0)
        shaded = shade(grid, ShadingSettings(azimuth=270, zenith=60))

        flat = (math.cos(math.radians(60)) + 1) / 2 * 255
        assert shaded.get_value(0, 3) == pytest.approx(flat, rel=1e-5)
        assert shaded.get_value(3, 5) == pytest.approx(flat, rel=1e-5)

    def test_vertical_exaggeration_darkens_slopes(self):
        """Test that exaggeration steepens slopes facing away from the light."""
        from src.relief.grid import Grid
        from src.relief.shading import ShadingSettings, shade

        cols, _ = np.meshgrid(np.arange(6), np.arange(6))
        grid = Grid.from_array(cols * 10.0, cell_size=10.0)

        normal = shade(grid, ShadingSettings(azimuth=90, zenith=45, vertical_exaggeration=1))
        steep = shade(grid, ShadingSettings(azimuth=90, zenith=45, vertical_exaggeration=3))

        assert steep.get_value(2, 2) < normal.get_value(2, 2)

    def test_void_cells_stay_void(self, sample_grid):
        """Test that a void cell produces a void gray value."""
        from src.relief.shading import shade

        sample_grid.set_value(10, 10, np.nan)
        shaded = shade(sample_grid)

        assert np.isnan(shaded.get_value(10, 10))
        assert not np.isnan(shaded.get_value(30, 30))

    def test_values_in_gray_range(self, sample_grid):
        """Test that all gray values are within [0, 255]."""
        from src.relief.shading import shade

        shaded = shade(sample_grid)

        assert shaded.shape == sample_grid.shape
        assert np.nanmin(shaded.values) >= 0
        assert np.nanmax(shaded.values) <= 255
