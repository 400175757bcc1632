"""
Tests for generalization weights and the terrain model.
"""

import pytest
import numpy as np


class TestGeneralizationWeights:
    """Tests for the per-level weight ramp."""

    def test_levels_beyond_max_keep_full_weight(self):
        from src.relief.model import generalization_weight

        assert generalization_weight(3, 3, 0.5) == 1.0
        assert generalization_weight(0, 0, 1.0) == 1.0

    def test_all_detail(self):
        """Test that details of -1 keep every level."""
        from src.relief.model import generalization_weights

        assert generalization_weights(6, 4, -1) == [1.0] * 6

    def test_no_detail(self):
        """Test that details of +1 remove the filtered levels."""
        from src.relief.model import generalization_weights

        assert generalization_weights(6, 4, 1) == [0.0, 0.0, 0.0, 0.0, 1.0, 1.0]

    def test_linear_ramps(self):
        """Test weights for positive, zero and negative details."""
        from src.relief.model import generalization_weights

        assert generalization_weights(5, 4, 0) == pytest.approx([0.0, 0.25, 0.5, 0.75, 1.0])
        assert generalization_weights(5, 4, 0.5) == pytest.approx([0.0, 0.0, 0.0, 0.5, 1.0])
        assert generalization_weights(5, 4, -0.5) == pytest.approx([0.5, 0.625, 0.75, 0.875, 1.0])


class TestRenderSettings:
    """Tests for RenderSettings."""

    def test_validate(self):
        from src.relief.model import RenderSettings
        from src.relief.errors import InvalidArgument

        RenderSettings().validate()
        with pytest.raises(InvalidArgument):
            RenderSettings(generalization_details=1.5).validate()
        with pytest.raises(InvalidArgument):
            RenderSettings(generalization_max_levels=-1).validate()

    def test_derived_settings(self):
        """Test that shading and contour settings share the light direction."""
        from src.relief.model import RenderSettings

        settings = RenderSettings(azimuth=270, zenith=30, contours_interval=50)

        shading = settings.shading_settings()
        contours = settings.contour_settings(illuminated=False)

        assert (shading.azimuth, shading.zenith) == (270, 30)
        assert contours.azimuth == 270
        assert contours.interval == 50
        assert not contours.illuminated


class TestTerrainModel:
    """Tests for TerrainModel."""

    def test_empty_model_renders_nothing(self):
        from src.relief.model import TerrainModel

        model = TerrainModel()

        assert model.render_background() is None
        assert model.render_foreground() is None
        assert model.local_grid is None

    def test_set_grid(self, sample_grid):
        """Test that full weights reproduce the grid."""
        from src.relief.model import TerrainModel

        model = TerrainModel()
        model.set_grid(sample_grid)

        assert model.laplacian_pyramid.level_count > 1
        assert model.generalized_grid.shape == sample_grid.shape
        assert model.generalized_slope_grid.shape == sample_grid.shape
        np.testing.assert_allclose(model.generalized_grid.values, sample_grid.values, rtol=1e-4)

    def test_set_grid_requires_grid(self):
        from src.relief.model import TerrainModel
        from src.relief.errors import InvalidArgument

        with pytest.raises(InvalidArgument):
            TerrainModel().set_grid(None)

    def test_generalization_keeps_value_range(self, sample_grid):
        """Test that the generalized grid is rescaled to the original range."""
        from src.relief.model import RenderSettings, TerrainModel

        settings = RenderSettings(generalization_max_levels=3, generalization_details=1)
        model = TerrainModel(settings)
        model.set_grid(sample_grid)

        min_value, max_value = model.generalized_grid.min_max()
        assert min_value == pytest.approx(sample_grid.min_max()[0], rel=1e-4)
        assert max_value == pytest.approx(sample_grid.min_max()[1], rel=1e-4)
        assert not np.allclose(model.generalized_grid.values, sample_grid.values)

    def test_local_grid_is_cached(self, sample_grid):
        """Test that the local grid is reused until its parameters change."""
        from src.relief.model import RenderSettings, TerrainModel

        model = TerrainModel(RenderSettings(local_low_pass_std=4, local_std_dev_levels=2))
        model.set_grid(sample_grid)

        first = model.local_grid
        assert model.local_grid is first

        model.settings.local_low_pass_std = 6
        assert model.local_grid is not first

        cached = model.local_grid
        model.update_generalized_grid()
        assert model.local_grid is not cached

    @pytest.mark.parametrize(
        "background",
        ["gray_shading", "hypsometric", "hypsometric_shading", "local_hypsometric", "continuous"],
    )
    def test_render_background(self, sample_grid, background):
        from src.relief.color_mapping import ColorVisualization
        from src.relief.model import RenderSettings, TerrainModel

        settings = RenderSettings(background=ColorVisualization(background), local_low_pass_std=4)
        model = TerrainModel(settings)
        model.set_grid(sample_grid)

        image = model.render_background()

        assert image.shape == (sample_grid.rows, sample_grid.cols, 4)
        assert image.dtype == np.uint8
        assert np.all(image[..., 3] == 255)

    def test_render_foreground_none(self, sample_grid):
        """Test a transparent foreground without contours."""
        from src.relief.model import TerrainModel

        model = TerrainModel()
        model.set_grid(sample_grid)

        image = model.render_foreground(scale=2)

        assert image.shape == (sample_grid.rows * 2, sample_grid.cols * 2, 4)
        assert not np.any(image)

    @pytest.mark.parametrize("scale", [1, 2])
    def test_render_contours(self, sample_grid, scale):
        """Test that illuminated contours draw lines."""
        from src.relief.model import ForegroundVisualization, RenderSettings, TerrainModel

        settings = RenderSettings(
            foreground=ForegroundVisualization.ILLUMINATED_CONTOURS,
            contours_interval=50,
        )
        model = TerrainModel(settings)
        model.set_grid(sample_grid)

        image = model.render_foreground(scale=scale)

        assert image.shape == (sample_grid.rows * scale, sample_grid.cols * scale, 4)
        assert np.any(image[..., 3] == 255)

    def test_shaded_contours_are_black(self, sample_grid):
        from src.relief.model import ForegroundVisualization, RenderSettings, TerrainModel

        settings = RenderSettings(
            foreground=ForegroundVisualization.SHADED_CONTOURS,
            contours_interval=50,
        )
        model = TerrainModel(settings)
        model.set_grid(sample_grid)

        image = model.render_foreground()
        drawn = image[image[..., 3] == 255]

        assert drawn.size > 0
        assert np.all(drawn[:, :3] == 0)

    def test_scale_and_offset_terrain(self, sample_grid):
        """Test that elevation edits rebuild the model."""
        from src.relief.model import TerrainModel

        model = TerrainModel()
        model.set_grid(sample_grid)
        min_value, max_value = sample_grid.min_max()

        model.scale_terrain(2)
        assert model.grid_min_max == pytest.approx((2 * min_value, 2 * max_value), rel=1e-5)

        model.offset_terrain(-100)
        assert model.grid_min_max == pytest.approx((2 * min_value - 100, 2 * max_value - 100), rel=1e-5)
        assert model.generalized_grid.min_max() == pytest.approx(model.grid_min_max, rel=1e-4)
