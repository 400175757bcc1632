"""
Tests for the parallel row-chunk operator framework and grid operators.
"""

import threading

import pytest
import numpy as np


class TestRowChunks:
    """Tests for splitting rows into chunks."""

    def test_chunks_cover_all_rows(self):
        """Test that chunks are contiguous and cover [0, rows)."""
        from src.relief.operators import row_chunks

        chunks = row_chunks(103, 8)

        assert chunks[0][0] == 0
        assert chunks[-1][1] == 103
        for (_, end), (start, _) in zip(chunks[:-1], chunks[1:]):
            assert end == start
        assert len(chunks) == 8

    def test_more_chunks_than_rows(self):
        """Test that no empty chunks are produced."""
        from src.relief.operators import row_chunks

        chunks = row_chunks(3, 16)

        assert chunks == [(0, 1), (1, 2), (2, 3)]

    def test_run_row_chunks_visits_every_row_once(self):
        """Test that every row is processed exactly once."""
        from src.relief.operators import run_row_chunks

        visited = np.zeros(57, dtype=int)

        def _visit(start, end):
            visited[start:end] += 1

        run_row_chunks(_visit, 57, n_workers=4)

        assert np.all(visited == 1)

    def test_run_row_chunks_reraises(self):
        """Test that an exception in a chunk reaches the caller."""
        from src.relief.operators import run_row_chunks

        def _fail(start, end):
            if start > 0:
                raise RuntimeError("chunk failed")

        with pytest.raises(RuntimeError, match="chunk failed"):
            run_row_chunks(_fail, 20, n_workers=4)

    def test_cancelled_chunks_are_skipped(self):
        """Test that a set cancel event prevents chunks from starting."""
        from src.relief.operators import run_row_chunks

        cancel = threading.Event()
        cancel.set()
        calls = []

        run_row_chunks(lambda start, end: calls.append(start), 20, n_workers=4, cancel=cancel)

        assert calls == []


class TestMapRows:
    """Tests for the map_rows combinator."""

    def test_destination_is_new_grid(self, sample_grid):
        """Test that the destination never aliases a source."""
        from src.relief.operators import copy_grid

        copy = copy_grid(sample_grid)

        assert copy is not sample_grid
        assert not np.shares_memory(copy.values, sample_grid.values)
        np.testing.assert_array_equal(copy.values, sample_grid.values)
        assert copy.west == sample_grid.west
        assert copy.south == sample_grid.south

    def test_shape_mismatch_raises_before_allocation(self, monkeypatch):
        """Test that differently sized grids fail without allocating a destination."""
        from src.relief import operators
        from src.relief.grid import Grid
        from src.relief.errors import InvalidArgument, ShapeMismatch

        a = Grid(5, 5, cell_size=1.0)
        b = Grid(5, 6, cell_size=1.0)
        c = Grid(5, 5, cell_size=2.0)

        allocations = []
        original_like = Grid.like

        def _tracking_like(template, fill_value=0.0):
            allocations.append(template)
            return original_like(template, fill_value)

        monkeypatch.setattr(operators.Grid, "like", staticmethod(_tracking_like))

        with pytest.raises(ShapeMismatch):
            operators.difference_grid(a, b)
        with pytest.raises(InvalidArgument):
            operators.difference_grid(a, c)

        assert allocations == []

    def test_none_source_raises(self):
        """Test that a missing grid is an invalid argument."""
        from src.relief.operators import add_grids
        from src.relief.grid import Grid
        from src.relief.errors import InvalidArgument

        with pytest.raises(InvalidArgument):
            add_grids(Grid(3, 3), None)


class TestArithmeticOperators:
    """Tests for unary and dual operators."""

    def test_add_and_difference(self):
        """Test a + b * scale and a - b."""
        from src.relief.grid import Grid
        from src.relief.operators import add_grids, difference_grid

        a = Grid.from_array(np.full((4, 4), 10.0))
        b = Grid.from_array(np.full((4, 4), 3.0))

        np.testing.assert_allclose(add_grids(a, b, scale=2).values, 16.0)
        np.testing.assert_allclose(difference_grid(a, b).values, 7.0)

    def test_scale_and_offset(self, sample_grid):
        """Test scaling and offsetting all values."""
        from src.relief.operators import offset_grid, scale_grid

        scaled = scale_grid(sample_grid, 2.0)
        shifted = offset_grid(sample_grid, -100.0)

        np.testing.assert_allclose(scaled.values, sample_grid.values * 2, rtol=1e-6)
        np.testing.assert_allclose(shifted.values, sample_grid.values - 100, rtol=1e-6)

    def test_scale_to_range(self, sample_grid):
        """Test that the value range is mapped to the new range."""
        from src.relief.operators import scale_to_range

        rescaled = scale_to_range(sample_grid, -1.0, 1.0)
        min_value, max_value = rescaled.min_max()

        assert min_value == pytest.approx(-1.0, abs=1e-5)
        assert max_value == pytest.approx(1.0, abs=1e-5)

    def test_scale_to_range_of_flat_grid_copies(self):
        """Test that a constant grid is returned unchanged."""
        from src.relief.grid import Grid
        from src.relief.operators import scale_to_range

        flat = Grid.from_array(np.full((3, 3), 5.0))
        result = scale_to_range(flat, 0.0, 1.0)

        assert result is not flat
        np.testing.assert_array_equal(result.values, 5.0)

    def test_diff_div_maps_infinity_to_void(self):
        """Test (a - b) / (c + 1) with a division by zero."""
        from src.relief.grid import Grid
        from src.relief.operators import diff_div

        a = Grid.from_array(np.full((3, 3), 5.0))
        b = Grid.from_array(np.full((3, 3), 1.0))
        c = Grid.from_array(np.full((3, 3), 1.0))
        c.set_value(1, 1, -1.0)

        result = diff_div(a, b, c)

        assert result.get_value(0, 0) == pytest.approx(2.0)
        assert np.isnan(result.get_value(1, 1))

    def test_void_propagates_through_difference(self):
        """Test that a void cell in either operand stays void."""
        from src.relief.grid import Grid
        from src.relief.operators import difference_grid

        a = Grid.from_array(np.ones((3, 3)))
        b = Grid.from_array(np.ones((3, 3)))
        b.set_value(2, 0, np.nan)

        result = difference_grid(a, b)

        assert np.isnan(result.get_value(2, 0))
        assert np.count_nonzero(np.isnan(result.values)) == 1


class TestSlopeGrid:
    """Tests for slope_grid."""

    def test_matches_grid_slope(self, sample_grid):
        """Test that the parallel slope grid equals per-cell Horn slopes."""
        from src.relief.operators import slope_grid

        slopes = slope_grid(sample_grid)

        for col, row in [(0, 0), (10, 5), (63, 47), (31, 24)]:
            assert slopes.get_value(col, row) == pytest.approx(sample_grid.slope(col, row), rel=1e-5)
