"""Tests for grid fitting, brightness lookup and scatter binning."""

from __future__ import annotations

import numpy as np
import pytest

from spectralut.core.types import BrightnessInterpolation, BrightnessMap


class TestBrightnessLookup:
    """Tests for sampling the maximum-brightness map."""

    def test_nearest_truncates(self):
        from spectralut.pipeline.grid import lookup_brightness

        bmap = BrightnessMap(values=np.array([[1.0, 2.0], [3.0, 4.0]], dtype=np.float32))
        out = lookup_brightness(bmap, np.array([0.6, 0.1, 0.99]), np.array([0.1, 0.7, 0.99]))
        np.testing.assert_allclose(out, [2.0, 3.0, 4.0])

    def test_bilinear_blends(self):
        from spectralut.pipeline.grid import lookup_brightness

        values = np.tile(np.array([0.0, 1.0, 2.0], dtype=np.float32), (3, 1))
        bmap = BrightnessMap(values=values)
        out = lookup_brightness(
            bmap, np.array([0.25, 0.5, 0.99]), np.array([0.5, 0.5, 0.5]),
            BrightnessInterpolation.BILINEAR,
        )
        np.testing.assert_allclose(out, [0.75, 1.5, 2.0], atol=1e-6)

    def test_brightness_factor_floor(self):
        from spectralut.pipeline.grid import brightness_factor

        np.testing.assert_allclose(brightness_factor(np.array([0.0, 1.0, 4.0])), [0.001, 0.5, 2.0])


class TestScatterBinning:
    """Tests for (wavelength, saturation) bin coordinates."""

    def test_warp_centre(self):
        from spectralut.pipeline.grid import wavelength_warp

        assert wavelength_warp(np.array(550.0)) == pytest.approx(0.5)
        w = wavelength_warp(np.array([300.0, 450.0, 650.0, 900.0]))
        assert np.all(np.diff(w) > 0)
        assert np.all((w > 0) & (w < 1))

    def test_curvature_selects_half(self):
        """Negative curvature uses the lower half of the rows, positive the upper."""
        from spectralut.pipeline.grid import scatter_coordinates

        canonical = np.array([[-1e-4, 0.5, 550.0], [1e-4, 0.5, 550.0]])
        c = scatter_coordinates(canonical, np.array([0.5, 0.5]), 8)

        np.testing.assert_array_equal(c.lam_i, [2, 6])
        np.testing.assert_allclose(c.lam_c, [2.0, 6.0])
        np.testing.assert_array_equal(c.sat_i, [4, 4])
        np.testing.assert_allclose(c.distance, [0.5, 0.5])

    def test_indices_clamped(self):
        from spectralut.pipeline.grid import scatter_coordinates

        canonical = np.array([[-1e-4, 0.5, 5000.0], [1e-4, 0.5, 5000.0]])
        c = scatter_coordinates(canonical, np.array([1.0, 1.0]), 8)
        np.testing.assert_array_equal(c.lam_i, [3, 7])
        np.testing.assert_array_equal(c.sat_i, [7, 7])


class TestReduceScatter:
    """Tests for the serial nearest-to-centre reduction."""

    def test_closest_wins(self):
        from spectralut.pipeline.grid import reduce_scatter_candidates

        payload = np.arange(15, dtype=np.float32).reshape(3, 5)
        scatter = reduce_scatter_candidates(
            2,
            bins=np.array([3, 3, 0]),
            distance=np.array([0.4, 0.1, 0.2]),
            cell_index=np.array([0, 1, 2]),
            payload=payload,
        )
        np.testing.assert_array_equal(scatter.data[1, 1], payload[1])
        np.testing.assert_array_equal(scatter.data[0, 0], payload[2])
        assert scatter.distance[1, 1] == pytest.approx(0.1)
        np.testing.assert_array_equal(scatter.occupied, [[True, False], [False, True]])
        np.testing.assert_array_equal(scatter.data[0, 1], np.zeros(5))

    def test_tie_goes_to_lowest_cell(self):
        """Equal distances resolve to the lowest cell index, regardless of order."""
        from spectralut.pipeline.grid import reduce_scatter_candidates

        payload = np.array([[1.0] * 5, [2.0] * 5], dtype=np.float32)
        for order in ([0, 1], [1, 0]):
            scatter = reduce_scatter_candidates(
                1,
                bins=np.array([0, 0])[order],
                distance=np.array([0.25, 0.25])[order],
                cell_index=np.array([7, 3])[order],
                payload=payload[order],
            )
            np.testing.assert_array_equal(scatter.data[0, 0], [2.0] * 5)

    def test_no_candidates(self):
        from spectralut.pipeline.grid import reduce_scatter_candidates

        scatter = reduce_scatter_candidates(
            4, np.zeros(0, dtype=np.int64), np.zeros(0), np.zeros(0, dtype=np.int64),
            np.zeros((0, 5), dtype=np.float32),
        )
        assert not scatter.occupied.any()


class TestLutGridBuilder:
    """Tests for the threaded grid build."""

    def test_populated_only_inside_locus(self, xyz_basis, flat_brightness):
        from spectralut.color.locus import GamutClassifier
        from spectralut.pipeline.grid import LutGridBuilder

        R = 16
        build = LutGridBuilder(xyz_basis, flat_brightness, R).build(workers=2)
        grid = build.grid

        x = np.arange(R) / R
        xx, yy = np.meshgrid(x, x)  # row j = y, column i = x
        rgb = np.stack([xx, yy, 1.0 - xx - yy], axis=-1)
        inside = ~GamutClassifier(xyz_basis).is_outside(rgb)

        assert build.inside_cells == int(inside.sum())
        assert not np.any(grid.populated & ~inside)
        assert np.all(grid.coeffs[~grid.populated] == 0.0)
        assert grid.populated.sum() + build.singular_fits == build.inside_cells
        assert np.all((grid.bin_centers >= 0.0) & (grid.bin_centers <= 1.0))
        assert build.scatter.size == R // 4
        assert build.scatter.occupied.any()

    def test_targets_scaled_by_brightness(self, xyz_basis):
        from spectralut.pipeline.grid import LutGridBuilder

        bmap = BrightnessMap(values=np.full((8, 8), 0.8, dtype=np.float32))
        build = LutGridBuilder(xyz_basis, bmap, 8).build(workers=1)
        # row 2, column 3 -> chromaticity (3/8, 2/8), factor 0.5 * 0.8
        np.testing.assert_allclose(build.targets[2, 3], 0.4 * np.array([0.375, 0.25, 0.375]))

    def test_independent_of_worker_count(self, xyz_basis, flat_brightness):
        from spectralut.pipeline.grid import LutGridBuilder

        a = LutGridBuilder(xyz_basis, flat_brightness, 16).build(workers=1)
        b = LutGridBuilder(xyz_basis, flat_brightness, 16).build(workers=4)
        np.testing.assert_array_equal(a.grid.coeffs, b.grid.coeffs)
        np.testing.assert_array_equal(a.scatter.data, b.scatter.data)

    def test_progress_reported_per_row(self, xyz_basis, flat_brightness):
        from spectralut.pipeline.grid import LutGridBuilder

        calls = []
        LutGridBuilder(xyz_basis, flat_brightness, 8).build(
            workers=2, progress_callback=lambda s, f, m: calls.append((s, f)),
        )
        assert len(calls) == 8
        assert calls[-1] == ("fitting", 1.0)
