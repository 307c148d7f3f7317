"""Tests for the spectral locus and gamut classifier."""

from __future__ import annotations

import numpy as np
import pytest


class TestSpectralLocus:
    """Tests for locus membership and saturation."""

    def test_white_inside(self):
        from spectralut.color.locus import default_locus

        assert default_locus().contains(np.array([1.0 / 3.0, 1.0 / 3.0]))

    def test_far_point_outside(self):
        from spectralut.color.locus import default_locus

        assert not default_locus().contains(np.array([0.9, 0.9]))

    def test_contains_vectorized(self):
        from spectralut.color.locus import default_locus

        xy = np.array([[0.3, 0.3], [0.0, 0.0], [0.7, 0.1], [0.2, 0.5]])
        np.testing.assert_array_equal(
            default_locus().contains(xy), [True, False, False, True]
        )

    def test_saturation_zero_at_white(self):
        from spectralut.color.locus import default_locus

        sat = default_locus().saturation(np.array([[1.0 / 3.0, 1.0 / 3.0]]))
        np.testing.assert_allclose(sat, [0.0])

    def test_saturation_scales_towards_locus(self):
        """Points on the ray from white to the locus edge scale linearly."""
        from spectralut.color.locus import default_locus, locus_chromaticities

        white = np.array([1.0 / 3.0, 1.0 / 3.0])
        verts = locus_chromaticities()
        edge = 0.5 * (verts[28] + verts[29])  # between 520 and 525nm
        pts = white + np.array([[0.25], [0.5], [0.9]]) * (edge - white)
        sat = default_locus().saturation(pts)
        np.testing.assert_allclose(sat, [0.25, 0.5, 0.9], atol=1e-9)

    def test_saturation_in_unit_range(self):
        from spectralut.color.locus import default_locus

        rng = np.random.default_rng(7)
        xy = rng.random((200, 2)) * 0.8
        sat = default_locus().saturation(xy)
        assert np.all((sat >= 0.0) & (sat <= 1.0))


class TestGamutClassifier:
    """Tests for the RGB-to-locus classifier."""

    def test_xyz_classification(self, xyz_basis):
        from spectralut.color.locus import GamutClassifier

        clf = GamutClassifier(xyz_basis)
        rgb = np.array([
            [0.3, 0.3, 0.4],
            [0.9, 0.9, -0.8],
        ])
        np.testing.assert_array_equal(clf.is_outside(rgb), [False, True])

    def test_non_positive_sum_is_outside(self, xyz_basis):
        from spectralut.color.locus import GamutClassifier

        clf = GamutClassifier(xyz_basis)
        assert clf.is_outside(np.array([-0.1, -0.1, -0.1]))
        assert clf.is_outside(np.array([0.0, 0.0, 0.0]))

    def test_chromaticity_of_srgb_white(self, srgb_basis):
        """sRGB white projects to D65."""
        from spectralut.color.locus import GamutClassifier

        xy, total = GamutClassifier(srgb_basis).chromaticity(np.array([1.0, 1.0, 1.0]))
        np.testing.assert_allclose(xy, [0.3127, 0.3290], atol=1e-3)
        assert total > 0
