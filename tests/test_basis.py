"""Tests for the colorimetry basis."""

from __future__ import annotations

import logging

import numpy as np
import pytest

from spectralut.core.types import Gamut


class TestSimpsonWeights:
    """Tests for the composite Simpson's 3/8 rule."""

    def test_integrates_cubic_exactly(self):
        """Simpson's 3/8 is exact for cubics."""
        from spectralut.color.basis import simpson38_weights

        x = np.linspace(0.0, 3.0, 7)
        w = simpson38_weights(7, 0.5)
        np.testing.assert_allclose(np.sum(w * x**3), 3.0**4 / 4.0, rtol=1e-12)

    def test_rejects_bad_node_count(self):
        from spectralut.color.basis import simpson38_weights

        with pytest.raises(ValueError, match="3k\\+1"):
            simpson38_weights(5, 1.0)


class TestParseGamut:
    """Tests for gamut name resolution."""

    def test_case_insensitive(self):
        from spectralut.color.basis import parse_gamut

        assert parse_gamut("sRGB") == Gamut.SRGB
        assert parse_gamut("XYZ") == Gamut.XYZ
        assert parse_gamut("ProPhotoRGB") == Gamut.PROPHOTO_RGB
        assert parse_gamut("ACES_AP1") == Gamut.ACES_AP1

    def test_unknown_falls_back_to_srgb(self, caplog):
        """Unknown names fall back to sRGB and log a warning."""
        from spectralut.color.basis import parse_gamut

        with caplog.at_level(logging.WARNING, logger="spectralut.color.basis"):
            assert parse_gamut("bogus") == Gamut.SRGB
        assert "bogus" in caplog.text

    def test_every_gamut_has_table_entry(self):
        from spectralut.color.basis import gamut_table

        assert set(gamut_table()) == set(Gamut)


class TestBuildBasis:
    """Tests for the tabulated basis."""

    def test_shapes(self, xyz_basis):
        from spectralut.config import CIE_FINE_SAMPLES

        assert xyz_basis.rgb_table.shape == (3, CIE_FINE_SAMPLES)
        assert xyz_basis.wavelengths.shape == (CIE_FINE_SAMPLES,)
        assert xyz_basis.num_samples == CIE_FINE_SAMPLES
        assert xyz_basis.wavelengths[0] == pytest.approx(360.0)
        assert xyz_basis.wavelengths[-1] == pytest.approx(830.0)

    def test_white_has_unit_luminance(self, srgb_basis, xyz_basis):
        np.testing.assert_allclose(xyz_basis.whitepoint[1], 1.0, atol=1e-12)
        np.testing.assert_allclose(srgb_basis.whitepoint[1], 1.0, atol=1e-12)

    def test_equal_energy_white_chromaticity(self, xyz_basis):
        """Illuminant E sits at (1/3, 1/3)."""
        wp = xyz_basis.whitepoint
        xy = wp[:2] / wp.sum()
        np.testing.assert_allclose(xy, [1.0 / 3.0, 1.0 / 3.0], atol=2e-3)

    def test_srgb_white_reflector_maps_to_white(self, srgb_basis):
        """A perfect reflector under D65 is RGB (1, 1, 1) in sRGB."""
        rgb = srgb_basis.spectrum_to_rgb(np.ones(srgb_basis.num_samples))
        np.testing.assert_allclose(rgb, [1.0, 1.0, 1.0], atol=5e-3)

    def test_d60_gamut(self):
        """ACES gamuts use a computed D-series illuminant."""
        from spectralut.color.basis import build_basis

        basis = build_basis(Gamut.ACES_AP1)
        assert basis.illuminant == "D60"
        np.testing.assert_allclose(basis.whitepoint[1], 1.0, atol=1e-12)
        assert np.all(np.isfinite(basis.rgb_table))

    def test_tables_are_read_only(self, xyz_basis):
        with pytest.raises(ValueError):
            xyz_basis.rgb_table[0, 0] = 1.0

    def test_cached(self, xyz_basis):
        from spectralut.color.basis import build_basis

        assert build_basis(Gamut.XYZ) is xyz_basis
