"""Tests for the sigmoid-polynomial spectral fitter."""

from __future__ import annotations

import numpy as np
import pytest

from spectralut.core.types import Gamut


def _zero_basis(n=16):
    """Basis whose response is identically zero, so every Jacobian is singular."""
    from spectralut.color.basis import ColorimetryBasis
    from spectralut.core.types import Gamut

    return ColorimetryBasis(
        gamut=Gamut.XYZ,
        illuminant="E",
        wavelengths=np.linspace(360.0, 830.0, n),
        rgb_table=np.zeros((3, n)),
        rgb_to_xyz=np.eye(3),
        xyz_to_rgb=np.eye(3),
        whitepoint=np.zeros(3),
    )


class TestSpectralFitter:
    """Tests for SpectralFitter."""

    @pytest.mark.parametrize("gamut, target", [
        (Gamut.SRGB, (0.5, 0.3, 0.2)),
        (Gamut.SRGB, (0.2, 0.4, 0.3)),
        (Gamut.SRGB, (0.3, 0.3, 0.5)),
        (Gamut.SRGB, (0.4, 0.4, 0.4)),
        (Gamut.PROPHOTO_RGB, (0.4, 0.3, 0.25)),
        (Gamut.PROPHOTO_RGB, (0.25, 0.35, 0.3)),
    ])
    def test_converges_on_interior_colours(self, gamut, target):
        """Interior colours of the working gamut are reproduced to within 1e-3."""
        from spectralut.color.basis import build_basis
        from spectralut.core.fitter import SpectralFitter

        fitter = SpectralFitter(build_basis(gamut))
        target = np.array(target)
        result = fitter.fit(target)

        assert result.ok
        assert result.converged
        assert result.residual < 1e-3
        np.testing.assert_allclose(fitter.coeffs_to_rgb(result.coeffs), target, atol=2e-3)

    def test_fit_many_matches_fit(self, xyz_basis):
        from spectralut.core.fitter import SpectralFitter

        fitter = SpectralFitter(xyz_basis)
        targets = np.array([[0.15, 0.15, 0.2], [0.2, 0.25, 0.05]])
        coeffs, residual, ok, iterations = fitter.fit_many(targets)

        assert coeffs.shape == (2, 3)
        assert residual.shape == (2,)
        for k in range(2):
            single = fitter.fit(targets[k])
            np.testing.assert_allclose(single.coeffs, coeffs[k])
            assert single.residual == pytest.approx(residual[k])
            assert single.ok == bool(ok[k])
            assert single.iterations == iterations[k]

    def test_grey_fits_flat_spectrum(self, xyz_basis):
        """Half of the equal-energy white is a flat 0.5 reflectance."""
        from spectralut.core.fitter import SpectralFitter, eval_reflectance

        fitter = SpectralFitter(xyz_basis)
        result = fitter.fit(0.5 * np.asarray(xyz_basis.whitepoint))
        assert result.converged
        refl = eval_reflectance(result.coeffs, np.linspace(0.0, 1.0, 11))
        np.testing.assert_allclose(refl, 0.5, atol=0.05)

    def test_singular_jacobian_reported(self):
        from spectralut.core.fitter import SpectralFitter

        result = SpectralFitter(_zero_basis()).fit([0.2, 0.3, 0.4])
        assert result.singular
        assert not result.ok
        assert not result.converged
        assert result.iterations == 1

    def test_empty_input(self, xyz_basis):
        from spectralut.core.fitter import SpectralFitter

        coeffs, residual, ok, iterations = SpectralFitter(xyz_basis).fit_many(np.zeros((0, 3)))
        assert coeffs.shape == (0, 3)
        assert len(residual) == len(ok) == len(iterations) == 0

    def test_bad_shape_raises(self, xyz_basis):
        from spectralut.core.fitter import SpectralFitter
        from spectralut.errors import FitError

        fitter = SpectralFitter(xyz_basis)
        with pytest.raises(FitError):
            fitter.fit_many(np.zeros((4, 2)))
        with pytest.raises(FitError):
            fitter.fit([0.1, 0.2])


class TestKernels:
    """Tests for the JIT linear algebra helpers."""

    def test_lup_solve(self):
        from spectralut._numba_kernels.fitting import lup_decompose, lup_solve

        a = np.array([[0.0, 2.0, 1.0], [1.0, 1.0, 0.0], [3.0, 0.0, 1.0]])
        b = np.array([3.0, 2.0, 4.0])
        lu = a.copy()
        perm = np.empty(3, dtype=np.int64)
        assert lup_decompose(lu, perm, 1e-15)
        x = np.empty(3)
        lup_solve(lu, perm, b, x)
        np.testing.assert_allclose(a @ x, b)

    def test_lup_singular(self):
        from spectralut._numba_kernels.fitting import lup_decompose

        a = np.array([[1.0, 2.0, 3.0], [2.0, 4.0, 6.0], [0.0, 0.0, 0.0]])
        assert not lup_decompose(a, np.empty(3, dtype=np.int64), 1e-15)

    def test_clamp_coeffs(self):
        from spectralut._numba_kernels.fitting import clamp_coeffs

        c = np.array([2000.0, -500.0, 10.0])
        clamp_coeffs(c, 1000.0)
        np.testing.assert_allclose(c, [1000.0, -250.0, 5.0])


class TestFitResult:
    """Tests for the fit outcome flags."""

    def test_converged_threshold(self):
        """Converged means a non-singular fit whose residual norm is below sqrt(1e-6)."""
        from spectralut.core.types import FitResult

        coeffs = np.zeros(3)
        assert FitResult(coeffs, residual=9e-4, iterations=3).converged
        assert not FitResult(coeffs, residual=2e-3, iterations=40).converged
        assert not FitResult(coeffs, residual=0.0, iterations=1, singular=True).converged
