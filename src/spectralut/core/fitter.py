"""Sigmoid-polynomial spectral fitter.

Finds coefficients (A, B, C) such that the reflectance
sigmoid(A t^2 + B t + C), integrated against the colorimetry basis,
reproduces a target RGB triple. The heavy lifting is done by the
JIT-compiled damped Gauss-Newton kernel in ``_numba_kernels.fitting``.
"""

from __future__ import annotations

import logging

import numpy as np

from spectralut._numba_kernels.fitting import fit_targets
from spectralut.color.basis import ColorimetryBasis
from spectralut.config import (
    FIT_COEFF_LIMIT,
    FIT_CONVERGENCE_TOL,
    FIT_INITIAL_COEFFS,
    FIT_JACOBIAN_EPSILON,
    FIT_MAX_ITERATIONS,
    FIT_PIVOT_TOLERANCE,
)
from spectralut.core.types import FitResult
from spectralut.errors import FitError

logger = logging.getLogger(__name__)


def normalized_wavelengths(n: int) -> np.ndarray:
    """Fitting axis: n nodes evenly spread over [0, 1]."""
    return np.arange(n) / (n - 1.0)


def eval_reflectance(coeffs: np.ndarray, t: np.ndarray) -> np.ndarray:
    """Reflectance of (..., 3) coefficients at normalized wavelengths t.

    Returns:
        (..., len(t)) array with values in (0, 1).
    """
    coeffs = np.asarray(coeffs, dtype=np.float64)
    A = coeffs[..., 0:1]
    B = coeffs[..., 1:2]
    C = coeffs[..., 2:3]
    x = (A * t + B) * t + C
    return 0.5 * x / np.sqrt(1.0 + x * x) + 0.5


class SpectralFitter:
    """Fits sigmoid-polynomial reflectances under a fixed basis."""

    def __init__(
        self,
        basis: ColorimetryBasis,
        max_iterations: int = FIT_MAX_ITERATIONS,
        epsilon: float = FIT_JACOBIAN_EPSILON,
        pivot_tolerance: float = FIT_PIVOT_TOLERANCE,
        tolerance: float = FIT_CONVERGENCE_TOL,
        coeff_limit: float = FIT_COEFF_LIMIT,
    ):
        self.basis = basis
        self.max_iterations = int(max_iterations)
        self.epsilon = float(epsilon)
        self.pivot_tolerance = float(pivot_tolerance)
        self.tolerance = float(tolerance)
        self.coeff_limit = float(coeff_limit)
        # Writable contiguous copy; the kernels are compiled for plain arrays
        self._table = np.array(basis.rgb_table, dtype=np.float64, order="C")
        self._init = np.array(FIT_INITIAL_COEFFS, dtype=np.float64)

    def fit_many(
        self, targets: np.ndarray
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """Fit every row of an (M, 3) target array.

        Args:
            targets: (M, 3) target RGB values in the basis' gamut.

        Returns:
            (coeffs, residual, ok, iterations) with shapes (M, 3), (M,),
            (M,), (M,). Rows with ``ok`` False hit a singular Jacobian.
        """
        targets = np.ascontiguousarray(targets, dtype=np.float64)
        if targets.ndim != 2 or targets.shape[1] != 3:
            raise FitError(f"Expected (M, 3) targets, got {targets.shape}")
        if targets.shape[0] == 0:
            return (
                np.zeros((0, 3)), np.zeros(0), np.zeros(0, dtype=bool),
                np.zeros(0, dtype=np.int64),
            )
        return fit_targets(
            targets,
            self._table,
            self._init,
            self.max_iterations,
            self.epsilon,
            self.pivot_tolerance,
            self.tolerance,
            self.coeff_limit,
        )

    def fit(self, target_rgb) -> FitResult:
        """Fit a single RGB triple."""
        target = np.asarray(target_rgb, dtype=np.float64)
        if target.shape != (3,):
            raise FitError(f"Expected an RGB triple, got shape {target.shape}")
        coeffs, residual, ok, iterations = self.fit_many(target[np.newaxis, :])
        result = FitResult(
            coeffs=coeffs[0].copy(),
            residual=float(residual[0]),
            iterations=int(iterations[0]),
            singular=not bool(ok[0]),
        )
        if result.singular:
            logger.debug(
                "Singular Jacobian fitting RGB (%g, %g, %g)", *target
            )
        return result

    def coeffs_to_rgb(self, coeffs: np.ndarray) -> np.ndarray:
        """RGB of (..., 3) fitted coefficients under this basis."""
        t = normalized_wavelengths(self.basis.num_samples)
        return self.basis.spectrum_to_rgb(eval_reflectance(coeffs, t))


