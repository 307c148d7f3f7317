"""Conversion between fitted coefficients and the canonical (c0, y, l) form.

The fitter works on a wavelength axis normalized to [0, 1]:

    p(t) = A t^2 + B t + C,    t = (lambda - lambda_min) / (lambda_max - lambda_min)

The canonical form rewrites the same parabola over nanometres as

    p(lambda) = c0 (lambda - l)^2 + y

so c0 is the curvature, l the dominant wavelength and y the value at it.
"""

from __future__ import annotations

import numpy as np

from spectralut.config import (
    CANONICAL_EPSILON,
    CIE_LAMBDA_MAX,
    CIE_LAMBDA_MIN,
    CURVATURE_SCALE,
)

_LAMBDA_OFFSET = CIE_LAMBDA_MIN
_LAMBDA_SCALE = 1.0 / (CIE_LAMBDA_MAX - CIE_LAMBDA_MIN)


def denormalize_coeffs(coeffs: np.ndarray) -> np.ndarray:
    """(..., 3) normalized-axis coefficients -> coefficients over nanometres."""
    coeffs = np.asarray(coeffs, dtype=np.float64)
    c0, c1 = _LAMBDA_OFFSET, _LAMBDA_SCALE
    A, B, C = coeffs[..., 0], coeffs[..., 1], coeffs[..., 2]
    return np.stack([
        A * c1 * c1,
        B * c1 - 2.0 * A * c0 * c1 * c1,
        C - B * c0 * c1 + A * (c0 * c1) ** 2,
    ], axis=-1)


def normalize_coeffs(coeffs_nm: np.ndarray) -> np.ndarray:
    """Inverse of :func:`denormalize_coeffs`."""
    coeffs_nm = np.asarray(coeffs_nm, dtype=np.float64)
    c0, c1 = _LAMBDA_OFFSET, _LAMBDA_SCALE
    A2, B2, C2 = coeffs_nm[..., 0], coeffs_nm[..., 1], coeffs_nm[..., 2]
    A = A2 / (c1 * c1)
    B = (B2 + 2.0 * A * c0 * c1 * c1) / c1
    C = C2 + B * c0 * c1 - A * (c0 * c1) ** 2
    return np.stack([A, B, C], axis=-1)


def coeffs_to_canonical(coeffs: np.ndarray) -> np.ndarray:
    """Convert (..., 3) fitted (A, B, C) to canonical (c0, y, l).

    Coefficients with |A| below CANONICAL_EPSILON have no dominant
    wavelength and map to (0, 0, 0).
    """
    coeffs = np.asarray(coeffs, dtype=np.float64)
    nm = denormalize_coeffs(coeffs)
    A2, B2, C2 = nm[..., 0], nm[..., 1], nm[..., 2]

    degenerate = np.abs(coeffs[..., 0]) < CANONICAL_EPSILON
    safe = np.where(degenerate, 1.0, A2)
    lam = B2 / (-2.0 * safe)
    y = C2 - B2 * B2 / (4.0 * safe)

    out = np.stack([A2, y, lam], axis=-1)
    out[degenerate] = 0.0
    return out


def canonical_to_coeffs(canonical: np.ndarray) -> np.ndarray:
    """Convert (..., 3) canonical (c0, y, l) back to fitted (A, B, C)."""
    canonical = np.asarray(canonical, dtype=np.float64)
    c0, y, lam = canonical[..., 0], canonical[..., 1], canonical[..., 2]
    nm = np.stack([c0, -2.0 * c0 * lam, y + c0 * lam * lam], axis=-1)
    return normalize_coeffs(nm)


def quantize_canonical(canonical: np.ndarray) -> np.ndarray:
    """Round-trip canonical coefficients through their stored half encoding."""
    canonical = np.asarray(canonical, dtype=np.float64)
    stored = canonical * np.array([CURVATURE_SCALE, 1.0, 1.0])
    with np.errstate(over="ignore"):
        decoded = stored.astype(np.float16).astype(np.float64)
    return decoded / np.array([CURVATURE_SCALE, 1.0, 1.0])


def canonical_reflectance(canonical: np.ndarray, wavelengths: np.ndarray) -> np.ndarray:
    """Reflectance of (..., 3) canonical coefficients at wavelengths in nm.

    Returns:
        (..., len(wavelengths)) array with values in (0, 1).
    """
    canonical = np.asarray(canonical, dtype=np.float64)
    c0 = canonical[..., 0:1]
    y = canonical[..., 1:2]
    lam = canonical[..., 2:3]
    x = c0 * (wavelengths - lam) ** 2 + y
    return 0.5 * x / np.sqrt(1.0 + x * x) + 0.5
