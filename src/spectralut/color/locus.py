"""Visible spectral locus and the gamut classifier built on it.

The locus polygon is traced from the CIE 1931 colour matching functions
(monochromatic stimuli from 380 to 700nm) and closed by the purple line.
Membership uses the polygon's convex hull, which matches the locus in this
wavelength range.
"""

from __future__ import annotations

from functools import lru_cache

import colour
import numpy as np
from scipy.spatial import Delaunay

from spectralut.color.basis import ColorimetryBasis
from spectralut.config import (
    CMFS_NAME,
    EQUAL_ENERGY_WHITE,
    LOCUS_LAMBDA_MAX,
    LOCUS_LAMBDA_MIN,
    LOCUS_LAMBDA_STEP,
)

# Consecutive locus points closer than this collapse into one vertex.
_MIN_VERTEX_SPACING = 1e-5


def _cross(u: np.ndarray, v: np.ndarray) -> np.ndarray:
    return u[..., 0] * v[..., 1] - u[..., 1] * v[..., 0]


def locus_chromaticities(
    lambda_min: float = LOCUS_LAMBDA_MIN,
    lambda_max: float = LOCUS_LAMBDA_MAX,
    step: float = LOCUS_LAMBDA_STEP,
) -> np.ndarray:
    """(x, y) of monochromatic stimuli in wavelength order, shape (n, 2)."""
    cmfs = colour.MSDS_CMFS[CMFS_NAME]
    src_wl = np.asarray(cmfs.wavelengths, dtype=np.float64)
    src = np.asarray(cmfs.values, dtype=np.float64)
    wl = np.arange(lambda_min, lambda_max + 0.5 * step, step)
    xyz = np.stack([np.interp(wl, src_wl, src[:, k]) for k in range(3)], axis=-1)
    return xyz[:, :2] / xyz.sum(axis=-1, keepdims=True)


class SpectralLocus:
    """Closed polygon of the visible locus in the xy chromaticity plane."""

    def __init__(self, vertices: np.ndarray):
        kept = [vertices[0]]
        for v in vertices[1:]:
            if np.hypot(*(v - kept[-1])) > _MIN_VERTEX_SPACING:
                kept.append(v)
        self.vertices = np.asarray(kept, dtype=np.float64)
        self._hull = Delaunay(self.vertices)

    def contains(self, xy: np.ndarray) -> np.ndarray:
        """True where (..., 2) chromaticities lie inside the locus."""
        xy = np.asarray(xy, dtype=np.float64)
        return self._hull.find_simplex(xy) >= 0

    def saturation(
        self,
        xy: np.ndarray,
        white: tuple[float, float] = EQUAL_ENERGY_WHITE,
    ) -> np.ndarray:
        """Relative distance from the white point towards the locus.

        Casts a ray from ``white`` through each point and returns
        |p - white| / |hit - white| where ``hit`` is the ray's exit from
        the polygon. 0 at the white point, 1 on the locus, clamped to [0, 1].

        Args:
            xy: (..., 2) chromaticities.
            white: Reference white chromaticity.

        Returns:
            (...,) saturation values.
        """
        xy = np.asarray(xy, dtype=np.float64)
        w = np.asarray(white, dtype=np.float64)

        a = self.vertices
        edges = np.roll(a, -1, axis=0) - a        # (n, 2), last edge is the purple line
        aw = a - w                                # (n, 2)
        d = (xy - w)[..., np.newaxis, :]          # (..., 1, 2)

        denom = _cross(d, edges)                  # (..., n)
        with np.errstate(divide="ignore", invalid="ignore"):
            t = _cross(aw, edges) / denom
            s = _cross(aw, d) / denom
        valid = (np.abs(denom) > 1e-15) & (t > 0.0) & (s >= 0.0) & (s <= 1.0)
        t_hit = np.where(valid, t, np.inf).min(axis=-1)

        with np.errstate(divide="ignore"):
            sat = np.where(np.isfinite(t_hit), 1.0 / t_hit, 0.0)
        return np.clip(sat, 0.0, 1.0)


@lru_cache(maxsize=1)
def default_locus() -> SpectralLocus:
    """The CIE 1931 locus shared by all builds."""
    return SpectralLocus(locus_chromaticities())


class GamutClassifier:
    """Tests working-gamut RGB values against the visible locus."""

    def __init__(self, basis: ColorimetryBasis, locus: SpectralLocus | None = None):
        self.basis = basis
        self.locus = locus if locus is not None else default_locus()

    def chromaticity(self, rgb: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Project (..., 3) RGB to (..., 2) xy and return X+Y+Z alongside."""
        xyz = np.asarray(rgb, dtype=np.float64) @ self.basis.rgb_to_xyz.T
        total = xyz.sum(axis=-1)
        safe = np.where(total > 0.0, total, 1.0)
        return xyz[..., :2] / safe[..., np.newaxis], total

    def is_outside(self, rgb: np.ndarray) -> np.ndarray:
        """True where no physically realizable reflectance can exist."""
        xy, total = self.chromaticity(rgb)
        return ~self.locus.contains(xy) | (total <= 0.0)
