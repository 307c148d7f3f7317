"""Colorimetry basis: weighted RGB response curves for a working gamut.

The basis integrates the CIE 1931 colour matching functions against the
gamut's illuminant with a composite Simpson's 3/8 rule. Reflectances are
later evaluated at the same nodes, so a fitted spectrum's RGB value is a
plain dot product with ``rgb_table``.

Spectral data and RGB primaries come from colour-science.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache

import colour
import numpy as np

from spectralut.config import (
    CIE_FINE_SAMPLES,
    CIE_LAMBDA_MAX,
    CIE_LAMBDA_MIN,
    CIE_SAMPLES,
    CMFS_NAME,
    EQUAL_ENERGY_WHITE,
)
from spectralut.core.types import Gamut

logger = logging.getLogger(__name__)

# Display gamuts traced in the abney LUT, keyed by their short name.
TARGET_COLOURSPACES = {
    "rec709": "sRGB",
    "rec2020": "ITU-R BT.2020",
}

GAMUT_NAMES = {
    "srgb": Gamut.SRGB,
    "ergb": Gamut.ERGB,
    "xyz": Gamut.XYZ,
    "prophotorgb": Gamut.PROPHOTO_RGB,
    "aces2065_1": Gamut.ACES2065_1,
    "aces_ap1": Gamut.ACES_AP1,
    "rec2020": Gamut.REC2020,
}

DEFAULT_FALLBACK_GAMUT = Gamut.SRGB


@dataclass(frozen=True)
class GamutSpec:
    """Fixed data selected by a gamut: illuminant and RGB<->XYZ matrices."""
    illuminant: str
    rgb_to_xyz: np.ndarray
    xyz_to_rgb: np.ndarray


@dataclass(frozen=True)
class ColorimetryBasis:
    """Immutable per-gamut tables shared by every downstream stage."""
    gamut: Gamut
    illuminant: str
    wavelengths: np.ndarray  # (N_fine,) nm
    rgb_table: np.ndarray    # (3, N_fine) illuminant- and quadrature-weighted
    rgb_to_xyz: np.ndarray   # (3, 3)
    xyz_to_rgb: np.ndarray   # (3, 3)
    whitepoint: np.ndarray   # (3,) XYZ of the illuminant, Y = 1

    @property
    def num_samples(self) -> int:
        return int(self.rgb_table.shape[1])

    def spectrum_to_rgb(self, reflectance: np.ndarray) -> np.ndarray:
        """Integrate (..., N_fine) reflectances into (..., 3) RGB."""
        return reflectance @ self.rgb_table.T


def parse_gamut(name: str) -> Gamut:
    """Resolve a case-insensitive gamut name.

    Unknown names fall back to sRGB with a warning rather than failing,
    matching the behaviour existing LUT build scripts rely on.
    """
    key = name.strip().lower()
    gamut = GAMUT_NAMES.get(key)
    if gamut is None:
        logger.warning(
            "Unknown gamut %r, falling back to %s (expected one of: %s)",
            name, DEFAULT_FALLBACK_GAMUT.value, ", ".join(GAMUT_NAMES),
        )
        return DEFAULT_FALLBACK_GAMUT
    return gamut


def _colourspace_matrices(name: str) -> tuple[np.ndarray, np.ndarray]:
    cs = colour.RGB_COLOURSPACES[name]
    return (
        np.asarray(cs.matrix_RGB_to_XYZ, dtype=np.float64),
        np.asarray(cs.matrix_XYZ_to_RGB, dtype=np.float64),
    )


def _equal_energy_rgb_matrices() -> tuple[np.ndarray, np.ndarray]:
    """sRGB primaries normalized to the equal-energy whitepoint."""
    primaries = colour.RGB_COLOURSPACES["sRGB"].primaries
    rgb_to_xyz = np.asarray(
        colour.normalised_primary_matrix(primaries, np.array(EQUAL_ENERGY_WHITE)),
        dtype=np.float64,
    )
    return rgb_to_xyz, np.linalg.inv(rgb_to_xyz)


@lru_cache(maxsize=None)
def gamut_table() -> dict[Gamut, GamutSpec]:
    """Lookup table from gamut to its illuminant and matrices."""
    table = {}
    for gamut, illuminant, colourspace in (
        (Gamut.SRGB, "D65", "sRGB"),
        (Gamut.PROPHOTO_RGB, "D50", "ProPhoto RGB"),
        (Gamut.ACES2065_1, "D60", "ACES2065-1"),
        (Gamut.ACES_AP1, "D60", "ACEScg"),
        (Gamut.REC2020, "D65", "ITU-R BT.2020"),
    ):
        fwd, inv = _colourspace_matrices(colourspace)
        table[gamut] = GamutSpec(illuminant, fwd, inv)

    fwd, inv = _equal_energy_rgb_matrices()
    table[Gamut.ERGB] = GamutSpec("E", fwd, inv)
    table[Gamut.XYZ] = GamutSpec("E", np.eye(3), np.eye(3))
    return table


def target_xyz_to_rgb(name: str) -> np.ndarray:
    """XYZ -> RGB matrix of a display gamut traced in the abney LUT."""
    return _colourspace_matrices(TARGET_COLOURSPACES[name])[1]


def tabulated_wavelengths() -> np.ndarray:
    """The 5nm grid the colour matching functions are tabulated on."""
    return np.linspace(CIE_LAMBDA_MIN, CIE_LAMBDA_MAX, CIE_SAMPLES)


def fine_wavelengths() -> np.ndarray:
    """Quadrature nodes, three per 5nm segment plus the end point."""
    return np.linspace(CIE_LAMBDA_MIN, CIE_LAMBDA_MAX, CIE_FINE_SAMPLES)


def simpson38_weights(n: int, h: float) -> np.ndarray:
    """Composite Simpson's 3/8 weights for n = 3k + 1 equidistant nodes."""
    if n < 4 or (n - 1) % 3 != 0:
        raise ValueError(f"Simpson 3/8 needs 3k+1 nodes, got {n}")
    weights = np.full(n, 3.0)
    weights[3:-1:3] = 2.0
    weights[0] = weights[-1] = 1.0
    return weights * (3.0 / 8.0 * h)


def cmfs_table() -> np.ndarray:
    """CIE 1931 colour matching functions at 5nm, shape (95, 3)."""
    cmfs = colour.MSDS_CMFS[CMFS_NAME]
    wl = tabulated_wavelengths()
    src_wl = np.asarray(cmfs.wavelengths, dtype=np.float64)
    src = np.asarray(cmfs.values, dtype=np.float64)
    return np.stack([np.interp(wl, src_wl, src[:, k]) for k in range(3)], axis=-1)


def illuminant_table(name: str) -> np.ndarray:
    """Relative spectral power of an illuminant at 5nm, shape (95,)."""
    wl = tabulated_wavelengths()
    if name == "E":
        return np.ones_like(wl)
    if name in colour.SDS_ILLUMINANTS:
        sd = colour.SDS_ILLUMINANTS[name]
    else:
        # D-series illuminants without a tabulated entry (D60)
        xy = colour.CCS_ILLUMINANTS[CMFS_NAME][name]
        sd = colour.sd_CIE_illuminant_D_series(xy)
    return np.interp(
        wl,
        np.asarray(sd.wavelengths, dtype=np.float64),
        np.asarray(sd.values, dtype=np.float64),
    )


@lru_cache(maxsize=None)
def build_basis(gamut: Gamut) -> ColorimetryBasis:
    """Build the immutable colorimetry basis for a gamut.

    Args:
        gamut: Working gamut.

    Returns:
        ColorimetryBasis with weighted RGB response curves over the fine
        wavelength grid and a whitepoint normalized to Y = 1.
    """
    spec = gamut_table().get(gamut) or gamut_table()[DEFAULT_FALLBACK_GAMUT]

    tab_wl = tabulated_wavelengths()
    wl = fine_wavelengths()
    h = (CIE_LAMBDA_MAX - CIE_LAMBDA_MIN) / (CIE_FINE_SAMPLES - 1.0)

    cmf5 = cmfs_table()
    cmf = np.stack([np.interp(wl, tab_wl, cmf5[:, k]) for k in range(3)], axis=0)
    illum = np.interp(wl, tab_wl, illuminant_table(spec.illuminant))
    weights = simpson38_weights(CIE_FINE_SAMPLES, h)

    # Scale the illuminant so a perfect white reflector integrates to Y = 1
    illum = illum / np.sum(cmf[1] * illum * weights)

    xyz_table = cmf * (illum * weights)  # (3, N_fine)
    rgb_table = spec.xyz_to_rgb @ xyz_table
    whitepoint = xyz_table.sum(axis=1)

    arrays = {
        "wavelengths": wl,
        "rgb_table": np.ascontiguousarray(rgb_table),
        "rgb_to_xyz": np.array(spec.rgb_to_xyz, dtype=np.float64),
        "xyz_to_rgb": np.array(spec.xyz_to_rgb, dtype=np.float64),
        "whitepoint": whitepoint,
    }
    for arr in arrays.values():
        arr.setflags(write=False)

    logger.debug(
        "Basis %s: illuminant %s, whitepoint XYZ=(%.4f, %.4f, %.4f)",
        gamut.value, spec.illuminant, *whitepoint,
    )
    return ColorimetryBasis(gamut=gamut, illuminant=spec.illuminant, **arrays)
