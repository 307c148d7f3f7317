"""Packing and writing of the spectra and abney LUTs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import numpy as np

from spectralut.config import (
    ABNEY_CHANNELS,
    ABNEY_FILENAME,
    CURVATURE_SCALE,
    SPECTRA_CHANNELS,
    SPECTRA_FILENAME,
)
from spectralut.core.types import GamutBoundaries, LutDataType, LutGrid, SpectraAux
from spectralut.errors import LUTWriteError
from spectralut.io.lutfile import write_lut
from spectralut.io.pfm import write_pfm

logger = logging.getLogger(__name__)


def pack_spectra(grid: LutGrid, aux: SpectraAux = SpectraAux.SATURATION) -> np.ndarray:
    """(R, R, 4) spectra payload: c0 * 1e5, y, l, and the auxiliary scalar.

    The auxiliary channel is the saturation bin centre or the fit residual.
    Unpopulated cells are zero.
    """
    R = grid.resolution
    out = np.zeros((R, R, SPECTRA_CHANNELS), dtype=np.float32)
    out[..., 0] = grid.canonical[..., 0] * CURVATURE_SCALE
    out[..., 1] = grid.canonical[..., 1]
    out[..., 2] = grid.canonical[..., 2]
    if aux == SpectraAux.RESIDUAL:
        out[..., 3] = grid.residual
    else:
        out[..., 3] = grid.bin_centers[..., 1]
    out[~grid.populated] = 0.0
    return out


def pack_abney(filled: np.ndarray, boundaries: GamutBoundaries) -> np.ndarray:
    """(n, n + 1, 2) abney payload.

    Columns 0..n-1 hold the inpainted (x, y) per (wavelength, saturation)
    bin; the extra last column holds the normalized rec709 and rec2020
    boundaries of the row.
    """
    n = filled.shape[0]
    out = np.zeros((n, n + 1, ABNEY_CHANNELS), dtype=np.float32)
    out[:, :n, :] = filled[..., :2]
    out[:, n, :] = boundaries.normalized()[:, :2]
    return out


def abney_debug_image(abney: np.ndarray) -> np.ndarray:
    """(n, n + 1, 3) image of the abney payload for PFM inspection."""
    n = abney.shape[0]
    img = np.zeros(abney.shape[:2] + (3,), dtype=np.float32)
    img[..., :2] = abney
    img[:, :n, 2] = 1.0 - abney[:, :n, 0] - abney[:, :n, 1]
    return img


def export_luts(
    output_dir: Path,
    spectra: np.ndarray,
    abney: np.ndarray,
    spectra_dtype: LutDataType = LutDataType.HALF,
    abney_pfm: Optional[Path] = None,
    spectra_pfm: Optional[Path] = None,
) -> dict[str, Path]:
    """Write both LUTs and the optional PFM debug dumps.

    Raises:
        LUTWriteError: If any output cannot be written.
    """
    output_dir = Path(output_dir)
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise LUTWriteError(f"Cannot create output directory {output_dir}: {e}") from e

    paths = {
        "spectra": write_lut(output_dir / SPECTRA_FILENAME, spectra, spectra_dtype),
        "abney": write_lut(output_dir / ABNEY_FILENAME, abney, LutDataType.HALF),
    }
    if abney_pfm is not None:
        paths["abney_pfm"] = write_pfm(abney_pfm, abney_debug_image(abney))
    if spectra_pfm is not None:
        paths["spectra_pfm"] = write_pfm(spectra_pfm, spectra[..., :3])

    for name, path in paths.items():
        logger.info("Wrote %s: %s", name, path)
    return paths
