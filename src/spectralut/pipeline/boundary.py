"""Display-gamut boundaries along the saturation axis of the abney grid.

For every wavelength row, walk increasing saturation and record the first
column whose chromaticity falls outside each target display gamut.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from spectralut.color.basis import ColorimetryBasis, target_xyz_to_rgb
from spectralut.core.types import GamutBoundaries

logger = logging.getLogger(__name__)

DEFAULT_TARGET_GAMUTS = ("rec709", "rec2020")


def trace_boundaries(
    filled: np.ndarray,
    matrices: dict[str, np.ndarray],
) -> GamutBoundaries:
    """Trace boundaries given explicit chromaticity -> target RGB matrices.

    Args:
        filled: (n, n, >=2) filled scatter grid; channels 0 and 1 are (x, y).
        matrices: Target name -> (3, 3) matrix applied to (x, y, 1-x-y).

    Returns:
        GamutBoundaries with the first outside column per row and gamut.
        Rows that never leave a gamut record index 0 and ``found`` False.
    """
    x = filled[..., 0].astype(np.float64)
    y = filled[..., 1].astype(np.float64)
    xyz = np.stack([x, y, 1.0 - x - y], axis=-1)

    names = tuple(matrices)
    rows = filled.shape[0]
    index = np.zeros((rows, len(names)), dtype=np.int64)
    found = np.zeros((rows, len(names)), dtype=bool)

    for g, name in enumerate(names):
        rgb = xyz @ np.asarray(matrices[name], dtype=np.float64).T
        outside = np.any(rgb < 0.0, axis=-1)  # (n, n)
        found[:, g] = outside.any(axis=1)
        index[:, g] = np.where(found[:, g], np.argmax(outside, axis=1), 0)

    return GamutBoundaries(names=names, index=index, found=found)


def trace_gamut_boundaries(
    filled: np.ndarray,
    basis: ColorimetryBasis,
    targets: Optional[tuple[str, ...]] = None,
) -> GamutBoundaries:
    """Trace rec709/rec2020 boundaries through the filled abney grid.

    Chromaticities are in the working gamut's space, so they pass through
    the basis' RGB -> XYZ matrix before the target's XYZ -> RGB matrix.
    """
    targets = targets or DEFAULT_TARGET_GAMUTS
    matrices = {
        name: target_xyz_to_rgb(name) @ basis.rgb_to_xyz for name in targets
    }
    bounds = trace_boundaries(filled, matrices)
    for g, name in enumerate(bounds.names):
        logger.debug(
            "Boundary %s: found in %d/%d rows",
            name, int(bounds.found[:, g].sum()), filled.shape[0],
        )
    return bounds
