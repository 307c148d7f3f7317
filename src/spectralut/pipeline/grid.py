"""Dense chromaticity grid fitting and (wavelength, saturation) binning.

Every cell (i, j) of an R x R grid samples chromaticity (i/R, j/R). Cells
inside the visible locus are fitted with the spectral fitter; each fit is
also binned into the sparse scatter grid indexed by dominant wavelength and
saturation.

Rows are fitted concurrently on a thread pool (the numba kernel releases
the GIL). Each row returns its own scatter candidates and a single serial
pass then keeps the best candidate per bin, so no bin is ever contended
and the result does not depend on scheduling.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.special import expit

from spectralut.color.basis import ColorimetryBasis
from spectralut.color.locus import GamutClassifier, SpectralLocus, default_locus
from spectralut.config import (
    BRIGHTNESS_FLOOR,
    BRIGHTNESS_SCALE,
    EQUAL_ENERGY_WHITE,
    SCATTER_DIVISOR,
    WAVELENGTH_WARP_MAX,
    WAVELENGTH_WARP_MIN,
    WAVELENGTH_WARP_SLOPE,
)
from spectralut.core.canonical import coeffs_to_canonical
from spectralut.core.fitter import SpectralFitter
from spectralut.core.types import (
    BrightnessInterpolation,
    BrightnessMap,
    GridBuildResult,
    LutGrid,
    ProgressCallback,
    ScatterBinGrid,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Brightness map lookup
# ---------------------------------------------------------------------------

def lookup_brightness(
    bmap: BrightnessMap,
    x: np.ndarray,
    y: np.ndarray,
    interpolation: BrightnessInterpolation = BrightnessInterpolation.NEAREST,
) -> np.ndarray:
    """Sample the brightness map at chromaticities in [0, 1)^2.

    Nearest lookup truncates ``x * width`` to a texel index; bilinear
    lookup blends the four texels around ``(x * width, y * height)``.
    """
    values = bmap.values
    h, w = values.shape
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)

    if interpolation == BrightnessInterpolation.BILINEAR and w >= 2 and h >= 2:
        fx = np.clip(x * w, 0.0, w - 1)
        fy = np.clip(y * h, 0.0, h - 1)
        ix = np.minimum(fx.astype(np.int64), w - 2)
        iy = np.minimum(fy.astype(np.int64), h - 2)
        ux = fx - ix
        uy = fy - iy
        return (
            (1.0 - ux) * (1.0 - uy) * values[iy, ix]
            + ux * (1.0 - uy) * values[iy, ix + 1]
            + ux * uy * values[iy + 1, ix + 1]
            + (1.0 - ux) * uy * values[iy + 1, ix]
        )

    ix = np.clip(np.floor(x * w).astype(np.int64), 0, w - 1)
    iy = np.clip(np.floor(y * h).astype(np.int64), 0, h - 1)
    return values[iy, ix].astype(np.float64)


def brightness_factor(brightness: np.ndarray) -> np.ndarray:
    """Scale applied to (x, y, 1-x-y) to obtain the fitting target."""
    return np.maximum(BRIGHTNESS_FLOOR, BRIGHTNESS_SCALE * np.asarray(brightness))


# ---------------------------------------------------------------------------
# Scatter binning
# ---------------------------------------------------------------------------

@dataclass
class ScatterCoordinates:
    """Continuous and integer scatter-grid coordinates of fitted samples."""
    lam_c: np.ndarray  # wavelength coordinate in bins
    sat_c: np.ndarray  # saturation coordinate in bins
    lam_i: np.ndarray  # wavelength bin (row)
    sat_i: np.ndarray  # saturation bin (column)
    distance: np.ndarray  # squared distance to the bin centre


def wavelength_warp(dominant_wavelength: np.ndarray) -> np.ndarray:
    """Logistic remap of dominant wavelength to (0, 1).

    Centred on the visible range with unit slope at the centre, so typical
    colours keep their resolution while the tails are compressed.
    """
    norm = (np.asarray(dominant_wavelength) - WAVELENGTH_WARP_MIN) / (
        WAVELENGTH_WARP_MAX - WAVELENGTH_WARP_MIN
    )
    return expit(WAVELENGTH_WARP_SLOPE * (2.0 * norm - 1.0))


def scatter_coordinates(
    canonical: np.ndarray,
    saturation: np.ndarray,
    size: int,
) -> ScatterCoordinates:
    """Map canonical coefficients and saturation to scatter-grid bins.

    Negative (or zero) curvature fills wavelength rows [0, size/2),
    positive curvature rows [size/2, size).

    Args:
        canonical: (M, 3) canonical (c0, y, l).
        saturation: (M,) saturation in [0, 1].
        size: Scatter grid size n.
    """
    half = size // 2
    sat_c = size * np.asarray(saturation, dtype=np.float64)
    lam_c = wavelength_warp(canonical[:, 2]) * half

    lam_i = np.clip(np.floor(lam_c), 0, half - 1).astype(np.int64)
    sat_i = np.clip(np.floor(sat_c), 0, size - 1).astype(np.int64)

    positive = canonical[:, 0] > 0.0
    lam_i = np.where(positive, lam_i + half, lam_i)
    lam_c = np.where(positive, lam_c + half, lam_c)
    lam_i = np.clip(lam_i, 0, size - 1)

    distance = (lam_c - lam_i - 0.5) ** 2 + (sat_c - sat_i - 0.5) ** 2
    return ScatterCoordinates(lam_c, sat_c, lam_i, sat_i, distance)


def reduce_scatter_candidates(
    size: int,
    bins: np.ndarray,
    distance: np.ndarray,
    cell_index: np.ndarray,
    payload: np.ndarray,
) -> ScatterBinGrid:
    """Keep the candidate closest to its bin centre for every bin.

    Ties go to the lowest cell index, so the result is independent of the
    order in which candidates were produced.

    Args:
        size: Scatter grid size n.
        bins: (K,) flat bin index, wavelength_bin * n + saturation_bin.
        distance: (K,) distance of each candidate to its bin centre.
        cell_index: (K,) row-major index of the source grid cell.
        payload: (K, 5) candidate payloads.
    """
    scatter = ScatterBinGrid.empty(size)
    if len(bins) == 0:
        return scatter

    order = np.lexsort((cell_index, distance, bins))
    sorted_bins = bins[order]
    _, first = np.unique(sorted_bins, return_index=True)
    winners = order[first]

    rows, cols = np.divmod(bins[winners], size)
    scatter.data[rows, cols] = payload[winners]
    scatter.distance[rows, cols] = distance[winners]
    return scatter


# ---------------------------------------------------------------------------
# Grid build
# ---------------------------------------------------------------------------

@dataclass
class _RowResult:
    """Fits and scatter candidates of one grid row."""
    row: int
    cols: np.ndarray
    targets: np.ndarray
    coeffs: np.ndarray
    residual: np.ndarray
    ok: np.ndarray
    canonical: np.ndarray
    coords: ScatterCoordinates
    inside: int


class LutGridBuilder:
    """Fits the chromaticity grid and bins results into the scatter grid."""

    def __init__(
        self,
        basis: ColorimetryBasis,
        brightness: BrightnessMap,
        resolution: int,
        interpolation: BrightnessInterpolation = BrightnessInterpolation.NEAREST,
        locus: Optional[SpectralLocus] = None,
        fitter: Optional[SpectralFitter] = None,
    ):
        self.basis = basis
        self.brightness = brightness
        self.resolution = int(resolution)
        self.scatter_size = self.resolution // SCATTER_DIVISOR
        self.interpolation = interpolation
        self.locus = locus if locus is not None else default_locus()
        self.classifier = GamutClassifier(basis, self.locus)
        self.fitter = fitter if fitter is not None else SpectralFitter(basis)

    def _process_row(self, j: int) -> _RowResult:
        R = self.resolution
        x = np.arange(R) / R
        y = np.full(R, j / R)
        rgb = np.stack([x, y, 1.0 - x - y], axis=-1)

        m = brightness_factor(
            lookup_brightness(self.brightness, x, y, self.interpolation)
        )
        targets = rgb * m[:, np.newaxis]

        cols = np.flatnonzero(~self.classifier.is_outside(rgb))
        coeffs, residual, ok, _ = self.fitter.fit_many(targets[cols])

        canonical = coeffs_to_canonical(coeffs)
        xy = np.stack([x[cols], y[cols]], axis=-1)
        saturation = self.locus.saturation(xy, EQUAL_ENERGY_WHITE)
        coords = scatter_coordinates(canonical, saturation, self.scatter_size)

        return _RowResult(
            row=j,
            cols=cols,
            targets=targets,
            coeffs=coeffs,
            residual=residual,
            ok=ok,
            canonical=canonical,
            coords=coords,
            inside=len(cols),
        )

    def build(
        self,
        workers: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> GridBuildResult:
        """Fit every grid cell and collect the scatter grid.

        Args:
            workers: Thread count (None = os.cpu_count()).
            progress_callback: Called as rows complete.

        Returns:
            GridBuildResult with the dense grid, scatter grid, and counters.
        """
        R = self.resolution
        n = self.scatter_size
        workers = workers or os.cpu_count() or 1

        grid = LutGrid.empty(R)
        targets = np.zeros((R, R, 3), dtype=np.float64)
        inside = 0
        singular = 0

        bins, dists, cells, payloads = [], [], [], []

        logger.info("Fitting %dx%d grid on %d threads...", R, R, workers)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            for done, row in enumerate(pool.map(self._process_row, range(R)), start=1):
                j = row.row
                targets[j] = row.targets
                inside += row.inside
                singular += int(np.count_nonzero(~row.ok))

                good = row.ok
                cols = row.cols[good]
                c = row.coords
                grid.coeffs[j, cols] = row.coeffs[good]
                grid.canonical[j, cols] = row.canonical[good]
                grid.residual[j, cols] = row.residual[good]
                grid.bin_centers[j, cols, 0] = (c.lam_i[good] + 0.5) / n
                grid.bin_centers[j, cols, 1] = (c.sat_i[good] + 0.5) / n
                grid.populated[j, cols] = True

                x = cols / R
                y = np.full(len(cols), j / R)
                bins.append(c.lam_i[good] * n + c.sat_i[good])
                dists.append(c.distance[good])
                cells.append(j * R + cols)
                payloads.append(np.stack(
                    [x, y, 1.0 - x - y, c.lam_c[good], c.sat_c[good]], axis=-1
                ))

                if progress_callback is not None:
                    progress_callback("fitting", done / R, f"row {done}/{R}")

        if singular:
            logger.warning("%d fits hit a singular Jacobian and were skipped", singular)

        scatter = reduce_scatter_candidates(
            n,
            np.concatenate(bins),
            np.concatenate(dists),
            np.concatenate(cells),
            np.concatenate(payloads).astype(np.float32),
        )
        logger.info(
            "Grid: %d cells inside locus, %d populated, %d/%d scatter bins occupied",
            inside, int(grid.populated.sum()), int(scatter.occupied.sum()), n * n,
        )

        return GridBuildResult(
            grid=grid,
            scatter=scatter,
            targets=targets,
            inside_cells=inside,
            singular_fits=singular,
        )


def build_lut_grid(
    basis: ColorimetryBasis,
    brightness: BrightnessMap,
    resolution: int,
    interpolation: BrightnessInterpolation = BrightnessInterpolation.NEAREST,
    workers: Optional[int] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> GridBuildResult:
    """Convenience wrapper around :class:`LutGridBuilder`."""
    builder = LutGridBuilder(basis, brightness, resolution, interpolation)
    return builder.build(workers=workers, progress_callback=progress_callback)
