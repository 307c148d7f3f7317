"""Quality metrics for a LUT build.

Besides fit residuals, each populated cell is re-evaluated the way a
downstream sampler sees it: canonical coefficients quantized to their
stored half-float encoding, evaluated over nanometres, and integrated
against the basis. Cells whose quantized error exceeds both their fit
residual and QUANTIZATION_WARN_THRESHOLD are counted and logged.
"""

from __future__ import annotations

import logging

import numpy as np

from spectralut.color.basis import ColorimetryBasis
from spectralut.config import QUANTIZATION_WARN_THRESHOLD, VALIDATION_CHUNK_SIZE
from spectralut.core.canonical import canonical_reflectance, quantize_canonical
from spectralut.core.types import GridBuildResult, QualityMetrics, ScatterBinGrid
from spectralut.pipeline.inpaint import initialized_mask

logger = logging.getLogger(__name__)


def quantized_residuals(
    canonical: np.ndarray,
    targets: np.ndarray,
    basis: ColorimetryBasis,
    chunk_size: int = VALIDATION_CHUNK_SIZE,
) -> np.ndarray:
    """RGB error of half-quantized canonical spectra against their targets.

    Args:
        canonical: (M, 3) canonical coefficients.
        targets: (M, 3) fitting targets.
        basis: Basis the fits were made under.
        chunk_size: Cells evaluated per batch.

    Returns:
        (M,) Euclidean RGB error, inf where the stored values overflow.
    """
    errors = np.empty(len(canonical), dtype=np.float64)
    for start in range(0, len(canonical), chunk_size):
        stop = start + chunk_size
        q = quantize_canonical(canonical[start:stop])
        with np.errstate(invalid="ignore", over="ignore"):
            refl = canonical_reflectance(q, basis.wavelengths)
            rgb = basis.spectrum_to_rgb(refl)
            err = np.linalg.norm(rgb - targets[start:stop], axis=-1)
        errors[start:stop] = np.where(np.isfinite(err), err, np.inf)
    return errors


def compute_metrics(
    build: GridBuildResult,
    basis: ColorimetryBasis,
    filled: np.ndarray,
) -> QualityMetrics:
    """Summarize fit quality, quantization error and scatter coverage."""
    grid = build.grid
    scatter: ScatterBinGrid = build.scatter
    populated = grid.populated

    metrics = QualityMetrics(
        inside_cells=build.inside_cells,
        populated_cells=int(populated.sum()),
        singular_fits=build.singular_fits,
        occupied_bins=int(scatter.occupied.sum()),
        filled_bins=int(initialized_mask(filled).sum()),
        total_bins=scatter.size * scatter.size,
    )
    if metrics.populated_cells == 0:
        logger.warning("No populated cells; metrics are empty")
        return metrics

    residual = grid.residual[populated]
    metrics.mean_residual = float(np.mean(residual))
    metrics.p95_residual = float(np.percentile(residual, 95))
    metrics.max_residual = float(np.max(residual))

    quantized = quantized_residuals(
        grid.canonical[populated], build.targets[populated], basis
    )
    finite = np.isfinite(quantized)
    if finite.any():
        metrics.mean_quantized_residual = float(np.mean(quantized[finite]))
        metrics.max_quantized_residual = float(np.max(quantized[finite]))

    bad = ~finite | ((quantized > residual) & (quantized > QUANTIZATION_WARN_THRESHOLD))
    metrics.quantization_warnings = int(bad.sum())
    if metrics.quantization_warnings:
        logger.warning(
            "%d cells lose accuracy when stored at half precision (error > %.2f)",
            metrics.quantization_warnings, QUANTIZATION_WARN_THRESHOLD,
        )
    return metrics
