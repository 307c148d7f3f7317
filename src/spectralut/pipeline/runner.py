"""Pipeline runner: orchestrates all stages from inputs to LUT files.

This is the single entry point for the CLI and for library use.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

from spectralut.color.basis import build_basis
from spectralut.config import MAX_RESOLUTION, MIN_RESOLUTION
from spectralut.core.types import (
    PipelineConfig,
    PipelineResult,
    ProgressCallback,
    QualityMetrics,
)
from spectralut.errors import ValidationError
from spectralut.io.lutfile import read_brightness_map
from spectralut.pipeline.boundary import trace_gamut_boundaries
from spectralut.pipeline.export import export_luts, pack_abney, pack_spectra
from spectralut.pipeline.grid import LutGridBuilder
from spectralut.pipeline.inpaint import fill
from spectralut.pipeline.validation import compute_metrics

logger = logging.getLogger(__name__)


def _emit_progress(
    callback: Optional[ProgressCallback],
    stage: str,
    fraction: float,
    message: str = "",
) -> None:
    """Emit progress update if callback is provided."""
    if callback is not None:
        callback(stage, fraction, message)


def validate_config(config: PipelineConfig) -> None:
    """Reject configurations that cannot produce a LUT.

    Raises:
        ValidationError: On an out-of-range resolution or worker count.
    """
    if not MIN_RESOLUTION <= config.resolution <= MAX_RESOLUTION:
        raise ValidationError(
            f"Resolution {config.resolution} out of range "
            f"[{MIN_RESOLUTION}, {MAX_RESOLUTION}]"
        )
    if config.workers is not None and config.workers < 1:
        raise ValidationError(f"Worker count must be >= 1, got {config.workers}")


def resolve_output_dir(config: PipelineConfig) -> Path:
    """Directory receiving spectra.lut and abney.lut."""
    if config.output_dir is not None:
        return Path(config.output_dir)
    if config.output_path is not None:
        return Path(config.output_path).parent
    return Path.cwd()


def run_pipeline(
    config: PipelineConfig,
    progress_callback: Optional[ProgressCallback] = None,
) -> PipelineResult:
    """Run the complete LUT generation pipeline.

    Stages:
        1. Inputs: validate the configuration, load the brightness map
        2. Basis: tabulate the gamut's colorimetry
        3. Fitting: fit the chromaticity grid, bin into the scatter grid
        4. Inpaint: fill empty scatter bins
        5. Boundaries: trace rec709/rec2020 boundaries per wavelength row
        6. Validate (optional): quantized round-trip metrics
        7. Export: write spectra.lut, abney.lut and the debug dumps

    Nothing is written unless every earlier stage succeeded.

    Args:
        config: Full pipeline configuration.
        progress_callback: (stage_name, fraction, message) callback.

    Returns:
        PipelineResult with grids, metrics, and diagnostics.
    """
    t_start = time.perf_counter()
    diagnostics = {}

    # ---------------------------------------------------------------
    # Stage 1: Inputs
    # ---------------------------------------------------------------
    _emit_progress(progress_callback, "inputs", 0.0, "Loading brightness map...")
    validate_config(config)

    t0 = time.perf_counter()
    brightness = read_brightness_map(config.brightness_map_path)
    diagnostics["brightness_map"] = f"{brightness.width}x{brightness.height}"
    diagnostics["input_time"] = time.perf_counter() - t0
    _emit_progress(progress_callback, "inputs", 1.0, "Brightness map loaded")

    # ---------------------------------------------------------------
    # Stage 2: Basis
    # ---------------------------------------------------------------
    t0 = time.perf_counter()
    basis = build_basis(config.gamut)
    diagnostics["gamut"] = config.gamut.value
    diagnostics["illuminant"] = basis.illuminant
    diagnostics["basis_time"] = time.perf_counter() - t0
    logger.info(
        "Basis: %s under %s, %d samples", config.gamut.value,
        basis.illuminant, basis.num_samples,
    )

    # ---------------------------------------------------------------
    # Stage 3: Fitting
    # ---------------------------------------------------------------
    _emit_progress(progress_callback, "fitting", 0.0, "Fitting spectra...")
    t0 = time.perf_counter()
    builder = LutGridBuilder(
        basis,
        brightness,
        config.resolution,
        interpolation=config.brightness_interpolation,
    )
    build = builder.build(workers=config.workers, progress_callback=progress_callback)
    diagnostics["fit_time"] = time.perf_counter() - t0
    diagnostics["inside_cells"] = build.inside_cells
    diagnostics["singular_fits"] = build.singular_fits
    logger.info("Fitting: %.2fs", diagnostics["fit_time"])

    # ---------------------------------------------------------------
    # Stage 4: Inpaint
    # ---------------------------------------------------------------
    _emit_progress(progress_callback, "inpaint", 0.0, "Filling scatter grid...")
    t0 = time.perf_counter()
    filled = fill(build.scatter.data)
    diagnostics["inpaint_time"] = time.perf_counter() - t0
    _emit_progress(progress_callback, "inpaint", 1.0, "Scatter grid filled")

    # ---------------------------------------------------------------
    # Stage 5: Boundaries
    # ---------------------------------------------------------------
    t0 = time.perf_counter()
    boundaries = trace_gamut_boundaries(filled, basis)
    diagnostics["boundary_time"] = time.perf_counter() - t0

    # ---------------------------------------------------------------
    # Stage 6: Validate
    # ---------------------------------------------------------------
    if config.generate_metrics:
        _emit_progress(progress_callback, "validation", 0.0, "Computing metrics...")
        t0 = time.perf_counter()
        metrics = compute_metrics(build, basis, filled)
        diagnostics["validation_time"] = time.perf_counter() - t0
        _emit_progress(
            progress_callback, "validation", 1.0,
            f"mean residual={metrics.mean_residual:.2e}",
        )
        logger.info("Validation: %.2fs", diagnostics["validation_time"])
    else:
        metrics = QualityMetrics(
            inside_cells=build.inside_cells,
            populated_cells=int(build.grid.populated.sum()),
            singular_fits=build.singular_fits,
            occupied_bins=int(build.scatter.occupied.sum()),
            total_bins=build.scatter.size ** 2,
        )

    # ---------------------------------------------------------------
    # Stage 7: Export
    # ---------------------------------------------------------------
    _emit_progress(progress_callback, "export", 0.0, "Writing LUTs...")
    t0 = time.perf_counter()
    output_paths = export_luts(
        resolve_output_dir(config),
        pack_spectra(build.grid, config.spectra_aux),
        pack_abney(filled, boundaries),
        spectra_dtype=config.spectra_dtype,
        abney_pfm=config.output_path,
        spectra_pfm=config.spectra_pfm_path,
    )
    diagnostics["export_time"] = time.perf_counter() - t0
    _emit_progress(progress_callback, "export", 1.0, "LUTs written")
    logger.info("Export: %.2fs", diagnostics["export_time"])

    total_time = time.perf_counter() - t_start
    diagnostics["total_time"] = total_time
    logger.info("Pipeline complete: %.2fs total", total_time)

    return PipelineResult(
        grid=build.grid,
        scatter=build.scatter,
        filled=filled,
        boundaries=boundaries,
        metrics=metrics,
        diagnostics=diagnostics,
        output_paths=output_paths,
    )
