"""SpectraLUT CLI application.

Usage:
    createlut <resolution> <output-path> [<gamut>]

Builds spectra.lut and abney.lut for the given gamut and writes an abney
debug dump (PFM) to <output-path>.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TimeElapsedColumn

from spectralut import __version__
from spectralut.color.basis import parse_gamut
from spectralut.config import (
    DEFAULT_BRIGHTNESS_MAP,
    EXIT_EXPORT_ERROR,
    EXIT_INPUT_ERROR,
    EXIT_PIPELINE_ERROR,
    QUANTIZATION_WARN_THRESHOLD,
)
from spectralut.core.types import (
    BrightnessInterpolation,
    LutDataType,
    PipelineConfig,
    SpectraAux,
)
from spectralut.errors import ExportError, InputError, SpectraLutError

app = typer.Typer(
    name="createlut",
    help="Spectral upsampling LUT generator.",
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

# Share of the progress bar given to each pipeline stage
STAGE_WEIGHTS = {
    "inputs": 5,
    "fitting": 80,
    "inpaint": 3,
    "validation": 7,
    "export": 5,
}


def version_callback(value: bool):
    if value:
        console.print(f"SpectraLUT v{__version__}")
        raise typer.Exit()


def _stage_progress(stage: str, fraction: float) -> float:
    """Overall percentage for a fraction of one stage."""
    if stage not in STAGE_WEIGHTS:
        return 0.0
    names = list(STAGE_WEIGHTS)
    base = sum(STAGE_WEIGHTS[k] for k in names[:names.index(stage)])
    return base + STAGE_WEIGHTS[stage] * fraction


@app.command()
def createlut(
    resolution: int = typer.Argument(..., help="Grid resolution R (spectra.lut is R x R)."),
    output: Path = typer.Argument(..., help="Abney debug dump path (PFM)."),
    gamut: str = typer.Argument("xyz", help="Working gamut (srgb, prophotorgb, aces2065_1, aces_ap1, rec2020, ergb, xyz)."),
    macadam: Path = typer.Option(
        Path(DEFAULT_BRIGHTNESS_MAP), "--macadam", help="Maximum-brightness map (.lut).",
    ),
    output_dir: Optional[Path] = typer.Option(
        None, "--output-dir", "-d",
        help="Directory for spectra.lut and abney.lut (default: output's directory).",
    ),
    workers: Optional[int] = typer.Option(
        None, "--workers", "-j", min=1, help="Fitting threads (default: CPU count).",
    ),
    interp: str = typer.Option(
        "nearest", "--interp", help="Brightness map lookup: nearest or bilinear.",
    ),
    aux: str = typer.Option(
        "saturation", "--aux", help="Fourth spectra channel: saturation or residual.",
    ),
    float32: bool = typer.Option(False, "--float32", help="Store spectra.lut as float32."),
    spectra_pfm: Optional[Path] = typer.Option(
        None, "--spectra-pfm", help="Also dump the spectra coefficients as PFM.",
    ),
    no_metrics: bool = typer.Option(False, "--no-metrics", help="Skip quantization metrics."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    version: bool = typer.Option(
        False, "--version", "-V", help="Show version and exit.",
        callback=version_callback, is_eager=True,
    ),
):
    """Generate spectral upsampling LUTs for a working gamut."""
    if verbose:
        logging.getLogger("spectralut").setLevel(logging.DEBUG)

    try:
        interpolation = BrightnessInterpolation(interp.strip().lower())
    except ValueError:
        raise typer.BadParameter("Interpolation must be one of: nearest, bilinear.")
    try:
        spectra_aux = SpectraAux(aux.strip().lower())
    except ValueError:
        raise typer.BadParameter("Aux channel must be one of: saturation, residual.")

    config = PipelineConfig(
        resolution=resolution,
        gamut=parse_gamut(gamut),
        brightness_map_path=macadam,
        brightness_interpolation=interpolation,
        output_path=output,
        output_dir=output_dir,
        spectra_aux=spectra_aux,
        spectra_dtype=LutDataType.FLOAT if float32 else LutDataType.HALF,
        spectra_pfm_path=spectra_pfm,
        workers=workers,
        generate_metrics=not no_metrics,
    )

    from spectralut.pipeline.runner import run_pipeline

    console.print(f"\n[bold]SpectraLUT Generation[/bold]")
    console.print(f"  Resolution: {resolution}x{resolution} = {resolution**2:,} cells")
    console.print(f"  Gamut:      {config.gamut.value}")
    console.print(f"  Brightness: {macadam}")
    console.print()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Generating LUTs...", total=100)

        def on_progress(stage: str, fraction: float, message: str):
            progress.update(task, completed=_stage_progress(stage, fraction),
                            description=f"{stage}: {message}" if message else stage)

        try:
            result = run_pipeline(config, progress_callback=on_progress)
            progress.update(task, completed=100, description="Complete")
        except InputError as e:
            err_console.print(f"\n[red]Input error:[/red] {e}")
            raise typer.Exit(code=EXIT_INPUT_ERROR)
        except ExportError as e:
            err_console.print(f"\n[red]Export error:[/red] {e}")
            raise typer.Exit(code=EXIT_EXPORT_ERROR)
        except SpectraLutError as e:
            err_console.print(f"\n[red]Error:[/red] {e}")
            raise typer.Exit(code=EXIT_PIPELINE_ERROR)

    console.print()
    if config.generate_metrics:
        _print_metrics(result.metrics)

    for name, path in result.output_paths.items():
        console.print(f"[green]{name}:[/green] {path}")

    total_time = result.diagnostics.get("total_time", 0)
    console.print(f"[dim]Total time: {total_time:.2f}s[/dim]\n")


def _print_metrics(metrics):
    """Display quality metrics in a formatted table."""
    table = Table(title="Quality Metrics", show_header=True, header_style="bold")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_column("Status", justify="center")

    def residual_status(val):
        if val < 1e-3:
            return "[green]Excellent[/green]"
        elif val < 1e-2:
            return "[green]Good[/green]"
        elif val < QUANTIZATION_WARN_THRESHOLD:
            return "[yellow]Fair[/yellow]"
        else:
            return "[red]Poor[/red]"

    populated_pct = 100.0 * metrics.populated_cells / max(metrics.inside_cells, 1)
    table.add_row("Inside Locus", f"{metrics.inside_cells:,}", "")
    table.add_row("Populated", f"{metrics.populated_cells:,} ({populated_pct:.1f}%)",
                  "[green]OK[/green]" if metrics.singular_fits == 0 else "[yellow]Warning[/yellow]")
    table.add_row("Singular Fits", f"{metrics.singular_fits:,}", "")
    table.add_row("", "", "")
    table.add_row("Mean Residual", f"{metrics.mean_residual:.2e}", residual_status(metrics.mean_residual))
    table.add_row("P95 Residual", f"{metrics.p95_residual:.2e}", residual_status(metrics.p95_residual))
    table.add_row("Max Residual", f"{metrics.max_residual:.2e}", residual_status(metrics.max_residual))
    table.add_row("Mean Quantized", f"{metrics.mean_quantized_residual:.2e}",
                  residual_status(metrics.mean_quantized_residual))
    table.add_row("Max Quantized", f"{metrics.max_quantized_residual:.2e}",
                  residual_status(metrics.max_quantized_residual))
    table.add_row("Quantization Warnings", f"{metrics.quantization_warnings:,}",
                  "[green]OK[/green]" if metrics.quantization_warnings == 0 else "[yellow]Warning[/yellow]")
    table.add_row("", "", "")
    table.add_row("Occupied Bins", f"{metrics.occupied_bins:,} / {metrics.total_bins:,}", "")
    table.add_row("Filled Bins", f"{metrics.filled_bins:,} / {metrics.total_bins:,}",
                  "[green]OK[/green]" if metrics.filled_bins == metrics.total_bins else "[yellow]Gaps[/yellow]")

    console.print(table)


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
