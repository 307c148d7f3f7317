"""Core data types and enums for SpectraLUT.

CRITICAL CONVENTION:
    Dense chromaticity grids have shape (R, R, ...) indexed as grid[j, i],
    where cell (i, j) samples chromaticity (x, y) = (i / R, j / R).
    Row j therefore varies with y and column i with x; serialized payloads
    are written in this row-major order.

    Scatter grids have shape (n, n, ...) with n = R // 4, indexed as
    scatter[wavelength_bin, saturation_bin].
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

import numpy as np

from spectralut.config import FIT_CONVERGENCE_TOL, SCATTER_DIVISOR


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Gamut(str, Enum):
    """Working gamut the spectra are fitted in."""
    SRGB = "srgb"
    PROPHOTO_RGB = "prophotorgb"
    ACES2065_1 = "aces2065_1"
    ACES_AP1 = "aces_ap1"
    REC2020 = "rec2020"
    ERGB = "ergb"
    XYZ = "xyz"


class BrightnessInterpolation(str, Enum):
    """Lookup mode for the maximum-brightness map."""
    NEAREST = "nearest"
    BILINEAR = "bilinear"


class SpectraAux(str, Enum):
    """Content of the fourth spectra LUT channel."""
    SATURATION = "saturation"
    RESIDUAL = "residual"


class LutDataType(str, Enum):
    """Sample encoding of a LUT payload."""
    HALF = "half"
    FLOAT = "float"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FitResult:
    """Outcome of fitting one target RGB triple."""
    coeffs: np.ndarray  # (3,) A, B, C over normalized wavelength
    residual: float     # residual norm of the last accepted step
    iterations: int
    singular: bool = False

    @property
    def ok(self) -> bool:
        """False when the Jacobian went singular and the fit was abandoned."""
        return not self.singular

    @property
    def converged(self) -> bool:
        return self.ok and self.residual < math.sqrt(FIT_CONVERGENCE_TOL)


@dataclass
class BrightnessMap:
    """Maximum realizable brightness over the chromaticity plane."""
    values: np.ndarray  # (height, width) float32

    @property
    def width(self) -> int:
        return int(self.values.shape[1])

    @property
    def height(self) -> int:
        return int(self.values.shape[0])


@dataclass
class LutGrid:
    """Dense per-chromaticity fit results."""
    coeffs: np.ndarray       # (R, R, 3) float64
    canonical: np.ndarray    # (R, R, 3) float64, (c0, y, l)
    residual: np.ndarray     # (R, R) float64
    bin_centers: np.ndarray  # (R, R, 2) float32, (lambda, saturation) in [0, 1]
    populated: np.ndarray    # (R, R) bool

    @property
    def resolution(self) -> int:
        return int(self.populated.shape[0])

    @classmethod
    def empty(cls, resolution: int) -> "LutGrid":
        R = resolution
        return cls(
            coeffs=np.zeros((R, R, 3), dtype=np.float64),
            canonical=np.zeros((R, R, 3), dtype=np.float64),
            residual=np.zeros((R, R), dtype=np.float64),
            bin_centers=np.zeros((R, R, 2), dtype=np.float32),
            populated=np.zeros((R, R), dtype=bool),
        )


@dataclass
class ScatterBinGrid:
    """Sparse (wavelength, saturation) histogram of fitted samples.

    Each occupied bin keeps the one sample closest to the bin centre.
    Payload channels: x, y, z, lambda coordinate, saturation coordinate.
    """
    data: np.ndarray      # (n, n, 5) float32
    distance: np.ndarray  # (n, n) float64, inf where empty

    @property
    def size(self) -> int:
        return int(self.distance.shape[0])

    @property
    def occupied(self) -> np.ndarray:
        return np.isfinite(self.distance)

    @classmethod
    def empty(cls, size: int) -> "ScatterBinGrid":
        return cls(
            data=np.zeros((size, size, 5), dtype=np.float32),
            distance=np.full((size, size), np.inf, dtype=np.float64),
        )


@dataclass
class GamutBoundaries:
    """Per-row saturation index where each target gamut is left."""
    names: tuple[str, ...]
    index: np.ndarray  # (n, len(names)) int64, 0 where not found
    found: np.ndarray  # (n, len(names)) bool

    def for_gamut(self, name: str) -> np.ndarray:
        return self.index[:, self.names.index(name)]

    def normalized(self) -> np.ndarray:
        """Boundaries as saturation coordinates in [0, 1], 0 where not found."""
        n = self.index.shape[0]
        return np.where(self.found, (self.index - 0.5) / n, 0.0).astype(np.float32)


@dataclass
class GridBuildResult:
    """Everything the grid stage produces."""
    grid: LutGrid
    scatter: ScatterBinGrid
    targets: np.ndarray  # (R, R, 3) brightness-scaled fitting targets
    inside_cells: int = 0
    singular_fits: int = 0


@dataclass
class QualityMetrics:
    """Fit and quantization statistics for a build."""
    inside_cells: int = 0
    populated_cells: int = 0
    singular_fits: int = 0
    mean_residual: float = 0.0
    p95_residual: float = 0.0
    max_residual: float = 0.0
    mean_quantized_residual: float = 0.0
    max_quantized_residual: float = 0.0
    quantization_warnings: int = 0
    occupied_bins: int = 0
    filled_bins: int = 0
    total_bins: int = 0


@dataclass
class PipelineConfig:
    """Configuration for a full LUT build."""
    resolution: int = 512
    gamut: Gamut = Gamut.XYZ

    # Input
    brightness_map_path: Path = Path("macadam.lut")
    brightness_interpolation: BrightnessInterpolation = BrightnessInterpolation.NEAREST

    # Output
    output_path: Optional[Path] = None  # Abney debug dump (PFM)
    output_dir: Optional[Path] = None   # Defaults to output_path's directory
    spectra_aux: SpectraAux = SpectraAux.SATURATION
    spectra_dtype: LutDataType = LutDataType.HALF
    spectra_pfm_path: Optional[Path] = None

    # Execution
    workers: Optional[int] = None  # None = os.cpu_count()
    generate_metrics: bool = True

    @property
    def scatter_size(self) -> int:
        return self.resolution // SCATTER_DIVISOR


@dataclass
class PipelineResult:
    """Result from a full pipeline run."""
    grid: LutGrid
    scatter: ScatterBinGrid
    filled: np.ndarray  # (n, n, 5) inpainted scatter payload
    boundaries: GamutBoundaries
    metrics: QualityMetrics
    diagnostics: dict = field(default_factory=dict)
    output_paths: dict = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Progress callback type
# ---------------------------------------------------------------------------

ProgressCallback = Callable[[str, float, str], None]
"""Callback signature: (stage_name, fraction_complete, message)."""
