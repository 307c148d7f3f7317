"""Default configuration, constants, and limits for SpectraLUT."""

# --- Security limits ---
MIN_RESOLUTION = 8  # Smallest grid that still yields two wavelength halves
MAX_RESOLUTION = 4096  # 4096^2 ~ 16.8M fits
MAX_BRIGHTNESS_MAP_DIMENSION = 8192

# --- Spectral discretization ---
CIE_SAMPLES = 95  # 5nm tabulation
CIE_LAMBDA_MIN = 360.0
CIE_LAMBDA_MAX = 830.0
CIE_FINE_SAMPLES = (CIE_SAMPLES - 1) * 3 + 1  # Simpson 3/8 needs 3k+1 nodes
CMFS_NAME = "CIE 1931 2 Degree Standard Observer"

# --- Spectral locus boundary ---
LOCUS_LAMBDA_MIN = 380.0
LOCUS_LAMBDA_MAX = 700.0
LOCUS_LAMBDA_STEP = 5.0
EQUAL_ENERGY_WHITE = (1.0 / 3.0, 1.0 / 3.0)

# --- Gauss-Newton solver ---
FIT_MAX_ITERATIONS = 40
FIT_JACOBIAN_EPSILON = 1e-4
FIT_PIVOT_TOLERANCE = 1e-15
FIT_CONVERGENCE_TOL = 1e-6  # On the squared residual norm
FIT_COEFF_LIMIT = 1000.0
FIT_INITIAL_COEFFS = (0.0, 1.0, 0.0)

# --- Canonical form ---
CANONICAL_EPSILON = 1e-12
CURVATURE_SCALE = 1e5  # c0 is stored premultiplied so it survives half floats

# --- Brightness scaling ---
BRIGHTNESS_SCALE = 0.5
BRIGHTNESS_FLOOR = 0.001

# --- Scatter binning ---
SCATTER_DIVISOR = 4  # Scatter grid is (R/4) x (R/4)
WAVELENGTH_WARP_MIN = 400.0
WAVELENGTH_WARP_MAX = 700.0
WAVELENGTH_WARP_SLOPE = 2.0  # Logistic slope; derivative 1 at the centre

# --- LUT file format ---
LUT_MAGIC = 1234
LUT_VERSION = 2
LUT_LEGACY_VERSION = 1
DATATYPE_HALF = 0
DATATYPE_FLOAT = 1
SPECTRA_CHANNELS = 4
ABNEY_CHANNELS = 2
SPECTRA_FILENAME = "spectra.lut"
ABNEY_FILENAME = "abney.lut"
DEFAULT_BRIGHTNESS_MAP = "macadam.lut"

# --- Validation ---
QUANTIZATION_WARN_THRESHOLD = 0.1
VALIDATION_CHUNK_SIZE = 4096  # Cells re-evaluated per batch

# --- Process exit codes ---
EXIT_PIPELINE_ERROR = 1
EXIT_INPUT_ERROR = 3
EXIT_EXPORT_ERROR = 4
