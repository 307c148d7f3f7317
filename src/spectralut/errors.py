"""Custom exception hierarchy for SpectraLUT."""


class SpectraLutError(Exception):
    """Base exception for all SpectraLUT errors."""


class InputError(SpectraLutError):
    """Errors related to required input files."""


class BrightnessMapError(InputError):
    """Missing or malformed maximum-brightness map."""


class ValidationError(SpectraLutError):
    """Input validation failures."""


class FitError(SpectraLutError):
    """Invalid request to the spectral fitter."""


class ExportError(SpectraLutError):
    """Errors during LUT export."""


class LUTFormatError(ExportError):
    """Invalid or corrupted LUT file format."""


class LUTWriteError(ExportError):
    """An output file could not be written."""


class PipelineError(SpectraLutError):
    """Errors during pipeline execution."""
