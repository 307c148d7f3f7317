"""SpectraLUT: offline compiler for spectral upsampling lookup tables."""

__version__ = "0.1.0"
