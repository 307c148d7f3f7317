"""Shared fixtures for SpectraLUT tests."""

from __future__ import annotations

import numpy as np
import pytest
from pathlib import Path

from spectralut.core.types import BrightnessMap, Gamut


@pytest.fixture
def xyz_basis():
    """Colorimetry basis of the XYZ working space (illuminant E)."""
    from spectralut.color.basis import build_basis
    return build_basis(Gamut.XYZ)


@pytest.fixture
def srgb_basis():
    """Colorimetry basis of linear sRGB (illuminant D65)."""
    from spectralut.color.basis import build_basis
    return build_basis(Gamut.SRGB)


@pytest.fixture
def flat_brightness():
    """32x32 brightness map that is 1.0 everywhere."""
    return BrightnessMap(values=np.ones((32, 32), dtype=np.float32))


@pytest.fixture
def brightness_map_file(tmp_path):
    """All-1.0 brightness map written as a LUT file.

    Returns the file path.
    """
    from spectralut.io.lutfile import write_brightness_map

    path = tmp_path / "macadam.lut"
    write_brightness_map(path, np.ones((64, 64), dtype=np.float32))
    return path


@pytest.fixture
def corrupt_brightness_map_file(brightness_map_file):
    """Brightness map with its magic number overwritten."""
    data = bytearray(brightness_map_file.read_bytes())
    data[0:4] = (4321).to_bytes(4, "little")
    brightness_map_file.write_bytes(bytes(data))
    return brightness_map_file


@pytest.fixture
def out_dir(tmp_path):
    """Empty output directory for LUT files."""
    d = tmp_path / "out"
    d.mkdir()
    return d
