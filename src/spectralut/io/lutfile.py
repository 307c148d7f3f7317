"""Binary LUT file reader/writer.

Layout (little-endian):

    magic    u32   LUT_MAGIC
    version  u16   2 (1 for the legacy layout below)
    channels u8
    datatype u8    0 = half, 1 = float32
    width    u32
    height   u32
    payload        width * height * channels samples, row-major

Version 1 files store ``channels`` as u16 and have no datatype field; their
payload is always half precision. Both headers are 16 bytes.
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

from spectralut.config import (
    DATATYPE_FLOAT,
    DATATYPE_HALF,
    LUT_LEGACY_VERSION,
    LUT_MAGIC,
    LUT_VERSION,
    MAX_BRIGHTNESS_MAP_DIMENSION,
)
from spectralut.core.types import BrightnessMap, LutDataType
from spectralut.errors import BrightnessMapError, LUTFormatError, LUTWriteError

logger = logging.getLogger(__name__)

HEADER_DTYPE = np.dtype([
    ("magic", "<u4"),
    ("version", "<u2"),
    ("channels", "u1"),
    ("datatype", "u1"),
    ("width", "<u4"),
    ("height", "<u4"),
])

LEGACY_HEADER_DTYPE = np.dtype([
    ("magic", "<u4"),
    ("version", "<u2"),
    ("channels", "<u2"),
    ("width", "<u4"),
    ("height", "<u4"),
])

_SAMPLE_DTYPES = {
    DATATYPE_HALF: np.dtype("<f2"),
    DATATYPE_FLOAT: np.dtype("<f4"),
}

_DATATYPE_CODES = {
    LutDataType.HALF: DATATYPE_HALF,
    LutDataType.FLOAT: DATATYPE_FLOAT,
}


def encode_lut(payload: np.ndarray, dtype: LutDataType = LutDataType.HALF) -> bytes:
    """Serialize an (height, width, channels) array with its header."""
    if payload.ndim != 3:
        raise LUTFormatError(f"Expected (height, width, channels), got {payload.shape}")
    height, width, channels = payload.shape
    if channels > 255:
        raise LUTFormatError(f"Too many channels for a LUT header: {channels}")

    code = _DATATYPE_CODES[dtype]
    header = np.zeros(1, dtype=HEADER_DTYPE)
    header["magic"] = LUT_MAGIC
    header["version"] = LUT_VERSION
    header["channels"] = channels
    header["datatype"] = code
    header["width"] = width
    header["height"] = height

    with np.errstate(over="ignore"):
        samples = np.ascontiguousarray(payload, dtype=_SAMPLE_DTYPES[code])
    return header.tobytes() + samples.tobytes()


def write_lut(
    filepath: str | Path,
    payload: np.ndarray,
    dtype: LutDataType = LutDataType.HALF,
) -> Path:
    """Write a LUT file.

    Args:
        filepath: Output path.
        payload: (height, width, channels) float array.
        dtype: Sample encoding.

    Returns:
        The written path.

    Raises:
        LUTWriteError: If the file cannot be written.
    """
    path = Path(filepath)
    data = encode_lut(payload, dtype)
    try:
        with open(path, "wb") as f:
            f.write(data)
    except OSError as e:
        raise LUTWriteError(f"Cannot write LUT {path}: {e}") from e

    logger.debug(
        "Wrote %s: %dx%d, %d channels, %s",
        path, payload.shape[1], payload.shape[0], payload.shape[2], dtype.value,
    )
    return path


def decode_lut(data: bytes, source: str = "<bytes>") -> tuple[np.ndarray, dict]:
    """Parse LUT bytes into (height, width, channels) float32 and header info."""
    if len(data) < HEADER_DTYPE.itemsize:
        raise LUTFormatError(f"{source}: file too short for a LUT header")

    probe = np.frombuffer(data, dtype=HEADER_DTYPE, count=1)[0]
    magic = int(probe["magic"])
    version = int(probe["version"])
    if magic != LUT_MAGIC:
        raise LUTFormatError(f"{source}: bad magic {magic}, expected {LUT_MAGIC}")

    if version == LUT_LEGACY_VERSION:
        legacy = np.frombuffer(data, dtype=LEGACY_HEADER_DTYPE, count=1)[0]
        channels = int(legacy["channels"])
        datatype = DATATYPE_HALF
        width, height = int(legacy["width"]), int(legacy["height"])
    elif version == LUT_VERSION:
        channels = int(probe["channels"])
        datatype = int(probe["datatype"])
        width, height = int(probe["width"]), int(probe["height"])
    else:
        raise LUTFormatError(f"{source}: unsupported version {version}")

    if datatype not in _SAMPLE_DTYPES:
        raise LUTFormatError(f"{source}: unknown datatype {datatype}")
    if channels == 0 or width == 0 or height == 0:
        raise LUTFormatError(
            f"{source}: empty LUT ({width}x{height}, {channels} channels)"
        )

    sample = _SAMPLE_DTYPES[datatype]
    count = width * height * channels
    expected = HEADER_DTYPE.itemsize + count * sample.itemsize
    if len(data) < expected:
        raise LUTFormatError(
            f"{source}: truncated payload ({len(data)} bytes, expected {expected})"
        )

    payload = np.frombuffer(
        data, dtype=sample, count=count, offset=HEADER_DTYPE.itemsize
    ).astype(np.float32).reshape(height, width, channels)

    info = {
        "magic": magic,
        "version": version,
        "channels": channels,
        "datatype": datatype,
        "width": width,
        "height": height,
    }
    return payload, info


def read_lut(filepath: str | Path) -> tuple[np.ndarray, dict]:
    """Read a LUT file.

    Returns:
        (payload, info): (height, width, channels) float32 array and the
        decoded header fields.

    Raises:
        FileNotFoundError: If the file does not exist.
        LUTFormatError: If the header or payload is malformed.
    """
    path = Path(filepath)
    if not path.is_file():
        raise FileNotFoundError(f"LUT file not found: {path}")
    return decode_lut(path.read_bytes(), source=str(path))


def read_brightness_map(filepath: str | Path) -> BrightnessMap:
    """Load the maximum-brightness map.

    The map is a single-channel version 2 LUT.

    Raises:
        BrightnessMapError: If the file is missing, unreadable or malformed.
    """
    path = Path(filepath)
    try:
        payload, info = read_lut(path)
    except (OSError, LUTFormatError) as e:
        raise BrightnessMapError(f"Could not read brightness map: {e}") from e

    if info["version"] != LUT_VERSION:
        raise BrightnessMapError(
            f"{path}: brightness map must be version {LUT_VERSION}, got {info['version']}"
        )
    if info["channels"] != 1:
        raise BrightnessMapError(
            f"{path}: brightness map must have 1 channel, got {info['channels']}"
        )
    if max(info["width"], info["height"]) > MAX_BRIGHTNESS_MAP_DIMENSION:
        raise BrightnessMapError(
            f"{path}: brightness map {info['width']}x{info['height']} exceeds "
            f"maximum dimension {MAX_BRIGHTNESS_MAP_DIMENSION}"
        )

    values = payload[:, :, 0]
    if not np.all(np.isfinite(values)):
        raise BrightnessMapError(f"{path}: brightness map contains non-finite values")

    logger.info("Brightness map: %s (%dx%d)", path, info["width"], info["height"])
    return BrightnessMap(values=values)


def write_brightness_map(filepath: str | Path, values: np.ndarray) -> Path:
    """Write a (height, width) brightness map as a 1-channel half LUT."""
    values = np.asarray(values, dtype=np.float32)
    if values.ndim != 2:
        raise LUTFormatError(f"Brightness map must be 2D, got {values.shape}")
    return write_lut(filepath, values[:, :, np.newaxis], LutDataType.HALF)
