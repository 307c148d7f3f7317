"""Portable float map (PFM) debug dumps.

Written as ``PF\\n<width> <height>\\n-1.0\\n`` followed by little-endian
float32 RGB triples in row-major order, first row first.
"""

from __future__ import annotations

from pathlib import Path

import numpy as np

from spectralut.errors import LUTFormatError, LUTWriteError


def write_pfm(filepath: str | Path, image: np.ndarray) -> Path:
    """Write an (height, width, 3) image as a colour PFM.

    Raises:
        LUTWriteError: If the file cannot be written.
    """
    path = Path(filepath)
    image = np.asarray(image)
    if image.ndim != 3 or image.shape[2] != 3:
        raise LUTFormatError(f"PFM needs (height, width, 3), got {image.shape}")
    height, width = image.shape[:2]
    header = f"PF\n{width} {height}\n-1.0\n".encode("ascii")
    data = np.ascontiguousarray(image, dtype="<f4").tobytes()
    try:
        with open(path, "wb") as f:
            f.write(header)
            f.write(data)
    except OSError as e:
        raise LUTWriteError(f"Cannot write PFM {path}: {e}") from e
    return path


def read_pfm(filepath: str | Path) -> np.ndarray:
    """Read a colour PFM written by :func:`write_pfm`.

    Returns:
        (height, width, 3) float32 array.
    """
    path = Path(filepath)
    data = path.read_bytes()
    parts = data.split(b"\n", 3)
    if len(parts) < 4 or parts[0].strip() != b"PF":
        raise LUTFormatError(f"{path}: not a colour PFM")
    try:
        width, height = (int(v) for v in parts[1].split())
        scale = float(parts[2])
    except ValueError as e:
        raise LUTFormatError(f"{path}: malformed PFM header") from e

    dtype = "<f4" if scale < 0 else ">f4"
    count = width * height * 3
    body = parts[3]
    if len(body) < count * 4:
        raise LUTFormatError(f"{path}: truncated PFM payload")
    return np.frombuffer(body, dtype=dtype, count=count).astype(np.float32).reshape(
        height, width, 3
    )
