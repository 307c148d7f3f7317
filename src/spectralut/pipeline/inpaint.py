"""Push-pull hole filling for the sparse scatter grid.

Push: build a pyramid by halving resolution; a coarse cell is the average
of its initialized (non-zero) children. Pull: every empty cell of the
finest level takes the value of its nearest initialized ancestor.
"""

from __future__ import annotations

import logging

import numpy as np

logger = logging.getLogger(__name__)


def initialized_mask(level: np.ndarray) -> np.ndarray:
    """True where any channel of an (h, w, C) level is non-zero."""
    return np.any(level != 0, axis=-1)


def downsample(level: np.ndarray) -> np.ndarray:
    """Average the initialized children of each 2x2 block.

    Odd dimensions are padded with empty cells, so the coarse level has
    ceil(h/2) x ceil(w/2) cells.
    """
    h, w, c = level.shape
    ph, pw = h + h % 2, w + w % 2
    padded = np.zeros((ph, pw, c), dtype=np.float64)
    padded[:h, :w] = level

    mask = initialized_mask(padded)
    blocks = padded.reshape(ph // 2, 2, pw // 2, 2, c)
    weights = mask.reshape(ph // 2, 2, pw // 2, 2)[..., np.newaxis]

    sums = (blocks * weights).sum(axis=(1, 3))
    counts = weights.sum(axis=(1, 3))
    return np.where(counts > 0, sums / np.maximum(counts, 1), 0.0)


def build_pyramid(data: np.ndarray) -> list[np.ndarray]:
    """Levels from the input (level 0) down to a single cell.

    Args:
        data: (h, w, C) array; all-zero cells are empty.

    Returns:
        List of float64 arrays, level k has shape ceil(h/2^k) x ceil(w/2^k).
    """
    levels = [np.asarray(data, dtype=np.float64)]
    while max(levels[-1].shape[:2]) > 1:
        levels.append(downsample(levels[-1]))
    return levels


def fill(data: np.ndarray) -> np.ndarray:
    """Fill every empty cell from its first initialized ancestor.

    Args:
        data: (h, w, C) sparse grid.

    Returns:
        Filled copy with the input's dtype. If nothing is initialized the
        result is all zero.
    """
    levels = build_pyramid(data)
    out = levels[0].copy()

    rows, cols = np.nonzero(~initialized_mask(out))
    for k, level in enumerate(levels[1:], start=1):
        if len(rows) == 0:
            break
        ancestor = level[rows >> k, cols >> k]
        found = initialized_mask(ancestor)
        out[rows[found], cols[found]] = ancestor[found]
        rows, cols = rows[~found], cols[~found]

    if len(rows):
        logger.debug("Inpainting left %d cells empty", len(rows))
    return out.astype(np.asarray(data).dtype, copy=False)
