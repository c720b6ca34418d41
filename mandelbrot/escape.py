"""Escape-time evaluation of the quadratic map ``z -> z*z + c``."""

from __future__ import annotations

from typing import Optional

import numpy as np

ESCAPE_LIMIT = 255
HORIZON_SQUARED = 4.0


def escape_time(c: complex, limit: int) -> Optional[int]:
    """Try to decide whether ``c`` belongs to the Mandelbrot set.

    Returns the number of iterations ``i`` it took for ``z`` to leave the
    circle of radius 2, which proves ``c`` is not a member. Returns ``None``
    when ``limit`` iterations were not enough to prove anything; such points
    are treated as members.
    """

    z = 0j
    for i in range(limit):
        if z.real * z.real + z.imag * z.imag > HORIZON_SQUARED:
            return i
        z = z * z + c
    return None


def escape_counts(c_real: np.ndarray, c_imag: np.ndarray, limit: int) -> np.ndarray:
    """Vectorized :func:`escape_time` over arrays of real and imaginary parts.

    Points that never escape are marked with ``-1``. Escaped points are frozen
    so their values stay finite.
    """

    c_real, c_imag = np.broadcast_arrays(
        np.asarray(c_real, dtype=np.float64), np.asarray(c_imag, dtype=np.float64)
    )
    zr = np.zeros(c_real.shape, dtype=np.float64)
    zi = np.zeros(c_real.shape, dtype=np.float64)
    counts = np.full(c_real.shape, -1, dtype=np.int64)
    active = np.ones(c_real.shape, dtype=bool)

    for i in range(limit):
        escaped = active & (zr * zr + zi * zi > HORIZON_SQUARED)
        counts[escaped] = i
        active &= ~escaped
        if not active.any():
            break
        # 2*(zr*zi) equals zr*zi + zi*zr exactly, as complex multiplication computes it
        zr, zi = (
            np.where(active, zr * zr - zi * zi + c_real, zr),
            np.where(active, 2.0 * (zr * zi) + c_imag, zi),
        )
    return counts


def intensity(count: Optional[int], limit: int = ESCAPE_LIMIT) -> int:
    """Map an escape time to an 8-bit gray level.

    Members are black. Fast escapes are bright, slow escapes dark. Budgets
    above 255 are rescaled onto the same range instead of wrapping.
    """

    if count is None:
        return 0
    if limit > ESCAPE_LIMIT:
        return ESCAPE_LIMIT - count * ESCAPE_LIMIT // limit
    return ESCAPE_LIMIT - count


def intensities(counts: np.ndarray, limit: int = ESCAPE_LIMIT) -> np.ndarray:
    """Vectorized :func:`intensity` for counts produced by :func:`escape_counts`."""

    counts = np.asarray(counts, dtype=np.int64)
    scaled = counts * ESCAPE_LIMIT // limit if limit > ESCAPE_LIMIT else counts
    return np.where(counts < 0, 0, ESCAPE_LIMIT - scaled).astype(np.uint8)
