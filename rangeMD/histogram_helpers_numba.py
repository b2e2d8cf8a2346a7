"""
Numba-accelerated binning kernels for parameter-distribution histograms.

These mirror :func:`rangeMD.histogram_helpers.assign_bins` and
:func:`rangeMD.histogram_helpers.count_bins` and produce identical results.
"""

from __future__ import annotations

import numpy as np
from numba import jit, prange  # type: ignore[import-untyped]


@jit(nopython=True, parallel=True, cache=True)
def _assign_bins_numba(
    values: np.ndarray,
    lower: float,
    half_binwidth: float,
    tolerance: float,
) -> np.ndarray:
    n = values.shape[0]
    out = np.empty(n, dtype=np.int64)
    for i in prange(n):
        out[i] = np.int64(np.floor((values[i] - lower + tolerance) / half_binwidth))
    return out


@jit(nopython=True, cache=True)
def _count_bins_numba(bin_indices: np.ndarray, num_bins: int) -> np.ndarray:
    counts = np.zeros(num_bins, dtype=np.int64)
    for i in range(bin_indices.shape[0]):
        b = bin_indices[i]
        if b >= 0 and b < num_bins:
            counts[b] += 1
    return counts


def assign_bins_numba(
    values: np.ndarray,
    lower: float,
    half_binwidth: float,
    tolerance: float,
) -> np.ndarray:
    """
    Half-bin index of every sample (Numba backend).

    Parameters
    ----------
    values : np.ndarray, shape (m,)
        Recorded parameter values.
    lower : float
        Lower edge of the first bin.
    half_binwidth : float
        Width of one histogram bin.
    tolerance : float
        Shift added before flooring.

    Returns
    -------
    np.ndarray, shape (m,), dtype=np.int64
    """
    values = np.ascontiguousarray(values, dtype=np.float64)
    return _assign_bins_numba(values, float(lower), float(half_binwidth), float(tolerance))


def count_bins_numba(bin_indices: np.ndarray, num_bins: int) -> np.ndarray:
    """Count samples per bin, ignoring indices outside ``[0, num_bins)`` (Numba backend)."""
    bin_indices = np.ascontiguousarray(bin_indices, dtype=np.int64)
    return _count_bins_numba(bin_indices, int(num_bins))
