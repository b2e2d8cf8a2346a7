"""
Vectorised binning kernels for parameter-distribution histograms.

Two backends are available:

- 'numpy' (default): NumPy floor division and ``np.bincount``.

- 'numba': Numba JIT-compiled loops, useful for very long distribution
  files.

Backend selection is controlled by the RANGEMD_BACKEND environment variable.
See `rangeMD.backends` for configuration details.
"""

from __future__ import annotations

from typing import Callable

import numpy as np

from rangeMD.backends import get_backend, AVAILABLE_BACKENDS


# ---------------------------------------------------------------------------
# Backend selection
# ---------------------------------------------------------------------------


def _get_numba_functions() -> tuple[Callable, Callable]:
    """Import and return Numba backend functions."""
    try:
        from rangeMD.histogram_helpers_numba import (
            assign_bins_numba,
            count_bins_numba,
        )
        return (
            assign_bins_numba,
            count_bins_numba,
        )
    except ImportError as e:
        raise ImportError(
            "Numba backend requested but numba is not installed. "
            "Install with: pip install numba"
        ) from e


def get_backend_functions(
    backend: str | None = None,
) -> tuple[Callable, Callable]:
    """
    Get the histogram helper functions for the specified backend.

    Parameters
    ----------
    backend : str or None
        Backend to use: 'numpy' or 'numba'. If None, uses the
        RANGEMD_BACKEND environment variable, defaulting to 'numpy'.

    Returns
    -------
    tuple of (assign_bins, count_bins)
        The two helper functions for the selected backend.

    Raises
    ------
    ValueError
        If an unknown backend is specified.
    ImportError
        If numba backend is requested but numba is not installed.
    """
    if backend is None:
        backend = get_backend()

    if backend not in AVAILABLE_BACKENDS:
        raise ValueError(
            f"Unknown histogram backend: {backend!r}. "
            f"Available backends: {sorted(AVAILABLE_BACKENDS)}"
        )

    if backend == 'numba':
        return _get_numba_functions()

    return (
        assign_bins,
        count_bins,
    )


# ---------------------------------------------------------------------------
# NumPy backend implementation
# ---------------------------------------------------------------------------


def assign_bins(
    values: np.ndarray,
    lower: float,
    half_binwidth: float,
    tolerance: float,
) -> np.ndarray:
    """
    Half-bin index of every sample.

    Parameters
    ----------
    values : np.ndarray, shape (m,)
        Recorded parameter values.
    lower : float
        Lower edge of the first bin.
    half_binwidth : float
        Width of one histogram bin (half the basis bin width).
    tolerance : float
        Shift added before flooring so values on a bin edge land in the
        upper bin.

    Returns
    -------
    np.ndarray, shape (m,), dtype=np.int64
        ``floor((value - lower + tolerance) / half_binwidth)``; may be
        negative or beyond the last bin.
    """
    values = np.asarray(values, dtype=np.float64)
    return np.floor((values - lower + tolerance) / half_binwidth).astype(np.int64)


def count_bins(
    bin_indices: np.ndarray,
    num_bins: int,
) -> np.ndarray:
    """
    Count samples per bin, ignoring indices outside ``[0, num_bins)``.

    Parameters
    ----------
    bin_indices : np.ndarray, shape (m,)
        Bin index of every sample.
    num_bins : int
        Number of allocated bins.

    Returns
    -------
    np.ndarray, shape (num_bins,), dtype=np.int64
    """
    bin_indices = np.asarray(bin_indices, dtype=np.int64)
    inside = bin_indices[(bin_indices >= 0) & (bin_indices < num_bins)]
    return np.bincount(inside, minlength=num_bins).astype(np.int64)
