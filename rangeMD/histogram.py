"""
Histograms of recorded parameter distributions.

For every defined interaction of a class the raw ``<basename>.dist`` file is
binned on a grid of half basis bin widths starting at the basis-aligned
lower bound, and written to ``<basename>.hist``::

    #center	counts
    <center>	<count>
    ...
"""

from __future__ import annotations

import os
import warnings

import numpy as np

from rangeMD.constants import NO_SAMPLING, VERYSMALL_F
from rangeMD.exceptions import BinIndexWarning
from rangeMD.histogram_helpers import get_backend_functions
from rangeMD.interaction_model import InteractionClassSpec
from rangeMD.recorder import dist_filename


def hist_filename(spec: InteractionClassSpec, type_names: list[str], index: int, output_dir=".") -> str:
    return os.path.join(output_dir, spec.get_basename(type_names, index) + ".hist")


def read_distribution(path) -> np.ndarray:
    """Load the whitespace separated samples of a ``.dist`` file."""
    with open(path) as handle:
        return np.array(handle.read().split(), dtype=np.float64)


def histogram_num_bins(spec: InteractionClassSpec, index: int) -> int:
    """Number of half-width bins spanning the (aligned) range of ``index``."""
    span = (spec.upper_cutoffs[index] - spec.lower_cutoffs[index]) / spec.binwidth
    return 2 * int(span + 0.5)


def bin_centers(lower: float, binwidth: float, num_bins: int) -> np.ndarray:
    """Centers ``lower + 0.25 bw + j * 0.5 bw`` of ``num_bins`` half-width bins."""
    return lower + 0.25 * binwidth + 0.5 * binwidth * np.arange(num_bins)


def bin_samples(
    values: np.ndarray,
    lower: float,
    binwidth: float,
    num_bins: int,
    backend: str | None = None,
) -> np.ndarray:
    """
    Count ``values`` into ``num_bins`` bins of width ``binwidth / 2``.

    Samples below the first bin and samples in the bin just past the last
    one are dropped silently. Samples further out are dropped with a
    :class:`~rangeMD.exceptions.BinIndexWarning`.

    Returns
    -------
    np.ndarray, shape (num_bins,), dtype=np.int64
    """
    assign_bins, count_bins = get_backend_functions(backend)
    indices = assign_bins(np.asarray(values, dtype=np.float64), lower, 0.5 * binwidth, VERYSMALL_F)
    for bin_index in indices[indices > num_bins]:
        warnings.warn(
            f"Bin {int(bin_index)} is out-of-bounds. Array size: {num_bins}",
            BinIndexWarning,
            stacklevel=2,
        )
    return count_bins(indices, num_bins)


def generate_parameter_distribution_histogram(
    spec: InteractionClassSpec,
    type_names: list[str],
    output_dir=".",
    backend: str | None = None,
) -> list[tuple[np.ndarray, np.ndarray]]:
    """
    Bin the ``.dist`` file of every defined interaction into a ``.hist`` file.

    Sampled interactions first have their bounds aligned to the basis grid
    with :meth:`InteractionClassSpec.adjust_cutoffs_for_basis`; the aligned
    bounds stay in ``spec`` for the Boltzmann inversion. Unsampled
    interactions get a single empty bin.

    Parameters
    ----------
    spec : InteractionClassSpec
        Class whose ranges have already been written.
    type_names : list of str
        Site type names used to build file names.
    output_dir : str or path-like
        Directory holding the ``.dist`` files; ``.hist`` files go there too.
    backend : str, optional
        Binning backend, 'numpy' or 'numba'.

    Returns
    -------
    list of (np.ndarray, np.ndarray)
        ``(centers, counts)`` for every defined interaction.
    """
    output_dir = os.fspath(output_dir)
    histograms = []
    for index in range(spec.n_defined):
        if spec.upper_cutoffs[index] == NO_SAMPLING:
            num_bins = 1
        else:
            spec.adjust_cutoffs_for_basis(index)
            num_bins = histogram_num_bins(spec, index)

        lower = float(spec.lower_cutoffs[index])
        centers = bin_centers(lower, spec.binwidth, num_bins)
        values = read_distribution(dist_filename(spec, type_names, index, output_dir))
        counts = bin_samples(values, lower, spec.binwidth, num_bins, backend=backend)

        with open(hist_filename(spec, type_names, index, output_dir), "w") as handle:
            handle.write("#center\tcounts\n")
            for center, count in zip(centers, counts):
                handle.write(f"{center:g}\t{int(count)}\n")
        histograms.append((centers, counts))
    return histograms
