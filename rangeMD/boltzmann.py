"""
Boltzmann inversion of parameter-distribution histograms.

For every class that records distributions, each histogram bin of every
sampled interaction is turned into a normalised density and a potential

.. math::

    V(r) = -k_B T \\ln \\rho(r)

and handed to a matrix accumulator as one row of a per-class linear system.
The densities are also written to ``<basename>.rdf``.

Pair classes normalise by the spherical shell volume (the radial
distribution function for nonbonded pairs); every other class uses a flat
per-bin normalisation.
"""

from __future__ import annotations

import os
import warnings

import numpy as np

from rangeMD.constants import EMPTY_BIN_POTENTIAL, NO_SAMPLING, VERYLARGE
from rangeMD.exceptions import InsufficientSamplingWarning
from rangeMD.histogram import hist_filename
from rangeMD.interaction_model import (
    InteractionClassSpec,
    InteractionKind,
    InteractionModel,
    OutputMode,
)
from rangeMD.topology import TopologyData


def rdf_filename(spec: InteractionClassSpec, type_names: list[str], index: int, output_dir=".") -> str:
    return os.path.join(output_dir, spec.get_basename(type_names, index) + ".rdf")


def read_histogram(path) -> tuple[np.ndarray, np.ndarray]:
    """Return the ``(centers, counts)`` columns of a ``.hist`` file."""
    data = np.loadtxt(path, comments="#", ndmin=2)
    return data[:, 0], data[:, 1].astype(np.int64)


def count_pairs(topology: TopologyData, types: tuple[int, ...]) -> float:
    """
    Number of distinct site pairs of the given type pair.

    ``nA * nB`` for unlike types and ``nA * (nA - 1) / 2`` for like types.
    """
    counts = topology.type_counts()
    n_a = float(counts[types[0] - 1])
    n_b = float(counts[types[1] - 1])
    if types[0] == types[1]:
        return n_a * (n_a - 1.0) / 2.0
    return n_a * n_b


def boltzmann_potential(density: float, matrix) -> float:
    """
    Potential of one bin; empty bins get a fixed repulsive value.

    Values whose magnitude exceeds ``VERYLARGE`` are replaced by
    ``+VERYLARGE`` whatever their sign.
    """
    if density > 0:
        potential = -matrix.temperature * matrix.boltzmann * np.log(density)
    else:
        potential = EMPTY_BIN_POTENTIAL
    if potential > VERYLARGE or potential < -VERYLARGE:
        potential = VERYLARGE
    return float(potential)


def _invert_rows(
    spec: InteractionClassSpec,
    index: int,
    matrix,
    row: int,
    centers: np.ndarray,
    densities: np.ndarray,
    rdf_path: str,
) -> int:
    with open(rdf_path, "w") as rdf:
        rdf.write("# r gofr\n")
        for r, density in zip(centers, densities):
            if not density > 0:
                warnings.warn(
                    "Bin with no sampling encountered. "
                    "Please increase bin size or use BI potentials with care.",
                    InsufficientSamplingWarning,
                    stacklevel=3,
                )
            potential = boltzmann_potential(density, matrix)
            rdf.write(f"{r:f} {density:f}\n")

            first_nonzero, values = matrix.evaluate_basis(spec, index, float(r))
            matrix.accumulate_matching_row(spec, index, first_nonzero, values, row)
            matrix.accumulate_target(row, potential)
            row += 1
    return row


def read_one_param_dist_file_pair(
    spec: InteractionClassSpec,
    type_names: list[str],
    index: int,
    matrix,
    row: int,
    num_pairs: float,
    volume: float,
    output_dir=".",
) -> int:
    """
    Invert the histogram of a pair interaction with shell-volume normalisation.

    Parameters
    ----------
    spec : InteractionClassSpec
        Pair class; its bounds must already be basis aligned.
    type_names : list of str
        Site type names used to build file names.
    index : int
        Defined index of the interaction.
    matrix : MatrixAccumulator
        Receives one row per histogram bin.
    row : int
        Next free row of the class block.
    num_pairs : float
        Number of site pairs contributing to the histogram.
    volume : float
        System volume (1 for bonded pairs).
    output_dir : str or path-like
        Directory holding the ``.hist`` files and receiving the ``.rdf`` file.

    Returns
    -------
    int
        The row counter after the last row of this interaction.
    """
    if spec.upper_cutoffs[index] == NO_SAMPLING:
        return row
    span = (spec.upper_cutoffs[index] - spec.lower_cutoffs[index]) / spec.binwidth
    num_entries = 2 * int(span + 0.5)

    centers, counts = read_histogram(hist_filename(spec, type_names, index, output_dir))
    centers = centers[:num_entries]
    counts = counts[:num_entries].astype(np.float64)

    inner = centers - 0.5 * spec.binwidth
    shell = 4.0 * np.pi * (centers ** 3 - inner ** 3)
    densities = np.zeros_like(counts)
    sampled = counts > 0
    densities[sampled] = (
        counts[sampled] * 3.0 / shell[sampled] * matrix.normalization * volume / num_pairs
    )
    return _invert_rows(
        spec, index, matrix, row, centers, densities,
        rdf_filename(spec, type_names, index, output_dir),
    )


def read_one_param_dist_file_other(
    spec: InteractionClassSpec,
    type_names: list[str],
    index: int,
    matrix,
    row: int,
    num_pairs: float,
    output_dir=".",
) -> int:
    """
    Invert the histogram of an angular or dihedral interaction.

    Densities are ``counts * 2 * normalization / num_pairs``. Only
    ``2 * int((upper - lower) / binwidth)`` bins are used, so a range that is
    not a whole number of bin widths loses its last partial bin.

    Returns
    -------
    int
        The row counter after the last row of this interaction.
    """
    if spec.upper_cutoffs[index] == NO_SAMPLING:
        return row
    span = (spec.upper_cutoffs[index] - spec.lower_cutoffs[index]) / spec.binwidth
    num_entries = 2 * int(span)

    centers, counts = read_histogram(hist_filename(spec, type_names, index, output_dir))
    centers = centers[:num_entries]
    counts = counts[:num_entries].astype(np.float64)
    densities = counts * 2.0 * matrix.normalization / num_pairs
    return _invert_rows(
        spec, index, matrix, row, centers, densities,
        rdf_filename(spec, type_names, index, output_dir),
    )


def read_interaction_file_and_build_matrix(
    spec: InteractionClassSpec,
    topology: TopologyData,
    matrix,
    volume: float,
    output_dir=".",
) -> int:
    """Add the rows of every defined interaction of one class; return the row count."""
    row = 0
    for index in range(spec.n_defined):
        if spec.kind is InteractionKind.PAIR_NONBONDED:
            num_pairs = count_pairs(topology, spec.get_interaction_types(index))
            row = read_one_param_dist_file_pair(
                spec, topology.type_names, index, matrix, row, num_pairs, volume, output_dir
            )
        elif spec.kind is InteractionKind.PAIR_BONDED:
            row = read_one_param_dist_file_pair(
                spec, topology.type_names, index, matrix, row, 1.0, 1.0, output_dir
            )
        else:
            row = read_one_param_dist_file_other(
                spec, topology.type_names, index, matrix, row, 1.0, output_dir
            )
    return row


def calculate_bi(model: InteractionModel, matrix, volume: float, output_dir=".") -> dict:
    """
    Boltzmann-invert every class that recorded parameter distributions.

    Each class is built and solved as its own block of ``matrix``; columns
    are numbered from zero within the class. The histograms must already
    exist, which :func:`rangeMD.ranges.write_range_files` guarantees.

    Parameters
    ----------
    model : InteractionModel
        Sampled model with written ranges.
    matrix : MatrixAccumulator
        Accumulator receiving the rows and solving each class.
    volume : float
        Volume of the simulation box.
    output_dir : str or path-like
        Directory holding the ``.hist`` files.

    Returns
    -------
    dict
        Solution returned by ``matrix.solve_class`` keyed by class full name.
    """
    output_dir = os.fspath(output_dir)
    solutions = {}
    for spec in model.classes:
        if spec.output_mode == OutputMode.OFF:
            continue
        if spec.kind is InteractionKind.THREE_BODY_NONBONDED:
            continue

        column_index = spec.interaction_column_indices[0]
        spec.interaction_column_indices[0] = 0
        try:
            matrix.begin_class(spec)
            read_interaction_file_and_build_matrix(spec, model.topology, matrix, volume, output_dir)
            solutions[spec.full_name] = matrix.solve_class(spec)
        finally:
            spec.interaction_column_indices[0] = column_index
    return solutions
