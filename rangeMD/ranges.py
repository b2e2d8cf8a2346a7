"""
Writers for the sampled-range files ``rmin.in`` and ``rmin_b.in``.

Each defined interaction that is force matched gets one line::

    <type names> <lower> <upper> <fm|none>

Nonbonded pairs go to ``rmin.in`` and every bonded class to ``rmin_b.in``.
Writing a range also finalises it: unsampled interactions become ``-1 -1``
and nonbonded upper bounds are clamped to the cutoff. Classes that record
parameter distributions are histogrammed right after their ranges are
written.
"""

from __future__ import annotations

import os
from typing import TextIO

from rangeMD.constants import NO_SAMPLING, VERYLARGE, VERYSMALL_F
from rangeMD.histogram import generate_parameter_distribution_histogram
from rangeMD.interaction_model import InteractionClassSpec, InteractionKind, InteractionModel

NONBONDED_RANGE_FILE = "rmin.in"
BONDED_RANGE_FILE = "rmin_b.in"


def finalize_range(spec: InteractionClassSpec, index: int) -> str:
    """
    Apply the end-of-scan rules to the bounds of ``index`` and return its tag.

    Returns
    -------
    str
        ``'none'`` when the interaction has no usable sampling, else ``'fm'``.
    """
    if abs(spec.upper_cutoffs[index] + VERYLARGE) < VERYSMALL_F:
        spec.lower_cutoffs[index] = NO_SAMPLING
        spec.upper_cutoffs[index] = NO_SAMPLING
    elif spec.kind is InteractionKind.PAIR_NONBONDED:
        if spec.lower_cutoffs[index] > spec.cutoff:
            spec.lower_cutoffs[index] = NO_SAMPLING
            spec.upper_cutoffs[index] = NO_SAMPLING
        elif spec.upper_cutoffs[index] > spec.cutoff:
            spec.upper_cutoffs[index] = spec.cutoff
    return "none" if spec.upper_cutoffs[index] == NO_SAMPLING else "fm"


def write_single_range_specification(
    spec: InteractionClassSpec,
    type_names: list[str],
    index: int,
    stream: TextIO,
) -> None:
    """Finalise and write the range line of defined interaction ``index``."""
    tag = finalize_range(spec, index)
    name = spec.get_interaction_name(type_names, index, " ")
    stream.write(
        f"{name} {spec.lower_cutoffs[index]:f} {spec.upper_cutoffs[index]:f} {tag}\n"
    )


def write_iclass_range_specifications(
    spec: InteractionClassSpec,
    type_names: list[str],
    stream: TextIO,
    recorder=None,
    output_dir=".",
    backend: str | None = None,
) -> None:
    """
    Write the ranges of one class, then histogram its distributions.

    Only interactions with a positive matched index are written. When the
    class records distributions, ``recorder`` is closed, every ``.dist``
    file is binned into a ``.hist`` file, and transient ``.dist`` files are
    removed.
    """
    for index in range(spec.n_defined):
        if spec.defined_to_matched[index] > 0:
            write_single_range_specification(spec, type_names, index, stream)

    if spec.records_distributions:
        if recorder is not None:
            recorder.close()
        generate_parameter_distribution_histogram(spec, type_names, output_dir, backend=backend)
        if recorder is not None:
            recorder.remove_dist_files()


def write_range_files(
    model: InteractionModel,
    recorders=None,
    output_dir=".",
    backend: str | None = None,
) -> tuple[str, str]:
    """
    Write ``rmin.in`` and ``rmin_b.in`` for every class of ``model``.

    Parameters
    ----------
    model : InteractionModel
        Model whose classes have been sampled.
    recorders : sequence of DistributionRecorder, optional
        Recorder of each class in ``model.classes``, in the same order.
    output_dir : str or path-like
        Directory for the range, histogram and distribution files.
    backend : str, optional
        Histogram backend; defaults to the configured backend.

    Returns
    -------
    tuple of str
        Paths of the nonbonded and bonded range files.
    """
    output_dir = os.fspath(output_dir)
    if recorders is None:
        recorders = [None] * len(model.classes)
    if len(recorders) != len(model.classes):
        raise ValueError("Need exactly one recorder (or None) per interaction class.")

    nonbonded_path = os.path.join(output_dir, NONBONDED_RANGE_FILE)
    bonded_path = os.path.join(output_dir, BONDED_RANGE_FILE)
    with open(nonbonded_path, "w") as nonbonded, open(bonded_path, "w") as bonded:
        for spec, recorder in zip(model.classes, recorders):
            stream = nonbonded if spec.kind is InteractionKind.PAIR_NONBONDED else bonded
            write_iclass_range_specifications(
                spec, model.type_names, stream, recorder, output_dir, backend=backend
            )
    return nonbonded_path, bonded_path
