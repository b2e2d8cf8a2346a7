"""
Raw parameter-distribution recording.

While the trajectory is scanned, every accepted sample of a defined
interaction is appended to ``<output_dir>/<basename>.dist`` as one value per
line. The files are later binned into histograms by
:mod:`rangeMD.histogram` and, in transient mode, deleted afterwards.
"""

from __future__ import annotations

import os
from contextlib import ExitStack
from typing import TextIO

import numpy as np

from rangeMD.interaction_model import InteractionClassSpec, InteractionKind, OutputMode


def dist_filename(spec: InteractionClassSpec, type_names: list[str], index: int, output_dir=".") -> str:
    """Path of the raw distribution file of interaction ``index``."""
    return os.path.join(output_dir, spec.get_basename(type_names, index) + ".dist")


class DistributionRecorder:
    """
    Per-class writer of raw parameter samples.

    Files are opened lazily by :meth:`open` (or on entering the ``with``
    block), one per defined interaction, and closed together by
    :meth:`close`. A recorder for a class without distributions records
    nothing and opens no files.

    Parameters
    ----------
    spec : InteractionClassSpec
        Class being recorded.
    type_names : list of str
        Site type names used to build file names.
    output_dir : str or path-like
        Directory the ``.dist`` files are written to.
    """

    def __init__(self, spec: InteractionClassSpec, type_names: list[str], output_dir="."):
        self.spec = spec
        self.type_names = list(type_names)
        self.output_dir = os.fspath(output_dir)
        self.active = spec.records_distributions
        self._stack: ExitStack | None = None
        self._files: list[TextIO] = []

    def __enter__(self) -> DistributionRecorder:
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._stack is not None

    def filenames(self) -> list[str]:
        return [
            dist_filename(self.spec, self.type_names, i, self.output_dir)
            for i in range(self.spec.n_defined)
        ]

    def open(self) -> None:
        """Create (truncate) one distribution file per defined interaction."""
        if not self.active or self.is_open:
            return
        with ExitStack() as stack:
            self._files = [stack.enter_context(open(name, "w")) for name in self.filenames()]
            self._stack = stack.pop_all()

    def close(self) -> None:
        """Flush and close every open distribution file."""
        if self._stack is not None:
            self._stack.close()
            self._stack = None
            self._files = []

    def accept(self, values: np.ndarray) -> np.ndarray:
        """
        Samples of ``values`` that belong in the distribution file.

        Bonded classes keep everything; nonbonded pairs keep only values
        strictly below the class cutoff.
        """
        values = np.asarray(values, dtype=np.float64).ravel()
        if self.spec.kind is InteractionKind.PAIR_NONBONDED:
            return values[values < self.spec.cutoff]
        return values

    def record(self, index: int, values) -> int:
        """
        Append the accepted samples of interaction ``index``.

        Returns
        -------
        int
            Number of samples written.
        """
        if not self.active:
            return 0
        if not self.is_open:
            raise RuntimeError("Distribution recorder used before open().")
        kept = self.accept(values)
        if kept.size:
            self._files[index].write("".join(f"{v:f}\n" for v in kept))
        return int(kept.size)

    def remove_dist_files(self) -> None:
        """Delete the raw files of a transient class; other modes keep them."""
        if self.spec.output_mode != OutputMode.TRANSIENT or not self.active:
            return
        self.close()
        for name in self.filenames():
            if os.path.exists(name):
                os.remove(name)
