"""Stateful range finding over a coarse-grained trajectory."""

from __future__ import annotations

import os

import numpy as np
from tqdm import tqdm

from rangeMD.boltzmann import calculate_bi
from rangeMD.cell import box_volume, validate_box
from rangeMD.interaction_model import InteractionModel
from rangeMD.matrix import BSplineBIMatrix
from rangeMD.ranges import write_range_files
from rangeMD.recorder import DistributionRecorder
from rangeMD.sampling import InteractionClassComputer, initialize_ranges


class RangeFinder:
    """
    Sampled-range finder for every interaction of a coarse-grained model.

    Follows the deposit/accumulate pattern:
    - Constructor resets every class, selects its evaluator and opens the
      distribution files
    - deposit() samples a single frame (low-level, user-controlled iteration)
    - accumulate() iterates frames and calls deposit (convenience wrapper)
    - write_ranges() writes ``rmin.in``/``rmin_b.in`` and the histograms
    - calculate_bi() Boltzmann-inverts the histograms into a matrix

    Nonbonded pairs are sampled over every distinct non-excluded site pair,
    without a distance cutoff; the class cutoff only limits what is recorded
    and written.

    Parameters
    ----------
    model : InteractionModel
        Topology and interaction classes. The class specs are updated in
        place with the sampled ranges.
    output_dir : str or path-like
        Directory for every file the finder writes (created if missing).
    backend : str, optional
        Histogram backend, 'numpy' or 'numba'.

    Attributes
    ----------
    computers : list of InteractionClassComputer
        One per class in ``model.classes``.
    recorders : list of DistributionRecorder
        One per class in ``model.classes``.
    frame_count : int
        Frames deposited so far.
    progress : str
        State: 'initialized', 'accumulated', 'ranges_written' or 'inverted'.

    Raises
    ------
    UnrecognizedSubtypeError
        If an angular or dihedral class has an unknown subtype.
    """

    def __init__(self, model: InteractionModel, output_dir=".", backend: str | None = None):
        self.model = model
        self.output_dir = os.fspath(output_dir)
        self.backend = backend

        for spec in model.all_classes():
            initialize_ranges(spec)

        # Evaluators are selected before any file is opened.
        self.computers = [InteractionClassComputer(spec) for spec in model.classes]
        self.three_body_computer = (
            InteractionClassComputer(model.three_body) if model.three_body is not None else None
        )
        for computer in self.computers:
            computer.bind_topology(model.topology)

        os.makedirs(self.output_dir, exist_ok=True)
        self.recorders = [
            DistributionRecorder(spec, model.type_names, self.output_dir) for spec in model.classes
        ]
        try:
            for recorder, computer in zip(self.recorders, self.computers):
                recorder.open()
                computer.recorder = recorder
        except BaseException:
            self.close()
            raise

        self.progress = 'initialized'
        self.frame_count = 0
        self._last_box: np.ndarray | None = None
        self.solutions: dict = {}

    def __enter__(self) -> RangeFinder:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Close every distribution file still open."""
        for recorder in self.recorders:
            recorder.close()

    @property
    def volume(self) -> float:
        """Volume of the most recently deposited box."""
        if self._last_box is None:
            raise RuntimeError("No frame has been deposited yet.")
        return box_volume(self._last_box)

    def deposit(self, positions: np.ndarray, box) -> None:
        """
        Sample a single frame for every class, class by class.

        Parameters
        ----------
        positions : (N, 3) np.ndarray
            Site positions for this frame.
        box : array_like, shape (3,)
            Orthorhombic box edge lengths for this frame.
        """
        if self.progress not in ('initialized', 'accumulated'):
            raise RuntimeError("Frames cannot be deposited after the ranges were written.")
        positions = np.asarray(positions, dtype=np.float64)
        if positions.shape != (self.model.topology.n_sites, 3):
            raise ValueError(
                f"Expected positions of shape ({self.model.topology.n_sites}, 3), "
                f"got {positions.shape}"
            )
        box = validate_box(box)

        for computer in self.computers:
            computer.deposit(positions, box)

        self._last_box = box
        self.frame_count += 1
        self.progress = 'accumulated'

    def accumulate(
        self,
        trajectory,
        start: int = 0,
        stop: int | None = None,
        period: int = 1,
        progress: bool = True,
    ) -> None:
        """
        Sample every selected frame of ``trajectory``.

        Parameters
        ----------
        trajectory : Trajectory
            Frame source yielding ``(positions, box)``.
        start : int
            First frame index (default: 0).
        stop : int or None
            Stop frame index (default: None for all frames).
        period : int
            Frame stride (default: 1).
        progress : bool
            Show a tqdm progress bar (default: True).
        """
        if start > trajectory.frames:
            raise ValueError("First frame index exceeds frames in trajectory.")
        if stop is not None and stop > trajectory.frames:
            raise ValueError("Final frame index exceeds frames in trajectory.")

        total = trajectory.n_frames_in(start, stop, period)
        if total == 0:
            raise ValueError("Final frame occurs before first frame in trajectory.")

        for positions, box in tqdm(
            trajectory.iter_frames(start, stop, period), total=total, disable=not progress
        ):
            self.deposit(positions, box)

    def write_ranges(self) -> tuple[str, str]:
        """
        Write the range files, histograms and (for kept modes) distributions.

        Returns
        -------
        tuple of str
            Paths of ``rmin.in`` and ``rmin_b.in``.
        """
        if self.progress == 'initialized':
            raise RuntimeError("Call accumulate() or deposit() before write_ranges().")
        if self.progress != 'accumulated':
            raise RuntimeError("Ranges have already been written.")
        paths = write_range_files(self.model, self.recorders, self.output_dir, backend=self.backend)
        self.progress = 'ranges_written'
        return paths

    def calculate_bi(self, matrix) -> dict:
        """
        Boltzmann-invert the written histograms into ``matrix``.

        Classes without distributions are first screened out of force
        matching.

        Returns
        -------
        dict
            Per-class solutions returned by the matrix.
        """
        if self.progress != 'ranges_written':
            raise RuntimeError("Call write_ranges() before calculate_bi().")
        self.model.screen_interactions_by_distribution()
        self.solutions = calculate_bi(self.model, matrix, self.volume, self.output_dir)
        self.progress = 'inverted'
        return self.solutions


def find_ranges(
    trajectory,
    model: InteractionModel,
    output_dir=".",
    start: int = 0,
    stop: int | None = None,
    period: int = 1,
    temperature: float | None = None,
    matrix=None,
    write_tables: bool = False,
    progress: bool = True,
    backend: str | None = None,
) -> RangeFinder:
    """
    Run range finding end to end.

    Samples the trajectory, writes the range files and histograms and, when
    any class records distributions and either ``matrix`` or
    ``temperature`` is given, computes the Boltzmann-inversion initial
    guess. Without ``matrix`` a :class:`~rangeMD.matrix.BSplineBIMatrix` is
    built from ``temperature``, the trajectory units and one over the
    number of frames as normalisation.

    Parameters
    ----------
    trajectory : Trajectory
        Frame source.
    model : InteractionModel
        Interaction model updated in place.
    output_dir : str or path-like
        Directory for every output file.
    start, stop, period : int
        Frame selection passed to :meth:`RangeFinder.accumulate`.
    temperature : float, optional
        Temperature for the default matrix.
    matrix : MatrixAccumulator, optional
        Matrix receiving the inversion rows.
    write_tables : bool
        Also write ``.table`` files; requires a
        :class:`~rangeMD.matrix.BSplineBIMatrix`.
    progress : bool
        Show a progress bar over frames.
    backend : str, optional
        Histogram backend.

    Returns
    -------
    RangeFinder
        The finder, closed, in its final state.
    """
    with RangeFinder(model, output_dir, backend=backend) as finder:
        finder.accumulate(trajectory, start, stop, period, progress=progress)
        finder.write_ranges()

        if not model.any_active_parameter_distributions():
            return finder
        if matrix is None and temperature is None:
            return finder
        if matrix is None:
            matrix = BSplineBIMatrix(
                temperature,
                units=trajectory.units,
                normalization=1.0 / finder.frame_count,
            )
        finder.calculate_bi(matrix)
        if write_tables:
            if not isinstance(matrix, BSplineBIMatrix):
                raise TypeError("write_tables requires a BSplineBIMatrix.")
            matrix.write_bi_tables(model.type_names, finder.output_dir)
    return finder
