"""
MDAnalysis trajectory backend for rangeMD.

This module provides the MDATrajectory class for reading coarse-grained
trajectories via MDAnalysis.
"""

from typing import Iterator

import MDAnalysis as MD  # type: ignore[import-untyped]
import numpy as np

from rangeMD.cell import validate_box
from rangeMD.topology import TopologyData
from ._base import Trajectory


class MDATrajectory(Trajectory):
    """
    Represents a coarse-grained trajectory handled by **MDAnalysis**.

    Parameters
    ----------
    trajectory_file : str
        Path to the trajectory file (e.g., `.xtc`, `.trr`, `.dcd`, `.lammpstrj`).
    topology_file : str
        Path to the topology file (e.g., `.pdb`, `.gro`, `.data`, `.psf`).
    universe : MDAnalysis.Universe, optional
        Already constructed universe; replaces both file arguments.

    Attributes
    ----------
    frames : int
        Number of trajectory frames.
    units : str
        Unit system identifier (`'mda'`).

    Raises
    ------
    ValueError
        If no topology file is provided or the box is not orthorhombic.
    RuntimeError
        If MDAnalysis fails to load the trajectory or topology file.
    """

    def __init__(
        self,
        trajectory_file: str | None = None,
        topology_file: str | None = None,
        *,
        universe=None,
    ):
        super().__init__(units='mda')

        if universe is None:
            if not topology_file:
                raise ValueError("A topology file is required for MDAnalysis trajectories.")
            try:
                universe = MD.Universe(topology_file, trajectory_file)
            except Exception as e:
                raise RuntimeError(f"Failed to load MDAnalysis Universe: {e}") from e

        self.trajectory_file = trajectory_file
        self.topology_file = topology_file
        self.mdanalysis_universe = universe
        self.frames = len(universe.trajectory)
        self._box_from_dimensions(universe.dimensions)

    def _box_from_dimensions(self, dims) -> np.ndarray:
        """Validated edge lengths from MDAnalysis ``[a, b, c, alpha, beta, gamma]``."""
        if dims is None or len(dims) < 3:
            raise ValueError(f"Invalid simulation box dimensions: {dims}")
        return validate_box(dims[:6] if len(dims) >= 6 else dims[:3])

    def topology(self, type_names: list[str] | None = None, exclusion_level: int = 0) -> TopologyData:
        """Build the :class:`~rangeMD.topology.TopologyData` of the universe."""
        return TopologyData.from_universe(
            self.mdanalysis_universe,
            type_names=type_names,
            exclusion_level=exclusion_level,
        )

    def _iter_frames_impl(
        self,
        start: int,
        stop: int,
        stride: int
    ) -> Iterator[tuple[np.ndarray, np.ndarray]]:
        """Iterate using MDAnalysis trajectory slicing."""
        for ts in self.mdanalysis_universe.trajectory[start:stop:stride]:
            yield ts.positions.astype(np.float64), self._box_from_dimensions(ts.dimensions)

    def get_frame(self, index: int) -> tuple[np.ndarray, np.ndarray]:
        """Return positions and box lengths for a specific frame by index."""
        ts = self.mdanalysis_universe.trajectory[index]
        return ts.positions.astype(np.float64), self._box_from_dimensions(ts.dimensions)
