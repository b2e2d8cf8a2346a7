"""
Base classes for trajectory handling in rangeMD.

This module defines the abstract frame source used by the range-finding
pipeline. Every backend yields ``(positions, box)`` pairs, where ``box``
holds the three orthorhombic edge lengths of the frame.
"""

from abc import ABC, abstractmethod
from typing import Iterator

import numpy as np

from rangeMD.utils.conversion_factors import _BOLTZMANN_CONSTANTS


class Trajectory(ABC):
    """
    Abstract base class defining the interface for trajectory objects.

    Required Attributes
    -------------------
    frames : int
        Number of frames in the trajectory.
    units : str
        Unit system identifier (e.g., 'lj', 'real', 'metal', 'mda').
    """

    frames: int
    units: str

    def __init__(self, *, units: str) -> None:
        units = units.lower().strip()
        if units not in _BOLTZMANN_CONSTANTS:
            raise ValueError(
                f"Unsupported unit system: '{units}'. "
                f"Expected one of {list(_BOLTZMANN_CONSTANTS.keys())}."
            )
        self.units = units

    def _normalize_bounds(
        self, start: int, stop: int | None, stride: int
    ) -> tuple[int, int, int]:
        """
        Normalize start/stop bounds to handle negative indices Pythonically.

        Parameters
        ----------
        start : int
            Start index (can be negative).
        stop : int or None
            Stop index (can be negative or None for end of trajectory).
        stride : int
            Step between frames.

        Returns
        -------
        tuple of (int, int, int)
            Normalized (start, stop, stride) suitable for use with range().

        Raises
        ------
        ValueError
            If ``stride`` is not positive.
        """
        if stride < 1:
            raise ValueError(f"stride must be a positive integer, got {stride}")
        n = self.frames

        if stop is None:
            stop = n
        if start < 0:
            start = max(0, n + start)
        if stop < 0:
            stop = max(0, n + stop)

        start = min(start, n)
        stop = min(stop, n)

        return start, stop, stride

    def iter_frames(
        self,
        start: int = 0,
        stop: int | None = None,
        stride: int = 1
    ) -> Iterator[tuple[np.ndarray, np.ndarray]]:
        """
        Iterate over trajectory frames, yielding positions and box lengths.

        Parameters
        ----------
        start : int, optional
            First frame index (default: 0). Negative indices count from end.
        stop : int, optional
            Stop iteration before this frame (default: None, meaning all frames).
            Negative indices count from end.
        stride : int, optional
            Step between frames (default: 1).

        Yields
        ------
        positions : np.ndarray
            Site positions for the current frame, shape (n_sites, 3).
        box : np.ndarray
            Box edge lengths for the current frame, shape (3,).
        """
        start, stop, stride = self._normalize_bounds(start, stop, stride)
        return self._iter_frames_impl(start, stop, stride)

    def n_frames_in(self, start: int = 0, stop: int | None = None, stride: int = 1) -> int:
        """Number of frames :meth:`iter_frames` yields for the same bounds."""
        return len(range(*self._normalize_bounds(start, stop, stride)))

    @abstractmethod
    def _iter_frames_impl(
        self,
        start: int,
        stop: int,
        stride: int
    ) -> Iterator[tuple[np.ndarray, np.ndarray]]:
        """
        Internal implementation of frame iteration.

        Subclasses implement this with normalized (non-negative) bounds.
        """
        ...

    @abstractmethod
    def get_frame(self, index: int) -> tuple[np.ndarray, np.ndarray]:
        """
        Return positions and box lengths for a specific frame by index.

        Parameters
        ----------
        index : int
            Frame index to retrieve.

        Returns
        -------
        positions : np.ndarray
            Site positions for the frame, shape (n_sites, 3).
        box : np.ndarray
            Box edge lengths for the frame, shape (3,).
        """
        ...
