"""
NumPy array trajectory backend for rangeMD.

This module provides the NumpyTrajectory class for trajectories stored
directly as NumPy arrays in memory.
"""

from typing import Iterator

import numpy as np

from rangeMD.cell import validate_box
from ._base import Trajectory


class NumpyTrajectory(Trajectory):
    """
    Represents a trajectory stored directly as NumPy arrays.

    Designed for coarse-grained data already resident in memory, or for
    synthetic configurations generated numerically.

    Parameters
    ----------
    positions : np.ndarray
        Site positions of shape ``(frames, sites, 3)``.
    box : array_like
        Box edge lengths, either one ``(3,)`` box shared by every frame or
        per-frame boxes of shape ``(frames, 3)``.
    units : str, optional
        Unit system string (default: `'lj'`).

    Raises
    ------
    ValueError
        If positions do not have shape ``(frames, sites, 3)`` or the boxes
        are invalid or inconsistent with the number of frames.
    """

    def __init__(
        self,
        positions: np.ndarray,
        box,
        *,
        units: str = 'lj',
    ):
        super().__init__(units=units)

        positions = np.asarray(positions, dtype=np.float64)
        if positions.ndim != 3 or positions.shape[2] != 3:
            raise ValueError(
                f"Positions must have shape (frames, sites, 3), got {positions.shape}"
            )

        boxes = np.asarray(box, dtype=np.float64)
        if boxes.ndim == 1:
            boxes = np.broadcast_to(boxes, (positions.shape[0], boxes.shape[0]))
        if boxes.ndim != 2 or boxes.shape != (positions.shape[0], 3):
            raise ValueError("Box and position arrays are incommensurate.")
        for frame_box in boxes:
            validate_box(frame_box)

        self.positions = positions
        self.boxes = boxes
        self.frames = positions.shape[0]

    def _iter_frames_impl(
        self,
        start: int,
        stop: int,
        stride: int
    ) -> Iterator[tuple[np.ndarray, np.ndarray]]:
        """Iterate over in-memory position/box arrays."""
        for i in range(start, stop, stride):
            yield self.positions[i], np.array(self.boxes[i])

    def get_frame(self, index: int) -> tuple[np.ndarray, np.ndarray]:
        """Return positions and box lengths for a specific frame by index."""
        return self.positions[index], np.array(self.boxes[index])
