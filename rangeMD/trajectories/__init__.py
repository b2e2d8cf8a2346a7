"""
Trajectory handling package for rangeMD.

This package provides the frame sources driving range finding.

Classes
-------
Trajectory
    Abstract base class; frames are ``(positions, box)`` pairs.
MDATrajectory
    MDAnalysis-based trajectory reader.
NumpyTrajectory
    In-memory NumPy array trajectory.
"""

from ._base import Trajectory
from .mda import MDATrajectory
from .numpy import NumpyTrajectory


__all__ = [
    "MDATrajectory",
    "NumpyTrajectory",
    "Trajectory",
]
