"""Sampled-range finding and Boltzmann-inversion initial guesses for coarse-grained models"""
from .interaction_model import (
    InteractionClassSpec,
    InteractionKind,
    InteractionModel,
    OutputMode,
)
from .topology import TopologyData
from .exceptions import (
    BinIndexWarning,
    InsufficientSamplingWarning,
    RangeFindingWarning,
    UnrecognizedSubtypeError,
)
from .matrix import BSplineBIMatrix, MatrixAccumulator
from .range_finding import RangeFinder, find_ranges
from .trajectories import MDATrajectory, NumpyTrajectory, Trajectory
MAJOR = 0
MINOR = 1
MICRO = 0
__version__ = f'{MAJOR:d}.{MINOR:d}.{MICRO:d}'

__all__ = [
    "BSplineBIMatrix",
    "BinIndexWarning",
    "InsufficientSamplingWarning",
    "InteractionClassSpec",
    "InteractionKind",
    "InteractionModel",
    "MDATrajectory",
    "MatrixAccumulator",
    "NumpyTrajectory",
    "OutputMode",
    "RangeFinder",
    "RangeFindingWarning",
    "TopologyData",
    "Trajectory",
    "UnrecognizedSubtypeError",
    "find_ranges",
]
