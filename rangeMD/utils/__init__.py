"""
Utility functions for rangeMD.

This package provides unit handling shared by the Boltzmann inversion and
the reference matrix accumulator.
"""

from .conversion_factors import generate_boltzmann

__all__ = [
    "generate_boltzmann",
]
