"""
Simulation box helpers for orthorhombic periodic cells.

Boxes are handled as the three edge lengths ``[lx, ly, lz]``. MDAnalysis
expects the six-component ``[lx, ly, lz, alpha, beta, gamma]`` form.
"""

import numpy as np


def validate_box(box) -> np.ndarray:
    """
    Return *box* as a float array of three positive, finite edge lengths.

    Parameters
    ----------
    box : array_like, shape (3,) or (6,)
        Edge lengths, optionally followed by cell angles. Angles, when
        given, must all be 90 degrees.

    Raises
    ------
    ValueError
        If the box is not orthorhombic or has non-positive or non-finite
        edge lengths.
    """
    dims = np.asarray(box, dtype=np.float64).ravel()
    if dims.size == 6:
        if not np.allclose(dims[3:], 90.0, atol=1e-3):
            raise ValueError(
                "Only orthorhombic or cubic cells are supported. "
                f"Got angles: {dims[3:].tolist()}"
            )
        dims = dims[:3]
    if dims.size != 3:
        raise ValueError(f"Box must have 3 edge lengths, got shape {np.shape(box)}")
    if not np.all(np.isfinite(dims)):
        raise ValueError(f"Box dimensions must be finite. Got: {tuple(dims)}")
    if not np.all(dims > 0):
        raise ValueError(f"Box dimensions must be positive. Got: {tuple(dims)}")
    return dims


def box_volume(box) -> float:
    """Return the volume ``lx * ly * lz`` of an orthorhombic box."""
    return float(np.prod(validate_box(box)))


def mda_dimensions(box) -> np.ndarray:
    """Return the MDAnalysis ``[lx, ly, lz, 90, 90, 90]`` form of *box*."""
    return np.concatenate([validate_box(box), [90.0, 90.0, 90.0]])
