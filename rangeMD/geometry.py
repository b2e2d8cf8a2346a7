"""
Geometric parameters of sampled interactions under periodic boundaries.

Each evaluator takes an integer array of particle ids with one row per
sample, the ``(N, 3)`` positions of the frame, and the orthorhombic box
edge lengths, and returns one scalar per row. Minimum-image handling is
delegated to :mod:`MDAnalysis.lib.distances`.

Angles and dihedrals are reported in degrees.
"""

from __future__ import annotations

import numpy as np
from MDAnalysis.lib.distances import (
    calc_angles,
    calc_bonds,
    calc_dihedrals,
    distance_array,
    self_distance_array,
)

from rangeMD.cell import mda_dimensions


def _as_rows(particle_ids, width: int) -> np.ndarray:
    ids = np.asarray(particle_ids, dtype=np.intp)
    if ids.ndim == 1:
        ids = ids.reshape(1, -1)
    if ids.ndim != 2 or ids.shape[1] != width:
        raise ValueError(
            f"Expected particle ids of shape (n, {width}), got {np.shape(particle_ids)}"
        )
    return ids


def calc_distance(particle_ids, positions: np.ndarray, box) -> np.ndarray:
    """
    Minimum-image distance between the two sites of each row.

    Parameters
    ----------
    particle_ids : array_like of int, shape (n, 2) or (2,)
        Site indices ``(k, l)``.
    positions : np.ndarray, shape (N, 3)
        Site positions for the frame.
    box : array_like, shape (3,)
        Box edge lengths.

    Returns
    -------
    np.ndarray, shape (n,)
    """
    ids = _as_rows(particle_ids, 2)
    if len(ids) == 0:
        return np.zeros(0)
    x = np.asarray(positions, dtype=np.float64)
    return np.asarray(
        calc_bonds(x[ids[:, 0]], x[ids[:, 1]], box=mda_dimensions(box)),
        dtype=np.float64,
    )


def calc_block_distances(sites_a, sites_b, positions: np.ndarray, box) -> np.ndarray:
    """
    Minimum-image distances between two groups of sites, flattened.

    With ``sites_b`` set to ``None`` every distinct pair within ``sites_a``
    is measured, in the condensed order ``(0, 1), (0, 2), ..., (1, 2), ...``
    of the positions in ``sites_a``. Otherwise the result is the row-major
    flattening of the ``(len(sites_a), len(sites_b))`` distance matrix.
    """
    x = np.asarray(positions, dtype=np.float64)
    dims = mda_dimensions(box)
    a = np.asarray(sites_a, dtype=np.intp)
    if sites_b is None:
        if len(a) < 2:
            return np.zeros(0)
        return np.asarray(self_distance_array(x[a], box=dims), dtype=np.float64)
    b = np.asarray(sites_b, dtype=np.intp)
    if len(a) == 0 or len(b) == 0:
        return np.zeros(0)
    return np.asarray(distance_array(x[a], x[b], box=dims), dtype=np.float64).reshape(-1)


def calc_angle(particle_ids, positions: np.ndarray, box) -> np.ndarray:
    """
    Bond angle in degrees for rows ordered ``(k, l, j)``.

    The two end sites ``k`` and ``l`` come first and the central site ``j``
    last.
    """
    ids = _as_rows(particle_ids, 3)
    if len(ids) == 0:
        return np.zeros(0)
    x = np.asarray(positions, dtype=np.float64)
    radians = calc_angles(
        x[ids[:, 0]], x[ids[:, 2]], x[ids[:, 1]], box=mda_dimensions(box)
    )
    return np.degrees(np.asarray(radians, dtype=np.float64))


def calc_dihedral(particle_ids, positions: np.ndarray, box) -> np.ndarray:
    """
    Dihedral angle in degrees, in (-180, 180], for rows ordered ``(k, l, i, j)``.

    The end sites ``k`` and ``l`` come first, followed by the central bond
    ``(i, j)``; the chain is therefore ``k - i - j - l``.
    """
    ids = _as_rows(particle_ids, 4)
    if len(ids) == 0:
        return np.zeros(0)
    x = np.asarray(positions, dtype=np.float64)
    radians = calc_dihedrals(
        x[ids[:, 0]], x[ids[:, 2]], x[ids[:, 3]], x[ids[:, 1]],
        box=mda_dimensions(box),
    )
    return np.degrees(np.asarray(radians, dtype=np.float64))
