"""Shared fixtures for integration tests."""

import pytest
import numpy as np

from rangeMD.topology import TopologyData


# ---------------------------------------------------------------------------
# Synthetic polymer melt
# ---------------------------------------------------------------------------

MELT_BOX = 10.0
MELT_CHAINS = 6
MELT_FRAMES = 10


@pytest.fixture
def melt_topology():
    """
    Six A-B-B-A chains with bonds, angles and one dihedral each.

    Sites ``4c .. 4c + 3`` form chain ``c``; sites at the chain ends are
    type A (1) and the two middle sites type B (2).
    """
    site_types = [1, 2, 2, 1] * MELT_CHAINS
    bonds, angles, dihedrals = [], [], []
    for c in range(MELT_CHAINS):
        a, b, d, e = 4 * c, 4 * c + 1, 4 * c + 2, 4 * c + 3
        bonds += [(a, b), (b, d), (d, e)]
        angles += [(a, b, d), (b, d, e)]
        dihedrals += [(a, b, d, e)]
    return TopologyData(
        site_types=site_types,
        type_names=["A", "B"],
        bonds=bonds,
        angles=angles,
        dihedrals=dihedrals,
        exclusion_level=2,
    )


@pytest.fixture
def melt_positions():
    """
    Positions of the melt, shape ``(frames, sites, 3)``.

    Each chain is a random walk with unit bond length; every frame adds
    independent Gaussian noise to the reference configuration.
    """
    rng = np.random.default_rng(2024)
    reference = np.zeros((4 * MELT_CHAINS, 3))
    for c in range(MELT_CHAINS):
        reference[4 * c] = rng.uniform(0.0, MELT_BOX, 3)
        for k in range(1, 4):
            step = rng.normal(size=3)
            reference[4 * c + k] = reference[4 * c + k - 1] + step / np.linalg.norm(step)
    noise = rng.normal(scale=0.05, size=(MELT_FRAMES,) + reference.shape)
    return reference[None, :, :] + noise


@pytest.fixture
def melt_box():
    return np.array([MELT_BOX, MELT_BOX, MELT_BOX])
