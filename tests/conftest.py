"""Shared fixtures for unit tests."""

import numpy as np
import pytest

from rangeMD.interaction_model import InteractionClassSpec, InteractionModel
from rangeMD.topology import TopologyData


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "analytical: tests against known analytical results")


def pytest_addoption(parser):
    """Add custom command-line options."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="run slow tests",
    )


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless --run-slow is passed."""
    if config.getoption("--run-slow", default=False):
        return

    skip_slow = pytest.mark.skip(reason="need --run-slow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


class RecordingMatrix:
    """Minimal matrix accumulator that records every call for inspection."""

    def __init__(self, temperature: float = 1.0, boltzmann: float = 1.0, normalization: float = 1.0):
        self.temperature = temperature
        self.boltzmann = boltzmann
        self.normalization = normalization
        self.begun = []
        self.column_index_seen = []
        self.rows = []
        self.targets = []

    def begin_class(self, spec):
        self.begun.append(spec)
        self.column_index_seen.append(int(spec.interaction_column_indices[0]))

    def evaluate_basis(self, spec, index, r):
        return 0, np.array([r])

    def accumulate_matching_row(self, spec, index, first_nonzero, values, row):
        self.rows.append((spec.full_name, index, row, float(values[0])))

    def accumulate_target(self, row, potential):
        self.targets.append((row, potential))

    def solve_class(self, spec):
        return np.array([float(len(self.targets))])


@pytest.fixture
def recording_matrix():
    """Matrix accumulator stub with kB = T = normalization = 1."""
    return RecordingMatrix()


@pytest.fixture
def chain_topology():
    """
    One A-B-B-A chain.

    Sites 0 and 3 are type A (1), sites 1 and 2 type B (2); bonds 0-1, 1-2,
    2-3, angles 0-1-2 and 1-2-3, dihedral 0-1-2-3.
    """
    return TopologyData(
        site_types=[1, 2, 2, 1],
        type_names=["A", "B"],
        bonds=[(0, 1), (1, 2), (2, 3)],
        angles=[(0, 1, 2), (1, 2, 3)],
        dihedrals=[(0, 1, 2, 3)],
    )


@pytest.fixture
def chain_positions():
    """Positions of the A-B-B-A chain: 90 degree angles and a cis dihedral."""
    return np.array([
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [1.0, 1.0, 0.0],
        [0.0, 1.0, 0.0],
    ])


@pytest.fixture
def box():
    return np.array([20.0, 20.0, 20.0])


@pytest.fixture
def two_type_topology():
    """Ten type-A sites followed by five type-B sites, no bonds."""
    return TopologyData(site_types=[1] * 10 + [2] * 5, type_names=["A", "B"])


@pytest.fixture
def chain_model(chain_topology):
    """Nonbonded, bond, angle and dihedral classes on the chain topology."""
    return InteractionModel(
        chain_topology,
        [
            InteractionClassSpec.pair_nonbonded(2, cutoff=1.2, binwidth=0.05),
            InteractionClassSpec.pair_bonded([(1, 2), (2, 2)], binwidth=0.05),
            InteractionClassSpec.angular_bonded([(1, 2, 2)], binwidth=1.0),
            InteractionClassSpec.dihedral_bonded([(1, 2, 2, 1)], binwidth=1.0),
        ],
    )
