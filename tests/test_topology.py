"""Tests for the coarse-grained topology container."""

import MDAnalysis as MD
import numpy as np
import pytest

from rangeMD.topology import TopologyData


class TestConstruction:

    def test_defaults_have_no_connectivity(self, two_type_topology):
        assert two_type_topology.n_sites == 15
        assert two_type_topology.n_types == 2
        assert two_type_topology.bonds.shape == (0, 2)
        assert two_type_topology.angles.shape == (0, 3)
        assert two_type_topology.dihedrals.shape == (0, 4)

    def test_type_ids_out_of_range(self):
        with pytest.raises(ValueError, match="1..2"):
            TopologyData(site_types=[1, 3], type_names=["A", "B"])

    def test_zero_type_id_rejected(self):
        with pytest.raises(ValueError):
            TopologyData(site_types=[0, 1], type_names=["A", "B"])

    def test_bad_tuple_width(self):
        with pytest.raises(ValueError, match="angles"):
            TopologyData(site_types=[1, 1, 1], type_names=["A"], angles=[(0, 1)])

    def test_bad_exclusion_level(self):
        with pytest.raises(ValueError, match="exclusion_level"):
            TopologyData(site_types=[1], type_names=["A"], exclusion_level=1)


def test_type_counts(two_type_topology):
    np.testing.assert_array_equal(two_type_topology.type_counts(), [10, 5])


def test_types_of(chain_topology):
    np.testing.assert_array_equal(chain_topology.types_of([[0, 1], [2, 3]]), [[1, 2], [2, 1]])


class TestNonbondedPairs:

    def test_all_pairs_without_exclusions(self, chain_topology):
        pairs = chain_topology.nonbonded_pairs()
        assert pairs.tolist() == [[0, 1], [0, 2], [0, 3], [1, 2], [1, 3], [2, 3]]

    @pytest.mark.parametrize("level, expected", [
        (2, [[0, 2], [0, 3], [1, 3]]),
        (3, [[0, 3]]),
        (4, []),
    ])
    def test_exclusion_levels(self, chain_topology, level, expected):
        chain_topology.exclusion_level = level
        assert chain_topology.nonbonded_pairs().tolist() == expected

    def test_long_chain_exclusions(self):
        n = 2000
        topology = TopologyData(
            site_types=[1] * n,
            type_names=["A"],
            bonds=[(k + 1, k) for k in range(n - 1)],
            exclusion_level=2,
        )
        pairs = topology.nonbonded_pairs()
        assert pairs.shape == (n * (n - 1) // 2 - (n - 1), 2)
        assert not np.any(pairs[:, 1] - pairs[:, 0] == 1)
        np.testing.assert_array_equal(
            topology.excluded_pair_array(), [(k, k + 1) for k in range(n - 1)]
        )

    def test_excluded_pairs_are_ordered(self):
        topology = TopologyData(
            site_types=[1, 1], type_names=["A"], bonds=[(1, 0)], exclusion_level=2
        )
        assert topology.excluded_pairs() == {(0, 1)}


class TestFromUniverse:

    @pytest.fixture
    def universe(self):
        u = MD.Universe.empty(4, trajectory=True)
        u.add_TopologyAttr("types", ["B", "A", "A", "B"])
        u.add_TopologyAttr("bonds", [(0, 1), (1, 2), (2, 3)])
        u.add_TopologyAttr("angles", [(0, 1, 2), (1, 2, 3)])
        return u

    def test_types_sorted_by_name(self, universe):
        topology = TopologyData.from_universe(universe)
        assert topology.type_names == ["A", "B"]
        np.testing.assert_array_equal(topology.site_types, [2, 1, 1, 2])

    def test_explicit_type_order(self, universe):
        topology = TopologyData.from_universe(universe, type_names=["B", "A"])
        np.testing.assert_array_equal(topology.site_types, [1, 2, 2, 1])

    def test_connectivity_copied(self, universe):
        topology = TopologyData.from_universe(universe, exclusion_level=2)
        assert sorted(map(tuple, topology.bonds.tolist())) == [(0, 1), (1, 2), (2, 3)]
        assert topology.angles.shape == (2, 3)
        assert topology.dihedrals.shape == (0, 4)
        assert topology.exclusion_level == 2

    def test_missing_type_name(self, universe):
        with pytest.raises(ValueError, match="not listed"):
            TopologyData.from_universe(universe, type_names=["A"])
