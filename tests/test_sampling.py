"""Tests for evaluator dispatch, range tracking and per-class computers."""

import numpy as np
import pytest

from rangeMD.constants import VERYLARGE
from rangeMD.exceptions import UnrecognizedSubtypeError
from rangeMD.geometry import calc_distance
from rangeMD.interaction_model import InteractionClassSpec, OutputMode
from rangeMD.recorder import DistributionRecorder
from rangeMD.sampling import (
    InteractionClassComputer,
    PairBlock,
    build_sample_groups,
    calc_angular_three_body_sampling_range,
    calc_dihedral_four_body_sampling_range,
    calc_isotropic_two_body_sampling_range,
    calc_nothing,
    initialize_ranges,
    select_evaluator,
    update_range,
)
from rangeMD.topology import TopologyData


# -------------------------------
# Evaluator selection
# -------------------------------

class TestSelectEvaluator:

    def test_pairs_use_distance(self):
        nonbonded = InteractionClassSpec.pair_nonbonded(1, cutoff=1.0, binwidth=0.1)
        bonded = InteractionClassSpec.pair_bonded([(1, 1)], binwidth=0.1)
        assert select_evaluator(nonbonded) is calc_isotropic_two_body_sampling_range
        assert select_evaluator(bonded) is calc_isotropic_two_body_sampling_range

    @pytest.mark.parametrize("subtype, expected", [
        (0, calc_angular_three_body_sampling_range),
        (1, calc_isotropic_two_body_sampling_range),
    ])
    def test_angular_subtypes(self, subtype, expected):
        spec = InteractionClassSpec.angular_bonded([(1, 1, 1)], binwidth=1.0, subtype=subtype)
        assert select_evaluator(spec) is expected

    @pytest.mark.parametrize("subtype, expected", [
        (0, calc_dihedral_four_body_sampling_range),
        (1, calc_isotropic_two_body_sampling_range),
    ])
    def test_dihedral_subtypes(self, subtype, expected):
        spec = InteractionClassSpec.dihedral_bonded([(1, 1, 1, 1)], binwidth=1.0, subtype=subtype)
        assert select_evaluator(spec) is expected

    def test_three_body_does_nothing(self):
        spec = InteractionClassSpec.three_body_nonbonded([(1, 1, 1)], binwidth=1.0)
        assert select_evaluator(spec) is calc_nothing

    @pytest.mark.parametrize("factory, types, name", [
        (InteractionClassSpec.angular_bonded, (1, 1, 1), "angular bonded"),
        (InteractionClassSpec.dihedral_bonded, (1, 1, 1, 1), "dihedral bonded"),
    ])
    def test_unknown_subtype_is_fatal(self, factory, types, name):
        spec = factory([types], binwidth=1.0, subtype=2)
        with pytest.raises(UnrecognizedSubtypeError) as excinfo:
            select_evaluator(spec)
        assert str(excinfo.value) == f"Unrecognized {name} class subtype!"
        assert isinstance(excinfo.value, SystemExit)
        assert not isinstance(excinfo.value, Exception)


# -------------------------------
# Range state
# -------------------------------

def test_initialize_ranges_sets_sentinels():
    spec = InteractionClassSpec.pair_bonded([(1, 1), (1, 2), (2, 2)], binwidth=0.1)
    spec.interaction_column_indices[0] = 7
    initialize_ranges(spec)
    np.testing.assert_array_equal(spec.lower_cutoffs, [VERYLARGE] * 3)
    np.testing.assert_array_equal(spec.upper_cutoffs, [-VERYLARGE] * 3)
    np.testing.assert_array_equal(spec.defined_to_matched, [1, 2, 3])
    assert spec.n_to_force_match == 3
    np.testing.assert_array_equal(spec.interaction_column_indices, [0, 0, 0, 0])


class TestUpdateRange:

    @pytest.fixture
    def spec(self):
        spec = InteractionClassSpec.pair_bonded([(1, 1), (1, 2)], binwidth=0.1)
        initialize_ranges(spec)
        return spec

    def test_first_sample_sets_both_bounds(self, spec):
        update_range(spec, 0, np.array([0.42]))
        assert spec.lower_cutoffs[0] == 0.42
        assert spec.upper_cutoffs[0] == 0.42

    def test_bounds_are_min_and_max(self, spec):
        update_range(spec, 1, np.array([0.5, 0.3, 0.9]))
        update_range(spec, 1, np.array([0.4, 0.6]))
        assert spec.lower_cutoffs[1] == 0.3
        assert spec.upper_cutoffs[1] == 0.9

    def test_other_interactions_untouched(self, spec):
        update_range(spec, 1, np.array([0.5]))
        assert spec.lower_cutoffs[0] == VERYLARGE
        assert spec.upper_cutoffs[0] == -VERYLARGE

    def test_empty_values_ignored(self, spec):
        update_range(spec, 0, np.array([]))
        assert spec.lower_cutoffs[0] == VERYLARGE


# -------------------------------
# Evaluator layouts
# -------------------------------

class TestEvaluatorsOnChain:

    def test_distance_reads_first_two_columns(self, chain_positions, box):
        ids = np.array([[0, 3, 1, 2]])
        d = calc_isotropic_two_body_sampling_range(ids, chain_positions, box)
        assert d == pytest.approx([1.0], abs=1e-5)

    def test_angle_layout(self, chain_positions, box):
        ids = np.array([[0, 2, 1]])
        assert calc_angular_three_body_sampling_range(ids, chain_positions, box) == pytest.approx(
            [90.0], abs=1e-3
        )

    def test_dihedral_layout(self, chain_positions, box):
        ids = np.array([[0, 3, 1, 2]])
        assert calc_dihedral_four_body_sampling_range(ids, chain_positions, box) == pytest.approx(
            [0.0], abs=1e-3
        )

    def test_nothing(self, chain_positions, box):
        assert calc_nothing(np.zeros((1, 3), dtype=int), chain_positions, box) is None


class TestBuildSampleGroups:

    def test_nonbonded_groups(self, chain_model, chain_topology):
        groups = build_sample_groups(chain_model.classes[0], chain_topology)
        assert [index for index, _ in groups] == [0, 1, 2]
        assert all(isinstance(block, PairBlock) for _, block in groups)
        by_index = {index: block.pairs().tolist() for index, block in groups}
        assert by_index[0] == [[0, 3]]
        assert sorted(by_index[1]) == [[0, 1], [0, 2], [1, 3], [2, 3]]
        assert by_index[2] == [[1, 2]]

    def test_nonbonded_groups_respect_exclusions(self, chain_model, chain_topology):
        chain_topology.exclusion_level = 3
        groups = build_sample_groups(chain_model.classes[0], chain_topology)
        assert [(index, block.pairs().tolist()) for index, block in groups] == [(0, [[0, 3]])]

    def test_bonded_groups(self, chain_model, chain_topology):
        groups = build_sample_groups(chain_model.classes[1], chain_topology)
        by_index = {index: sorted(ids.tolist()) for index, ids in groups}
        assert by_index == {0: [[0, 1], [2, 3]], 1: [[1, 2]]}

    def test_angle_groups_put_center_last(self, chain_model, chain_topology):
        groups = build_sample_groups(chain_model.classes[2], chain_topology)
        assert len(groups) == 1
        index, ids = groups[0]
        assert index == 0
        assert sorted(ids.tolist()) == [[0, 2, 1], [1, 3, 2]]

    def test_dihedral_groups_put_ends_first(self, chain_model, chain_topology):
        groups = build_sample_groups(chain_model.classes[3], chain_topology)
        assert [(index, ids.tolist()) for index, ids in groups] == [(0, [[0, 3, 1, 2]])]

    def test_undefined_types_dropped(self, chain_topology):
        spec = InteractionClassSpec.pair_bonded([(2, 2)], binwidth=0.1)
        groups = build_sample_groups(spec, chain_topology)
        assert [(index, ids.tolist()) for index, ids in groups] == [(0, [[1, 2]])]

    def test_no_tuples(self, two_type_topology):
        spec = InteractionClassSpec.angular_bonded([(1, 1, 1)], binwidth=1.0)
        assert build_sample_groups(spec, two_type_topology) == []


class TestPairBlock:

    @pytest.fixture
    def mixed_topology(self):
        """Thirty sites of three interleaved types on one bonded chain."""
        rng = np.random.default_rng(7)
        n = 30
        return TopologyData(
            site_types=rng.integers(1, 4, size=n),
            type_names=["A", "B", "C"],
            bonds=[(k, k + 1) for k in range(n - 1)],
            angles=[(k, k + 1, k + 2) for k in range(n - 2)],
            exclusion_level=3,
        )

    @pytest.mark.parametrize("types", [(1, 1), (1, 2), (2, 1), (2, 3), (3, 3)])
    def test_pairs_match_pair_list(self, mixed_topology, types):
        block = PairBlock.from_topology(mixed_topology, types, mixed_topology.excluded_pair_array())
        pairs = mixed_topology.nonbonded_pairs()
        pair_types = np.sort(mixed_topology.types_of(pairs), axis=1)
        expected = pairs[np.all(pair_types == sorted(types), axis=1)]

        assert block.size == len(expected)
        assert sorted(block.pairs().tolist()) == expected.tolist()

    @pytest.mark.parametrize("types", [(1, 1), (1, 3)])
    def test_distances_follow_block_order(self, mixed_topology, types):
        rng = np.random.default_rng(11)
        positions = rng.uniform(0.0, 6.0, size=(mixed_topology.n_sites, 3))
        box = [6.0, 6.0, 6.0]
        block = PairBlock.from_topology(mixed_topology, types, mixed_topology.excluded_pair_array())

        np.testing.assert_allclose(
            block.distances(positions, box),
            calc_distance(block.pairs(), positions, box),
            atol=1e-5,
        )

    def test_single_site_block_is_empty(self, chain_positions, box):
        topology = TopologyData(site_types=[1, 2, 2, 2], type_names=["A", "B"])
        block = PairBlock.from_topology(topology, (1, 1), topology.excluded_pair_array())
        assert block.size == 0
        assert block.distances(chain_positions, box).size == 0

    def test_empty_blocks_not_grouped(self):
        topology = TopologyData(site_types=[1, 2, 2, 2], type_names=["A", "B"])
        spec = InteractionClassSpec.pair_nonbonded(2, cutoff=1.0, binwidth=0.1)
        assert [index for index, _ in build_sample_groups(spec, topology)] == [1, 2]

    def test_deposit_uses_blocks(self, two_type_topology):
        spec = InteractionClassSpec.pair_nonbonded(2, cutoff=5.0, binwidth=0.1)
        initialize_ranges(spec)
        rng = np.random.default_rng(3)
        positions = rng.uniform(0.0, 8.0, size=(two_type_topology.n_sites, 3))
        box = [8.0, 8.0, 8.0]
        computer = InteractionClassComputer(spec)
        computer.bind_topology(two_type_topology)
        computer.deposit(positions, box)

        pairs = two_type_topology.nonbonded_pairs()
        distances = calc_distance(pairs, positions, box)
        ab = np.all(np.sort(two_type_topology.types_of(pairs), axis=1) == [1, 2], axis=1)
        assert spec.lower_cutoffs[1] == pytest.approx(distances[ab].min(), abs=1e-6)
        assert spec.upper_cutoffs[1] == pytest.approx(distances[ab].max(), abs=1e-6)


# -------------------------------
# InteractionClassComputer
# -------------------------------

class TestInteractionClassComputer:

    def test_set_indices_accepts_single_tuple(self):
        spec = InteractionClassSpec.pair_bonded([(1, 1)], binwidth=0.1)
        computer = InteractionClassComputer(spec)
        computer.set_indices(0, [3, 4])
        assert computer.particle_ids.shape == (1, 2)
        assert computer.index_among_defined_intrxns == 0

    def test_sample_updates_range(self, chain_positions, box):
        spec = InteractionClassSpec.pair_bonded([(1, 2)], binwidth=0.1)
        initialize_ranges(spec)
        computer = InteractionClassComputer(spec)
        values = computer.sample(0, [[0, 1], [0, 2]], chain_positions, box)
        assert values == pytest.approx([1.0, np.sqrt(2.0)], abs=1e-5)
        assert spec.lower_cutoffs[0] == pytest.approx(1.0, abs=1e-5)
        assert spec.upper_cutoffs[0] == pytest.approx(np.sqrt(2.0), abs=1e-5)

    def test_noop_computer_leaves_sentinels(self, chain_topology, chain_positions, box):
        spec = InteractionClassSpec.three_body_nonbonded([(1, 2, 2)], binwidth=1.0)
        initialize_ranges(spec)
        computer = InteractionClassComputer(spec)
        computer.bind_topology(chain_topology)
        computer.deposit(chain_positions, box)
        assert computer.is_noop
        assert computer.sample(0, [[0, 1, 2]], chain_positions, box) is None
        assert spec.lower_cutoffs[0] == VERYLARGE
        assert spec.upper_cutoffs[0] == -VERYLARGE

    def test_deposit_covers_every_class(self, chain_model, chain_topology, chain_positions, box):
        computers = []
        for spec in chain_model.classes:
            initialize_ranges(spec)
            computer = InteractionClassComputer(spec)
            computer.bind_topology(chain_topology)
            computer.deposit(chain_positions, box)
            computers.append(computer)

        nonbonded, bonded, angular, dihedral = chain_model.classes
        # A-A: only the chain ends, one unit apart
        assert nonbonded.lower_cutoffs[0] == pytest.approx(1.0, abs=1e-5)
        # A-B: bonded neighbours at 1 and diagonal sites at sqrt(2)
        assert nonbonded.upper_cutoffs[1] == pytest.approx(np.sqrt(2.0), abs=1e-5)
        assert bonded.lower_cutoffs[1] == pytest.approx(1.0, abs=1e-5)
        assert angular.lower_cutoffs[0] == pytest.approx(90.0, abs=1e-3)
        assert angular.upper_cutoffs[0] == pytest.approx(90.0, abs=1e-3)
        assert dihedral.lower_cutoffs[0] == pytest.approx(0.0, abs=1e-3)

    def test_end_to_end_subtype(self, chain_topology, chain_positions, box):
        spec = InteractionClassSpec.dihedral_bonded([(1, 2, 2, 1)], binwidth=0.05, subtype=1)
        initialize_ranges(spec)
        computer = InteractionClassComputer(spec)
        computer.bind_topology(chain_topology)
        computer.deposit(chain_positions, box)
        assert spec.lower_cutoffs[0] == pytest.approx(1.0, abs=1e-5)

    def test_recorder_receives_samples(self, tmp_path, chain_positions, box):
        spec = InteractionClassSpec.pair_bonded([(1, 2)], binwidth=0.1, output_mode=OutputMode.KEEP)
        initialize_ranges(spec)
        with DistributionRecorder(spec, ["A", "B"], tmp_path) as recorder:
            computer = InteractionClassComputer(spec, recorder)
            computer.sample(0, [[0, 1]], chain_positions, box)
        lines = (tmp_path / "A_B_bon.dist").read_text().splitlines()
        assert len(lines) == 1
        assert float(lines[0]) == pytest.approx(1.0, abs=1e-5)

    def test_bad_subtype_raises_before_recording(self, tmp_path):
        spec = InteractionClassSpec.angular_bonded(
            [(1, 2, 2)], binwidth=1.0, subtype=5, output_mode=OutputMode.KEEP
        )
        with pytest.raises(UnrecognizedSubtypeError):
            InteractionClassComputer(spec, DistributionRecorder(spec, ["A", "B"], tmp_path))
        assert list(tmp_path.iterdir()) == []
