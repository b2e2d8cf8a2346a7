"""
Sampling dispatch and range tracking for interaction classes.

Every class is bound once, before the trajectory scan, to the geometric
evaluator that measures its parameter:

========================  =======  =====================================
class kind                subtype  evaluator
========================  =======  =====================================
pair nonbonded / bonded   any      distance
angular bonded            0        angle
angular bonded            1        distance between the two end sites
dihedral bonded           0        dihedral
dihedral bonded           1        distance between the two end sites
three body nonbonded      any      nothing
========================  =======  =====================================

Any other angular or dihedral subtype is a malformed model and raises
:class:`~rangeMD.exceptions.UnrecognizedSubtypeError`.

Particle ids handed to a computer follow the evaluator layout: end sites
``(k, l)`` first, then the central site ``j`` for angles or the central
bond ``(i, j)`` for dihedrals. Distance evaluators read the first two
columns only. Nonbonded classes are not listed pair by pair; each defined
type pair is sampled as one :class:`PairBlock`.
"""

from __future__ import annotations

from collections.abc import Callable

import numpy as np

from rangeMD.constants import VERYLARGE
from rangeMD.exceptions import UnrecognizedSubtypeError
from rangeMD.geometry import calc_angle, calc_block_distances, calc_dihedral, calc_distance
from rangeMD.interaction_model import InteractionClassSpec, InteractionKind
from rangeMD.topology import TopologyData

Evaluator = Callable[[np.ndarray, np.ndarray, np.ndarray], "np.ndarray | None"]


def calc_isotropic_two_body_sampling_range(ids, positions, box):
    return calc_distance(ids[:, :2], positions, box)


def calc_angular_three_body_sampling_range(ids, positions, box):
    return calc_angle(ids[:, :3], positions, box)


def calc_dihedral_four_body_sampling_range(ids, positions, box):
    return calc_dihedral(ids[:, :4], positions, box)


def calc_nothing(ids, positions, box):
    return None


def select_evaluator(spec: InteractionClassSpec) -> Evaluator:
    """
    Return the evaluator measuring the parameter of ``spec``'s class.

    Raises
    ------
    UnrecognizedSubtypeError
        For angular or dihedral classes whose subtype is neither 0 nor 1.
    """
    kind = spec.kind
    if kind.is_pair:
        return calc_isotropic_two_body_sampling_range
    if kind is InteractionKind.ANGULAR_BONDED:
        if spec.subtype == 0:
            return calc_angular_three_body_sampling_range
        if spec.subtype == 1:
            return calc_isotropic_two_body_sampling_range
        raise UnrecognizedSubtypeError(spec.full_name)
    if kind is InteractionKind.DIHEDRAL_BONDED:
        if spec.subtype == 0:
            return calc_dihedral_four_body_sampling_range
        if spec.subtype == 1:
            return calc_isotropic_two_body_sampling_range
        raise UnrecognizedSubtypeError(spec.full_name)
    return calc_nothing


def initialize_ranges(spec: InteractionClassSpec) -> None:
    """Reset the bounds to the open sentinels and mark every interaction as matched."""
    n = spec.n_defined
    spec.lower_cutoffs[:] = VERYLARGE
    spec.upper_cutoffs[:] = -VERYLARGE
    spec.defined_to_matched[:] = np.arange(1, n + 1)
    spec.n_to_force_match = n
    spec.interaction_column_indices = np.zeros(n + 1, dtype=np.intp)


def update_range(spec: InteractionClassSpec, index: int, values: np.ndarray) -> None:
    """Tighten the bounds of interaction ``index`` to cover ``values``."""
    if values.size == 0:
        return
    lowest = float(values.min())
    highest = float(values.max())
    if spec.lower_cutoffs[index] > lowest:
        spec.lower_cutoffs[index] = lowest
    if spec.upper_cutoffs[index] < highest:
        spec.upper_cutoffs[index] = highest


def _evaluator_layout(spec: InteractionClassSpec, topology: TopologyData) -> tuple[np.ndarray, np.ndarray]:
    """Bonded site tuples of a class in evaluator order, and their chain-order types."""
    kind = spec.kind
    if kind is InteractionKind.PAIR_BONDED:
        chains = topology.bonds
        ids = chains
    elif kind is InteractionKind.ANGULAR_BONDED:
        chains = topology.angles
        ids = chains[:, [0, 2, 1]]
    elif kind is InteractionKind.DIHEDRAL_BONDED:
        chains = topology.dihedrals
        ids = chains[:, [0, 3, 1, 2]]
    else:
        empty = np.zeros((0, kind.n_body), dtype=np.intp)
        return empty, empty
    return ids, topology.types_of(chains)


class PairBlock:
    """
    Nonbonded site pairs of one type pair, measured as a distance block.

    Pairs are never listed explicitly during sampling: like-type blocks are
    measured with ``self_distance_array`` and unlike-type blocks with
    ``distance_array``, and excluded pairs are masked out of the flattened
    result.

    Parameters
    ----------
    sites_a : np.ndarray
        Sorted sites of the first type.
    sites_b : np.ndarray or None
        Sorted sites of the second type, ``None`` when both types are equal.
    keep : np.ndarray of bool or None
        Mask over the flattened block, ``None`` when nothing is excluded.
    """

    def __init__(self, sites_a, sites_b=None, keep=None):
        self.sites_a = np.asarray(sites_a, dtype=np.intp)
        self.sites_b = None if sites_b is None else np.asarray(sites_b, dtype=np.intp)
        self.keep = keep

    @classmethod
    def from_topology(cls, topology: TopologyData, types, excluded: np.ndarray) -> PairBlock:
        """Block of every pair of sites with types ``types``, minus ``excluded`` pairs."""
        type_a, type_b = sorted(int(t) for t in types)
        sites_a = np.flatnonzero(topology.site_types == type_a)
        sites_b = None if type_a == type_b else np.flatnonzero(topology.site_types == type_b)
        block = cls(sites_a, sites_b)
        if len(excluded):
            positions = block._block_positions(excluded, topology.n_sites)
            if len(positions):
                keep = np.ones(block.n_block, dtype=bool)
                keep[positions] = False
                block.keep = keep
        return block

    @property
    def n_block(self) -> int:
        m = len(self.sites_a)
        if self.sites_b is None:
            return m * (m - 1) // 2
        return m * len(self.sites_b)

    @property
    def size(self) -> int:
        """Number of pairs actually sampled."""
        if self.keep is None:
            return self.n_block
        return int(self.keep.sum())

    def _block_positions(self, excluded: np.ndarray, n_sites: int) -> np.ndarray:
        """Flattened block positions of the ``excluded`` pairs that lie in this block."""
        local_a = np.full(n_sites, -1, dtype=np.int64)
        local_a[self.sites_a] = np.arange(len(self.sites_a))
        i, j = excluded[:, 0], excluded[:, 1]
        if self.sites_b is None:
            p, q = local_a[i], local_a[j]
            inside = (p >= 0) & (q >= 0)
            p, q = p[inside], q[inside]
            m = len(self.sites_a)
            return p * m - p * (p + 1) // 2 + (q - p - 1)
        local_b = np.full(n_sites, -1, dtype=np.int64)
        local_b[self.sites_b] = np.arange(len(self.sites_b))
        n_b = len(self.sites_b)
        forward = (local_a[i] >= 0) & (local_b[j] >= 0)
        backward = (local_a[j] >= 0) & (local_b[i] >= 0)
        return np.concatenate([
            local_a[i[forward]] * n_b + local_b[j[forward]],
            local_a[j[backward]] * n_b + local_b[i[backward]],
        ])

    def pairs(self) -> np.ndarray:
        """Sampled site pairs ``(i, j)``, ``i < j``, in block order."""
        a = self.sites_a
        if self.sites_b is None:
            p, q = np.triu_indices(len(a), k=1)
            pairs = np.column_stack([a[p], a[q]])
        else:
            b = self.sites_b
            pairs = np.sort(np.column_stack([np.repeat(a, len(b)), np.tile(b, len(a))]), axis=1)
        if self.keep is not None:
            pairs = pairs[self.keep]
        return pairs.astype(np.intp)

    def distances(self, positions: np.ndarray, box) -> np.ndarray:
        values = calc_block_distances(self.sites_a, self.sites_b, positions, box)
        if self.keep is not None:
            values = values[self.keep]
        return values


def _nonbonded_blocks(spec: InteractionClassSpec, topology: TopologyData) -> list[tuple[int, PairBlock]]:
    excluded = topology.excluded_pair_array()
    groups = []
    for index in range(spec.n_defined):
        block = PairBlock.from_topology(topology, spec.get_interaction_types(index), excluded)
        if block.size:
            groups.append((index, block))
    return groups


def build_sample_groups(spec: InteractionClassSpec, topology: TopologyData) -> list[tuple[int, object]]:
    """
    Group the site tuples of a class by defined interaction.

    Returns
    -------
    list of (int, np.ndarray or PairBlock)
        ``(defined index, samples)`` in increasing defined-index order.
        Nonbonded classes get one :class:`PairBlock` per type pair; bonded
        classes get the particle ids in evaluator layout. Tuples whose types
        match no defined interaction are dropped, as are empty blocks.
    """
    if spec.kind is InteractionKind.PAIR_NONBONDED:
        return _nonbonded_blocks(spec, topology)
    ids, types = _evaluator_layout(spec, topology)
    if len(ids) == 0:
        return []
    unique_types, inverse = np.unique(types, axis=0, return_inverse=True)
    inverse = np.asarray(inverse).reshape(-1)
    members: dict[int, list[np.ndarray]] = {}
    for row, type_row in enumerate(unique_types):
        index = spec.find_defined_index(type_row)
        if index < 0:
            continue
        members.setdefault(index, []).append(ids[inverse == row])
    return [(index, np.concatenate(members[index])) for index in sorted(members)]


class InteractionClassComputer:
    """
    Per-class evaluation context used during the trajectory scan.

    Parameters
    ----------
    spec : InteractionClassSpec
        Class whose bounds are tracked.
    recorder : DistributionRecorder or None
        Destination for accepted samples; ``None`` disables recording.

    Attributes
    ----------
    evaluator : callable
        Geometric evaluator selected for the class and subtype.
    particle_ids : np.ndarray
        Particle ids of the samples currently being evaluated.
    index_among_defined_intrxns : int
        Defined index the current samples belong to.
    """

    def __init__(self, spec: InteractionClassSpec, recorder=None):
        self.ispec = spec
        self.evaluator = select_evaluator(spec)
        self.recorder = recorder
        self.particle_ids = np.zeros((0, spec.kind.n_body), dtype=np.intp)
        self.index_among_defined_intrxns = -1
        self._groups: list[tuple[int, object]] = []

    @property
    def is_noop(self) -> bool:
        return self.evaluator is calc_nothing

    def set_indices(self, index: int, particle_ids) -> None:
        ids = np.asarray(particle_ids, dtype=np.intp)
        if ids.ndim == 1:
            ids = ids.reshape(1, -1)
        self.index_among_defined_intrxns = index
        self.particle_ids = ids

    def calculate(self, positions: np.ndarray, box) -> np.ndarray | None:
        """
        Evaluate the current samples, update the bounds and record them.

        Returns the measured parameter values, or ``None`` for classes that
        are never sampled.
        """
        values = self.evaluator(self.particle_ids, positions, box)
        if values is None:
            return None
        self._accept(self.index_among_defined_intrxns, values)
        return values

    def _accept(self, index: int, values: np.ndarray) -> None:
        update_range(self.ispec, index, values)
        if self.recorder is not None:
            self.recorder.record(index, values)

    def sample(self, index: int, particle_ids, positions: np.ndarray, box) -> np.ndarray | None:
        """Evaluate samples ``particle_ids`` of defined interaction ``index``."""
        self.set_indices(index, particle_ids)
        return self.calculate(positions, box)

    def bind_topology(self, topology: TopologyData) -> None:
        """Precompute which site tuples feed which defined interaction."""
        self._groups = [] if self.is_noop else build_sample_groups(self.ispec, topology)

    def deposit(self, positions: np.ndarray, box) -> None:
        """Sample every defined interaction of the class in one frame."""
        for index, samples in self._groups:
            if isinstance(samples, PairBlock):
                self.index_among_defined_intrxns = index
                self._accept(index, samples.distances(positions, box))
            else:
                self.sample(index, samples, positions, box)
