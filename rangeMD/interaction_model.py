"""
Interaction classes of a coarse-grained model and their range state.

An :class:`InteractionClassSpec` groups every *defined interaction* of one
class (one type pair for nonbonded pairs, one bond/angle/dihedral type for
bonded classes). The position of an interaction in
``InteractionClassSpec.defined_types`` is its stable defined index, and all
range, recording and histogram state is addressed by that index.

:class:`InteractionModel` is the context object handed to each phase of the
pipeline: it owns the topology and the class specs and nothing else.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum, IntEnum

import numpy as np

from rangeMD.constants import VERYSMALL_F
from rangeMD.topology import TopologyData


class InteractionKind(Enum):
    """Kind of an interaction class, with its display name and file suffix."""

    PAIR_NONBONDED = ("pair nonbonded", "", 2)
    PAIR_BONDED = ("pair bonded", "_bon", 2)
    ANGULAR_BONDED = ("angular bonded", "_ang", 3)
    DIHEDRAL_BONDED = ("dihedral bonded", "_dih", 4)
    THREE_BODY_NONBONDED = ("three body nonbonded", "_3b", 3)

    def __init__(self, full_name: str, suffix: str, n_body: int):
        self.full_name = full_name
        self.suffix = suffix
        self.n_body = n_body

    @property
    def is_pair(self) -> bool:
        return self in (InteractionKind.PAIR_NONBONDED, InteractionKind.PAIR_BONDED)

    @property
    def records_distributions(self) -> bool:
        """Whether parameter distributions exist for this kind at all."""
        return self is not InteractionKind.THREE_BODY_NONBONDED


class OutputMode(IntEnum):
    """What happens to the raw per-sample parameter distribution files."""

    OFF = 0
    TRANSIENT = 1
    KEEP = 2


def canonical_types(types) -> tuple[int, ...]:
    """Order-insensitive key of a type tuple (a tuple and its reverse match)."""
    forward = tuple(int(t) for t in types)
    return min(forward, forward[::-1])


@dataclass(eq=False)
class InteractionClassSpec:
    """
    One interaction class and the per-interaction range state it carries.

    Parameters
    ----------
    kind : InteractionKind
        Class kind.
    defined_types : list of tuple of int
        Type tuple of every defined interaction, in defined-index order.
        Angular tuples are ``(end, center, end)`` and dihedral tuples follow
        the chain ``(end, center, center, end)``.
    binwidth : float
        Basis bin width used for the histograms and the B-spline basis.
    subtype : int
        0 samples the natural parameter (angle, dihedral); 1 samples the
        distance between the two end sites. Only meaningful for angular
        and dihedral classes.
    cutoff : float or None
        Cutoff of the nonbonded pair class.
    output_mode : OutputMode
        Whether parameter distributions are recorded and kept.
    bspline_order : int
        Order (degree + 1) of the B-spline basis used for the initial guess.

    Attributes
    ----------
    lower_cutoffs, upper_cutoffs : np.ndarray
        Sampled bounds per defined interaction.
    defined_to_matched : np.ndarray
        1-based force-matched index of every defined interaction; 0 means
        the interaction is not force matched.
    n_to_force_match : int
        Number of interactions passed on to force matching.
    interaction_column_indices : np.ndarray
        Column offsets owned by the downstream force-matching layer.
    """

    kind: InteractionKind
    defined_types: list[tuple[int, ...]]
    binwidth: float
    subtype: int = 0
    cutoff: float | None = None
    output_mode: OutputMode = OutputMode.OFF
    bspline_order: int = 4
    lower_cutoffs: np.ndarray = field(init=False, repr=False)
    upper_cutoffs: np.ndarray = field(init=False, repr=False)
    defined_to_matched: np.ndarray = field(init=False, repr=False)
    n_to_force_match: int = field(init=False, default=0)
    interaction_column_indices: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        self.defined_types = [tuple(int(t) for t in types) for types in self.defined_types]
        for types in self.defined_types:
            if len(types) != self.kind.n_body:
                raise ValueError(
                    f"{self.full_name} interactions need {self.kind.n_body} types, got {types}"
                )
        if not self.binwidth > 0:
            raise ValueError(f"binwidth must be positive, got {self.binwidth}")
        if self.kind is InteractionKind.PAIR_NONBONDED:
            if self.cutoff is None or not self.cutoff > 0:
                raise ValueError("Nonbonded pair classes need a positive cutoff.")
        self.output_mode = OutputMode(self.output_mode)

        n = self.n_defined
        self.lower_cutoffs = np.zeros(n)
        self.upper_cutoffs = np.zeros(n)
        self.defined_to_matched = np.zeros(n, dtype=np.intp)
        self.interaction_column_indices = np.zeros(n + 1, dtype=np.intp)
        self._index = {canonical_types(types): i for i, types in enumerate(self.defined_types)}

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def pair_nonbonded(cls, n_types: int, cutoff: float, binwidth: float, **kwargs) -> InteractionClassSpec:
        """Nonbonded pairs: one defined interaction per type pair ``a <= b``."""
        defined = [(a, b) for a in range(1, n_types + 1) for b in range(a, n_types + 1)]
        return cls(InteractionKind.PAIR_NONBONDED, defined, binwidth, cutoff=cutoff, **kwargs)

    @classmethod
    def pair_bonded(cls, defined_types, binwidth: float, **kwargs) -> InteractionClassSpec:
        return cls(InteractionKind.PAIR_BONDED, list(defined_types), binwidth, **kwargs)

    @classmethod
    def angular_bonded(cls, defined_types, binwidth: float, subtype: int = 0, **kwargs) -> InteractionClassSpec:
        return cls(InteractionKind.ANGULAR_BONDED, list(defined_types), binwidth, subtype=subtype, **kwargs)

    @classmethod
    def dihedral_bonded(cls, defined_types, binwidth: float, subtype: int = 0, **kwargs) -> InteractionClassSpec:
        return cls(InteractionKind.DIHEDRAL_BONDED, list(defined_types), binwidth, subtype=subtype, **kwargs)

    @classmethod
    def three_body_nonbonded(cls, defined_types, binwidth: float, **kwargs) -> InteractionClassSpec:
        return cls(InteractionKind.THREE_BODY_NONBONDED, list(defined_types), binwidth, **kwargs)

    # ------------------------------------------------------------------
    # Naming and lookup
    # ------------------------------------------------------------------

    @property
    def n_defined(self) -> int:
        return len(self.defined_types)

    @property
    def full_name(self) -> str:
        return self.kind.full_name

    @property
    def records_distributions(self) -> bool:
        """True when parameter distributions are recorded for this class."""
        return self.output_mode != OutputMode.OFF and self.kind.records_distributions

    def get_interaction_types(self, index: int) -> tuple[int, ...]:
        return self.defined_types[index]

    def get_interaction_name(self, type_names: list[str], index: int, sep: str = " ") -> str:
        """Type names of interaction ``index`` joined by ``sep``."""
        return sep.join(type_names[t - 1] for t in self.defined_types[index])

    def get_basename(self, type_names: list[str], index: int, sep: str = "_") -> str:
        """File stem for interaction ``index``, e.g. ``A_B`` or ``A_B_bon``."""
        return self.get_interaction_name(type_names, index, sep) + self.kind.suffix

    def find_defined_index(self, types) -> int:
        """Defined index of a type tuple (either direction), or -1 if undefined."""
        return self._index.get(canonical_types(types), -1)

    # ------------------------------------------------------------------
    # Basis alignment
    # ------------------------------------------------------------------

    def adjust_cutoffs_for_basis(self, index: int) -> None:
        """
        Align the bounds of interaction ``index`` with the bin-width grid.

        The lower bound moves down and the upper bound up to the nearest
        multiple of ``binwidth``. A nonbonded upper bound is never moved past
        the cutoff, and the range always spans at least one bin width; when
        that width does not fit below the cutoff the lower bound moves down
        instead.
        """
        bw = self.binwidth
        lower = bw * math.floor(self.lower_cutoffs[index] / bw + VERYSMALL_F)
        upper = bw * math.ceil(self.upper_cutoffs[index] / bw - VERYSMALL_F)
        if self.kind is InteractionKind.PAIR_NONBONDED and upper > self.cutoff + VERYSMALL_F:
            upper = lower + bw * math.floor((self.cutoff - lower) / bw + VERYSMALL_F)
        if upper - lower < bw - VERYSMALL_F:
            if self.kind is InteractionKind.PAIR_NONBONDED and lower + bw > self.cutoff + VERYSMALL_F:
                lower = upper - bw
            else:
                upper = lower + bw
        self.lower_cutoffs[index] = lower
        self.upper_cutoffs[index] = upper


@dataclass(eq=False)
class InteractionModel:
    """
    Topology plus the ordered interaction classes of a coarse-grained model.

    Parameters
    ----------
    topology : TopologyData
        Site types and bonded connectivity.
    classes : list of InteractionClassSpec
        Classes written to the range files, in output order.
    three_body : InteractionClassSpec, optional
        Three-body nonbonded class. It is initialised with the others but
        never sampled, written, histogrammed or inverted.
    """

    topology: TopologyData
    classes: list[InteractionClassSpec]
    three_body: InteractionClassSpec | None = None

    def __post_init__(self):
        for spec in self.classes:
            if spec.kind is InteractionKind.THREE_BODY_NONBONDED:
                raise ValueError("Pass the three-body nonbonded class as `three_body`.")
            if spec.kind is InteractionKind.PAIR_NONBONDED and any(
                t > self.topology.n_types for types in spec.defined_types for t in types
            ):
                raise ValueError("Nonbonded pair class references types missing from the topology.")

    @property
    def type_names(self) -> list[str]:
        return self.topology.type_names

    def all_classes(self) -> list[InteractionClassSpec]:
        """Every class, with the three-body class (if any) last."""
        if self.three_body is None:
            return list(self.classes)
        return [*self.classes, self.three_body]

    def any_active_parameter_distributions(self) -> bool:
        """True if at least one class records parameter distributions."""
        return any(spec.output_mode != OutputMode.OFF for spec in self.classes)

    def screen_interactions_by_distribution(self) -> None:
        """Drop classes without recorded distributions from force matching."""
        for spec in self.classes:
            if spec.output_mode == OutputMode.OFF:
                spec.n_to_force_match = 0
                spec.interaction_column_indices[0] = 0
