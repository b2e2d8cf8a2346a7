"""
Coarse-grained topology consumed by the range-finding pipeline.

The topology only needs to say what type every site is and which site
tuples are bonded; interaction classes, cutoffs and bin widths live in
:mod:`rangeMD.interaction_model`.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np


def _tuple_array(values, width: int, label: str) -> np.ndarray:
    if values is None:
        return np.zeros((0, width), dtype=np.intp)
    arr = np.asarray(values, dtype=np.intp)
    if arr.size == 0:
        return np.zeros((0, width), dtype=np.intp)
    if arr.ndim != 2 or arr.shape[1] != width:
        raise ValueError(f"{label} must have shape (n, {width}), got {arr.shape}")
    return arr


@dataclass(eq=False)
class TopologyData:
    """
    Site types and bonded connectivity of a coarse-grained system.

    Parameters
    ----------
    site_types : array_like of int
        Type id of every site, 1-based (``1 .. n_types``).
    type_names : list of str
        Name of each type; ``type_names[t - 1]`` names type ``t``.
    bonds : array_like, shape (n, 2), optional
        Bonded site pairs.
    angles : array_like, shape (n, 3), optional
        Angle triplets in chain order ``(end, center, end)``.
    dihedrals : array_like, shape (n, 4), optional
        Dihedral quadruplets in chain order ``(end, center, center, end)``.
    exclusion_level : int
        Bonded neighbours removed from the nonbonded pair list:
        0 keeps every pair, 2 drops bonded pairs, 3 also drops angle end
        pairs and 4 also drops dihedral end pairs.
    """

    site_types: np.ndarray
    type_names: list[str]
    bonds: np.ndarray = field(default=None)
    angles: np.ndarray = field(default=None)
    dihedrals: np.ndarray = field(default=None)
    exclusion_level: int = 0

    def __post_init__(self):
        self.site_types = np.asarray(self.site_types, dtype=np.intp)
        self.type_names = [str(name) for name in self.type_names]
        if self.site_types.ndim != 1:
            raise ValueError("site_types must be a 1D sequence of type ids.")
        if self.site_types.size and (
            self.site_types.min() < 1 or self.site_types.max() > len(self.type_names)
        ):
            raise ValueError(
                f"Site type ids must lie in 1..{len(self.type_names)}."
            )
        self.bonds = _tuple_array(self.bonds, 2, "bonds")
        self.angles = _tuple_array(self.angles, 3, "angles")
        self.dihedrals = _tuple_array(self.dihedrals, 4, "dihedrals")
        if self.exclusion_level not in (0, 2, 3, 4):
            raise ValueError(
                f"exclusion_level must be one of 0, 2, 3, 4, got {self.exclusion_level}"
            )

    @property
    def n_sites(self) -> int:
        return int(self.site_types.size)

    @property
    def n_types(self) -> int:
        return len(self.type_names)

    def type_counts(self) -> np.ndarray:
        """Number of sites of every type; entry ``t - 1`` counts type ``t``."""
        return np.bincount(self.site_types - 1, minlength=self.n_types)

    def types_of(self, site_ids) -> np.ndarray:
        """Type ids of the given sites, same shape as ``site_ids``."""
        return self.site_types[np.asarray(site_ids, dtype=np.intp)]

    def excluded_pair_array(self) -> np.ndarray:
        """
        Distinct site pairs removed from nonbonded sampling.

        Returns
        -------
        np.ndarray, shape (n, 2)
            Rows ``(i, j)`` with ``i < j``, sorted.
        """
        ends = [np.zeros((0, 2), dtype=np.intp)]
        if self.exclusion_level >= 2:
            ends.append(self.bonds)
        if self.exclusion_level >= 3:
            ends.append(self.angles[:, [0, 2]])
        if self.exclusion_level >= 4:
            ends.append(self.dihedrals[:, [0, 3]])
        pairs = np.sort(np.concatenate(ends), axis=1)
        pairs = pairs[pairs[:, 0] != pairs[:, 1]]
        if len(pairs) == 0:
            return pairs.astype(np.intp)
        return np.unique(pairs, axis=0).astype(np.intp)

    def excluded_pairs(self) -> set[tuple[int, int]]:
        """Site pairs ``(i, j)``, ``i < j``, removed from nonbonded sampling."""
        return {(int(i), int(j)) for i, j in self.excluded_pair_array()}

    def nonbonded_pairs(self) -> np.ndarray:
        """Every distinct site pair ``(i, j)``, ``i < j``, not excluded."""
        n = self.n_sites
        i, j = np.triu_indices(n, k=1)
        pairs = np.column_stack([i, j]).astype(np.intp)
        excluded = self.excluded_pair_array()
        if len(excluded):
            # pair (i, j) is encoded as i * n + j
            keys = i.astype(np.int64) * n + j
            excluded_keys = excluded[:, 0].astype(np.int64) * n + excluded[:, 1]
            pairs = pairs[~np.isin(keys, excluded_keys)]
        return pairs

    @classmethod
    def from_universe(cls, universe, type_names: list[str] | None = None, exclusion_level: int = 0) -> TopologyData:
        """
        Build the topology from an MDAnalysis ``Universe``.

        Site types are taken from ``universe.atoms.types``. Unless
        ``type_names`` fixes the order, types are numbered in sorted order of
        their names. Bonds, angles and dihedrals are used when the topology
        provides them.
        """
        atom_types = [str(t) for t in universe.atoms.types]
        if type_names is None:
            type_names = sorted(set(atom_types))
        lookup = {name: i + 1 for i, name in enumerate(type_names)}
        missing = set(atom_types) - set(lookup)
        if missing:
            raise ValueError(f"Atom types {sorted(missing)} are not listed in type_names.")
        site_types = np.array([lookup[t] for t in atom_types], dtype=np.intp)

        connectivity = {}
        for attr in ("bonds", "angles", "dihedrals"):
            if hasattr(universe, attr):
                connectivity[attr] = np.asarray(getattr(universe, attr).to_indices(), dtype=np.intp)

        return cls(
            site_types=site_types,
            type_names=list(type_names),
            exclusion_level=exclusion_level,
            **connectivity,
        )
