"""
Matrix accumulators for the Boltzmann-inversion initial guess.

:func:`rangeMD.boltzmann.calculate_bi` talks to its matrix only through the
:class:`MatrixAccumulator` protocol, so any force-matching layer can collect
the rows. :class:`BSplineBIMatrix` is the reference implementation: it
represents each interaction's potential on a clamped uniform B-spline basis
whose knots sit on the bin-width grid, fits the Boltzmann-inverted
potentials with linear least squares, and writes the result as
LAMMPS tables.
"""

from __future__ import annotations

import os
from typing import Protocol

import numpy as np
from scipy.interpolate import BSpline
from scipy.optimize import lsq_linear

from rangeMD.constants import NO_SAMPLING
from rangeMD.interaction_model import InteractionClassSpec
from rangeMD.utils import generate_boltzmann


class MatrixAccumulator(Protocol):
    """Interface consumed by the Boltzmann inversion."""

    temperature: float
    boltzmann: float
    normalization: float

    def begin_class(self, spec: InteractionClassSpec) -> None:
        ...

    def evaluate_basis(self, spec: InteractionClassSpec, index: int, r: float) -> tuple[int, np.ndarray]:
        ...

    def accumulate_matching_row(
        self,
        spec: InteractionClassSpec,
        index: int,
        first_nonzero: int,
        values: np.ndarray,
        row: int,
    ) -> None:
        ...

    def accumulate_target(self, row: int, potential: float) -> None:
        ...

    def solve_class(self, spec: InteractionClassSpec) -> np.ndarray:
        ...


def _clamped_uniform_knots(xmin: float, xmax: float, degree: int, n_coeffs: int) -> np.ndarray:
    """
    Open (clamped) uniform knot vector on [xmin, xmax].

    ``n_coeffs = len(t) - degree - 1`` basis functions result.
    """
    k = int(degree)
    m = int(n_coeffs)
    if m < k + 1:
        raise ValueError(f"n_coeffs must be >= degree+1 (got {m} vs {k+1})")
    n_int = m - k - 1
    if n_int <= 0:
        return np.r_[np.full(k + 1, xmin), np.full(k + 1, xmax)]
    interior = np.linspace(xmin, xmax, n_int + 2)[1:-1]
    return np.r_[np.full(k + 1, xmin), interior, np.full(k + 1, xmax)]


def write_lammps_table(
    filename: str,
    r: np.ndarray,
    V: np.ndarray,
    F: np.ndarray,
    comment: str = "Boltzmann-inverted table written by rangeMD",
    table_name: str = "Table1",
) -> None:
    """
    Write a LAMMPS-style table file from arrays of r, V(r), F(r).

    Parameters
    ----------
    filename : str
        Output file path.
    r, V, F : np.ndarray
        Grid, potential and force ``-dV/dr``, all of the same shape.
    comment : str, optional
        Comment written at the top of the file, one ``#`` line per line.
    table_name : str, optional
        Keyword naming the table inside the file.
    """
    r = np.asarray(r, dtype=float)
    V = np.asarray(V, dtype=float)
    F = np.asarray(F, dtype=float)
    if not r.shape == V.shape == F.shape:
        raise ValueError("r, V, F must have the same shape")

    with open(filename, "w") as f:
        if comment is not None:
            for line in comment.splitlines():
                f.write(f"# {line}\n")
        f.write(f"\n{table_name}\n")
        f.write(f"N {len(r)} R {r[0]:.6f} {r[-1]:.6f}\n\n")
        for i, (ri, vi, fi) in enumerate(zip(r, V, F), start=1):
            f.write(f"{i:6d}  {ri:16.8f}  {vi:16.8e}  {fi:16.8e}\n")


class BSplineBIMatrix:
    """
    Dense per-class least-squares system over B-spline potential coefficients.

    Parameters
    ----------
    temperature : float
        Temperature of the reference simulation.
    units : str, optional
        Unit system of the Boltzmann constant (default ``'lj'``). Ignored
        when ``boltzmann`` is given.
    boltzmann : float, optional
        Boltzmann constant overriding ``units``.
    normalization : float, optional
        Factor applied to every histogram density, typically one over the
        number of frames.

    Attributes
    ----------
    solutions : dict
        ``(class full name, defined index) -> scipy.interpolate.BSpline`` for
        every interaction solved so far.
    """

    def __init__(
        self,
        temperature: float,
        units: str = "lj",
        boltzmann: float | None = None,
        normalization: float = 1.0,
    ):
        if temperature <= 0:
            raise ValueError(f"Temperature must be positive, got {temperature}")
        self.temperature = float(temperature)
        self.boltzmann = generate_boltzmann(units) if boltzmann is None else float(boltzmann)
        self.normalization = float(normalization)
        self.solutions: dict[tuple[str, int], BSpline] = {}
        self._solved: dict[tuple[str, int], InteractionClassSpec] = {}
        self._spec: InteractionClassSpec | None = None
        self._knots: list[np.ndarray | None] = []
        self._offsets = np.zeros(1, dtype=np.intp)
        self._rows: dict[int, np.ndarray] = {}
        self._targets: dict[int, float] = {}

    @property
    def n_columns(self) -> int:
        return int(self._offsets[-1])

    def _check_class(self, spec: InteractionClassSpec) -> None:
        if spec is not self._spec:
            raise RuntimeError(f"begin_class() was not called for the {spec.full_name} class.")

    def begin_class(self, spec: InteractionClassSpec) -> None:
        """Lay out class-local columns for every sampled interaction of ``spec``."""
        degree = spec.bspline_order - 1
        if degree < 0:
            raise ValueError(f"bspline_order must be at least 1, got {spec.bspline_order}")
        knots = []
        sizes = []
        for index in range(spec.n_defined):
            lower = float(spec.lower_cutoffs[index])
            upper = float(spec.upper_cutoffs[index])
            if upper == NO_SAMPLING:
                knots.append(None)
                sizes.append(0)
                continue
            n_intervals = max(1, int(round((upper - lower) / spec.binwidth)))
            t = _clamped_uniform_knots(lower, upper, degree, n_intervals + degree)
            knots.append(t)
            sizes.append(len(t) - degree - 1)
        self._spec = spec
        self._knots = knots
        self._offsets = np.concatenate([[0], np.cumsum(sizes)]).astype(np.intp)
        self._rows = {}
        self._targets = {}

    def evaluate_basis(self, spec: InteractionClassSpec, index: int, r: float) -> tuple[int, np.ndarray]:
        """
        Nonzero basis values of interaction ``index`` at ``r``.

        Returns
        -------
        first_nonzero : int
            Interaction-local index of the first nonzero basis function.
        values : np.ndarray, shape (bspline_order,)
        """
        self._check_class(spec)
        t = self._knots[index]
        if t is None:
            raise ValueError(f"Interaction {index} of the {spec.full_name} class was never sampled.")
        k = spec.bspline_order - 1
        m = len(t) - k - 1
        x = min(max(float(r), t[k]), t[m])
        span = int(np.clip(np.searchsorted(t, x, side="right") - 1, k, m - 1))
        design = BSpline.design_matrix(np.array([x]), t, k).toarray()[0]
        return span - k, design[span - k:span + 1]

    def accumulate_matching_row(
        self,
        spec: InteractionClassSpec,
        index: int,
        first_nonzero: int,
        values: np.ndarray,
        row: int,
    ) -> None:
        self._check_class(spec)
        dense = self._rows.setdefault(row, np.zeros(self.n_columns))
        start = int(self._offsets[index]) + int(first_nonzero)
        dense[start:start + len(values)] += values

    def accumulate_target(self, row: int, potential: float) -> None:
        self._targets[row] = float(potential)

    def solve_class(self, spec: InteractionClassSpec) -> np.ndarray:
        """
        Least-squares coefficients of the current class block.

        Columns without any supporting row are left at zero.
        """
        self._check_class(spec)
        coefficients = np.zeros(self.n_columns)
        if self._rows:
            order = sorted(self._rows)
            A = np.vstack([self._rows[row] for row in order])
            b = np.array([self._targets.get(row, 0.0) for row in order])
            used = np.any(A != 0.0, axis=0)
            if used.any():
                res = lsq_linear(A[:, used], b, lsmr_tol='auto', verbose=0)
                coefficients[used] = res.x

        k = spec.bspline_order - 1
        for index, t in enumerate(self._knots):
            if t is None:
                continue
            c = coefficients[self._offsets[index]:self._offsets[index + 1]]
            self.solutions[(spec.full_name, index)] = BSpline(t, c, k, extrapolate=False)
            self._solved[(spec.full_name, index)] = spec
        self._spec = None
        return coefficients

    def write_bi_tables(self, type_names: list[str], output_dir=".", n_points: int = 1000) -> list[str]:
        """
        Write a ``<basename>.table`` file for every solved interaction.

        The table spans the interaction's aligned range and lists the fitted
        potential and its negative derivative.

        Returns
        -------
        list of str
            Paths of the files written.
        """
        output_dir = os.fspath(output_dir)
        paths = []
        for (name, index), spec in self._solved.items():
            spline = self.solutions[(name, index)]
            k = spline.k
            lower, upper = spline.t[k], spline.t[-k - 1]
            r = np.linspace(lower, upper, n_points)
            V = spline(r)
            F = -spline.derivative()(r) if k > 0 else np.zeros_like(r)
            basename = spec.get_basename(type_names, index)
            path = os.path.join(output_dir, basename + ".table")
            write_lammps_table(
                path, r, V, F,
                comment=f"Boltzmann-inverted {spec.full_name} potential for {basename}",
                table_name=basename,
            )
            paths.append(path)
        return paths
