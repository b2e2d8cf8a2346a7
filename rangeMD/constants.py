"""Numeric sentinels and tolerances shared across rangeMD."""

#: Magnitude of the range sentinels and of the potential clamp.
VERYLARGE: float = 1.0e6

#: Tolerance used for sentinel comparisons and bin assignment.
VERYSMALL_F: float = 1.0e-6

#: Bound written for interactions without usable sampling.
NO_SAMPLING: float = -1.0

#: Potential assigned to histogram bins that received no samples.
EMPTY_BIN_POTENTIAL: float = 100.0
