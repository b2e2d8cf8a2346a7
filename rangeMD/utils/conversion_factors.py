"""
Unit conversion utilities for rangeMD.

Boltzmann inversion needs kB in the energy unit of the target potential.
The supported unit systems follow the LAMMPS and MDAnalysis conventions
and take their values from :mod:`scipy.constants`.
"""

import scipy.constants as constants


_BOLTZMANN_CONSTANTS: dict[str, float] = {
    # reduced units
    'lj': 1.0,
    # kcal/mol/K
    'real': constants.physical_constants["molar gas constant"][0] / constants.calorie / 1000,
    # eV/K
    'metal': constants.physical_constants["Boltzmann constant in eV/K"][0],
    # kJ/mol/K
    'mda': constants.physical_constants["molar gas constant"][0] / 1000,
}


def generate_boltzmann(units: str) -> float:
    """
    Return the Boltzmann constant in the specified unit system.

    Parameters
    ----------
    units : str
        One of ``'lj'``, ``'real'``, ``'metal'`` or ``'mda'``
        (case-insensitive).

    Returns
    -------
    float
        Boltzmann constant in the requested unit system.

    Raises
    ------
    ValueError
        If the provided unit system is not recognized.

    Examples
    --------
    >>> from rangeMD.utils import generate_boltzmann
    >>> generate_boltzmann('lj')
    1.0
    """
    key = units.lower().strip()
    if key not in _BOLTZMANN_CONSTANTS:
        raise ValueError(
            f"Unsupported unit system: '{units}'. "
            f"Expected one of {list(_BOLTZMANN_CONSTANTS.keys())}."
        )
    return _BOLTZMANN_CONSTANTS[key]
