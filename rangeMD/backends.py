"""
Histogram kernel selection.

Recorded parameter distributions are binned by a pair of kernels, one that
maps samples to half-bin indices and one that counts them. Both exist as
plain NumPy code and as numba JIT code; ``RANGEMD_BACKEND`` picks one for
the whole process:

- ``numpy``: vectorised NumPy kernels (default, no extra dependency)
- ``numba``: compiled kernels, worthwhile for long ``.dist`` files

The variable is read once, when this module is first imported. Pass
``backend=`` to :func:`rangeMD.histogram_helpers.get_backend_functions` to
override it for a single call.

Example
-------
>>> import os
>>> os.environ['RANGEMD_BACKEND'] = 'numba'  # set before rangeMD is imported
"""

from __future__ import annotations

import os

BACKEND_ENV_VAR = 'RANGEMD_BACKEND'
AVAILABLE_BACKENDS = frozenset({'numpy', 'numba'})
DEFAULT_BACKEND = 'numpy'


def _resolve_backend() -> str:
    """Read ``RANGEMD_BACKEND``; an unset or blank value means numpy.

    Raises
    ------
    ValueError
        If the variable names a kernel family other than numpy or numba.
    """
    value = os.environ.get(BACKEND_ENV_VAR, DEFAULT_BACKEND).lower().strip()
    if not value:
        return DEFAULT_BACKEND
    if value not in AVAILABLE_BACKENDS:
        raise ValueError(
            f"Invalid RANGEMD_BACKEND '{value}'. "
            f"Must be one of: {', '.join(sorted(AVAILABLE_BACKENDS))}"
        )
    return value


BACKEND = _resolve_backend()


def get_backend() -> str:
    """Histogram kernel family chosen at import, ``'numpy'`` or ``'numba'``."""
    return BACKEND
