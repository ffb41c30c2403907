"""Dense LU solve for the small normal-equation systems."""

from __future__ import annotations

import numpy as np
from scipy.linalg import lu_factor
from scipy.linalg import lu_solve as _lu_solve


def lu_solve(a: np.ndarray, b: np.ndarray, fast: bool = False) -> np.ndarray:
    """Solve ``a @ x = b`` with partial-pivot LU.

    ``fast`` lets SciPy overwrite ``a`` and skips the finiteness check; the
    default copies ``a`` and raises ``ValueError`` on NaN/inf. ``b`` is never
    modified.
    """

    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    if a.ndim != 2 or a.shape[0] != a.shape[1]:
        raise ValueError(f"lu_solve needs a square matrix, got shape {a.shape}")
    if b.shape[0] != a.shape[0]:
        raise ValueError(f"right-hand side has {b.shape[0]} rows, expected {a.shape[0]}")
    if a.shape[0] == 0:
        return np.zeros(b.shape, dtype=float)
    factors = lu_factor(a, overwrite_a=fast, check_finite=not fast)
    return _lu_solve(factors, b, overwrite_b=False, check_finite=not fast)
