"""Factorization of the engine's basis matrix.

The basis matrix holds the basic columns of ``[A | D]``: incidence columns for
basic arcs and signed unit columns for basic row logicals. SciPy's SuperLU
factors it once per basis change; primal values use ``B y = r`` solves and
duals use ``B^T y = c_B`` solves against the same factors.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

try:  # SuperLU is preferred; dense numpy solves cover its absence.
    from scipy.sparse import csc_matrix
    from scipy.sparse.linalg import SuperLU, splu
except ModuleNotFoundError:  # pragma: no cover - exercised when SciPy missing.
    csc_matrix = None
    splu = None
    SuperLU = None


@dataclass
class LUFactors:
    """Basis matrix together with its sparse factors.

    ``lu`` is None when SciPy is unavailable or SuperLU refused the matrix.
    """

    dense_matrix: np.ndarray
    sparse_matrix: csc_matrix | None
    lu: SuperLU | None

    @property
    def size(self) -> int:
        return int(self.dense_matrix.shape[0])


def build_lu(matrix: np.ndarray) -> LUFactors:
    """Factor a square basis matrix, keeping a dense copy for fallback solves."""
    basis = np.array(matrix, dtype=float, copy=True)
    if splu is None:
        return LUFactors(dense_matrix=basis, sparse_matrix=None, lu=None)

    packed = csc_matrix(basis)
    try:
        factors = splu(packed)
    except RuntimeError:
        # SuperLU signals an exactly singular matrix this way.
        factors = None
    return LUFactors(dense_matrix=basis, sparse_matrix=packed, lu=factors)


def has_sparse_lu() -> bool:
    return splu is not None


def is_singular(factors: LUFactors, tolerance: float = 1e-10) -> bool:
    """Return True when the basis matrix is rank deficient.

    With SuperLU factors the diagonal of ``U`` is inspected; otherwise the numeric
    rank of the dense matrix decides.
    """
    if factors.size == 0:
        return False
    if factors.lu is not None:
        pivots = np.abs(factors.lu.U.diagonal())
        return bool(np.any(pivots <= tolerance))
    return int(np.linalg.matrix_rank(factors.dense_matrix, tol=tolerance)) < factors.size


def solve_lu(factors: LUFactors, rhs: np.ndarray, transpose: bool = False) -> np.ndarray | None:
    """Solve ``B y = rhs``, or ``B^T y = rhs`` when ``transpose`` is set.

    Returns None when only the dense path is available and the matrix is singular.
    """
    target = np.asarray(rhs, dtype=float).reshape(-1)
    if target.shape[0] != factors.size:
        raise ValueError(
            f"Right-hand side has {target.shape[0]} entries, basis has {factors.size} rows."
        )
    if factors.lu is not None:
        solved: np.ndarray = factors.lu.solve(target, trans="T" if transpose else "N")
        return solved
    matrix = factors.dense_matrix.T if transpose else factors.dense_matrix
    try:
        return np.linalg.solve(matrix, target)
    except np.linalg.LinAlgError:
        return None
