"""Basis synchronizer: put an engine on a given basis and read it back unchanged."""

from __future__ import annotations

import logging

from .basis_store import BasisStore
from .engine import LPProblem
from .exceptions import InfeasibleProblemError
from .model import Solution

logger = logging.getLogger(__name__)


def synchronize_basis(
    lp: LPProblem,
    store: BasisStore,
    basis_name: str,
    solution: Solution,
    output_name: str,
) -> Solution:
    """Load the persisted basis ``basis_name`` into ``lp`` and refresh ``solution``.

    The engine runs with an iteration limit of zero and advanced start on, so the
    call only recomputes primal and dual values consistent with the fixed basis.
    The basis is re-persisted under ``output_name`` and the previous engine
    parameters restored.

    Raises:
        BasisStoreError: If ``basis_name`` was never persisted.
        NumericalInstabilityError: If the stored basis is singular for ``lp``.
        InfeasibleProblemError: If the stored basis is not primal feasible.
    """
    with lp.engine.override(iteration_limit=0, advanced_start=True):
        lp.read_basis(store, basis_name)
        lp.optimize()
        if not lp.primal_feasible:
            raise InfeasibleProblemError(
                f"Basis '{basis_name}' is not primal feasible for problem '{lp.name}'."
            )
        lp.fill_solution(solution)
        lp.write_basis(store, output_name)

    logger.debug(
        f"Synchronized '{lp.name}' onto basis '{basis_name}' -> '{output_name}': "
        f"objective {solution.objval:.6f}",
        extra={
            "problem": lp.name,
            "basis_name": basis_name,
            "output_name": output_name,
            "objective": solution.objval,
            "status": solution.status,
        },
    )
    return solution
