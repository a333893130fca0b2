"""Perturbation solver: a shared starting basis for both objectives.

The composite objective ``0.999 * c1 + 0.001 * c2`` is dominated by the first
objective but breaks its ties in favour of the second, so its optimal basis is a
valid common start for the two-objective pivot loop.
"""

from __future__ import annotations

import logging

import numpy as np

from .basis_store import BasisStore
from .engine import LPProblem
from .exceptions import InvalidProblemError, IterationLimitError
from .model import Solution

logger = logging.getLogger(__name__)

PRIMARY_WEIGHT = 0.999
SECONDARY_WEIGHT = 0.001


def composite_costs(primary: np.ndarray, secondary: np.ndarray) -> np.ndarray:
    """Return ``PRIMARY_WEIGHT * primary + SECONDARY_WEIGHT * secondary``."""
    primary = np.asarray(primary, dtype=float)
    secondary = np.asarray(secondary, dtype=float)
    if primary.shape != secondary.shape:
        raise InvalidProblemError(
            f"Cost vectors differ in length: {primary.shape[0]} vs {secondary.shape[0]}."
        )
    return PRIMARY_WEIGHT * primary + SECONDARY_WEIGHT * secondary


def solve_perturbed(
    lp1: LPProblem,
    lp2: LPProblem,
    store: BasisStore,
    basis_name: str = "pbasis",
) -> Solution:
    """Solve the composite objective and persist its optimal basis.

    A scratch clone of ``lp1`` receives the composite costs, so neither input
    problem is modified. The scratch problem is closed on every exit path.

    Args:
        lp1: Problem instance carrying the primary objective.
        lp2: Problem instance carrying the secondary objective (same structure).
        store: Basis store receiving the optimal basis.
        basis_name: Checkpoint name for the optimal basis (default: "pbasis").

    Returns:
        Solution of the composite problem at its optimal basis.
    """
    if lp1.narcs != lp2.narcs or lp1.nnodes != lp2.nnodes:
        raise InvalidProblemError(
            f"Problems '{lp1.name}' and '{lp2.name}' differ in size: "
            f"{lp1.narcs}x{lp1.nnodes} vs {lp2.narcs}x{lp2.nnodes}."
        )
    costs = composite_costs(lp1.get_objective(), lp2.get_objective())
    scratch = lp1.clone(name=f"{lp1.name}_perturbed")
    try:
        scratch.set_objective(costs, 0, lp1.narcs - 1)
        with lp1.engine.override(iteration_limit=None):
            status = scratch.optimize()
        if status != "optimal":
            raise IterationLimitError(
                f"Perturbed problem ended with status '{status}'",
                iterations=scratch.iteration_count,
                status=status,
            )
        scratch.write_basis(store, basis_name)
        solution = Solution.allocate(scratch.narcs, scratch.nnodes)
        scratch.fill_solution(solution)
    finally:
        scratch.close()

    logger.info(
        f"Perturbed start basis '{basis_name}': composite objective {solution.objval:.6f}, "
        f"{len(solution.basis.basic_arcs())} basic arcs",
        extra={
            "basis_name": basis_name,
            "objective": solution.objval,
            "iterations": scratch.iteration_count,
            "elapsed_ms": scratch.solve_time * 1000,
        },
    )
    return solution
