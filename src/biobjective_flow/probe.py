"""Global-optimum probe: solve one objective alone to get the pivot loop's floor."""

from __future__ import annotations

import dataclasses
import logging

from .data import NetworkProblem
from .engine import EngineParameters, LPEngine
from .exceptions import IterationLimitError
from .model import Solution

logger = logging.getLogger(__name__)


def solve_global_optimum(
    problem: NetworkProblem, parameters: EngineParameters | None = None
) -> Solution:
    """Solve ``problem`` to optimality in a fresh engine and return its solution.

    The engine is opened for this call only and always closed before returning.
    Any iteration limit in ``parameters`` is lifted: the probe must reach optimality.

    Args:
        problem: Network problem carrying the objective to minimize.
        parameters: Engine parameters to start from (pricing, tolerance, logging).

    Returns:
        Solution whose ``objval`` is the unconstrained optimum of the objective.

    Raises:
        InfeasibleProblemError: If the network admits no feasible flow.
        UnboundedProblemError: If the objective is unbounded below.
        IterationLimitError: If the solve stops without proving optimality.
    """
    base = parameters if parameters is not None else EngineParameters()
    params = dataclasses.replace(base, iteration_limit=None)
    with LPEngine(params, name=f"probe:{problem.name}") as engine:
        lp = engine.create_problem(problem, name=f"{problem.name}_probe")
        status = lp.optimize()
        if status != "optimal":
            raise IterationLimitError(
                f"Global-optimum probe for '{problem.name}' ended with status '{status}'",
                iterations=lp.iteration_count,
                status=status,
            )
        solution = Solution.allocate(lp.narcs, lp.nnodes)
        lp.fill_solution(solution)

    logger.info(
        f"Global optimum of '{problem.name}': {solution.objval:.6f} "
        f"({lp.iteration_count} iterations)",
        extra={
            "problem": problem.name,
            "objective": solution.objval,
            "iterations": lp.iteration_count,
            "elapsed_ms": lp.solve_time * 1000,
        },
    )
    return solution
