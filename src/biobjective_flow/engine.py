"""In-process LP engine for network-flow problems.

The engine exposes the capabilities the pivot procedure relies on: load a network
into LP form (columns = arcs, rows = nodes), clone a problem, replace objective
coefficients, run a bounded primal simplex under an iteration limit, read the
solution and the basis, install or persist a basis, and pivot a single arc into
the basis without re-optimizing.

LP form:

    min  c^T x
    s.t. A x + D s = b        (one row per node, b = supplies)
         l <= x <= u          (arc bounds)
         s = 0                (row logicals, relaxed to s >= 0 during phase 1)

``A`` is the node-arc incidence matrix (+1 at the tail, -1 at the head) and
``D`` a diagonal of signs chosen so the phase 1 slack basis starts feasible.
Because the incidence matrix has rank ``nnodes - 1``, every basis holds at least
one logical column.

Examples:
    >>> with LPEngine(EngineParameters(iteration_limit=None)) as engine:
    ...     lp = engine.create_problem(problem)
    ...     lp.optimize()
    ...     status, objval, x, pi, slack, dj = lp.solution()
"""

from __future__ import annotations

import copy
import dataclasses
import logging
import math
import time
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from types import TracebackType
from typing import Any

import numpy as np

from .basis_lu import LUFactors, build_lu, is_singular, solve_lu
from .basis_store import BasisStore
from .data import NetworkProblem
from .exceptions import (
    EngineError,
    InfeasibleProblemError,
    InvalidProblemError,
    NumericalInstabilityError,
    SolverConfigurationError,
    UnboundedProblemError,
)
from .model import BasisStatus, NetworkBasis, Solution
from .simplex_pricing import BlandPricing, PricingStrategy, make_pricing

logger = logging.getLogger(__name__)

PIVOT_TOLERANCE = 1e-9  # Smallest direction entry treated as nonzero in ratio tests.
DEGENERATE_SWITCH = 50  # Consecutive degenerate steps before falling back to Bland's rule.


@dataclass
class EngineParameters:
    """Configuration of an LP engine environment.

    Attributes:
        iteration_limit: Maximum simplex steps per ``optimize()`` call.
                         None means unlimited; 0 only recomputes values at the
                         installed basis.
        tolerance: Feasibility and optimality tolerance (default: 1e-9).
        pricing: Entering-column rule, "dantzig" (default) or "bland".
        screen_output: Log every simplex step at INFO instead of DEBUG.
        advanced_start: Start ``optimize()`` from the installed basis when it is
                        primal feasible (default: True). When False every solve
                        restarts from the slack basis.

    Examples:
        >>> EngineParameters(iteration_limit=1)
        >>> EngineParameters(pricing="bland", screen_output=True)
    """

    iteration_limit: int | None = None
    tolerance: float = 1e-9
    pricing: str = "dantzig"
    screen_output: bool = False
    advanced_start: bool = True

    def __post_init__(self) -> None:
        if self.iteration_limit is not None and self.iteration_limit < 0:
            raise SolverConfigurationError(
                f"iteration_limit must be >= 0 or None, got {self.iteration_limit}."
            )
        if self.tolerance <= 0:
            raise SolverConfigurationError(
                f"Tolerance must be positive, got {self.tolerance}. "
                f"Tolerance controls numerical precision for feasibility and optimality checks."
            )
        if self.pricing not in ("dantzig", "bland"):
            raise SolverConfigurationError(
                f"Invalid pricing strategy '{self.pricing}'. Must be 'dantzig' or 'bland'."
            )


class LPEngine:
    """Solving context owning parameters and problem instances.

    Closing the engine closes every problem it created.
    """

    def __init__(self, parameters: EngineParameters | None = None, name: str = "engine") -> None:
        self.parameters = parameters if parameters is not None else EngineParameters()
        self.name = name
        self._problems: list[LPProblem] = []
        self._closed = False
        logger.debug("Opened LP engine", extra={"engine": name})

    def __enter__(self) -> LPEngine:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def check_open(self, operation: str) -> None:
        if self._closed:
            raise EngineError(f"Engine '{self.name}' is closed; cannot {operation}.", operation)

    def create_problem(self, network: NetworkProblem, name: str | None = None) -> LPProblem:
        """Load ``network`` into a new LP problem instance."""
        self.check_open("create problem")
        problem = LPProblem(self, network, name or network.name)
        self._problems.append(problem)
        return problem

    def register(self, problem: LPProblem) -> None:
        self._problems.append(problem)

    def set_parameters(self, **changes: Any) -> None:
        """Replace parameter values; unknown names raise SolverConfigurationError."""
        self.check_open("set parameters")
        try:
            self.parameters = dataclasses.replace(self.parameters, **changes)
        except TypeError as e:
            raise SolverConfigurationError(f"Unknown engine parameter: {e}") from e

    @contextmanager
    def override(self, **changes: Any) -> Iterator[EngineParameters]:
        """Temporarily change parameters, restoring the previous values on exit."""
        previous = self.parameters
        self.set_parameters(**changes)
        try:
            yield self.parameters
        finally:
            self.parameters = previous

    def close(self) -> None:
        if self._closed:
            return
        for problem in self._problems:
            problem.close()
        self._problems.clear()
        self._closed = True
        logger.debug("Closed LP engine", extra={"engine": self.name})


class LPProblem:
    """A network-flow LP held by an engine.

    Columns ``0..narcs-1`` are arcs, columns ``narcs..narcs+nnodes-1`` are row
    logicals. The problem always holds a basis: the slack basis after loading,
    then whatever the last solve, pivot or ``copy_basis`` left behind.
    """

    def __init__(self, engine: LPEngine, network: NetworkProblem, name: str) -> None:
        network.validate()
        if network.num_arcs == 0 or network.num_nodes == 0:
            raise InvalidProblemError(
                f"Problem '{name}' needs at least one node and one arc, got "
                f"{network.num_nodes} nodes and {network.num_arcs} arcs."
            )
        self.engine = engine
        self.name = name
        self.network = network
        self.narcs = network.num_arcs
        self.nnodes = network.num_nodes
        self._closed = False

        node_index = {node_id: idx for idx, node_id in enumerate(network.node_ids)}
        self.incidence = np.zeros((self.nnodes, self.narcs), dtype=float)
        for col, arc in enumerate(network.arcs):
            self.incidence[node_index[arc.tail], col] = 1.0
            self.incidence[node_index[arc.head], col] = -1.0
        self.rhs = network.supplies()
        self.cost = network.costs()
        self.arc_lower = np.array([arc.lower for arc in network.arcs], dtype=float)
        self.arc_upper = np.array([arc.upper for arc in network.arcs], dtype=float)

        n_total = self.narcs + self.nnodes
        self.logical_sign = np.ones(self.nnodes, dtype=float)
        self.status = np.zeros(n_total, dtype=np.int8)
        self.values = np.zeros(n_total, dtype=float)
        self.head: list[int] = []
        self.factors: LUFactors | None = None
        self.phase = 2
        self.last_status = "unknown"
        self.iteration_count = 0
        self.solve_time = 0.0
        self._install_slack_basis()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True
        self.factors = None

    def _check_open(self, operation: str) -> None:
        self.engine.check_open(operation)
        if self._closed:
            raise EngineError(f"Problem '{self.name}' is closed; cannot {operation}.", operation)

    def clone(self, name: str | None = None) -> LPProblem:
        """Return an independent copy (data, objective and basis) in the same engine."""
        self._check_open("clone problem")
        twin = copy.copy(self)
        twin.name = name or f"{self.name}_clone"
        twin.incidence = self.incidence.copy()
        twin.rhs = self.rhs.copy()
        twin.cost = self.cost.copy()
        twin.arc_lower = self.arc_lower.copy()
        twin.arc_upper = self.arc_upper.copy()
        twin.logical_sign = self.logical_sign.copy()
        twin.status = self.status.copy()
        twin.values = self.values.copy()
        twin.head = list(self.head)
        twin.factors = None
        twin._closed = False
        if twin.head:
            twin._factorize()
        self.engine.register(twin)
        return twin

    # ------------------------------------------------------------------
    # Problem data
    # ------------------------------------------------------------------
    def set_objective(
        self, costs: Sequence[float] | np.ndarray, begin: int = 0, end: int | None = None
    ) -> None:
        """Replace objective coefficients of arcs ``begin..end`` (inclusive)."""
        self._check_open("set objective")
        end = self.narcs - 1 if end is None else end
        if begin < 0 or end >= self.narcs or begin > end:
            raise EngineError(
                f"Invalid objective range [{begin}, {end}] for {self.narcs} arcs.", "set objective"
            )
        values = np.asarray(costs, dtype=float).reshape(-1)
        if values.shape[0] != end - begin + 1:
            raise EngineError(
                f"Expected {end - begin + 1} objective coefficients, got {values.shape[0]}.",
                "set objective",
            )
        self.cost[begin : end + 1] = values

    def get_objective(self) -> np.ndarray:
        return self.cost.copy()

    # ------------------------------------------------------------------
    # Bounds and basis bookkeeping
    # ------------------------------------------------------------------
    def _bounds(self) -> tuple[np.ndarray, np.ndarray]:
        logical_upper = np.full(self.nnodes, math.inf if self.phase == 1 else 0.0)
        lower = np.concatenate([self.arc_lower, np.zeros(self.nnodes)])
        upper = np.concatenate([self.arc_upper, logical_upper])
        return lower, upper

    def _costs(self) -> np.ndarray:
        if self.phase == 1:
            return np.concatenate([np.zeros(self.narcs), np.ones(self.nnodes)])
        return np.concatenate([self.cost, np.zeros(self.nnodes)])

    def _column(self, col: int) -> np.ndarray:
        if col < self.narcs:
            return self.incidence[:, col]
        vec = np.zeros(self.nnodes, dtype=float)
        vec[col - self.narcs] = self.logical_sign[col - self.narcs]
        return vec

    def _matrix(self) -> np.ndarray:
        return np.hstack([self.incidence, np.diag(self.logical_sign)])

    def _install_slack_basis(self) -> None:
        # Arcs at their lower bounds, logicals absorbing the residual supply.
        self.status[: self.narcs] = BasisStatus.AT_LOWER
        self.values[: self.narcs] = self.arc_lower
        residual = self.rhs - self.incidence @ self.arc_lower
        self.logical_sign = np.where(residual >= 0.0, 1.0, -1.0)
        self.status[self.narcs :] = BasisStatus.BASIC
        self.head = list(range(self.narcs, self.narcs + self.nnodes))
        self.phase = 1 if np.any(np.abs(residual) > self.engine.parameters.tolerance) else 2
        self._factorize()
        self._compute_primal()

    def _factorize(self) -> None:
        basis_matrix = np.column_stack([self._column(col) for col in self.head])
        factors = build_lu(basis_matrix)
        if is_singular(factors):
            raise NumericalInstabilityError(
                f"Basis matrix of problem '{self.name}' is singular; the basic columns do "
                f"not form a valid basis."
            )
        self.factors = factors

    def _solve(self, rhs: np.ndarray, transpose: bool = False) -> np.ndarray:
        if self.factors is None:
            raise EngineError(
                f"Problem '{self.name}' has no factored basis to solve against.",
                operation="solve",
            )
        result = solve_lu(self.factors, rhs, transpose=transpose)
        if result is None:
            raise NumericalInstabilityError(
                f"Basis solve failed for problem '{self.name}': matrix is singular."
            )
        return result

    def _compute_primal(self) -> None:
        lower, upper = self._bounds()
        nonbasic = self.status != BasisStatus.BASIC
        at_upper = self.status == BasisStatus.AT_UPPER
        self.values[nonbasic] = lower[nonbasic]
        self.values[at_upper] = upper[at_upper]
        residual = self.rhs - self._matrix()[:, nonbasic] @ self.values[nonbasic]
        self.values[self.head] = self._solve(residual)

    def _compute_duals(self) -> tuple[np.ndarray, np.ndarray]:
        costs = self._costs()
        duals = self._solve(costs[self.head], transpose=True)
        reduced = costs - self._matrix().T @ duals
        reduced[self.head] = 0.0
        return duals, reduced

    def _primal_infeasibility(self) -> float:
        lower, upper = self._bounds()
        below = np.maximum(lower - self.values, 0.0)
        above = np.maximum(self.values - upper, 0.0)
        return float(np.max(below + above)) if self.values.size else 0.0

    @property
    def primal_feasible(self) -> bool:
        """True when the current basic solution satisfies every phase 2 bound."""
        if self.phase == 1:
            return False
        return self._primal_infeasibility() <= self._feasibility_tolerance()

    def _feasibility_tolerance(self) -> float:
        return max(self.engine.parameters.tolerance, 1e-9) * max(1.0, float(np.max(np.abs(self.rhs))))

    # ------------------------------------------------------------------
    # Simplex
    # ------------------------------------------------------------------
    def _ratio_test(
        self, entering: int, direction: float, column_step: np.ndarray, leaving_status: BasisStatus
    ) -> tuple[float, int | None, BasisStatus]:
        """Return (step length, leaving position or None for a bound flip, leaving status)."""
        lower, upper = self._bounds()
        span = upper[entering] - lower[entering]
        best_step = math.inf
        best_pos: int | None = None
        best_status = leaving_status
        best_pivot = 0.0

        for pos, col in enumerate(self.head):
            rate = -direction * column_step[pos]
            if abs(rate) <= PIVOT_TOLERANCE:
                continue
            if rate < 0.0:
                limit = (self.values[col] - lower[col]) / -rate
                hit = BasisStatus.AT_LOWER
            else:
                if math.isinf(upper[col]):
                    continue
                limit = (upper[col] - self.values[col]) / rate
                hit = BasisStatus.AT_UPPER
            limit = max(limit, 0.0)
            if lower[col] == upper[col]:
                hit = leaving_status
            # Shortest step first, then the largest pivot element, then the lowest column.
            if best_pos is None or limit < best_step - PIVOT_TOLERANCE:
                take = True
            elif abs(limit - best_step) <= PIVOT_TOLERANCE:
                take = abs(rate) > best_pivot + PIVOT_TOLERANCE or (
                    abs(abs(rate) - best_pivot) <= PIVOT_TOLERANCE and col < self.head[best_pos]
                )
            else:
                take = False
            if take:
                best_step = limit
                best_pos = pos
                best_status = hit
                best_pivot = abs(rate)

        if best_pos is None or best_step > span + PIVOT_TOLERANCE:
            return span, None, leaving_status
        return best_step, best_pos, best_status

    def _step(
        self,
        entering: int,
        leaving_status: BasisStatus = BasisStatus.AT_LOWER,
        reduced_cost: float | None = None,
    ) -> float:
        """Move ``entering`` in its improving direction and update the basis.

        Returns the step length.
        """
        entering_status = BasisStatus(int(self.status[entering]))
        if entering_status is BasisStatus.BASIC:
            raise EngineError(
                f"Column {entering} of problem '{self.name}' is already basic; cannot pivot it in.",
                "pivot",
            )
        direction = 1.0 if entering_status is BasisStatus.AT_LOWER else -1.0
        column_step = self._solve(self._column(entering))
        step, leaving_pos, hit = self._ratio_test(entering, direction, column_step, leaving_status)

        if math.isinf(step):
            raise UnboundedProblemError(
                f"Unbounded direction in problem '{self.name}': column {entering} can "
                f"{'increase' if direction > 0 else 'decrease'} indefinitely.",
                entering_arc=entering if entering < self.narcs else None,
                reduced_cost=reduced_cost,
            )

        if leaving_pos is None:
            # Bound flip: the entering column reaches its opposite bound first.
            self.status[entering] = (
                BasisStatus.AT_UPPER if direction > 0 else BasisStatus.AT_LOWER
            )
        else:
            leaving = self.head[leaving_pos]
            self.head[leaving_pos] = entering
            self.status[entering] = BasisStatus.BASIC
            self.status[leaving] = hit
            self._factorize()
        self._compute_primal()
        return step

    def _log_step(self, iteration: int, entering: int, step: float) -> None:
        level = logging.INFO if self.engine.parameters.screen_output else logging.DEBUG
        if logger.isEnabledFor(level):
            costs = self._costs()
            logger.log(
                level,
                f"[{self.name}] phase {self.phase} iteration {iteration}: column {entering} "
                f"enters, step {step:.6g}, objective {float(costs @ self.values):.6f}",
                extra={
                    "problem": self.name,
                    "phase": self.phase,
                    "iteration": iteration,
                    "entering": entering,
                    "step": step,
                },
            )

    def _run_phase(self, pricing: PricingStrategy, budget: int | None) -> tuple[str, int]:
        """Iterate the current phase until optimal or out of budget."""
        tolerance = self.engine.parameters.tolerance
        performed = 0
        degenerate_run = 0
        active = pricing
        while True:
            _, reduced = self._compute_duals()
            lower, upper = self._bounds()
            entering = active.select_entering(reduced, self.status, lower, upper, tolerance)
            if entering is None:
                return "optimal", performed
            if budget is not None and performed >= budget:
                return "iteration_limit", performed
            step = self._step(entering, reduced_cost=float(reduced[entering]))
            performed += 1
            self._log_step(self.iteration_count + performed, entering, step)
            degenerate_run = degenerate_run + 1 if step <= PIVOT_TOLERANCE else 0
            if degenerate_run >= DEGENERATE_SWITCH and not isinstance(active, BlandPricing):
                logger.debug(
                    f"[{self.name}] {degenerate_run} degenerate steps in a row, switching to "
                    f"Bland's rule"
                )
                active = BlandPricing()

    def _end_phase_one(self) -> None:
        infeasibility = float(np.sum(self.values[self.narcs :]))
        if infeasibility > self._feasibility_tolerance():
            raise InfeasibleProblemError(
                f"No feasible flow exists for problem '{self.name}': phase 1 ended with "
                f"infeasibility {infeasibility:.6g}.",
                iterations=self.iteration_count,
            )
        self.phase = 2
        self._compute_primal()

    def optimize(self) -> str:
        """Run primal simplex from the installed basis, bounded by the iteration limit.

        Returns the solution status: 'optimal', 'iteration_limit', 'infeasible'
        (raised as InfeasibleProblemError) or 'unbounded' (raised as
        UnboundedProblemError).
        """
        self._check_open("optimize")
        params = self.engine.parameters
        started = time.perf_counter()
        self.iteration_count = 0
        pricing = make_pricing(params.pricing)

        if not params.advanced_start:
            self._install_slack_basis()
        elif self.phase == 2 and not self.primal_feasible and params.iteration_limit != 0:
            logger.info(
                f"Installed basis of '{self.name}' is not primal feasible; restarting from "
                f"the slack basis"
            )
            self._install_slack_basis()

        budget = params.iteration_limit
        if self.phase == 2 and not self.primal_feasible:
            # Only reachable with a zero iteration limit: report values as they stand.
            self.last_status = "iteration_limit"
            self.solve_time = time.perf_counter() - started
            return self.last_status
        try:
            if self.phase == 1:
                status, performed = self._run_phase(pricing, budget)
                self.iteration_count += performed
                if status == "optimal":
                    self._end_phase_one()
                    budget = None if budget is None else budget - performed
                else:
                    self.last_status = "iteration_limit"
                    return self.last_status
            status, performed = self._run_phase(pricing, budget)
            self.iteration_count += performed
        except InfeasibleProblemError:
            self.last_status = "infeasible"
            raise
        except UnboundedProblemError:
            self.last_status = "unbounded"
            raise
        finally:
            self.solve_time = time.perf_counter() - started

        self.last_status = status
        logger.debug(
            f"[{self.name}] optimize finished: {status} after {self.iteration_count} iterations",
            extra={
                "problem": self.name,
                "status": status,
                "iterations": self.iteration_count,
                "elapsed_ms": self.solve_time * 1000,
            },
        )
        return status

    def pivot(self, arc: int, leaving_status: BasisStatus = BasisStatus.AT_LOWER) -> None:
        """Pivot one non-basic arc into the basis without re-optimizing.

        The arc moves in its improving direction for its status (up from its lower
        bound, down from its upper bound) until a basic variable or its own opposite
        bound blocks it. The blocking basic variable leaves at the bound it reaches;
        ``leaving_status`` is used when that variable is fixed (both bounds equal).
        """
        self._check_open("pivot")
        if not 0 <= arc < self.narcs:
            raise EngineError(f"Arc index {arc} out of range for {self.narcs} arcs.", "pivot")
        if self.phase != 2:
            raise EngineError(
                f"Problem '{self.name}' has no feasible basis installed; optimize first.", "pivot"
            )
        started = time.perf_counter()
        _, reduced = self._compute_duals()
        step = self._step(arc, leaving_status=leaving_status, reduced_cost=float(reduced[arc]))
        self.solve_time = time.perf_counter() - started
        self.iteration_count = 1
        self.last_status = self._classify()
        self._log_step(1, arc, step)

    def _classify(self) -> str:
        if not self.primal_feasible:
            return "iteration_limit"
        _, reduced = self._compute_duals()
        lower, upper = self._bounds()
        entering = make_pricing("dantzig").select_entering(
            reduced, self.status, lower, upper, self.engine.parameters.tolerance
        )
        return "optimal" if entering is None else "iteration_limit"

    # ------------------------------------------------------------------
    # Solution access
    # ------------------------------------------------------------------
    def solution(self) -> tuple[str, float, np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """Return ``(status, objval, x, pi, slack, dj)`` at the installed basis."""
        self._check_open("get solution")
        x = self.values[: self.narcs].copy()
        saved_phase = self.phase
        self.phase = 2
        try:
            duals, _ = self._compute_duals()
        finally:
            self.phase = saved_phase
        dj = self.cost - self.incidence.T @ duals
        dj[[col for col in self.head if col < self.narcs]] = 0.0
        slack = self.rhs - self.incidence @ x
        objval = float(self.cost @ x)
        return self.last_status, objval, x, duals.copy(), slack, dj

    def get_basis(self) -> NetworkBasis:
        self._check_open("get basis")
        return NetworkBasis.from_codes(self.status[: self.narcs], self.status[self.narcs :])

    def fill_solution(self, solution: Solution) -> Solution:
        """Read status, values and basis into ``solution`` in place."""
        status, objval, x, pi, slack, dj = self.solution()
        solution.fill(status, objval, x, pi, slack, dj, self.get_basis())
        return solution

    def copy_basis(self, basis: NetworkBasis) -> None:
        """Install ``basis`` and recompute the basic solution (no pivoting)."""
        self._check_open("copy basis")
        if basis.num_arcs != self.narcs or basis.num_nodes != self.nnodes:
            raise EngineError(
                f"Basis has {basis.num_arcs} arcs and {basis.num_nodes} nodes, problem "
                f"'{self.name}' has {self.narcs} arcs and {self.nnodes} nodes.",
                "copy basis",
            )
        codes = np.concatenate([basis.arc_codes(), basis.node_codes()])
        head = [int(col) for col in np.flatnonzero(codes == BasisStatus.BASIC)]
        if len(head) != self.nnodes:
            raise NumericalInstabilityError(
                f"Basis for problem '{self.name}' has {len(head)} basic columns; "
                f"exactly {self.nnodes} are required."
            )
        bad_upper = [
            col
            for col in range(self.narcs)
            if codes[col] == BasisStatus.AT_UPPER and math.isinf(self.arc_upper[col])
        ]
        if bad_upper:
            raise EngineError(
                f"Arcs {bad_upper} are marked AT_UPPER but have infinite capacity.", "copy basis"
            )
        previous = (self.status.copy(), list(self.head), self.logical_sign.copy(), self.phase)
        self.status = codes.astype(np.int8)
        self.head = head
        self.logical_sign = np.ones(self.nnodes, dtype=float)
        self.phase = 2
        try:
            self._factorize()
        except NumericalInstabilityError:
            self.status, self.head, self.logical_sign, self.phase = previous
            self._factorize()
            raise
        self._compute_primal()

    def write_basis(self, store: BasisStore, name: str) -> None:
        self._check_open("write basis")
        store.save(name, self.get_basis())

    def read_basis(self, store: BasisStore, name: str) -> None:
        self._check_open("read basis")
        self.copy_basis(store.load(name))
