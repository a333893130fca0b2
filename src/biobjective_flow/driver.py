"""Bi-objective pivot driver.

Starting from the optimal basis of a composite objective dominated by the
primary objective, the driver pivots one arc at a time toward the optimum of the
secondary objective. Every pivot is carried out on the secondary objective's
engine and then mirrored onto the primary objective's engine, so both solutions
always describe the same basis.

State machine::

    INIT -> CONVERGING -> TERMINATED -> CLEANUP
       \\          \\
        `----------`--> FAILED -----> CLEANUP
"""

from __future__ import annotations

import dataclasses
import logging
import math
import time
from collections.abc import Callable
from contextlib import ExitStack
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .basis_store import BasisStore
from .data import NetworkProblem
from .diagnostics import BasisHistory, PivotMonitor
from .engine import EngineParameters, LPEngine, LPProblem
from .exceptions import (
    BasisMismatchError,
    BiObjectiveFlowError,
    IterationLimitError,
    NoImprovingArcError,
    SolverConfigurationError,
)
from .model import BasisStatus, Solution
from .perturbation import solve_perturbed
from .probe import solve_global_optimum
from .ratio_test import select_entering_arc
from .synchronizer import synchronize_basis

logger = logging.getLogger(__name__)

# Checkpoint names used to hand bases between the two engines.
PERTURBED_BASIS = "pbasis"
PIVOT_BASIS = "basis"
PRIMARY_BASIS = "basis1"
SECONDARY_BASIS = "basis2"


class DriverState(str, Enum):
    INIT = "init"
    CONVERGING = "converging"
    TERMINATED = "terminated"
    FAILED = "failed"
    CLEANUP = "cleanup"


class NoImprovingArcPolicy(str, Enum):
    """What the driver does when the ratio test finds no eligible arc.

    FAIL: the run fails with NoImprovingArcError (the historical behavior).
    CONVERGED: the run terminates normally with status 'no_improving_arc'.
    """

    FAIL = "fail"
    CONVERGED = "converged"


@dataclass
class PivotOptions:
    """Configuration of the pivot driver.

    Attributes:
        objective_tolerance: Relative and absolute tolerance of the termination test
                             ``solution2.objval == floor`` (default: 1e-9).
        pricing_tolerance: Secondary reduced costs within this distance of zero do not
                           make an arc eligible (default: 1e-9).
        no_improving_arc: Policy when no arc is eligible (default: FAIL).
        max_pivots: Stop with IterationLimitError after this many pivots.
                    None (default) lets the loop run until termination.
        basis_dir: Directory for persisted bases. None uses a temporary directory
                   removed at cleanup.
        engine_parameters: Base parameters for every engine (pricing, tolerance,
                           screen output). Iteration limits are set by the driver.

    Examples:
        >>> PivotOptions(max_pivots=100)
        >>> PivotOptions(no_improving_arc="converged", basis_dir="bases/")
    """

    objective_tolerance: float = 1e-9
    pricing_tolerance: float = 1e-9
    no_improving_arc: NoImprovingArcPolicy | str = NoImprovingArcPolicy.FAIL
    max_pivots: int | None = None
    basis_dir: str | Path | None = None
    engine_parameters: EngineParameters | None = None

    def __post_init__(self) -> None:
        if self.objective_tolerance < 0:
            raise SolverConfigurationError(
                f"objective_tolerance must be >= 0, got {self.objective_tolerance}."
            )
        if self.pricing_tolerance < 0:
            raise SolverConfigurationError(
                f"pricing_tolerance must be >= 0, got {self.pricing_tolerance}."
            )
        if self.max_pivots is not None and self.max_pivots < 0:
            raise SolverConfigurationError(
                f"max_pivots must be >= 0 or None, got {self.max_pivots}."
            )
        try:
            self.no_improving_arc = NoImprovingArcPolicy(self.no_improving_arc)
        except ValueError as e:
            raise SolverConfigurationError(
                f"Invalid no_improving_arc policy '{self.no_improving_arc}'. "
                f"Must be 'fail' or 'converged'."
            ) from e


@dataclass(frozen=True)
class PathPoint:
    """One basic feasible solution on the pivot path.

    Attributes:
        iteration: Pivot count when the point was reached (0 for the start).
        entering_arc: Arc pivoted in to reach the point (None for the start).
        objective1: Primary objective value.
        objective2: Secondary objective value.
        elapsed_time: Seconds since the run started.
    """

    iteration: int
    entering_arc: int | None
    objective1: float
    objective2: float
    elapsed_time: float


PivotProgressCallback = Callable[[PathPoint], None]


@dataclass
class PivotResult:
    """Outcome of a pivot run.

    Attributes:
        status: 'converged' when the secondary objective reached its floor,
                'no_improving_arc' when the CONVERGED policy ended the loop.
        floor: Optimum of the secondary objective alone.
        solution1: Final primary-objective solution (snapshot).
        solution2: Final secondary-objective solution (snapshot).
        pivots: Number of pivots performed.
        path: Every basic feasible solution visited, start included.
        elapsed_time: Wall-clock seconds for the whole run.
        diagnostics: Summary from the pivot monitor.
    """

    status: str
    floor: float
    solution1: Solution
    solution2: Solution
    pivots: int
    path: list[PathPoint] = field(default_factory=list)
    elapsed_time: float = 0.0
    diagnostics: dict[str, float | bool | int] = field(default_factory=dict)


@dataclass
class PivotState:
    """Bookkeeping of one run: phase history, pivot count, path and diagnostics."""

    phase: DriverState = DriverState.INIT
    transitions: list[DriverState] = field(default_factory=lambda: [DriverState.INIT])
    iterations: int = 0
    path: list[PathPoint] = field(default_factory=list)
    monitor: PivotMonitor = field(default_factory=PivotMonitor)
    history: BasisHistory = field(default_factory=BasisHistory)
    started: float = 0.0


@dataclass
class PivotContext:
    """Problems, basis store and solutions set up by INIT and shared by later phases."""

    store: BasisStore
    lp1: LPProblem
    lp2: LPProblem
    solution1: Solution
    solution2: Solution
    floor: float


class BiObjectivePivotDriver:
    """Runs the pivot path from the perturbed start to the secondary optimum.

    Args:
        problem1: Network with the primary objective's costs.
        problem2: Same network with the secondary objective's costs.
        options: Driver configuration.
        progress_callback: Called with every PathPoint, start included.

    Examples:
        >>> driver = BiObjectivePivotDriver(problem1, problem2, PivotOptions(max_pivots=500))
        >>> result = driver.run()
        >>> [(p.objective1, p.objective2) for p in result.path]
    """

    def __init__(
        self,
        problem1: NetworkProblem,
        problem2: NetworkProblem,
        options: PivotOptions | None = None,
        progress_callback: PivotProgressCallback | None = None,
    ) -> None:
        self.problem1 = problem1
        self.problem2 = problem2
        self.options = options if options is not None else PivotOptions()
        self.progress_callback = progress_callback
        self.state = PivotState()

    def run(self) -> PivotResult:
        """Execute the state machine and return the result.

        Raises:
            BiObjectiveFlowError: Any failure; engines and stores are released first.
        """
        state = PivotState(started=time.perf_counter())
        self.state = state
        try:
            with ExitStack() as stack:
                try:
                    context = self._initialize(state, stack)
                    self._transition(state, DriverState.CONVERGING)
                    status = self._converge(state, context)
                    self._transition(state, DriverState.TERMINATED)
                    result = self._build_result(state, context, status)
                except BiObjectiveFlowError as e:
                    self._transition(state, DriverState.FAILED)
                    logger.error(
                        f"Pivot run failed after {state.iterations} pivots: {e}",
                        extra={"iterations": state.iterations, "error": type(e).__name__},
                    )
                    raise
        finally:
            self._transition(state, DriverState.CLEANUP)
        return result

    def _transition(self, state: PivotState, phase: DriverState) -> None:
        state.phase = phase
        state.transitions.append(phase)
        logger.debug(f"Driver state -> {phase.value}", extra={"phase": phase.value})

    # ------------------------------------------------------------------
    # INIT
    # ------------------------------------------------------------------
    def _initialize(self, state: PivotState, stack: ExitStack) -> PivotContext:
        self.problem1.check_same_structure(self.problem2)
        base = self.options.engine_parameters or EngineParameters()
        step_params = dataclasses.replace(base, iteration_limit=1)

        store = stack.enter_context(BasisStore(self.options.basis_dir))
        engine1 = stack.enter_context(LPEngine(step_params, name="objective1"))
        engine2 = stack.enter_context(LPEngine(step_params, name="objective2"))
        lp1 = engine1.create_problem(self.problem1, name=f"{self.problem1.name}#1")
        lp2 = engine2.create_problem(self.problem2, name=f"{self.problem2.name}#2")

        floor = solve_global_optimum(self.problem2, base).objval
        solve_perturbed(lp1, lp2, store, PERTURBED_BASIS)

        solution1 = Solution.allocate(lp1.narcs, lp1.nnodes)
        solution2 = Solution.allocate(lp2.narcs, lp2.nnodes)
        synchronize_basis(lp1, store, PERTURBED_BASIS, solution1, PRIMARY_BASIS)
        synchronize_basis(lp2, store, PERTURBED_BASIS, solution2, SECONDARY_BASIS)
        context = PivotContext(
            store=store,
            lp1=lp1,
            lp2=lp2,
            solution1=solution1,
            solution2=solution2,
            floor=floor,
        )
        self._check_invariant(state, context)

        state.history.record_basis(solution2.basis.arc_status)
        self._record_point(state, context, entering_arc=None)
        logger.info(
            f"Starting pivot path: objective1={solution1.objval:.6f}, "
            f"objective2={solution2.objval:.6f}, floor={floor:.6f}",
            extra={
                "objective1": solution1.objval,
                "objective2": solution2.objval,
                "floor": floor,
                "arcs": lp1.narcs,
                "nodes": lp1.nnodes,
            },
        )
        return context

    # ------------------------------------------------------------------
    # CONVERGING
    # ------------------------------------------------------------------
    def _at_floor(self, context: PivotContext) -> bool:
        tol = self.options.objective_tolerance
        return math.isclose(context.solution2.objval, context.floor, rel_tol=tol, abs_tol=tol)

    def _converge(self, state: PivotState, context: PivotContext) -> str:
        options = self.options
        solution1, solution2 = context.solution1, context.solution2

        while not self._at_floor(context):
            if options.max_pivots is not None and state.iterations >= options.max_pivots:
                raise IterationLimitError(
                    f"Pivot limit reached: {state.iterations} pivots completed without "
                    f"reaching the floor {context.floor:.6f}",
                    iterations=state.iterations,
                    objective=solution2.objval,
                    status=state.phase.value,
                )
            try:
                arc = select_entering_arc(
                    solution1.dj,
                    solution2.dj,
                    solution2.basis.arc_status,
                    tolerance=options.pricing_tolerance,
                )
            except NoImprovingArcError:
                if options.no_improving_arc is NoImprovingArcPolicy.CONVERGED:
                    logger.info(
                        f"No improving arc after {state.iterations} pivots; stopping at "
                        f"objective2={solution2.objval:.6f} (floor {context.floor:.6f})"
                    )
                    return "no_improving_arc"
                raise

            context.lp2.pivot(arc, BasisStatus.AT_LOWER)
            context.lp2.fill_solution(solution2)
            context.lp2.write_basis(context.store, PIVOT_BASIS)
            synchronize_basis(context.lp1, context.store, PIVOT_BASIS, solution1, PRIMARY_BASIS)
            self._check_invariant(state, context)

            state.iterations += 1
            self._record_point(state, context, entering_arc=arc)
            self._watch_progress(state, context)

        logger.info(
            f"Reached floor {context.floor:.6f} after {state.iterations} pivots",
            extra={"floor": context.floor, "iterations": state.iterations},
        )
        return "converged"

    def _check_invariant(self, state: PivotState, context: PivotContext) -> None:
        basis1, basis2 = context.solution1.basis, context.solution2.basis
        if basis1 != basis2:
            differing = basis1.differing_arcs(basis2)
            raise BasisMismatchError(
                f"Objective solutions disagree on the basis after {state.iterations} pivots "
                f"(arcs {differing})",
                arc_indices=differing,
            )

    def _record_point(
        self, state: PivotState, context: PivotContext, entering_arc: int | None
    ) -> None:
        point = PathPoint(
            iteration=state.iterations,
            entering_arc=entering_arc,
            objective1=context.solution1.objval,
            objective2=context.solution2.objval,
            elapsed_time=time.perf_counter() - state.started,
        )
        state.path.append(point)
        if entering_arc is not None:
            logger.info(
                f"Pivot {point.iteration}: arc {entering_arc} enters, "
                f"objective1={point.objective1:.6f}, objective2={point.objective2:.6f}",
                extra={
                    "iteration": point.iteration,
                    "entering_arc": entering_arc,
                    "objective1": point.objective1,
                    "objective2": point.objective2,
                },
            )
        if self.progress_callback is not None:
            self.progress_callback(point)

    def _watch_progress(self, state: PivotState, context: PivotContext) -> None:
        state.monitor.record_pivot(context.solution2.objval)
        visits = state.history.record_basis(context.solution2.basis.arc_status)
        if visits > 1:
            logger.warning(
                f"Basis revisited ({visits} visits) at pivot {state.iterations}; the pivot "
                f"path may be cycling",
                extra={"iteration": state.iterations, "visits": visits},
            )
        if state.monitor.is_stalled():
            logger.warning(
                f"Secondary objective unchanged for "
                f"{state.monitor.consecutive_no_improvement} pivots",
                extra=state.monitor.get_diagnostic_summary(),
            )

    def _build_result(self, state: PivotState, context: PivotContext, status: str) -> PivotResult:
        return PivotResult(
            status=status,
            floor=context.floor,
            solution1=context.solution1.copy(),
            solution2=context.solution2.copy(),
            pivots=state.iterations,
            path=list(state.path),
            elapsed_time=time.perf_counter() - state.started,
            diagnostics=state.monitor.get_diagnostic_summary(),
        )


def compute_pivot_path(
    problem1: NetworkProblem,
    problem2: NetworkProblem,
    options: PivotOptions | None = None,
    progress_callback: PivotProgressCallback | None = None,
) -> PivotResult:
    """Compute the pivot path from the perturbed start to the secondary optimum.

    This is the main entry point. ``problem1`` and ``problem2`` must describe the
    same network and differ only in arc costs.

    Args:
        problem1: Network carrying the primary objective.
        problem2: Network carrying the secondary objective.
        options: Driver configuration (tolerances, pivot limit, policies).
        progress_callback: Receives every PathPoint as it is reached.

    Returns:
        PivotResult with the visited path and both final solutions.

    Raises:
        InvalidProblemError: If the problems do not share one network.
        NoImprovingArcError: If the loop runs out of eligible arcs under the FAIL policy.
        IterationLimitError: If ``options.max_pivots`` is exhausted.
        BiObjectiveFlowError: Any other engine failure.

    Examples:
        >>> from biobjective_flow import compute_pivot_path, load_problem
        >>> result = compute_pivot_path(load_problem("cost1.json"), load_problem("cost2.json"))
        >>> print(result.status, result.pivots, result.floor)
    """
    driver = BiObjectivePivotDriver(problem1, problem2, options, progress_callback)
    return driver.run()
