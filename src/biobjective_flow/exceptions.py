"""Custom exceptions for the bi-objective pivoting library."""

from __future__ import annotations


class BiObjectiveFlowError(Exception):
    """Base exception for all bi-objective flow errors.

    All custom exceptions in the biobjective_flow package inherit from this class,
    allowing callers to catch every solver-related failure with a single except clause.

    Example:
        try:
            result = compute_pivot_path(problem1, problem2)
        except BiObjectiveFlowError as e:
            print(f"Pivot path failed: {e}")
    """


class InvalidProblemError(BiObjectiveFlowError):
    """Raised when a problem definition is invalid or malformed.

    This includes:
    - Unbalanced supply/demand (total supply ≠ 0)
    - Missing nodes referenced in arcs
    - Invalid arc definitions (self-loops, capacity < lower bound)
    - Two objective files that do not describe the same network
    - Malformed JSON or DIMACS input

    Example:
        InvalidProblemError("Arc 3 differs between objectives: ('a', 'b') vs ('a', 'c')")
    """


class InfeasibleProblemError(BiObjectiveFlowError):
    """Raised when no feasible flow exists, or a loaded basis is not primal feasible.

    Example:
        InfeasibleProblemError(
            "No feasible flow exists: phase 1 ended with infeasibility 2.0",
            iterations=7,
        )
    """

    def __init__(self, message: str, iterations: int = 0):
        """Initialize with message and optional iteration count."""
        super().__init__(message)
        self.iterations = iterations


class UnboundedProblemError(BiObjectiveFlowError):
    """Raised when the objective can decrease without limit.

    Detected during a simplex step when the entering arc can move indefinitely
    without any basic variable or its own bound blocking it.

    Example:
        UnboundedProblemError(
            "Unbounded direction: arc 4 can increase indefinitely",
            entering_arc=4,
            reduced_cost=-5.0,
        )
    """

    def __init__(
        self,
        message: str,
        entering_arc: int | None = None,
        reduced_cost: float | None = None,
    ):
        """Initialize with message and optional diagnostic information."""
        super().__init__(message)
        self.entering_arc = entering_arc
        self.reduced_cost = reduced_cost


class NumericalInstabilityError(BiObjectiveFlowError):
    """Raised when the basis matrix cannot be factorized.

    Example:
        NumericalInstabilityError("Basis matrix is singular", condition_number=1e17)
    """

    def __init__(self, message: str, condition_number: float | None = None):
        """Initialize with message and optional condition number."""
        super().__init__(message)
        self.condition_number = condition_number


class IterationLimitError(BiObjectiveFlowError):
    """Raised when a run stops on an iteration limit before reaching its goal.

    The pivot driver raises it when ``max_pivots`` is exhausted; the probe and the
    perturbation solver raise it when their solve ends with ``iteration_limit``.

    Example:
        IterationLimitError(
            "Pivot limit reached: 50 pivots completed",
            iterations=50,
            objective=123.45,
            status="converging",
        )
    """

    def __init__(
        self,
        message: str,
        iterations: int = 0,
        objective: float | None = None,
        status: str = "unknown",
    ):
        """Initialize with message and solution state."""
        super().__init__(message)
        self.iterations = iterations
        self.objective = objective
        self.status = status


class SolverConfigurationError(BiObjectiveFlowError):
    """Raised when engine parameters or pivot options are invalid.

    Example:
        SolverConfigurationError("iteration_limit must be >= 0 or None, got -1")
    """


class EngineError(BiObjectiveFlowError):
    """Raised when an LP engine call cannot be carried out.

    Covers use of closed engines or problems, out-of-range indices, malformed
    objective ranges, and pivots requested on arcs that are already basic.
    """

    def __init__(self, message: str, operation: str | None = None):
        """Initialize with message and the name of the failing engine operation."""
        super().__init__(message)
        self.operation = operation


class BasisStoreError(BiObjectiveFlowError):
    """Raised when a persisted basis is missing or cannot be read."""

    def __init__(self, message: str, name: str | None = None):
        super().__init__(message)
        self.name = name


class NoImprovingArcError(BiObjectiveFlowError):
    """Raised when the ratio test finds no arc that improves the secondary objective.

    Whether this ends the pivot loop as a failure or as convergence is decided by
    ``PivotOptions.no_improving_arc``.
    """

    def __init__(self, message: str, eligible_count: int = 0):
        super().__init__(message)
        self.eligible_count = eligible_count


class BasisMismatchError(BiObjectiveFlowError):
    """Raised when the two objective solutions stop sharing the same basis.

    Both objectives live on one feasible region with one variable indexing, so a
    mismatch after synchronization is a driver defect rather than a modeling choice.
    """

    def __init__(self, message: str, arc_indices: list[int] | None = None):
        super().__init__(message)
        self.arc_indices = arc_indices or []
