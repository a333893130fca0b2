"""Bi-objective parametric pivoting over network flow problems."""

from .basis_store import BasisStore
from .data import Arc, NetworkProblem, Node, build_problem
from .diagnostics import BasisHistory, PivotMonitor
from .driver import (
    BiObjectivePivotDriver,
    DriverState,
    NoImprovingArcPolicy,
    PathPoint,
    PivotOptions,
    PivotProgressCallback,
    PivotResult,
    compute_pivot_path,
)
from .engine import EngineParameters, LPEngine, LPProblem
from .exceptions import (
    BasisMismatchError,
    BasisStoreError,
    BiObjectiveFlowError,
    EngineError,
    InfeasibleProblemError,
    InvalidProblemError,
    IterationLimitError,
    NoImprovingArcError,
    NumericalInstabilityError,
    SolverConfigurationError,
    UnboundedProblemError,
)
from .io import load_problem, parse_dimacs_file, parse_dimacs_string, save_result
from .model import BasisStatus, NetworkBasis, Solution, objective_value
from .perturbation import composite_costs, solve_perturbed
from .probe import solve_global_optimum
from .ratio_test import compute_ratios, eligible_arcs, select_entering_arc
from .synchronizer import synchronize_basis
from .visualization import plot_pivot_path, visualize_basis

__version__ = "0.1.0"

__all__ = [
    # Main API
    "build_problem",
    "load_problem",
    "compute_pivot_path",
    "save_result",
    # Problem model
    "Node",
    "Arc",
    "NetworkProblem",
    "parse_dimacs_file",
    "parse_dimacs_string",
    # Configuration
    "PivotOptions",
    "NoImprovingArcPolicy",
    "EngineParameters",
    # Driver
    "BiObjectivePivotDriver",
    "DriverState",
    "PathPoint",
    "PivotResult",
    "PivotProgressCallback",
    # Components
    "solve_global_optimum",
    "solve_perturbed",
    "composite_costs",
    "synchronize_basis",
    "select_entering_arc",
    "eligible_arcs",
    "compute_ratios",
    "objective_value",
    # Engine and bases
    "LPEngine",
    "LPProblem",
    "BasisStore",
    "BasisStatus",
    "NetworkBasis",
    "Solution",
    # Diagnostics
    "PivotMonitor",
    "BasisHistory",
    # Visualization
    "plot_pivot_path",
    "visualize_basis",
    # Exceptions
    "BiObjectiveFlowError",
    "InvalidProblemError",
    "InfeasibleProblemError",
    "UnboundedProblemError",
    "NumericalInstabilityError",
    "IterationLimitError",
    "SolverConfigurationError",
    "EngineError",
    "BasisStoreError",
    "NoImprovingArcError",
    "BasisMismatchError",
]
