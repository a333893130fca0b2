"""Command-line entry point.

Usage::

    biobjective-flow PROBLEM1 PROBLEM2 [--basis-dir DIR] [--output FILE]
                     [--max-pivots N] [--tolerance T]
                     [--on-no-improving-arc {fail,converged}] [-v]

``PROBLEM1`` carries the primary costs and ``PROBLEM2`` the secondary costs of the
same network, as JSON or DIMACS files.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from .data import NetworkProblem
from .driver import NoImprovingArcPolicy, PivotOptions, PivotResult, compute_pivot_path
from .exceptions import BiObjectiveFlowError
from .io import load_problem, save_result

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="biobjective-flow",
        description=(
            "Pivot from the primary-objective optimum toward the secondary-objective "
            "optimum of a network flow problem, one basis at a time."
        ),
    )
    parser.add_argument("problem1", metavar="PROBLEM1", help="network with the primary costs")
    parser.add_argument("problem2", metavar="PROBLEM2", help="network with the secondary costs")
    parser.add_argument(
        "--basis-dir",
        default=None,
        help="directory for persisted bases (default: a temporary directory)",
    )
    parser.add_argument("--output", "-o", default=None, help="write the result as JSON")
    parser.add_argument(
        "--max-pivots", type=int, default=None, help="stop with an error after N pivots"
    )
    parser.add_argument(
        "--tolerance",
        type=float,
        default=1e-9,
        help="tolerance of the floor test and of reduced-cost signs (default: 1e-9)",
    )
    parser.add_argument(
        "--on-no-improving-arc",
        choices=[policy.value for policy in NoImprovingArcPolicy],
        default=NoImprovingArcPolicy.FAIL.value,
        help="fail (default) or stop as converged when no arc improves objective 2",
    )
    parser.add_argument(
        "-v", "--verbose", action="count", default=0, help="-v for INFO, -vv for DEBUG"
    )
    return parser


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _print_report(problem: NetworkProblem, result: PivotResult) -> None:
    print(f"Status: {result.status}")
    print(f"Floor (objective 2 optimum): {result.floor:.6f}")
    print(f"Pivots: {result.pivots}")
    print()
    print(f"{'iter':>5} {'arc':>6} {'objective1':>14} {'objective2':>14}")
    for point in result.path:
        arc = "-" if point.entering_arc is None else str(point.entering_arc)
        print(f"{point.iteration:>5} {arc:>6} {point.objective1:>14.6f} {point.objective2:>14.6f}")

    solution = result.solution2
    print()
    print("Arcs (objective 2):")
    for idx, arc in enumerate(problem.arcs):
        print(
            f"  {idx:>4} {arc.tail}->{arc.head}: x={solution.x[idx]:.6f} "
            f"dj={solution.dj[idx]:.6f} {solution.basis.arc_status[idx].name}"
        )
    print("Nodes (objective 2):")
    for idx, node_id in enumerate(problem.node_ids):
        print(
            f"  {node_id}: pi={solution.pi[idx]:.6f} slack={solution.slack[idx]:.6f} "
            f"{solution.basis.node_status[idx].name}"
        )


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    try:
        problem1 = load_problem(args.problem1)
        problem2 = load_problem(args.problem2)
        options = PivotOptions(
            objective_tolerance=args.tolerance,
            pricing_tolerance=args.tolerance,
            no_improving_arc=args.on_no_improving_arc,
            max_pivots=args.max_pivots,
            basis_dir=args.basis_dir,
        )
        result = compute_pivot_path(problem1, problem2, options)
    except BiObjectiveFlowError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    except OSError as e:
        logger.error(f"Cannot read problem file: {e}")
        return 1

    _print_report(problem2, result)
    if args.output:
        save_result(args.output, result, problem2)
        print(f"\nResult written to {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
