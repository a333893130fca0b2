"""Example script tracing the pivot path between two objectives."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from biobjective_flow import (  # noqa: E402
    PathPoint,
    PivotOptions,
    compute_pivot_path,
    load_problem,
    save_result,
)


def main() -> None:
    logging.basicConfig(level=logging.WARNING)
    base_dir = Path(__file__).resolve().parent
    problem1 = load_problem(base_dir / "objective1.json")
    problem2 = load_problem(base_dir / "objective2.json")
    output_path = base_dir / "pivot_result.json"

    def on_point(point: PathPoint) -> None:
        label = "start" if point.entering_arc is None else f"arc {point.entering_arc} enters"
        print(
            f"  [{point.iteration}] {label:<14} "
            f"objective1={point.objective1:8.3f}  objective2={point.objective2:8.3f}"
        )

    print("Pivot path from the objective 1 optimum toward the objective 2 optimum:")
    result = compute_pivot_path(problem1, problem2, PivotOptions(max_pivots=1000), on_point)
    save_result(output_path, result, problem2)

    print(
        f"\nFinished with status={result.status} after {result.pivots} pivots "
        f"(floor {result.floor:.3f}, {result.elapsed_time * 1000:.1f} ms)"
    )
    print("\nFinal flows:")
    for idx, arc in enumerate(problem2.arcs):
        flow = result.solution2.x[idx]
        if flow > 0:
            print(f"  {arc.tail} -> {arc.head}: {flow:.3f}")
    print(f"\nResult written to {output_path.name}")


if __name__ == "__main__":
    main()
