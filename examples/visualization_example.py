"""Plot the objective trade-off and the final basis of a pivot run.

Requires optional visualization dependencies:
    pip install 'biobjective-flow[visualization]'
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

try:
    from biobjective_flow import (
        compute_pivot_path,
        load_problem,
        plot_pivot_path,
        visualize_basis,
    )
    from biobjective_flow.visualization import _check_dependencies

    _check_dependencies()
except ImportError as e:
    print("Error: Visualization dependencies not installed")
    print("Install with: pip install 'biobjective-flow[visualization]'")
    print(f"Details: {e}")
    sys.exit(1)


def main() -> None:
    base_dir = Path(__file__).resolve().parent
    problem1 = load_problem(base_dir / "objective1.json")
    problem2 = load_problem(base_dir / "objective2.json")
    result = compute_pivot_path(problem1, problem2)

    fig = plot_pivot_path(result)
    fig.savefig(base_dir / "pivot_path.png", dpi=150)
    print("Saved pivot_path.png")

    fig = visualize_basis(problem1, result.solution1, layout="circular")
    fig.savefig(base_dir / "final_basis.png", dpi=150)
    print("Saved final_basis.png")


if __name__ == "__main__":
    main()
