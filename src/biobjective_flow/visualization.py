"""Visualization utilities for pivot paths and bases.

Example:
    >>> from biobjective_flow import plot_pivot_path, visualize_basis
    >>> fig = plot_pivot_path(result)
    >>> fig.savefig("tradeoff.png")
    >>> fig = visualize_basis(problem1, result.solution1)
    >>> fig.savefig("basis.png")
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .model import BasisStatus

if TYPE_CHECKING:
    from .data import NetworkProblem
    from .driver import PivotResult
    from .model import Solution

logger = logging.getLogger(__name__)

# Check for optional dependencies
try:
    import matplotlib.pyplot as plt
    import networkx as nx  # type: ignore[import-untyped,unused-ignore]
    from matplotlib.figure import Figure

    _HAS_VISUALIZATION_DEPS = True
except ImportError:
    _HAS_VISUALIZATION_DEPS = False
    Figure = Any  # type: ignore[misc, assignment]


def _check_dependencies() -> None:
    """Check if visualization dependencies are installed."""
    if not _HAS_VISUALIZATION_DEPS:
        msg = (
            "Visualization requires optional dependencies. "
            "Install with: pip install 'biobjective-flow[visualization]'"
        )
        raise ImportError(msg)


def plot_pivot_path(
    result: PivotResult,
    figsize: tuple[float, float] = (8, 6),
    annotate_arcs: bool = True,
    title: str | None = None,
) -> Figure:
    """Plot the visited solutions in objective space.

    Each point is one basic feasible solution (primary objective on x, secondary
    on y); consecutive points are joined in pivot order and the floor of the
    secondary objective is drawn as a horizontal line.

    Args:
        result: Result of compute_pivot_path().
        figsize: Figure size (width, height) in inches.
        annotate_arcs: Label each point with the arc that entered to reach it.
        title: Custom title (default: "Pivot path").

    Returns:
        matplotlib Figure object

    Raises:
        ImportError: If matplotlib or networkx are not installed
    """
    _check_dependencies()

    fig, ax = plt.subplots(figsize=figsize)
    xs = [point.objective1 for point in result.path]
    ys = [point.objective2 for point in result.path]
    ax.plot(xs, ys, marker="o", color="tab:blue", linewidth=1.5, label="pivot path")
    if xs:
        ax.scatter([xs[0]], [ys[0]], color="tab:green", zorder=3, s=80, label="perturbed start")
        ax.scatter([xs[-1]], [ys[-1]], color="tab:red", zorder=3, s=80, label="final basis")
    ax.axhline(result.floor, color="gray", linestyle="--", linewidth=1, label="secondary optimum")

    if annotate_arcs:
        for point in result.path:
            if point.entering_arc is None:
                continue
            ax.annotate(
                f"arc {point.entering_arc}",
                (point.objective1, point.objective2),
                textcoords="offset points",
                xytext=(6, 6),
                fontsize=8,
            )

    ax.set_xlabel("Objective 1")
    ax.set_ylabel("Objective 2")
    ax.set_title(title or f"Pivot path ({result.pivots} pivots, status={result.status})")
    ax.legend(loc="best")
    ax.grid(True, alpha=0.3)
    fig.tight_layout()
    return fig


def visualize_basis(
    problem: NetworkProblem,
    solution: Solution,
    layout: str = "spring",
    figsize: tuple[float, float] = (10, 7),
    node_size: int = 900,
    font_size: int = 9,
    title: str | None = None,
) -> Figure:
    """Draw the network with basic arcs solid and non-basic arcs dashed.

    Arc labels show the flow; arcs at their upper bound are drawn in orange.

    Args:
        problem: Network the solution belongs to.
        solution: Solution whose basis and flows are drawn.
        layout: Graph layout algorithm ("spring", "circular", "kamada_kawai", "planar").
        figsize: Figure size (width, height) in inches.
        node_size: Size of node markers.
        font_size: Font size for labels.
        title: Custom title for the plot.

    Returns:
        matplotlib Figure object

    Raises:
        ImportError: If matplotlib or networkx are not installed
        ValueError: If the solution does not match the problem size
    """
    _check_dependencies()

    if solution.num_arcs != problem.num_arcs:
        raise ValueError(
            f"Solution has {solution.num_arcs} arcs but problem has {problem.num_arcs}."
        )

    G = nx.DiGraph()
    for node_id, node in problem.nodes.items():
        G.add_node(node_id, supply=node.supply)
    for idx, arc in enumerate(problem.arcs):
        G.add_edge(arc.tail, arc.head, index=idx)

    layout_funcs = {
        "spring": nx.spring_layout,
        "circular": nx.circular_layout,
        "kamada_kawai": nx.kamada_kawai_layout,
        "planar": nx.planar_layout,
    }
    if layout not in layout_funcs:
        logger.warning(f"Unknown layout '{layout}', using 'spring'")
        layout = "spring"
    try:
        pos = layout_funcs[layout](G)
    except nx.NetworkXException as e:
        logger.warning(f"Layout '{layout}' failed: {e}, using 'spring'")
        pos = nx.spring_layout(G)

    fig, ax = plt.subplots(figsize=figsize)
    node_colors = [
        "lightgreen" if node.supply > 0 else "lightcoral" if node.supply < 0 else "lightblue"
        for node in problem.nodes.values()
    ]
    nx.draw_networkx_nodes(G, pos, node_color=node_colors, node_size=node_size, ax=ax)
    nx.draw_networkx_labels(G, pos, font_size=font_size, ax=ax)

    groups: dict[BasisStatus, list[tuple[str, str]]] = {status: [] for status in BasisStatus}
    labels: dict[tuple[str, str], str] = {}
    for idx, arc in enumerate(problem.arcs):
        status = solution.basis.arc_status[idx]
        groups[status].append((arc.tail, arc.head))
        labels[(arc.tail, arc.head)] = f"{solution.x[idx]:.3g}"

    styles = {
        BasisStatus.BASIC: ("solid", "black"),
        BasisStatus.AT_LOWER: ("dashed", "gray"),
        BasisStatus.AT_UPPER: ("dashed", "orange"),
    }
    for status, edges in groups.items():
        if not edges:
            continue
        style, color = styles[status]
        nx.draw_networkx_edges(
            G,
            pos,
            edgelist=edges,
            style=style,
            edge_color=color,
            arrows=True,
            arrowsize=15,
            node_size=node_size,
            ax=ax,
        )
    nx.draw_networkx_edge_labels(G, pos, edge_labels=labels, font_size=font_size - 1, ax=ax)

    ax.set_title(title or f"Basis (objective {solution.objval:.4g})")
    ax.axis("off")
    fig.tight_layout()
    return fig
