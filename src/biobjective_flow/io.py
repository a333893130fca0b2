"""File I/O helpers for network problems and pivot results.

Two input formats are understood:

JSON::

    {"nodes": [{"id": "s", "supply": 4}, ...],
     "arcs":  [{"tail": "s", "head": "a", "capacity": 10, "cost": 1}, ...]}

DIMACS minimum cost flow (``.min``, ``.dimacs``, ``.net``)::

    c comment
    p min <num_nodes> <num_arcs>
    n <node_id> <supply>
    a <tail> <head> <lower> <capacity> <cost>
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping, MutableMapping, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .data import NetworkProblem, build_problem
from .exceptions import InvalidProblemError

if TYPE_CHECKING:
    from .driver import PivotResult

DIMACS_SUFFIXES = (".min", ".dimacs", ".net")


def _normalize_edges(raw: Iterable[Mapping[str, Any]]) -> Sequence[dict[str, Any]]:
    # Normalize incoming edge dictionaries so downstream dataclasses receive a uniform schema.
    edges = []
    for edge in raw:
        if "tail" not in edge or "head" not in edge:
            raise InvalidProblemError(
                f"Invalid arc specification: {edge}. Each arc must have 'tail' and 'head' fields."
            )
        normalized = {
            "tail": edge["tail"],
            "head": edge["head"],
            "capacity": edge.get("capacity"),
            "cost": edge.get("cost", 0.0),
            "lower": edge.get("lower", 0.0),
        }
        edges.append(normalized)
    return edges


def load_problem(path: str | Path) -> NetworkProblem:
    """Load a network problem from a JSON or DIMACS file, chosen by suffix."""
    path = Path(path)
    if path.suffix.lower() in DIMACS_SUFFIXES:
        return parse_dimacs_file(path)
    return load_json_problem(path)


def load_json_problem(path: str | Path) -> NetworkProblem:
    """Load a network problem from a JSON file."""
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as fh:
            payload: MutableMapping[str, Any] = json.load(fh)
    except json.JSONDecodeError as e:
        raise InvalidProblemError(f"Malformed JSON in {path}: {e}") from e
    tolerance = float(payload.get("tolerance", 1e-3))
    nodes = payload.get("nodes")
    edges = payload.get("arcs") or payload.get("edges")
    if not isinstance(nodes, list) or not isinstance(edges, list):
        raise InvalidProblemError(
            "Invalid problem format: JSON must include 'nodes' and 'arcs' (or 'edges') arrays. "
            f"Got nodes type: {type(nodes).__name__}, arcs type: {type(edges).__name__}"
        )
    # Defer to the core builder so validation rules remain centralized in one place.
    return build_problem(
        nodes=nodes,
        arcs=_normalize_edges(edges),
        tolerance=tolerance,
        name=str(payload.get("name", path.stem)),
    )


def parse_dimacs_file(path: str | Path) -> NetworkProblem:
    """Parse a DIMACS minimum cost flow problem from a file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"DIMACS file not found: {path}")
    with path.open("r", encoding="utf-8") as fh:
        lines = [line.rstrip("\n\r") for line in fh]
    return _parse_dimacs_lines(lines, name=path.stem)


def parse_dimacs_string(content: str, name: str = "network") -> NetworkProblem:
    """Parse a DIMACS minimum cost flow problem from a string.

    Example:
        >>> problem = parse_dimacs_string('''
        ... p min 3 2
        ... n 1 10
        ... n 3 -10
        ... a 1 2 0 20 1
        ... a 2 3 0 20 1
        ... ''')
        >>> len(problem.arcs)
        2
    """
    return _parse_dimacs_lines(content.strip().split("\n"), name=name)


def _parse_dimacs_lines(lines: list[str], name: str) -> NetworkProblem:
    num_nodes: int | None = None
    num_arcs: int | None = None
    node_supplies: dict[str, float] = {}
    arcs: list[dict[str, Any]] = []

    for line_num, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("c"):
            continue
        tokens = line.split()
        line_type = tokens[0]

        try:
            if line_type == "p":
                if num_nodes is not None:
                    raise InvalidProblemError(
                        f"Line {line_num}: Multiple problem descriptor lines found."
                    )
                if len(tokens) != 4 or tokens[1] != "min":
                    raise InvalidProblemError(
                        f"Line {line_num}: Expected 'p min <nodes> <arcs>', got: {line}"
                    )
                num_nodes = int(tokens[2])
                num_arcs = int(tokens[3])
                if num_nodes <= 0 or num_arcs < 0:
                    raise InvalidProblemError(
                        f"Line {line_num}: Invalid problem size {num_nodes} nodes, {num_arcs} arcs"
                    )
            elif num_nodes is None:
                raise InvalidProblemError(
                    f"Line {line_num}: '{line_type}' descriptor before problem descriptor. "
                    "The 'p min' line must come first."
                )
            elif line_type == "n":
                if len(tokens) != 3:
                    raise InvalidProblemError(
                        f"Line {line_num}: Expected 'n <node_id> <supply>', got: {line}"
                    )
                node_supplies[tokens[1]] = float(tokens[2])
            elif line_type == "a":
                # Support both 6-field (with lower) and 5-field (without lower) formats
                if len(tokens) == 6:
                    tail, head, lower, capacity_str, cost = (
                        tokens[1],
                        tokens[2],
                        float(tokens[3]),
                        tokens[4],
                        float(tokens[5]),
                    )
                elif len(tokens) == 5:
                    tail, head, lower, capacity_str, cost = (
                        tokens[1],
                        tokens[2],
                        0.0,
                        tokens[3],
                        float(tokens[4]),
                    )
                else:
                    raise InvalidProblemError(
                        f"Line {line_num}: Expected 'a <tail> <head> <lower> <capacity> <cost>', "
                        f"got: {line}"
                    )
                # Infinite capacity is written as -1, inf or a very large number.
                if capacity_str == "-1" or capacity_str.lower() == "inf":
                    capacity = None
                else:
                    capacity_val = float(capacity_str)
                    capacity = None if capacity_val >= 1e15 else capacity_val
                arcs.append(
                    {"tail": tail, "head": head, "lower": lower, "capacity": capacity, "cost": cost}
                )
            else:
                raise InvalidProblemError(
                    f"Line {line_num}: Unknown line type '{line_type}'. "
                    "Expected 'c' (comment), 'p' (problem), 'n' (node), or 'a' (arc)."
                )
        except (ValueError, IndexError) as e:
            raise InvalidProblemError(
                f"Line {line_num}: Failed to parse line: {line}. Error: {e}"
            ) from e

    if num_nodes is None:
        raise InvalidProblemError(
            "No problem descriptor found. DIMACS file must contain a 'p min <nodes> <arcs>' line."
        )
    if num_arcs != len(arcs):
        raise InvalidProblemError(
            f"Arc count mismatch: problem descriptor specifies {num_arcs} arcs, "
            f"but {len(arcs)} arc descriptors found."
        )

    valid_ids = {str(i) for i in range(1, num_nodes + 1)}
    unexpected = {arc["tail"] for arc in arcs} | {arc["head"] for arc in arcs}
    unexpected -= valid_ids
    if unexpected:
        raise InvalidProblemError(
            f"Arc references node IDs outside the expected range [1, {num_nodes}]: "
            f"{sorted(unexpected)}"
        )

    nodes = [
        {"id": str(i), "supply": node_supplies.get(str(i), 0.0)} for i in range(1, num_nodes + 1)
    ]
    return build_problem(nodes=nodes, arcs=arcs, tolerance=1e-6, name=name)


def save_result(path: str | Path, result: PivotResult, problem: NetworkProblem | None = None) -> None:
    """Persist a pivot result to JSON.

    When ``problem`` is given, final flows and statuses are keyed by arc endpoints.
    """
    arc_labels: list[Any]
    if problem is not None:
        arc_labels = [{"tail": arc.tail, "head": arc.head} for arc in problem.arcs]
    else:
        arc_labels = [{"index": idx} for idx in range(result.solution2.num_arcs)]

    data = {
        "status": result.status,
        "floor": result.floor,
        "pivots": result.pivots,
        "elapsed_time": result.elapsed_time,
        "path": [
            {
                "iteration": point.iteration,
                "entering_arc": point.entering_arc,
                "objective1": point.objective1,
                "objective2": point.objective2,
            }
            for point in result.path
        ],
        "arcs": [
            {
                **label,
                "flow": float(result.solution2.x[idx]),
                "reduced_cost1": float(result.solution1.dj[idx]),
                "reduced_cost2": float(result.solution2.dj[idx]),
                "status": result.solution2.basis.arc_status[idx].name,
            }
            for idx, label in enumerate(arc_labels)
        ],
        "objective1": result.solution1.objval,
        "objective2": result.solution2.objval,
    }
    with Path(path).open("w", encoding="utf-8") as fh:
        json.dump(data, fh, indent=2, sort_keys=False)
