"""Network description shared by both objectives.

A ``NetworkProblem`` carries one objective's arc costs. The pivot procedure loads
two of them built over the same nodes, supplies, arcs and bounds.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

import numpy as np

from .exceptions import InvalidProblemError


@dataclass(frozen=True)
class Node:
    """A node with its supply: positive at sources, negative at sinks.

    Examples:
        >>> depot = Node(id="s", supply=4.0)
        >>> customer = Node(id="t", supply=-2.0)
    """

    id: str
    supply: float = 0.0


@dataclass(frozen=True)
class Arc:
    """A directed arc ``tail -> head`` with flow bounds and a unit cost.

    Attributes:
        tail: Node the flow leaves.
        head: Node the flow enters.
        capacity: Upper flow bound; None when the arc is uncapacitated.
        cost: Unit cost under the objective of the owning problem.
        lower: Lower flow bound (default: 0.0).

    Raises:
        InvalidProblemError: On self-loops, an infinite lower bound, or
                             ``capacity < lower``.
    """

    tail: str
    head: str
    capacity: float | None
    cost: float
    lower: float = 0.0

    def __post_init__(self) -> None:
        if self.tail == self.head:
            raise InvalidProblemError(
                f"Arc {self.tail} -> {self.head} is a self-loop; the LP form has no "
                f"column for it."
            )
        if math.isinf(self.lower):
            raise InvalidProblemError(
                f"Arc {self.tail} -> {self.head} has an infinite lower bound. "
                f"Lower bounds must be finite."
            )
        if self.capacity is not None and self.capacity < self.lower:
            raise InvalidProblemError(
                f"Arc {self.tail} -> {self.head}: capacity {self.capacity} is below the "
                f"lower bound {self.lower}."
            )

    @property
    def upper(self) -> float:
        return math.inf if self.capacity is None else float(self.capacity)

    @property
    def key(self) -> tuple[str, str]:
        return (self.tail, self.head)


@dataclass
class NetworkProblem:
    """One objective of the bi-objective problem.

    Node insertion order gives the LP row order and arc list order the column
    order, so two problems are only comparable when both orders agree.

    Attributes:
        nodes: Node ID to Node, in row order.
        arcs: Arcs in column order.
        tolerance: Allowed absolute imbalance of total supply (default: 1e-3).
        name: Label used in logs, usually the source file stem.

    Examples:
        >>> problem = NetworkProblem(
        ...     nodes={"s": Node("s", 2.0), "t": Node("t", -2.0)},
        ...     arcs=[Arc("s", "t", capacity=5.0, cost=1.0)],
        ... )
        >>> problem.validate()
    """

    nodes: dict[str, Node]
    arcs: list[Arc]
    tolerance: float = 1e-3
    name: str = "network"

    @property
    def node_ids(self) -> list[str]:
        return list(self.nodes)

    @property
    def num_nodes(self) -> int:
        return len(self.nodes)

    @property
    def num_arcs(self) -> int:
        return len(self.arcs)

    def costs(self) -> np.ndarray:
        return np.fromiter((arc.cost for arc in self.arcs), dtype=float, count=self.num_arcs)

    def supplies(self) -> np.ndarray:
        return np.fromiter(
            (node.supply for node in self.nodes.values()), dtype=float, count=self.num_nodes
        )

    def validate(self) -> None:
        """Check supply balance and that every arc endpoint is a known node."""
        imbalance = math.fsum(node.supply for node in self.nodes.values())
        if abs(imbalance) > self.tolerance:
            raise InvalidProblemError(
                f"Problem '{self.name}' is unbalanced: supplies sum to {imbalance:.6f}, "
                f"outside tolerance {self.tolerance}. Total supply must equal total demand."
            )
        for idx, arc in enumerate(self.arcs):
            for role, endpoint in (("tail", arc.tail), ("head", arc.head)):
                if endpoint not in self.nodes:
                    raise InvalidProblemError(
                        f"Arc {idx} {role} '{endpoint}' not found among the nodes of "
                        f"'{self.name}'."
                    )

    def check_same_structure(self, other: NetworkProblem) -> None:
        """Raise InvalidProblemError unless ``other`` describes the same feasible region.

        Both problems must list the same nodes with the same supplies in the same
        order, and the same arcs (endpoints and bounds) in the same order.
        """
        if self.node_ids != other.node_ids:
            raise InvalidProblemError(
                f"Problems '{self.name}' and '{other.name}' have different node sets or "
                f"node order. Both objectives must share the same network."
            )
        for node_id, node in self.nodes.items():
            other_supply = other.nodes[node_id].supply
            if not math.isclose(node.supply, other_supply, rel_tol=0.0, abs_tol=1e-12):
                raise InvalidProblemError(
                    f"Node '{node_id}' has supply {node.supply} in '{self.name}' but "
                    f"{other_supply} in '{other.name}'."
                )
        if self.num_arcs != other.num_arcs:
            raise InvalidProblemError(
                f"Problems '{self.name}' and '{other.name}' have different arc counts "
                f"({self.num_arcs} vs {other.num_arcs})."
            )
        for idx, (arc, other_arc) in enumerate(zip(self.arcs, other.arcs)):
            if arc.key != other_arc.key:
                raise InvalidProblemError(
                    f"Arc {idx} differs between objectives: {arc.key} vs {other_arc.key}."
                )
            if arc.lower != other_arc.lower or arc.upper != other_arc.upper:
                raise InvalidProblemError(
                    f"Arc {idx} {arc.key} has different bounds between objectives: "
                    f"[{arc.lower}, {arc.upper}] vs [{other_arc.lower}, {other_arc.upper}]."
                )


def _optional_float(value: Any) -> float | None:
    return None if value is None else float(value)


def build_problem(
    nodes: Iterable[Mapping[str, Any]],
    arcs: Iterable[Mapping[str, Any]],
    tolerance: float = 1e-3,
    name: str = "network",
) -> NetworkProblem:
    """Assemble and validate a NetworkProblem from plain dictionaries.

    Node entries need ``id`` and may give ``supply``; arc entries need ``tail`` and
    ``head`` and may give ``capacity`` (None for uncapacitated), ``cost`` and
    ``lower``.
    """
    node_map: dict[str, Node] = {}
    for entry in nodes:
        node = Node(id=str(entry["id"]), supply=float(entry.get("supply", 0.0)))
        if node.id in node_map:
            raise InvalidProblemError(f"Duplicate node id '{node.id}' in '{name}'.")
        node_map[node.id] = node

    arc_list = [
        Arc(
            tail=str(entry["tail"]),
            head=str(entry["head"]),
            capacity=_optional_float(entry.get("capacity")),
            cost=float(entry.get("cost", 0.0)),
            lower=float(entry.get("lower", 0.0)),
        )
        for entry in arcs
    ]

    problem = NetworkProblem(nodes=node_map, arcs=arc_list, tolerance=float(tolerance), name=name)
    problem.validate()
    return problem
