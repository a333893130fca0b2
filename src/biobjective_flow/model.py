"""Solution and basis records kept per objective."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import IntEnum

import numpy as np

from .exceptions import InvalidProblemError


class BasisStatus(IntEnum):
    """Basis status of a single arc (column) or node (row logical).

    The numeric values follow the usual LP engine codes so persisted bases and
    integer status vectors stay interchangeable.
    """

    AT_LOWER = 0
    BASIC = 1
    AT_UPPER = 2


@dataclass
class NetworkBasis:
    """Partition of arcs and nodes into basic and non-basic (lower/upper) sets.

    Attributes:
        arc_status: One status per arc, in arc order.
        node_status: One status per node (row logical), in node order.
    """

    arc_status: list[BasisStatus] = field(default_factory=list)
    node_status: list[BasisStatus] = field(default_factory=list)

    @classmethod
    def allocate(cls, narcs: int, nnodes: int) -> NetworkBasis:
        return cls(
            arc_status=[BasisStatus.AT_LOWER] * narcs,
            node_status=[BasisStatus.AT_LOWER] * nnodes,
        )

    @classmethod
    def from_codes(cls, arc_codes: Sequence[int], node_codes: Sequence[int]) -> NetworkBasis:
        """Build a basis from integer status codes."""
        return cls(
            arc_status=[BasisStatus(int(code)) for code in arc_codes],
            node_status=[BasisStatus(int(code)) for code in node_codes],
        )

    @property
    def num_arcs(self) -> int:
        return len(self.arc_status)

    @property
    def num_nodes(self) -> int:
        return len(self.node_status)

    def arc_codes(self) -> np.ndarray:
        return np.asarray([int(status) for status in self.arc_status], dtype=np.int8)

    def node_codes(self) -> np.ndarray:
        return np.asarray([int(status) for status in self.node_status], dtype=np.int8)

    def basic_arcs(self) -> list[int]:
        return [idx for idx, status in enumerate(self.arc_status) if status is BasisStatus.BASIC]

    def copy(self) -> NetworkBasis:
        return NetworkBasis(arc_status=list(self.arc_status), node_status=list(self.node_status))

    def assign(self, other: NetworkBasis) -> None:
        """Overwrite this basis in place with the statuses of ``other``."""
        if other.num_arcs != self.num_arcs or other.num_nodes != self.num_nodes:
            raise InvalidProblemError(
                f"Basis sizes differ: ({self.num_arcs} arcs, {self.num_nodes} nodes) vs "
                f"({other.num_arcs} arcs, {other.num_nodes} nodes)."
            )
        self.arc_status[:] = other.arc_status
        self.node_status[:] = other.node_status

    def differing_arcs(self, other: NetworkBasis) -> list[int]:
        """Return arc indices whose status differs from ``other``."""
        return [
            idx
            for idx, (mine, theirs) in enumerate(zip(self.arc_status, other.arc_status))
            if mine != theirs
        ]


@dataclass(eq=False)
class Solution:
    """Primal/dual state of one objective at a basis.

    Attributes:
        x: Flow per arc.
        dj: Reduced cost per arc for this objective.
        pi: Dual value per node.
        slack: Row slack per node (supply minus net outflow, 0 when feasible).
        objval: Objective value of the flow under this objective's costs.
        status: Engine status string ('optimal', 'iteration_limit', ...).
        basis: The basis these values were computed from.
    """

    x: np.ndarray
    dj: np.ndarray
    pi: np.ndarray
    slack: np.ndarray
    objval: float = 0.0
    status: str = "unknown"
    basis: NetworkBasis = field(default_factory=NetworkBasis)

    @classmethod
    def allocate(cls, narcs: int, nnodes: int) -> Solution:
        """Create a zeroed solution once problem sizes are known."""
        if narcs <= 0 or nnodes <= 0:
            raise InvalidProblemError(
                f"Cannot allocate a solution for {narcs} arcs and {nnodes} nodes. "
                f"Both counts must be positive."
            )
        return cls(
            x=np.zeros(narcs, dtype=float),
            dj=np.zeros(narcs, dtype=float),
            pi=np.zeros(nnodes, dtype=float),
            slack=np.zeros(nnodes, dtype=float),
            basis=NetworkBasis.allocate(narcs, nnodes),
        )

    @property
    def num_arcs(self) -> int:
        return int(self.x.shape[0])

    @property
    def num_nodes(self) -> int:
        return int(self.pi.shape[0])

    def fill(
        self,
        status: str,
        objval: float,
        x: np.ndarray,
        pi: np.ndarray,
        slack: np.ndarray,
        dj: np.ndarray,
        basis: NetworkBasis,
    ) -> None:
        """Overwrite every field in place, keeping the array objects."""
        self.status = status
        self.objval = float(objval)
        self.x[:] = x
        self.pi[:] = pi
        self.slack[:] = slack
        self.dj[:] = dj
        self.basis.assign(basis)

    def copy(self) -> Solution:
        return Solution(
            x=self.x.copy(),
            dj=self.dj.copy(),
            pi=self.pi.copy(),
            slack=self.slack.copy(),
            objval=self.objval,
            status=self.status,
            basis=self.basis.copy(),
        )


def objective_value(
    costs: Sequence[float] | np.ndarray | None,
    flow: Sequence[float] | np.ndarray | None,
    n: int,
) -> float:
    """Return the dot product of the first ``n`` costs and flows.

    Returns 0.0 when ``n`` is 0 or either vector is missing.
    """
    if n <= 0 or costs is None or flow is None:
        return 0.0
    cost_vec = np.asarray(costs, dtype=float)[:n]
    flow_vec = np.asarray(flow, dtype=float)[:n]
    return float(np.dot(cost_vec, flow_vec))
