"""Progress diagnostics for the bi-objective pivot loop.

The pivot loop has no built-in guarantee of termination. These helpers watch the
secondary objective and the visited bases so the driver can warn when the loop
stalls on degenerate pivots or returns to a basis it has already visited.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass, field

from .model import BasisStatus


@dataclass
class PivotMonitor:
    """Tracks secondary-objective progress across pivots.

    Attributes:
        window_size: Number of recent objective values kept.
        stall_threshold: Relative change below which a pivot counts as no progress.

    Examples:
        >>> monitor = PivotMonitor(window_size=20)
        >>> monitor.record_pivot(23.0)
        >>> monitor.record_pivot(23.0)
        >>> monitor.degenerate_pivots
        1
    """

    window_size: int = 50
    stall_threshold: float = 1e-12

    objective_history: deque[float] = field(default_factory=lambda: deque(maxlen=50))
    degenerate_pivots: int = 0
    total_pivots: int = 0
    consecutive_no_improvement: int = 0

    def __post_init__(self) -> None:
        """Initialize history with correct maxlen."""
        self.objective_history = deque(maxlen=self.window_size)

    def record_pivot(self, objective: float) -> bool:
        """Record the secondary objective after a pivot.

        Returns:
            True when the pivot left the objective unchanged (degenerate).
        """
        degenerate = False
        if self.objective_history:
            prev_obj = self.objective_history[-1]
            scale = max(abs(prev_obj), 1.0)
            degenerate = abs(objective - prev_obj) / scale < self.stall_threshold
        self.objective_history.append(objective)
        self.total_pivots += 1
        if degenerate:
            self.degenerate_pivots += 1
            self.consecutive_no_improvement += 1
        else:
            self.consecutive_no_improvement = 0
        return degenerate

    def is_stalled(self, min_consecutive: int = 10) -> bool:
        return self.consecutive_no_improvement >= min_consecutive

    def get_degeneracy_ratio(self) -> float:
        if self.total_pivots == 0:
            return 0.0
        return self.degenerate_pivots / self.total_pivots

    def get_diagnostic_summary(self) -> dict[str, float | bool | int]:
        return {
            "total_pivots": self.total_pivots,
            "degenerate_pivots": self.degenerate_pivots,
            "degeneracy_ratio": self.get_degeneracy_ratio(),
            "is_stalled": self.is_stalled(),
            "consecutive_no_improvement": self.consecutive_no_improvement,
        }


@dataclass
class BasisHistory:
    """Counts visits per arc basis to detect cycling.

    Attributes:
        max_history: Maximum number of recent bases remembered.

    Examples:
        >>> history = BasisHistory(max_history=100)
        >>> history.record_basis(solution.basis.arc_status)
        >>> history.is_cycling()
        False
    """

    max_history: int = 100
    history: deque[tuple[int, ...]] = field(default_factory=lambda: deque(maxlen=100))
    visit_counts: dict[tuple[int, ...], int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Initialize history with correct maxlen."""
        self.history = deque(maxlen=self.max_history)

    def record_basis(self, arc_status: Sequence[BasisStatus]) -> int:
        """Record a basis and return how many times it has now been seen."""
        key = tuple(int(status) for status in arc_status)
        self.history.append(key)
        self.visit_counts[key] = self.visit_counts.get(key, 0) + 1

        # Forget counts that fell out of the window to bound memory.
        if len(self.visit_counts) > self.max_history * 2:
            current = set(self.history)
            for old_key in [k for k in self.visit_counts if k not in current]:
                del self.visit_counts[old_key]
        return self.visit_counts[key]

    def is_cycling(self, min_revisits: int = 2) -> bool:
        if not self.history:
            return False
        return self.visit_counts.get(self.history[-1], 0) >= min_revisits

    def get_most_frequent_basis_count(self) -> int:
        if not self.visit_counts:
            return 0
        return max(self.visit_counts.values())
