"""Pricing strategies for the engine's primal simplex.

A pricing strategy picks the entering column of the next simplex step from the
current reduced costs. Columns are the arcs followed by one logical per node row.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np

from .model import BasisStatus


class PricingStrategy(ABC):
    """Abstract base class for pricing strategies."""

    @abstractmethod
    def select_entering(
        self,
        reduced_costs: np.ndarray,
        status: np.ndarray,
        lower: np.ndarray,
        upper: np.ndarray,
        tolerance: float,
    ) -> int | None:
        """Select an entering column for the next step.

        Args:
            reduced_costs: Reduced cost of every column.
            status: ``BasisStatus`` code of every column.
            lower: Lower bound of every column.
            upper: Upper bound of every column.
            tolerance: Optimality tolerance on reduced costs.

        Returns:
            Column index, or None when no column prices out (the basis is optimal).
        """

    def reset(self) -> None:
        """Reset any internal state between solves."""


def _attractiveness(
    reduced_costs: np.ndarray,
    status: np.ndarray,
    lower: np.ndarray,
    upper: np.ndarray,
    tolerance: float,
) -> np.ndarray:
    # Improvement rate per unit move for every column; 0 where the column cannot improve.
    movable = upper > lower
    at_lower = (status == BasisStatus.AT_LOWER) & movable & (reduced_costs < -tolerance)
    at_upper = (status == BasisStatus.AT_UPPER) & movable & (reduced_costs > tolerance)
    score = np.zeros(reduced_costs.shape[0], dtype=float)
    score[at_lower] = -reduced_costs[at_lower]
    score[at_upper] = reduced_costs[at_upper]
    return score


class DantzigPricing(PricingStrategy):
    """Dantzig pricing: select the column with the largest reduced-cost violation."""

    def select_entering(
        self,
        reduced_costs: np.ndarray,
        status: np.ndarray,
        lower: np.ndarray,
        upper: np.ndarray,
        tolerance: float,
    ) -> int | None:
        score = _attractiveness(reduced_costs, status, lower, upper, tolerance)
        best = int(np.argmax(score)) if score.size else 0
        if score.size == 0 or score[best] <= 0.0:
            return None
        return best


class BlandPricing(PricingStrategy):
    """Bland's rule: select the lowest-index improving column.

    Slower than Dantzig pricing but never cycles on degenerate bases.
    """

    def select_entering(
        self,
        reduced_costs: np.ndarray,
        status: np.ndarray,
        lower: np.ndarray,
        upper: np.ndarray,
        tolerance: float,
    ) -> int | None:
        score = _attractiveness(reduced_costs, status, lower, upper, tolerance)
        candidates = np.flatnonzero(score > 0.0)
        if candidates.size == 0:
            return None
        return int(candidates[0])


def make_pricing(name: str) -> PricingStrategy:
    if name == "bland":
        return BlandPricing()
    return DantzigPricing()
