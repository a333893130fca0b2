"""Tests for entering-arc selection."""

import sys
from pathlib import Path

import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from biobjective_flow.exceptions import InvalidProblemError, NoImprovingArcError  # noqa: E402
from biobjective_flow.model import BasisStatus  # noqa: E402
from biobjective_flow.ratio_test import (  # noqa: E402
    compute_ratios,
    eligible_arcs,
    select_entering_arc,
)

L = BasisStatus.AT_LOWER
B = BasisStatus.BASIC
U = BasisStatus.AT_UPPER


def test_single_eligible_arc_is_selected():
    # Only arc 1 is eligible; its ratio is large and still wins.
    dj1 = [0.0, 0.001, 2.0]
    dj2 = [0.0, -50.0, 3.0]
    assert select_entering_arc(dj1, dj2, [B, L, L]) == 1


def test_smallest_ratio_wins():
    dj1 = [2.0, 4.0, 1.0]
    dj2 = [-7.0, 1.0, -2.0]
    # Ratios: -3.5 for arc 0, -2.0 for arc 2; arc 1 is not eligible.
    assert select_entering_arc(dj1, dj2, [L, L, L]) == 0


def test_ties_go_to_lowest_index():
    dj1 = [1.0, 2.0, 1.0]
    dj2 = [-1.0, -2.0, -1.0]
    assert select_entering_arc(dj1, dj2, [L, L, L]) == 0


def test_at_upper_arcs_need_positive_secondary_reduced_cost():
    dj1 = [-1.0, 1.0]
    dj2 = [2.0, -1.0]
    assert eligible_arcs(dj2, [U, U]).tolist() == [True, False]
    assert select_entering_arc(dj1, dj2, [U, U]) == 0


def test_basic_arcs_are_never_eligible():
    with pytest.raises(NoImprovingArcError) as exc_info:
        select_entering_arc([1.0, 1.0], [-1.0, -1.0], [B, B])
    assert exc_info.value.eligible_count == 0


def test_zero_primary_reduced_cost_is_never_selected():
    dj1 = [0.0, 5.0]
    dj2 = [-10.0, -1.0]
    assert select_entering_arc(dj1, dj2, [L, L]) == 1

    with pytest.raises(NoImprovingArcError) as exc_info:
        select_entering_arc([0.0], [-10.0], [L])
    assert exc_info.value.eligible_count == 1


def test_compute_ratios_marks_non_eligible_zero_and_zero_division_infinite():
    ratios = compute_ratios([2.0, 0.0, 1.0], [-4.0, -1.0, 3.0], [L, L, L])
    assert ratios[0] == pytest.approx(-2.0)
    assert ratios[1] == np.inf
    assert ratios[2] == 0.0


def test_tolerance_filters_tiny_reduced_costs():
    with pytest.raises(NoImprovingArcError):
        select_entering_arc([1.0], [-1e-12], [L], tolerance=1e-9)


def test_n_limits_considered_arcs():
    dj1 = [1.0, 1.0]
    dj2 = [-1.0, -5.0]
    assert select_entering_arc(dj1, dj2, [L, L], n=1) == 0
    with pytest.raises(InvalidProblemError):
        select_entering_arc(dj1, dj2, [L, L], n=3)


def test_inputs_are_not_modified():
    dj1 = np.array([1.0, 2.0])
    dj2 = np.array([-1.0, -3.0])
    status = [L, L]
    select_entering_arc(dj1, dj2, status)
    np.testing.assert_array_equal(dj1, [1.0, 2.0])
    np.testing.assert_array_equal(dj2, [-1.0, -3.0])
    assert status == [L, L]
