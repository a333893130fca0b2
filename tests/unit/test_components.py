"""Tests for the probe, perturbation solver and basis synchronizer."""

import sys
from pathlib import Path

import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from biobjective_flow.basis_store import BasisStore  # noqa: E402
from biobjective_flow.data import build_problem  # noqa: E402
from biobjective_flow.engine import EngineParameters, LPEngine  # noqa: E402
from biobjective_flow.exceptions import (  # noqa: E402
    BasisStoreError,
    InfeasibleProblemError,
    InvalidProblemError,
)
from biobjective_flow.model import BasisStatus, NetworkBasis, Solution  # noqa: E402
from biobjective_flow.perturbation import composite_costs, solve_perturbed  # noqa: E402
from biobjective_flow.probe import solve_global_optimum  # noqa: E402
from biobjective_flow.synchronizer import synchronize_basis  # noqa: E402

PRIMARY_COSTS = [1.0, 4.0, 1.0, 4.0, 1.0]
SECONDARY_COSTS = [4.0, 1.0, 4.0, 1.0, 4.0]


def _diamond(costs, name="diamond"):
    nodes = [
        {"id": "s", "supply": 4.0},
        {"id": "a", "supply": -1.0},
        {"id": "b", "supply": -1.0},
        {"id": "t", "supply": -2.0},
    ]
    ends = [("s", "a"), ("s", "b"), ("a", "t"), ("b", "t"), ("a", "b")]
    arcs = [
        {"tail": tail, "head": head, "capacity": 10.0, "cost": cost}
        for (tail, head), cost in zip(ends, costs)
    ]
    return build_problem(nodes=nodes, arcs=arcs, tolerance=1e-9, name=name)


# ----------------------------------------------------------------------
# Global-optimum probe
# ----------------------------------------------------------------------
def test_probe_returns_secondary_floor():
    solution = solve_global_optimum(_diamond(SECONDARY_COSTS))
    assert solution.status == "optimal"
    assert solution.objval == pytest.approx(9.0)
    np.testing.assert_allclose(solution.x, [1.0, 3.0, 0.0, 2.0, 0.0], atol=1e-9)


def test_probe_ignores_iteration_limit():
    solution = solve_global_optimum(
        _diamond(PRIMARY_COSTS), EngineParameters(iteration_limit=0)
    )
    assert solution.objval == pytest.approx(7.0)


def test_probe_propagates_infeasibility():
    problem = build_problem(
        nodes=[{"id": "s", "supply": 5.0}, {"id": "t", "supply": -5.0}],
        arcs=[{"tail": "s", "head": "t", "capacity": 3.0, "cost": 1.0}],
    )
    with pytest.raises(InfeasibleProblemError):
        solve_global_optimum(problem)


# ----------------------------------------------------------------------
# Perturbation solver
# ----------------------------------------------------------------------
def test_composite_costs_weights():
    costs = composite_costs(np.array([1.0, 4.0]), np.array([4.0, 1.0]))
    np.testing.assert_allclose(costs, [0.999 + 0.004, 3.996 + 0.001])


def test_composite_costs_rejects_length_mismatch():
    with pytest.raises(InvalidProblemError):
        composite_costs(np.ones(2), np.ones(3))


def test_solve_perturbed_persists_basis_and_leaves_inputs_untouched(tmp_path: Path):
    store = BasisStore(tmp_path)
    with LPEngine(EngineParameters(iteration_limit=1)) as engine1, LPEngine() as engine2:
        lp1 = engine1.create_problem(_diamond(PRIMARY_COSTS))
        lp2 = engine2.create_problem(_diamond(SECONDARY_COSTS))
        solution = solve_perturbed(lp1, lp2, store)

        np.testing.assert_allclose(lp1.get_objective(), PRIMARY_COSTS)
        np.testing.assert_allclose(lp2.get_objective(), SECONDARY_COSTS)
        assert engine1.parameters.iteration_limit == 1

    assert solution.status == "optimal"
    np.testing.assert_allclose(solution.x, [4.0, 0.0, 2.0, 0.0, 1.0], atol=1e-9)
    basis = store.load("pbasis")
    assert basis.basic_arcs() == [0, 2, 4]
    assert basis.arc_status[1] is BasisStatus.AT_LOWER
    assert basis.arc_status[3] is BasisStatus.AT_LOWER


# ----------------------------------------------------------------------
# Basis synchronizer
# ----------------------------------------------------------------------
def _perturbed_store(tmp_path: Path):
    store = BasisStore(tmp_path)
    engine1 = LPEngine(EngineParameters(iteration_limit=1), name="objective1")
    engine2 = LPEngine(EngineParameters(iteration_limit=1), name="objective2")
    lp1 = engine1.create_problem(_diamond(PRIMARY_COSTS))
    lp2 = engine2.create_problem(_diamond(SECONDARY_COSTS))
    solve_perturbed(lp1, lp2, store)
    return store, engine1, engine2, lp1, lp2


def test_synchronized_solutions_share_the_basis(tmp_path: Path):
    store, engine1, engine2, lp1, lp2 = _perturbed_store(tmp_path)
    with engine1, engine2:
        solution1 = synchronize_basis(lp1, store, "pbasis", Solution.allocate(5, 4), "basis1")
        solution2 = synchronize_basis(lp2, store, "pbasis", Solution.allocate(5, 4), "basis2")

        assert engine1.parameters.iteration_limit == 1
        assert engine2.parameters.iteration_limit == 1

    assert solution1.basis == solution2.basis
    np.testing.assert_allclose(solution1.x, solution2.x)
    assert solution1.objval == pytest.approx(7.0)
    assert solution2.objval == pytest.approx(28.0)
    assert solution1.status == "optimal"
    assert solution2.status == "iteration_limit"
    assert {"pbasis", "basis1", "basis2"} <= set(store.names())
    assert store.load("basis2") == solution2.basis


def test_synchronize_round_trip_is_idempotent(tmp_path: Path):
    store, engine1, engine2, lp1, lp2 = _perturbed_store(tmp_path)
    with engine1, engine2:
        first = synchronize_basis(lp2, store, "pbasis", Solution.allocate(5, 4), "basis2")
        second = synchronize_basis(lp2, store, "basis2", Solution.allocate(5, 4), "basis2")

    assert first.basis == second.basis
    assert first.objval == second.objval
    for name in ("x", "dj", "pi", "slack"):
        np.testing.assert_array_equal(getattr(first, name), getattr(second, name))


def test_synchronize_unknown_basis_raises(tmp_path: Path):
    store, engine1, engine2, lp1, _ = _perturbed_store(tmp_path)
    with engine1, engine2:
        with pytest.raises(BasisStoreError):
            synchronize_basis(lp1, store, "basis", Solution.allocate(5, 4), "basis1")
        assert engine1.parameters.iteration_limit == 1


def test_synchronize_rejects_infeasible_basis(tmp_path: Path):
    store, engine1, engine2, lp1, _ = _perturbed_store(tmp_path)
    # With a->b held at its upper bound 10, s->a must carry 11 and s->b goes negative.
    infeasible = NetworkBasis.from_codes([1, 1, 0, 1, 2], [1, 0, 0, 0])
    store.save("bad", infeasible)
    with engine1, engine2:
        with pytest.raises(InfeasibleProblemError):
            synchronize_basis(lp1, store, "bad", Solution.allocate(5, 4), "basis1")


def test_synchronize_keeps_loaded_basis_without_advanced_start(tmp_path: Path):
    store = BasisStore(tmp_path)
    params = EngineParameters(iteration_limit=1, advanced_start=False)
    with LPEngine(params, name="objective1") as engine1, LPEngine(params) as engine2:
        lp1 = engine1.create_problem(_diamond(PRIMARY_COSTS))
        lp2 = engine2.create_problem(_diamond(SECONDARY_COSTS))
        solve_perturbed(lp1, lp2, store)
        solution = synchronize_basis(lp2, store, "pbasis", Solution.allocate(5, 4), "basis2")

        assert engine2.parameters.advanced_start is False
        assert engine2.parameters.iteration_limit == 1

    assert solution.objval == pytest.approx(28.0)
    assert solution.basis == store.load("pbasis")
