import json
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from biobjective_flow.data import build_problem  # noqa: E402
from biobjective_flow.driver import compute_pivot_path  # noqa: E402
from biobjective_flow.exceptions import InvalidProblemError  # noqa: E402
from biobjective_flow.io import (  # noqa: E402
    load_problem,
    parse_dimacs_file,
    parse_dimacs_string,
    save_result,
)


def _write_payload(tmp_path: Path, payload: dict, name: str = "problem.json") -> Path:
    path = tmp_path / name
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_load_json_problem(tmp_path: Path):
    payload = {
        "tolerance": 1e-4,
        "nodes": [{"id": "s", "supply": 5.0}, {"id": "t", "supply": -5.0}],
        "arcs": [{"tail": "s", "head": "t", "capacity": 7.5, "cost": 3.0, "lower": 1.5}],
    }
    problem = load_problem(_write_payload(tmp_path, payload))

    assert problem.name == "problem"
    assert problem.tolerance == pytest.approx(1e-4)
    arc = problem.arcs[0]
    assert (arc.tail, arc.head) == ("s", "t")
    assert arc.capacity == pytest.approx(7.5)
    assert arc.cost == pytest.approx(3.0)
    assert arc.lower == pytest.approx(1.5)


def test_load_json_accepts_edges_key_and_name(tmp_path: Path):
    payload = {
        "name": "costs-a",
        "nodes": [{"id": "s", "supply": 1.0}, {"id": "t", "supply": -1.0}],
        "edges": [{"tail": "s", "head": "t"}],
    }
    problem = load_problem(_write_payload(tmp_path, payload))
    assert problem.name == "costs-a"
    assert problem.arcs[0].capacity is None
    assert problem.arcs[0].cost == 0.0


def test_load_json_requires_tail_and_head(tmp_path: Path):
    payload = {
        "nodes": [{"id": "s", "supply": 1.0}, {"id": "t", "supply": -1.0}],
        "arcs": [{"tail": "s", "capacity": 1.0}],
    }
    with pytest.raises(InvalidProblemError, match="tail"):
        load_problem(_write_payload(tmp_path, payload))


def test_load_json_requires_arrays(tmp_path: Path):
    with pytest.raises(InvalidProblemError):
        load_problem(_write_payload(tmp_path, {"nodes": {}}))


def test_load_json_reports_malformed_file(tmp_path: Path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(InvalidProblemError, match="Malformed"):
        load_problem(path)


def test_parse_dimacs_string():
    problem = parse_dimacs_string(
        """
        c tiny example
        p min 3 2
        n 1 10
        n 3 -10
        a 1 2 0 20 1
        a 2 3 0 -1 2
        """
    )
    assert problem.node_ids == ["1", "2", "3"]
    assert problem.nodes["2"].supply == 0.0
    assert problem.arcs[0].capacity == pytest.approx(20.0)
    assert problem.arcs[1].capacity is None
    assert problem.arcs[1].cost == pytest.approx(2.0)


def test_parse_dimacs_five_field_arcs():
    problem = parse_dimacs_string("p min 2 1\nn 1 1\nn 2 -1\na 1 2 5 3")
    assert problem.arcs[0].lower == 0.0
    assert problem.arcs[0].capacity == pytest.approx(5.0)


@pytest.mark.parametrize(
    "content, message",
    [
        ("n 1 1\np min 1 0", "before problem descriptor"),
        ("p min 2 2\na 1 2 0 1 1", "Arc count mismatch"),
        ("p min 2 1\na 1 9 0 1 1", "outside the expected range"),
        ("p max 2 1", "Expected 'p min"),
        ("p min 2 0\nx 1", "Unknown line type"),
        ("c only comments", "No problem descriptor"),
    ],
)
def test_parse_dimacs_errors(content, message):
    with pytest.raises(InvalidProblemError, match=message):
        parse_dimacs_string(content)


def test_load_problem_dispatches_dimacs_suffix(tmp_path: Path):
    path = tmp_path / "network.min"
    path.write_text("p min 2 1\nn 1 2\nn 2 -2\na 1 2 0 4 1\n", encoding="utf-8")
    problem = load_problem(path)
    assert problem.name == "network"
    assert problem.num_arcs == 1


def test_parse_dimacs_file_missing(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        parse_dimacs_file(tmp_path / "absent.min")


def _diamond(costs):
    nodes = [{"id": n, "supply": s} for n, s in zip("sabt", (4.0, -1.0, -1.0, -2.0))]
    ends = [("s", "a"), ("s", "b"), ("a", "t"), ("b", "t"), ("a", "b")]
    arcs = [
        {"tail": tail, "head": head, "capacity": 10.0, "cost": cost}
        for (tail, head), cost in zip(ends, costs)
    ]
    return build_problem(nodes=nodes, arcs=arcs, tolerance=1e-9)


def test_save_result_writes_path_and_arcs(tmp_path: Path):
    problem2 = _diamond([4.0, 1.0, 4.0, 1.0, 4.0])
    result = compute_pivot_path(_diamond([1.0, 4.0, 1.0, 4.0, 1.0]), problem2)
    output = tmp_path / "result.json"
    save_result(output, result, problem2)

    data = json.loads(output.read_text(encoding="utf-8"))
    assert data["status"] == "converged"
    assert data["floor"] == pytest.approx(9.0)
    assert data["pivots"] == 2
    assert [entry["entering_arc"] for entry in data["path"]] == [None, 1, 3]
    assert data["arcs"][1] == {
        "tail": "s",
        "head": "b",
        "flow": pytest.approx(3.0),
        "reduced_cost1": pytest.approx(0.0),
        "reduced_cost2": pytest.approx(0.0),
        "status": "BASIC",
    }
    assert data["objective2"] == pytest.approx(9.0)


def test_save_result_without_problem_uses_indices(tmp_path: Path):
    result = compute_pivot_path(
        _diamond([1.0, 4.0, 1.0, 4.0, 1.0]), _diamond([1.0, 4.0, 1.0, 4.0, 1.0])
    )
    output = tmp_path / "result.json"
    save_result(output, result)
    data = json.loads(output.read_text(encoding="utf-8"))
    assert [arc["index"] for arc in data["arcs"]] == [0, 1, 2, 3, 4]
