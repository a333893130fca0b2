import json
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from biobjective_flow.basis_store import BasisStore  # noqa: E402
from biobjective_flow.exceptions import BasisStoreError  # noqa: E402
from biobjective_flow.model import NetworkBasis  # noqa: E402


def test_save_and_load_round_trip(tmp_path: Path):
    basis = NetworkBasis.from_codes([1, 0, 1, 2, 1], [0, 0, 1, 0])
    store = BasisStore(tmp_path)
    path = store.save("pbasis", basis)

    assert path.name == "pbasis.bas.json"
    assert store.load("pbasis") == basis
    assert "pbasis" in store
    assert store.names() == ["pbasis"]


def test_checkpoint_uses_status_names(tmp_path: Path):
    store = BasisStore(tmp_path)
    store.save("basis", NetworkBasis.from_codes([1, 2], [0]))
    payload = json.loads((tmp_path / "basis.bas.json").read_text(encoding="utf-8"))
    assert payload == {"arcs": ["BASIC", "AT_UPPER"], "nodes": ["AT_LOWER"]}


def test_save_overwrites_previous_checkpoint(tmp_path: Path):
    store = BasisStore(tmp_path)
    store.save("basis", NetworkBasis.from_codes([1, 0], [1]))
    replacement = NetworkBasis.from_codes([0, 1], [1])
    store.save("basis", replacement)
    assert store.load("basis") == replacement


def test_load_missing_name_raises(tmp_path: Path):
    store = BasisStore(tmp_path)
    with pytest.raises(BasisStoreError) as exc_info:
        store.load("basis2")
    assert exc_info.value.name == "basis2"
    assert "basis2" not in store


def test_load_malformed_checkpoint_raises(tmp_path: Path):
    (tmp_path / "broken.bas.json").write_text('{"arcs": ["SIDEWAYS"], "nodes": []}')
    with pytest.raises(BasisStoreError, match="malformed"):
        BasisStore(tmp_path).load("broken")


def test_invalid_names_are_rejected(tmp_path: Path):
    with pytest.raises(BasisStoreError):
        BasisStore(tmp_path).save("../escape", NetworkBasis.allocate(1, 1))


def test_temporary_store_is_removed_on_exit():
    with BasisStore() as store:
        store.save("basis1", NetworkBasis.allocate(2, 2))
        directory = store.directory
        assert directory.exists()
    assert not directory.exists()


def test_explicit_directory_survives_cleanup(tmp_path: Path):
    target = tmp_path / "bases"
    with BasisStore(target) as store:
        store.save("basis1", NetworkBasis.allocate(2, 2))
    assert (target / "basis1.bas.json").exists()
