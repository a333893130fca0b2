import json
import shutil
import subprocess
import sys
from pathlib import Path


def _replicate_examples(tmp_path: Path) -> Path:
    # Copy the example assets into an isolated workspace the subprocess can mutate.
    repo_root = Path(__file__).resolve().parents[2]
    examples_dir = repo_root / "examples"

    dest = tmp_path / "examples"
    dest.mkdir(parents=True, exist_ok=True)
    for name in ("pivot_path_example.py", "objective1.json", "objective2.json"):
        shutil.copy2(examples_dir / name, dest / name)

    # Provide src/ so the example script can import using its relative path logic.
    src_symlink = tmp_path / "src"
    if not src_symlink.exists():
        src_symlink.symlink_to(repo_root / "src", target_is_directory=True)
    return dest


def test_pivot_path_example_runs(tmp_path: Path):
    examples_dir = _replicate_examples(tmp_path)
    proc = subprocess.run(
        [sys.executable, str(examples_dir / "pivot_path_example.py")],
        cwd=tmp_path,
        capture_output=True,
        text=True,
        check=True,
    )

    assert "status=converged after 2 pivots" in proc.stdout
    assert "s -> b: 3.000" in proc.stdout
    contents = json.loads((examples_dir / "pivot_result.json").read_text(encoding="utf-8"))
    assert abs(contents["floor"] - 9.0) < 1e-9
    assert [entry["entering_arc"] for entry in contents["path"]] == [None, 1, 3]
