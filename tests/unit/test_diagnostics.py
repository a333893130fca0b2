import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from biobjective_flow.diagnostics import BasisHistory, PivotMonitor  # noqa: E402
from biobjective_flow.model import BasisStatus  # noqa: E402

L = BasisStatus.AT_LOWER
B = BasisStatus.BASIC


class TestPivotMonitor:
    def test_first_pivot_is_not_degenerate(self):
        monitor = PivotMonitor()
        assert monitor.record_pivot(28.0) is False
        assert monitor.total_pivots == 1

    def test_unchanged_objective_counts_as_degenerate(self):
        monitor = PivotMonitor()
        monitor.record_pivot(23.0)
        assert monitor.record_pivot(23.0) is True
        assert monitor.record_pivot(9.0) is False
        assert monitor.degenerate_pivots == 1
        assert monitor.consecutive_no_improvement == 0
        assert monitor.get_degeneracy_ratio() == 1 / 3

    def test_stall_detection(self):
        monitor = PivotMonitor()
        for _ in range(12):
            monitor.record_pivot(5.0)
        assert monitor.is_stalled()
        assert monitor.is_stalled(min_consecutive=12) is False

    def test_window_size_bounds_history(self):
        monitor = PivotMonitor(window_size=3)
        for value in range(10):
            monitor.record_pivot(float(value))
        assert list(monitor.objective_history) == [7.0, 8.0, 9.0]

    def test_summary_keys(self):
        summary = PivotMonitor().get_diagnostic_summary()
        assert summary["total_pivots"] == 0
        assert summary["degeneracy_ratio"] == 0.0
        assert summary["is_stalled"] is False


class TestBasisHistory:
    def test_revisits_are_counted(self):
        history = BasisHistory()
        assert history.record_basis([B, L, B]) == 1
        assert history.record_basis([L, B, B]) == 1
        assert not history.is_cycling()
        assert history.record_basis([B, L, B]) == 2
        assert history.is_cycling()
        assert history.get_most_frequent_basis_count() == 2

    def test_empty_history(self):
        history = BasisHistory()
        assert not history.is_cycling()
        assert history.get_most_frequent_basis_count() == 0

    def test_old_counts_are_forgotten(self):
        history = BasisHistory(max_history=2)
        for idx in range(6):
            status = [B if bit == "1" else L for bit in f"{idx:03b}"]
            history.record_basis(status)
        assert len(history.visit_counts) <= 4
