"""Tests for the metrics aggregator."""

import pytest

from termidle.config import MetricsConfig
from termidle.metrics import calculate_metrics
from termidle.tree import ProcessTree


class TestCalculateMetrics:
    """Tests for resource rollups."""

    def test_totals_cover_subtree(self, shell_session):
        """Test totals include the process and all descendants only."""
        tree = ProcessTree(shell_session)
        metrics = calculate_metrics(tree.get(200), tree)

        assert metrics.total_cpu_percent == pytest.approx(42.5)
        assert metrics.total_memory_mb == pytest.approx((40960 + 8192 + 512) / 1024)

    def test_breakdown_filtered_and_sorted(self, shell_session):
        """Test the breakdown keeps significant processes, highest CPU first."""
        tree = ProcessTree(shell_session)
        metrics = calculate_metrics(tree.get(200), tree)

        assert [entry.pid for entry in metrics.breakdown] == [300, 200]
        top = metrics.breakdown[0]
        assert top.name == "python3"
        assert top.cpu_percent == 40.0
        assert top.memory_kb == 8192
        assert top.memory_mb == 8.0

    def test_breakdown_memory_threshold(self, make_record):
        """Test idle processes appear only when above 5 MB."""
        root = make_record(1, "zsh", ppid=0, rss_kb=5 * 1024)
        big = make_record(2, "java", ppid=1, rss_kb=5 * 1024 + 1)
        tree = ProcessTree([root, big])

        metrics = calculate_metrics(root, tree)
        assert [entry.pid for entry in metrics.breakdown] == [2]

    def test_breakdown_cpu_threshold(self, make_record):
        """Test processes need more than 0.1% CPU to qualify on CPU alone."""
        root = make_record(1, "zsh", ppid=0, cpu=0.1)
        busy = make_record(2, "cc", ppid=1, cpu=0.2)
        tree = ProcessTree([root, busy])

        metrics = calculate_metrics(root, tree)
        assert [entry.pid for entry in metrics.breakdown] == [2]

    def test_totals_dominate_breakdown(self, shell_session):
        """Test totals are never below any single contributor."""
        tree = ProcessTree(shell_session)
        for rec in shell_session:
            metrics = calculate_metrics(rec, tree)
            for entry in metrics.breakdown:
                assert metrics.total_cpu_percent >= entry.cpu_percent
                assert metrics.total_memory_mb >= entry.memory_mb

    def test_total_memory_exact_sum(self, make_record):
        """Test memory totals are the exact sum of kilobytes over 1024."""
        records = [make_record(1, "a", ppid=0, rss_kb=1000)]
        records += [make_record(i, "b", ppid=1, rss_kb=1000 + i) for i in range(2, 8)]
        tree = ProcessTree(records)

        metrics = calculate_metrics(records[0], tree)
        expected = sum(r.rss_kb / 1024 for r in records)
        assert metrics.total_memory_mb == pytest.approx(expected)
        assert metrics.total_cpu_percent >= max(r.cpu_percent for r in records)

    def test_cyclic_parents(self, make_record):
        """Test malformed parent links do not double count."""
        a = make_record(1, "a", ppid=2, cpu=1.0)
        b = make_record(2, "b", ppid=1, cpu=2.0)
        tree = ProcessTree([a, b])

        metrics = calculate_metrics(a, tree)
        assert metrics.total_cpu_percent == pytest.approx(3.0)

    def test_leaf_process(self, make_record):
        """Test a process without children reports only itself."""
        leaf = make_record(1, "sleep 5", ppid=0, rss_kb=100)
        metrics = calculate_metrics(leaf, ProcessTree([leaf]))
        assert metrics.total_cpu_percent == 0.0
        assert metrics.breakdown == ()

    def test_custom_thresholds(self, make_record):
        """Test breakdown thresholds come from config."""
        leaf = make_record(1, "sleep 5", ppid=0, rss_kb=100)
        config = MetricsConfig(breakdown_min_memory_mb=0.0)
        metrics = calculate_metrics(leaf, ProcessTree([leaf]), config)
        assert [entry.pid for entry in metrics.breakdown] == [1]
