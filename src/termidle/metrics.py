"""Resource rollup for a process and its descendants."""

from termidle.config import MetricsConfig
from termidle.models import BreakdownEntry, ProcessMetrics, ProcessRecord
from termidle.tree import ProcessTree


def calculate_metrics(
    record: ProcessRecord,
    tree: ProcessTree,
    config: MetricsConfig | None = None,
) -> ProcessMetrics:
    """
    Sum CPU and memory over ``record`` and every descendant.

    Processes above the breakdown thresholds (CPU or memory) are listed
    individually, highest CPU first.
    """
    config = config or MetricsConfig()
    related = [record, *tree.descendants(record.pid)]

    total_cpu = 0.0
    total_memory_mb = 0.0
    breakdown: list[BreakdownEntry] = []

    for proc in related:
        memory_mb = proc.rss_kb / 1024
        total_cpu += proc.cpu_percent
        total_memory_mb += memory_mb

        if proc.cpu_percent > config.breakdown_min_cpu_percent or memory_mb > config.breakdown_min_memory_mb:
            breakdown.append(
                BreakdownEntry(
                    name=proc.name,
                    pid=proc.pid,
                    cpu_percent=proc.cpu_percent,
                    memory_kb=proc.rss_kb,
                )
            )

    breakdown.sort(key=lambda entry: entry.cpu_percent, reverse=True)

    return ProcessMetrics(
        total_cpu_percent=total_cpu,
        total_memory_mb=total_memory_mb,
        breakdown=tuple(breakdown),
    )
