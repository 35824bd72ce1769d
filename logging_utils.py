#!/usr/bin/env python3
"""
Action Metrics
==============
Collects the outcome and duration of every executed action so the run can
end with a per-action summary table.
"""

import time
from typing import Dict, Any, Optional, List
from dataclasses import dataclass

from rich.console import Console
from rich.table import Table
from rich.panel import Panel


@dataclass
class ActionMetric:
    """Timing and outcome of one action attempt."""
    operation: str
    wallet: str
    start_time: float
    end_time: Optional[float] = None
    duration_ms: Optional[float] = None
    success: bool = False
    error: Optional[str] = None
    tx_hash: Optional[str] = None

    def finalize(self, success: bool = True, error: Optional[str] = None,
                 tx_hash: Optional[str] = None):
        """Finalize the metric with the action result."""
        self.end_time = time.time()
        self.duration_ms = (self.end_time - self.start_time) * 1000
        self.success = success
        self.error = error
        self.tx_hash = tx_hash


class MetricsCollector:
    """Aggregates action metrics per operation."""

    def __init__(self):
        self.metrics: List[ActionMetric] = []
        self._operation_counts: Dict[str, Dict[str, int]] = {}
        self._operation_times: Dict[str, List[float]] = {}

    def start(self, operation: str, wallet: str) -> ActionMetric:
        return ActionMetric(operation=operation, wallet=wallet, start_time=time.time())

    def add_metric(self, metric: ActionMetric):
        self.metrics.append(metric)

        op = metric.operation
        counts = self._operation_counts.setdefault(op, {'total': 0, 'success': 0, 'failure': 0})
        counts['total'] += 1
        if metric.success:
            counts['success'] += 1
        else:
            counts['failure'] += 1

        if metric.duration_ms is not None:
            self._operation_times.setdefault(op, []).append(metric.duration_ms)

    def get_summary(self) -> Dict[str, Any]:
        """Get summary statistics."""
        summary = {
            'total_operations': len(self.metrics),
            'operations': {},
            'overall_success_rate': 0,
        }

        total_success = 0
        for op, counts in self._operation_counts.items():
            times = self._operation_times.get(op, [])
            summary['operations'][op] = {
                'total': counts['total'],
                'success': counts['success'],
                'failure': counts['failure'],
                'success_rate': round(counts['success'] / counts['total'] * 100, 2) if counts['total'] > 0 else 0,
                'avg_duration_ms': round(sum(times) / len(times), 2) if times else 0,
            }
            total_success += counts['success']

        if self.metrics:
            summary['overall_success_rate'] = round(total_success / len(self.metrics) * 100, 2)
        return summary


def print_metrics_summary(collector: MetricsCollector, console: Optional[Console] = None):
    """Print a formatted metrics summary to console."""
    console = console or Console()
    summary = collector.get_summary()

    table = Table(title="Action Summary")
    table.add_column("Action", style="cyan")
    table.add_column("Total", justify="right")
    table.add_column("Success", justify="right", style="green")
    table.add_column("Failure", justify="right", style="red")
    table.add_column("Success %", justify="right")
    table.add_column("Avg s", justify="right")

    for op, stats in summary['operations'].items():
        table.add_row(
            op,
            str(stats['total']),
            str(stats['success']),
            str(stats['failure']),
            f"{stats['success_rate']:.1f}%",
            f"{stats['avg_duration_ms'] / 1000:.1f}"
        )

    console.print(Panel(
        f"Total Actions: {summary['total_operations']}\n"
        f"Overall Success Rate: {summary['overall_success_rate']:.1f}%",
        title="Summary",
        border_style="blue"
    ))
    console.print(table)
