"""Metric aggregation and reporting for stageload runs."""

from __future__ import annotations

from stageload.metrics.aggregator import MetricsAggregator
from stageload.metrics.models import CheckTally, MetricsSnapshot, RunReport

__all__ = [
    "CheckTally",
    "MetricsAggregator",
    "MetricsSnapshot",
    "RunReport",
]
