"""Run-time collaborators of the executor."""

from insight_pipeline.runtime.context import CancellationToken, NodeContext
from insight_pipeline.runtime.metrics import MetricsAggregator

__all__ = [
    "CancellationToken",
    "MetricsAggregator",
    "NodeContext",
]
