"""Run and result schemas."""

from insight_pipeline.schemas.run import (
    NodeMetrics,
    NodeMetricsSummary,
    NodeState,
    NodeStatus,
    PipelineExecutionResult,
    RunMetrics,
    RunState,
    RunStatus,
    TokenUsage,
)

__all__ = [
    "NodeMetrics",
    "NodeMetricsSummary",
    "NodeState",
    "NodeStatus",
    "PipelineExecutionResult",
    "RunMetrics",
    "RunState",
    "RunStatus",
    "TokenUsage",
]
