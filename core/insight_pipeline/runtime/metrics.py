"""Roll per-node metrics up into a run-level summary."""

from insight_pipeline.schemas.run import (
    NodeMetricsSummary,
    NodeStatus,
    RunMetrics,
    RunState,
    TokenUsage,
)


class MetricsAggregator:
    """
    Sums node durations and token usage across a run.

    Only nodes that actually ran (anything but PENDING) appear in the
    per-node breakdown.
    """

    def aggregate(self, run: RunState) -> RunMetrics:
        token_usage = TokenUsage()
        total_duration = 0
        node_metrics: dict[str, NodeMetricsSummary] = {}

        for node_id, state in run.nodes.items():
            if state.status == NodeStatus.PENDING:
                continue

            duration = state.metrics.duration if state.metrics else None
            usage = state.metrics.token_usage if state.metrics else None

            if duration:
                total_duration += duration
            if usage is not None:
                token_usage = token_usage + usage

            node_metrics[node_id] = NodeMetricsSummary(
                duration=duration,
                token_usage=usage,
                status=state.status,
                retry_count=state.retry_count,
            )

        return RunMetrics(
            token_usage=token_usage,
            total_node_duration=total_duration,
            nodes_executed=len(run.path),
            node_metrics=node_metrics,
        )
