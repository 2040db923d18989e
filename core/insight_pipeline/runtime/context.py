"""
Handler-facing view of a run.

Handlers receive a ``NodeContext`` instead of the mutable RunState. It
exposes the run identity and the original inputs read-only, and lets the
handler attach metrics to its own NodeState, but nothing else.
"""

import asyncio
import time
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from insight_pipeline.errors import RunCancelledError
from insight_pipeline.schemas.run import NodeMetrics, NodeState, TokenUsage

if TYPE_CHECKING:
    from insight_pipeline.graph.node import NodeSpec, NodeType


class CancellationToken:
    """
    Cooperative cancellation signal shared between a caller and a run.

    Example:
        token = CancellationToken()
        task = asyncio.create_task(
            executor.execute(PipelineExecutionRequest(graph_id="g", cancellation=token))
        )
        token.cancel("user aborted")
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    def cancel(self, reason: str | None = None) -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


class NodeContext:
    """What a handler may see and touch while it runs."""

    def __init__(
        self,
        run_id: str,
        graph_id: str,
        node: "NodeSpec",
        node_state: NodeState,
        inputs: dict[str, Any],
        cancellation: CancellationToken | None = None,
        deadline: float | None = None,
    ):
        self.run_id = run_id
        self.graph_id = graph_id
        self._node = node
        self._node_state = node_state
        self.inputs = MappingProxyType(inputs)
        self._cancellation = cancellation
        self._deadline = deadline

    @property
    def node_id(self) -> str:
        return self._node.id

    @property
    def node_type(self) -> "NodeType":
        return self._node.type

    @property
    def retry_count(self) -> int:
        return self._node_state.retry_count

    # === METRICS ===

    def _metrics(self) -> NodeMetrics:
        if self._node_state.metrics is None:
            self._node_state.metrics = NodeMetrics()
        return self._node_state.metrics

    def record_token_usage(self, prompt_tokens: int = 0, completion_tokens: int = 0) -> None:
        """Add provider usage to this node's counters."""
        metrics = self._metrics()
        usage = TokenUsage(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens)
        metrics.token_usage = usage if metrics.token_usage is None else metrics.token_usage + usage

    def set_metric(self, key: str, value: Any) -> None:
        """Attach an arbitrary counter or flag (e.g. ``cacheHit``) to this node."""
        self._metrics().extra[key] = value

    # === CANCELLATION / DEADLINE ===

    @property
    def cancelled(self) -> bool:
        return self._cancellation is not None and self._cancellation.cancelled

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise RunCancelledError(self._cancellation.reason or "Run was cancelled")

    @property
    def time_remaining(self) -> float | None:
        """Seconds left before the run deadline, or None if unbounded."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())
