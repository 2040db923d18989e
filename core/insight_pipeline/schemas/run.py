"""
Run Schema - One execution of a pipeline graph.

A run owns one NodeState per node of its graph. The executor is the only
writer while the run is active; every persisted snapshot is a deep copy
taken at a node transition, and a run is never modified again once its
status is terminal.

All models serialise with camelCase keys (``graphId``, ``startTime``,
``tokenUsage``) so persisted snapshots and results keep the same shape
callers already consume. Attributes stay snake_case in Python.
"""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from insight_pipeline.errors import PipelineErrorCode


def utcnow() -> datetime:
    return datetime.now(UTC)


class WireModel(BaseModel):
    """Base for models that are persisted or returned to callers."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        """JSON-compatible dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RunStatus(StrEnum):
    """Status of a run."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED)


class NodeStatus(StrEnum):
    """Status of one node within a run."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TokenUsage(WireModel):
    """Provider usage counters."""

    prompt_tokens: int = 0
    completion_tokens: int = 0

    @computed_field
    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
        )


class NodeMetrics(WireModel):
    """Metrics attached to a single node execution."""

    duration: int | None = Field(default=None, description="Milliseconds")
    token_usage: TokenUsage | None = None
    extra: dict[str, Any] = Field(default_factory=dict)


class NodeState(WireModel):
    """Execution state of a single node."""

    id: str
    status: NodeStatus = NodeStatus.PENDING
    start_time: datetime | None = None
    end_time: datetime | None = None
    retry_count: int = 0
    error: str | None = None
    error_code: PipelineErrorCode | None = None
    result: Any = None
    metrics: NodeMetrics | None = None


class RunState(WireModel):
    """
    Mutable state of one execution of a graph.

    Created with every node PENDING; the executor moves nodes through
    RUNNING to COMPLETED/FAILED (or CANCELLED) one at a time.
    """

    id: str
    graph_id: str
    status: RunStatus = RunStatus.PENDING
    start_time: datetime = Field(default_factory=utcnow)
    end_time: datetime | None = None

    nodes: dict[str, NodeState] = Field(default_factory=dict)
    current_node: str | None = None
    path: list[str] = Field(default_factory=list)  # Node IDs executed, in order

    inputs: dict[str, Any] = Field(default_factory=dict)
    outputs: Any = None
    error: str | None = None
    error_code: PipelineErrorCode | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    @computed_field
    @property
    def duration(self) -> int:
        """Duration of the run in milliseconds (0 while running)."""
        if self.end_time is None:
            return 0
        return int((self.end_time - self.start_time).total_seconds() * 1000)

    def snapshot(self) -> "RunState":
        """Deep copy safe to persist or hand to callers."""
        return self.model_copy(deep=True)

    def finish(
        self,
        status: RunStatus,
        error: str | None = None,
        error_code: PipelineErrorCode | None = None,
    ) -> None:
        """Move the run to a terminal status."""
        self.status = status
        self.end_time = utcnow()
        self.error = error
        self.error_code = error_code


class NodeMetricsSummary(WireModel):
    """Per-node entry in the run-level metrics breakdown."""

    duration: int | None = None
    token_usage: TokenUsage | None = None
    status: NodeStatus
    retry_count: int = 0


class RunMetrics(WireModel):
    """Aggregated metrics for a whole run."""

    token_usage: TokenUsage = Field(default_factory=TokenUsage)
    total_node_duration: int = 0
    nodes_executed: int = 0
    node_metrics: dict[str, NodeMetricsSummary] = Field(default_factory=dict)


class PipelineExecutionResult(WireModel):
    """Terminal outcome of a run, as returned to callers and persisted."""

    id: str
    graph_id: str
    status: RunStatus
    start_time: datetime
    end_time: datetime
    duration: int = Field(description="Milliseconds")
    outputs: Any = None
    error: str | None = None
    error_code: PipelineErrorCode | None = None
    metrics: RunMetrics = Field(default_factory=RunMetrics)

    @property
    def success(self) -> bool:
        return self.status == RunStatus.COMPLETED
