"""
Insight Pipeline - declarative graph execution for data enrichment pipelines.

A pipeline is a GraphSpec of typed nodes (retrieve, transform, validate,
store, analyze, ...) joined by success/error/retry/fallback edges. The
PipelineExecutor walks one graph per request, routes on each node's
result, recovers through error paths and persists a snapshot of the run
after every node.
"""

from insight_pipeline.errors import PipelineError, PipelineErrorCode
from insight_pipeline.graph import (
    EdgeKind,
    EdgeSpec,
    GraphRegistry,
    GraphSpec,
    HandlerRegistry,
    NodeSpec,
    NodeType,
    PipelineExecutionRequest,
    PipelineExecutor,
)
from insight_pipeline.runtime import CancellationToken, NodeContext
from insight_pipeline.runtime.service import PipelineService
from insight_pipeline.schemas import (
    NodeState,
    NodeStatus,
    PipelineExecutionResult,
    RunState,
    RunStatus,
)

__version__ = "0.1.0"

__all__ = [
    # Graph
    "GraphSpec",
    "NodeSpec",
    "NodeType",
    "EdgeSpec",
    "EdgeKind",
    # Execution
    "PipelineExecutor",
    "PipelineExecutionRequest",
    "PipelineExecutionResult",
    "PipelineService",
    "HandlerRegistry",
    "GraphRegistry",
    "NodeContext",
    "CancellationToken",
    # Run state
    "RunState",
    "RunStatus",
    "NodeState",
    "NodeStatus",
    # Errors
    "PipelineError",
    "PipelineErrorCode",
]
