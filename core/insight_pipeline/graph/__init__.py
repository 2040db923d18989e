"""Graph structures: Nodes, Edges, Registries and the Executor."""

from insight_pipeline.graph.conditions import ConditionEvaluator
from insight_pipeline.graph.edge import EdgeKind, EdgeSpec, GraphSpec
from insight_pipeline.graph.executor import (
    PipelineExecutionRequest,
    PipelineExecutor,
)
from insight_pipeline.graph.node import NodeSpec, NodeType
from insight_pipeline.graph.registry import (
    GraphRegistry,
    HandlerRegistry,
    NodeHandler,
    RegisteredHandler,
)
from insight_pipeline.graph.safe_eval import UnsafeExpressionError, safe_eval

__all__ = [
    # Node
    "NodeSpec",
    "NodeType",
    # Edge
    "EdgeSpec",
    "EdgeKind",
    "GraphSpec",
    # Registries
    "HandlerRegistry",
    "GraphRegistry",
    "NodeHandler",
    "RegisteredHandler",
    # Conditions
    "ConditionEvaluator",
    "safe_eval",
    "UnsafeExpressionError",
    # Executor
    "PipelineExecutor",
    "PipelineExecutionRequest",
]
