"""
Edge Protocol - How nodes connect in a graph.

Edges define:
1. Source and target nodes
2. The edge kind (success, error, retry, fallback)
3. An optional condition over the source node's result

Edge Kinds:
- success: Normal forward progress after the source completes
- error: Recovery path after the source fails, or a result-driven
  diversion (e.g. ``not result._validation.isValid``)
- retry: Loop back to an earlier node; the engine adds no backoff
- fallback: Alternative route when no success edge matches

Routing after a node completes evaluates SUCCESS edges first, in
declaration order, then all other edges in declaration order. The first
edge whose condition holds wins. After a node fails only ERROR edges are
considered.
"""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from insight_pipeline.graph.node import NodeSpec, NodeType
from insight_pipeline.graph.safe_eval import parse_expression


class EdgeKind(StrEnum):
    """How an edge participates in routing."""

    SUCCESS = "success"
    ERROR = "error"
    RETRY = "retry"
    FALLBACK = "fallback"


class EdgeSpec(BaseModel):
    """
    Specification for an edge between nodes.

    Examples:
        # Unconditional forward edge
        EdgeSpec(source="retrieve_insights", target="transform_insights")

        # Validation-driven routing
        EdgeSpec(
            source="validate_insights",
            target="store_insights",
            condition="result._validation.isValid == true",
        )
        EdgeSpec(
            source="validate_insights",
            target="error",
            kind=EdgeKind.ERROR,
            condition="result._validation.isValid != true",
        )
    """

    source: str = Field(description="Source node ID")
    target: str = Field(description="Target node ID")
    kind: EdgeKind = EdgeKind.SUCCESS
    condition: str | None = Field(
        default=None,
        description="Expression over the source result, e.g. 'result.confidence > 0.8'",
    )
    description: str = ""

    model_config = {"extra": "allow", "frozen": True}

    @property
    def id(self) -> str:
        return f"{self.source}->{self.target}:{self.kind}"


class GraphSpec(BaseModel):
    """
    Complete, immutable definition of a pipeline graph.

    Example:
        GraphSpec(
            id="financial_insights_graph",
            name="Financial Insights Pipeline",
            nodes=[
                NodeSpec(id="start", type=NodeType.START, handler="start"),
                NodeSpec(id="end", type=NodeType.END, handler="end"),
            ],
            edges=[EdgeSpec(source="start", target="end")],
        )
    """

    id: str
    name: str
    version: str = "1.0.0"
    description: str = ""

    nodes: list[NodeSpec] = Field(default_factory=list)
    edges: list[EdgeSpec] = Field(default_factory=list)

    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"extra": "allow", "frozen": True}

    def get_node(self, node_id: str) -> NodeSpec | None:
        """Get a node by ID."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_start_node(self) -> NodeSpec | None:
        """Return the first START node, if any."""
        for node in self.nodes:
            if node.is_start:
                return node
        return None

    def get_outgoing_edges(self, node_id: str) -> list[EdgeSpec]:
        """Get all edges leaving a node, in declaration order."""
        return [e for e in self.edges if e.source == node_id]

    def get_incoming_edges(self, node_id: str) -> list[EdgeSpec]:
        """Get all edges entering a node."""
        return [e for e in self.edges if e.target == node_id]

    def validate(self) -> list[str]:
        """Validate the graph structure."""
        errors = []

        seen: set[str] = set()
        for node in self.nodes:
            if node.id in seen:
                errors.append(f"Duplicate node ID: '{node.id}'")
            seen.add(node.id)
            if not node.handler:
                errors.append(f"Node '{node.id}' has no handler key")

        start_nodes = [n.id for n in self.nodes if n.type == NodeType.START]
        if len(start_nodes) != 1:
            errors.append(f"Graph must have exactly one start node, found {len(start_nodes)}")

        if not any(n.type == NodeType.END for n in self.nodes):
            errors.append("Graph must have at least one end node")

        for edge in self.edges:
            if not self.get_node(edge.source):
                errors.append(f"Edge '{edge.id}' references missing source '{edge.source}'")
            if not self.get_node(edge.target):
                errors.append(f"Edge '{edge.id}' references missing target '{edge.target}'")
            if edge.condition:
                try:
                    parse_expression(edge.condition)
                except (SyntaxError, ValueError) as e:
                    errors.append(f"Edge '{edge.id}' has an unparsable condition: {e}")

        # Reachability from the start node
        if len(start_nodes) == 1:
            reachable = set()
            to_visit = [start_nodes[0]]
            while to_visit:
                current = to_visit.pop()
                if current in reachable:
                    continue
                reachable.add(current)
                for edge in self.get_outgoing_edges(current):
                    to_visit.append(edge.target)

            for node in self.nodes:
                if node.id not in reachable:
                    errors.append(f"Node '{node.id}' is unreachable from start")

        return errors
