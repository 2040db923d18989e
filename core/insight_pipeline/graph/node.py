"""
Node Protocol - The steps a pipeline graph is made of.

A node is a typed step bound to a handler by key. The node type is
descriptive (it documents what the step does and marks the START/END
boundaries); the behaviour lives entirely in the handler the key resolves
to at execution time.

Node Types:
- start: Entry point, exactly one per graph
- retrieve: Pull raw text from an external knowledge source
- transform: Turn free text into structured JSON
- analyze: Derive insights or recommendations from structured data
- structure: Reshape or normalise structured data
- validate: Check structured data and annotate it with `_validation`
- store: Persist structured data
- end: Final step, its result becomes the run outputs
"""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class NodeType(StrEnum):
    """What kind of step a node is."""

    START = "start"
    RETRIEVE = "retrieve"
    TRANSFORM = "transform"
    ANALYZE = "analyze"
    STRUCTURE = "structure"
    VALIDATE = "validate"
    STORE = "store"
    END = "end"


class NodeSpec(BaseModel):
    """
    Specification for a node in the graph.

    Examples:
        NodeSpec(
            id="validate_insights",
            type=NodeType.VALIDATE,
            handler="validate_financial_insights",
        )

        NodeSpec(
            id="log_payload",
            type=NodeType.STRUCTURE,
            handler="logger",
            config={"level": "debug", "logFullData": True},
        )
    """

    id: str
    type: NodeType
    handler: str = Field(description="Key resolved in the HandlerRegistry at execution time")
    config: dict[str, Any] = Field(
        default_factory=dict,
        description="Opaque configuration passed to the handler",
    )
    description: str = ""

    model_config = {"extra": "allow", "frozen": True}

    @property
    def is_start(self) -> bool:
        return self.type == NodeType.START

    @property
    def is_end(self) -> bool:
        return self.type == NodeType.END
