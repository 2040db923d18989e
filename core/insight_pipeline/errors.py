"""
Pipeline errors.

Every error the engine can report carries a ``PipelineErrorCode`` so callers
can branch on ``result.error_code`` instead of parsing messages.

Configuration errors (unknown graph, missing START node) are detected before
a run exists. Node errors (missing handler, handler raised, bad output) are
recorded on the NodeState and may be routed through an ERROR edge. Run errors
(dead end, step limit, deadline, cancellation) terminate the run.
"""

from enum import StrEnum


class PipelineErrorCode(StrEnum):
    """Machine-readable error kinds exposed on runs and results."""

    GRAPH_NOT_FOUND = "graph_not_found"
    NO_START_NODE = "no_start_node"
    HANDLER_NOT_FOUND = "handler_not_found"
    HANDLER_ERROR = "handler_error"
    INVALID_OUTPUT = "invalid_output"
    DEAD_END = "dead_end"
    MAX_STEPS_EXCEEDED = "max_steps_exceeded"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    CANCELLED = "cancelled"


class PipelineError(Exception):
    """Base class for engine errors."""

    code: PipelineErrorCode = PipelineErrorCode.HANDLER_ERROR

    def __init__(self, message: str, code: PipelineErrorCode | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class GraphNotFoundError(PipelineError):
    code = PipelineErrorCode.GRAPH_NOT_FOUND

    def __init__(self, graph_id: str):
        super().__init__(f"Graph not found: {graph_id}")
        self.graph_id = graph_id


class NoStartNodeError(PipelineError):
    code = PipelineErrorCode.NO_START_NODE

    def __init__(self, graph_id: str):
        super().__init__(f"No start node found in graph: {graph_id}")
        self.graph_id = graph_id


class HandlerNotFoundError(PipelineError):
    code = PipelineErrorCode.HANDLER_NOT_FOUND

    def __init__(self, handler_key: str):
        super().__init__(f"Handler not found: {handler_key}")
        self.handler_key = handler_key


class HandlerExecutionError(PipelineError):
    """A handler raised; wraps the original exception as ``__cause__``."""

    code = PipelineErrorCode.HANDLER_ERROR


class InvalidOutputError(PipelineError):
    code = PipelineErrorCode.INVALID_OUTPUT


class DeadEndError(PipelineError):
    code = PipelineErrorCode.DEAD_END

    def __init__(self, node_id: str):
        super().__init__(f"No outgoing edge matched after node '{node_id}' (dead end)")
        self.node_id = node_id


class MaxStepsExceededError(PipelineError):
    code = PipelineErrorCode.MAX_STEPS_EXCEEDED

    def __init__(self, max_steps: int):
        super().__init__(f"Run exceeded the maximum of {max_steps} node executions")
        self.max_steps = max_steps


class DeadlineExceededError(PipelineError):
    code = PipelineErrorCode.DEADLINE_EXCEEDED

    def __init__(self, timeout_seconds: float):
        super().__init__(f"Run exceeded its deadline of {timeout_seconds}s")
        self.timeout_seconds = timeout_seconds


class RunCancelledError(PipelineError):
    code = PipelineErrorCode.CANCELLED

    def __init__(self, message: str = "Run was cancelled"):
        super().__init__(message)


class InvalidGraphError(ValueError):
    """Raised at registration time when a graph definition is malformed."""

    def __init__(self, graph_id: str, errors: list[str]):
        super().__init__(f"Invalid graph '{graph_id}': {'; '.join(errors)}")
        self.graph_id = graph_id
        self.errors = errors


class RegistryFrozenError(RuntimeError):
    """Raised when registering into a registry after it was frozen."""
