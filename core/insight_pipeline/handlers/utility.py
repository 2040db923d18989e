"""
Utility handlers shared by every pipeline graph.

These carry no domain knowledge: they bracket a run (start/end), turn a
failure payload into a summary (error), tag or log payloads as they pass
through (router/logger) and fold list inputs together (merge).
"""

import logging
import uuid
from typing import Any

from insight_pipeline.runtime.context import NodeContext
from insight_pipeline.schemas.run import utcnow

logger = logging.getLogger(__name__)


async def start_node(input: Any, ctx: NodeContext, config: dict[str, Any]) -> dict[str, Any]:
    """Attach an execution context to the run inputs."""
    payload = dict(input) if isinstance(input, dict) else {"input": input}
    payload["executionContext"] = {
        "pipelineId": ctx.run_id,
        "startTime": utcnow().isoformat(),
        "input": input,
    }
    return payload


async def end_node(input: Any, ctx: NodeContext, config: dict[str, Any]) -> dict[str, Any]:
    """Summarise the completed run; this becomes the run outputs."""
    execution_context = (input.get("executionContext") if isinstance(input, dict) else None) or {}
    return {
        "pipelineId": execution_context.get("pipelineId", ctx.run_id),
        "startTime": execution_context.get("startTime"),
        "endTime": utcnow().isoformat(),
        "status": "completed",
        "result": input,
    }


async def error_node(input: Any, ctx: NodeContext, config: dict[str, Any]) -> dict[str, Any]:
    """
    Turn whatever reached the error path into a failure summary.

    Two kinds of input arrive here: the engine's failure payload
    (``{"error", "error_code", "node_id", "input"}``) when a handler raised,
    or an ordinary result whose ``_validation`` flagged it invalid.
    """
    payload = input if isinstance(input, dict) else {"input": input}

    if "error" in payload:
        message = str(payload["error"])
        node_id = payload.get("node_id")
        code = payload.get("error_code")
        original = payload.get("input")
    else:
        validation = payload.get("_validation") or {}
        errors = validation.get("errors") or []
        message = "; ".join(errors) if errors else "Unknown error"
        node_id = None
        code = "validation_failed" if validation else None
        original = payload

    logger.error(f"Pipeline error at node {node_id or 'unknown'}: {message}")

    execution_context = {}
    if isinstance(original, dict):
        execution_context = original.get("executionContext") or {}

    return {
        "pipelineId": execution_context.get("pipelineId", ctx.run_id),
        "startTime": execution_context.get("startTime"),
        "endTime": utcnow().isoformat(),
        "status": "failed",
        "error": {"message": message, "nodeId": node_id, "code": code},
    }


async def router_node(input: Any, ctx: NodeContext, config: dict[str, Any]) -> dict[str, Any]:
    """
    Tag the payload with a routing type for downstream edge conditions.

    The type comes from ``input[config["typeField"]]`` when configured,
    otherwise from ``input["_metadata"]["type"]``.
    """
    if not input:
        raise ValueError("No input provided for router")

    metadata = input.get("_metadata") or {}
    type_field = config.get("typeField")
    data_type = None
    if type_field:
        data_type = input.get(type_field)
    data_type = data_type or metadata.get("type") or "unknown"

    logger.info(f"Router determined data type: {data_type}")
    return {
        **input,
        "_routing": {"type": data_type, "timestamp": utcnow().isoformat()},
    }


async def logger_node(input: Any, ctx: NodeContext, config: dict[str, Any]) -> Any:
    """Log the payload (or just its metadata) and pass it through unchanged."""
    level = logging.getLevelName(str(config.get("level", "info")).upper())
    if not isinstance(level, int):
        level = logging.INFO
    prefix = config.get("prefix", "Pipeline")

    if config.get("logFullData") is True:
        data = input
    elif isinstance(input, dict):
        data = input.get("_metadata") or {"type": "unknown"}
    else:
        data = {"type": type(input).__name__}

    logger.log(level, f"{prefix}: {data}")
    return input


async def merge_node(input: Any, ctx: NodeContext, config: dict[str, Any]) -> Any:
    """Fold a list of payloads into one; anything else passes through."""
    if not isinstance(input, list):
        return input
    return {
        "merged": True,
        "mergeId": uuid.uuid4().hex,
        "timestamp": utcnow().isoformat(),
        "inputs": input,
        "metadata": [
            (item.get("_metadata") if isinstance(item, dict) else None) or {"unknown": True}
            for item in input
        ],
    }
