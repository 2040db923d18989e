"""Tests for run-correlated logging."""

import json
import logging

import pytest

from insight_pipeline.graph import (
    EdgeSpec,
    GraphRegistry,
    GraphSpec,
    HandlerRegistry,
    NodeSpec,
    NodeType,
    PipelineExecutionRequest,
    PipelineExecutor,
)
from insight_pipeline.observability import (
    clear_trace_context,
    configure_logging,
    get_trace_context,
    set_trace_context,
)
from insight_pipeline.observability.logging import (
    HumanReadableFormatter,
    StructuredFormatter,
    strip_ansi_codes,
)


@pytest.fixture(autouse=True)
def reset_context():
    clear_trace_context()
    yield
    clear_trace_context()


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def make_record(message: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord("insight_pipeline.test", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_trace_context_merges():
    set_trace_context(run_id="run-1", graph_id="g")
    set_trace_context(node_id="n")

    assert get_trace_context() == {"run_id": "run-1", "graph_id": "g", "node_id": "n"}

    clear_trace_context()
    assert get_trace_context() == {}


def test_structured_formatter_includes_context_and_extras():
    set_trace_context(run_id="run-1", graph_id="g", node_id="n")

    line = StructuredFormatter().format(
        make_record("\033[32mdone\033[0m", latency_ms=12, error_code="dead_end")
    )
    entry = json.loads(line)

    assert entry["message"] == "done"
    assert entry["level"] == "info"
    assert entry["run_id"] == "run-1"
    assert entry["node_id"] == "n"
    assert entry["latency_ms"] == 12
    assert entry["error_code"] == "dead_end"
    assert "timestamp" in entry


def test_human_formatter_prefix():
    set_trace_context(run_id="1234567890abcdef", graph_id="g")

    line = strip_ansi_codes(HumanReadableFormatter().format(make_record("hello", event="node_done")))

    assert "[run:12345678 | graph:g]" in line
    assert line.endswith("hello [node_done]")


def test_configure_logging_json(monkeypatch, restore_root_logger):
    monkeypatch.setenv("LOG_FORMAT", "json")

    configure_logging(level="debug")

    assert len(restore_root_logger.handlers) == 1
    assert isinstance(restore_root_logger.handlers[0].formatter, StructuredFormatter)
    assert restore_root_logger.level == logging.DEBUG


def test_configure_logging_human_by_default(monkeypatch, restore_root_logger):
    monkeypatch.delenv("LOG_FORMAT", raising=False)
    monkeypatch.delenv("ENV", raising=False)

    configure_logging()

    assert isinstance(restore_root_logger.handlers[0].formatter, HumanReadableFormatter)


@pytest.mark.asyncio
async def test_handler_logs_carry_run_and_node(caplog):
    handler_logger = logging.getLogger("insight_pipeline.test_handler")

    async def chatty(input, ctx, config):
        handler_logger.info("working")
        return input

    async def passthrough(input, ctx, config):
        return input

    handlers = HandlerRegistry()
    handlers.register("passthrough", passthrough)
    handlers.register("chatty", chatty)
    graphs = GraphRegistry()
    graphs.register(
        GraphSpec(
            id="g",
            name="g",
            nodes=[
                NodeSpec(id="start", type=NodeType.START, handler="passthrough"),
                NodeSpec(id="talk", type=NodeType.TRANSFORM, handler="chatty"),
                NodeSpec(id="end", type=NodeType.END, handler="passthrough"),
            ],
            edges=[EdgeSpec(source="start", target="talk"), EdgeSpec(source="talk", target="end")],
        )
    )
    executor = PipelineExecutor(handlers=handlers, graphs=graphs)
    caplog.handler.setFormatter(StructuredFormatter())

    with caplog.at_level(logging.INFO):
        result = await executor.execute(PipelineExecutionRequest(graph_id="g"))

    entries = [json.loads(line) for line in caplog.text.splitlines() if line.startswith("{")]
    working = [e for e in entries if e["message"] == "working"]
    assert len(working) == 1
    assert working[0]["run_id"] == result.id
    assert working[0]["graph_id"] == "g"
    assert working[0]["node_id"] == "talk"
