"""
Command-line interface for Insight Pipeline.

Usage:
    insight-pipeline list
    insight-pipeline run market_news_graph --input '{"topic": "semiconductors", "limit": 5}'
    insight-pipeline run company_analysis_graph --input '{"company": "Acme"}' --timeout 120
    insight-pipeline state <run_id>
    insight-pipeline result <run_id>

Provider-backed handlers are registered by plugin modules exposing
``register(service)``:

    insight-pipeline --plugin myapp.pipeline_handlers run market_news_graph ...

``state`` and ``result`` read from the configured store, so they need a
shared backend (``PIPELINE_REDIS_URL``) to see runs from other processes.
"""

import argparse
import asyncio
import importlib
import json
import sys
from typing import Any

from insight_pipeline.config import PipelineConfig
from insight_pipeline.graph.executor import PipelineExecutionRequest
from insight_pipeline.observability import configure_logging
from insight_pipeline.runtime.service import PipelineService
from insight_pipeline.storage.backend import RedisKeyValueStore


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _build_service(args: argparse.Namespace) -> PipelineService:
    service = PipelineService(config=PipelineConfig())
    for module_name in args.plugin or []:
        module = importlib.import_module(module_name)
        register = getattr(module, "register", None)
        if register is None:
            raise SystemExit(f"Plugin module '{module_name}' has no register(service) function")
        register(service)
    service.initialize()
    return service


async def _close(service: PipelineService) -> None:
    if service.state_store is not None and isinstance(service.state_store.store, RedisKeyValueStore):
        await service.state_store.store.close()


# === COMMANDS ===


def cmd_list(args: argparse.Namespace) -> int:
    service = _build_service(args)
    _print_json(
        [
            {
                "id": graph.id,
                "name": graph.name,
                "version": graph.version,
                "description": graph.description,
                "nodes": len(graph.nodes),
                "edges": len(graph.edges),
            }
            for graph in service.list_graphs()
        ]
    )
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    try:
        inputs = json.loads(args.input) if args.input else {}
    except json.JSONDecodeError as e:
        print(f"Error: --input is not valid JSON: {e}", file=sys.stderr)
        return 1
    if not isinstance(inputs, dict):
        print("Error: --input must be a JSON object", file=sys.stderr)
        return 1

    service = _build_service(args)

    async def _run():
        try:
            return await service.execute(
                PipelineExecutionRequest(
                    graph_id=args.graph_id,
                    inputs=inputs,
                    timeout_seconds=args.timeout,
                )
            )
        finally:
            await _close(service)

    result = asyncio.run(_run())
    _print_json(result.to_wire())
    return 0 if result.success else 1


def cmd_state(args: argparse.Namespace) -> int:
    service = _build_service(args)

    async def _load():
        try:
            return await service.get_pipeline_state(args.run_id)
        finally:
            await _close(service)

    state = asyncio.run(_load())
    if state is None:
        print(f"No state found for run {args.run_id}", file=sys.stderr)
        return 1
    _print_json(state.to_wire())
    return 0


def cmd_result(args: argparse.Namespace) -> int:
    service = _build_service(args)

    async def _load():
        try:
            return await service.get_pipeline_result(args.run_id)
        finally:
            await _close(service)

    result = asyncio.run(_load())
    if result is None:
        print(f"No result found for run {args.run_id}", file=sys.stderr)
        return 1
    _print_json(result.to_wire())
    return 0


def register_commands(subparsers: argparse._SubParsersAction) -> None:
    """Register pipeline commands with the main CLI."""
    list_parser = subparsers.add_parser("list", help="List registered graphs")
    list_parser.set_defaults(func=cmd_list)

    run_parser = subparsers.add_parser("run", help="Execute a graph once and print the result")
    run_parser.add_argument("graph_id", help="Graph to execute")
    run_parser.add_argument("--input", "-i", default=None, help="Input payload as a JSON object")
    run_parser.add_argument(
        "--timeout", type=float, default=None, help="Run deadline in seconds"
    )
    run_parser.set_defaults(func=cmd_run)

    state_parser = subparsers.add_parser("state", help="Show the latest snapshot of a run")
    state_parser.add_argument("run_id")
    state_parser.set_defaults(func=cmd_state)

    result_parser = subparsers.add_parser("result", help="Show the final result of a run")
    result_parser.add_argument("run_id")
    result_parser.set_defaults(func=cmd_result)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="insight-pipeline",
        description="Insight Pipeline - Run data enrichment graphs",
    )
    parser.add_argument(
        "--plugin",
        action="append",
        metavar="MODULE",
        help="Module with a register(service) function (repeatable)",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default from config)")

    subparsers = parser.add_subparsers(dest="command", required=True)
    register_commands(subparsers)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = PipelineConfig()
    # Logs go to stderr so stdout stays machine-readable
    configure_logging(level=args.log_level or config.log_level, format=config.log_format)

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
