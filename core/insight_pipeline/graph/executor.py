"""
Pipeline Executor - Runs pipeline graphs.

The executor:
1. Resolves a GraphSpec from the GraphRegistry
2. Creates a RunState with every node PENDING
3. Walks the graph one node at a time, invoking handlers
4. Routes on each result (SUCCESS edges first, then the rest) or, after a
   failure, through the first matching ERROR edge
5. Persists a snapshot after every node transition
6. Returns a PipelineExecutionResult; ``execute()`` never raises
"""

import asyncio
import contextlib
import inspect
import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError

from insight_pipeline.errors import (
    DeadEndError,
    DeadlineExceededError,
    HandlerExecutionError,
    InvalidOutputError,
    MaxStepsExceededError,
    NoStartNodeError,
    PipelineError,
    PipelineErrorCode,
    RunCancelledError,
)
from insight_pipeline.graph.conditions import ConditionEvaluator
from insight_pipeline.graph.edge import EdgeKind, GraphSpec
from insight_pipeline.graph.node import NodeSpec
from insight_pipeline.graph.registry import GraphRegistry, HandlerRegistry, RegisteredHandler
from insight_pipeline.observability import set_trace_context
from insight_pipeline.runtime.context import CancellationToken, NodeContext
from insight_pipeline.runtime.metrics import MetricsAggregator
from insight_pipeline.schemas.run import (
    NodeMetrics,
    NodeState,
    NodeStatus,
    PipelineExecutionResult,
    RunMetrics,
    RunState,
    RunStatus,
    utcnow,
)
from insight_pipeline.storage.run_store import RunStateStore

DEFAULT_MAX_STEPS = 100

RunCallback = Callable[[RunState], Awaitable[None] | None]


@dataclass
class PipelineExecutionRequest:
    """A request to run one graph over one input payload."""

    graph_id: str
    inputs: dict[str, Any] = field(default_factory=dict)
    callback: RunCallback | None = None  # Called with the final RunState
    metadata: dict[str, Any] = field(default_factory=dict)

    # Optional run deadline and cooperative cancellation
    timeout_seconds: float | None = None
    cancellation: CancellationToken | None = None


@dataclass
class NodeOutcome:
    """What happened when one node ran."""

    success: bool
    result: Any = None
    error: PipelineError | None = None


class PipelineExecutor:
    """
    Executes pipeline graphs.

    Example:
        executor = PipelineExecutor(
            handlers=handler_registry,
            graphs=graph_registry,
            state_store=RunStateStore(InMemoryKeyValueStore()),
        )

        result = await executor.execute(
            PipelineExecutionRequest(
                graph_id="financial_insights_graph",
                inputs={"topic": "ASEAN tariffs"},
            )
        )
    """

    def __init__(
        self,
        handlers: HandlerRegistry,
        graphs: GraphRegistry,
        state_store: RunStateStore | None = None,
        condition_evaluator: ConditionEvaluator | None = None,
        metrics_aggregator: MetricsAggregator | None = None,
        max_steps: int = DEFAULT_MAX_STEPS,
        default_timeout_seconds: float | None = None,
    ):
        """
        Initialize the executor.

        Args:
            handlers: Registry resolving ``NodeSpec.handler`` keys
            graphs: Registry resolving graph IDs
            state_store: Where snapshots and results are persisted (None disables)
            condition_evaluator: Edge condition evaluator
            metrics_aggregator: Rolls node metrics up into the result
            max_steps: Maximum node executions per run (bounds RETRY loops)
            default_timeout_seconds: Deadline applied when a request sets none
        """
        self.handlers = handlers
        self.graphs = graphs
        self.state_store = state_store
        self.conditions = condition_evaluator or ConditionEvaluator()
        self.metrics = metrics_aggregator or MetricsAggregator()
        self.max_steps = max_steps
        self.default_timeout_seconds = default_timeout_seconds
        self.logger = logging.getLogger(__name__)

    # === PUBLIC API ===

    async def execute(self, request: PipelineExecutionRequest) -> PipelineExecutionResult:
        """
        Execute a graph for one input payload.

        Args:
            request: Graph ID, inputs and optional callback/deadline/cancellation

        Returns:
            PipelineExecutionResult; failures are reported through ``status``,
            ``error`` and ``error_code`` rather than raised
        """
        try:
            graph = self.graphs.resolve(request.graph_id)
            start_node = graph.get_start_node()
            if start_node is None:
                raise NoStartNodeError(graph.id)
        except PipelineError as e:
            return await self._configuration_failure(request, e)

        run = self._create_run(graph, request)
        set_trace_context(run_id=run.id, graph_id=graph.id, node_id=None)
        self.logger.info(f"🚀 Starting run {run.id} of graph '{graph.id}'")

        timeout = (
            request.timeout_seconds
            if request.timeout_seconds is not None
            else self.default_timeout_seconds
        )
        deadline = time.monotonic() + timeout if timeout is not None else None

        try:
            await self._run_graph(graph, run, start_node, request, deadline, timeout)
        except RunCancelledError as e:
            self.logger.warning(f"⏹ Run {run.id} cancelled: {e.message}")
            run.finish(RunStatus.CANCELLED, e.message, e.code)
        except PipelineError as e:
            self.logger.error(f"✗ Run {run.id} failed: {e.message}")
            run.finish(RunStatus.FAILED, e.message, e.code)
        except Exception as e:
            self.logger.exception(f"✗ Run {run.id} failed unexpectedly")
            run.finish(RunStatus.FAILED, str(e), PipelineErrorCode.HANDLER_ERROR)
        finally:
            set_trace_context(node_id=None)

        result = self._build_result(run)

        await self._persist_snapshot(run)
        await self._persist_result(result)
        await self._invoke_callback(request, run)

        self.logger.info(
            f"🏁 Run {run.id} finished with status '{result.status}' in {result.duration}ms"
        )
        return result

    # === RUN LOOP ===

    def _create_run(self, graph: GraphSpec, request: PipelineExecutionRequest) -> RunState:
        run = RunState(
            id=str(uuid.uuid4()),
            graph_id=graph.id,
            nodes={node.id: NodeState(id=node.id) for node in graph.nodes},
            inputs=dict(request.inputs),
            metadata=dict(request.metadata),
        )
        run.status = RunStatus.RUNNING
        return run

    async def _run_graph(
        self,
        graph: GraphSpec,
        run: RunState,
        start_node: NodeSpec,
        request: PipelineExecutionRequest,
        deadline: float | None,
        timeout: float | None,
    ) -> None:
        current: NodeSpec | None = start_node
        current_input: Any = dict(request.inputs)
        steps = 0

        while current is not None:
            self._check_interrupts(request, deadline, timeout)
            if steps >= self.max_steps:
                raise MaxStepsExceededError(self.max_steps)
            steps += 1

            run.current_node = current.id
            run.path.append(current.id)

            outcome = await self._execute_node(
                run, current, current_input, request, deadline, timeout
            )
            await self._persist_snapshot(run)

            if outcome.success:
                if current.is_end:
                    run.outputs = outcome.result
                    run.finish(RunStatus.COMPLETED)
                    return

                next_id = self._select_next_node(graph, current.id, outcome.result)
                if next_id is None:
                    raise DeadEndError(current.id)
                self.logger.info(f"   → {current.id} → {next_id}")
                current_input = outcome.result
            else:
                error = outcome.error
                if isinstance(error, (RunCancelledError, DeadlineExceededError)):
                    raise error

                payload = {
                    "error": error.message,
                    "error_code": str(error.code),
                    "node_id": current.id,
                    "input": current_input,
                }
                next_id = self._select_error_target(graph, current.id, payload)
                if next_id is None:
                    raise error
                self.logger.info(f"   ↪ {current.id} failed, following error edge to {next_id}")
                current_input = payload

            current = graph.get_node(next_id)

    def _check_interrupts(
        self,
        request: PipelineExecutionRequest,
        deadline: float | None,
        timeout: float | None,
    ) -> None:
        if request.cancellation is not None and request.cancellation.cancelled:
            raise RunCancelledError(request.cancellation.reason or "Run was cancelled")
        if deadline is not None and time.monotonic() >= deadline:
            raise DeadlineExceededError(timeout)

    # === NODE EXECUTION ===

    async def _execute_node(
        self,
        run: RunState,
        node: NodeSpec,
        node_input: Any,
        request: PipelineExecutionRequest,
        deadline: float | None,
        timeout: float | None,
    ) -> NodeOutcome:
        state = run.nodes[node.id]
        if state.status != NodeStatus.PENDING:
            state.retry_count += 1

        state.status = NodeStatus.RUNNING
        state.start_time = utcnow()
        state.end_time = None
        state.error = None
        state.error_code = None
        state.result = None

        set_trace_context(node_id=node.id)
        self.logger.info(f"▶ Executing node: {node.id} ({node.type})")

        started = time.perf_counter()
        try:
            registered = self.handlers.resolve(node.handler)
            ctx = NodeContext(
                run_id=run.id,
                graph_id=run.graph_id,
                node=node,
                node_state=state,
                inputs=run.inputs,
                cancellation=request.cancellation,
                deadline=deadline,
            )
            result = await self._invoke_handler(
                registered, node_input, ctx, node.config, request, deadline, timeout
            )
            result = self._check_output(registered, result)
        except asyncio.CancelledError:
            state.status = NodeStatus.CANCELLED
            state.end_time = utcnow()
            raise
        except PipelineError as e:
            return self._record_failure(state, e, started)
        except Exception as e:
            error = HandlerExecutionError(str(e) or type(e).__name__)
            error.__cause__ = e
            return self._record_failure(state, error, started)

        state.status = NodeStatus.COMPLETED
        state.end_time = utcnow()
        state.result = result
        self._record_duration(state, started)
        self.logger.info(f"   ✓ {node.id} completed in {state.metrics.duration}ms")
        return NodeOutcome(success=True, result=result)

    async def _invoke_handler(
        self,
        registered: RegisteredHandler,
        node_input: Any,
        ctx: NodeContext,
        config: dict[str, Any],
        request: PipelineExecutionRequest,
        deadline: float | None,
        timeout: float | None,
    ) -> Any:
        """Run the handler, racing it against cancellation and the deadline."""
        func = registered.func
        if inspect.iscoroutinefunction(func) or inspect.iscoroutinefunction(
            getattr(func, "__call__", None)
        ):
            awaitable = func(node_input, ctx, dict(config))
        else:
            awaitable = asyncio.to_thread(func, node_input, ctx, dict(config))

        if request.cancellation is None and deadline is None:
            result = await awaitable
        else:
            handler_task = asyncio.ensure_future(awaitable)
            waiters: set[asyncio.Future] = {handler_task}
            cancel_waiter = None
            if request.cancellation is not None:
                cancel_waiter = asyncio.ensure_future(request.cancellation.wait())
                waiters.add(cancel_waiter)

            remaining = max(0.0, deadline - time.monotonic()) if deadline is not None else None
            try:
                done, _ = await asyncio.wait(
                    waiters, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
                )
            finally:
                for waiter in waiters:
                    if not waiter.done():
                        waiter.cancel()

            if handler_task in done:
                result = handler_task.result()
            else:
                with contextlib.suppress(asyncio.CancelledError):
                    await handler_task
                if cancel_waiter is not None and cancel_waiter in done:
                    raise RunCancelledError(request.cancellation.reason or "Run was cancelled")
                raise DeadlineExceededError(timeout)

        if inspect.isawaitable(result):
            result = await result
        return result

    def _check_output(self, registered: RegisteredHandler, result: Any) -> Any:
        """Validate the result against the handler's declared output model."""
        model = registered.output_model
        if model is None:
            return result
        try:
            if isinstance(result, model):
                validated = result
            elif isinstance(result, BaseModel):
                validated = model.model_validate(result.model_dump())
            else:
                validated = model.model_validate(result)
        except ValidationError as e:
            raise InvalidOutputError(
                f"Handler '{registered.key}' returned output that does not match "
                f"{model.__name__}: {e.error_count()} validation error(s)"
            ) from e
        return validated.model_dump()

    def _record_failure(self, state: NodeState, error: PipelineError, started: float) -> NodeOutcome:
        state.status = (
            NodeStatus.CANCELLED if isinstance(error, RunCancelledError) else NodeStatus.FAILED
        )
        state.end_time = utcnow()
        state.error = error.message
        state.error_code = error.code
        self._record_duration(state, started)
        self.logger.error(f"   ✗ {state.id} failed: {error.message}", extra={"error_code": error.code})
        return NodeOutcome(success=False, error=error)

    @staticmethod
    def _record_duration(state: NodeState, started: float) -> None:
        elapsed = int((time.perf_counter() - started) * 1000)
        if state.metrics is None:
            state.metrics = NodeMetrics()
        # Revisited nodes accumulate time across visits
        state.metrics.duration = (state.metrics.duration or 0) + elapsed

    # === ROUTING ===

    def _select_next_node(self, graph: GraphSpec, node_id: str, result: Any) -> str | None:
        """SUCCESS edges first, then all other kinds; declaration order within each."""
        edges = graph.get_outgoing_edges(node_id)
        ordered = [e for e in edges if e.kind == EdgeKind.SUCCESS] + [
            e for e in edges if e.kind != EdgeKind.SUCCESS
        ]
        for edge in ordered:
            if self.conditions.evaluate(edge.condition, result):
                return edge.target
        return None

    def _select_error_target(
        self, graph: GraphSpec, node_id: str, payload: dict[str, Any]
    ) -> str | None:
        for edge in graph.get_outgoing_edges(node_id):
            if edge.kind != EdgeKind.ERROR:
                continue
            if self.conditions.evaluate(edge.condition, payload):
                return edge.target
        return None

    # === FINALIZATION ===

    def _build_result(self, run: RunState) -> PipelineExecutionResult:
        return PipelineExecutionResult(
            id=run.id,
            graph_id=run.graph_id,
            status=run.status,
            start_time=run.start_time,
            end_time=run.end_time or utcnow(),
            duration=run.duration,
            outputs=run.outputs if run.status == RunStatus.COMPLETED else None,
            error=run.error,
            error_code=run.error_code,
            metrics=self.metrics.aggregate(run),
        )

    async def _configuration_failure(
        self, request: PipelineExecutionRequest, error: PipelineError
    ) -> PipelineExecutionResult:
        """Fail fast without creating a run; zero duration keeps the shape uniform."""
        self.logger.error(f"✗ Cannot execute graph '{request.graph_id}': {error.message}")
        now = utcnow()
        result = PipelineExecutionResult(
            id=str(uuid.uuid4()),
            graph_id=request.graph_id,
            status=RunStatus.FAILED,
            start_time=now,
            end_time=now,
            duration=0,
            error=error.message,
            error_code=error.code,
            metrics=RunMetrics(),
        )
        error_run = RunState(
            id=result.id,
            graph_id=request.graph_id,
            status=RunStatus.FAILED,
            start_time=now,
            end_time=now,
            inputs=dict(request.inputs),
            error=error.message,
            error_code=error.code,
            metadata=dict(request.metadata),
        )
        await self._invoke_callback(request, error_run)
        return result

    async def _persist_snapshot(self, run: RunState) -> None:
        if self.state_store is None:
            return
        try:
            await self.state_store.save_run_snapshot(run.snapshot())
        except Exception as e:
            self.logger.error(f"Failed to persist snapshot for run {run.id}: {e}")

    async def _persist_result(self, result: PipelineExecutionResult) -> None:
        if self.state_store is None:
            return
        try:
            await self.state_store.save_result(result)
        except Exception as e:
            self.logger.error(f"Failed to persist result for run {result.id}: {e}")

    async def _invoke_callback(self, request: PipelineExecutionRequest, run: RunState) -> None:
        if request.callback is None:
            return
        try:
            value = request.callback(run.snapshot())
            if inspect.isawaitable(value):
                await value
        except Exception as e:
            self.logger.error(f"Completion callback for run {run.id} raised: {e}")
