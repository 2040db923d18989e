"""
Pipeline Service - Entry point for embedding applications.

Owns the registries, the state store and the executor. Handlers and graphs
are registered first; ``initialize()`` then adds the built-ins and freezes
both registries so every run sees the same definitions.
"""

import logging
from typing import Any

from pydantic import BaseModel

from insight_pipeline.config import PipelineConfig
from insight_pipeline.graph.edge import GraphSpec
from insight_pipeline.graph.executor import PipelineExecutionRequest, PipelineExecutor
from insight_pipeline.graph.registry import GraphRegistry, HandlerRegistry, NodeHandler
from insight_pipeline.graphs import BUILTIN_GRAPHS
from insight_pipeline.handlers import register_builtin_handlers
from insight_pipeline.schemas.run import PipelineExecutionResult, RunState
from insight_pipeline.storage.backend import (
    InMemoryKeyValueStore,
    KeyValueStore,
    RedisKeyValueStore,
)
from insight_pipeline.storage.run_store import RunStateStore

logger = logging.getLogger(__name__)


def build_state_store(config: PipelineConfig) -> RunStateStore | None:
    """Redis when a URL is configured, otherwise an in-process store."""
    if not config.use_store:
        return None
    backend: KeyValueStore
    if config.redis_url:
        backend = RedisKeyValueStore(config.redis_url)
    else:
        backend = InMemoryKeyValueStore()
    return RunStateStore(
        backend,
        key_prefix=config.key_prefix,
        state_ttl_seconds=config.state_ttl_seconds,
        result_ttl_seconds=config.result_ttl_seconds,
    )


class PipelineService:
    """
    Registers handlers and graphs, runs pipelines and reads back their state.

    Example:
        service = PipelineService()
        service.register_handler("retrieve_company", retrieve_company)
        ...
        service.initialize()

        result = await service.process_company_data("Acme Corp")
        if not result.success:
            print(result.error_code, result.error)
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        state_store: RunStateStore | None = None,
        handlers: HandlerRegistry | None = None,
        graphs: GraphRegistry | None = None,
    ):
        self.config = config or PipelineConfig()
        self.handlers = handlers or HandlerRegistry()
        self.graphs = graphs or GraphRegistry()
        self.state_store = state_store if state_store is not None else build_state_store(self.config)
        self.executor = PipelineExecutor(
            handlers=self.handlers,
            graphs=self.graphs,
            state_store=self.state_store,
            max_steps=self.config.max_steps,
            default_timeout_seconds=self.config.default_timeout_seconds,
        )
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # === REGISTRATION ===

    def register_handler(
        self,
        key: str,
        handler: NodeHandler,
        output_model: type[BaseModel] | None = None,
    ) -> None:
        self.handlers.register(key, handler, output_model=output_model)

    def register_graph(self, graph: GraphSpec) -> None:
        self.graphs.register(graph)

    def initialize(self) -> None:
        """Register the built-in handlers and graphs, then freeze the registries."""
        if self._initialized:
            return

        register_builtin_handlers(self.handlers)
        for graph in BUILTIN_GRAPHS:
            if graph.id not in self.graphs:
                self.graphs.register(graph)

        missing = sorted(
            {
                node.handler
                for graph in self.graphs.list_graphs()
                for node in graph.nodes
                if node.handler not in self.handlers
            }
        )
        if missing:
            # Runs reaching these nodes fail with handler_not_found
            logger.warning(f"Graphs reference unregistered handlers: {', '.join(missing)}")

        self.handlers.freeze()
        self.graphs.freeze()
        self._initialized = True
        logger.info(
            f"Pipeline service initialized with {len(self.handlers)} handlers "
            f"and {len(self.graphs)} graphs"
        )

    # === EXECUTION ===

    async def execute(self, request: PipelineExecutionRequest) -> PipelineExecutionResult:
        if not self._initialized:
            self.initialize()
        return await self.executor.execute(request)

    async def run_graph(
        self,
        graph_id: str,
        inputs: dict[str, Any],
        **kwargs: Any,
    ) -> PipelineExecutionResult:
        return await self.execute(PipelineExecutionRequest(graph_id=graph_id, inputs=inputs, **kwargs))

    async def process_company_data(self, company_name: str, **kwargs: Any) -> PipelineExecutionResult:
        return await self.run_graph("company_analysis_graph", {"company": company_name}, **kwargs)

    async def process_market_news(
        self, topic: str, limit: int = 5, **kwargs: Any
    ) -> PipelineExecutionResult:
        return await self.run_graph("market_news_graph", {"topic": topic, "limit": limit}, **kwargs)

    async def process_financial_insights(self, topic: str, **kwargs: Any) -> PipelineExecutionResult:
        return await self.run_graph("financial_insights_graph", {"topic": topic}, **kwargs)

    # === READ BACK ===

    async def get_pipeline_state(self, run_id: str) -> RunState | None:
        """Latest persisted snapshot of a run, or None if unknown or expired."""
        if self.state_store is None:
            return None
        return await self.state_store.load_run_snapshot(run_id)

    async def get_pipeline_result(self, run_id: str) -> PipelineExecutionResult | None:
        if self.state_store is None:
            return None
        return await self.state_store.load_result(run_id)

    def list_graphs(self) -> list[GraphSpec]:
        return self.graphs.list_graphs()
