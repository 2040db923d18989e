"""
Handler and graph registries.

Both registries are filled once during process start-up and then frozen.
Registration takes a lock so start-up code running on several threads
cannot interleave writes; lookups are lock-free reads of a dict that no
longer changes once ``freeze()`` has been called.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from insight_pipeline.errors import (
    GraphNotFoundError,
    HandlerNotFoundError,
    InvalidGraphError,
    RegistryFrozenError,
)
from insight_pipeline.graph.edge import GraphSpec

if TYPE_CHECKING:
    from insight_pipeline.runtime.context import NodeContext

logger = logging.getLogger(__name__)

# handler(input, context, config) -> result (sync or async)
NodeHandler = Callable[[Any, "NodeContext", dict[str, Any]], Any]


@dataclass(frozen=True)
class RegisteredHandler:
    """A handler plus the optional model its output must satisfy."""

    key: str
    func: NodeHandler
    output_model: type[BaseModel] | None = None


class _FreezableRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Disallow further registration."""
        with self._lock:
            self._frozen = True

    def _check_writable(self, what: str) -> None:
        if self._frozen:
            raise RegistryFrozenError(
                f"Cannot register {what}: registry is frozen (register before the first run)"
            )


class HandlerRegistry(_FreezableRegistry):
    """Maps handler keys to units of work."""

    def __init__(self) -> None:
        super().__init__()
        self._handlers: dict[str, RegisteredHandler] = {}

    def register(
        self,
        key: str,
        handler: NodeHandler,
        output_model: type[BaseModel] | None = None,
    ) -> None:
        """
        Register a handler under a key.

        Args:
            key: Key referenced by ``NodeSpec.handler``
            handler: Callable ``(input, context, config)``; may be async
            output_model: Optional pydantic model the handler's result must
                validate against before it is passed to the next node
        """
        if not key:
            raise ValueError("Handler key cannot be empty")
        with self._lock:
            self._check_writable(f"handler '{key}'")
            if key in self._handlers:
                logger.warning(f"Replacing existing handler: {key}")
            self._handlers[key] = RegisteredHandler(key=key, func=handler, output_model=output_model)
        logger.debug(f"Registered handler: {key}")

    def resolve(self, key: str) -> RegisteredHandler:
        try:
            return self._handlers[key]
        except KeyError:
            raise HandlerNotFoundError(key) from None

    def get(self, key: str) -> RegisteredHandler | None:
        return self._handlers.get(key)

    def keys(self) -> list[str]:
        return sorted(self._handlers)

    def __contains__(self, key: object) -> bool:
        return key in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


class GraphRegistry(_FreezableRegistry):
    """Maps graph IDs to validated graph definitions."""

    def __init__(self) -> None:
        super().__init__()
        self._graphs: dict[str, GraphSpec] = {}

    def register(self, graph: GraphSpec) -> None:
        """
        Validate and register a graph.

        Raises:
            InvalidGraphError: If ``graph.validate()`` reports problems
            RegistryFrozenError: If the registry has been frozen
        """
        errors = graph.validate()
        if errors:
            raise InvalidGraphError(graph.id, errors)
        with self._lock:
            self._check_writable(f"graph '{graph.id}'")
            if graph.id in self._graphs:
                logger.warning(f"Replacing existing graph: {graph.id}")
            self._graphs[graph.id] = graph
        logger.info(f"Registered graph: {graph.id} ({graph.name})")

    def resolve(self, graph_id: str) -> GraphSpec:
        try:
            return self._graphs[graph_id]
        except KeyError:
            raise GraphNotFoundError(graph_id) from None

    def get(self, graph_id: str) -> GraphSpec | None:
        return self._graphs.get(graph_id)

    def list_graphs(self) -> list[GraphSpec]:
        return [self._graphs[k] for k in sorted(self._graphs)]

    def __contains__(self, graph_id: object) -> bool:
        return graph_id in self._graphs

    def __len__(self) -> int:
        return len(self._graphs)
