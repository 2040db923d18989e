"""
Built-in handlers.

Provider-backed steps (retrieval, transformation, analysis, graph-store
writes) are supplied by the embedding application and registered under the
keys the built-in graphs reference; see ``insight_pipeline.graphs``.
"""

from insight_pipeline.graph.registry import HandlerRegistry, NodeHandler
from insight_pipeline.handlers.utility import (
    end_node,
    error_node,
    logger_node,
    merge_node,
    router_node,
    start_node,
)
from insight_pipeline.handlers.validate import (
    validate_analysis_results,
    validate_company_data,
    validate_financial_insights,
    validate_market_news,
)

BUILTIN_HANDLERS: dict[str, NodeHandler] = {
    # Utility
    "start": start_node,
    "end": end_node,
    "error": error_node,
    "router": router_node,
    "logger": logger_node,
    "merge": merge_node,
    # Validation
    "validate_company_data": validate_company_data,
    "validate_financial_insights": validate_financial_insights,
    "validate_market_news": validate_market_news,
    "validate_analysis_results": validate_analysis_results,
}


def register_builtin_handlers(registry: HandlerRegistry) -> None:
    """Register every built-in handler that is not already registered."""
    for key, handler in BUILTIN_HANDLERS.items():
        if key not in registry:
            registry.register(key, handler)


__all__ = [
    "BUILTIN_HANDLERS",
    "register_builtin_handlers",
    "start_node",
    "end_node",
    "error_node",
    "router_node",
    "logger_node",
    "merge_node",
    "validate_company_data",
    "validate_financial_insights",
    "validate_market_news",
    "validate_analysis_results",
]
