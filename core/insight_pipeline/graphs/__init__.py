"""Built-in pipeline graph definitions."""

from insight_pipeline.graphs.definitions import (
    BUILTIN_GRAPHS,
    build_enrichment_graph,
    company_analysis_graph,
    financial_insights_graph,
    market_news_graph,
)

__all__ = [
    "BUILTIN_GRAPHS",
    "build_enrichment_graph",
    "company_analysis_graph",
    "financial_insights_graph",
    "market_news_graph",
]
