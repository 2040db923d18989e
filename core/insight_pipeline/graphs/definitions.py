"""
Built-in enrichment graphs.

All three share one shape:

    start → retrieve → transform → validate ─valid→ store → analyze
          → validate ─valid→ store → end

with an ``error`` node reachable from every step that can fail, and the
``error`` node itself leading to ``end``. Invalid records are diverted to
``error`` by ERROR edges conditioned on ``_validation``, so a rejected
record still finishes the run with status ``completed``; the outputs carry
the failure summary.
"""

from insight_pipeline.graph.edge import EdgeKind, EdgeSpec, GraphSpec
from insight_pipeline.graph.node import NodeSpec, NodeType

VALID = "result._validation.isValid == true"
# Also true for the engine's failure payload, which has no _validation block
INVALID = "'_validation' not in result or result._validation.isValid != true"


def build_enrichment_graph(
    graph_id: str,
    name: str,
    description: str,
    subject: str,
    handlers: dict[str, str],
    analysis: str,
    tags: list[str],
) -> GraphSpec:
    """
    Build a retrieve → transform → validate → store → analyze graph.

    Args:
        graph_id: Graph ID
        name: Human-readable name
        description: What the pipeline produces
        subject: Suffix for node IDs (``retrieve_<subject>``, ...)
        handlers: Handler keys for ``retrieve``, ``transform``, ``validate``,
            ``store`` and ``analyze``
        analysis: Suffix for the analysis node ID
        tags: Metadata tags
    """
    retrieve = f"retrieve_{subject}"
    transform = f"transform_{subject}"
    validate = f"validate_{subject}"
    store = f"store_{subject}"
    analyze = f"analyze_{analysis}"
    validate_analysis = f"validate_{analysis}"
    store_analysis = f"store_{analysis}"

    nodes = [
        NodeSpec(id="start", type=NodeType.START, handler="start"),
        NodeSpec(id=retrieve, type=NodeType.RETRIEVE, handler=handlers["retrieve"]),
        NodeSpec(id=transform, type=NodeType.TRANSFORM, handler=handlers["transform"]),
        NodeSpec(id=validate, type=NodeType.VALIDATE, handler=handlers["validate"]),
        NodeSpec(id=store, type=NodeType.STORE, handler=handlers["store"]),
        NodeSpec(id=analyze, type=NodeType.ANALYZE, handler=handlers["analyze"]),
        NodeSpec(
            id=validate_analysis, type=NodeType.VALIDATE, handler="validate_analysis_results"
        ),
        NodeSpec(id=store_analysis, type=NodeType.STORE, handler="store_analysis_results"),
        NodeSpec(
            id="error",
            type=NodeType.STRUCTURE,
            handler="error",
            description="Summarises a failure or a rejected record",
        ),
        NodeSpec(id="end", type=NodeType.END, handler="end"),
    ]

    edges = [
        EdgeSpec(source="start", target=retrieve),
        EdgeSpec(source=retrieve, target=transform),
        EdgeSpec(source=transform, target=validate),
        EdgeSpec(source=validate, target=store, condition=VALID),
        EdgeSpec(source=validate, target="error", kind=EdgeKind.ERROR, condition=INVALID),
        EdgeSpec(source=store, target=analyze),
        EdgeSpec(source=analyze, target=validate_analysis),
        EdgeSpec(source=validate_analysis, target=store_analysis, condition=VALID),
        EdgeSpec(
            source=validate_analysis, target="error", kind=EdgeKind.ERROR, condition=INVALID
        ),
        EdgeSpec(source=store_analysis, target="end"),
        EdgeSpec(source="error", target="end"),
    ]
    # Failure recovery for every step that talks to an external service
    for node_id in (retrieve, transform, store, analyze, store_analysis):
        edges.append(EdgeSpec(source=node_id, target="error", kind=EdgeKind.ERROR))

    return GraphSpec(
        id=graph_id,
        name=name,
        description=description,
        version="1.0.0",
        nodes=nodes,
        edges=edges,
        metadata={"tags": tags},
    )


financial_insights_graph = build_enrichment_graph(
    graph_id="financial_insights_graph",
    name="Financial Insights Pipeline",
    description="Retrieves, transforms, analyzes, and stores financial insights",
    subject="insights",
    analysis="recommendations",
    handlers={
        "retrieve": "retrieve_financial_insights",
        "transform": "transform_financial_insights",
        "validate": "validate_financial_insights",
        "store": "store_financial_insights",
        "analyze": "generate_financial_recommendations",
    },
    tags=["financial", "insights", "recommendations"],
)

market_news_graph = build_enrichment_graph(
    graph_id="market_news_graph",
    name="Market News Pipeline",
    description="Retrieves, transforms, analyzes, and stores market news data",
    subject="news",
    analysis="sentiment",
    handlers={
        "retrieve": "retrieve_market_news",
        "transform": "transform_market_news",
        "validate": "validate_market_news",
        "store": "store_market_news",
        "analyze": "analyze_market_news_sentiment",
    },
    tags=["market", "news", "sentiment"],
)

company_analysis_graph = build_enrichment_graph(
    graph_id="company_analysis_graph",
    name="Company Analysis Pipeline",
    description="Retrieves, transforms, analyzes, and stores company data",
    subject="company",
    analysis="investment",
    handlers={
        "retrieve": "retrieve_company",
        "transform": "transform_company_data",
        "validate": "validate_company_data",
        "store": "store_company_data",
        "analyze": "analyze_company_investment",
    },
    tags=["company", "analysis", "investment"],
)

BUILTIN_GRAPHS: list[GraphSpec] = [
    financial_insights_graph,
    market_news_graph,
    company_analysis_graph,
]
