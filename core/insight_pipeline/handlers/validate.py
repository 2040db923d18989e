"""
Validation handlers.

Validation never fails a node. Each validator returns its input with a
``_validation`` block attached:

    {"_validation": {"isValid": bool, "errors": [...], "timestamp": "..."}}

and the graph decides what to do with an invalid record through edge
conditions such as ``result._validation.isValid == true``. A validator only
raises when it receives nothing at all to validate.
"""

import logging
from typing import Any

from insight_pipeline.runtime.context import NodeContext
from insight_pipeline.schemas.run import utcnow

logger = logging.getLogger(__name__)

ANALYSIS_TYPES = ("investment_analysis", "news_sentiment_analysis", "financial_recommendations")


def _require_input(input: Any, what: str) -> dict[str, Any]:
    if not input:
        raise ValueError(f"No data provided for {what} validation")
    if not isinstance(input, dict):
        raise TypeError(f"Expected a JSON object for {what} validation, got {type(input).__name__}")
    return input


def _is_missing(value: Any) -> bool:
    """Falsy counts as missing, except a numeric zero."""
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value == 0:
        return False
    return not value


def _check_metadata(data: dict[str, Any], errors: list[str], expected_type: str | None) -> None:
    metadata = data.get("_metadata")
    if not metadata:
        errors.append("Missing required field: _metadata")
        return
    if not metadata.get("id"):
        errors.append("Missing required field: _metadata.id")
    if not metadata.get("type"):
        errors.append("Missing required field: _metadata.type")
    if expected_type and metadata.get("type") != expected_type:
        errors.append(
            f"Invalid metadata type: {metadata.get('type')}, expected '{expected_type}'"
        )


def _annotate(data: dict[str, Any], errors: list[str], ctx: NodeContext) -> dict[str, Any]:
    is_valid = not errors
    ctx.set_metric("validationErrors", len(errors))
    if not is_valid:
        logger.info(f"Validation found {len(errors)} problem(s): {errors}")
    return {
        **data,
        "_validation": {
            "isValid": is_valid,
            "errors": errors,
            "timestamp": utcnow().isoformat(),
        },
    }


async def validate_company_data(
    input: Any, ctx: NodeContext, config: dict[str, Any]
) -> dict[str, Any]:
    data = _require_input(input, "company")
    errors: list[str] = []

    if not data.get("name"):
        errors.append("Missing required field: name")

    revenue = (data.get("financials") or {}).get("revenue")
    if isinstance(revenue, dict) and _is_missing(revenue.get("value")):
        errors.append("Missing required field: financials.revenue.value")

    _check_metadata(data, errors, "company")
    return _annotate(data, errors, ctx)


async def validate_financial_insights(
    input: Any, ctx: NodeContext, config: dict[str, Any]
) -> dict[str, Any]:
    data = _require_input(input, "financial insights")
    errors: list[str] = []

    for field in ("topic", "summary"):
        if not data.get(field):
            errors.append(f"Missing required field: {field}")

    for field in ("keyTrends", "metrics", "risks", "opportunities"):
        if field in data and data[field] is not None and not isinstance(data[field], list):
            errors.append(f"{field} must be an array")

    _check_metadata(data, errors, "financial_insights")
    return _annotate(data, errors, ctx)


async def validate_market_news(
    input: Any, ctx: NodeContext, config: dict[str, Any]
) -> dict[str, Any]:
    data = _require_input(input, "market news")
    errors: list[str] = []

    if not data.get("topic"):
        errors.append("Missing required field: topic")

    articles = data.get("articles")
    if articles is None:
        errors.append("Missing required field: articles")
    elif not isinstance(articles, list):
        errors.append("articles must be an array")
    else:
        for index, article in enumerate(articles):
            article = article if isinstance(article, dict) else {}
            for field in ("id", "title", "summary"):
                if not article.get(field):
                    errors.append(f"Article at index {index} is missing required field: {field}")

    _check_metadata(data, errors, "market_news")
    return _annotate(data, errors, ctx)


async def validate_analysis_results(
    input: Any, ctx: NodeContext, config: dict[str, Any]
) -> dict[str, Any]:
    """Validate analyzer output; the required fields depend on ``_metadata.type``."""
    data = _require_input(input, "analysis results")
    errors: list[str] = []

    _check_metadata(data, errors, None)
    analysis_type = (data.get("_metadata") or {}).get("type")

    if analysis_type == "investment_analysis":
        if not data.get("companyName"):
            errors.append("Missing required field for investment_analysis: companyName")
        if not (data.get("recommendation") or {}).get("action"):
            errors.append(
                "Missing required field for investment_analysis: recommendation.action"
            )
    elif analysis_type == "news_sentiment_analysis":
        if not (data.get("overallSentiment") or {}).get("sentiment"):
            errors.append(
                "Missing required field for news_sentiment_analysis: overallSentiment.sentiment"
            )
    elif analysis_type == "financial_recommendations":
        recommendations = data.get("recommendations")
        if not isinstance(recommendations, list) or not recommendations:
            errors.append(
                "Missing required field for financial_recommendations: "
                "recommendations (must be non-empty array)"
            )
    elif analysis_type:
        errors.append(f"Unknown analysis type: {analysis_type}")

    return _annotate(data, errors, ctx)
