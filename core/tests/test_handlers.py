"""Tests for the built-in utility and validation handlers."""

import logging

import pytest

from insight_pipeline.graph import HandlerRegistry, NodeSpec, NodeType
from insight_pipeline.handlers import (
    BUILTIN_HANDLERS,
    end_node,
    error_node,
    logger_node,
    merge_node,
    register_builtin_handlers,
    router_node,
    start_node,
    validate_analysis_results,
    validate_company_data,
    validate_financial_insights,
    validate_market_news,
)
from insight_pipeline.runtime import NodeContext
from insight_pipeline.schemas import NodeState


def make_ctx(
    node_id: str = "node",
    node_type: NodeType = NodeType.VALIDATE,
    state: NodeState | None = None,
) -> NodeContext:
    return NodeContext(
        run_id="run-1",
        graph_id="test_graph",
        node=NodeSpec(id=node_id, type=node_type, handler=node_id),
        node_state=state or NodeState(id=node_id),
        inputs={"topic": "chips"},
    )


def company(**overrides):
    data = {
        "name": "Acme Corp",
        "financials": {"revenue": {"value": 100, "currency": "USD"}},
        "_metadata": {"id": "c1", "type": "company"},
    }
    data.update(overrides)
    return data


# === UTILITY HANDLERS ===


class TestUtilityHandlers:
    @pytest.mark.asyncio
    async def test_start_adds_execution_context(self):
        result = await start_node({"topic": "chips"}, make_ctx("start", NodeType.START), {})

        assert result["topic"] == "chips"
        assert result["executionContext"]["pipelineId"] == "run-1"
        assert result["executionContext"]["input"] == {"topic": "chips"}
        assert "startTime" in result["executionContext"]

    @pytest.mark.asyncio
    async def test_end_summarises_run(self):
        payload = {"executionContext": {"pipelineId": "run-1", "startTime": "t0"}, "x": 1}

        result = await end_node(payload, make_ctx("end", NodeType.END), {})

        assert result["status"] == "completed"
        assert result["pipelineId"] == "run-1"
        assert result["startTime"] == "t0"
        assert result["result"] == payload
        assert "endTime" in result

    @pytest.mark.asyncio
    async def test_error_summarises_failure_payload(self):
        payload = {
            "error": "Handler not found: retrieve_company",
            "error_code": "handler_not_found",
            "node_id": "retrieve_company",
            "input": {"executionContext": {"pipelineId": "run-1", "startTime": "t0"}},
        }

        result = await error_node(payload, make_ctx("error", NodeType.STRUCTURE), {})

        assert result["status"] == "failed"
        assert result["startTime"] == "t0"
        assert result["error"] == {
            "message": "Handler not found: retrieve_company",
            "nodeId": "retrieve_company",
            "code": "handler_not_found",
        }

    @pytest.mark.asyncio
    async def test_error_summarises_rejected_record(self):
        payload = {"_validation": {"isValid": False, "errors": ["Missing required field: name"]}}

        result = await error_node(payload, make_ctx("error", NodeType.STRUCTURE), {})

        assert result["status"] == "failed"
        assert result["error"]["message"] == "Missing required field: name"
        assert result["error"]["code"] == "validation_failed"
        assert result["pipelineId"] == "run-1"

    @pytest.mark.asyncio
    async def test_router_uses_configured_field(self):
        result = await router_node(
            {"kind": "news", "_metadata": {"type": "market_news"}},
            make_ctx("router", NodeType.STRUCTURE),
            {"typeField": "kind"},
        )

        assert result["_routing"]["type"] == "news"

    @pytest.mark.asyncio
    async def test_router_falls_back_to_metadata_type(self):
        ctx = make_ctx("router", NodeType.STRUCTURE)

        tagged = await router_node({"_metadata": {"type": "company"}}, ctx, {})
        unknown = await router_node({"x": 1}, ctx, {})

        assert tagged["_routing"]["type"] == "company"
        assert unknown["_routing"]["type"] == "unknown"

    @pytest.mark.asyncio
    async def test_router_requires_input(self):
        with pytest.raises(ValueError):
            await router_node(None, make_ctx("router", NodeType.STRUCTURE), {})

    @pytest.mark.asyncio
    async def test_logger_passes_through(self, caplog):
        payload = {"_metadata": {"type": "company"}, "secret": "s3cr3t"}

        with caplog.at_level(logging.DEBUG, logger="insight_pipeline.handlers.utility"):
            result = await logger_node(
                payload, make_ctx("log", NodeType.STRUCTURE), {"level": "debug", "prefix": "Trace"}
            )

        assert result is payload
        assert caplog.records[0].levelno == logging.DEBUG
        message = caplog.records[0].getMessage()
        assert message.startswith("Trace:")
        assert "s3cr3t" not in message

    @pytest.mark.asyncio
    async def test_logger_full_data(self, caplog):
        with caplog.at_level(logging.INFO, logger="insight_pipeline.handlers.utility"):
            await logger_node(
                {"secret": "s3cr3t"}, make_ctx("log", NodeType.STRUCTURE), {"logFullData": True}
            )

        assert "s3cr3t" in caplog.records[0].getMessage()

    @pytest.mark.asyncio
    async def test_merge_list_input(self):
        result = await merge_node(
            [{"_metadata": {"id": "a"}}, {"x": 1}], make_ctx("merge", NodeType.STRUCTURE), {}
        )

        assert result["merged"] is True
        assert len(result["inputs"]) == 2
        assert result["metadata"] == [{"id": "a"}, {"unknown": True}]

    @pytest.mark.asyncio
    async def test_merge_passes_non_list_through(self):
        payload = {"x": 1}

        assert await merge_node(payload, make_ctx("merge", NodeType.STRUCTURE), {}) is payload


# === VALIDATION HANDLERS ===


class TestValidateCompanyData:
    @pytest.mark.asyncio
    async def test_valid_company(self):
        state = NodeState(id="validate_company")
        result = await validate_company_data(company(), make_ctx(state=state), {})

        assert result["name"] == "Acme Corp"
        assert result["_validation"]["isValid"] is True
        assert result["_validation"]["errors"] == []
        assert state.metrics.extra["validationErrors"] == 0

    @pytest.mark.asyncio
    async def test_missing_fields(self):
        data = company(name="", financials={"revenue": {"value": None}}, _metadata={"id": "c1"})

        result = await validate_company_data(data, make_ctx(), {})

        assert result["_validation"]["isValid"] is False
        errors = result["_validation"]["errors"]
        assert "Missing required field: name" in errors
        assert "Missing required field: financials.revenue.value" in errors
        assert "Missing required field: _metadata.type" in errors

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", ["", False, None])
    async def test_falsy_revenue_counts_as_missing(self, value):
        data = company(financials={"revenue": {"value": value}})

        result = await validate_company_data(data, make_ctx(), {})

        assert result["_validation"]["isValid"] is False
        assert result["_validation"]["errors"] == [
            "Missing required field: financials.revenue.value"
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [0, 0.0])
    async def test_zero_revenue_is_present(self, value):
        data = company(financials={"revenue": {"value": value}})

        result = await validate_company_data(data, make_ctx(), {})

        assert result["_validation"]["isValid"] is True

    @pytest.mark.asyncio
    async def test_wrong_metadata_type(self):
        data = company(_metadata={"id": "c1", "type": "market_news"})

        result = await validate_company_data(data, make_ctx(), {})

        assert result["_validation"]["errors"] == [
            "Invalid metadata type: market_news, expected 'company'"
        ]

    @pytest.mark.asyncio
    async def test_no_input_raises(self):
        with pytest.raises(ValueError):
            await validate_company_data(None, make_ctx(), {})


class TestValidateFinancialInsights:
    @pytest.mark.asyncio
    async def test_valid_insights(self):
        data = {
            "topic": "rates",
            "summary": "Rates are rising",
            "keyTrends": ["a"],
            "risks": [],
            "_metadata": {"id": "i1", "type": "financial_insights"},
        }

        result = await validate_financial_insights(data, make_ctx(), {})

        assert result["_validation"]["isValid"] is True

    @pytest.mark.asyncio
    async def test_non_array_fields(self):
        data = {
            "topic": "rates",
            "summary": "s",
            "keyTrends": "rising",
            "_metadata": {"id": "i1", "type": "financial_insights"},
        }

        result = await validate_financial_insights(data, make_ctx(), {})

        assert result["_validation"]["errors"] == ["keyTrends must be an array"]


class TestValidateMarketNews:
    @pytest.mark.asyncio
    async def test_article_fields_checked(self):
        data = {
            "topic": "chips",
            "articles": [
                {"id": "1", "title": "t", "summary": "s"},
                {"id": "2", "title": ""},
            ],
            "_metadata": {"id": "n1", "type": "market_news"},
        }

        result = await validate_market_news(data, make_ctx(), {})

        assert result["_validation"]["errors"] == [
            "Article at index 1 is missing required field: title",
            "Article at index 1 is missing required field: summary",
        ]

    @pytest.mark.asyncio
    async def test_missing_articles(self):
        data = {"topic": "chips", "_metadata": {"id": "n1", "type": "market_news"}}

        result = await validate_market_news(data, make_ctx(), {})

        assert result["_validation"]["errors"] == ["Missing required field: articles"]


class TestValidateAnalysisResults:
    @pytest.mark.asyncio
    async def test_investment_analysis(self):
        data = {
            "companyName": "Acme",
            "recommendation": {"action": "buy"},
            "_metadata": {"id": "a1", "type": "investment_analysis"},
        }

        result = await validate_analysis_results(data, make_ctx(), {})

        assert result["_validation"]["isValid"] is True

    @pytest.mark.asyncio
    async def test_sentiment_missing(self):
        data = {"_metadata": {"id": "a1", "type": "news_sentiment_analysis"}}

        result = await validate_analysis_results(data, make_ctx(), {})

        assert result["_validation"]["errors"] == [
            "Missing required field for news_sentiment_analysis: overallSentiment.sentiment"
        ]

    @pytest.mark.asyncio
    async def test_recommendations_must_be_non_empty(self):
        data = {"recommendations": [], "_metadata": {"id": "a1", "type": "financial_recommendations"}}

        result = await validate_analysis_results(data, make_ctx(), {})

        assert result["_validation"]["isValid"] is False

    @pytest.mark.asyncio
    async def test_unknown_type(self):
        data = {"_metadata": {"id": "a1", "type": "horoscope"}}

        result = await validate_analysis_results(data, make_ctx(), {})

        assert result["_validation"]["errors"] == ["Unknown analysis type: horoscope"]


# === REGISTRATION ===


def test_register_builtin_handlers_keeps_existing():
    async def custom_end(input, ctx, config):
        return input

    registry = HandlerRegistry()
    registry.register("end", custom_end)

    register_builtin_handlers(registry)

    assert registry.resolve("end").func is custom_end
    assert set(registry.keys()) == set(BUILTIN_HANDLERS)
