"""Tests for edge condition evaluation and the safe expression subset."""

import logging

import pytest

from insight_pipeline.graph.conditions import ConditionEvaluator
from insight_pipeline.graph.safe_eval import (
    MAX_EXPRESSION_LENGTH,
    UnsafeExpressionError,
    parse_expression,
    safe_eval,
)


@pytest.fixture
def evaluator():
    return ConditionEvaluator()


class TestConditionEvaluator:
    def test_absent_condition_is_true(self, evaluator):
        assert evaluator.evaluate(None, {"x": 1}) is True
        assert evaluator.evaluate("", None) is True
        assert evaluator.evaluate("   ", None) is True

    def test_result_keys_available_directly(self, evaluator):
        assert evaluator.evaluate("score > 80", {"score": 95}) is True
        assert evaluator.evaluate("score > 80", {"score": 10}) is False

    def test_result_and_output_aliases(self, evaluator):
        assert evaluator.evaluate("result.score > 80", {"score": 95}) is True
        assert evaluator.evaluate("output['score'] == 95", {"score": 95}) is True

    def test_validation_block_access(self, evaluator):
        valid = {"_validation": {"isValid": True, "errors": []}}
        invalid = {"_validation": {"isValid": False, "errors": ["Missing required field: name"]}}

        assert evaluator.evaluate("result._validation.isValid == true", valid) is True
        assert evaluator.evaluate("result._validation.isValid == true", invalid) is False
        assert evaluator.evaluate("len(result._validation.errors) > 0", invalid) is True

    def test_json_literals(self, evaluator):
        assert evaluator.evaluate("flag == false", {"flag": False}) is True
        assert evaluator.evaluate("value == null", {"value": None}) is True

    def test_non_dict_results(self, evaluator):
        assert evaluator.evaluate("result == 'done'", "done") is True
        assert evaluator.evaluate("len(result) == 3", [1, 2, 3]) is True
        assert evaluator.evaluate("result is None", None) is True

    def test_membership(self, evaluator):
        assert evaluator.evaluate("'_validation' not in result", {"error": "x"}) is True
        assert evaluator.evaluate("status in ['ok', 'partial']", {"status": "ok"}) is True

    def test_errors_evaluate_false_and_are_logged(self, evaluator, caplog):
        with caplog.at_level(logging.WARNING, logger="insight_pipeline.graph.conditions"):
            assert evaluator.evaluate("missing > 1", {"x": 1}) is False
            assert evaluator.evaluate("result.nested.key", {"nested": {}}) is False
            assert evaluator.evaluate("x >", {"x": 1}) is False
            assert evaluator.evaluate("score > 'a'", {"score": 1}) is False

        assert len(caplog.records) == 4
        assert "Condition evaluation failed" in caplog.records[0].getMessage()

    def test_unsafe_expressions_never_run(self, evaluator):
        assert evaluator.evaluate("__import__('os').system('true')", {}) is False
        assert evaluator.evaluate("result.__class__", {}) is False
        assert evaluator.evaluate("(lambda: 1)()", {}) is False


class TestSafeEval:
    def test_arithmetic_and_comparison_chains(self):
        assert safe_eval("1 + 2 * 3") == 7
        assert safe_eval("0 < x <= 10", {"x": 10}) is True
        assert safe_eval("0 < x <= 10", {"x": 11}) is False

    def test_boolean_short_circuit(self):
        # The right-hand side would raise if evaluated
        assert safe_eval("False and missing", {}) is False
        assert safe_eval("True or missing", {}) is True

    def test_conditional_expression(self):
        assert safe_eval("'high' if x > 5 else 'low'", {"x": 9}) == "high"

    def test_whitelisted_functions(self):
        assert safe_eval("max(a, b)", {"a": 1, "b": 4}) == 4
        assert safe_eval("any([False, x])", {"x": True}) is True

    def test_other_calls_rejected(self):
        with pytest.raises(UnsafeExpressionError):
            safe_eval("open('/etc/passwd')")
        with pytest.raises(UnsafeExpressionError):
            safe_eval("len(x, key=1)", {"x": []})

    def test_method_calls_rejected(self):
        with pytest.raises(UnsafeExpressionError):
            safe_eval("name.upper()", {"name": "acme"})

    def test_private_attributes_rejected_on_objects(self):
        class Obj:
            _secret = 1

        with pytest.raises(UnsafeExpressionError):
            safe_eval("obj._secret", {"obj": Obj()})

    def test_unsupported_syntax_rejected(self):
        with pytest.raises(UnsafeExpressionError):
            safe_eval("[i for i in range(3)]")

    def test_unknown_name(self):
        with pytest.raises(NameError):
            safe_eval("nope")

    def test_length_limit(self):
        with pytest.raises(UnsafeExpressionError):
            parse_expression("1" * (MAX_EXPRESSION_LENGTH + 1))

    def test_parse_rejects_invalid_syntax(self):
        with pytest.raises(SyntaxError):
            parse_expression("a ==")
