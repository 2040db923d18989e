"""Edge condition evaluation."""

import logging
from typing import Any

from insight_pipeline.graph.safe_eval import safe_eval

logger = logging.getLogger(__name__)


class ConditionEvaluator:
    """
    Decides whether an edge condition holds for a node's result.

    The result is exposed to the expression as ``result`` (and ``output``
    as an alias). When the result is a mapping its keys are also available
    directly, so ``score > 80`` and ``result.score > 80`` are equivalent.
    ``true``/``false``/``null`` are accepted alongside the Python spellings.

    Evaluation never raises: any error counts as "edge does not match" and
    is logged.
    """

    def evaluate(self, expression: str | None, result: Any) -> bool:
        if not expression or not expression.strip():
            return True

        context = self._build_context(result)
        try:
            return bool(safe_eval(expression, context))
        except Exception as e:
            logger.warning(
                f"Condition evaluation failed: {expression!r} ({type(e).__name__}: {e})"
            )
            logger.debug(f"Available condition context keys: {sorted(context.keys())}")
            return False

    @staticmethod
    def _build_context(result: Any) -> dict[str, Any]:
        context: dict[str, Any] = {}
        if isinstance(result, dict):
            context.update({k: v for k, v in result.items() if isinstance(k, str)})
        context.update(
            {
                "result": result,
                "output": result,
                "true": True,
                "false": False,
                "null": None,
            }
        )
        return context
