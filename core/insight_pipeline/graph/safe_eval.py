"""
Safe expression evaluation for edge conditions.

Conditions are parsed with ``ast`` and walked against a whitelist of node
types. There is no ``eval``/``exec``: names resolve only from the supplied
context, attribute access on mappings reads keys (so ``result._validation.isValid``
works on plain dicts), and only a handful of pure builtins may be called.
"""

import ast
import operator
from collections.abc import Mapping
from typing import Any

_BIN_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
}

_UNARY_OPS = {
    ast.Not: operator.not_,
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}

_CMP_OPS = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}

SAFE_FUNCTIONS = {
    "len": len,
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "abs": abs,
    "min": min,
    "max": max,
    "any": any,
    "all": all,
}

MAX_EXPRESSION_LENGTH = 1000


class UnsafeExpressionError(ValueError):
    """The expression uses syntax outside the allowed subset."""


class _Evaluator:
    def __init__(self, context: Mapping[str, Any]):
        self.context = context

    def visit(self, node: ast.AST) -> Any:
        method = getattr(self, f"visit_{type(node).__name__}", None)
        if method is None:
            raise UnsafeExpressionError(f"Unsupported syntax: {type(node).__name__}")
        return method(node)

    def visit_Expression(self, node: ast.Expression) -> Any:
        return self.visit(node.body)

    def visit_Constant(self, node: ast.Constant) -> Any:
        return node.value

    def visit_Name(self, node: ast.Name) -> Any:
        if node.id in self.context:
            return self.context[node.id]
        if node.id in SAFE_FUNCTIONS:
            return SAFE_FUNCTIONS[node.id]
        raise NameError(f"Name '{node.id}' is not defined")

    def visit_Attribute(self, node: ast.Attribute) -> Any:
        value = self.visit(node.value)
        if isinstance(value, Mapping):
            if node.attr not in value:
                raise KeyError(node.attr)
            return value[node.attr]
        if node.attr.startswith("_"):
            raise UnsafeExpressionError(f"Access to private attribute '{node.attr}' is not allowed")
        attr = getattr(value, node.attr)
        if callable(attr):
            raise UnsafeExpressionError(f"Access to callable attribute '{node.attr}' is not allowed")
        return attr

    def visit_Subscript(self, node: ast.Subscript) -> Any:
        value = self.visit(node.value)
        return value[self.visit(node.slice)]

    def visit_BoolOp(self, node: ast.BoolOp) -> Any:
        if isinstance(node.op, ast.And):
            result: Any = True
            for operand in node.values:
                result = self.visit(operand)
                if not result:
                    return result
            return result
        result = False
        for operand in node.values:
            result = self.visit(operand)
            if result:
                return result
        return result

    def visit_UnaryOp(self, node: ast.UnaryOp) -> Any:
        op = _UNARY_OPS.get(type(node.op))
        if op is None:
            raise UnsafeExpressionError(f"Unsupported operator: {type(node.op).__name__}")
        return op(self.visit(node.operand))

    def visit_BinOp(self, node: ast.BinOp) -> Any:
        op = _BIN_OPS.get(type(node.op))
        if op is None:
            raise UnsafeExpressionError(f"Unsupported operator: {type(node.op).__name__}")
        return op(self.visit(node.left), self.visit(node.right))

    def visit_Compare(self, node: ast.Compare) -> bool:
        left = self.visit(node.left)
        for op_node, comparator in zip(node.ops, node.comparators, strict=True):
            op = _CMP_OPS.get(type(op_node))
            if op is None:
                raise UnsafeExpressionError(f"Unsupported comparison: {type(op_node).__name__}")
            right = self.visit(comparator)
            if not op(left, right):
                return False
            left = right
        return True

    def visit_IfExp(self, node: ast.IfExp) -> Any:
        return self.visit(node.body) if self.visit(node.test) else self.visit(node.orelse)

    def visit_Call(self, node: ast.Call) -> Any:
        if not isinstance(node.func, ast.Name) or node.func.id not in SAFE_FUNCTIONS:
            raise UnsafeExpressionError("Only whitelisted functions may be called")
        if node.keywords:
            raise UnsafeExpressionError("Keyword arguments are not allowed")
        func = SAFE_FUNCTIONS[node.func.id]
        return func(*(self.visit(arg) for arg in node.args))

    def visit_List(self, node: ast.List) -> list:
        return [self.visit(elt) for elt in node.elts]

    def visit_Tuple(self, node: ast.Tuple) -> tuple:
        return tuple(self.visit(elt) for elt in node.elts)

    def visit_Set(self, node: ast.Set) -> set:
        return {self.visit(elt) for elt in node.elts}

    def visit_Dict(self, node: ast.Dict) -> dict:
        if any(key is None for key in node.keys):
            raise UnsafeExpressionError("Dict unpacking is not allowed")
        return {self.visit(k): self.visit(v) for k, v in zip(node.keys, node.values, strict=True)}


def parse_expression(expression: str) -> ast.Expression:
    """Parse and structurally check an expression without evaluating it."""
    if len(expression) > MAX_EXPRESSION_LENGTH:
        raise UnsafeExpressionError(
            f"Expression longer than {MAX_EXPRESSION_LENGTH} characters"
        )
    return ast.parse(expression.strip(), mode="eval")


def safe_eval(expression: str, context: Mapping[str, Any] | None = None) -> Any:
    """
    Evaluate an expression against a context using the safe subset.

    Args:
        expression: Python-syntax expression, e.g. ``result.score > 0.8``
        context: Names available to the expression

    Returns:
        The expression value

    Raises:
        UnsafeExpressionError: If the expression uses disallowed syntax
        SyntaxError: If the expression does not parse
        Exception: Any error raised while evaluating (KeyError, TypeError, ...)
    """
    tree = parse_expression(expression)
    return _Evaluator(context or {}).visit(tree)
