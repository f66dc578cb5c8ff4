"""Arithmetic tool backed by a restricted expression evaluator.

Only numeric literals, ``+ - * /``, unary signs and parentheses are
accepted. The expression is parsed with :mod:`ast` and walked node by node;
nothing is ever passed to ``eval``.
"""

import ast
import math
import operator
from typing import Any

from chatgate.errors import ToolExecutionError
from chatgate.tools.registry import tool

MAX_EXPRESSION_LENGTH = 500

_BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
}

_UNARY_OPS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}


def _evaluate(node: ast.AST) -> int | float:
    if isinstance(node, ast.Expression):
        return _evaluate(node.body)

    if isinstance(node, ast.Constant):
        # bool is a subclass of int; reject it explicitly
        if isinstance(node.value, int | float) and not isinstance(node.value, bool):
            return node.value
        raise ValueError(f"unsupported literal {node.value!r}")

    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        left = _evaluate(node.left)
        right = _evaluate(node.right)
        return _BINARY_OPS[type(node.op)](left, right)

    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_evaluate(node.operand))

    raise ValueError(f"unsupported syntax: {type(node).__name__}")


def evaluate_expression(expression: str) -> int | float:
    """Evaluate an arithmetic expression.

    Args:
        expression: Expression using numbers, + - * / and parentheses

    Returns:
        The numeric result; whole-valued floats are returned as int

    Raises:
        ValueError: If the expression is empty, too long or not arithmetic
        ZeroDivisionError: On division by zero
    """
    expression = expression.strip()
    if not expression:
        raise ValueError("empty expression")
    if len(expression) > MAX_EXPRESSION_LENGTH:
        raise ValueError(f"expression longer than {MAX_EXPRESSION_LENGTH} characters")

    try:
        tree = ast.parse(expression, mode="eval")
    except SyntaxError as e:
        raise ValueError(f"invalid syntax at offset {e.offset}") from e

    result = _evaluate(tree)
    if isinstance(result, float) and result.is_integer():
        return int(result)
    return result


@tool(description="Perform mathematical calculations")
async def calculate(expression: str) -> dict[str, Any]:
    """Evaluate an arithmetic expression.

    Args:
        expression: Mathematical expression to evaluate, e.g. "(2 + 3) * 4 / 5"
    """
    try:
        result = evaluate_expression(expression)
    except ZeroDivisionError as e:
        raise ToolExecutionError("Division by zero") from e
    except ValueError as e:
        raise ToolExecutionError(f"Invalid mathematical expression: {e}") from e

    if isinstance(result, float) and not math.isfinite(result):
        raise ToolExecutionError("Result is not a finite number")

    return {"expression": expression, "result": result}
