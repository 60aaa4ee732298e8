"""
Restricted arithmetic evaluation for CALC.

Only numbers, ``+ - * /``, unary signs and parentheses are accepted. The
expression is parsed with :mod:`ast` and walked node by node; names, calls,
attribute access and everything else are rejected.
"""

import ast
from typing import Optional


def evaluate_arithmetic(expression: str) -> Optional[float]:
    """Evaluate ``expression`` and return its value, or None when it is not
    a valid arithmetic expression (or divides by zero)."""
    try:
        tree = ast.parse(expression.strip(), mode="eval")
    except SyntaxError:
        return None
    return _eval_node(tree.body)


def _eval_node(node: ast.AST) -> Optional[float]:
    if isinstance(node, ast.Constant):
        if isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
            return float(node.value)
        return None

    if isinstance(node, ast.UnaryOp) and isinstance(node.op, (ast.UAdd, ast.USub)):
        operand = _eval_node(node.operand)
        if operand is None:
            return None
        return operand if isinstance(node.op, ast.UAdd) else -operand

    if isinstance(node, ast.BinOp) and isinstance(node.op, (ast.Add, ast.Sub, ast.Mult, ast.Div)):
        left = _eval_node(node.left)
        right = _eval_node(node.right)
        if left is None or right is None:
            return None
        if isinstance(node.op, ast.Add):
            return left + right
        if isinstance(node.op, ast.Sub):
            return left - right
        if isinstance(node.op, ast.Mult):
            return left * right
        if right == 0:
            return None
        return left / right

    return None
