"""Tree-walking evaluator for formula expressions.

All arithmetic is on Python ints.  Division truncates toward zero, the way
integer division works in C-family languages, rather than flooring.
"""

from __future__ import annotations

from gridcalc.formulas.context import EvalContext
from gridcalc.formulas.errors import FormulaError, FormulaFunctionError
from gridcalc.formulas.nodes import BinaryOp, Call, CellRef, Constant, Expr, Variable


def evaluate_formula(
    expr: Expr,
    context: EvalContext,
    visited: tuple[Expr, ...] = (),
) -> int:
    """Evaluate an expression tree against a context.

    Args:
        expr: Tree from any of the parser front ends.
        context: Resolver for variables, functions and cells.
        visited: Formulas already entered on the current evaluation path.
            Every cell reference in *expr* receives this same tuple.

    Returns:
        The computed integer.

    Raises:
        ZeroDivisionError: On division by zero.
        FormulaFunctionError: If a called function is not registered.
        CircularEvaluationError: Raised by the context on a cyclic cell
            reference.
    """
    return _eval(expr, context, visited)


def _eval(node: Expr, ctx: EvalContext, visited: tuple[Expr, ...]) -> int:
    if isinstance(node, Constant):
        return node.value

    if isinstance(node, Variable):
        return ctx.lookup_variable(node.name)

    if isinstance(node, CellRef):
        return ctx.eval_cell(node.row, node.col, visited)

    if isinstance(node, BinaryOp):
        left = _eval(node.left, ctx, visited)
        right = _eval(node.right, ctx, visited)
        return _apply(node.op, left, right)

    if isinstance(node, Call):
        args = [_eval(arg, ctx, visited) for arg in node.args]
        fn = ctx.lookup_function(node.name)
        if fn is None:
            raise FormulaFunctionError(node.name)
        return fn(args)

    raise FormulaError(f"Unknown node type: {type(node).__name__}")


def _apply(op: str, left: int, right: int) -> int:
    if op == "+":
        return left + right
    if op == "-":
        return left - right
    if op == "*":
        return left * right
    if op == "/":
        return int_div(left, right)
    raise FormulaError(f"Unknown operator: {op!r}")


def int_div(left: int, right: int) -> int:
    """Integer division truncating toward zero: ``-7 / 2 == -3``."""
    if right == 0:
        raise ZeroDivisionError("Division by zero in formula")
    q = abs(left) // abs(right)
    return q if (left < 0) == (right < 0) else -q
