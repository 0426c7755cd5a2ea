"""Lark-based front end for grid formulas.

A declarative LALR(1) rendition of the recursive-descent grammar.  It
produces the same :mod:`gridcalc.formulas.nodes` trees, which makes it a
handy cross-check for the two hand-written parsers.

Operator precedence (lowest to highest):
  1. Addition/subtraction: + -   (left-associative)
  2. Multiplication/division: * /   (left-associative)
  3. Atoms: integer, cell reference, call, variable, parenthesized expr
"""

from __future__ import annotations

from lark import Lark, Transformer, v_args
from lark.exceptions import LarkError

from gridcalc.formulas.errors import FormulaParseError
from gridcalc.formulas.nodes import BinaryOp, Call, CellRef, Constant, Expr, Variable

GRAMMAR = r"""
?start: expr

?expr: term
    | expr ADDOP term       -> binop

?term: factor
    | term MULOP factor     -> binop

?factor: INTCONST           -> const
    | CELLREF               -> cell
    | NAME "(" [args] ")"   -> call
    | NAME                  -> var
    | "(" expr ")"

args: expr ("," expr)*

ADDOP: "+" | "-"
MULOP: "*" | "/"

// Cell references outrank names, so A1 is never a variable.
CELLREF.3: /[A-Pa-p][0-9]{1,2}/
INTCONST.2: /[0-9]+/
NAME.1: /(?!\d)\w+/

%import common.WS
%ignore WS
"""


@v_args(inline=True)
class _ToNodes(Transformer):
    """Turn lark parse-tree rules into expression nodes."""

    def const(self, token) -> Constant:
        return Constant(int(token))

    def cell(self, token) -> CellRef:
        return CellRef.from_text(str(token))

    def var(self, token) -> Variable:
        return Variable(str(token))

    def binop(self, left: Expr, op, right: Expr) -> BinaryOp:
        return BinaryOp(left, str(op), right)

    def call(self, name, args) -> Call:
        return Call(str(name), tuple(args) if args is not None else ())

    def args(self, *exprs: Expr) -> list[Expr]:
        return list(exprs)


_parser = Lark(GRAMMAR, parser="lalr", start="start", transformer=_ToNodes())


def parse_grammar(text: str) -> Expr:
    """Parse formula text (without the leading ``=``) with the lark grammar.

    Args:
        text: The formula text, e.g. ``"SUM(A1, B2) / 2"``.

    Returns:
        The expression tree.

    Raises:
        FormulaParseError: If the formula has invalid syntax.
    """
    try:
        return _parser.parse(text)
    except LarkError as exc:
        pos = getattr(exc, "pos_in_stream", None)
        if pos is None:
            pos = getattr(exc, "column", None)
        lines = str(exc).strip().splitlines()
        raise FormulaParseError(lines[0] if lines else "invalid syntax", position=pos) from exc
