"""Expression tree for grid formulas.

The node set is closed: ``Expr`` is the union of the five frozen dataclasses
below.  Evaluation lives in :mod:`gridcalc.formulas.evaluator`; this module
only knows how to print a tree back into formula text.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from gridcalc.addr import make_addr, parse_addr
from gridcalc.formulas.errors import FormulaParseError


@dataclass(frozen=True)
class Constant:
    value: int


@dataclass(frozen=True)
class Variable:
    name: str


@dataclass(frozen=True)
class CellRef:
    """Zero-based (row, col) reference into the grid."""

    row: int
    col: int

    @classmethod
    def from_text(cls, text: str) -> CellRef:
        """Decode a cell reference lexeme such as ``b12`` -> row 11, col 1.

        Raises:
            FormulaParseError: For a row number of 0, e.g. ``A0``.
        """
        try:
            row, col = parse_addr(text)
        except ValueError:
            raise FormulaParseError(f"invalid cell reference {text!r}") from None
        return cls(row, col)

    @property
    def addr(self) -> str:
        return make_addr(self.row, self.col)


@dataclass(frozen=True)
class BinaryOp:
    left: Expr
    op: str
    right: Expr


@dataclass(frozen=True)
class Call:
    name: str
    args: tuple[Expr, ...] = ()


Expr = Union[Constant, Variable, CellRef, BinaryOp, Call]

OPERATORS = ("+", "-", "*", "/")


def replicate(expr: Expr) -> str:
    """Serialize *expr* back into formula text (without the leading ``=``).

    Binary operations are always fully parenthesized, so the output parses
    back to a tree that evaluates identically, though the parentheses may
    differ from what the user typed.
    """
    if isinstance(expr, Constant):
        return str(expr.value)
    if isinstance(expr, Variable):
        return expr.name
    if isinstance(expr, CellRef):
        return expr.addr
    if isinstance(expr, BinaryOp):
        return f"({replicate(expr.left)}{expr.op}{replicate(expr.right)})"
    if isinstance(expr, Call):
        return f"{expr.name}({','.join(replicate(a) for a in expr.args)})"
    raise TypeError(f"Unknown expression node: {expr!r}")
