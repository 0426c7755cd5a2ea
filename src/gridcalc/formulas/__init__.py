"""Integer formula scanning, parsing and evaluation.

Public API::

    from gridcalc.formulas import parse_expression, evaluate_formula, replicate
"""

from gridcalc.formulas.context import EvalContext, VariableContext
from gridcalc.formulas.errors import (
    CircularEvaluationError,
    FormulaError,
    FormulaFunctionError,
    FormulaParseError,
    FormulaRefError,
    ScanError,
    SheetFormatError,
)
from gridcalc.formulas.evaluator import evaluate_formula, int_div
from gridcalc.formulas.functions import lookup_function, register_function, registered_names
from gridcalc.formulas.grammar import parse_grammar
from gridcalc.formulas.nodes import (
    BinaryOp,
    Call,
    CellRef,
    Constant,
    Expr,
    Variable,
    replicate,
)
from gridcalc.formulas.parser import parse_expression
from gridcalc.formulas.scanner import Token, TokenType, scan, tokenize
from gridcalc.formulas.shunting_yard import from_postfix, parse_shunting_yard, to_postfix

PARSERS = ("descent", "shunting_yard", "grammar")


def parse_with(parser: str, text: str, context: EvalContext) -> Expr:
    """Parse *text* with the named front end.

    Args:
        parser: One of ``PARSERS``.
        text: Formula text without the leading ``=``.
        context: Needed by the shunting-yard front end only.

    Raises:
        ValueError: If *parser* is not a known front end.
    """
    if parser == "descent":
        return parse_expression(text)
    if parser == "shunting_yard":
        return parse_shunting_yard(text, context)
    if parser == "grammar":
        return parse_grammar(text)
    raise ValueError(f"Unknown parser {parser!r}; expected one of {PARSERS}")


__all__ = [
    "PARSERS",
    "BinaryOp",
    "Call",
    "CellRef",
    "CircularEvaluationError",
    "Constant",
    "EvalContext",
    "Expr",
    "FormulaError",
    "FormulaFunctionError",
    "FormulaParseError",
    "FormulaRefError",
    "ScanError",
    "SheetFormatError",
    "Token",
    "TokenType",
    "Variable",
    "VariableContext",
    "evaluate_formula",
    "from_postfix",
    "int_div",
    "lookup_function",
    "parse_expression",
    "parse_grammar",
    "parse_shunting_yard",
    "parse_with",
    "register_function",
    "registered_names",
    "replicate",
    "scan",
    "to_postfix",
    "tokenize",
]
