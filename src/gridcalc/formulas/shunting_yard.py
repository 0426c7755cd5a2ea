"""Operator-precedence (shunting-yard) front end for grid formulas.

Parsing happens in two stages over the same tokens the recursive-descent
parser consumes:

1. :func:`to_postfix` reorders the infix tokens into postfix order using an
   operator stack.  A name is a function operator when the context knows a
   function by that name, otherwise it is a variable operand.  Each function
   entry in the postfix stream records how many arguments it was given.
2. :func:`from_postfix` rebuilds the expression tree with a value stack.

The result is the same tree :func:`gridcalc.formulas.parser.parse_expression`
produces for the same text.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple

from gridcalc.formulas.context import EvalContext
from gridcalc.formulas.errors import FormulaParseError
from gridcalc.formulas.nodes import BinaryOp, Call, CellRef, Constant, Expr, Variable
from gridcalc.formulas.scanner import Token, TokenType, tokenize


class PostfixItem(NamedTuple):
    """One postfix entry.  ``arity`` is set only for function calls."""

    token: Token
    arity: int | None = None

    def __str__(self) -> str:
        if self.arity is None:
            return self.token.text
        return f"{self.token.text}/{self.arity}"


@dataclass
class _Group:
    """Bookkeeping for one open parenthesis."""

    is_call: bool
    commas: int = 0
    arg_started: bool = False


_PRECEDENCE = {TokenType.ADDOP: 1, TokenType.MULOP: 2}


def _error(message: str, token: Token) -> FormulaParseError:
    return FormulaParseError(message, position=token.pos)


# ---------------------------------------------------------------------------
# Stage 1: infix -> postfix
# ---------------------------------------------------------------------------


def to_postfix(tokens: list[Token], context: EvalContext) -> list[PostfixItem]:
    """Convert whitespace-free infix tokens to postfix order.

    Args:
        tokens: Output of :func:`gridcalc.formulas.scanner.tokenize`.
        context: Consulted to tell function names from variables.

    Returns:
        Postfix entries, operands before their operators.

    Raises:
        FormulaParseError: On unbalanced parentheses, misplaced commas,
            a function name without an argument list, or a token that has
            no place in an expression.
    """
    output: list[PostfixItem] = []
    operators: list[Token] = []
    groups: list[_Group] = []

    def mark_operand() -> None:
        if groups:
            groups[-1].arg_started = True

    for i, tok in enumerate(tokens):
        kind = tok.kind

        if kind in (TokenType.INTCONST, TokenType.CELLREF):
            mark_operand()
            output.append(PostfixItem(tok))

        elif kind is TokenType.NAME:
            mark_operand()
            if context.lookup_function(tok.text) is not None:
                nxt = tokens[i + 1] if i + 1 < len(tokens) else None
                if nxt is None or nxt.kind is not TokenType.LPAREN:
                    raise _error(f"expected ( after function {tok.text}", tok)
                operators.append(tok)
            else:
                output.append(PostfixItem(tok))

        elif kind in _PRECEDENCE:
            # Pop operators of equal or higher precedence: left associativity.
            while (
                operators
                and operators[-1].kind in _PRECEDENCE
                and _PRECEDENCE[operators[-1].kind] >= _PRECEDENCE[kind]
            ):
                output.append(PostfixItem(operators.pop()))
            operators.append(tok)

        elif kind is TokenType.LPAREN:
            mark_operand()
            is_call = bool(operators) and operators[-1].kind is TokenType.NAME and (
                i > 0 and tokens[i - 1] is operators[-1]
            )
            groups.append(_Group(is_call=is_call))
            operators.append(tok)

        elif kind is TokenType.COMMA:
            if not groups or not groups[-1].is_call:
                raise _error("unexpected , outside a function argument list", tok)
            if not groups[-1].arg_started:
                raise _error("expected an argument before ,", tok)
            while operators[-1].kind is not TokenType.LPAREN:
                output.append(PostfixItem(operators.pop()))
            groups[-1].commas += 1
            groups[-1].arg_started = False

        elif kind is TokenType.RPAREN:
            if not groups:
                raise _error("unmatched )", tok)
            while operators[-1].kind is not TokenType.LPAREN:
                output.append(PostfixItem(operators.pop()))
            operators.pop()
            group = groups.pop()
            if group.commas and not group.arg_started:
                raise _error("expected an argument before )", tok)
            if group.is_call:
                name = operators.pop()
                arity = group.commas + 1 if group.arg_started else 0
                output.append(PostfixItem(name, arity))
            elif not group.arg_started:
                raise _error("empty parentheses", tok)

        elif kind is TokenType.EOF:
            while operators:
                top = operators.pop()
                if top.kind is TokenType.LPAREN:
                    raise _error("unmatched (", top)
                output.append(PostfixItem(top))
            return output

        else:
            raise _error(f"unexpected {tok.describe()}", tok)

    raise FormulaParseError("token stream is missing EOF")


# ---------------------------------------------------------------------------
# Stage 2: postfix -> tree
# ---------------------------------------------------------------------------


def from_postfix(items: list[PostfixItem]) -> Expr:
    """Rebuild an expression tree from postfix entries.

    Raises:
        FormulaParseError: If an operator or call lacks operands, or more
            than one value is left over.
    """
    stack: list[Expr] = []
    for item in items:
        tok = item.token
        kind = tok.kind
        if kind is TokenType.INTCONST:
            stack.append(Constant(int(tok.text)))
        elif kind is TokenType.CELLREF:
            stack.append(CellRef.from_text(tok.text))
        elif kind is TokenType.NAME and item.arity is None:
            stack.append(Variable(tok.text))
        elif kind is TokenType.NAME:
            if len(stack) < item.arity:
                raise _error(f"missing arguments for {tok.text}", tok)
            args = stack[len(stack) - item.arity:]
            del stack[len(stack) - item.arity:]
            stack.append(Call(tok.text, tuple(args)))
        elif kind in _PRECEDENCE:
            if len(stack) < 2:
                raise _error(f"missing operand for {tok.text}", tok)
            right = stack.pop()
            left = stack.pop()
            stack.append(BinaryOp(left, tok.text, right))
        else:
            raise _error(f"unexpected {tok.describe()} in postfix stream", tok)

    if len(stack) != 1:
        position = items[-1].token.pos if items else 0
        raise FormulaParseError(
            f"expected a single expression but found {len(stack)} values",
            position=position,
        )
    return stack[0]


def parse_shunting_yard(text: str, context: EvalContext) -> Expr:
    """Parse formula text (without ``=``) via the shunting-yard algorithm.

    Args:
        text: The formula text.
        context: Supplies the function names known at parse time.

    Returns:
        The expression tree.
    """
    return from_postfix(to_postfix(tokenize(text), context))
