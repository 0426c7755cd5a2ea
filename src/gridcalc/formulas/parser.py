"""Recursive-descent parser for grid formulas.

Grammar::

    expr   := term (ADDOP term)*
    term   := factor (MULOP factor)*
    factor := INTCONST | CELLREF | call | "(" expr ")"
    call   := NAME ["(" [expr ("," expr)*] ")"]

A NAME not followed by ``(`` is a variable reference.  Both binary levels
are left-associative.
"""

from __future__ import annotations

from typing import NoReturn

from gridcalc.formulas.errors import FormulaParseError
from gridcalc.formulas.nodes import BinaryOp, Call, CellRef, Constant, Expr, Variable
from gridcalc.formulas.scanner import Token, TokenType, tokenize


class Parser:
    """One-token-lookahead parser over a whitespace-free token list."""

    def __init__(self, tokens: list[Token]) -> None:
        if not tokens or tokens[-1].kind is not TokenType.EOF:
            raise ValueError("Token list must end with EOF")
        self._tokens = tokens
        self._index = 0

    # ------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------

    def peek(self) -> TokenType:
        return self._tokens[self._index].kind

    def advance(self) -> Token:
        token = self._tokens[self._index]
        if token.kind is not TokenType.EOF:
            self._index += 1
        return token

    def expect(self, kind: TokenType) -> Token:
        if self.peek() is not kind:
            self.fail(kind.name)
        return self.advance()

    def fail(self, expected: str) -> NoReturn:
        found = self._tokens[self._index]
        raise FormulaParseError(
            f"expected {expected} but found {found.describe()}",
            position=found.pos,
        )

    # ------------------------------------------------------------------
    # Grammar
    # ------------------------------------------------------------------

    def parse(self) -> Expr:
        """Parse a complete expression; trailing tokens are an error."""
        expr = self.expr()
        if self.peek() is not TokenType.EOF:
            self.fail("an operator or end of input")
        return expr

    def expr(self) -> Expr:
        node = self.term()
        while self.peek() is TokenType.ADDOP:
            op = self.advance().text
            node = BinaryOp(node, op, self.term())
        return node

    def term(self) -> Expr:
        node = self.factor()
        while self.peek() is TokenType.MULOP:
            op = self.advance().text
            node = BinaryOp(node, op, self.factor())
        return node

    def factor(self) -> Expr:
        kind = self.peek()
        if kind is TokenType.INTCONST:
            return Constant(int(self.advance().text))
        if kind is TokenType.CELLREF:
            return CellRef.from_text(self.advance().text)
        if kind is TokenType.NAME:
            return self.call()
        if kind is TokenType.LPAREN:
            self.advance()
            node = self.expr()
            self.expect(TokenType.RPAREN)
            return node
        self.fail("an INTCONST, CELLREF, NAME or (")

    def call(self) -> Expr:
        name = self.expect(TokenType.NAME).text
        if self.peek() is not TokenType.LPAREN:
            return Variable(name)
        self.advance()
        args: list[Expr] = []
        if self.peek() is not TokenType.RPAREN:
            args.append(self.expr())
            while self.peek() is TokenType.COMMA:
                self.advance()
                args.append(self.expr())
            if self.peek() is not TokenType.RPAREN:
                self.fail(", or )")
        self.expect(TokenType.RPAREN)
        return Call(name, tuple(args))


def parse_expression(text: str) -> Expr:
    """Parse formula text (without the leading ``=``) into a tree.

    Args:
        text: The formula text, e.g. ``"A1 * (2 + B3)"``.

    Returns:
        The expression tree.

    Raises:
        ScanError: If the text contains unrecognized input.
        FormulaParseError: If the text has invalid syntax.
    """
    return Parser(tokenize(text)).parse()
