"""Lexical scanner for grid formulas.

Token kinds are tried in declaration order at the current input position;
the first kind whose pattern yields a non-empty match wins.  This is what
makes ``A1`` a cell reference rather than a name, and ``12`` an integer
rather than a name.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import NamedTuple

from gridcalc.formulas.errors import ScanError


class TokenType(Enum):
    MULOP = r"[*/]"
    ADDOP = r"[+-]"
    COMMA = r","
    LPAREN = r"\("
    RPAREN = r"\)"
    RANGE = r":"  # reserved, never parsed
    CELLREF = r"[A-Pa-p]\d{1,2}"
    INTCONST = r"\d+"
    NAME = r"\w+"
    WHITESPACE = r"\s"
    CATCHALL = r".+"
    EOF = r""

    def __init__(self, pattern: str) -> None:
        self.regex = re.compile(pattern)


class Token(NamedTuple):
    """A classified slice of formula text."""

    kind: TokenType
    text: str
    pos: int = 0

    def describe(self) -> str:
        if self.kind is TokenType.EOF:
            return "end of input"
        return f"{self.kind.name} {self.text!r}"


# EOF is appended explicitly, never matched.
_MATCH_ORDER = [t for t in TokenType if t is not TokenType.EOF]


def scan(text: str) -> list[Token]:
    """Convert formula text into tokens, whitespace included.

    Args:
        text: Formula text without the leading ``=``.

    Returns:
        Tokens in input order, terminated by a single EOF token.

    Raises:
        ScanError: If no token pattern matches the remaining input.
    """
    tokens: list[Token] = []
    pos = 0
    while pos < len(text):
        for kind in _MATCH_ORDER:
            m = kind.regex.match(text, pos)
            if m and m.end() > pos:
                tokens.append(Token(kind, m.group(), pos))
                pos = m.end()
                break
        else:
            raise ScanError(pos, text[pos:])
    tokens.append(Token(TokenType.EOF, "", pos))
    return tokens


def tokenize(text: str) -> list[Token]:
    """Scan *text* and drop whitespace, ready for either parser."""
    return [t for t in scan(text) if t.kind is not TokenType.WHITESPACE]
