"""A1-style cell address helpers for the fixed 16x16 grid."""

from __future__ import annotations

import re

ROWS = 16
COLS = 16

# One column letter A-P followed by a 1- or 2-digit row number.
_ADDR_RE = re.compile(r"^([A-P])(\d{1,2})$")


def col_letter_to_index(letter: str) -> int:
    """Convert a column letter to its 0-based index.  A=0, ..., P=15."""
    return ord(letter.upper()) - ord("A")


def index_to_col_letter(idx: int) -> str:
    """Convert a 0-based column index to its letter.  0=A, 15=P."""
    return chr(ord("A") + idx)


def parse_addr(addr: str) -> tuple[int, int]:
    """Parse 'A1' -> (row_0based, col_0based).

    Lower-case letters are accepted.  The row is not range-checked against
    the grid, so ``"A20"`` parses to ``(19, 0)``.

    Raises ValueError on bad address.
    """
    m = _ADDR_RE.match(addr.strip().upper())
    if not m:
        raise ValueError(f"Invalid cell address: {addr!r}")
    col = col_letter_to_index(m.group(1))
    row = int(m.group(2)) - 1
    if row < 0:
        raise ValueError(f"Invalid cell address: {addr!r}")
    return row, col


def make_addr(row: int, col: int) -> str:
    """Build cell address from 0-based row/col."""
    return f"{index_to_col_letter(col)}{row + 1}"


def in_grid(row: int, col: int) -> bool:
    """Return True if (row, col) lies inside the grid."""
    return 0 <= row < ROWS and 0 <= col < COLS
