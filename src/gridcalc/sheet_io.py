"""Load and save grids as ``;``-separated sheet files.

One line per grid row, cells separated by ``;``.  Each cell is empty, a
bare integer, or ``=`` followed by formula text as :func:`replicate`
prints it::

    5;=(A1*2);
    =MAX(A1,B1);;7
"""

from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Any

from gridcalc.addr import COLS, ROWS, make_addr
from gridcalc.formulas.errors import FormulaError, SheetFormatError
from gridcalc.grid import Grid, parse_cell
from gridcalc.logging.events import EventType, emit_error, emit_info, error_code_for

DELIMITER = ";"


def read_sheet(text: str, **grid_kwargs: Any) -> Grid:
    """Build a grid from sheet file content.

    Rows and columns beyond the 16x16 grid are ignored.

    Args:
        text: The sheet file content.
        **grid_kwargs: Passed to :class:`Grid` (variables, parser, ...).

    Raises:
        SheetFormatError: If a cell cannot be parsed.
    """
    grid = Grid(**grid_kwargs)
    reader = csv.reader(io.StringIO(text), delimiter=DELIMITER, quoting=csv.QUOTE_NONE)
    for row, cells in enumerate(reader):
        if row >= ROWS:
            break
        for col, raw in enumerate(cells[:COLS]):
            try:
                formula = parse_cell(raw, grid.parser, grid)
            except FormulaError as exc:
                raise SheetFormatError(make_addr(row, col), str(exc)) from exc
            if formula is not None:
                grid.set_formula(row, col, formula)
    return grid


def load_sheet(path: Path, **grid_kwargs: Any) -> Grid:
    """Load a grid from a sheet file.

    Raises:
        SheetFormatError: If a cell cannot be parsed.
        OSError: If the file cannot be read.
    """
    path = Path(path)
    try:
        grid = read_sheet(path.read_text(encoding="utf-8"), **grid_kwargs)
    except SheetFormatError as exc:
        emit_error(
            EventType.sheet_load_failed,
            str(exc),
            {"path": str(path), "addr": exc.addr},
            error_code=error_code_for(exc.__cause__) if exc.__cause__ else None,
        )
        raise
    emit_info(
        EventType.sheet_loaded,
        f"Loaded sheet {path.name}",
        {"path": str(path), "cells": sum(1 for _ in grid.filled_cells())},
    )
    return grid


def dump_sheet(grid: Grid) -> str:
    """Serialize a grid to sheet file content.

    Trailing empty cells of each row are dropped; all 16 lines are written.
    """
    lines: list[str] = []
    for r in range(ROWS):
        cells = [grid.cell_text(r, c) for c in range(COLS)]
        while cells and not cells[-1]:
            cells.pop()
        lines.append(DELIMITER.join(cells))
    return "\n".join(lines) + "\n"


def save_sheet(grid: Grid, path: Path) -> None:
    """Write a grid to a sheet file."""
    path = Path(path)
    path.write_text(dump_sheet(grid), encoding="utf-8")
    emit_info(
        EventType.sheet_saved,
        f"Saved sheet {path.name}",
        {"path": str(path), "cells": sum(1 for _ in grid.filled_cells())},
    )
