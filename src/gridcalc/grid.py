"""On-demand memoized evaluator for a 16x16 grid of cell formulas.

A cell is computed only when asked for (directly or through a reference
from another cell) and the result is cached until the next edit.  Any
formula change purges every cached value: formulas may reference any
cell, and no dependency graph is kept, so partial invalidation would be
unsound.

Cycle detection threads a *visited* tuple of formulas down each reference
edge.  The tuple is extended by copy, never mutated, so two independent
references to the same cell (``=B1+B1``) are not mistaken for a cycle,
while a formula reached again along one path is.

:meth:`Grid.evaluate` walks uncached dependencies with an explicit stack
before evaluating, so a reference chain across all 256 cells needs only
shallow Python recursion.

Not thread-safe.  A concurrent host must hold one exclusive lock per grid
around both evaluation and formula mutation; per-cell locks can deadlock
because evaluation recurses across cells.
"""

from __future__ import annotations

from typing import Any, Iterator, Mapping

import polars as pl

from gridcalc.addr import COLS, ROWS, in_grid, index_to_col_letter, make_addr, parse_addr
from gridcalc.formulas import parse_with
from gridcalc.formulas.context import EvalContext, VariableContext
from gridcalc.formulas.errors import (
    CircularEvaluationError,
    FormulaError,
    FormulaParseError,
    FormulaRefError,
)
from gridcalc.formulas.evaluator import evaluate_formula
from gridcalc.formulas.functions import FormulaFunction
from gridcalc.formulas.functions import lookup_function as registry_lookup
from gridcalc.formulas.nodes import BinaryOp, Call, CellRef, Constant, Expr, replicate
from gridcalc.logging.events import EventType, emit_error, emit_info, emit_warning, error_code_for


def parse_cell(
    text: str, parser: str = "descent", context: EvalContext | None = None
) -> Expr | None:
    """Turn cell content into a formula.

    Cell content is empty, a bare integer (``42``, ``-7``), or ``=`` followed
    by a formula.

    Args:
        text: Raw cell content.
        parser: Front end for ``=`` formulas; see ``gridcalc.formulas.PARSERS``.
        context: Function-name source for the shunting-yard front end.

    Returns:
        The formula, or None for an empty cell.

    Raises:
        FormulaError: If the content cannot be parsed.
    """
    stripped = text.strip()
    if not stripped:
        return None
    if stripped.startswith("="):
        if context is None:
            context = VariableContext()
        return parse_with(parser, stripped[1:], context)
    try:
        return Constant(int(stripped))
    except ValueError:
        raise FormulaParseError(
            f"expected an integer or =formula but found {stripped!r}", position=0
        ) from None


class Grid:
    """Fixed-size grid of optional formulas with a memoized value cache.

    Usage::

        grid = Grid(variables={"rate": 3})
        grid.set_cell(0, 0, "=B1 * rate")
        grid.set_cell(0, 1, "14")
        grid.evaluate_addr("A1")   # 42

    Parameters
    ----------
    variables : Mapping[str, int] | None
        Variable table for ``Variable`` nodes.
    functions : Mapping[str, FormulaFunction] | None
        Extra functions; these shadow the global registry.
    strict_variables : bool
        If True, unknown variables raise FormulaRefError; otherwise they
        evaluate to 0.
    parser : str
        Default front end used by :meth:`set_cell`.
    """

    rows = ROWS
    cols = COLS

    def __init__(
        self,
        variables: Mapping[str, int] | None = None,
        functions: Mapping[str, FormulaFunction] | None = None,
        strict_variables: bool = False,
        parser: str = "descent",
    ) -> None:
        self.variables: dict[str, int] = dict(variables or {})
        self._functions = {k.upper(): v for k, v in (functions or {}).items()}
        self.strict_variables = strict_variables
        self.parser = parser
        self._formulas: list[list[Expr | None]] = [[None] * COLS for _ in range(ROWS)]
        self._values: list[list[int | None]] = [[None] * COLS for _ in range(ROWS)]
        self._errors: dict[str, Exception] = {}
        # Failures found while resolving dependencies; see _resolve.
        self._failed: dict[tuple[int, int], Exception] = {}

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> Grid:
        """Build an empty grid from a ``load_config()`` dict."""
        return cls(
            variables=config.get("variables"),
            strict_variables=bool(config.get("strict_variables", False)),
            parser=config.get("parser", "descent"),
        )

    # ------------------------------------------------------------------
    # EvalContext protocol implementation
    # ------------------------------------------------------------------

    def lookup_variable(self, name: str) -> int:
        if name in self.variables:
            return self.variables[name]
        if self.strict_variables:
            raise FormulaRefError(name, available=sorted(self.variables))
        return 0

    def lookup_function(self, name: str) -> FormulaFunction | None:
        fn = self._functions.get(name.upper())
        if fn is not None:
            return fn
        return registry_lookup(name)

    def eval_cell(self, row: int, col: int, visited: tuple[Expr, ...] = ()) -> int:
        """Evaluate a single cell, with memoization and cycle detection.

        Args:
            row: 0-based row.
            col: 0-based column.
            visited: Formulas already entered on the current path.

        Returns:
            The cell's integer value; 0 for an empty cell.

        Raises:
            CircularEvaluationError: If this cell's formula is in *visited*.
            FormulaRefError: If (row, col) is outside the grid.
        """
        if not in_grid(row, col):
            addr = make_addr(row, col)
            raise FormulaRefError(
                addr, message=f"Cell reference {addr} is outside the {ROWS}x{COLS} grid"
            )

        failure = self._failed.get((row, col))
        if failure is not None:
            raise failure

        cached = self._values[row][col]
        if cached is not None:
            return cached

        formula = self._formulas[row][col]
        if formula is None:
            self._values[row][col] = 0
            return 0

        if any(seen is formula for seen in visited):
            raise CircularEvaluationError(
                replicate(formula),
                [replicate(seen) for seen in visited],
                addr=make_addr(row, col),
            )

        value = evaluate_formula(formula, self, visited + (formula,))
        self._values[row][col] = value
        return value

    # ------------------------------------------------------------------
    # Formulas
    # ------------------------------------------------------------------

    def get_formula(self, row: int, col: int) -> Expr | None:
        self._check(row, col)
        return self._formulas[row][col]

    def set_formula(self, row: int, col: int, formula: Expr | None) -> None:
        """Replace a cell's formula (None empties it) and purge all values."""
        self._check(row, col)
        self._formulas[row][col] = formula
        self.invalidate()

    def set_cell(self, row: int, col: int, text: str, parser: str | None = None) -> None:
        """Parse cell content and store it.

        On a parse failure the cell keeps its previous formula and the
        error is re-raised.

        Raises:
            FormulaError: If *text* cannot be parsed.
        """
        self._check(row, col)
        try:
            formula = parse_cell(text, parser or self.parser, self)
        except FormulaError as exc:
            emit_warning(
                EventType.formula_rejected,
                str(exc),
                {"addr": make_addr(row, col), "input": text},
                error_code=error_code_for(exc),
            )
            raise
        self.set_formula(row, col, formula)

    def cell_text(self, row: int, col: int) -> str:
        """Return the cell's content as it is written to a sheet file."""
        formula = self.get_formula(row, col)
        if formula is None:
            return ""
        if isinstance(formula, Constant):
            return str(formula.value)
        return "=" + replicate(formula)

    def filled_cells(self) -> Iterator[tuple[int, int, Expr]]:
        """Yield (row, col, formula) for every non-empty cell, row-major."""
        for r in range(ROWS):
            for c in range(COLS):
                formula = self._formulas[r][c]
                if formula is not None:
                    yield r, c, formula

    # ------------------------------------------------------------------
    # Evaluation entry points
    # ------------------------------------------------------------------

    def evaluate(self, row: int, col: int) -> int:
        """Top-level evaluation of one cell, starting with nothing visited."""
        self._check(row, col)
        return self._resolve(row, col)

    def evaluate_addr(self, addr: str) -> int:
        """Evaluate the cell at an A1-style address."""
        row, col = parse_addr(addr)
        return self.evaluate(row, col)

    def is_cached(self, row: int, col: int) -> bool:
        self._check(row, col)
        return self._values[row][col] is not None

    def invalidate(self) -> None:
        """Clear all cached values and errors."""
        dropped = sum(v is not None for line in self._values for v in line)
        self._values = [[None] * COLS for _ in range(ROWS)]
        self._errors.clear()
        if dropped:
            emit_info(EventType.cache_purged, f"Purged {dropped} cached values", {"dropped": dropped})

    def evaluate_all(self) -> dict[str, int]:
        """Evaluate every non-empty cell.

        Failures do not stop the pass; they are collected and available
        from :meth:`get_errors`.

        Returns:
            Dict of addr -> value for cells that evaluated successfully.
        """
        results: dict[str, int] = {}
        for r, c, _ in self.filled_cells():
            value = self._try_evaluate(r, c)
            if value is not None:
                results[make_addr(r, c)] = value
        return results

    def get_errors(self) -> dict[str, str]:
        """Return the evaluation errors collected since the last purge."""
        return {addr: str(exc) for addr, exc in self._errors.items()}

    def display_value(self, row: int, col: int) -> str:
        """Get a display-friendly string for a cell value.

        Empty cells display as ``""``; failures as ``#CIRC!``, ``#DIV/0!``
        or ``#ERR!``.
        """
        self._check(row, col)
        if self._formulas[row][col] is None:
            return ""
        value = self._try_evaluate(row, col)
        if value is not None:
            return str(value)
        exc = self._errors.get(make_addr(row, col))
        if isinstance(exc, CircularEvaluationError):
            return "#CIRC!"
        if isinstance(exc, ZeroDivisionError):
            return "#DIV/0!"
        return "#ERR!"

    def values_frame(self) -> pl.DataFrame:
        """Computed values as a DataFrame: columns A..P, one row per grid row.

        Empty and failing cells are null.  Columns are Int64; a column
        holding a value outside the Int64 range is Utf8 instead, with every
        value written in decimal.
        """
        data: dict[str, list[int | None]] = {}
        for c in range(COLS):
            column: list[int | None] = []
            for r in range(ROWS):
                if self._formulas[r][c] is None:
                    column.append(None)
                else:
                    column.append(self._try_evaluate(r, c))
            data[index_to_col_letter(c)] = column

        columns = []
        for name, values in data.items():
            if all(v is None or _INT64_MIN <= v <= _INT64_MAX for v in values):
                columns.append(pl.Series(name, values, dtype=pl.Int64))
            else:
                text = [None if v is None else str(v) for v in values]
                columns.append(pl.Series(name, text, dtype=pl.Utf8))
        return pl.DataFrame(columns)

    def render(self) -> str:
        """Render display values as a plain-text table with A..P headers."""
        cells = [[self.display_value(r, c) for c in range(COLS)] for r in range(ROWS)]
        width = max([3] + [len(v) for line in cells for v in line])
        header = "    " + " ".join(index_to_col_letter(c).rjust(width) for c in range(COLS))
        lines = [header]
        for r, line in enumerate(cells):
            lines.append(f"{r + 1:>3} " + " ".join(v.rjust(width) for v in line))
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _try_evaluate(self, row: int, col: int) -> int | None:
        """Evaluate one cell, recording and logging any failure."""
        addr = make_addr(row, col)
        try:
            return self._resolve(row, col)
        except (FormulaError, ArithmeticError) as exc:
            self._errors[addr] = exc
            event_type = (
                EventType.cycle_detected
                if isinstance(exc, CircularEvaluationError)
                else EventType.cell_eval_error
            )
            emit_error(event_type, str(exc), {"addr": addr}, error_code=error_code_for(exc))
            return None

    def _resolve(self, row: int, col: int) -> int:
        """Evaluate one cell, resolving uncached dependencies first.

        Dependencies are walked depth-first with an explicit stack, in the
        order the evaluator reaches them, and evaluated deepest first with
        the visited tuple of their path.  Every formula therefore runs with
        its references already cached, empty, on its own path (a cycle) or
        failed, which keeps Python recursion shallow on long chains.

        A failed dependency is recorded in ``_failed`` and its ancestors are
        evaluated at once, innermost first, so each one raises either its
        own earlier error or the one propagated from below, exactly as a
        plain recursive evaluation would.
        """
        if not self._needs_resolving(row, col):
            return self.eval_cell(row, col, ())

        stack: list[tuple[int, int, tuple[Expr, ...], Iterator[CellRef]]] = []
        seen: set[tuple[int, int]] = set()

        def push(r: int, c: int, visited: tuple[Expr, ...]) -> None:
            seen.add((r, c))
            stack.append((r, c, visited, _cell_refs(self._formulas[r][c])))

        push(row, col, ())
        unwinding = False
        try:
            while True:
                r, c, visited, refs = stack[-1]
                ref = None if unwinding else next(refs, None)
                if ref is not None:
                    if (ref.row, ref.col) not in seen and self._needs_resolving(ref.row, ref.col):
                        push(ref.row, ref.col, visited + (self._formulas[r][c],))
                    continue
                stack.pop()
                try:
                    value = self.eval_cell(r, c, visited)
                except (FormulaError, ArithmeticError) as exc:
                    if not stack:
                        raise
                    self._failed[(r, c)] = exc
                    unwinding = True
                    continue
                if not stack:
                    return value
                unwinding = False
        finally:
            self._failed.clear()

    def _needs_resolving(self, row: int, col: int) -> bool:
        return (
            in_grid(row, col)
            and self._values[row][col] is None
            and self._formulas[row][col] is not None
        )

    @staticmethod
    def _check(row: int, col: int) -> None:
        if not in_grid(row, col):
            raise IndexError(f"Cell ({row}, {col}) is outside the {ROWS}x{COLS} grid")


_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


def _cell_refs(expr: Expr) -> Iterator[CellRef]:
    """Yield the cell references of *expr* in evaluation order."""
    if isinstance(expr, CellRef):
        yield expr
    elif isinstance(expr, BinaryOp):
        yield from _cell_refs(expr.left)
        yield from _cell_refs(expr.right)
    elif isinstance(expr, Call):
        for arg in expr.args:
            yield from _cell_refs(arg)
