"""Tests for the memoized, cycle-checked grid evaluator."""

from __future__ import annotations

import polars as pl
import pytest

from gridcalc.formulas import (
    BinaryOp,
    CircularEvaluationError,
    Constant,
    FormulaFunctionError,
    FormulaParseError,
    FormulaRefError,
)
from gridcalc.grid import Grid, parse_cell


def _grid(cells: dict[str, str], **kwargs) -> Grid:
    from gridcalc.addr import parse_addr

    grid = Grid(**kwargs)
    for addr, text in cells.items():
        grid.set_cell(*parse_addr(addr), text)
    return grid


# ────────────────────────────────────────────────────────────────
# Cell content
# ────────────────────────────────────────────────────────────────


class TestParseCell:
    def test_empty(self) -> None:
        assert parse_cell("") is None
        assert parse_cell("   ") is None

    def test_bare_integers(self) -> None:
        assert parse_cell(" 42 ") == Constant(42)
        assert parse_cell("-7") == Constant(-7)

    def test_formula(self) -> None:
        assert parse_cell("=1+2") == BinaryOp(Constant(1), "+", Constant(2))

    def test_text_without_equals_is_rejected(self) -> None:
        with pytest.raises(FormulaParseError, match="integer or =formula"):
            parse_cell("hello")

    def test_row_zero_is_rejected(self) -> None:
        with pytest.raises(FormulaParseError, match="invalid cell reference"):
            parse_cell("=A0")

    def test_cell_text_round_trip(self) -> None:
        grid = _grid({"A1": "-7", "B1": "= a * (B2 + 1)", "C1": "=MAX(1, 2)"})
        assert grid.cell_text(0, 0) == "-7"
        assert grid.cell_text(0, 1) == "=(a*(B2+1))"
        assert grid.cell_text(0, 2) == "=MAX(1,2)"
        assert grid.cell_text(0, 3) == ""


# ────────────────────────────────────────────────────────────────
# Evaluation
# ────────────────────────────────────────────────────────────────


class TestEvaluate:
    def test_reference_chain(self) -> None:
        grid = _grid({"A1": "2", "A2": "=A1*3", "A3": "=A2+A1"})
        assert grid.evaluate_addr("A3") == 8

    def test_empty_cell_is_zero(self) -> None:
        grid = _grid({"A1": "=B1+1"})
        assert grid.evaluate(0, 0) == 1
        assert grid.is_cached(0, 1)

    def test_variables(self) -> None:
        grid = _grid({"A1": "=var - a * b"}, variables={"var": 42, "a": 5, "b": 8})
        assert grid.evaluate(0, 0) == 2

    def test_unknown_variable_defaults_to_zero(self) -> None:
        grid = _grid({"A1": "=missing + 1"})
        assert grid.evaluate(0, 0) == 1

    def test_strict_variables(self) -> None:
        grid = _grid({"A1": "=missing + 1"}, variables={"a": 1}, strict_variables=True)
        with pytest.raises(FormulaRefError, match="missing"):
            grid.evaluate(0, 0)

    def test_reference_outside_grid(self) -> None:
        grid = _grid({"A1": "=A17"})
        with pytest.raises(FormulaRefError, match="outside the 16x16 grid"):
            grid.evaluate(0, 0)

    def test_unknown_function(self) -> None:
        grid = _grid({"A1": "=NOPE(1)"})
        with pytest.raises(FormulaFunctionError):
            grid.evaluate(0, 0)

    def test_grid_functions_shadow_registry(self) -> None:
        grid = _grid({"A1": "=MAX(1, 2)"}, functions={"max": lambda args: -1})
        assert grid.evaluate(0, 0) == -1

    def test_shunting_yard_front_end(self) -> None:
        grid = _grid(
            {"A1": "=MAX(3,5)", "A2": "=TWICE(A1) - 1"},
            functions={"TWICE": lambda args: 2 * args[0]},
            parser="shunting_yard",
        )
        assert grid.evaluate_addr("A2") == 9

    def test_grammar_front_end(self) -> None:
        grid = _grid({"A1": "=8-3-2"}, parser="grammar")
        assert grid.evaluate(0, 0) == 3

    def test_from_config(self) -> None:
        grid = Grid.from_config({"variables": {"a": 2}, "parser": "grammar", "strict_variables": True})
        assert grid.variables == {"a": 2}
        assert grid.parser == "grammar"
        assert grid.strict_variables is True

    def test_position_outside_grid(self) -> None:
        with pytest.raises(IndexError):
            Grid().evaluate(16, 0)


# ────────────────────────────────────────────────────────────────
# Memoization
# ────────────────────────────────────────────────────────────────


class TestMemoization:
    def test_shared_reference_is_computed_once(self) -> None:
        calls: list[list[int]] = []

        def tick(args: list[int]) -> int:
            calls.append(args)
            return 7

        grid = _grid({"A1": "=B1+B1", "B1": "=TICK()"}, functions={"TICK": tick})
        assert grid.evaluate(0, 0) == 14
        assert len(calls) == 1

        assert grid.evaluate(0, 0) == 14
        assert grid.evaluate(0, 1) == 7
        assert len(calls) == 1

    def test_any_edit_purges_every_value(self) -> None:
        grid = _grid({"A1": "1", "B1": "=A1+1", "P16": "99"})
        grid.evaluate_all()
        assert grid.is_cached(0, 0) and grid.is_cached(15, 15)

        grid.set_cell(10, 10, "5")
        assert not any(grid.is_cached(r, c) for r in range(16) for c in range(16))

    def test_edit_is_visible_to_dependents(self) -> None:
        grid = _grid({"A1": "1", "B1": "=A1*10"})
        assert grid.evaluate(0, 1) == 10
        grid.set_cell(0, 0, "4")
        assert grid.evaluate(0, 1) == 40

    def test_rejected_edit_keeps_old_formula_and_cache(self) -> None:
        grid = _grid({"A1": "5", "B1": "=A1"})
        assert grid.evaluate(0, 1) == 5

        with pytest.raises(FormulaParseError):
            grid.set_cell(0, 0, "=1 +")
        with pytest.raises(FormulaParseError):
            grid.set_cell(0, 0, "=1 # 2")
        assert grid.get_formula(0, 0) == Constant(5)
        assert grid.is_cached(0, 1)
        assert grid.evaluate(0, 1) == 5

    def test_failure_is_not_cached_and_leaves_others_intact(self) -> None:
        grid = _grid({"A1": "=1/0", "B1": "5", "C1": "=B1*2"})
        assert grid.evaluate_all() == {"B1": 5, "C1": 10}
        assert not grid.is_cached(0, 0)
        assert grid.is_cached(0, 1)
        assert "Division by zero" in grid.get_errors()["A1"]


# ────────────────────────────────────────────────────────────────
# Cycles
# ────────────────────────────────────────────────────────────────


class TestCycles:
    def test_two_cell_cycle_from_either_side(self) -> None:
        grid = _grid({"A1": "=B1", "B1": "=A1"})
        for row, col in ((0, 0), (0, 1)):
            with pytest.raises(CircularEvaluationError, match="Circular evaluation during evaluation of"):
                grid.evaluate(row, col)
            assert not grid.is_cached(0, 0)
            assert not grid.is_cached(0, 1)

    def test_self_reference(self) -> None:
        grid = _grid({"C3": "=C3 + 1"})
        with pytest.raises(CircularEvaluationError) as exc_info:
            grid.evaluate_addr("C3")
        assert exc_info.value.addr == "C3"
        assert exc_info.value.formula == "(C3+1)"

    def test_diamond_is_not_a_cycle(self) -> None:
        grid = _grid({"A1": "=B1+C1", "B1": "=D1", "C1": "=D1", "D1": "3"})
        assert grid.evaluate(0, 0) == 6

    def test_cycle_does_not_poison_independent_cells(self) -> None:
        grid = _grid({"A1": "=B1", "B1": "=A1", "C1": "5", "D1": "=C1+A1"})
        with pytest.raises(CircularEvaluationError):
            grid.evaluate_addr("D1")
        assert grid.is_cached(0, 2)
        assert grid.evaluate_addr("C1") == 5

    def test_breaking_the_cycle(self) -> None:
        grid = _grid({"A1": "=B1", "B1": "=A1"})
        with pytest.raises(CircularEvaluationError):
            grid.evaluate(0, 0)
        grid.set_cell(0, 1, "9")
        assert grid.evaluate(0, 0) == 9


# ────────────────────────────────────────────────────────────────
# Long reference chains
# ────────────────────────────────────────────────────────────────


def _chain(grid: Grid, last: str) -> Grid:
    """Row-major chain over the whole grid: each cell is the next plus one."""
    from gridcalc.addr import make_addr

    cells = [(r, c) for r in range(16) for c in range(16)]
    for (r, c), (nr, nc) in zip(cells, cells[1:]):
        grid.set_cell(r, c, f"={make_addr(nr, nc)}+1")
    grid.set_cell(15, 15, last)
    return grid


class TestLongChains:
    def test_forward_chain_through_every_cell(self) -> None:
        grid = _chain(Grid(), "0")
        assert grid.evaluate(0, 0) == 255
        assert grid.is_cached(15, 15)
        assert grid.evaluate_addr("O16") == 1

    def test_evaluate_all_and_render(self) -> None:
        grid = _chain(Grid(), "0")
        values = grid.evaluate_all()
        assert len(values) == 256
        assert values["A1"] == 255
        assert grid.get_errors() == {}
        assert grid.render().splitlines()[1].split()[1] == "255"

    def test_failure_at_the_end_of_the_chain(self) -> None:
        grid = _chain(Grid(), "=1/0")
        with pytest.raises(ZeroDivisionError):
            grid.evaluate(0, 0)
        assert not any(grid.is_cached(r, c) for r in range(16) for c in range(16))
        assert grid.display_value(0, 0) == "#DIV/0!"

    def test_cycle_through_every_cell(self) -> None:
        grid = _chain(Grid(), "=A1+1")
        with pytest.raises(CircularEvaluationError) as exc_info:
            grid.evaluate(0, 0)
        assert exc_info.value.addr == "A1"
        assert len(exc_info.value.chain) == 256
        assert grid.evaluate_all() == {}
        assert len(grid.get_errors()) == 256

    def test_earlier_error_wins_over_later_reference(self) -> None:
        grid = _grid({"A1": "=(1/0)+B1", "B1": "=C1", "C1": "=B1"})
        with pytest.raises(ZeroDivisionError):
            grid.evaluate(0, 0)

        grid = _grid({"A1": "=B1+(1/0)", "B1": "=C1", "C1": "=B1"})
        with pytest.raises(CircularEvaluationError):
            grid.evaluate(0, 0)

    def test_failed_dependency_leaves_earlier_values_cached(self) -> None:
        grid = _grid({"A1": "=B1+C1", "B1": "=D1*2", "D1": "4", "C1": "=NOPE()"})
        with pytest.raises(FormulaFunctionError):
            grid.evaluate(0, 0)
        assert grid.is_cached(0, 1)
        assert grid.evaluate(0, 1) == 8
        assert not grid.is_cached(0, 0)


# ────────────────────────────────────────────────────────────────
# Presentation
# ────────────────────────────────────────────────────────────────


class TestPresentation:
    def test_display_values(self) -> None:
        grid = _grid({"A1": "7", "B1": "=A1/0", "C1": "=C1", "D1": "=NOPE()"})
        assert grid.display_value(0, 0) == "7"
        assert grid.display_value(0, 1) == "#DIV/0!"
        assert grid.display_value(0, 2) == "#CIRC!"
        assert grid.display_value(0, 3) == "#ERR!"
        assert grid.display_value(0, 4) == ""

    def test_values_frame(self) -> None:
        grid = _grid({"A1": "5", "B2": "=A1*2", "C1": "=1/0"})
        df = grid.values_frame()
        assert df.shape == (16, 16)
        assert df.columns[0] == "A" and df.columns[-1] == "P"
        assert df.schema["A"] == pl.Int64
        assert df["A"][0] == 5
        assert df["B"][1] == 10
        assert df["C"][0] is None
        assert df["D"][0] is None

    def test_render(self) -> None:
        grid = _grid({"A1": "5", "B1": "=A1/0"})
        lines = grid.render().splitlines()
        assert len(lines) == 17
        assert lines[0].split()[0] == "A"
        assert lines[0].split()[-1] == "P"
        assert lines[1].split()[:3] == ["1", "5", "#DIV/0!"]

    def test_values_frame_beyond_int64(self) -> None:
        grid = _grid({"A1": "=99999999999*99999999999", "A2": "3", "B1": "5"})
        assert grid.evaluate(0, 0) == 9999999999800000000001
        df = grid.values_frame()
        assert df.schema["A"] == pl.Utf8
        assert df["A"].to_list()[:3] == ["9999999999800000000001", "3", None]
        assert df.schema["B"] == pl.Int64
        assert df["B"][0] == 5

    def test_values_frame_int64_bounds(self) -> None:
        grid = _grid({"A1": str(2**63 - 1), "A2": str(-(2**63)), "B1": str(2**63)})
        df = grid.values_frame()
        assert df.schema["A"] == pl.Int64
        assert df["A"].to_list()[:2] == [2**63 - 1, -(2**63)]
        assert df.schema["B"] == pl.Utf8
