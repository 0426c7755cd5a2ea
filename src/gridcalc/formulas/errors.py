"""Error types for formula scanning, parsing and evaluation."""

from __future__ import annotations


class FormulaError(Exception):
    """Base class for all formula-related errors."""


class ScanError(FormulaError):
    """No token pattern matches the remaining input.

    Attributes:
        position: Character offset where scanning stopped.
        remaining: The unscanned rest of the input.
    """

    def __init__(self, position: int, remaining: str) -> None:
        self.position = position
        self.remaining = remaining
        super().__init__(
            f"Unrecognized input at position {position}: {remaining!r}"
        )


class FormulaParseError(FormulaError):
    """Syntax error in a formula expression.

    Attributes:
        position: Character position where the error was detected.
        message: Human-readable description.
    """

    def __init__(self, message: str, position: int | None = None) -> None:
        self.position = position
        self.message = message
        full = f"Formula parse error: {message}"
        if position is not None:
            full += f" (at position {position})"
        super().__init__(full)


class FormulaRefError(FormulaError):
    """Reference that cannot be resolved: a variable, or a cell.

    Attributes:
        ref_name: The unresolved reference.
        available: Names that are currently available.
    """

    def __init__(
        self,
        ref_name: str,
        available: list[str] | None = None,
        message: str | None = None,
    ) -> None:
        self.ref_name = ref_name
        self.available = available or []
        msg = message or f"Unknown reference: {ref_name!r}"
        if self.available:
            msg += f". Available: {self.available}"
        super().__init__(msg)


class FormulaFunctionError(FormulaError):
    """Unknown function or wrong number of arguments.

    Attributes:
        func_name: The function that caused the error.
    """

    def __init__(self, func_name: str, message: str | None = None) -> None:
        self.func_name = func_name
        msg = message or f"Unknown function: {func_name!r}"
        super().__init__(msg)


class CircularEvaluationError(FormulaError):
    """A cell's formula was reached again while it was still being evaluated.

    Attributes:
        formula: Replicated text of the formula that closed the cycle.
        chain: Replicated texts of the formulas visited on the way, outermost
            first.
        addr: Address of the cell whose formula closed the cycle, if known.
    """

    def __init__(self, formula: str, chain: list[str], addr: str | None = None) -> None:
        self.formula = formula
        self.chain = chain
        self.addr = addr
        where = f" in {addr}" if addr else ""
        super().__init__(
            f"Circular evaluation during evaluation of {formula}{where} : "
            + " -> ".join(chain)
        )


class SheetFormatError(FormulaError):
    """A cell in a sheet file could not be read.

    Attributes:
        addr: Address of the offending cell, e.g. ``"B3"``.
    """

    def __init__(self, addr: str, message: str) -> None:
        self.addr = addr
        super().__init__(f"Cell {addr}: {message}")
