"""Evaluation context: the seam between expression trees and their host.

Expression trees resolve three kinds of names through a context: variables,
functions, and grid cells.  :class:`gridcalc.grid.Grid` is the full
implementation; :class:`VariableContext` serves stand-alone expressions
(the ``calc`` command, tests).

Parsing is context-dependent too: the shunting-yard front end asks
``lookup_function`` whether a bare name is a function or a variable.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Mapping, Protocol

from gridcalc.addr import make_addr
from gridcalc.formulas.errors import FormulaRefError
from gridcalc.formulas.functions import FormulaFunction
from gridcalc.formulas.functions import lookup_function as registry_lookup

if TYPE_CHECKING:
    from gridcalc.formulas.nodes import Expr


class EvalContext(Protocol):
    """Protocol for resolving variables, functions and cells."""

    def lookup_variable(self, name: str) -> int:
        """Resolve a variable; contexts decide what unknown names yield."""
        ...

    def lookup_function(self, name: str) -> FormulaFunction | None:
        """Resolve a function name, or None if it is not registered."""
        ...

    def eval_cell(self, row: int, col: int, visited: tuple[Expr, ...]) -> int:
        """Evaluate a cell (may recurse into other cells)."""
        ...


class VariableContext:
    """Context over a fixed variable table, with no grid behind it.

    Unknown variables evaluate to 0.  Functions come from *functions* first,
    then the global registry.  Any cell reference raises FormulaRefError.
    """

    def __init__(
        self,
        variables: Mapping[str, int] | None = None,
        functions: Mapping[str, FormulaFunction] | None = None,
    ) -> None:
        self._variables = dict(variables or {})
        self._functions = {k.upper(): v for k, v in (functions or {}).items()}

    def lookup_variable(self, name: str) -> int:
        return self._variables.get(name, 0)

    def lookup_function(self, name: str) -> FormulaFunction | None:
        fn = self._functions.get(name.upper())
        if fn is not None:
            return fn
        return registry_lookup(name)

    def eval_cell(self, row: int, col: int, visited: tuple[Expr, ...]) -> int:
        addr = make_addr(row, col)
        raise FormulaRefError(
            addr, message=f"Cell reference {addr} used outside a grid"
        )
