"""Central registry for formula functions.

A formula function is a reduction over the evaluated argument list::

    @register_function("DOUBLE")
    def _fn_double(args: list[int]) -> int:
        ...

Names are stored upper-case and looked up case-insensitively.
"""

from __future__ import annotations

from typing import Callable

from gridcalc.formulas.errors import FormulaFunctionError

FormulaFunction = Callable[[list[int]], int]

_FUNCTIONS: dict[str, FormulaFunction] = {}


def register_function(name: str) -> Callable[[FormulaFunction], FormulaFunction]:
    """Decorator that registers a formula function by name.

    Args:
        name: The lookup name for this function.

    Returns:
        The original function, unmodified.
    """

    def decorator(fn: FormulaFunction) -> FormulaFunction:
        _FUNCTIONS[name.upper()] = fn
        return fn

    return decorator


def lookup_function(name: str) -> FormulaFunction | None:
    """Return the function registered under *name*, or None."""
    return _FUNCTIONS.get(name.upper())


def registered_names() -> list[str]:
    """Return all registered function names, sorted."""
    return sorted(_FUNCTIONS)


# ---------- Builtins ----------


@register_function("MAX")
def _fn_max(args: list[int]) -> int:
    if len(args) < 1:
        raise FormulaFunctionError("MAX", "MAX requires at least 1 argument")
    return max(args)


@register_function("MIN")
def _fn_min(args: list[int]) -> int:
    if len(args) < 1:
        raise FormulaFunctionError("MIN", "MIN requires at least 1 argument")
    return min(args)


@register_function("SUM")
def _fn_sum(args: list[int]) -> int:
    return sum(args)


@register_function("ABS")
def _fn_abs(args: list[int]) -> int:
    if len(args) != 1:
        raise FormulaFunctionError("ABS", "ABS requires exactly 1 argument")
    return abs(args[0])
