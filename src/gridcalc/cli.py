"""Command-line interface for gridcalc."""

from __future__ import annotations

import json
from pathlib import Path

import click

from gridcalc import __version__

_PARSER_CHOICE = click.Choice(["descent", "shunting_yard", "grammar"])


@click.group()
@click.version_option(version=__version__, prog_name="gridcalc")
def main() -> None:
    """gridcalc -- integer formulas over a 16x16 grid of cells."""


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _parse_vars(items: tuple[str, ...]) -> dict[str, int]:
    variables: dict[str, int] = {}
    for item in items:
        if "=" not in item:
            raise click.ClickException(f"Invalid --var format: {item!r}. Use name=value.")
        k, v = item.split("=", 1)
        try:
            variables[k.strip()] = int(v)
        except ValueError:
            raise click.ClickException(f"Invalid --var value for {k!r}: {v!r} is not an integer")
    return variables


def _setup(directory: str) -> dict:
    """Load project config and attach the event log for *directory*."""
    from gridcalc.config import load_config
    from gridcalc.logging import set_project_dir

    try:
        cfg = load_config(Path(directory))
    except ValueError as e:
        raise click.ClickException(str(e))
    set_project_dir(Path(directory))
    return cfg


def _load(sheet: str, cfg: dict, parser: str | None = None):
    from gridcalc.formulas import FormulaError
    from gridcalc.sheet_io import load_sheet

    try:
        return load_sheet(
            Path(sheet),
            variables=cfg["variables"],
            strict_variables=cfg["strict_variables"],
            parser=parser or cfg["parser"],
        )
    except (FormulaError, OSError) as e:
        raise click.ClickException(str(e))


def _addr(addr: str) -> tuple[int, int]:
    from gridcalc.addr import in_grid, parse_addr

    try:
        row, col = parse_addr(addr)
    except ValueError as e:
        raise click.ClickException(str(e))
    if not in_grid(row, col):
        raise click.ClickException(f"Cell {addr} is outside the 16x16 grid")
    return row, col


# ---------------------------------------------------------------------------
# Project
# ---------------------------------------------------------------------------


@main.command()
@click.argument("directory", type=click.Path(), default=".")
def init(directory: str) -> None:
    """Write a starter gridcalc.yaml into DIRECTORY."""
    from gridcalc.config import write_demo_config

    try:
        path = write_demo_config(Path(directory))
    except FileExistsError as e:
        raise click.ClickException(str(e))
    click.echo(f"Created {path}")


# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------


@main.command()
@click.argument("expression")
@click.option("--var", "var_items", multiple=True, help="Variable as name=value (repeatable).")
@click.option("--parser", type=_PARSER_CHOICE, default=None, help="Parser front end.")
@click.option("--show-tree", is_flag=True, help="Print the parsed formula instead of evaluating.")
@click.option("--dir", "directory", default=".", type=click.Path(), help="Project directory.")
def calc(expression: str, var_items: tuple[str, ...], parser: str | None, show_tree: bool, directory: str) -> None:
    """Evaluate a stand-alone EXPRESSION (no cell references)."""
    from gridcalc.formulas import FormulaError, VariableContext, evaluate_formula, parse_with, replicate

    cfg = _setup(directory)
    variables = dict(cfg["variables"])
    variables.update(_parse_vars(var_items))
    ctx = VariableContext(variables)

    try:
        expr = parse_with(parser or cfg["parser"], expression, ctx)
        if show_tree:
            click.echo(replicate(expr))
            return
        result = evaluate_formula(expr, ctx)
    except (FormulaError, ArithmeticError) as e:
        raise click.ClickException(str(e))
    click.echo(f"Result: {result}")


# ---------------------------------------------------------------------------
# Sheets
# ---------------------------------------------------------------------------


@main.command()
@click.argument("sheet", type=click.Path(exists=True))
@click.option("--parser", type=_PARSER_CHOICE, default=None, help="Parser front end.")
@click.option("--dir", "directory", default=".", type=click.Path(), help="Project directory.")
def show(sheet: str, parser: str | None, directory: str) -> None:
    """Print the evaluated grid of SHEET."""
    cfg = _setup(directory)
    grid = _load(sheet, cfg, parser)
    click.echo(grid.render())
    errors = grid.get_errors()
    if errors:
        click.echo("")
        for addr, message in errors.items():
            click.echo(f"  {addr}: {message}")


@main.command()
@click.argument("sheet", type=click.Path(exists=True))
@click.argument("addr")
@click.option("--dir", "directory", default=".", type=click.Path(), help="Project directory.")
def cell(sheet: str, addr: str, directory: str) -> None:
    """Print the content and value of cell ADDR in SHEET."""
    cfg = _setup(directory)
    grid = _load(sheet, cfg)
    row, col = _addr(addr)
    click.echo(f"{addr.upper()}: {grid.cell_text(row, col)}")
    value = grid.display_value(row, col)
    click.echo(f"Value: {value}")
    errors = grid.get_errors()
    if addr.upper() in errors:
        click.echo(f"Error: {errors[addr.upper()]}")


@main.command("set")
@click.argument("sheet", type=click.Path(exists=True))
@click.argument("addr")
@click.argument("content")
@click.option("--dir", "directory", default=".", type=click.Path(), help="Project directory.")
def set_cmd(sheet: str, addr: str, content: str, directory: str) -> None:
    """Set cell ADDR in SHEET to CONTENT and save the sheet."""
    from gridcalc.formulas import FormulaError
    from gridcalc.sheet_io import save_sheet

    cfg = _setup(directory)
    grid = _load(sheet, cfg)
    row, col = _addr(addr)
    try:
        grid.set_cell(row, col, content)
    except FormulaError as e:
        raise click.ClickException(f"Rejected edit of {addr.upper()}: {e}")
    save_sheet(grid, Path(sheet))
    click.echo(f"{addr.upper()} = {grid.cell_text(row, col)} -> {grid.display_value(row, col)}")


@main.command()
@click.argument("sheet", type=click.Path(exists=True))
@click.argument("output", type=click.Path())
@click.option("--dir", "directory", default=".", type=click.Path(), help="Project directory.")
def export(sheet: str, output: str, directory: str) -> None:
    """Write the computed values of SHEET to OUTPUT as CSV."""
    cfg = _setup(directory)
    grid = _load(sheet, cfg)
    df = grid.values_frame()
    df.write_csv(output)
    click.echo(f"Exported {df.height} rows to {output}")


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@main.command("events")
@click.option("--dir", "directory", default=".", type=click.Path(), help="Project directory.")
@click.option("--level", default=None, type=click.Choice(["info", "warning", "error"]), help="Filter by level.")
@click.option("--type", "event_type", default=None, help="Filter by event type.")
@click.option("--limit", default=50, type=int, help="Maximum events to show.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def events_cmd(directory: str, level: str | None, event_type: str | None, limit: int, as_json: bool) -> None:
    """Show logged events, most recent first."""
    from gridcalc.logging import get_sink

    _setup(directory)
    events = get_sink().read_events(level=level, event_type=event_type, limit=limit)
    if as_json:
        click.echo(json.dumps(events, indent=2))
        return
    if not events:
        click.echo("No events.")
        return
    for e in events:
        code = f" [{e['error_code']}]" if e.get("error_code") else ""
        click.echo(f"{e['ts']}  {e['level']:7s}  {e['event_type']}{code}  {e.get('message', '')}")
