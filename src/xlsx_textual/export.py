"""Export a whole sheet as CSV, JSON or a plain text table."""

import sys
from typing import TextIO

import polars as pl
from openpyxl.utils import get_column_letter
from rich import box
from rich.console import Console
from rich.table import Table

from .common import EXPORT_FORMATS, format_cell
from .logger import get_logger
from .model import Number, Row, Sheet

logger = get_logger(__name__)

# Integral floats outside this range stay Float64
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def _column_series(name: str, cells: list, show_formulas: bool) -> pl.Series:
    """Build a typed Series: numeric and boolean columns keep their type, the rest is text.

    Whole-number columns that fit in 64 bits become Int64, other number columns Float64.
    """
    kinds = {cell.kind for cell in cells if cell.kind != "empty"}

    if kinds == {"number"}:
        values = [cell.value if isinstance(cell, Number) else None for cell in cells]
        if all(v is None or (v.is_integer() and INT64_MIN <= v <= INT64_MAX) for v in values):
            return pl.Series(name, [None if v is None else int(v) for v in values], dtype=pl.Int64)
        return pl.Series(name, values, dtype=pl.Float64)
    if kinds == {"boolean"}:
        return pl.Series(name, [None if cell.kind == "empty" else cell.value for cell in cells], dtype=pl.Boolean)
    return pl.Series(name, [cell.text(show_formulas) or None for cell in cells], dtype=pl.String)


def sheet_rows(sheet: Sheet, max_rows: int = 0) -> list[Row]:
    """Materialize the rows of a sheet (the first ``max_rows`` when given)."""
    stop = sheet.row_count if max_rows <= 0 else min(max_rows, sheet.row_count)
    return sheet.source.get_rows(0, stop)


def sheet_frame(sheet: Sheet, show_formulas: bool = False) -> pl.DataFrame:
    """Convert a sheet to a DataFrame with columns named by column letter."""
    rows = sheet_rows(sheet)
    series = [
        _column_series(get_column_letter(col_idx + 1), [row[col_idx] for row in rows], show_formulas)
        for col_idx in range(sheet.column_count)
    ]
    return pl.DataFrame(series)


def build_table(sheet: Sheet, rows: list[Row], show_formulas: bool = False, first_row: int = 0) -> Table:
    """Build a Rich table of the given rows with row numbers and column letters."""
    table = Table(title=sheet.name, box=box.SIMPLE_HEAVY, show_lines=False)
    table.add_column("", justify="right", style="dim")
    for col_idx in range(sheet.column_count):
        table.add_column(get_column_letter(col_idx + 1), overflow="fold")

    for row_idx, row in enumerate(rows, first_row):
        table.add_row(str(row_idx + 1), *(format_cell(cell, show_formulas) for cell in row))
    return table


def print_sheet(sheet: Sheet, console: Console | None = None, max_rows: int = 0, show_formulas: bool = False) -> None:
    """Print a sheet to the terminal as a Rich table."""
    console = console or Console()
    rows = sheet_rows(sheet, max_rows)
    console.print(build_table(sheet, rows, show_formulas))
    if len(rows) < sheet.row_count:
        console.print(f"[dim]Showing {len(rows)} of {sheet.row_count} rows[/]")


def export_sheet(sheet: Sheet, fmt: str, out: TextIO | None = None, show_formulas: bool = False) -> None:
    """Write a whole sheet to ``out`` (stdout by default).

    Args:
        sheet: Sheet to export; lazy sheets are streamed in full.
        fmt: One of ``csv``, ``json`` or ``text``.
        out: Text stream to write to.
        show_formulas: Export formula source instead of cached results.

    Raises:
        ValueError: Unknown format.
    """
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unknown export format {fmt!r} (choose from {', '.join(EXPORT_FORMATS)})")
    out = out or sys.stdout

    if fmt == "text":
        console = Console(file=out, no_color=True, force_terminal=False, width=100_000)
        console.print(build_table(sheet, sheet_rows(sheet), show_formulas))
    else:
        df = sheet_frame(sheet, show_formulas)
        out.write(df.write_csv() if fmt == "csv" else df.write_json())
        if fmt == "json":
            out.write("\n")

    logger.info("Exported %s (%d rows) as %s", sheet.name, sheet.row_count, fmt)
