"""Row iterators over on-disk and in-memory sheets.

A reader is the only place that knows about a file format. The rest of the
package sees sheets as a name, a (rows, columns) size and a forward-only
iterator of typed rows. Calling ``iter_rows`` again starts a fresh pass from
the first row.
"""

import datetime
import zipfile
from collections.abc import Iterable, Iterator, Sequence
from pathlib import Path
from typing import Any, Protocol

import openpyxl
import polars as pl
from openpyxl.utils.cell import range_boundaries
from openpyxl.utils.exceptions import InvalidFileException

from .exceptions import TableNotFound, UnreadableWorkbook
from .logger import get_logger
from .model import EMPTY, Boolean, CellValue, Empty, Formula, Number, Row, Text, pad_row

logger = get_logger(__name__)


class SheetReader(Protocol):
    """Capability that yields sheets, sizes and typed rows."""

    def sheet_names(self) -> list[str]: ...

    def dimensions(self, name: str) -> tuple[int, int]: ...

    def iter_rows(self, name: str) -> Iterator[Row]: ...

    def close(self) -> None: ...


def to_cell(value: Any) -> CellValue:
    """Convert a raw Python value (as produced by openpyxl or polars) to a CellValue."""
    if value is None:
        return EMPTY
    if isinstance(value, (Empty, Number, Text, Boolean, Formula)):
        return value
    # bool is a subclass of int
    if isinstance(value, bool):
        return Boolean(value)
    if isinstance(value, (int, float)):
        return Number(float(value))
    if isinstance(value, datetime.datetime):
        return Text(value.isoformat(sep=" "))
    if isinstance(value, (datetime.date, datetime.time)):
        return Text(value.isoformat())
    if isinstance(value, str):
        return Text(value) if value else EMPTY
    return Text(str(value))


def _formula_text(raw: Any) -> str | None:
    """Return the formula source of a raw cell from a formula-preserving workbook."""
    if isinstance(raw, str):
        return raw if raw.startswith("=") and len(raw) > 1 else None
    # ArrayFormula and DataTableFormula carry their source in ``text``
    text = getattr(raw, "text", None)
    if isinstance(text, str) and text.startswith("="):
        return text
    return None


class MemoryReader:
    """Sheets held in memory, keyed by name in insertion order."""

    def __init__(self, sheets: dict[str, Sequence[Sequence[Any]]]) -> None:
        self._sheets: dict[str, list[Row]] = {}
        self._widths: dict[str, int] = {}
        for name, rows in sheets.items():
            converted = [tuple(to_cell(value) for value in row) for row in rows]
            self._widths[name] = max((len(row) for row in converted), default=0)
            self._sheets[name] = converted

    @classmethod
    def from_frame(cls, name: str, df: pl.DataFrame) -> "MemoryReader":
        """Build a single-sheet reader from a DataFrame; the header becomes row 1."""
        rows: list[Sequence[Any]] = [tuple(df.columns)]
        rows.extend(df.rows())
        return cls({name: rows})

    def sheet_names(self) -> list[str]:
        return list(self._sheets)

    def dimensions(self, name: str) -> tuple[int, int]:
        return len(self._sheets[name]), self._widths[name]

    def iter_rows(self, name: str) -> Iterator[Row]:
        width = self._widths[name]
        for row in self._sheets[name]:
            yield pad_row(row, width)

    def close(self) -> None:
        pass


class OpenpyxlReader:
    """Reader for ``.xlsx``/``.xlsm`` files using openpyxl in read-only mode.

    The file is opened twice: once for cached values and once for formulas,
    and the two row streams are zipped so a formula cell can carry both its
    displayed result and its source expression.

    Args:
        path: Workbook file.
        table: Optional named table. When given, the reader exposes a single
            sheet named after the table and restricted to its cell range.

    Raises:
        UnreadableWorkbook: The file is not a readable workbook.
        TableNotFound: ``table`` is given but no sheet defines it.
    """

    def __init__(self, path: str | Path, table: str | None = None) -> None:
        self.path = Path(path)
        try:
            self._values = openpyxl.load_workbook(self.path, read_only=True, data_only=True)
            self._formulas = openpyxl.load_workbook(self.path, read_only=True, data_only=False)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
            raise UnreadableWorkbook(f"Cannot open {self.path.name}: {e}") from e

        # exposed name -> (worksheet title, (min_col, min_row, max_col, max_row) or None)
        self._bounds: dict[str, tuple[str, tuple[int, int, int, int] | None]] = {}
        if table:
            title, ref = find_table(self.path, table)
            self._bounds[table] = (title, range_boundaries(ref))
        else:
            for ws in self._values.worksheets:
                self._bounds[ws.title] = (ws.title, None)

        self._dimensions: dict[str, tuple[int, int]] = {}

    def sheet_names(self) -> list[str]:
        return list(self._bounds)

    def dimensions(self, name: str) -> tuple[int, int]:
        if name not in self._dimensions:
            title, bounds = self._bounds[name]
            if bounds is not None:
                min_col, min_row, max_col, max_row = bounds
                self._dimensions[name] = (max_row - min_row + 1, max_col - min_col + 1)
            else:
                ws = self._values[title]
                if not ws.max_row or not ws.max_column:
                    # No dimension record in the file: scan it once
                    ws.reset_dimensions()
                    ws.calculate_dimension(force=True)
                self._dimensions[name] = (ws.max_row or 0, ws.max_column or 0)
        return self._dimensions[name]

    def iter_rows(self, name: str) -> Iterator[Row]:
        title, bounds = self._bounds[name]
        rows, columns = self.dimensions(name)
        if rows == 0 or columns == 0:
            return

        if bounds is not None:
            min_col, min_row, max_col, max_row = bounds
        else:
            min_col, min_row, max_col, max_row = 1, 1, columns, rows

        logger.debug("Streaming %s rows %d..%d from %s", name, min_row, max_row, self.path.name)
        kwargs = dict(min_row=min_row, max_row=max_row, min_col=min_col, max_col=max_col, values_only=True)
        values = self._values[title].iter_rows(**kwargs)
        formulas = self._formulas[title].iter_rows(**kwargs)

        for value_row, formula_row in zip(values, formulas):
            yield pad_row(_merge_row(value_row, formula_row), columns)

    def close(self) -> None:
        self._values.close()
        self._formulas.close()


def _merge_row(value_row: Iterable[Any], formula_row: Iterable[Any]) -> Iterator[CellValue]:
    for value, raw in zip(value_row, formula_row):
        source = _formula_text(raw)
        if source is not None and value != raw:
            display = "" if value is None else to_cell(value).text()
            yield Formula(display_text=display, source_expression=source)
        else:
            yield to_cell(value)


def find_table(path: str | Path, table: str) -> tuple[str, str]:
    """Locate a named Excel table.

    Table names are matched case-insensitively, as Excel does.

    Returns:
        Tuple of (worksheet title, cell range reference such as "B2:F40").

    Raises:
        TableNotFound: No worksheet defines the table.
    """
    # Table definitions are not available in read-only mode
    wb = openpyxl.load_workbook(path)
    try:
        wanted = table.casefold()
        for ws in wb.worksheets:
            for name, ref in ws.tables.items():
                if name.casefold() == wanted:
                    return ws.title, ref
    finally:
        wb.close()
    raise TableNotFound(table)
