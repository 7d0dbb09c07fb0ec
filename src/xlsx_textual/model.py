"""Cell, row, sheet and workbook model."""

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Union

from openpyxl.utils import get_column_letter

from .exceptions import SheetNotFound

if TYPE_CHECKING:
    from .reader import SheetReader
    from .row_source import RowSource


@dataclass(frozen=True, slots=True)
class Empty:
    """A cell without a value."""

    kind = "empty"

    def text(self, show_formulas: bool = False) -> str:
        return ""


@dataclass(frozen=True, slots=True)
class Number:
    value: float

    kind = "number"

    def text(self, show_formulas: bool = False) -> str:
        return format_number(self.value)


@dataclass(frozen=True, slots=True)
class Text:
    value: str

    kind = "text"

    def text(self, show_formulas: bool = False) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class Boolean:
    value: bool

    kind = "boolean"

    def text(self, show_formulas: bool = False) -> str:
        return "TRUE" if self.value else "FALSE"


@dataclass(frozen=True, slots=True)
class Formula:
    """A formula cell: the cached result as text plus the source expression."""

    display_text: str
    source_expression: str

    kind = "formula"

    def text(self, show_formulas: bool = False) -> str:
        return self.source_expression if show_formulas else self.display_text


CellValue = Union[Empty, Number, Text, Boolean, Formula]
Row = tuple[CellValue, ...]

EMPTY = Empty()


def format_number(value: float) -> str:
    """Render a number without a trailing ``.0`` for integral values."""
    if math.isfinite(value) and value.is_integer():
        return str(int(value))
    return f"{value:.15g}"


def empty_row(width: int) -> Row:
    """Return a row of ``width`` empty cells."""
    return (EMPTY,) * width


def pad_row(cells, width: int) -> Row:
    """Pad (or cut) a sequence of cells to exactly ``width`` entries."""
    row = tuple(cells)
    if len(row) < width:
        return row + (EMPTY,) * (width - len(row))
    return row[:width]


def cell_ref(row: int, column: int) -> str:
    """Spreadsheet-style reference of a 0-based coordinate, e.g. (11, 1) -> "B12"."""
    return f"{get_column_letter(column + 1)}{row + 1}"


@dataclass
class Sheet:
    """A named sheet backed by a row source."""

    name: str
    source: "RowSource"

    @property
    def row_count(self) -> int:
        return self.source.row_count()

    @property
    def column_count(self) -> int:
        return self.source.column_count()


@dataclass
class Workbook:
    """Ordered sheets of one opened file.

    The workbook is read-only for the whole session. Which sheet is shown is
    tracked by ``NavigationState.sheet_index``, never by the workbook.
    """

    sheets: list[Sheet]
    filename: str = ""
    reader: "SheetReader | None" = field(default=None, repr=False)

    def __len__(self) -> int:
        return len(self.sheets)

    def __getitem__(self, index: int) -> Sheet:
        return self.sheets[index]

    @property
    def sheet_names(self) -> list[str]:
        return [sheet.name for sheet in self.sheets]

    def find_sheet(self, spec: str | int) -> int:
        """Resolve a sheet name or 1-based index to a 0-based sheet index.

        Raises:
            SheetNotFound: When no sheet matches.
        """
        names = self.sheet_names
        if isinstance(spec, str) and spec in names:
            return names.index(spec)

        try:
            number = int(spec)
        except (TypeError, ValueError):
            raise SheetNotFound(str(spec), names) from None

        if 1 <= number <= len(names):
            return number - 1
        raise SheetNotFound(str(spec), names)

    def close(self) -> None:
        """Release the underlying reader and every row cache."""
        for sheet in self.sheets:
            sheet.source.close()
        if self.reader is not None:
            self.reader.close()
            self.reader = None
