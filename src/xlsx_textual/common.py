"""Common utilities and constants for xlsx_textual."""

import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from rich.text import Text

from .exceptions import Cancelled
from .model import CellValue

# Sheets with at least this many rows are read lazily through a row cache
LAZY_THRESHOLD = 1000

# Rows kept by a lazy sheet's cache
CACHE_CAPACITY = 2000

# Report progress every this many rows during long scans and fetches
PROGRESS_INTERVAL = 500

# Column width used when the configuration does not give one
COLUMN_WIDTH = 15
MIN_COLUMN_WIDTH = 3

# Width of the row label gutter (row numbers)
ROW_LABEL_WIDTH = 7

EXPORT_FORMATS = ["csv", "json", "text"]

# (done, total) -> None
ProgressCallback = Callable[[int, int], None]


@dataclass
class CellStyle:
    kind: str
    style: str
    justify: str


# fmt: off
STYLES = {
    "empty": CellStyle(kind="empty", style="", justify="left"),
    "number": CellStyle(kind="number", style="magenta", justify="right"),
    "text": CellStyle(kind="text", style="green", justify="left"),
    "boolean": CellStyle(kind="boolean", style="blue", justify="center"),
    "formula": CellStyle(kind="formula", style="yellow", justify="right"),
}
# fmt: on


def format_cell(cell: CellValue, show_formulas: bool = False, width: int | None = None) -> Text:
    """Format a single cell with styling and justification.

    Args:
        cell: The cell value.
        show_formulas: Render formula source instead of the cached result.
        width: Truncate the text to this many characters (with an ellipsis).
    """
    cs = STYLES[cell.kind]
    text_val = cell.text(show_formulas)
    justify = "left" if cell.kind == "formula" and show_formulas else cs.justify

    text = Text(text_val, style=cs.style, justify=justify, no_wrap=True)
    if width is not None:
        text.truncate(width, overflow="ellipsis")
    return text


def _next(lst: list[Any], current, offset=1) -> Any:
    """Return the next item in the list after the current item, cycling if needed."""
    if current not in lst:
        raise ValueError("Current item not in list")
    current_index = lst.index(current)
    next_index = (current_index + offset) % len(lst)
    return lst[next_index]


class CancelToken:
    """Cancellation flag checked between row fetches.

    Set from the session thread when the user presses a key while a scan or
    fetch is still running on a worker thread.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise Cancelled("Operation cancelled")
