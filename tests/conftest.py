"""Shared fixtures: in-memory readers that record how rows are pulled."""

import logging
from collections.abc import Iterator

import openpyxl
import pytest
from openpyxl.worksheet.table import Table

from xlsx_textual.logger import LOGGER_NAME
from xlsx_textual.model import Sheet, Workbook
from xlsx_textual.reader import MemoryReader
from xlsx_textual.row_source import open_row_source


class CountingReader(MemoryReader):
    """MemoryReader that records every iterator opened and every row yielded."""

    def __init__(self, sheets, fail_at: dict[str, int] | None = None) -> None:
        super().__init__(sheets)
        self.fail_at = fail_at or {}
        self.iterations = {name: 0 for name in sheets}
        self.yielded = {name: [] for name in sheets}

    def iter_rows(self, name: str) -> Iterator:
        self.iterations[name] += 1
        return self._stream(name)

    def _stream(self, name: str) -> Iterator:
        for idx, row in enumerate(super().iter_rows(name)):
            if idx == self.fail_at.get(name):
                raise ValueError("corrupt row data")
            self.yielded[name].append(idx)
            yield row


def grid(rows: int, columns: int, prefix: str = "r") -> list[list[str]]:
    """Text cells named after their 1-based position, e.g. "r3c2"."""
    return [[f"{prefix}{r + 1}c{c + 1}" for c in range(columns)] for r in range(rows)]


def make_workbook(reader, threshold: int = 1000, capacity: int = 2000, max_rows: int = 0) -> Workbook:
    sheets = [
        Sheet(name, open_row_source(reader, name, threshold, capacity, max_rows))
        for name in reader.sheet_names()
    ]
    return Workbook(sheets, filename="memory", reader=reader)


@pytest.fixture
def three_sheets() -> dict:
    return {
        "Summary": grid(10, 4, "s"),
        "Data": grid(2000, 6, "d"),
        "Notes": [["note one"], ["Another NOTE"], [""], ["last"], [None]],
    }


@pytest.fixture
def reader(three_sheets) -> CountingReader:
    return CountingReader(three_sheets)


@pytest.fixture
def workbook(reader) -> Workbook:
    return make_workbook(reader)


@pytest.fixture
def small_workbook() -> Workbook:
    reader = MemoryReader(
        {
            "Fruit": [
                ["Name", "Qty", "Note"],
                ["apple", 3, "Apple pie"],
                ["banana", 12, ""],
                ["cherry", 7, "not an APPLE"],
                ["date", 0.5, True],
            ]
        }
    )
    return make_workbook(reader)


@pytest.fixture
def xlsx_file(tmp_path):
    """A workbook with two sheets, a formula and a named table."""
    path = tmp_path / "book.xlsx"
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Sales"
    ws.append(["Region", "Units", "Price"])
    ws.append(["North", 10, 2.5])
    ws.append(["South", 4, 3])
    ws.append(["Total", "=SUM(B2:B3)", None])
    ws.add_table(Table(displayName="Orders", ref="A1:C3"))

    other = wb.create_sheet("Notes")
    other.append(["hello"])
    other.append([True])
    wb.save(path)
    return path


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo ``setup_logging`` so later tests see records through caplog."""
    yield
    package_logger = logging.getLogger(LOGGER_NAME)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)
