import io
import json

import polars as pl
import pytest
from rich.console import Console

from xlsx_textual.export import export_sheet, print_sheet, sheet_frame
from xlsx_textual.model import Formula
from xlsx_textual.reader import MemoryReader

from .conftest import grid, make_workbook


@pytest.fixture
def sheet():
    reader = MemoryReader(
        {
            "Stock": [
                ["item", 1, True, 1.5, Formula("6", "=B1*4")],
                ["bolt", 2, False, None, Formula("8", "=B2*4")],
                [None, 3, None, 2, "x"],
            ]
        }
    )
    return make_workbook(reader)[0]


def test_frame_columns_keep_types(sheet):
    df = sheet_frame(sheet)
    assert df.columns == ["A", "B", "C", "D", "E"]
    assert df["A"].to_list() == ["item", "bolt", None]
    assert df["B"].to_list() == [1, 2, 3]
    assert df["C"].to_list() == [True, False, None]
    assert df["D"].to_list() == [1.5, None, 2.0]
    assert df["E"].to_list() == ["6", "8", "x"]


def test_csv(sheet):
    out = io.StringIO()
    export_sheet(sheet, "csv", out)
    lines = out.getvalue().splitlines()
    assert lines[0] == "A,B,C,D,E"
    assert lines[1] == "item,1,true,1.5,6"


def test_csv_with_formulas(sheet):
    out = io.StringIO()
    export_sheet(sheet, "csv", out, show_formulas=True)
    assert out.getvalue().splitlines()[2].endswith("=B2*4")


def test_json(sheet):
    out = io.StringIO()
    export_sheet(sheet, "json", out)
    records = json.loads(out.getvalue())
    assert records[1] == {"A": "bolt", "B": 2, "C": False, "D": None, "E": "8"}


def test_text(sheet):
    out = io.StringIO()
    export_sheet(sheet, "text", out)
    text = out.getvalue()
    assert "Stock" in text
    assert "bolt" in text
    assert "\x1b[" not in text


def test_unknown_format(sheet):
    with pytest.raises(ValueError):
        export_sheet(sheet, "xml", io.StringIO())


def test_lazy_sheet_exports_every_row():
    reader = MemoryReader({"Big": grid(1200, 2)})
    sheet = make_workbook(reader, threshold=1000, capacity=50)[0]
    assert sheet.source.kind == "lazy"

    out = io.StringIO()
    export_sheet(sheet, "csv", out)
    lines = out.getvalue().splitlines()
    assert len(lines) == 1201
    assert lines[-1] == "r1200c1,r1200c2"


def test_print_sheet_limits_rows():
    sheet = make_workbook(MemoryReader({"S": grid(30, 2)}))[0]
    console = Console(file=io.StringIO(), width=80, no_color=True)

    print_sheet(sheet, console, max_rows=5)

    text = console.file.getvalue()
    assert "r5c1" in text
    assert "r6c1" not in text
    assert "Showing 5 of 30 rows" in text


def test_huge_whole_numbers_stay_float():
    sheet = make_workbook(MemoryReader({"S": [[1.0], [1e19]]}))[0]

    df = sheet_frame(sheet)
    assert df["A"].dtype == pl.Float64
    assert df["A"].to_list() == [1.0, 1e19]

    out = io.StringIO()
    export_sheet(sheet, "csv", out)
    assert len(out.getvalue().splitlines()) == 3


def test_whole_numbers_in_range_are_integers():
    sheet = make_workbook(MemoryReader({"S": [[-(2.0**62)], [3.0]]}))[0]
    assert sheet_frame(sheet)["A"].dtype == pl.Int64
