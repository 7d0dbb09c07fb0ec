"""Open files as workbooks of eager or lazy sheets."""

from pathlib import Path

import polars as pl

from .common import CACHE_CAPACITY, LAZY_THRESHOLD
from .exceptions import TableNotFound, UnreadableWorkbook
from .logger import get_logger
from .model import Sheet, Workbook
from .reader import MemoryReader, OpenpyxlReader, SheetReader
from .row_source import open_row_source

logger = get_logger(__name__)

EXCEL_EXTENSIONS = (".xlsx", ".xlsm", ".xltx", ".xltm")


def open_reader(filename: str | Path, table: str | None = None) -> SheetReader:
    """Pick a reader by file extension.

    Excel files are streamed with openpyxl. Delimited text is read with
    polars into memory; its header line becomes the first row.

    Raises:
        UnreadableWorkbook: The file cannot be parsed.
        TableNotFound: A table is requested from a file that has none.
    """
    filepath = Path(filename)
    ext = filepath.suffix.lower()

    if ext in EXCEL_EXTENSIONS:
        return OpenpyxlReader(filepath, table=table)

    if table:
        raise TableNotFound(table)

    separator = "\t" if ext in (".tsv", ".tab") else ","
    try:
        df = pl.read_csv(filepath, separator=separator, infer_schema_length=10000)
    except (pl.exceptions.PolarsError, OSError) as e:
        raise UnreadableWorkbook(f"Cannot read {filepath.name}: {e}") from e
    return MemoryReader.from_frame(filepath.stem, df)


def load_workbook(
    filename: str | Path,
    table: str | None = None,
    lazy_threshold: int = LAZY_THRESHOLD,
    cache_capacity: int = CACHE_CAPACITY,
    max_rows: int = 0,
) -> Workbook:
    """Open a file and every sheet in it.

    Args:
        filename: Path to the workbook or delimited text file.
        table: Only expose this named Excel table.
        lazy_threshold: Sheets with at least this many rows are read lazily.
        cache_capacity: Row cache size for lazy sheets.
        max_rows: Limit every sheet to this many rows (0 = unlimited).

    Raises:
        FileNotFoundError: ``filename`` does not exist.
        UnreadableWorkbook: The file cannot be parsed or has no sheets.
        TableNotFound: ``table`` does not exist.
    """
    filepath = Path(filename)
    if not filepath.exists():
        raise FileNotFoundError(f"File not found: {filename}")

    reader = open_reader(filepath, table)
    sheets = [
        Sheet(name, open_row_source(reader, name, lazy_threshold, cache_capacity, max_rows))
        for name in reader.sheet_names()
    ]
    if not sheets:
        reader.close()
        raise UnreadableWorkbook(f"No sheets in {filepath.name}")

    logger.info("Opened %s with %d sheet(s)", filepath.name, len(sheets))
    return Workbook(sheets, filename=str(filepath), reader=reader)
