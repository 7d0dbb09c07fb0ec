"""XLSX Viewer - Interactive spreadsheet viewer for the terminal."""

from importlib.metadata import version

__version__ = version("xlsx-textual")

from .config import ViewerSettings, load_settings
from .exceptions import (
    Cancelled,
    ClipboardFailure,
    ConfigError,
    InvalidTarget,
    OutOfRange,
    SheetNotFound,
    SourceReadFailure,
    TableNotFound,
    UnreadableWorkbook,
    XlsxViewerError,
)
from .keybindings import KeyChord, Keymap, Profile, resolve_action
from .loader import load_workbook
from .model import Boolean, CellValue, Empty, Formula, Number, Row, Sheet, Text, Workbook
from .navigation import Action, NavigationState, Navigator, ViewportWindow
from .reader import MemoryReader, OpenpyxlReader, SheetReader
from .row_source import EagerRowSource, LazyRowSource, RowCache, RowSource, open_row_source
from .search import SearchEngine, SearchMatch
from .xlsx_viewer import XlsxViewer

__all__ = [
    "Action",
    "Boolean",
    "Cancelled",
    "CellValue",
    "ClipboardFailure",
    "ConfigError",
    "EagerRowSource",
    "Empty",
    "Formula",
    "InvalidTarget",
    "KeyChord",
    "Keymap",
    "LazyRowSource",
    "MemoryReader",
    "NavigationState",
    "Navigator",
    "Number",
    "OpenpyxlReader",
    "OutOfRange",
    "Profile",
    "Row",
    "RowCache",
    "RowSource",
    "SearchEngine",
    "SearchMatch",
    "Sheet",
    "SheetNotFound",
    "SheetReader",
    "SourceReadFailure",
    "TableNotFound",
    "Text",
    "UnreadableWorkbook",
    "ViewerSettings",
    "ViewportWindow",
    "Workbook",
    "XlsxViewer",
    "XlsxViewerError",
    "load_settings",
    "load_workbook",
    "open_row_source",
    "resolve_action",
]
