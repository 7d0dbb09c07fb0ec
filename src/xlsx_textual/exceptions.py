"""Exception classes for the spreadsheet viewer.

Exception Hierarchy:
    XlsxViewerError (base)
    ├── OutOfRange
    ├── InvalidTarget
    ├── SheetNotFound
    ├── TableNotFound
    ├── SourceReadFailure
    ├── ClipboardFailure
    ├── ConfigError
    ├── Cancelled
    └── UnreadableWorkbook

Only SheetNotFound, TableNotFound, ConfigError and UnreadableWorkbook are fatal, and only when
raised at startup. Everything raised inside an interactive session ends up
as a transient status message.
"""


class XlsxViewerError(Exception):
    """Base exception for all viewer errors."""


class OutOfRange(XlsxViewerError, IndexError):
    """A row or column index lies outside the sheet bounds."""

    def __init__(self, index: int, limit: int, axis: str = "row") -> None:
        self.index = index
        self.limit = limit
        self.axis = axis
        super().__init__(f"{axis} index {index} out of range (0..{limit - 1})")


class InvalidTarget(XlsxViewerError, ValueError):
    """A jump target could not be parsed or points outside the sheet."""

    def __init__(self, target: str, reason: str) -> None:
        self.target = target
        self.reason = reason
        super().__init__(f"Invalid target {target!r}: {reason}")


class SheetNotFound(XlsxViewerError, LookupError):
    """The requested sheet name or 1-based index does not exist."""

    def __init__(self, sheet: str, available: list[str] | None = None) -> None:
        self.sheet = sheet
        self.available = available or []
        message = f"Sheet not found: {sheet}"
        if self.available:
            message += f" (available: {', '.join(self.available)})"
        super().__init__(message)


class TableNotFound(XlsxViewerError, LookupError):
    """The requested named table does not exist in the workbook."""

    def __init__(self, table: str) -> None:
        self.table = table
        super().__init__(f"Table not found: {table}")


class SourceReadFailure(XlsxViewerError):
    """The underlying row iterator failed mid-stream."""

    def __init__(self, sheet: str, row: int, cause: BaseException | None = None) -> None:
        self.sheet = sheet
        self.row = row
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Failed to read row {row + 1} of sheet {sheet}{detail}")


class ClipboardFailure(XlsxViewerError):
    """Copying to the system clipboard failed."""


class ConfigError(XlsxViewerError):
    """The configuration file is missing, unreadable or invalid."""


class Cancelled(XlsxViewerError):
    """A long-running scan or fetch was cancelled before completion."""


class UnreadableWorkbook(XlsxViewerError):
    """The file exists but cannot be opened as a workbook."""
