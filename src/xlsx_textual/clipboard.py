"""Copy cells and rows to the system clipboard."""

import subprocess
import sys

from .exceptions import ClipboardFailure
from .model import CellValue, Row


def clipboard_command() -> list[str]:
    if sys.platform == "darwin":
        return ["pbcopy"]
    return ["xclip", "-selection", "clipboard"]


def copy_text(text: str) -> None:
    """Send text to the clipboard tool.

    Raises:
        ClipboardFailure: The tool is missing or exits with an error.
    """
    command = clipboard_command()
    try:
        subprocess.run(command, input=text, text=True, check=True, timeout=5)
    except FileNotFoundError as e:
        raise ClipboardFailure(f"Clipboard tool not found: {command[0]}") from e
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired) as e:
        raise ClipboardFailure(f"Clipboard tool failed: {e}") from e


def copy_cell(cell: CellValue, show_formulas: bool = False) -> str:
    """Copy one cell and return the copied text."""
    text = cell.text(show_formulas)
    copy_text(text)
    return text


def copy_row(row: Row, show_formulas: bool = False) -> str:
    """Copy one row as tab-separated text and return it."""
    text = "\t".join(cell.text(show_formulas) for cell in row)
    copy_text(text)
    return text
