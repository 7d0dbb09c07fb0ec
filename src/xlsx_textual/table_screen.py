"""Modal screens for displaying data in tables (row details and key bindings)."""

from openpyxl.utils import get_column_letter
from rich.text import Text
from textual.app import ComposeResult
from textual.screen import ModalScreen
from textual.widgets import DataTable

from .common import format_cell
from .keybindings import ACTIONS, Keymap
from .model import Formula, Row


class TableScreen(ModalScreen):
    """Base class for modal screens displaying data in a DataTable.

    Closes on q or Escape.
    """

    DEFAULT_CSS = """
        TableScreen {
            align: center middle;
        }

        TableScreen > DataTable {
            width: auto;
            height: auto;
            border: solid $primary;
            max-width: 100%;
            overflow: auto;
        }
    """

    def __init__(self, title: str = "") -> None:
        super().__init__()
        self.title = title

    def compose(self) -> ComposeResult:
        self.table = DataTable(zebra_stripes=True)
        if self.title:
            self.table.border_title = self.title
        yield self.table

    def on_mount(self) -> None:
        self.build_table()
        self.table.focus()

    def build_table(self) -> None:
        """Populate ``self.table``. Subclasses must implement this."""
        raise NotImplementedError("Subclasses must implement build_table method.")

    def on_key(self, event) -> None:
        if event.key in ("q", "escape"):
            self.app.pop_screen()
            event.stop()


class RowDetailScreen(TableScreen):
    """Modal screen to display a single row's cells one per line."""

    CSS = TableScreen.DEFAULT_CSS.replace("TableScreen", "RowDetailScreen")

    def __init__(self, ridx: int, row: Row, sheet_name: str = ""):
        super().__init__(title=f"{sheet_name} row {ridx + 1}".strip())
        self.ridx = ridx
        self.row = row

    def build_table(self) -> None:
        self.table.clear(columns=True)
        self.table.add_column("Column")
        self.table.add_column("Type")
        self.table.add_column("Value")
        self.table.add_column("Formula")

        for col_idx, cell in enumerate(self.row):
            formula = cell.source_expression if isinstance(cell, Formula) else ""
            self.table.add_row(
                Text(get_column_letter(col_idx + 1), style="bold"),
                cell.kind,
                format_cell(cell),
                Text(formula, style="yellow"),
            )

        self.table.cursor_type = "row"


class KeymapScreen(TableScreen):
    """Modal screen listing every action and its keys for the active profile."""

    CSS = TableScreen.DEFAULT_CSS.replace("TableScreen", "KeymapScreen")

    def __init__(self, keymap: Keymap):
        super().__init__(title=f"Keys ({keymap.profile.value} profile)")
        self.keymap = keymap

    def build_table(self) -> None:
        self.table.clear(columns=True)
        self.table.add_column("Action")
        self.table.add_column("Keys")
        self.table.add_column("Description")

        for action, description in ACTIONS.items():
            chords = ", ".join(str(chord) for chord in self.keymap.chords_for(action))
            style = "bold yellow" if action in self.keymap.overrides else "cyan"
            self.table.add_row(action, Text(chords or "-", style=style), description)

        self.table.cursor_type = "row"
