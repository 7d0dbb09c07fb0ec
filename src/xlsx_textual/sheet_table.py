"""SheetTable widget: paints the visible window of a sheet."""

from openpyxl.utils import get_column_letter
from rich.table import Table
from rich.text import Text
from textual.widget import Widget

from .common import COLUMN_WIDTH, MIN_COLUMN_WIDTH, ROW_LABEL_WIDTH, format_cell
from .model import Row
from .navigation import NavigationState, ViewportWindow


class SheetTable(Widget, can_focus=True):
    """Renders rows of the viewport with cursor, selection and match highlights.

    The widget holds no navigation state of its own: ``paint`` hands it the
    viewport, the rows inside it and the state to draw.
    """

    DEFAULT_CSS = """
        SheetTable {
            height: 1fr;
            width: 1fr;
        }
    """

    def __init__(self, column_width: int = COLUMN_WIDTH, auto_size: bool = False, **kwargs) -> None:
        super().__init__(**kwargs)
        self.column_width = max(MIN_COLUMN_WIDTH, column_width)
        self.auto_size = auto_size

        self.viewport = ViewportWindow()
        self.rows: list[Row] = []
        self.state = NavigationState()
        self.column_count = 0
        self.matches: set[tuple[int, int]] = set()

    def fit(self, column_count: int) -> tuple[int, int]:
        """Return how many (rows, columns) fit in the widget."""
        height = max(1, self.size.height - 1)  # header line
        if self.auto_size:
            return height, max(1, column_count)
        available = max(1, self.size.width - ROW_LABEL_WIDTH - 1)
        return height, max(1, available // (self.column_width + 1))

    def paint(
        self,
        viewport: ViewportWindow,
        rows: list[Row],
        state: NavigationState,
        column_count: int,
        matches: set[tuple[int, int]] | None = None,
    ) -> None:
        """Store what to draw and schedule a repaint."""
        self.viewport = viewport
        self.rows = rows
        self.state = state
        self.column_count = column_count
        self.matches = matches or set()
        self.refresh()

    def _cell_width(self, visible_columns: int) -> int:
        if not self.auto_size or not visible_columns:
            return self.column_width
        available = self.size.width - ROW_LABEL_WIDTH - 1
        return max(MIN_COLUMN_WIDTH, available // visible_columns - 1)

    def render(self) -> Table:
        vp = self.viewport
        first_col = vp.first_column
        last_col = min(vp.first_column + vp.column_count, self.column_count)
        columns = range(first_col, last_col)
        width = self._cell_width(len(columns))
        state = self.state

        table = Table(
            box=None,
            padding=(0, 1, 0, 0),
            show_edge=False,
            pad_edge=False,
            expand=False,
            header_style="bold",
        )
        table.add_column(Text("", justify="right"), width=ROW_LABEL_WIDTH, justify="right", style="dim")
        for col_idx in columns:
            style = "reverse bold" if col_idx == state.column else "bold"
            table.add_column(
                Text(get_column_letter(col_idx + 1), style=style, justify="center"),
                width=width,
                no_wrap=True,
                overflow="ellipsis",
            )

        for row_idx, row in enumerate(self.rows, vp.first_row):
            label_style = "reverse" if row_idx == state.row else ""
            if row_idx == state.selection_anchor:
                label_style += " red"
            cells = [Text(str(row_idx + 1), style=label_style.strip(), justify="right")]

            for col_idx in columns:
                cell = row[col_idx] if col_idx < len(row) else None
                text = format_cell(cell, state.show_formulas, width) if cell is not None else Text("")
                if row_idx == state.selection_anchor:
                    text.stylize("red")
                if (row_idx, col_idx) in self.matches:
                    text.stylize("underline")
                if (row_idx, col_idx) == state.cursor:
                    if not text.plain:
                        text = Text(" " * width)
                    text.stylize("reverse")
                cells.append(text)

            table.add_row(*cells)

        return table
