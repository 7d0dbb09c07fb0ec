"""XlsxViewer application: the interactive session over one workbook."""

import copy
from functools import partial
from textwrap import dedent

from rich.markup import escape
from textual import work
from textual.app import App, ComposeResult
from textual.screen import ModalScreen
from textual.theme import BUILTIN_THEMES
from textual.widgets import Static, Tab, Tabs

from .clipboard import copy_cell, copy_row
from .common import CancelToken, _next
from .config import ViewerSettings
from .exceptions import Cancelled, InvalidTarget, SourceReadFailure, XlsxViewerError
from .keybindings import Keymap
from .logger import get_logger
from .model import Row, Workbook, cell_ref
from .navigation import Action, NavigationState, Navigator
from .prompt_screen import GotoScreen, SearchScreen
from .search import SearchMatch
from .sheet_table import SheetTable
from .table_screen import KeymapScreen, RowDetailScreen

logger = get_logger(__name__)


class XlsxViewer(App):
    """A Textual app to browse the sheets of one workbook."""

    HELP = dedent("""
        # xlsx viewer

        - Arrow keys / hjkl - move the cursor
        - / - search every cell, n / N - next / previous match
        - Ctrl+G or : - go to a cell (500, A50 or 10,5)
        - > / < - next / previous sheet
        - ? - show all key bindings
    """).strip()

    CSS = """
        Tabs {
            dock: top;
        }

        #status {
            dock: bottom;
            height: 1;
            background: $primary-background;
            color: $text;
            padding: 0 1;
        }
    """

    def __init__(
        self,
        workbook: Workbook,
        settings: ViewerSettings | None = None,
        sheet_index: int = 0,
        show_formulas: bool = False,
        auto_size: bool = False,
    ):
        super().__init__()
        self.workbook = workbook
        self.settings = settings or ViewerSettings()
        self.keymap: Keymap = self.settings.keymap
        self.navigator = Navigator(workbook)
        self.state = NavigationState(sheet_index=sheet_index, show_formulas=show_formulas)
        self.auto_size = auto_size

        self._fill_cancel: CancelToken | None = None
        self._search_cancel: CancelToken | None = None
        self._progress = ""
        self._reported_errors: set[tuple[str, int]] = set()

        self._app_actions = {
            "quit": self.exit,
            "search": self._open_search,
            "jump_to_cell": self._open_goto,
            "copy_cell": self._copy_cell,
            "copy_row": self._copy_row,
            "row_detail": self._view_row_detail,
            "help": self._show_keymap,
            "cycle_theme": self._cycle_theme,
        }

    def compose(self) -> ComposeResult:
        tabs = [Tab(sheet.name, id=f"sheet-{idx}") for idx, sheet in enumerate(self.workbook.sheets)]
        self.tabs = Tabs(*tabs, active=f"sheet-{self.state.sheet_index}")
        self.tabs.can_focus = False
        yield self.tabs

        self.table = SheetTable(
            column_width=self.settings.column_width,
            auto_size=self.auto_size,
            id="sheet_table",
        )
        yield self.table

        self.status = Static(id="status")
        yield self.status

    def on_mount(self) -> None:
        """Set up the app when it starts."""
        self.theme = self.settings.theme
        if len(self.workbook) == 1:
            self.tabs.display = False
        self.table.focus()

        for sheet in self.workbook.sheets:
            self._report_read_error(sheet.source.read_error)

        self.call_after_refresh(self.refresh_view)

    def on_resize(self, event) -> None:
        self.call_after_refresh(self.refresh_view)

    def on_unmount(self) -> None:
        """Stop row fills and searches still running on worker threads."""
        if self._fill_cancel is not None:
            self._fill_cancel.cancel()
        self._cancel_search()

    def on_key(self, event) -> None:
        """Resolve the key to an action and perform it."""
        if isinstance(self.screen, ModalScreen):
            return

        # Any key abandons a running search
        self._cancel_search()

        action = self.keymap.resolve(event.key)
        if action is None:
            return

        event.stop()
        event.prevent_default()
        self.perform(action)

    def on_tabs_tab_activated(self, event: Tabs.TabActivated) -> None:
        """Follow sheet changes made by clicking the tab bar."""
        if event.tab is None or not event.tab.id:
            return
        index = int(event.tab.id.removeprefix("sheet-"))
        if index != self.state.sheet_index:
            offset = index - self.state.sheet_index
            self._after_navigation(self.navigator.switch_sheet(self.state, offset))

    def perform(self, action: str) -> None:
        """Perform a logical action by name."""
        if handler := self._app_actions.get(action):
            handler()
            return

        try:
            message = self.navigator.dispatch(self.state, action)
        except XlsxViewerError as e:
            self.notify(str(e), title="Error", severity="error")
            return
        self._after_navigation(message, action)

    # View
    def refresh_view(self) -> None:
        """Fit the viewport to the widget and repaint the visible rows."""
        sheet = self.navigator.sheet(self.state)
        rows, columns = self.table.fit(sheet.column_count)
        self.navigator.resize(self.state, rows, columns)

        if self._fill_cancel is not None:
            self._fill_cancel.cancel()
        self._fill_cancel = CancelToken()
        self._fill_viewport(copy.deepcopy(self.state), self._fill_cancel)

    @work(thread=True, exclusive=True, group="fill")
    def _fill_viewport(self, snapshot: NavigationState, cancel: CancelToken) -> None:
        """Fetch the visible rows off the session thread."""
        progress = partial(self._progress_from_thread, "Loading rows")
        try:
            rows, error = self.navigator.visible_rows(snapshot, progress=progress, cancel=cancel)
        except Cancelled:
            return
        except XlsxViewerError as e:
            self.call_from_thread(self.notify, str(e), title="Load", severity="error")
            return

        if not cancel.cancelled:
            self.call_from_thread(self._paint, snapshot, rows, error)

    def _paint(self, snapshot: NavigationState, rows: list[Row], error: SourceReadFailure | None) -> None:
        sheet = self.workbook[snapshot.sheet_index]
        vp = snapshot.viewport
        matches = {
            (m.row, m.column)
            for m in self.navigator.search.matches
            if m.sheet_index == snapshot.sheet_index and vp.first_row <= m.row <= vp.last_row
        }
        self.table.paint(vp, rows, snapshot, sheet.column_count, matches)
        self._progress = ""
        self._report_read_error(error)
        self._update_status()

    def _after_navigation(self, message: str | None, action: str | None = None) -> None:
        if message:
            self.notify(message, title=(action or "sheet").replace("_", " ").title())
        active = f"sheet-{self.state.sheet_index}"
        if self.tabs.active != active:
            self.tabs.active = active
        self.refresh_view()

    def _update_status(self) -> None:
        sheet = self.navigator.sheet(self.state)
        state = self.state
        parts = [f"[b]{escape(sheet.name)}[/]"]

        if sheet.row_count and sheet.column_count:
            parts.append(cell_ref(state.row, state.column))
            offset = state.row - self.table.viewport.first_row
            if 0 <= offset < len(self.table.rows) and state.column < len(self.table.rows[offset]):
                value = self.table.rows[offset][state.column].text(state.show_formulas)
                parts.append(escape(value[:60]))

        if state.search_query is not None and state.match_index is not None:
            parts.append(f"/{escape(state.search_query)} {state.match_index + 1}/{self.navigator.search.match_count}")
        if state.selection_anchor is not None:
            parts.append(f"row {state.selection_anchor + 1} selected")
        if state.show_formulas:
            parts.append("formulas")
        if self._progress:
            parts.append(self._progress)
        parts.append(f"[dim]{sheet.row_count}x{sheet.column_count}[/]")

        self.status.update("  ".join(parts))

    def _progress_from_thread(self, label: str, done: int, total: int) -> None:
        self.call_from_thread(self._show_progress, label, done, total)

    def _show_progress(self, label: str, done: int, total: int) -> None:
        self._progress = f"{label} {done}/{total}"
        self._update_status()

    def _report_read_error(self, error: SourceReadFailure | None) -> None:
        if error is None or (error.sheet, error.row) in self._reported_errors:
            return
        self._reported_errors.add((error.sheet, error.row))
        self.notify(f"{error}. Later rows are shown empty.", title="Read Error", severity="error")

    # Search
    def _open_search(self) -> None:
        sheet = self.navigator.sheet(self.state)
        self.push_screen(SearchScreen(self.state.search_query or "", sheet.name), callback=self._start_search)

    def _start_search(self, query: str | None) -> None:
        if not query:
            return
        self._cancel_search()
        self._search_cancel = CancelToken()
        self._progress = f"Searching {query!r}"
        self._update_status()
        self._run_search(query, self.state.sheet_index, self.state.show_formulas, self._search_cancel)

    @work(thread=True, exclusive=True, group="search")
    def _run_search(self, query: str, sheet_index: int, show_formulas: bool, cancel: CancelToken) -> None:
        """Scan the sheet off the session thread; results are applied on the session thread."""
        source = self.workbook[sheet_index].source
        progress = partial(self._progress_from_thread, "Searching")
        try:
            matches = self.navigator.search.scan(query, source, sheet_index, show_formulas, progress, cancel)
        except Cancelled:
            self.call_from_thread(self._search_cancelled, query)
            return
        except XlsxViewerError as e:
            self.call_from_thread(self.notify, str(e), title="Search", severity="error")
            return
        error = self.navigator.search.read_error
        self.call_from_thread(self._finish_search, query, sheet_index, matches, error)

    def _finish_search(
        self,
        query: str,
        sheet_index: int,
        matches: list[SearchMatch],
        error: SourceReadFailure | None,
    ) -> None:
        self._progress = ""
        if sheet_index != self.state.sheet_index:
            return
        message = self.navigator.apply_matches(self.state, query, matches)
        self.notify(message, title="Search", severity="information" if matches else "warning")
        self._report_read_error(error)
        self.refresh_view()

    def _search_cancelled(self, query: str) -> None:
        self._progress = ""
        self.notify(f"Search for {query!r} cancelled", title="Search", severity="warning")
        self._update_status()

    def _cancel_search(self) -> None:
        if self._search_cancel is not None:
            self._search_cancel.cancel()
            self._search_cancel = None

    # Jump
    def _open_goto(self) -> None:
        current = cell_ref(self.state.row, self.state.column)
        self.push_screen(GotoScreen(current), callback=self._do_goto)

    def _do_goto(self, target: str | None) -> None:
        if not target:
            return
        try:
            message = self.navigator.dispatch(self.state, Action.JUMP_TO_CELL, target)
        except InvalidTarget as e:
            self.notify(str(e), title="Go to", severity="error")
            return
        self._after_navigation(message, Action.JUMP_TO_CELL.value)

    # Clipboard
    def _current_row(self, row_idx: int | None = None) -> Row | None:
        sheet = self.navigator.sheet(self.state)
        try:
            return sheet.source.get_row(self.state.row if row_idx is None else row_idx)
        except XlsxViewerError as e:
            self.notify(str(e), title="Row", severity="error")
            return None

    def _copy_cell(self) -> None:
        row = self._current_row()
        if row is None or self.state.column >= len(row):
            return
        try:
            text = copy_cell(row[self.state.column], self.state.show_formulas)
        except XlsxViewerError as e:
            self.notify(str(e), title="Clipboard", severity="warning")
            return
        self.notify(f"Copied: {escape(text[:50])}", title="Clipboard")

    def _copy_row(self) -> None:
        row_idx = self.state.selection_anchor if self.state.selection_anchor is not None else self.state.row
        row = self._current_row(row_idx)
        if row is None:
            return
        try:
            copy_row(row, self.state.show_formulas)
        except XlsxViewerError as e:
            self.notify(str(e), title="Clipboard", severity="warning")
            return
        self.notify(f"Copied row {row_idx + 1}", title="Clipboard")

    # Screens
    def _view_row_detail(self) -> None:
        row = self._current_row()
        if row is not None:
            sheet = self.navigator.sheet(self.state)
            self.push_screen(RowDetailScreen(self.state.row, row, sheet.name))

    def _show_keymap(self) -> None:
        self.push_screen(KeymapScreen(self.keymap))

    def _cycle_theme(self) -> None:
        self.theme = _next(list(BUILTIN_THEMES.keys()), self.theme)
        self.notify(f"Switched to theme: [$success]{self.theme}[/]", title="Theme")
