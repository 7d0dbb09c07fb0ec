"""Cursor, viewport, sheet and search state, and the actions that change it.

``NavigationState`` is one explicit value owned by the session. Every
action handler receives it, mutates it in place and returns an optional
status message. A handler either changes the state or is a no-op that
returns None (for example moving up from the first row).
"""

import re
from dataclasses import dataclass, field
from enum import Enum

from openpyxl.utils import column_index_from_string

from .common import CancelToken, ProgressCallback
from .exceptions import InvalidTarget, SourceReadFailure
from .logger import get_logger
from .model import Row, Sheet, Workbook, cell_ref, empty_row
from .search import SearchEngine, SearchMatch

logger = get_logger(__name__)

_ROW_TARGET = re.compile(r"^\d+$")
_CELL_TARGET = re.compile(r"^\$?([A-Za-z]{1,3})\$?(\d+)$")
_PAIR_TARGET = re.compile(r"^(\d+)\s*,\s*(\d+)$")


class Action(str, Enum):
    """Actions interpreted by the navigator."""

    MOVE_UP = "move_up"
    MOVE_DOWN = "move_down"
    MOVE_LEFT = "move_left"
    MOVE_RIGHT = "move_right"
    PAGE_UP = "page_up"
    PAGE_DOWN = "page_down"
    HALF_PAGE_UP = "half_page_up"
    HALF_PAGE_DOWN = "half_page_down"
    JUMP_TOP = "jump_top"
    JUMP_BOTTOM = "jump_bottom"
    JUMP_ROW_START = "jump_row_start"
    JUMP_ROW_END = "jump_row_end"
    JUMP_TO_CELL = "jump_to_cell"
    NEXT_SHEET = "next_sheet"
    PREV_SHEET = "prev_sheet"
    SEARCH = "search"
    NEXT_MATCH = "next_match"
    PREV_MATCH = "prev_match"
    SELECT_ROW = "select_row"
    CLEAR_SELECTION = "clear_selection"
    TOGGLE_FORMULAS = "toggle_formulas"


NAVIGATION_ACTIONS = frozenset(action.value for action in Action)


@dataclass
class ViewportWindow:
    """The rows and columns currently on screen."""

    first_row: int = 0
    first_column: int = 0
    row_count: int = 1
    column_count: int = 1

    @property
    def last_row(self) -> int:
        return self.first_row + self.row_count - 1

    @property
    def last_column(self) -> int:
        return self.first_column + self.column_count - 1

    def contains(self, row: int, column: int) -> bool:
        return self.first_row <= row <= self.last_row and self.first_column <= column <= self.last_column


@dataclass
class NavigationState:
    """Everything the session knows about where the user is."""

    sheet_index: int = 0
    row: int = 0
    column: int = 0
    selection_anchor: int | None = None
    search_query: str | None = None
    match_index: int | None = None
    show_formulas: bool = False
    viewport: ViewportWindow = field(default_factory=ViewportWindow)

    @property
    def cursor(self) -> tuple[int, int]:
        return self.row, self.column


def _clamp(value: int, count: int) -> int:
    return max(0, min(value, count - 1))


def parse_target(target: str, row_count: int, column_count: int, current_column: int = 0) -> tuple[int, int]:
    """Parse a jump target into a 0-based (row, column).

    Accepted forms (all 1-based):
    - ``"500"`` - row 500, current column
    - ``"A50"`` - column A, row 50
    - ``"10,5"`` - row 10, column 5

    Raises:
        InvalidTarget: The target cannot be parsed or is outside the sheet.
    """
    text = target.strip()

    if _ROW_TARGET.match(text):
        row, column = int(text) - 1, current_column
    elif match := _CELL_TARGET.match(text):
        letters, digits = match.groups()
        try:
            column = column_index_from_string(letters.upper()) - 1
        except ValueError:
            raise InvalidTarget(target, f"unknown column {letters}") from None
        row = int(digits) - 1
    elif match := _PAIR_TARGET.match(text):
        row, column = int(match.group(1)) - 1, int(match.group(2)) - 1
    else:
        raise InvalidTarget(target, "expected a row number, a cell like A50, or row,column")

    if not 0 <= row < row_count:
        raise InvalidTarget(target, f"row must be between 1 and {row_count}")
    if not 0 <= column < column_count:
        raise InvalidTarget(target, f"column must be between 1 and {column_count}")
    return row, column


class Navigator:
    """Interprets actions against a ``NavigationState`` for one workbook.

    Args:
        workbook: The opened, read-only workbook.
        search: Search engine holding the active match set.
    """

    def __init__(self, workbook: Workbook, search: SearchEngine | None = None) -> None:
        self.workbook = workbook
        self.search = search or SearchEngine()
        self._handlers = {
            Action.MOVE_UP: lambda state: self.move(state, -1, 0),
            Action.MOVE_DOWN: lambda state: self.move(state, 1, 0),
            Action.MOVE_LEFT: lambda state: self.move(state, 0, -1),
            Action.MOVE_RIGHT: lambda state: self.move(state, 0, 1),
            Action.PAGE_UP: lambda state: self.page(state, -1),
            Action.PAGE_DOWN: lambda state: self.page(state, 1),
            Action.HALF_PAGE_UP: lambda state: self.page(state, -1, half=True),
            Action.HALF_PAGE_DOWN: lambda state: self.page(state, 1, half=True),
            Action.JUMP_TOP: self.jump_top,
            Action.JUMP_BOTTOM: self.jump_bottom,
            Action.JUMP_ROW_START: self.jump_row_start,
            Action.JUMP_ROW_END: self.jump_row_end,
            Action.NEXT_SHEET: lambda state: self.switch_sheet(state, 1),
            Action.PREV_SHEET: lambda state: self.switch_sheet(state, -1),
            Action.NEXT_MATCH: self.next_match,
            Action.PREV_MATCH: self.prev_match,
            Action.SELECT_ROW: self.select_row,
            Action.CLEAR_SELECTION: self.clear_selection,
            Action.TOGGLE_FORMULAS: self.toggle_formulas,
        }

    @staticmethod
    def handles(action: str) -> bool:
        return action in NAVIGATION_ACTIONS

    def sheet(self, state: NavigationState) -> Sheet:
        return self.workbook[state.sheet_index]

    def dispatch(self, state: NavigationState, action: Action | str, argument: str | None = None) -> str | None:
        """Apply an action and return a status message, if any.

        ``jump_to_cell`` and ``search`` take their target/query as ``argument``.

        Raises:
            ValueError: Unknown action, or a missing argument.
            InvalidTarget: ``jump_to_cell`` with a bad target.
        """
        action = Action(action)
        if action in (Action.JUMP_TO_CELL, Action.SEARCH):
            if argument is None:
                raise ValueError(f"Action {action.value} needs an argument")
            if action == Action.JUMP_TO_CELL:
                return self.jump_to_cell(state, argument)
            return self.start_search(state, argument)
        return self._handlers[action](state)

    # Cursor movement
    def move(self, state: NavigationState, d_row: int, d_column: int) -> str | None:
        sheet = self.sheet(state)
        row = _clamp(state.row + d_row, sheet.row_count)
        column = _clamp(state.column + d_column, sheet.column_count)
        if (row, column) == state.cursor:
            return None
        self._set_cursor(state, row, column)
        return None

    def page(self, state: NavigationState, direction: int, half: bool = False) -> str | None:
        rows = state.viewport.row_count
        step = max(1, rows // 2) if half else max(1, rows)
        return self.move(state, direction * step, 0)

    def jump_top(self, state: NavigationState) -> str | None:
        return self.move(state, -state.row, 0)

    def jump_bottom(self, state: NavigationState) -> str | None:
        return self.move(state, self.sheet(state).row_count - 1 - state.row, 0)

    def jump_row_start(self, state: NavigationState) -> str | None:
        return self.move(state, 0, -state.column)

    def jump_row_end(self, state: NavigationState) -> str | None:
        return self.move(state, 0, self.sheet(state).column_count - 1 - state.column)

    def jump_to_cell(self, state: NavigationState, target: str) -> str:
        """Move the cursor to a target such as ``"500"``, ``"A50"`` or ``"10,5"``.

        Raises:
            InvalidTarget: The state is left untouched.
        """
        sheet = self.sheet(state)
        row, column = parse_target(target, sheet.row_count, sheet.column_count, state.column)
        self._set_cursor(state, row, column)
        return f"Jumped to {cell_ref(row, column)}"

    # Sheets
    def switch_sheet(self, state: NavigationState, offset: int) -> str:
        """Cycle through sheets. Cursor, viewport, selection and search are reset."""
        count = len(self.workbook)
        state.sheet_index = (state.sheet_index + offset) % count
        state.row = state.column = 0
        state.viewport.first_row = state.viewport.first_column = 0
        state.selection_anchor = None
        self._clear_search(state)
        sheet = self.sheet(state)
        return f"Sheet {state.sheet_index + 1}/{count}: {sheet.name}"

    # Search
    def start_search(
        self,
        state: NavigationState,
        query: str,
        progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
    ) -> str:
        """Search the current sheet and move to the first match."""
        matches = self.search.scan(
            query,
            self.sheet(state).source,
            state.sheet_index,
            state.show_formulas,
            progress,
            cancel,
        )
        return self.apply_matches(state, query, matches)

    def apply_matches(self, state: NavigationState, query: str, matches: list[SearchMatch]) -> str:
        """Make ``matches`` the active match set and move to the first one.

        With no matches the active search is cleared and the cursor stays put.
        """
        self.search.activate(query, matches)
        if not matches:
            state.search_query = None
            state.match_index = None
            return f"No matches for {query!r}" if query else "Empty search"

        state.search_query = query
        self._goto_match(state, 0)
        return f"Match 1/{len(matches)} for {query!r}"

    def next_match(self, state: NavigationState) -> str | None:
        if not self._search_active(state):
            return "No active search"
        self._goto_match(state, self.search.next_index(state.match_index))
        return f"Match {state.match_index + 1}/{self.search.match_count}"

    def prev_match(self, state: NavigationState) -> str | None:
        if not self._search_active(state):
            return "No active search"
        self._goto_match(state, self.search.prev_index(state.match_index))
        return f"Match {state.match_index + 1}/{self.search.match_count}"

    # Selection & display
    def select_row(self, state: NavigationState) -> str:
        state.selection_anchor = state.row
        return f"Selected row {state.row + 1}"

    def clear_selection(self, state: NavigationState) -> str | None:
        if state.selection_anchor is None:
            return None
        state.selection_anchor = None
        return "Selection cleared"

    def toggle_formulas(self, state: NavigationState) -> str:
        state.show_formulas = not state.show_formulas
        return "Showing formulas" if state.show_formulas else "Showing values"

    # Viewport
    def resize(self, state: NavigationState, rows: int, columns: int) -> None:
        """Set the viewport size and keep the cursor visible."""
        state.viewport.row_count = max(1, rows)
        state.viewport.column_count = max(1, columns)
        self._scroll_into_view(state)

    def visible_rows(
        self,
        state: NavigationState,
        progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
    ) -> tuple[list[Row], SourceReadFailure | None]:
        """Fetch the rows inside the viewport.

        A read failure does not abort the fill: rows from the failing one on
        are returned empty and the failure is handed back for reporting.
        """
        source = self.sheet(state).source
        start = state.viewport.first_row
        stop = min(start + state.viewport.row_count, source.row_count())
        try:
            return source.get_rows(start, stop, progress, cancel), None
        except SourceReadFailure as e:
            width = source.column_count()
            rows = []
            for index in range(start, stop):
                if index >= e.row:
                    rows.append(empty_row(width))
                    continue
                try:
                    rows.append(source.get_row(index, cancel=cancel))
                except SourceReadFailure:
                    rows.append(empty_row(width))
            return rows, e

    def _set_cursor(self, state: NavigationState, row: int, column: int) -> None:
        state.row = row
        state.column = column
        self._scroll_into_view(state)

    def _scroll_into_view(self, state: NavigationState) -> None:
        """Shift the viewport by exactly the amount the cursor lies outside it."""
        vp = state.viewport
        if state.row < vp.first_row:
            vp.first_row = state.row
        elif state.row > vp.last_row:
            vp.first_row = state.row - vp.row_count + 1

        if state.column < vp.first_column:
            vp.first_column = state.column
        elif state.column > vp.last_column:
            vp.first_column = state.column - vp.column_count + 1

    def _goto_match(self, state: NavigationState, index: int) -> None:
        match = self.search.matches[index]
        state.match_index = index
        self._set_cursor(state, match.row, match.column)

    def _search_active(self, state: NavigationState) -> bool:
        return self.search.active and state.match_index is not None

    def _clear_search(self, state: NavigationState) -> None:
        self.search.clear()
        state.search_query = None
        state.match_index = None
