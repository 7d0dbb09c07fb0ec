"""Case-insensitive substring search over a sheet with cyclic match navigation."""

import time
from dataclasses import dataclass

from .common import PROGRESS_INTERVAL, CancelToken, ProgressCallback
from .exceptions import SourceReadFailure
from .logger import get_logger
from .row_source import RowSource

logger = get_logger(__name__)


def find_folded(text: str, needle: str) -> tuple[int, int] | None:
    """Find a case-folded ``needle`` in ``text``, ignoring case.

    The span is in ``text`` itself, also where folding changes a character's
    length ("ß" folds to "ss").
    """
    folded = text.casefold()
    start = folded.find(needle)
    if start < 0:
        return None
    end = start + len(needle)
    if len(folded) == len(text):
        return start, end

    # Folded position -> position of the character it came from
    origin = [idx for idx, char in enumerate(text) for _ in char.casefold()]
    return origin[start], origin[end - 1] + 1


@dataclass(frozen=True)
class SearchMatch:
    """A matching cell and the span of the query within its text."""

    sheet_index: int
    row: int
    column: int
    start: int
    end: int


class SearchEngine:
    """Holds the active match set of the current search.

    Matches are ordered row-major (top to bottom, then left to right).
    ``next_match``/``prev_match`` wrap around at both ends.
    """

    def __init__(self) -> None:
        self.query: str | None = None
        self.matches: list[SearchMatch] = []
        self.read_error: SourceReadFailure | None = None

    @property
    def match_count(self) -> int:
        return len(self.matches)

    @property
    def active(self) -> bool:
        return bool(self.matches)

    def scan(
        self,
        query: str,
        source: RowSource,
        sheet_index: int = 0,
        show_formulas: bool = False,
        progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
    ) -> list[SearchMatch]:
        """Find every cell whose text contains ``query``, ignoring case.

        Does not touch the active match set, so it is safe to run on a worker
        thread. For lazy sources every row is streamed in order.

        Args:
            query: Substring to look for. An empty query matches nothing.
            source: Rows of the sheet to scan.
            sheet_index: Recorded in every match.
            show_formulas: Match formula source instead of the displayed result.
            progress: Called with (rows scanned, total rows).
            cancel: Checked before each row; raises ``Cancelled`` when set.

        Returns:
            Matches in row-major order. If the source fails mid-scan, the
            matches found so far are returned and ``read_error`` is set.
        """
        self.read_error = None
        if not query:
            return []

        needle = query.casefold()
        total = source.row_count()
        matches: list[SearchMatch] = []
        started = time.perf_counter()

        for row_idx in range(total):
            if cancel is not None:
                cancel.raise_if_cancelled()
            try:
                row = source.get_row(row_idx, cancel=cancel)
            except SourceReadFailure as e:
                self.read_error = e
                logger.warning("Search stopped at row %d: %s", row_idx + 1, e)
                break

            for col_idx, cell in enumerate(row):
                text = cell.text(show_formulas)
                if not text:
                    continue
                span = find_folded(text, needle)
                if span is not None:
                    matches.append(SearchMatch(sheet_index, row_idx, col_idx, *span))

            if progress is not None and (row_idx + 1) % PROGRESS_INTERVAL == 0:
                progress(row_idx + 1, total)

        if progress is not None and total % PROGRESS_INTERVAL:
            progress(total, total)

        logger.debug(
            "Search for %r found %d matches in %d rows (%.3fs)",
            query,
            len(matches),
            total,
            time.perf_counter() - started,
        )
        return matches

    def search(
        self,
        query: str,
        source: RowSource,
        sheet_index: int = 0,
        show_formulas: bool = False,
        progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
    ) -> list[SearchMatch]:
        """Scan and make the result the active match set."""
        matches = self.scan(query, source, sheet_index, show_formulas, progress, cancel)
        self.activate(query, matches)
        return matches

    def activate(self, query: str, matches: list[SearchMatch]) -> None:
        """Replace the active match set. The match cursor restarts at the first match."""
        self.query = query
        self.matches = list(matches)

    def clear(self) -> None:
        self.query = None
        self.matches = []

    def next_index(self, current_index: int) -> int:
        self._ensure_active()
        return (current_index + 1) % len(self.matches)

    def prev_index(self, current_index: int) -> int:
        self._ensure_active()
        return (current_index - 1 + len(self.matches)) % len(self.matches)

    def next_match(self, current_index: int) -> SearchMatch:
        return self.matches[self.next_index(current_index)]

    def prev_match(self, current_index: int) -> SearchMatch:
        return self.matches[self.prev_index(current_index)]

    def _ensure_active(self) -> None:
        if not self.matches:
            raise LookupError("No active search matches")
