"""Row access for sheets, fully resident or fetched on demand.

Small sheets are materialized when they are opened (``EagerRowSource``).
Large sheets keep the reader's forward-only row iterator plus a bounded LRU
cache (``LazyRowSource``). Both expose the same ``row_count``/``get_row``
contract so callers never care which one they hold.
"""

import threading
from collections import OrderedDict
from collections.abc import Iterator
from dataclasses import dataclass
from itertools import count, islice
from typing import Union

from .common import CACHE_CAPACITY, LAZY_THRESHOLD, PROGRESS_INTERVAL, CancelToken, ProgressCallback
from .exceptions import OutOfRange, SourceReadFailure
from .logger import get_logger
from .model import Row, empty_row
from .reader import SheetReader

logger = get_logger(__name__)


@dataclass
class CacheEntry:
    """A cached row and the sequence number of its last access."""

    row: Row
    sequence: int


class RowCache:
    """Fixed-capacity, least-recently-used cache of rows keyed by row index.

    An entry's presence says nothing about its neighbours: rows are cached
    one at a time and evicted one at a time.
    """

    def __init__(self, capacity: int = CACHE_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"Cache capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._entries: OrderedDict[int, CacheEntry] = OrderedDict()
        self._sequence = count()
        self.evictions = 0

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, index: int) -> Row | None:
        """Return the cached row and mark it as most recently used."""
        entry = self._entries.get(index)
        if entry is None:
            return None
        entry.sequence = next(self._sequence)
        self._entries.move_to_end(index)
        return entry.row

    def put(self, index: int, row: Row) -> None:
        """Insert or refresh a row, evicting the least recently used one when full."""
        if index in self._entries:
            self._entries[index] = CacheEntry(row, next(self._sequence))
            self._entries.move_to_end(index)
            return

        if len(self._entries) >= self.capacity:
            # Entries are kept in access order, so the first one is the oldest
            self._entries.popitem(last=False)
            self.evictions += 1
        self._entries[index] = CacheEntry(row, next(self._sequence))

    def contains(self, index: int) -> bool:
        """Membership test that does not count as an access."""
        return index in self._entries

    __contains__ = contains

    def clear(self) -> None:
        self._entries.clear()


class EagerRowSource:
    """All rows of a sheet, read once when the sheet is opened."""

    kind = "eager"

    def __init__(
        self,
        name: str,
        rows: list[Row],
        column_count: int,
        read_error: SourceReadFailure | None = None,
    ) -> None:
        self.name = name
        self._rows = rows
        self._column_count = column_count
        self.read_error = read_error

    def row_count(self) -> int:
        return len(self._rows)

    def column_count(self) -> int:
        return self._column_count

    def get_row(
        self,
        index: int,
        progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
    ) -> Row:
        if not 0 <= index < len(self._rows):
            raise OutOfRange(index, len(self._rows))
        return self._rows[index]

    def get_rows(
        self,
        start: int,
        stop: int,
        progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
    ) -> list[Row]:
        stop = min(stop, len(self._rows))
        return self._rows[max(start, 0) : stop]

    def close(self) -> None:
        pass


class LazyRowSource:
    """Rows streamed on demand from the reader and kept in a ``RowCache``.

    On a cache miss the iterator moves forward from its current position to
    the requested row, caching every row it passes. A request behind the
    iterator restarts it from the first row. Once a read fails, requests for
    that row or later raise the recorded ``read_error`` without touching the
    reader again. Access is serialized with a lock
    so a worker thread and the session thread never share the iterator.
    """

    kind = "lazy"

    def __init__(
        self,
        reader: SheetReader,
        name: str,
        row_count: int,
        column_count: int,
        cache: RowCache | None = None,
    ) -> None:
        self.reader = reader
        self.name = name
        self._row_count = row_count
        self._column_count = column_count
        self.cache = cache if cache is not None else RowCache()

        self._iterator: Iterator[Row] | None = None
        self._position = 0  # index of the row the iterator yields next
        self._exhausted = False
        self._lock = threading.RLock()

        self.restarts = 0
        self.fetched = 0
        self.read_error: SourceReadFailure | None = None

    def row_count(self) -> int:
        return self._row_count

    def column_count(self) -> int:
        return self._column_count

    def get_row(
        self,
        index: int,
        progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
    ) -> Row:
        """Return the row at ``index``, streaming from the reader on a cache miss.

        Args:
            index: 0-based row index.
            progress: Called with (rows streamed, rows to stream) every
                ``PROGRESS_INTERVAL`` rows of a long stream.
            cancel: Checked before every row read.

        Raises:
            OutOfRange: ``index`` is outside the sheet.
            SourceReadFailure: The reader failed while streaming, now or at
                an earlier row.
            Cancelled: ``cancel`` was set before the row was reached.
        """
        if not 0 <= index < self._row_count:
            raise OutOfRange(index, self._row_count)

        with self._lock:
            row = self.cache.get(index)
            if row is not None:
                return row

            # Rows from a failed read on are never streamed again
            if self.read_error is not None and index >= self.read_error.row:
                raise self.read_error

            if self._iterator is None or index < self._position:
                self._restart()

            total = index - self._position + 1
            done = 0
            while self._position <= index:
                if cancel is not None:
                    cancel.raise_if_cancelled()
                row = self._read_next()
                self.cache.put(self._position, row)
                self._position += 1
                self.fetched += 1
                done += 1
                if progress is not None and done % PROGRESS_INTERVAL == 0:
                    progress(done, total)

            if progress is not None and total > PROGRESS_INTERVAL and total % PROGRESS_INTERVAL:
                progress(total, total)
            return row

    def get_rows(
        self,
        start: int,
        stop: int,
        progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
    ) -> list[Row]:
        """Return rows ``start`` up to (not including) ``stop``, clamped to the sheet."""
        stop = min(stop, self._row_count)
        start = max(start, 0)
        if start >= stop:
            return []

        with self._lock:
            # One progress stream for the whole batch: the first miss does the long read
            rows = [self.get_row(start, progress, cancel)]
            for index in range(start + 1, stop):
                rows.append(self.get_row(index, None, cancel))
            return rows

    def close(self) -> None:
        with self._lock:
            logger.debug(
                "Closing %s: %d rows fetched, %d restarts, %d cache evictions",
                self.name,
                self.fetched,
                self.restarts,
                self.cache.evictions,
            )
            self._iterator = None
            self.cache.clear()

    def _restart(self) -> None:
        if self._iterator is not None:
            self.restarts += 1
            logger.debug("Restarting row iterator of %s at row %d", self.name, self._position)
        self._iterator = iter(self.reader.iter_rows(self.name))
        self._position = 0
        self._exhausted = False

    def _read_next(self) -> Row:
        if self._exhausted:
            return empty_row(self._column_count)
        try:
            return next(self._iterator)
        except StopIteration:
            # Trailing rows trimmed by the reader are empty rows
            self._exhausted = True
            return empty_row(self._column_count)
        except Exception as e:
            position = self._position
            self._iterator = None
            logger.warning("Reading row %d of %s failed: %s", position + 1, self.name, e)
            self.read_error = SourceReadFailure(self.name, position, e)
            raise self.read_error from e


RowSource = Union[EagerRowSource, LazyRowSource]


def open_row_source(
    reader: SheetReader,
    name: str,
    threshold: int = LAZY_THRESHOLD,
    cache_capacity: int = CACHE_CAPACITY,
    max_rows: int = 0,
) -> RowSource:
    """Open a sheet, choosing eager or lazy access by its row count.

    Args:
        reader: The row iterator capability.
        name: Sheet name as known to the reader.
        threshold: Sheets with fewer rows than this are materialized.
        cache_capacity: Row cache size for lazy sheets.
        max_rows: Show at most this many rows (0 = unlimited).
    """
    row_count, column_count = reader.dimensions(name)
    if max_rows > 0:
        row_count = min(row_count, max_rows)

    if row_count < threshold:
        rows: list[Row] = []
        error = None
        try:
            rows.extend(islice(reader.iter_rows(name), row_count))
        except Exception as e:
            error = SourceReadFailure(name, len(rows), e)
            logger.warning("Reading %s stopped at row %d: %s", name, len(rows) + 1, e)
        # The reader may trim trailing empty rows
        rows.extend(empty_row(column_count) for _ in range(row_count - len(rows)))
        logger.debug("Opened %s eagerly (%d rows)", name, row_count)
        return EagerRowSource(name, rows, column_count, error)

    logger.debug("Opened %s lazily (%d rows, cache %d)", name, row_count, cache_capacity)
    return LazyRowSource(reader, name, row_count, column_count, RowCache(cache_capacity))
