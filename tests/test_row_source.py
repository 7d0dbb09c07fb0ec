import pytest

from xlsx_textual.common import CancelToken
from xlsx_textual.exceptions import Cancelled, OutOfRange, SourceReadFailure
from xlsx_textual.model import EMPTY, Text
from xlsx_textual.row_source import EagerRowSource, LazyRowSource, RowCache, open_row_source

from .conftest import CountingReader, grid


class TestRowCache:
    def test_evicts_least_recently_inserted(self):
        cache = RowCache(3)
        for idx in range(4):
            cache.put(idx, (Text(str(idx)),))

        assert 0 not in cache
        assert [idx in cache for idx in (1, 2, 3)] == [True, True, True]
        assert len(cache) == 3
        assert cache.evictions == 1

    def test_access_refreshes_recency(self):
        cache = RowCache(3)
        for idx in range(3):
            cache.put(idx, (Text(str(idx)),))

        assert cache.get(0) == (Text("0"),)
        cache.put(3, (Text("3"),))

        assert cache.contains(0)
        assert not cache.contains(1)

    def test_never_exceeds_capacity(self):
        cache = RowCache(5)
        for idx in range(100):
            cache.put(idx % 17, (Text(str(idx)),))
            assert len(cache) <= 5

    def test_put_existing_replaces_row(self):
        cache = RowCache(2)
        cache.put(1, (Text("old"),))
        cache.put(1, (Text("new"),))
        assert len(cache) == 1
        assert cache.get(1) == (Text("new"),)

    def test_miss_returns_none(self):
        assert RowCache(2).get(9) is None

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            RowCache(0)


class TestOpenRowSource:
    def test_small_sheet_is_eager(self):
        reader = CountingReader({"S": grid(999, 2)})
        source = open_row_source(reader, "S", threshold=1000)
        assert isinstance(source, EagerRowSource)
        assert source.kind == "eager"

    def test_threshold_sheet_is_lazy(self):
        reader = CountingReader({"S": grid(1000, 2)})
        source = open_row_source(reader, "S", threshold=1000)
        assert isinstance(source, LazyRowSource)
        assert source.row_count() == 1000
        assert reader.iterations["S"] == 0

    def test_eager_reads_once_at_open(self):
        reader = CountingReader({"S": grid(50, 3)})
        source = open_row_source(reader, "S")
        assert reader.iterations["S"] == 1

        for idx in (49, 0, 25, 3, 49):
            source.get_row(idx)
        assert reader.iterations["S"] == 1
        assert len(reader.yielded["S"]) == 50

    def test_max_rows_limits_row_count(self):
        reader = CountingReader({"S": grid(3000, 2)})
        source = open_row_source(reader, "S", threshold=1000, max_rows=200)
        assert source.kind == "eager"
        assert source.row_count() == 200

    def test_eager_and_lazy_return_same_rows(self):
        data = {"S": grid(120, 4)}
        eager = open_row_source(CountingReader(data), "S", threshold=1000)
        lazy = open_row_source(CountingReader(data), "S", threshold=10, cache_capacity=7)

        for idx in (0, 119, 5, 60, 59, 3, 118, 0):
            assert eager.get_row(idx) == lazy.get_row(idx)

    def test_eager_read_error_keeps_rows_before_failure(self):
        reader = CountingReader({"S": grid(20, 2)}, fail_at={"S": 12})
        source = open_row_source(reader, "S")

        assert source.row_count() == 20
        assert source.get_row(11) == (Text("r12c1"), Text("r12c2"))
        assert source.get_row(12) == (EMPTY, EMPTY)
        assert source.read_error.row == 12


class TestLazyRowSource:
    @pytest.fixture
    def reader(self):
        return CountingReader({"Data": grid(2000, 3)})

    @pytest.fixture
    def source(self, reader):
        return open_row_source(reader, "Data", threshold=1000, cache_capacity=2000)

    def test_streams_each_row_once(self, reader, source):
        for idx in range(20):
            source.get_row(idx)
        row = source.get_row(1500)

        assert row[0] == Text("r1501c1")
        assert reader.yielded["Data"] == list(range(1501))
        assert reader.iterations["Data"] == 1

    def test_cached_row_is_not_refetched(self, reader, source):
        source.get_row(1500)
        fetched = source.fetched

        assert source.get_row(1500)[2] == Text("r1501c3")
        assert source.fetched == fetched
        assert len(reader.yielded["Data"]) == 1501
        assert source.cache.contains(1500)

    def test_backward_miss_restarts_iterator(self, reader):
        source = open_row_source(reader, "Data", threshold=1000, cache_capacity=5)
        source.get_row(50)
        assert not source.cache.contains(10)

        assert source.get_row(10)[0] == Text("r11c1")
        assert source.restarts == 1
        assert reader.iterations["Data"] == 2

    def test_backward_hit_does_not_restart(self, reader, source):
        source.get_row(50)
        source.get_row(10)
        assert source.restarts == 0
        assert reader.iterations["Data"] == 1

    def test_out_of_range(self, source):
        with pytest.raises(OutOfRange):
            source.get_row(2000)
        with pytest.raises(OutOfRange):
            source.get_row(-1)

    def test_get_rows_clamps_to_sheet(self, source):
        rows = source.get_rows(1995, 2010)
        assert len(rows) == 5
        assert rows[-1][0] == Text("r2000c1")

    def test_trimmed_trailing_rows_are_empty(self):
        reader = CountingReader({"S": grid(3, 2)})
        source = LazyRowSource(reader, "S", row_count=6, column_count=2, cache=RowCache(10))
        assert source.get_row(5) == (EMPTY, EMPTY)
        assert source.get_row(2) == (Text("r3c1"), Text("r3c2"))

    def test_read_failure(self):
        reader = CountingReader({"S": grid(1500, 2)}, fail_at={"S": 1200})
        source = open_row_source(reader, "S", threshold=1000)

        with pytest.raises(SourceReadFailure) as excinfo:
            source.get_row(1300)

        assert excinfo.value.row == 1200
        assert excinfo.value.sheet == "S"
        assert source.read_error is excinfo.value
        # rows before the failure are still served
        assert source.get_row(1199)[0] == Text("r1200c1")

    def test_failed_row_is_not_read_again(self):
        reader = CountingReader({"S": grid(1500, 2)}, fail_at={"S": 1200})
        source = open_row_source(reader, "S", threshold=1000, cache_capacity=5)
        with pytest.raises(SourceReadFailure):
            source.get_row(1300)

        for index in (1200, 1250, 1499):
            with pytest.raises(SourceReadFailure) as excinfo:
                source.get_row(index)
            assert excinfo.value is source.read_error

        assert reader.iterations["S"] == 1
        assert source.restarts == 0

        # earlier rows evicted from the cache are streamed again
        assert source.get_row(3)[0] == Text("r4c1")
        assert reader.iterations["S"] == 2

    def test_progress_reported_during_long_fetch(self, source):
        calls = []
        source.get_row(1199, progress=lambda done, total: calls.append((done, total)))
        assert calls == [(500, 1200), (1000, 1200), (1200, 1200)]

    def test_cancelled_fetch(self, source):
        token = CancelToken()
        token.cancel()
        with pytest.raises(Cancelled):
            source.get_row(1500, cancel=token)

    def test_close_drops_cache(self, source):
        source.get_row(10)
        source.close()
        assert len(source.cache) == 0
