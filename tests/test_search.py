import pytest

from xlsx_textual.common import CancelToken
from xlsx_textual.exceptions import Cancelled
from xlsx_textual.model import Formula
from xlsx_textual.reader import MemoryReader
from xlsx_textual.row_source import open_row_source
from xlsx_textual.search import SearchEngine, SearchMatch

from .conftest import CountingReader, grid


@pytest.fixture
def fruit(small_workbook):
    return small_workbook[0].source


def positions(matches):
    return [(m.row, m.column) for m in matches]


def test_matches_are_row_major(fruit):
    matches = SearchEngine().scan("apple", fruit)
    assert positions(matches) == [(1, 0), (1, 2), (3, 2)]


def test_match_span(fruit):
    matches = SearchEngine().scan("APPLE", fruit)
    assert matches[2] == SearchMatch(sheet_index=0, row=3, column=2, start=7, end=12)


def test_numbers_and_booleans_match_their_text(fruit):
    engine = SearchEngine()
    assert positions(engine.scan("12", fruit)) == [(2, 1)]
    assert positions(engine.scan("0.5", fruit)) == [(4, 1)]
    assert positions(engine.scan("true", fruit)) == [(4, 2)]


def test_empty_query_matches_nothing(fruit):
    assert SearchEngine().scan("", fruit) == []


def test_sheet_index_is_recorded(fruit):
    assert {m.sheet_index for m in SearchEngine().scan("a", fruit, sheet_index=2)} == {2}


def test_formula_search_follows_display_mode():
    reader = MemoryReader({"F": [[Formula("42", "=SUM(A1:A9)")]]})
    source = open_row_source(reader, "F")
    engine = SearchEngine()

    assert positions(engine.scan("42", source)) == [(0, 0)]
    assert engine.scan("sum", source) == []
    assert positions(engine.scan("sum", source, show_formulas=True)) == [(0, 0)]


def test_search_activates_matches(fruit):
    engine = SearchEngine()
    engine.search("an", fruit)
    assert engine.query == "an"
    assert engine.active
    assert engine.match_count == 2

    engine.clear()
    assert not engine.active
    assert engine.query is None


def test_scan_does_not_touch_active_set(fruit):
    engine = SearchEngine()
    engine.search("banana", fruit)
    engine.scan("apple", fruit)
    assert engine.query == "banana"
    assert engine.match_count == 1


def test_next_and_prev_wrap(fruit):
    engine = SearchEngine()
    engine.search("apple", fruit)

    assert engine.next_index(2) == 0
    assert engine.prev_index(0) == 2
    assert engine.next_match(0) == engine.matches[1]
    assert engine.prev_match(1) == engine.matches[0]


def test_next_is_cyclic(fruit):
    engine = SearchEngine()
    engine.search("a", fruit)
    n = engine.match_count

    for start in range(n):
        idx = start
        for _ in range(n):
            idx = engine.next_index(idx)
        assert idx == start
        assert engine.prev_index(engine.next_index(start)) == start
        assert engine.next_index(engine.prev_index(start)) == start


def test_no_active_search(fruit):
    engine = SearchEngine()
    with pytest.raises(LookupError):
        engine.next_index(0)


def test_lazy_sheet_is_scanned_in_full():
    reader = CountingReader({"Big": grid(1200, 2)})
    source = open_row_source(reader, "Big", threshold=1000, cache_capacity=100)
    progress = []

    matches = SearchEngine().scan("r1200c", source, progress=lambda done, total: progress.append(done))

    assert positions(matches) == [(1199, 0), (1199, 1)]
    assert reader.yielded["Big"] == list(range(1200))
    assert progress == [500, 1000, 1200]


def test_read_failure_keeps_partial_matches():
    reader = CountingReader({"Big": grid(1200, 1)}, fail_at={"Big": 1100})
    source = open_row_source(reader, "Big", threshold=1000)
    engine = SearchEngine()

    matches = engine.scan("c1", source)

    assert len(matches) == 1100
    assert engine.read_error.row == 1100


def test_cancelled_scan_keeps_previous_matches(fruit):
    engine = SearchEngine()
    engine.search("apple", fruit)
    token = CancelToken()
    token.cancel()

    with pytest.raises(Cancelled):
        engine.search("banana", fruit, cancel=token)
    assert engine.query == "apple"
    assert engine.match_count == 3


@pytest.mark.parametrize(
    "text, query, span",
    [
        ("Straße", "STRASSE", (0, 6)),
        ("Straße", "ss", (4, 5)),
        ("İstanbul", "stan", (1, 5)),
        ("İstanbul", "bul", (5, 8)),
        ("not an APPLE", "apple", (7, 12)),
    ],
)
def test_span_is_in_the_original_text(text, query, span):
    reader = MemoryReader({"S": [[text]]})
    matches = SearchEngine().scan(query, open_row_source(reader, "S"))
    assert (matches[0].start, matches[0].end) == span
    assert text[slice(*span)].casefold() == query.casefold()
