import pytest
from textual.widgets import Input

from xlsx_textual import clipboard
from xlsx_textual.config import ViewerSettings
from xlsx_textual.keybindings import Profile
from xlsx_textual.model import Text
from xlsx_textual.prompt_screen import GotoScreen, SearchScreen
from xlsx_textual.table_screen import KeymapScreen, RowDetailScreen
from xlsx_textual.xlsx_viewer import XlsxViewer

SIZE = (100, 30)


async def settle(app, pilot):
    """Wait until no row fill or search worker is left running."""
    await pilot.pause()
    while any(not worker.is_finished for worker in app.workers):
        await app.workers.wait_for_complete()
        await pilot.pause()


@pytest.mark.asyncio
async def test_paints_first_rows(workbook):
    app = XlsxViewer(workbook)
    async with app.run_test(size=SIZE) as pilot:
        await settle(app, pilot)

        assert app.table.viewport.first_row == 0
        assert len(app.table.rows) == 10
        assert app.table.rows[0][0] == Text("s1c1")


@pytest.mark.asyncio
async def test_arrow_keys_move_cursor(workbook):
    app = XlsxViewer(workbook)
    async with app.run_test(size=SIZE) as pilot:
        await settle(app, pilot)
        await pilot.press("down", "down", "right")
        await settle(app, pilot)

        assert app.state.cursor == (2, 1)
        assert app.table.state.cursor == (2, 1)


@pytest.mark.asyncio
async def test_vim_profile(workbook):
    app = XlsxViewer(workbook, ViewerSettings(profile=Profile.VIM))
    async with app.run_test(size=SIZE) as pilot:
        await settle(app, pilot)
        await pilot.press("j", "j", "l", "G")
        await settle(app, pilot)

        assert app.state.cursor == (9, 1)


@pytest.mark.asyncio
async def test_switch_sheet_paints_lazy_rows(workbook):
    app = XlsxViewer(workbook)
    async with app.run_test(size=SIZE) as pilot:
        await settle(app, pilot)
        await pilot.press("greater_than_sign")
        await settle(app, pilot)

        assert app.state.sheet_index == 1
        assert app.tabs.active == "sheet-1"
        assert app.table.rows[0][0] == Text("d1c1")

        app._do_goto("1500")
        await settle(app, pilot)

        assert app.state.row == 1499
        assert app.table.rows[-1][0] == Text("d1500c1")


@pytest.mark.asyncio
async def test_invalid_goto_keeps_cursor(workbook):
    app = XlsxViewer(workbook)
    async with app.run_test(size=SIZE) as pilot:
        await settle(app, pilot)
        await pilot.press("down")
        app._do_goto("Z999")
        await settle(app, pilot)

        assert app.state.cursor == (1, 0)


@pytest.mark.asyncio
async def test_search_moves_to_first_match(workbook):
    app = XlsxViewer(workbook)
    async with app.run_test(size=SIZE) as pilot:
        await settle(app, pilot)
        app._start_search("s4c3")
        await settle(app, pilot)

        assert app.state.cursor == (3, 2)
        assert app.state.search_query == "s4c3"

        await pilot.press("n")
        await settle(app, pilot)
        assert app.state.cursor == (3, 2)


@pytest.mark.asyncio
async def test_search_without_matches(workbook):
    app = XlsxViewer(workbook)
    async with app.run_test(size=SIZE) as pilot:
        await settle(app, pilot)
        await pilot.press("down")
        app._start_search("nothing here")
        await settle(app, pilot)

        assert app.state.cursor == (1, 0)
        assert app.state.search_query is None


@pytest.mark.asyncio
async def test_toggle_formulas_and_select(workbook):
    app = XlsxViewer(workbook)
    async with app.run_test(size=SIZE) as pilot:
        await settle(app, pilot)
        await pilot.press("f", "down", "space")
        await settle(app, pilot)

        assert app.state.show_formulas
        assert app.state.selection_anchor == 1

        await pilot.press("escape")
        await pilot.pause()
        assert app.state.selection_anchor is None


@pytest.mark.asyncio
async def test_row_detail_and_help_screens(workbook):
    app = XlsxViewer(workbook)
    async with app.run_test(size=SIZE) as pilot:
        await settle(app, pilot)
        await pilot.press("enter")
        await pilot.pause()
        assert isinstance(app.screen, RowDetailScreen)

        await pilot.press("escape")
        await pilot.pause()
        await pilot.press("f1")
        await pilot.pause()
        assert isinstance(app.screen, KeymapScreen)


@pytest.mark.asyncio
async def test_quit(workbook):
    app = XlsxViewer(workbook)
    async with app.run_test(size=SIZE) as pilot:
        await settle(app, pilot)
        await pilot.press("q")
    assert app.return_code == 0


@pytest.mark.asyncio
async def test_goto_prompt(workbook):
    app = XlsxViewer(workbook)
    async with app.run_test(size=SIZE) as pilot:
        await settle(app, pilot)
        await pilot.press("ctrl+g")
        await pilot.pause()
        assert isinstance(app.screen, GotoScreen)

        app.screen.query_one(Input).value = "C7"
        await pilot.press("enter")
        await settle(app, pilot)

        assert not isinstance(app.screen, GotoScreen)
        assert app.state.cursor == (6, 2)


@pytest.mark.asyncio
async def test_empty_search_prompt_stays_open(workbook):
    app = XlsxViewer(workbook)
    async with app.run_test(size=SIZE) as pilot:
        await settle(app, pilot)
        await pilot.press("slash")
        await pilot.pause()
        assert isinstance(app.screen, SearchScreen)

        await pilot.press("enter")
        await pilot.pause()
        assert isinstance(app.screen, SearchScreen)

        await pilot.press("escape")
        await pilot.pause()
        assert not isinstance(app.screen, SearchScreen)
        assert app.state.search_query is None


@pytest.mark.asyncio
async def test_clipboard_failure_is_a_warning(workbook, monkeypatch):
    monkeypatch.setattr(clipboard, "clipboard_command", lambda: ["xv-no-such-clipboard-tool"])
    app = XlsxViewer(workbook)
    notes = []
    monkeypatch.setattr(app, "notify", lambda message, **kwargs: notes.append((message, kwargs.get("severity"))))

    async with app.run_test(size=SIZE) as pilot:
        await settle(app, pilot)
        await pilot.press("c", "C")
        await settle(app, pilot)

        assert app.is_running
        assert notes == [
            ("Clipboard tool not found: xv-no-such-clipboard-tool", "warning"),
            ("Clipboard tool not found: xv-no-such-clipboard-tool", "warning"),
        ]

        await pilot.press("down")
        await settle(app, pilot)
        assert app.state.cursor == (1, 0)
