"""Modal prompts for one line of input: search terms and jump targets."""

from collections.abc import Callable

from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label


class PromptScreen(ModalScreen[str | None]):
    """Ask for a line of text.

    Dismisses with the entered text (stripped), or None when cancelled with
    Escape or the Cancel button. ``check`` may return an error message to
    keep the prompt open.
    """

    DEFAULT_CSS = """
        PromptScreen {
            align: center middle;
        }

        PromptScreen > Vertical {
            width: 64;
            height: auto;
            border: round $primary;
            border-title-color: $accent;
            background: $surface;
            padding: 1 2;
        }

        PromptScreen Label {
            width: 100%;
        }

        PromptScreen #prompt-error {
            color: $error;
            height: auto;
        }

        PromptScreen Horizontal {
            height: auto;
            align: right middle;
        }

        PromptScreen Button {
            margin-left: 1;
        }
    """

    BINDINGS = [("escape", "cancel", "Cancel")]

    def __init__(
        self,
        title: str,
        label: str,
        value: str = "",
        submit: str = "OK",
        check: Callable[[str], str | None] | None = None,
    ):
        super().__init__()
        self.prompt_title = title
        self.prompt_label = label
        self.value = value
        self.submit_label = submit
        self.check = check

    def compose(self) -> ComposeResult:
        with Vertical() as box:
            box.border_title = self.prompt_title
            yield Label(self.prompt_label)
            yield Input(self.value, id="prompt-input")
            yield Label("", id="prompt-error")
            with Horizontal():
                yield Button(self.submit_label, id="submit", variant="primary")
                yield Button("Cancel", id="cancel")

    def on_mount(self) -> None:
        self.query_one(Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self._submit()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        if event.button.id == "submit":
            self._submit()
        else:
            self.dismiss(None)

    def action_cancel(self) -> None:
        self.dismiss(None)

    def _submit(self) -> None:
        text = self.query_one(Input).value.strip()
        if self.check is not None:
            error = self.check(text)
            if error:
                self.query_one("#prompt-error", Label).update(error)
                return
        self.dismiss(text or None)


def _require_text(text: str) -> str | None:
    return None if text else "Enter some text to search for"


class SearchScreen(PromptScreen):
    """Prompt for a case-insensitive search over every cell of a sheet."""

    def __init__(self, term: str = "", sheet_name: str = ""):
        label = "Text to find in any cell"
        if sheet_name:
            label += f" of [$success]{sheet_name}[/]"
        super().__init__("Search", label, value=term, submit="Search", check=_require_text)


class GotoScreen(PromptScreen):
    """Prompt for a jump target: a row number, a cell like A50, or row,column."""

    def __init__(self, current: str = ""):
        super().__init__(
            "Go to Cell",
            "Row number (500), cell (A50) or row,column (10,5)",
            value=current,
            submit="Go",
        )
