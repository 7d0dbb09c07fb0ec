"""Key chord to action resolution.

A profile is a plain table of action name -> default key chords. User
overrides are keyed by action name as well, so a chord resolves to:

1. the action whose override lists the chord, else
2. the action whose profile default lists the chord (unless that action
   has been overridden and moved elsewhere), else
3. nothing.

Key names follow Textual (``"ctrl+d"``, ``"G"``, ``"pagedown"``,
``"dollar_sign"``). Several chords can be given separated by commas, as in
Textual ``BINDINGS``.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

MODIFIERS = ("ctrl", "alt", "shift", "meta", "super", "hyper")


class Profile(str, Enum):
    DEFAULT = "default"
    VIM = "vim"


# Logical actions and their help text, in help-screen order
ACTIONS = {
    "move_up": "Move cursor up",
    "move_down": "Move cursor down",
    "move_left": "Move cursor left",
    "move_right": "Move cursor right",
    "page_up": "Page up",
    "page_down": "Page down",
    "half_page_up": "Half page up",
    "half_page_down": "Half page down",
    "jump_top": "Jump to first row",
    "jump_bottom": "Jump to last row",
    "jump_row_start": "Jump to first column",
    "jump_row_end": "Jump to last column",
    "jump_to_cell": "Go to cell (500, A50 or 10,5)",
    "next_sheet": "Next sheet",
    "prev_sheet": "Previous sheet",
    "search": "Search all cells",
    "next_match": "Next match",
    "prev_match": "Previous match",
    "select_row": "Select current row for copying",
    "clear_selection": "Clear row selection",
    "copy_cell": "Copy cell to clipboard",
    "copy_row": "Copy row to clipboard",
    "toggle_formulas": "Toggle formula display",
    "row_detail": "Show row details",
    "cycle_theme": "Cycle through themes",
    "help": "Show key bindings",
    "quit": "Quit",
}

# fmt: off
DEFAULT_BINDINGS = {
    "move_up": "up",
    "move_down": "down",
    "move_left": "left",
    "move_right": "right",
    "page_up": "pageup",
    "page_down": "pagedown",
    "jump_top": "ctrl+home",
    "jump_bottom": "ctrl+end",
    "jump_row_start": "home",
    "jump_row_end": "end",
    "jump_to_cell": "ctrl+g",
    "next_sheet": "ctrl+pagedown,greater_than_sign",
    "prev_sheet": "ctrl+pageup,less_than_sign",
    "search": "slash,ctrl+f",
    "next_match": "n,f3",
    "prev_match": "N,shift+f3",
    "select_row": "space",
    "clear_selection": "escape",
    "copy_cell": "c",
    "copy_row": "C",
    "toggle_formulas": "f",
    "row_detail": "enter",
    "cycle_theme": "t",
    "help": "question_mark,f1",
    "quit": "q",
}

VIM_BINDINGS = {
    "move_up": "k,up",
    "move_down": "j,down",
    "move_left": "h,left",
    "move_right": "l,right",
    "page_up": "ctrl+b,pageup",
    "page_down": "ctrl+f,pagedown",
    "half_page_up": "ctrl+u",
    "half_page_down": "ctrl+d",
    "jump_top": "g",
    "jump_bottom": "G",
    "jump_row_start": "0,circumflex_accent",
    "jump_row_end": "dollar_sign",
    "jump_to_cell": "colon",
    "next_sheet": "L,greater_than_sign",
    "prev_sheet": "H,less_than_sign",
    "search": "slash",
    "next_match": "n",
    "prev_match": "N",
    "select_row": "V",
    "clear_selection": "escape",
    "copy_cell": "y",
    "copy_row": "Y",
    "toggle_formulas": "F",
    "row_detail": "enter",
    "cycle_theme": "T",
    "help": "question_mark",
    "quit": "q",
}
# fmt: on

PROFILES = {
    Profile.DEFAULT: MappingProxyType(DEFAULT_BINDINGS),
    Profile.VIM: MappingProxyType(VIM_BINDINGS),
}


@dataclass(frozen=True)
class KeyChord:
    """A key plus its modifiers. Modifier order does not matter."""

    key: str
    modifiers: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def parse(cls, text: str) -> "KeyChord":
        """Parse a Textual key name such as ``"ctrl+shift+s"``.

        Raises:
            ValueError: The text is empty or contains an unknown modifier.
        """
        parts = [part.strip() for part in text.strip().split("+")]
        if not parts or not parts[-1]:
            raise ValueError(f"Invalid key chord: {text!r}")

        *mods, key = parts
        modifiers = set()
        for mod in mods:
            mod = mod.lower()
            if mod not in MODIFIERS:
                raise ValueError(f"Unknown modifier {mod!r} in key chord {text!r}")
            modifiers.add(mod)

        return cls(key=key, modifiers=frozenset(modifiers))

    def __str__(self) -> str:
        mods = [mod for mod in MODIFIERS if mod in self.modifiers]
        return "+".join([*mods, self.key])


def parse_chords(spec: str) -> tuple[KeyChord, ...]:
    """Parse a comma-separated list of key chords."""
    return tuple(KeyChord.parse(part) for part in spec.split(",") if part.strip())


def _as_chord(chord: KeyChord | str) -> KeyChord:
    return chord if isinstance(chord, KeyChord) else KeyChord.parse(chord)


def effective_bindings(
    profile: Profile | str, overrides: Mapping[str, str] | None = None
) -> dict[str, tuple[KeyChord, ...]]:
    """Return action -> chords after applying overrides to the profile defaults.

    Raises:
        ValueError: An override names an unknown action.
    """
    overrides = overrides or {}
    unknown = sorted(set(overrides) - set(ACTIONS))
    if unknown:
        raise ValueError(f"Unknown action(s) in key bindings: {', '.join(unknown)}")

    defaults = PROFILES[Profile(profile)]
    bindings = {}
    for action in ACTIONS:
        spec = overrides.get(action, defaults.get(action, ""))
        bindings[action] = parse_chords(spec)
    return bindings


def build_keymap(
    profile: Profile | str, overrides: Mapping[str, str] | None = None
) -> dict[KeyChord, str]:
    """Return the chord -> action lookup table.

    Overridden actions are entered last so they win over a profile default
    bound to the same chord.
    """
    overrides = overrides or {}
    bindings = effective_bindings(profile, overrides)

    keymap: dict[KeyChord, str] = {}
    for action, chords in bindings.items():
        if action not in overrides:
            for chord in chords:
                keymap.setdefault(chord, action)
    for action in overrides:
        for chord in bindings[action]:
            keymap[chord] = action
    return keymap


def resolve_action(
    profile: Profile | str,
    overrides: Mapping[str, str] | None,
    chord: KeyChord | str,
) -> str | None:
    """Map a key chord to its action, or None when the key is unbound."""
    return build_keymap(profile, overrides).get(_as_chord(chord))


def find_collisions(
    profile: Profile | str, overrides: Mapping[str, str] | None = None
) -> dict[KeyChord, list[str]]:
    """Return chords bound to more than one action after applying overrides."""
    seen: dict[KeyChord, list[str]] = {}
    for action, chords in effective_bindings(profile, overrides).items():
        for chord in chords:
            seen.setdefault(chord, []).append(action)
    return {chord: actions for chord, actions in seen.items() if len(actions) > 1}


@dataclass(frozen=True)
class Keymap:
    """Precomputed, immutable resolver for one profile and set of overrides."""

    profile: Profile
    overrides: Mapping[str, str]
    table: Mapping[KeyChord, str]

    @classmethod
    def create(cls, profile: Profile | str = Profile.DEFAULT, overrides: Mapping[str, str] | None = None) -> "Keymap":
        overrides = MappingProxyType(dict(overrides or {}))
        table = MappingProxyType(build_keymap(profile, overrides))
        return cls(profile=Profile(profile), overrides=overrides, table=table)

    def resolve(self, chord: KeyChord | str) -> str | None:
        try:
            return self.table.get(_as_chord(chord))
        except ValueError:
            return None

    def chords_for(self, action: str) -> tuple[KeyChord, ...]:
        return effective_bindings(self.profile, self.overrides)[action]
