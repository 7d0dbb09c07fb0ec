"""Viewer configuration.

Settings come from a TOML file, ``XV_`` environment variables and command
line flags (highest priority). The session receives the resolved
``ViewerSettings`` object and never reads files itself.

Example ``~/.config/xlsx-textual/config.toml``::

    profile = "vim"
    theme = "nord"
    max_rows = 0
    column_width = 15

    [keybindings]
    next_match = "ctrl+n"
    prev_match = "ctrl+p"

Environment Variables:
    XV_PROFILE: Keybinding profile, "default" or "vim" (default: default)
    XV_THEME: Textual theme name (default: textual-dark)
    XV_MAX_ROWS: Show at most this many rows, 0 = unlimited (default: 0)
    XV_COLUMN_WIDTH: Column width in characters (default: 15)
    XV_LAZY_THRESHOLD: Row count from which sheets load lazily (default: 1000)
    XV_CACHE_CAPACITY: Rows kept per lazy sheet (default: 2000)
    XV_LOG_LEVEL: Logging level (default: WARNING)
    XV_LOG_FILE: Log file path (default: Textual devtools console)
"""

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from textual.theme import BUILTIN_THEMES

from .common import CACHE_CAPACITY, COLUMN_WIDTH, LAZY_THRESHOLD, MIN_COLUMN_WIDTH
from .exceptions import ConfigError
from .keybindings import ACTIONS, Keymap, Profile, find_collisions, parse_chords
from .logger import get_logger

logger = get_logger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ViewerSettings(BaseSettings):
    """Resolved viewer configuration."""

    model_config = SettingsConfigDict(env_prefix="XV_", extra="forbid")

    profile: Profile = Profile.DEFAULT
    keybindings: dict[str, str] = Field(default_factory=dict)
    theme: str = "textual-dark"
    max_rows: int = Field(default=0, ge=0)
    column_width: int = Field(default=COLUMN_WIDTH, ge=MIN_COLUMN_WIDTH)
    lazy_threshold: int = Field(default=LAZY_THRESHOLD, ge=1)
    cache_capacity: int = Field(default=CACHE_CAPACITY, ge=1)
    log_level: str = "WARNING"
    log_file: str | None = None

    @field_validator("keybindings")
    @classmethod
    def validate_keybindings(cls, v: dict[str, str]) -> dict[str, str]:
        unknown = sorted(set(v) - set(ACTIONS))
        if unknown:
            raise ValueError(f"unknown action(s): {', '.join(unknown)}")
        for action, spec in v.items():
            if not parse_chords(spec):
                raise ValueError(f"no key given for action {action}")
        return v

    @field_validator("theme")
    @classmethod
    def validate_theme(cls, v: str) -> str:
        if v not in BUILTIN_THEMES:
            raise ValueError(f"unknown theme {v!r} (choose from {', '.join(sorted(BUILTIN_THEMES))})")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in LOG_LEVELS:
            raise ValueError(f"log level must be one of {', '.join(LOG_LEVELS)}")
        return v

    @property
    def keymap(self) -> Keymap:
        return Keymap.create(self.profile, self.keybindings)


def default_config_path() -> Path:
    """Return ``$XDG_CONFIG_HOME/xlsx-textual/config.toml`` (or under ``~/.config``)."""
    base = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(base) / "xlsx-textual" / "config.toml"


def load_settings(path: str | Path | None = None, **overrides: Any) -> ViewerSettings:
    """Load settings from a TOML file and apply command line overrides.

    Args:
        path: Config file. When None the default location is used and may be absent.
        overrides: Values that win over the file; None values are ignored.

    Raises:
        ConfigError: The explicit file is missing, or the file or values are invalid.
    """
    explicit = path is not None
    config_path = Path(path).expanduser() if explicit else default_config_path()

    data: dict[str, Any] = {}
    if config_path.is_file():
        try:
            with config_path.open("rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigError(f"Cannot read config file {config_path}: {e}") from e
    elif explicit:
        raise ConfigError(f"Config file not found: {config_path}")

    data.update({key: value for key, value in overrides.items() if value is not None})

    try:
        settings = ViewerSettings(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration ({config_path}):\n{e}") from e

    for chord, actions in find_collisions(settings.profile, settings.keybindings).items():
        logger.warning("Key %s is bound to several actions: %s", chord, ", ".join(actions))

    return settings
