"""Configuration models.

- ParseOptions: settings threaded into every parser call
- ThemeConfig: colors and fonts for the HTML report
- ReportConfig: both of the above, loadable from a YAML file

Exit behavior: load_config raises ConfigError; callers decide how to report it.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from chat_to_html.errors import ConfigError

# Number of leading user messages treated as harness setup (Codex)
HARNESS_USER_TURNS = 2

HEX_COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")


class ParseOptions(BaseModel):
    """Options consumed by the parsers."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    identify_harness: bool = Field(
        True,
        description="Tag orchestration content (setup turns, reasoning, todo updates) as harness.",
    )
    harness_user_turns: int = Field(
        HARNESS_USER_TURNS,
        ge=0,
        description="How many leading user messages count as harness setup.",
    )


class ThemeConfig(BaseModel):
    """Report colors (#rrggbb) and font families. Unset values use the defaults."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Backgrounds
    bg_page: str | None = None  # Page background
    bg_card: str | None = None  # Message cards, header
    bg_accent: str | None = None  # Token summary, filter buttons

    # Text
    text_main: str | None = None
    text_muted: str | None = None  # Timestamps, labels

    border: str | None = None

    # Accents
    accent_user: str | None = None
    accent_assistant: str | None = None
    accent_tool: str | None = None
    accent_result: str | None = None

    # Fonts
    font_ui: str | None = None
    font_code: str | None = None

    @field_validator(
        "bg_page",
        "bg_card",
        "bg_accent",
        "text_main",
        "text_muted",
        "border",
        "accent_user",
        "accent_assistant",
        "accent_tool",
        "accent_result",
    )
    @classmethod
    def _check_hex(cls, value: str | None) -> str | None:
        if value is None:
            return value
        value = value.strip()
        if not HEX_COLOR_RE.match(value):
            raise ValueError(f"expected a #rrggbb color, got {value!r}")
        return value.lower()

    @field_validator("font_ui", "font_code")
    @classmethod
    def _check_font(cls, value: str | None) -> str | None:
        if value is None:
            return value
        # Interpolated into CSS inside quotes
        if any(ch in value for ch in "'\"<>;{}\\"):
            raise ValueError(f"font family contains forbidden characters: {value!r}")
        return value.strip() or None

    def is_default(self) -> bool:
        return not self.model_dump(exclude_none=True)


class ReportConfig(BaseModel):
    """Top-level configuration file layout."""

    model_config = ConfigDict(extra="forbid")

    parse: ParseOptions = Field(default_factory=ParseOptions)
    theme: ThemeConfig = Field(default_factory=ThemeConfig)


def load_config(path: str | Path) -> ReportConfig:
    """Load a ReportConfig from a YAML file.

    Args:
        path: YAML file with optional `parse` and `theme` mappings

    Returns:
        Validated ReportConfig (defaults for an empty file)

    Raises:
        ConfigError: If the file is missing, is not valid YAML, or fails validation
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping, got {type(data).__name__}")

    try:
        return ReportConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e


def merge_theme(base: ThemeConfig, overrides: dict[str, Any]) -> ThemeConfig:
    """Return `base` with every non-None value from `overrides` applied.

    Raises:
        ConfigError: If an override fails validation
    """
    values = base.model_dump()
    values.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return ThemeConfig.model_validate(values)
    except ValidationError as e:
        raise ConfigError(f"Invalid theme option: {e}") from e
