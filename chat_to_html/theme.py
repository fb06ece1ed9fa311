"""Report palette.

Resolves a ThemeConfig into the CSS custom properties used by the report
stylesheet. Unset values fall back to the default dark palette; code
backgrounds and tool card tints are derived from the base colors.
"""

from __future__ import annotations

import math

from chat_to_html.config import HEX_COLOR_RE, ThemeConfig

# Default dark palette (dark greys, warm earth-tone accents)
DEFAULT_COLORS = {
    "bg_page": "#121212",
    "bg_card": "#1c1c1c",
    "bg_accent": "#282828",
    "text_main": "#f0f0f0",
    "text_muted": "#a0a0a0",
    "border": "#383838",
    "accent_user": "#db7c2c",
    "accent_assistant": "#e29d33",
    "accent_tool": "#c5b357",
    "accent_result": "#76854a",
}
ACCENT_THINKING = "#0c4767"

DEFAULT_FONT_UI = "-apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Oxygen, Ubuntu, sans-serif"
DEFAULT_FONT_CODE = "'SF Mono', Monaco, 'Cascadia Code', 'Consolas', monospace"

CODE_DARKEN = 0.3
CODE_DARK_DARKEN = 0.5
TOOL_TINT_ALPHA = 0.1

SOURCE_BADGE_COLORS = {
    "claude": "#c96b4a",
    "codex": "#5a8fba",
    "gemini": "#5a8fba",
}


def hex_to_rgb(color: str) -> tuple[int, int, int]:
    """Split `#rrggbb` into its components.

    Raises:
        ValueError: If `color` is not a #rrggbb string
    """
    if not HEX_COLOR_RE.match(color):
        raise ValueError(f"expected a #rrggbb color, got {color!r}")
    return int(color[1:3], 16), int(color[3:5], 16), int(color[5:7], 16)


def darken_hex(color: str, amount: float) -> str:
    """Scale every channel of `color` by (1 - amount), rounding down."""
    channels = (max(0, math.floor(c * (1 - amount))) for c in hex_to_rgb(color))
    return "#" + "".join(f"{c:02x}" for c in channels)


def rgba(color: str, alpha: float) -> str:
    r, g, b = hex_to_rgb(color)
    return f"rgba({r}, {g}, {b}, {alpha})"


def _font_stack(font: str | None, fallback: str) -> str:
    if not font:
        return fallback
    return f"'{font}', {fallback}"


def resolve_palette(theme: ThemeConfig | None = None) -> dict[str, str]:
    """Map CSS custom property names to values for `theme`."""
    theme = theme or ThemeConfig()
    colors = dict(DEFAULT_COLORS)
    colors.update(theme.model_dump(include=set(DEFAULT_COLORS), exclude_none=True))

    palette = {
        "--bg-primary": colors["bg_page"],
        "--bg-secondary": colors["bg_card"],
        "--bg-tertiary": colors["bg_accent"],
        "--bg-code": darken_hex(colors["bg_page"], CODE_DARKEN),
        "--bg-code-dark": darken_hex(colors["bg_page"], CODE_DARK_DARKEN),
        "--bg-overlay-dark": "rgba(0, 0, 0, 0.2)",
        "--bg-overlay-light": "rgba(0, 0, 0, 0.15)",
        "--text-primary": colors["text_main"],
        "--text-secondary": colors["text_muted"],
        "--accent-user": colors["accent_user"],
        "--accent-assistant": colors["accent_assistant"],
        "--accent-tool": colors["accent_tool"],
        "--accent-tool-result": colors["accent_result"],
        "--accent-thinking": ACCENT_THINKING,
        "--border-color": colors["border"],
        "--bg-tool-call": rgba(colors["accent_tool"], TOOL_TINT_ALPHA),
        "--bg-tool-result": rgba(colors["accent_assistant"], TOOL_TINT_ALPHA),
        "--font-ui": _font_stack(theme.font_ui, DEFAULT_FONT_UI),
        "--font-code": _font_stack(theme.font_code, DEFAULT_FONT_CODE),
    }
    for source, color in SOURCE_BADGE_COLORS.items():
        palette[f"--badge-{source}"] = color
    return palette


def palette_css(palette: dict[str, str]) -> str:
    """Render a palette as a `:root` rule."""
    lines = [f"      {name}: {value};" for name, value in palette.items()]
    return ":root {\n" + "\n".join(lines) + "\n    }"
