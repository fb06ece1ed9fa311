"""
HTML report builder.

Renders a Session as one self-contained page: a header with session
metadata and token totals, a sticky filter bar, and one card per
RenderUnit. Stylesheet and script live in `assets/`; the palette is
injected as CSS custom properties so themes never touch the stylesheet.
Only the icon font is loaded from a CDN.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from datetime import datetime
from functools import cache
from pathlib import Path
from typing import Any

from chat_to_html.config import ThemeConfig
from chat_to_html.markdown import escape_html, render_markdown
from chat_to_html.models import (
    ContentUnit,
    Role,
    Session,
    Source,
    TextContent,
    ThinkingContent,
    ToolCall,
    ToolResult,
    Usage,
    total_tokens,
)
from chat_to_html.segmenter import RenderUnit, UnitKind, segment_session
from chat_to_html.theme import palette_css, resolve_palette

ASSETS_DIR = Path(__file__).parent / "assets"
ICONS_CSS_URL = "https://cdn.jsdelivr.net/npm/bootstrap-icons@1.11.3/font/bootstrap-icons.min.css"

# Tool results shorter than this on a single line render inline
SIMPLE_RESULT_MAX = 200
TOOL_SUMMARY_LENGTH = 60

# Read-style output: "    12→line"
_LINE_NUMBERED_RE = re.compile(r"^\s*\d+→")

# Tool name -> input key holding the most telling argument
_SUMMARY_KEYS = {
    "Read": "file_path",
    "Write": "file_path",
    "Edit": "file_path",
    "MultiEdit": "file_path",
    "NotebookEdit": "notebook_path",
    "Bash": "command",
    "shell": "command",
    "exec_command": "cmd",
    "Glob": "pattern",
    "Grep": "pattern",
    "Task": "description",
    "WebFetch": "url",
    "WebSearch": "query",
}


@cache
def _asset(name: str) -> str:
    return (ASSETS_DIR / name).read_text(encoding="utf-8")


def format_number(value: int) -> str:
    return f"{value:,}"


def format_timestamp(timestamp: str) -> str:
    """Local-time rendering of an ISO 8601 timestamp; anything else verbatim."""
    if not timestamp:
        return ""
    raw = timestamp
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(raw)
    except ValueError:
        return timestamp
    return dt.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _shorten(text: str, limit: int = TOOL_SUMMARY_LENGTH) -> str:
    text = " ".join(text.split())
    return text if len(text) <= limit else text[:limit] + "..."


def summarize_tool_input(tool_name: str, tool_input: Mapping[str, Any]) -> str:
    """One-line summary of a tool call's arguments for the card header."""
    key = _SUMMARY_KEYS.get(tool_name)
    value = tool_input.get(key) if key else None
    if isinstance(value, list):
        # Codex shell commands arrive as argv lists
        value = " ".join(str(part) for part in value)
    if isinstance(value, str) and value:
        if key in ("file_path", "notebook_path"):
            return value.rsplit("/", 1)[-1]
        return _shorten(value)

    # Generic fallback: first string value
    for v in tool_input.values():
        if isinstance(v, str) and v:
            return _shorten(v)
    return ""


def render_token_usage(usage: Usage, source: Source | str = Source.UNKNOWN) -> str:
    stats = [("Input", usage.input_tokens), ("Output", usage.output_tokens)]
    if usage.cache_creation_tokens:
        stats.append(("Cache Created", usage.cache_creation_tokens))
    if usage.cache_read_tokens:
        stats.append(("Cache Read", usage.cache_read_tokens))

    parts = [
        f'<span class="token-stat"><span class="label">{label}:</span> {format_number(value)}</span>'
        for label, value in stats
    ]
    parts.append(
        '<span class="token-stat total"><span class="label">Total:</span> '
        f"{format_number(total_tokens(usage, source))}</span>"
    )
    return "".join(parts)


def render_tool_input(tool_input: Mapping[str, Any]) -> str:
    formatted = json.dumps(dict(tool_input), indent=2, ensure_ascii=False, default=str)
    return f'<pre class="tool-input">{escape_html(formatted)}</pre>'


def render_tool_result(content: str, is_error: bool = False) -> str:
    """Pick a presentation for tool output.

    Line-numbered file dumps get the code style, short single lines render
    inline, everything else is preformatted.
    """
    error = " error" if is_error else ""
    if _LINE_NUMBERED_RE.match(content):
        return f'<pre class="tool-result code-output{error}">{escape_html(content)}</pre>'
    if len(content) < SIMPLE_RESULT_MAX and "\n" not in content:
        return f'<div class="tool-result simple{error}">{escape_html(content)}</div>'
    return f'<pre class="tool-result{error}">{escape_html(content)}</pre>'


_EXPAND_BUTTON = (
    '<button class="tool-expand-toggle" type="button" aria-expanded="false">'
    '<i class="bi bi-chevron-down"></i><span class="tool-expand-label">Expand</span>'
    "</button>"
)


def _render_text(text: str, thinking: bool = False) -> str:
    if not text:
        return ""
    css = "message-text thinking-text" if thinking else "message-text"
    return (
        f'<div class="{css}">'
        f'<div class="markdown-view">{render_markdown(text)}</div>'
        f'<pre class="plain-view">{escape_html(text)}</pre>'
        "</div>"
    )


def _render_tool_call(call: ToolCall) -> str:
    summary = summarize_tool_input(call.name, call.input)
    summary_html = f'<span class="tool-summary">{escape_html(summary)}</span>' if summary else ""
    return (
        '<div class="tool-call">'
        '<div class="tool-header">'
        f'<span class="tool-name">{escape_html(call.name)}</span>'
        f"{summary_html}"
        f'<span class="tool-id">{escape_html(call.id)}</span>'
        f"{_EXPAND_BUTTON}"
        "</div>"
        f"{render_tool_input(call.input)}"
        "</div>"
    )


def _render_tool_result_card(result: ToolResult) -> str:
    error = " error" if result.is_error else ""
    label = "Error" if result.is_error else "Result"
    return (
        f'<div class="tool-result-container{error}">'
        '<div class="tool-result-header">'
        f'<span class="result-label">{label}</span>'
        f'<span class="tool-id">{escape_html(result.tool_use_id)}</span>'
        f"{_EXPAND_BUTTON}"
        "</div>"
        f"{render_tool_result(result.content, result.is_error)}"
        "</div>"
    )


def render_content(item: ContentUnit) -> str:
    if isinstance(item, TextContent):
        return _render_text(item.text)
    if isinstance(item, ThinkingContent):
        return _render_text(item.text, thinking=True)
    if isinstance(item, ToolCall):
        return _render_tool_call(item)
    return _render_tool_result_card(item)


def _role_display(unit: RenderUnit) -> tuple[str, str]:
    """(icon class, label) for a unit's card header."""
    if unit.kind is UnitKind.TOOL_CALL:
        return "bi-wrench", "Tool Call"
    if unit.kind is UnitKind.TOOL_RESULT:
        return "bi-box-arrow-right", "Tool Result"
    if unit.has_thinking:
        return "bi-lightbulb", "Thinking"
    if unit.is_harness:
        return "bi-gear", "Harness"
    if unit.role is Role.ASSISTANT:
        return "bi-robot", "Assistant"
    if unit.role is Role.SYSTEM:
        return "bi-gear", "System"
    return "bi-person", "User"


def render_unit(unit: RenderUnit, source: Source | str = Source.UNKNOWN) -> str:
    """Render one card. Harness cards start hidden."""
    classes = ["message", "harness" if unit.is_harness else str(unit.role)]
    if unit.has_thinking:
        classes.append("thinking")
    if unit.kind is UnitKind.TOOL_CALL:
        classes.append("tool-call-message")
    elif unit.kind is UnitKind.TOOL_RESULT:
        classes.append("tool-result-message")
    if unit.is_harness:
        classes.append("hidden")

    icon, label = _role_display(unit)
    model_html = (
        f'<span class="message-model">{escape_html(unit.model)}</span>' if unit.model else ""
    )
    usage_html = (
        f'<div class="message-usage">{render_token_usage(unit.usage, source)}</div>'
        if unit.usage is not None
        else ""
    )
    content_html = "\n".join(render_content(item) for item in unit.content)

    return (
        f'<div class="{" ".join(classes)}" id="{escape_html(unit.id)}">\n'
        '  <div class="message-header">'
        f'<span class="role"><i class="bi {icon}"></i> {label}</span>'
        f"{model_html}"
        f'<span class="timestamp">{escape_html(format_timestamp(unit.timestamp))}</span>'
        "</div>\n"
        f'  <div class="message-content">{content_html}</div>\n'
        f"  {usage_html}\n"
        "</div>"
    )


def _info_item(label: str, value: str | int | None) -> str:
    shown = "-" if value is None or value == "" else escape_html(str(value))
    return (
        '<div class="info-item">'
        f'<span class="label">{label}</span><span class="value">{shown}</span>'
        "</div>"
    )


def render_header(session: Session) -> str:
    source = escape_html(str(session.source))
    items = [
        _info_item("Session ID", session.session_id),
        _info_item("Harness", str(session.source)),
        _info_item("Version", session.version),
        _info_item("Working Directory", session.cwd),
        _info_item("Messages", len(session.turns)),
    ]
    # Optional rows only when the log mentions them
    for label, value in (
        ("Git Branch", session.git_branch),
        ("Model", session.model),
        ("Agent ID", session.agent_id),
    ):
        if value:
            items.append(_info_item(label, value))

    return (
        '<header class="header">\n'
        f'  <h1><span class="source-badge {source}">{source}</span> Chat Session</h1>\n'
        f'  <div class="session-info">{"".join(items)}</div>\n'
        '  <div class="token-summary"><strong>Total Tokens:</strong>'
        f"{render_token_usage(session.total_usage, session.source)}</div>\n"
        "</header>"
    )


# (filter key, icon, label, on by default)
FILTERS = (
    ("user", "bi-person", "User", True),
    ("assistant", "bi-robot", "Assistant", True),
    ("tool-call", "bi-wrench", "Tool Calls", True),
    ("tool-result", "bi-box-arrow-right", "Tool Results", True),
    ("harness", "bi-gear", "Harness", False),
    ("thinking", "bi-lightbulb", "Thinking", False),
)


def render_filter_bar() -> str:
    toggles = []
    for key, icon, label, enabled in FILTERS:
        active = " active" if enabled else ""
        checked = " checked" if enabled else ""
        toggles.append(
            f'<label class="filter-toggle {key}-toggle{active}" data-filter="{key}">'
            f'<input type="checkbox"{checked}><i class="bi {icon}"></i><span>{label}</span>'
            "</label>"
        )
    return (
        '<div class="filter-bar">\n'
        f'  <div class="filter-toggles">{"".join(toggles)}</div>\n'
        '  <div class="search-group">'
        '<button class="mode-btn active" id="markdown-toggle" title="Toggle Markdown view">'
        '<i class="bi bi-markdown"></i></button>'
        '<div class="search-box"><i class="bi bi-search"></i>'
        '<input type="text" id="search-input" placeholder="Filter messages...">'
        '<button id="search-clear" class="search-clear" title="Clear search">'
        '<i class="bi bi-x"></i></button></div>'
        '<div class="nav-buttons">'
        '<button class="nav-btn" id="scroll-top" title="Scroll to top">'
        '<i class="bi bi-chevron-up"></i></button>'
        '<button class="nav-btn" id="scroll-bottom" title="Scroll to bottom">'
        '<i class="bi bi-chevron-down"></i></button>'
        "</div></div>\n"
        "</div>"
    )


def generate_html(session: Session, theme: ThemeConfig | None = None) -> str:
    """Render a complete standalone HTML page for `session`."""
    units = segment_session(session)
    if units:
        messages_html = "\n".join(render_unit(unit, session.source) for unit in units)
    else:
        messages_html = '<div class="empty-state">No messages in this session.</div>'

    styles = palette_css(resolve_palette(theme)) + "\n" + _asset("report.css")
    title = escape_html(session.session_id)

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Chat Session - {title}</title>
  <link rel="stylesheet" href="{ICONS_CSS_URL}">
  <style>
    {styles}
  </style>
</head>
<body>
  <div class="container">
{render_header(session)}
{render_filter_bar()}
    <main class="messages">
{messages_html}
    </main>
  </div>
  <script>
{_asset("report.js")}
  </script>
</body>
</html>
"""
