"""chat_to_html - render AI coding assistant session logs as HTML reports.

Vendor logs (Claude Code, Codex CLI) are decoded into one canonical
Session model, segmented into display units, and rendered as a single
self-contained HTML page.
"""

from chat_to_html.config import ParseOptions, ReportConfig, ThemeConfig, load_config
from chat_to_html.errors import (
    ConfigError,
    MalformedRecordError,
    TranscriptError,
    UnrecognizedFormatError,
)
from chat_to_html.html_generator import generate_html
from chat_to_html.markdown import render_markdown
from chat_to_html.models import Role, Session, Source, Turn, Usage, total_tokens
from chat_to_html.parsers import ParserRegistry, parse_file
from chat_to_html.segmenter import RenderUnit, segment_session, segment_turn

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "MalformedRecordError",
    "ParseOptions",
    "ParserRegistry",
    "RenderUnit",
    "ReportConfig",
    "Role",
    "Session",
    "Source",
    "ThemeConfig",
    "TranscriptError",
    "Turn",
    "UnrecognizedFormatError",
    "Usage",
    "generate_html",
    "load_config",
    "parse_file",
    "render_markdown",
    "segment_session",
    "segment_turn",
    "total_tokens",
]
