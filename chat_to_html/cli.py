#!/usr/bin/env python3
"""
chat-to-html - Convert AI coding assistant session logs to HTML reports.

Usage:
    chat-to-html session.jsonl
    chat-to-html -o ./reports session1.jsonl session2.jsonl
    chat-to-html --no-identify-harness codex-session.jsonl
    chat-to-html --bg-page "#0b1220" --accent-user "#38bdf8" session.jsonl
    chat-to-html --config theme.yaml session.jsonl

Supported formats: Claude Code JSONL, OpenAI Codex CLI JSONL.

Exit codes:
    0 - every file converted
    1 - at least one file failed (the others are still converted)
    2 - bad arguments or configuration
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from chat_to_html.config import ReportConfig, load_config, merge_theme
from chat_to_html.errors import ConfigError, TranscriptError
from chat_to_html.html_generator import generate_html
from chat_to_html.models import Session
from chat_to_html.parsers import parse_file

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2

# CLI flag -> (ThemeConfig field, help text)
THEME_FLAGS = {
    "--bg-page": ("bg_page", "Page background"),
    "--bg-card": ("bg_card", "Message cards, header"),
    "--bg-accent": ("bg_accent", "Token summary, filter buttons"),
    "--text-main": ("text_main", "Main text color"),
    "--text-muted": ("text_muted", "Timestamps, labels"),
    "--border": ("border", "Card borders, dividers"),
    "--accent-user": ("accent_user", "User message border, links"),
    "--accent-assistant": ("accent_assistant", "Assistant message border"),
    "--accent-tool": ("accent_tool", "Tool call headers, inline code"),
    "--accent-result": ("accent_result", "Tool result headers"),
    "--font-ui": ("font_ui", 'UI font family (e.g. "Inter")'),
    "--font-code": ("font_code", 'Code font family (e.g. "Fira Code")'),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chat-to-html",
        description="Convert AI chat session logs (Claude Code, Codex CLI) to HTML reports",
    )
    parser.add_argument("files", nargs="+", type=Path, metavar="FILE", help="Session log (.jsonl)")
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        metavar="DIR",
        help="Output directory (default: same as input file)",
    )
    parser.add_argument(
        "--no-identify-harness",
        action="store_true",
        help="Disable harness message detection (enabled by default)",
    )
    parser.add_argument("--config", type=Path, metavar="FILE", help="YAML config file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    theme = parser.add_argument_group("theme options", "Hex colors (#rrggbb) and font families")
    for flag, (dest, help_text) in THEME_FLAGS.items():
        theme.add_argument(flag, dest=dest, metavar="VALUE", help=help_text)
    return parser


def output_path_for(input_path: Path, output_dir: Path | None) -> Path:
    """`<name without .jsonl>.html`, next to the input unless a directory is given."""
    name = input_path.name.removesuffix(".jsonl")
    return (output_dir or input_path.parent) / f"{name}.html"


def convert_file(
    input_path: Path,
    output_dir: Path | None,
    config: ReportConfig,
) -> Session:
    """Parse one log and write its report.

    Raises:
        OSError: If the input cannot be read or the output cannot be written
        UnicodeDecodeError: If the input is not UTF-8
        TranscriptError: If the log cannot be decoded
    """
    content = input_path.read_text(encoding="utf-8")
    session = parse_file(content, config.parse)

    print(f"  Source: {session.source}")
    print(f"  Session ID: {session.session_id}")
    print(f"  Messages: {len(session.turns)}")
    print(f"  Total tokens: {session.total_tokens}")

    theme = None if config.theme.is_default() else config.theme
    html = generate_html(session, theme)

    output_path = output_path_for(input_path, output_dir)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(html, encoding="utf-8")
    print(f"  Output: {output_path}\n")
    return session


def resolve_config(args: argparse.Namespace) -> ReportConfig:
    """Config file values with command-line overrides applied.

    Raises:
        ConfigError: If the config file or a theme flag is invalid
    """
    config = load_config(args.config) if args.config else ReportConfig()

    overrides = {dest: getattr(args, dest) for dest, _ in THEME_FLAGS.values()}
    theme = merge_theme(config.theme, overrides)
    parse = config.parse
    if args.no_identify_harness:
        parse = parse.model_copy(update={"identify_harness": False})
    return ReportConfig(parse=parse, theme=theme)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format=LOG_FORMAT,
    )

    try:
        config = resolve_config(args)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE

    print("chat-to-html - Converting to HTML reports\n")

    failed = 0
    for input_path in args.files:
        print(f"Processing: {input_path}")
        if not input_path.is_file():
            print(f"  Error: File not found: {input_path}\n", file=sys.stderr)
            failed += 1
            continue
        try:
            convert_file(input_path, args.output, config)
        except (OSError, UnicodeDecodeError, TranscriptError) as e:
            logger.debug("Conversion of %s failed", input_path, exc_info=True)
            print(f"  Error: {e}\n", file=sys.stderr)
            failed += 1

    if failed:
        print(f"{failed} of {len(args.files)} file(s) failed", file=sys.stderr)
        return EXIT_FAILED

    print("Done!")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
