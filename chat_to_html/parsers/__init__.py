"""Parser registry.

Parsers are tried in registration order against the first non-blank line
of a log; the first whose `can_parse` accepts it decodes the whole log.
Predicates are expected to be mutually exclusive (tests check this), so
the order only matters as a tie-breaker.
"""

from __future__ import annotations

from chat_to_html.config import ParseOptions
from chat_to_html.errors import UnrecognizedFormatError
from chat_to_html.models import Session
from chat_to_html.parsers.base import SessionParser
from chat_to_html.parsers.claude import ClaudeParser
from chat_to_html.parsers.codex import CodexParser


class ParserRegistry:
    """Ordered registry of vendor parsers."""

    _parsers: list[SessionParser] = []
    _initialized: bool = False

    @classmethod
    def register(cls, parser: SessionParser) -> None:
        """Append a parser; it is tried after every parser registered before it."""
        cls._parsers.append(parser)

    @classmethod
    def get_all_parsers(cls) -> list[SessionParser]:
        cls.initialize()
        return list(cls._parsers)

    @classmethod
    def initialize(cls) -> None:
        """Register the built-in parsers."""
        if cls._initialized:
            return
        cls._initialized = True
        cls.register(ClaudeParser())
        cls.register(CodexParser())

    @classmethod
    def select(cls, first_line: str) -> SessionParser:
        """Return the first parser that recognises `first_line`.

        Raises:
            UnrecognizedFormatError: If no parser matches
        """
        for parser in cls.get_all_parsers():
            if parser.can_parse(first_line):
                return parser
        raise UnrecognizedFormatError(first_line)


def first_line_of(content: str) -> str:
    """First non-blank line of `content`, or an empty string."""
    for line in content.split("\n"):
        if line.strip():
            return line.strip()
    return ""


def parse_file(content: str, options: ParseOptions | None = None) -> Session:
    """Decode a whole log with the parser matching its first line.

    Raises:
        UnrecognizedFormatError: If no parser recognises the log
        MalformedRecordError: If a line of the log is not a JSON object
    """
    parser = ParserRegistry.select(first_line_of(content))
    return parser.parse(content, options)


__all__ = [
    "ClaudeParser",
    "CodexParser",
    "ParserRegistry",
    "SessionParser",
    "first_line_of",
    "parse_file",
]
