"""Error taxonomy for transcript decoding and report configuration.

Fatal conditions raise one of these. Recoverable conditions (unknown record
subtypes, malformed inline markup) never raise; they are handled where
they occur.
"""

from __future__ import annotations

# Max characters of an offending line kept on an error
SNIPPET_LENGTH = 120


def _snippet(text: str) -> str:
    text = text.strip()
    if len(text) <= SNIPPET_LENGTH:
        return text
    return text[:SNIPPET_LENGTH] + "..."


class TranscriptError(Exception):
    pass


class UnrecognizedFormatError(TranscriptError):
    """No registered parser recognises the first line of the input."""

    def __init__(self, first_line: str) -> None:
        self.snippet = _snippet(first_line)
        if self.snippet:
            message = f"Unknown file format: no parser could handle this file (first line: {self.snippet})"
        else:
            message = "Unknown file format: input is empty"
        super().__init__(message)


class MalformedRecordError(TranscriptError):
    """A line inside a recognised log is not a JSON object.

    Fatal for the whole log: skipping the line would silently drop
    conversation history.
    """

    def __init__(self, source: str, line_number: int, line: str, reason: str) -> None:
        self.source = source
        self.line_number = line_number
        self.snippet = _snippet(line)
        super().__init__(
            f"Malformed {source} record on line {line_number}: {reason} ({self.snippet})"
        )


class ConfigError(TranscriptError):
    """Configuration file could not be loaded or failed validation."""
