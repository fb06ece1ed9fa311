"""
Canonical conversation model.

Vendor-neutral shapes shared by every parser and by the report builder:

- Session: one decoded log (metadata, turns, total usage, source tag)
- Turn: one conversational event made of content units
- Content units: text, thinking, tool call, tool result
- Usage: token counters plus the per-source total-token rule

Everything here is immutable once a parser has built it.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, ClassVar


class Source(StrEnum):
    """Tool that produced the log."""

    CLAUDE = "claude"
    CODEX = "codex"
    GEMINI = "gemini"  # Reserved, no parser yet
    UNKNOWN = "unknown"


class Role(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ContentKind(StrEnum):
    TEXT = "text"
    THINKING = "thinking"
    TOOL_USE = "tool_use"
    TOOL_RESULT = "tool_result"


# Sources whose reported input count already includes cached tokens
CACHE_INCLUSIVE_SOURCES = frozenset({Source.CODEX, Source.GEMINI})


def _add_optional(a: int | None, b: int | None) -> int | None:
    if a is None and b is None:
        return None
    return (a or 0) + (b or 0)


@dataclass(frozen=True)
class Usage:
    """Token counters for a turn or a whole session.

    Cache counters are None when the vendor does not report them at all,
    which is not the same as reporting zero.
    """

    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int | None = None
    cache_read_tokens: int | None = None

    def __add__(self, other: Usage) -> Usage:
        if not isinstance(other, Usage):
            return NotImplemented
        return Usage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            cache_creation_tokens=_add_optional(
                self.cache_creation_tokens, other.cache_creation_tokens
            ),
            cache_read_tokens=_add_optional(self.cache_read_tokens, other.cache_read_tokens),
        )

    def has_data(self) -> bool:
        """Check if any counter is non-zero."""
        return bool(
            self.input_tokens
            or self.output_tokens
            or self.cache_creation_tokens
            or self.cache_read_tokens
        )


def total_tokens(usage: Usage, source: Source | str = Source.UNKNOWN) -> int:
    """Total token count for display, following the source's convention.

    Claude reports cache creation/read separately from input, so they are
    added on top. Codex (and Gemini) already count cached tokens inside
    the input figure, so adding them again would double count.
    """
    total = usage.input_tokens + usage.output_tokens
    if source in CACHE_INCLUSIVE_SOURCES:
        return total
    return total + (usage.cache_creation_tokens or 0) + (usage.cache_read_tokens or 0)


# --- Content units ---


@dataclass(frozen=True)
class TextContent:
    kind: ClassVar[ContentKind] = ContentKind.TEXT

    text: str


@dataclass(frozen=True)
class ThinkingContent:
    kind: ClassVar[ContentKind] = ContentKind.THINKING

    text: str


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation. `input` is passed through uninterpreted."""

    kind: ClassVar[ContentKind] = ContentKind.TOOL_USE

    id: str
    name: str
    input: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResult:
    """Output of the tool call identified by `tool_use_id`."""

    kind: ClassVar[ContentKind] = ContentKind.TOOL_RESULT

    tool_use_id: str
    content: str = ""
    is_error: bool = False


ContentUnit = TextContent | ThinkingContent | ToolCall | ToolResult

NARRATIVE_KINDS = frozenset({ContentKind.TEXT, ContentKind.THINKING})


# --- Turns and sessions ---


@dataclass(frozen=True)
class Turn:
    """A single conversational event."""

    id: str
    role: Role
    content: tuple[ContentUnit, ...] = ()
    timestamp: str = ""  # Vendor-native string, displayed as-is or reformatted by the report
    model: str | None = None
    usage: Usage | None = None
    is_harness: bool = False


@dataclass(frozen=True)
class Session:
    """One parsed log.

    Optional metadata is None when the log never mentions it.
    """

    session_id: str
    turns: tuple[Turn, ...] = ()
    total_usage: Usage = field(default_factory=Usage)
    source: Source = Source.UNKNOWN
    agent_id: str | None = None
    model: str | None = None
    version: str | None = None
    cwd: str | None = None
    git_branch: str | None = None

    @property
    def total_tokens(self) -> int:
        return total_tokens(self.total_usage, self.source)
