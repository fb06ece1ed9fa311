"""
Claude Code JSONL parser.

Each line is one record. `user` and `assistant` records carry an
Anthropic API message under `message`; everything else (file history
snapshots, summaries, progress, queue operations, system notices) is
skipped.

Derived harness turns:
- thinking blocks become a separate thinking turn ahead of the message
- a TodoWrite call that changes the todo list becomes a checklist turn
- `isMeta` user records (injected context) are flagged as harness
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from chat_to_html.config import ParseOptions
from chat_to_html.models import (
    ContentUnit,
    Role,
    Session,
    Source,
    TextContent,
    ThinkingContent,
    ToolCall,
    ToolResult,
    Turn,
    Usage,
)
from chat_to_html.parsers.base import (
    SessionBuilder,
    SessionParser,
    as_dict,
    as_int,
    as_str,
    iter_records,
    load_first_record,
)

logger = logging.getLogger(__name__)

# Record types Claude Code writes; any of them may open a log
RECORD_TYPES = frozenset(
    {
        "user",
        "assistant",
        "system",
        "summary",
        "file-history-snapshot",
        "queue-operation",
        "progress",
    }
)

MESSAGE_TYPES = frozenset({"user", "assistant"})

# Model name Claude Code puts on locally generated messages
SYNTHETIC_MODEL = "<synthetic>"

TODO_TOOL = "TodoWrite"
TODO_SYMBOLS = {"completed": "✓", "in_progress": "▶"}
TODO_PENDING_SYMBOL = "□"
TODO_PREVIEW_LENGTH = 80

_TOOL_ERROR_TAG_RE = re.compile(r"</?tool_use_error>")


@dataclass
class ClaudeEntry:
    """The fields of a Claude Code record the parser looks at."""

    type: str
    line_number: int
    uuid: str | None = None
    timestamp: str = ""
    session_id: str | None = None
    agent_id: str | None = None
    version: str | None = None
    cwd: str | None = None
    git_branch: str | None = None
    is_meta: bool = False
    message: dict[str, Any] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], line_number: int) -> ClaudeEntry:
        """Create ClaudeEntry from a decoded JSONL record."""
        message = data.get("message")
        return cls(
            type=data.get("type") if isinstance(data.get("type"), str) else "unknown",
            line_number=line_number,
            uuid=as_str(data.get("uuid")),
            timestamp=as_str(data.get("timestamp")) or "",
            session_id=as_str(data.get("sessionId")),
            agent_id=as_str(data.get("agentId")),
            version=as_str(data.get("version")),
            cwd=as_str(data.get("cwd")),
            git_branch=as_str(data.get("gitBranch")),
            is_meta=data.get("isMeta") is True,
            message=message if isinstance(message, dict) else None,
        )


@dataclass
class _ParsedContent:
    units: list[ContentUnit] = field(default_factory=list)
    thinking: list[str] = field(default_factory=list)
    todo_inputs: list[dict[str, Any]] = field(default_factory=list)


def format_tool_result_content(content: Any) -> str:
    """Flatten a tool_result `content` field to text."""
    if content is None:
        return ""
    if isinstance(content, str):
        text = content
    elif isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict):
                if block.get("type") == "text":
                    parts.append(str(block.get("text", "")))
                elif block.get("type") == "image":
                    parts.append("[image]")
                else:
                    parts.append(json.dumps(block, ensure_ascii=False))
        text = "\n".join(parts)
    else:
        text = json.dumps(content, ensure_ascii=False)
    return _TOOL_ERROR_TAG_RE.sub("", text)


def _truncate_for_display(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    truncated = text[:max_length]
    last_space = truncated.rfind(" ")
    if last_space > max_length * 0.7:
        truncated = truncated[:last_space]
    return truncated + "..."


def format_todo_update(todos: list[Any]) -> str:
    """Render a TodoWrite todo list as a Markdown checklist."""
    lines = [f"**Todo list updated** ({len(todos)} items)", ""]
    for todo in todos:
        todo = as_dict(todo)
        status = todo.get("status", "pending")
        symbol = TODO_SYMBOLS.get(status, TODO_PENDING_SYMBOL)
        text = as_str(todo.get("content")) or "No description"
        # One line per item; embedded newlines would break the list
        text = " ".join(text.split())
        lines.append(f"- {symbol} {_truncate_for_display(text, TODO_PREVIEW_LENGTH)}")
    return "\n".join(lines)


def _optional_count(raw: dict[str, Any], key: str) -> int | None:
    # A missing cache counter means "not reported", not zero
    return as_int(raw[key]) if key in raw else None


def _parse_usage(raw: dict[str, Any]) -> Usage:
    return Usage(
        input_tokens=as_int(raw.get("input_tokens")),
        output_tokens=as_int(raw.get("output_tokens")),
        cache_creation_tokens=_optional_count(raw, "cache_creation_input_tokens"),
        cache_read_tokens=_optional_count(raw, "cache_read_input_tokens"),
    )


class ClaudeParser(SessionParser):
    """Parser for Claude Code session logs (~/.claude/projects/*/*.jsonl)."""

    source = Source.CLAUDE

    def can_parse(self, first_line: str) -> bool:
        record = load_first_record(first_line)
        if record is None:
            return False
        # Codex records wrap everything in `payload`
        if isinstance(record.get("payload"), dict):
            return False
        return record.get("type") in RECORD_TYPES

    def parse(self, content: str, options: ParseOptions | None = None) -> Session:
        options = options or ParseOptions()
        builder = SessionBuilder(self.source)
        harness_role = self.harness_role(options)
        usage_message_ids: set[str] = set()
        last_todos: list[Any] | None = None

        for line_number, data in iter_records(content, self.source):
            entry = ClaudeEntry.from_dict(data, line_number)
            if entry.type not in MESSAGE_TYPES or entry.message is None:
                logger.debug("Skipping %s record on line %d", entry.type, line_number)
                continue

            builder.set_metadata(
                session_id=entry.session_id,
                agent_id=entry.agent_id,
                version=entry.version,
                cwd=entry.cwd,
                git_branch=entry.git_branch,
            )

            message = entry.message
            model = as_str(message.get("model"))
            if model == SYNTHETIC_MODEL:
                model = None
            builder.set_metadata(model=model)

            # One API response is split over several records that repeat
            # the same usage; count it on the first record only.
            usage = None
            raw_usage = message.get("usage")
            if isinstance(raw_usage, dict):
                message_id = as_str(message.get("id"))
                if message_id is None or message_id not in usage_message_ids:
                    usage = _parse_usage(raw_usage)
                    if message_id:
                        usage_message_ids.add(message_id)

            parsed = self._parse_content(message.get("content"), line_number)
            turn_id = entry.uuid or f"line-{line_number}"
            role = Role.USER if entry.type == "user" else Role.ASSISTANT

            if parsed.thinking:
                builder.add_turn(
                    Turn(
                        id=f"{turn_id}:thinking",
                        role=harness_role,
                        content=tuple(ThinkingContent(text) for text in parsed.thinking),
                        timestamp=entry.timestamp,
                        model=model,
                        is_harness=options.identify_harness,
                    )
                )

            if parsed.units or usage is not None or not parsed.thinking:
                builder.add_turn(
                    Turn(
                        id=turn_id,
                        role=role,
                        content=tuple(parsed.units),
                        timestamp=entry.timestamp,
                        model=model,
                        usage=usage,
                        is_harness=(
                            options.identify_harness and entry.is_meta and role is Role.USER
                        ),
                    )
                )

            for todo_input in parsed.todo_inputs:
                todos = todo_input.get("todos")
                if not isinstance(todos, list) or todos == last_todos:
                    continue
                last_todos = todos
                builder.add_turn(
                    Turn(
                        id=f"{turn_id}:todos",
                        role=harness_role,
                        content=(TextContent(format_todo_update(todos)),),
                        timestamp=entry.timestamp,
                        is_harness=options.identify_harness,
                    )
                )

        return builder.build()

    def _parse_content(self, content: Any, line_number: int) -> _ParsedContent:
        """Split message content into content units and harness material."""
        parsed = _ParsedContent()
        if isinstance(content, str):
            if content.strip():
                parsed.units.append(TextContent(content))
            return parsed
        if not isinstance(content, list):
            return parsed

        for block in content:
            if isinstance(block, str):
                if block.strip():
                    parsed.units.append(TextContent(block))
                continue
            if not isinstance(block, dict):
                continue

            btype = block.get("type")
            if btype == "text":
                text = block.get("text")
                if isinstance(text, str) and text.strip():
                    parsed.units.append(TextContent(text))
            elif btype == "thinking":
                text = block.get("thinking")
                if isinstance(text, str) and text.strip():
                    parsed.thinking.append(text)
            elif btype == "tool_use":
                raw_input = block.get("input")
                if isinstance(raw_input, dict):
                    tool_input = raw_input
                elif raw_input is None:
                    tool_input = {}
                else:
                    tool_input = {"value": raw_input}
                name = as_str(block.get("name")) or "unknown"
                parsed.units.append(
                    ToolCall(id=as_str(block.get("id")) or "", name=name, input=tool_input)
                )
                if name == TODO_TOOL:
                    parsed.todo_inputs.append(tool_input)
            elif btype == "tool_result":
                parsed.units.append(
                    ToolResult(
                        tool_use_id=as_str(block.get("tool_use_id")) or "",
                        content=format_tool_result_content(block.get("content")),
                        is_error=block.get("is_error") is True,
                    )
                )
            elif btype == "image":
                parsed.units.append(TextContent("[image]"))
            else:
                logger.debug("Skipping %s content block on line %d", btype, line_number)
        return parsed
